from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Awaitable, Callable, Iterable

from transcript_intake.models.notification_model import Notification
from transcript_intake.models.transcript_model import MeetingInfo, TranscriptRef

logger = logging.getLogger(__name__)

REASON_NOT_TRANSCRIPT = "not-a-transcript"
REASON_MISSING_IDS = "missing-ids"
REASON_NO_SUBJECT = "no-subject"
REASON_NOT_OF_INTEREST = "not-of-interest"

SubjectFilter = Callable[[str], bool]
MeetingLookup = Callable[[Notification, TranscriptRef], Awaitable[MeetingInfo | None]]


class SubjectKeywordFilter:
    """Tracks meetings whose subject contains any of the keywords, case-insensitively."""

    def __init__(self, keywords: Iterable[str]):
        self.keywords = tuple(keyword.lower() for keyword in keywords if keyword)

    def __call__(self, subject: str) -> bool:
        lowered = subject.lower()
        return any(keyword in lowered for keyword in self.keywords)


def accept_all(subject: str) -> bool:
    return True


@dataclass
class Classification:
    actionable: bool
    reason: str | None = None
    ref: TranscriptRef | None = None
    meeting: MeetingInfo | None = None


class NotificationClassifier:
    def __init__(self, subject_filter: SubjectFilter):
        self.subject_filter = subject_filter

    async def classify(self, notification: Notification, meeting_lookup: MeetingLookup) -> Classification:
        """Apply the transcript, id, subject and interest rules in order.

        Errors raised by ``meeting_lookup`` propagate to the caller.
        """
        if not notification.is_transcript:
            logger.info("[Webhook] SKIP: Not a transcript (type=%s)", notification.resource_type)
            return Classification(actionable=False, reason=REASON_NOT_TRANSCRIPT)

        ref = notification.transcript_ref()
        if ref is None:
            logger.info("[Webhook] SKIP: Missing ids in resource %s", notification.resource)
            return Classification(actionable=False, reason=REASON_MISSING_IDS)

        meeting = await meeting_lookup(notification, ref)
        subject = (meeting.subject or "").strip() if meeting else ""
        if not subject:
            logger.info("[Webhook] SKIP: No subject for meeting %s", ref.meeting_id)
            return Classification(actionable=False, reason=REASON_NO_SUBJECT, ref=ref, meeting=meeting)

        if not self.subject_filter(subject):
            logger.info("[Webhook] SKIP: Not of interest: %r", subject)
            return Classification(actionable=False, reason=REASON_NOT_OF_INTEREST, ref=ref, meeting=meeting)

        return Classification(actionable=True, ref=ref, meeting=meeting)
