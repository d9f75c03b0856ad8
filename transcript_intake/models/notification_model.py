from __future__ import annotations

import re
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from transcript_intake.models.transcript_model import TranscriptRef

TRANSCRIPT_TYPE_MARKER = "calltranscript"

_USER_RE = re.compile(r"users\('([^']+)'\)")
_MEETING_RE = re.compile(r"onlineMeetings\('([^']+)'\)")
_TRANSCRIPT_RE = re.compile(r"transcripts\('([^']+)'\)")


def _match(pattern: re.Pattern[str], text: str) -> str | None:
    found = pattern.search(text)
    return found.group(1) if found else None


class ResourceData(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="allow")

    odata_type: str | None = Field(default=None, alias="@odata.type")
    id: str | None = None
    meeting_id: str | None = Field(default=None, alias="meetingId")
    meeting_organizer_id: str | None = Field(default=None, alias="meetingOrganizerId")


class InlineTestData(BaseModel):
    """Subject, start time and optional VTT body supplied directly in a delivery (test mode)."""

    subject: str | None = None
    date: str | None = None
    content: str | None = None


class Notification(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="allow")

    subscription_id: str | None = Field(default=None, alias="subscriptionId")
    change_type: str | None = Field(default=None, alias="changeType")
    resource: str | None = None
    client_state: str | None = Field(default=None, alias="clientState")
    resource_data: ResourceData = Field(default_factory=ResourceData, alias="resourceData")
    test_data: InlineTestData | None = Field(default=None, alias="testData")

    @property
    def resource_type(self) -> str | None:
        return self.resource_data.odata_type

    @property
    def is_transcript(self) -> bool:
        return TRANSCRIPT_TYPE_MARKER in (self.resource_type or "").lower()

    def transcript_ref(self) -> TranscriptRef | None:
        """IDs from the resource path, falling back to resourceData. None if any is missing."""
        resource = self.resource or ""
        user_id = _match(_USER_RE, resource) or self.resource_data.meeting_organizer_id
        meeting_id = _match(_MEETING_RE, resource) or self.resource_data.meeting_id
        transcript_id = _match(_TRANSCRIPT_RE, resource) or self.resource_data.id
        if not (user_id and meeting_id and transcript_id):
            return None
        return TranscriptRef(user_id=user_id, meeting_id=meeting_id, transcript_id=transcript_id)


class NotificationBatch(BaseModel):
    # Entries stay raw so one malformed item cannot reject the whole delivery.
    value: list[Any] = Field(default_factory=list)


class NotificationResult(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    success: bool
    skipped: bool = False
    reason: str | None = None
    blob_path: str | None = Field(default=None, alias="blobPath")
    project_name: str | None = Field(default=None, alias="projectName")
    filename: str | None = None
    job_id: str | None = Field(default=None, alias="jobId")
    error: str | None = None

    @classmethod
    def skip(cls, reason: str) -> "NotificationResult":
        return cls(success=True, skipped=True, reason=reason)

    @classmethod
    def failure(cls, reason: str, error: str | None = None, **fields: Any) -> "NotificationResult":
        return cls(success=False, skipped=False, reason=reason, error=error, **fields)

    def to_payload(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=True)
