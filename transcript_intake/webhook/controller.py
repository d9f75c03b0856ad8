from __future__ import annotations

import asyncio
import hmac
import json
import logging
from collections import Counter
from dataclasses import dataclass
from typing import Any, Mapping

from pydantic import ValidationError

from transcript_intake.config import Settings, get_settings
from transcript_intake.errors import ConfigurationError, GraphError, TransientError
from transcript_intake.models.notification_model import Notification, NotificationBatch, NotificationResult
from transcript_intake.models.transcript_model import MeetingInfo, TranscriptRef
from transcript_intake.processing.pipeline import TranscriptPipeline
from transcript_intake.services.artifact_storage import ArtifactStorage
from transcript_intake.services.classifier import NotificationClassifier, SubjectKeywordFilter
from transcript_intake.services.graph_client import BatchTokenProvider, GraphClient
from transcript_intake.services.job_dispatcher import BatchJobDispatcher

VALIDATION_PARAM = "validationToken"

REASON_AUTH = "auth"
REASON_INVALID = "invalid-notification"
REASON_LOOKUP_FAILED = "meeting-lookup-failed"
REASON_INTERNAL = "internal-error"


@dataclass
class WebhookResponse:
    status_code: int
    body: str | dict[str, Any]
    media_type: str = "application/json"


class WebhookController:
    """Graph change-notification receiver, independent of the HTTP framework hosting it."""

    def __init__(
        self,
        settings: Settings | None = None,
        graph: GraphClient | None = None,
        storage: ArtifactStorage | None = None,
        dispatcher: BatchJobDispatcher | None = None,
        classifier: NotificationClassifier | None = None,
    ):
        self.settings = settings or get_settings()
        self.graph = graph or GraphClient(self.settings)
        self.pipeline = TranscriptPipeline(
            storage=storage or ArtifactStorage(self.settings),
            dispatcher=dispatcher or BatchJobDispatcher(self.settings),
        )
        self.classifier = classifier or NotificationClassifier(SubjectKeywordFilter(self.settings.subject_keywords))
        self.logger = logging.getLogger(__name__)

    @staticmethod
    def validate(query: Mapping[str, str]) -> str | None:
        # An empty token counts as absent.
        return query.get(VALIDATION_PARAM) or None

    async def handle_request(self, query: Mapping[str, str], body: bytes | str | None) -> WebhookResponse:
        token = self.validate(query)
        if token is not None:
            self.logger.info("[Webhook] Validation request - returning token")
            return WebhookResponse(status_code=200, body=token, media_type="text/plain")

        if not self.settings.webhook_client_state:
            self.logger.error("[Webhook] WEBHOOK_CLIENT_STATE is not configured")
            return WebhookResponse(status_code=500, body="Server configuration error", media_type="text/plain")

        try:
            payload = json.loads(body or b"")
            batch = NotificationBatch.model_validate(payload)
        except (json.JSONDecodeError, UnicodeDecodeError, ValidationError) as exc:
            self.logger.error("[Webhook] Failed to parse request body: %s", exc)
            return WebhookResponse(status_code=400, body="Invalid JSON payload", media_type="text/plain")

        results = await self.handle(batch.value)
        body_out = {"results": [result.to_payload() for result in results]}
        if results and all(result.reason == REASON_AUTH for result in results):
            return WebhookResponse(status_code=403, body=body_out)
        return WebhookResponse(status_code=200, body=body_out)

    async def handle(self, entries: list[Any]) -> list[NotificationResult]:
        tokens = BatchTokenProvider(self.graph)
        results = list(await asyncio.gather(*(self._process(entry, tokens) for entry in entries)))

        outcomes = Counter(
            "skipped" if result.skipped else "processed" if result.success else "failed" for result in results
        )
        self.logger.info(
            "[Webhook] Processed notifications total=%d processed=%d skipped=%d failed=%d",
            len(results),
            outcomes["processed"],
            outcomes["skipped"],
            outcomes["failed"],
        )
        return results

    def _authenticated(self, notification: Notification) -> bool:
        received = (notification.client_state or "").encode("utf-8")
        expected = self.settings.webhook_client_state.encode("utf-8")
        return hmac.compare_digest(received, expected)

    async def _lookup_meeting(
        self, notification: Notification, ref: TranscriptRef, tokens: BatchTokenProvider
    ) -> MeetingInfo | None:
        if self.settings.test_mode and notification.test_data:
            return MeetingInfo(
                subject=notification.test_data.subject,
                start_date_time=notification.test_data.date,
                meeting_id=ref.meeting_id,
            )
        token = await tokens.get()
        try:
            return await self.graph.get_meeting(token, ref.user_id, ref.meeting_id)
        except GraphError as exc:
            if exc.status == 404:
                return None
            raise

    async def _process(self, entry: Any, tokens: BatchTokenProvider) -> NotificationResult:
        try:
            notification = Notification.model_validate(entry)
        except ValidationError as exc:
            self.logger.error("[Webhook] Invalid notification entry: %s", exc)
            return NotificationResult.failure(REASON_INVALID, str(exc))

        if not self._authenticated(notification):
            self.logger.warning(
                "[Webhook] SKIP: Invalid clientState (got %s...)",
                (notification.client_state or "none")[:4],
            )
            return NotificationResult.skip(REASON_AUTH)

        try:
            classification = await self.classifier.classify(
                notification, lambda item, ref: self._lookup_meeting(item, ref, tokens)
            )
        except (GraphError, TransientError, ConfigurationError) as exc:
            self.logger.error("[Webhook] Meeting lookup failed: %s", exc)
            return NotificationResult.failure(REASON_LOOKUP_FAILED, str(exc))
        except Exception as exc:
            self.logger.exception("[Webhook] Unexpected failure classifying %s", notification.resource)
            return NotificationResult.failure(REASON_INTERNAL, str(exc))

        if not classification.actionable:
            return NotificationResult.skip(classification.reason or "skipped")

        inline_content = None
        if self.settings.test_mode and notification.test_data:
            inline_content = notification.test_data.content

        try:
            result = await self.pipeline.run(classification.ref, classification.meeting, tokens, inline_content)
        except Exception as exc:
            self.logger.exception("[Webhook] Unexpected failure for transcript %s", classification.ref.transcript_id)
            return NotificationResult.failure(REASON_INTERNAL, str(exc))

        if result.success:
            self.logger.info(
                "[Webhook] Queued %s for project %s (job %s)", result.blob_path, result.project_name, result.job_id
            )
        return result
