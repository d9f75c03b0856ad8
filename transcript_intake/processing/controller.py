from __future__ import annotations

import logging
from typing import Any

import httpx

from transcript_intake.config import Settings, get_settings
from transcript_intake.models.transcript_model import TranscriptRef
from transcript_intake.processing.pipeline import TranscriptPipeline
from transcript_intake.services.artifact_storage import ArtifactStorage
from transcript_intake.services.graph_client import BatchTokenProvider, GraphClient
from transcript_intake.services.job_dispatcher import BatchJobDispatcher
from transcript_intake.utils.join_url import parse_join_url
from transcript_intake.utils.time_utils import parse_graph_datetime

EPOCH = "1970-01-01T00:00:00Z"


class ProcessingController:
    """Manual processing of a meeting by join URL, and cancellation of dispatched jobs.

    The manual path skips the subject filter; everything after classification
    runs through the same pipeline as webhook deliveries.
    """

    def __init__(
        self,
        settings: Settings | None = None,
        graph: GraphClient | None = None,
        storage: ArtifactStorage | None = None,
        dispatcher: BatchJobDispatcher | None = None,
        http_transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.settings = settings or get_settings()
        self.graph = graph or GraphClient(self.settings)
        self.dispatcher = dispatcher or BatchJobDispatcher(self.settings)
        self.pipeline = TranscriptPipeline(storage=storage or ArtifactStorage(self.settings), dispatcher=self.dispatcher)
        self._http_transport = http_transport
        self.logger = logging.getLogger(__name__)

    async def trigger_from_join_url(self, join_url: str) -> dict[str, Any]:
        info = parse_join_url(join_url)
        self.logger.info("Manual trigger requested for organizer %s", info.user_id)

        tokens = BatchTokenProvider(self.graph)
        token = await tokens.get()
        meeting = await self.graph.find_meeting_by_join_url(token, info.user_id, join_url)
        if not meeting or not meeting.meeting_id:
            raise LookupError(
                "No meeting found for this join URL. The meeting may have been deleted or the URL may be incorrect."
            )

        subject = meeting.subject or "(no subject)"
        transcripts = await self.graph.list_transcripts(token, info.user_id, meeting.meeting_id)
        if not transcripts:
            raise LookupError(
                f'No transcripts found for meeting "{subject}". Ensure recording/transcription was enabled.'
            )

        latest = max(transcripts, key=lambda item: parse_graph_datetime(item.get("createdDateTime") or EPOCH))
        ref = TranscriptRef(user_id=info.user_id, meeting_id=meeting.meeting_id, transcript_id=latest["id"])
        self.logger.info(
            "Processing transcript %s of %d for %r (created %s)",
            ref.transcript_id,
            len(transcripts),
            subject,
            latest.get("createdDateTime"),
        )

        result = await self.pipeline.run(ref, meeting, tokens)
        if not result.success:
            raise RuntimeError(f"{result.reason}: {result.error}")

        return {
            "success": True,
            "message": f'Processing queued for "{subject}"',
            "meeting": {
                "subject": subject,
                "meetingId": ref.meeting_id,
                "transcriptId": ref.transcript_id,
                "transcriptCreated": latest.get("createdDateTime"),
                "totalTranscripts": len(transcripts),
            },
            "result": result.to_payload(),
            "cancelUrl": self.dispatcher.cancel_url(result.job_id) if result.job_id else None,
        }

    async def cancel_job(self, job_id: str) -> dict[str, Any]:
        await self.dispatcher.cancel(job_id)
        await self._notify_cancelled(job_id)
        return {"success": True, "message": "Processing cancelled", "jobId": job_id}

    async def _notify_cancelled(self, job_id: str) -> None:
        url = self.settings.notification_webhook_url
        if not url:
            self.logger.warning("NOTIFICATION_WEBHOOK_URL not configured, skipping cancellation notice")
            return
        payload = {
            "notificationType": "cancelled",
            "executionId": job_id,
            "message": "Meeting transcript processing was cancelled by user.",
        }
        try:
            async with httpx.AsyncClient(timeout=self.settings.http_timeout_seconds, transport=self._http_transport) as client:
                response = await client.post(url, json=payload)
                response.raise_for_status()
        except httpx.HTTPError as exc:
            self.logger.warning("Failed to send cancellation notice for %s: %s", job_id, exc)
            return
        self.logger.info("Cancellation notice sent for %s", job_id)
