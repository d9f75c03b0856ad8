from __future__ import annotations

import logging

from transcript_intake.errors import ArtifactStorageError, ConfigurationError, GraphError, TransientError
from transcript_intake.models.notification_model import NotificationResult
from transcript_intake.models.transcript_model import MeetingInfo, TranscriptArtifact, TranscriptRef
from transcript_intake.services.artifact_storage import ArtifactStorage
from transcript_intake.services.graph_client import BatchTokenProvider
from transcript_intake.services.job_dispatcher import BatchJobDispatcher
from transcript_intake.utils.naming import resolve_filename, resolve_project_name

logger = logging.getLogger(__name__)

REASON_NAMING_FAILED = "naming-failed"
REASON_DOWNLOAD_FAILED = "transcript-download-failed"
REASON_STORAGE_FAILED = "storage-failed"
REASON_DISPATCH_FAILED = "dispatch-failed"


class TranscriptPipeline:
    """Name, download, store and dispatch one actionable transcript."""

    def __init__(self, storage: ArtifactStorage, dispatcher: BatchJobDispatcher):
        self.storage = storage
        self.dispatcher = dispatcher

    async def run(
        self,
        ref: TranscriptRef,
        meeting: MeetingInfo,
        tokens: BatchTokenProvider | None = None,
        content: str | None = None,
    ) -> NotificationResult:
        try:
            project_name = resolve_project_name(meeting.subject)
            filename = resolve_filename(meeting.subject, meeting.start_date_time or "")
        except ValueError as exc:
            logger.error("Cannot name transcript %s (start=%r): %s", ref.transcript_id, meeting.start_date_time, exc)
            return NotificationResult.failure(REASON_NAMING_FAILED, str(exc))

        if content is None:
            if tokens is None:
                return NotificationResult.failure(REASON_DOWNLOAD_FAILED, "no transcript content and no Graph access")
            try:
                token = await tokens.get()
                content = await tokens.graph.get_transcript_content(token, ref)
            except (GraphError, TransientError, ConfigurationError) as exc:
                logger.error("Transcript download failed for %s: %s", ref.transcript_id, exc)
                return NotificationResult.failure(
                    REASON_DOWNLOAD_FAILED, str(exc), project_name=project_name, filename=filename
                )

        if not content.startswith("WEBVTT"):
            logger.warning("Transcript %s may not be valid VTT: %r", ref.transcript_id, content[:100])

        artifact = TranscriptArtifact(
            project_name=project_name,
            filename=filename,
            content=content,
            storage_path=self.storage.key_for(project_name, filename),
        )
        try:
            await self.storage.write(artifact.project_name, artifact.filename, artifact.content)
        except ArtifactStorageError as exc:
            logger.error("Storing %s failed: %s", artifact.storage_path, exc)
            return NotificationResult.failure(
                REASON_STORAGE_FAILED, str(exc), project_name=project_name, filename=filename
            )

        dispatch = await self.dispatcher.dispatch(artifact.storage_path, project_name, ref)
        if not dispatch.triggered:
            return NotificationResult.failure(
                REASON_DISPATCH_FAILED,
                dispatch.error,
                blob_path=artifact.storage_path,
                project_name=project_name,
                filename=filename,
            )

        return NotificationResult(
            success=True,
            blob_path=artifact.storage_path,
            project_name=project_name,
            filename=filename,
            job_id=dispatch.job_id,
        )
