from __future__ import annotations

import asyncio
import logging
import re
from typing import Any
from urllib.parse import quote

from botocore.exceptions import BotoCoreError, ClientError

from transcript_intake.config import Settings, get_settings
from transcript_intake.errors import DispatchError
from transcript_intake.models.transcript_model import DispatchResult, ProcessingJobTrigger, TranscriptRef
from transcript_intake.services.retry import RetryPolicy
from transcript_intake.utils.auth_aws import aws_client
from transcript_intake.utils.time_utils import utc_now

logger = logging.getLogger(__name__)

_JOB_NAME_INVALID = re.compile(r"[^A-Za-z0-9_-]")
MAX_JOB_NAME = 128


class BatchJobDispatcher:
    """Starts one AWS Batch job per stored transcript without waiting for it to finish."""

    def __init__(self, settings: Settings | None = None, client: Any | None = None, retry_policy: RetryPolicy | None = None):
        self.settings = settings or get_settings()
        self.client = client or aws_client("batch", self.settings)
        self.retry = retry_policy or RetryPolicy.from_settings(self.settings)

    def missing_settings(self) -> list[str]:
        missing = []
        if not self.settings.batch_job_queue:
            missing.append("BATCH_JOB_QUEUE")
        if not self.settings.batch_job_definition:
            missing.append("BATCH_JOB_DEFINITION")
        return missing

    def build_trigger(self, storage_path: str, project_name: str, ref: TranscriptRef | None = None) -> ProcessingJobTrigger:
        dispatched_at = utc_now()
        job_name = _JOB_NAME_INVALID.sub("-", f"transcript-{project_name}-{dispatched_at:%Y%m%d%H%M%S}")[:MAX_JOB_NAME]
        environment = {
            "TRANSCRIPT_PATH": storage_path,
            "PROJECT_NAME": project_name,
            "TRANSCRIPT_FILENAME": storage_path.rsplit("/", 1)[-1],
        }
        if self.settings.s3_bucket_name:
            environment["TRANSCRIPT_BUCKET"] = self.settings.s3_bucket_name
        if self.settings.processor_model_id:
            environment["MODEL_ID"] = self.settings.processor_model_id
        if self.settings.cancel_url_base:
            # The job id is only known after submission; Batch exposes it to the job as AWS_BATCH_JOB_ID.
            environment["CANCEL_URL_BASE"] = self.settings.cancel_url_base.rstrip("/")
        if ref:
            environment.update(
                GRAPH_USER_ID=ref.user_id,
                GRAPH_MEETING_ID=ref.meeting_id,
                GRAPH_TRANSCRIPT_ID=ref.transcript_id,
            )
        return ProcessingJobTrigger(
            job_name=job_name,
            job_queue=self.settings.batch_job_queue,
            job_definition=self.settings.batch_job_definition,
            environment=environment,
            dispatched_at=dispatched_at,
        )

    def _submit(self, trigger: ProcessingJobTrigger) -> str:
        try:
            response = self.client.submit_job(
                jobName=trigger.job_name,
                jobQueue=trigger.job_queue,
                jobDefinition=trigger.job_definition,
                containerOverrides={
                    "environment": [{"name": name, "value": value} for name, value in trigger.environment.items()],
                },
            )
        except (BotoCoreError, ClientError) as exc:
            raise DispatchError(f"submit_job {trigger.job_name} failed: {exc}") from exc
        return response["jobId"]

    async def dispatch(self, storage_path: str, project_name: str, ref: TranscriptRef | None = None) -> DispatchResult:
        missing = self.missing_settings()
        if missing:
            logger.error("[Dispatch] Missing job backend settings: %s", ", ".join(missing))
            return DispatchResult(triggered=False, error=f"Missing required settings: {', '.join(missing)}")

        trigger = self.build_trigger(storage_path, project_name, ref)
        try:
            job_id = await self.retry.call(asyncio.to_thread, self._submit, trigger)
        except DispatchError as exc:
            logger.error("[Dispatch] Job %s failed: %s", trigger.job_name, exc)
            return DispatchResult(triggered=False, error=str(exc))

        logger.info(
            "[Dispatch] Started job %s (id=%s) for %s, project=%s",
            trigger.job_name,
            job_id,
            storage_path,
            project_name,
        )
        return DispatchResult(triggered=True, job_id=job_id)

    def cancel_url(self, job_id: str) -> str | None:
        if not self.settings.cancel_url_base:
            return None
        return f"{self.settings.cancel_url_base.rstrip('/')}/api/processing/jobs/{quote(job_id, safe='')}/cancel"

    async def cancel(self, job_id: str, reason: str = "Cancelled by user") -> None:
        def _terminate() -> None:
            try:
                self.client.terminate_job(jobId=job_id, reason=reason)
            except (BotoCoreError, ClientError) as exc:
                raise DispatchError(f"terminate_job {job_id} failed: {exc}") from exc

        await self.retry.call(asyncio.to_thread, _terminate)
        logger.info("[Dispatch] Terminated job %s", job_id)
