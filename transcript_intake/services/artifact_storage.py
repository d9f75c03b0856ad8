from __future__ import annotations

import asyncio
import logging
from pathlib import Path
from typing import Any

from botocore.exceptions import BotoCoreError, ClientError

from transcript_intake.config import Settings, get_settings
from transcript_intake.errors import ArtifactStorageError
from transcript_intake.services.retry import RetryPolicy
from transcript_intake.utils.auth_aws import aws_client
from transcript_intake.utils.naming import storage_key

logger = logging.getLogger(__name__)


class ArtifactStorage:
    """Transcript store backed by S3, or by a local directory when no bucket is configured.

    Writes are keyed by ``{prefix}{project}/{filename}`` so repeated deliveries
    of the same meeting overwrite the same object.
    """

    def __init__(
        self,
        settings: Settings | None = None,
        bucket: str | None = None,
        client: Any | None = None,
        local_dir: Path | None = None,
        retry_policy: RetryPolicy | None = None,
    ):
        self.settings = settings or get_settings()
        self.bucket = bucket or self.settings.s3_bucket_name
        self.prefix = self.settings.artifact_prefix
        self.retry = retry_policy or RetryPolicy.from_settings(self.settings)
        self.client = client
        if self.bucket and self.client is None:
            self.client = aws_client("s3", self.settings)
        self._local_dir = local_dir or Path(self.settings.artifact_local_dir)

    @property
    def uses_s3(self) -> bool:
        return bool(self.bucket)

    def key_for(self, project_name: str, filename: str) -> str:
        return storage_key(project_name, filename, self.prefix)

    def write_text(self, key: str, content: str) -> str:
        payload = content.encode("utf-8")
        if self.uses_s3:
            try:
                self.client.put_object(Bucket=self.bucket, Key=key, Body=payload, ContentType="text/vtt")
            except (BotoCoreError, ClientError) as exc:
                raise ArtifactStorageError(f"put_object s3://{self.bucket}/{key} failed: {exc}") from exc
            return key
        path = self._local_dir / key
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_bytes(payload)
        except OSError as exc:
            raise ArtifactStorageError(f"write {path} failed: {exc}") from exc
        return key

    def read_text(self, key: str) -> str:
        if self.uses_s3:
            try:
                response = self.client.get_object(Bucket=self.bucket, Key=key)
            except ClientError as exc:
                if exc.response.get("Error", {}).get("Code") in ("NoSuchKey", "404"):
                    raise FileNotFoundError(key) from exc
                raise ArtifactStorageError(f"get_object s3://{self.bucket}/{key} failed: {exc}") from exc
            except BotoCoreError as exc:
                raise ArtifactStorageError(f"get_object s3://{self.bucket}/{key} failed: {exc}") from exc
            return response["Body"].read().decode("utf-8")
        path = self._local_dir / key
        if not path.exists():
            raise FileNotFoundError(key)
        return path.read_text(encoding="utf-8")

    async def write(self, project_name: str, filename: str, content: str) -> str:
        """Persist a transcript and return its storage path. Raises ArtifactStorageError after retries."""
        key = self.key_for(project_name, filename)
        await self.retry.call(asyncio.to_thread, self.write_text, key, content)
        location = f"s3://{self.bucket}/{key}" if self.uses_s3 else str(self._local_dir / key)
        logger.info("Stored transcript %s (%d bytes)", location, len(content))
        return key
