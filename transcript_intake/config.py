from functools import lru_cache
from pathlib import Path

from pydantic import model_validator
from pydantic_settings import BaseSettings

MINUTES_PER_DAY = 24 * 60


class Settings(BaseSettings):
    log_level: str = "INFO"

    aws_region: str = "us-east-1"
    aws_access_key_id: str | None = None
    aws_secret_access_key: str | None = None
    s3_bucket_name: str | None = None
    artifact_prefix: str = ""
    artifact_local_dir: str = "data/transcripts"

    graph_tenant_id: str = ""
    graph_client_id: str = ""
    graph_client_secret: str = ""
    graph_subscription_id: str = ""
    graph_base_url: str = "https://graph.microsoft.com/v1.0"
    graph_login_url: str = "https://login.microsoftonline.com"

    webhook_client_state: str = ""
    tracked_subject_keywords: str = "sprint"

    batch_job_queue: str = ""
    batch_job_definition: str = ""
    processor_model_id: str | None = None
    cancel_url_base: str | None = None
    notification_webhook_url: str | None = None

    retry_max_attempts: int = 3
    retry_default_backoff_seconds: float = 5.0
    http_timeout_seconds: float = 30.0

    renewal_days: float = 2.5
    subscription_max_lifetime_minutes: int = 4230
    renewal_hour_utc: int = 0
    renewal_scheduler_enabled: bool = False

    test_mode: bool = False

    @model_validator(mode="after")
    def check_renewal_window(self) -> "Settings":
        window_minutes = self.renewal_days * MINUTES_PER_DAY
        if window_minutes >= self.subscription_max_lifetime_minutes:
            raise ValueError(
                f"renewal_days={self.renewal_days} must be shorter than the provider maximum "
                f"of {self.subscription_max_lifetime_minutes} minutes"
            )
        # Daily ticks: one missed tick must still leave the subscription alive.
        if window_minutes <= 2 * MINUTES_PER_DAY:
            raise ValueError(f"renewal_days={self.renewal_days} must exceed two daily renewal intervals")
        return self

    @property
    def subject_keywords(self) -> list[str]:
        return [item.strip().lower() for item in self.tracked_subject_keywords.split(",") if item.strip()]

    @property
    def has_graph_credentials(self) -> bool:
        return bool(self.graph_tenant_id and self.graph_client_id and self.graph_client_secret)

    class Config:
        env_file = str(Path(__file__).resolve().parents[1] / ".env")
        env_file_encoding = "utf-8"
        extra = "ignore"


@lru_cache
def get_settings() -> Settings:
    return Settings()
