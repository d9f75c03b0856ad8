import pytest

from transcript_intake.config import Settings, get_settings
from transcript_intake.processing import routes as processing_routes
from transcript_intake.webhook import routes as webhook_routes

CLIENT_STATE = "secret-state"


@pytest.fixture(autouse=True)
def _aws_env(monkeypatch):
    monkeypatch.setenv("AWS_REGION", "us-east-1")
    monkeypatch.setenv("AWS_DEFAULT_REGION", "us-east-1")
    monkeypatch.setenv("AWS_ACCESS_KEY_ID", "test")
    monkeypatch.setenv("AWS_SECRET_ACCESS_KEY", "test")
    get_settings.cache_clear()
    webhook_routes.get_controller.cache_clear()
    processing_routes.get_controller.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture
def settings(tmp_path):
    return Settings(
        _env_file=None,
        webhook_client_state=CLIENT_STATE,
        graph_tenant_id="tenant-1",
        graph_client_id="client-1",
        graph_client_secret="client-secret",
        graph_subscription_id="0f1e2d3c-4b5a-6978-8695-a4b3c2d1e0f9",
        batch_job_queue="transcript-queue",
        batch_job_definition="transcript-processor:3",
        artifact_local_dir=str(tmp_path / "artifacts"),
        retry_default_backoff_seconds=0,
    )
