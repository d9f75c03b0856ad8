import json
from datetime import datetime, timezone
from urllib.parse import parse_qs

import httpx
import pytest

from fakes import no_sleep
from transcript_intake.errors import ConfigurationError, GraphError, TransientError
from transcript_intake.models.transcript_model import TranscriptRef
from transcript_intake.services.graph_client import BatchTokenProvider, GraphClient
from transcript_intake.services.retry import RetryPolicy


def _graph(settings, handler, attempts=2):
    policy = RetryPolicy(max_attempts=attempts, default_backoff=0, sleep=no_sleep)
    return GraphClient(settings, policy, transport=httpx.MockTransport(handler))


@pytest.mark.asyncio
async def test_acquire_token_uses_client_credentials(settings):
    seen = []

    def handler(request):
        seen.append(request)
        return httpx.Response(200, json={"access_token": "abc", "expires_in": 3599})

    token = await _graph(settings, handler).acquire_token()

    assert token == "abc"
    request = seen[0]
    assert str(request.url) == "https://login.microsoftonline.com/tenant-1/oauth2/v2.0/token"
    form = parse_qs(request.content.decode())
    assert form["grant_type"] == ["client_credentials"]
    assert form["scope"] == ["https://graph.microsoft.com/.default"]
    assert form["client_id"] == ["client-1"]


@pytest.mark.asyncio
async def test_acquire_token_requires_credentials(settings):
    graph = _graph(settings.model_copy(update={"graph_client_secret": ""}), lambda request: httpx.Response(200))

    with pytest.raises(ConfigurationError):
        await graph.acquire_token()


@pytest.mark.asyncio
async def test_throttled_request_is_retried(settings):
    responses = [
        httpx.Response(429, headers={"Retry-After": "0"}, text="slow down"),
        httpx.Response(200, json={"subject": "[YakShaver] Sprint Review", "startDateTime": "2026-01-23T10:00:00Z"}),
    ]

    def handler(request):
        return responses.pop(0)

    meeting = await _graph(settings, handler).get_meeting("token", "user-1", "m-1")

    assert meeting.subject == "[YakShaver] Sprint Review"
    assert meeting.meeting_id == "m-1"
    assert responses == []


@pytest.mark.asyncio
async def test_server_errors_surface_after_retries(settings):
    calls = []

    def handler(request):
        calls.append(request)
        return httpx.Response(503, headers={"request-id": "req-9"}, text="unavailable")

    with pytest.raises(TransientError) as excinfo:
        await _graph(settings, handler, attempts=3).get_meeting("token", "user-1", "m-1")
    assert len(calls) == 3
    assert excinfo.value.status == 503
    assert "req-9" in str(excinfo.value)


@pytest.mark.asyncio
async def test_not_found_is_permanent(settings):
    calls = []

    def handler(request):
        calls.append(request)
        return httpx.Response(404, text="gone")

    with pytest.raises(GraphError) as excinfo:
        await _graph(settings, handler).get_meeting("token", "user-1", "m-1")
    assert excinfo.value.status == 404
    assert len(calls) == 1


@pytest.mark.asyncio
async def test_connection_errors_are_transient(settings):
    def handler(request):
        raise httpx.ConnectError("refused", request=request)

    with pytest.raises(TransientError):
        await _graph(settings, handler).get_meeting("token", "user-1", "m-1")


@pytest.mark.asyncio
async def test_transcript_content_requests_vtt(settings):
    seen = []

    def handler(request):
        seen.append(request)
        return httpx.Response(200, text="WEBVTT\n")

    ref = TranscriptRef(user_id="user-1", meeting_id="m-1", transcript_id="t-1")
    content = await _graph(settings, handler).get_transcript_content("token", ref)

    assert content == "WEBVTT\n"
    assert seen[0].url.path == "/v1.0/users/user-1/onlineMeetings/m-1/transcripts/t-1/content"
    assert seen[0].url.params["$format"] == "text/vtt"
    assert seen[0].headers["Authorization"] == "Bearer token"


@pytest.mark.asyncio
async def test_find_meeting_by_join_url_escapes_quotes(settings):
    seen = []

    def handler(request):
        seen.append(request)
        return httpx.Response(200, json={"value": [{"id": "m-9", "subject": "Planning"}]})

    meeting = await _graph(settings, handler).find_meeting_by_join_url("token", "user-1", "https://x/it's")

    assert meeting.meeting_id == "m-9"
    assert seen[0].url.params["$filter"] == "JoinWebUrl eq 'https://x/it''s'"


@pytest.mark.asyncio
async def test_renew_subscription_patches_expiry(settings):
    seen = []

    def handler(request):
        seen.append(request)
        return httpx.Response(
            200,
            headers={"request-id": "req-1"},
            json={
                "id": "sub-1",
                "resource": "communications/onlineMeetings/getAllTranscripts",
                "expirationDateTime": "2026-01-28T12:00:00.0000000Z",
                "clientState": "secret-state",
                "notificationUrl": "https://intake.example.com/api/webhook/transcripts",
            },
        )

    expiry = datetime(2026, 1, 28, 12, 0, tzinfo=timezone.utc)
    subscription, request_id = await _graph(settings, handler).renew_subscription("token", "sub-1", expiry)

    assert seen[0].method == "PATCH"
    assert json.loads(seen[0].content) == {"expirationDateTime": "2026-01-28T12:00:00Z"}
    assert subscription.expires_at == expiry
    assert subscription.notification_endpoint.endswith("/api/webhook/transcripts")
    assert request_id == "req-1"


@pytest.mark.asyncio
async def test_batch_token_provider_fetches_once():
    class CountingGraph:
        calls = 0

        async def acquire_token(self):
            self.calls += 1
            return "token"

    graph = CountingGraph()
    tokens = BatchTokenProvider(graph)

    assert await tokens.get() == "token"
    assert await tokens.get() == "token"
    assert graph.calls == 1


@pytest.mark.asyncio
async def test_batch_token_provider_remembers_failure():
    class FailingGraph:
        calls = 0

        async def acquire_token(self):
            self.calls += 1
            raise TransientError("token endpoint unavailable", status=503)

    graph = FailingGraph()
    tokens = BatchTokenProvider(graph)

    for _ in range(3):
        with pytest.raises(TransientError):
            await tokens.get()
    assert graph.calls == 1


@pytest.mark.asyncio
async def test_non_json_body_is_graph_error(settings):
    graph = _graph(settings, lambda request: httpx.Response(200, text="<html>gateway</html>"))

    with pytest.raises(GraphError, match="non-JSON"):
        await graph.get_meeting("token", "user-1", "m-1")


@pytest.mark.asyncio
async def test_renew_response_without_expiry_is_graph_error(settings):
    graph = _graph(settings, lambda request: httpx.Response(200, json={}))

    with pytest.raises(GraphError, match="Unexpected subscription response"):
        await graph.renew_subscription("token", "sub-1", datetime(2026, 1, 28, 12, 0, tzinfo=timezone.utc))
