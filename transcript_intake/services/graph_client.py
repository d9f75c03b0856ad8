"""Async client for the Microsoft Graph endpoints the intake service touches.

Covers client-credential token exchange, online meeting lookup, transcript
listing and download, and subscription renewal. Every call goes through the
injected RetryPolicy: 429 and 5xx responses become TransientError (carrying
the Retry-After hint), other non-2xx responses become GraphError.
"""
from __future__ import annotations

import asyncio
import logging
from datetime import datetime
from typing import Any

import httpx
from pydantic import ValidationError

from transcript_intake.config import Settings, get_settings
from transcript_intake.errors import ConfigurationError, GraphError, TransientError
from transcript_intake.models.subscription_model import Subscription
from transcript_intake.models.transcript_model import MeetingInfo, TranscriptRef
from transcript_intake.services.retry import RetryPolicy, is_transient_status, parse_retry_after
from transcript_intake.utils.time_utils import to_graph_datetime

logger = logging.getLogger(__name__)

GRAPH_SCOPE = "https://graph.microsoft.com/.default"


class GraphClient:
    def __init__(
        self,
        settings: Settings | None = None,
        retry_policy: RetryPolicy | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.settings = settings or get_settings()
        self.retry = retry_policy or RetryPolicy.from_settings(self.settings)
        self._transport = transport

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(timeout=self.settings.http_timeout_seconds, transport=self._transport)

    async def _send(self, method: str, url: str, **kwargs: Any) -> httpx.Response:
        try:
            async with self._client() as client:
                response = await client.request(method, url, **kwargs)
        except (httpx.TimeoutException, httpx.TransportError) as exc:
            raise TransientError(f"{method} {url} failed: {exc}") from exc

        if response.is_success:
            return response
        request_id = response.headers.get("request-id", "N/A")
        detail = f"{method} {url} returned {response.status_code} (req:{request_id}): {response.text[:500]}"
        logger.debug("Graph error response: %s", detail)
        if is_transient_status(response.status_code):
            raise TransientError(
                detail,
                retry_after=parse_retry_after(response.headers.get("Retry-After")),
                status=response.status_code,
            )
        raise GraphError(detail, status=response.status_code)

    async def _request(self, method: str, url: str, **kwargs: Any) -> httpx.Response:
        return await self.retry.call(self._send, method, url, **kwargs)

    @staticmethod
    def _json(response: httpx.Response) -> dict[str, Any]:
        try:
            data = response.json()
        except ValueError as exc:
            raise GraphError(
                f"{response.request.method} {response.request.url} returned a non-JSON body: {response.text[:200]!r}",
                status=response.status_code,
            ) from exc
        if not isinstance(data, dict):
            raise GraphError(
                f"{response.request.method} {response.request.url} returned {type(data).__name__}, expected an object",
                status=response.status_code,
            )
        return data

    @staticmethod
    def _auth(token: str) -> dict[str, str]:
        return {"Authorization": f"Bearer {token}"}

    async def acquire_token(self) -> str:
        if not self.settings.has_graph_credentials:
            raise ConfigurationError("Missing Graph credentials (GRAPH_TENANT_ID, GRAPH_CLIENT_ID, GRAPH_CLIENT_SECRET)")
        url = f"{self.settings.graph_login_url}/{self.settings.graph_tenant_id}/oauth2/v2.0/token"
        response = await self._request(
            "POST",
            url,
            data={
                "client_id": self.settings.graph_client_id,
                "client_secret": self.settings.graph_client_secret,
                "scope": GRAPH_SCOPE,
                "grant_type": "client_credentials",
            },
        )
        token = self._json(response).get("access_token")
        if not token:
            raise GraphError("Token response did not contain access_token", status=response.status_code)
        return token

    async def get_meeting(self, token: str, user_id: str, meeting_id: str) -> MeetingInfo:
        url = f"{self.settings.graph_base_url}/users/{user_id}/onlineMeetings/{meeting_id}"
        data = self._json(await self._request("GET", url, headers=self._auth(token)))
        return MeetingInfo(
            subject=data.get("subject"),
            start_date_time=data.get("startDateTime"),
            join_url=data.get("joinWebUrl"),
            meeting_id=data.get("id") or meeting_id,
        )

    async def find_meeting_by_join_url(self, token: str, user_id: str, join_url: str) -> MeetingInfo | None:
        escaped = join_url.replace("'", "''")
        url = f"{self.settings.graph_base_url}/users/{user_id}/onlineMeetings"
        response = await self._request(
            "GET",
            url,
            headers=self._auth(token),
            params={"$filter": f"JoinWebUrl eq '{escaped}'"},
        )
        meetings = self._json(response).get("value") or []
        if not meetings:
            return None
        first = meetings[0]
        return MeetingInfo(
            subject=first.get("subject"),
            start_date_time=first.get("startDateTime"),
            join_url=first.get("joinWebUrl") or join_url,
            meeting_id=first.get("id"),
        )

    async def list_transcripts(self, token: str, user_id: str, meeting_id: str) -> list[dict[str, Any]]:
        url = f"{self.settings.graph_base_url}/users/{user_id}/onlineMeetings/{meeting_id}/transcripts"
        response = await self._request("GET", url, headers=self._auth(token))
        return self._json(response).get("value") or []

    async def get_transcript_content(self, token: str, ref: TranscriptRef) -> str:
        url = (
            f"{self.settings.graph_base_url}/users/{ref.user_id}/onlineMeetings/{ref.meeting_id}"
            f"/transcripts/{ref.transcript_id}/content"
        )
        response = await self._request("GET", url, headers=self._auth(token), params={"$format": "text/vtt"})
        return response.text

    async def renew_subscription(
        self, token: str, subscription_id: str, expires_at: datetime
    ) -> tuple[Subscription, str | None]:
        """PATCH the subscription expiry. Returns the updated record and the Graph request-id."""
        url = f"{self.settings.graph_base_url}/subscriptions/{subscription_id}"
        response = await self._request(
            "PATCH",
            url,
            headers=self._auth(token),
            json={"expirationDateTime": to_graph_datetime(expires_at)},
        )
        payload = self._json(response)
        payload.setdefault("id", subscription_id)
        try:
            subscription = Subscription.model_validate(payload)
        except ValidationError as exc:
            raise GraphError(f"Unexpected subscription response: {exc}", status=response.status_code) from exc
        return subscription, response.headers.get("request-id")


class BatchTokenProvider:
    """Acquires a Graph token at most once for the lifetime of one delivery batch.

    A failed acquisition is remembered and re-raised for the rest of the batch.
    """

    def __init__(self, graph: GraphClient):
        self.graph = graph
        self._token: str | None = None
        self._error: Exception | None = None
        self._lock = asyncio.Lock()

    async def get(self) -> str:
        async with self._lock:
            if self._error is not None:
                raise self._error
            if self._token is None:
                try:
                    self._token = await self.graph.acquire_token()
                except (GraphError, TransientError, ConfigurationError) as exc:
                    self._error = exc
                    raise
            return self._token
