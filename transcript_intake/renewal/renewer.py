"""Keeps the Graph transcript subscription alive.

Graph caps transcript subscriptions at 4230 minutes. Each daily tick pushes the
expiry out by ``renewal_days`` (2.5 by default), so a single missed tick still
leaves the subscription about a day and a half of life. A lapsed subscription
cannot be renewed and has to be recreated by hand.
"""
from __future__ import annotations

import logging
from datetime import datetime, timedelta
from enum import Enum
from typing import Callable

from transcript_intake.config import Settings, get_settings
from transcript_intake.errors import ConfigurationError, GraphError, TransientError
from transcript_intake.models.subscription_model import RenewalOutcome, RenewalStatus
from transcript_intake.services.graph_client import GraphClient
from transcript_intake.services.retry import RetryPolicy
from transcript_intake.utils.time_utils import utc_now

logger = logging.getLogger(__name__)

RENEWAL_RETRIES = 1


class RenewerState(str, Enum):
    IDLE = "idle"
    RENEWING = "renewing"


class SubscriptionRenewer:
    def __init__(
        self,
        settings: Settings | None = None,
        graph: GraphClient | None = None,
        clock: Callable[[], datetime] = utc_now,
    ):
        self.settings = settings or get_settings()
        self.graph = graph or GraphClient(
            self.settings, RetryPolicy.from_settings(self.settings, max_attempts=RENEWAL_RETRIES + 1)
        )
        self.clock = clock
        self.state = RenewerState.IDLE

    @property
    def renewal_window(self) -> timedelta:
        return timedelta(days=self.settings.renewal_days)

    def next_expiry(self, now: datetime | None = None) -> datetime:
        return (now or self.clock()) + self.renewal_window

    async def renew_once(self) -> RenewalOutcome:
        subscription_id = self.settings.graph_subscription_id
        if not subscription_id:
            logger.info("[Renew] SKIP: GRAPH_SUBSCRIPTION_ID not configured")
            return RenewalOutcome(status=RenewalStatus.SKIPPED)

        short_id = subscription_id[:8]
        if self.state is RenewerState.RENEWING:
            logger.warning("[Renew] SKIP: renewal already in flight (sub:%s)", short_id)
            return RenewalOutcome(status=RenewalStatus.SKIPPED, subscription_id=subscription_id)

        self.state = RenewerState.RENEWING
        try:
            return await self._renew(subscription_id, short_id)
        finally:
            self.state = RenewerState.IDLE

    async def _renew(self, subscription_id: str, short_id: str) -> RenewalOutcome:
        try:
            token = await self.graph.acquire_token()
        except ConfigurationError as exc:
            logger.error("[Renew] ERROR: %s (sub:%s)", exc, short_id)
            return RenewalOutcome(status=RenewalStatus.FAILED, subscription_id=subscription_id, error=str(exc))
        except (GraphError, TransientError) as exc:
            logger.error("[Renew] ERROR: Token failed - %s (sub:%s)", exc, short_id)
            return RenewalOutcome(status=RenewalStatus.FAILED, subscription_id=subscription_id, error=str(exc))

        new_expiry = self.next_expiry()
        try:
            subscription, request_id = await self.graph.renew_subscription(token, subscription_id, new_expiry)
        except (GraphError, TransientError) as exc:
            logger.error("[Renew] ERROR: %s (sub:%s)", exc, short_id)
            return RenewalOutcome(status=RenewalStatus.FAILED, subscription_id=subscription_id, error=str(exc))

        logger.info(
            "[Renew] SUCCESS: Expires %s (sub:%s, req:%s)",
            subscription.expires_at.isoformat(),
            short_id,
            request_id or "N/A",
        )
        return RenewalOutcome(
            status=RenewalStatus.RENEWED,
            subscription_id=subscription_id,
            expires_at=subscription.expires_at,
            request_id=request_id,
        )
