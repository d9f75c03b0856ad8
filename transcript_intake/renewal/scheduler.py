"""Daily APScheduler job that runs the subscription renewer.

A failing tick is logged and left for the next day's run; it never stops the
scheduler.
"""
from __future__ import annotations

import logging

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.cron import CronTrigger

from transcript_intake.models.subscription_model import RenewalOutcome
from transcript_intake.renewal.renewer import SubscriptionRenewer

logger = logging.getLogger(__name__)

JOB_ID = "graph_subscription_renewal"


class RenewalScheduler:
    def __init__(self, renewer: SubscriptionRenewer, hour: int | None = None, minute: int = 0):
        self.renewer = renewer
        self.hour = renewer.settings.renewal_hour_utc if hour is None else hour
        self.minute = minute
        self._scheduler: AsyncIOScheduler | None = None

    @property
    def running(self) -> bool:
        return self._scheduler is not None and self._scheduler.running

    def start(self) -> None:
        """Start the cron job. Must be called with a running event loop."""
        if self.running:
            return
        self._scheduler = AsyncIOScheduler(timezone="UTC")
        self._scheduler.add_job(
            self.tick,
            trigger=CronTrigger(hour=self.hour, minute=self.minute, timezone="UTC"),
            id=JOB_ID,
            name="Renew Graph transcript subscription",
            max_instances=1,
            coalesce=True,
            misfire_grace_time=3600,
        )
        self._scheduler.start()
        logger.info("[Renew] Scheduler started, daily at %02d:%02d UTC", self.hour, self.minute)

    def shutdown(self) -> None:
        if self._scheduler is not None and self._scheduler.running:
            self._scheduler.shutdown(wait=False)
        self._scheduler = None

    async def tick(self) -> RenewalOutcome | None:
        try:
            return await self.renewer.renew_once()
        except Exception:
            logger.exception("[Renew] Unexpected failure during scheduled renewal")
            return None
