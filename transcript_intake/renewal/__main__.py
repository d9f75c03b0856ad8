"""Run the subscription renewer as its own process.

    python -m transcript_intake.renewal          # daily schedule, runs until stopped
    python -m transcript_intake.renewal --once   # single renewal, exit status reflects outcome
"""
import argparse
import asyncio
import logging
import sys

from transcript_intake.config import get_settings
from transcript_intake.models.subscription_model import RenewalStatus
from transcript_intake.renewal.renewer import SubscriptionRenewer
from transcript_intake.renewal.scheduler import RenewalScheduler


async def _serve(renewer: SubscriptionRenewer, run_now: bool) -> None:
    scheduler = RenewalScheduler(renewer)
    scheduler.start()
    if run_now:
        await scheduler.tick()
    try:
        await asyncio.Event().wait()
    finally:
        scheduler.shutdown()


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="Renew the Graph transcript subscription")
    parser.add_argument("--once", action="store_true", help="renew once and exit")
    parser.add_argument("--run-now", action="store_true", help="renew immediately, then keep the daily schedule")
    args = parser.parse_args(argv)

    settings = get_settings()
    logging.basicConfig(level=settings.log_level.upper(), format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    renewer = SubscriptionRenewer(settings)

    if args.once:
        outcome = asyncio.run(renewer.renew_once())
        return 1 if outcome.status is RenewalStatus.FAILED else 0

    try:
        asyncio.run(_serve(renewer, args.run_now))
    except KeyboardInterrupt:
        pass
    return 0


if __name__ == "__main__":
    sys.exit(main())
