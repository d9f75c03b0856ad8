import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI

from transcript_intake.config import get_settings
from transcript_intake.processing import router as processing_router
from transcript_intake.renewal import RenewalScheduler, SubscriptionRenewer
from transcript_intake.webhook import router as webhook_router

settings = get_settings()
logging.basicConfig(level=settings.log_level.upper(), format="%(asctime)s %(levelname)s %(name)s: %(message)s")


@asynccontextmanager
async def lifespan(app: FastAPI):
    scheduler = None
    if settings.renewal_scheduler_enabled:
        scheduler = RenewalScheduler(SubscriptionRenewer(settings))
        scheduler.start()
    try:
        yield
    finally:
        if scheduler is not None:
            scheduler.shutdown()


app = FastAPI(title="Transcript Intake API", lifespan=lifespan)

app.include_router(webhook_router, prefix="/api/webhook", tags=["webhook"])
app.include_router(processing_router, prefix="/api/processing", tags=["processing"])


@app.get("/health")
def health_check():
    return {"status": "ok"}
