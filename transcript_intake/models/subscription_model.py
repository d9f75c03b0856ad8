from __future__ import annotations

from datetime import datetime
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, field_validator

from transcript_intake.utils.time_utils import parse_graph_datetime


class Subscription(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    id: str
    resource: str | None = None
    expires_at: datetime = Field(alias="expirationDateTime")
    client_state: str | None = Field(default=None, alias="clientState")
    notification_endpoint: str | None = Field(default=None, alias="notificationUrl")

    @field_validator("expires_at", mode="before")
    @classmethod
    def parse_expiry(cls, value: str | datetime) -> datetime:
        return parse_graph_datetime(value)

    @property
    def short_id(self) -> str:
        return self.id[:8]


class RenewalStatus(str, Enum):
    SKIPPED = "skipped"
    RENEWED = "renewed"
    FAILED = "failed"


class RenewalOutcome(BaseModel):
    status: RenewalStatus
    subscription_id: str | None = None
    expires_at: datetime | None = None
    request_id: str | None = None
    error: str | None = None
