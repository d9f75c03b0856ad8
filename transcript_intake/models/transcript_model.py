from datetime import datetime

from pydantic import BaseModel, Field

from transcript_intake.utils.time_utils import utc_now


class TranscriptRef(BaseModel):
    user_id: str
    meeting_id: str
    transcript_id: str


class MeetingInfo(BaseModel):
    subject: str | None = None
    start_date_time: str | None = None
    join_url: str | None = None
    meeting_id: str | None = None


class TranscriptArtifact(BaseModel):
    project_name: str
    filename: str
    content: str
    storage_path: str


class ProcessingJobTrigger(BaseModel):
    job_name: str
    job_queue: str
    job_definition: str
    environment: dict[str, str]
    dispatched_at: datetime = Field(default_factory=utc_now)


class DispatchResult(BaseModel):
    triggered: bool
    job_id: str | None = None
    error: str | None = None
