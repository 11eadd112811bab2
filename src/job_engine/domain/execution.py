import uuid
from datetime import datetime
from typing import Any, Dict, Optional

from pydantic import BaseModel, Field, field_validator

from .job import JobStatus, ensure_utc, utc_now


class NewJobExecution(BaseModel):
    job_id: int
    job_name: str
    execution_id: uuid.UUID = Field(default_factory=uuid.uuid4)
    status: JobStatus = JobStatus.RUNNING
    retry_attempt: int = Field(0, ge=0)


class JobExecution(BaseModel):
    """
    Represents a single attempt of a scheduled job.
    """
    id: int
    job_id: int
    job_name: str
    execution_id: uuid.UUID
    status: JobStatus
    retry_attempt: int = 0
    started_at: datetime = Field(default_factory=utc_now)
    completed_at: Optional[datetime] = None
    duration_ms: Optional[int] = None
    error_message: Optional[str] = None
    error_details: Optional[Dict[str, Any]] = None
    result: Optional[Any] = None

    @field_validator("started_at", "completed_at")
    @classmethod
    def check_timezone(cls, v: Optional[datetime]) -> Optional[datetime]:
        return ensure_utc(v)

    @property
    def is_finished(self) -> bool:
        return self.status.is_terminal
