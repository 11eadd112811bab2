import logging
import math
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Optional

from pydantic import BaseModel, Field, field_validator

logger = logging.getLogger(__name__)

DEFAULT_BACKOFF_MULTIPLIER = 2.0


class JobStatus(str, Enum):
    PENDING = "pending"
    RUNNING = "running"
    SUCCESS = "success"
    FAILED = "failed"
    TIMEOUT = "timeout"
    CANCELLED = "cancelled"

    def __str__(self) -> str:
        return self.value

    @property
    def is_terminal(self) -> bool:
        return self not in (JobStatus.PENDING, JobStatus.RUNNING)


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def ensure_utc(v: Optional[datetime]) -> Optional[datetime]:
    # SQLite hands datetimes back without tzinfo; everything is stored as UTC
    if v is not None and v.tzinfo is None:
        return v.replace(tzinfo=timezone.utc)
    return v


class ScheduledJob(BaseModel):
    """
    A persisted job definition: what to run, when, and under which
    retry and concurrency policy.
    """
    id: int = Field(..., description="Storage assigned identifier")
    job_name: str = Field(..., description="Globally unique, human readable job key")
    job_type: str = Field(..., description="Registry key used to resolve the task implementation")
    cron_expression: str = Field(..., description="Cron expression, 5 fields or 6 fields with seconds first")
    enabled: bool = True

    allow_concurrent: bool = False
    max_concurrent: Optional[int] = Field(None, gt=0, description="Only consulted when allow_concurrent is true")

    max_retries: int = Field(3, ge=0, description="Total attempts per trigger is max_retries + 1")
    retry_delay_seconds: int = Field(60, ge=0)
    retry_backoff_multiplier: float = DEFAULT_BACKOFF_MULTIPLIER

    timeout_seconds: int = Field(300, gt=0, description="Hard deadline for a single attempt")

    payload: Optional[Dict[str, Any]] = Field(None, description="Opaque data handed to the task factory")
    description: Optional[str] = None

    last_run_at: Optional[datetime] = None
    last_run_status: Optional[JobStatus] = None
    next_run_at: Optional[datetime] = None

    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)
    created_by: Optional[str] = None

    @field_validator("retry_backoff_multiplier", mode="before")
    @classmethod
    def parse_backoff_multiplier(cls, v: Any) -> float:
        try:
            multiplier = float(v)
        except (TypeError, ValueError):
            logger.warning("Unparsable retry_backoff_multiplier %r, falling back to %s", v, DEFAULT_BACKOFF_MULTIPLIER)
            return DEFAULT_BACKOFF_MULTIPLIER
        if not math.isfinite(multiplier) or multiplier < 1.0:
            logger.warning("Invalid retry_backoff_multiplier %r, falling back to %s", v, DEFAULT_BACKOFF_MULTIPLIER)
            return DEFAULT_BACKOFF_MULTIPLIER
        return multiplier

    @field_validator("last_run_at", "next_run_at", "created_at", "updated_at")
    @classmethod
    def check_timezone(cls, v: Optional[datetime]) -> Optional[datetime]:
        return ensure_utc(v)

    @property
    def total_attempts(self) -> int:
        return self.max_retries + 1


class NewScheduledJob(BaseModel):
    """
    Insert shape for a scheduled job. Policy fields that are left unset can be
    filled from configuration, see JobsConfig.apply_defaults.
    """
    job_name: str = Field(..., min_length=1, max_length=255)
    job_type: str = Field(..., min_length=1, max_length=100)
    cron_expression: str = Field(..., min_length=1, max_length=255)
    enabled: bool = True
    allow_concurrent: bool = False
    max_concurrent: Optional[int] = Field(None, gt=0)
    max_retries: int = Field(3, ge=0)
    retry_delay_seconds: int = Field(60, ge=0)
    retry_backoff_multiplier: float = Field(DEFAULT_BACKOFF_MULTIPLIER, ge=1.0)
    timeout_seconds: int = Field(300, gt=0)
    payload: Optional[Dict[str, Any]] = None
    description: Optional[str] = None
    created_by: Optional[str] = None


class UpdateScheduledJob(BaseModel):
    """
    Partial update. Only explicitly set fields are applied, so
    UpdateScheduledJob(max_concurrent=None) clears the limit while
    UpdateScheduledJob() changes nothing.
    """
    cron_expression: Optional[str] = Field(None, min_length=1, max_length=255)
    enabled: Optional[bool] = None
    allow_concurrent: Optional[bool] = None
    max_concurrent: Optional[int] = Field(None, gt=0)
    max_retries: Optional[int] = Field(None, ge=0)
    retry_delay_seconds: Optional[int] = Field(None, ge=0)
    retry_backoff_multiplier: Optional[float] = Field(None, ge=1.0)
    timeout_seconds: Optional[int] = Field(None, gt=0)
    payload: Optional[Dict[str, Any]] = None
    description: Optional[str] = None

    def changes(self) -> Dict[str, Any]:
        nullable = {"max_concurrent", "payload", "description"}
        return {
            k: v for k, v in self.model_dump(exclude_unset=True).items()
            if v is not None or k in nullable
        }
