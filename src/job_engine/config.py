import os
from typing import Mapping, Optional

from pydantic import BaseModel, Field

from job_engine.domain.job import NewScheduledJob


class JobsConfig(BaseModel):
    """
    Settings for job scheduling. Values can be read from JOBS_* environment variables.
    """
    enabled: bool = Field(False, description="Whether job scheduling is enabled")
    database_url: str = Field("sqlite+aiosqlite:///./jobs.db", description="SQLAlchemy async database URL")
    poll_interval_seconds: float = Field(1.0, gt=0, description="Upper bound on how long the trigger loop sleeps")
    job_timeout: int = Field(300, gt=0, description="Default per attempt timeout in seconds")
    max_retries: int = Field(3, ge=0, description="Default number of retries")
    retry_delay: int = Field(60, ge=0, description="Default initial retry delay in seconds")
    retry_backoff_multiplier: float = Field(2.0, ge=1.0, description="Default retry backoff multiplier")

    @classmethod
    def from_env(cls, prefix: str = "JOBS_", environ: Optional[Mapping[str, str]] = None) -> "JobsConfig":
        environ = os.environ if environ is None else environ
        values = {}
        for name in cls.model_fields:
            raw = environ.get(f"{prefix}{name.upper()}")
            if raw is not None and raw != "":
                values[name] = raw
        return cls.model_validate(values)

    def apply_defaults(self, job: NewScheduledJob) -> NewScheduledJob:
        """
        Fill the policy fields the caller did not set explicitly with configured defaults.
        """
        defaults = {
            "timeout_seconds": self.job_timeout,
            "max_retries": self.max_retries,
            "retry_delay_seconds": self.retry_delay,
            "retry_backoff_multiplier": self.retry_backoff_multiplier,
        }
        return job.model_copy(update={
            field: value for field, value in defaults.items()
            if field not in job.model_fields_set
        })
