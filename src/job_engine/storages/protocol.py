from typing import Any, Dict, List, Optional, Protocol

from job_engine.domain.job import JobStatus, NewScheduledJob, ScheduledJob, UpdateScheduledJob
from job_engine.domain.execution import JobExecution, NewJobExecution


class JobStorage(Protocol):
    async def create(self, job: NewScheduledJob) -> ScheduledJob:
        """Create a new job definition. Raise AlreadyExistsError on a duplicate job_name."""
        ...

    async def get_by_id(self, job_id: int) -> ScheduledJob:
        """Retrieve a job by its ID. Raise NotFoundError if it does not exist."""
        ...

    async def get_by_name(self, job_name: str) -> ScheduledJob:
        """Retrieve a job by its unique name. Raise NotFoundError if it does not exist."""
        ...

    async def get_enabled_jobs(self) -> List[ScheduledJob]:
        """List all enabled jobs."""
        ...

    async def update(self, job_id: int, patch: UpdateScheduledJob) -> ScheduledJob:
        """Apply a partial update and return the updated job."""
        ...

    async def delete(self, job_id: int) -> None:
        """Delete a job by its ID."""
        ...

    async def update_last_run(self, job_id: int, status: JobStatus) -> None:
        """Record the outcome of the latest trigger and stamp last_run_at with now."""
        ...


class ExecutionStorage(Protocol):
    async def create(self, execution: NewJobExecution) -> JobExecution:
        """Create the record for an attempt that is about to run."""
        ...

    async def complete(
        self,
        execution_id: int,
        status: JobStatus,
        duration_ms: int,
        error_message: Optional[str] = None,
        result: Optional[Any] = None,
        error_details: Optional[Dict[str, Any]] = None,
    ) -> None:
        """Finalize an attempt and stamp completed_at with now."""
        ...

    async def list_by_job(self, job_id: int, limit: int = 20, offset: int = 0) -> List[JobExecution]:
        """List executions of a job ordered by started_at descending."""
        ...

    async def cleanup_old_executions(self, retention_days: int) -> int:
        """Delete executions older than the retention window, never touching running ones."""
        ...
