from datetime import timedelta
from itertools import count
from typing import Any, Dict, List, Optional

from job_engine.domain.execution import JobExecution, NewJobExecution
from job_engine.domain.job import JobStatus, NewScheduledJob, ScheduledJob, UpdateScheduledJob, utc_now
from job_engine.errors import AlreadyExistsError, NotFoundError


class MemoryJobStorage:
    """
    Dict backed job storage.
    WARNING: This storage is for demonstration and testing purposes only.
    It does not persist across restarts.
    """

    def __init__(self):
        self.jobs: Dict[int, ScheduledJob] = {}
        self._ids = count(1)

    async def create(self, job: NewScheduledJob) -> ScheduledJob:
        if any(existing.job_name == job.job_name for existing in self.jobs.values()):
            raise AlreadyExistsError("Job", "name", job.job_name)
        scheduled = ScheduledJob(id=next(self._ids), **job.model_dump())
        self.jobs[scheduled.id] = scheduled
        return scheduled.model_copy(deep=True)

    async def get_by_id(self, job_id: int) -> ScheduledJob:
        if job_id not in self.jobs:
            raise NotFoundError("Job", "id", job_id)
        return self.jobs[job_id].model_copy(deep=True)

    async def get_by_name(self, job_name: str) -> ScheduledJob:
        for job in self.jobs.values():
            if job.job_name == job_name:
                return job.model_copy(deep=True)
        raise NotFoundError("Job", "name", job_name)

    async def get_enabled_jobs(self) -> List[ScheduledJob]:
        return [job.model_copy(deep=True) for job in self.jobs.values() if job.enabled]

    async def update(self, job_id: int, patch: UpdateScheduledJob) -> ScheduledJob:
        if job_id not in self.jobs:
            raise NotFoundError("Job", "id", job_id)
        updated = self.jobs[job_id].model_copy(update={**patch.changes(), "updated_at": utc_now()})
        self.jobs[job_id] = updated
        return updated.model_copy(deep=True)

    async def delete(self, job_id: int) -> None:
        if job_id not in self.jobs:
            raise NotFoundError("Job", "id", job_id)
        del self.jobs[job_id]

    async def update_last_run(self, job_id: int, status: JobStatus) -> None:
        if job_id not in self.jobs:
            raise NotFoundError("Job", "id", job_id)
        job = self.jobs[job_id]
        job.last_run_at = utc_now()
        job.last_run_status = status


class MemoryExecutionStorage:
    """
    Dict backed execution history.
    WARNING: This storage is for demonstration and testing purposes only.
    """

    def __init__(self):
        self.executions: Dict[int, JobExecution] = {}
        self._ids = count(1)

    async def create(self, execution: NewJobExecution) -> JobExecution:
        record = JobExecution(id=next(self._ids), **execution.model_dump())
        self.executions[record.id] = record
        return record.model_copy()

    async def complete(
        self,
        execution_id: int,
        status: JobStatus,
        duration_ms: int,
        error_message: Optional[str] = None,
        result: Optional[Any] = None,
        error_details: Optional[Dict[str, Any]] = None,
    ) -> None:
        if execution_id not in self.executions:
            raise NotFoundError("JobExecution", "id", execution_id)
        record = self.executions[execution_id]
        record.status = status
        record.completed_at = utc_now()
        record.duration_ms = duration_ms
        record.error_message = error_message
        record.error_details = error_details
        record.result = result

    async def list_by_job(self, job_id: int, limit: int = 20, offset: int = 0) -> List[JobExecution]:
        records = sorted(
            (e for e in self.executions.values() if e.job_id == job_id),
            key=lambda e: (e.started_at, e.id),
            reverse=True,
        )
        return [record.model_copy() for record in records[offset:offset + limit]]

    async def cleanup_old_executions(self, retention_days: int) -> int:
        cutoff = utc_now() - timedelta(days=retention_days)
        stale = [
            execution_id for execution_id, e in self.executions.items()
            if e.started_at < cutoff and e.status != JobStatus.RUNNING
        ]
        for execution_id in stale:
            del self.executions[execution_id]
        return len(stale)
