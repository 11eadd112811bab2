import logging
from typing import List, Optional

from job_engine.config import JobsConfig
from job_engine.domain.execution import JobExecution
from job_engine.domain.job import NewScheduledJob, ScheduledJob, UpdateScheduledJob
from job_engine.scheduler import JobScheduler
from job_engine.storages.protocol import ExecutionStorage, JobStorage
from job_engine.triggers.cron import validate_cron_expression

logger = logging.getLogger(__name__)


class JobService:
    """
    Job management operations for the API layer. Every mutation reloads the
    attached scheduler so registered triggers follow storage.
    """
    def __init__(
        self,
        job_storage: JobStorage,
        execution_storage: ExecutionStorage,
        scheduler: Optional[JobScheduler] = None,
        config: Optional[JobsConfig] = None,
    ):
        self.job_storage: JobStorage = job_storage
        self.execution_storage: ExecutionStorage = execution_storage
        self.scheduler: Optional[JobScheduler] = scheduler
        self.config: JobsConfig = config or JobsConfig()

    async def _reload(self) -> None:
        if self.scheduler is not None:
            await self.scheduler.reload_jobs()

    async def create_job(self, new_job: NewScheduledJob) -> ScheduledJob:
        validate_cron_expression(new_job.cron_expression)
        job = await self.job_storage.create(self.config.apply_defaults(new_job))
        logger.info("Created job %s", job.job_name)
        await self._reload()
        return job

    async def get_job(self, job_id: int) -> ScheduledJob:
        return await self.job_storage.get_by_id(job_id)

    async def get_job_by_name(self, job_name: str) -> ScheduledJob:
        return await self.job_storage.get_by_name(job_name)

    async def get_enabled_jobs(self) -> List[ScheduledJob]:
        return await self.job_storage.get_enabled_jobs()

    async def update_job(self, job_id: int, patch: UpdateScheduledJob) -> ScheduledJob:
        if patch.cron_expression is not None:
            validate_cron_expression(patch.cron_expression)
        job = await self.job_storage.update(job_id, patch)
        await self._reload()
        return job

    async def delete_job(self, job_id: int) -> None:
        await self.job_storage.delete(job_id)
        logger.info("Deleted job %s", job_id)
        await self._reload()

    async def pause_job(self, job_id: int) -> ScheduledJob:
        return await self.update_job(job_id, UpdateScheduledJob(enabled=False))

    async def resume_job(self, job_id: int) -> ScheduledJob:
        return await self.update_job(job_id, UpdateScheduledJob(enabled=True))

    async def list_job_executions(self, job_id: int, limit: int = 20, offset: int = 0) -> List[JobExecution]:
        return await self.execution_storage.list_by_job(job_id, limit, offset)

    async def cleanup_executions(self, retention_days: int) -> int:
        return await self.execution_storage.cleanup_old_executions(retention_days)
