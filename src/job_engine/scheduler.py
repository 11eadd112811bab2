import asyncio
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, List, Optional

from job_engine.domain.job import ScheduledJob
from job_engine.errors import ConcurrencyLimitReachedError, InvalidCronExpressionError, JobError
from job_engine.executor import JobExecutor
from job_engine.registry import JobRegistry
from job_engine.storages.protocol import ExecutionStorage, JobStorage
from job_engine.triggers.cron import CronTriggerEngine

logger = logging.getLogger(__name__)

# fields that change on every run and must not cause a trigger to be re-registered
_VOLATILE_FIELDS = {"last_run_at", "last_run_status", "next_run_at", "updated_at"}


def _fingerprint(job: ScheduledJob) -> Dict[str, Any]:
    return job.model_dump(exclude=_VOLATILE_FIELDS)


@dataclass
class _Registration:
    handle: str
    job_name: str
    fingerprint: Dict[str, Any]


class JobScheduler:
    """
    Coordinates cron triggers for all enabled jobs.

    Lifecycle is JobScheduler(...) -> start() -> stop(). Call reload_jobs()
    whenever job definitions change in storage so the registered triggers
    match what is stored.
    """

    def __init__(
        self,
        job_storage: JobStorage,
        execution_storage: ExecutionStorage,
        registry: JobRegistry,
        *,
        resources: Any = None,
        trigger_engine: Optional[CronTriggerEngine] = None,
        executor: Optional[JobExecutor] = None,
    ):
        self.job_storage: JobStorage = job_storage
        self.registry: JobRegistry = registry
        self.trigger_engine: CronTriggerEngine = trigger_engine or CronTriggerEngine()
        self.executor: JobExecutor = executor or JobExecutor(job_storage, execution_storage, resources=resources)
        self._registrations: Dict[int, _Registration] = {}
        self._reload_lock = asyncio.Lock()

    @property
    def scheduled_job_ids(self) -> List[int]:
        return list(self._registrations.keys())

    @property
    def is_running(self) -> bool:
        return self.trigger_engine.is_running

    async def start(self) -> None:
        """
        Load enabled jobs from storage and start firing triggers.
        """
        await self.reload_jobs()
        await self.trigger_engine.start()
        logger.info("JobScheduler started with %d job(s)", len(self._registrations))

    async def stop(self, wait: bool = False) -> None:
        """
        Stop firing triggers. Attempts already in flight are not cancelled.
        """
        await self.trigger_engine.shutdown(wait=wait)
        logger.info("JobScheduler stopped")

    async def reload_jobs(self) -> None:
        """
        Reconcile registered triggers with the enabled jobs in storage.

        Triggers of jobs that were disabled or deleted are removed, jobs whose
        definition changed are re-registered and unchanged jobs keep their
        trigger. A job with an invalid cron expression is logged and skipped.
        """
        async with self._reload_lock:
            jobs = await self.job_storage.get_enabled_jobs()
            enabled = {job.id: job for job in jobs}

            for job_id in list(self._registrations):
                if job_id not in enabled:
                    registration = self._registrations[job_id]
                    self.unschedule_job(job_id)
                    logger.info("Removed trigger for job %s", registration.job_name)

            for job in jobs:
                registration = self._registrations.get(job.id)
                if registration is not None and registration.fingerprint == _fingerprint(job):
                    continue
                try:
                    await self.schedule_job(job)
                except InvalidCronExpressionError as e:
                    # a trigger registered under the previous expression must not keep firing
                    self.unschedule_job(job.id)
                    logger.error("Skipping job %s: %s", job.job_name, e)

    async def schedule_job(self, job: ScheduledJob) -> str:
        """
        Register a trigger for a single job, replacing any existing one.

        Raises:
            InvalidCronExpressionError: If the job's cron expression cannot be parsed.
        """
        definition = job.model_copy(deep=True)

        async def on_trigger() -> None:
            await self._run_job(definition.model_copy(deep=True))

        handle = self.trigger_engine.add(job.cron_expression, on_trigger)

        previous = self._registrations.get(job.id)
        if previous is not None:
            self.trigger_engine.remove(previous.handle)

        self._registrations[job.id] = _Registration(
            handle=handle,
            job_name=job.job_name,
            fingerprint=_fingerprint(job),
        )
        logger.info("Scheduled job %s (%s) with cron '%s'", job.job_name, job.job_type, job.cron_expression)
        return handle

    def unschedule_job(self, job_id: int) -> bool:
        registration = self._registrations.pop(job_id, None)
        if registration is None:
            return False
        return self.trigger_engine.remove(registration.handle)

    def next_run_at(self, job_id: int) -> Optional[datetime]:
        registration = self._registrations.get(job_id)
        if registration is None:
            return None
        return self.trigger_engine.next_fire_time(registration.handle)

    async def _run_job(self, job: ScheduledJob) -> None:
        try:
            task = self.registry.create_task(job.job_type, job.payload)
        except JobError as e:
            logger.error("Failed to create task for job %s: %s", job.job_name, e)
            return

        try:
            await self.executor.execute_job(job, task)
        except ConcurrencyLimitReachedError as e:
            logger.warning("Job %s skipped: %s", job.job_name, e)
        except JobError as e:
            logger.error("Job %s failed: %s", job.job_name, e)
        except Exception:
            logger.exception("Unexpected error while executing job %s", job.job_name)
