import asyncio
import logging
import time
import uuid
from typing import Any, Awaitable, Callable, Optional

from pydantic_core import to_jsonable_python

from job_engine.concurrency import ConcurrencyTracker
from job_engine.domain.context import JobContext
from job_engine.domain.execution import NewJobExecution
from job_engine.domain.job import JobStatus, ScheduledJob
from job_engine.errors import ConcurrencyLimitReachedError, ExecutionFailedError, JobTimeoutError
from job_engine.storages.protocol import ExecutionStorage, JobStorage
from job_engine.tasks.protocol import JobTask

logger = logging.getLogger(__name__)

SleepFunction = Callable[[float], Awaitable[Any]]


def _discard_outcome(future: asyncio.Future) -> None:
    # the attempt was abandoned; retrieve the outcome so asyncio does not warn about it
    if not future.cancelled():
        future.exception()


def _serialize_result(result: Any) -> Any:
    # results land in a JSON column
    try:
        return to_jsonable_python(result)
    except ValueError:
        return repr(result)


class JobExecutor:
    """
    Runs a job's task for one trigger, applying admission control, the retry
    policy with exponential backoff and the per attempt timeout, and records
    every attempt in the execution history.
    """

    def __init__(
        self,
        job_storage: JobStorage,
        execution_storage: ExecutionStorage,
        resources: Any = None,
        concurrency: Optional[ConcurrencyTracker] = None,
        sleep: SleepFunction = asyncio.sleep,
    ):
        self.job_storage: JobStorage = job_storage
        self.execution_storage: ExecutionStorage = execution_storage
        self.resources: Any = resources
        self.concurrency: ConcurrencyTracker = concurrency or ConcurrencyTracker()
        self._sleep: SleepFunction = sleep

    async def execute_job(self, job: ScheduledJob, task: JobTask) -> None:
        """
        Execute a job once, retrying failed attempts according to its policy.

        Args:
            job (ScheduledJob): The job definition being triggered.
            task (JobTask): The task instance resolved for the job.

        Raises:
            ConcurrencyLimitReachedError: If admission was rejected. Nothing is recorded.
            JobTimeoutError: If an attempt exceeded timeout_seconds. Timeouts are not retried.
            ExecutionFailedError: If every attempt failed.
        """
        if not self.concurrency.try_acquire(job):
            logger.warning("Concurrency limit reached for job %s, skipping this trigger", job.job_name)
            raise ConcurrencyLimitReachedError(job.job_name)

        try:
            await self._execute_with_retry(job, task)
        finally:
            self.concurrency.decrement(job.job_name)

    async def _execute_with_retry(self, job: ScheduledJob, task: JobTask) -> None:
        last_error: Optional[str] = None

        for attempt in range(job.max_retries + 1):
            execution_id = uuid.uuid4()
            start_time = time.monotonic()

            execution = await self.execution_storage.create(NewJobExecution(
                job_id=job.id,
                job_name=job.job_name,
                execution_id=execution_id,
                status=JobStatus.RUNNING,
                retry_attempt=attempt,
            ))

            ctx = JobContext(
                execution_id=execution_id,
                job_id=job.id,
                job_name=job.job_name,
                retry_attempt=attempt,
                resources=self.resources,
            )

            future = asyncio.ensure_future(task.execute(ctx))
            try:
                done, _ = await asyncio.wait({future}, timeout=job.timeout_seconds)
            except asyncio.CancelledError:
                future.cancel()
                future.add_done_callback(_discard_outcome)
                await self.execution_storage.complete(
                    execution.id,
                    JobStatus.CANCELLED,
                    self._elapsed_ms(start_time),
                    error_message="Job execution was cancelled",
                )
                logger.info("Job %s attempt %d cancelled", job.job_name, attempt)
                raise

            duration_ms = self._elapsed_ms(start_time)

            if future not in done:
                future.cancel()
                future.add_done_callback(_discard_outcome)
                error_msg = f"Job timeout after {job.timeout_seconds}s"
                await self.execution_storage.complete(
                    execution.id,
                    JobStatus.TIMEOUT,
                    duration_ms,
                    error_message=error_msg,
                )
                await self.job_storage.update_last_run(job.id, JobStatus.TIMEOUT)
                logger.error("Job %s attempt %d timed out after %ss", job.job_name, attempt, job.timeout_seconds)
                raise JobTimeoutError(job.timeout_seconds)

            # a task that cancels itself counts as a failed attempt and is retried
            if future.cancelled():
                error: Optional[BaseException] = asyncio.CancelledError("Task cancelled itself")
            else:
                error = future.exception()

            if error is None:
                await self.execution_storage.complete(
                    execution.id,
                    JobStatus.SUCCESS,
                    duration_ms,
                    result=_serialize_result(future.result()),
                )
                await self.job_storage.update_last_run(job.id, JobStatus.SUCCESS)
                logger.info("Job %s succeeded on attempt %d in %dms", job.job_name, attempt, duration_ms)
                return

            error_msg = str(error) or type(error).__name__
            await self.execution_storage.complete(
                execution.id,
                JobStatus.FAILED,
                duration_ms,
                error_message=error_msg,
                error_details={"exception": type(error).__name__},
            )

            if not isinstance(error, (Exception, asyncio.CancelledError)):
                await self.job_storage.update_last_run(job.id, JobStatus.FAILED)
                raise error

            last_error = error_msg
            logger.warning(
                "Job %s attempt %d/%d failed: %s",
                job.job_name, attempt + 1, job.total_attempts, error_msg,
            )

            if attempt < job.max_retries:
                delay = self.calculate_retry_delay(job, attempt)
                logger.info("Retrying job %s in %.2fs", job.job_name, delay)
                await self._sleep(delay)

        await self.job_storage.update_last_run(job.id, JobStatus.FAILED)
        raise ExecutionFailedError(last_error or "Unknown error")

    @staticmethod
    def calculate_retry_delay(job: ScheduledJob, attempt: int) -> float:
        """
        Delay in seconds before the attempt following the failed `attempt`.
        """
        return job.retry_delay_seconds * job.retry_backoff_multiplier ** attempt

    @staticmethod
    def _elapsed_ms(start_time: float) -> int:
        return int((time.monotonic() - start_time) * 1000)
