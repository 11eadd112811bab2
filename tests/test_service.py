import pytest
import pytest_asyncio
from pydantic import BaseModel

from job_engine.config import JobsConfig
from job_engine.domain.context import JobContext
from job_engine.domain.execution import NewJobExecution
from job_engine.domain.job import JobStatus, NewScheduledJob, UpdateScheduledJob
from job_engine.errors import AlreadyExistsError, InvalidCronExpressionError, NotFoundError
from job_engine.registry import JobRegistry
from job_engine.scheduler import JobScheduler
from job_engine.service import JobService
from job_engine.storages.memory import MemoryExecutionStorage, MemoryJobStorage
from job_engine.tasks.protocol import JobTask


class NoopTask(JobTask, BaseModel):
    @classmethod
    def task_type(cls) -> str:
        return "noop"

    async def execute(self, ctx: JobContext) -> None:
        pass


@pytest_asyncio.fixture(scope="function")
async def scheduler(job_storage: MemoryJobStorage, execution_storage: MemoryExecutionStorage):
    scheduler = JobScheduler(job_storage, execution_storage, JobRegistry().register(NoopTask))
    yield scheduler
    await scheduler.stop()


@pytest.fixture(scope="function")
def service(job_storage, execution_storage, scheduler) -> JobService:
    return JobService(job_storage, execution_storage, scheduler, JobsConfig(job_timeout=42))


def new_job(name: str = "noop_job", cron: str = "0 */5 * * * *") -> NewScheduledJob:
    return NewScheduledJob(job_name=name, job_type="noop", cron_expression=cron)


@pytest.mark.asyncio
async def test_create_job_registers_trigger(service: JobService, scheduler: JobScheduler):
    job = await service.create_job(new_job())

    assert job.timeout_seconds == 42
    assert scheduler.scheduled_job_ids == [job.id]
    assert await service.get_job(job.id) == job
    assert await service.get_job_by_name("noop_job") == job


@pytest.mark.asyncio
async def test_create_job_validates_cron(service: JobService, job_storage: MemoryJobStorage):
    with pytest.raises(InvalidCronExpressionError):
        await service.create_job(new_job(cron="not a cron"))
    assert job_storage.jobs == {}


@pytest.mark.asyncio
async def test_create_duplicate_job(service: JobService):
    await service.create_job(new_job())
    with pytest.raises(AlreadyExistsError):
        await service.create_job(new_job())


@pytest.mark.asyncio
async def test_update_job_reschedules(service: JobService, scheduler: JobScheduler):
    job = await service.create_job(new_job())
    handle = scheduler._registrations[job.id].handle

    updated = await service.update_job(job.id, UpdateScheduledJob(cron_expression="0 0 * * *"))

    assert updated.cron_expression == "0 0 * * *"
    assert scheduler._registrations[job.id].handle != handle


@pytest.mark.asyncio
async def test_update_job_validates_cron(service: JobService):
    job = await service.create_job(new_job())
    with pytest.raises(InvalidCronExpressionError):
        await service.update_job(job.id, UpdateScheduledJob(cron_expression="* *"))
    assert (await service.get_job(job.id)).cron_expression == "0 */5 * * * *"


@pytest.mark.asyncio
async def test_pause_and_resume(service: JobService, scheduler: JobScheduler):
    job = await service.create_job(new_job())

    paused = await service.pause_job(job.id)
    assert paused.enabled is False
    assert scheduler.scheduled_job_ids == []
    assert await service.get_enabled_jobs() == []

    resumed = await service.resume_job(job.id)
    assert resumed.enabled is True
    assert scheduler.scheduled_job_ids == [job.id]


@pytest.mark.asyncio
async def test_delete_job(service: JobService, scheduler: JobScheduler):
    job = await service.create_job(new_job())

    await service.delete_job(job.id)

    assert scheduler.scheduled_job_ids == []
    with pytest.raises(NotFoundError):
        await service.get_job(job.id)


@pytest.mark.asyncio
async def test_list_and_cleanup_executions(service: JobService, execution_storage: MemoryExecutionStorage):
    job = await service.create_job(new_job())
    execution = await execution_storage.create(NewJobExecution(job_id=job.id, job_name=job.job_name))
    await execution_storage.complete(execution.id, JobStatus.SUCCESS, 3)

    history = await service.list_job_executions(job.id)
    assert [e.id for e in history] == [execution.id]

    assert await service.cleanup_executions(30) == 0
    assert await service.cleanup_executions(0) == 1


@pytest.mark.asyncio
async def test_service_without_scheduler(job_storage, execution_storage):
    service = JobService(job_storage, execution_storage)
    job = await service.create_job(new_job())
    assert job.timeout_seconds == 300
    await service.pause_job(job.id)
