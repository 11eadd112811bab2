import asyncio
import logging

from pydantic import BaseModel, Field

from job_engine.bootstrap import default_registry, initialize_job_scheduler
from job_engine.config import JobsConfig
from job_engine.domain.context import JobContext
from job_engine.domain.job import NewScheduledJob
from job_engine.service import JobService
from job_engine.storages.sqlalchemy import InMemoryDatabase, SqlAlchemyExecutionStorage, SqlAlchemyJobStorage
from job_engine.tasks.protocol import JobTask


class PrintTask(JobTask, BaseModel):
    message: str = Field("hello", description="The message to print.")

    @classmethod
    def task_type(cls) -> str:
        return "print"

    async def execute(self, ctx: JobContext) -> None:
        print(f"[{ctx.job_name} #{ctx.retry_attempt}] {self.message}")


async def main():
    logging.basicConfig(level=logging.INFO)

    # Set up the database, registry and scheduler
    config = JobsConfig(enabled=True)
    database = InMemoryDatabase()
    await database.create_tables()

    registry = default_registry().register(PrintTask)
    scheduler = await initialize_job_scheduler(config, database, registry)

    service = JobService(
        SqlAlchemyJobStorage(database),
        SqlAlchemyExecutionStorage(database),
        scheduler,
        config,
    )
    job = await service.create_job(NewScheduledJob(
        job_name="greeter",
        job_type="print",
        cron_expression="*/2 * * * * *",
        payload={"message": "Hello from the job engine"},
    ))

    await asyncio.sleep(7)
    await scheduler.stop(wait=True)

    for execution in await service.list_job_executions(job.id):
        print(f"{execution.started_at:%H:%M:%S} {execution.status} in {execution.duration_ms}ms")

    await database.dispose()


if __name__ == "__main__":
    asyncio.run(main())
