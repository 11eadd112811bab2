import logging
from typing import Optional

from job_engine.config import JobsConfig
from job_engine.registry import JobRegistry
from job_engine.scheduler import JobScheduler
from job_engine.storages.sqlalchemy import Database, SqlAlchemyExecutionStorage, SqlAlchemyJobStorage
from job_engine.tasks import BUILTIN_TASKS
from job_engine.triggers.cron import CronTriggerEngine

logger = logging.getLogger(__name__)


def default_registry() -> JobRegistry:
    registry = JobRegistry()
    for task_class in BUILTIN_TASKS:
        registry.register(task_class)
    return registry


async def initialize_job_scheduler(
    config: JobsConfig,
    database: Database,
    registry: Optional[JobRegistry] = None,
) -> Optional[JobScheduler]:
    """
    Build and start a scheduler backed by the given database.

    Returns:
        Optional[JobScheduler]: The running scheduler, or None when scheduling is disabled.
    """
    if not config.enabled:
        logger.info("Job scheduling is disabled")
        return None

    logger.info("Initializing job scheduler")
    scheduler = JobScheduler(
        SqlAlchemyJobStorage(database),
        SqlAlchemyExecutionStorage(database),
        registry or default_registry(),
        resources=database,
        trigger_engine=CronTriggerEngine(poll_interval=config.poll_interval_seconds),
    )
    await scheduler.start()
    return scheduler
