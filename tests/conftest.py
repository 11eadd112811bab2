from typing import Any, Awaitable, Callable, List

import pytest

from job_engine.domain.job import NewScheduledJob, ScheduledJob
from job_engine.storages.memory import MemoryExecutionStorage, MemoryJobStorage


class RecordingSleep:
    """
    Stand-in for asyncio.sleep that records requested delays without waiting.
    """
    def __init__(self):
        self.delays: List[float] = []

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)


@pytest.fixture(scope="function")
def job_storage() -> MemoryJobStorage:
    return MemoryJobStorage()


@pytest.fixture(scope="function")
def execution_storage() -> MemoryExecutionStorage:
    return MemoryExecutionStorage()


@pytest.fixture(scope="function")
def recording_sleep() -> RecordingSleep:
    return RecordingSleep()


@pytest.fixture(scope="function")
def make_job(job_storage: MemoryJobStorage) -> Callable[..., Awaitable[ScheduledJob]]:
    async def _make_job(**overrides: Any) -> ScheduledJob:
        fields = {
            "job_name": "test_job",
            "job_type": "test_type",
            "cron_expression": "0 * * * *",
            "max_retries": 0,
            "retry_delay_seconds": 1,
            "timeout_seconds": 5,
        }
        fields.update(overrides)
        return await job_storage.create(NewScheduledJob(**fields))
    return _make_job
