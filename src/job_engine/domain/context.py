import asyncio
import uuid
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class CancellationToken:
    """
    Cooperative cancellation signal scoped to one attempt.

    The executor never triggers it. Tasks that want to stop early may poll
    `is_cancelled` or await `wait()`.
    """

    def __init__(self) -> None:
        self._event = asyncio.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def is_cancelled(self) -> bool:
        return self._event.is_set()

    async def wait(self) -> None:
        await self._event.wait()


class JobContext(BaseModel):
    """
    Execution context handed to a task for a single attempt.
    """
    model_config = ConfigDict(arbitrary_types_allowed=True)

    execution_id: uuid.UUID
    job_id: int
    job_name: str
    retry_attempt: int = 0
    resources: Any = Field(None, description="Shared handle such as the Database, passed by reference")
    cancellation_token: CancellationToken = Field(default_factory=CancellationToken)
