from abc import ABC, abstractmethod
from typing import Any, Optional

from job_engine.domain.context import JobContext


class JobTask(ABC):
    """
    Contract every task implementation must satisfy.

    Concrete tasks are usually pydantic models as well, so the registry can
    build them straight from a job's payload:

        class ReportTask(JobTask, BaseModel):
            recipient: str

            @classmethod
            def task_type(cls) -> str:
                return "report"

            async def execute(self, ctx: JobContext) -> None:
                ...
    """

    @classmethod
    @abstractmethod
    def task_type(cls) -> str:
        """
        Return the unique job type this task is registered under.
        """
        ...

    @abstractmethod
    async def execute(self, ctx: JobContext) -> Optional[Any]:
        """
        Run the task once.

        Args:
            ctx (JobContext): Context of the current attempt.

        Returns:
            Optional[Any]: An optional JSON compatible result that is stored on
            the execution record.

        Raises:
            Exception: Any exception marks the attempt as failed and is
            retried according to the job's retry policy.
        """
        ...

    def description(self) -> Optional[str]:
        return None
