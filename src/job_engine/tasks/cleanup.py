import logging
from typing import Dict, Optional

from pydantic import BaseModel, Field

from job_engine.domain.context import JobContext
from job_engine.storages.sqlalchemy import Database, SqlAlchemyExecutionStorage
from job_engine.tasks.protocol import JobTask

logger = logging.getLogger(__name__)


class DataCleanupTask(JobTask, BaseModel):
    """
    Deletes job execution history older than the retention window.
    Expects ctx.resources to be the shared Database.
    """
    retention_days: int = Field(30, ge=0, description="Executions started more than this many days ago are deleted")

    @classmethod
    def task_type(cls) -> str:
        return "data_cleanup"

    async def execute(self, ctx: JobContext) -> Dict[str, int]:
        if not isinstance(ctx.resources, Database):
            raise RuntimeError("data_cleanup requires a Database in the job context")

        execution_storage = SqlAlchemyExecutionStorage(ctx.resources)
        deleted = await execution_storage.cleanup_old_executions(self.retention_days)

        logger.info("Data cleanup completed: deleted %d execution(s) older than %d days", deleted, self.retention_days)
        return {"deleted": deleted}

    def description(self) -> Optional[str]:
        return f"Clean up job execution history older than {self.retention_days} days"
