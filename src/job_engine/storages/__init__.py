from .protocol import ExecutionStorage, JobStorage
from .memory import MemoryExecutionStorage, MemoryJobStorage
from .sqlalchemy import Database, InMemoryDatabase, SqlAlchemyExecutionStorage, SqlAlchemyJobStorage

__all__ = [
    "JobStorage",
    "ExecutionStorage",
    "MemoryJobStorage",
    "MemoryExecutionStorage",
    "Database",
    "InMemoryDatabase",
    "SqlAlchemyJobStorage",
    "SqlAlchemyExecutionStorage",
]
