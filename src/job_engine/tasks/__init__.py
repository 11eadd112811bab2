from .protocol import JobTask
from .cleanup import DataCleanupTask
from .http import HttpCallTask

BUILTIN_TASKS = [DataCleanupTask, HttpCallTask]

__all__ = ["JobTask", "DataCleanupTask", "HttpCallTask", "BUILTIN_TASKS"]
