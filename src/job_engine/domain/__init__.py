from .job import JobStatus, ScheduledJob, NewScheduledJob, UpdateScheduledJob
from .execution import JobExecution, NewJobExecution
from .context import CancellationToken, JobContext

__all__ = [
    "JobStatus",
    "ScheduledJob",
    "NewScheduledJob",
    "UpdateScheduledJob",
    "JobExecution",
    "NewJobExecution",
    "CancellationToken",
    "JobContext",
]
