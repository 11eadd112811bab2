"""
Job Scheduling and Execution Engine

Turns declarative job definitions into reliably executed, observable task runs.

Core Concepts:

ScheduledJob:
    A persisted definition: a cron expression, the job type used to resolve the
    task implementation, an opaque payload, and the retry, timeout and
    concurrency policy.

Trigger:
    A single firing of a job's cron schedule. One trigger can produce several
    attempts.

JobExecution:
    The record of a single attempt within a trigger. Every attempt gets exactly
    one record, created before it runs and finalized once it ends.

Components:
    - ConcurrencyTracker decides whether a trigger may start.
    - JobRegistry resolves a job type and payload into a JobTask.
    - JobExecutor runs the retry and timeout state machine for one trigger.
    - JobScheduler registers cron triggers for every enabled job.
"""

from .concurrency import ConcurrencyTracker
from .config import JobsConfig
from .domain import (
    CancellationToken,
    JobContext,
    JobExecution,
    JobStatus,
    NewJobExecution,
    NewScheduledJob,
    ScheduledJob,
    UpdateScheduledJob,
)
from .errors import (
    AlreadyExistsError,
    ConcurrencyLimitReachedError,
    ExecutionFailedError,
    InvalidCronExpressionError,
    JobError,
    JobTimeoutError,
    NotFoundError,
    PayloadError,
    SchedulerError,
    StorageError,
)
from .executor import JobExecutor
from .registry import JobRegistry
from .scheduler import JobScheduler
from .service import JobService
from .tasks import JobTask

__all__ = [
    "ConcurrencyTracker",
    "JobsConfig",
    "CancellationToken",
    "JobContext",
    "JobExecution",
    "JobStatus",
    "NewJobExecution",
    "NewScheduledJob",
    "ScheduledJob",
    "UpdateScheduledJob",
    "AlreadyExistsError",
    "ConcurrencyLimitReachedError",
    "ExecutionFailedError",
    "InvalidCronExpressionError",
    "JobError",
    "JobTimeoutError",
    "NotFoundError",
    "PayloadError",
    "SchedulerError",
    "StorageError",
    "JobExecutor",
    "JobRegistry",
    "JobScheduler",
    "JobService",
    "JobTask",
]
