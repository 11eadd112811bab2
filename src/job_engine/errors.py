from typing import Any


class JobError(Exception):
    """
    Base class for all errors raised by the job engine.
    """


class ExecutionFailedError(JobError):
    def __init__(self, message: str):
        self.message = message
        super().__init__(f"Job execution failed: {message}")


class JobTimeoutError(JobError):
    def __init__(self, timeout_seconds: int):
        self.timeout_seconds = timeout_seconds
        super().__init__(f"Job timeout after {timeout_seconds}s")


class InvalidCronExpressionError(JobError):
    def __init__(self, expression: str, reason: str):
        self.expression = expression
        self.reason = reason
        super().__init__(f"Invalid cron expression '{expression}': {reason}")


class NotFoundError(JobError):
    def __init__(self, entity: str, field: str, value: Any):
        self.entity = entity
        self.field = field
        self.value = value
        super().__init__(f"{entity} with {field} '{value}' not found")


class AlreadyExistsError(JobError):
    def __init__(self, entity: str, field: str, value: Any):
        self.entity = entity
        self.field = field
        self.value = value
        super().__init__(f"{entity} with {field} '{value}' already exists")


class ConcurrencyLimitReachedError(JobError):
    def __init__(self, job_name: str):
        self.job_name = job_name
        super().__init__(f"Concurrency limit reached for job: {job_name}")


class PayloadError(JobError):
    def __init__(self, job_type: str, detail: str):
        self.job_type = job_type
        self.detail = detail
        super().__init__(f"Invalid payload for job type '{job_type}': {detail}")


class StorageError(JobError):
    pass


class SchedulerError(JobError):
    pass
