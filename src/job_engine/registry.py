import logging
from typing import Any, Callable, Dict, List, Optional, Type

from pydantic import BaseModel, ValidationError

from job_engine.errors import JobError, NotFoundError, PayloadError
from job_engine.tasks.protocol import JobTask

logger = logging.getLogger(__name__)

TaskFactory = Callable[[Dict[str, Any]], JobTask]


class JobRegistry:
    """
    Maps job type strings to factories that build task instances from payloads.
    """
    def __init__(self) -> None:
        self._factories: Dict[str, TaskFactory] = {}

    @property
    def job_types(self) -> List[str]:
        return list(self._factories.keys())

    def register(self, task_class: Type[JobTask]) -> "JobRegistry":
        """
        Register a task class under its task_type().

        Args:
            task_class (Type[JobTask]): A JobTask that is also a pydantic model.

        Returns:
            JobRegistry: The registry itself, so registrations can be chained.

        Raises:
            TypeError: If the task class is not a pydantic model.
            ValueError: If the job type is already registered.
        """
        if not issubclass(task_class, BaseModel):
            raise TypeError(f"Task class '{task_class.__name__}' must be a pydantic model, use register_factory instead")

        job_type: str = task_class.task_type()

        def factory(payload: Dict[str, Any]) -> JobTask:
            try:
                return task_class.model_validate(payload)
            except ValidationError as e:
                raise PayloadError(job_type, str(e)) from e

        return self.register_factory(job_type, factory)

    def register_factory(self, job_type: str, factory: TaskFactory) -> "JobRegistry":
        if job_type in self._factories:
            raise ValueError(f"A task for job type '{job_type}' is already registered")
        self._factories[job_type] = factory
        logger.debug("Registered job type %s", job_type)
        return self

    def create_task(self, job_type: str, payload: Optional[Dict[str, Any]]) -> JobTask:
        """
        Build a task instance for the given job type.

        Raises:
            NotFoundError: If no task is registered for the job type.
            PayloadError: If the payload does not match the task's shape.
        """
        factory = self._factories.get(job_type)
        if factory is None:
            raise NotFoundError("JobType", "type", job_type)

        try:
            return factory(payload if payload is not None else {})
        except JobError:
            raise
        except Exception as e:
            raise PayloadError(job_type, str(e)) from e
