import threading
from typing import Dict

from job_engine.domain.job import ScheduledJob


class ConcurrencyTracker:
    """
    Tracks how many executions of each job are currently running and decides
    whether a new one may start.

    Absent keys mean zero running executions. Every read-modify-write happens
    under a single lock, so the tracker can be shared between asyncio tasks
    and threads alike.
    """

    def __init__(self) -> None:
        self._running: Dict[str, int] = {}
        self._lock = threading.Lock()

    def _admits(self, job: ScheduledJob) -> bool:
        count = self._running.get(job.job_name, 0)
        if not job.allow_concurrent:
            return count == 0
        if job.max_concurrent is None:
            return True
        return count < job.max_concurrent

    def can_execute(self, job: ScheduledJob) -> bool:
        with self._lock:
            return self._admits(job)

    def try_acquire(self, job: ScheduledJob) -> bool:
        """
        Atomically check admission and take a slot.

        Returns:
            bool: True if a slot was taken and the caller must later call decrement.
        """
        with self._lock:
            if not self._admits(job):
                return False
            self._running[job.job_name] = self._running.get(job.job_name, 0) + 1
            return True

    def increment(self, job_name: str) -> None:
        with self._lock:
            self._running[job_name] = self._running.get(job_name, 0) + 1

    def decrement(self, job_name: str) -> None:
        with self._lock:
            count = self._running.get(job_name)
            if count is None:
                return
            if count <= 1:
                del self._running[job_name]
            else:
                self._running[job_name] = count - 1

    def running_count(self, job_name: str) -> int:
        with self._lock:
            return self._running.get(job_name, 0)

    def snapshot(self) -> Dict[str, int]:
        with self._lock:
            return dict(self._running)
