import asyncio
import logging
import uuid
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Awaitable, Callable, Dict, Optional, Set

from croniter import croniter

from job_engine.errors import InvalidCronExpressionError, SchedulerError

logger = logging.getLogger(__name__)

TriggerCallback = Callable[[], Awaitable[None]]


def _build_croniter(expression: str, start: datetime) -> croniter:
    fields = expression.split()
    if len(fields) not in (5, 6):
        raise InvalidCronExpressionError(expression, f"expected 5 or 6 fields, got {len(fields)}")
    try:
        return croniter(expression, start, second_at_beginning=True)
    except (ValueError, KeyError) as e:
        raise InvalidCronExpressionError(expression, str(e)) from e


def validate_cron_expression(expression: str) -> None:
    """
    Check that a cron expression can be scheduled.

    Accepts the classic 5 field form (minute resolution) and a 6 field form
    whose first field is seconds.

    Raises:
        InvalidCronExpressionError: If the expression cannot be parsed.
    """
    _build_croniter(expression, datetime.now(timezone.utc))


def next_fire_time(expression: str, after: Optional[datetime] = None) -> datetime:
    start = after or datetime.now(timezone.utc)
    return _build_croniter(expression, start).get_next(datetime)


@dataclass
class TriggerEntry:
    handle: str
    cron_expression: str
    callback: TriggerCallback
    next_fire: datetime


class CronTriggerEngine:
    """
    Cron trigger engine running on the asyncio event loop.

    Every due trigger fires its callback as a separate asyncio task, so a slow
    callback never delays other triggers or its own next tick.
    """

    def __init__(self, poll_interval: float = 1.0):
        self.poll_interval = poll_interval
        self.entries: Dict[str, TriggerEntry] = {}
        self.scheduler_task: Optional[asyncio.Task] = None
        self.is_running: bool = False
        self.in_flight: Set[asyncio.Task] = set()

    def add(self, cron_expression: str, callback: TriggerCallback) -> str:
        """
        Register a callback to fire at every instant matching the expression.

        Returns:
            str: Handle that identifies the trigger for remove().

        Raises:
            InvalidCronExpressionError: If the expression cannot be parsed.
        """
        first_fire = next_fire_time(cron_expression)
        handle = str(uuid.uuid4())
        self.entries[handle] = TriggerEntry(
            handle=handle,
            cron_expression=cron_expression,
            callback=callback,
            next_fire=first_fire,
        )
        return handle

    def remove(self, handle: str) -> bool:
        return self.entries.pop(handle, None) is not None

    def next_fire_time(self, handle: str) -> Optional[datetime]:
        entry = self.entries.get(handle)
        return entry.next_fire if entry else None

    async def start(self):
        if self.is_running:
            return
        try:
            asyncio.get_running_loop()
        except RuntimeError as e:
            raise SchedulerError("CronTriggerEngine must be started from a running event loop") from e
        self.is_running = True
        self.scheduler_task = asyncio.create_task(self._scheduler_loop())
        logger.info("CronTriggerEngine started with %d trigger(s)", len(self.entries))

    async def shutdown(self, wait: bool = False):
        """
        Stop firing triggers.

        Callbacks that are already running are left alone; pass wait=True to
        wait for them to finish.
        """
        if self.is_running:
            self.is_running = False
            if self.scheduler_task:
                self.scheduler_task.cancel()
                try:
                    await self.scheduler_task
                except asyncio.CancelledError:
                    pass
                self.scheduler_task = None
            logger.info("CronTriggerEngine stopped")
        if wait and self.in_flight:
            await asyncio.gather(*self.in_flight, return_exceptions=True)

    async def _scheduler_loop(self):
        """
        Main loop that fires due triggers and sleeps until the next one.
        """
        while self.is_running:
            now = datetime.now(timezone.utc)
            for entry in list(self.entries.values()):
                if entry.next_fire <= now:
                    self._fire(entry)
                    entry.next_fire = next_fire_time(entry.cron_expression, now)

            delay = self.poll_interval
            if self.entries:
                earliest = min(entry.next_fire for entry in self.entries.values())
                delay = min(delay, max((earliest - datetime.now(timezone.utc)).total_seconds(), 0))
            await asyncio.sleep(delay)

    def _fire(self, entry: TriggerEntry):
        future = asyncio.create_task(entry.callback())
        self.in_flight.add(future)
        future.add_done_callback(self._handle_completion)

    def _handle_completion(self, future: asyncio.Task):
        self.in_flight.discard(future)
        if future.cancelled():
            return
        error = future.exception()
        if error is not None:
            logger.error("Trigger callback raised", exc_info=error)
