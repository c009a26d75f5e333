"""Single-threaded cooperative scheduling of the inference and render loops."""

import time
from typing import Callable, Generic, List, Optional, TypeVar

T = TypeVar('T')


class LatestValue(Generic[T]):
    """
    A single-slot handoff: writers overwrite, readers get the most recent value.

    No queue and no waiting. A reader may see the same value several times or
    miss intermediate ones.

    >>> slot = LatestValue('a')
    >>> slot.publish('b')
    >>> slot.get(), slot.version
    ('b', 1)
    """

    def __init__(self, initial: T):
        self._value = initial
        self.version = 0

    def publish(self, value: T) -> None:
        self._value = value
        self.version += 1

    def get(self) -> T:
        return self._value


class PeriodicTask:
    """
    A callback run at most once every ``period`` seconds.

    The callback receives the current time. A ``period`` of 0 runs it on every
    scheduler pass.
    """

    def __init__(self, name: str, callback: Callable[[float], None], period: float):
        if period < 0:
            raise ValueError(f"period must not be negative, got {period}")
        self.name = name
        self.callback = callback
        self.period = period
        self.next_run: Optional[float] = None
        self.run_count = 0

    def due(self, now: float) -> bool:
        return self.next_run is None or now >= self.next_run

    def run(self, now: float) -> None:
        # Missed slots are not caught up
        self.next_run = now + self.period
        self.run_count += 1
        self.callback(now)


class CooperativeScheduler:
    """
    Runs periodic tasks in turn on the calling thread until stopped.

    ``stop()`` may be called from inside a task; the scheduler finishes the
    current pass and returns.

    Args:
        tasks: The tasks to run, in order of priority within a pass
        clock: Callable returning the current time in seconds
        sleep: Callable used to wait until the next task is due
    """

    def __init__(
        self,
        tasks: List[PeriodicTask] = (),
        *,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.tasks = list(tasks)
        self.clock = clock
        self.sleep = sleep
        self._stop_requested = False

    def add(self, task: PeriodicTask) -> PeriodicTask:
        self.tasks.append(task)
        return task

    def stop(self) -> None:
        self._stop_requested = True

    @property
    def stopped(self) -> bool:
        return self._stop_requested

    def run_pending(self) -> None:
        """Run every due task once."""
        for task in self.tasks:
            if self._stop_requested:
                break
            now = self.clock()
            if task.due(now):
                task.run(now)

    def run(self) -> None:
        """Loop over the tasks until ``stop()`` is called."""
        while not self._stop_requested:
            self.run_pending()
            if self._stop_requested:
                break
            wait = self.time_until_next(self.clock())
            if wait > 0:
                self.sleep(wait)

    def time_until_next(self, now: float) -> float:
        pending = [t.next_run for t in self.tasks if t.next_run is not None]
        if not pending or len(pending) < len(self.tasks):
            return 0.0
        return max(0.0, min(pending) - now)
