"""Tracking status, as shown to the user."""

import time
from enum import Enum
from typing import Callable, Optional

from gesturefield.util import return_none

DFLT_STALE_AFTER_S = 0.65


class TrackingStatus(str, Enum):
    INITIALIZING = 'initializing'
    READY = 'ready'
    NO_HANDS = 'no-hands'
    ERROR = 'error'


STATUS_LABELS = {
    TrackingStatus.INITIALIZING: 'Preparing camera & model',
    TrackingStatus.READY: 'Tracking live gestures',
    TrackingStatus.NO_HANDS: 'Show your hand to the camera',
    TrackingStatus.ERROR: 'Camera or tracking unavailable',
}


class StatusMonitor:
    """
    Derives the tracking status from lifecycle events and detection staleness.

    Starts ``initializing``; ``mark_ready`` once camera and model are up;
    ``observe`` after every inference tick. When no hand has been seen for more
    than ``stale_after`` seconds the status becomes ``no-hands``; a detection
    brings it back to ``ready``. ``mark_error`` is terminal.

    Args:
        stale_after: Seconds without a detection before reporting ``no-hands``
        clock: Callable returning the current time in seconds
        on_change: Called with the new status whenever it changes
    """

    def __init__(
        self,
        *,
        stale_after: float = DFLT_STALE_AFTER_S,
        clock: Callable[[], float] = time.monotonic,
        on_change: Optional[Callable] = None,
    ):
        self.stale_after = stale_after
        self.clock = clock
        self.on_change = on_change or return_none
        self.status = TrackingStatus.INITIALIZING
        self.last_detection_time = self.clock()

    @property
    def tracking_ready(self) -> bool:
        return self.status is TrackingStatus.READY

    @property
    def label(self) -> str:
        return STATUS_LABELS[self.status]

    def _set(self, status: TrackingStatus):
        if status is not self.status:
            self.status = status
            self.on_change(status)

    def mark_ready(self):
        if self.status is TrackingStatus.ERROR:
            return
        self.last_detection_time = self.clock()
        self._set(TrackingStatus.READY)

    def mark_error(self):
        self._set(TrackingStatus.ERROR)

    def observe(self, detected: bool) -> TrackingStatus:
        """Update the status after an inference tick."""
        if self.status in (TrackingStatus.ERROR, TrackingStatus.INITIALIZING):
            return self.status
        now = self.clock()
        if detected:
            self.last_detection_time = now
            self._set(TrackingStatus.READY)
        elif now - self.last_detection_time > self.stale_after:
            self._set(TrackingStatus.NO_HANDS)
        return self.status
