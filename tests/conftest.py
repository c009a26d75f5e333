"""Shared fixtures: synthetic hands, a fake clock, a fake camera and detector."""

import numpy as np
import pytest

from gesturefield.hand_features import HandFrame
from gesturefield.util import HandLandmark as L


def make_world_landmarks(
    *,
    pinch=0.08,
    spread=0.16,
    extension=0.04,
    palm_y=0.1,
    tip_depth=0.0,
):
    """
    A (21, 3) world-landmark array with known feature values.

    The wrist and middle knuckle are vertically aligned (tilt 0.75) and centered
    on ``palm_y``. Every fingertip sits ``extension`` above its joint, at depth
    ``tip_depth``.
    """
    world = np.zeros((21, 3))
    world[L.WRIST] = (0.0, palm_y - 0.05, 0.0)
    world[L.MIDDLE_FINGER_MCP] = (0.0, palm_y + 0.05, 0.0)
    world[L.INDEX_FINGER_MCP] = (-spread / 2, palm_y + 0.04, 0.0)
    world[L.PINKY_MCP] = (spread / 2, palm_y + 0.04, 0.0)

    tips = {
        L.THUMB_TIP: (-0.05, palm_y + 0.12),
        L.INDEX_FINGER_TIP: (-0.05 + pinch, palm_y + 0.12),
        L.MIDDLE_FINGER_TIP: (0.01, palm_y + 0.16),
        L.RING_FINGER_TIP: (0.03, palm_y + 0.15),
        L.PINKY_TIP: (0.05, palm_y + 0.13),
    }
    joints = {
        L.THUMB_TIP: L.THUMB_IP,
        L.INDEX_FINGER_TIP: L.INDEX_FINGER_DIP,
        L.MIDDLE_FINGER_TIP: L.MIDDLE_FINGER_DIP,
        L.RING_FINGER_TIP: L.RING_FINGER_DIP,
        L.PINKY_TIP: L.PINKY_DIP,
    }
    for tip, (x, y) in tips.items():
        world[tip] = (x, y, tip_depth)
        world[joints[tip]] = (x, y - extension, tip_depth)
    return world


@pytest.fixture
def make_hand():
    """Factory of HandFrames built from ``make_world_landmarks``."""

    def _make_hand(**kwargs):
        return HandFrame.from_landmarks(make_world_landmarks(**kwargs))

    return _make_hand


class FakeClock:
    """A clock that only moves when slept on (or advanced by hand)."""

    def __init__(self, start=0.0):
        self.now = start

    def __call__(self):
        return self.now

    def sleep(self, seconds):
        self.now += seconds

    advance = sleep


@pytest.fixture
def fake_clock():
    return FakeClock()


class FakeCapture:
    """Yields ``n_frames`` black images, then fails like an unplugged camera."""

    def __init__(self, n_frames=1000, size=(120, 160)):
        self.n_frames = n_frames
        self.size = size
        self.reads = 0
        self.released = False

    def read(self):
        if self.reads >= self.n_frames:
            return False, None
        self.reads += 1
        return True, np.zeros(self.size + (3,), dtype=np.uint8)

    def release(self):
        self.released = True


class FakeDetector:
    """Returns the given hands in turn, repeating the last one."""

    def __init__(self, hands=(None,)):
        self.hands = list(hands)
        self.timestamps = []
        self.closed = False

    def detect(self, img, timestamp_ms):
        self.timestamps.append(timestamp_ms)
        i = min(len(self.timestamps) - 1, len(self.hands) - 1)
        return self.hands[i]

    def close(self):
        self.closed = True


@pytest.fixture
def fake_capture():
    return FakeCapture


@pytest.fixture
def fake_detector():
    return FakeDetector
