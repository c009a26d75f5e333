"""Utils for gesturefield."""

import time
from typing import Dict, Tuple, TypeVar, Union

import numpy as np


def return_none(*args, **kwargs):
    """
    An empty function that returns None no matter the arguments.
    Often used as a "do nothing" general callback function.
    """
    return None


def identity(x):
    """Identity function."""
    return x


# --------------------------------------------------------------------------------------
# Constants


class HandLandmark:
    WRIST = 0
    THUMB_CMC = 1
    THUMB_MCP = 2
    THUMB_IP = 3
    THUMB_TIP = 4
    INDEX_FINGER_MCP = 5
    INDEX_FINGER_PIP = 6
    INDEX_FINGER_DIP = 7
    INDEX_FINGER_TIP = 8
    MIDDLE_FINGER_MCP = 9
    MIDDLE_FINGER_PIP = 10
    MIDDLE_FINGER_DIP = 11
    MIDDLE_FINGER_TIP = 12
    RING_FINGER_MCP = 13
    RING_FINGER_PIP = 14
    RING_FINGER_DIP = 15
    RING_FINGER_TIP = 16
    PINKY_MCP = 17
    PINKY_PIP = 18
    PINKY_DIP = 19
    PINKY_TIP = 20


N_HAND_LANDMARKS = 21

# Skeleton edges, used to draw a hand on the feed inset
HAND_CONNECTIONS = (
    (0, 1), (1, 2), (2, 3), (3, 4),
    (0, 5), (5, 6), (6, 7), (7, 8),
    (5, 9), (9, 10), (10, 11), (11, 12),
    (9, 13), (13, 14), (14, 15), (15, 16),
    (13, 17), (0, 17), (17, 18), (18, 19), (19, 20),
)


# --------------------------------------------------------------------------------------
# Scalar math


def clamp(value, min_value, max_value):
    """
    Clamp ``value`` into ``[min_value, max_value]``.

    >>> clamp(1.5, 0, 1)
    1
    >>> clamp(-0.5, 0.2, 1.0)
    0.2
    >>> clamp(0.3, 0, 1)
    0.3
    """
    return min(max(value, min_value), max_value)


def lerp(start, end, alpha):
    """
    Exponential smoothing step: move ``start`` toward ``end`` by ``alpha``.
    """
    return start + (end - start) * alpha


def normalize(value, min_value, max_value):
    """
    Min-max normalize ``value`` into ``[0, 1]``.

    A zero-width range normalizes everything to 0.

    >>> normalize(0.25, 0, 0.5)
    0.5
    >>> normalize(10, 0, 1)
    1.0
    >>> normalize(3, 2, 2)
    0.0
    """
    span = max_value - min_value
    if span == 0:
        return 0.0
    return float(clamp((value - min_value) / span, 0.0, 1.0))


def wrap_degrees(angle):
    """
    Wrap an angle (or array of angles) in degrees into ``[0, 360)``.

    Float modulo can round a tiny negative angle up to exactly 360; that case
    is folded back to 0.

    >>> wrap_degrees(370.0)
    10.0
    >>> wrap_degrees(-90.0)
    270.0
    >>> wrap_degrees(-1e-20)
    0.0
    """
    wrapped = np.mod(angle, 360.0)
    wrapped = np.where(wrapped >= 360.0, 0.0, wrapped)
    if np.ndim(wrapped) == 0:
        return float(wrapped)
    return wrapped


class RangeMapper:
    """
    A callable class that maps values from one range to another.
    Precomputes scaling factors for better performance.

    >>> mapper = RangeMapper((0, 1), (100.0, 200.0))
    >>> mapper(0.5)
    150.0
    >>> mapper(-0.1)  # Below range
    100.0
    >>> mapper(1.5)   # Above range
    200.0
    """

    def __init__(
        self,
        value_range: Tuple[float, float],
        target_range: Tuple[float, float],
        *,
        ingress=identity,
        egress=identity,
    ):
        """
        Initialize the range mapper with source and target ranges.

        Args:
            value_range: The range of the input value (min, max)
            target_range: The range to map to (min, max)
        """
        self.value_min, self.value_max = value_range
        self.target_min, self.target_max = target_range

        # Precompute frequently used values for performance
        self._value_span = self.value_max - self.value_min
        self._target_span = self.target_max - self.target_min
        if self._value_span:
            self._scale_factor = self._target_span / self._value_span
        else:
            self._scale_factor = 0.0
        self.ingress = ingress
        self.egress = egress

    def __call__(self, value: float) -> float:
        """
        Map a value from the source range to the target range.

        Args:
            value: The value to map

        Returns:
            Mapped value in the target range
        """
        value = self.ingress(value)
        if value <= self.value_min:
            output = self.target_min
        elif value >= self.value_max:
            output = self.target_max
        else:
            output = self.target_min + (value - self.value_min) * self._scale_factor

        return self.egress(output)


def hsl_to_rgb(hue, saturation, luminance):
    """
    Vectorized HSL to RGB conversion, all channels in ``[0, 1]``.

    Same formula as ``colorsys.hls_to_rgb``, but over numpy arrays so a whole
    particle population is converted at once. Returns an array of shape
    ``broadcast_shape + (3,)``.

    >>> hsl_to_rgb(0.0, 1.0, 0.5).tolist()
    [1.0, 0.0, 0.0]
    >>> hsl_to_rgb(0.5, 0.0, 0.25).tolist()
    [0.25, 0.25, 0.25]
    """
    h, s, l = np.broadcast_arrays(
        np.asarray(hue, dtype=float),
        np.asarray(saturation, dtype=float),
        np.asarray(luminance, dtype=float),
    )
    m2 = np.where(l <= 0.5, l * (1.0 + s), l + s - l * s)
    m1 = 2.0 * l - m2

    def _channel(offset):
        hh = np.mod(h + offset, 1.0)
        out = np.where(hh < 1 / 6, m1 + (m2 - m1) * hh * 6.0, m1)
        out = np.where((hh >= 1 / 6) & (hh < 0.5), m2, out)
        out = np.where(
            (hh >= 0.5) & (hh < 2 / 3), m1 + (m2 - m1) * (2 / 3 - hh) * 6.0, out
        )
        return out

    rgb = np.stack([_channel(1 / 3), _channel(0.0), _channel(-1 / 3)], axis=-1)
    grey = s == 0.0
    if np.any(grey):
        rgb = np.where(grey[..., None], l[..., None], rgb)
    return rgb


# --------------------------------------------------------------------------------------
# String utils


def format_milliseconds_time(timestamp):
    """Format milliseconds as a string."""
    formatted_time = time.strftime('%H:%M:%S', time.localtime(timestamp))
    milliseconds = int((timestamp % 1) * 1000)
    return f"{formatted_time}.{milliseconds:03d}"


def current_time_string_with_milliseconds():
    """Get the current time with milliseconds, as a string."""
    return format_milliseconds_time(time.time())


# --------------------------------------------------------------------------------------
# Object resolution

T = TypeVar('T')


def resolve_object(
    obj: Union[str, T],
    *,
    object_map: Dict[str, T],
    expected_type: type = None,
    error_message: str = None,
) -> T:
    """
    Resolves an object by either returning it directly if it's of the correct type,
    or looking it up in a mapping if it's a string.

    Args:
        obj: The object to resolve. Can be a string (to be looked up in object_map)
             or the object itself (if it's already of type T).
        object_map: A dictionary mapping strings to objects of type T.
        expected_type: (Optional) The expected type of the resolved object.
        error_message: (Optional) A custom error message to use if a ValueError
                       or TypeError is raised.

    Returns:
        The resolved object of type T.

    Raises:
        TypeError: If obj is not a string or of the expected type.
        ValueError: If obj is a string but is not found in object_map.

    >>> resolve_object('b', object_map={'a': 1, 'b': 2})
    2
    >>> resolve_object(3, object_map={'a': 1}, expected_type=int)
    3
    """
    if isinstance(obj, str):
        if obj in object_map:
            resolved_obj = object_map[obj]
        else:
            msg = error_message or f"Unknown object identifier: {obj}"
            raise ValueError(msg)
    elif expected_type is None or isinstance(obj, expected_type):
        resolved_obj = obj
    else:
        msg = error_message or f"Expected type {expected_type}, got {type(obj)}"
        raise TypeError(msg)

    if expected_type and not isinstance(resolved_obj, expected_type):
        msg = (
            error_message
            or f"Resolved object should be of type {expected_type}, got {type(resolved_obj)}"
        )
        raise TypeError(msg)

    return resolved_obj
