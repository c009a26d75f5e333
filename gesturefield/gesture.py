"""Turning hand features into smoothed, bounded particle control parameters.

The gesture processor takes one (possibly missing) hand frame per inference
tick, together with the previous ``ControlState`` and the pinch ``LatchState``,
and produces the next ``ControlState`` plus some ``DebugMetrics``.

Continuous fields follow their targets by exponential smoothing
(``next = prior + (target - prior) * rate``). When no hand is seen, they decay
back toward ``NEUTRAL_CONTROL_STATE``. The discrete ``shape_index`` only moves
when a pinch closes, with two thresholds so a pinch hovering around one value
does not fire repeatedly.
"""

import math
from dataclasses import asdict, dataclass, fields
from types import MappingProxyType
from typing import Optional, Tuple

import numpy as np

from gesturefield.hand_features import HandFeatures, HandFrame, extract_hand_features
from gesturefield.util import clamp, lerp, normalize, wrap_degrees

# -------------------------------------------------------------------------------
# Control state
# -------------------------------------------------------------------------------

CONTINUOUS_FIELDS = ('expansion', 'swirl', 'hue', 'intensity', 'burst')

# Largest hue below 360, so a low palm stays next to its neighbors on the wheel
MAX_HUE = float(np.nextafter(360.0, 0.0))


def _finite_or(value, default):
    value = float(value)
    return value if math.isfinite(value) else default


@dataclass(frozen=True)
class ControlState:
    """
    The smoothed parameters driving the particle field.

    ``shape_index`` never decreases. ``expansion``, ``swirl``, ``intensity`` and
    ``burst`` live in [0, 1], ``hue`` in [0, 360) degrees.
    """

    shape_index: int = 0
    expansion: float = 0.25
    swirl: float = 0.4
    hue: float = 220.0
    intensity: float = 0.55
    burst: float = 0.1

    def clamped(self) -> 'ControlState':
        """
        Return a copy with every field forced into its bounds.

        A non-finite field (NaN or infinite) is replaced by its neutral value.
        """
        v = {
            f.name: _finite_or(getattr(self, f.name), f.default)
            for f in fields(self)
        }
        return ControlState(
            shape_index=max(0, int(v['shape_index'])),
            expansion=float(clamp(v['expansion'], 0.0, 1.0)),
            swirl=float(clamp(v['swirl'], 0.0, 1.0)),
            hue=wrap_degrees(v['hue']),
            intensity=float(clamp(v['intensity'], 0.0, 1.0)),
            burst=float(clamp(v['burst'], 0.0, 1.0)),
        )

    def to_dict(self):
        return asdict(self)


NEUTRAL_CONTROL_STATE = ControlState()


@dataclass(frozen=True)
class DebugMetrics:
    """Raw diagnostic values. Observational only."""

    pinch: float
    spread: float
    openness: float
    tilt: float

    def to_dict(self):
        return asdict(self)


# Sentinels reported when no hand is visible: fully open pinch, neutral tilt
NO_HAND_DEBUG_METRICS = DebugMetrics(pinch=1.0, spread=0.0, openness=0.0, tilt=0.5)


# -------------------------------------------------------------------------------
# Pinch latch
# -------------------------------------------------------------------------------

DFLT_PINCH_ENTER_THRESHOLD = 0.025  # meters, thumb tip to index tip
DFLT_PINCH_EXIT_THRESHOLD = 0.045


@dataclass
class LatchState:
    """
    Pinch latch with hysteresis.

    OPEN (``engaged=False``) goes CLOSED when the pinch distance drops below the
    enter threshold, and that transition alone increments ``shape_index``.
    CLOSED goes back to OPEN only once the distance exceeds the exit threshold.
    """

    engaged: bool = False
    shape_index: int = 0

    def update(
        self,
        pinch_distance: float,
        *,
        enter_threshold: float = DFLT_PINCH_ENTER_THRESHOLD,
        exit_threshold: float = DFLT_PINCH_EXIT_THRESHOLD,
    ) -> bool:
        """
        Feed one pinch distance. Returns True if the shape index was incremented.
        """
        if not self.engaged and pinch_distance < enter_threshold:
            self.engaged = True
            self.shape_index += 1
            return True
        elif self.engaged and pinch_distance > exit_threshold:
            self.engaged = False
        return False


# -------------------------------------------------------------------------------
# Feature -> target mapping
# -------------------------------------------------------------------------------

# Empirical (min, max) bounds of each raw feature, in world-space units
DFLT_FEATURE_BOUNDS = MappingProxyType(
    {
        'spread_distance': (0.07, 0.25),
        'tilt_normalized': (0.2, 0.8),
        'palm_y': (-0.25, 0.45),
        'finger_extension': (0.015, 0.08),
        'depth_variance': (0.0002, 0.005),
    }
)

# Fast feedback for burst and expansion, slower hue to avoid color flicker
DFLT_SMOOTHING_RATES = MappingProxyType(
    {
        'expansion': 0.20,
        'swirl': 0.15,
        'hue': 0.12,
        'intensity': 0.18,
        'burst': 0.25,
    }
)

DFLT_DECAY_RATE = 0.05


def control_targets(features: HandFeatures, *, feature_bounds=DFLT_FEATURE_BOUNDS):
    """
    Map raw hand features to instantaneous targets for each continuous field.

    Args:
        features: Features of the current hand frame
        feature_bounds: (min, max) normalization bounds per raw feature

    Returns:
        dict: Target value per continuous ControlState field
    """
    b = feature_bounds
    extension = normalize(features.finger_extension, *b['finger_extension'])
    palm_y = features.palm_center[1]
    return {
        'expansion': normalize(features.spread_distance, *b['spread_distance']),
        'swirl': normalize(features.tilt_normalized, *b['tilt_normalized']),
        # Raising the hand moves hue down the wheel
        'hue': min(360.0 - normalize(palm_y, *b['palm_y']) * 360.0, MAX_HUE),
        'intensity': extension,
        'burst': normalize(features.depth_variance, *b['depth_variance']) * extension,
    }


def smooth_toward(prior: ControlState, targets, rates, *, shape_index=None):
    """
    One exponential smoothing step of every continuous field toward ``targets``.

    ``rates`` is either a single rate for all fields or a per-field mapping.
    The result is clamped into bounds.
    """
    if isinstance(rates, (int, float)):
        rates = dict.fromkeys(CONTINUOUS_FIELDS, rates)
    values = {
        name: lerp(getattr(prior, name), targets[name], rates[name])
        for name in CONTINUOUS_FIELDS
    }
    if shape_index is None:
        shape_index = prior.shape_index
    return ControlState(shape_index=shape_index, **values).clamped()


def decay_control_state(
    prior: ControlState,
    *,
    neutral: ControlState = NEUTRAL_CONTROL_STATE,
    decay_rate: float = DFLT_DECAY_RATE,
) -> ControlState:
    """Relax the continuous fields toward ``neutral``, keeping ``shape_index``."""
    prior = prior.clamped()
    targets = {name: getattr(neutral, name) for name in CONTINUOUS_FIELDS}
    return smooth_toward(prior, targets, decay_rate)


# -------------------------------------------------------------------------------
# Processing
# -------------------------------------------------------------------------------


def process(
    frame: Optional[HandFrame],
    prior: ControlState,
    latch: LatchState,
    *,
    feature_bounds=DFLT_FEATURE_BOUNDS,
    smoothing_rates=DFLT_SMOOTHING_RATES,
    decay_rate: float = DFLT_DECAY_RATE,
    neutral: ControlState = NEUTRAL_CONTROL_STATE,
    pinch_enter_threshold: float = DFLT_PINCH_ENTER_THRESHOLD,
    pinch_exit_threshold: float = DFLT_PINCH_EXIT_THRESHOLD,
) -> Tuple[ControlState, DebugMetrics]:
    """
    Advance the control state by one inference tick.

    Args:
        frame: The detected hand, or None when no hand is visible
        prior: The previously published control state
        latch: The pinch latch; updated in place when a hand is present
        feature_bounds: Normalization bounds per raw feature
        smoothing_rates: Per-field smoothing rates for the hand-present path
        decay_rate: Shared rate used to relax toward ``neutral`` without a hand
        neutral: The resting control state
        pinch_enter_threshold: Pinch distance below which the latch closes
        pinch_exit_threshold: Pinch distance above which the latch reopens

    Returns:
        (ControlState, DebugMetrics)
    """
    # Unusable landmarks are treated like a missing hand
    if frame is None or not np.all(np.isfinite(frame.world)):
        control = decay_control_state(prior, neutral=neutral, decay_rate=decay_rate)
        return control, NO_HAND_DEBUG_METRICS

    features = extract_hand_features(frame)
    latch.update(
        features.pinch_distance,
        enter_threshold=pinch_enter_threshold,
        exit_threshold=pinch_exit_threshold,
    )
    targets = control_targets(features, feature_bounds=feature_bounds)
    control = smooth_toward(
        prior.clamped(), targets, smoothing_rates, shape_index=latch.shape_index
    )
    debug = DebugMetrics(
        pinch=features.pinch_distance,
        spread=features.spread_distance,
        openness=features.finger_extension,
        tilt=features.tilt_normalized,
    )
    return control, debug


class GestureProcessor:
    """
    Owns the pinch latch and the last control state, and advances them per tick.

    >>> processor = GestureProcessor()
    >>> control, debug = processor(None)
    >>> control.shape_index, debug.pinch
    (0, 1.0)
    """

    def __init__(
        self,
        initial_state: ControlState = NEUTRAL_CONTROL_STATE,
        **process_kwargs,
    ):
        self.control_state = initial_state.clamped()
        self.latch = LatchState(shape_index=self.control_state.shape_index)
        self.debug_metrics = NO_HAND_DEBUG_METRICS
        self.process_kwargs = process_kwargs

    def __call__(self, frame: Optional[HandFrame]) -> Tuple[ControlState, DebugMetrics]:
        self.control_state, self.debug_metrics = process(
            frame, self.control_state, self.latch, **self.process_kwargs
        )
        return self.control_state, self.debug_metrics
