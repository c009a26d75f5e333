"""Particle animation engine.

Every render tick, ``ParticleEngine.tick`` reads the latest ``ControlState``,
pulls each particle toward its slot in the active shape template (scaled,
rotated and jittered), integrates velocities and positions in place, and
derives what a renderer needs: display positions, scales and colors.

All per-particle math is vectorized over numpy arrays of shape (n, 3).
"""

import math
from dataclasses import dataclass
from typing import Callable, Optional, Sequence, Tuple, Union

import numpy as np

from gesturefield.gesture import ControlState
from gesturefield.shapes import (
    DFLT_PARTICLE_COUNT,
    ShapeTemplate,
    make_shape_templates,
    resolve_template_index,
)
from gesturefield.util import (
    RangeMapper,
    clamp,
    hsl_to_rgb,
    lerp,
    resolve_object,
    wrap_degrees,
)

EXPANSION_RANGE = (0.35, 1.85)
GLOW_RANGE = (0.2, 1.0)
STEP_SCALE_RANGE = (0.45, 1.8)
REFERENCE_FPS = 60
HUE_SPREAD_DEGREES = 40.0
DFLT_MAX_SUBSTEPS = 4

expansion_factor = RangeMapper((0.0, 1.0), EXPANSION_RANGE)


# -------------------------------------------------------------------------------
# State and output
# -------------------------------------------------------------------------------


@dataclass(eq=False)
class ParticleState:
    """
    Per-particle kinematics, owned and mutated by the engine only.

    Attributes:
        positions: (n, 3) current positions
        velocities: (n, 3) current velocities (per reference frame)
        step_accumulator: Unconsumed time, in seconds, for the fixed-step policy
    """

    positions: np.ndarray
    velocities: np.ndarray
    step_accumulator: float = 0.0

    def __post_init__(self):
        self.positions = np.array(self.positions, dtype=np.float64)
        self.velocities = np.array(self.velocities, dtype=np.float64)
        if self.positions.ndim != 2 or self.positions.shape[1] != 3:
            raise ValueError(f"positions must be (n, 3), got {self.positions.shape}")
        if self.velocities.shape != self.positions.shape:
            raise ValueError(
                f"velocities shape {self.velocities.shape} does not match "
                f"positions shape {self.positions.shape}"
            )

    def __len__(self):
        return len(self.positions)

    @classmethod
    def random(
        cls,
        n_particles: int = DFLT_PARTICLE_COUNT,
        *,
        seed=None,
        position_spread=2.2,
        velocity_spread=0.02,
    ) -> 'ParticleState':
        """Small random jitter around the origin, used once at startup."""
        rng = np.random.default_rng(seed)
        return cls(
            positions=(rng.random((n_particles, 3)) - 0.5) * position_spread,
            velocities=(rng.random((n_particles, 3)) - 0.5) * velocity_spread,
        )

    def copy(self) -> 'ParticleState':
        return ParticleState(
            self.positions.copy(), self.velocities.copy(), self.step_accumulator
        )


@dataclass(frozen=True, eq=False)
class ParticleFrame:
    """
    What the renderer draws for one tick.

    Attributes:
        positions: (n, 3) display positions (state positions plus visual wobble)
        scales: (n,) uniform scale per particle
        colors: (n, 3) RGB colors in [0, 1]
        group_rotation: (pitch, yaw) applied to the whole field, in radians
        template_name: Name of the active shape template
    """

    positions: np.ndarray
    scales: np.ndarray
    colors: np.ndarray
    group_rotation: Tuple[float, float]
    template_name: str

    def __len__(self):
        return len(self.positions)


# -------------------------------------------------------------------------------
# Step policies
# -------------------------------------------------------------------------------


def _finite_or_zero(x) -> float:
    x = float(x)
    return x if math.isfinite(x) else 0.0


def clamped_step_scales(delta_time: float, state: ParticleState, **kwargs):
    """
    One integration step per tick, scaled by ``delta_time * 60`` and clamped.

    The clamp keeps a long pause (e.g. a hidden window) from producing a huge
    jump, and a very short frame from stalling the motion.
    """
    scale = clamp(_finite_or_zero(delta_time) * REFERENCE_FPS, *STEP_SCALE_RANGE)
    return [scale]


def fixed_step_scales(
    delta_time: float, state: ParticleState, *, max_substeps=DFLT_MAX_SUBSTEPS
):
    """
    Unit steps of 1/60 s, as many as the accumulated time allows.

    Makes the motion independent of the frame rate. Time beyond
    ``max_substeps`` steps is dropped rather than caught up.
    """
    fixed_dt = 1.0 / REFERENCE_FPS
    state.step_accumulator += max(_finite_or_zero(delta_time), 0.0)
    n_steps = min(int(state.step_accumulator / fixed_dt), max_substeps)
    state.step_accumulator -= n_steps * fixed_dt
    if n_steps == max_substeps:
        state.step_accumulator = min(state.step_accumulator, fixed_dt)
    return [1.0] * n_steps


step_policies = {
    "clamped": clamped_step_scales,
    "fixed": fixed_step_scales,
}

DFLT_STEP_POLICY = "clamped"


# -------------------------------------------------------------------------------
# Geometry
# -------------------------------------------------------------------------------


def rotation_matrix(yaw: float, pitch: float) -> np.ndarray:
    """Rotation about y by ``yaw``, followed by rotation about x by ``pitch``."""
    cy, sy = math.cos(yaw), math.sin(yaw)
    cx, sx = math.cos(pitch), math.sin(pitch)
    rot_y = np.array([[cy, 0.0, -sy], [0.0, 1.0, 0.0], [sy, 0.0, cy]])
    rot_x = np.array([[1.0, 0.0, 0.0], [0.0, cx, -sx], [0.0, sx, cx]])
    return rot_x @ rot_y


def field_rotation(swirl_angle: float, elapsed_time: float) -> Tuple[float, float]:
    """
    (yaw, pitch) of the whole formation.

    Yaw keeps turning slowly with time so the field moves even with a still hand.
    """
    yaw = swirl_angle * 0.35 + elapsed_time * 0.18
    pitch = math.sin(elapsed_time * 0.2) * 0.15 + (swirl_angle - math.pi) * 0.05
    return yaw, pitch


# -------------------------------------------------------------------------------
# Engine
# -------------------------------------------------------------------------------


class ParticleEngine:
    """
    Advances a ``ParticleState`` toward the active shape template.

    Args:
        templates: Precomputed shape templates (all with the same particle count).
            Built with ``make_shape_templates(n_particles)`` if not given.
        n_particles: Particle count, used only when ``templates`` is None.
        step_policy: Name (or function) deciding the integration step scales
            for a tick's ``delta_time``. See ``step_policies``.
    """

    def __init__(
        self,
        templates: Optional[Sequence[ShapeTemplate]] = None,
        *,
        n_particles: int = DFLT_PARTICLE_COUNT,
        step_policy: Union[str, Callable] = DFLT_STEP_POLICY,
    ):
        if templates is None:
            templates = make_shape_templates(n_particles)
        self.templates = tuple(templates)
        if not self.templates:
            raise ValueError("At least one shape template is needed")
        self.n_particles = len(self.templates[0])
        if any(len(t) != self.n_particles for t in self.templates):
            raise ValueError("All shape templates must have the same particle count")

        self.step_policy = resolve_object(step_policy, object_map=step_policies)

        # Per-particle constants
        self._index = np.arange(self.n_particles, dtype=np.float64)
        self._hue_offsets = self._index / self.n_particles * HUE_SPREAD_DEGREES

    def new_state(self, *, seed=None) -> ParticleState:
        """A freshly jittered state sized for this engine."""
        return ParticleState.random(self.n_particles, seed=seed)

    def active_template(self, control: ControlState) -> ShapeTemplate:
        i = resolve_template_index(control.shape_index, len(self.templates))
        return self.templates[i]

    def tick(
        self,
        control: ControlState,
        elapsed_time: float,
        delta_time: float,
        state: ParticleState,
    ) -> ParticleFrame:
        """
        Advance ``state`` in place by one render tick and derive the frame.

        Args:
            control: The latest published control state
            elapsed_time: Seconds since the animation started
            delta_time: Seconds since the previous tick
            state: The particle state to advance

        Returns:
            ParticleFrame
        """
        if len(state) != self.n_particles:
            raise ValueError(
                f"State has {len(state)} particles, engine expects {self.n_particles}"
            )
        control = control.clamped()
        t = _finite_or_zero(elapsed_time)
        i = self._index

        template = self.active_template(control)
        expansion = expansion_factor(control.expansion)
        swirl_angle = control.swirl * 2 * math.pi
        glow = clamp(control.intensity, *GLOW_RANGE)
        burst = clamp(control.burst, 0.0, 1.0)

        yaw, pitch = field_rotation(swirl_angle, t)
        rotated = (template.offsets * expansion) @ rotation_matrix(yaw, pitch).T

        # Per-particle jitter, its amplitude grows with burst
        jitter = burst * 0.5
        noise = np.stack(
            [
                np.sin(t * 1.8 + i) * jitter * 0.35,
                np.sin(t * 0.6 + i * 0.05) * 0.02
                + np.cos(t * 1.4 + i * 0.5) * jitter * 0.25,
                np.sin(t * 2.2 + i * 0.25) * jitter * 0.5,
            ],
            axis=-1,
        )
        destination = rotated + noise

        rate = 0.08 + burst * 0.05
        for step_scale in self.step_policy(delta_time, state):
            state.velocities = lerp(
                state.velocities, destination - state.positions, rate
            )
            state.positions = state.positions + state.velocities * step_scale

        # Visual-only wobble, not fed back into the state
        wobble = 0.012 + burst * 0.04
        wobble_offsets = np.stack(
            [
                np.sin(t + i),
                np.cos(t * 1.15 + i * 0.5),
                np.sin(t * 0.9 + i * 0.25),
            ],
            axis=-1,
        )
        display_positions = state.positions + wobble_offsets * wobble

        base_scale = 0.035 + glow * 0.08 + burst * 0.05
        scales = base_scale * (1 + np.sin(t * 2 + i * 0.02) * 0.12 * (1 + burst))

        hue = wrap_degrees(control.hue + self._hue_offsets) / 360.0
        saturation = clamp(0.55 + glow * 0.35, 0.0, 1.0)
        luminance = clamp(0.45 + burst * 0.25, 0.2, 0.9)
        colors = hsl_to_rgb(hue, saturation, luminance)

        return ParticleFrame(
            positions=display_positions,
            scales=scales,
            colors=colors,
            group_rotation=(pitch * 0.4, yaw * 0.3),
            template_name=template.name,
        )
