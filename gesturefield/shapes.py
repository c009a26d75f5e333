"""Target formations the particle field morphs between.

Each template is an (n_particles, 3) array of offsets, generated once at
startup from a seeded generator and then frozen (read-only). Particle ``i``
always heads to row ``i`` of the active template.
"""

from dataclasses import dataclass
from typing import Callable, Dict, Iterable, Tuple

import numpy as np

DFLT_PARTICLE_COUNT = 1600
DFLT_TEMPLATE_SEED = 7


@dataclass(frozen=True, eq=False)
class ShapeTemplate:
    """A named, read-only array of per-particle target offsets."""

    name: str
    offsets: np.ndarray

    def __len__(self):
        return len(self.offsets)


# -------------------------------------------------------------------------------
# Formations
# -------------------------------------------------------------------------------


def _unit_vectors(rng: np.random.Generator, n: int) -> np.ndarray:
    v = rng.normal(size=(n, 3))
    norms = np.linalg.norm(v, axis=1, keepdims=True)
    norms[norms == 0] = 1.0
    return v / norms


def sphere_offsets(n: int, rng: np.random.Generator, *, radius=1.4) -> np.ndarray:
    """Evenly spread points on a sphere (Fibonacci lattice)."""
    golden = np.pi * (3 - np.sqrt(5))
    i = np.arange(n, dtype=float)
    y = 1 - (i / max(n - 1, 1)) * 2
    r = np.sqrt(np.clip(1 - y * y, 0, 1))
    theta = golden * i
    points = np.stack([np.cos(theta) * r, y, np.sin(theta) * r], axis=-1)
    return points * radius


def nebula_offsets(n: int, rng: np.random.Generator, *, arms=3, radius=1.8):
    """A flattened spiral galaxy with a few trailing arms."""
    r = radius * np.sqrt(rng.uniform(0.0, 1.0, size=n))
    arm = rng.integers(0, arms, size=n)
    angle = arm * (2 * np.pi / arms) + r * 2.2 + rng.normal(0.0, 0.25, size=n)
    thickness = 0.12 * (1 - r / (radius * 1.2))
    return np.stack(
        [
            np.cos(angle) * r,
            rng.normal(0.0, 1.0, size=n) * thickness,
            np.sin(angle) * r,
        ],
        axis=-1,
    )


def blossom_offsets(n: int, rng: np.random.Generator, *, petals=5, radius=1.5):
    """A five-petal rose curve, cupped slightly toward the viewer."""
    theta = rng.uniform(0.0, 2 * np.pi, size=n)
    fill = np.sqrt(rng.uniform(0.05, 1.0, size=n))
    r = radius * np.abs(np.cos(petals / 2 * theta)) * fill
    cup = 0.4 * (r / radius) ** 2 - 0.2
    jitter = rng.normal(0.0, 0.02, size=(n, 3))
    return np.stack([np.cos(theta) * r, np.sin(theta) * r, cup], axis=-1) + jitter


def rings_offsets(
    n: int,
    rng: np.random.Generator,
    *,
    radii=(0.7, 1.2, 1.7),
    tilts=(0.0, 0.5, -0.35),
    tube=0.06,
):
    """Concentric rings, each tilted about the x axis by its own angle."""
    ring = np.arange(n) % len(radii)
    radius = np.asarray(radii, dtype=float)[ring]
    tilt = np.asarray(tilts, dtype=float)[ring]
    theta = rng.uniform(0.0, 2 * np.pi, size=n)
    x = np.cos(theta) * radius
    z = np.sin(theta) * radius
    y = np.zeros(n)
    y, z = y * np.cos(tilt) - z * np.sin(tilt), y * np.sin(tilt) + z * np.cos(tilt)
    return np.stack([x, y, z], axis=-1) + rng.normal(0.0, tube, size=(n, 3))


def supernova_offsets(
    n: int, rng: np.random.Generator, *, core_fraction=0.3, radius=1.6
):
    """A dense core inside an expanding shell with ragged rays."""
    n_core = int(n * core_fraction)
    directions = _unit_vectors(rng, n)
    core_r = np.abs(rng.normal(0.0, 0.3, size=n_core))
    shell_r = radius * (0.85 + 0.3 * rng.uniform(0.0, 1.0, size=n - n_core) ** 3)
    r = np.concatenate([core_r, shell_r])
    return directions * r[:, None]


# Dictionary of available formations, in pinch-cycling order
shape_template_funcs: Dict[str, Callable] = {
    "nebula": nebula_offsets,
    "blossom": blossom_offsets,
    "rings": rings_offsets,
    "supernova": supernova_offsets,
    "sphere": sphere_offsets,
}

DFLT_SHAPE_NAMES = tuple(shape_template_funcs)


# -------------------------------------------------------------------------------
# Template table
# -------------------------------------------------------------------------------


def make_shape_template(
    name: str, n_particles: int = DFLT_PARTICLE_COUNT, *, seed=DFLT_TEMPLATE_SEED
) -> ShapeTemplate:
    """Generate the named formation and freeze it."""
    if name not in shape_template_funcs:
        raise ValueError(f"Unknown shape template: {name}")
    rng = np.random.default_rng(seed)
    offsets = np.ascontiguousarray(
        shape_template_funcs[name](n_particles, rng), dtype=np.float64
    )
    offsets.setflags(write=False)
    return ShapeTemplate(name=name, offsets=offsets)


def make_shape_templates(
    n_particles: int = DFLT_PARTICLE_COUNT,
    names: Iterable[str] = DFLT_SHAPE_NAMES,
    *,
    seed=DFLT_TEMPLATE_SEED,
) -> Tuple[ShapeTemplate, ...]:
    """
    Build the template table once, for a fixed particle count.

    Raises:
        ValueError: If ``n_particles`` is not positive or no name is given.
    """
    if n_particles < 1:
        raise ValueError(f"n_particles must be positive, got {n_particles}")
    names = tuple(names)
    if not names:
        raise ValueError("At least one shape template is needed")
    return tuple(
        make_shape_template(name, n_particles, seed=seed + i)
        for i, name in enumerate(names)
    )


def resolve_template_index(shape_index: int, template_count: int) -> int:
    """
    Index of the active template for a (monotonic) shape counter.

    >>> resolve_template_index(7, 5)
    2
    >>> resolve_template_index(0, 1)
    0
    """
    if template_count < 1:
        raise ValueError("template_count must be at least 1")
    return int(shape_index) % template_count
