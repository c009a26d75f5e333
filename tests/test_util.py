"""Tests for the numeric helpers and object resolution."""

import numpy as np
import pytest

from gesturefield.util import (
    RangeMapper,
    clamp,
    hsl_to_rgb,
    lerp,
    normalize,
    resolve_object,
    wrap_degrees,
)


class TestScalarMath:
    """Test suite for clamp, lerp and normalize."""

    def test_clamp_bounds(self):
        assert clamp(5, 0, 1) == 1
        assert clamp(-5, 0, 1) == 0
        assert clamp(0.5, 0, 1) == 0.5

    def test_lerp_endpoints(self):
        assert lerp(2.0, 4.0, 0.0) == 2.0
        assert lerp(2.0, 4.0, 1.0) == 4.0
        assert lerp(2.0, 4.0, 0.5) == pytest.approx(3.0)

    def test_lerp_works_on_arrays(self):
        out = lerp(np.zeros(3), np.ones(3), 0.25)
        assert np.allclose(out, 0.25)

    def test_normalize_clamps_outside_range(self):
        assert normalize(-1.0, 0.0, 2.0) == 0.0
        assert normalize(3.0, 0.0, 2.0) == 1.0
        assert normalize(0.5, 0.0, 2.0) == pytest.approx(0.25)

    def test_normalize_degenerate_range(self):
        """A zero-width range maps everything to 0, without dividing by zero."""
        assert normalize(5.0, 1.0, 1.0) == 0.0


class TestWrapDegrees:
    """Test suite for wrap_degrees."""

    def test_scalar_in_range_is_unchanged(self):
        assert wrap_degrees(123.5) == pytest.approx(123.5)

    def test_exactly_360_wraps_to_zero(self):
        assert wrap_degrees(360.0) == 0.0

    def test_array(self):
        out = wrap_degrees(np.array([-10.0, 0.0, 350.0, 725.0]))
        assert np.allclose(out, [350.0, 0.0, 350.0, 5.0])
        assert np.all((out >= 0) & (out < 360))


class TestRangeMapper:
    """Test suite for RangeMapper."""

    def test_maps_and_clamps(self):
        mapper = RangeMapper((0.0, 1.0), (0.35, 1.85))
        assert mapper(0.0) == pytest.approx(0.35)
        assert mapper(1.0) == pytest.approx(1.85)
        assert mapper(0.5) == pytest.approx(1.1)
        assert mapper(2.0) == pytest.approx(1.85)

    def test_degenerate_value_range(self):
        mapper = RangeMapper((1.0, 1.0), (0.0, 10.0))
        assert mapper(0.0) == 0.0
        assert mapper(5.0) == 10.0


class TestHslToRgb:
    """Test suite for hsl_to_rgb."""

    def test_primary_colors(self):
        assert np.allclose(hsl_to_rgb(1 / 3, 1.0, 0.5), [0.0, 1.0, 0.0])
        assert np.allclose(hsl_to_rgb(2 / 3, 1.0, 0.5), [0.0, 0.0, 1.0])

    def test_vectorized_shape_and_range(self):
        hues = np.linspace(0.0, 0.99, 50)
        rgb = hsl_to_rgb(hues, 0.8, 0.6)
        assert rgb.shape == (50, 3)
        assert np.all((rgb >= 0.0) & (rgb <= 1.0))


class TestResolveObject:
    """Test suite for resolve_object."""

    def test_unknown_name_raises_value_error(self):
        with pytest.raises(ValueError):
            resolve_object('nope', object_map={'a': 1})

    def test_wrong_type_raises_type_error(self):
        with pytest.raises(TypeError):
            resolve_object(1.5, object_map={}, expected_type=int)

    def test_callable_passes_through(self):
        def func():
            pass

        assert resolve_object(func, object_map={'other': print}) is func
