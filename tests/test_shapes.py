"""Tests for the shape template table."""

import numpy as np
import pytest

from gesturefield.shapes import (
    DFLT_SHAPE_NAMES,
    make_shape_template,
    make_shape_templates,
    resolve_template_index,
    shape_template_funcs,
)


class TestShapeTemplates:
    """Test suite for template generation."""

    def test_default_table(self):
        templates = make_shape_templates(200)
        assert [t.name for t in templates] == list(DFLT_SHAPE_NAMES)
        assert len(templates) == 5
        for template in templates:
            assert template.offsets.shape == (200, 3)
            assert np.all(np.isfinite(template.offsets))

    def test_templates_are_read_only(self):
        template = make_shape_template('rings', 50)
        with pytest.raises(ValueError):
            template.offsets[0, 0] = 0.0

    def test_same_seed_same_template(self):
        a = make_shape_template('nebula', 100, seed=3)
        b = make_shape_template('nebula', 100, seed=3)
        assert np.array_equal(a.offsets, b.offsets)

    def test_every_formation_handles_a_single_particle(self):
        for name in shape_template_funcs:
            assert make_shape_template(name, 1).offsets.shape == (1, 3)

    def test_sphere_radius(self):
        offsets = make_shape_template('sphere', 300).offsets
        assert np.allclose(np.linalg.norm(offsets, axis=1), 1.4)

    def test_subset_in_given_order(self):
        templates = make_shape_templates(10, ['sphere', 'blossom'])
        assert [t.name for t in templates] == ['sphere', 'blossom']

    def test_unknown_name(self):
        with pytest.raises(ValueError):
            make_shape_templates(10, ['sphere', 'donut'])

    def test_invalid_counts(self):
        with pytest.raises(ValueError):
            make_shape_templates(0)
        with pytest.raises(ValueError):
            make_shape_templates(10, [])


class TestResolveTemplateIndex:
    """Test suite for resolve_template_index."""

    def test_index_always_valid(self):
        for count in range(1, 7):
            for shape_index in range(50):
                assert 0 <= resolve_template_index(shape_index, count) < count

    def test_cycles(self):
        assert [resolve_template_index(i, 3) for i in range(7)] == [0, 1, 2, 0, 1, 2, 0]

    def test_empty_table(self):
        with pytest.raises(ValueError):
            resolve_template_index(1, 0)
