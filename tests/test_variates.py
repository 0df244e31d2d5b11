"""Unit tests for the Box-Muller variate generator."""

import numpy as np
import pytest

from valuecast.analysis.variates import RandomVariateGenerator, default_variates


class SequenceRng:
    """Uniform source that replays fixed values."""

    def __init__(self, values):
        self._values = list(values)

    def random(self):
        return self._values.pop(0)


class TestNext:
    def test_box_muller_transform(self):
        gen = RandomVariateGenerator(SequenceRng([0.25, 0.5]))
        expected = np.sqrt(-2 * np.log(0.25)) * np.cos(2 * np.pi * 0.5)
        assert gen.next() == pytest.approx(expected)

    def test_rejects_exact_zero(self):
        """A zero uniform would hit log(0); it must be redrawn."""
        gen = RandomVariateGenerator(SequenceRng([0.0, 0.25, 0.0, 0.5]))
        expected = np.sqrt(-2 * np.log(0.25)) * np.cos(2 * np.pi * 0.5)
        assert gen.next() == pytest.approx(expected)

    def test_returns_finite_float(self, variates):
        for _ in range(100):
            z = variates.next()
            assert isinstance(z, float)
            assert np.isfinite(z)


class TestDraw:
    def test_shape(self, variates):
        assert variates.draw(10).shape == (10,)
        assert variates.draw((4, 3, 12)).shape == (4, 3, 12)

    def test_standard_normal_moments(self, variates):
        z = variates.draw(50_000)
        assert abs(np.mean(z)) < 0.03
        assert np.std(z) == pytest.approx(1.0, abs=0.03)

    def test_all_finite(self, variates):
        assert np.all(np.isfinite(variates.draw(100_000)))


class TestSeeding:
    def test_same_seed_same_draws(self):
        a = RandomVariateGenerator.seeded(99).draw(1000)
        b = RandomVariateGenerator.seeded(99).draw(1000)
        np.testing.assert_array_equal(a, b)

    def test_different_seeds_differ(self):
        a = RandomVariateGenerator.seeded(1).draw(100)
        b = RandomVariateGenerator.seeded(2).draw(100)
        assert not np.array_equal(a, b)

    def test_instances_do_not_share_state(self):
        """Drawing from one generator must not shift another's stream."""
        a = RandomVariateGenerator.seeded(5)
        b = RandomVariateGenerator.seeded(5)
        a.draw(500)
        np.testing.assert_array_equal(b.draw(10), RandomVariateGenerator.seeded(5).draw(10))

    def test_default_variates_seeded(self):
        np.testing.assert_array_equal(default_variates(3).draw(5), default_variates(3).draw(5))

    def test_default_variates_unseeded(self):
        assert isinstance(default_variates(None), RandomVariateGenerator)
