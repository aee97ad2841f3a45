"""
Tests for Monte Carlo uncertain values.
"""
import numpy as np
import pytest

from mlx_thermal_reader.uncertain import UncertainValue, ensemble_size, expected, sqrt, uniform


def test_uniform_support_and_shape():
    value = uniform(0.93, 0.97, size=5000, rng=np.random.default_rng(0))
    low, high = value.support()
    assert value.shape == ()
    assert value.ensemble_size == 5000
    assert 0.93 <= low < high < 0.97
    assert value.mean() == pytest.approx(0.95, abs=2e-3)


def test_uniform_per_element_bounds():
    codes = np.array([10.0, 20.0, 30.0])
    value = uniform(codes - 0.5, codes + 0.5, size=100, rng=np.random.default_rng(1))
    assert value.shape == (3,)
    assert value.samples.shape == (3, 100)
    assert np.all(np.abs(value.samples - codes[:, np.newaxis]) <= 0.5)


def test_uniform_rejects_empty_ensemble():
    with pytest.raises(ValueError):
        uniform(0, 1, size=0)


def test_seeded_draws_are_reproducible():
    a = uniform(0, 1, size=50, rng=np.random.default_rng(42))
    b = uniform(0, 1, size=50, rng=np.random.default_rng(42))
    np.testing.assert_array_equal(a.samples, b.samples)


def test_exact_operands_broadcast():
    value = UncertainValue([1.0, 2.0, 3.0])
    np.testing.assert_allclose((value + 1).samples, [2, 3, 4])
    np.testing.assert_allclose((2 * value).samples, [2, 4, 6])
    np.testing.assert_allclose((6 / value).samples, [6, 3, 2])
    np.testing.assert_allclose((1 - value).samples, [0, -1, -2])
    np.testing.assert_allclose((value ** 2).samples, [1, 4, 9])
    np.testing.assert_allclose((-value).samples, [-1, -2, -3])


def test_numpy_arrays_defer_to_uncertain_operators():
    value = UncertainValue([1.0, 2.0])
    pixels = np.array([10.0, 20.0, 30.0])
    result = pixels * value
    assert isinstance(result, UncertainValue)
    assert result.shape == (3,)
    np.testing.assert_allclose(result.samples, [[10, 20], [20, 40], [30, 60]])


def test_members_stay_correlated():
    value = uniform(0.9, 1.0, size=200, rng=np.random.default_rng(3))
    np.testing.assert_allclose((value - value).samples, 0.0)
    np.testing.assert_allclose((value / value).samples, 1.0)


def test_mixed_ensemble_sizes_rejected():
    with pytest.raises(ValueError):
        UncertainValue([1.0, 2.0]) + UncertainValue([1.0, 2.0, 3.0])
    with pytest.raises(ValueError):
        ensemble_size(UncertainValue([1.0]), UncertainValue([1.0, 2.0]))
    assert ensemble_size(1.0, UncertainValue([1.0, 2.0])) == 2
    assert ensemble_size(1.0, 2.0) is None


def test_comparisons_are_per_member():
    value = UncertainValue([1.0, 5.0, 3.0])
    np.testing.assert_array_equal(value < 3, [True, False, False])
    np.testing.assert_array_equal(value >= 3, [False, True, True])


def test_sqrt_and_reductions():
    value = UncertainValue([4.0, 16.0])
    np.testing.assert_allclose(sqrt(value).samples, [2, 4])
    assert sqrt(9.0) == 3.0
    assert value.mean() == 10.0
    assert value.std() == pytest.approx(6.0)
    assert value.var() == pytest.approx(36.0)
    assert value.quantile(0.5) == pytest.approx(10.0)
    assert float(value) == 10.0
    assert expected(value) == 10.0
    assert expected(2.5) == 2.5


def test_samples_are_read_only():
    value = UncertainValue([1.0, 2.0])
    with pytest.raises(ValueError):
        value.samples[0] = 3.0


def test_indexing_pixels():
    value = UncertainValue([[1.0, 2.0], [3.0, 4.0]])
    assert value[1].mean() == 3.5
    with pytest.raises(TypeError):
        UncertainValue([1.0, 2.0])[0]
    with pytest.raises(TypeError):
        float(value)
