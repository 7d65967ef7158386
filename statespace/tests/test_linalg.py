import numpy as np
import pytest

from numpy.testing import assert_allclose

from statespace.errors import NumericalError
from statespace.linalg import PINV_RTOL, _pinv, _sqrt_psd, pinv, sqrt_psd


def test_pinv_matches_numpy_on_singular_matrix():
    a = np.array([[1.0, 2.0, 3.0],
                  [2.0, 4.0, 6.0],
                  [1.0, 0.0, 1.0]])
    assert_allclose(pinv(a), np.linalg.pinv(a), atol=1e-10)


def test_pinv_rectangular():
    rng = np.random.default_rng(2)
    a = rng.normal(size=(5, 3))
    ia = pinv(a)
    assert ia.shape == (3, 5)
    assert_allclose(ia, np.linalg.pinv(a), atol=1e-10)
    assert_allclose(a @ ia @ a, a, atol=1e-10)


def test_pinv_of_invertible_matrix_is_inverse():
    a = np.array([[4.0, 1.0], [1.0, 3.0]])
    assert_allclose(pinv(a), np.linalg.inv(a), rtol=1e-12)


def test_pinv_of_zero_matrix():
    assert_allclose(pinv(np.zeros((2, 2))), np.zeros((2, 2)))


def test_pinv_of_augmented_covariance_block():
    # [[P, 0], [0, 0]] has a pseudoinverse [[P^-1, 0], [0, 0]].
    P = np.array([[2.0, 0.5], [0.5, 1.0]])
    a = np.zeros((3, 3))
    a[:2, :2] = P
    expected = np.zeros((3, 3))
    expected[:2, :2] = np.linalg.inv(P)
    assert_allclose(pinv(a), expected, atol=1e-12)


def test_pinv_rejects_non_finite():
    with pytest.raises(NumericalError):
        pinv(np.array([[1.0, np.nan], [0.0, 1.0]]))


def test_sqrt_psd_full_rank():
    cov = np.array([[2.0, 0.3], [0.3, 1.0]])
    L = sqrt_psd(cov)
    assert_allclose(L @ L.T, cov, atol=1e-12)


def test_sqrt_psd_rank_deficient():
    v = np.array([[1.0], [2.0], [-1.0]])
    cov = v @ v.T
    L = sqrt_psd(cov)
    assert np.all(np.isfinite(L))
    assert_allclose(L @ L.T, cov, atol=1e-12)


def test_sqrt_psd_clamps_rounding_noise():
    cov = np.array([[1.0, 1.0], [1.0, 1.0 - 1e-15]])
    L = sqrt_psd(cov)
    assert np.all(np.isfinite(L))
    assert_allclose(L @ L.T, cov, atol=1e-12)


def test_sqrt_psd_errors():
    with pytest.raises(NumericalError):
        sqrt_psd(np.array([[np.inf]]))
    with pytest.raises(ValueError):
        sqrt_psd(np.ones((2, 3)))


def test_kernels_match_python():
    rng = np.random.default_rng(3)
    a = rng.normal(size=(4, 4))
    cov = a @ a.T
    assert_allclose(_pinv(a, PINV_RTOL), _pinv.py_func(a, PINV_RTOL), atol=1e-10)
    L_nb = _sqrt_psd(cov)
    L_py = _sqrt_psd.py_func(cov)
    assert_allclose(L_nb @ L_nb.T, L_py @ L_py.T, atol=1e-10)
