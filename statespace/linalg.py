"""
Pseudoinverse and covariance square roots that tolerate rank deficiency.

The augmented state space of the simulation smoother has structurally
singular covariance matrices, so ordinary inverses and Cholesky factors are
never used in the recursions. The ``_``-prefixed kernels are numba compiled
and called from inside the filter and smoother loops; the public wrappers
check their input first.
"""

import numpy as np

from numba import jit

from .errors import NumericalError

# Singular values below PINV_RTOL * (largest singular value) are treated as zero.
PINV_RTOL = 1e-12


@jit(nopython=True)
def _pinv(a, rtol):
    u, s, vt = np.linalg.svd(a, full_matrices=False)
    cutoff = rtol * s.max()
    s_inv = np.zeros_like(s)
    for i in range(s.size):
        if s[i] > cutoff:
            s_inv[i] = 1.0 / s[i]
    return (vt.T * s_inv) @ u.T


@jit(nopython=True)
def _pinv_logdet(a, rtol):
    # Pseudoinverse together with the log pseudo-determinant (sum over retained
    # singular values).
    u, s, vt = np.linalg.svd(a, full_matrices=False)
    cutoff = rtol * s.max()
    s_inv = np.zeros_like(s)
    logdet = 0.0
    for i in range(s.size):
        if s[i] > cutoff:
            s_inv[i] = 1.0 / s[i]
            logdet += np.log(s[i])
    return (vt.T * s_inv) @ u.T, logdet


@jit(nopython=True)
def _sqrt_psd(cov):
    sym = 0.5 * (cov + cov.T)
    w, v = np.linalg.eigh(sym)
    w = np.maximum(w, 0.0)
    return v * np.sqrt(w)


def pinv(a, rtol=PINV_RTOL):
    """
    Moore-Penrose pseudoinverse via the SVD.

    Parameters
    ----------
    a : array_like
        Matrix to invert; may be singular or rectangular.
    rtol : float
        Relative cutoff for small singular values.

    Returns
    -------
    numpy.ndarray
        The pseudoinverse, of shape ``a.T.shape``.
    """
    a = np.ascontiguousarray(np.atleast_2d(np.asarray(a, dtype=float)))
    if a.size == 0:
        return np.zeros(a.T.shape)
    if not np.all(np.isfinite(a)):
        raise NumericalError("Cannot compute a pseudoinverse of a matrix with non-finite entries.")
    try:
        return _pinv(a, float(rtol))
    except np.linalg.LinAlgError as e:
        raise NumericalError(f"SVD failed while computing a pseudoinverse: {e}") from e


def sqrt_psd(cov):
    """
    Symmetric square root factor ``L`` with ``L @ L.T == cov``.

    Works for positive semi-definite (rank-deficient) covariance matrices:
    negative eigenvalues from rounding are set to zero.
    """
    cov = np.ascontiguousarray(np.atleast_2d(np.asarray(cov, dtype=float)))
    if cov.shape[0] != cov.shape[1]:
        raise ValueError(f"Covariance must be square, got {cov.shape}.")
    if not np.all(np.isfinite(cov)):
        raise NumericalError("Covariance matrix contains non-finite entries.")
    try:
        return _sqrt_psd(cov)
    except np.linalg.LinAlgError as e:
        raise NumericalError(f"Eigendecomposition of covariance failed: {e}") from e


__all__ = ["PINV_RTOL", "pinv", "sqrt_psd"]
