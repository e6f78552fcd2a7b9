"""
One-sided Jacobi singular value decomposition for small dense systems.

Used to solve homogeneous least-squares problems such as the 5-point conic fit:
the right singular vector paired with the smallest singular value is the
(approximate) null vector of the constraint matrix.

The sweep follows Nash's one-sided Jacobi scheme: column pairs of the data block
are rotated until mutually orthogonal, and every rotation is accumulated into an
identity block stacked underneath, which ends up holding V. Columns come out
ordered by decreasing norm, so the last column of V is the smallest singular
direction.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass

import numpy as np

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SVDResult:
    null_vector: np.ndarray  # (n,)
    singular_values: np.ndarray  # (n,), non-increasing up to convergence
    right_singular_vectors: np.ndarray  # (n,n), columns
    sweeps: int
    converged: bool


def max_sweeps(n: int) -> int:
    return 30 if n < 120 else min(30, n // 4)


def _rotate_columns(work: np.ndarray, j: int, k: int, c0: float, s0: float) -> None:
    d1 = work[:, j].copy()
    d2 = work[:, k].copy()
    work[:, j] = d1 * c0 + d2 * s0
    work[:, k] = -d1 * s0 + d2 * c0


def jacobi_svd(M: np.ndarray) -> SVDResult:
    """
    Decompose an (m,n) matrix with m <= n.

    Rows missing to make the system square are zero-padded. The working storage
    is a single (2n, n) buffer: data block on top, identity block below.

    Trailing columns whose squared norm drops below a threshold relative to the
    dominant one are deflated (excluded from further sweeps). Failure to converge
    within `max_sweeps(n)` is reported through `SVDResult.converged` and a log
    warning; the best approximation reached is still returned.
    """
    M = np.asarray(M, dtype=np.float64)
    if M.ndim != 2:
        raise ValueError("M must be 2D")
    m, n = M.shape
    if n < 2:
        raise ValueError("M must have at least 2 columns")
    if m > n:
        raise ValueError("M must not have more rows than columns")

    work = np.zeros((2 * n, n), dtype=np.float64)
    work[:m] = M
    work[n:] = np.eye(n, dtype=np.float64)
    data = work[:n]

    epsilon = 100.0 * float(np.finfo(np.float64).eps)
    e2 = 10.0 * n * epsilon * epsilon
    threshold = 0.1 * epsilon
    # Deflate once the singular value ratio itself drops below threshold.
    tol2 = threshold * threshold

    S2 = np.zeros(n, dtype=np.float64)
    rank = n
    cap = max_sweeps(n)
    sweeps = 0
    converged = False

    while sweeps < cap:
        sweeps += 1
        counter = rank * (rank - 1) // 2
        for j in range(rank - 1):
            for k in range(j + 1, rank):
                xj = data[:, j]
                xk = data[:, k]
                p = float(xj @ xk)
                q = float(xj @ xj)
                r = float(xk @ xk)
                S2[j] = q
                S2[k] = r
                if q >= r:
                    if q <= e2 * S2[0] or abs(p) <= threshold * q:
                        counter -= 1
                        continue
                    p /= q
                    r = 1.0 - r / q
                    vt = math.sqrt(4.0 * p * p + r * r)
                    c0 = math.sqrt(0.5 * (1.0 + r / vt))
                    s0 = p / (vt * c0)
                else:
                    # Sine-first formula; also swaps the column order.
                    p /= r
                    q = q / r - 1.0
                    vt = math.sqrt(4.0 * p * p + q * q)
                    s0 = math.sqrt(0.5 * (1.0 - q / vt))
                    if p < 0:
                        s0 = -s0
                    c0 = p / (vt * s0)
                _rotate_columns(work, j, k, c0, s0)

        while rank > 2 and S2[rank - 1] <= S2[0] * tol2 + tol2 * tol2:
            rank -= 1

        if counter == 0:
            converged = True
            break

    if not converged:
        logger.warning("Jacobi SVD did not converge after %d sweeps (n=%d)", sweeps, n)

    V = work[n:].copy()
    sv = np.sqrt(np.sum(data * data, axis=0))
    return SVDResult(
        null_vector=V[:, n - 1].copy(),
        singular_values=sv,
        right_singular_vectors=V,
        sweeps=sweeps,
        converged=converged,
    )


def smallest_singular_vector(M: np.ndarray) -> np.ndarray:
    """Unit vector v minimizing ||M v|| (right singular vector of the smallest singular value)."""
    return jacobi_svd(M).null_vector
