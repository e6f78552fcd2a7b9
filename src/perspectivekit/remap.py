"""
Per-pixel coordinate remaps.

Callbacks work in place on an (N,2) float array of normalized coordinates, one
(x, y) pair per row, and keep no state between pairs: a whole buffer is handled
as one vectorized numpy expression.
"""

from __future__ import annotations

from dataclasses import dataclass

import numpy as np

# Source coordinate reported for destination pixels whose ray misses the image.
FAR_AWAY = 1.6e16


def _coords(coords: np.ndarray) -> np.ndarray:
    if not isinstance(coords, np.ndarray) or coords.ndim != 2 or coords.shape[1] != 2:
        raise ValueError("coords must be an (N,2) numpy array")
    if not np.issubdtype(coords.dtype, np.floating):
        raise ValueError("coords must have a floating dtype")
    return coords


def _frozen(a: np.ndarray) -> np.ndarray:
    a = np.array(a, dtype=np.float64, copy=True)
    a.setflags(write=False)
    return a


@dataclass(frozen=True)
class CoefficientBundle:
    """
    Parameters of the perspective remap.

    `matrix` is the backward (destination -> source) rotation with its first
    two columns pre-multiplied by the mapping scale; `shift` is the residual
    re-centering shift divided by the mapping scale.
    """

    matrix: np.ndarray  # (3,3)
    focal_length_normalized: float
    shift: np.ndarray  # (2,)

    SIZE = 12

    def __post_init__(self) -> None:
        m = _frozen(self.matrix)
        s = _frozen(self.shift)
        if m.shape != (3, 3):
            raise ValueError("matrix must be 3x3")
        if s.shape != (2,):
            raise ValueError("shift must have 2 entries")
        object.__setattr__(self, "matrix", m)
        object.__setattr__(self, "shift", s)
        object.__setattr__(self, "focal_length_normalized", float(self.focal_length_normalized))

    def as_array(self) -> np.ndarray:
        """Flat layout: 9 matrix entries (row-major), focal length, shift (2)."""
        out = np.concatenate([self.matrix.reshape(-1), [self.focal_length_normalized], self.shift])
        out.setflags(write=False)
        return out

    @classmethod
    def from_array(cls, values) -> "CoefficientBundle":
        v = np.asarray(values, dtype=np.float64).reshape(-1)
        if v.shape[0] != cls.SIZE:
            raise ValueError(f"expected {cls.SIZE} values, got {v.shape[0]}")
        return cls(matrix=v[:9].reshape(3, 3), focal_length_normalized=float(v[9]), shift=v[10:12])


def perspective_remap(coords: np.ndarray, bundle: CoefficientBundle) -> np.ndarray:
    """
    Map destination coordinates to source coordinates, in place.

    Each point is shifted, lifted to (x, y, f), rotated by the bundle matrix and
    centrally projected back onto the plane z = f. Rays that end up behind the
    camera are sent to `FAR_AWAY`.
    """
    coords = _coords(coords)
    A = bundle.matrix
    f = bundle.focal_length_normalized
    x = coords[:, 0] + bundle.shift[0]
    y = coords[:, 1] + bundle.shift[1]

    z_ = A[2, 0] * x + A[2, 1] * y + A[2, 2] * f
    x_ = A[0, 0] * x + A[0, 1] * y + A[0, 2] * f
    y_ = A[1, 0] * x + A[1, 1] * y + A[1, 2] * f
    visible = z_ > 0
    stretch = f / np.where(visible, z_, np.nan)
    coords[:, 0] = np.where(visible, x_ * stretch, FAR_AWAY)
    coords[:, 1] = np.where(visible, y_ * stretch, FAR_AWAY)
    return coords


def radial_remap(coords: np.ndarray, k1: float) -> np.ndarray:
    """Rd = Ru * (1 - k1 + k1 * Ru^2), in place."""
    coords = _coords(coords)
    k1 = float(k1)
    poly2 = (1.0 - k1) + k1 * (coords[:, 0] ** 2 + coords[:, 1] ** 2)
    coords[:, 0] *= poly2
    coords[:, 1] *= poly2
    return coords


def bundle_radial_remap(coords: np.ndarray, bundle: CoefficientBundle) -> np.ndarray:
    """`radial_remap` driven by the first scalar of a bundle's flat layout."""
    return radial_remap(coords, float(bundle.as_array()[0]))
