"""
Planar helpers shared by the pose estimator.

Degenerate inputs (parallel lines, zero-length vectors, points at the eye plane)
are not rejected: the arithmetic is carried out in IEEE floating point and the
result is NaN. Callers that can do better (e.g. treat a vanishing point at
infinity explicitly) use the homogeneous variants.
"""

from __future__ import annotations

import numpy as np


def _four(values, name: str) -> np.ndarray:
    v = np.asarray(values, dtype=np.float64).reshape(-1)
    if v.shape[0] != 4:
        raise ValueError(f"{name} must hold exactly 4 values (two lines of two points)")
    return v


def intersect_lines_homogeneous(x, y) -> tuple[float, float, float]:
    """
    Intersection of the line through (x0,y0),(x1,y1) with the line through (x2,y2),(x3,y3).

    Returns homogeneous (X, Y, W) with the point at (X/W, Y/W). W is the 2x2
    determinant of the line directions, so parallel lines give W == 0 and (X, Y)
    is their common direction.
    """
    x = _four(x, "x")
    y = _four(y, "y")
    A = x[0] * y[1] - y[0] * x[1]
    B = x[2] * y[3] - y[2] * x[3]
    C = (x[0] - x[1]) * (y[2] - y[3]) - (y[0] - y[1]) * (x[2] - x[3])
    X = A * (x[2] - x[3]) - B * (x[0] - x[1])
    Y = A * (y[2] - y[3]) - B * (y[0] - y[1])
    return float(X), float(Y), float(C)


def intersect_lines(x, y) -> tuple[float, float]:
    """
    Cartesian intersection of two 2-point lines (see `intersect_lines_homogeneous`).

    Parallel lines yield NaN.
    """
    X, Y, W = intersect_lines_homogeneous(x, y)
    W = np.where(W == 0, np.nan, W)
    return float(X / W), float(Y / W)


def central_projection(coordinates, plane_distance: float) -> tuple[float, float]:
    """
    Project a 3D vector from the origin onto the plane z = plane_distance.

    Returns the (x, y) coordinates of the hit point. Vectors parallel to the
    plane give NaN.
    """
    v = np.asarray(coordinates, dtype=np.float64).reshape(3)
    z = np.where(v[2] == 0, np.nan, v[2])
    stretch = np.float64(plane_distance) / z
    return float(v[0] * stretch), float(v[1] * stretch)


def normalize2d(x: float, y: float) -> tuple[float, float]:
    """Scale (x, y) to unit length. The zero vector gives NaN."""
    norm = np.hypot(np.float64(x), np.float64(y))
    norm = np.where(norm == 0, np.nan, norm)
    return float(x / norm), float(y / norm)
