"""
Ellipse analysis for the projection of a real-world circle.

A general conic a x^2 + b xy + c y^2 + d x + f y + g = 0 is fitted to five image
points (null vector of the 5x6 design matrix, see `perspectivekit.core.svd`).
Center, orientation and semi-axes follow MathWorld's "Ellipse" article, eq. (15)
onwards, on the half-coefficient form (a, b/2, c, d/2, f/2, g).

The ellipse "vertex" is the image direction in which the circle's plane recedes
most steeply: it lies on the minor axis, at a distance from the image origin set
by the axis ratio and the focal length.
"""

from __future__ import annotations

import math
from dataclasses import dataclass

import numpy as np

from perspectivekit.core.svd import jacobi_svd


@dataclass(frozen=True)
class ConicParameters:
    a: float
    b: float
    c: float
    d: float
    f: float
    g: float

    def as_array(self) -> np.ndarray:
        return np.array([self.a, self.b, self.c, self.d, self.f, self.g], dtype=np.float64)

    def evaluate(self, x, y) -> np.ndarray:
        x = np.asarray(x, dtype=np.float64)
        y = np.asarray(y, dtype=np.float64)
        return self.a * x * x + self.b * x * y + self.c * y * y + self.d * x + self.f * y + self.g


@dataclass(frozen=True)
class EllipseGeometry:
    conic: ConicParameters
    center_x: float
    center_y: float
    phi: float  # major-axis angle, in (-pi/2, pi/2]
    semi_major: float
    semi_minor: float
    vertex_homogeneous: tuple[float, float, float]
    converged: bool

    @property
    def vertex(self) -> tuple[float, float]:
        """Vertex in image coordinates; NaN when it lies at infinity (circle seen head-on)."""
        X, Y, W = self.vertex_homogeneous
        W = np.where(W == 0, np.nan, W)
        return float(X / W), float(Y / W)


def conic_design_matrix(x, y) -> np.ndarray:
    x = np.asarray(x, dtype=np.float64).reshape(-1)
    y = np.asarray(y, dtype=np.float64).reshape(-1)
    return np.stack([x * x, x * y, y * y, x, y, np.ones_like(x)], axis=1)


def fit_conic(x, y) -> tuple[ConicParameters, bool]:
    """Conic through five points, as the smallest singular vector of the design matrix."""
    x = np.asarray(x, dtype=np.float64).reshape(-1)
    y = np.asarray(y, dtype=np.float64).reshape(-1)
    if x.shape[0] != 5 or y.shape[0] != 5:
        raise ValueError("exactly 5 points are required to fit a conic")
    res = jacobi_svd(conic_design_matrix(x, y))
    v = res.null_vector
    return ConicParameters(*(float(t) for t in v)), res.converged


def _normalize_half_turn(phi: float) -> float:
    # Into (-pi/2, pi/2], so that the vertex half-plane is top/bottom rather than left/right.
    return math.pi / 2 - (math.pi / 2 - phi) % math.pi


def analyse_ellipse(x, y, focal_length_normalized: float) -> EllipseGeometry:
    """
    Fit an ellipse to 5 points on the image of a circle and locate its vertex.

    The vertex defaults to the top (negative y) end of the minor axis; the
    orientation of the first two points around the center picks the other end.
    A zero discriminant (b^2 - ac) is not guarded: NaN/Inf propagates.
    """
    x = np.asarray(x, dtype=np.float64).reshape(-1)
    y = np.asarray(y, dtype=np.float64).reshape(-1)
    conic, converged = fit_conic(x, y)
    fn = np.float64(focal_length_normalized)

    a = np.float64(conic.a)
    b = np.float64(conic.b) / 2
    c = np.float64(conic.c)
    d = np.float64(conic.d) / 2
    f = np.float64(conic.f) / 2
    g = np.float64(conic.g)

    with np.errstate(divide="ignore", invalid="ignore"):
        D = b * b - a * c
        x0 = (c * d - b * f) / D
        y0 = (a * f - b * d) / D

        phi = 0.5 * np.arctan(2 * b / (a - c))
        if a > c:
            phi += np.pi / 2

        N = 2 * (a * f * f + c * d * d + g * b * b - 2 * b * d * f - a * c * g) / D
        S = np.sqrt((a - c) ** 2 + 4 * b * b)
        R = a + c
        semi_a = np.sqrt(N / (S - R))
        semi_b = np.sqrt(N / (-S - R))
        if semi_a < semi_b:
            semi_a, semi_b = semi_b, semi_a
            phi -= np.pi / 2
        phi = _normalize_half_turn(float(phi))

        # Negative: a vertex at the top is the default.
        sign = -1.0
        if (x[0] - x0) * (y[1] - y0) < (x[1] - x0) * (y[0] - y0):
            sign = 1.0
        w = np.sqrt((semi_a / semi_b) ** 2 - 1)

    vertex = (
        float(-sign * fn * math.sin(phi)),
        float(sign * fn * math.cos(phi)),
        float(w),
    )
    return EllipseGeometry(
        conic=conic,
        center_x=float(x0),
        center_y=float(y0),
        phi=phi,
        semi_major=float(semi_a),
        semi_minor=float(semi_b),
        vertex_homogeneous=vertex,
        converged=converged,
    )
