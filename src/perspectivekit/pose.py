"""
Camera pose from user-marked reference points.

The marked points describe one of five real-world references; the point count
selects which (see `ReferenceConfiguration`). From them we derive:

- rho, delta: the rotation Rx(delta) . Ry(rho) that moves the "vertex" into the
  zenith. For rectangles and lines the vertex is the vanishing point of the
  verticals, for circles it is the ellipse vertex (`perspectivekit.core.conic`).
- rho_h: an extra rotation about the (new) vertical axis that sends the vanishing
  point of a horizontal reference line to infinity.
- alpha: the remaining in-plane roll, a quarter-turn snap.

Vanishing points are kept in homogeneous form so that parallel image lines (no
perspective at all along that direction) are handled as points at infinity.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field
from typing import ClassVar, Optional, Union

import numpy as np

from perspectivekit.core.conic import EllipseGeometry, analyse_ellipse
from perspectivekit.core.geometry import central_projection, intersect_lines_homogeneous, normalize2d
from perspectivekit.core.rotation import rotation_rho_delta, rotation_rho_delta_rho_h

logger = logging.getLogger(__name__)


class ReferenceConfigurationError(ValueError):
    pass


def _as_points(points) -> np.ndarray:
    pts = np.asarray(points, dtype=np.float64)
    if pts.ndim != 2 or pts.shape[1] != 2:
        raise ReferenceConfigurationError("points must be an (N,2) array of (x,y) pairs")
    pts = pts.copy()
    pts.setflags(write=False)
    return pts


@dataclass(frozen=True)
class _Reference:
    points: np.ndarray = field(repr=False)
    n_points: ClassVar[int] = 0

    def __post_init__(self) -> None:
        pts = _as_points(self.points)
        if pts.shape[0] != self.n_points:
            raise ReferenceConfigurationError(f"{type(self).__name__} needs exactly {self.n_points} points")
        object.__setattr__(self, "points", pts)


@dataclass(frozen=True)
class Rectangle4(_Reference):
    """Two vertical edges of a rectangle: lines (p0,p1) and (p2,p3)."""

    n_points: ClassVar[int] = 4


@dataclass(frozen=True)
class Circle5(_Reference):
    """Five points on the image of a circle."""

    n_points: ClassVar[int] = 5


@dataclass(frozen=True)
class Rectangle6WithLine(_Reference):
    """Rectangle edges (p0..p3) plus a horizontal reference line (p4,p5)."""

    n_points: ClassVar[int] = 6


@dataclass(frozen=True)
class Circle7WithLine(_Reference):
    """Circle points (p0..p4) plus a line (p5,p6) fixing the roll."""

    n_points: ClassVar[int] = 7


@dataclass(frozen=True)
class TwoLines8(_Reference):
    """Vertical pair (p0,p1),(p2,p3) and horizontal pair (p4,p5),(p6,p7)."""

    n_points: ClassVar[int] = 8


ReferenceConfiguration = Union[Rectangle4, Circle5, Rectangle6WithLine, Circle7WithLine, TwoLines8]

_BY_COUNT: dict[int, type] = {
    cls.n_points: cls for cls in (Rectangle4, Circle5, Rectangle6WithLine, Circle7WithLine, TwoLines8)
}
SUPPORTED_POINT_COUNTS = tuple(sorted(_BY_COUNT))


def reference_configuration_from_points(points) -> ReferenceConfiguration:
    pts = _as_points(points)
    cls = _BY_COUNT.get(pts.shape[0])
    if cls is None:
        raise ReferenceConfigurationError(
            f"got {pts.shape[0]} points, expected one of {list(SUPPORTED_POINT_COUNTS)}"
        )
    return cls(pts)


@dataclass(frozen=True)
class PoseAngles:
    rho: float
    delta: float
    rho_h: float
    alpha: float

    def as_tuple(self) -> tuple[float, float, float, float]:
        return self.rho, self.delta, self.rho_h, self.alpha


@dataclass(frozen=True)
class PoseEstimate:
    angles: PoseAngles
    centroid: tuple[float, float]
    focal_length_normalized: float  # may differ from the input for TwoLines8
    vertex_homogeneous: tuple[float, float, float]
    swapped_axes: bool
    configuration: ReferenceConfiguration
    ellipse: Optional[EllipseGeometry] = None


def _atan_ratio(num: float, den: float) -> float:
    """atan(num / den) for den >= 0, with den == 0 read as the limit at +0."""
    if den == 0.0:
        return 0.0 if num == 0.0 else math.copysign(math.pi / 2, num)
    return math.atan(num / den)


def _canonical(vertex: tuple[float, float, float]) -> tuple[float, float, float]:
    X, Y, W = vertex
    if W < 0:
        return -X, -Y, -W
    return X, Y, W


def _refine_focal_length(
    vertex: tuple[float, float, float], horizontal: tuple[float, float, float], f: float
) -> float:
    """
    Focal length from two orthogonal vanishing points, if they admit one.

    With vanishing points v and h, orthogonality of the 3D directions gives
    f^2 = -(x_h x_v + y_h y_v).
    """
    Xv, Yv, Wv = vertex
    Xh, Yh, Wh = horizontal
    if Wv == 0.0 or Wh == 0.0:
        return f
    radicand = -(Xh * Xv + Yh * Yv) / (Wh * Wv)
    if radicand >= 0:
        return math.sqrt(radicand)
    return f


def determine_rho_h(
    rho: float,
    delta: float,
    x,
    y,
    focal_length_normalized: float,
    center_x: float,
    center_y: float,
) -> Optional[float]:
    """
    Rotation about the vertical that sends a horizontal line's vanishing point to infinity.

    The segment (x0,y0)-(x1,y1) is rotated by Rx(delta) . Ry(rho); its crossing
    with the horizontal plane y = 0 gives the horizontal vanishing direction.
    Returns None when undefined (the rotated segment lies in that plane), 0 when
    the segment is parallel to the plane.
    """
    f = float(focal_length_normalized)
    R = rotation_rho_delta(rho, delta)
    x0_, y0_, z0_ = R @ np.array([x[0], y[0], f], dtype=np.float64)
    x1_, y1_, z1_ = R @ np.array([x[1], y[1], f], dtype=np.float64)
    if y0_ == y1_:
        return None if y0_ == 0 else 0.0

    dx, dz = central_projection((x1_ - x0_, z1_ - z0_, y1_ - y0_), -y0_)
    x_h = x0_ + dx
    z_h = z0_ + dz
    if z_h == 0:
        rho_h = 0.0 if x_h > 0 else math.pi
    else:
        rho_h = math.pi / 2 - math.atan(x_h / z_h)
    center = rotation_rho_delta_rho_h(rho, delta, rho_h) @ np.array([center_x, center_y, f], dtype=np.float64)
    if center[2] < 0:
        rho_h -= math.pi
    return float(rho_h)


def _swapped_roll(rho: float, delta: float, rho_h: float, f: float, center_x: float) -> float:
    """
    Quarter-turn roll for swapped axes that keeps the corrected image upright.

    With P the pose rotation, the backward map proj(P^T (q, f)) sends a step
    along destination y at the centroid to a source step whose x component has
    the sign of P[1,0] f - x_c P[1,2]. The roll turns destination x onto that
    step, so +x and +y keep their direction instead of flipping a half turn.
    """
    P = rotation_rho_delta_rho_h(rho, delta, rho_h)
    step_x = P[1, 0] * f - center_x * P[1, 2]
    return math.pi / 2 if step_x > 0 else -math.pi / 2


def _centroid(cfg: ReferenceConfiguration) -> tuple[float, float]:
    pts = cfg.points[:4] if isinstance(cfg, Rectangle6WithLine) else cfg.points
    c = np.mean(pts, axis=0)
    return float(c[0]), float(c[1])


def estimate_pose(points, focal_length_normalized: float) -> PoseEstimate:
    """
    Pose angles (rho, delta, rho_h, alpha) for an (N,2) point array or a `ReferenceConfiguration`.

    Points are in normalized sensor coordinates (origin at the optical center).
    """
    if isinstance(points, _Reference):
        cfg = points
    else:
        cfg = reference_configuration_from_points(points)
    x = cfg.points[:, 0]
    y = cfg.points[:, 1]
    f = float(focal_length_normalized)
    center_x, center_y = _centroid(cfg)

    ellipse = None
    if isinstance(cfg, (Circle5, Circle7WithLine)):
        ellipse = analyse_ellipse(x[:5], y[:5], f)
        vertex = ellipse.vertex_homogeneous
    else:
        vertex = intersect_lines_homogeneous(x[:4], y[:4])
        if isinstance(cfg, TwoLines8):
            # Over-determined: the second pair's vanishing point wins over the given focal length.
            f = _refine_focal_length(vertex, intersect_lines_homogeneous(x[4:8], y[4:8]), f)
    X, Y, W = _canonical(vertex)

    rho = _atan_ratio(-X, f * W)
    delta = math.pi / 2 - _atan_ratio(-Y, math.hypot(X, f * W))
    if (rotation_rho_delta(rho, delta) @ np.array([center_x, center_y, f]))[2] < 0:
        # Vertex went into the nadir; move it to the zenith.
        delta -= math.pi

    swapped = False
    if isinstance(cfg, Circle5):
        alpha = 0.0
    elif isinstance(cfg, Circle7WithLine):
        R = rotation_rho_delta(rho, delta)
        x5_, y5_ = central_projection(R @ np.array([x[5], y[5], f]), f)
        x6_, y6_ = central_projection(R @ np.array([x[6], y[6], f]), f)
        beta = math.atan2(y6_ - y5_, x6_ - x5_)
        if abs(x[5] - x[6]) > abs(y[5] - y[6]):
            # Smallest rotation into the horizontal, either direction of travel.
            alpha = math.remainder(beta, math.pi)
        else:
            alpha = math.remainder(beta - math.pi / 2, math.pi)
    else:
        ax, ay = normalize2d(X - x[0] * W, Y - y[0] * W)
        bx, by = normalize2d(X - x[2] * W, Y - y[2] * W)
        # The quarter-turn sign needs rho_h; it is picked below.
        swapped = abs(ax + bx) > abs(ay + by)
        alpha = 0.0

    rho_h: Optional[float]
    if isinstance(cfg, Rectangle4):
        if swapped:
            seg_x, seg_y = (center_x, center_x), (center_y - 1, center_y + 1)
        else:
            seg_x, seg_y = (center_x - 1, center_x + 1), (center_y, center_y)
        rho_h = determine_rho_h(rho, delta, seg_x, seg_y, f, center_x, center_y)
    elif isinstance(cfg, (Circle5, Circle7WithLine)):
        rho_h = 0.0
    else:
        rho_h = determine_rho_h(rho, delta, x[4:6], y[4:6], f, center_x, center_y)
        if rho_h is None and isinstance(cfg, TwoLines8):
            rho_h = determine_rho_h(rho, delta, x[6:8], y[6:8], f, center_x, center_y)
    if rho_h is None:
        rho_h = 0.0
    if swapped:
        alpha = _swapped_roll(rho, delta, rho_h, f, center_x)

    angles = PoseAngles(rho=float(rho), delta=float(delta), rho_h=float(rho_h), alpha=float(alpha))
    logger.debug(
        "%s pose: rho=%.6g delta=%.6g rho_h=%.6g alpha=%.6g f=%.6g",
        type(cfg).__name__,
        *angles.as_tuple(),
        f,
    )
    return PoseEstimate(
        angles=angles,
        centroid=(center_x, center_y),
        focal_length_normalized=f,
        vertex_homogeneous=(X, Y, W),
        swapped_axes=swapped,
        configuration=cfg,
        ellipse=ellipse,
    )
