"""
Perspective correction setup and the coordinate-callback list it registers into.

`Modifier.enable_perspective_correction` is the entry point: it estimates the
pose from the marked points, builds the forward/backward rotations and packs a
`CoefficientBundle` for `perspective_remap`, registered at a fixed priority.
"""

from __future__ import annotations

import bisect
import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Iterator, Literal

import numpy as np

from perspectivekit.config import CorrectionConfig
from perspectivekit.core.geometry import central_projection
from perspectivekit.core.rotation import eased_rotation_matrix, rotation_rho_delta_rho_h, rotation_z
from perspectivekit.pose import SUPPORTED_POINT_COUNTS, PoseEstimate, estimate_pose
from perspectivekit.remap import CoefficientBundle, perspective_remap

logger = logging.getLogger(__name__)

PERSPECTIVE_CORRECTION = "perspective_correction"
PERSPECTIVE_CORRECTION_PRIORITY = 200
# Beyond this magnification at the optical center, re-center on the control points instead.
MAX_CENTER_MAGNIFICATION = 10.0

CoordCallback = Callable[[np.ndarray, Any], np.ndarray]
Anchor = Literal["optical_center", "control_points"]


class PerspectiveCorrectionError(ValueError):
    pass


@dataclass(frozen=True)
class CoordinateCallback:
    name: str
    func: CoordCallback
    priority: int
    params: Any = field(repr=False)


class CoordinateCallbackList:
    """Coordinate transforms ordered by ascending priority (stable for equal priorities)."""

    def __init__(self) -> None:
        self._entries: list[CoordinateCallback] = []

    def add(self, name: str, func: CoordCallback, priority: int, params: Any) -> CoordinateCallback:
        entry = CoordinateCallback(name=name, func=func, priority=int(priority), params=params)
        i = bisect.bisect_right([e.priority for e in self._entries], entry.priority)
        self._entries.insert(i, entry)
        return entry

    def remove(self, name: str) -> int:
        before = len(self._entries)
        self._entries = [e for e in self._entries if e.name != name]
        return before - len(self._entries)

    def clear(self) -> None:
        self._entries.clear()

    def apply(self, coords: np.ndarray) -> np.ndarray:
        for e in self._entries:
            e.func(coords, e.params)
        return coords

    def __len__(self) -> int:
        return len(self._entries)

    def __iter__(self) -> Iterator[CoordinateCallback]:
        return iter(list(self._entries))


@dataclass(frozen=True)
class PerspectiveCorrection:
    pose: PoseEstimate
    strength: float
    anchor: Anchor
    anchor_point: tuple[float, float]  # normalized source coordinates
    mapping_scale: float
    forward_rotation: np.ndarray  # (3,3)
    backward_rotation: np.ndarray  # (3,3), roll included, unscaled
    bundle: CoefficientBundle


def clamp_strength(d: float) -> float:
    return min(max(float(d), -1.0), 1.0)


def compute_perspective_correction(points, strength: float, config: CorrectionConfig) -> PerspectiveCorrection:
    """
    Pose and remap coefficients for points given in pixel coordinates.

    Raises `PerspectiveCorrectionError` if the focal length is not positive,
    the point count is unsupported, or the re-centering anchor ends up behind
    the camera.
    """
    f = float(config.focal_length_normalized)
    if not f > 0:
        raise PerspectiveCorrectionError("focal length must be > 0")
    pts = np.asarray(points, dtype=np.float64)
    if pts.ndim != 2 or pts.shape[1] != 2:
        raise PerspectiveCorrectionError("points must be an (N,2) array")
    if pts.shape[0] not in SUPPORTED_POINT_COUNTS:
        raise PerspectiveCorrectionError(
            f"got {pts.shape[0]} points, expected one of {list(SUPPORTED_POINT_COUNTS)}"
        )
    d = clamp_strength(strength)

    xn, yn = config.to_normalized(pts[:, 0], pts[:, 1])
    pose = estimate_pose(np.stack([xn, yn], axis=1), f)
    rho, delta, rho_h, alpha = pose.angles.as_tuple()

    # Too far outside (or at infinity): use the control points' centroid instead.
    z = float((rotation_rho_delta_rho_h(rho, delta, rho_h) @ np.array([0.0, 0.0, f]))[2])
    anchor: Anchor = "optical_center"
    anchor_point = (0.0, 0.0)
    if z <= 0 or f / z > MAX_CENTER_MAGNIFICATION:
        anchor = "control_points"
        anchor_point = pose.centroid

    forward = eased_rotation_matrix(rho, delta, rho_h, d)
    center_coords = forward @ np.array([anchor_point[0], anchor_point[1], f])
    if not center_coords[2] > 0:
        raise PerspectiveCorrectionError("re-centering anchor rotates behind the camera")
    mapping_scale = f / float(center_coords[2])

    roll = rotation_z(alpha)
    backward = eased_rotation_matrix(-rho_h, -delta, -rho, d) @ roll
    shift = roll[:2, :2].T @ np.array(central_projection(center_coords, f))

    scaled = backward.copy()
    # Folding the mapping scale in here saves a multiply per pixel.
    scaled[:, :2] *= mapping_scale
    bundle = CoefficientBundle(matrix=scaled, focal_length_normalized=f, shift=shift / mapping_scale)
    if not np.all(np.isfinite(bundle.as_array())):
        logger.warning("perspective correction coefficients are not finite: %s", bundle.as_array())

    logger.debug("anchor=%s mapping_scale=%.6g strength=%.3g", anchor, mapping_scale, d)
    return PerspectiveCorrection(
        pose=pose,
        strength=d,
        anchor=anchor,
        anchor_point=(float(anchor_point[0]), float(anchor_point[1])),
        mapping_scale=mapping_scale,
        forward_rotation=forward,
        backward_rotation=backward,
        bundle=bundle,
    )


class Modifier:
    """
    Geometry modifier for one image: a normalized coordinate system plus an
    ordered list of coordinate callbacks.
    """

    def __init__(self, config: CorrectionConfig):
        self.config = config
        self.callbacks = CoordinateCallbackList()

    def enable_perspective_correction(self, points, strength: float = 0.0) -> bool:
        """
        Register a perspective correction for the given reference points (pixels).

        Returns False, registering nothing, when the input is rejected.
        """
        try:
            correction = compute_perspective_correction(points, strength, self.config)
        except PerspectiveCorrectionError as exc:
            logger.warning("perspective correction not enabled: %s", exc)
            return False
        self.callbacks.add(
            PERSPECTIVE_CORRECTION,
            perspective_remap,
            PERSPECTIVE_CORRECTION_PRIORITY,
            correction.bundle,
        )
        return True

    def apply_geometry_distortion(self, x0: float, y0: float, width: int, height: int) -> np.ndarray:
        """
        Source pixel coordinates for a block of destination pixels.

        Returns an (height, width, 2) float32 array of (u, v) positions to sample
        the source image at, for destination pixels starting at (x0, y0).
        """
        if width <= 0 or height <= 0:
            raise ValueError("width and height must be > 0")
        uu, vv = np.meshgrid(
            float(x0) + np.arange(width, dtype=np.float64),
            float(y0) + np.arange(height, dtype=np.float64),
        )
        xn, yn = self.config.to_normalized(uu.reshape(-1), vv.reshape(-1))
        coords = np.stack([xn, yn], axis=1)
        self.callbacks.apply(coords)
        u, v = self.config.to_pixels(coords[:, 0], coords[:, 1])
        out = np.stack([u, v], axis=-1).reshape(height, width, 2)
        return out.astype(np.float32)
