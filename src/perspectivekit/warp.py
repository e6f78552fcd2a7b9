"""
Dense remap LUTs for applying a `Modifier` to an image.

The modifier's callback list maps every destination pixel to a source pixel;
`build_remap_maps` samples it on the full image grid and `warp_image` feeds the
result to `cv2.remap`. Destination pixels without a valid source (ray behind
the camera, non-finite coordinates) are marked with -1 and get the border value.
"""

from __future__ import annotations

from dataclasses import dataclass

import cv2
import numpy as np

from perspectivekit.modifier import Modifier

# Anything further out than this is treated as "no source pixel".
_MAX_ABS_COORD_PX = 1e6


@dataclass
class WarpParams:
    interpolation: int = cv2.INTER_LINEAR
    border_mode: int = cv2.BORDER_CONSTANT
    border_value: float = 0.0


def build_remap_maps(modifier: Modifier, width: int, height: int) -> tuple[np.ndarray, np.ndarray]:
    """Returns (mapx, mapy), float32 arrays shaped (H,W) of source pixel positions."""
    uv = modifier.apply_geometry_distortion(0.0, 0.0, int(width), int(height))
    mapx = np.ascontiguousarray(uv[..., 0], dtype=np.float32)
    mapy = np.ascontiguousarray(uv[..., 1], dtype=np.float32)
    invalid = ~(np.isfinite(mapx) & np.isfinite(mapy))
    invalid |= (np.abs(mapx) > _MAX_ABS_COORD_PX) | (np.abs(mapy) > _MAX_ABS_COORD_PX)
    mapx[invalid] = -1.0
    mapy[invalid] = -1.0
    return mapx, mapy


def warp_image(img: np.ndarray, mapx: np.ndarray, mapy: np.ndarray, params: WarpParams | None = None) -> np.ndarray:
    params = params or WarpParams()
    if mapx.shape != mapy.shape:
        raise ValueError("mapx and mapy must have the same shape")
    return cv2.remap(
        img,
        mapx,
        mapy,
        interpolation=params.interpolation,
        borderMode=params.border_mode,
        borderValue=params.border_value,
    )


def correct_image(
    img: np.ndarray,
    modifier: Modifier,
    params: WarpParams | None = None,
) -> np.ndarray:
    """Warp `img` with all callbacks registered on `modifier` (output has the input size)."""
    h, w = img.shape[:2]
    mapx, mapy = build_remap_maps(modifier, w, h)
    return warp_image(img, mapx, mapy, params)
