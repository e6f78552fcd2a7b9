from __future__ import annotations

import json
from dataclasses import dataclass
from pathlib import Path
from typing import Any

SCHEMA_VERSION = "perspectivekit.config.v0"

# Half the short side of a 35 mm frame, in mm.
_FULL_FRAME_HALF_SHORT_SIDE_MM = 12.0


class ConfigValidationError(ValueError):
    pass


@dataclass(frozen=True)
class CorrectionConfig:
    """
    Normalized coordinate system of one image.

    A pixel (u, v) maps to (u * norm_scale - center_x, v * norm_scale - center_y),
    which puts the optical center at the origin. The focal length is expressed
    in the same unit.
    """

    focal_length_normalized: float
    center_x: float
    center_y: float
    norm_scale: float

    def to_normalized(self, u, v):
        return u * self.norm_scale - self.center_x, v * self.norm_scale - self.center_y

    def to_pixels(self, x, y):
        return (x + self.center_x) / self.norm_scale, (y + self.center_y) / self.norm_scale

    @classmethod
    def from_image(
        cls,
        width_px: int,
        height_px: int,
        focal_length_mm: float,
        crop_factor: float = 1.0,
        center_offset: tuple[float, float] = (0.0, 0.0),
    ) -> "CorrectionConfig":
        """
        The shorter image side spans [-1, 1]; the optical center is the image
        middle shifted by `center_offset` (normalized units).
        """
        _require(width_px > 1 and height_px > 1, "image size must be > 1 px in both directions")
        _require(crop_factor > 0, "crop_factor must be > 0")
        norm_scale = 2.0 / (min(width_px, height_px) - 1)
        return cls(
            focal_length_normalized=float(focal_length_mm) * float(crop_factor) / _FULL_FRAME_HALF_SHORT_SIDE_MM,
            center_x=(width_px - 1) / 2.0 * norm_scale + float(center_offset[0]),
            center_y=(height_px - 1) / 2.0 * norm_scale + float(center_offset[1]),
            norm_scale=norm_scale,
        )


def _require(cond: bool, msg: str) -> None:
    if not cond:
        raise ConfigValidationError(msg)


def load_correction_config(path: Path) -> CorrectionConfig:
    data = json.loads(Path(path).read_text(encoding="utf-8"))
    return parse_correction_config(data)


def parse_correction_config(data: dict[str, Any]) -> CorrectionConfig:
    """
    Two forms are accepted:

      {"schema_version": ..., "focal_length_normalized": f, "center": [cx, cy], "norm_scale": s}
      {"schema_version": ..., "image": {"width_px": w, "height_px": h},
       "lens": {"focal_length_mm": f, "crop_factor": c}}
    """
    schema_version = data.get("schema_version")
    _require(schema_version == SCHEMA_VERSION, f"schema_version must be {SCHEMA_VERSION}")

    if "image" in data:
        image = data.get("image", {})
        lens = data.get("lens", {})
        w_raw = image.get("width_px")
        h_raw = image.get("height_px")
        _require(w_raw is not None and h_raw is not None, "image.width_px and image.height_px are required")
        focal_raw = lens.get("focal_length_mm")
        _require(focal_raw is not None, "lens.focal_length_mm is required")
        crop = float(lens.get("crop_factor", 1.0))
        offset = lens.get("center_offset", [0.0, 0.0])
        _require(isinstance(offset, (list, tuple)) and len(offset) == 2, "lens.center_offset must be [dx,dy]")
        return CorrectionConfig.from_image(
            int(w_raw),
            int(h_raw),
            float(focal_raw),
            crop_factor=crop,
            center_offset=(float(offset[0]), float(offset[1])),
        )

    f_raw = data.get("focal_length_normalized")
    _require(f_raw is not None, "focal_length_normalized is required")
    center = data.get("center", [0.0, 0.0])
    _require(isinstance(center, (list, tuple)) and len(center) == 2, "center must be [cx,cy]")
    scale = float(data.get("norm_scale", 1.0))
    _require(scale > 0.0, "norm_scale must be > 0")

    # A non-positive focal length is a valid config; it only disables the correction.
    return CorrectionConfig(
        focal_length_normalized=float(f_raw),
        center_x=float(center[0]),
        center_y=float(center[1]),
        norm_scale=scale,
    )
