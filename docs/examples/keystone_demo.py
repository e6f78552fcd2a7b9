"""
Keystone correction demo.

Renders a synthetic brick facade seen from a camera tilted upwards, marks the
two vertical edges of the facade, and writes the original and corrected images
to docs/examples/_out/ (png).

Run:
    python docs/examples/keystone_demo.py --pitch 0.3 --strength 0
"""

from __future__ import annotations

import argparse
from pathlib import Path

import numpy as np

from perspectivekit import CorrectionConfig, Modifier
from perspectivekit.core.rotation import rotation_x, rotation_y
from perspectivekit.image_io import save_image_u8
from perspectivekit.warp import correct_image


def render_facade(cfg: CorrectionConfig, R_cam: np.ndarray, width: int, height: int) -> np.ndarray:
    """Brick pattern on the plane z = 5 (facade spans x, y in [-1, 1])."""
    u, v = np.meshgrid(np.arange(width, dtype=np.float64), np.arange(height, dtype=np.float64))
    xn, yn = cfg.to_normalized(u, v)
    rays = np.stack([xn, yn, np.full_like(xn, cfg.focal_length_normalized)], axis=-1) @ R_cam
    with np.errstate(divide="ignore", invalid="ignore"):
        X = 5.0 * rays[..., 0] / rays[..., 2]
        Y = 5.0 * rays[..., 1] / rays[..., 2]
    row = np.floor(Y / 0.1)
    bx = X / 0.2 + 0.5 * (row % 2)
    by = Y / 0.1
    mortar = (np.abs(by - np.round(by)) < 0.08) | (np.abs(bx - np.round(bx)) < 0.04)
    col = np.floor(bx)
    img = np.where(mortar, 220, 120 + 30 * ((row + col) % 2))
    outside = (np.abs(X) > 1.0) | (np.abs(Y) > 1.0) | ~(rays[..., 2] > 0)
    img = np.where(outside, 40, img)
    return img.astype(np.uint8)


def main() -> None:
    ap = argparse.ArgumentParser()
    ap.add_argument("--width", type=int, default=480)
    ap.add_argument("--height", type=int, default=360)
    ap.add_argument("--focal-mm", type=float, default=18.0)
    ap.add_argument("--pitch", type=float, default=0.3, help="Camera pitch (rad), positive looks up.")
    ap.add_argument("--yaw", type=float, default=0.0)
    ap.add_argument("--strength", type=float, default=0.0)
    ap.add_argument("--out", type=Path, default=Path(__file__).resolve().parent / "_out")
    args = ap.parse_args()

    cfg = CorrectionConfig.from_image(args.width, args.height, args.focal_mm)
    f = cfg.focal_length_normalized
    R_cam = rotation_x(args.pitch) @ rotation_y(args.yaw)
    img = render_facade(cfg, R_cam, args.width, args.height)

    # The user would click these: left edge (bottom, top), right edge (bottom, top).
    corners = np.array([(-1, 1, 5), (-1, -1, 5), (1, 1, 5), (1, -1, 5)], dtype=np.float64) @ R_cam.T
    pts = f * corners[:, :2] / corners[:, 2:3]
    pts_px = np.column_stack(cfg.to_pixels(pts[:, 0], pts[:, 1]))
    print("marked points (px):")
    print(np.array2string(pts_px, precision=1))

    m = Modifier(cfg)
    if not m.enable_perspective_correction(pts_px, args.strength):
        raise SystemExit("correction rejected the marked points")
    out = correct_image(img, m)

    save_image_u8(args.out / "facade_tilted.png", img)
    save_image_u8(args.out / "facade_corrected.png", out)
    print(f"Wrote {args.out}")


if __name__ == "__main__":
    main()
