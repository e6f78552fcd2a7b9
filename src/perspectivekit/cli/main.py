from __future__ import annotations

import argparse
import json
from pathlib import Path
from typing import Any

import cv2
import numpy as np

from perspectivekit.config import CorrectionConfig, load_correction_config
from perspectivekit.image_io import load_image_u8, save_image_u8
from perspectivekit.modifier import Modifier, PerspectiveCorrection, compute_perspective_correction
from perspectivekit.warp import WarpParams, correct_image

_INTERPOLATION = {
    "nearest": cv2.INTER_NEAREST,
    "linear": cv2.INTER_LINEAR,
    "cubic": cv2.INTER_CUBIC,
    "lanczos4": cv2.INTER_LANCZOS4,
}


def load_points(path: Path) -> np.ndarray:
    """Pixel coordinates from a JSON file: either [[x,y],...] or {"points": [[x,y],...]}."""
    data: Any = json.loads(Path(path).read_text(encoding="utf-8"))
    if isinstance(data, dict):
        data = data.get("points")
    pts = np.asarray(data, dtype=np.float64)
    if pts.ndim != 2 or pts.shape[1] != 2:
        raise ValueError(f"{path}: expected a list of [x, y] pairs")
    return pts


def _resolve_config(args: argparse.Namespace, width: int | None, height: int | None) -> CorrectionConfig:
    if args.config is not None:
        return load_correction_config(args.config)
    if args.focal_mm is None or width is None or height is None:
        raise SystemExit("either --config or --focal-mm (with the image size) is required")
    return CorrectionConfig.from_image(width, height, args.focal_mm, crop_factor=args.crop_factor)


def correction_summary(c: PerspectiveCorrection) -> dict[str, Any]:
    rho, delta, rho_h, alpha = c.pose.angles.as_tuple()
    return {
        "configuration": type(c.pose.configuration).__name__,
        "angles_rad": {"rho": rho, "delta": delta, "rho_h": rho_h, "alpha": alpha},
        "focal_length_normalized": c.pose.focal_length_normalized,
        "swapped_axes": c.pose.swapped_axes,
        "strength": c.strength,
        "anchor": c.anchor,
        "anchor_point": list(c.anchor_point),
        "mapping_scale": c.mapping_scale,
        "bundle": [float(v) for v in c.bundle.as_array()],
    }


def _add_config_args(p: argparse.ArgumentParser) -> None:
    p.add_argument("--config", type=Path, default=None, help="Correction config JSON (perspectivekit.config.v0).")
    p.add_argument("--focal-mm", type=float, default=None, help="Focal length (mm) when no --config is given.")
    p.add_argument("--crop-factor", type=float, default=1.0)
    p.add_argument("--points", type=Path, required=True, help="JSON file with the marked points (pixels).")
    p.add_argument("--strength", type=float, default=0.0, help="-1 disables, 0 corrects fully, >0 over-corrects.")


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(prog="perspectivekit")
    sub = parser.add_subparsers(dest="cmd", required=True)

    pose = sub.add_parser("estimate-pose", help="Estimate the camera tilt and print the remap coefficients as JSON.")
    _add_config_args(pose)
    pose.add_argument("--width", type=int, default=None, help="Image width (px) when no --config is given.")
    pose.add_argument("--height", type=int, default=None, help="Image height (px) when no --config is given.")
    pose.add_argument("--out-json", type=Path, default=None)

    corr = sub.add_parser("correct", help="Apply the perspective correction to an image.")
    corr.add_argument("image", type=Path)
    _add_config_args(corr)
    corr.add_argument("--out", type=Path, required=True)
    corr.add_argument("--interp", type=str, default="linear", choices=sorted(_INTERPOLATION))
    corr.add_argument("--gray", action="store_true", help="Load and write a single channel.")

    args = parser.parse_args(argv)

    if args.cmd == "estimate-pose":
        cfg = _resolve_config(args, args.width, args.height)
        c = compute_perspective_correction(load_points(args.points), args.strength, cfg)
        text = json.dumps(correction_summary(c), indent=2)
        if args.out_json is None:
            print(text)
        else:
            args.out_json.parent.mkdir(parents=True, exist_ok=True)
            args.out_json.write_text(text + "\n", encoding="utf-8")
            print(f"Wrote {args.out_json}")
        return 0

    if args.cmd == "correct":
        img = load_image_u8(args.image, gray=args.gray)
        h, w = img.shape[:2]
        modifier = Modifier(_resolve_config(args, w, h))
        if not modifier.enable_perspective_correction(load_points(args.points), args.strength):
            print("Perspective correction rejected the marked points; see the log for details.")
            return 1
        out = correct_image(img, modifier, WarpParams(interpolation=_INTERPOLATION[args.interp]))
        save_image_u8(args.out, out)
        print(f"Wrote {args.out}")
        return 0

    raise AssertionError(f"Unhandled cmd: {args.cmd}")
