from __future__ import annotations

from pathlib import Path

import cv2
import numpy as np
from PIL import Image


def load_image_u8(path: str | Path, gray: bool = False) -> np.ndarray:
    """
    Load an image as uint8, (H,W) when `gray` else (H,W,3) in RGB order.

    OpenCV is tried first; Pillow reads what the OpenCV build cannot decode
    (some webp builds, palette images).
    """
    p = Path(path)
    if not p.is_file():
        raise FileNotFoundError(p)
    img = cv2.imread(str(p), cv2.IMREAD_GRAYSCALE if gray else cv2.IMREAD_COLOR)
    if img is not None:
        if img.dtype != np.uint8:
            img = np.clip(img, 0, 255).astype(np.uint8)
        return img if gray else cv2.cvtColor(img, cv2.COLOR_BGR2RGB)

    with Image.open(p) as im:
        im = im.convert("L" if gray else "RGB")
        arr = np.asarray(im, dtype=np.uint8)
    return arr


def save_image_u8(path: str | Path, img: np.ndarray) -> None:
    """Write a (H,W) or (H,W,3) RGB uint8 array. WebP output is lossless."""
    p = Path(path)
    arr = np.asarray(img)
    if arr.dtype != np.uint8:
        arr = np.clip(np.rint(arr), 0, 255).astype(np.uint8)
    if not (arr.ndim == 2 or (arr.ndim == 3 and arr.shape[2] == 3)):
        raise ValueError("img must be (H,W) or (H,W,3)")
    # Mode (L or RGB) follows from the uint8 array shape.
    im = Image.fromarray(np.ascontiguousarray(arr))
    p.parent.mkdir(parents=True, exist_ok=True)
    ext = p.suffix.lower()
    if ext == ".webp":
        im.save(p, lossless=True, quality=100, method=6)
    elif ext in (".jpg", ".jpeg"):
        im.save(p, quality=95, subsampling=0)
    else:
        im.save(p)
