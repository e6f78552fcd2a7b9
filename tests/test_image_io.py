from __future__ import annotations

from pathlib import Path

import numpy as np
import pytest
from PIL import Image

from perspectivekit.image_io import load_image_u8, save_image_u8


def test_gray_round_trip_png_and_webp(tmp_path: Path) -> None:
    arr = (np.arange(64, dtype=np.uint8).reshape(8, 8) * 4) % 255
    for name in ("a.png", "a.webp"):
        p = tmp_path / name
        save_image_u8(p, arr)
        out = load_image_u8(p, gray=True)
        assert out.shape == (8, 8)
        assert out.dtype == np.uint8
        assert np.array_equal(out, arr)


def test_color_is_loaded_as_rgb(tmp_path: Path) -> None:
    arr = np.zeros((4, 6, 3), dtype=np.uint8)
    arr[..., 0] = 200
    arr[..., 2] = 10
    p = tmp_path / "c.png"
    Image.fromarray(arr).save(p)

    out = load_image_u8(p)
    assert out.shape == (4, 6, 3)
    assert np.array_equal(out, arr)


def test_save_clips_float_input(tmp_path: Path) -> None:
    p = tmp_path / "f.png"
    save_image_u8(p, np.array([[-5.0, 127.6], [300.0, 0.4]]))
    assert np.array_equal(load_image_u8(p, gray=True), [[0, 128], [255, 0]])


def test_missing_file_and_bad_shape(tmp_path: Path) -> None:
    with pytest.raises(FileNotFoundError):
        load_image_u8(tmp_path / "missing.png")
    with pytest.raises(ValueError):
        save_image_u8(tmp_path / "x.png", np.zeros((2, 2, 2), dtype=np.uint8))
