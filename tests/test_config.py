import json
from pathlib import Path

import numpy as np
import pytest
from numpy.testing import assert_allclose

from perspectivekit.config import (
    SCHEMA_VERSION,
    ConfigValidationError,
    CorrectionConfig,
    load_correction_config,
    parse_correction_config,
)


def test_from_image_normalizes_short_side():
    cfg = CorrectionConfig.from_image(101, 51, 24.0)
    assert cfg.norm_scale == pytest.approx(0.04)
    assert cfg.center_x == pytest.approx(2.0)
    assert cfg.center_y == pytest.approx(1.0)
    assert cfg.focal_length_normalized == pytest.approx(2.0)

    # Corners of the short side land on -1 / +1.
    _, y = cfg.to_normalized(np.array([0.0, 0.0]), np.array([0.0, 50.0]))
    assert_allclose(y, [-1.0, 1.0])


def test_from_image_crop_factor_and_offset():
    cfg = CorrectionConfig.from_image(101, 51, 24.0, crop_factor=1.5, center_offset=(0.1, -0.2))
    assert cfg.focal_length_normalized == pytest.approx(3.0)
    x, y = cfg.to_normalized(50.0, 25.0)
    assert x == pytest.approx(-0.1)
    assert y == pytest.approx(0.2)


def test_pixel_round_trip():
    cfg = CorrectionConfig.from_image(640, 480, 35.0)
    u = np.array([0.0, 123.5, 639.0])
    v = np.array([0.0, 240.25, 479.0])
    uu, vv = cfg.to_pixels(*cfg.to_normalized(u, v))
    assert_allclose(uu, u, atol=1e-9)
    assert_allclose(vv, v, atol=1e-9)


def test_from_image_rejects_bad_input():
    with pytest.raises(ConfigValidationError):
        CorrectionConfig.from_image(1, 100, 24.0)
    with pytest.raises(ConfigValidationError):
        CorrectionConfig.from_image(100, 100, 24.0, crop_factor=0.0)


def test_parse_direct_form():
    cfg = parse_correction_config(
        {
            "schema_version": SCHEMA_VERSION,
            "focal_length_normalized": 1.25,
            "center": [1.5, 1.0],
            "norm_scale": 0.01,
        }
    )
    assert cfg == CorrectionConfig(1.25, 1.5, 1.0, 0.01)


def test_parse_image_lens_form():
    cfg = parse_correction_config(
        {
            "schema_version": SCHEMA_VERSION,
            "image": {"width_px": 101, "height_px": 51},
            "lens": {"focal_length_mm": 24.0, "crop_factor": 1.0},
        }
    )
    assert cfg == CorrectionConfig.from_image(101, 51, 24.0)


def test_parse_keeps_non_positive_focal_length():
    cfg = parse_correction_config({"schema_version": SCHEMA_VERSION, "focal_length_normalized": 0.0})
    assert cfg.focal_length_normalized == 0.0


@pytest.mark.parametrize(
    "data",
    [
        {"focal_length_normalized": 1.0},
        {"schema_version": "other", "focal_length_normalized": 1.0},
        {"schema_version": SCHEMA_VERSION},
        {"schema_version": SCHEMA_VERSION, "focal_length_normalized": 1.0, "center": [1.0]},
        {"schema_version": SCHEMA_VERSION, "focal_length_normalized": 1.0, "norm_scale": 0.0},
        {"schema_version": SCHEMA_VERSION, "image": {"width_px": 10}, "lens": {"focal_length_mm": 24.0}},
        {"schema_version": SCHEMA_VERSION, "image": {"width_px": 10, "height_px": 10}, "lens": {}},
    ],
)
def test_parse_rejects_invalid(data):
    with pytest.raises(ConfigValidationError):
        parse_correction_config(data)


def test_load_from_json(tmp_path: Path):
    p = tmp_path / "cfg.json"
    p.write_text(
        json.dumps({"schema_version": SCHEMA_VERSION, "focal_length_normalized": 2.0, "center": [0.5, 0.25]}),
        encoding="utf-8",
    )
    cfg = load_correction_config(p)
    assert cfg.focal_length_normalized == 2.0
    assert (cfg.center_x, cfg.center_y, cfg.norm_scale) == (0.5, 0.25, 1.0)
