import math

import numpy as np
import pytest
from numpy.testing import assert_allclose
from scipy.spatial.transform import Rotation

from _scenes import assert_orthonormal
from perspectivekit.core.rotation import (
    MAX_EASED_ANGLE,
    ease_rotation_angle,
    eased_rotation_matrix,
    quaternion_from_angles,
    quaternion_to_matrix,
    rotation_angle,
    rotation_rho_delta,
    rotation_rho_delta_rho_h,
    rotation_x,
    rotation_y,
    rotation_z,
    strength_factor,
)

ANGLES = [
    (0.2, -0.35, 0.1),
    (-0.7, 0.4, 1.2),
    (1.3, -1.1, -0.6),
    (0.0, 0.8, 0.0),
]


def test_elementary_rotations_match_scipy():
    for t in (-1.2, 0.0, 0.4, 2.5):
        assert_allclose(rotation_x(t), Rotation.from_euler("x", t).as_matrix(), atol=1e-14)
        assert_allclose(rotation_y(t), Rotation.from_euler("y", t).as_matrix(), atol=1e-14)
        assert_allclose(rotation_z(t), Rotation.from_euler("z", t).as_matrix(), atol=1e-14)


@pytest.mark.parametrize("rho,delta,rho_h", ANGLES)
def test_closed_forms_match_products(rho, delta, rho_h):
    assert_allclose(rotation_rho_delta(rho, delta), rotation_x(delta) @ rotation_y(rho), atol=1e-14)
    expected = Rotation.from_euler("yxy", [rho, delta, rho_h]).as_matrix()
    assert_allclose(rotation_rho_delta_rho_h(rho, delta, rho_h), expected, atol=1e-14)
    assert_orthonormal(rotation_rho_delta_rho_h(rho, delta, rho_h))


@pytest.mark.parametrize("rho,delta,rho_h", ANGLES)
def test_quaternion_composition(rho, delta, rho_h):
    w, x, y, z = quaternion_from_angles(rho, delta, rho_h)
    assert w * w + x * x + y * y + z * z == pytest.approx(1.0)

    qx, qy, qz, qw = Rotation.from_euler("yxy", [rho, delta, rho_h]).as_quat()
    # q and -q are the same rotation.
    s = 1.0 if w * qw + x * qx + y * qy + z * qz > 0 else -1.0
    assert_allclose([w, x, y, z], s * np.array([qw, qx, qy, qz]), atol=1e-14)
    assert_allclose(quaternion_to_matrix(w, x, y, z), rotation_rho_delta_rho_h(rho, delta, rho_h), atol=1e-14)


def test_strength_factor():
    assert strength_factor(-1.0) == 0.0
    assert strength_factor(-0.25) == pytest.approx(0.75)
    assert strength_factor(0.0) == 1.0
    assert strength_factor(1.0) == pytest.approx(1.0 + math.log(11.0) / 10.0)
    # Monotonic over the whole range.
    d = np.linspace(-1.0, 1.0, 41)
    assert np.all(np.diff([strength_factor(v) for v in d]) > 0)


def test_ease_rotation_angle_is_clamped():
    assert ease_rotation_angle(0.5, 0.0) == pytest.approx(0.5)
    assert ease_rotation_angle(3.0, 0.0) == pytest.approx(MAX_EASED_ANGLE)
    assert ease_rotation_angle(-3.0, 1.0) == pytest.approx(-MAX_EASED_ANGLE)
    assert ease_rotation_angle(2.0, -1.0) == 0.0


@pytest.mark.parametrize("rho,delta,rho_h", ANGLES)
def test_eased_rotation_at_zero_strength_is_unmodified(rho, delta, rho_h):
    R = eased_rotation_matrix(rho, delta, rho_h, 0.0)
    assert_allclose(R, rotation_rho_delta_rho_h(rho, delta, rho_h), atol=1e-12)


@pytest.mark.parametrize("rho,delta,rho_h", ANGLES)
def test_eased_rotation_scales_angle_about_same_axis(rho, delta, rho_h):
    full = Rotation.from_matrix(rotation_rho_delta_rho_h(rho, delta, rho_h)).as_rotvec()
    for d in (-1.0, -0.6, -0.1, 0.3, 1.0):
        R = eased_rotation_matrix(rho, delta, rho_h, d)
        assert_orthonormal(R)
        rotvec = Rotation.from_matrix(R).as_rotvec()
        assert_allclose(rotvec, full * strength_factor(d), atol=1e-10)


def test_eased_rotation_identity_cases():
    assert_allclose(eased_rotation_matrix(0.0, 0.0, 0.0, 0.7), np.eye(3))
    assert_allclose(eased_rotation_matrix(0.4, 0.0, -0.4, -0.3), np.eye(3), atol=1e-15)
    assert_allclose(eased_rotation_matrix(0.3, -0.2, 0.5, -1.0), np.eye(3), atol=1e-15)


def test_eased_rotation_beyond_half_turn_goes_the_short_way():
    # 3.0 + 0.5 rad about y is 3.5 rad, i.e. -(2 pi - 3.5) the other way round.
    R = eased_rotation_matrix(3.0, 0.0, 0.5, 0.0)
    assert_allclose(R, rotation_y(3.5), atol=1e-12)
    R_half = eased_rotation_matrix(3.0, 0.0, 0.5, -0.5)
    assert_allclose(R_half, rotation_y(0.5 * (3.5 - 2 * math.pi)), atol=1e-12)


def test_eased_rotation_clamps_large_angles():
    R = eased_rotation_matrix(1.5, 0.0, 1.4, 1.0)
    assert rotation_angle(R) == pytest.approx(MAX_EASED_ANGLE)
    assert_allclose(R, rotation_y(MAX_EASED_ANGLE), atol=1e-12)


def test_eased_backward_is_transpose_of_forward():
    for rho, delta, rho_h in ANGLES:
        for d in (-0.5, 0.0, 0.8):
            fwd = eased_rotation_matrix(rho, delta, rho_h, d)
            bwd = eased_rotation_matrix(-rho_h, -delta, -rho, d)
            assert_allclose(bwd @ fwd, np.eye(3), atol=1e-12)


def test_rotation_angle():
    assert rotation_angle(np.eye(3)) == 0.0
    assert rotation_angle(rotation_x(0.7)) == pytest.approx(0.7)
    assert rotation_angle(rotation_z(-2.0)) == pytest.approx(2.0)
