"""
Rotation matrices used by the perspective correction.

Conventions (right-handed, active rotations, column vectors):

          ( 1    0       0    )            (  cos t  0  sin t )            ( cos t  -sin t  0 )
  Rx(t) = ( 0  cos t  -sin t  )    Ry(t) = (   0     1    0   )    Rz(t) = ( sin t   cos t  0 )
          ( 0  sin t   cos t  )            ( -sin t  0  cos t )            (   0       0    1 )

Camera frame: x right, y down, z along the optical axis.
"""

from __future__ import annotations

import math

import numpy as np

# Logarithmic compression of the correction for positive strengths.
STRENGTH_COMPRESSION = 10.0
# Eased rotations are clamped to this angle to avoid near half-turn flips.
MAX_EASED_ANGLE = 0.9 * math.pi


def rotation_x(t: float) -> np.ndarray:
    c, s = math.cos(t), math.sin(t)
    return np.array([[1.0, 0.0, 0.0], [0.0, c, -s], [0.0, s, c]], dtype=np.float64)


def rotation_y(t: float) -> np.ndarray:
    c, s = math.cos(t), math.sin(t)
    return np.array([[c, 0.0, s], [0.0, 1.0, 0.0], [-s, 0.0, c]], dtype=np.float64)


def rotation_z(t: float) -> np.ndarray:
    c, s = math.cos(t), math.sin(t)
    return np.array([[c, -s, 0.0], [s, c, 0.0], [0.0, 0.0, 1.0]], dtype=np.float64)


def rotation_rho_delta(rho: float, delta: float) -> np.ndarray:
    """Rx(delta) . Ry(rho), written out in closed form."""
    sr, cr = math.sin(rho), math.cos(rho)
    sd, cd = math.sin(delta), math.cos(delta)
    return np.array(
        [
            [cr, 0.0, sr],
            [sr * sd, cd, -cr * sd],
            [-sr * cd, sd, cr * cd],
        ],
        dtype=np.float64,
    )


def rotation_rho_delta_rho_h(rho: float, delta: float, rho_h: float) -> np.ndarray:
    """Ry(rho_h) . Rx(delta) . Ry(rho), written out in closed form."""
    sr, cr = math.sin(rho), math.cos(rho)
    sd, cd = math.sin(delta), math.cos(delta)
    sh, ch = math.sin(rho_h), math.cos(rho_h)
    return np.array(
        [
            [cr * ch - sr * cd * sh, sd * sh, sr * ch + cr * cd * sh],
            [sr * sd, cd, -cr * sd],
            [-cr * sh - sr * cd * ch, sd * ch, -sr * sh + cr * cd * ch],
        ],
        dtype=np.float64,
    )


def quaternion_from_angles(rho_1: float, delta: float, rho_2: float) -> tuple[float, float, float, float]:
    """
    Unit quaternion (w, x, y, z) of Ry(rho_2) . Rx(delta) . Ry(rho_1).

    This is the Hamilton product q_y(rho_2) q_x(delta) q_y(rho_1).
    """
    s2, c2 = math.sin(rho_2 / 2), math.cos(rho_2 / 2)
    sd, cd = math.sin(delta / 2), math.cos(delta / 2)
    s1, c1 = math.sin(rho_1 / 2), math.cos(rho_1 / 2)
    w = c2 * cd * c1 - s2 * cd * s1
    x = c2 * sd * c1 + s2 * sd * s1
    y = c2 * cd * s1 + s2 * cd * c1
    z = c2 * sd * s1 - s2 * sd * c1
    return w, x, y, z


def quaternion_to_matrix(w: float, x: float, y: float, z: float) -> np.ndarray:
    return np.array(
        [
            [1 - 2 * y * y - 2 * z * z, 2 * x * y - 2 * z * w, 2 * x * z + 2 * y * w],
            [2 * x * y + 2 * z * w, 1 - 2 * x * x - 2 * z * z, 2 * y * z - 2 * x * w],
            [2 * x * z - 2 * y * w, 2 * y * z + 2 * x * w, 1 - 2 * x * x - 2 * y * y],
        ],
        dtype=np.float64,
    )


def strength_factor(d: float) -> float:
    """
    Multiplier applied to the correction angle for a strength d in [-1, 1].

    d = -1 disables the correction, d = 0 applies it exactly, d > 0 over-corrects
    along a logarithmic curve.
    """
    d = float(d)
    if d <= 0:
        return d + 1.0
    return 1.0 + math.log(STRENGTH_COMPRESSION * d + 1.0) / STRENGTH_COMPRESSION


def ease_rotation_angle(theta: float, d: float) -> float:
    theta = float(theta) * strength_factor(d)
    return min(max(theta, -MAX_EASED_ANGLE), MAX_EASED_ANGLE)


def eased_rotation_matrix(rho_1: float, delta: float, rho_2: float, d: float) -> np.ndarray:
    """
    Rotation Ry(rho_2) . Rx(delta) . Ry(rho_1) with its total angle eased by strength d.

    The composition is turned into axis/angle form, the angle is scaled with
    `ease_rotation_angle`, and the matrix is rebuilt from the eased quaternion.
    A composition without any net rotation is the identity for every d.
    """
    w, x, y, z = quaternion_from_angles(rho_1, delta, rho_2)
    theta = 2.0 * math.acos(min(max(w, -1.0), 1.0))
    s_theta = math.sin(theta / 2)
    if s_theta == 0.0:
        return np.eye(3, dtype=np.float64)
    ax, ay, az = x / s_theta, y / s_theta, z / s_theta
    # Same rotation, shorter way round.
    if theta > math.pi:
        theta -= 2.0 * math.pi

    theta = ease_rotation_angle(theta, d)
    s_theta = math.sin(theta / 2)
    return quaternion_to_matrix(math.cos(theta / 2), ax * s_theta, ay * s_theta, az * s_theta)


def rotation_angle(R: np.ndarray) -> float:
    """Total rotation angle of a 3x3 rotation matrix, in [0, pi]."""
    R = np.asarray(R, dtype=np.float64)
    c = 0.5 * (float(np.trace(R)) - 1.0)
    return math.acos(min(max(c, -1.0), 1.0))
