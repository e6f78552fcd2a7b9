import math

import numpy as np
import pytest
from numpy.testing import assert_allclose

from perspectivekit.core.conic import analyse_ellipse, conic_design_matrix, fit_conic

F = 1.5
CENTER = (0.2, -0.1)
SEMI_MAJOR = 0.8
SEMI_MINOR = 0.5
TILT = 0.3


def _ellipse_points(params=(0.0, 1.1, 2.3, 3.7, 5.0), phi=TILT):
    s = np.asarray(params)
    ex = SEMI_MAJOR * np.cos(s)
    ey = SEMI_MINOR * np.sin(s)
    x = CENTER[0] + ex * math.cos(phi) - ey * math.sin(phi)
    y = CENTER[1] + ex * math.sin(phi) + ey * math.cos(phi)
    return x, y


def test_fit_conic_passes_through_points():
    x, y = _ellipse_points()
    conic, converged = fit_conic(x, y)
    assert converged
    assert np.linalg.norm(conic.as_array()) == pytest.approx(1.0)
    assert_allclose(conic.evaluate(x, y), 0.0, atol=1e-12)
    assert_allclose(conic_design_matrix(x, y) @ conic.as_array(), 0.0, atol=1e-12)


def test_fit_conic_needs_five_points():
    x, y = _ellipse_points()
    with pytest.raises(ValueError):
        fit_conic(x[:4], y[:4])
    with pytest.raises(ValueError):
        fit_conic(np.append(x, 0.0), np.append(y, 0.0))


def test_analyse_ellipse_geometry():
    x, y = _ellipse_points()
    e = analyse_ellipse(x, y, F)
    assert e.converged
    assert e.center_x == pytest.approx(CENTER[0], abs=1e-9)
    assert e.center_y == pytest.approx(CENTER[1], abs=1e-9)
    assert e.phi == pytest.approx(TILT, abs=1e-9)
    assert e.semi_major == pytest.approx(SEMI_MAJOR, rel=1e-9)
    assert e.semi_minor == pytest.approx(SEMI_MINOR, rel=1e-9)


def test_vertex_lies_on_minor_axis_direction():
    x, y = _ellipse_points()
    e = analyse_ellipse(x, y, F)
    ratio = SEMI_MAJOR / SEMI_MINOR
    vx, vy = e.vertex
    assert math.hypot(vx, vy) == pytest.approx(F / math.sqrt(ratio**2 - 1), rel=1e-9)
    # Perpendicular to the major axis (cos phi, sin phi).
    assert vx * math.cos(TILT) + vy * math.sin(TILT) == pytest.approx(0.0, abs=1e-9)
    # Default end: the top one.
    assert vy < 0


def test_vertex_end_follows_point_orientation():
    x, y = _ellipse_points()
    e = analyse_ellipse(x, y, F)
    r = analyse_ellipse(x[::-1], y[::-1], F)
    assert_allclose(r.vertex, -np.asarray(e.vertex), rtol=1e-9)
    assert r.phi == pytest.approx(e.phi, abs=1e-9)


def test_phi_normalized_into_half_turn():
    for phi in (-1.4, -0.7, 0.0, 0.9, 1.5):
        x, y = _ellipse_points(phi=phi)
        e = analyse_ellipse(x, y, F)
        assert -math.pi / 2 < e.phi <= math.pi / 2
        expected = math.remainder(phi, math.pi)
        assert math.cos(2 * (e.phi - expected)) == pytest.approx(1.0, abs=1e-12)


def test_circle_seen_head_on_has_vertex_at_infinity():
    s = np.array([0.0, 1.1, 2.3, 3.7, 5.0])
    e = analyse_ellipse(0.3 * np.cos(s), 0.3 * np.sin(s), F)
    X, Y, W = e.vertex_homogeneous
    assert abs(W) < 1e-5
    assert math.hypot(X, Y) == pytest.approx(F, rel=1e-9)


def test_degenerate_conic_is_not_guarded():
    # Five points on a parabola: b^2 - 4ac vanishes, the center is undefined.
    x = np.array([-2.0, -1.0, 0.0, 1.0, 2.0])
    conic, _ = fit_conic(x, x * x)
    assert abs(conic.b**2 - 4 * conic.a * conic.c) < 1e-12

    e = analyse_ellipse(x, x * x, F)
    assert isinstance(e.center_x, float)
    assert isinstance(e.vertex_homogeneous[2], float)
