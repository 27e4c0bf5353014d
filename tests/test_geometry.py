"""
Tests for geometry primitives.

Angles feed several scored measurements, so degenerate inputs must give
finite results rather than NaN or exceptions.
"""

import math

import numpy as np
import pytest

from face2score.geometry import (
    angle_at_vertex,
    canthal_tilt,
    centroid,
    distance_2d,
    distance_3d,
    midpoint,
    profile_angle,
)
from face2score.landmarks import LANDMARK_INDICES, LandmarkSet


class TestDistances:
    """Test 2D and 3D distances."""

    def test_distance_2d_ignores_z(self):
        """Depth should not contribute to the image-plane distance."""
        assert distance_2d([0, 0, 0], [3, 4, 100]) == pytest.approx(5.0)

    def test_distance_3d_includes_z(self):
        """3D distance should include depth."""
        assert distance_3d([0, 0, 0], [2, 3, 6]) == pytest.approx(7.0)

    def test_accepts_2d_points(self):
        """Points without z are treated as z = 0."""
        assert distance_3d([0, 0], [3, 4]) == pytest.approx(5.0)

    def test_zero_distance(self):
        """Coincident points have distance 0."""
        assert distance_2d([0.4, 0.5, 0.1], [0.4, 0.5, 0.1]) == 0.0

    def test_returns_python_float(self):
        assert isinstance(distance_2d(np.zeros(3), np.ones(3)), float)
        assert isinstance(distance_3d(np.zeros(3), np.ones(3)), float)


class TestAngleAtVertex:
    """Test vertex angles in the image plane."""

    def test_right_angle(self):
        assert angle_at_vertex([1, 0], [0, 0], [0, 1]) == pytest.approx(90.0)

    def test_collinear_opposite_rays(self):
        """Straight line through the vertex should be 180 degrees."""
        assert angle_at_vertex([-1, 0], [0, 0], [1, 0]) == pytest.approx(180.0)

    def test_same_direction(self):
        assert angle_at_vertex([1, 0], [0, 0], [2, 0]) == pytest.approx(0.0)

    def test_degenerate_ray_is_finite(self):
        """Zero-length ray should give 0.0, not NaN or an exception."""
        result = angle_at_vertex([0.3, 0.3], [0.3, 0.3], [0.5, 0.1])
        assert result == 0.0
        assert math.isfinite(result)

    def test_all_points_coincident(self):
        result = angle_at_vertex([0, 0, 0], [0, 0, 0], [0, 0, 0])
        assert result == 0.0

    def test_near_collinear_is_clamped(self):
        """Floating-point drift past cos = -1 must not produce NaN."""
        a = [0.1, 0.1]
        b = [0.2, 0.2]
        c = [0.3, 0.3]
        result = angle_at_vertex(a, b, c)
        assert math.isfinite(result)
        assert result == pytest.approx(180.0)

    def test_ignores_z(self):
        """Vertex angle is measured in the image plane only."""
        flat = angle_at_vertex([1, 0, 0], [0, 0, 0], [0, 1, 0])
        deep = angle_at_vertex([1, 0, 5], [0, 0, -3], [0, 1, 2])
        assert flat == pytest.approx(deep)


class TestProfileAngle:
    """Test vertex angles in the Y/Z plane."""

    def test_uses_y_and_z(self):
        """x should be ignored; the angle lives in the profile plane."""
        angle = profile_angle([5.0, 1.0, 0.0], [0.0, 0.0, 0.0], [-3.0, 0.0, 1.0])
        assert angle == pytest.approx(90.0)

    def test_short_ray_returns_none(self):
        assert profile_angle([0, 0.5, 0], [0, 0.5, 0.0005], [0, 0.7, 0]) is None

    def test_flat_profile_is_straight(self):
        """Zero depth everywhere gives a straight 180 degree profile."""
        angle = profile_angle([0.5, 0.3, 0], [0.5, 0.36, 0], [0.5, 0.48, 0])
        assert angle == pytest.approx(180.0)


class TestMidpointCentroid:
    """Test point averaging."""

    def test_midpoint(self):
        np.testing.assert_allclose(midpoint([0, 0, 0], [2, 4, 6]), [1, 2, 3])

    def test_midpoint_pads_z(self):
        np.testing.assert_allclose(midpoint([0, 0], [2, 4]), [1, 2, 0])

    def test_centroid(self):
        points = [[0, 0, 0], [2, 0, 0], [2, 2, 0], [0, 2, 0]]
        np.testing.assert_allclose(centroid(points), [1, 1, 0])

    def test_centroid_empty_is_origin(self):
        np.testing.assert_allclose(centroid([]), [0, 0, 0])


class TestCanthalTilt:
    """Test canthal tilt sign convention."""

    def _eyes(self, left_inner, left_outer, right_inner, right_outer):
        points = np.zeros((478, 3))
        points[LANDMARK_INDICES["left_eye_inner"], :2] = left_inner
        points[LANDMARK_INDICES["left_eye_outer"], :2] = left_outer
        points[LANDMARK_INDICES["right_eye_inner"], :2] = right_inner
        points[LANDMARK_INDICES["right_eye_outer"], :2] = right_outer
        return LandmarkSet(points)

    def test_level_eyes_are_zero(self):
        """Level eye corners should give 0, not +/-180."""
        lm = self._eyes((0.44, 0.4), (0.33, 0.4), (0.56, 0.4), (0.67, 0.4))
        assert canthal_tilt(lm) == pytest.approx(0.0)

    def test_raised_outer_corners_positive(self):
        """Outer corners higher (smaller y) should give positive tilt."""
        rise = 0.1 * math.tan(math.radians(6.0))
        lm = self._eyes(
            (0.44, 0.4), (0.34, 0.4 - rise),
            (0.56, 0.4), (0.66, 0.4 - rise),
        )
        assert canthal_tilt(lm) == pytest.approx(6.0)

    def test_lowered_outer_corners_negative(self):
        rise = 0.1 * math.tan(math.radians(4.0))
        lm = self._eyes(
            (0.44, 0.4), (0.34, 0.4 + rise),
            (0.56, 0.4), (0.66, 0.4 + rise),
        )
        assert canthal_tilt(lm) == pytest.approx(-4.0)

    def test_averages_both_eyes(self):
        """Mixed tilts should average."""
        rise = 0.1 * math.tan(math.radians(8.0))
        lm = self._eyes(
            (0.44, 0.4), (0.34, 0.4 - rise),
            (0.56, 0.4), (0.66, 0.4),
        )
        assert canthal_tilt(lm) == pytest.approx(4.0)

    def test_mirror_invariant(self, ideal_face):
        """Mirroring the face should not change the tilt."""
        assert canthal_tilt(ideal_face.mirrored()) == pytest.approx(canthal_tilt(ideal_face))

    def test_ideal_face_tilt(self, ideal_face):
        assert canthal_tilt(ideal_face) == pytest.approx(5.0, abs=1e-2)
