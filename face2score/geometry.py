"""
Geometry primitives over normalized landmark coordinates.

All functions are pure and accept points as array-likes of length 2 or 3
(x, y[, z]). Image coordinates are used throughout:
    +X: Right (image columns)
    +Y: Down (image rows)
    +Z: Relative depth, more negative = closer to the camera (MediaPipe)

Only canthal_tilt knows about facial anatomy; it reads the eye corners
through the anatomical index table.
"""

import math
from typing import Iterable, Optional

import numpy as np
from numpy.typing import NDArray

from .landmarks import LandmarkSet

# Rays shorter than this are treated as degenerate
EPSILON = 1e-12


def _as_point(p) -> NDArray[np.float64]:
    point = np.zeros(3, dtype=np.float64)
    values = np.asarray(p, dtype=np.float64).ravel()
    point[:min(3, values.size)] = values[:3]
    return point


def distance_2d(a, b) -> float:
    """Euclidean distance in the image plane (z ignored)."""
    a, b = _as_point(a), _as_point(b)
    return math.hypot(b[0] - a[0], b[1] - a[1])


def distance_3d(a, b) -> float:
    """Euclidean distance including relative depth."""
    a, b = _as_point(a), _as_point(b)
    return float(np.linalg.norm(b - a))


def _clamped_angle(u: NDArray[np.float64], v: NDArray[np.float64]) -> Optional[float]:
    """Angle between two vectors in degrees, or None if either is degenerate."""
    mag_u = float(np.linalg.norm(u))
    mag_v = float(np.linalg.norm(v))
    if mag_u < EPSILON or mag_v < EPSILON:
        return None
    # Floating-point drift can push the cosine just outside [-1, 1]
    cos_angle = float(np.clip(np.dot(u, v) / (mag_u * mag_v), -1.0, 1.0))
    return math.degrees(math.acos(cos_angle))


def angle_at_vertex(a, b, c) -> float:
    """
    Angle at vertex b between rays b->a and b->c, in degrees (image plane).

    Args:
        a: First ray endpoint
        b: Vertex
        c: Second ray endpoint

    Returns:
        Angle in [0, 180]. Zero-length rays give 0.0 rather than raising.
    """
    a, b, c = _as_point(a), _as_point(b), _as_point(c)
    angle = _clamped_angle((a - b)[:2], (c - b)[:2])
    return 0.0 if angle is None else angle


def profile_angle(a, b, c, min_length: float = 0.001) -> Optional[float]:
    """
    Angle at vertex b in the vertical/depth (Y/Z) plane, in degrees.

    This is the profile view of the face, used for angles that cannot be
    seen frontally. Returns None when either ray is shorter than min_length,
    since monocular depth gives no usable signal at that scale.
    """
    a, b, c = _as_point(a), _as_point(b), _as_point(c)
    u = (a - b)[1:]
    v = (c - b)[1:]
    if np.linalg.norm(u) < min_length or np.linalg.norm(v) < min_length:
        return None
    return _clamped_angle(u, v)


def midpoint(a, b) -> NDArray[np.float64]:
    """Component-wise mean of two points."""
    return (_as_point(a) + _as_point(b)) / 2.0


def centroid(points: Iterable) -> NDArray[np.float64]:
    """Component-wise mean of any number of points (origin if empty)."""
    stacked = [_as_point(p) for p in points]
    if not stacked:
        return np.zeros(3, dtype=np.float64)
    return np.mean(stacked, axis=0)


def _eye_tilt(inner: NDArray[np.float64], outer: NDArray[np.float64]) -> float:
    # Rise of the outer corner over the horizontal run toward it. Image y
    # grows downward, so a higher outer corner has the smaller y.
    rise = inner[1] - outer[1]
    run = abs(outer[0] - inner[0])
    return math.degrees(math.atan2(rise, run))


def canthal_tilt(landmarks: LandmarkSet) -> float:
    """
    Canthal tilt: angle of the inner->outer eye corner axis from horizontal.

    Positive when the outer (lateral) corner sits higher than the inner
    corner. The image-left eye runs toward -X and the image-right eye toward
    +X; measuring the run as an absolute distance mirrors the two so that
    both eyes share one sign convention. The two tilts are averaged.

    Args:
        landmarks: LandmarkSet containing all four eye corners

    Returns:
        Mean canthal tilt in degrees
    """
    left = _eye_tilt(landmarks["left_eye_inner"], landmarks["left_eye_outer"])
    right = _eye_tilt(landmarks["right_eye_inner"], landmarks["right_eye_outer"])
    return (left + right) / 2.0
