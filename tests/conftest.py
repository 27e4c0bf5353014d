"""
Shared fixtures: a synthetic, perfectly symmetric face built to ideal
proportions, and ideal measurement values for scoring tests.

The synthetic face is 0.5 normalized units wide at the cheekbones, so with
the 140mm reference width one unit is 280mm. Image-left roles are placed
explicitly; image-right roles are their reflections about x = 0.5.
"""

import numpy as np
import pytest

from face2score.landmarks import LANDMARK_INDICES, LandmarkSet
from face2score.measurements import FacialMeasurements, FacialThirds


MIDLINE_POINTS = {
    "forehead": (0.5, 0.21143),
    "glabella": (0.5, 0.305),         # glabella -> upper lip = 0.25 (FWHR 2.0)
    "nasion": (0.5, 0.36),
    "nose_tip": (0.5, 0.48),
    "nose_base": (0.5, 0.50857),      # philtrum 0.04643 = 13mm
    "upper_lip_top": (0.5, 0.555),
    "upper_lip_bottom": (0.5, 0.558),
    "lower_lip_top": (0.5, 0.56),
    "lower_lip_bottom": (0.5, 0.56428),
    "chin": (0.5, 0.65714),           # thirds 0.14857 each
}

# Eye centres at x=0.385, y=0.40 (IPD 0.23 = 64.4mm); corners 30mm apart
# with the outer corner 5 degrees higher than the inner
LEFT_POINTS = {
    "left_pupil": (0.385, 0.40),
    "left_eye_inner": (0.438366, 0.404669),
    "left_eye_outer": (0.331634, 0.395331),
    "left_eye_upper": (0.385, 0.3821),
    "left_eye_lower": (0.385, 0.4179),
    "left_brow_inner": (0.45, 0.35),
    "left_brow_outer": (0.33, 0.345),
    "left_nostril": (0.46, 0.50),
    "left_cheekbone": (0.25, 0.45),
    "left_gonion": (0.30714, 0.58),   # bigonial 108mm
    "left_jaw": (0.36, 0.63),
    "left_ramus": (0.28575, 0.43153),  # gonial angle 120 degrees
    "mouth_left": (0.44, 0.57143),    # midface 48mm
}


def _partner(role):
    if role == "mouth_left":
        return "mouth_right"
    return "right_" + role[len("left_"):]


def build_ideal_face(n_landmarks=478):
    """(n, 3) landmark array of the synthetic ideal face (z = 0)."""
    points = np.zeros((n_landmarks, 3), dtype=np.float64)
    for role, (x, y) in MIDLINE_POINTS.items():
        points[LANDMARK_INDICES[role]] = [x, y, 0.0]
    for role, (x, y) in LEFT_POINTS.items():
        points[LANDMARK_INDICES[role]] = [x, y, 0.0]
        points[LANDMARK_INDICES[_partner(role)]] = [1.0 - x, y, 0.0]
    return points


def make_measurements(**overrides):
    """FacialMeasurements at every scored ideal, with optional overrides."""
    values = dict(
        ipd=63.5,
        esr=47.0,
        pfl=30.0,
        canthal_tilt=5.0,
        fwhr=2.0,
        facial_thirds=FacialThirds(1 / 3, 1 / 3, 1 / 3),
        philtrum_length=13.0,
        midface_ratio=48.0,
        gonial_angle=120.0,
        nasofrontal_angle=130.0,
        chin_philtrum_ratio=2.0,
        bizygomatic=142.0,
        bigonial=108.0,
        symmetry_score=0.95,
    )
    values.update(overrides)
    return FacialMeasurements(**values)


@pytest.fixture
def ideal_face_points():
    return build_ideal_face()


@pytest.fixture
def ideal_face(ideal_face_points):
    return LandmarkSet(ideal_face_points)


@pytest.fixture
def ideal_measurements():
    return make_measurements()
