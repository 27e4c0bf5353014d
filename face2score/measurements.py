"""
Anthropometric measurement extraction from facial landmarks.

Maps a LandmarkSet to the named quantities in FacialMeasurements: distances,
ratios and angles defined by the anatomical index table.

Scale calibration:
    Landmarks are normalized image coordinates, so there is no metric scale
    in the input. Millimetre values are obtained by assuming the bizygomatic
    (cheekbone-to-cheekbone) width equals a population average of 140mm
    (Farkas LG, Anthropometry of the Head and Face, 1994):

        scale_factor = 140mm / normalized_bizygomatic_width

    Every millimetre measurement is therefore only as accurate as that single
    reference width. A true metric scale would need a calibration object in
    the image. Ratios and angles do not depend on the calibration.

Degradation:
    A measurement whose landmarks are missing, that would divide by zero, or
    that produces a non-finite value is replaced by its entry in
    MEASUREMENT_DEFAULTS. The substitution is logged and listed in
    FacialMeasurements.defaulted; it never aborts the analysis.

References:
    - Farkas LG. Anthropometry of the Head and Face (1994)
    - Perrett et al. Facial attractiveness judgements (1998)
"""

import logging
import math
from dataclasses import asdict, dataclass
from types import MappingProxyType
from typing import Any, Callable, Dict, List, Mapping, Optional, Tuple

import numpy as np
from numpy.typing import NDArray

from .geometry import (
    EPSILON,
    angle_at_vertex,
    canthal_tilt,
    centroid,
    distance_2d,
    midpoint,
    profile_angle,
)
from .landmarks import MIDLINE_ROLES, LandmarkSet, MissingLandmarkError

logger = logging.getLogger(__name__)


REFERENCE_FACE_WIDTH_MM = 140.0  # Average bizygomatic width
PHI = 1.618033988749895

# Nasofrontal angle: anatomically plausible window and neutral value
NASOFRONTAL_PLAUSIBLE_RANGE = (90.0, 170.0)
NASOFRONTAL_DEFAULT_DEG = 130.0
NOSE_PROMINENCE_THRESHOLD = 0.01
# Empirical calibration of the depth heuristic
NASOFRONTAL_HEURISTIC_BASE_DEG = 125.0
NASOFRONTAL_HEURISTIC_GAIN = 200.0

# Symmetry: pairs closer than this to the midline carry no horizontal signal
MIN_MIDLINE_DISTANCE = 0.01
# Vertical mismatch is normalized by ~15% of a normalized face width
VERTICAL_REFERENCE_WIDTH = 0.15
HORIZONTAL_ASYMMETRY_WEIGHT = 0.7
VERTICAL_ASYMMETRY_WEIGHT = 0.3
SYMMETRY_DECAY = 0.5

# (left role, right role, perceptual weight)
SYMMETRY_PAIRS: Tuple[Tuple[str, str, float], ...] = (
    ("left_eye_inner", "right_eye_inner", 1.5),
    ("left_eye_outer", "right_eye_outer", 1.5),
    ("left_eye_upper", "right_eye_upper", 1.2),
    ("left_eye_lower", "right_eye_lower", 1.2),
    ("left_brow_inner", "right_brow_inner", 1.3),
    ("left_brow_outer", "right_brow_outer", 1.3),
    ("left_cheekbone", "right_cheekbone", 1.0),
    ("left_gonion", "right_gonion", 1.1),
    ("left_nostril", "right_nostril", 0.9),
    ("mouth_left", "mouth_right", 1.2),
    ("left_jaw", "right_jaw", 1.0),
)


@dataclass(frozen=True)
class FacialThirds:
    """Vertical thirds as fractions of total face height (sum to 1)."""
    upper: float
    middle: float
    lower: float

    def is_finite(self) -> bool:
        return all(math.isfinite(v) for v in (self.upper, self.middle, self.lower))


# Population reference values used when a measurement cannot be computed.
# Scored measurements use their ideal value so a default is score-neutral.
MEASUREMENT_DEFAULTS: Mapping[str, Any] = MappingProxyType({
    "ipd": 63.5,
    "esr": 47.0,
    "pfl": 30.0,
    "eye_aspect_ratio": 3.0,
    "canthal_tilt": 5.0,
    "intercanthal_width": 32.0,
    "fwhr": 2.0,
    "facial_index": 86.0,
    "facial_thirds": FacialThirds(1 / 3, 1 / 3, 1 / 3),
    "philtrum_length": 13.0,
    "chin_philtrum_ratio": 2.0,
    "midface_ratio": 48.0,
    "mouth_width": 50.0,
    "nasal_width": 35.0,
    "nasal_index": 70.0,
    "gonial_angle": 120.0,
    "nasofrontal_angle": NASOFRONTAL_DEFAULT_DEG,
    "nasolabial_angle": 100.0,
    "bizygomatic": REFERENCE_FACE_WIDTH_MM,
    "bigonial": 108.0,
    "jaw_to_face_ratio": 0.8,
    "brow_height": 18.0,
    "symmetry_score": 0.95,
    "golden_ratio_adherence": 0.5,
})


@dataclass(frozen=True)
class FacialMeasurements:
    """
    Anthropometric measurements for one face.

    Distances are in millimetres (via the bizygomatic scale calibration),
    angles in degrees, ratios unitless. symmetry_score and
    golden_ratio_adherence are in [0, 1].
    """
    ipd: float
    esr: float
    pfl: float
    canthal_tilt: float
    fwhr: float
    facial_thirds: FacialThirds
    philtrum_length: float
    midface_ratio: float
    gonial_angle: float
    nasofrontal_angle: float
    chin_philtrum_ratio: float
    bizygomatic: float
    bigonial: float
    symmetry_score: float

    # Extended measurements (informational, not scored)
    eye_aspect_ratio: float = MEASUREMENT_DEFAULTS["eye_aspect_ratio"]
    intercanthal_width: float = MEASUREMENT_DEFAULTS["intercanthal_width"]
    facial_index: float = MEASUREMENT_DEFAULTS["facial_index"]
    mouth_width: float = MEASUREMENT_DEFAULTS["mouth_width"]
    nasal_width: float = MEASUREMENT_DEFAULTS["nasal_width"]
    nasal_index: float = MEASUREMENT_DEFAULTS["nasal_index"]
    nasolabial_angle: float = MEASUREMENT_DEFAULTS["nasolabial_angle"]
    jaw_to_face_ratio: float = MEASUREMENT_DEFAULTS["jaw_to_face_ratio"]
    brow_height: float = MEASUREMENT_DEFAULTS["brow_height"]
    golden_ratio_adherence: float = MEASUREMENT_DEFAULTS["golden_ratio_adherence"]

    # Calibration and provenance
    scale_factor: Optional[float] = None
    defaulted: Tuple[str, ...] = ()

    def to_dict(self) -> Dict[str, Any]:
        """Plain, JSON-serializable representation."""
        data = asdict(self)
        data["defaulted"] = list(self.defaulted)
        return data


class _CalibrationError(ArithmeticError):
    """No scale calibration is available for a millimetre measurement."""


def _ratio(numerator: float, denominator: float) -> float:
    if abs(denominator) < EPSILON:
        raise ZeroDivisionError("ratio denominator is zero")
    return numerator / denominator


def _is_finite(value: Any) -> bool:
    if isinstance(value, FacialThirds):
        return value.is_finite()
    return math.isfinite(value)


class _MeasurementRecorder:
    """Evaluates measurements, substituting documented defaults on failure."""

    def __init__(self, defaults: Mapping[str, Any]):
        self.defaults = defaults
        self.defaulted: List[str] = []

    def measure(self, name: str, compute: Callable[[], Any]) -> Any:
        try:
            value = compute()
        except (MissingLandmarkError, ArithmeticError) as e:
            return self._fallback(name, str(e))

        if not _is_finite(value):
            return self._fallback(name, f"non-finite value {value!r}")
        if not isinstance(value, FacialThirds):
            value = float(value)
        return value

    def _fallback(self, name: str, reason: str) -> Any:
        default = self.defaults[name]
        logger.warning(
            "Measurement '%s' unavailable (%s); using default %s",
            name, reason, default
        )
        self.defaulted.append(name)
        return default


# =============================================================================
# Individual measurement algorithms
# =============================================================================

def nasofrontal_angle(
    glabella: NDArray[np.float64],
    nasion: NDArray[np.float64],
    nose_tip: NDArray[np.float64],
) -> float:
    """
    Nasofrontal angle at the nasion, measured in the profile (Y/Z) plane.

    The angle lies between the nasion->glabella ray (forehead slope) and the
    nasion->nose tip ray (nasal dorsum). Monocular z is noisy, so results
    outside the plausible 90-170 degree window are replaced by a heuristic
    based on how far the nose tip projects relative to the forehead. Inputs
    too flat to distinguish give the neutral 130 degrees.

    Never raises.
    """
    angle = profile_angle(glabella, nasion, nose_tip)
    if angle is None:
        return NASOFRONTAL_DEFAULT_DEG

    low, high = NASOFRONTAL_PLAUSIBLE_RANGE
    if low <= angle <= high:
        return angle

    nose_prominence = abs(nose_tip[2] - nasion[2])
    forehead_slope = abs(glabella[2] - nasion[2])
    logger.debug(
        "Nasofrontal angle %.1f outside [%.0f, %.0f]; prominence=%.4f, "
        "forehead slope=%.4f",
        angle, low, high, nose_prominence, forehead_slope
    )

    if nose_prominence > NOSE_PROMINENCE_THRESHOLD:
        return (
            NASOFRONTAL_HEURISTIC_BASE_DEG
            + (nose_prominence - forehead_slope) * NASOFRONTAL_HEURISTIC_GAIN
        )
    return NASOFRONTAL_DEFAULT_DEG


def calculate_symmetry(landmarks: LandmarkSet) -> float:
    """
    Bilateral symmetry score in [0, 1], 1 being perfectly symmetric.

    The facial midline is the mean x of five midline landmarks (nasion, nose
    tip, nose base, chin, glabella) rather than a full centroid, so that
    asymmetric cheek or jaw points do not drag the axis. Each weighted
    left/right pair contributes

        0.7 * |dL - dR| / mean(dL, dR)  +  0.3 * |yL - yR| / 0.15

    where d is the horizontal distance from the midline. Pairs whose mean
    distance is 0.01 or less, or whose landmarks are missing, are skipped.
    The weighted mean m maps to exp(-0.5 * m).

    Raises:
        MissingLandmarkError: If a midline landmark is missing.
    """
    midline_x = float(np.mean([landmarks[role][0] for role in MIDLINE_ROLES]))

    total_weighted_diff = 0.0
    total_weight = 0.0

    for left_role, right_role, weight in SYMMETRY_PAIRS:
        if left_role not in landmarks or right_role not in landmarks:
            continue
        left = landmarks[left_role]
        right = landmarks[right_role]

        left_dist = abs(left[0] - midline_x)
        right_dist = abs(right[0] - midline_x)
        avg_dist = (left_dist + right_dist) / 2.0

        if avg_dist <= MIN_MIDLINE_DISTANCE:
            continue

        horizontal = abs(left_dist - right_dist) / avg_dist
        vertical = abs(left[1] - right[1]) / VERTICAL_REFERENCE_WIDTH
        combined = (
            horizontal * HORIZONTAL_ASYMMETRY_WEIGHT
            + vertical * VERTICAL_ASYMMETRY_WEIGHT
        )

        total_weighted_diff += combined * weight
        total_weight += weight

    avg_weighted_diff = total_weighted_diff / total_weight if total_weight > 0 else 0.0
    score = math.exp(-avg_weighted_diff * SYMMETRY_DECAY)
    # NaN must survive the clamp so the measurement is defaulted
    return float(np.clip(score, 0.0, 1.0))


def golden_ratio_adherence(
    face_width: float,
    face_height: float,
    ipd: float,
    left_pfl: float,
    right_pfl: float,
    upper_face_height: float,
) -> float:
    """
    How closely three structural ratios follow phi, in [0, 1].

    Ratios: face height / width, width / upper face height, and
    interpupillary distance / mean eye width. Each ratio is compared with
    both phi and 1/phi and the closer relative deviation is kept.
    """
    ratios = [
        _ratio(face_height, face_width),
        _ratio(face_width, upper_face_height),
        _ratio(ipd, (left_pfl + right_pfl) / 2.0),
    ]

    total_deviation = 0.0
    for ratio in ratios:
        from_phi = abs(ratio - PHI) / PHI
        from_inverse = abs(ratio - 1.0 / PHI) / (1.0 / PHI)
        total_deviation += min(from_phi, from_inverse)

    return float(np.maximum(0.0, 1.0 - total_deviation / len(ratios)))


# =============================================================================
# Full extraction
# =============================================================================

def calculate_measurements(
    landmarks: LandmarkSet,
    reference_width_mm: float = REFERENCE_FACE_WIDTH_MM,
) -> FacialMeasurements:
    """
    Calculate all facial measurements from a landmark set.

    Args:
        landmarks: LandmarkSet in normalized image coordinates
        reference_width_mm: Assumed real bizygomatic width for calibration

    Returns:
        FacialMeasurements (never raises for numeric edge cases)
    """
    lm = landmarks
    defaults = dict(MEASUREMENT_DEFAULTS)
    defaults["bizygomatic"] = reference_width_mm
    recorder = _MeasurementRecorder(defaults)
    measure = recorder.measure

    # === SCALE CALIBRATION ===
    try:
        bizygomatic_norm: Optional[float] = distance_2d(
            lm["left_cheekbone"], lm["right_cheekbone"]
        )
        scale_factor: Optional[float] = _ratio(reference_width_mm, bizygomatic_norm)
        if not (math.isfinite(bizygomatic_norm) and math.isfinite(scale_factor)):
            raise ArithmeticError("non-finite bizygomatic width")
    except (MissingLandmarkError, ArithmeticError) as e:
        logger.warning(
            "Scale calibration failed (%s); millimetre measurements use defaults", e
        )
        bizygomatic_norm = None
        scale_factor = None
    else:
        logger.debug(
            "Scale calibration: bizygomatic=%.4f normalized, %.2f mm/unit",
            bizygomatic_norm, scale_factor
        )

    def mm(norm_distance: float) -> float:
        if scale_factor is None:
            raise _CalibrationError("no scale calibration")
        return norm_distance * scale_factor

    def face_width() -> float:
        if bizygomatic_norm is None:
            raise _CalibrationError("no bizygomatic width")
        return bizygomatic_norm

    # === SHARED LANDMARK GEOMETRY ===
    def eye_centre(side: str) -> NDArray[np.float64]:
        return centroid([
            lm[f"{side}_eye_inner"],
            lm[f"{side}_eye_outer"],
            lm[f"{side}_eye_upper"],
            lm[f"{side}_eye_lower"],
        ])

    def ipd_norm() -> float:
        return distance_2d(eye_centre("left"), eye_centre("right"))

    def pfl_norm(side: str) -> float:
        return distance_2d(lm[f"{side}_eye_inner"], lm[f"{side}_eye_outer"])

    def pfh_norm(side: str) -> float:
        return distance_2d(lm[f"{side}_eye_upper"], lm[f"{side}_eye_lower"])

    def upper_face_height() -> float:
        return distance_2d(lm["glabella"], lm["upper_lip_top"])

    def face_height() -> float:
        return distance_2d(lm["forehead"], lm["chin"])

    def bigonial_norm() -> float:
        return distance_2d(lm["left_gonion"], lm["right_gonion"])

    # === EYES ===
    ipd = measure("ipd", lambda: mm(ipd_norm()))
    esr = measure("esr", lambda: _ratio(ipd_norm(), face_width()) * 100.0)
    pfl = measure("pfl", lambda: mm((pfl_norm("left") + pfl_norm("right")) / 2.0))
    eye_aspect_ratio = measure("eye_aspect_ratio", lambda: (
        _ratio(pfl_norm("left"), pfh_norm("left"))
        + _ratio(pfl_norm("right"), pfh_norm("right"))
    ) / 2.0)
    tilt = measure("canthal_tilt", lambda: canthal_tilt(lm))
    intercanthal_width = measure("intercanthal_width", lambda: mm(
        distance_2d(lm["left_eye_inner"], lm["right_eye_inner"])
    ))

    # === FACE PROPORTIONS ===
    fwhr = measure("fwhr", lambda: _ratio(face_width(), upper_face_height()))
    facial_index = measure(
        "facial_index", lambda: _ratio(face_height(), face_width()) * 100.0
    )

    def thirds() -> FacialThirds:
        upper = distance_2d(lm["forehead"], lm["nasion"])
        middle = distance_2d(lm["nasion"], lm["nose_base"])
        lower = distance_2d(lm["nose_base"], lm["chin"])
        total = upper + middle + lower
        return FacialThirds(
            upper=_ratio(upper, total),
            middle=_ratio(middle, total),
            lower=_ratio(lower, total),
        )

    facial_thirds = measure("facial_thirds", thirds)

    # === LOWER FACE ===
    def philtrum_norm() -> float:
        return distance_2d(lm["philtrum_top"], lm["philtrum_bottom"])

    def chin_philtrum() -> float:
        philtrum = philtrum_norm()
        if philtrum < EPSILON:
            return MEASUREMENT_DEFAULTS["chin_philtrum_ratio"]
        return distance_2d(lm["lower_lip_bottom"], lm["chin"]) / philtrum

    philtrum_length = measure("philtrum_length", lambda: mm(philtrum_norm()))
    chin_philtrum_ratio = measure("chin_philtrum_ratio", chin_philtrum)
    midface_ratio = measure("midface_ratio", lambda: mm(distance_2d(
        midpoint(eye_centre("left"), eye_centre("right")),
        midpoint(lm["mouth_left"], lm["mouth_right"]),
    )))
    mouth_width = measure("mouth_width", lambda: mm(
        distance_2d(lm["mouth_left"], lm["mouth_right"])
    ))

    # === NOSE ===
    def nostril_norm() -> float:
        return distance_2d(lm["left_nostril"], lm["right_nostril"])

    def nasal_index_value() -> float:
        nasal_height = distance_2d(lm["nasion"], lm["nose_base"])
        if nasal_height < EPSILON:
            return MEASUREMENT_DEFAULTS["nasal_index"]
        return nostril_norm() / nasal_height * 100.0

    nasal_width = measure("nasal_width", lambda: mm(nostril_norm()))
    nasal_index = measure("nasal_index", nasal_index_value)
    naso_frontal = measure("nasofrontal_angle", lambda: nasofrontal_angle(
        lm["glabella"], lm["nasion"], lm["nose_tip"]
    ))
    nasolabial_angle = measure("nasolabial_angle", lambda: angle_at_vertex(
        lm["nose_tip"], lm["nose_base"], lm["upper_lip_top"]
    ))

    # === JAW ===
    gonial_angle = measure("gonial_angle", lambda: (
        angle_at_vertex(lm["chin"], lm["left_gonion"], lm["left_ramus"])
        + angle_at_vertex(lm["chin"], lm["right_gonion"], lm["right_ramus"])
    ) / 2.0)
    bizygomatic = measure("bizygomatic", lambda: mm(face_width()))
    bigonial = measure("bigonial", lambda: mm(bigonial_norm()))
    jaw_to_face_ratio = measure(
        "jaw_to_face_ratio", lambda: _ratio(bigonial_norm(), face_width())
    )

    # === BROWS ===
    def brow_to_eye(side: str) -> float:
        brow = midpoint(lm[f"{side}_brow_inner"], lm[f"{side}_brow_outer"])
        return distance_2d(brow, eye_centre(side))

    brow_height = measure("brow_height", lambda: mm(
        (brow_to_eye("left") + brow_to_eye("right")) / 2.0
    ))

    # === WHOLE-FACE SCORES ===
    symmetry_score = measure("symmetry_score", lambda: calculate_symmetry(lm))
    golden_ratio = measure("golden_ratio_adherence", lambda: golden_ratio_adherence(
        face_width(),
        face_height(),
        ipd_norm(),
        pfl_norm("left"),
        pfl_norm("right"),
        upper_face_height(),
    ))

    measurements = FacialMeasurements(
        ipd=ipd,
        esr=esr,
        pfl=pfl,
        canthal_tilt=tilt,
        fwhr=fwhr,
        facial_thirds=facial_thirds,
        philtrum_length=philtrum_length,
        midface_ratio=midface_ratio,
        gonial_angle=gonial_angle,
        nasofrontal_angle=naso_frontal,
        chin_philtrum_ratio=chin_philtrum_ratio,
        bizygomatic=bizygomatic,
        bigonial=bigonial,
        symmetry_score=symmetry_score,
        eye_aspect_ratio=eye_aspect_ratio,
        intercanthal_width=intercanthal_width,
        facial_index=facial_index,
        mouth_width=mouth_width,
        nasal_width=nasal_width,
        nasal_index=nasal_index,
        nasolabial_angle=nasolabial_angle,
        jaw_to_face_ratio=jaw_to_face_ratio,
        brow_height=brow_height,
        golden_ratio_adherence=golden_ratio,
        scale_factor=scale_factor,
        defaulted=tuple(recorder.defaulted),
    )

    logger.debug(
        "Calculated measurements: ipd=%.2f, fwhr=%.3f, canthal_tilt=%.2f, "
        "gonial_angle=%.2f, symmetry=%.3f",
        measurements.ipd, measurements.fwhr, measurements.canthal_tilt,
        measurements.gonial_angle, measurements.symmetry_score
    )
    return measurements
