"""
Scoring engine: measurements -> feature scores -> category scores -> overall.

Each scored measurement is compared with a research-derived ideal range and
mapped onto 1-10 with a Gaussian falloff. Features are grouped into four
categories (HARMony, MISCellaneous, ANGUlarity, DIMOrphism) whose
importance-weighted means are combined into an overall score and a rarity
bucket.

The feature catalog is data, not code: adding a feature means adding a
FeatureDefinition (and an IdealRange when it is a plain measurement).
"""

import logging
import math
from dataclasses import asdict, dataclass
from types import MappingProxyType
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple

from .measurements import FacialMeasurements, FacialThirds

logger = logging.getLogger(__name__)


# =============================================================================
# Reference tables
# =============================================================================

@dataclass(frozen=True)
class IdealRange:
    """Ideal value and optional normal range for one measurement."""
    ideal: float
    min: Optional[float] = None
    max: Optional[float] = None


# Farkas (1994), Perrett et al. (1998), Rhodes et al. (2001)
IDEAL_RANGES: Mapping[str, IdealRange] = MappingProxyType({
    "ipd": IdealRange(min=58.0, max=68.0, ideal=63.5),
    "esr": IdealRange(min=44.0, max=52.0, ideal=47.0),
    "pfl": IdealRange(min=26.0, max=34.0, ideal=30.0),
    "canthal_tilt": IdealRange(min=2.0, max=10.0, ideal=5.0),
    "fwhr": IdealRange(min=1.8, max=2.2, ideal=2.0),
    "facial_thirds": IdealRange(ideal=0.333),
    "philtrum_length": IdealRange(min=10.0, max=18.0, ideal=13.0),
    "midface_ratio": IdealRange(min=42.0, max=54.0, ideal=48.0),
    "gonial_angle": IdealRange(min=110.0, max=130.0, ideal=120.0),
    "nasofrontal_angle": IdealRange(min=115.0, max=140.0, ideal=130.0),
    "chin_philtrum_ratio": IdealRange(min=1.6, max=2.4, ideal=2.0),
    "bizygomatic": IdealRange(min=130.0, max=155.0, ideal=142.0),
    "bigonial": IdealRange(min=95.0, max=125.0, ideal=108.0),
    "symmetry_score": IdealRange(min=0.80, max=1.0, ideal=0.95),
})

IMPORTANCE_WEIGHTS: Mapping[str, float] = MappingProxyType({
    "highest": 1.5,
    "high": 1.2,
    "medium": 1.0,
    "low": 0.7,
})

CATEGORY_WEIGHTS: Mapping[str, float] = MappingProxyType({
    "harm": 0.32,
    "misc": 0.26,
    "angu": 0.22,
    "dimo": 0.20,
})

CATEGORIES = ("HARM", "MISC", "ANGU", "DIMO")

# Gaussian falloff width, in units of half the normal range
SCORE_SIGMA = 0.7
MAX_SCORING_DEVIATION = 1.5
NEUTRAL_SCORE = 5.0

STRENGTH_MIN_SCORE = 6.5
STRENGTH_MIN_DEVIATION = -0.15

DEFAULT_FLAW_LIMIT = 6

# Only features at least this far below ideal get a recommendation
RECOMMENDATION_MIN_DEVIATION = 0.2
MAX_POTENTIAL_IMPROVEMENT = 2.0

# Descending (threshold, label); scores below the last threshold get the floor
RARITY_LADDER: Tuple[Tuple[float, str], ...] = (
    (9.1, "1 in 1.2M+"),
    (9.0, "1 in 1.2M"),
    (8.5, "1 in 58K"),
    (8.0, "1 in 4.1K"),
    (7.5, "1 in 440"),
    (7.0, "1 in 68"),
    (6.5, "1 in 16"),
    (6.0, "1 in 5.4"),
    (5.5, "1 in 2.7"),
    (5.0, "1 in 2"),
    (4.5, "1 in 2.16"),
    (4.0, "1 in 3.69"),
    (3.5, "1 in 9.7"),
    (3.0, "1 in 39.2"),
)
RARITY_FLOOR = "1 in 243+"


@dataclass(frozen=True)
class FeatureDefinition:
    id: str
    name: str
    category: str
    importance: str
    measurement_key: str
    ideal_description: str


FEATURE_DEFINITIONS: Tuple[FeatureDefinition, ...] = (
    # Harmony
    FeatureDefinition("ipd", "Interpupillary Distance", "HARM", "high",
                      "ipd", "62-65mm, ESR 46-50%"),
    FeatureDefinition("facial_thirds", "Facial Thirds", "HARM", "high",
                      "facial_thirds", "1:1:1 proportion"),
    FeatureDefinition("fwhr", "Facial Width-to-Height Ratio", "HARM", "high",
                      "fwhr", "~2.0 (1.8-2.2)"),
    FeatureDefinition("canthal_tilt", "Canthal Tilt", "HARM", "high",
                      "canthal_tilt", "Positive 3-8 degrees"),
    FeatureDefinition("nasofrontal_angle", "Nasofrontal Angle", "HARM", "medium",
                      "nasofrontal_angle", "125-135 degrees"),
    FeatureDefinition("chin_philtrum", "Chin to Philtrum Ratio", "HARM", "medium",
                      "chin_philtrum_ratio", "~1:2 (short philtrum)"),
    FeatureDefinition("bizygomatic", "Bizygomatic Width", "HARM", "medium",
                      "bizygomatic", "140-150mm"),

    # Angularity
    FeatureDefinition("gonial_angle", "Gonial Angle", "ANGU", "high",
                      "gonial_angle", "~120 degrees"),
    FeatureDefinition("bigonial", "Bigonial Width", "ANGU", "high",
                      "bigonial", "Wide mandible with defined angles"),

    # Dimorphism
    FeatureDefinition("midface_ratio", "Midface Ratio", "DIMO", "medium",
                      "midface_ratio", "47-50mm"),

    # Miscellaneous
    FeatureDefinition("symmetry", "Facial Symmetry", "MISC", "high",
                      "symmetry_score", "High bilateral symmetry"),
    FeatureDefinition("pfl", "Palpebral Fissure Length", "MISC", "medium",
                      "pfl", "27mm+ (iris method)"),
    FeatureDefinition("philtrum", "Philtrum Length", "MISC", "medium",
                      "philtrum_length", "Short (12-15mm)"),
    FeatureDefinition("esr", "Eye Separation Ratio", "MISC", "medium",
                      "esr", "46-50%"),
)


# =============================================================================
# Result types
# =============================================================================

@dataclass(frozen=True)
class FeatureAnalysis:
    """
    Scored feature.

    value is the 0-10 feature score; measured is the underlying measurement
    (for facial thirds, the largest third). deviation is signed in [-1, 1],
    negative when the measurement is below ideal.
    """
    id: str
    name: str
    category: str
    value: float
    ideal: str
    deviation: float
    importance: str
    is_strength: bool
    measured: float = 0.0


@dataclass(frozen=True)
class CategoryScores:
    harm: float
    misc: float
    angu: float
    dimo: float

    def rounded(self, ndigits: int = 1) -> "CategoryScores":
        return CategoryScores(
            harm=round(self.harm, ndigits),
            misc=round(self.misc, ndigits),
            angu=round(self.angu, ndigits),
            dimo=round(self.dimo, ndigits),
        )


@dataclass(frozen=True)
class ImprovementRecommendation:
    """A flaw mapped to its expected gain if addressed."""
    feature_id: str
    feature_name: str
    category: str
    severity: float
    current_score: float
    potential_improvement: float


@dataclass(frozen=True)
class AnalysisResult:
    """Complete analysis of one face."""
    overall_score: float
    rarity: str
    category_scores: CategoryScores
    features: Tuple[FeatureAnalysis, ...]
    measurements: FacialMeasurements

    @property
    def strengths(self) -> List[FeatureAnalysis]:
        return [f for f in self.features if f.is_strength]

    def flaws(self, limit: int = DEFAULT_FLAW_LIMIT) -> List[FeatureAnalysis]:
        return rank_flaws(self.features, limit)

    def to_dict(self) -> Dict[str, Any]:
        """
        Serializable output document.

        Keys: overall_score, rarity, category_scores, features, measurements.
        All values are plain Python types with no NaN or infinity.
        """
        return {
            "overall_score": self.overall_score,
            "rarity": self.rarity,
            "category_scores": asdict(self.category_scores),
            "features": [asdict(f) for f in self.features],
            "measurements": self.measurements.to_dict(),
        }


# =============================================================================
# Scoring functions
# =============================================================================

def score_measurement(
    value: float,
    ideal_range: Optional[IdealRange],
) -> Tuple[float, float]:
    """
    Score a measurement against its ideal range.

    The half-range normalizes the deviation: a value at the edge of the
    normal range has deviation +/-1. When the range has no bounds, 30% of
    the ideal is used as the range width.

        score = clamp(10 * exp(-d^2 / (2 * 0.7^2)), 1, 10), |d| <= 1.5

    Args:
        value: Measured value
        ideal_range: IdealRange, or None for an unscored measurement

    Returns:
        (score in [1, 10], signed deviation in [-1, 1]). A missing range
        gives the neutral (5.0, 0.0).
    """
    if ideal_range is None:
        return NEUTRAL_SCORE, 0.0

    if ideal_range.min is not None and ideal_range.max is not None:
        span = ideal_range.max - ideal_range.min
    else:
        span = ideal_range.ideal * 0.3

    offset = value - ideal_range.ideal
    if span == 0:
        # Degenerate range: anything but the exact ideal is maximally off
        raw = 0.0 if offset == 0 else math.copysign(MAX_SCORING_DEVIATION, offset)
    else:
        raw = offset / (span / 2.0)
    clamped = max(-MAX_SCORING_DEVIATION, min(MAX_SCORING_DEVIATION, raw))

    gaussian = 10.0 * math.exp(-(clamped * clamped) / (2.0 * SCORE_SIGMA * SCORE_SIGMA))
    score = max(1.0, min(10.0, gaussian))
    return score, max(-1.0, min(1.0, raw))


def score_facial_thirds(thirds: FacialThirds) -> Tuple[float, float]:
    """
    Score the balance of the facial thirds.

    Each third's relative deviation from 1/3 feeds an RMS imbalance r, and
    score = clamp(10 * exp(-r^2 / 0.02), 1, 10); 10% deviation in every
    third scores about 6. The returned deviation is the largest magnitude,
    signed like the upper third's deviation (a perfect upper third counts
    as positive).
    """
    ideal = 1.0 / 3.0
    upper_dev = (thirds.upper - ideal) / ideal
    middle_dev = (thirds.middle - ideal) / ideal
    lower_dev = (thirds.lower - ideal) / ideal

    rms = math.sqrt((upper_dev ** 2 + middle_dev ** 2 + lower_dev ** 2) / 3.0)
    score = 10.0 * math.exp(-(rms * rms) / 0.02)

    max_dev = max(abs(upper_dev), abs(middle_dev), abs(lower_dev))
    signed = -max_dev if upper_dev < 0 else max_dev

    return max(1.0, min(10.0, score)), max(-1.0, min(1.0, signed))


def is_strength(score: float, deviation: float) -> bool:
    """A feature is a strength when it scores well without falling short."""
    return deviation >= STRENGTH_MIN_DEVIATION and score >= STRENGTH_MIN_SCORE


def score_feature(
    definition: FeatureDefinition,
    measurements: FacialMeasurements,
) -> FeatureAnalysis:
    """Score one catalog entry against a set of measurements."""
    if definition.measurement_key == "facial_thirds":
        thirds = measurements.facial_thirds
        score, deviation = score_facial_thirds(thirds)
        measured = max(thirds.upper, thirds.middle, thirds.lower)
    else:
        measured = float(getattr(measurements, definition.measurement_key))
        score, deviation = score_measurement(
            measured, IDEAL_RANGES.get(definition.measurement_key)
        )

    logger.debug(
        "Feature %s: measured=%.3f score=%.2f deviation=%+.3f",
        definition.id, measured, score, deviation
    )

    return FeatureAnalysis(
        id=definition.id,
        name=definition.name,
        category=definition.category,
        value=score,
        ideal=definition.ideal_description,
        deviation=deviation,
        importance=definition.importance,
        is_strength=is_strength(score, deviation),
        measured=measured,
    )


def calculate_category_scores(features: Sequence[FeatureAnalysis]) -> CategoryScores:
    """
    Importance-weighted mean feature score per category.

    A category with no features scores the neutral 5.0.
    """
    totals = {key: 0.0 for key in CATEGORY_WEIGHTS}
    weights = {key: 0.0 for key in CATEGORY_WEIGHTS}

    for feature in features:
        key = feature.category.lower()
        weight = IMPORTANCE_WEIGHTS[feature.importance]
        totals[key] += feature.value * weight
        weights[key] += weight

    scores = {
        key: totals[key] / weights[key] if weights[key] > 0 else NEUTRAL_SCORE
        for key in CATEGORY_WEIGHTS
    }
    logger.debug("Category scores: %s", scores)
    return CategoryScores(**scores)


def calculate_overall_score(category_scores: CategoryScores) -> float:
    """Weighted sum of the four category scores."""
    return sum(
        getattr(category_scores, key) * weight
        for key, weight in CATEGORY_WEIGHTS.items()
    )


def get_rarity(score: float) -> str:
    """Rarity bucket for an overall score (first threshold met wins)."""
    for threshold, label in RARITY_LADDER:
        if score >= threshold:
            return label
    return RARITY_FLOOR


def rank_flaws(
    features: Sequence[FeatureAnalysis],
    limit: Optional[int] = DEFAULT_FLAW_LIMIT,
) -> List[FeatureAnalysis]:
    """
    Features that fall short of ideal, worst first.

    A flaw is a feature that is not a strength and has a negative deviation.
    Flaws are sorted by |deviation| descending; the sort is stable, so ties
    keep catalog order. limit=None returns them all.
    """
    flaws = [f for f in features if not f.is_strength and f.deviation < 0]
    flaws.sort(key=lambda f: abs(f.deviation), reverse=True)
    return flaws if limit is None else flaws[:limit]


def improvement_recommendations(
    features: Sequence[FeatureAnalysis],
) -> List[ImprovementRecommendation]:
    """
    Map significant flaws to their estimated score gain.

    Only flaws more than 0.2 below ideal qualify. The potential improvement
    is 3x the severity, capped at 2 points.
    """
    recommendations = []
    for flaw in rank_flaws(features, limit=None):
        severity = abs(flaw.deviation)
        if severity <= RECOMMENDATION_MIN_DEVIATION:
            continue
        recommendations.append(ImprovementRecommendation(
            feature_id=flaw.id,
            feature_name=flaw.name,
            category=flaw.category,
            severity=severity,
            current_score=flaw.value,
            potential_improvement=min(MAX_POTENTIAL_IMPROVEMENT, severity * 3.0),
        ))
    return recommendations


def analyze_face(measurements: FacialMeasurements) -> AnalysisResult:
    """
    Score a full set of measurements.

    Rarity is taken from the unrounded overall score; the overall and
    category scores stored in the result are rounded to one decimal.
    """
    features = tuple(
        score_feature(definition, measurements)
        for definition in FEATURE_DEFINITIONS
    )
    category_scores = calculate_category_scores(features)
    overall = calculate_overall_score(category_scores)
    rarity = get_rarity(overall)

    logger.debug("Overall score %.3f -> %s", overall, rarity)

    return AnalysisResult(
        overall_score=round(overall, 1),
        rarity=rarity,
        category_scores=category_scores.rounded(1),
        features=features,
        measurements=measurements,
    )
