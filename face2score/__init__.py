"""
face2score - Score facial proportions from MediaPipe Face Mesh landmarks.

This package converts one face's landmark coordinates into:
- Anthropometric measurements (distances, ratios, angles, symmetry)
- Per-feature scores against research-derived ideal ranges
- Category scores (harmony, miscellaneous, angularity, dimorphism)
- An overall score with a rarity bucket

Example usage:
    from face2score import AnalysisPipeline

    pipeline = AnalysisPipeline.from_json_file("landmarks.json")
    result = pipeline.run()
    print(result.overall_score, result.rarity)
    pipeline.export("./output")
"""

__version__ = "0.1.0"

from .landmarks import LANDMARK_INDICES, LandmarkIngest, LandmarkSet, MissingLandmarkError
from .measurements import FacialMeasurements, FacialThirds, calculate_measurements
from .scoring import (
    AnalysisResult,
    CategoryScores,
    FeatureAnalysis,
    analyze_face,
    get_rarity,
    rank_flaws,
)
from .pipeline import AnalysisPipeline, analyze_landmarks
from .exporter import ResultExporter

__all__ = [
    "AnalysisPipeline",
    "AnalysisResult",
    "CategoryScores",
    "FacialMeasurements",
    "FacialThirds",
    "FeatureAnalysis",
    "LANDMARK_INDICES",
    "LandmarkIngest",
    "LandmarkSet",
    "MissingLandmarkError",
    "ResultExporter",
    "analyze_face",
    "analyze_landmarks",
    "calculate_measurements",
    "get_rarity",
    "rank_flaws",
]
