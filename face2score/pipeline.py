"""
High-level pipeline orchestrating all components.

This module provides the AnalysisPipeline class which ties together:
- Landmark ingestion (arrays or MediaPipe JSON)
- Measurement extraction
- Scoring
- Export of the result document and text report

This is the main API for users of the library.
"""

import logging
from pathlib import Path
from typing import List, Optional, Tuple, Union

import numpy as np
from numpy.typing import NDArray

from .exporter import ResultExporter
from .landmarks import EXPECTED_LANDMARK_COUNT, LandmarkIngest, LandmarkSet
from .measurements import REFERENCE_FACE_WIDTH_MM, FacialMeasurements, calculate_measurements
from .scoring import DEFAULT_FLAW_LIMIT, AnalysisResult, analyze_face

logger = logging.getLogger(__name__)


class AnalysisPipeline:
    """
    High-level pipeline for facial landmark analysis.

    This class orchestrates the entire process:
    1. Load landmarks (JSON file or in-memory MediaPipe output)
    2. Extract anthropometric measurements
    3. Score features, categories and overall
    4. Export analysis.json and report.txt

    Example:
        pipeline = AnalysisPipeline.from_json_file("landmarks.json")
        result = pipeline.run()
        print(result.overall_score, result.rarity)
        pipeline.export("./output")
    """

    def __init__(
        self,
        landmarks: LandmarkSet,
        reference_width_mm: float = REFERENCE_FACE_WIDTH_MM
    ):
        """
        Initialize pipeline.

        Args:
            landmarks: LandmarkSet to analyze
            reference_width_mm: Assumed bizygomatic width for mm calibration
        """
        if reference_width_mm <= 0:
            raise ValueError(f"reference_width_mm must be positive, got {reference_width_mm}")

        self.landmarks = landmarks
        self.reference_width_mm = reference_width_mm

        # Set by run()
        self.measurements: Optional[FacialMeasurements] = None
        self.result: Optional[AnalysisResult] = None

    @classmethod
    def from_json_file(
        cls,
        filepath: Union[str, Path],
        image_size: Optional[Tuple[int, int]] = None,
        reference_width_mm: float = REFERENCE_FACE_WIDTH_MM,
        expected_count: int = EXPECTED_LANDMARK_COUNT
    ) -> "AnalysisPipeline":
        """
        Create pipeline from a landmark JSON file.

        Args:
            filepath: Path to MediaPipe landmark JSON
            image_size: (width, height) override for aspect correction
            reference_width_mm: Assumed bizygomatic width for mm calibration
            expected_count: Nominal landmark count

        Returns:
            AnalysisPipeline instance
        """
        landmarks = LandmarkIngest.from_json(
            filepath, expected_count=expected_count, image_size=image_size
        )
        return cls(landmarks, reference_width_mm)

    @classmethod
    def from_mediapipe(
        cls,
        landmarks: Union[List[List[float]], NDArray[np.float64]],
        image_size: Optional[Tuple[int, int]] = None,
        reference_width_mm: float = REFERENCE_FACE_WIDTH_MM,
        expected_count: int = EXPECTED_LANDMARK_COUNT
    ) -> "AnalysisPipeline":
        """
        Create pipeline from in-memory MediaPipe landmarks.

        Args:
            landmarks: (N, 2) or (N, 3) normalized landmarks
            image_size: (width, height) of the source image
            reference_width_mm: Assumed bizygomatic width for mm calibration
            expected_count: Nominal landmark count

        Returns:
            AnalysisPipeline instance
        """
        landmark_set = LandmarkIngest.from_mediapipe(
            landmarks, image_size=image_size, expected_count=expected_count
        )
        return cls(landmark_set, reference_width_mm)

    def run(self) -> AnalysisResult:
        """
        Measure and score the landmarks.

        Returns:
            AnalysisResult (also stored on the pipeline)
        """
        self.measurements = calculate_measurements(
            self.landmarks, reference_width_mm=self.reference_width_mm
        )
        if self.measurements.defaulted:
            logger.warning(
                "%d measurement(s) used defaults: %s",
                len(self.measurements.defaulted),
                ", ".join(self.measurements.defaulted)
            )

        self.result = analyze_face(self.measurements)
        logger.debug(
            "Analysis complete: overall=%.1f rarity=%s",
            self.result.overall_score, self.result.rarity
        )
        return self.result

    def export(
        self,
        output_dir: Union[str, Path],
        write_report: bool = True,
        json_indent: int = 2,
        flaw_limit: int = DEFAULT_FLAW_LIMIT,
        show_measurements: bool = False
    ) -> List[Path]:
        """
        Export analysis.json (and report.txt) to a directory.

        Args:
            output_dir: Output directory (created if needed)
            write_report: Also write report.txt
            json_indent: JSON indentation
            flaw_limit: Maximum flaws listed in the report
            show_measurements: Include raw measurements in the report

        Returns:
            List of written file paths

        Raises:
            RuntimeError: If run() has not been called
        """
        if self.result is None:
            raise RuntimeError("No analysis result. Call run() first.")

        exporter = ResultExporter(
            self.result,
            json_indent=json_indent,
            flaw_limit=flaw_limit,
            show_measurements=show_measurements
        )
        return exporter.export(Path(output_dir), write_report=write_report)

    def __repr__(self) -> str:
        status = "analyzed" if self.result is not None else "pending"
        return f"AnalysisPipeline(landmarks={len(self.landmarks)}, {status})"


def analyze_landmarks(
    landmarks: Union[List[List[float]], NDArray[np.float64]],
    image_size: Optional[Tuple[int, int]] = None,
    reference_width_mm: float = REFERENCE_FACE_WIDTH_MM
) -> AnalysisResult:
    """
    One-call analysis of in-memory landmarks.

    Args:
        landmarks: (N, 2) or (N, 3) normalized landmarks
        image_size: (width, height) of the source image
        reference_width_mm: Assumed bizygomatic width for mm calibration

    Returns:
        AnalysisResult
    """
    pipeline = AnalysisPipeline.from_mediapipe(
        landmarks, image_size=image_size, reference_width_mm=reference_width_mm
    )
    return pipeline.run()
