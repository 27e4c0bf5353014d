"""
Export analysis results to disk.

This module provides:
- ResultExporter: writes analysis.json (the AnalysisResult document) and
  report.txt (a human-readable summary) into an output directory
- format_report: the plain-text summary, also printed by the CLI
"""

import json
import logging
from pathlib import Path
from typing import List

from .scoring import (
    DEFAULT_FLAW_LIMIT,
    AnalysisResult,
    improvement_recommendations,
    rank_flaws,
)

logger = logging.getLogger(__name__)


ANALYSIS_FILENAME = "analysis.json"
REPORT_FILENAME = "report.txt"

CATEGORY_LABELS = (
    ("harm", "Harmony"),
    ("misc", "Miscellaneous"),
    ("angu", "Angularity"),
    ("dimo", "Dimorphism"),
)


def format_report(
    result: AnalysisResult,
    flaw_limit: int = DEFAULT_FLAW_LIMIT,
    show_measurements: bool = False,
) -> str:
    """
    Render an AnalysisResult as a plain-text report.

    Sections: overall score and rarity, category scores, strengths, ranked
    flaws with recommendations, and optionally the raw measurements.
    """
    lines = []
    lines.append("=" * 60)
    lines.append("Facial Analysis Report")
    lines.append("=" * 60)
    lines.append(f"Overall score: {result.overall_score:.1f} / 10")
    lines.append(f"Rarity:        {result.rarity}")
    lines.append("")

    lines.append("Category scores:")
    for key, label in CATEGORY_LABELS:
        lines.append(f"  {label:<15} {getattr(result.category_scores, key):.1f}")
    lines.append("")

    strengths = result.strengths
    lines.append(f"Strengths ({len(strengths)}):")
    for feature in strengths:
        lines.append(f"  + {feature.name:<32} {feature.value:.1f}  (ideal: {feature.ideal})")
    if not strengths:
        lines.append("  (none)")
    lines.append("")

    flaws = rank_flaws(result.features, flaw_limit)
    lines.append(f"Flaws ({len(flaws)}):")
    for feature in flaws:
        lines.append(
            f"  - {feature.name:<32} {feature.value:.1f}  "
            f"deviation {feature.deviation:+.2f}  (ideal: {feature.ideal})"
        )
    if not flaws:
        lines.append("  (none)")

    recommendations = improvement_recommendations(result.features)[:flaw_limit]
    if recommendations:
        lines.append("")
        lines.append("Largest potential gains:")
        for rec in recommendations:
            lines.append(
                f"  {rec.feature_name:<34} +{rec.potential_improvement:.1f} "
                f"(severity {rec.severity:.2f})"
            )

    if show_measurements:
        m = result.measurements
        lines.append("")
        lines.append("Measurements:")
        for key, value in m.to_dict().items():
            if key in ("facial_thirds", "defaulted", "scale_factor"):
                continue
            marker = " *" if key in m.defaulted else ""
            lines.append(f"  {key:<24} {value:.3f}{marker}")
        thirds = m.facial_thirds
        lines.append(
            f"  {'facial_thirds':<24} {thirds.upper:.3f} / {thirds.middle:.3f} / "
            f"{thirds.lower:.3f}{' *' if 'facial_thirds' in m.defaulted else ''}"
        )
        if m.defaulted:
            lines.append("  (* = default value, landmarks unavailable)")

    lines.append("=" * 60)
    return "\n".join(lines) + "\n"


class ResultExporter:
    """
    Write an AnalysisResult to an output directory.

    Creates:
    - output_dir/analysis.json
    - output_dir/report.txt (unless write_report is False)
    """

    def __init__(
        self,
        result: AnalysisResult,
        json_indent: int = 2,
        flaw_limit: int = DEFAULT_FLAW_LIMIT,
        show_measurements: bool = False,
    ):
        self.result = result
        self.json_indent = json_indent
        self.flaw_limit = flaw_limit
        self.show_measurements = show_measurements

    def export(self, output_dir: Path, write_report: bool = True) -> List[Path]:
        """
        Export result files to directory.

        Args:
            output_dir: Directory to write files to (created if needed)
            write_report: Also write the plain-text report

        Returns:
            List of written file paths
        """
        output_dir = Path(output_dir)
        output_dir.mkdir(parents=True, exist_ok=True)

        written = [self._export_json(output_dir / ANALYSIS_FILENAME)]
        if write_report:
            written.append(self._export_report(output_dir / REPORT_FILENAME))

        logger.debug("Exported %d file(s) to %s", len(written), output_dir)
        return written

    def _export_json(self, filepath: Path) -> Path:
        # allow_nan=False: the document must stay valid strict JSON
        with open(filepath, 'w') as f:
            json.dump(self.result.to_dict(), f, indent=self.json_indent, allow_nan=False)
            f.write("\n")
        return filepath

    def _export_report(self, filepath: Path) -> Path:
        with open(filepath, 'w') as f:
            f.write(format_report(
                self.result,
                flaw_limit=self.flaw_limit,
                show_measurements=self.show_measurements,
            ))
        return filepath
