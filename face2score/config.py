"""
Configuration management for face2score.

Handles:
- Command-line argument parsing
- YAML config file loading
- Configuration validation
- Merging configs with defaults
"""

from dataclasses import dataclass, field
from typing import Optional, Tuple
import argparse

from .landmarks import EXPECTED_LANDMARK_COUNT
from .measurements import REFERENCE_FACE_WIDTH_MM
from .scoring import DEFAULT_FLAW_LIMIT


@dataclass
class MeasurementConfig:
    """Measurement extraction configuration."""
    reference_face_width_mm: float = REFERENCE_FACE_WIDTH_MM
    expected_landmarks: int = EXPECTED_LANDMARK_COUNT
    image_size: Optional[Tuple[int, int]] = None  # None = raw normalized coords


@dataclass
class ReportConfig:
    """Report configuration."""
    flaw_limit: int = DEFAULT_FLAW_LIMIT
    show_measurements: bool = False


@dataclass
class ExportConfig:
    """Export configuration."""
    output_dir: Optional[str] = None  # None = print only, write no files
    json_indent: int = 2
    write_report: bool = True


def parse_image_size(value: str) -> Tuple[int, int]:
    """Parse a 'WxH' string into a positive (width, height) tuple."""
    try:
        w, h = value.lower().split('x')
        size = (int(w), int(h))
    except ValueError:
        raise ValueError(f"Invalid image size format: {value}. Use WxH (e.g., 640x480)")
    if size[0] <= 0 or size[1] <= 0:
        raise ValueError(f"Image size must be positive, got {value}")
    return size


@dataclass
class Config:
    """Complete configuration."""
    input_file: str
    measurement: MeasurementConfig = field(default_factory=MeasurementConfig)
    report: ReportConfig = field(default_factory=ReportConfig)
    export: ExportConfig = field(default_factory=ExportConfig)

    def validate(self) -> None:
        """
        Check value ranges.

        Raises:
            ValueError: If any option is out of range
        """
        if self.measurement.reference_face_width_mm <= 0:
            raise ValueError(
                f"reference_face_width_mm must be positive, "
                f"got {self.measurement.reference_face_width_mm}"
            )
        if self.measurement.expected_landmarks <= 0:
            raise ValueError(
                f"expected_landmarks must be positive, "
                f"got {self.measurement.expected_landmarks}"
            )
        if self.report.flaw_limit < 0:
            raise ValueError(f"flaw_limit must be >= 0, got {self.report.flaw_limit}")
        if self.export.json_indent < 0:
            raise ValueError(f"json_indent must be >= 0, got {self.export.json_indent}")

    @classmethod
    def from_args(cls, args: argparse.Namespace) -> "Config":
        """
        Create config from parsed command-line arguments.

        Loads config file if specified, then applies command-line overrides.

        Args:
            args: Parsed arguments from argparse

        Returns:
            Config instance

        Raises:
            ValueError: If no input file is given or an option is invalid
        """
        # Load from config file if specified
        if args.config:
            config = cls.from_yaml(args.config, input_file_override=args.input)
        else:
            if not args.input:
                raise ValueError("input file must be specified (positional argument or in config file)")
            config = cls(input_file=args.input)

        # Apply command-line overrides
        if args.input:
            config.input_file = args.input
        if args.output_dir:
            config.export.output_dir = args.output_dir

        # Measurement overrides
        if args.image_size:
            config.measurement.image_size = parse_image_size(args.image_size)
        if args.reference_width is not None:
            config.measurement.reference_face_width_mm = args.reference_width

        # Report overrides
        if args.flaw_limit is not None:
            config.report.flaw_limit = args.flaw_limit
        if args.show_measurements:
            config.report.show_measurements = True

        # Export overrides
        if args.no_report:
            config.export.write_report = False

        config.validate()
        return config

    @classmethod
    def from_yaml(cls, filepath: str, input_file_override: Optional[str] = None) -> "Config":
        """
        Load config from YAML file.

        Args:
            filepath: Path to YAML config file
            input_file_override: Override input file from command line

        Returns:
            Config instance
        """
        try:
            import yaml
        except ImportError:
            raise ImportError(
                "PyYAML is required for config files. "
                "Install with: pip install pyyaml"
            )

        with open(filepath, 'r') as f:
            data = yaml.safe_load(f) or {}

        # Parse input file
        input_file = input_file_override or data.get('input_file', '')
        if not input_file:
            raise ValueError("input_file must be specified in config or command line")

        # Parse measurement config
        measurement_data = data.get('measurement', {})
        image_size = measurement_data.get('image_size')
        if isinstance(image_size, str):
            image_size = parse_image_size(image_size)
        elif image_size is not None:
            image_size = tuple(image_size)
        measurement = MeasurementConfig(
            reference_face_width_mm=float(measurement_data.get(
                'reference_face_width_mm', REFERENCE_FACE_WIDTH_MM
            )),
            expected_landmarks=measurement_data.get('expected_landmarks', EXPECTED_LANDMARK_COUNT),
            image_size=image_size
        )

        # Parse report config
        report_data = data.get('report', {})
        report = ReportConfig(
            flaw_limit=report_data.get('flaw_limit', DEFAULT_FLAW_LIMIT),
            show_measurements=report_data.get('show_measurements', False)
        )

        # Parse export config
        export_data = data.get('export', {})
        export = ExportConfig(
            output_dir=export_data.get('output_dir'),
            json_indent=export_data.get('json_indent', 2),
            write_report=export_data.get('write_report', True)
        )

        return cls(
            input_file=input_file,
            measurement=measurement,
            report=report,
            export=export
        )

    def to_yaml(self, filepath: str) -> None:
        """
        Save config to YAML file.

        Args:
            filepath: Path to save YAML config file
        """
        try:
            import yaml
        except ImportError:
            raise ImportError(
                "PyYAML is required for config files. "
                "Install with: pip install pyyaml"
            )

        image_size = self.measurement.image_size
        data = {
            'input_file': self.input_file,
            'measurement': {
                'reference_face_width_mm': self.measurement.reference_face_width_mm,
                'expected_landmarks': self.measurement.expected_landmarks,
                'image_size': list(image_size) if image_size is not None else None
            },
            'report': {
                'flaw_limit': self.report.flaw_limit,
                'show_measurements': self.report.show_measurements
            },
            'export': {
                'output_dir': self.export.output_dir,
                'json_indent': self.export.json_indent,
                'write_report': self.export.write_report
            }
        }

        with open(filepath, 'w') as f:
            yaml.dump(data, f, default_flow_style=False, sort_keys=False)

    @staticmethod
    def generate_default_config_template() -> str:
        """
        Generate a default configuration template with comments.

        Returns:
            YAML string with comments explaining each option
        """
        return """# face2score Configuration File
#
# This file configures landmark ingestion, measurement and scoring output.
# Command-line arguments override values specified here.

# Input file (required)
# MediaPipe landmark JSON: {"source": "mediapipe", "landmarks": [[x, y, z], ...]}
input_file: "path/to/landmarks.json"

# Measurement configuration
measurement:
  # Assumed real bizygomatic (cheekbone) width used for mm calibration
  reference_face_width_mm: 140.0

  # Nominal landmark count (478 with iris refinement, 468 without)
  expected_landmarks: 478

  # Source image [width, height] for aspect correction
  # (null = use the file's image_size, or raw normalized coordinates)
  image_size: null

# Report configuration
report:
  # Maximum number of ranked flaws listed
  flaw_limit: 6

  # Include raw measurements in the text report
  show_measurements: false

# Export configuration
export:
  # Directory for analysis.json and report.txt (null = print only)
  output_dir: null

  # JSON indentation
  json_indent: 2

  # Write report.txt next to analysis.json
  write_report: true
"""


def create_argument_parser() -> argparse.ArgumentParser:
    """
    Create command-line argument parser.

    Returns:
        Configured ArgumentParser
    """
    parser = argparse.ArgumentParser(
        prog="face2score",
        description="Score facial proportions from MediaPipe Face Mesh landmarks",
        formatter_class=argparse.ArgumentDefaultsHelpFormatter,
        epilog="Configuration file (YAML) can be used to set all options. Command-line arguments override config file values."
    )

    # Config file
    parser.add_argument(
        "--config", "-c",
        help="Path to YAML configuration file"
    )

    # Input/output
    parser.add_argument(
        "input",
        nargs='?',
        help="Path to landmark JSON file (MediaPipe format)"
    )

    parser.add_argument(
        "--output-dir", "-o",
        help="Directory for analysis.json and report.txt"
    )

    # Generate default config
    parser.add_argument(
        "--save-config",
        metavar="PATH",
        help="Save default configuration to YAML file and exit"
    )

    # Measurement options
    measurement_group = parser.add_argument_group("Measurement Options")
    measurement_group.add_argument(
        "--image-size",
        type=str,
        metavar="WxH",
        help="Source image size for aspect correction (e.g., 640x480)"
    )
    measurement_group.add_argument(
        "--reference-width",
        type=float,
        metavar="MM",
        help="Assumed bizygomatic width in mm for scale calibration (default: 140)"
    )

    # Report options
    report_group = parser.add_argument_group("Report Options")
    report_group.add_argument(
        "--flaw-limit",
        type=int,
        metavar="N",
        help="Maximum number of flaws to list (default: 6)"
    )
    report_group.add_argument(
        "--show-measurements",
        action="store_true",
        help="Include raw measurements in the report"
    )
    report_group.add_argument(
        "--json",
        action="store_true",
        help="Print the analysis as JSON instead of the text report"
    )

    # Export options
    export_group = parser.add_argument_group("Export Options")
    export_group.add_argument(
        "--no-report",
        action="store_true",
        help="Skip writing report.txt"
    )

    # Other options
    parser.add_argument(
        "--verbose", "-v",
        action="store_true",
        help="Verbose output"
    )

    return parser
