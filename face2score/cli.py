"""
Command-line interface for face2score.

This module provides the main entry point for the CLI tool.
"""

import json
import logging
import sys
from typing import Optional

from .config import create_argument_parser, Config
from .exporter import format_report
from .pipeline import AnalysisPipeline


def main(argv: Optional[list] = None) -> int:
    """
    Main entry point for CLI.

    Args:
        argv: Command-line arguments (None = sys.argv)

    Returns:
        Exit code (0 = success, non-zero = error)
    """
    # Parse arguments
    parser = create_argument_parser()
    args = parser.parse_args(argv)

    # Handle --save-config
    if args.save_config:
        template = Config.generate_default_config_template()
        with open(args.save_config, 'w') as f:
            f.write(template)
        print(f"Default configuration saved to: {args.save_config}")
        print(f"Edit this file and use with: face2score --config {args.save_config}")
        return 0

    # Create config
    try:
        config = Config.from_args(args)
    except (ValueError, FileNotFoundError) as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        print(f"\nUse --help for usage information or --save-config to generate a template.", file=sys.stderr)
        return 1

    # Configure logging
    if args.verbose:
        logging.basicConfig(level=logging.DEBUG, format="%(name)s: %(message)s")

    # Print banner (stderr keeps --json output clean)
    if args.verbose:
        image_size = config.measurement.image_size
        print("=" * 60, file=sys.stderr)
        print("face2score - Facial Landmark Analysis", file=sys.stderr)
        print("=" * 60, file=sys.stderr)
        print(f"Input: {config.input_file}", file=sys.stderr)
        print(f"Output: {config.export.output_dir or '(none)'}", file=sys.stderr)
        print(f"Image size: {'%dx%d' % image_size if image_size else '(from file / raw)'}", file=sys.stderr)
        print(f"Reference width: {config.measurement.reference_face_width_mm} mm", file=sys.stderr)
        print("=" * 60, file=sys.stderr)

    try:
        # Load landmarks
        if args.verbose:
            print("\n[1/3] Loading landmarks...", file=sys.stderr)

        pipeline = AnalysisPipeline.from_json_file(
            config.input_file,
            image_size=config.measurement.image_size,
            reference_width_mm=config.measurement.reference_face_width_mm,
            expected_count=config.measurement.expected_landmarks
        )

        if args.verbose:
            print(f"  Loaded: {pipeline.landmarks}", file=sys.stderr)

        # Analyze
        if args.verbose:
            print("\n[2/3] Measuring and scoring...", file=sys.stderr)

        result = pipeline.run()

        if args.verbose:
            defaulted = result.measurements.defaulted
            print(f"  Defaulted measurements: {', '.join(defaulted) if defaulted else 'none'}", file=sys.stderr)

        if args.json:
            print(json.dumps(result.to_dict(), indent=config.export.json_indent, allow_nan=False))
        else:
            print(format_report(
                result,
                flaw_limit=config.report.flaw_limit,
                show_measurements=config.report.show_measurements
            ), end="")

        # Export
        if config.export.output_dir:
            if args.verbose:
                print("\n[3/3] Exporting...", file=sys.stderr)
            written = pipeline.export(
                config.export.output_dir,
                write_report=config.export.write_report,
                json_indent=config.export.json_indent,
                flaw_limit=config.report.flaw_limit,
                show_measurements=config.report.show_measurements
            )
            if args.verbose:
                for path in written:
                    print(f"  → {path}", file=sys.stderr)

        return 0

    except FileNotFoundError as e:
        print(f"Error: File not found: {e}", file=sys.stderr)
        return 1
    except ValueError as e:
        print(f"Error: Invalid input: {e}", file=sys.stderr)
        return 1
    except Exception as e:
        print(f"Error: {e}", file=sys.stderr)
        if args.verbose:
            import traceback
            traceback.print_exc()
        return 1


if __name__ == "__main__":
    sys.exit(main())
