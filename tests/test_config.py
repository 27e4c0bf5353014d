"""
Tests for configuration loading and the command-line entry point.
"""

import json

import pytest
import yaml

from face2score.cli import main
from face2score.config import (
    Config,
    ExportConfig,
    MeasurementConfig,
    ReportConfig,
    create_argument_parser,
    parse_image_size,
)


def _parse(argv):
    return create_argument_parser().parse_args(argv)


class TestDefaults:
    """Test dataclass defaults."""

    def test_measurement_defaults(self):
        config = MeasurementConfig()
        assert config.reference_face_width_mm == 140.0
        assert config.expected_landmarks == 478
        assert config.image_size is None

    def test_report_defaults(self):
        assert ReportConfig().flaw_limit == 6
        assert ReportConfig().show_measurements is False

    def test_export_defaults(self):
        config = ExportConfig()
        assert config.output_dir is None
        assert config.json_indent == 2
        assert config.write_report is True


class TestParseImageSize:
    """Test WxH parsing."""

    def test_valid(self):
        assert parse_image_size("640x480") == (640, 480)
        assert parse_image_size("1920X1080") == (1920, 1080)

    def test_invalid_format(self):
        with pytest.raises(ValueError, match="WxH"):
            parse_image_size("640by480")

    def test_non_positive(self):
        with pytest.raises(ValueError, match="positive"):
            parse_image_size("0x480")


class TestFromArgs:
    """Test Config.from_args()."""

    def test_minimal(self):
        config = Config.from_args(_parse(["landmarks.json"]))
        assert config.input_file == "landmarks.json"
        assert config.export.output_dir is None

    def test_missing_input(self):
        with pytest.raises(ValueError, match="input file"):
            Config.from_args(_parse([]))

    def test_overrides(self):
        args = _parse([
            "landmarks.json",
            "--output-dir", "out",
            "--image-size", "640x480",
            "--reference-width", "145",
            "--flaw-limit", "3",
            "--show-measurements",
            "--no-report",
        ])
        config = Config.from_args(args)

        assert config.export.output_dir == "out"
        assert config.measurement.image_size == (640, 480)
        assert config.measurement.reference_face_width_mm == 145.0
        assert config.report.flaw_limit == 3
        assert config.report.show_measurements is True
        assert config.export.write_report is False

    def test_invalid_reference_width(self):
        with pytest.raises(ValueError, match="reference_face_width_mm"):
            Config.from_args(_parse(["landmarks.json", "--reference-width", "-1"]))

    def test_invalid_flaw_limit(self):
        with pytest.raises(ValueError, match="flaw_limit"):
            Config.from_args(_parse(["landmarks.json", "--flaw-limit", "-2"]))


class TestYaml:
    """Test YAML load/save."""

    def test_roundtrip(self, tmp_path):
        config = Config(
            input_file="face.json",
            measurement=MeasurementConfig(reference_face_width_mm=138.0, image_size=(800, 600)),
            report=ReportConfig(flaw_limit=4, show_measurements=True),
            export=ExportConfig(output_dir="results", json_indent=0, write_report=False),
        )
        path = tmp_path / "config.yaml"
        config.to_yaml(str(path))
        loaded = Config.from_yaml(str(path))

        assert loaded == config

    def test_partial_file_uses_defaults(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text("input_file: face.json\nreport:\n  flaw_limit: 2\n")
        config = Config.from_yaml(str(path))

        assert config.report.flaw_limit == 2
        assert config.measurement == MeasurementConfig()
        assert config.export == ExportConfig()

    def test_image_size_string(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text("input_file: face.json\nmeasurement:\n  image_size: 640x480\n")
        assert Config.from_yaml(str(path)).measurement.image_size == (640, 480)

    def test_missing_input_file(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text("report:\n  flaw_limit: 2\n")
        with pytest.raises(ValueError, match="input_file"):
            Config.from_yaml(str(path))

    def test_input_override(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text("input_file: face.json\n")
        config = Config.from_yaml(str(path), input_file_override="other.json")
        assert config.input_file == "other.json"

    def test_template_is_loadable(self, tmp_path):
        """The generated template should parse back into the defaults."""
        template = Config.generate_default_config_template()
        data = yaml.safe_load(template)
        assert set(data) == {"input_file", "measurement", "report", "export"}

        path = tmp_path / "template.yaml"
        path.write_text(template)
        config = Config.from_yaml(str(path))
        assert config.measurement == MeasurementConfig()
        assert config.report == ReportConfig()
        assert config.export == ExportConfig()

    def test_args_override_yaml(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text("input_file: face.json\nreport:\n  flaw_limit: 2\n")
        config = Config.from_args(_parse(["--config", str(path), "--flaw-limit", "5"]))
        assert config.input_file == "face.json"
        assert config.report.flaw_limit == 5


class TestMain:
    """Test the CLI entry point."""

    @pytest.fixture
    def landmark_file(self, tmp_path, ideal_face_points):
        path = tmp_path / "landmarks.json"
        path.write_text(json.dumps({
            "source": "mediapipe",
            "landmarks": ideal_face_points.tolist(),
        }))
        return path

    def test_report_to_stdout(self, landmark_file, capsys):
        assert main([str(landmark_file)]) == 0
        out = capsys.readouterr().out
        assert "Overall score: 9.8 / 10" in out

    def test_json_output(self, landmark_file, capsys):
        assert main([str(landmark_file), "--json"]) == 0
        data = json.loads(capsys.readouterr().out)
        assert data["rarity"] == "1 in 1.2M+"

    def test_output_dir(self, landmark_file, tmp_path):
        out_dir = tmp_path / "out"
        assert main([str(landmark_file), "-o", str(out_dir)]) == 0
        assert (out_dir / "analysis.json").exists()
        assert (out_dir / "report.txt").exists()

    def test_output_dir_no_report(self, landmark_file, tmp_path):
        out_dir = tmp_path / "out"
        assert main([str(landmark_file), "-o", str(out_dir), "--no-report"]) == 0
        assert (out_dir / "analysis.json").exists()
        assert not (out_dir / "report.txt").exists()

    def test_missing_file(self, tmp_path, capsys):
        assert main([str(tmp_path / "missing.json")]) == 1
        assert "File not found" in capsys.readouterr().err

    def test_bad_source(self, tmp_path, capsys):
        path = tmp_path / "bad.json"
        path.write_text(json.dumps({"source": "dlib", "landmarks": [[0, 0]]}))
        assert main([str(path)]) == 1
        assert "Unsupported landmark source" in capsys.readouterr().err

    def test_no_input(self, capsys):
        assert main([]) == 1
        assert "Configuration error" in capsys.readouterr().err

    def test_save_config(self, tmp_path, capsys):
        path = tmp_path / "default.yaml"
        assert main(["--save-config", str(path)]) == 0
        assert path.read_text() == Config.generate_default_config_template()
