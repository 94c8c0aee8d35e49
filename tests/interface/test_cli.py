"""Tests for the credence command line."""

import json
import logging
from pathlib import Path

import pytest
from click.testing import CliRunner

from credence import __version__
from credence.interface.cli import main

SAMPLES = [(0.05, 0), (0.15, 1), (0.25, 1), (0.85, 0), (0.95, 1)]


@pytest.fixture(autouse=True)
def restore_root_logger():
    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    yield
    root.handlers[:] = handlers
    root.setLevel(level)


@pytest.fixture
def runner() -> CliRunner:
    return CliRunner()


def write_json(path: Path, data) -> str:
    path.write_text(json.dumps(data))
    return str(path)


@pytest.fixture
def samples_file(tmp_path: Path) -> str:
    return write_json(tmp_path / "bench.json", [{"confidence": c, "outcome": o} for c, o in SAMPLES])


class TestRoot:
    def test_version(self, runner: CliRunner) -> None:
        """--version prints the package version."""
        result = runner.invoke(main, ["--version"])

        assert result.exit_code == 0
        assert __version__ in result.output

    def test_help(self, runner: CliRunner) -> None:
        """Top-level help lists the groups."""
        result = runner.invoke(main, ["--help"])

        assert result.exit_code == 0
        assert "calibrate" in result.output
        assert "config" in result.output


class TestCalibrateCurve:
    def test_table_and_summary(self, runner: CliRunner, samples_file: str) -> None:
        """The summary lines report ECE, MCE and overconfidence."""
        result = runner.invoke(main, ["calibrate", "curve", samples_file, "--buckets", "5"])

        assert result.exit_code == 0, result.output
        assert "ECE: 0.4700" in result.output
        assert "MCE: 0.7500" in result.output
        assert "Overconfidence ratio: 40.00%" in result.output
        assert "[0.00, 0.20)" in result.output

    def test_json(self, runner: CliRunner, samples_file: str) -> None:
        """--json emits the report snapshot."""
        result = runner.invoke(main, ["calibrate", "curve", samples_file, "-b", "5", "--json"])

        assert result.exit_code == 0, result.output
        data = json.loads(result.output)
        assert data["datasetId"] == "bench"
        assert data["bucketCount"] == 5
        assert data["expectedCalibrationError"] == pytest.approx(0.47)

    def test_wrapped_pairs(self, runner: CliRunner, tmp_path: Path) -> None:
        """A {"samples": [...]} wrapper of pairs is accepted."""
        path = write_json(tmp_path / "wrapped.json", {"samples": [list(s) for s in SAMPLES]})

        result = runner.invoke(main, ["calibrate", "curve", path, "-b", "5"])

        assert result.exit_code == 0, result.output
        assert "ECE: 0.4700" in result.output

    def test_bucket_count_from_config(self, runner: CliRunner, samples_file: str, tmp_path: Path) -> None:
        """--config supplies the default bucket count."""
        config = tmp_path / "custom.yaml"
        config.write_text("calibration:\n  bucket_count: 5\n")

        result = runner.invoke(main, ["--config", str(config), "calibrate", "curve", samples_file, "--json"])

        assert result.exit_code == 0, result.output
        assert json.loads(result.output)["bucketCount"] == 5


class TestCalibrateAdjust:
    def test_adjusts(self, runner: CliRunner, tmp_path: Path) -> None:
        """A full bucket replaces the raw score with its accuracy."""
        path = write_json(tmp_path / "over.json", [[0.9, 1 if i < 10 else 0] for i in range(20)])

        result = runner.invoke(main, ["calibrate", "adjust", path, "0.9"])

        assert result.exit_code == 0, result.output
        assert "Adjusted: 0.900 -> 0.500 (weight 1.00)" in result.output

    def test_too_few(self, runner: CliRunner, samples_file: str) -> None:
        """Sparse buckets are left alone."""
        result = runner.invoke(main, ["calibrate", "adjust", samples_file, "0.9", "-b", "5"])

        assert result.exit_code == 0, result.output
        assert "Too few samples" in result.output
        assert "Adjusted: 0.900 -> 0.900 (weight 0.00)" in result.output


class TestOtherCalibrateCommands:
    def test_isotonic_json(self, runner: CliRunner, tmp_path: Path) -> None:
        """The fitted mapping is printed as JSON."""
        path = write_json(tmp_path / "preds.json", [
            {"predicted": 0.1, "actual": 0},
            {"predicted": 0.2, "actual": 1},
            {"predicted": 0.3, "actual": 0},
            {"predicted": 0.4, "actual": 1},
        ])

        result = runner.invoke(main, ["calibrate", "isotonic", path, "--json"])

        assert result.exit_code == 0, result.output
        data = json.loads(result.output)
        assert [p["calibrated"] for p in data["points"]] == [0.0, 0.5, 0.5, 1.0]

    def test_smooth_ece(self, runner: CliRunner, tmp_path: Path) -> None:
        """Smooth ECE is printed with the Silverman bandwidth."""
        path = write_json(tmp_path / "preds.json", [[0.9, 1], [0.9, 1], [0.9, 1]])

        result = runner.invoke(main, ["calibrate", "smooth-ece", path])

        assert result.exit_code == 0, result.output
        assert "Smooth ECE: 0.1000" in result.output
        assert "Bandwidth (Silverman): 0.0100" in result.output

    def test_samples_default(self, runner: CliRunner) -> None:
        """Defaults ask for 738 samples."""
        result = runner.invoke(main, ["calibrate", "samples"])

        assert result.exit_code == 0, result.output
        assert "Required samples: 738" in result.output

    def test_samples_have(self, runner: CliRunner) -> None:
        """--have reports the deficit or success."""
        short = runner.invoke(main, ["calibrate", "samples", "--have", "500"])
        met = runner.invoke(main, ["calibrate", "samples", "-e", "0.05", "-c", "0.95", "--have", "1000"])

        assert "238 short" in short.output
        assert "requirement met" in met.output

    def test_tier_json(self, runner: CliRunner) -> None:
        """tier --json emits the bootstrap settings."""
        result = runner.invoke(main, ["calibrate", "tier", "120", "--json"])

        assert result.exit_code == 0, result.output
        data = json.loads(result.output)
        assert data["calibrationWeight"] == 0.6
        assert data["useIsotonic"] is True


class TestErrors:
    def test_validation_error_exit_code(self, runner: CliRunner, samples_file: str) -> None:
        """Credence errors exit 1 with their error id."""
        result = runner.invoke(main, ["calibrate", "curve", samples_file, "--buckets", "0"])

        assert result.exit_code == 1
        assert "CR-3002" in result.output
        assert "bucket_count" in result.output

    def test_hints_are_shown(self, runner: CliRunner, tmp_path: Path) -> None:
        """Recovery hints follow the message."""
        path = write_json(tmp_path / "empty.json", [])

        result = runner.invoke(main, ["calibrate", "isotonic", path])

        assert result.exit_code == 1
        assert "CR-3001" in result.output
        assert "What you can do:" in result.output

    def test_invalid_json_file(self, runner: CliRunner, tmp_path: Path) -> None:
        """Unparseable input is a Credence error, not a traceback."""
        path = tmp_path / "broken.json"
        path.write_text("{not json")

        result = runner.invoke(main, ["calibrate", "curve", str(path)])

        assert result.exit_code == 1
        assert "CR-3002" in result.output

    def test_non_numeric_confidence(self, runner: CliRunner, tmp_path: Path) -> None:
        """A non-numeric confidence is reported with its field, not as a traceback."""
        path = write_json(tmp_path / "bad.json", [{"confidence": "high", "outcome": 1}])

        result = runner.invoke(main, ["calibrate", "curve", path])

        assert result.exit_code == 1
        assert "CR-3002" in result.output
        assert "confidence" in result.output
        assert isinstance(result.exception, SystemExit)

    def test_non_binary_outcome(self, runner: CliRunner, tmp_path: Path) -> None:
        """Outcomes other than 0 or 1 are rejected."""
        path = write_json(tmp_path / "bad.json", [[0.5, 7]])

        result = runner.invoke(main, ["calibrate", "isotonic", path])

        assert result.exit_code == 1
        assert "must be 0 or 1" in result.output

    def test_json_errors(self, runner: CliRunner, samples_file: str) -> None:
        """--json-errors reports the error as JSON."""
        result = runner.invoke(main, ["--json-errors", "calibrate", "curve", samples_file, "-b", "0"])

        assert result.exit_code == 1
        assert '"error_id": "CR-3002"' in result.output

    def test_broken_config(self, runner: CliRunner, tmp_path: Path) -> None:
        """A broken --config file fails with the parse error code."""
        config = tmp_path / "broken.yaml"
        config.write_text("defeat: [oops\n")

        result = runner.invoke(main, ["--config", str(config), "config", "show"])

        assert result.exit_code == 1
        assert "CR-5002" in result.output


class TestConfigCommands:
    def test_show_defaults(self, runner: CliRunner) -> None:
        """config show prints the effective settings."""
        result = runner.invoke(main, ["config", "show"])

        assert result.exit_code == 0, result.output
        assert "max_depth: 10" in result.output
        assert "kernel_type: gaussian" in result.output

    def test_show_with_config(self, runner: CliRunner, tmp_path: Path) -> None:
        """--config values appear in config show."""
        config = tmp_path / "custom.yaml"
        config.write_text("defeat:\n  max_depth: 3\n")

        result = runner.invoke(main, ["--config", str(config), "config", "show"])

        assert "max_depth: 3" in result.output

    def test_init(self, runner: CliRunner) -> None:
        """config init writes once and refuses to overwrite without --force."""
        target = Path("out") / "config.yaml"

        first = runner.invoke(main, ["config", "init", str(target)])
        second = runner.invoke(main, ["config", "init", str(target)])
        forced = runner.invoke(main, ["config", "init", str(target), "--force"])

        assert first.exit_code == 0, first.output
        assert target.exists()
        assert "already exists" in second.output
        assert "Wrote default config" in forced.output
