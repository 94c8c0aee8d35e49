"""Tests for configuration loading."""

from pathlib import Path

import pytest
import yaml

from credence.foundation.config import (
    CredenceConfig,
    get_config,
    load_config,
    reset_config,
    save_default_config,
)
from credence.foundation.errors import CredenceError, ErrorCode


class TestDefaults:
    """Built-in defaults with no files or environment."""

    def test_defaults(self) -> None:
        """No config file means dataclass defaults."""
        config = load_config()

        assert config == CredenceConfig()
        assert config.defeat.max_depth == 10
        assert config.defeat.direct_reduction == 0.3
        assert config.calibration.bucket_count == 10
        assert config.calibration.kernel_type == "gaussian"
        assert config.debug is False

    def test_get_config_is_cached(self) -> None:
        """get_config returns the same instance until reset."""
        first = get_config()

        assert get_config() is first
        reset_config()
        assert get_config() is not first


class TestFileLoading:
    """YAML files are merged over the defaults."""

    def test_explicit_path(self, tmp_path: Path) -> None:
        """Values from an explicit file override defaults."""
        path = tmp_path / "custom.yaml"
        path.write_text("defeat:\n  max_depth: 4\ncalibration:\n  kernel_type: epanechnikov\n")

        config = load_config(path)

        assert config.defeat.max_depth == 4
        assert config.defeat.create_defeaters is True
        assert config.calibration.kernel_type == "epanechnikov"

    def test_project_local_file(self) -> None:
        """.credence/config.yaml in the working directory is found."""
        Path(".credence").mkdir()
        Path(".credence/config.yaml").write_text("debug: true\n")

        assert load_config().debug is True

    def test_values_are_coerced(self, tmp_path: Path) -> None:
        """String values are coerced to the default's type."""
        path = tmp_path / "c.yaml"
        path.write_text("defeat:\n  max_depth: '7'\n  create_defeaters: 'no'\n")

        config = load_config(path)

        assert config.defeat.max_depth == 7
        assert config.defeat.create_defeaters is False

    def test_invalid_choice(self, tmp_path: Path) -> None:
        """An unknown kernel is rejected."""
        path = tmp_path / "c.yaml"
        path.write_text("calibration:\n  kernel_type: triangular\n")

        with pytest.raises(CredenceError) as exc_info:
            load_config(path)
        assert exc_info.value.code == ErrorCode.CONFIG_INVALID
        assert "calibration.kernel_type" in str(exc_info.value)

    def test_invalid_number(self, tmp_path: Path) -> None:
        """A non-numeric depth is rejected."""
        path = tmp_path / "c.yaml"
        path.write_text("defeat:\n  max_depth: deep\n")

        with pytest.raises(CredenceError, match="defeat.max_depth"):
            load_config(path)

    def test_parse_error(self, tmp_path: Path) -> None:
        """Broken YAML raises CONFIG_PARSE_ERROR."""
        path = tmp_path / "broken.yaml"
        path.write_text("defeat: [unclosed\n")

        with pytest.raises(CredenceError) as exc_info:
            load_config(path)
        assert exc_info.value.code == ErrorCode.CONFIG_PARSE_ERROR

    def test_non_mapping_top_level(self, tmp_path: Path) -> None:
        """A YAML list at the top level is rejected."""
        path = tmp_path / "list.yaml"
        path.write_text("- 1\n- 2\n")

        with pytest.raises(CredenceError, match="top level must be a mapping"):
            load_config(path)

    def test_unknown_keys_are_ignored(self, tmp_path: Path, caplog: pytest.LogCaptureFixture) -> None:
        """Unknown settings are logged and skipped."""
        path = tmp_path / "c.yaml"
        path.write_text("defeat:\n  max_depth: 3\n  shiny: true\n")

        config = load_config(path)

        assert config.defeat.max_depth == 3
        assert "shiny" in caplog.text


class TestEnvOverrides:
    """CREDENCE_* variables win over files."""

    def test_section_override(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        """CREDENCE_<SECTION>_<KEY> sets a field."""
        path = tmp_path / "c.yaml"
        path.write_text("defeat:\n  max_depth: 4\n")
        monkeypatch.setenv("CREDENCE_DEFEAT_MAX_DEPTH", "2")
        monkeypatch.setenv("CREDENCE_CALIBRATION_BUCKET_COUNT", "5")

        config = load_config(path)

        assert config.defeat.max_depth == 2
        assert config.calibration.bucket_count == 5

    def test_debug_override(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """CREDENCE_DEBUG toggles debug."""
        monkeypatch.setenv("CREDENCE_DEBUG", "true")

        assert load_config().debug is True

    def test_unrelated_variables_ignored(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """Variables that name no field do nothing."""
        monkeypatch.setenv("CREDENCE_DEFEAT_NOPE", "1")
        monkeypatch.setenv("CREDENCE_LOG_LEVEL", "INFO")

        assert load_config() == CredenceConfig()


class TestSaveDefault:
    """Writing the default config file."""

    def test_round_trip(self, tmp_path: Path) -> None:
        """A saved default file loads back to the defaults."""
        target = save_default_config(tmp_path / "nested" / "config.yaml")

        data = yaml.safe_load(target.read_text())
        assert data["defeat"]["max_depth"] == 10
        assert load_config(target) == CredenceConfig()
