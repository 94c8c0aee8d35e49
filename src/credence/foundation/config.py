"""Credence configuration management.

Loads configuration from .credence/config.yaml with sensible defaults.
All settings can be overridden via environment variables (CREDENCE_*).

Config locations (in priority order):
1. Environment variables (CREDENCE_<SECTION>_<KEY>)
2. Explicit path passed to load_config()
3. .credence/config.yaml (project-local)
4. ~/.credence/config.yaml (user-global)
5. Built-in defaults

Thread Safety:
    Uses threading.Lock for thread-safe lazy initialization.
"""

import logging
import os
import threading
from dataclasses import asdict, dataclass, field, fields, replace
from pathlib import Path
from typing import Any

import yaml

from credence.foundation.errors import ErrorCode, config_error

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class DefeatConfig:
    """Defaults for defeat propagation."""

    max_depth: int = 10
    """Maximum BFS depth for propagate_defeat."""

    create_defeaters: bool = True
    """Whether apply_transitive_defeat materializes a defeater per affected claim."""

    direct_reduction: float = 0.3
    """Confidence reduction for defeaters created on direct dependents."""

    transitive_reduction: float = 0.15
    """Confidence reduction for defeaters created further downstream."""


@dataclass(frozen=True, slots=True)
class CalibrationConfigDefaults:
    """Defaults for the calibration engine."""

    bucket_count: int = 10
    """Equal-width buckets for calibration curves."""

    kernel_type: str = "gaussian"
    """Kernel for smooth ECE: 'gaussian' or 'epanechnikov'."""

    num_eval_points: int = 100
    """Grid resolution for smooth ECE."""

    pac_epsilon: float = 0.05
    """Target calibration error for Hoeffding sample requirements."""

    pac_confidence: float = 0.95
    """Confidence level (1 - delta) for Hoeffding sample requirements."""

    min_samples_for_adjustment: int = 3
    """Buckets with fewer samples leave raw scores unadjusted."""

    min_samples_for_full_weight: int = 20
    """Bucket size at which an adjustment is applied at full strength."""


_SECTIONS = {
    "defeat": DefeatConfig,
    "calibration": CalibrationConfigDefaults,
}

_CHOICES = {
    ("calibration", "kernel_type"): ("gaussian", "epanechnikov"),
}


@dataclass(frozen=True, slots=True)
class CredenceConfig:
    """Root configuration for Credence."""

    defeat: DefeatConfig = field(default_factory=DefeatConfig)
    """Defeat propagation defaults."""

    calibration: CalibrationConfigDefaults = field(default_factory=CalibrationConfigDefaults)
    """Calibration engine defaults."""

    debug: bool = False
    """Enable DEBUG logging by default."""


# Global config instance (lazy-loaded, thread-safe)
_config: CredenceConfig | None = None
_config_lock = threading.Lock()


def _deep_update(base: dict, updates: dict) -> dict:
    """Recursively update a dict with another dict."""
    for key, value in updates.items():
        if key in base and isinstance(base[key], dict) and isinstance(value, dict):
            _deep_update(base[key], value)
        else:
            base[key] = value
    return base


def _coerce(section: str, key: str, value: Any, default: Any) -> Any:
    """Coerce a raw value to the type of its dataclass default."""
    where = f"{section}.{key}"
    try:
        if isinstance(default, bool):
            if isinstance(value, str):
                lowered = value.lower()
                if lowered not in ("true", "false", "1", "0", "yes", "no"):
                    raise ValueError(f"expected a boolean, got {value!r}")
                return lowered in ("true", "1", "yes")
            return bool(value)
        if isinstance(default, int):
            return int(value)
        if isinstance(default, float):
            return float(value)
    except (TypeError, ValueError) as e:
        raise config_error(ErrorCode.CONFIG_INVALID, key=where, detail=str(e), cause=e) from e

    text = str(value)
    choices = _CHOICES.get((section, key))
    if choices and text not in choices:
        raise config_error(
            ErrorCode.CONFIG_INVALID,
            key=where,
            detail=f"expected one of {', '.join(choices)}, got {text!r}",
        )
    return text


def _apply_env_overrides(config_dict: dict[str, Any]) -> dict[str, Any]:
    """Apply environment variable overrides.

    Environment variables follow pattern: CREDENCE_<SECTION>_<KEY>

    Examples:
        CREDENCE_DEFEAT_MAX_DEPTH=4
        CREDENCE_CALIBRATION_KERNEL_TYPE=epanechnikov
        CREDENCE_DEBUG=true
    """
    prefix = "CREDENCE_"

    for key, value in os.environ.items():
        if not key.startswith(prefix):
            continue
        path_str = key[len(prefix):].lower()

        if path_str == "debug":
            config_dict["debug"] = value
            continue

        for section in _SECTIONS:
            if path_str.startswith(section + "_"):
                name = path_str[len(section) + 1:]
                section_dict = config_dict.get(section)
                if isinstance(section_dict, dict) and name in {f.name for f in fields(_SECTIONS[section])}:
                    section_dict[name] = value
                break

    return config_dict


def _dict_to_config(data: dict[str, Any]) -> CredenceConfig:
    """Convert a merged dict to a typed CredenceConfig."""
    built: dict[str, Any] = {}
    for section, cls in _SECTIONS.items():
        raw = data.get(section) or {}
        if not isinstance(raw, dict):
            raise config_error(
                ErrorCode.CONFIG_INVALID, key=section, detail="expected a mapping",
            )
        defaults = cls()
        values = {}
        for f in fields(cls):
            if f.name in raw:
                values[f.name] = _coerce(section, f.name, raw[f.name], getattr(defaults, f.name))
        unknown = set(raw) - {f.name for f in fields(cls)}
        if unknown:
            logger.warning("Ignoring unknown %s settings: %s", section, ", ".join(sorted(unknown)))
        built[section] = replace(defaults, **values)

    debug = _coerce("root", "debug", data.get("debug", False), False)
    return CredenceConfig(debug=debug, **built)


def _read_yaml(path: Path) -> dict[str, Any]:
    try:
        with open(path) as f:
            loaded = yaml.safe_load(f) or {}
    except yaml.YAMLError as e:
        raise config_error(ErrorCode.CONFIG_PARSE_ERROR, key=str(path), detail=str(e), cause=e) from e
    if not isinstance(loaded, dict):
        raise config_error(
            ErrorCode.CONFIG_PARSE_ERROR, key=str(path), detail="top level must be a mapping",
        )
    return loaded


def load_config(path: str | Path | None = None) -> CredenceConfig:
    """Load configuration from file with defaults and env overrides.

    Args:
        path: Optional explicit config file path.

    Returns:
        Merged CredenceConfig instance.

    Raises:
        CredenceError: If a config file cannot be parsed or holds invalid values.
    """
    global _config

    defaults = CredenceConfig()
    config_dict: dict[str, Any] = {
        name: asdict(getattr(defaults, name)) for name in _SECTIONS
    }
    config_dict["debug"] = defaults.debug

    config_paths = []
    if path:
        config_paths.append(Path(path))
    config_paths.extend([
        Path(".credence/config.yaml"),
        Path.home() / ".credence" / "config.yaml",
    ])

    for config_path in config_paths:
        if config_path.exists():
            logger.debug("Loading config from %s", config_path)
            _deep_update(config_dict, _read_yaml(config_path))
            break  # Use first found config

    config_dict = _apply_env_overrides(config_dict)

    _config = _dict_to_config(config_dict)
    return _config


def get_config() -> CredenceConfig:
    """Get the current configuration, loading if needed."""
    global _config

    if _config is not None:
        return _config

    with _config_lock:
        if _config is None:
            _config = load_config()
        return _config


def reset_config() -> None:
    """Reset the global config (useful for testing)."""
    global _config
    with _config_lock:
        _config = None


def save_default_config(path: str | Path = ".credence/config.yaml") -> Path:
    """Write the built-in defaults as a YAML file and return its path."""
    target = Path(path)
    target.parent.mkdir(parents=True, exist_ok=True)
    defaults = CredenceConfig()
    data: dict[str, Any] = {name: asdict(getattr(defaults, name)) for name in _SECTIONS}
    data["debug"] = defaults.debug
    with open(target, "w") as f:
        yaml.safe_dump(data, f, default_flow_style=False, sort_keys=False)
    return target
