from __future__ import annotations

from dataclasses import dataclass, replace
from pathlib import Path
from typing import Any, Callable, Mapping
import os

import yaml

CONFIG_FILE_ENV = "UVB_CONFIG_FILE"


class ConfigError(RuntimeError):
    """Raised when environment settings or the optional settings file cannot be applied."""


@dataclass(frozen=True)
class AppConfig:
    source_root: Path = Path("/mnt/user")
    mount_root: Path = Path("/mnt")
    filesystem_type: str = "ntfs-3g"
    poll_interval_seconds: float = 1.0
    poll_attempts: int = 11
    log_level: str = "INFO"
    log_file: Path | None = None


_ENVIRONMENT_VARIABLES: dict[str, str] = {
    "source_root": "UVB_SOURCE_ROOT",
    "mount_root": "UVB_MOUNT_ROOT",
    "filesystem_type": "UVB_FILESYSTEM_TYPE",
    "poll_interval_seconds": "UVB_POLL_INTERVAL_SECONDS",
    "poll_attempts": "UVB_POLL_ATTEMPTS",
    "log_level": "UVB_LOG_LEVEL",
    "log_file": "UVB_LOG_FILE",
}


def _parse_path(value: Any) -> Path:
    if not isinstance(value, str) or not value.strip():
        raise TypeError("expected a non-empty path string")
    return Path(value).expanduser()


def _parse_optional_path(value: Any) -> Path | None:
    if value is None:
        return None
    return _parse_path(value)


def _parse_text(value: Any) -> str:
    if not isinstance(value, str) or not value.strip():
        raise TypeError("expected a non-empty string")
    return value.strip()


def _parse_interval(value: Any) -> float:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise TypeError("expected a number of seconds")
    if value < 0:
        raise ValueError("must not be negative")
    return float(value)


def _parse_attempts(value: Any) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        raise TypeError("expected an integer")
    if value < 1:
        raise ValueError("must be at least 1")
    return value


_FIELD_PARSERS: dict[str, Callable[[Any], Any]] = {
    "source_root": _parse_path,
    "mount_root": _parse_path,
    "filesystem_type": _parse_text,
    "poll_interval_seconds": _parse_interval,
    "poll_attempts": _parse_attempts,
    "log_level": _parse_text,
    "log_file": _parse_optional_path,
}

# Environment values are strings; numeric fields are converted before validation.
_ENVIRONMENT_CONVERTERS: dict[str, Callable[[str], Any]] = {
    "poll_interval_seconds": float,
    "poll_attempts": int,
}


def _parse_field(key: str, raw_value: Any, *, source: str) -> Any:
    try:
        return _FIELD_PARSERS[key](raw_value)
    except (TypeError, ValueError) as error:
        raise ConfigError(f"invalid value for {key} in {source}: {error}") from error


def config_from_environment(environ: Mapping[str, str] | None = None) -> AppConfig:
    environ = os.environ if environ is None else environ
    overrides: dict[str, Any] = {}
    for key, variable in _ENVIRONMENT_VARIABLES.items():
        raw_value = environ.get(variable, "").strip()
        if not raw_value:
            continue
        converter = _ENVIRONMENT_CONVERTERS.get(key)
        if converter is not None:
            try:
                raw_value = converter(raw_value)
            except ValueError as error:
                raise ConfigError(f"invalid value for {key} in {variable}: {error}") from error
        overrides[key] = _parse_field(key, raw_value, source=variable)
    return replace(AppConfig(), **overrides)


def load_config(path: Path | str | None = None, *, base: AppConfig | None = None) -> AppConfig:
    config = base or config_from_environment()
    if path is None:
        return config

    settings_path = Path(path).expanduser()
    try:
        content = settings_path.read_text(encoding="utf-8")
    except OSError as error:
        raise ConfigError(f"cannot read settings file {settings_path}: {error.strerror or error}") from error

    try:
        parsed = yaml.safe_load(content)
    except yaml.YAMLError as error:
        raise ConfigError(f"settings file {settings_path} is not valid YAML: {error}") from error

    if parsed is None:
        return config
    if not isinstance(parsed, dict):
        raise ConfigError(f"settings file {settings_path} must contain a mapping")

    unknown_keys = sorted(str(key) for key in parsed if key not in _FIELD_PARSERS)
    if unknown_keys:
        raise ConfigError(f"settings file {settings_path} has unknown keys: {', '.join(unknown_keys)}")

    overrides = {key: _parse_field(key, raw_value, source=str(settings_path)) for key, raw_value in parsed.items()}
    return replace(config, **overrides)


def config_path_from_environment() -> str | None:
    value = os.getenv(CONFIG_FILE_ENV, "").strip()
    return value or None
