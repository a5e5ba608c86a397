"""YAML + environment variable config loader."""

from __future__ import annotations

import os
import re
from pathlib import Path
from typing import Any, cast

import yaml
from pydantic import ValidationError

from embedded_kafka.config.defaults import load_defaults, merge_configs
from embedded_kafka.config.models import EmbeddedKafkaSpec, LauncherConfig
from embedded_kafka.errors import ConfigurationError

# Matches ${VAR} or ${VAR:-default}
_ENV_PATTERN = re.compile(r"\$\{([^}:]+)(?::-((?:[^}\\]|\\.)*))?}")


def resolve_placeholders(value: str) -> str:
    """Replace all ${VAR} / ${VAR:-default} references in a string."""

    def _replace(match: re.Match[str]) -> str:
        var_name = match.group(1)
        default = match.group(2)
        env_val = os.environ.get(var_name)
        if env_val is not None:
            return env_val
        if default is not None:
            return default.replace("\\}", "}")
        msg = f"Environment variable '{var_name}' is not set and no default provided"
        raise ValueError(msg)

    return _ENV_PATTERN.sub(_replace, value)


def resolve_env_vars(data: Any) -> Any:
    """Recursively resolve ${VAR} and ${VAR:-default} in parsed YAML data."""
    if isinstance(data, str):
        return resolve_placeholders(data)
    if isinstance(data, dict):
        return {k: resolve_env_vars(v) for k, v in data.items()}
    if isinstance(data, list):
        return [resolve_env_vars(item) for item in data]
    return data


def load_yaml(path: str | Path, *, resolve: bool = True) -> dict[str, Any]:
    """Load a YAML file and return its contents as a dict.

    With ``resolve=False`` placeholders are kept verbatim so they can be
    resolved later, at provisioning time.
    """
    p = Path(path)
    if not p.exists():
        msg = f"Config file not found: {p}"
        raise FileNotFoundError(msg)
    try:
        with p.open() as f:
            data = yaml.safe_load(f)
    except yaml.YAMLError as exc:
        msg = f"Failed to parse YAML in {p}"
        if hasattr(exc, "problem_mark") and exc.problem_mark is not None:
            mark = exc.problem_mark
            msg += f" at line {mark.line + 1}, column {mark.column + 1}"
        msg += f": {exc}"
        raise ValueError(msg) from exc
    if not isinstance(data, dict):
        msg = f"Expected a YAML mapping at top level in {p}, got {type(data).__name__}"
        raise TypeError(msg)
    if not resolve:
        return cast(dict[str, Any], data)
    return cast(dict[str, Any], resolve_env_vars(data))


def build_spec(data: dict[str, Any], *, source: str = "inline") -> EmbeddedKafkaSpec:
    """Validate raw spec fields, reporting failures as ConfigurationError."""
    try:
        return EmbeddedKafkaSpec.model_validate(data)
    except ValidationError as exc:
        msg = f"Invalid embedded Kafka spec ({source}):\n{exc}"
        raise ConfigurationError(msg) from exc


def load_spec(path: str | Path) -> EmbeddedKafkaSpec:
    """Load a broker spec from YAML.

    Topic names and broker properties keep their placeholders; they are
    resolved when the broker is provisioned.
    """
    try:
        data = load_yaml(path, resolve=False)
    except (OSError, ValueError, TypeError) as exc:
        raise ConfigurationError(str(exc)) from exc
    return build_spec(data, source=str(path))


def load_launcher_config(path: str | Path | None = None) -> LauncherConfig:
    """Load launcher config from built-in defaults, optionally merged with overrides."""
    base = load_defaults("launcher")
    if path is not None:
        try:
            overrides = load_yaml(path)
        except (OSError, ValueError, TypeError) as exc:
            raise ConfigurationError(str(exc)) from exc
        base = merge_configs(base, overrides)
    try:
        return LauncherConfig.model_validate(base)
    except ValidationError as exc:
        source = path or "built-in defaults"
        msg = f"Invalid launcher config ({source}):\n{exc}"
        raise ConfigurationError(msg) from exc
