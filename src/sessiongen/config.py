"""
Configuration source loading for the telemetry SDK.

The SDK configuration is a YAML file whose text may reference environment
variables before it is parsed:

  ${VAR}            - value of VAR, empty string when unset
  ${VAR:-default}   - value of VAR, or default when VAR is unset or empty
  $$                - a literal "$"

Expansion runs on the raw text, so placeholders may appear anywhere in the
document (endpoints, headers, resource attributes).
"""

import os
import re
from collections.abc import Mapping
from pathlib import Path
from typing import Any

import yaml

from .errors import ConfigInvalidError, ConfigUnreadableError

DEFAULT_CONFIG_PATH = "./otel.yaml"

_ENV_PLACEHOLDER = re.compile(r"\$\$|\$\{([A-Za-z_][A-Za-z0-9_]*)(?::-([^}]*))?\}")


def expand_env(text: str, environ: Mapping[str, str] | None = None) -> str:
    """Expand ${VAR} and ${VAR:-default} references in text."""
    env = os.environ if environ is None else environ

    def replace(match: re.Match[str]) -> str:
        if match.group(0) == "$$":
            return "$"
        name, default = match.group(1), match.group(2)
        value = env.get(name, "")
        if not value and default is not None:
            return default
        return value

    return _ENV_PLACEHOLDER.sub(replace, text)


def read_config_source(path: str | Path, environ: Mapping[str, str] | None = None) -> str:
    """Read the config file and return its environment-expanded text."""
    p = Path(path)
    try:
        raw = p.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as e:
        raise ConfigUnreadableError(str(p), str(e)) from e
    return expand_env(raw, environ)


def load_config_text(text: str) -> dict[str, Any]:
    """Parse expanded config text into a mapping. Raises ConfigInvalidError."""
    try:
        data: Any = yaml.safe_load(text)
    except yaml.YAMLError as e:
        raise ConfigInvalidError(f"malformed YAML ({e})") from e
    if not isinstance(data, dict):
        raise ConfigInvalidError("top-level document must be a mapping")
    return data


def load_config(path: str | Path, environ: Mapping[str, str] | None = None) -> dict[str, Any]:
    """Read, expand and parse the SDK config file at path."""
    return load_config_text(read_config_source(path, environ))
