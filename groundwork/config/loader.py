"""YAML configuration loader with environment variable overrides.

Configuration is layered (later layers win):

1. ``config/config.yaml`` -- static defaults checked into the repo
2. ``.env`` -- local developer overrides (not committed)
3. Process environment -- set at deploy time

:func:`load_config` reads the YAML file and deep-merges on top the
:class:`~groundwork.config.settings.Settings` fields that were explicitly set
(by keyword or by the environment), so an env var beats the YAML value while
an unset field leaves the YAML value alone.  Sections the environment has no
say in (``prioritization``) pass through untouched.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any

import yaml

from groundwork.config.settings import Settings
from groundwork.utils.errors import ConfigurationError


def load_config(path: str | None = None, settings: Settings | None = None) -> dict[str, Any]:
    """Load YAML config and merge it with environment-based settings.

    Args:
        path: YAML file to read.  Defaults to ``settings.config_path``.
        settings: Pre-built settings; a fresh :class:`Settings` is read
            from the environment when omitted.

    Returns:
        Fully resolved configuration dictionary.

    Raises:
        ConfigurationError: If the file exists but is not a YAML mapping.
    """
    settings = settings or Settings()
    config_path = Path(path or settings.config_path)

    yaml_config: dict[str, Any] = {}
    if config_path.exists():
        with open(config_path, encoding="utf-8") as f:
            loaded = yaml.safe_load(f)
        if loaded is not None and not isinstance(loaded, dict):
            raise ConfigurationError(
                message=f"{config_path} must contain a mapping at the top level",
            )
        yaml_config = loaded or {}

    _deep_merge(yaml_config, _env_overrides(settings))
    return yaml_config


# Settings field -> (config section, key).  Only fields the caller or the
# environment actually set are merged, so YAML values survive otherwise.
_ENV_KEYS: dict[str, tuple[str, str]] = {
    "app_host": ("app", "host"),
    "app_port": ("app", "port"),
    "app_env": ("app", "env"),
    "embedding_backend": ("embedding", "backend"),
    "embedding_dimension": ("embedding", "dimension"),
    "store_backend": ("store", "backend"),
    "chunk_size": ("chunking", "chunk_size"),
    "chunk_overlap": ("chunking", "overlap"),
    "retrieval_top_k": ("retrieval", "top_k"),
    "context_snippet_chars": ("context", "snippet_chars"),
    "context_char_budget": ("context", "char_budget"),
    "log_level": ("logging", "level"),
}


def _env_overrides(settings: Settings) -> dict[str, dict[str, Any]]:
    overrides: dict[str, dict[str, Any]] = {}
    for field, (section, key) in _ENV_KEYS.items():
        if field in settings.model_fields_set:
            overrides.setdefault(section, {})[key] = getattr(settings, field)
    return overrides


def _deep_merge(base: dict, overrides: dict) -> None:
    """Recursively merge overrides into base dict, mutating base in place."""
    for key, value in overrides.items():
        if key in base and isinstance(base[key], dict) and isinstance(value, dict):
            _deep_merge(base[key], value)
        else:
            base[key] = value
