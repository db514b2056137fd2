"""distsign configuration module."""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Optional, Union

import yaml
from pydantic import ValidationError

from distsign.config.models import DistsignConfig
from distsign.errors import ConfigError

logger = logging.getLogger(__name__)

USER_CONFIG_FILE = Path.home() / ".distsign" / "config.yaml"

CONFIG_ENV = "DISTSIGN_CONFIG"
BASE_URL_ENV = "DISTSIGN_BASE_URL"

__all__ = [
    "USER_CONFIG_FILE", "DistsignConfig", "load_config",
]


def _config_path(path: Optional[Union[str, Path]]) -> Optional[Path]:
    if path is not None:
        return Path(path)
    env_path = os.environ.get(CONFIG_ENV)
    if env_path:
        return Path(env_path)
    return USER_CONFIG_FILE if USER_CONFIG_FILE.exists() else None


def load_config(path: Optional[Union[str, Path]] = None) -> DistsignConfig:
    """Load and validate the configuration.

    Lookup order: *path*, then ``$DISTSIGN_CONFIG``, then
    ``~/.distsign/config.yaml``. With none present, defaults are used.
    ``$DISTSIGN_BASE_URL`` overrides ``base_url`` from any source.

    Raises:
        ConfigError: If the file is unreadable, not a YAML mapping, or
            fails validation.
    """
    source = _config_path(path)
    data: dict = {}
    if source is not None:
        try:
            with open(source) as f:
                loaded = yaml.safe_load(f)
        except OSError as e:
            raise ConfigError(f"cannot read config {source}: {e}") from e
        except yaml.YAMLError as e:
            raise ConfigError(f"invalid YAML in {source}: {e}") from e
        if loaded is None:
            loaded = {}
        if not isinstance(loaded, dict):
            raise ConfigError(f"config {source} must be a mapping, got {type(loaded).__name__}")
        data = loaded
        logger.debug("Loaded config from %s", source)

    base_url = os.environ.get(BASE_URL_ENV)
    if base_url:
        data = {**data, "base_url": base_url}

    try:
        return DistsignConfig.model_validate(data)
    except ValidationError as e:
        where = source if source is not None else "environment"
        raise ConfigError(f"invalid configuration ({where}):\n{e}") from e
