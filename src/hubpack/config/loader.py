"""Configuration file loading."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any

import yaml
from pydantic import ValidationError

from hubpack.config.schema import HubPackConfig
from hubpack.errors import PackagerError

logger = logging.getLogger(__name__)

CONFIG_FILENAME = "hubpack.yaml"


def find_config(start: Path) -> Path | None:
    """Find ``hubpack.yaml`` in a directory.

    Args:
        start: Directory to look in, usually the one holding the hub solution.

    Returns:
        Path to the config file, or None if there is none.
    """
    candidate = start / CONFIG_FILENAME
    return candidate if candidate.is_file() else None


def load_config(path: Path | None = None, *, search_from: Path | None = None) -> HubPackConfig:
    """Load and validate configuration.

    Args:
        path: Explicit config file. Must exist when given.
        search_from: Directory to search for ``hubpack.yaml`` when no path is given.

    Returns:
        Validated configuration; defaults when no file is found.

    Raises:
        PackagerError: If the file cannot be read or is invalid.
    """
    if path is None and search_from is not None:
        path = find_config(search_from)

    if path is None:
        logger.debug("No %s found, using defaults.", CONFIG_FILENAME)
        return HubPackConfig()

    try:
        data: Any = yaml.safe_load(path.read_text(encoding="utf-8"))
    except OSError as e:
        raise PackagerError.configuration(f"Could not read {path}: {e.strerror or e}") from e
    except yaml.YAMLError as e:
        raise PackagerError.configuration(f"Invalid YAML in {path}: {e}") from e

    if data is None:
        data = {}
    if not isinstance(data, dict):
        raise PackagerError.configuration(f"{path} must contain a mapping at the top level")

    try:
        config = HubPackConfig.model_validate(data)
    except ValidationError as e:
        raise PackagerError.configuration(f"Invalid configuration in {path}:\n{e}") from e

    logger.debug("Loaded configuration from %s.", path)
    return config
