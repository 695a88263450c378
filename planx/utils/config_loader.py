# SPDX-FileCopyrightText: 2025 Weibo, Inc.
#
# SPDX-License-Identifier: Apache-2.0

import json
import logging
import os
from typing import Any

import yaml

from planx.errors import ConfigError

logger = logging.getLogger(__name__)


def parse_yaml(text: str) -> Any:
    """
    Parse YAML text.

    Args:
        text: YAML document

    Returns:
        The parsed document, or an empty dict for an empty document

    Raises:
        ConfigError: If the document is not valid YAML
    """
    try:
        data = yaml.safe_load(text)
    except yaml.YAMLError as e:
        raise ConfigError("invalid YAML configuration", cause=e) from e
    return {} if data is None else data


def parse_json(text: str) -> Any:
    """Parse JSON text, raising ConfigError on malformed input."""
    try:
        return json.loads(text)
    except json.JSONDecodeError as e:
        raise ConfigError("invalid JSON configuration", cause=e) from e


def _read(path: str) -> str:
    try:
        with open(path, "r", encoding="utf-8") as f:
            return f.read()
    except OSError as e:
        logger.error(f"Failed to read configuration file {path}: {e}")
        raise ConfigError(f"cannot read configuration file {path}", cause=e) from e


def load_yaml(path: str) -> Any:
    """Load a YAML configuration file."""
    return parse_yaml(_read(path))


def load_json(path: str) -> Any:
    """Load a JSON configuration file."""
    return parse_json(_read(path))


def load_config_file(path: str) -> Any:
    """
    Load a configuration file, choosing the parser from its extension.

    .json files are parsed as JSON, everything else as YAML (a superset).
    """
    _, ext = os.path.splitext(path)
    if ext.lower() == ".json":
        return load_json(path)
    return load_yaml(path)
