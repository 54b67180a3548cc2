# Copyright 2026 Cisco Systems, Inc. and its affiliates
#
# SPDX-License-Identifier: Apache-2.0

"""Configuration utilities for the incident aggregation tools.

JSON config files are optional; every value they hold can also be given on the
command line, and CLI flags take precedence.
"""

import json
import logging
from pathlib import Path
from typing import Any, Dict

logger = logging.getLogger(__name__)


def load_config(config_path: Path) -> Dict[str, Any]:
    """
    Load configuration from JSON file.

    Args:
        config_path: Path to configuration file

    Returns:
        Configuration dictionary

    Raises:
        FileNotFoundError: If configuration file doesn't exist
    """
    if not config_path.exists():
        raise FileNotFoundError(f"Configuration file not found: {config_path}")

    with config_path.open("r", encoding="utf-8") as f:
        return json.load(f)


def load_config_from_args(config_arg: str | None) -> Dict[str, Any]:
    """
    Load configuration from the ``--config`` argument if one was given.

    Args:
        config_arg: Path to config file from CLI argument (or None)

    Returns:
        Configuration dictionary (empty dict if no config provided)

    Raises:
        FileNotFoundError: If the given file does not exist (logged first)
    """
    if not config_arg:
        return {}
    config_path = Path(config_arg)
    if not config_path.exists():
        logger.error("Configuration file not found: %s", config_path)
        raise FileNotFoundError(f"Configuration file not found: {config_path}")
    return load_config(config_path)


def config_section(config: Dict[str, Any], *keys: str) -> Dict[str, Any]:
    """Nested config section, empty when any level is missing or not a dict."""
    section: Any = config
    for key in keys:
        section = section.get(key) if isinstance(section, dict) else None
    return section if isinstance(section, dict) else {}


def setup_logging(debug: bool = False, module_names: list[str] | None = None) -> None:
    """
    Configure logging for the aggregation tools.

    Args:
        debug: Enable debug-level logging
        module_names: Additional module names to set log level for
    """
    log_level = logging.DEBUG if debug else logging.INFO
    logging.basicConfig(
        level=log_level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )

    if module_names:
        for module_name in module_names:
            logging.getLogger(module_name).setLevel(log_level)
