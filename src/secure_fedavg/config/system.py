"""Utilities for locating and loading the coordinator configuration."""

import json
import os
from pathlib import Path
from typing import Optional, Tuple

from secure_fedavg.config.models import CoordinatorConfig

CONFIG_FILENAME = "coordinator.json"
CONFIG_ENV_VAR = "SECURE_FEDAVG_CONFIG"


def resolve_config_path(base_dir: Optional[Path] = None) -> Path:
    """
    Resolve the path to the coordinator configuration file.

    The environment variable wins; relative values are taken from the current
    working directory. Otherwise the file is expected at
    <base_dir>/config/coordinator.json.
    """
    env_value = os.getenv(CONFIG_ENV_VAR)
    if env_value:
        candidate = Path(env_value)
        if not candidate.is_absolute():
            candidate = (Path.cwd() / candidate).resolve()
        return candidate
    base = Path(base_dir) if base_dir is not None else Path.cwd()
    return (base / "config" / CONFIG_FILENAME).resolve()


def load_coordinator_config(base_dir: Optional[Path] = None) -> Tuple[CoordinatorConfig, Path]:
    """
    Load the coordinator configuration.

    Returns:
        (config, resolved_path). A missing file yields the defaults.

    Raises:
        ValueError: if the JSON is invalid or a field fails validation.
    """
    path = resolve_config_path(base_dir)
    if not path.exists():
        return CoordinatorConfig(), path
    try:
        data = json.loads(path.read_text())
    except json.JSONDecodeError as exc:
        raise ValueError(f"Invalid coordinator config JSON at {path}: {exc}") from exc
    return CoordinatorConfig.from_dict(data), path
