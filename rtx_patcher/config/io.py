"""Config I/O utilities."""

from __future__ import annotations

import json
import logging
import os
from pathlib import Path
from typing import Any, Dict, Optional, Union

import yaml
from pydantic import ValidationError

from ..exceptions import ConfigurationError
from .models import PatcherConfig, validate_config

logger = logging.getLogger(__name__)

CONFIG_ENV_VAR = "RTX_PATCHER_CONFIG"


def get_config_path() -> str:
    override = os.environ.get(CONFIG_ENV_VAR, "").strip()
    if override:
        return override
    base_dir = os.path.dirname(os.path.dirname(os.path.dirname(os.path.abspath(__file__))))
    return os.path.join(base_dir, "rtx_patcher.yaml")


def _parse(path: Path, raw: str) -> Dict[str, Any]:
    if path.suffix.lower() == ".json":
        data = json.loads(raw)
    else:
        data = yaml.safe_load(raw)
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigurationError("Configuration root must be a mapping", file_path=str(path))
    return data


def load_config(config_path: Union[str, Path, None] = None) -> PatcherConfig:
    path = Path(config_path or get_config_path())
    if not path.exists():
        logger.debug("No configuration at %s, using defaults", path)
        return PatcherConfig()
    try:
        raw = path.read_text(encoding="utf-8")
        data = _parse(path, raw)
    except (OSError, UnicodeDecodeError) as exc:
        raise ConfigurationError(f"Cannot read configuration: {exc}", file_path=str(path)) from exc
    except (json.JSONDecodeError, yaml.YAMLError) as exc:
        raise ConfigurationError(f"Cannot parse configuration: {exc}", file_path=str(path)) from exc

    try:
        config = validate_config(data)
    except ValidationError as exc:
        raise ConfigurationError(
            f"Invalid configuration: {exc.error_count()} error(s)",
            file_path=str(path),
            details={"errors": [str(err.get("msg")) for err in exc.errors()]},
        ) from exc
    logger.info("Loaded configuration from %s", path)
    return config


def save_config(config: PatcherConfig, config_path: Union[str, Path, None] = None) -> Path:
    path = Path(config_path or get_config_path())
    data = config.model_dump(mode="json")
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        with path.open("w", encoding="utf-8") as handle:
            if path.suffix.lower() == ".json":
                json.dump(data, handle, indent=2)
            else:
                yaml.safe_dump(data, handle, sort_keys=False)
    except OSError as exc:
        raise ConfigurationError(f"Cannot write configuration: {exc}", file_path=str(path)) from exc
    return path


def config_from_dict(payload: Optional[Dict[str, Any]]) -> PatcherConfig:
    try:
        return validate_config(dict(payload or {}))
    except ValidationError as exc:
        raise ConfigurationError(f"Invalid configuration: {exc.error_count()} error(s)") from exc
