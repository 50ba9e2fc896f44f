#!/usr/bin/env python3
# -*-coding: utf-8-*-
"""RTX Patcher - Configuration package: pydantic models plus JSON/YAML I/O."""

from .io import CONFIG_ENV_VAR, config_from_dict, get_config_path, load_config, save_config
from .models import (
    ArchitectureMarkerConfig,
    BackupConfig,
    EngineConfig,
    PatchSourceConfig,
    PatcherConfig,
    ProgressConfig,
    ResolverConfig,
    validate_config,
)

__all__ = [
    'ArchitectureMarkerConfig',
    'BackupConfig',
    'CONFIG_ENV_VAR',
    'EngineConfig',
    'PatchSourceConfig',
    'PatcherConfig',
    'ProgressConfig',
    'ResolverConfig',
    'config_from_dict',
    'get_config_path',
    'load_config',
    'save_config',
    'validate_config',
]
