#!/usr/bin/env python3
# -*-coding: utf-8-*-
"""
RTX Patcher - Core Package

Install classification, file resolution and patch definition sources.
"""

from .architecture import LEGACY_INSTALL_TYPE, ArchitectureResolver, InstallInfo
from .sources import fetch_patch_text, fetch_url, is_url, load_patch_text

__all__ = [
    'ArchitectureResolver',
    'InstallInfo',
    'LEGACY_INSTALL_TYPE',
    'fetch_patch_text',
    'fetch_url',
    'is_url',
    'load_patch_text',
]
