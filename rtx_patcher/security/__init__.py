#!/usr/bin/env python3
# -*-coding: utf-8-*-
"""RTX Patcher security package: path containment checks for untrusted file references."""

from ..exceptions import InvalidPathError
from .security_utils import (
    clear_read_only,
    ensure_within,
    is_path_traversal_attack,
    is_safe_relative_reference,
    is_valid_directory,
    resolve_reference,
)

__all__ = [
    'InvalidPathError',
    'clear_read_only',
    'ensure_within',
    'is_path_traversal_attack',
    'is_safe_relative_reference',
    'is_valid_directory',
    'resolve_reference',
]
