"""Human-readable descriptions of well-known byte transforms.

Rules live in ``rtx_patcher/data/opcode_catalog.yaml`` and are matched in file
order against the (original, replacement) hex pair of an applied patch.
"""

from __future__ import annotations

import logging
from functools import lru_cache
from pathlib import Path
from typing import List, Optional, Union

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from ..exceptions import ConfigurationError

logger = logging.getLogger(__name__)

DEFAULT_CATALOG_PATH = Path(__file__).resolve().parents[1] / "data" / "opcode_catalog.yaml"


def _lower_list(values: List[str]) -> List[str]:
    return [str(v).strip().lower() for v in values if str(v).strip()]


class DescriptionRule(BaseModel):
    """All specified conditions must hold; list conditions match on any element."""

    model_config = ConfigDict(extra="forbid")

    id: str
    description: str
    original: List[str] = Field(default_factory=list)
    original_prefix: List[str] = Field(default_factory=list)
    original_suffix: List[str] = Field(default_factory=list)
    original_contains: List[str] = Field(default_factory=list)
    replacement: List[str] = Field(default_factory=list)
    replacement_charset: Optional[str] = None
    replacement_contains_all: List[str] = Field(default_factory=list)
    replacement_contains_any: List[str] = Field(default_factory=list)
    replacement_min_length: int = 0

    @field_validator(
        "original", "original_prefix", "original_suffix", "original_contains", "replacement",
        "replacement_contains_all", "replacement_contains_any",
        mode="before",
    )
    @classmethod
    def _as_list(cls, v):
        if v is None:
            return []
        if isinstance(v, str):
            return _lower_list([v])
        return _lower_list(list(v))

    @field_validator("replacement_charset")
    @classmethod
    def _lower_charset(cls, v: Optional[str]) -> Optional[str]:
        return v.lower() if v else None

    def matches(self, original_hex: str, new_hex: str) -> bool:
        if self.original and original_hex not in self.original:
            return False
        if self.original_prefix and not any(original_hex.startswith(p) for p in self.original_prefix):
            return False
        if self.original_suffix and not any(original_hex.endswith(s) for s in self.original_suffix):
            return False
        if self.original_contains and not any(part in original_hex for part in self.original_contains):
            return False
        if self.replacement and new_hex not in self.replacement:
            return False
        if self.replacement_charset and not (new_hex and set(new_hex) <= set(self.replacement_charset)):
            return False
        if any(part not in new_hex for part in self.replacement_contains_all):
            return False
        if self.replacement_contains_any and not any(part in new_hex for part in self.replacement_contains_any):
            return False
        if len(new_hex) < self.replacement_min_length:
            return False
        return True


class DescriptionCatalog:
    """Ordered rule list; the first matching rule wins."""

    def __init__(self, rules: Optional[List[DescriptionRule]] = None):
        self.rules = list(rules or [])

    def __len__(self) -> int:
        return len(self.rules)

    def describe(self, original_hex: str, new_hex: str) -> str:
        original_hex = (original_hex or "").lower()
        new_hex = (new_hex or "").lower()
        for rule in self.rules:
            if rule.matches(original_hex, new_hex):
                return rule.description
        return ""


def parse_catalog(raw: str, source: str = "<string>") -> DescriptionCatalog:
    try:
        data = yaml.safe_load(raw) or {}
    except yaml.YAMLError as exc:
        raise ConfigurationError(f"Invalid opcode catalog: {exc}", file_path=source) from exc

    items = data.get("rules", []) if isinstance(data, dict) else data
    if not isinstance(items, list):
        raise ConfigurationError("Opcode catalog must contain a 'rules' list", file_path=source)
    try:
        rules = [DescriptionRule.model_validate(item) for item in items]
    except ValidationError as exc:
        raise ConfigurationError(f"Invalid opcode catalog rule: {exc}", file_path=source) from exc
    return DescriptionCatalog(rules)


@lru_cache(maxsize=8)
def _load_cached(path: str) -> DescriptionCatalog:
    try:
        raw = Path(path).read_text(encoding="utf-8")
    except OSError as exc:
        raise ConfigurationError(f"Cannot read opcode catalog: {exc}", file_path=path) from exc
    catalog = parse_catalog(raw, path)
    logger.debug("Loaded %d opcode description rules from %s", len(catalog), path)
    return catalog


def load_catalog(path: Union[str, Path, None] = None) -> DescriptionCatalog:
    return _load_cached(str(Path(path) if path else DEFAULT_CATALOG_PATH))


def describe(original_hex: str, new_hex: str, catalog: Optional[DescriptionCatalog] = None) -> str:
    return (catalog or load_catalog()).describe(original_hex, new_hex)
