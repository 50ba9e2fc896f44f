"""Wildcard-aware byte pattern search.

A pattern is a hex string in which the token ``??`` matches any single byte.
It is compiled into runs of concrete bytes at fixed offsets; the first run is
located with ``bytes.find`` and the remaining runs are compared in place.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from functools import lru_cache
from typing import Optional, Tuple, Union

WILDCARD = "??"

_HEX_RE = re.compile(r"^(?:[0-9a-fA-F]{2})+$")
_PATTERN_PAIR_RE = re.compile(r"^(?:[0-9a-fA-F]{2}|\?\?)+$")

Buffer = Union[bytes, bytearray]


class InvalidHexError(ValueError):
    """Hex text is empty, has odd length or contains non-hex characters."""


def is_valid_hex(text: str) -> bool:
    return bool(text) and _HEX_RE.match(text) is not None


def is_valid_pattern(text: str) -> bool:
    return bool(text) and _PATTERN_PAIR_RE.match(text) is not None


def hex_to_bytes(text: str) -> bytes:
    if not is_valid_hex(text):
        raise InvalidHexError(f"Invalid hex string: {text!r}")
    return bytes.fromhex(text)


@dataclass(frozen=True)
class CompiledPattern:
    """Concrete byte runs of a pattern and their offsets from the match start."""

    source: str
    length: int
    runs: Tuple[Tuple[int, bytes], ...]

    @property
    def has_wildcards(self) -> bool:
        return sum(len(run) for _, run in self.runs) != self.length

    def matches_at(self, data: Buffer, position: int) -> bool:
        if position < 0 or position + self.length > len(data):
            return False
        for offset, run in self.runs:
            start = position + offset
            if data[start:start + len(run)] != run:
                return False
        return True


@lru_cache(maxsize=512)
def compile_pattern(text: str) -> CompiledPattern:
    """Split ``text`` on wildcard tokens into concrete runs.

    Raises ``InvalidHexError`` when a byte pair is neither hex nor ``??``.
    """
    if not is_valid_pattern(text):
        raise InvalidHexError(f"Invalid pattern: {text!r}")

    runs = []
    run_start = None
    current = bytearray()
    for index in range(0, len(text), 2):
        pair = text[index:index + 2]
        if pair == WILDCARD:
            if current:
                runs.append((run_start, bytes(current)))
                current = bytearray()
                run_start = None
            continue
        if run_start is None:
            run_start = index // 2
        current.append(int(pair, 16))
    if current:
        runs.append((run_start, bytes(current)))

    return CompiledPattern(text, len(text) // 2, tuple(runs))


@dataclass(frozen=True)
class MatchResult:
    """First occurrence and, if any, the second one that makes the match ambiguous."""

    position: int
    second: Optional[int] = None

    @property
    def found(self) -> bool:
        return self.position >= 0

    @property
    def ambiguous(self) -> bool:
        return self.found and self.second is not None


class PatternMatcher:
    """Searches byte buffers for (possibly wildcarded) hex patterns."""

    def find(self, data: Buffer, pattern: Union[str, CompiledPattern], start: int = 0) -> int:
        """Return the first position >= ``start`` where the pattern matches, or -1."""
        compiled = compile_pattern(pattern) if isinstance(pattern, str) else pattern
        start = max(start, 0)
        last_start = len(data) - compiled.length
        if last_start < start:
            return -1

        if not compiled.runs:
            return start

        anchor_offset, anchor = compiled.runs[0]
        search = start + anchor_offset
        # the anchor must leave room for the rest of the pattern
        search_end = last_start + anchor_offset + len(anchor)
        while True:
            hit = data.find(anchor, search, search_end)
            if hit < 0:
                return -1
            candidate = hit - anchor_offset
            if compiled.matches_at(data, candidate):
                return candidate
            search = hit + 1

    def find_unique(self, data: Buffer, pattern: Union[str, CompiledPattern], start: int = 0) -> MatchResult:
        """Find the first match and probe for a second one starting one byte past it."""
        compiled = compile_pattern(pattern) if isinstance(pattern, str) else pattern
        first = self.find(data, compiled, start)
        if first < 0:
            return MatchResult(-1)
        second = self.find(data, compiled, first + 1)
        return MatchResult(first, second if second >= 0 else None)

    def count(self, data: Buffer, pattern: Union[str, CompiledPattern], limit: int = 0) -> int:
        """Count (possibly overlapping) occurrences, stopping at ``limit`` when non-zero."""
        compiled = compile_pattern(pattern) if isinstance(pattern, str) else pattern
        found = 0
        position = self.find(data, compiled)
        while position >= 0:
            found += 1
            if limit and found >= limit:
                break
            position = self.find(data, compiled, position + 1)
        return found
