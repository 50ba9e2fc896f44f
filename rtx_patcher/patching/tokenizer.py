"""Lexer for the patch-definition literal dialect.

The dialect is the subset of Python literal syntax used by community patch
scripts: dictionaries, lists, tuples, quoted strings and integers, with ``#``
comments. Scalars come out as exactly two token variants, ``TextToken`` and
``NumberToken``; everything else is a ``Symbol``.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum, auto
from typing import List, Union


class SymbolKind(Enum):
    LBRACE = auto()
    RBRACE = auto()
    LBRACKET = auto()
    RBRACKET = auto()
    LPAREN = auto()
    RPAREN = auto()
    COLON = auto()
    COMMA = auto()
    EQUALS = auto()
    IDENT = auto()
    ERROR = auto()
    EOF = auto()


PUNCTUATION = {
    "{": SymbolKind.LBRACE,
    "}": SymbolKind.RBRACE,
    "[": SymbolKind.LBRACKET,
    "]": SymbolKind.RBRACKET,
    "(": SymbolKind.LPAREN,
    ")": SymbolKind.RPAREN,
    ":": SymbolKind.COLON,
    ",": SymbolKind.COMMA,
    "=": SymbolKind.EQUALS,
}

OPENERS = (SymbolKind.LBRACE, SymbolKind.LBRACKET, SymbolKind.LPAREN)
CLOSERS = (SymbolKind.RBRACE, SymbolKind.RBRACKET, SymbolKind.RPAREN)

_STRING_PREFIXES = {"r", "u", "b", "br", "rb"}
_SIMPLE_ESCAPES = {
    "\\": "\\",
    "'": "'",
    '"': '"',
    "n": "\n",
    "t": "\t",
    "r": "\r",
    "0": "\0",
}


@dataclass(frozen=True)
class TextToken:
    value: str
    line: int


@dataclass(frozen=True)
class NumberToken:
    value: int
    line: int
    raw: str = ""
    valid: bool = True


@dataclass(frozen=True)
class Symbol:
    kind: SymbolKind
    line: int
    text: str = ""


Token = Union[TextToken, NumberToken, Symbol]


def is_symbol(token: Token, kind: SymbolKind) -> bool:
    return isinstance(token, Symbol) and token.kind is kind


def parse_integer(raw: str) -> tuple[int, bool]:
    """Parse a Python-style integer literal; returns ``(value, valid)``."""
    try:
        return int(raw, 0), True
    except ValueError:
        pass
    try:
        # int(x, 0) rejects leading zeros ("010"); accept them as decimal
        return int(raw, 10), True
    except ValueError:
        return 0, False


class Tokenizer:
    """Single-pass scanner producing a token list terminated by EOF."""

    def __init__(self, text: str, start_line: int = 1):
        self.text = text
        self.pos = 0
        self.line = start_line

    def tokenize(self) -> List[Token]:
        tokens: List[Token] = []
        text = self.text
        length = len(text)

        while self.pos < length:
            ch = text[self.pos]

            if ch == "\n":
                self.line += 1
                self.pos += 1
            elif ch.isspace():
                self.pos += 1
            elif ch == "#":
                self._skip_comment()
            elif ch in PUNCTUATION:
                tokens.append(Symbol(PUNCTUATION[ch], self.line, ch))
                self.pos += 1
            elif ch in ("'", '"'):
                tokens.append(self._read_string(raw=False))
            elif ch.isdigit() or (ch in "+-" and self.pos + 1 < length and text[self.pos + 1].isdigit()):
                tokens.append(self._read_number())
            elif ch.isalpha() or ch == "_":
                tokens.append(self._read_identifier())
            else:
                tokens.append(Symbol(SymbolKind.ERROR, self.line, ch))
                self.pos += 1

        tokens.append(Symbol(SymbolKind.EOF, self.line))
        return tokens

    def _skip_comment(self) -> None:
        end = self.text.find("\n", self.pos)
        self.pos = len(self.text) if end < 0 else end

    def _read_identifier(self) -> Token:
        start = self.pos
        text = self.text
        while self.pos < len(text) and (text[self.pos].isalnum() or text[self.pos] == "_"):
            self.pos += 1
        word = text[start:self.pos]
        if self.pos < len(text) and text[self.pos] in ("'", '"') and word.lower() in _STRING_PREFIXES:
            return self._read_string(raw="r" in word.lower())
        return Symbol(SymbolKind.IDENT, self.line, word)

    def _read_number(self) -> NumberToken:
        start = self.pos
        text = self.text
        self.pos += 1
        while self.pos < len(text) and (text[self.pos].isalnum() or text[self.pos] in "_."):
            self.pos += 1
        raw = text[start:self.pos]
        value, valid = parse_integer(raw)
        return NumberToken(value, self.line, raw, valid)

    def _read_string(self, raw: bool) -> Token:
        text = self.text
        quote = text[self.pos]
        line = self.line
        self.pos += 1
        chars: List[str] = []

        while self.pos < len(text):
            ch = text[self.pos]
            if ch == quote:
                self.pos += 1
                return TextToken("".join(chars), line)
            if ch == "\n":
                break
            if ch == "\\" and self.pos + 1 < len(text):
                nxt = text[self.pos + 1]
                if raw:
                    chars.append(ch + nxt)
                elif nxt in _SIMPLE_ESCAPES:
                    chars.append(_SIMPLE_ESCAPES[nxt])
                elif nxt == "x" and self.pos + 3 < len(text):
                    try:
                        chars.append(chr(int(text[self.pos + 2:self.pos + 4], 16)))
                        self.pos += 2
                    except ValueError:
                        chars.append(ch + nxt)
                elif nxt == "\n":
                    self.line += 1
                else:
                    chars.append(ch + nxt)
                self.pos += 2
                continue
            chars.append(ch)
            self.pos += 1

        # unterminated: resume scanning on the next line
        return Symbol(SymbolKind.ERROR, line, quote + "".join(chars))


def tokenize(text: str, start_line: int = 1) -> List[Token]:
    return Tokenizer(text, start_line).tokenize()
