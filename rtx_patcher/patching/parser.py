"""Patch definition parser.

Community patch scripts declare two dictionaries::

    patches32 = {
        'bin/client.dll': [
            [('7401??8b', 0), 'eb'],                       # single pattern
            [[('aabbcc', 2), ('aabbdd', 2, '9090')], 'eb'],  # alternatives
        ],
    }
    patches64 = { ... }

Only the text from each ``patchesNN = {`` sentinel to its balanced closing
brace is read. The block is tokenized and handed to a small recursive-descent
parser (dictionary, list, tuple, string, integer). Malformed entries are
skipped and recorded as ``ParseIssue`` objects; only the absence of both
dictionaries is fatal.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Dict, List, Optional, Tuple, Union

from ..exceptions import MalformedPatchDocument
from .models import ParseIssue, Pattern, PatchDictionary, PatchDocument, PatchEntry
from .tokenizer import (
    CLOSERS,
    OPENERS,
    NumberToken,
    Symbol,
    SymbolKind,
    TextToken,
    Token,
    is_symbol,
    tokenize,
)

logger = logging.getLogger(__name__)

DICTIONARY_NAMES = ("patches32", "patches64")

# deepest container nesting accepted inside one value
MAX_NESTING = 64


# =====================================================================================================
# Block extraction
# =====================================================================================================

@dataclass(frozen=True)
class DictionaryBlock:
    name: str
    text: str
    start_line: int
    assignment: str


def _mask_non_code(text: str) -> str:
    """Blank out comment and string contents, keeping offsets and newlines intact."""
    out = list(text)
    i = 0
    length = len(text)
    while i < length:
        ch = text[i]
        if ch == "#":
            while i < length and text[i] != "\n":
                out[i] = " "
                i += 1
            continue
        if ch in ("'", '"'):
            quote = ch
            i += 1
            while i < length and text[i] != quote and text[i] != "\n":
                if text[i] == "\\" and i + 1 < length and text[i + 1] != "\n":
                    out[i] = " "
                    i += 1
                out[i] = " "
                i += 1
            i += 1
            continue
        i += 1
    return "".join(out)


def _is_ident_char(ch: str) -> bool:
    return ch.isalnum() or ch == "_"


def _skip_spaces(text: str, pos: int) -> int:
    while pos < len(text) and text[pos].isspace():
        pos += 1
    return pos


def find_dictionary_block(text: str, name: str, masked: Optional[str] = None) -> Optional[DictionaryBlock]:
    """Locate ``name = { ... }`` and return the brace-balanced body.

    Brace depth is counted on a copy of the text with strings and comments
    blanked, so braces inside either never affect the balance.
    """
    masked = _mask_non_code(text) if masked is None else masked
    search_from = 0
    while True:
        start = masked.find(name, search_from)
        if start < 0:
            return None
        search_from = start + len(name)

        if start > 0 and _is_ident_char(masked[start - 1]):
            continue
        pos = search_from
        if pos < len(masked) and _is_ident_char(masked[pos]):
            continue
        pos = _skip_spaces(masked, pos)
        if pos >= len(masked) or masked[pos] != "=" or masked[pos + 1:pos + 2] == "=":
            continue
        pos = _skip_spaces(masked, pos + 1)
        if pos >= len(masked) or masked[pos] != "{":
            continue

        brace_start = pos
        depth = 0
        for index in range(brace_start, len(masked)):
            ch = masked[index]
            if ch == "{":
                depth += 1
            elif ch == "}":
                depth -= 1
                if depth == 0:
                    return DictionaryBlock(
                        name=name,
                        text=text[brace_start:index + 1],
                        start_line=text.count("\n", 0, brace_start) + 1,
                        assignment=text[start:index + 1],
                    )
        logger.warning("Dictionary %s has no matching closing brace", name)
        return None


def extract_patch_dictionaries(text: str) -> str:
    """Return only the ``patches32``/``patches64`` assignments of a script."""
    masked = _mask_non_code(text)
    blocks = []
    for name in DICTIONARY_NAMES:
        block = find_dictionary_block(text, name, masked)
        if block is not None:
            blocks.append(block.assignment)
    return "\n\n".join(blocks) + ("\n" if blocks else "")


# =====================================================================================================
# Literal grammar
# =====================================================================================================

@dataclass
class SequenceNode:
    kind: str  # "list" or "tuple"
    items: List["Node"]
    line: int


@dataclass
class MappingNode:
    pairs: List[Tuple["Node", "Node"]]
    line: int


Node = Union[TextToken, NumberToken, SequenceNode, MappingNode]


class LiteralSyntaxError(Exception):
    """Internal parse failure; converted into a ParseIssue by the caller."""

    def __init__(self, message: str, line: int):
        super().__init__(message)
        self.line = line


class LiteralParser:
    """Recursive-descent parser over a token list."""

    def __init__(self, tokens: List[Token]):
        self.tokens = tokens
        self.pos = 0
        self.depth = 0

    # -- token access --------------------------------------------------------------------------------

    def peek(self) -> Token:
        return self.tokens[self.pos]

    def advance(self) -> Token:
        token = self.tokens[self.pos]
        if not is_symbol(token, SymbolKind.EOF):
            self.pos += 1
        return token

    def at(self, kind: SymbolKind) -> bool:
        return is_symbol(self.peek(), kind)

    def expect(self, kind: SymbolKind) -> Symbol:
        token = self.peek()
        if not is_symbol(token, kind):
            raise LiteralSyntaxError(f"expected {kind.name.lower()}, found {_describe(token)}", token.line)
        self.advance()
        return token  # type: ignore[return-value]

    def skip_to_separator(self) -> None:
        """Skip to the next comma or closer at the current nesting depth (not consumed)."""
        depth = 0
        while True:
            token = self.peek()
            if is_symbol(token, SymbolKind.EOF):
                return
            if isinstance(token, Symbol):
                if token.kind in OPENERS:
                    depth += 1
                elif token.kind in CLOSERS:
                    if depth == 0:
                        return
                    depth -= 1
                elif token.kind is SymbolKind.COMMA and depth == 0:
                    return
            self.advance()

    # -- productions ---------------------------------------------------------------------------------

    def parse_value(self) -> Node:
        token = self.peek()
        if isinstance(token, TextToken):
            return self.parse_string()
        if isinstance(token, NumberToken):
            return self.parse_number()
        productions = {
            SymbolKind.LBRACE: self.parse_dict,
            SymbolKind.LBRACKET: self.parse_list,
            SymbolKind.LPAREN: self.parse_tuple,
        }
        if isinstance(token, Symbol) and token.kind in productions:
            self.depth += 1
            try:
                if self.depth > MAX_NESTING:
                    raise LiteralSyntaxError(f"nesting deeper than {MAX_NESTING} levels", token.line)
                return productions[token.kind]()
            finally:
                self.depth -= 1
        raise LiteralSyntaxError(f"unexpected {_describe(token)}", token.line)

    def parse_string(self) -> TextToken:
        first = self.advance()
        if not isinstance(first, TextToken):
            raise LiteralSyntaxError(f"expected string, found {_describe(first)}", first.line)
        parts = [first.value]
        # adjacent literals concatenate, as in Python
        while isinstance(self.peek(), TextToken):
            parts.append(self.advance().value)  # type: ignore[union-attr]
        return TextToken("".join(parts), first.line)

    def parse_number(self) -> NumberToken:
        token = self.advance()
        if not isinstance(token, NumberToken):
            raise LiteralSyntaxError(f"expected integer, found {_describe(token)}", token.line)
        return token

    def parse_list(self) -> SequenceNode:
        opener = self.expect(SymbolKind.LBRACKET)
        items = self._parse_items(SymbolKind.RBRACKET)
        return SequenceNode("list", items, opener.line)

    def parse_tuple(self) -> SequenceNode:
        opener = self.expect(SymbolKind.LPAREN)
        items = self._parse_items(SymbolKind.RPAREN)
        return SequenceNode("tuple", items, opener.line)

    def parse_dict(self) -> MappingNode:
        opener = self.expect(SymbolKind.LBRACE)
        pairs: List[Tuple[Node, Node]] = []
        while not self.at(SymbolKind.RBRACE):
            key = self.parse_value()
            self.expect(SymbolKind.COLON)
            pairs.append((key, self.parse_value()))
            if not self.at(SymbolKind.RBRACE):
                self.expect(SymbolKind.COMMA)
        self.expect(SymbolKind.RBRACE)
        return MappingNode(pairs, opener.line)

    def _parse_items(self, closer: SymbolKind) -> List[Node]:
        items: List[Node] = []
        while not self.at(closer):
            items.append(self.parse_value())
            if not self.at(closer):
                self.expect(SymbolKind.COMMA)
        self.expect(closer)
        return items


def _describe(token: Token) -> str:
    if isinstance(token, TextToken):
        return f"string {token.value!r}"
    if isinstance(token, NumberToken):
        return f"number {token.raw or token.value}"
    if token.kind is SymbolKind.EOF:
        return "end of input"
    return repr(token.text) if token.text else token.kind.name.lower()


# =====================================================================================================
# Patch document parser
# =====================================================================================================

def normalize_file_path(path: str) -> str:
    normalized = path.strip().replace("\\", "/")
    while normalized.startswith("./"):
        normalized = normalized[2:]
    return normalized


def normalize_hex(value: str) -> str:
    return "".join(value.split()).lower()


class PatchDefinitionParser:
    """Parses raw definition text into a ``PatchDocument``."""

    def __init__(self) -> None:
        self.issues: List[ParseIssue] = []

    def parse(self, text: Union[str, bytes, None]) -> PatchDocument:
        self.issues = []
        if isinstance(text, (bytes, bytearray)):
            text = bytes(text).decode("utf-8-sig", errors="replace")
        if not isinstance(text, str) or not text.strip():
            raise MalformedPatchDocument("Patch definition text is empty")

        masked = _mask_non_code(text)
        blocks: Dict[str, Optional[DictionaryBlock]] = {
            name: find_dictionary_block(text, name, masked) for name in DICTIONARY_NAMES
        }
        if all(block is None for block in blocks.values()):
            raise MalformedPatchDocument(
                "No patches32 or patches64 dictionary found in patch definitions",
                details={"length": len(text)},
            )

        dictionaries: Dict[str, PatchDictionary] = {}
        for name, block in blocks.items():
            if block is None:
                logger.info("Patch definitions contain no %s dictionary", name)
                dictionaries[name] = PatchDictionary(name, present=False)
            else:
                dictionaries[name] = self.parse_dictionary(block)

        document = PatchDocument(
            patches32=dictionaries["patches32"],
            patches64=dictionaries["patches64"],
            issues=list(self.issues),
        )
        logger.info(
            "Parsed patch definitions: patches32=%d files/%d entries, patches64=%d files/%d entries, %d issue(s)",
            len(document.patches32), document.patches32.entry_count,
            len(document.patches64), document.patches64.entry_count,
            len(document.issues),
        )
        return document

    # -- dictionary level ----------------------------------------------------------------------------

    def parse_dictionary(self, block: DictionaryBlock) -> PatchDictionary:
        result = PatchDictionary(block.name)
        parser = LiteralParser(tokenize(block.text, block.start_line))
        parser.expect(SymbolKind.LBRACE)

        while not parser.at(SymbolKind.RBRACE):
            if parser.at(SymbolKind.EOF):
                self._issue("structure", block.name, "unterminated dictionary", parser.peek().line)
                break
            start_line = parser.peek().line
            start = parser.pos
            try:
                key = parser.parse_value()
                if not isinstance(key, TextToken):
                    raise LiteralSyntaxError("file path key must be a string", start_line)
                parser.expect(SymbolKind.COLON)
                file_path = normalize_file_path(key.value)
                if not file_path:
                    raise LiteralSyntaxError("file path key is empty", start_line)
                self._parse_entry_list(parser, block.name, file_path, result)
            except LiteralSyntaxError as exc:
                self._issue("pair", block.name, str(exc), exc.line)
                parser.pos = start
                parser.skip_to_separator()

            if parser.at(SymbolKind.COMMA):
                parser.advance()
            elif not parser.at(SymbolKind.RBRACE) and not parser.at(SymbolKind.EOF):
                token = parser.peek()
                self._issue("structure", block.name, f"unexpected {_describe(token)}", token.line)
                parser.advance()
                parser.skip_to_separator()

        return result

    def _parse_entry_list(self, parser: LiteralParser, name: str, file_path: str,
                          result: PatchDictionary) -> None:
        if parser.at(SymbolKind.LBRACKET):
            closer = SymbolKind.RBRACKET
        elif parser.at(SymbolKind.LPAREN):
            closer = SymbolKind.RPAREN
        else:
            token = parser.peek()
            raise LiteralSyntaxError(f"entries for {file_path} must be a list, found {_describe(token)}",
                                     token.line)
        parser.advance()
        result.ensure_file(file_path)

        while not parser.at(closer):
            token = parser.peek()
            if isinstance(token, Symbol) and token.kind in CLOSERS + (SymbolKind.EOF,):
                self._issue("structure", name, f"unterminated entry list, found {_describe(token)}",
                            token.line, file_path)
                return

            start = parser.pos
            try:
                node = parser.parse_value()
                result.add(file_path, self.build_entry(node, name, file_path))
            except LiteralSyntaxError as exc:
                self._issue("entry", name, str(exc), exc.line, file_path)
                parser.pos = start
                parser.skip_to_separator()

            if parser.at(SymbolKind.COMMA):
                parser.advance()
            elif not parser.at(closer):
                token = parser.peek()
                if isinstance(token, Symbol) and token.kind in CLOSERS + (SymbolKind.EOF,):
                    continue
                self._issue("entry", name, f"expected comma, found {_describe(token)}", token.line, file_path)
                parser.skip_to_separator()
        parser.advance()

    # -- entry level ---------------------------------------------------------------------------------

    def build_entry(self, node: Node, name: str, file_path: str) -> PatchEntry:
        """Interpret ``(patterns, replacement)``; raises LiteralSyntaxError when malformed."""
        line = _line_of(node)
        if not isinstance(node, SequenceNode) or len(node.items) < 2:
            raise LiteralSyntaxError("entry must be a (patterns, replacement) pair", line)

        patterns_node, replacement_node = node.items[0], node.items[1]
        if not isinstance(replacement_node, TextToken):
            raise LiteralSyntaxError("replacement must be a hex string", _line_of(replacement_node))
        if not isinstance(patterns_node, SequenceNode) or not patterns_node.items:
            raise LiteralSyntaxError("patterns must be a tuple or a list of tuples", _line_of(patterns_node))

        if isinstance(patterns_node.items[0], SequenceNode):
            patterns = []
            for alternative in patterns_node.items:
                try:
                    patterns.append(self.build_pattern(alternative, name, file_path))
                except LiteralSyntaxError as exc:
                    self._issue("pattern", name, str(exc), exc.line, file_path)
            if not patterns:
                raise LiteralSyntaxError("no usable pattern among the alternatives", line)
        else:
            patterns = [self.build_pattern(patterns_node, name, file_path)]

        return PatchEntry(tuple(patterns), normalize_hex(replacement_node.value), line)

    def build_pattern(self, node: Node, name: str, file_path: str) -> Pattern:
        line = _line_of(node)
        if not isinstance(node, SequenceNode) or len(node.items) not in (2, 3):
            raise LiteralSyntaxError("pattern must be (hex, offset[, replacement])", line)

        hex_node, offset_node = node.items[0], node.items[1]
        if not isinstance(hex_node, TextToken):
            raise LiteralSyntaxError("pattern hex must be a string", line)
        if not isinstance(offset_node, NumberToken):
            raise LiteralSyntaxError("pattern offset must be an integer", line)

        offset = offset_node.value
        if not offset_node.valid:
            self._issue("integer", name, f"unparseable offset {offset_node.raw!r}, using 0",
                        offset_node.line, file_path)
            offset = 0

        override = None
        if len(node.items) == 3:
            override_node = node.items[2]
            if not isinstance(override_node, TextToken):
                raise LiteralSyntaxError("replacement override must be a hex string", line)
            override = normalize_hex(override_node.value)

        return Pattern(normalize_hex(hex_node.value), offset, override)

    def _issue(self, kind: str, name: str, message: str, line: int = 0,
               file_path: Optional[str] = None) -> None:
        issue = ParseIssue(kind, name, message, line, file_path)
        self.issues.append(issue)
        where = f" ({file_path})" if file_path else ""
        logger.warning("%s line %d%s: %s [%s skipped]", name, line, where, message, kind)


def _line_of(node: Node) -> int:
    return getattr(node, "line", 0)


def parse_patch_document(text: Union[str, bytes, None]) -> PatchDocument:
    return PatchDefinitionParser().parse(text)
