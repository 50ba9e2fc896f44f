from __future__ import annotations

from rtx_patcher.patching.tokenizer import (
    NumberToken,
    Symbol,
    SymbolKind,
    TextToken,
    parse_integer,
    tokenize,
)


def _kinds(tokens):
    out = []
    for token in tokens:
        if isinstance(token, Symbol):
            out.append(token.kind)
        else:
            out.append(type(token))
    return out


def test_tokenize_punctuation_strings_and_numbers() -> None:
    tokens = tokenize("{'a': [1, -2, 0x1F]}")

    assert _kinds(tokens) == [
        SymbolKind.LBRACE, TextToken, SymbolKind.COLON, SymbolKind.LBRACKET,
        NumberToken, SymbolKind.COMMA, NumberToken, SymbolKind.COMMA, NumberToken,
        SymbolKind.RBRACKET, SymbolKind.RBRACE, SymbolKind.EOF,
    ]
    numbers = [t.value for t in tokens if isinstance(t, NumberToken)]
    assert numbers == [1, -2, 31]


def test_comments_are_skipped_and_lines_counted() -> None:
    tokens = tokenize("# comment with 'quote' and {brace}\n'x'  # trailing\n")

    assert tokens[0] == TextToken("x", 2)
    assert tokens[1].kind is SymbolKind.EOF


def test_string_escapes_and_quotes() -> None:
    tokens = tokenize(r"""'a\'b' "c\"d" '\x41'""")

    assert [t.value for t in tokens if isinstance(t, TextToken)] == ["a'b", 'c"d', "A"]


def test_raw_string_prefix_keeps_backslashes() -> None:
    tokens = tokenize(r"r'bin\client.dll'")

    assert tokens[0] == TextToken("bin\\client.dll", 1)


def test_unterminated_string_becomes_error_and_scanning_resumes() -> None:
    tokens = tokenize("'abc\n7")

    assert isinstance(tokens[0], Symbol) and tokens[0].kind is SymbolKind.ERROR
    assert tokens[1] == NumberToken(7, 2, "7", True)


def test_identifiers_are_symbols() -> None:
    tokens = tokenize("True None")

    assert [t.kind for t in tokens[:2]] == [SymbolKind.IDENT, SymbolKind.IDENT]
    assert tokens[0].text == "True"


def test_parse_integer_forms() -> None:
    assert parse_integer("42") == (42, True)
    assert parse_integer("0x10") == (16, True)
    assert parse_integer("0o10") == (8, True)
    assert parse_integer("0b101") == (5, True)
    assert parse_integer("1_000") == (1000, True)
    assert parse_integer("010") == (10, True)
    assert parse_integer("12abc") == (0, False)


def test_invalid_number_token_is_flagged() -> None:
    token = tokenize("0xZZ")[0]

    assert isinstance(token, NumberToken)
    assert token.valid is False
    assert token.raw == "0xZZ"
