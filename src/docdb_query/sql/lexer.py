"""Tokenizer for the native SQL dialect."""

from __future__ import annotations

import re
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING

from ..exceptions import SqlSyntaxError

if TYPE_CHECKING:
    from collections.abc import Iterator


class TokenKind(str, Enum):
    WORD = "word"
    NUMBER = "number"
    STRING = "string"
    PARAM = "param"
    SYMBOL = "symbol"
    END = "end"


@dataclass(frozen=True)
class Token:
    kind: TokenKind
    text: str
    position: int

    def is_word(self, *words: str) -> bool:
        return self.kind is TokenKind.WORD and self.text.upper() in words

    def is_symbol(self, *symbols: str) -> bool:
        return self.kind is TokenKind.SYMBOL and self.text in symbols


_TOKEN_RE = re.compile(
    r"""
    (?P<space>\s+)
    |(?P<param>@[A-Za-z_][A-Za-z0-9_]*)
    |(?P<number>-?\d+(?:\.\d+)?(?:[eE][+-]?\d+)?)
    |(?P<word>[A-Za-z_][A-Za-z0-9_]*)
    |(?P<string>"(?:[^"\\]|\\.)*"|'(?:[^'\\]|\\.)*')
    |(?P<symbol><=|>=|!=|<>|[=<>()\[\],.*])
    """,
    re.VERBOSE,
)

_ESCAPES = {"n": "\n", "t": "\t", "r": "\r", "b": "\b", "f": "\f", "/": "/"}


def _unquote(literal: str) -> str:
    body = literal[1:-1]
    out: list[str] = []
    i = 0
    while i < len(body):
        ch = body[i]
        if ch == "\\" and i + 1 < len(body):
            nxt = body[i + 1]
            if nxt == "u" and i + 5 < len(body):
                out.append(chr(int(body[i + 2 : i + 6], 16)))
                i += 6
                continue
            out.append(_ESCAPES.get(nxt, nxt))
            i += 2
            continue
        out.append(ch)
        i += 1
    return "".join(out)


def tokenize(text: str) -> Iterator[Token]:
    """Yield tokens, ending with a single ``END`` token."""
    position = 0
    while position < len(text):
        match = _TOKEN_RE.match(text, position)
        if match is None:
            raise SqlSyntaxError(f"Unexpected character {text[position]!r}", position=position)
        kind = match.lastgroup
        value = match.group()
        if kind == "string":
            yield Token(TokenKind.STRING, _unquote(value), position)
        elif kind != "space":
            yield Token(TokenKind(kind), value, position)
        position = match.end()
    yield Token(TokenKind.END, "", position)
