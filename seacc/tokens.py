"""Token types, tokens and operator precedence."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum, auto


class TokenType(Enum):
    """Kinds of lexical tokens."""

    ID = auto()
    LPAREN = auto()
    RPAREN = auto()
    LBRACE = auto()
    RBRACE = auto()
    SEMI = auto()
    INT = auto()
    STR = auto()
    COMMA = auto()
    OP = auto()
    ARROW = auto()
    COLON = auto()


@dataclass
class Token:
    """A single lexical token with its source line."""

    type: TokenType
    val: str
    line: int = 1


_TTYPE_NAMES = {
    TokenType.ID: "ID",
    TokenType.LPAREN: "(",
    TokenType.RPAREN: ")",
    TokenType.LBRACE: "{",
    TokenType.RBRACE: "}",
    TokenType.SEMI: ";",
    TokenType.INT: "INT",
    TokenType.STR: "STR",
    TokenType.COMMA: ",",
    TokenType.OP: "OP",
}

_PRECEDENCE = {
    "=": 0,
    "||": 1,
    "&&": 1,
    "==": 2,
    "!=": 2,
    "+": 3,
    "-": 3,
    "*": 4,
    "/": 4,
    "%": 4,
}


def ttype_to_str(ttype: TokenType) -> str:
    """Return a display name for a token type."""
    return _TTYPE_NAMES.get(ttype, "UNKNOWN")


def precedence(op: str) -> int:
    """Return the binding strength of a binary operator; unknown ones bind at 0."""
    return _PRECEDENCE.get(op, 0)