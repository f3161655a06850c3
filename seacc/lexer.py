"""Turns program text into tokens."""

from __future__ import annotations

import string

from .tokens import Token, TokenType

_SPACE = frozenset(" \t\n\v\f\r")
_DIGITS = frozenset(string.digits)
_ID_START = frozenset(string.ascii_letters + "_")
_ID_CHARS = _ID_START | _DIGITS
_OP_CHARS = frozenset("+-*/=%|&!")
_PUNCT = {
    "(": TokenType.LPAREN,
    ")": TokenType.RPAREN,
    "{": TokenType.LBRACE,
    "}": TokenType.RBRACE,
    ";": TokenType.SEMI,
    ":": TokenType.COLON,
    ",": TokenType.COMMA,
}


class Lexer:
    """Splits a program into tokens, tracking line numbers."""

    def __init__(self, source: str) -> None:
        self._src = source
        self._pos = 0
        self._line = 1

    def tokenize(self) -> list[Token]:
        """Scan the whole program and return its tokens."""
        self._pos = 0
        self._line = 1
        src = self._src
        tokens: list[Token] = []

        while self._pos < len(src):
            c = src[self._pos]

            if c in _SPACE:
                if c == "\n":
                    self._line += 1
                self._pos += 1
                continue

            if c in _DIGITS:
                tokens.append(Token(TokenType.INT, self._collect(_DIGITS), self._line))
            elif c in _ID_START:
                tokens.append(Token(TokenType.ID, self._collect(_ID_CHARS), self._line))
            elif c == '"':
                tokens.append(Token(TokenType.STR, self._collect_str(), self._line))
            elif c in _PUNCT:
                tokens.append(Token(_PUNCT[c], c, self._line))
                self._pos += 1
            elif c in _OP_CHARS:
                op = self._collect_op(c)
                ttype = TokenType.ARROW if op == "->" else TokenType.OP
                tokens.append(Token(ttype, op, self._line))
            else:
                self._pos += 1

        return tokens

    def _collect(self, allowed: frozenset[str]) -> str:
        start = self._pos
        src = self._src
        while self._pos < len(src) and src[self._pos] in allowed:
            self._pos += 1
        return src[start:self._pos]

    def _collect_str(self) -> str:
        src = self._src
        start = self._pos + 1
        end = src.find('"', start)
        if end == -1:
            self._pos = len(src)
            return src[start:]
        self._pos = end + 1
        return src[start:end]

    def _collect_op(self, c: str) -> str:
        nxt = self._src[self._pos + 1 : self._pos + 2]
        if nxt == "=" or (nxt == c and c in "|&") or (c == "-" and nxt == ">"):
            self._pos += 2
            return c + nxt
        self._pos += 1
        return c


def tokenize(source: str) -> list[Token]:
    """Return the tokens of a program."""
    return Lexer(source).tokenize()