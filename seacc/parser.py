"""Recursive-descent parser building a syntax tree from tokens."""

from __future__ import annotations

import itertools
from collections.abc import Iterable

from .nodes import DataType, Node, NodeType, str_to_dtype
from .tokens import Token, TokenType, precedence, ttype_to_str

_INT_MAX = 2**31 - 1

# Shared by every parser so that if/while/string labels stay unique.
_label_ids = itertools.count()

# Unary operators bind tighter than any binary operator.
_UNARY_PRECEDENCE = 100


class ParseError(ValueError):
    """Raised when the token stream does not form a valid program."""

    def __init__(self, message: str, token: Token | None = None) -> None:
        super().__init__(message)
        self.token = token


class Parser:
    """Builds a compound node holding every top-level expression."""

    def __init__(self, tokens: Iterable[Token]) -> None:
        self._source = list(tokens)
        self._toks = self._source
        self._pos = 0

    def parse(self) -> Node:
        """Parse the whole token stream as one compound block."""
        self._toks = [
            Token(TokenType.LBRACE, "{"),
            *self._source,
            Token(TokenType.RBRACE, "}"),
        ]
        self._pos = 0
        return self._parse_cpd()

    def current(self) -> Token:
        """The token under the cursor."""
        if self._pos >= len(self._toks):
            raise ParseError("unexpected end of input")
        return self._toks[self._pos]

    def _advance(self, expect: TokenType) -> None:
        tok = self.current()
        if tok.type is not expect:
            raise ParseError(
                f"unexpected token '{tok.val}', expected '{ttype_to_str(expect)}' token.",
                tok,
            )
        self._pos += 1

    def _after_brace(self) -> bool:
        return self._pos > 0 and self._toks[self._pos - 1].val == "}"

    def _parse_atom(self) -> Node | None:
        ttype = self.current().type
        if ttype is TokenType.ID:
            return self._parse_id()
        if ttype is TokenType.INT:
            return self._parse_int()
        if ttype is TokenType.STR:
            return self._parse_str()
        if ttype is TokenType.LBRACE:
            return self._parse_cpd()
        if ttype is TokenType.LPAREN:
            self._advance(TokenType.LPAREN)
            inner = self._parse_expr()
            self._advance(TokenType.RPAREN)
            return inner
        if ttype is TokenType.OP:
            return self._parse_unop()
        return None

    def _parse_expr(self, min_prec: int = 0) -> Node | None:
        left = self._parse_atom()

        # A block needs no semicolon: treat it as if one followed it.
        if self._after_brace():
            return left

        while self.current().type is TokenType.OP:
            op = self.current().val
            prec = precedence(op)
            if prec < min_prec:
                break
            self._advance(TokenType.OP)
            right = self._parse_expr(prec + 1)
            left = Node(NodeType.BINOP, op_l=left, op_r=right, op_type=op)

        return left

    def _parse_cpd(self) -> Node:
        self._advance(TokenType.LBRACE)
        cpd = Node(NodeType.CPD)
        expr = self._parse_expr()
        while expr is not None:
            cpd.cpd_nodes.append(expr)
            if not self._after_brace():
                self._advance(TokenType.SEMI)
            expr = self._parse_expr()
        self._advance(TokenType.RBRACE)
        return cpd

    def _parse_int(self) -> Node:
        tok = self.current()
        value = int(tok.val)
        if value > _INT_MAX:
            raise ParseError(f"integer literal '{tok.val}' is out of range", tok)
        self._advance(TokenType.INT)
        return Node(NodeType.VAL, DataType.INT, val_int=value)

    def _parse_str(self) -> Node:
        node = Node(NodeType.STR, str_val=self.current().val, str_id=next(_label_ids))
        self._advance(TokenType.STR)
        return node

    def _parse_id(self) -> Node:
        name = self.current().val
        self._advance(TokenType.ID)

        keyword = {
            "return": self._parse_ret,
            "if": self._parse_if,
            "while": self._parse_while,
            "fn": self._parse_fdef,
            "let": self._parse_vardef,
        }.get(name)
        if keyword is not None:
            return keyword()

        if self.current().type is not TokenType.LPAREN:
            return Node(NodeType.VAR, var_name=name)

        self._advance(TokenType.LPAREN)
        args: list[Node] = []
        expr = self._parse_expr()
        while expr is not None:
            args.append(expr)
            if self.current().type is TokenType.COMMA:
                self._advance(TokenType.COMMA)
            expr = self._parse_expr()
        self._advance(TokenType.RPAREN)
        return Node(NodeType.FN, fn_name=name, fn_args=args)

    def _parse_dtype(self) -> DataType:
        tok = self.current()
        try:
            dtype = str_to_dtype(tok.val)
        except ValueError as exc:
            raise ParseError(str(exc), tok) from None
        self._advance(TokenType.ID)
        return dtype

    def _parse_vardef(self) -> Node:
        target = self._parse_typed_var()
        assign = Node(NodeType.BINOP, op_type="=", op_l=target)
        if self.current().type is TokenType.OP and self.current().val == "=":
            self._advance(TokenType.OP)
            assign.op_r = self._parse_expr()
        return Node(NodeType.DEF, target.dtype, def_obj=assign)

    def _parse_fdef(self) -> Node:
        fn = Node(NodeType.FN, fn_name=self.current().val)
        self._advance(TokenType.ID)

        self._advance(TokenType.LPAREN)
        while self.current().type is not TokenType.RPAREN:
            fn.fn_args.append(self._parse_typed_var())
            if self.current().type is TokenType.COMMA:
                self._advance(TokenType.COMMA)
            else:
                break
        self._advance(TokenType.RPAREN)

        self._advance(TokenType.ARROW)
        ret_type = self._parse_dtype()
        fn.fn_body = self._parse_expr()
        return Node(NodeType.DEF, ret_type, def_obj=fn)

    def _parse_ret(self) -> Node:
        return Node(NodeType.RET, ret_val=self._parse_expr())

    def _parse_typed_var(self) -> Node:
        var = Node(NodeType.VAR, var_name=self.current().val)
        self._advance(TokenType.ID)
        self._advance(TokenType.COLON)
        var.dtype = self._parse_dtype()
        return var

    def _parse_if(self) -> Node:
        node = Node(NodeType.IF, if_id=next(_label_ids))
        self._advance(TokenType.LPAREN)
        node.if_cond = self._parse_expr()
        self._advance(TokenType.RPAREN)
        node.if_body = self._parse_expr()

        tok = self.current()
        if tok.type is TokenType.ID and tok.val == "else":
            self._advance(TokenType.ID)
            node.if_else = self._parse_expr()
        return node

    def _parse_while(self) -> Node:
        node = Node(NodeType.WHILE, while_id=next(_label_ids))
        self._advance(TokenType.LPAREN)
        node.while_cond = self._parse_expr()
        self._advance(TokenType.RPAREN)
        node.while_body = self._parse_expr()
        return node

    def _parse_unop(self) -> Node:
        node = Node(NodeType.UNOP, unop_type=self.current().val)
        self._advance(TokenType.OP)
        node.unop_obj = self._parse_expr(_UNARY_PRECEDENCE)
        return node


def parse(tokens: Iterable[Token]) -> Node:
    """Parse tokens into the program's root compound node."""
    return Parser(tokens).parse()