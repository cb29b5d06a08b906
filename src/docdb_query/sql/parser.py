"""
Recursive-descent parser for the native SQL dialect.

Grammar (keywords are case-insensitive)::

    statement  := SELECT projection FROM ROOT alias [WHERE expr]
                  [ORDER BY order ("," order)*]
    projection := [TOP number] "*" | VALUE COUNT "(" number ")"
    expr       := and ("OR" and)*
    and        := unary ("AND" unary)*
    unary      := NOT unary | predicate
    predicate  := operand [cmp operand
                          | [NOT] BETWEEN operand AND operand
                          | [NOT] IN "(" operand ("," operand)* ")"
                          | [NOT] LIKE operand]
    operand    := "(" expr ")" | param | number | string
                | TRUE | FALSE | NULL | UNDEFINED
                | name "(" [expr ("," expr)*] ")" | path
    path       := alias ("." name | "[" string "]")*
"""

from __future__ import annotations

from functools import lru_cache
from typing import NoReturn

from ..exceptions import SqlSyntaxError
from .ast import (
    UNDEFINED,
    Between,
    Call,
    Compare,
    Expr,
    InList,
    Like,
    Literal,
    Logical,
    Not,
    OrderItem,
    Param,
    Path,
    SelectStatement,
)
from .lexer import Token, TokenKind, tokenize

_COMPARISONS = ("=", "!=", "<>", "<", "<=", ">", ">=")


class _Parser:
    def __init__(self, text: str) -> None:
        self._tokens = list(tokenize(text))
        self._index = 0
        self._alias = ""

    # -- token helpers -------------------------------------------------------

    @property
    def _current(self) -> Token:
        return self._tokens[self._index]

    def _advance(self) -> Token:
        token = self._tokens[self._index]
        if token.kind is not TokenKind.END:
            self._index += 1
        return token

    def _accept_word(self, *words: str) -> bool:
        if self._current.is_word(*words):
            self._advance()
            return True
        return False

    def _accept_symbol(self, *symbols: str) -> bool:
        if self._current.is_symbol(*symbols):
            self._advance()
            return True
        return False

    def _expect_word(self, word: str) -> None:
        if not self._accept_word(word):
            self._fail(f"Expected {word}")

    def _expect_symbol(self, symbol: str) -> None:
        if not self._accept_symbol(symbol):
            self._fail(f"Expected '{symbol}'")

    def _expect_integer(self) -> int:
        token = self._advance()
        if token.kind is not TokenKind.NUMBER or not token.text.isdigit():
            raise SqlSyntaxError("Expected a non-negative integer", position=token.position)
        return int(token.text)

    def _fail(self, message: str) -> NoReturn:
        token = self._current
        found = token.text or "end of input"
        raise SqlSyntaxError(f"{message}, found {found!r}", position=token.position)

    # -- statement -----------------------------------------------------------

    def statement(self) -> SelectStatement:
        self._expect_word("SELECT")
        top: int | None = None
        count = False
        if self._accept_word("VALUE"):
            self._expect_word("COUNT")
            self._expect_symbol("(")
            self._expect_integer()
            self._expect_symbol(")")
            count = True
        else:
            if self._accept_word("TOP"):
                top = self._expect_integer()
            self._expect_symbol("*")
        self._expect_word("FROM")
        self._expect_word("ROOT")
        alias_token = self._advance()
        if alias_token.kind is not TokenKind.WORD:
            raise SqlSyntaxError("Expected a document alias", position=alias_token.position)
        self._alias = alias_token.text

        where = None
        if self._accept_word("WHERE"):
            where = self.expr()

        order_by: list[OrderItem] = []
        if self._accept_word("ORDER"):
            self._expect_word("BY")
            while True:
                path = self._path()
                descending = False
                if self._accept_word("DESC"):
                    descending = True
                else:
                    self._accept_word("ASC")
                order_by.append(OrderItem(path, descending))
                if not self._accept_symbol(","):
                    break

        if self._current.kind is not TokenKind.END:
            self._fail("Unexpected trailing input")
        return SelectStatement(
            alias=self._alias,
            where=where,
            order_by=tuple(order_by),
            top=top,
            count=count,
        )

    # -- expressions ---------------------------------------------------------

    def expr(self) -> Expr:
        node = self._and()
        while self._accept_word("OR"):
            node = Logical("OR", node, self._and())
        return node

    def _and(self) -> Expr:
        node = self._unary()
        while self._accept_word("AND"):
            node = Logical("AND", node, self._unary())
        return node

    def _unary(self) -> Expr:
        if self._accept_word("NOT"):
            return Not(self._unary())
        return self._predicate()

    def _predicate(self) -> Expr:
        left = self._operand()
        token = self._current
        if token.kind is TokenKind.SYMBOL and token.text in _COMPARISONS:
            self._advance()
            op = "!=" if token.text == "<>" else token.text
            return Compare(op, left, self._operand())

        negated = self._accept_word("NOT")
        node: Expr
        if self._accept_word("BETWEEN"):
            low = self._operand()
            self._expect_word("AND")
            node = Between(left, low, self._operand())
        elif self._accept_word("IN"):
            self._expect_symbol("(")
            items = [self._operand()]
            while self._accept_symbol(","):
                items.append(self._operand())
            self._expect_symbol(")")
            node = InList(left, tuple(items))
        elif self._accept_word("LIKE"):
            node = Like(left, self._operand())
        elif negated:
            self._fail("Expected BETWEEN, IN or LIKE after NOT")
        else:
            return left
        return Not(node) if negated else node

    def _operand(self) -> Expr:
        token = self._current
        if token.is_symbol("("):
            self._advance()
            inner = self.expr()
            self._expect_symbol(")")
            return inner
        if token.kind is TokenKind.PARAM:
            self._advance()
            return Param(token.text)
        if token.kind is TokenKind.NUMBER:
            self._advance()
            text = token.text
            is_float = any(c in text for c in ".eE")
            return Literal(float(text) if is_float else int(text))
        if token.kind is TokenKind.STRING:
            self._advance()
            return Literal(token.text)
        if token.is_word("TRUE", "FALSE", "NULL", "UNDEFINED"):
            self._advance()
            constants = {
                "TRUE": True,
                "FALSE": False,
                "NULL": None,
                "UNDEFINED": UNDEFINED,
            }
            return Literal(constants[token.text.upper()])
        if token.kind is TokenKind.WORD:
            if token.text == self._alias:
                return self._path()
            self._advance()
            self._expect_symbol("(")
            args: list[Expr] = []
            if not self._current.is_symbol(")"):
                args.append(self.expr())
                while self._accept_symbol(","):
                    args.append(self.expr())
            self._expect_symbol(")")
            return Call(token.text.upper(), tuple(args))
        self._fail("Expected an operand")

    def _path(self) -> Path:
        alias = self._advance()
        if alias.kind is not TokenKind.WORD or alias.text != self._alias:
            raise SqlSyntaxError(
                f"Expected a property of '{self._alias}'", position=alias.position
            )
        segments: list[str] = []
        while True:
            if self._accept_symbol("."):
                name = self._advance()
                if name.kind is not TokenKind.WORD:
                    raise SqlSyntaxError("Expected a property name", position=name.position)
                segments.append(name.text)
            elif self._accept_symbol("["):
                name = self._advance()
                if name.kind is not TokenKind.STRING:
                    raise SqlSyntaxError(
                        "Expected a quoted property name", position=name.position
                    )
                segments.append(name.text)
                self._expect_symbol("]")
            else:
                break
        if not segments:
            raise SqlSyntaxError("Expected a property path", position=alias.position)
        return Path(tuple(segments))


@lru_cache(maxsize=256)
def parse(text: str) -> SelectStatement:
    """Parse a native statement. Results are cached by text."""
    return _Parser(text).statement()
