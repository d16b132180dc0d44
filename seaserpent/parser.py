"""
Recursive-descent parser turning query tokens into a search expression.

AND and OR share one precedence level and chain to the right: every
operator's right operand is the rest of the chain, so ``A B or C`` is
``A AND (B OR C)``. NOT binds tightest and negates a single unit (a term,
an attribute or a parenthesised group).
"""

import enum
from dataclasses import dataclass
from typing import Optional, Union

from .errors import ParseError, ParseErrorKind
from .lexer import Token, TokenKind


# -----------------------------------------------------------------------------
# Expression tree
# -----------------------------------------------------------------------------

class BinaryOperator(enum.Enum):
    AND = "and"
    OR = "or"


class UnaryOperator(enum.Enum):
    NOT = "not"


@dataclass(frozen=True)
class Empty:
    """Matches every file."""


@dataclass(frozen=True)
class TagExpr:
    name: str


@dataclass(frozen=True)
class AttributeExpr:
    """Attribute query; None on either side is a wildcard."""
    key: Optional[str] = None
    value: Optional[str] = None


@dataclass(frozen=True)
class BinaryOp:
    left: "SearchExpression"
    right: "SearchExpression"
    op: BinaryOperator


@dataclass(frozen=True)
class UnaryOp:
    expr: "SearchExpression"
    op: UnaryOperator = UnaryOperator.NOT


SearchExpression = Union[Empty, TagExpr, AttributeExpr, BinaryOp, UnaryOp]


# -----------------------------------------------------------------------------
# Parser
# -----------------------------------------------------------------------------

class TokenCursor:
    """Position in a token list with one token of lookahead."""

    def __init__(self, tokens: list[Token]):
        self._tokens = tokens
        self._pos = 0

    def peek(self) -> Optional[Token]:
        if self._pos < len(self._tokens):
            return self._tokens[self._pos]
        return None

    def next(self) -> Optional[Token]:
        token = self.peek()
        if token is not None:
            self._pos += 1
        return token

    def require(self) -> Token:
        token = self.next()
        if token is None:
            raise ParseError(ParseErrorKind.UNEXPECTED_END_OF_INPUT)
        return token


def parse_tokens(tokens: list[Token]) -> SearchExpression:
    """
    Parse a token list into a search expression.

    An empty token list yields Empty (no filter).

    Raises:
        ParseError: On a missing operand, a missing ``)``, or an
            operator/closing paren where a term must start
    """
    if not tokens:
        return Empty()
    cursor = TokenCursor(tokens)
    expr = _parse_chain(cursor)
    leftover = cursor.peek()
    if leftover is not None:
        # Only an unmatched ")" can stop a top-level chain early
        raise ParseError(ParseErrorKind.UNEXPECTED_TOKEN, leftover)
    return expr


def _parse_chain(cursor: TokenCursor) -> SearchExpression:
    """Parse one unit and, unless the chain ends, the operator and the rest."""
    left = _parse_unit(cursor)
    following = cursor.peek()
    if following is None or following.kind is TokenKind.END_PAREN:
        return left
    if following.kind is TokenKind.OR:
        cursor.next()
        op = BinaryOperator.OR
    else:
        op = BinaryOperator.AND
    return BinaryOp(left=left, right=_parse_chain(cursor), op=op)


def _parse_unit(cursor: TokenCursor) -> SearchExpression:
    token = cursor.require()
    kind = token.kind

    if kind is TokenKind.WORD:
        following = cursor.peek()
        if following is not None and following.kind is TokenKind.ATTRIBUTE_SEPARATOR:
            cursor.next()
            return _parse_attribute(cursor, token.text)
        return TagExpr(token.text)

    if kind is TokenKind.ATTRIBUTE_SEPARATOR:
        return _parse_attribute(cursor, None)

    if kind is TokenKind.NOT:
        return UnaryOp(expr=_parse_unit(cursor), op=UnaryOperator.NOT)

    if kind is TokenKind.START_PAREN:
        inner = _parse_chain(cursor)
        # The chain stops at ")" or at the end; the end means it was never closed
        cursor.require()
        return inner

    raise ParseError(ParseErrorKind.UNEXPECTED_TOKEN, token)


def _parse_attribute(cursor: TokenCursor, key: Optional[str]) -> SearchExpression:
    """Parse the value half of an attribute (the separator is consumed)."""
    value = None
    following = cursor.peek()
    if following is not None and following.kind is TokenKind.WORD:
        cursor.next()
        value = following.text
    if key is None and value is None:
        # A bare ":" constrains nothing; parse whatever comes next instead
        return _parse_unit(cursor)
    return AttributeExpr(key=key, value=value)
