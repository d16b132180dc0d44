"""
Tokenizer for search queries.

Grammar of the surface syntax:
    (  )        grouping
    , or        OR
    not         NOT
    and         ignored (AND is implicit between adjacent terms)
    key:value   attribute query (either side may be empty)
    "a b"       quoting makes spaces, parens, commas and colons literal
"""

import enum
from dataclasses import dataclass
from typing import Optional

from .errors import LexError


class TokenKind(enum.Enum):
    WORD = "word"
    START_PAREN = "("
    END_PAREN = ")"
    OR = "or"
    NOT = "not"
    ATTRIBUTE_SEPARATOR = ":"


@dataclass(frozen=True)
class Token:
    kind: TokenKind
    text: Optional[str] = None

    @classmethod
    def word(cls, text: str) -> "Token":
        return cls(TokenKind.WORD, text)

    def __str__(self) -> str:
        if self.kind is TokenKind.WORD:
            return repr(self.text)
        return self.kind.value


_SINGLE_CHAR_TOKENS = {
    "(": TokenKind.START_PAREN,
    ")": TokenKind.END_PAREN,
    ",": TokenKind.OR,
    ":": TokenKind.ATTRIBUTE_SEPARATOR,
}

# Characters that end an unquoted word
SPECIAL_CHARS = frozenset(" (),:")

QUOTE = '"'

_KEYWORDS = {
    "or": TokenKind.OR,
    "not": TokenKind.NOT,
}
_IGNORED_WORDS = frozenset({"and"})


def lex(text: str) -> list[Token]:
    """
    Split a query string into tokens.

    Raises:
        LexError: If a quote is opened but never closed
    """
    tokens: list[Token] = []
    pos = 0
    while pos < len(text):
        char = text[pos]
        if char == " ":
            pos += 1
            continue
        if char in _SINGLE_CHAR_TOKENS:
            tokens.append(Token(_SINGLE_CHAR_TOKENS[char]))
            pos += 1
            continue

        word, quoted, pos = _read_word(text, pos)
        if not quoted and word in _IGNORED_WORDS:
            continue
        if not quoted and word in _KEYWORDS:
            tokens.append(Token(_KEYWORDS[word]))
        else:
            tokens.append(Token.word(word))
    return tokens


def _read_word(text: str, pos: int) -> tuple[str, bool, int]:
    """Read one word starting at ``pos``.

    Returns (word, was_quoted, position after the word).
    """
    chars: list[str] = []
    in_quotes = False
    was_quoted = False
    start = pos
    while pos < len(text):
        char = text[pos]
        if char in SPECIAL_CHARS and not in_quotes:
            break
        if char == QUOTE:
            in_quotes = not in_quotes
            was_quoted = True
        else:
            chars.append(char)
        pos += 1
    if in_quotes:
        raise LexError(f"Unterminated quote starting at position {start}")
    return "".join(chars), was_quoted, pos
