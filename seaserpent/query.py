"""
Search query entry point: text in, expression tree out.
"""

import logging

from .lexer import lex
from .parser import SearchExpression, parse_tokens

logger = logging.getLogger(__name__)


def parse(text: str) -> SearchExpression:
    """
    Parse a search query string.

    Raises:
        QuerySyntaxError: If the text can't be tokenized or parsed
    """
    tokens = lex(text)
    expression = parse_tokens(tokens)
    logger.debug("search_expression: %r", expression)
    return expression
