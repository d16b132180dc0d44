"""Tests for the query tokenizer."""

import pytest

from seaserpent.errors import LexError, QuerySyntaxError
from seaserpent.lexer import Token, TokenKind, lex

START = Token(TokenKind.START_PAREN)
END = Token(TokenKind.END_PAREN)
OR = Token(TokenKind.OR)
NOT = Token(TokenKind.NOT)
SEP = Token(TokenKind.ATTRIBUTE_SEPARATOR)


def word(text):
    return Token.word(text)


class TestLex:
    def test_word(self):
        assert lex("word") == [word("word")]

    def test_empty(self):
        assert lex("") == []
        assert lex("   ") == []

    def test_parens(self):
        assert lex("word (word)") == [word("word"), START, word("word"), END]

    def test_or_explicit(self):
        assert lex("A or B") == [word("A"), OR, word("B")]

    def test_or_with_comma(self):
        assert lex("A, B") == [word("A"), OR, word("B")]
        assert lex("A,B") == [word("A"), OR, word("B")]

    def test_and_is_dropped(self):
        assert lex("A and B") == [word("A"), word("B")]

    def test_not(self):
        assert lex("not A") == [NOT, word("A")]

    def test_keywords_are_case_sensitive(self):
        assert lex("A OR B") == [word("A"), word("OR"), word("B")]

    def test_attribute(self):
        assert lex("key:value") == [word("key"), SEP, word("value")]

    def test_attribute_without_value(self):
        assert lex("key:") == [word("key"), SEP]

    def test_attribute_without_key(self):
        assert lex(":value") == [SEP, word("value")]

    def test_paren_ends_word(self):
        assert lex("(a)b") == [START, word("a"), END, word("b")]


class TestQuoting:
    def test_quoted_word(self):
        assert lex('"tag something" else') == [word("tag something"), word("else")]

    def test_quotes_protect_special_characters(self):
        assert lex('"a:b (c), d"') == [word("a:b (c), d")]

    def test_quote_inside_word(self):
        assert lex('ab"c d"e') == [word("abc de")]

    def test_quoted_keywords_are_words(self):
        assert lex('"or" "not" "and"') == [word("or"), word("not"), word("and")]

    def test_empty_quotes(self):
        assert lex('""') == [word("")]

    def test_quoted_attribute_parts(self):
        assert lex('"my key":"some value"') == [word("my key"), SEP, word("some value")]

    def test_unterminated_quote_is_an_error(self):
        with pytest.raises(LexError):
            lex('"never closed')

    def test_lex_error_is_query_syntax_error(self):
        with pytest.raises(QuerySyntaxError, match="Unterminated quote"):
            lex('a "b')
