"""
Split raw SQL text into the ordered statement batch sent to the server.

Tokenizing is done by sqlparse, so semicolons inside string literals,
quoted identifiers and comments never separate statements, and trigger
bodies (``CREATE TRIGGER ... BEGIN ...; END``) stay in one piece.
"""

from typing import List, Sequence, Tuple

from sqlparse import keywords
from sqlparse import tokens as T
from sqlparse.engine.statement_splitter import StatementSplitter
from sqlparse.lexer import Lexer
from sqlparse.sql import Token

from .context import get_logger
from .exceptions import SQLSyntaxError

logger = get_logger("statements")

# Quote characters the lexer leaves unmatched when a literal never closes
_QUOTE_CHARS = {"'": "string literal", '"': "quoted identifier", "`": "quoted identifier"}

# SQLite escapes a quote only by doubling it; a backslash is a plain character
_SQLITE_QUOTING = {
    T.String.Single: r"'(''|[^'])*'",
    T.String.Symbol: r'"(""|[^"])*"',
}


def _sqlite_lexer() -> Lexer:
    """sqlparse lexer with the default rules, except SQLite string quoting."""
    rules = []
    for pattern, ttype in keywords.SQL_REGEX:
        rule = (_SQLITE_QUOTING.get(ttype, pattern), ttype)
        if rule not in rules:
            rules.append(rule)

    lexer = Lexer()
    lexer.default_initialization()
    lexer.set_SQL_REGEX(rules)
    return lexer


_LEXER = _sqlite_lexer()


def _is_filler(token: Token) -> bool:
    return token.is_whitespace or token.ttype in T.Comment


def _is_terminator(token: Token) -> bool:
    return token.match(T.Punctuation, ";")


def _split_tokens(raw: str) -> Tuple[List[List[Token]], StatementSplitter]:
    splitter = StatementSplitter()
    statements = [list(statement.flatten()) for statement in splitter.process(_LEXER.get_tokens(raw))]
    return statements, splitter


def _unterminated(tokens: Sequence[Token]) -> str:
    """Describe the first unterminated quote or block comment, or return ""."""
    for i, token in enumerate(tokens):
        if token.ttype is T.Error and token.value in _QUOTE_CHARS:
            return f"unterminated {_QUOTE_CHARS[token.value]}: missing closing {token.value}"
        # a closed /* ... */ is always lexed as one comment token
        if (
            token.ttype in T.Operator
            and token.value.endswith("/")
            and i + 1 < len(tokens)
            and tokens[i + 1].ttype is T.Wildcard
        ):
            return "unterminated block comment: missing closing */"
    return ""


def _statement_text(tokens: Sequence[Token]) -> str:
    """Join tokens, dropping leading/trailing comments, whitespace and `;`."""
    start, end = 0, len(tokens)
    while start < end and _is_filler(tokens[start]):
        start += 1
    while end > start and (_is_filler(tokens[end - 1]) or _is_terminator(tokens[end - 1])):
        end -= 1
    return "".join(token.value for token in tokens[start:end])


def split(raw: str) -> List[str]:
    """Split SQL text into individual statements.

    Args:
        raw: SQL text holding zero or more statements separated by ``;``.

    Returns:
        Statements in source order, without their terminating ``;``.
        Segments holding only whitespace or comments are dropped.

    Raises:
        SQLSyntaxError: If a quote or block comment is left open.

    Example:
        >>> split("select 1; -- comment with ; inside\\nselect 2;")
        ['select 1', 'select 2']
    """
    if not raw or not raw.strip():
        return []

    statements = []
    for tokens in _split_tokens(raw)[0]:
        problem = _unterminated(tokens)
        if problem:
            raise SQLSyntaxError(problem)
        text = _statement_text(tokens)
        if text:
            statements.append(text)

    logger.debug(f"Split SQL text into {len(statements)} statement(s)")
    return statements


def is_complete(raw: str) -> bool:
    """Return True when `raw` ends with a finished statement.

    The last statement must be closed by a top-level ``;``; whitespace and
    comments may follow it. Text with an open quote, block comment or
    ``BEGIN ... END`` body is incomplete.
    """
    statements, splitter = _split_tokens(raw)
    if not statements:
        return False
    if any(_unterminated(tokens) for tokens in statements):
        return False
    if splitter.consume_ws:
        return True
    # a trailing block comment after the ";" starts a statement of its own
    return len(statements) > 1 and all(_is_filler(token) for token in statements[-1])
