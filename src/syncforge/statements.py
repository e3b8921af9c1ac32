"""
SQL statement building blocks shared by the schema and data comparators.

Provides:
- the supported dialect tags and their identifier quoting
- value escaping for generated INSERT/UPDATE/DELETE statements
- text rendering used for row equality and primary-key lookup keys
- default-value classification rules used when restating column definitions
"""

import math
from decimal import Decimal
from enum import Enum
from typing import Any, Callable, Dict, NamedTuple, Optional, Tuple, Union

from .exceptions import UnsupportedDialectError


class Dialect(str, Enum):
    """Supported database dialects."""

    MYSQL = "mysql"
    POSTGRESQL = "postgresql"
    SQLITE = "sqlite"
    SQLSERVER = "sqlserver"


DEFAULT_DIALECT = Dialect.MYSQL

# (opening, closing) identifier quote characters per dialect
IDENTIFIER_QUOTES: Dict[Dialect, Tuple[str, str]] = {
    Dialect.MYSQL: ("`", "`"),
    Dialect.POSTGRESQL: ('"', '"'),
    Dialect.SQLITE: ('"', '"'),
    Dialect.SQLSERVER: ("[", "]"),
}

NULL_LITERAL = "NULL"


def resolve_dialect(value: Union[Dialect, str, None]) -> Dialect:
    """
    Resolve a dialect tag to a :class:`Dialect`.

    An empty or missing tag means MySQL. Unknown tags raise
    :class:`UnsupportedDialectError`.
    """
    if value is None or value == "":
        return DEFAULT_DIALECT
    if isinstance(value, Dialect):
        return value
    try:
        return Dialect(str(value).lower())
    except ValueError:
        raise UnsupportedDialectError(value) from None


def quote_identifier(name: str, dialect: Union[Dialect, str, None] = None) -> str:
    """Quote a table, column or index name for the given dialect."""
    opening, closing = IDENTIFIER_QUOTES.get(
        dialect or DEFAULT_DIALECT, IDENTIFIER_QUOTES[DEFAULT_DIALECT]
    )
    return f"{opening}{name.replace(closing, closing * 2)}{closing}"


def render_text(value: Any) -> str:
    """
    Render a row value as text.

    This is the form used to compare rows and to build composite
    primary-key strings, so values of different Python types that print
    the same are treated as the same value.
    """
    if value is None:
        return NULL_LITERAL
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (bytes, bytearray, memoryview)):
        return bytes(value).decode("utf-8", errors="replace")
    if isinstance(value, float):
        if math.isfinite(value) and value.is_integer():
            return str(int(value))
        return repr(value)
    return str(value)


def is_numeric_value(value: Any) -> bool:
    """Check if a value is emitted unquoted in generated statements."""
    if isinstance(value, bool):
        return False
    if isinstance(value, float):
        return math.isfinite(value)
    if isinstance(value, Decimal):
        return value.is_finite()
    return isinstance(value, int)


def escape_value(value: Any) -> str:
    """
    Render a value as a SQL literal.

    NULL becomes the NULL keyword, booleans become 1/0, finite numbers are
    emitted as-is. Everything else, NaN and infinities included, is quoted
    with embedded quotes doubled.
    """
    if value is None:
        return NULL_LITERAL
    if isinstance(value, bool):
        return "1" if value else "0"
    if is_numeric_value(value):
        return render_text(value)
    text = render_text(value).replace("'", "''")
    return f"'{text}'"


def unescape_literal(literal: str) -> Optional[str]:
    """Turn a literal produced by :func:`escape_value` back into text."""
    if literal == NULL_LITERAL:
        return None
    if len(literal) >= 2 and literal.startswith("'") and literal.endswith("'"):
        return literal[1:-1].replace("''", "'")
    return literal


# ============================================================================
# Default-value classification
# ============================================================================

DEFAULT_KEYWORDS = frozenset(
    {
        "NULL",
        "CURRENT_TIMESTAMP",
        "CURRENT_DATE",
        "CURRENT_TIME",
        "NOW()",
        "TRUE",
        "FALSE",
    }
)


def is_numeric_default(value: str) -> bool:
    """Optional leading minus, then only digits and decimal points."""
    if not value:
        return False
    body = value[1:] if value.startswith("-") else value
    return all(ch in "0123456789." for ch in body)


def is_keyword_default(value: str) -> bool:
    return value.upper() in DEFAULT_KEYWORDS


def is_expression_default(value: str) -> bool:
    """Function calls such as ``uuid()`` and parenthesised expressions."""
    return value.endswith("()") or value.startswith("(")


def _unquoted(value: str) -> str:
    return value


def _quoted(value: str) -> str:
    return f"'{value}'"


class DefaultRule(NamedTuple):
    """A predicate and the renderer used when it matches."""

    name: str
    matches: Callable[[str], bool]
    render: Callable[[str], str]


DEFAULT_VALUE_RULES: Tuple[DefaultRule, ...] = (
    DefaultRule("numeric", is_numeric_default, _unquoted),
    DefaultRule("keyword", is_keyword_default, _unquoted),
    DefaultRule("expression", is_expression_default, _unquoted),
    DefaultRule("string", lambda value: True, _quoted),
)


def classify_default(value: str) -> DefaultRule:
    """Return the first rule matching a default value."""
    for rule in DEFAULT_VALUE_RULES:
        if rule.matches(value):
            return rule
    # the last rule always matches
    return DEFAULT_VALUE_RULES[-1]


def render_default(value: str) -> str:
    """Render a column default for a DEFAULT clause."""
    return classify_default(value).render(value)
