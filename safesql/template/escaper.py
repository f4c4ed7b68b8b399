"""Type-specific escaping rules for placeholder values.

Every function here is pure: it turns a Python value into a SQL fragment that
can be embedded in a statement for the given :class:`Dialect`. Nothing in this
module opens a connection.
"""

import math
from collections.abc import Mapping, Sequence, Set
from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation, localcontext
from enum import Enum
from typing import Any, Callable, Union

from pymysql.converters import escape_string as mysql_escape_string

from safesql.exceptions import (
    EmptyIdentifierError,
    EmptyPayloadError,
    PlaceholderTypeError,
)

NULL = 'NULL'


@dataclass(frozen=True)
class Raw:
    """Pre-built SQL fragment inserted without escaping.

    The caller is responsible for its safety, e.g. ``Raw('NOW()')``.
    """
    sql: str


@dataclass(frozen=True)
class Escaped:
    """Value that is always escaped as a quoted string literal."""
    value: Any


SqlValue = Union[Raw, Escaped, None, bool, int, float, Decimal, str, bytes, Any]


def _double_quotes(value: str) -> str:
    return value.replace("'", "''")


class Dialect(str, Enum):
    """SQL dialects the escaper knows how to quote for."""
    MYSQL = "mysql"
    SQLITE = "sqlite"
    SQLSERVER = "sqlserver"

    @property
    def identifier_quotes(self) -> tuple:
        if self is Dialect.SQLSERVER:
            return '[', ']'
        return '`', '`'

    @property
    def literal_escaper(self) -> Callable[[str], str]:
        if self is Dialect.MYSQL:
            return mysql_escape_string
        return _double_quotes


def escape_ident(value: Any, dialect: Dialect = Dialect.MYSQL) -> str:
    """Quote an identifier (``?n``), doubling any embedded closing quote.

    Raises:
        EmptyIdentifierError: If the name is empty or falsy.
    """
    if not value:
        raise EmptyIdentifierError(
            'Empty value for identifier (?n) placeholder', placeholder='?n'
        )
    opening, closing = dialect.identifier_quotes
    return opening + str(value).replace(closing, closing * 2) + closing


def escape_string(value: Any, dialect: Dialect = Dialect.MYSQL) -> str:
    """Quote a string literal (``?s``); ``None`` becomes unquoted ``NULL``."""
    if value is None:
        return NULL
    if isinstance(value, Raw):
        raise PlaceholderTypeError(
            'String (?s) placeholder does not accept Raw fragments, use ?p instead',
            placeholder='?s',
        )
    if isinstance(value, Escaped):
        value = value.value
        if value is None:
            return NULL
    if isinstance(value, bool):
        value = int(value)
    if isinstance(value, (bytes, bytearray)):
        value = bytes(value).decode('utf-8', errors='surrogateescape')
    return "'" + dialect.literal_escaper(str(value)) + "'"


def _not_finite(value: Any) -> PlaceholderTypeError:
    return PlaceholderTypeError(
        f"Integer (?i) placeholder expects a finite number, {value!r} given",
        placeholder='?i',
    )


def _to_decimal(value: Any) -> Decimal:
    if isinstance(value, bool):
        return Decimal(int(value))
    if isinstance(value, int):
        return Decimal(value)
    if isinstance(value, Decimal):
        if not value.is_finite():
            raise _not_finite(value)
        return value
    if isinstance(value, float):
        if not math.isfinite(value):
            raise _not_finite(value)
        return Decimal(repr(value))
    if isinstance(value, str):
        try:
            number = Decimal(value.strip())
        except InvalidOperation:
            number = None
        if number is not None and number.is_finite():
            return number
    raise PlaceholderTypeError(
        f"Integer (?i) placeholder expects numeric value, {type(value).__name__} given",
        placeholder='?i',
    )


def escape_int(value: Any, dialect: Dialect = Dialect.MYSQL) -> str:
    """Render canonical integer text (``?i``).

    Fractional values are rounded half up. Values written in exponent notation
    are emitted as string literals so large numbers keep their precision.

    Raises:
        PlaceholderTypeError: If the value is not numeric.
    """
    if value is None:
        return NULL
    if isinstance(value, Raw):
        raise PlaceholderTypeError(
            'Integer (?i) placeholder does not accept Raw fragments, use ?p instead',
            placeholder='?i',
        )
    if isinstance(value, int):
        return str(int(value))
    number = _to_decimal(value)
    text = repr(value) if isinstance(value, float) else str(value)
    if 'e' in text.lower():
        return escape_string(text.strip(), dialect)
    with localcontext() as ctx:
        ctx.prec = max(ctx.prec, len(number.as_tuple().digits) + 1)
        return str(number.quantize(Decimal(1), rounding=ROUND_HALF_UP))


def escape_param(value: Any, dialect: Dialect = Dialect.MYSQL) -> str:
    """Escape a single value according to its own type.

    Integers are emitted bare, ``Raw`` fragments verbatim and everything else as
    a quoted string.
    """
    if value is None:
        return NULL
    if isinstance(value, Raw):
        return value.sql
    if isinstance(value, int) and not isinstance(value, bool):
        return escape_int(value, dialect)
    return escape_string(value, dialect)


def _is_list_like(value: Any) -> bool:
    if isinstance(value, (str, bytes, bytearray, Mapping)):
        return False
    return isinstance(value, (Sequence, Set))


def create_in(data: Any, dialect: Dialect = Dialect.MYSQL) -> str:
    """Render a comma-joined list of literals (``?a``); an empty list is ``NULL``.

    Raises:
        PlaceholderTypeError: If ``data`` is not a sequence or set.
    """
    if not _is_list_like(data):
        raise PlaceholderTypeError(
            f"Value for IN (?a) placeholder should be a sequence, {type(data).__name__} given",
            placeholder='?a',
        )
    if not data:
        return NULL
    return ','.join(escape_param(value, dialect) for value in data)


def create_set(data: Any, dialect: Dialect = Dialect.MYSQL) -> str:
    """Render ``ident=value`` pairs for INSERT/UPDATE (``?u``), preserving order.

    Raises:
        PlaceholderTypeError: If ``data`` is not a mapping.
        EmptyPayloadError: If the mapping is empty.
    """
    if not isinstance(data, Mapping):
        raise PlaceholderTypeError(
            f"SET (?u) placeholder expects mapping, {type(data).__name__} given",
            placeholder='?u',
        )
    if not data:
        raise EmptyPayloadError('Empty mapping for SET (?u) placeholder', placeholder='?u')
    return ','.join(
        f"{escape_ident(key, dialect)}={escape_param(value, dialect)}"
        for key, value in data.items()
    )


def escape_raw(value: Any, dialect: Dialect = Dialect.MYSQL) -> str:
    """Insert a pre-built fragment verbatim (``?p``)."""
    if value is None:
        return ''
    if isinstance(value, Raw):
        return value.sql
    return str(value)
