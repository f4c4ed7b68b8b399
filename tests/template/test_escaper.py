"""Tests for placeholder escaping rules."""

from decimal import Decimal

import pytest

from safesql.exceptions import EmptyIdentifierError, EmptyPayloadError, PlaceholderTypeError
from safesql.template.escaper import (
    Dialect,
    Escaped,
    Raw,
    create_in,
    create_set,
    escape_ident,
    escape_int,
    escape_param,
    escape_string,
)


def unquote_ident(quoted: str) -> str:
    assert quoted.startswith('`') and quoted.endswith('`')
    return quoted[1:-1].replace('``', '`')


class TestEscapeIdent:
    """Identifier (?n) escaping."""

    def test_plain_identifier(self) -> None:
        assert escape_ident('users') == '`users`'

    @pytest.mark.parametrize('name', ['we`ird', '`', 'a``b', 'x`; DROP TABLE t; --'])
    def test_quote_character_round_trips(self, name: str) -> None:
        quoted = escape_ident(name)
        inner = quoted[1:-1]
        # every backtick inside the quotes comes in pairs
        assert inner.replace('``', '').count('`') == 0
        assert unquote_ident(quoted) == name

    def test_sqlserver_uses_brackets(self) -> None:
        assert escape_ident('a]b', Dialect.SQLSERVER) == '[a]]b]'

    @pytest.mark.parametrize('value', ['', None, 0])
    def test_empty_identifier_fails(self, value) -> None:
        with pytest.raises(EmptyIdentifierError):
            escape_ident(value)


class TestEscapeString:
    """String (?s) escaping."""

    def test_none_is_unquoted_null(self) -> None:
        assert escape_string(None) == 'NULL'

    def test_mysql_backslash_escaping(self) -> None:
        assert escape_string("O'Reilly") == "'O\\'Reilly'"
        assert escape_string('a\\b') == "'a\\\\b'"
        assert escape_string('line\nbreak') == "'line\\nbreak'"

    def test_sqlite_doubles_quotes(self) -> None:
        assert escape_string("O'Reilly", Dialect.SQLITE) == "'O''Reilly'"
        assert escape_string('a\\b', Dialect.SQLITE) == "'a\\b'"

    def test_scalars_are_quoted(self) -> None:
        assert escape_string(5) == "'5'"
        assert escape_string(1.5) == "'1.5'"
        assert escape_string(True) == "'1'"
        assert escape_string(b'bytes') == "'bytes'"

    def test_escaped_wrapper(self) -> None:
        assert escape_string(Escaped(42)) == "'42'"
        assert escape_string(Escaped(None)) == 'NULL'

    def test_raw_is_rejected(self) -> None:
        with pytest.raises(PlaceholderTypeError):
            escape_string(Raw('NOW()'))


class TestEscapeInt:
    """Integer (?i) escaping."""

    def test_none_is_null(self) -> None:
        assert escape_int(None) == 'NULL'

    def test_whole_float(self) -> None:
        assert escape_int(3.0) == '3'

    @pytest.mark.parametrize('value, expected', [
        (42, '42'),
        (-7, '-7'),
        ('42', '42'),
        (' 12 ', '12'),
        (2.5, '3'),
        (Decimal('7.49'), '7'),
        ('3.5', '4'),
        (True, '1'),
    ])
    def test_canonical_integer_text(self, value, expected: str) -> None:
        assert escape_int(value) == expected

    def test_exponent_notation_falls_back_to_string(self) -> None:
        assert escape_int(1e20) == "'1e+20'"
        assert escape_int('1.5E+30') == "'1.5E+30'"

    @pytest.mark.parametrize('value', [
        'abc', '', float('nan'), float('inf'), 'nan', [1], object(),
        Decimal('NaN'), Decimal('Infinity'), Decimal('-Infinity'), Decimal('sNaN'),
    ])
    def test_non_numeric_fails(self, value) -> None:
        with pytest.raises(PlaceholderTypeError):
            escape_int(value)

    def test_non_numeric_error_is_a_type_error(self) -> None:
        with pytest.raises(TypeError):
            escape_int('ten')


class TestCreateIn:
    """Array-as-list (?a) escaping."""

    def test_empty_sequence_is_null(self) -> None:
        assert create_in([]) == 'NULL'

    def test_mixed_values(self) -> None:
        assert create_in([1, 'a']) == "1,'a'"

    def test_types_are_escaped_individually(self) -> None:
        assert create_in((1, None, 1.5, Raw('NOW()'))) == "1,NULL,'1.5',NOW()"

    def test_sets_are_accepted(self) -> None:
        assert create_in({7}) == '7'

    @pytest.mark.parametrize('value', ['abc', b'abc', 5, None, {'a': 1}])
    def test_non_sequence_fails(self, value) -> None:
        with pytest.raises(PlaceholderTypeError):
            create_in(value)


class TestCreateSet:
    """Set-assignment (?u) escaping."""

    def test_empty_mapping_fails(self) -> None:
        with pytest.raises(EmptyPayloadError):
            create_set({})

    def test_order_and_types_preserved(self) -> None:
        assert create_set({'id': 5, 'name': 'x'}) == "`id`=5,`name`='x'"

    def test_raw_values_pass_through(self) -> None:
        assert create_set({'created': Raw('NOW()'), 'note': None}) == '`created`=NOW(),`note`=NULL'

    def test_escaped_values_are_quoted(self) -> None:
        assert create_set({'code': Escaped(7)}) == "`code`='7'"

    def test_non_mapping_fails(self) -> None:
        with pytest.raises(PlaceholderTypeError):
            create_set([('id', 5)])

    def test_empty_key_fails(self) -> None:
        with pytest.raises(EmptyIdentifierError):
            create_set({'': 1})


def test_escape_param_dispatch() -> None:
    assert escape_param(None) == 'NULL'
    assert escape_param(10) == '10'
    assert escape_param('10') == "'10'"
    assert escape_param(False) == "'0'"
    assert escape_param(Raw('DEFAULT')) == 'DEFAULT'
