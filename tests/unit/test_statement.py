"""
Unit tests for statement parameter binding and wire serialization.
"""
import datetime

import pandas as pd
import pytest
from rqlitedb.exceptions import ParameterModeError, ValidationError
from rqlitedb.statement import Named, Positional, Statement, serialize_param


class TestPositionalBinding:

    def test_sparse_bind_pads_with_null(self):
        stmt = Statement('INSERT INTO t VALUES(?, ?, ?)')
        stmt.bind(0, 'a').bind(2, 'c')
        assert stmt.build() == ['INSERT INTO t VALUES(?, ?, ?)', 'a', None, 'c']

    def test_last_write_wins(self):
        stmt = Statement('SELECT ?')
        stmt.bind(0, 1).bind(0, 2)
        assert stmt.positional == [2]

    def test_append_and_bind_all(self):
        stmt = Statement('SELECT ?, ?')
        stmt.append(1).append(2)
        assert stmt.build() == ['SELECT ?, ?', 1, 2]
        stmt.bind_all(['x', 'y'])
        assert stmt.build() == ['SELECT ?, ?', 'x', 'y']

    def test_negative_index(self):
        with pytest.raises(ValidationError):
            Statement('SELECT ?').bind(-1, 1)

    def test_no_parameters(self):
        assert Statement('SELECT 1').build() == ['SELECT 1']


class TestNamedBinding:

    def test_named(self):
        stmt = Statement('INSERT INTO t VALUES(:id, :name)')
        stmt.bind_named('id', 1).bind_named('name', 'fiona')
        assert stmt.build() == ['INSERT INTO t VALUES(:id, :name)', {'id': 1, 'name': 'fiona'}]

    def test_bind_named_all(self):
        stmt = Statement('SELECT :a').bind_named_all({'a': 1})
        assert stmt.named == {'a': 1}
        assert stmt.positional == []


class TestModeSwitching:

    def test_positional_then_named(self):
        stmt = Statement('SELECT ?').bind(0, 1)
        with pytest.raises(ParameterModeError, match='Cannot mix positional and named'):
            stmt.bind_named('a', 1)

    def test_named_then_positional(self):
        stmt = Statement('SELECT :a').bind_named('a', 1)
        with pytest.raises(ParameterModeError):
            stmt.append(2)

    def test_clear_allows_switch(self):
        stmt = Statement('SELECT ?').bind(0, 1)
        stmt.clear()
        stmt.bind_named('a', 1)
        assert stmt.build() == ['SELECT ?', {'a': 1}]

    def test_empty_params_allow_either_mode(self):
        assert isinstance(Statement('SELECT :a', Named()).append(1).params, Positional)
        assert isinstance(Statement('SELECT ?', Positional()).bind_named('a', 1).params, Named)


class TestBuild:

    @pytest.mark.parametrize('sql', ['', '   '], ids=['empty', 'blank'])
    def test_empty_sql(self, sql):
        with pytest.raises(ValidationError):
            Statement(sql).build()

    def test_from_args_positional(self):
        assert Statement.from_args('SELECT ?, ?', 1, 'a').build() == ['SELECT ?, ?', 1, 'a']

    def test_from_args_mapping_binds_named(self):
        assert Statement.from_args('SELECT :a', {'a': 1}).build() == ['SELECT :a', {'a': 1}]

    def test_from_args_none(self):
        assert Statement.from_args('SELECT 1').build() == ['SELECT 1']


class TestSerializeParam:

    def test_value_dict(self, value_dict, wire_dict):
        for key, value in value_dict.items():
            assert serialize_param(value) == wire_dict[key], key

    @pytest.mark.parametrize(('value', 'expected'), [
        (pd.NA, None),
        (pd.NaT, None),
        (pd.Timestamp('2024-03-01 12:00:00'), '2024-03-01 12:00:00'),
        (bytearray(b'\x00\xff'), 'AP8='),
        (datetime.datetime(2024, 3, 1, 12, 0, 0, 500), '2024-03-01 12:00:00.000500'),
    ], ids=['pd_na', 'nat', 'pd_timestamp', 'bytearray', 'microseconds'])
    def test_special_values(self, value, expected):
        assert serialize_param(value) == expected

    @pytest.mark.parametrize('value', [float('inf'), float('-inf')], ids=['inf', 'neg_inf'])
    def test_infinity_rejected(self, value):
        with pytest.raises(ValidationError):
            serialize_param(value)
        with pytest.raises(ValidationError):
            Statement('SELECT ?').bind(0, value).build()


if __name__ == '__main__':
    __import__('pytest').main([__file__])
