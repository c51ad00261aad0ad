"""
Unit tests for decoded result payloads and the soft error policy.
"""
import pytest
from rqlitedb.exceptions import UpstreamError, ValidationError
from rqlitedb.result import WireResponse, WireResult, check_result, wire_text
from rqlitedb.types import TypeTag


@pytest.fixture
def payload():
    return {
        'results': [
            {
                'columns': ['id', 'name', 'active', 'score'],
                'types': ['integer', 'text', 'boolean', 'real'],
                'values': [[1, 'fiona', True, 9.5], [2, None, False, 7.0]],
                'time': 0.0001,
            },
            {'last_insert_id': 3, 'rows_affected': 1},
        ],
        'time': 0.002,
    }


class TestWireText:

    @pytest.mark.parametrize(('value', 'expected'), [
        (None, None),
        (True, 'true'),
        (False, 'false'),
        (42, '42'),
        (7.0, '7.0'),
        ('abc', 'abc'),
    ], ids=['none', 'true', 'false', 'int', 'float', 'str'])
    def test_wire_text(self, value, expected):
        assert wire_text(value) == expected


class TestWireResponse:

    def test_from_json(self, payload):
        response = WireResponse.from_json(payload)
        assert len(response.results) == 2
        assert response.time == 0.002
        first = response.first
        assert first.columns == ['id', 'name', 'active', 'score']
        assert first.values == [['1', 'fiona', 'true', '9.5'], ['2', None, 'false', '7.0']]
        assert response.results[1].rows_affected == 1
        assert response.results[1].last_insert_id == 3

    def test_top_level_error(self):
        response = WireResponse.from_json({'error': 'unauthorized'})
        assert response.first.error == 'unauthorized'

    def test_empty(self):
        with pytest.raises(UpstreamError):
            WireResponse.from_json({'results': []}).first

    def test_missing_types_padded(self):
        result = WireResult.from_json({'columns': ['a', 'b'], 'values': [[1, 2]]})
        assert result.types == ['', '']
        assert result.tag(0) == TypeTag.NULL


class TestWireResult:

    def test_index_of(self, payload):
        result = WireResult.from_json(payload['results'][0])
        assert result.index_of('NAME') == 1
        assert result.index_of('missing') == -1

    def test_get(self, payload):
        result = WireResult.from_json(payload['results'][0])
        assert result.get('score', 1) == '7.0'
        assert result.get(1, 1) is None
        with pytest.raises(ValidationError):
            result.get('missing', 0)

    def test_layout_and_add_row(self):
        result = WireResult.with_layout([('TABLE_CAT', TypeTag.VARCHAR), ('KEY_SEQ', TypeTag.INTEGER)])
        result.add_row('main', 1)
        assert result.values == [['main', '1']]
        assert result.tag(1) == TypeTag.INTEGER
        with pytest.raises(ValidationError):
            result.add_row('main')

    def test_truncate(self):
        result = WireResult(columns=['a'], types=['integer'], values=[['1'], ['2'], ['3']])
        result.truncate(0)
        assert result.row_count == 3
        result.truncate(2)
        assert result.values == [['1'], ['2']]

    def test_format(self, payload):
        text = WireResult.from_json(payload['results'][0]).format()
        lines = text.splitlines()
        assert lines[0].split(' | ')[0].strip() == 'id'
        assert set(lines[1]) <= {'-', '+'}
        assert 'NULL' in lines[3]

    def test_column_info(self, payload):
        columns = WireResult.from_json(payload['results'][0]).column_info()
        assert [c.type_code for c in columns] == [TypeTag.INTEGER, TypeTag.VARCHAR, TypeTag.BOOLEAN, TypeTag.DOUBLE]


class TestCheckResult:

    def test_hard_error_raises_unmodified(self):
        result = WireResult.from_json({'error': 'near "SELEC": syntax error'})
        with pytest.raises(UpstreamError) as exc_info:
            check_result(result, 'SELEC 1')
        assert str(exc_info.value) == 'near "SELEC": syntax error'
        assert exc_info.value.message == 'near "SELEC": syntax error'
        assert exc_info.value.statement == 'SELEC 1'

    def test_missing_table_is_empty(self, caplog):
        result = WireResult.from_json({'error': 'no such table: ghosts'})
        assert not result.is_error
        checked = check_result(result)
        assert checked.error is None
        assert checked.row_count == 0
        assert 'no such table' in caplog.text

    def test_clean_result_passes(self, payload):
        result = WireResult.from_json(payload['results'][0])
        assert check_result(result) is result


if __name__ == '__main__':
    __import__('pytest').main([__file__])
