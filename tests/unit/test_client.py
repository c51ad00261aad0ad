"""
Tests for the HTTP transport, using httpx.MockTransport handlers.
"""
import json

import httpx
import pytest
from rqlitedb.client import RqliteClient, to_wire
from rqlitedb.exceptions import ConnectionFailure, UpstreamError
from rqlitedb.options import RqliteOptions
from rqlitedb.statement import Statement


def _client(handler, **kw):
    options = RqliteOptions(baseurl='http://node.test:4001', **kw)
    return RqliteClient(options, transport=httpx.MockTransport(handler))


def _ok(results):
    return httpx.Response(200, json={'results': results, 'time': 0.001})


class TestToWire:

    def test_forms(self):
        assert to_wire('SELECT 1') == ['SELECT 1']
        assert to_wire(Statement('SELECT ?').bind(0, 1)) == ['SELECT ?', 1]
        assert to_wire(['SELECT ?', 2]) == ['SELECT ?', 2]


class TestExecute:

    def test_request_shape(self):
        seen = {}

        def handler(request):
            seen['path'] = request.url.path
            seen['params'] = dict(request.url.params)
            seen['body'] = json.loads(request.content)
            return _ok([{'last_insert_id': 1, 'rows_affected': 1}])

        with _client(handler) as client:
            results = client.execute([Statement.from_args('INSERT INTO t VALUES(?)', 'a')])

        assert seen['path'] == '/db/execute'
        assert seen['params'] == {'timeout': '5s', 'transaction': 'true'}
        assert seen['body'] == [['INSERT INTO t VALUES(?)', 'a']]
        assert results[0].rows_affected == 1
        assert client.calls == 1

    def test_transaction_override_and_queue(self):
        seen = {}

        def handler(request):
            seen['params'] = dict(request.url.params)
            return _ok([{}])

        with _client(handler, queue=True, timings=True) as client:
            client.execute(['DELETE FROM t'], transaction=False)

        assert seen['params'] == {'timeout': '5s', 'queue': 'true', 'wait': 'true', 'timings': 'true'}

    def test_errors_stay_on_results(self):
        def handler(request):
            return _ok([{'error': 'UNIQUE constraint failed: t.id'}])

        with _client(handler) as client:
            results = client.execute(['INSERT INTO t VALUES(1)'])
            assert results[0].error == 'UNIQUE constraint failed: t.id'
            with pytest.raises(UpstreamError, match='UNIQUE constraint failed'):
                client.execute_one('INSERT INTO t VALUES(1)')


class TestQuery:

    @pytest.mark.parametrize(('level', 'expected'), [
        ('linearizable', {'timeout': '5s', 'level': 'linearizable', 'linearizable_timeout': '5s'}),
        ('strong', {'timeout': '5s', 'level': 'strong'}),
        ('none', {'timeout': '5s', 'level': 'none', 'freshness': '5s'}),
    ], ids=['linearizable', 'strong', 'none'])
    def test_consistency_params(self, level, expected):
        seen = {}

        def handler(request):
            seen['path'] = request.url.path
            seen['params'] = dict(request.url.params)
            return _ok([{'columns': ['n'], 'types': ['integer'], 'values': [[1]]}])

        with _client(handler, level=level) as client:
            result = client.query_one('SELECT 1 AS n')

        assert seen['path'] == '/db/query'
        assert seen['params'] == expected
        assert result.values == [['1']]

    def test_named_parameters_sent_as_object(self):
        seen = {}

        def handler(request):
            seen['body'] = json.loads(request.content)
            return _ok([{'columns': [], 'types': [], 'values': []}])

        with _client(handler) as client:
            client.query([Statement.from_args('SELECT :id', {'id': 7})])

        assert seen['body'] == [['SELECT :id', {'id': 7}]]


class TestFailures:

    def test_non_200(self):
        def handler(request):
            return httpx.Response(401, text='unauthorized')

        with _client(handler) as client, pytest.raises(ConnectionFailure, match=r'\[401\] - unauthorized'):
            client.query(['SELECT 1'])

    def test_transport_error(self):
        def handler(request):
            raise httpx.ConnectError('connection refused', request=request)

        with _client(handler) as client, pytest.raises(ConnectionFailure, match='connection refused'):
            client.query(['SELECT 1'])

    def test_timeout(self):
        def handler(request):
            raise httpx.ReadTimeout('timed out', request=request)

        with _client(handler) as client, pytest.raises(ConnectionFailure, match='timed out after 5s'):
            client.execute(['DELETE FROM t'])

    def test_invalid_json(self):
        def handler(request):
            return httpx.Response(200, text='<html>')

        with _client(handler) as client, pytest.raises(ConnectionFailure, match='Invalid JSON'):
            client.query(['SELECT 1'])

    def test_failures_are_logged_and_counted(self, caplog):
        def handler(request):
            return httpx.Response(503, text='leader not found')

        with _client(handler) as client:
            with pytest.raises(ConnectionFailure):
                client.query(['SELECT 1'])
            assert client.calls == 1
        assert 'Error with query' in caplog.text

    def test_empty_results(self):
        def handler(request):
            return _ok([])

        with _client(handler) as client, pytest.raises(UpstreamError, match='no results'):
            client.query_one('SELECT 1')


class TestNodeEndpoints:

    def test_status_nodes_ready(self, node):
        with _client(node.handle) as client:
            assert 'store' in client.status()
            assert client.nodes()['1']['leader'] is True
            assert client.ready() is True

    def test_not_ready(self):
        def handler(request):
            return httpx.Response(503, text='[+]node ok\n[-]leader not ok')

        with _client(handler) as client:
            assert client.ready() is False

    def test_basic_auth(self):
        seen = {}

        def handler(request):
            seen['auth'] = request.headers.get('authorization')
            return httpx.Response(200, json={})

        with _client(handler, username='bob', password='secret') as client:
            client.status()

        assert seen['auth'].startswith('Basic ')


if __name__ == '__main__':
    __import__('pytest').main([__file__])
