"""
Lockstep queries against PostgreSQL, using the information_schema catalog.
"""
import threading

import pytest
import sqlalchemy as sa
from lockstep.catalog import describe_relation, list_relations
from lockstep.exceptions import QueryError
from lockstep.query import QueryState
from lockstep.types import DecodeDescriptor

pytestmark = pytest.mark.postgres

domains_columns = {
    'name': DecodeDescriptor.TEXT,
    'txid': DecodeDescriptor.INTEGER64,
    'deleted': DecodeDescriptor.BOOLEAN,
}


def execute(server, sql):
    with server.engine.begin() as conn:
        conn.execute(sa.text(sql))


def test_list_relations(pg_server):
    assert list_relations(pg_server.engine) == ['domains', 'domains_lockstep', 'generated_series']


def test_describe_relation(pg_server):
    for table in ('domains', 'domains_lockstep'):
        types = describe_relation(pg_server.engine, table)
        for name, expected in domains_columns.items():
            assert types[name] is expected, f'{table}.{name}'
    assert describe_relation(pg_server.engine, 'domains')['created_at'] is DecodeDescriptor.TIMESTAMP


def test_query(pg_server):
    rows = list(pg_server.query('domains'))
    assert [(r['name'], r['deleted'], r['txid']) for r in rows] == [
        ('a.com', False, 0),
        ('b.com', False, 1),
        ('c.com', False, 2),
    ]
    assert rows[0]['created_at'].year == 2012
    assert rows[1]['created_at'] is None


def test_stream(pg_server, recording_sink):
    sink = recording_sink()
    pg_server.stream(sink, 'domains_lockstep')
    assert sink.writes == ['a.com', 'b.com', 'c.com']


def test_stream_after_dropping_column(pg_server, recording_sink):
    sink = recording_sink()
    pg_server.stream(sink, 'domains')
    assert sink.writes == ['a.com', 'b.com', 'c.com']

    execute(pg_server, 'ALTER TABLE domains DROP COLUMN created_at')

    sink = recording_sink()
    pg_server.stream(sink, 'domains')
    assert sink.writes == ['a.com', 'b.com', 'c.com']


def test_query_stop(pg_server):
    cancel = threading.Event()
    cancel.set()
    result_set = pg_server.query('generated_series', cancel)
    assert list(result_set.results) == []
    assert list(result_set.errors) == []
    assert result_set.state is QueryState.CANCELLED


def test_query_error(pg_server):
    pg_server.describe('generated_series')
    execute(pg_server, 'DROP VIEW IF EXISTS generated_series CASCADE')

    result_set = pg_server.query('generated_series')
    assert list(result_set.results) == []
    errors = list(result_set.errors)
    assert len(errors) == 1
    assert isinstance(errors[0], QueryError)
    assert 'does not exist' in str(errors[0])
