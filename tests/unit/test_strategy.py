import pytest
import sqlalchemy as sa
from lockstep.strategy import PostgresStrategy, SQLiteStrategy
from lockstep.strategy import get_db_strategy, get_strategy
from lockstep.strategy import get_strategy_class
from lockstep.types import DecodeDescriptor, resolve_type


def test_registered_dialects():
    assert get_strategy_class('sqlite') is SQLiteStrategy
    assert isinstance(get_strategy('postgresql'), PostgresStrategy)
    assert get_strategy('sqlite') is get_strategy('sqlite')


def test_unknown_dialect():
    with pytest.raises(ValueError, match='Unsupported dialect'):
        get_strategy('oracle')
    with pytest.raises(ValueError, match=r"Available: \['postgresql', 'sqlite'\]"):
        get_strategy_class('oracle')


def test_strategy_for_engine(tmp_path):
    engine = sa.create_engine(f'sqlite:///{tmp_path / "x.db"}')
    assert isinstance(get_db_strategy(engine), SQLiteStrategy)
    engine.dispose()


def test_postgres_catalog_statements():
    strategy = get_strategy('postgresql')
    assert strategy.list_relations_sql() == (
        "SELECT table_name FROM information_schema.tables WHERE table_schema = 'public'")
    assert strategy.describe_relation_sql('domains') == (
        "SELECT column_name, data_type FROM information_schema.columns WHERE table_name = 'domains'")
    assert strategy.normalize_type('timestamp with time zone') == 'timestamp with time zone'


def test_describe_statement_escapes_quotes():
    strategy = get_strategy('postgresql')
    assert "table_name = 'o''brien'" in strategy.describe_relation_sql("o'brien")


def test_select_all_substitutes_name_verbatim():
    assert get_strategy('postgresql').select_all_sql('domains_lockstep') == 'SELECT * FROM domains_lockstep'


@pytest.mark.parametrize(('declared', 'expected'), [
    ('TEXT', DecodeDescriptor.TEXT),
    ('VARCHAR(20)', DecodeDescriptor.TEXT),
    ('INTEGER', DecodeDescriptor.INTEGER64),
    ('bigint', DecodeDescriptor.INTEGER64),
    ('BOOLEAN', DecodeDescriptor.BOOLEAN),
    ('DATETIME', DecodeDescriptor.TIMESTAMP),
    ('timestamptz', DecodeDescriptor.TIMESTAMP),
    ('REAL', DecodeDescriptor.FALLBACK_TEXT),
    ('', DecodeDescriptor.FALLBACK_TEXT),
])
def test_sqlite_declared_types(declared, expected):
    strategy = get_strategy('sqlite')
    assert resolve_type(strategy.normalize_type(declared)) is expected
