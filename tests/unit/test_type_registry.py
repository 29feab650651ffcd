"""
Tests for the catalog type registry and decode slots.
"""
import datetime
import logging

import pytest
from lockstep.exceptions import TypeConversionError
from lockstep.types import DecodeDescriptor, extract, new_slot, resolve_type

typetests = [
    ('character', DecodeDescriptor.TEXT),
    ('character varying', DecodeDescriptor.TEXT),
    ('text', DecodeDescriptor.TEXT),
    ('smallint', DecodeDescriptor.INTEGER64),
    ('integer', DecodeDescriptor.INTEGER64),
    ('bigint', DecodeDescriptor.INTEGER64),
    ('serial', DecodeDescriptor.INTEGER64),
    ('bigserial', DecodeDescriptor.INTEGER64),
    ('boolean', DecodeDescriptor.BOOLEAN),
    ('time without time zone', DecodeDescriptor.TIMESTAMP),
    ('time with time zone', DecodeDescriptor.TIMESTAMP),
    ('timestamp without time zone', DecodeDescriptor.TIMESTAMP),
    ('timestamp with time zone', DecodeDescriptor.TIMESTAMP),
]


@pytest.mark.parametrize(('type_name', 'expected'), typetests)
def test_resolve_type(type_name, expected):
    assert resolve_type(type_name) is expected
    assert resolve_type(type_name) is resolve_type(type_name)


def test_resolve_unknown_type_falls_back_to_text(caplog):
    with caplog.at_level(logging.WARNING, logger='lockstep.types'):
        descriptor = resolve_type('tsvector')

    assert descriptor is DecodeDescriptor.FALLBACK_TEXT
    assert 'Unknown type: tsvector' in caplog.text


def test_resolve_type_is_case_sensitive_on_catalog_names():
    """Catalog names are reported lower-case; anything else is unknown."""
    assert resolve_type('TEXT') is DecodeDescriptor.FALLBACK_TEXT


def test_extract_unfilled_slot_returns_slot():
    slot = new_slot(DecodeDescriptor.INTEGER64)
    assert extract(slot) is slot
    assert extract(None) is None


@pytest.mark.parametrize(('descriptor', 'raw', 'expected'), [
    (DecodeDescriptor.TEXT, 'a.com', 'a.com'),
    (DecodeDescriptor.TEXT, b'a.com', 'a.com'),
    (DecodeDescriptor.FALLBACK_TEXT, 42, '42'),
    (DecodeDescriptor.INTEGER64, 7, 7),
    (DecodeDescriptor.INTEGER64, '7', 7),
    (DecodeDescriptor.BOOLEAN, False, False),
    (DecodeDescriptor.BOOLEAN, 1, True),
    (DecodeDescriptor.BOOLEAN, 'f', False),
    (DecodeDescriptor.BOOLEAN, 'true', True),
])
def test_fill_and_extract(descriptor, raw, expected):
    slot = new_slot(descriptor)
    slot.fill(raw)
    assert extract(slot) == expected
    assert type(extract(slot)) is type(expected)


@pytest.mark.parametrize(('raw', 'expected'), [
    ({'a': 1, 'b': [True, None]}, '{"a": 1, "b": [true, null]}'),
    (['x', 'y'], '["x", "y"]'),
    ([datetime.date(2020, 1, 2)], '["2020-01-02"]'),
    (b'\xff\x00', '\\xff00'),
    (memoryview(b'ab'), '\\x6162'),
    ('{1,2}', '{1,2}'),
])
def test_fallback_text_renders_driver_objects(raw, expected):
    """Values of unknown types always decode to text."""
    slot = new_slot(DecodeDescriptor.FALLBACK_TEXT)
    slot.fill(raw)
    assert extract(slot) == expected


def test_fill_timestamp():
    slot = new_slot(DecodeDescriptor.TIMESTAMP)

    slot.fill('2012-08-27 15:04:23-07:00')
    value = extract(slot)
    assert value == datetime.datetime(2012, 8, 27, 22, 4, 23, tzinfo=datetime.UTC)

    native = datetime.datetime(2020, 1, 1, 12, 0)
    slot.fill(native)
    assert extract(slot) is native


def test_fill_null_for_every_descriptor():
    for descriptor in DecodeDescriptor:
        slot = new_slot(descriptor)
        slot.fill(None)
        assert slot.filled
        assert extract(slot) is None


def test_slot_is_overwritten_on_refill():
    slot = new_slot(DecodeDescriptor.TEXT)
    slot.fill('a.com')
    slot.fill('b.com')
    assert extract(slot) == 'b.com'


@pytest.mark.parametrize(('descriptor', 'raw'), [
    (DecodeDescriptor.INTEGER64, 'oops'),
    (DecodeDescriptor.INTEGER64, 1.5),
    (DecodeDescriptor.BOOLEAN, 'maybe'),
    (DecodeDescriptor.BOOLEAN, 2),
    (DecodeDescriptor.TIMESTAMP, 'not a time'),
    (DecodeDescriptor.TIMESTAMP, 12),
])
def test_fill_rejects_undecodable_values(descriptor, raw):
    slot = new_slot(descriptor)
    with pytest.raises(TypeConversionError, match=descriptor.value):
        slot.fill(raw)
    assert not slot.filled
