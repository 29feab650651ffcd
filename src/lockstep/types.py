"""
Type registry for catalog-reported column types.

Maps the type names reported by the metadata catalog to a closed set of
decode descriptors, and provides the decode slots the streaming executor
fills for every fetched row:

1. `resolve_type` turns a catalog type name into a `DecodeDescriptor`
2. `new_slot` allocates a `DecodeSlot` for a descriptor
3. `DecodeSlot.fill` converts a raw driver value into the descriptor's target
4. `extract` returns the plain value held by a filled slot
"""
import datetime
import enum
import json
import logging
from collections.abc import Callable
from typing import Any

import dateutil.parser
from lockstep.exceptions import TypeConversionError

logger = logging.getLogger(__name__)

__all__ = [
    'DecodeDescriptor',
    'DecodeSlot',
    'resolve_type',
    'new_slot',
    'extract',
    'catalog_types',
]


class DecodeDescriptor(enum.Enum):
    """How to materialize one column value.
    """
    TEXT = 'text'
    INTEGER64 = 'integer64'
    BOOLEAN = 'boolean'
    TIMESTAMP = 'timestamp'
    FALLBACK_TEXT = 'fallback_text'


catalog_types: dict[str, DecodeDescriptor] = {
    'character': DecodeDescriptor.TEXT,
    'character varying': DecodeDescriptor.TEXT,
    'text': DecodeDescriptor.TEXT,
    'smallint': DecodeDescriptor.INTEGER64,
    'integer': DecodeDescriptor.INTEGER64,
    'bigint': DecodeDescriptor.INTEGER64,
    'serial': DecodeDescriptor.INTEGER64,
    'bigserial': DecodeDescriptor.INTEGER64,
    'boolean': DecodeDescriptor.BOOLEAN,
    'time without time zone': DecodeDescriptor.TIMESTAMP,
    'time with time zone': DecodeDescriptor.TIMESTAMP,
    'timestamp without time zone': DecodeDescriptor.TIMESTAMP,
    'timestamp with time zone': DecodeDescriptor.TIMESTAMP,
    }


def resolve_type(catalog_type_name: str) -> DecodeDescriptor:
    """Map a catalog-reported type name to a decode descriptor.

    Never raises: unknown type names are logged and decoded as text, so a
    schema load cannot abort on an unrecognized type.
    """
    descriptor = catalog_types.get(catalog_type_name)
    if descriptor is None:
        logger.warning(f'Unknown type: {catalog_type_name}')
        return DecodeDescriptor.FALLBACK_TEXT
    return descriptor


_TRUE_STRINGS = {'t', 'true', 'y', 'yes', 'on', '1'}
_FALSE_STRINGS = {'f', 'false', 'n', 'no', 'off', '0'}


def _decode_text(value: Any) -> str:
    if isinstance(value, str):
        return value
    if isinstance(value, bytes | bytearray | memoryview):
        return bytes(value).decode()
    return str(value)


def _decode_fallback(value: Any) -> str:
    if isinstance(value, str):
        return value
    if isinstance(value, bytes | bytearray | memoryview):
        # bytea hex output format
        return '\\x' + bytes(value).hex()
    if isinstance(value, dict | list | tuple):
        return json.dumps(value, default=str)
    return str(value)


def _decode_integer(value: Any) -> int:
    if isinstance(value, int):
        return int(value)
    if isinstance(value, str | bytes):
        return int(value)
    raise ValueError(f'cannot decode {type(value).__name__} as integer')


def _decode_boolean(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, int) and value in {0, 1}:
        return bool(value)
    if isinstance(value, str):
        lowered = value.strip().lower()
        if lowered in _TRUE_STRINGS:
            return True
        if lowered in _FALSE_STRINGS:
            return False
    raise ValueError(f'cannot decode {value!r} as boolean')


def _decode_timestamp(value: Any) -> datetime.datetime | datetime.time | datetime.date:
    if isinstance(value, datetime.datetime | datetime.time | datetime.date):
        return value
    if isinstance(value, bytes):
        value = value.decode()
    if isinstance(value, str):
        try:
            return dateutil.parser.isoparse(value)
        except ValueError:
            return dateutil.parser.parse(value)
    raise ValueError(f'cannot decode {type(value).__name__} as timestamp')


_decoders: dict[DecodeDescriptor, Callable[[Any], Any]] = {
    DecodeDescriptor.TEXT: _decode_text,
    DecodeDescriptor.INTEGER64: _decode_integer,
    DecodeDescriptor.BOOLEAN: _decode_boolean,
    DecodeDescriptor.TIMESTAMP: _decode_timestamp,
    DecodeDescriptor.FALLBACK_TEXT: _decode_fallback,
    }


class DecodeSlot:
    """Typed holder for one column of the row currently being decoded.

    Slots are allocated once per streaming query and overwritten on every
    fetch. NULL is stored as None for every descriptor.
    """

    __slots__ = ('descriptor', 'value', 'filled')

    def __init__(self, descriptor: DecodeDescriptor) -> None:
        self.descriptor = descriptor
        self.value: Any = None
        self.filled = False

    def fill(self, raw: Any) -> None:
        """Decode a raw driver value into this slot.

        Raises TypeConversionError when the value cannot be decoded.
        """
        if raw is None:
            self.value = None
        else:
            try:
                self.value = _decoders[self.descriptor](raw)
            except (ValueError, TypeError, OverflowError) as err:
                self.filled = False
                raise TypeConversionError(
                    f'cannot decode {raw!r} as {self.descriptor.value}: {err}') from err
        self.filled = True

    def __repr__(self) -> str:
        return f'DecodeSlot({self.descriptor.name}, {self.value!r})'


def new_slot(descriptor: DecodeDescriptor) -> DecodeSlot:
    """Allocate an empty slot for a descriptor.
    """
    return DecodeSlot(descriptor)


def extract(slot: DecodeSlot | None) -> Any:
    """Return the plain value of a filled slot.

    A slot that was never filled (or no slot at all) is returned unchanged.
    """
    if slot is None or not slot.filled:
        return slot
    return slot.value
