"""Mapping between Python values and the engine's storage classes.

Forward direction (binding)::

    None                      -> NULL
    bool                      -> INTEGER (0/1)
    int                       -> INTEGER (signed 64-bit)
    float                     -> FLOAT
    str                       -> TEXT
    date / time / datetime    -> TEXT (isoformat)
    bytes-like                -> BLOB
    uuid.UUID                 -> BLOB (16 bytes)

Reverse direction (rows): NULL -> None, FLOAT -> float, TEXT -> str,
BLOB -> bytes. INTEGER values come back as ``int`` while they fit in
``MAX_SAFE_INTEGER``; larger magnitudes are returned as ``float`` (and lose
precision) unless wide-integer mode is on, in which case they stay ``int``.
Booleans and temporal values are not recovered on the way back.
"""

import collections
import datetime
import uuid

from .errors import UnsupportedTypeError
from .native import SQLITE_BLOB, SQLITE_FLOAT, SQLITE_INTEGER, SQLITE_NULL, SQLITE_TEXT

INT64_MIN = -(2 ** 63)
INT64_MAX = 2 ** 63 - 1

# Largest integer a double represents exactly.
MAX_SAFE_INTEGER = 2 ** 53 - 1

StorageValue = collections.namedtuple("StorageValue", ["kind", "value"])

NULL = StorageValue(SQLITE_NULL, None)


def to_storage(value):
    if value is None:
        return NULL
    if isinstance(value, bool):
        return StorageValue(SQLITE_INTEGER, 1 if value else 0)
    if isinstance(value, int):
        if value < INT64_MIN or value > INT64_MAX:
            raise UnsupportedTypeError(f"Integer {value} does not fit in a signed 64-bit column")
        return StorageValue(SQLITE_INTEGER, int(value))
    if isinstance(value, float):
        return StorageValue(SQLITE_FLOAT, value)
    if isinstance(value, str):
        return StorageValue(SQLITE_TEXT, value)
    # datetime is a date subclass; both serialize through isoformat.
    if isinstance(value, (datetime.date, datetime.time)):
        return StorageValue(SQLITE_TEXT, value.isoformat())
    if isinstance(value, (bytes, bytearray, memoryview)):
        return StorageValue(SQLITE_BLOB, bytes(value))
    if isinstance(value, uuid.UUID):
        return StorageValue(SQLITE_BLOB, value.bytes)
    raise UnsupportedTypeError(f"Unsupported parameter type: {type(value).__name__}")


def from_storage(storage_value, wide_integers=False):
    kind, value = storage_value
    if kind == SQLITE_NULL:
        return None
    if kind == SQLITE_INTEGER:
        if wide_integers or -MAX_SAFE_INTEGER <= value <= MAX_SAFE_INTEGER:
            return int(value)
        return float(value)
    if kind == SQLITE_FLOAT:
        return float(value)
    if kind == SQLITE_TEXT:
        return str(value)
    if kind == SQLITE_BLOB:
        return bytes(value)
    raise UnsupportedTypeError(f"Unknown storage class {kind!r}")
