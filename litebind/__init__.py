"""SQLite bindings over the engine's C interface.

    >>> import litebind
    >>> db = litebind.Database()
    >>> db.exec("CREATE TABLE foo (bar TEXT); INSERT INTO foo VALUES ('baz')")
    1
    >>> db.prepare("SELECT * FROM foo WHERE bar = ?").all("baz")
    [{'bar': 'baz'}]
"""

from .coercion import MAX_SAFE_INTEGER, StorageValue, from_storage, to_storage
from .connection import Database, open_flags
from .dbapi import connect
from .errors import (
    Error, Warning, InterfaceError, DatabaseError, InternalError, OperationalError,
    ProgrammingError, IntegrityError, DataError, NotSupportedError,
    ConfigError, StateError, BindError, UnsupportedTypeError,
    EngineError, SQLSyntaxError, ConstraintError, BusyError, ReadOnlyError,
    EngineDataError, CorruptError, MisuseError,
)
from .native import library_version
from .params import Named, Positional, parameter_set
from .statement import RowCursor, Statement
from .transaction import Transaction, run_transaction

__version__ = "0.3.0"

__all__ = [
    "Database", "Statement", "RowCursor", "Transaction", "connect", "open_flags",
    "run_transaction", "to_storage", "from_storage", "StorageValue", "MAX_SAFE_INTEGER",
    "Positional", "Named", "parameter_set", "library_version",
    "Error", "Warning", "InterfaceError", "DatabaseError", "InternalError",
    "OperationalError", "ProgrammingError", "IntegrityError", "DataError",
    "NotSupportedError", "ConfigError", "StateError", "BindError",
    "UnsupportedTypeError", "EngineError", "SQLSyntaxError", "ConstraintError",
    "BusyError", "ReadOnlyError", "EngineDataError", "CorruptError", "MisuseError",
]
