"""DB-API 2.0 (PEP 249) adapter over :class:`litebind.Database`.

Accepts qmark (``?``) placeholders with a sequence, or named (``:name``)
placeholders with a mapping. Like the stdlib ``sqlite3`` module in its
legacy mode, a transaction is opened implicitly before the first
INSERT/UPDATE/DELETE/REPLACE and ended by ``commit()``/``rollback()``.
"""

import collections.abc
import datetime
import logging
import re
import time
import weakref

from . import native
from .connection import Database
from .errors import (
    Error, Warning, InterfaceError, DatabaseError, InternalError, OperationalError,
    ProgrammingError, IntegrityError, DataError, NotSupportedError,
)

logger = logging.getLogger(__name__)

# DB-API 2.0 Globals
apilevel = "2.0"
threadsafety = 1  # Threads may share the module, but not connections
paramstyle = "qmark"


def __getattr__(name):
    # Resolved lazily so importing the module does not load the native library.
    if name == "sqlite_version":
        return native.library_version()
    if name == "sqlite_version_info":
        return native.library_version_info()
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")


# Types
Date = datetime.date
Time = datetime.time
Timestamp = datetime.datetime
def DateFromTicks(ticks): return Date(*time.localtime(ticks)[:3])
def TimeFromTicks(ticks): return Time(*time.localtime(ticks)[3:6])
def TimestampFromTicks(ticks): return Timestamp(*time.localtime(ticks)[:6])
def Binary(string): return bytes(string)
STRING = str
BINARY = bytes
NUMBER = float
DATETIME = datetime.datetime
ROWID = int

_IMPLICIT_BEGIN_RE = re.compile(r"^\s*(INSERT|UPDATE|DELETE|REPLACE)\b", re.IGNORECASE)


class Cursor:
    def __init__(self, connection):
        self._connection = connection
        self._stmt = None
        self._operation = None
        self._rows = None
        self._pending = None
        self._executed = False
        self.description = None
        self.rowcount = -1
        self.lastrowid = None
        self.arraysize = 1
        self._closed = False

    @property
    def connection(self):
        return self._connection

    def _check(self):
        if self._closed:
            raise ProgrammingError("Cursor is closed")
        self._connection._check()

    def _discard_rows(self):
        self._pending = None
        if self._rows is not None:
            close = getattr(self._rows, "close", None)
            if close is not None:
                close()
            self._rows = None

    def _release_statement(self):
        if self._stmt is not None and not self._stmt.finalized:
            self._stmt.finalize()
        self._stmt = None
        self._operation = None

    def close(self):
        if self._closed:
            return
        self._discard_rows()
        self._release_statement()
        self._closed = True

    def execute(self, operation, parameters=None):
        self._check()
        db = self._connection._database

        # New execute invalidates any pending fetch.
        self._discard_rows()
        self.description = None
        self.rowcount = -1

        if self._connection._implicit_begin and db.autocommit and _IMPLICIT_BEGIN_RE.match(operation):
            db._run_control("BEGIN")

        # Keep the compiled statement while the same SQL is executed repeatedly.
        if self._stmt is None or self._stmt.finalized or self._operation != operation:
            self._release_statement()
            self._stmt = db.prepare(operation)
            self._operation = operation
        stmt = self._stmt

        if parameters is None:
            args = ()
        elif isinstance(parameters, collections.abc.Mapping):
            args = (parameters,)
        else:
            args = (tuple(parameters),)

        if stmt.column_names:
            before = db.total_changes
            rows = stmt.iterate(*args, shape="tuple")
            if stmt.readonly:
                # Step once now: errors surface from execute() and the column
                # list reflects the plan as the engine compiled it for this run.
                self._pending = next(rows, None)
            else:
                # Writes with RETURNING must happen now, not on first fetch.
                rows = iter(list(rows))
                self.rowcount = db.changes if db.total_changes != before else 0
            self._rows = rows
            self.description = tuple(
                (name, None, None, None, None, None, None) for name in stmt.column_names
            )
        else:
            self.rowcount = stmt.run(*args)
        self.lastrowid = db.last_insert_rowid
        self._executed = True
        return self

    def executemany(self, operation, seq_of_parameters):
        total = 0
        for params in seq_of_parameters:
            self.execute(operation, params)
            if self.rowcount > 0:
                total += self.rowcount
        self.rowcount = total
        return self

    def fetchone(self):
        self._check()
        if not self._executed:
            raise ProgrammingError("No statement")
        if self._pending is not None:
            row, self._pending = self._pending, None
            return row
        if self._rows is None:
            return None
        try:
            return next(self._rows)
        except StopIteration:
            self._rows = None
            return None

    def fetchmany(self, size=None):
        if size is None:
            size = self.arraysize
        rows = []
        for _ in range(size):
            r = self.fetchone()
            if r is None:
                break
            rows.append(r)
        return rows

    def fetchall(self):
        rows = []
        while True:
            r = self.fetchone()
            if r is None:
                break
            rows.append(r)
        return rows

    def setinputsizes(self, sizes):
        pass

    def setoutputsize(self, size, column=None):
        pass

    def __iter__(self):
        return self

    def __next__(self):
        r = self.fetchone()
        if r is None:
            raise StopIteration
        return r

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()


class Connection:
    Error = Error
    Warning = Warning
    InterfaceError = InterfaceError
    DatabaseError = DatabaseError
    InternalError = InternalError
    OperationalError = OperationalError
    ProgrammingError = ProgrammingError
    IntegrityError = IntegrityError
    DataError = DataError
    NotSupportedError = NotSupportedError

    def __init__(self, database, autocommit=False):
        self._database = database
        self._implicit_begin = not autocommit
        self._cursors = weakref.WeakSet()

    @property
    def database(self):
        return self._database

    @property
    def in_transaction(self):
        self._check()
        return self._database.in_transaction

    def _check(self):
        if self._database.closed:
            raise ProgrammingError("Connection closed")

    def cursor(self):
        self._check()
        c = Cursor(self)
        self._cursors.add(c)
        return c

    def execute(self, operation, parameters=None):
        # Convenience method
        return self.cursor().execute(operation, parameters)

    def executemany(self, operation, seq_of_parameters):
        return self.cursor().executemany(operation, seq_of_parameters)

    def _end_transaction(self, sql):
        self._check()
        if self._database.transaction_depth:
            raise ProgrammingError(f"Cannot {sql.lower()} inside a transaction() block")
        if self._database.in_transaction:
            self._database._run_control(sql)

    def commit(self):
        self._end_transaction("COMMIT")

    def rollback(self):
        # Pending reads would fail with SQLITE_ABORT once their snapshot is gone.
        for c in list(self._cursors):
            c._discard_rows()
        self._end_transaction("ROLLBACK")

    def transaction(self, unit_of_work):
        return self._database.transaction(unit_of_work)

    def close(self):
        if self._database.closed:
            return
        for c in list(self._cursors):
            c.close()
        self._database.close()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        if exc_type:
            self.rollback()
        else:
            self.commit()
        self.close()


def connect(database=":memory:", *, autocommit=False, **kwargs):
    """Open a DB-API connection; ``kwargs`` are :class:`Database` options."""
    logger.debug("dbapi connect %r", database)
    return Connection(Database(database, **kwargs), autocommit=autocommit)
