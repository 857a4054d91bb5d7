import collections
import ctypes
import logging
import os
import weakref

from . import native
from .errors import BindError, ConfigError, StateError, engine_error
from .native import (
    SQLITE_OK, SQLITE_OPEN_CREATE, SQLITE_OPEN_MEMORY, SQLITE_OPEN_READONLY,
    SQLITE_OPEN_READWRITE,
)
from .statement import Statement
from .transaction import Transaction, run_transaction

logger = logging.getLogger(__name__)

MEMORY_PATH = ":memory:"


def open_flags(*, create=None, readonly=False, memory=False, raw_flags=None):
    """Translate connection options into sqlite3_open_v2 flags.

    ``raw_flags`` wins over every other option when given.
    """
    for name, value in (("readonly", readonly), ("memory", memory)):
        if not isinstance(value, bool):
            raise ConfigError(f"Option {name!r} must be a bool, got {value!r}")
    if create is not None and not isinstance(create, bool):
        raise ConfigError(f"Option 'create' must be a bool, got {create!r}")

    if raw_flags is not None:
        if isinstance(raw_flags, bool) or not isinstance(raw_flags, int) or raw_flags < 0:
            raise ConfigError(f"Option 'raw_flags' must be a non-negative int, got {raw_flags!r}")
        return raw_flags

    if readonly:
        if create:
            raise ConfigError("A readonly database cannot also be opened with create=True")
        flags = SQLITE_OPEN_READONLY
    else:
        flags = SQLITE_OPEN_READWRITE
        if create is None or create:
            flags |= SQLITE_OPEN_CREATE
    if memory:
        flags |= SQLITE_OPEN_MEMORY
    return flags


def _close_engine(lib, db, statements):
    # Statements first: the engine handle must outlive every plan.
    for stmt in list(statements):
        if not stmt._finalized:
            stmt._finalized = True
            if stmt._finalizer is not None:
                stmt._finalizer()
    lib.sqlite3_close_v2(db)


class Database:
    """Connection to one database file (or an in-memory database).

    Options:

    * ``create`` -- create the file if missing (default on, unless readonly)
    * ``readonly`` -- open read-only
    * ``memory`` -- open as an in-memory database
    * ``wide_integers`` -- return integers beyond 2**53 exactly instead of
      as floats
    * ``raw_flags`` -- sqlite3_open_v2 flags, overriding all of the above
    * ``stmt_cache_size`` -- capacity of the :meth:`query` statement cache
    """

    def __init__(self, path=MEMORY_PATH, *, create=None, readonly=False, memory=False,
                 wide_integers=False, raw_flags=None, stmt_cache_size=128):
        if not isinstance(path, (str, os.PathLike)):
            raise ConfigError(f"Database path must be str or path-like, got {type(path).__name__}")
        if not isinstance(wide_integers, bool):
            raise ConfigError(f"Option 'wide_integers' must be a bool, got {wide_integers!r}")
        if isinstance(stmt_cache_size, bool) or not isinstance(stmt_cache_size, int) or stmt_cache_size < 0:
            raise ConfigError(f"Option 'stmt_cache_size' must be a non-negative int, got {stmt_cache_size!r}")
        flags = open_flags(create=create, readonly=readonly, memory=memory, raw_flags=raw_flags)

        self._lib = native.load_library()
        self._closed = True
        self.path = path
        self.readonly = bool(flags & SQLITE_OPEN_READONLY)
        self.wide_integers = wide_integers
        self._depth = 0
        self._statements = weakref.WeakSet()
        self._control = {}

        # Prepared statement cache for query()
        self._stmt_cache = collections.OrderedDict()
        self._stmt_cache_size = stmt_cache_size

        db = ctypes.c_void_p()
        res = self._lib.sqlite3_open_v2(os.fsencode(path), ctypes.byref(db), flags, None)
        if res != SQLITE_OK:
            # The engine may hand back a handle even on failure; it still owns memory.
            err = engine_error(db.value, res)
            if db.value:
                self._lib.sqlite3_close_v2(db.value)
            raise err

        self._db = db.value
        self._closed = False
        self._finalizer = weakref.finalize(self, _close_engine, self._lib, self._db, self._statements)
        logger.debug("opened database %r (flags=0x%x)", os.fspath(path), flags)

    def __repr__(self):
        state = "closed" if self._closed else "open"
        return f"<Database {os.fspath(self.path)!r} {state}>"

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()

    def _check_open(self):
        if self._closed:
            raise StateError("Database is closed")

    # Read-through metadata

    @property
    def closed(self):
        return self._closed

    @property
    def changes(self):
        self._check_open()
        return self._lib.sqlite3_changes(self._db)

    @property
    def total_changes(self):
        self._check_open()
        return self._lib.sqlite3_total_changes(self._db)

    @property
    def last_insert_rowid(self):
        self._check_open()
        return self._lib.sqlite3_last_insert_rowid(self._db)

    @property
    def autocommit(self):
        self._check_open()
        return bool(self._lib.sqlite3_get_autocommit(self._db))

    @property
    def in_transaction(self):
        return not self.autocommit

    @property
    def transaction_depth(self):
        return self._depth

    # Statements

    def prepare(self, sql):
        self._check_open()
        return Statement(self, sql)

    def query(self, sql):
        """Like :meth:`prepare`, but hands out one cached handle per SQL text."""
        self._check_open()
        stmt = self._stmt_cache.pop(sql, None)
        if stmt is None or stmt.finalized:
            stmt = Statement(self, sql)
        if self._stmt_cache_size <= 0:
            return stmt
        self._stmt_cache[sql] = stmt

        # Evict if full
        while len(self._stmt_cache) > self._stmt_cache_size:
            _, old_stmt = self._stmt_cache.popitem(last=False)
            if not old_stmt.finalized:
                old_stmt.finalize()
        return stmt

    def exec(self, sql, *params):
        """Run every statement in ``sql`` and return the changes of the last one.

        With parameters the text must hold a single statement, which is bound
        and run through a prepared handle.
        """
        self._check_open()
        if params:
            stmt = Statement(self, sql)
            try:
                if self._compiles_to_statement(stmt.tail):
                    raise BindError("Parameters can only be bound to a single statement")
                return stmt.run(*params)
            finally:
                stmt.finalize()

        changes = 0
        remaining = sql
        while remaining.strip():
            stmt = Statement(self, remaining)
            try:
                # Comment-only fragments compile to nothing.
                if stmt._handle is not None:
                    changes = stmt.run()
            finally:
                stmt.finalize()
            remaining = stmt.tail
        return changes

    def _compiles_to_statement(self, sql):
        # Whitespace, comments and bare semicolons compile to nothing.
        while sql.strip():
            stmt = Statement(self, sql)
            try:
                if stmt._handle is not None:
                    return True
            finally:
                stmt.finalize()
            sql = stmt.tail
        return False

    def _run_control(self, sql):
        stmt = self._control.get(sql)
        if stmt is None or stmt.finalized:
            stmt = self._control[sql] = Statement(self, sql)
        logger.debug("transaction control: %s", sql)
        stmt.run()

    def transaction(self, unit_of_work):
        self._check_open()
        return Transaction(self, unit_of_work)

    def run_transaction(self, unit_of_work, *args, mode=None, **kwargs):
        self._check_open()
        return run_transaction(self, unit_of_work, mode, args, kwargs)

    def close(self):
        if self._closed:
            return
        self._closed = True
        self._stmt_cache.clear()
        self._control.clear()
        self._finalizer()
        self._db = None
        logger.debug("closed database %r", os.fspath(self.path))
