import ctypes
import logging
import weakref

from . import native
from .coercion import NULL, StorageValue, from_storage, to_storage
from .errors import BindError, StateError, engine_error
from .native import (
    SQLITE_BLOB, SQLITE_DONE, SQLITE_FLOAT, SQLITE_INTEGER, SQLITE_NULL,
    SQLITE_OK, SQLITE_ROW, SQLITE_TEXT, SQLITE_TRANSIENT,
)
from .params import Positional, candidate_names, parameter_set

logger = logging.getLogger(__name__)

ROW_SHAPES = ("object", "tuple", "value")


def _release(lib, handle):
    # Runs at most once per handle: explicitly, on connection close, or when
    # the Statement object is collected.
    lib.sqlite3_finalize(handle)


def read_column(lib, handle, index):
    kind = lib.sqlite3_column_type(handle, index)
    if kind == SQLITE_INTEGER:
        return StorageValue(kind, lib.sqlite3_column_int64(handle, index))
    if kind == SQLITE_FLOAT:
        return StorageValue(kind, lib.sqlite3_column_double(handle, index))
    if kind == SQLITE_TEXT:
        ptr = lib.sqlite3_column_text(handle, index)
        length = lib.sqlite3_column_bytes(handle, index)
        if ptr and length > 0:
            return StorageValue(kind, ctypes.string_at(ptr, length).decode("utf-8", errors="replace"))
        return StorageValue(kind, "")
    if kind == SQLITE_BLOB:
        ptr = lib.sqlite3_column_blob(handle, index)
        length = lib.sqlite3_column_bytes(handle, index)
        if ptr and length > 0:
            return StorageValue(kind, ctypes.string_at(ptr, length))
        return StorageValue(kind, b"")
    return NULL


class Statement:
    """One compiled statement owned by a :class:`~litebind.Database`.

    Parameters are passed either positionally (``stmt.run(1, "a")`` or
    ``stmt.run([1, "a"])``) or as one mapping (``stmt.run({"id": 1})``).
    Mapping keys may carry their sigil (``":id"``, ``"@id"``, ``"$id"``);
    bare keys are looked up as ``":key"``.

    ``bind()`` fixes the parameters for the life of the handle. Afterwards the
    execution methods only accept calls without parameters.
    """

    def __init__(self, connection, sql):
        if connection.closed:
            raise StateError("Database is closed")
        self._lib = native.load_library()
        self._connection_ref = weakref.ref(connection)
        self._wide_integers = connection.wide_integers
        self._bound = False
        self._finalized = False
        self._generation = 0
        self._last_params = None

        encoded = sql.encode("utf-8")
        buf = ctypes.create_string_buffer(encoded)
        stmt_ptr = ctypes.c_void_p()
        tail_ptr = ctypes.c_void_p()
        res = self._lib.sqlite3_prepare_v2(
            connection._db,
            buf,
            len(encoded) + 1,
            ctypes.byref(stmt_ptr),
            ctypes.byref(tail_ptr),
        )
        if res != SQLITE_OK:
            raise engine_error(connection._db, res, sql=sql)

        consumed = len(encoded)
        if tail_ptr.value is not None:
            consumed = tail_ptr.value - ctypes.addressof(buf)
        self.sql = encoded[:consumed].decode("utf-8").strip()
        self.tail = encoded[consumed:].decode("utf-8")

        # A null handle means the text held only whitespace or comments.
        self._handle = stmt_ptr.value
        if self._handle is None:
            self._finalizer = None
            self.readonly = True
            self.param_count = 0
            self.param_names = ()
            self.column_names = ()
            self._columns_checked = True
        else:
            self._finalizer = weakref.finalize(self, _release, self._lib, self._handle)
            self.readonly = bool(self._lib.sqlite3_stmt_readonly(self._handle))
            self.param_count = self._lib.sqlite3_bind_parameter_count(self._handle)
            names = []
            for i in range(1, self.param_count + 1):
                name_ptr = self._lib.sqlite3_bind_parameter_name(self._handle, i)
                names.append(name_ptr.decode("utf-8") if name_ptr else None)
            self.param_names = tuple(names)
            self._read_columns()

        connection._statements.add(self)
        logger.debug("prepared statement %r", self.sql)

    def __repr__(self):
        state = "finalized" if self._finalized else "live"
        return f"<Statement {self.sql!r} {state}>"

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        if not self._finalized:
            self.finalize()

    @property
    def bound(self):
        return self._bound

    @property
    def finalized(self):
        return self._finalized

    @property
    def declared_types(self):
        self._connection()
        if self._handle is None:
            return ()
        types = []
        for i in range(len(self.column_names)):
            decl = self._lib.sqlite3_column_decltype(self._handle, i)
            types.append(decl.decode("utf-8") if decl else None)
        return tuple(types)

    @property
    def expanded_sql(self):
        """SQL text with the currently bound values substituted in."""
        self._connection()
        if self._handle is None:
            return self.sql
        ptr = self._lib.sqlite3_expanded_sql(self._handle)
        if not ptr:
            return None
        try:
            return ctypes.string_at(ptr).decode("utf-8")
        finally:
            # Free engine-allocated memory
            self._lib.sqlite3_free(ptr)

    def _read_columns(self):
        columns = []
        for i in range(self._lib.sqlite3_column_count(self._handle)):
            name_ptr = self._lib.sqlite3_column_name(self._handle, i)
            columns.append(name_ptr.decode("utf-8") if name_ptr else "")
        self.column_names = tuple(columns)
        self._columns_checked = True

    def _connection(self):
        if self._finalized:
            raise StateError("Statement has been finalized")
        connection = self._connection_ref()
        if connection is None or connection.closed:
            raise StateError("Database is closed")
        return connection

    # Binding

    def bind(self, *params):
        self._connection()
        if self._bound:
            raise StateError("Statement parameters are already bound")
        param_set = parameter_set(params)
        self._reset()
        self._generation += 1
        if self._handle is not None:
            self._lib.sqlite3_clear_bindings(self._handle)
            if param_set is not None:
                self._bind_parameters(param_set, params)
        self._last_params = params or None
        self._bound = True
        return self

    def _bind_parameters(self, param_set, raw_params):
        if isinstance(param_set, Positional):
            values = param_set.values
            if len(values) != self.param_count:
                raise BindError(
                    f"Incorrect number of parameters: expected {self.param_count}, got {len(values)}"
                )
            for i, value in enumerate(values, 1):
                self._bind_value(i, value, raw_params)
            return

        for key, value in param_set.values.items():
            if not isinstance(key, str) or not key:
                raise BindError(f"Named parameter keys must be non-empty strings, got {key!r}")
            index = 0
            for name in candidate_names(key):
                index = self._lib.sqlite3_bind_parameter_index(self._handle, name.encode("utf-8"))
                if index:
                    break
            if not index:
                raise BindError(f"Statement has no parameter named {key!r}")
            self._bind_value(index, value, raw_params)

    def _bind_value(self, index, value, raw_params):
        kind, payload = to_storage(value)
        if kind == SQLITE_NULL:
            res = self._lib.sqlite3_bind_null(self._handle, index)
        elif kind == SQLITE_INTEGER:
            res = self._lib.sqlite3_bind_int64(self._handle, index, payload)
        elif kind == SQLITE_FLOAT:
            res = self._lib.sqlite3_bind_double(self._handle, index, payload)
        elif kind == SQLITE_TEXT:
            b = payload.encode("utf-8")
            res = self._lib.sqlite3_bind_text(self._handle, index, b, len(b), SQLITE_TRANSIENT)
        else:
            res = self._lib.sqlite3_bind_blob(self._handle, index, payload, len(payload), SQLITE_TRANSIENT)

        if res != SQLITE_OK:
            raise engine_error(self._connection()._db, res, sql=self.sql, params=raw_params)

    # Execution

    def _reset(self):
        # sqlite3_reset repeats the error of the last failed step, which
        # has already been raised from _step.
        if self._handle is not None:
            self._lib.sqlite3_reset(self._handle)

    def _begin(self, params, require_bound=False):
        """Reset the plan and apply this call's parameters.

        Starting a new execution discards whatever an earlier, unfinished
        iteration had left; the generation bump makes that cursor stop.
        """
        self._connection()
        param_set = parameter_set(params)
        if param_set is not None and self._bound:
            raise StateError("Statement parameters were fixed by bind(); call it without parameters")
        if param_set is None and require_bound and self.param_count and not self._bound:
            raise StateError("Statement has parameters; bind() them before iterating")
        self._reset()
        self._generation += 1
        self._columns_checked = False
        if not self._bound and self._handle is not None:
            self._lib.sqlite3_clear_bindings(self._handle)
            if param_set is not None:
                self._bind_parameters(param_set, params)
            self._last_params = params or None
        return self._generation

    def _step(self):
        if self._handle is None:
            return False
        res = self._lib.sqlite3_step(self._handle)
        if res in (SQLITE_ROW, SQLITE_DONE):
            # The engine recompiles the plan on its own after a schema
            # change, so the result columns may differ from the last run.
            if not self._columns_checked:
                self._read_columns()
            return res == SQLITE_ROW
        err = engine_error(self._connection()._db, res, sql=self.sql, params=self._last_params)
        self._reset()
        raise err

    def _row(self, shape):
        values = [
            from_storage(read_column(self._lib, self._handle, i), self._wide_integers)
            for i in range(len(self.column_names))
        ]
        if shape == "tuple":
            return tuple(values)
        if shape == "value":
            return values[0] if values else None
        return dict(zip(self.column_names, values))

    def run(self, *params):
        """Execute to completion and return the number of rows this execution changed."""
        self._begin(params)
        connection = self._connection()
        before = connection.total_changes
        try:
            while self._step():
                pass
            if connection.total_changes == before:
                return 0
            return connection.changes
        finally:
            self._reset()

    def iterate(self, *params, shape="object"):
        self._connection()
        if shape not in ROW_SHAPES:
            raise ValueError(f"Unknown row shape {shape!r}; expected one of {ROW_SHAPES}")
        generation = self._begin(params, require_bound=True)
        return RowCursor(self, shape, generation)

    def __iter__(self):
        return self.iterate()

    def _collect(self, params, shape):
        generation = self._begin(params)
        return list(RowCursor(self, shape, generation))

    def _first(self, params, shape):
        self._begin(params)
        try:
            if self._step():
                return self._row(shape)
            return None
        finally:
            self._reset()

    def all(self, *params):
        return self._collect(params, "object")

    def values(self, *params):
        return self._collect(params, "tuple")

    def get(self, *params):
        return self._first(params, "object")

    def value(self, *params):
        return self._first(params, "value")

    def finalize(self):
        if self._finalized:
            raise StateError("Statement has already been finalized")
        self._finalized = True
        if self._finalizer is not None:
            self._finalizer()
        connection = self._connection_ref()
        if connection is not None:
            connection._statements.discard(self)
        logger.debug("finalized statement %r", self.sql)


class RowCursor:
    """Lazy, single-pass iterator over the rows of one execution.

    Exhaustion resets the plan. Once exhausted (or superseded by a newer
    execution of the same statement) the cursor keeps raising StopIteration.
    """

    def __init__(self, statement, shape, generation):
        self._statement = statement
        self._shape = shape
        self._generation = generation
        self._done = False

    def __iter__(self):
        return self

    def _current(self):
        stmt = self._statement
        return not stmt._finalized and stmt._generation == self._generation

    def __next__(self):
        if self._done:
            raise StopIteration
        if not self._current():
            self._done = True
            raise StopIteration
        stmt = self._statement
        try:
            has_row = stmt._step()
        except Exception:
            self._done = True
            raise
        if not has_row:
            self._done = True
            stmt._reset()
            raise StopIteration
        return stmt._row(self._shape)

    def close(self):
        if not self._done and self._current():
            self._statement._reset()
        self._done = True

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
