import collections.abc
import json

from . import native


# DB-API 2.0 hierarchy
class Error(Exception):
    pass

class Warning(Exception):
    pass

class InterfaceError(Error):
    pass

class DatabaseError(Error):
    pass

class InternalError(DatabaseError):
    pass

class OperationalError(DatabaseError):
    pass

class ProgrammingError(DatabaseError):
    pass

class IntegrityError(DatabaseError):
    pass

class DataError(DatabaseError):
    pass

class NotSupportedError(DatabaseError):
    pass


# Binding-level failures, raised before anything reaches the engine
class ConfigError(InterfaceError):
    """Invalid connection options."""

class StateError(ProgrammingError):
    """Operation not valid in the handle's current lifecycle state."""

class BindError(ProgrammingError):
    """Parameter shape mismatch or a parameter the statement does not declare."""

class UnsupportedTypeError(BindError):
    """Host value with no storage class mapping."""


class EngineError(OperationalError):
    """Failure reported by the engine.

    ``code`` and ``message`` are the engine's own result code and error
    text, untouched. ``str()`` adds a JSON context line with the SQL and the
    (truncated) parameters that were in play.
    """

    def __init__(self, message, code=native.SQLITE_ERROR, extended_code=None, sql=None, params=None):
        self.message = message
        self.code = code
        self.extended_code = code if extended_code is None else extended_code
        self.sql = sql
        self.params = params
        text = message
        if sql is not None:
            ctx = {
                "native_code": int(self.extended_code),
                "sql": sql,
                "params": _format_params_for_error(params),
            }
            text = text + "\nContext: " + json.dumps(ctx, ensure_ascii=False)
        super().__init__(text)

# PEP 249 class first so that callers mapping by class name see it.
class SQLSyntaxError(ProgrammingError, EngineError):
    pass

class ConstraintError(IntegrityError, EngineError):
    pass

class BusyError(EngineError):
    pass

class ReadOnlyError(EngineError):
    pass

class EngineDataError(DataError, EngineError):
    pass

class CorruptError(InternalError, EngineError):
    pass

class MisuseError(ProgrammingError, EngineError):
    pass


_ERROR_CLASSES = {
    native.SQLITE_CONSTRAINT: ConstraintError,
    native.SQLITE_BUSY: BusyError,
    native.SQLITE_LOCKED: BusyError,
    native.SQLITE_READONLY: ReadOnlyError,
    native.SQLITE_MISMATCH: EngineDataError,
    native.SQLITE_TOOBIG: EngineDataError,
    native.SQLITE_RANGE: EngineDataError,
    native.SQLITE_CORRUPT: CorruptError,
    native.SQLITE_NOTADB: CorruptError,
    native.SQLITE_INTERNAL: CorruptError,
    native.SQLITE_MISUSE: MisuseError,
}

_SYNTAX_MARKERS = ("syntax error", "incomplete input", "unrecognized token")


def _format_value_for_error(v, *, max_str=200, max_bytes=64):
    if v is None:
        return None
    if isinstance(v, (bool, int, float)):
        return v
    if isinstance(v, (bytes, bytearray, memoryview)):
        b = bytes(v)
        if len(b) <= max_bytes:
            return {"_type": "bytes", "hex": b.hex(), "len": len(b)}
        head = b[:max_bytes]
        return {"_type": "bytes", "hex_prefix": head.hex(), "len": len(b)}
    if isinstance(v, str):
        if len(v) <= max_str:
            return v
        return v[:max_str] + "…"
    # Fall back to capped repr
    s = repr(v)
    if len(s) <= max_str:
        return s
    return s[:max_str] + "…"

def _format_params_for_error(params, *, max_items=50):
    if params is None:
        return None
    if isinstance(params, collections.abc.Mapping):
        out = {}
        for i, (k, v) in enumerate(params.items()):
            if i >= max_items:
                out["_truncated"] = True
                break
            out[str(k)] = _format_value_for_error(v)
        return out
    try:
        seq = list(params)
    except TypeError:
        return _format_value_for_error(params)
    if len(seq) > max_items:
        seq = seq[:max_items] + ["<truncated>"]
    return [_format_value_for_error(v) for v in seq]


def error_class_for(code, message=""):
    primary = code & 0xFF
    if primary == native.SQLITE_ERROR:
        lowered = message.lower()
        if any(marker in lowered for marker in _SYNTAX_MARKERS):
            return SQLSyntaxError
        return EngineError
    return _ERROR_CLASSES.get(primary, EngineError)


def engine_error(db_handle, code, *, sql=None, params=None):
    """Build the exception for a failed engine call on ``db_handle``."""
    lib = native.load_library()
    extended = code
    msg = None
    if db_handle:
        extended = lib.sqlite3_extended_errcode(db_handle)
        msg = lib.sqlite3_errmsg(db_handle)
    if not msg:
        msg = lib.sqlite3_errstr(code)
    msg_str = msg.decode("utf-8", errors="replace") if msg else f"Unknown error {code}"
    cls = error_class_for(code, msg_str)
    return cls(msg_str, code=code & 0xFF, extended_code=extended, sql=sql, params=params)
