"""Nested transactions on top of BEGIN/COMMIT and SAVEPOINT.

The outermost call on a connection opens a real transaction; calls made
while one is active use a savepoint named after the depth they start at,
so an inner failure only undoes the inner unit of work::

    depth 0   BEGIN [mode]      ... COMMIT      | ROLLBACK
    depth d   SAVEPOINT sp_d    ... RELEASE sp_d | ROLLBACK TO sp_d; RELEASE sp_d
"""

import functools
import logging

logger = logging.getLogger(__name__)

MODES = (None, "deferred", "immediate", "exclusive")


def savepoint_name(depth):
    return f"sp_{depth}"


def control_statements(depth, mode=None):
    """Return the (begin, commit, rollback) SQL sequences for a frame at ``depth``."""
    if mode not in MODES:
        raise ValueError(f"Unknown transaction mode {mode!r}; expected one of {MODES}")
    if depth == 0:
        begin = "BEGIN" if mode is None else f"BEGIN {mode.upper()}"
        return (begin,), ("COMMIT",), ("ROLLBACK",)
    name = savepoint_name(depth)
    return (f"SAVEPOINT {name}",), (f"RELEASE {name}",), (f"ROLLBACK TO {name}", f"RELEASE {name}")


def _rollback(connection, depth, statements, error):
    try:
        # A closed connection, or one whose transaction the engine already
        # ended (for example after SQLITE_FULL), has nothing left to undo.
        if connection.closed or not connection.in_transaction:
            logger.debug("transaction at depth %d already ended", depth)
            return
        for sql in statements:
            connection._run_control(sql)
    except Exception as rollback_error:
        logger.warning("rollback at depth %d failed: %s", depth, rollback_error)
        error.rollback_error = rollback_error
        error.add_note(f"rollback also failed: {rollback_error}")


def run_transaction(connection, unit_of_work, mode=None, args=(), kwargs=None):
    """Run ``unit_of_work(*args, **kwargs)`` inside one transaction frame.

    ``mode`` only matters for the outermost frame. The original exception
    always propagates; a failed rollback is attached to it, never raised
    in its place.
    """
    depth = connection._depth
    level = depth
    if depth == 0 and connection.in_transaction:
        # Joining a transaction opened outside this controller, such as an
        # explicit BEGIN or the DB-API adapter's implicit one. It counts as
        # the outermost frame.
        level = 1
    begin, commit, rollback = control_statements(level, mode)
    for sql in begin:
        connection._run_control(sql)
    connection._depth = level + 1
    logger.debug("entered transaction frame at depth %d", level)
    try:
        result = unit_of_work(*args, **(kwargs or {}))
        for sql in commit:
            connection._run_control(sql)
    except BaseException as error:
        _rollback(connection, level, rollback, error)
        raise
    finally:
        connection._depth = depth
    return result


class Transaction:
    """Reusable wrapper returned by :meth:`Database.transaction`.

    Calling it runs the wrapped function in a transaction (or a savepoint
    when already inside one). ``deferred``, ``immediate`` and ``exclusive``
    choose the BEGIN variant for the outermost frame.
    """

    def __init__(self, connection, unit_of_work):
        if not callable(unit_of_work):
            raise TypeError("transaction() expects a callable")
        # Copy metadata first; wrapping another Transaction would otherwise
        # overwrite these attributes with its own.
        functools.update_wrapper(self, unit_of_work)
        self._connection = connection
        self._unit_of_work = unit_of_work

    def __repr__(self):
        return f"<Transaction {getattr(self._unit_of_work, '__qualname__', self._unit_of_work)!r}>"

    def _run(self, mode, args, kwargs):
        return run_transaction(self._connection, self._unit_of_work, mode, args, kwargs)

    def __call__(self, *args, **kwargs):
        return self._run(None, args, kwargs)

    def deferred(self, *args, **kwargs):
        return self._run("deferred", args, kwargs)

    def immediate(self, *args, **kwargs):
        return self._run("immediate", args, kwargs)

    def exclusive(self, *args, **kwargs):
        return self._run("exclusive", args, kwargs)
