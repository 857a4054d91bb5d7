import pytest
import litebind


@pytest.fixture
def numbers(db):
    db.exec("CREATE TABLE numbers (n INTEGER)")
    insert = db.prepare("INSERT INTO numbers VALUES (?)")
    for i in range(5):
        insert.run(i)
    insert.finalize()
    return db

def test_iterate_rows_as_objects(numbers):
    stmt = numbers.prepare("SELECT n FROM numbers ORDER BY n")
    assert [row for row in stmt] == [{"n": i} for i in range(5)]

def test_iterate_is_lazy(numbers):
    stmt = numbers.prepare("SELECT n FROM numbers ORDER BY n")
    cursor = iter(stmt)
    assert next(cursor) == {"n": 0}
    assert next(cursor) == {"n": 1}
    assert isinstance(cursor, litebind.RowCursor)

def test_iterate_requires_bind_for_parameters(numbers):
    stmt = numbers.prepare("SELECT n FROM numbers WHERE n > ? ORDER BY n")
    with pytest.raises(litebind.StateError):
        iter(stmt)
    stmt.bind(2)
    assert list(stmt) == [{"n": 3}, {"n": 4}]

def test_iterate_with_parameters(numbers):
    stmt = numbers.prepare("SELECT n FROM numbers WHERE n > :min ORDER BY n")
    assert list(stmt.iterate({"min": 3})) == [{"n": 4}]
    # Passing parameters does not fix them.
    assert list(stmt.iterate({"min": 2})) == [{"n": 3}, {"n": 4}]

def test_iterate_shapes(numbers):
    stmt = numbers.prepare("SELECT n, n * 2 AS twice FROM numbers WHERE n < 2 ORDER BY n")
    assert list(stmt.iterate(shape="tuple")) == [(0, 0), (1, 2)]
    assert list(stmt.iterate(shape="value")) == [0, 1]
    with pytest.raises(ValueError):
        stmt.iterate(shape="columns")

def test_cursor_is_not_restartable(numbers):
    stmt = numbers.prepare("SELECT n FROM numbers ORDER BY n")
    cursor = iter(stmt)
    assert len(list(cursor)) == 5
    assert list(cursor) == []
    with pytest.raises(StopIteration):
        next(cursor)
    # A fresh iteration starts over.
    assert len(list(stmt)) == 5

def test_new_execution_supersedes_unfinished_iteration(numbers):
    stmt = numbers.prepare("SELECT n FROM numbers ORDER BY n")
    cursor = iter(stmt)
    assert next(cursor) == {"n": 0}

    assert stmt.values() == [(i,) for i in range(5)]
    with pytest.raises(StopIteration):
        next(cursor)

def test_abandoned_iteration_then_run(numbers):
    stmt = numbers.prepare("SELECT n FROM numbers ORDER BY n")
    cursor = stmt.iterate()
    next(cursor)
    assert stmt.run() == 0
    assert list(cursor) == []

def test_cursor_close_resets(numbers):
    stmt = numbers.prepare("SELECT n FROM numbers ORDER BY n")
    with stmt.iterate() as cursor:
        assert next(cursor) == {"n": 0}
    assert list(cursor) == []
    assert stmt.value() == 0

def test_finalize_stops_iteration(numbers):
    stmt = numbers.prepare("SELECT n FROM numbers ORDER BY n")
    cursor = iter(stmt)
    next(cursor)
    stmt.finalize()
    with pytest.raises(StopIteration):
        next(cursor)

def test_iteration_error_surfaces(db):
    db.exec("CREATE TABLE t (v TEXT)")
    db.exec("INSERT INTO t VALUES ('x'), ('y')")
    stmt = db.prepare("SELECT json_extract(v, '$.a') FROM t")
    cursor = stmt.iterate(shape="value")
    with pytest.raises(litebind.EngineError):
        next(cursor)
    assert list(cursor) == []
    # The handle stays usable after the failure.
    assert db.prepare("SELECT count(*) FROM t").value() == 2
