import uuid

import pytest
import litebind
from litebind import dbapi


def test_module_globals():
    assert dbapi.apilevel == "2.0"
    assert dbapi.threadsafety == 1
    assert dbapi.paramstyle == "qmark"
    assert isinstance(dbapi.sqlite_version, str)
    assert dbapi.sqlite_version_info >= (3, 0, 0)
    assert dbapi.sqlite_version.startswith("%d.%d" % dbapi.sqlite_version_info[:2])

def test_connect(db_path):
    conn = dbapi.connect(db_path)
    assert conn is not None
    assert isinstance(conn.database, litebind.Database)
    conn.close()
    conn.close()

def test_ddl_and_insert(db_path):
    conn = litebind.connect(db_path)
    cur = conn.cursor()

    cur.execute("CREATE TABLE foo (id INTEGER, name TEXT)")
    cur.execute("INSERT INTO foo VALUES (1, 'alice')")
    cur.execute("INSERT INTO foo VALUES (2, 'bob')")

    conn.commit()
    conn.close()

    # Reopen and verify
    conn = dbapi.connect(db_path)
    cur = conn.cursor()
    cur.execute("SELECT * FROM foo ORDER BY id")
    rows = cur.fetchall()

    assert len(rows) == 2
    assert rows[0] == (1, 'alice')
    assert rows[1] == (2, 'bob')

    conn.close()

def test_parameters(db_path):
    conn = dbapi.connect(db_path)
    cur = conn.cursor()
    cur.execute("CREATE TABLE foo (id INTEGER, val TEXT)")

    # Positional args
    cur.execute("INSERT INTO foo VALUES (?, ?)", (1, "a"))

    # Named args
    cur.execute("INSERT INTO foo VALUES (:id, :val)", {"id": 2, "val": "b"})

    conn.commit()

    cur.execute("SELECT * FROM foo WHERE id = ?", (1,))
    row = cur.fetchone()
    assert row == (1, "a")

    cur.execute("SELECT * FROM foo WHERE id = :target", {"target": 2})
    row = cur.fetchone()
    assert row == (2, "b")

    conn.close()

def test_parameters_named_reuse(db_path):
    conn = dbapi.connect(db_path)
    cur = conn.cursor()
    cur.execute("CREATE TABLE foo (id INTEGER, val TEXT)")
    cur.execute("INSERT INTO foo VALUES (1, 'a')")
    cur.execute("INSERT INTO foo VALUES (2, 'b')")
    conn.commit()

    # The same named parameter appears multiple times and binds once.
    cur.execute("SELECT id FROM foo WHERE id = :target OR id = :target ORDER BY id", {"target": 2})
    rows = cur.fetchall()
    assert rows == [(2,)]

    conn.close()

def test_parameter_mismatch(db_path):
    conn = dbapi.connect(db_path)
    cur = conn.cursor()
    cur.execute("CREATE TABLE foo (id INTEGER, val TEXT)")

    with pytest.raises(dbapi.ProgrammingError):
        cur.execute("SELECT * FROM foo WHERE id = ?", (1, 2))
    with pytest.raises(dbapi.ProgrammingError):
        cur.execute("SELECT * FROM foo WHERE id = :id", {"other": 1})

    conn.close()

def test_fetchmany(db_path):
    conn = dbapi.connect(db_path)
    cur = conn.cursor()
    cur.execute("CREATE TABLE foo (id INTEGER)")

    cur.executemany("INSERT INTO foo VALUES (?)", [(i,) for i in range(10)])
    assert cur.rowcount == 10
    conn.commit()

    cur.execute("SELECT * FROM foo ORDER BY id")
    batch = cur.fetchmany(3)
    assert len(batch) == 3
    assert batch[0][0] == 0

    batch = cur.fetchmany(3)
    assert len(batch) == 3
    assert batch[0][0] == 3

    batch = cur.fetchmany(5) # Remaining 4
    assert len(batch) == 4
    assert cur.fetchone() is None

    conn.close()

def test_types(db_path):
    conn = dbapi.connect(db_path)
    cur = conn.cursor()
    cur.execute("CREATE TABLE types (i INTEGER, f REAL, t TEXT, b BLOB, flag INTEGER, n TEXT, u BLOB)")

    blob_data = b'\x00\x01\x02'
    u = uuid.uuid4()
    cur.execute("INSERT INTO types VALUES (?, ?, ?, ?, ?, ?, ?)",
                (123, 1.23, "hello", blob_data, True, None, u))
    conn.commit()

    cur.execute("SELECT * FROM types")
    row = cur.fetchone()

    assert row[0] == 123
    assert isinstance(row[1], float)
    assert abs(row[1] - 1.23) < 0.0001
    assert row[2] == "hello"
    assert row[3] == blob_data
    assert row[4] == 1
    assert row[5] is None
    assert row[6] == u.bytes

    conn.close()

def test_description_rowcount_lastrowid(db_path):
    conn = dbapi.connect(db_path)
    cur = conn.cursor()
    cur.execute("CREATE TABLE foo (id INTEGER PRIMARY KEY, name TEXT)")
    assert cur.description is None

    cur.execute("INSERT INTO foo (name) VALUES (?)", ("a",))
    assert cur.rowcount == 1
    assert cur.lastrowid == 1
    cur.execute("INSERT INTO foo (name) VALUES (?)", ("b",))
    assert cur.lastrowid == 2

    cur.execute("UPDATE foo SET name = 'z'")
    assert cur.rowcount == 2

    cur.execute("SELECT id, name AS label FROM foo")
    assert [d[0] for d in cur.description] == ["id", "label"]
    assert cur.rowcount == -1
    assert list(cur) == [(1, "z"), (2, "z")]

    conn.close()

@pytest.mark.skipif(dbapi.sqlite_version_info < (3, 35, 0), reason="RETURNING needs SQLite 3.35")
def test_returning_runs_at_execute_time(db_path):
    conn = dbapi.connect(db_path)
    cur = conn.cursor()
    cur.execute("CREATE TABLE foo (id INTEGER PRIMARY KEY, name TEXT)")

    cur.execute("INSERT INTO foo (name) VALUES (?), (?) RETURNING id", ("a", "b"))
    assert cur.rowcount == 2
    # Rows are written even before they are fetched.
    other = conn.cursor()
    other.execute("SELECT count(*) FROM foo")
    assert other.fetchone() == (2,)
    assert cur.fetchall() == [(1,), (2,)]

    conn.close()

def test_implicit_transaction_and_rollback(db_path):
    conn = dbapi.connect(db_path)
    cur = conn.cursor()
    cur.execute("CREATE TABLE foo (id INTEGER)")
    assert not conn.in_transaction

    cur.execute("INSERT INTO foo VALUES (1)")
    assert conn.in_transaction
    conn.rollback()
    assert not conn.in_transaction

    cur.execute("SELECT count(*) FROM foo")
    assert cur.fetchone() == (0,)

    # No transaction open: both are no-ops.
    conn.commit()
    conn.rollback()
    conn.close()

def test_autocommit_mode(db_path):
    conn = dbapi.connect(db_path, autocommit=True)
    conn.execute("CREATE TABLE foo (id INTEGER)")
    conn.execute("INSERT INTO foo VALUES (1)")
    assert not conn.in_transaction
    conn.close()

    conn = dbapi.connect(db_path)
    assert conn.execute("SELECT count(*) FROM foo").fetchone() == (1,)
    conn.close()

def test_connection_context_manager(db_path):
    with dbapi.connect(db_path) as conn:
        conn.execute("CREATE TABLE foo (id INTEGER)")
        conn.execute("INSERT INTO foo VALUES (1)")
    assert conn.database.closed

    with pytest.raises(ValueError):
        with dbapi.connect(db_path) as conn:
            conn.execute("INSERT INTO foo VALUES (2)")
            raise ValueError("discard")

    with dbapi.connect(db_path) as conn:
        assert conn.execute("SELECT id FROM foo").fetchall() == [(1,)]

def test_transaction_helper(db_path):
    conn = dbapi.connect(db_path)
    conn.execute("CREATE TABLE foo (id INTEGER)")
    add = conn.transaction(lambda i: conn.database.exec("INSERT INTO foo VALUES (?)", i))
    add(1)
    add.immediate(2)
    assert conn.execute("SELECT count(*) FROM foo").fetchone() == (2,)
    conn.close()

def test_closed_cursor_and_connection(db_path):
    conn = dbapi.connect(db_path)
    cur = conn.cursor()
    cur.close()
    with pytest.raises(dbapi.ProgrammingError):
        cur.execute("SELECT 1")

    other = conn.cursor()
    with pytest.raises(dbapi.ProgrammingError):
        other.fetchone()
    conn.close()
    with pytest.raises(dbapi.ProgrammingError):
        conn.cursor()
    with pytest.raises(dbapi.ProgrammingError):
        conn.commit()

def test_error_includes_sql_and_code(db_path):
    conn = dbapi.connect(db_path)
    cur = conn.cursor()

    with pytest.raises(dbapi.ProgrammingError) as excinfo:
        cur.execute("SELEC 1")

    msg = str(excinfo.value)
    assert "Context:" in msg
    assert "native_code" in msg
    assert "\"sql\":" in msg

    conn.close()

def test_integrity_error(db_path):
    conn = dbapi.connect(db_path)
    conn.execute("CREATE TABLE foo (id INTEGER PRIMARY KEY)")
    conn.execute("INSERT INTO foo VALUES (1)")
    with pytest.raises(dbapi.IntegrityError):
        conn.execute("INSERT INTO foo VALUES (1)")
    assert conn.Error is dbapi.Error
    conn.close()

def test_ticks_constructors():
    assert isinstance(dbapi.DateFromTicks(0), dbapi.Date)
    assert isinstance(dbapi.TimeFromTicks(0), dbapi.Time)
    assert isinstance(dbapi.TimestampFromTicks(0), dbapi.Timestamp)
    assert dbapi.Binary(bytearray(b"ab")) == b"ab"

def test_transaction_helper_joins_implicit_transaction(db_path):
    conn = dbapi.connect(db_path)
    conn.execute("CREATE TABLE foo (id INTEGER)")
    conn.execute("INSERT INTO foo VALUES (1)")
    assert conn.in_transaction

    add = conn.transaction(lambda i: conn.database.exec("INSERT INTO foo VALUES (?)", i))
    add(2)
    assert conn.in_transaction

    @conn.transaction
    def fail():
        conn.database.exec("INSERT INTO foo VALUES (3)")
        raise ValueError("discard")

    with pytest.raises(ValueError):
        fail()

    conn.commit()
    assert conn.execute("SELECT id FROM foo ORDER BY id").fetchall() == [(1,), (2,)]
    conn.close()

def test_description_follows_schema_changes(db_path):
    conn = dbapi.connect(db_path)
    cur = conn.cursor()
    cur.execute("CREATE TABLE foo (id INTEGER)")
    cur.execute("INSERT INTO foo VALUES (1)")
    conn.commit()

    cur.execute("SELECT * FROM foo")
    assert [d[0] for d in cur.description] == ["id"]
    assert cur.fetchall() == [(1,)]

    conn.execute("ALTER TABLE foo ADD COLUMN name TEXT DEFAULT 'n'")
    cur.execute("SELECT * FROM foo")
    assert [d[0] for d in cur.description] == ["id", "name"]
    assert cur.fetchall() == [(1, "n")]
    conn.close()
