"""Example: basic litebind usage, native API first, then DB-API 2.0.

The system SQLite library is located automatically; point at another build
with:
    LITEBIND_SQLITE_LIB=/path/to/libsqlite3.so python example.py
"""

import os
import tempfile
import litebind


def main():
    # Create a temporary database file for this example.
    db_path = os.path.join(tempfile.gettempdir(), "litebind_example.db")

    with litebind.Database(db_path) as db:
        db.exec("""
            DROP TABLE IF EXISTS users;
            CREATE TABLE users (
                id    INTEGER PRIMARY KEY,
                name  TEXT NOT NULL,
                email TEXT UNIQUE
            );
        """)

        # One prepared statement, many executions.
        insert = db.prepare("INSERT INTO users (name, email) VALUES (:name, :email)")

        @db.transaction
        def add_users(users):
            for name, email in users:
                insert.run({"name": name, "email": email})

        add_users([
            ("Alice", "alice@example.com"),
            ("Bob", "bob@example.com"),
            ("Carol", "carol@example.com"),
        ])

        print("All users:")
        for row in db.prepare("SELECT id, name, email FROM users ORDER BY id"):
            print(f"  id={row['id']}  name={row['name']}  email={row['email']}")

        # A failing inner transaction only undoes its own work.
        @db.transaction
        def add_with_duplicate():
            add_users([("Dave", "dave@example.com")])
            try:
                add_users([("Mallory", "alice@example.com")])
            except litebind.ConstraintError as e:
                print(f"\nRejected: {e.message}")

        add_with_duplicate.immediate()
        count = db.query("SELECT count(*) FROM users").value()
        print(f"Total users after transaction: {count}")

    # The same file through the DB-API adapter.
    conn = litebind.connect(db_path)
    cursor = conn.cursor()
    cursor.execute("SELECT name FROM users WHERE email = ?", ("bob@example.com",))
    print(f"\nLookup by email: {cursor.fetchone()[0]}")

    cursor.execute("UPDATE users SET name = upper(name)")
    print(f"Updated {cursor.rowcount} rows")
    conn.commit()

    cursor.close()
    conn.close()

    # Clean up.
    for suffix in ("", "-journal", "-wal"):
        try:
            os.unlink(db_path + suffix)
        except FileNotFoundError:
            pass

    print("\nDone.")


if __name__ == "__main__":
    main()
