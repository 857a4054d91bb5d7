import litebind
import time
import os

def run_benchmark():
    db_path = "bench_fetch.db"
    if os.path.exists(db_path):
        os.remove(db_path)

    db = litebind.Database(db_path)

    print("Setting up data...")
    db.exec("CREATE TABLE bench (id INTEGER, val TEXT, f REAL)")

    count = 100000
    data = [(i, f"value_{i}", float(i)) for i in range(count)]

    insert = db.prepare("INSERT INTO bench VALUES (?, ?, ?)")
    start_time = time.perf_counter()
    db.run_transaction(lambda: [insert.run(row) for row in data])
    end_time = time.perf_counter()
    print(f"Insert {count} rows: {end_time - start_time:.4f}s")
    db.close()

    # Native API, each row shape
    for shape in ("object", "tuple"):
        db = litebind.Database(db_path)
        stmt = db.prepare("SELECT * FROM bench")
        start_time = time.perf_counter()
        total = sum(1 for _ in stmt.iterate(shape=shape))
        end_time = time.perf_counter()
        print(f"Iterate ({shape}) {count} rows: {end_time - start_time:.4f}s")
        assert total == count
        db.close()

    # Benchmark fetchall
    conn = litebind.connect(db_path)
    cur = conn.cursor()

    print("Benchmarking fetchall...")
    start_time = time.perf_counter()
    cur.execute("SELECT * FROM bench")
    rows = cur.fetchall()
    end_time = time.perf_counter()

    print(f"Fetchall {count} rows: {end_time - start_time:.4f}s")
    assert len(rows) == count

    # Benchmark fetchmany(1000)
    conn.close()
    conn = litebind.connect(db_path)
    cur = conn.cursor()

    print("Benchmarking fetchmany(1000)...")
    start_time = time.perf_counter()
    cur.execute("SELECT * FROM bench")
    total = 0
    while True:
        batch = cur.fetchmany(1000)
        if not batch:
            break
        total += len(batch)
    end_time = time.perf_counter()

    print(f"Fetchmany(1000) {count} rows: {end_time - start_time:.4f}s")
    assert total == count

    conn.close()
    if os.path.exists(db_path):
        os.remove(db_path)

if __name__ == "__main__":
    run_benchmark()
