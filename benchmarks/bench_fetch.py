import sqlitebind
import time
import os

def run_benchmark():
    db_path = "bench_fetch.db"
    if os.path.exists(db_path):
        os.remove(db_path)

    conn = sqlitebind.connect(db_path)

    print("Setting up data...")
    conn.execute("CREATE TABLE bench (id INTEGER, val TEXT, f REAL)")

    # Insert 100k rows
    count = 100000
    data = [(i, f"value_{i}", float(i)) for i in range(count)]

    start_time = time.perf_counter()
    conn.begin()
    for row in data:
        conn.execute("INSERT INTO bench VALUES (?, ?, ?)", *row)
    conn.commit()
    end_time = time.perf_counter()
    print(f"Insert {count} rows: {end_time - start_time:.4f}s")

    conn.close()
    conn = sqlitebind.connect(db_path)

    # Benchmark callback streaming
    print("Benchmarking callback...")
    rows = []
    start_time = time.perf_counter()
    conn.execute("SELECT * FROM bench", callback=lambda row, fields: rows.append(row))
    end_time = time.perf_counter()

    print(f"Callback {count} rows: {end_time - start_time:.4f}s")
    assert len(rows) == count

    # Benchmark cursor iteration
    print("Benchmarking cursor...")
    start_time = time.perf_counter()
    total = 0
    with conn.execute("SELECT * FROM bench") as cur:
        for _ in cur:
            total += 1
    end_time = time.perf_counter()

    print(f"Cursor {count} rows: {end_time - start_time:.4f}s")
    assert total == count

    conn.close()
    if os.path.exists(db_path):
        os.remove(db_path)

if __name__ == "__main__":
    run_benchmark()
