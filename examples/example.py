"""Example: basic sqlitebind usage.

The engine library is located automatically; point at a specific build with:
    SQLITEBIND_NATIVE_LIB=/path/to/libsqlite3.so python example.py
"""

import os
import tempfile
import sqlitebind


def main():
    # Create a temporary database file for this example.
    db_path = os.path.join(tempfile.gettempdir(), "sqlitebind_example.db")

    conn = sqlitebind.connect(db_path)

    # Create a table. Several statements can go in one batch.
    conn.execute_batch("""
        DROP TABLE IF EXISTS users;
        CREATE TABLE users (
            id    INTEGER PRIMARY KEY,
            name  TEXT NOT NULL,
            email TEXT UNIQUE
        );
    """)

    # Insert rows inside one transaction.
    users = [
        ("Alice", "alice@example.com"),
        ("Bob", "bob@example.com"),
        ("Carol", "carol@example.com"),
    ]
    with conn.transaction():
        for name, email in users:
            conn.execute("INSERT INTO users (name, email) VALUES (?, ?)", name, email)
    print(f"Last inserted id: {conn.last_insert_id()}")

    # Stream all rows to a callback.
    print("All users:")
    conn.execute(
        "SELECT id, name, email FROM users ORDER BY id",
        callback=lambda row, fields: print("  " + "  ".join(f"{f}={v}" for f, v in zip(fields, row))),
    )

    # Parameterised lookup through a cursor.
    cursor = conn.execute("SELECT name FROM users WHERE email = ?", "bob@example.com")
    print(f"\nFields: {cursor.fields()}")
    print(f"Lookup by email: {cursor.next()[0]}")
    cursor.close()

    # Rolled back work leaves no trace.
    conn.begin()
    conn.execute("DELETE FROM users")
    conn.rollback()

    cursor = conn.execute("SELECT count(*) FROM users")
    print(f"\nTotal users after rollback: {cursor.next()[0]}")
    cursor.close()

    conn.close()

    # Clean up.
    try:
        os.unlink(db_path)
    except FileNotFoundError:
        pass

    print("\nDone.")


if __name__ == "__main__":
    main()
