import datetime
import decimal
import uuid

import pytest
from sqlitebind import dbapi

def test_module_globals():
    assert dbapi.apilevel == "2.0"
    assert dbapi.paramstyle == "qmark"
    assert dbapi.threadsafety == 1
    assert dbapi.sqlite_version_info >= (3, 0, 0)
    assert issubclass(dbapi.IntegrityError, dbapi.DatabaseError)
    assert issubclass(dbapi.DatabaseError, dbapi.Error)

def test_ddl_and_insert(db_path):
    conn = dbapi.connect(db_path)
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

    assert rows == [(1, 'alice'), (2, 'bob')]
    assert [d[0] for d in cur.description] == ["id", "name"]
    assert all(len(d) == 7 for d in cur.description)

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
    assert cur.fetchone() == (1, "a")

    cur.execute("SELECT * FROM foo WHERE id = :target", {"target": 2})
    assert cur.fetchone() == (2, "b")

    conn.close()

def test_parameters_named_reuse():
    conn = dbapi.connect(":memory:")
    cur = conn.cursor()
    cur.execute("CREATE TABLE foo (id INTEGER, val TEXT)")
    cur.execute("INSERT INTO foo VALUES (1, 'a')")
    cur.execute("INSERT INTO foo VALUES (2, 'b')")

    # The same named parameter appears multiple times; it maps to one index.
    cur.execute("SELECT id FROM foo WHERE id = :target OR id = :target ORDER BY id", {"target": 2})
    assert cur.fetchall() == [(2,)]
    conn.close()

def test_parameters_reject_mixed_styles():
    conn = dbapi.connect()
    cur = conn.cursor()

    with pytest.raises(dbapi.ProgrammingError):
        cur.execute("SELECT ? AND :val", {"val": "x"})

    with pytest.raises(dbapi.ProgrammingError):
        cur.execute("SELECT :missing", {"other": 1})

    conn.close()

def test_fetchmany():
    conn = dbapi.connect()
    cur = conn.cursor()
    cur.execute("CREATE TABLE foo (id INTEGER)")
    cur.executemany("INSERT INTO foo VALUES (?)", [(i,) for i in range(10)])
    assert cur.rowcount == 10
    conn.commit()

    cur.execute("SELECT * FROM foo ORDER BY id")
    batch = cur.fetchmany(3)
    assert [r[0] for r in batch] == [0, 1, 2]

    batch = cur.fetchmany(3)
    assert batch[0][0] == 3

    batch = cur.fetchmany(5)  # Remaining 4
    assert len(batch) == 4
    assert cur.fetchmany(5) == []

    conn.close()

def test_rowcount_and_lastrowid():
    conn = dbapi.connect()
    cur = conn.cursor()
    cur.execute("CREATE TABLE foo (id INTEGER PRIMARY KEY, v TEXT)")
    cur.execute("INSERT INTO foo(v) VALUES ('a'), ('b'), ('c')")
    assert cur.rowcount == 3
    assert cur.lastrowid == 3
    cur.execute("UPDATE foo SET v = 'z' WHERE id > 1")
    assert cur.rowcount == 2
    cur.execute("SELECT * FROM foo")
    assert cur.rowcount == -1
    conn.close()

def test_implicit_transaction_and_rollback():
    conn = dbapi.connect()
    conn.execute("CREATE TABLE foo (id INTEGER)")
    assert not conn.in_transaction
    conn.execute("INSERT INTO foo VALUES (1)")
    assert conn.in_transaction
    conn.rollback()
    assert not conn.in_transaction
    assert conn.execute("SELECT count(*) FROM foo").fetchone() == (0,)

    # Commit/rollback without a transaction are no-ops.
    conn.commit()
    conn.rollback()
    conn.close()

def test_context_manager_commits(db_path):
    with dbapi.connect(db_path) as conn:
        conn.execute("CREATE TABLE foo (id INTEGER)")
        conn.execute("INSERT INTO foo VALUES (1)")

    conn = dbapi.connect(db_path)
    assert conn.execute("SELECT id FROM foo").fetchall() == [(1,)]
    conn.close()

def test_integrity_error():
    conn = dbapi.connect()
    conn.execute("CREATE TABLE foo (id INTEGER PRIMARY KEY)")
    conn.execute("INSERT INTO foo VALUES (1)")
    with pytest.raises(dbapi.IntegrityError) as excinfo:
        conn.execute("INSERT INTO foo VALUES (1)")
    assert excinfo.value.sqlite_errorcode == 19
    conn.close()

def test_syntax_error_is_operational():
    conn = dbapi.connect()
    with pytest.raises(dbapi.OperationalError) as excinfo:
        conn.execute("SELEC 1")
    assert "syntax error" in str(excinfo.value)
    conn.close()

def test_unsupported_type_is_programming_error():
    conn = dbapi.connect()
    with pytest.raises(dbapi.ProgrammingError):
        conn.execute("SELECT ?", ({"a": 1},))
    conn.close()

def test_adapted_types():
    conn = dbapi.connect()
    u = uuid.UUID("12345678-1234-5678-1234-567812345678")
    row = conn.execute(
        "SELECT ?, ?, ?, ?",
        (datetime.date(2024, 1, 2), datetime.datetime(2024, 1, 2, 3, 4, 5), decimal.Decimal("1.50"), u),
    ).fetchone()
    assert row == ("2024-01-02", "2024-01-02 03:04:05", "1.50", u.bytes)
    conn.close()

def test_closed_cursor_and_connection():
    conn = dbapi.connect()
    cur = conn.cursor()
    cur.close()
    with pytest.raises(dbapi.ProgrammingError):
        cur.execute("SELECT 1")
    conn.close()
    with pytest.raises(dbapi.ProgrammingError):
        conn.cursor()
    conn.close()

def test_iteration():
    conn = dbapi.connect()
    cur = conn.execute("SELECT 1 UNION ALL SELECT 2")
    assert [r[0] for r in cur] == [1, 2]
    conn.close()

def test_named_parameters_ignore_literals():
    conn = dbapi.connect()
    assert conn.execute("SELECT 'ratio a:b', :x", {"x": 1}).fetchone() == ("ratio a:b", 1)
    assert conn.execute("SELECT 'why?', :x", {"x": 2}).fetchone() == ("why?", 2)
    assert conn.execute("SELECT @a, $b", {"a": "at", "b": "dollar"}).fetchone() == ("at", "dollar")
    conn.close()

def test_positional_parameters_fill_named_placeholders_in_order():
    conn = dbapi.connect()
    assert conn.execute("SELECT :a, :b", (1, 2)).fetchone() == (1, 2)
    conn.close()

def test_dml_after_leading_comment_opens_transaction():
    conn = dbapi.connect()
    conn.execute("CREATE TABLE foo (id INTEGER PRIMARY KEY, v TEXT)")
    cur = conn.execute("-- seed row\n/* two */ INSERT INTO foo(v) VALUES ('a')")
    assert conn.in_transaction
    assert cur.rowcount == 1
    assert cur.lastrowid == 1
    conn.rollback()
    assert conn.execute("SELECT count(*) FROM foo").fetchone() == (0,)
    conn.close()

def test_dml_with_common_table_expression():
    conn = dbapi.connect()
    conn.execute("CREATE TABLE foo (id INTEGER PRIMARY KEY, v TEXT)")
    cur = conn.execute(
        "WITH src(v) AS (SELECT 'x' UNION ALL SELECT 'y') INSERT INTO foo(v) SELECT v FROM src"
    )
    assert conn.in_transaction
    assert cur.rowcount == 2
    assert cur.lastrowid == 2

    cur = conn.execute("WITH ids AS (SELECT 1 AS id) SELECT v FROM foo WHERE id IN (SELECT id FROM ids)")
    assert cur.rowcount == -1
    assert cur.fetchall() == [("x",)]
    conn.commit()
    conn.close()

def test_select_with_dml_words_in_literals_is_not_dml():
    conn = dbapi.connect()
    conn.execute("CREATE TABLE foo (id INTEGER)")
    conn.execute("SELECT 'INSERT INTO foo' -- DELETE").fetchall()
    assert not conn.in_transaction
    conn.close()
