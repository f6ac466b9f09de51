import gc
import logging

import pytest
import sqlitebind

def _open_statements(conn):
    lib = sqlitebind.load_library()
    count = 0
    stmt = lib.sqlite3_next_stmt(conn._db, None)
    while stmt:
        count += 1
        stmt = lib.sqlite3_next_stmt(conn._db, stmt)
    return count

def test_callback_execute_leaves_no_statement(conn):
    conn.execute("create table t (a)")
    conn.execute("insert into t values (1)")
    conn.execute("select a from t", callback=lambda row, fields: None)
    assert _open_statements(conn) == 0

def test_callback_exception_still_finalizes(conn):
    conn.execute("create table t (a)")
    conn.execute("insert into t values (1)")

    def boom(row, fields):
        raise ValueError("stop")

    with pytest.raises(ValueError):
        conn.execute("select a from t", callback=boom)
    assert _open_statements(conn) == 0

def test_failed_step_with_callback_finalizes(conn):
    conn.execute("create table t (a integer primary key)")
    conn.execute("insert into t values (1)")
    with pytest.raises(sqlitebind.ExecutionError):
        conn.execute("insert into t values (1)", callback=lambda row, fields: None)
    assert _open_statements(conn) == 0

def test_failed_bind_finalizes(conn):
    with pytest.raises(sqlitebind.BindingError):
        conn.execute("select ?", object())
    assert _open_statements(conn) == 0

def test_unencodable_text_parameter_finalizes(conn):
    with pytest.raises(sqlitebind.BindingError) as excinfo:
        conn.execute("select ?", "\ud800", callback=lambda row, fields: None)
    assert isinstance(excinfo.value.__cause__, UnicodeEncodeError)
    assert _open_statements(conn) == 0

    with pytest.raises(sqlitebind.BindingError):
        conn.execute("select ?", "\ud800")
    assert _open_statements(conn) == 0

def test_unencodable_text_parameter_in_batch_finalizes(conn):
    conn.execute("create table t (a)")
    with pytest.raises(sqlitebind.BindingError):
        conn.execute_batch("insert into t values(?)", "\udcff")
    assert _open_statements(conn) == 0

def test_interrupted_bind_finalizes(conn, monkeypatch):
    def interrupted(*args, **kwargs):
        raise KeyboardInterrupt

    monkeypatch.setattr(sqlitebind, "bind_parameters", interrupted)
    with pytest.raises(KeyboardInterrupt):
        conn.execute("select ?", 1)
    assert _open_statements(conn) == 0

def test_cursor_holds_statement_until_closed(conn):
    cur = conn.execute("select 1")
    assert _open_statements(conn) == 1
    cur.close()
    assert _open_statements(conn) == 0

def test_close_finalizes_all_cursors():
    conn = sqlitebind.Connection()
    conn.execute("create table t (a)")
    conn.execute("insert into t values (1)")
    cursors = [conn.execute("select a from t") for _ in range(5)]
    cursors[0].next()
    assert _open_statements(conn) == 5

    conn.close()
    assert conn.closed
    for cur in cursors:
        assert cur.closed
        assert cur.next() is None
        cur.close()
    conn.close()

def test_close_with_open_cursor_on_file(db_path):
    conn = sqlitebind.Connection(db_path)
    conn.execute("create table t (a)")
    cur = conn.execute("select * from t")
    conn.close()
    assert cur.closed

    # The file is not held open; a fresh connection can write it.
    conn = sqlitebind.Connection(db_path)
    conn.execute("insert into t values (1)")
    assert conn.changes() == 1
    conn.close()

def test_garbage_collected_cursor_is_finalized(conn, caplog):
    cur = conn.execute("select 1")
    assert _open_statements(conn) == 1
    with caplog.at_level(logging.WARNING, logger="sqlitebind"):
        del cur
        gc.collect()
    assert _open_statements(conn) == 0
    assert "garbage-collected while open" in caplog.text

def test_garbage_collected_connection_is_closed(caplog):
    conn = sqlitebind.Connection()
    with caplog.at_level(logging.WARNING, logger="sqlitebind"):
        del conn
        gc.collect()
    assert "garbage-collected while open" in caplog.text

def test_cursor_keeps_connection_alive():
    conn = sqlitebind.Connection()
    cur = conn.execute("select 42")
    del conn
    gc.collect()
    assert cur.next() == (42,)
    assert not cur.connection.closed
    cur.close()
    cur.connection.close()
