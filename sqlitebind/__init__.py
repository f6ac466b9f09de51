from .native import (
    load_library, libversion,
    SQLITE_OK, SQLITE_ROW, SQLITE_DONE, SQLITE_NOMEM,
    SQLITE_OPEN_READWRITE, SQLITE_OPEN_CREATE, SQLITE_OPEN_URI, SQLITE_OPEN_FULLMUTEX,
)
from .errors import (
    Error, ClosedError, OpenError, PrepareError, BindingError, ExecutionError,
    StepError, FinalizeError, CloseError, AllocationError, engine_error,
)
from .values import bind_parameters, decode_row, field_names
import contextlib
import ctypes
import logging
import os
import weakref

__version__ = "0.1.0"

__all__ = [
    "Connection", "Cursor", "connect", "sqlite_version",
    "Error", "ClosedError", "OpenError", "PrepareError", "BindingError",
    "ExecutionError", "StepError", "FinalizeError", "CloseError", "AllocationError",
]

logger = logging.getLogger(__name__)

_TRANSACTION_MODES = ("DEFERRED", "IMMEDIATE", "EXCLUSIVE")


def sqlite_version():
    return libversion()


def _pick_params(params, named):
    if named is None:
        return params
    if params:
        raise BindingError("positional and named parameters cannot be mixed")
    return named


class Cursor:
    """Row-by-row access to one prepared statement.

    Created by :meth:`Connection.execute` when no callback is given. The
    cursor owns the statement handle and keeps its connection alive.
    """

    def __init__(self, connection, stmt, fields, sql=None):
        self._connection = connection
        self._lib = connection._lib
        self._stmt = stmt
        self._fields = fields
        self._sql = sql
        self._eof = False
        # Set once a failing step has been reported, so finalize does not
        # report the same failure a second time.
        self._step_failed = False

    @property
    def connection(self):
        return self._connection

    @property
    def closed(self):
        return self._stmt is None

    def fields(self):
        return self._fields

    def eof(self):
        return self._eof

    def next(self):
        # Stepping a statement after DONE would make the engine run it again.
        if self._stmt is None or self._eof:
            return None

        res = self._lib.sqlite3_step(self._stmt)
        if res == SQLITE_ROW:
            return decode_row(self._lib, self._connection._db, self._stmt)
        if res == SQLITE_DONE or res == SQLITE_OK:
            self._eof = True
            return None

        self._step_failed = True
        raise engine_error(self._connection._db, StepError, sql=self._sql)

    def close(self):
        if self._stmt is None:
            return
        stmt = self._stmt
        self._stmt = None
        self._connection._forget_cursor(self)
        res = self._lib.sqlite3_finalize(stmt)
        logger.debug("finalized statement for %r", self._sql)
        if res != SQLITE_OK and not self._step_failed:
            raise engine_error(self._connection._db, FinalizeError, sql=self._sql)

    def _release(self):
        # Called by the owning connection while it closes; errors were either
        # already raised by next() or are moot once the handle goes away.
        if self._stmt is None:
            return
        stmt = self._stmt
        self._stmt = None
        self._lib.sqlite3_finalize(stmt)

    def __iter__(self):
        return self

    def __next__(self):
        row = self.next()
        if row is None:
            raise StopIteration
        return row

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()

    def __del__(self):
        if getattr(self, "_stmt", None) is None:  # __init__ may have failed
            return
        logger.warning("cursor for %r garbage-collected while open", self._sql)
        try:
            self.close()
        except Exception as e:
            logger.error("failed to close cursor: %s", e, exc_info=e)

    def __repr__(self):
        state = "closed" if self._stmt is None else ("eof" if self._eof else "open")
        return f"<{self.__class__.__name__} {state} fields={self._fields!r}>"


class Connection:
    """One open engine database handle.

    ``path`` of ``None`` (or ``":memory:"``) opens a private in-memory
    database. Otherwise the file is opened read/write and created if absent.
    ``uri=True`` lets ``path`` be a ``file:`` URI.
    """

    def __init__(self, path=None, *, uri=False):
        self._lib = load_library()
        self._db = None
        self._cursors = weakref.WeakSet()

        name = ":memory:" if path is None else os.fspath(path)
        self.path = name

        flags = SQLITE_OPEN_READWRITE | SQLITE_OPEN_CREATE | SQLITE_OPEN_FULLMUTEX
        if uri:
            flags |= SQLITE_OPEN_URI

        handle = ctypes.c_void_p()
        res = self._lib.sqlite3_open_v2(name.encode("utf-8"), ctypes.byref(handle), flags, None)
        if res != SQLITE_OK:
            # The engine usually hands back a handle even on failure; read its
            # message, then make sure it is not leaked.
            if handle:
                err = engine_error(handle, OpenError)
                self._lib.sqlite3_close(handle)
            else:
                err = engine_error(None, OpenError, rc=res)
            raise err
        if not handle:
            raise engine_error(None, AllocationError, rc=SQLITE_NOMEM)

        self._db = handle
        logger.debug("opened %s", name)

    @property
    def closed(self):
        return self._db is None

    @property
    def in_transaction(self):
        self._check_open()
        return self._lib.sqlite3_get_autocommit(self._db) == 0

    def _check_open(self):
        if self._db is None:
            raise ClosedError("Cannot operate on a closed database.")

    def _forget_cursor(self, cursor):
        self._cursors.discard(cursor)

    def _prepare(self, buf, offset, length, sql):
        """Prepare one statement starting at ``offset`` in ``buf``.

        Returns ``(stmt, next_offset)``; ``stmt`` is ``None`` when the
        remaining text holds no statement (whitespace or comments).
        """
        base = ctypes.addressof(buf)
        stmt = ctypes.c_void_p()
        tail = ctypes.c_void_p()
        res = self._lib.sqlite3_prepare_v2(
            self._db, base + offset, length - offset, ctypes.byref(stmt), ctypes.byref(tail)
        )
        if res != SQLITE_OK:
            err = engine_error(self._db, PrepareError, sql=sql)
            if stmt:
                self._lib.sqlite3_finalize(stmt)
            raise err
        next_offset = tail.value - base if tail.value else length
        return (stmt if stmt else None), next_offset

    def _encode(self, sql):
        try:
            return sql.encode("utf-8")
        except UnicodeEncodeError as e:
            raise PrepareError(str(e), sql=sql) from e

    def _bind(self, stmt, params, sql):
        # The statement never outlives a failed bind, whatever raised.
        try:
            bind_parameters(self._lib, self._db, stmt, params, sql=sql)
        except BaseException:
            self._lib.sqlite3_finalize(stmt)
            raise

    def execute(self, sql, *params, callback=None, named=None):
        """Prepare and run the first statement in ``sql``.

        With ``callback``, every row is passed as ``callback(row, fields)`` and
        the statement is finalized before returning. Without one, a
        :class:`Cursor` over the live statement is returned, except for
        statements that produce no result columns (DDL, plain DML), which are
        run to completion right away and give ``None``. Returns ``None`` when
        ``sql`` contains no statement.

        ``named`` is a mapping bound by placeholder name instead of ``params``.
        """
        self._check_open()
        params = _pick_params(params, named)

        data = self._encode(sql)
        buf = ctypes.create_string_buffer(data)
        stmt, _ = self._prepare(buf, 0, len(data), sql)
        if stmt is None:
            return None

        self._bind(stmt, params, sql)
        fields = field_names(self._lib, stmt)

        if callback is None and fields:
            cursor = Cursor(self, stmt, fields, sql=sql)
            self._cursors.add(cursor)
            logger.debug("opened cursor for %r", sql)
            return cursor

        error = None
        try:
            while True:
                res = self._lib.sqlite3_step(stmt)
                if res != SQLITE_ROW:
                    break
                if callback is not None:
                    callback(decode_row(self._lib, self._db, stmt), fields)
            if res != SQLITE_DONE and res != SQLITE_OK:
                error = engine_error(self._db, ExecutionError, sql=sql)
        finally:
            self._lib.sqlite3_finalize(stmt)
        if error is not None:
            raise error
        return None

    def execute_batch(self, sql, *params, named=None):
        """Run every statement in ``sql`` to completion, discarding rows.

        ``params`` are bound to the first statement of the batch only; later
        statements run with no bindings, so their placeholders are NULL.
        A ``named`` mapping is scoped the same way.
        Returns the change count of the last completed statement.
        """
        self._check_open()

        data = self._encode(sql)
        length = len(data)
        buf = ctypes.create_string_buffer(data)
        offset = 0
        pending = _pick_params(params, named)

        while offset < length:
            stmt, next_offset = self._prepare(buf, offset, length, sql)
            if stmt is None:
                if next_offset <= offset:
                    break
                offset = next_offset
                continue
            text = data[offset:next_offset].decode("utf-8", errors="replace").strip()
            offset = next_offset

            if pending:
                self._bind(stmt, pending, text)
                pending = ()

            error = None
            try:
                while True:
                    res = self._lib.sqlite3_step(stmt)
                    if res != SQLITE_ROW:
                        break
                if res != SQLITE_DONE and res != SQLITE_OK:
                    error = engine_error(self._db, ExecutionError, sql=text)
            finally:
                self._lib.sqlite3_finalize(stmt)
            if error is not None:
                raise error

        return self._lib.sqlite3_changes(self._db)

    def _exec(self, sql):
        self._check_open()
        res = self._lib.sqlite3_exec(self._db, sql.encode("utf-8"), None, None, None)
        if res != SQLITE_OK:
            raise engine_error(self._db, ExecutionError, sql=sql)

    def begin(self, mode=None):
        if mode is None:
            self._exec("BEGIN")
            return
        mode = mode.upper()
        if mode not in _TRANSACTION_MODES:
            raise ValueError(f"Invalid transaction mode: {mode!r}")
        self._exec(f"BEGIN {mode}")

    def commit(self):
        self._exec("COMMIT")

    def rollback(self):
        self._exec("ROLLBACK")

    @contextlib.contextmanager
    def transaction(self, mode=None):
        self.begin(mode)
        try:
            yield self
        except BaseException:
            self.rollback()
            raise
        self.commit()

    def last_insert_id(self):
        self._check_open()
        return self._lib.sqlite3_last_insert_rowid(self._db)

    def changes(self):
        self._check_open()
        return self._lib.sqlite3_changes(self._db)

    def total_changes(self):
        self._check_open()
        return self._lib.sqlite3_total_changes(self._db)

    def close(self):
        if self._db is None:
            return

        # The engine refuses to close while statements are outstanding.
        for cursor in list(self._cursors):
            cursor._release()
        self._cursors = weakref.WeakSet()

        # Anything the engine still lists has no live cursor; sweep it.
        stmt = self._lib.sqlite3_next_stmt(self._db, None)
        while stmt:
            self._lib.sqlite3_finalize(stmt)
            stmt = self._lib.sqlite3_next_stmt(self._db, None)

        if self._lib.sqlite3_close(self._db) != SQLITE_OK:
            raise engine_error(self._db, CloseError)
        self._db = None
        logger.debug("closed %s", self.path)

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()

    def __del__(self):
        if getattr(self, "_db", None) is None:  # __init__ may have failed
            return
        logger.warning("connection to %s garbage-collected while open", self.path)
        try:
            self.close()
        except Exception as e:
            logger.error("failed to close connection: %s", e, exc_info=e)

    def __repr__(self):
        state = "closed" if self._db is None else "open"
        return f"<{self.__class__.__name__} {self.path!r} {state}>"


def connect(path=None, **kwargs):
    return Connection(path, **kwargs)
