"""PEP 249 (DB-API 2.0) interface on top of :mod:`sqlitebind`.

This is what generic tooling (SQLAlchemy, pandas, ...) talks to. Transactions
follow the classic pysqlite model: a transaction is opened implicitly before
INSERT/UPDATE/DELETE/REPLACE and ended by :meth:`Connection.commit` or
:meth:`Connection.rollback`.
"""

import collections.abc
import contextlib
import datetime
import decimal
import re
import time
import uuid
import weakref

import sqlitebind
from .native import (
    SQLITE_ABORT, SQLITE_CONSTRAINT, SQLITE_INTERNAL, SQLITE_MISMATCH,
    SQLITE_MISUSE, SQLITE_NOMEM, SQLITE_NOTFOUND, SQLITE_RANGE, SQLITE_TOOBIG,
)

# DB-API 2.0 Globals
apilevel = "2.0"
threadsafety = 1  # Threads may share the module, but not connections
paramstyle = "qmark"  # :name placeholders with a mapping are also accepted

version = sqlitebind.__version__
sqlite_version = sqlitebind.sqlite_version()
sqlite_version_info = tuple(int(p) for p in sqlite_version.split(".")[:3])


# Exceptions
class Warning(Exception):
    pass


class Error(Exception):
    sqlite_errorcode = None


class InterfaceError(Error):
    pass


class DatabaseError(Error):
    pass


class InternalError(DatabaseError):
    pass


class OperationalError(DatabaseError):
    pass


class ProgrammingError(DatabaseError):
    pass


class IntegrityError(DatabaseError):
    pass


class DataError(DatabaseError):
    pass


class NotSupportedError(DatabaseError):
    pass


_CODE_MAP = {
    SQLITE_CONSTRAINT: IntegrityError,
    SQLITE_MISMATCH: DataError,
    SQLITE_TOOBIG: DataError,
    SQLITE_RANGE: ProgrammingError,
    SQLITE_MISUSE: ProgrammingError,
    SQLITE_INTERNAL: InternalError,
    SQLITE_NOTFOUND: InternalError,
    SQLITE_NOMEM: InternalError,
    SQLITE_ABORT: OperationalError,
}


def _translate(exc):
    if isinstance(exc, sqlitebind.ClosedError):
        cls = ProgrammingError
    elif isinstance(exc, sqlitebind.BindingError) and exc.code is None:
        # Rejected on the Python side (unsupported type, int overflow).
        cls = ProgrammingError
    elif exc.code is not None:
        cls = _CODE_MAP.get(exc.code & 0xFF, OperationalError)
    else:
        cls = DatabaseError
    err = cls(str(exc))
    err.sqlite_errorcode = exc.code
    return err


@contextlib.contextmanager
def _translate_errors():
    try:
        yield
    except sqlitebind.Error as e:
        raise _translate(e) from e


# Types
Date = datetime.date
Time = datetime.time
Timestamp = datetime.datetime


def DateFromTicks(ticks):
    return Date(*time.localtime(ticks)[:3])


def TimeFromTicks(ticks):
    return Time(*time.localtime(ticks)[3:6])


def TimestampFromTicks(ticks):
    return Timestamp(*time.localtime(ticks)[:6])


Binary = memoryview
STRING = str
BINARY = bytes
NUMBER = float
DATETIME = datetime.datetime
ROWID = int


def _adapt(value):
    # Extra Python types get the same text/blob forms the stdlib sqlite3
    # adapters and SQLAlchemy's SQLite types use.
    if isinstance(value, datetime.datetime):
        return value.isoformat(" ")
    if isinstance(value, (datetime.date, datetime.time)):
        return value.isoformat()
    if isinstance(value, decimal.Decimal):
        return str(value)
    if isinstance(value, uuid.UUID):
        return value.bytes
    return value


_NOISE_RE = re.compile(
    r"""'(?:[^']|'')*'|"(?:[^"]|"")*"|`(?:[^`]|``)*`|\[[^\]]*\]|--[^\n]*|/\*.*?(?:\*/|$)""",
    re.DOTALL,
)
_TOKEN_RE = re.compile(r'[()]|\w+')
_DML_VERBS = ("INSERT", "UPDATE", "DELETE", "REPLACE")


def _statement_verb(sql):
    # Comments and quoted text cannot hold the verb.
    tokens = _TOKEN_RE.findall(_NOISE_RE.sub(" ", sql))
    if not tokens:
        return None
    verb = tokens[0].upper()
    if verb != "WITH":
        return verb
    # After a WITH clause the verb is the first keyword outside the CTE bodies.
    depth = 0
    for tok in tokens[1:]:
        if tok == "(":
            depth += 1
        elif tok == ")":
            depth -= 1
        elif depth == 0 and tok.upper() in _DML_VERBS + ("SELECT", "VALUES"):
            return tok.upper()
    return verb


def _adapt_params(params):
    if params is None:
        return ()
    if isinstance(params, collections.abc.Mapping):
        # Bound by placeholder name in the engine.
        return {name: _adapt(value) for name, value in params.items()}
    if isinstance(params, (str, bytes)):
        raise ProgrammingError("parameters must be a sequence or a mapping")
    return tuple(_adapt(p) for p in params)


class Cursor:
    def __init__(self, connection):
        self._connection = connection
        self._result = None
        self.description = None
        self.rowcount = -1
        self.lastrowid = None
        self.arraysize = 1
        self._closed = False

    @property
    def connection(self):
        return self._connection

    def _check(self):
        if self._closed:
            raise ProgrammingError("Cannot operate on a closed cursor.")
        self._connection._check()

    def _discard_result(self):
        if self._result is not None:
            result, self._result = self._result, None
            with _translate_errors():
                result.close()

    def close(self):
        if self._closed:
            return
        try:
            self._discard_result()
        finally:
            self._result = None
            self._closed = True
            self._connection._cursors.discard(self)

    def execute(self, operation, parameters=None):
        self._check()
        self._discard_result()
        self.description = None
        self.rowcount = -1

        sql = operation
        params = _adapt_params(parameters)
        conn = self._connection._conn

        verb = _statement_verb(sql)
        is_dml = verb in _DML_VERBS
        with _translate_errors():
            if is_dml and not conn.in_transaction:
                conn.begin()
            # Statements without result columns have already run to completion
            # when this returns None.
            if isinstance(params, dict):
                result = conn.execute(sql, named=params)
            else:
                result = conn.execute(sql, *params)
            if result is not None:
                # Rows are pulled lazily by the fetch methods.
                self._result = result
                self.description = tuple((name, None, None, None, None, None, None) for name in result.fields())
                return self

            if is_dml:
                self.rowcount = conn.changes()
            if verb in ("INSERT", "REPLACE"):
                self.lastrowid = conn.last_insert_id()
        return self

    def executemany(self, operation, seq_of_parameters):
        self._check()
        total = 0
        for params in seq_of_parameters:
            self.execute(operation, params)
            if self.rowcount > 0:
                total += self.rowcount
        self.rowcount = total
        return self

    def fetchone(self):
        self._check()
        if self._result is None:
            return None
        with _translate_errors():
            row = self._result.next()
            if row is None:
                # Release the statement as soon as it is exhausted.
                self._discard_result()
        return row

    def fetchmany(self, size=None):
        if size is None:
            size = self.arraysize
        rows = []
        for _ in range(size):
            r = self.fetchone()
            if r is None:
                break
            rows.append(r)
        return rows

    def fetchall(self):
        rows = []
        while True:
            r = self.fetchone()
            if r is None:
                break
            rows.append(r)
        return rows

    def setinputsizes(self, sizes):
        pass

    def setoutputsize(self, size, column=None):
        pass

    def __iter__(self):
        return self

    def __next__(self):
        r = self.fetchone()
        if r is None:
            raise StopIteration
        return r

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()


class Connection:
    Warning = Warning
    Error = Error
    InterfaceError = InterfaceError
    DatabaseError = DatabaseError
    InternalError = InternalError
    OperationalError = OperationalError
    ProgrammingError = ProgrammingError
    IntegrityError = IntegrityError
    DataError = DataError
    NotSupportedError = NotSupportedError

    def __init__(self, database=None, *, uri=False):
        with _translate_errors():
            self._conn = sqlitebind.Connection(database, uri=uri)
        self._cursors = weakref.WeakSet()

    def _check(self):
        if self._conn.closed:
            raise ProgrammingError("Cannot operate on a closed database.")

    @property
    def in_transaction(self):
        self._check()
        return self._conn.in_transaction

    def cursor(self):
        self._check()
        c = Cursor(self)
        self._cursors.add(c)
        return c

    def execute(self, operation, parameters=None):
        # Convenience method
        return self.cursor().execute(operation, parameters)

    def executemany(self, operation, seq_of_parameters):
        return self.cursor().executemany(operation, seq_of_parameters)

    def commit(self):
        self._check()
        if self._conn.in_transaction:
            with _translate_errors():
                self._conn.commit()

    def rollback(self):
        self._check()
        if self._conn.in_transaction:
            with _translate_errors():
                self._conn.rollback()

    def close(self):
        if self._conn.closed:
            return
        for c in list(self._cursors):
            c.close()
        with _translate_errors():
            self._conn.close()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        try:
            if exc_type:
                self.rollback()
            else:
                self.commit()
        finally:
            self.close()


def connect(database=None, **kwargs):
    if database == ":memory:":
        database = None
    return Connection(database, **kwargs)
