"""Conversion between Python values and engine parameters/columns.

Outbound, the accepted kinds form a closed set::

    None | bool | int | float | str | bytes (bytearray, memoryview)

Anything else is rejected with ``BindingError("invalid argument")`` before the
engine sees it. Inbound, decoding follows the runtime type the engine reports
for each column, not the declared column type.
"""

import ctypes
from collections.abc import Mapping
from typing import Optional, Tuple, Union

from .errors import AllocationError, BindingError, StepError, engine_error
from .native import (
    INT64_MAX, INT64_MIN, SQLITE_BLOB, SQLITE_FLOAT, SQLITE_INTEGER,
    SQLITE_NOMEM, SQLITE_NULL, SQLITE_OK, SQLITE_TEXT, SQLITE_TRANSIENT,
)

SqlValue = Union[None, bool, int, float, str, bytes]
Row = Tuple[Optional[Union[int, float, str, bytes]], ...]


def bind_parameters(lib, db, stmt, params, *, sql=None):
    """Bind ``params`` to ``stmt``.

    A sequence binds by position (1-based, in supply order). A mapping binds
    by placeholder name: ``:name``, ``@name`` and ``$name`` all look up
    ``params["name"]``.
    """
    # Rebinding always starts from a clean statement.
    lib.sqlite3_reset(stmt)
    lib.sqlite3_clear_bindings(stmt)

    if isinstance(params, Mapping):
        pairs = _named_positions(lib, stmt, params, sql)
    else:
        pairs = enumerate(params, 1)

    for idx, param in pairs:
        if param is None:
            res = lib.sqlite3_bind_null(stmt, idx)
        elif isinstance(param, bool):
            # No native boolean in the engine.
            res = lib.sqlite3_bind_int64(stmt, idx, 1 if param else 0)
        elif isinstance(param, int):
            if param < INT64_MIN or param > INT64_MAX:
                raise BindingError(f"parameter {idx}: integer out of 64-bit range", sql=sql)
            res = lib.sqlite3_bind_int64(stmt, idx, param)
        elif isinstance(param, float):
            res = lib.sqlite3_bind_double(stmt, idx, param)
        elif isinstance(param, str):
            try:
                b = param.encode("utf-8")
            except UnicodeEncodeError as e:
                raise BindingError(f"parameter {idx}: {e}", sql=sql) from e
            res = lib.sqlite3_bind_text(stmt, idx, b, len(b), SQLITE_TRANSIENT)
        elif isinstance(param, (bytes, bytearray, memoryview)):
            b = bytes(param)
            res = lib.sqlite3_bind_blob(stmt, idx, b, len(b), SQLITE_TRANSIENT)
        else:
            raise BindingError("invalid argument", sql=sql)

        if res != SQLITE_OK:
            raise engine_error(db, BindingError, sql=sql)


def _named_positions(lib, stmt, params, sql):
    # The engine gives a repeated name a single index, so each name is
    # looked up once.
    pairs = []
    for idx in range(1, lib.sqlite3_bind_parameter_count(stmt) + 1):
        name = lib.sqlite3_bind_parameter_name(stmt, idx)
        if name is None or name.startswith(b"?"):
            raise BindingError(
                f"parameter {idx} is positional but named parameters were supplied", sql=sql
            )
        key = name[1:].decode("utf-8")
        if key not in params:
            raise BindingError(f"missing parameter {key!r}", sql=sql)
        pairs.append((idx, params[key]))
    return pairs


def field_names(lib, stmt) -> Tuple[str, ...]:
    names = []
    for i in range(lib.sqlite3_column_count(stmt)):
        name = lib.sqlite3_column_name(stmt, i)
        names.append(name.decode("utf-8") if name is not None else "")
    return tuple(names)


def decode_row(lib, db, stmt) -> Row:
    row = []
    for i in range(lib.sqlite3_column_count(stmt)):
        kind = lib.sqlite3_column_type(stmt, i)
        if kind == SQLITE_INTEGER:
            row.append(lib.sqlite3_column_int64(stmt, i))
        elif kind == SQLITE_FLOAT:
            row.append(lib.sqlite3_column_double(stmt, i))
        elif kind == SQLITE_TEXT:
            # Pointer first, then the byte count for that representation.
            ptr = lib.sqlite3_column_text(stmt, i)
            size = lib.sqlite3_column_bytes(stmt, i)
            if ptr:
                row.append(ctypes.string_at(ptr, size).decode("utf-8", errors="replace"))
            elif lib.sqlite3_errcode(db) == SQLITE_NOMEM:
                raise engine_error(db, AllocationError)
            else:
                row.append("")
        elif kind == SQLITE_BLOB:
            ptr = lib.sqlite3_column_blob(stmt, i)
            size = lib.sqlite3_column_bytes(stmt, i)
            if ptr and size > 0:
                row.append(ctypes.string_at(ptr, size))
            elif size > 0:
                raise engine_error(db, AllocationError)
            else:
                # A zero-length blob has a NULL pointer.
                row.append(b"")
        elif kind == SQLITE_NULL:
            row.append(None)
        else:
            raise StepError(f"unknown column type {kind} in column {i}")
    return tuple(row)
