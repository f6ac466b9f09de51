import ctypes
import ctypes.util
import logging
import os
import sys
from ctypes import c_int, c_int64, c_double, c_char_p, c_void_p, POINTER

logger = logging.getLogger(__name__)

# Result codes (must match sqlite3.h).
SQLITE_OK = 0
SQLITE_ERROR = 1
SQLITE_INTERNAL = 2
SQLITE_PERM = 3
SQLITE_ABORT = 4
SQLITE_BUSY = 5
SQLITE_LOCKED = 6
SQLITE_NOMEM = 7
SQLITE_READONLY = 8
SQLITE_INTERRUPT = 9
SQLITE_IOERR = 10
SQLITE_CORRUPT = 11
SQLITE_NOTFOUND = 12
SQLITE_FULL = 13
SQLITE_CANTOPEN = 14
SQLITE_PROTOCOL = 15
SQLITE_SCHEMA = 17
SQLITE_TOOBIG = 18
SQLITE_CONSTRAINT = 19
SQLITE_MISMATCH = 20
SQLITE_MISUSE = 21
SQLITE_RANGE = 25
SQLITE_NOTADB = 26
SQLITE_ROW = 100
SQLITE_DONE = 101

# Runtime column types reported by sqlite3_column_type.
SQLITE_INTEGER = 1
SQLITE_FLOAT = 2
SQLITE_TEXT = 3
SQLITE_BLOB = 4
SQLITE_NULL = 5

# sqlite3_open_v2 flags
SQLITE_OPEN_READWRITE = 0x00000002
SQLITE_OPEN_CREATE = 0x00000004
SQLITE_OPEN_URI = 0x00000040
SQLITE_OPEN_FULLMUTEX = 0x00010000

# Destructor sentinel telling the engine to copy bound text/blob buffers,
# so the Python bytes object does not have to outlive the binding.
SQLITE_TRANSIENT = c_void_p(-1)

INT64_MIN = -(2 ** 63)
INT64_MAX = 2 ** 63 - 1

_lib = None


def _candidates():
    lib_path = os.environ.get("SQLITEBIND_NATIVE_LIB")
    if lib_path:
        # An explicit path wins; nothing else is tried.
        return [lib_path]

    candidates = []
    found = ctypes.util.find_library("sqlite3")
    if found:
        candidates.append(found)

    # Common artifact names across platforms
    if sys.platform == "win32":
        candidates += ["sqlite3.dll", "winsqlite3.dll"]
    elif sys.platform == "darwin":
        candidates += ["libsqlite3.dylib", "/usr/lib/libsqlite3.dylib"]
    else:
        candidates += ["libsqlite3.so.0", "libsqlite3.so"]

    # Last resort: the interpreter's own sqlite3 extension. Symbol lookup on a
    # dlopen handle also searches its dependencies, so a dynamically linked
    # _sqlite3 exposes the engine entry points.
    try:
        import _sqlite3
        candidates.append(_sqlite3.__file__)
    except (ImportError, AttributeError):
        pass
    return candidates


def load_library():
    global _lib
    if _lib is not None:
        return _lib

    lib = None
    errors = []
    for candidate in _candidates():
        try:
            loaded = ctypes.CDLL(candidate)
        except OSError as e:
            errors.append(f"{candidate}: {e}")
            continue
        if not hasattr(loaded, "sqlite3_open_v2"):
            errors.append(f"{candidate}: no sqlite3_open_v2 symbol")
            continue
        logger.debug("loaded sqlite library from %s", candidate)
        lib = loaded
        break

    if lib is None:
        detail = "; ".join(errors) if errors else "no candidates"
        raise RuntimeError(
            f"Could not find the sqlite native library ({detail}). "
            "Set SQLITEBIND_NATIVE_LIB env var."
        )

    # Define signatures

    # Handles
    lib.sqlite3_open_v2.argtypes = [c_char_p, POINTER(c_void_p), c_int, c_char_p]
    lib.sqlite3_open_v2.restype = c_int

    lib.sqlite3_close.argtypes = [c_void_p]
    lib.sqlite3_close.restype = c_int

    # Diagnostics
    lib.sqlite3_errmsg.argtypes = [c_void_p]
    lib.sqlite3_errmsg.restype = c_char_p

    lib.sqlite3_errcode.argtypes = [c_void_p]
    lib.sqlite3_errcode.restype = c_int

    lib.sqlite3_errstr.argtypes = [c_int]
    lib.sqlite3_errstr.restype = c_char_p

    # Statements. zSql and pzTail are raw addresses so the batch loop can walk
    # a single buffer without copying the remaining text each time.
    lib.sqlite3_prepare_v2.argtypes = [c_void_p, c_void_p, c_int, POINTER(c_void_p), POINTER(c_void_p)]
    lib.sqlite3_prepare_v2.restype = c_int

    lib.sqlite3_finalize.argtypes = [c_void_p]
    lib.sqlite3_finalize.restype = c_int

    lib.sqlite3_reset.argtypes = [c_void_p]
    lib.sqlite3_reset.restype = c_int

    lib.sqlite3_clear_bindings.argtypes = [c_void_p]
    lib.sqlite3_clear_bindings.restype = c_int

    lib.sqlite3_next_stmt.argtypes = [c_void_p, c_void_p]
    lib.sqlite3_next_stmt.restype = c_void_p

    # Bindings
    lib.sqlite3_bind_parameter_count.argtypes = [c_void_p]
    lib.sqlite3_bind_parameter_count.restype = c_int

    lib.sqlite3_bind_parameter_name.argtypes = [c_void_p, c_int]
    lib.sqlite3_bind_parameter_name.restype = c_char_p

    lib.sqlite3_bind_null.argtypes = [c_void_p, c_int]
    lib.sqlite3_bind_null.restype = c_int

    lib.sqlite3_bind_int64.argtypes = [c_void_p, c_int, c_int64]
    lib.sqlite3_bind_int64.restype = c_int

    lib.sqlite3_bind_double.argtypes = [c_void_p, c_int, c_double]
    lib.sqlite3_bind_double.restype = c_int

    lib.sqlite3_bind_text.argtypes = [c_void_p, c_int, c_char_p, c_int, c_void_p]
    lib.sqlite3_bind_text.restype = c_int

    lib.sqlite3_bind_blob.argtypes = [c_void_p, c_int, c_char_p, c_int, c_void_p]
    lib.sqlite3_bind_blob.restype = c_int

    # Step
    lib.sqlite3_step.argtypes = [c_void_p]
    lib.sqlite3_step.restype = c_int

    # Columns
    lib.sqlite3_column_count.argtypes = [c_void_p]
    lib.sqlite3_column_count.restype = c_int

    lib.sqlite3_column_name.argtypes = [c_void_p, c_int]
    lib.sqlite3_column_name.restype = c_char_p

    lib.sqlite3_column_type.argtypes = [c_void_p, c_int]
    lib.sqlite3_column_type.restype = c_int

    lib.sqlite3_column_int64.argtypes = [c_void_p, c_int]
    lib.sqlite3_column_int64.restype = c_int64

    lib.sqlite3_column_double.argtypes = [c_void_p, c_int]
    lib.sqlite3_column_double.restype = c_double

    # text/blob come back as raw pointers and are copied with string_at using
    # the reported byte count, so embedded NULs survive.
    lib.sqlite3_column_text.argtypes = [c_void_p, c_int]
    lib.sqlite3_column_text.restype = c_void_p

    lib.sqlite3_column_blob.argtypes = [c_void_p, c_int]
    lib.sqlite3_column_blob.restype = c_void_p

    lib.sqlite3_column_bytes.argtypes = [c_void_p, c_int]
    lib.sqlite3_column_bytes.restype = c_int

    # Connection state
    lib.sqlite3_last_insert_rowid.argtypes = [c_void_p]
    lib.sqlite3_last_insert_rowid.restype = c_int64

    lib.sqlite3_changes.argtypes = [c_void_p]
    lib.sqlite3_changes.restype = c_int

    lib.sqlite3_total_changes.argtypes = [c_void_p]
    lib.sqlite3_total_changes.restype = c_int

    lib.sqlite3_get_autocommit.argtypes = [c_void_p]
    lib.sqlite3_get_autocommit.restype = c_int

    # One-shot execution (callback, arg, errmsg out-param all unused)
    lib.sqlite3_exec.argtypes = [c_void_p, c_char_p, c_void_p, c_void_p, c_void_p]
    lib.sqlite3_exec.restype = c_int

    # Library info
    lib.sqlite3_libversion.argtypes = []
    lib.sqlite3_libversion.restype = c_char_p

    lib.sqlite3_threadsafe.argtypes = []
    lib.sqlite3_threadsafe.restype = c_int

    if lib.sqlite3_threadsafe() == 0:
        logger.warning(
            "sqlite library was compiled with SQLITE_THREADSAFE=0; "
            "connections are not safe to share between threads"
        )

    _lib = lib
    return _lib


def libversion():
    return load_library().sqlite3_libversion().decode("ascii")
