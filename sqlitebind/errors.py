from .native import SQLITE_NOMEM, load_library


class Error(Exception):
    """Base class for every error raised by the binding.

    ``code`` is the engine result code when the failure came from the engine,
    otherwise ``None``. ``sql`` is the statement text being processed, if any.
    """

    def __init__(self, message, code=None, sql=None):
        super().__init__(message)
        self.code = code
        self.sql = sql


class ClosedError(Error):
    pass


class OpenError(Error):
    pass


class PrepareError(Error):
    pass


class BindingError(Error):
    pass


class ExecutionError(Error):
    pass


class StepError(Error):
    pass


class FinalizeError(Error):
    pass


class CloseError(Error):
    pass


class AllocationError(Error):
    pass


def engine_error(db_handle, exc_class, *, rc=None, sql=None):
    """Build ``exc_class`` from the engine's last error state on ``db_handle``.

    The engine's message is used verbatim. A NOMEM code always produces an
    ``AllocationError`` regardless of the operation that hit it.
    """
    lib = load_library()
    if db_handle:
        code = lib.sqlite3_errcode(db_handle)
        msg = lib.sqlite3_errmsg(db_handle)
    else:
        code = rc if rc is not None else SQLITE_NOMEM
        msg = lib.sqlite3_errstr(code)
    # Native messages should be UTF-8, but don't crash if not.
    msg_str = msg.decode("utf-8", errors="replace") if msg else f"Unknown error {code}"
    if (code & 0xFF) == SQLITE_NOMEM:
        exc_class = AllocationError
    return exc_class(msg_str, code=code, sql=sql)
