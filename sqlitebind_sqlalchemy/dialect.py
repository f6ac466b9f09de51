from sqlalchemy import pool
from sqlalchemy.dialects.sqlite.base import SQLiteDialect

import sqlitebind.dbapi


class SqliteBindDialect(SQLiteDialect):
    # URL form: sqlite+sqlitebind:///path/to.db  (no path -> in-memory)
    driver = "sqlitebind"
    supports_statement_cache = True

    default_paramstyle = "qmark"

    @classmethod
    def import_dbapi(cls):
        return sqlitebind.dbapi

    @classmethod
    def _is_memory_url(cls, url):
        return url.database in (None, "", ":memory:")

    @classmethod
    def get_pool_class(cls, url):
        # Every in-memory connection is its own private database, so keep one
        # per thread instead of pooling several.
        if cls._is_memory_url(url):
            return pool.SingletonThreadPool
        return pool.QueuePool

    def create_connect_args(self, url):
        opts = dict(url.query)
        path = None if self._is_memory_url(url) else url.database

        kwargs = {}
        uri = opts.pop("uri", None)
        if uri is not None:
            kwargs["uri"] = str(uri).lower() in ("1", "true", "yes", "on")
        return ([path], kwargs)

    def _get_server_version_info(self, connection):
        return self.dbapi.sqlite_version_info

    def do_rollback(self, dbapi_connection):
        dbapi_connection.rollback()

    def do_commit(self, dbapi_connection):
        dbapi_connection.commit()

    def do_close(self, dbapi_connection):
        dbapi_connection.close()

    def is_disconnect(self, e, connection, cursor):
        return isinstance(e, self.dbapi.ProgrammingError) and "Cannot operate on a closed database." in str(e)


dialect = SqliteBindDialect
