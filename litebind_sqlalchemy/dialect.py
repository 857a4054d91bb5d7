from sqlalchemy import pool
from sqlalchemy import util
from sqlalchemy.dialects.sqlite.base import SQLiteDialect


class LitebindDialect(SQLiteDialect):
    """SQLite dialect running on the litebind DB-API adapter.

    URL form: ``sqlite+litebind:///path/to.db``; query arguments are
    forwarded as connection options, e.g.
    ``sqlite+litebind:///data.db?readonly=true&wide_integers=1``.
    """

    driver = "litebind"
    supports_statement_cache = True
    returns_native_bytes = True
    default_paramstyle = "qmark"

    _bool_options = ("create", "readonly", "memory", "wide_integers", "autocommit")
    _int_options = ("raw_flags", "stmt_cache_size")

    @classmethod
    def import_dbapi(cls):
        from litebind import dbapi

        return dbapi

    @classmethod
    def _is_url_file_db(cls, url):
        if (url.database and url.database != ":memory:") and not util.asbool(
            url.query.get("memory", False)
        ):
            return True
        return False

    @classmethod
    def get_pool_class(cls, url):
        if cls._is_url_file_db(url):
            return pool.QueuePool
        return pool.SingletonThreadPool

    def _get_server_version_info(self, connection):
        return self.dbapi.sqlite_version_info

    def create_connect_args(self, url):
        opts = dict(url.query)
        for key in self._bool_options:
            util.coerce_kw_type(opts, key, bool)
        for key in self._int_options:
            util.coerce_kw_type(opts, key, int)

        path = url.database or ":memory:"
        return ([path], opts)

    def do_rollback(self, dbapi_connection):
        dbapi_connection.rollback()

    def do_commit(self, dbapi_connection):
        dbapi_connection.commit()

    def do_close(self, dbapi_connection):
        dbapi_connection.close()


dialect = LitebindDialect
