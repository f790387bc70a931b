import logging, time
import sqlalchemy, sqlalchemy.event, sqlalchemy.ext.asyncio

#-----------------------------------------------------------------------------

def before_sqlalchemy_cursor_execute(conn, cursor, statement, parameters, context, executemany):
    conn.info.setdefault("query_start_time", []).append(time.time())


def after_sqlalchemy_cursor_execute(conn, cursor, statement, parameters, context, executemany):
    start_time = conn.info["query_start_time"].pop(-1)
    time_cost = round((time.time()-start_time)*1e3, 2)

    logging.debug(
        " ".join(statement.split()),
        extra = {
            "time_cost" : time_cost,
            "params"    : parameters,
            "records"   : cursor.rowcount
        },
        stacklevel = 9
    )

#-----------------------------------------------------------------------------

class PostgreSQLConfig:
    def __init__(
        self,
        user    : str,
        password: str,
        database: str,
        host    : str,
        port    : int = 0,
        schema  : str = "",
        maxconn : int = 0,
        timeout : int = 0
    ):
        self.host       = host if host else "127.0.0.1"
        self.port       = port if port > 0 else 5432
        self.user       = user
        self.password   = password
        self.database   = database
        self.maxconn    = maxconn if maxconn > 0 else 10
        self.timeout    = timeout if timeout > 0 else 10

        if not schema:
            schemas = []
        else:
            schemas = [s.strip() for s in schema.split(",") if s.strip()]

        if "public" not in schemas:
            schemas.append("public")
        self.schema = ",".join(schemas)


    def print(self):
        print(f"pg              : {self.url.render_as_string(hide_password=True)} search_path={self.schema}")

    #-----------------------------------------------------

    @property
    def url(self) -> sqlalchemy.engine.URL:
        # URL.create escapes credentials containing '@', ':' or '/'.
        return sqlalchemy.engine.URL.create(
            drivername  = "postgresql+psycopg",
            username    = self.user or None,
            password    = self.password or None,
            host        = self.host,
            port        = self.port,
            database    = self.database or None
        )

    def get_async_engine(self) -> sqlalchemy.ext.asyncio.AsyncEngine:
        async_engine = sqlalchemy.ext.asyncio.create_async_engine(
            self.url,
            connect_args= {
                # Reads are cut off server-side after the same timeout used for connecting.
                "options"        : f"-c search_path={self.schema} -c statement_timeout={self.timeout * 1000}",
                "connect_timeout": self.timeout,
            },
            poolclass       = sqlalchemy.AsyncAdaptedQueuePool,
            pool_size       = self.maxconn,
            pool_pre_ping   = True
        )

        sqlalchemy.event.listen(async_engine.sync_engine, "before_cursor_execute", before_sqlalchemy_cursor_execute)
        sqlalchemy.event.listen(async_engine.sync_engine, "after_cursor_execute", after_sqlalchemy_cursor_execute)

        return async_engine

#-----------------------------------------------------------------------------
