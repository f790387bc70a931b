import logging, time

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncEngine

from .config import Config, global_config

#-----------------------------------------------------------------------------

global_engines: dict[str, AsyncEngine] = {}

# Statements longer than this are cut in log records.
_MAX_LOGGED_QUERY = 512

#-----------------------------------------------------------------------------

def init_db(config: Config, db_config: str = ""):
    if db_config not in global_engines:
        global_engines[db_config] = config.get_postgresql(db_config).get_async_engine()


async def close_db():
    global global_engines
    engines, global_engines = global_engines, {}

    for engine in engines.values():
        await engine.dispose()


def get_engine(db_config: str = "") -> AsyncEngine:
    """Engine for a PG_* configuration suffix, created from the global config on first use."""

    if not isinstance(db_config, str):
        db_config = ""

    engine = global_engines.get(db_config)
    if engine is None:
        config = global_config()
        if not config:
            raise ValueError("no configuration found")

        init_db(config, db_config)
        engine = global_engines[db_config]

    return engine

#-----------------------------------------------------------------------------

def _one_line(query: str) -> str:
    s = " ".join(query.split())
    return s if len(s) <= _MAX_LOGGED_QUERY else s[:_MAX_LOGGED_QUERY] + "..."


async def execute_query(
    query       : str,
    params      : dict | None = None,
    db_config   : str = "",
    trace_id    : str = ""
) -> list[dict]:
    """Run a read statement and return its rows as dicts. Errors are logged and re-raised."""

    if not query or not query.strip():
        raise ValueError("SQL script cannot be empty")

    engine = get_engine(db_config)

    extra = {"trace_id": trace_id} if trace_id else {}
    start_time = time.time()

    try:
        async with engine.connect() as conn:
            result = await conn.execute(text(query), params or {})
            rows = [dict(row) for row in result.mappings().all()]

    except Exception as e:
        extra.update(
            sql         = _one_line(query),
            params      = params,
            time_cost   = round((time.time()-start_time)*1e3, 2)
        )
        logging.error(str(e), extra=extra, stacklevel=2)
        raise

    extra.update(
        records     = len(rows),
        time_cost   = round((time.time()-start_time)*1e3, 2)
    )
    logging.info(_one_line(query), extra=extra, stacklevel=2)

    return rows

#-----------------------------------------------------------------------------
