import logging

from fastapi import FastAPI
from fastapi.exceptions import RequestValidationError

from starlette.requests import Request
from starlette.responses import Response
from starlette.routing import Route
from starlette.middleware import Middleware
from starlette.middleware.gzip import GZipMiddleware

from .middlewares import RequestContextMiddleware

from ..pulse.query import HealthQueryService
from ..utils import json_response

#-----------------------------------------------------------------------------

class Server:
    def __init__(
        self,
        query_service   : HealthQueryService,

        server_name     : str = "",
        server_version  : str = "",

        uri_prefix      : str = "",
        debug           : bool = False,

        fastapi_routers : list | None = None
    ):
        self._query_service = query_service

        self._name      = server_name if server_name else "healthquery"
        self._version   = server_version if server_version else "1.0.0"

        self._uri_prefix= uri_prefix
        self._debug     = debug

        self._fastapi_routers = fastapi_routers or []

        #-------------------------------------------------

        self._routes = [
            Route(f"{uri_prefix}/api/health", endpoint=self.health_check_handler, methods=["GET"])
        ]

        self._middlewares = [
            Middleware(GZipMiddleware,
                       minimum_size=10_000),
            Middleware(RequestContextMiddleware)
        ]

    #-----------------------------------------------------

    async def health_check_handler(self, request: Request) -> Response:
        return json_response(
            {
                "service"   : self._name,
                "version"   : self._version,
                "available" : await self._query_service.is_available()
            },
            request     = request,
            disable_log = True
        )

    @staticmethod
    async def validation_error_handler(request: Request, exc: RequestValidationError) -> Response:
        errors = exc.errors()
        message = "; ".join(
            f"{'.'.join(str(part) for part in error.get('loc', ())[1:])}: {error.get('msg', '')}"
            for error in errors
        )
        return json_response(
            {"success": False, "code": "invalid_argument", "message": message or "Malformed request"},
            status_code = 400,
            request     = request
        )

    #-----------------------------------------------------

    def get_routes(self) -> list:
        return self._routes

    def get_middlewares(self) -> list:
        return self._middlewares

    def get_app(self) -> FastAPI:
        app = FastAPI(
            debug       = self._debug,
            title       = self._name,
            version     = self._version,
            routes      = self.get_routes(),
            middleware  = self.get_middlewares()
        )
        app.state.query_service = self._query_service
        app.add_exception_handler(RequestValidationError, self.validation_error_handler)

        from ..pulse.router import query_router
        app.include_router(query_router, prefix=self._uri_prefix)

        for router in self._fastapi_routers:
            app.include_router(router, prefix=self._uri_prefix)

        return app

    #-----------------------------------------------------

    @staticmethod
    async def start(yaml_files: list[str] | None = None, fastapi_routers: list | None = None):
        # Load configuration via file.
        from ..utils import Config, init_db, close_db
        config = Config.init(yaml_filenames=yaml_files or [])
        config.print()

        init_db(config)

        from ..pulse.query import PgSQLRecordSource
        source = PgSQLRecordSource(
            table           = config.query.source_table,
            max_page_size   = config.query.max_page_size
        )

        #-----------------------------------------------------
        # Init query server.

        server = Server(
            query_service   = HealthQueryService.from_config(config, source),

            server_name     = config.http.name,
            server_version  = config.http.version,

            uri_prefix      = config.http.uri_prefix,
            debug           = config.log.level <= logging.DEBUG,

            fastapi_routers = fastapi_routers
        )
        app = server.get_app()

        #-----------------------------------------------------
        # Start asgi server.

        import uvicorn
        asgi_server = uvicorn.Server(
            uvicorn.Config(
                app         = app,
                host        = config.http.host,
                port        = config.http.port,
                headers     = config.http.headers,
                log_level   = config.log.level if config.log.level <= logging.DEBUG else logging.WARNING
            )
        )

        try:
            await asgi_server.serve()
        finally:
            await close_db()

#-----------------------------------------------------------------------------
