import time

from starlette.responses import Response
from starlette.middleware.base import BaseHTTPMiddleware

from ..utils import new_trace_id, set_req_ctx

#-----------------------------------------------------------------------------

class RequestContextMiddleware(BaseHTTPMiddleware):
    """Gives every request a trace id (echoed back as X-Trace-Id) and a start time."""

    async def dispatch(self, request, call_next) -> Response:
        if request.method == "OPTIONS":
            return Response()

        # Record current time.
        request.state.start_time = time.time()

        trace_id = request.headers.get("X-Trace-Id", "").strip() or new_trace_id()
        request.state.trace_id = trace_id

        with set_req_ctx({"trace_id": trace_id, "path": request.url.path, "method": request.method}):
            response = await call_next(request)

        response.headers["X-Trace-Id"] = trace_id
        return response

#-----------------------------------------------------------------------------
