import json, logging, time

from starlette.responses import Response
from starlette.requests import Request

from .log import JsonEncoder

#-----------------------------------------------------------------------------

def get_client_ip(request: Request) -> str:
    forwarded = request.headers.get("X-Forwarded-For", "").split(",")[0].strip()
    if forwarded:
        return forwarded

    return request.client.host if request.client else ""

#-----------------------------------------------------------------------------

def request_log_fields(request: Request | None) -> dict:
    """Log fields describing the request: url, method, ip and elapsed milliseconds."""

    if request is None:
        return {}

    fields = {
        "url"   : request.url.path,
        "method": request.method
    }

    ip = get_client_ip(request)
    if ip:
        fields["ip"] = ip

    start_time = getattr(request.state, "start_time", None)
    if start_time:
        fields["time_cost"] = round((time.time()-start_time)*1e3, 2)

    return fields

#-----------------------------------------------------------------------------

def json_response(content: object, status_code: int = 200, request: Request | None = None, disable_log: bool = False) -> Response:
    """JSON response logged at info, warning (4xx) or error (5xx) level."""

    if not disable_log:
        extra = {"status": status_code, **request_log_fields(request)}

        message = ""
        if isinstance(content, dict):
            message = content.get("message") if isinstance(content.get("message"), str) else ""
            if isinstance(content.get("code"), str):
                extra["code"] = content["code"]

        level = logging.ERROR if status_code >= 500 else logging.WARNING if status_code >= 400 else logging.INFO
        logging.log(level, message, stacklevel=2, extra=extra)

    return Response(
        content     = json.dumps(
            content,
            ensure_ascii= False,
            separators  = (',', ':'),
            cls         = JsonEncoder
        ),
        status_code = status_code,
        media_type  = "application/json; charset=utf-8"
    )

#-----------------------------------------------------------------------------
