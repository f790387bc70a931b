import base64, datetime, json, logging, os

from .req_ctx import get_req_ctx

#-----------------------------------------------------------------------------

class JsonEncoder(json.JSONEncoder):
    def default(self, o):
        if isinstance(o, datetime.datetime | datetime.date):
            return o.isoformat()

        if isinstance(o, bytes):
            return base64.urlsafe_b64encode(o).decode()

        if isinstance(o, set | frozenset | tuple):
            return list(o)

        # Enums and pydantic models end up here.
        if hasattr(o, "value") and isinstance(getattr(o, "value"), str | int | float):
            return o.value

        if hasattr(o, "model_dump"):
            return o.model_dump(mode="json")

        return super().default(o)

#-----------------------------------------------------------------------------

# Attributes every LogRecord carries; anything else came in through `extra=`.
_RECORD_ATTRIBUTES = frozenset(logging.LogRecord("", 0, "", 0, "", None, None).__dict__) | {"message", "asctime"}

# Request context key -> log field, filled only when the record lacks it.
_REQ_CTX_FIELDS = (
    ("trace_id", "trace_id"),
    ("path", "url"),
    ("method", "method"),
)

# Long values (SQL text, query params) are cut to keep one record per line readable.
_MAX_FIELD_LENGTH = 2048

#-----------------------------------------------------------------------------

class JsonFormatter(logging.Formatter):
    """One JSON object per record: time, level, msg, location, extra fields, trace id."""

    def __init__(self, extra: dict | None = None):
        super().__init__()
        self._extra = dict(extra) if extra else {}

    #-----------------------------------------------------

    @staticmethod
    def _location(record: logging.LogRecord) -> dict:
        location = {}

        if record.funcName and record.funcName != "<module>":
            location["function"] = record.funcName

        if record.pathname:
            filename = record.pathname.removeprefix(os.getcwd()).removeprefix(os.sep)
            location["file"] = f"{filename}:{record.lineno}"

        if record.module:
            location["module"] = record.module

        return location

    @staticmethod
    def _clip(value):
        if isinstance(value, str) and len(value) > _MAX_FIELD_LENGTH:
            return value[:_MAX_FIELD_LENGTH] + "..."
        return value

    #-----------------------------------------------------

    def format(self, record: logging.LogRecord):
        json_record = {
            "time"  : self.formatTime(record, self.datefmt),
            "level" : record.levelname,
            "msg"   : record.getMessage()
        }

        if record.exc_info:
            json_record["exception"] = self.formatException(record.exc_info)
        if record.stack_info:
            json_record["stack_info"] = record.stack_info

        json_record.update(self._location(record))

        json_record.update(
            (key, self._clip(value))
            for key, value in record.__dict__.items()
            if key not in _RECORD_ATTRIBUTES
        )
        json_record.update(self._extra)

        for ctx_key, field in _REQ_CTX_FIELDS:
            if field not in json_record:
                value = get_req_ctx(ctx_key)
                if value:
                    json_record[field] = value

        return json.dumps(json_record, ensure_ascii=False, separators=(",", ":"), cls=JsonEncoder)

#-----------------------------------------------------------------------------

def init_log_console(level: int = logging.INFO, extra: dict | None = None):
    stream_handler = logging.StreamHandler()
    stream_handler.setFormatter(JsonFormatter(extra))

    logging.root.handlers = [stream_handler]
    logging.root.setLevel(level=level)

#-----------------------------------------------------------------------------

def init_log_file(name: str, dir: str, level: int = logging.INFO, extra: dict | None = None):
    if dir:
        os.makedirs(dir, exist_ok=True)

    formatter = JsonFormatter(extra)

    now = datetime.datetime.now()
    file_handler = logging.FileHandler(
        os.path.join(dir, f"{now.strftime('%Y-%m-%d')}_{name}_{now.strftime('%H%M%S_%f')}.log"),
        mode="w+"
    )
    file_handler.setFormatter(formatter)

    stream_handler = logging.StreamHandler()
    stream_handler.setFormatter(formatter)

    logging.root.handlers = [file_handler, stream_handler]
    logging.root.setLevel(level=level)

#-----------------------------------------------------------------------------

def init_log(name: str = "", dir: str = "", level: int = logging.INFO, extra: dict | None = None):
    if name:
        init_log_file(name, dir, level, extra)
    else:
        init_log_console(level, extra)

#-----------------------------------------------------------------------------
