#-----------------------------------------------------------------------------

def normalize_uri_prefix(uri_prefix: str) -> str:
    """'api/v1/' -> '/api/v1'; empty stays empty."""

    stripped = (uri_prefix or "").strip().strip("/")
    return f"/{stripped}" if stripped else ""

#-----------------------------------------------------------------------------

class HttpConfig:
    def __init__(
        self,
        name        : str = "",
        version     : str = "",
        host        : str = "",
        port        : int = 0,
        uri_prefix  : str = "",
        headers     : dict[str, str] | None = None
    ):
        self.name       = name
        self.version    = version

        self.host       = host or "0.0.0.0"
        self.port       = port if port > 0 else 80
        self.uri_prefix = normalize_uri_prefix(uri_prefix)

        # uvicorn takes default response headers as (name, value) pairs.
        self.headers = [(k, str(v)) for k, v in (headers or {}).items() if k and v]

        if name and not any(k.lower() == "server" for k, _ in self.headers):
            self.headers.append(("Server", self.server_header))

    #-----------------------------------------------------

    @property
    def server_header(self) -> str:
        return f"{self.name}/{self.version}" if self.version else self.name

    @property
    def base_url(self) -> str:
        return f"http://{self.host}:{self.port}{self.uri_prefix}"

    def print(self):
        print(f"http            : {self.base_url}")
        for name, value in self.headers:
            print(f"                   {name}: {value}")

#-----------------------------------------------------------------------------
