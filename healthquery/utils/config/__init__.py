from .config import (
    Config,

    global_config
)

from .encrypt import (
    AbstractEncrypter,
    FernetEncrypter,

    to_fernet_key
)

from .http import HttpConfig
from .log import LogConfig
from .postgresql import PostgreSQLConfig
from .query import QueryConfig
