import dotenv, io, json, logging, os, re

from ruamel.yaml import YAML
from typing import Any

from .encrypt import AbstractEncrypter, FernetEncrypter, to_fernet_key
from .http import HttpConfig
from .log import LogConfig
from .postgresql import PostgreSQLConfig
from .query import QueryConfig

#-----------------------------------------------------------------------------

_global_config = None

_DEFAULT_YAML = "config.yaml"

#-----------------------------------------------------------------------------

def _as_list(value: Any) -> list:
    if isinstance(value, str | io.StringIO):
        return [value]
    if isinstance(value, list):
        return value
    return []

#-----------------------------------------------------------------------------

class Config:
    """
    Process configuration.

    Lookup order for every key: environment variable (as given, then upper
    case), then the YAML files in load order, later files winning. Values
    starting with a Fernet token prefix are decrypted with
    CONFIG_ENCRYPTION_KEY when it is set.
    """

    yaml = YAML(typ="safe")

    #-------------------------------------------------

    def __init__(
        self,
        yaml_filenames: str | io.StringIO | list[str | io.StringIO] | None = None,
        encrypter: AbstractEncrypter | None = None
    ):
        self._yaml_filenames = _as_list(yaml_filenames)

        self._raw: dict[str, Any] = {}
        self._postgresqls: dict[str, PostgreSQLConfig] = {}

        self._encrypter = encrypter
        if self._encrypter is None:
            secret = os.environ.get("CONFIG_ENCRYPTION_KEY", "")
            if secret:
                self._encrypter = FernetEncrypter(to_fernet_key(secret))

        for yaml_filename in self._yaml_filenames:
            self.load_yaml(yaml_filename)

        self.refresh()

        global _global_config
        _global_config = self

    #-----------------------------------------------------

    def refresh(self, data: dict | None = None):
        """Merge `data` into the raw values and rebuild the typed sub-configs."""

        for key, value in (data or {}).items():
            self._set(key, value)

        self._postgresqls = {}

        self.log = LogConfig(
            name    = self.get_str("LOG_NAME"),
            dir     = self.get_str("LOG_DIR"),
            level   = logging.getLevelNamesMapping().get(self.get_str("LOG_LEVEL").strip().upper(), logging.INFO)
        )

        self.http = HttpConfig(
            name        = self.get_str("HTTP_SERVER_NAME", "healthquery"),
            version     = self.get_str("HTTP_SERVER_VERSION"),
            host        = self.get_str("HTTP_HOST"),
            port        = self.get_int("HTTP_PORT"),
            uri_prefix  = self.get_str("HTTP_URI_PREFIX"),
            headers     = self.get_dict("HTTP_HEADERS", {})
        )

        self.query = QueryConfig(
            timezone            = self.get_str("QUERY_TIMEZONE"),
            week_start          = self.get_str("QUERY_WEEK_START"),
            default_page_size   = self.get_int("QUERY_DEFAULT_PAGE_SIZE"),
            max_page_size       = self.get_int("QUERY_MAX_PAGE_SIZE"),
            timeout             = self.get_float("QUERY_TIMEOUT"),
            source_table        = self.get_str("QUERY_SOURCE_TABLE"),
            cursor_secret_key   = self.get_str("CURSOR_SECRET_KEY")
        )

    #-----------------------------------------------------

    def _set(self, key: Any, value: Any):
        if not isinstance(key, str) or not key.strip():
            return

        upper_key = key.strip().upper()

        if self._encrypter and isinstance(value, str) and self._encrypter.is_encrypted(value):
            try:
                value = self._encrypter.decrypt(value)
            except ValueError:
                logging.warning(f"Failed to decrypt configuration value '{upper_key}'")
                return

        self._raw[upper_key] = value


    def load_yaml(self, file: str | io.StringIO):
        if isinstance(file, str) and file:
            try:
                with open(file, "r", encoding="utf-8") as f:
                    data = Config.yaml.load(f)
            except OSError as e:
                logging.warning(f"Failed to load YAML file '{file}': {str(e)}")
                return

        elif isinstance(file, io.StringIO):
            data = Config.yaml.load(file)

        else:
            return

        if isinstance(data, dict):
            for key, value in data.items():
                self._set(key, value)

    #-----------------------------------------------------

    def get(self, key: str, default: Any = None) -> Any:
        stripped_key = key.strip()
        if not stripped_key:
            return default

        # Environment variables win over files.
        for env_key in (stripped_key, stripped_key.upper()):
            s = os.environ.get(env_key)
            if s is not None:
                return s

        return self._raw.get(stripped_key.upper(), default)


    def get_str(self, key: str, default: str = "") -> str:
        s = self.get(key)
        if s is None:
            return default

        return s if isinstance(s, str) else str(s)


    def _get_number(self, key: str, cast: type, default):
        obj = self.get(key)
        if obj is None or isinstance(obj, bool):
            return default

        try:
            return cast(obj)
        except (TypeError, ValueError):
            return default


    def get_int(self, key: str, default: int = 0) -> int:
        return self._get_number(key, int, default)


    def get_float(self, key: str, default: float = 0) -> float:
        return self._get_number(key, float, default)


    def get_bool(self, key: str, default: bool = False) -> bool:
        obj = self.get(key)

        if isinstance(obj, bool):
            return obj
        if isinstance(obj, str):
            return obj.strip().upper() in ("TRUE", "YES", "1")
        if isinstance(obj, int):
            return obj != 0

        return default


    def _get_json(self, key: str, kind: type, default):
        obj = self.get(key)

        if isinstance(obj, kind):
            return obj

        if isinstance(obj, str | bytes | bytearray):
            try:
                parsed = json.loads(obj)
            except ValueError:
                return default
            if isinstance(parsed, kind):
                return parsed

        return default


    def get_dict(self, key: str, default: dict | None = None) -> dict:
        return self._get_json(key, dict, default)


    def get_list(self, key: str, default: list | None = None) -> list:
        return self._get_json(key, list, default)

    #-----------------------------------------------------

    def get_postgresql(self, key: str = "") -> PostgreSQLConfig:
        """PG_* settings; a non-empty key reads PG_*_{KEY} for a second database."""

        upper_key = key.strip().upper()
        if upper_key not in self._postgresqls:
            suffix = f"_{upper_key}" if upper_key else ""

            self._postgresqls[upper_key] = PostgreSQLConfig(
                host        = self.get_str(f"PG_HOST{suffix}"),
                port        = self.get_int(f"PG_PORT{suffix}"),
                user        = self.get_str(f"PG_USER{suffix}"),
                password    = self.get_str(f"PG_PASSWORD{suffix}"),
                database    = self.get_str(f"PG_DBNAME{suffix}"),
                schema      = self.get_str(f"PG_SCHEMA{suffix}"),
                maxconn     = self.get_int(f"PG_MAX_CONNECTION{suffix}"),
                timeout     = self.get_int(f"PG_TIMEOUT{suffix}")
            )

        return self._postgresqls[upper_key]

    #-----------------------------------------------------

    def print(self):
        sources = [f if isinstance(f, str) else "<stream>" for f in self._yaml_filenames]

        print(f"Configuration loaded from {sources}:")
        print("----------------------------------------------------------")
        print(f"env             : {os.environ.get('ENV', '').strip().lower()}")

        self.log.print()
        self.http.print()
        self.query.print()
        self.get_postgresql().print()

        print("----------------------------------------------------------")

    #-------------------------------------------------------------------------

    @staticmethod
    def load_dotenv(filenames: str | list[str] | None = None):
        """Export .env values that are not already set in the environment."""

        for filename in _as_list(filenames):
            if not isinstance(filename, str) or not filename.strip():
                continue

            for key, value in dotenv.dotenv_values(filename.strip()).items():
                key, value = (key or "").strip(), (value or "").strip()
                if key and value:
                    os.environ.setdefault(key.upper(), value)

    #-------------------------------------------------------------------------

    @staticmethod
    def yaml_files_for_env(yaml_filenames: str | list[str] | None, env: str) -> list[str]:
        """config.yaml, then each given file, each followed by its .{env}.yaml variant; missing files skipped."""

        candidates = [_DEFAULT_YAML] + [f for f in _as_list(yaml_filenames) if isinstance(f, str)]

        result = []
        for filename in candidates:
            filename = filename.strip()
            if not filename or filename in result:
                continue

            if os.path.exists(filename):
                result.append(filename)

            if env and re.match(r".*\.yaml$", filename, re.IGNORECASE):
                env_filename = f"{filename[:-5]}.{env}.yaml"
                if os.path.exists(env_filename) and env_filename not in result:
                    result.append(env_filename)

        return result


    @staticmethod
    def init(
        yaml_filenames  : str | list[str] | None = None,
        dotenv_filenames: str | list[str] | None = None,
        log_extra       : dict | None = None
    ) -> "Config":
        from ..log import init_log, init_log_console

        # Console logging until the configured handlers are known.
        init_log_console(extra=log_extra)

        Config.load_dotenv(dotenv_filenames if dotenv_filenames is not None else [".env"])

        env = os.environ.get("ENV", "").strip().lower()
        if env and log_extra is not None:
            log_extra["env"] = env

        config = Config(yaml_filenames=Config.yaml_files_for_env(yaml_filenames, env))

        init_log(
            name    = config.log.name,
            dir     = config.log.dir,
            level   = config.log.level,
            extra   = log_extra
        )

        return config

#-----------------------------------------------------------------------------

def global_config() -> Config | None:
    return _global_config

#-----------------------------------------------------------------------------
