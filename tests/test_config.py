import io
import logging

import pytest

from healthquery.utils.config import Config, FernetEncrypter, global_config, to_fernet_key

YAML = """
log_level: debug
HTTP_PORT: 18080
HTTP_URI_PREFIX: /api/
HTTP_SERVER_NAME: healthquery
QUERY_TIMEZONE: Europe/Berlin
QUERY_MAX_PAGE_SIZE: 200
QUERY_DEFAULT_PAGE_SIZE: 500
FEATURES: [a, b]
HEADERS_JSON: '{"X-A": "1"}'
PG_HOST: db.internal
PG_PORT: 6543
"""


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for key in ("QUERY_TIMEZONE", "QUERY_WEEK_START", "QUERY_DEFAULT_PAGE_SIZE", "QUERY_TIMEOUT",
                "HTTP_PORT", "PG_HOST", "CONFIG_ENCRYPTION_KEY", "ENV"):
        monkeypatch.delenv(key, raising=False)


def test_yaml_values_and_sub_configs():
    config = Config(io.StringIO(YAML))

    assert config.log.level == logging.DEBUG
    assert config.http.port == 18080
    assert config.http.uri_prefix == "/api"
    assert ("Server", "healthquery") in config.http.headers

    assert config.query.timezone == "Europe/Berlin"
    assert config.query.max_page_size == 200
    # Default page size never exceeds the maximum
    assert config.query.default_page_size == 200
    assert config.query.source_table == "health_records"
    assert config.query.timeout is None

    pg = config.get_postgresql()
    assert pg.host == "db.internal"
    assert pg.port == 6543
    assert global_config() is config


def test_environment_overrides_yaml(monkeypatch):
    monkeypatch.setenv("QUERY_TIMEZONE", "Asia/Tokyo")
    monkeypatch.setenv("HTTP_PORT", "9000")

    config = Config(io.StringIO(YAML))
    assert config.query.timezone == "Asia/Tokyo"
    assert config.http.port == 9000


def test_typed_getters():
    config = Config(io.StringIO(YAML))

    assert config.get_list("FEATURES") == ["a", "b"]
    assert config.get_dict("HEADERS_JSON") == {"X-A": "1"}
    assert config.get_int("MISSING", 7) == 7
    assert config.get_bool("MISSING") is False
    assert config.get_str("missing", "x") == "x"


def test_encrypted_values_are_decrypted(monkeypatch):
    encrypter = FernetEncrypter(to_fernet_key("config-key"))
    token = encrypter.encrypt("hunter2")

    monkeypatch.setenv("CONFIG_ENCRYPTION_KEY", "config-key")
    config = Config(io.StringIO(f"PG_PASSWORD: {token}\n"))

    assert config.get_str("PG_PASSWORD") == "hunter2"


def test_init_loads_yaml_and_env_variant(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    monkeypatch.setenv("ENV", "test")
    (tmp_path / "service.yaml").write_text("QUERY_WEEK_START: sunday\nQUERY_TIMEOUT: 5\n")
    (tmp_path / "service.test.yaml").write_text("QUERY_TIMEOUT: 9\n")

    config = Config.init(yaml_filenames=["service.yaml"], dotenv_filenames=[])

    assert config.query.week_start == "sunday"
    assert config.query.timeout == 9
