import pytest

from ns_migrator.config import (
    DEFAULT_DATABASE_URL,
    ENV_API_TOKEN,
    ENV_DATABASE_URL,
    ConfigError,
    load_config,
)


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    monkeypatch.delenv(ENV_DATABASE_URL, raising=False)
    monkeypatch.delenv(ENV_API_TOKEN, raising=False)


def _write(tmp_path, text):
    path = tmp_path / "config.yaml"
    path.write_text(text)
    return str(path)


def test_full_file(tmp_path):
    cfg = load_config(_write(tmp_path, """
database:
  url: sqlite:///tmp/meta.db
remote:
  api_token: tok
  connect_timeout: 3
  read_timeout: 30
  retries: 2
clone:
  concurrency: 8
server:
  host: 0.0.0.0
  port: 9000
"""))

    assert cfg.database.url == "sqlite:///tmp/meta.db"
    assert cfg.remote.timeout == (3.0, 30.0)
    assert cfg.remote.retries == 2
    assert cfg.clone.concurrency == 8
    assert cfg.server.host == "0.0.0.0"
    assert cfg.server.port == 9000
    assert "tok" not in repr(cfg.remote)


def test_empty_file_uses_defaults(tmp_path):
    cfg = load_config(_write(tmp_path, ""))

    assert cfg.database.url == DEFAULT_DATABASE_URL
    assert cfg.remote.timeout == (10.0, 60.0)
    assert cfg.remote.retries == 0
    assert cfg.clone.concurrency == 5


def test_env_overrides_file(tmp_path, monkeypatch):
    monkeypatch.setenv(ENV_DATABASE_URL, "sqlite://")
    monkeypatch.setenv(ENV_API_TOKEN, "from-env")

    cfg = load_config(_write(tmp_path, "database:\n  url: sqlite:///file.db\n"))

    assert cfg.database.url == "sqlite://"
    assert cfg.remote.api_token == "from-env"


def test_explicit_missing_file(tmp_path):
    with pytest.raises(ConfigError, match="not found"):
        load_config(str(tmp_path / "absent.yaml"))


@pytest.mark.parametrize("text", [
    "- a list\n",
    "clone: 5\n",
    "clone:\n  concurrency: 0\n",
    "remote:\n  read_timeout: soon\n",
    "remote:\n  retries: -1\n",
])
def test_invalid_values(tmp_path, text):
    with pytest.raises(ConfigError):
        load_config(_write(tmp_path, text))
