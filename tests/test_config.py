import os

import pytest

from tubegate.config.settings import Config, EnvSettings, LoggingConfig


def load(monkeypatch, **env):
    for key in ("VERCEL", "VERCEL_ENV", "VERCEL_URL", "SERVERLESS", "BASE_URL", "API_KEY", "APIKEY",
                "API_NAME", "CREATOR_NAME", "DOWNLOAD_DIR", "TEMP_DIR", "COOKIES_PATH", "COBALT_URL"):
        monkeypatch.delenv(key, raising=False)
    for key, value in env.items():
        monkeypatch.setenv(key, value)
    return Config.load_from_env(EnvSettings(_env_file=None))


def test_defaults(monkeypatch):
    config = load(monkeypatch)

    assert config.server.serverless is False
    assert config.server.public_base_url == f"http://localhost:{config.server.port}"
    assert config.storage.download_dir == os.path.join(os.getcwd(), "downloads")
    assert config.storage.cleanup_ttl_seconds == 30
    assert config.storage.sweep_interval_seconds == 120
    assert config.ytdlp.tool_timeout is None
    assert config.tunnel.url is None
    assert config.api.api_key is None
    assert config.creator == "YouTube Download API"


@pytest.mark.parametrize("alias", ["API_KEY", "APIKEY"])
def test_api_key_aliases(monkeypatch, alias):
    assert load(monkeypatch, **{alias: "secret"}).api.api_key == "secret"


def test_creator_name(monkeypatch):
    assert load(monkeypatch, CREATOR_NAME="Someone").creator == "Someone"


def test_serverless_writes_under_tmp(monkeypatch):
    config = load(monkeypatch, VERCEL="1", VERCEL_URL="tubegate.vercel.app")

    assert config.server.serverless is True
    assert config.storage.download_dir == "/tmp/downloads"
    assert config.storage.temp_dir == "/tmp/temp"
    assert config.ytdlp.cookies_path == "/tmp/cookies.txt"
    assert config.server.public_base_url == "https://tubegate.vercel.app"


def test_base_url_and_tunnel(monkeypatch):
    config = load(monkeypatch, BASE_URL="https://dl.example/", COBALT_URL="https://cobalt.example")

    assert config.server.public_base_url == "https://dl.example"
    assert config.tunnel.url == "https://cobalt.example"


def test_log_level_is_validated():
    assert LoggingConfig(level="debug").level == "DEBUG"
    with pytest.raises(ValueError):
        LoggingConfig(level="loud")
