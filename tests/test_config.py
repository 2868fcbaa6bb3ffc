"""Tests for configuration loading."""

import pytest

from kakaku.config import is_placeholder_key, load_config

ENV_VARS = (
    "GEMINI_API_KEY",
    "API_KEY",
    "ANTHROPIC_API_KEY",
    "GOOGLE_MAPS_API_KEY",
    "KAKAKU_ENV",
)


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)


def test_defaults():
    config = load_config()
    assert config.database.path == "~/.config/kakaku/kakaku.db"
    assert config.storage.root == "~/.config/kakaku/storage"
    assert config.ai.backend == "gemini"
    assert config.ai.gemini.model == "gemini-2.0-flash"
    assert config.ai.api_key == ""
    assert config.server.port == 3000
    assert config.server.environment == "development"


def test_missing_file_uses_defaults(tmp_path):
    config = load_config(tmp_path / "missing.toml")
    assert config.ai.backend == "gemini"


def test_load_toml(tmp_path):
    path = tmp_path / "config.toml"
    path.write_text(
        """
[database]
path = "/data/kakaku.db"

[storage]
root = "/data/storage"

[ai]
backend = "claude"

[ai.claude]
api_key = "sk-test"
model = "claude-test"

[maps]
api_key = "maps-key"

[server]
host = "127.0.0.1"
port = 8080
environment = "production"
static_dir = "/srv/dist"
""",
        encoding="utf-8",
    )
    config = load_config(path)

    assert config.database.path == "/data/kakaku.db"
    assert config.storage.root == "/data/storage"
    assert config.ai.backend == "claude"
    assert config.ai.api_key == "sk-test"
    assert config.ai.claude.model == "claude-test"
    assert config.maps.api_key == "maps-key"
    assert config.server.host == "127.0.0.1"
    assert config.server.port == 8080
    assert config.server.environment == "production"
    assert config.server.static_dir == "/srv/dist"


def test_partial_toml(tmp_path):
    path = tmp_path / "config.toml"
    path.write_text('[ai.gemini]\nmodel = "gemini-pro"\n', encoding="utf-8")
    config = load_config(path)

    assert config.ai.gemini.model == "gemini-pro"
    assert config.database.path == "~/.config/kakaku/kakaku.db"


def test_env_keys(monkeypatch):
    monkeypatch.setenv("GEMINI_API_KEY", "g-key")
    monkeypatch.setenv("ANTHROPIC_API_KEY", "a-key")
    monkeypatch.setenv("GOOGLE_MAPS_API_KEY", "m-key")
    monkeypatch.setenv("KAKAKU_ENV", "production")
    config = load_config()

    assert config.ai.gemini.api_key == "g-key"
    assert config.ai.claude.api_key == "a-key"
    assert config.maps.api_key == "m-key"
    assert config.server.environment == "production"


def test_api_key_fallback(monkeypatch):
    monkeypatch.setenv("API_KEY", "legacy-key")
    assert load_config().ai.gemini.api_key == "legacy-key"


def test_file_key_wins_over_env(tmp_path, monkeypatch):
    monkeypatch.setenv("GEMINI_API_KEY", "env-key")
    path = tmp_path / "config.toml"
    path.write_text('[ai.gemini]\napi_key = "file-key"\n', encoding="utf-8")
    assert load_config(path).ai.gemini.api_key == "file-key"


@pytest.mark.parametrize(
    "key,expected",
    [
        (None, True),
        ("", True),
        ("AI Studio Free Tier", True),
        ("YOUR_API_KEY_HERE", True),
        ("AIzaSyRealLookingKey", False),
    ],
)
def test_is_placeholder_key(key, expected):
    assert is_placeholder_key(key) is expected
