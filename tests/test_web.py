"""Tests for the Starlette HTTP boundary."""

import pytest
from starlette.testclient import TestClient

from kakaku.config import KakakuConfig
from kakaku.web import create_app


@pytest.fixture
def config(tmp_path):
    cfg = KakakuConfig()
    cfg.database.path = str(tmp_path / "test.db")
    cfg.maps.api_key = "maps-key"
    cfg.ai.gemini.api_key = "gemini-key"
    return cfg


@pytest.fixture
def dist(tmp_path):
    root = tmp_path / "dist"
    (root / "assets").mkdir(parents=True)
    (root / "index.html").write_text("<html>kakaku</html>", encoding="utf-8")
    (root / "assets" / "app.js").write_text("console.log('ok')", encoding="utf-8")
    return root


def test_client_config(config):
    client = TestClient(create_app(config))
    resp = client.get("/api/config")

    assert resp.status_code == 200
    body = resp.json()
    assert body["mapsApiKey"] == "maps-key"
    assert body["aiApiKey"] == "gemini-key"
    assert body["aiBackend"] == "gemini"
    assert body["aiConfigured"] is True
    assert body["environment"] == "development"
    assert body["database"]["path"] == config.database.path


def test_client_config_placeholder_key(config):
    config.ai.gemini.api_key = "AI Studio Free Tier"
    client = TestClient(create_app(config))
    assert client.get("/api/config").json()["aiConfigured"] is False


def test_extract_not_implemented(config):
    client = TestClient(create_app(config))
    resp = client.post("/api/extract", json={"image": "..."})

    assert resp.status_code == 501
    assert resp.json()["error"].startswith("NOT_IMPLEMENTED")


def test_no_static_files_in_development(config, dist):
    client = TestClient(create_app(config, static_dir=dist))
    assert client.get("/").status_code == 404


class TestProduction:
    @pytest.fixture
    def client(self, config, dist):
        config.server.environment = "production"
        return TestClient(create_app(config, static_dir=dist))

    def test_index(self, client):
        resp = client.get("/")
        assert resp.status_code == 200
        assert "kakaku" in resp.text

    def test_asset(self, client):
        resp = client.get("/assets/app.js")
        assert resp.status_code == 200
        assert "console.log" in resp.text

    def test_spa_fallback(self, client):
        resp = client.get("/stores/place-a")
        assert resp.status_code == 200
        assert "kakaku" in resp.text

    def test_api_still_served(self, client):
        assert client.get("/api/config").json()["environment"] == "production"

    def test_missing_build(self, config, tmp_path):
        config.server.environment = "production"
        client = TestClient(create_app(config, static_dir=tmp_path / "nowhere"))
        assert client.get("/").status_code == 404
