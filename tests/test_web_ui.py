"""Tests for the Flask JSON API."""

import time

import pytest

from fleet.config import FleetConfig
from fleet.storage import StorageError
from fleet.web_ui import create_app

NODE_ID = "ABC-10.0.0.5-MAINNET"
NODE_ARGS = "pubkey=ABC&address=10.0.0.5:6000"


@pytest.fixture
def app(tmp_path, storage):
    cfg = FleetConfig.from_dict(
        {"db_path": str(tmp_path / "fleet.sqlite"), "watchlist_path": str(tmp_path / "watchlist.json")},
        base=tmp_path,
    )
    return create_app(cfg, storage)


@pytest.fixture
def client(app):
    return app.test_client()


def _fill(storage, count=6):
    now = time.time()
    for k in range(count, 0, -1):
        storage.insert_snapshot(NODE_ID, health=100.0, uptime=100000.0 - k * 600, credits=50.0 - k, created_at=now - k * 600)


class TestBasics:

    def test_health(self, client):
        resp = client.get("/api/health")
        assert resp.status_code == 200
        assert resp.get_json()["ok"] is True

    def test_display_tables(self, client):
        data = client.get("/api/display").get_json()
        assert set(data) == {"archetypes", "statuses", "continuity"}
        assert data["statuses"]["ONLINE"]["color"].startswith("#")


class TestNodeHistory:

    def test_missing_pubkey(self, client):
        resp = client.get("/api/node/history?range=7D")
        assert resp.status_code == 400
        assert "pubkey" in resp.get_json()["error"]

    def test_bad_range(self, client):
        resp = client.get(f"/api/node/history?{NODE_ARGS}&range=90D")
        assert resp.status_code == 400

    def test_bad_number(self, client):
        resp = client.get(f"/api/node/history?{NODE_ARGS}&uptime=abc")
        assert resp.status_code == 400

    def test_raw_range(self, client, storage):
        _fill(storage)
        resp = client.get(f"/api/node/history?{NODE_ARGS}&range=24H")
        assert resp.status_code == 200
        data = resp.get_json()
        assert data["node_id"] == NODE_ID
        assert data["granularity"] == "raw"
        assert data["raw_count"] == 6
        assert len(data["points"]) == 6
        assert len(data["annotations"]) == 6
        assert data["vitality"]["status"] == "ONLINE"

    def test_daily_range(self, client, storage):
        _fill(storage)
        data = client.get(f"/api/node/history?{NODE_ARGS}&range=ALL").get_json()
        assert data["granularity"] == "daily"
        assert 1 <= len(data["points"]) <= 2

    def test_store_failure_is_503(self, client, storage, monkeypatch):
        def broken(*a, **kw):
            raise StorageError("disk I/O error")

        monkeypatch.setattr(storage, "fetch_history", broken)
        resp = client.get(f"/api/node/history?{NODE_ARGS}&uptime=5000&last_seen={time.time()}")
        assert resp.status_code == 503
        data = resp.get_json()
        assert "disk I/O error" in data["error"]
        assert data["points"] == []
        assert data["vitality"]["status"] == "ONLINE"


class TestNodeVitality:

    def test_live_args(self, client):
        resp = client.get(f"/api/node/vitality?{NODE_ARGS}&uptime=600&last_seen={time.time()}")
        assert resp.status_code == 200
        data = resp.get_json()
        assert data["vitality"]["status"] == "WARMUP"
        assert data["continuity"]["label"] == "Initializing"
        assert data["display"]["icon"]

    def test_unknown_node_is_offline(self, client):
        data = client.get("/api/node/vitality?pubkey=NOPE").get_json()
        assert data["node_id"] == "NOPE-private-MAINNET"
        assert data["vitality"]["status"] == "OFFLINE"

    def test_masked_arg_uses_private_identity(self, client):
        resp = client.get(f"/api/node/vitality?pubkey=ABC&address=203.0.113.7:6000&masked=1&uptime=5000&last_seen={time.time()}")
        assert resp.get_json()["node_id"] == "ABC-private-MAINNET"

    def test_masked_node_falls_back_to_private_history(self, client, storage):
        storage.insert_snapshot("ABC-private-MAINNET", health=100.0, uptime=600.0, created_at=time.time() - 60)
        data = client.get("/api/node/vitality?pubkey=ABC&address=203.0.113.7:6000&masked=true").get_json()
        assert data["vitality"]["status"] == "WARMUP"


class TestWatchlist:

    def test_add_list_remove(self, client, app):
        assert client.get("/api/watchlist").get_json() == {"nodes": []}

        resp = client.post("/api/watchlist", json={"pubkey": "ABC", "address": "10.0.0.5:6000", "label": "lab"})
        assert resp.status_code == 201

        resp = client.post("/api/watchlist", json={"pubkey": "ABC", "address": "10.0.0.5:6000"})
        assert resp.status_code == 200
        assert resp.get_json()["added"] is False

        nodes = client.get("/api/watchlist").get_json()["nodes"]
        assert [n["node_id"] for n in nodes] == [NODE_ID]
        assert app.config["FLEET"].watchlist_path.exists()

        resp = client.delete("/api/watchlist/ABC")
        assert resp.get_json() == {"removed": True, "count": 0}

    def test_masked_entry_and_lowercase_network(self, client):
        client.post("/api/watchlist", json={"pubkey": "ABC", "address": "203.0.113.7:6000", "masked": True})
        client.post("/api/watchlist", json={"pubkey": "DEF", "address": "10.0.0.5:6000", "network": "devnet"})
        nodes = client.get("/api/watchlist").get_json()["nodes"]
        assert [n["node_id"] for n in nodes] == ["ABC-private-MAINNET", "DEF-10.0.0.5-DEVNET"]

    def test_entry_without_pubkey(self, client):
        resp = client.post("/api/watchlist", json={"address": "10.0.0.5:6000"})
        assert resp.status_code == 400
