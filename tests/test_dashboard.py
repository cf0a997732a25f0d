"""
Tests for the REST API, CSV export and WebSocket feed.
"""

import pytest
from fastapi import WebSocketDisconnect
from fastapi.testclient import TestClient

from dashboard import DashboardManager, create_app
from src.core.opportunity import Quote


@pytest.fixture
def published(snapshot_store, engine, scenario_quotes):
    """Snapshot of one completed cycle"""
    return snapshot_store.publish(scenario_quotes, engine.detect(scenario_quotes))


class TestPricesEndpoint:
    """Tests for /api/prices"""

    def test_empty_before_first_cycle(self, client):
        response = client.get("/api/prices")

        assert response.status_code == 200
        data = response.json()
        assert data["prices"] == []
        assert data["opportunities"] == []
        assert "timestamp" in data

    def test_returns_latest_snapshot(self, client, published):
        data = client.get("/api/prices").json()

        assert [p["exchange"] for p in data["prices"]] == ["X", "Y"]
        assert len(data["opportunities"]) == 1
        opp = data["opportunities"][0]
        assert opp["buy_exchange"] == "X"
        assert opp["sell_exchange"] == "Y"
        assert opp["net_profit"] == pytest.approx(79_300.4)
        assert opp["is_profitable_after_fees"] is True
        assert data["timestamp"].endswith("+09:00")


class TestHistoryEndpoints:
    """Tests for history, price history and clearing"""

    def test_history(self, client, memory_storage, engine, scenario_quotes):
        memory_storage.save_prices(scenario_quotes)
        memory_storage.save_opportunity(engine.detect(scenario_quotes)[0])

        data = client.get("/api/history").json()

        assert len(data["priceHistory"]) == 2
        assert data["arbitrageHistory"][0]["exchange_from"] == "X"

    def test_price_history_default_window(self, client, memory_storage, scenario_quotes):
        memory_storage.save_prices(scenario_quotes)

        response = client.get("/api/price-history")

        assert response.status_code == 200
        assert len(response.json()["priceHistory"]) == 2

    @pytest.mark.parametrize("hours", ["0", "169", "abc"])
    def test_price_history_rejects_invalid_hours(self, client, hours):
        response = client.get(f"/api/price-history?hours={hours}")

        assert response.status_code == 422

    def test_clear_data(self, client, memory_storage, scenario_quotes):
        memory_storage.save_prices(scenario_quotes)

        response = client.delete("/api/clear-data")

        assert response.status_code == 200
        assert "cleared successfully" in response.json()["message"]
        assert memory_storage.get_recent_prices() == []

    def test_storage_error_returns_500(self, client, memory_storage, monkeypatch):
        def broken(limit=100):
            raise RuntimeError("database is down")

        monkeypatch.setattr(memory_storage, "get_recent_prices", broken)

        response = client.get("/api/history")

        assert response.status_code == 500
        assert response.json() == {"detail": "Failed to fetch history"}


class TestCsvExport:
    """Tests for CSV export"""

    def test_price_csv(self, client, memory_storage, scenario_quotes):
        bitpoint = Quote(exchange="BITPoint", last=5_000_500, bid=None, ask=None)
        memory_storage.save_prices(scenario_quotes + [bitpoint])

        response = client.get("/api/export-csv?hours=12")

        assert response.status_code == 200
        assert response.headers["content-type"].startswith("text/csv")
        assert response.headers["content-disposition"] == 'attachment; filename="price_history_12h.csv"'

        lines = response.text.splitlines()
        assert lines[0] == "Exchange,Price,Bid,Ask,Timestamp,Created_At"
        assert len(lines) == 4
        assert lines[1].startswith("X,5000000.0,4999000,5001000,")
        assert lines[3].split(",")[:4] == ["BITPoint", "5000500", "", ""]

    def test_price_csv_rejects_invalid_hours(self, client):
        assert client.get("/api/export-csv?hours=500").status_code == 422

    def test_opportunity_csv(self, client, memory_storage, engine, scenario_quotes):
        memory_storage.save_opportunity(engine.detect(scenario_quotes)[0])

        response = client.get("/api/export/opportunities/csv")

        lines = response.text.splitlines()
        assert lines[0].startswith("exchange_from,exchange_to,price_from,price_to")
        assert lines[0].endswith("is_profitable,timestamp,created_at")
        assert lines[1].startswith("X,Y,5001000,5099000,98000,")
        assert 'filename="opportunities_24h.csv"' in response.headers["content-disposition"]


class TestMonitoringEndpoints:
    """Tests for /metrics and /api/health"""

    def test_prometheus_metrics(self, client, metrics):
        metrics.record_fetch_failure("Zaif")

        response = client.get("/metrics")

        assert response.status_code == 200
        assert 'arb_fetch_failures_total{exchange="Zaif"} 1.0' in response.text

    def test_health(self, client, published):
        data = client.get("/api/health").json()

        assert data["status"] == "ok"
        assert data["cycle"] == 1
        assert data["snapshot_age_seconds"] >= 0
        assert data["websocket_clients"] == 0
        assert data["storage"]["storage_type"] == "memory"


class TestWebSocket:
    """Tests for the /ws feed"""

    def test_initial_data_on_connect(self, client, published):
        with client.websocket_connect("/ws") as websocket:
            message = websocket.receive_json()

        assert message["type"] == "initial_data"
        assert len(message["prices"]) == 2
        assert message["opportunities"][0]["buy_exchange"] == "X"

    def test_ping_pong(self, client):
        with client.websocket_connect("/ws") as websocket:
            websocket.receive_json()
            websocket.send_text("ping")

            assert websocket.receive_text() == "pong"

    def test_rejects_clients_over_limit(self, snapshot_store, memory_storage):
        manager = DashboardManager(snapshot_store, memory_storage, max_connections=1)

        with TestClient(create_app(manager)) as client:
            with client.websocket_connect("/ws") as first:
                first.receive_json()

                with client.websocket_connect("/ws") as second:
                    with pytest.raises(WebSocketDisconnect) as exc_info:
                        second.receive_json()

                assert exc_info.value.code == 1013
                assert len(manager.active_connections) == 1


class FakeWebSocket:
    def __init__(self, fail=False):
        self.fail = fail
        self.sent = []

    async def send_json(self, message):
        if self.fail:
            raise RuntimeError("connection closed")
        self.sent.append(message)


class TestBroadcast:
    """Tests for DashboardManager.broadcast"""

    @pytest.mark.asyncio
    async def test_price_update_reaches_clients(self, manager, published):
        websocket = FakeWebSocket()
        manager.active_connections.append(websocket)

        await manager.broadcast_snapshot(published)

        message = websocket.sent[0]
        assert message["type"] == "price_update"
        assert {"prices", "opportunities", "timestamp"} <= set(message)

    @pytest.mark.asyncio
    async def test_failed_send_drops_client(self, manager, metrics):
        healthy = FakeWebSocket()
        broken = FakeWebSocket(fail=True)
        manager.active_connections.extend([broken, healthy])

        await manager.broadcast({"type": "price_update"})

        assert manager.active_connections == [healthy]
        assert healthy.sent == [{"type": "price_update"}]
        assert metrics.registry.get_sample_value("arb_websocket_connections") == 1


class ErroringWebSocket:
    """Accepts, then fails on send or receive"""

    def __init__(self, fail_on="send"):
        self.fail_on = fail_on
        self.accepted = False

    async def accept(self):
        self.accepted = True

    async def send_json(self, message):
        if self.fail_on == "send":
            raise RuntimeError("client went away")

    async def receive_text(self):
        raise RuntimeError("protocol error")


class TestWebSocketCleanup:
    """Clients that fail outside a clean disconnect release their slot"""

    @staticmethod
    def _endpoint(app):
        return next(route for route in app.routes if route.path == "/ws").endpoint

    @pytest.mark.asyncio
    @pytest.mark.parametrize("fail_on", ["send", "receive"])
    async def test_failed_client_is_removed(self, manager, metrics, fail_on):
        endpoint = self._endpoint(create_app(manager))
        websocket = ErroringWebSocket(fail_on)

        with pytest.raises(RuntimeError):
            await endpoint(websocket)

        assert websocket.accepted
        assert manager.active_connections == []
        assert metrics.registry.get_sample_value("arb_websocket_connections") == 0
