import dataclasses

import pytest

import server


@pytest.fixture
def client(monkeypatch, analyzer):
    cfg = dataclasses.replace(server.CFG, universe=("DOWN", "UP", "CHOP"), market_scan_background=False)
    monkeypatch.setattr(server, "CFG", cfg)
    monkeypatch.setitem(server._market_scan_state, "running", False)
    monkeypatch.setitem(server._market_scan_state, "last_error", None)
    server.set_analyzer(analyzer)
    server.app.config["TESTING"] = True
    yield server.app.test_client()
    server.set_analyzer(None)


class TestBasics:
    def test_health(self, client):
        body = client.get("/api/health").get_json()
        assert body["status"] == "ok"
        assert "timestamp" in body

    def test_stocks(self, client):
        assert client.get("/api/stocks").get_json() == [{"symbol": "DOWN"}, {"symbol": "UP"}, {"symbol": "CHOP"}]


class TestAnalyze:
    def test_analyze_is_cached(self, client, provider):
        r = client.get("/api/analyze/down?lookbackDays=10")
        assert r.status_code == 200
        body = r.get_json()
        assert body["symbol"] == "DOWN"
        assert body["currentStreak"] == 4
        assert body["probabilities"]["3"]["occurrences"] == 1

        assert client.get("/api/analyze/DOWN?lookbackDays=10").get_json() == body
        assert len(provider.calls) == 1

    def test_unknown_symbol_is_502(self, client):
        r = client.get("/api/analyze/NOPE")
        assert r.status_code == 502
        assert r.get_json()["symbol"] == "NOPE"

    @pytest.mark.parametrize("query", ["streakLength=abc", "streakLength=0", "lookbackDays=-1"])
    def test_bad_parameters_are_400(self, client, query):
        r = client.get(f"/api/analyze/DOWN?{query}")
        assert r.status_code == 400
        assert "error" in r.get_json()

    def test_batch(self, client):
        r = client.post("/api/analyze-batch", json={"symbols": ["DOWN", "NOPE", "CHOP"]})
        assert [x["symbol"] for x in r.get_json()] == ["DOWN", "CHOP"]

    def test_batch_skips_null_symbols(self, client, provider):
        r = client.post("/api/analyze-batch", json={"symbols": [None, "down", "  "]})
        assert [x["symbol"] for x in r.get_json()] == ["DOWN"]
        assert provider.calls == [("DOWN", "full")]

    def test_batch_requires_symbols(self, client):
        r = client.post("/api/analyze-batch", json={"symbols": "DOWN"})
        assert r.status_code == 400
        assert r.get_json()["error"] == "Symbols array required"


class TestScans:
    def test_opportunities(self, client):
        body = client.post("/api/opportunities", json={"symbols": ["DOWN", "UP", "CHOP"]}).get_json()
        assert [x["symbol"] for x in body["opportunities"]] == ["CHOP"]
        assert body["totalAnalyzed"] == 3

    def test_quick_scan(self, client):
        body = client.get("/api/quick-scan?limit=2").get_json()
        assert body["totalScanned"] == 2

    def test_market_scan_then_cached(self, client):
        first = client.get("/api/market-scan").get_json()
        assert first["cached"] is False
        assert first["totalScanned"] == 3
        assert all("metrics" in row for row in first["results"])

        second = client.get("/api/market-scan").get_json()
        assert second["cached"] is True
        assert second["results"] == first["results"]

    def test_market_scan_failure_is_reported(self, client, analyzer, monkeypatch):
        def boom(*args, **kwargs):
            raise RuntimeError("provider down")

        monkeypatch.setattr(analyzer, "market_scan", boom)
        body = client.get("/api/market-scan").get_json()
        assert body["scanning"] is True
        assert body["lastError"] == "provider down"
        assert server._market_scan_state["running"] is False


class TestBacktests:
    def test_backtest(self, client):
        r = client.post("/api/backtest", json={"symbol": "down", "streakLength": 1, "lookbackDays": 10})
        body = r.get_json()
        assert r.status_code == 200
        assert body["totalTrades"] == 4
        assert body["trades"][0]["entryDate"] == "2024-03-28"

    def test_backtest_requires_symbol(self, client):
        assert client.post("/api/backtest", json={}).status_code == 400

    def test_portfolio(self, client):
        r = client.post("/api/portfolio-backtest", json={
            "symbols": ["DOWN", "NOPE"], "streakLength": 1, "lookbackDays": 10, "initialCapital": 2000,
        })
        body = r.get_json()
        assert r.status_code == 200
        assert body["portfolio"]["finalCapital"] == pytest.approx(1000.0 * 90 / 92 * 89 / 87 + 1000.0)
        assert "error" in body["stockResults"][1]
        assert body["summary"]["totalTrades"] == 4

    @pytest.mark.parametrize("payload", [
        {},
        {"symbols": []},
        {"symbols": ["DOWN"], "weights": [1]},
        {"symbols": ["DOWN", "UP"], "weights": {"DOWN": 1}},
        {"symbols": ["DOWN", "UP"], "weights": {"DOWN": "abc", "UP": 1}},
    ])
    def test_portfolio_rejects(self, client, payload):
        assert client.post("/api/portfolio-backtest", json=payload).status_code == 400


class TestCacheAndAlerts:
    def test_clear_cache(self, client):
        client.get("/api/analyze/DOWN")
        body = client.post("/api/clear-cache").get_json()
        assert body["itemsCleared"] == 1

    def test_alert(self, client):
        r = client.post("/api/alerts/evaluate", json={
            "symbol": "DOWN", "alertType": "streak", "conditions": {"streakLength": 3},
        })
        body = r.get_json()
        assert body["triggered"] is True
        assert body["data"]["currentStreak"] == 4

    def test_alert_not_triggered(self, client):
        r = client.post("/api/alerts/evaluate", json={
            "symbol": "UP", "alertType": "streak", "conditions": {"streakLength": 1},
        })
        assert r.get_json() == {"triggered": False}

    def test_alert_unknown_type(self, client):
        r = client.post("/api/alerts/evaluate", json={"symbol": "DOWN", "alertType": "moon"})
        assert r.status_code == 400
