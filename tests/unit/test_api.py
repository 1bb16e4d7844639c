"""
Unit Tests for the HTTP API

The app is built around an Aggregator with in-memory sources, so no request
leaves the process.

Run with:
    pytest tests/unit/test_api.py -v
"""

import logging

import pytest
from fastapi.testclient import TestClient

from app.main import create_app
from core.aggregator import Aggregator
from core.config import settings
from core.errors import SourceFetchError
from core.schemas import RawRecord
from core.source_interface import SourceInterface
from storage.cache import AssetCache


class StaticSource(SourceInterface):
    def __init__(self, name, records=(), error=None):
        self.name = name
        self.records = list(records)
        self.error = error
        self.calls = 0

    async def fetch(self):
        self.calls += 1
        if self.error:
            raise self.error
        return self.records


@pytest.fixture
def source():
    return StaticSource("alpha", [
        RawRecord(source="alpha", external_id="btc", name="Bitcoin", symbol="BTC", price=100, volume=5),
        RawRecord(source="alpha", external_id="eth", name="Ethereum", symbol="ETH", price=90, currency="EUR"),
    ])


@pytest.fixture
def aggregator(source):
    return Aggregator(sources=[source], rates={"EUR": 0.9})


@pytest.fixture
def client(aggregator):
    return TestClient(create_app(aggregator=aggregator, cache=AssetCache(ttl=60)))


class TestSystemEndpoints:
    def test_root(self, client):
        body = client.get("/").json()
        assert body["status"] == "operational"
        assert body["sources"] == ["alpha"]

    def test_health_before_first_cycle(self, client):
        body = client.get("/health").json()
        assert body["status"] == "healthy"
        assert body["cached"] is False

    def test_sources(self, client):
        assert client.get("/sources").json() == {
            "sources": [{"name": "alpha", "category": "crypto", "rate_limit": 60}]
        }


class TestAssetEndpoints:
    def test_assets_are_cached(self, client, source):
        first = client.get("/assets")
        second = client.get("/assets")

        assert first.status_code == 200
        assert first.json()["cached"] is False
        assert second.json()["cached"] is True
        assert source.calls == 1

        ids = [a["id"] for a in first.json()["data"]]
        assert ids == ["bitcoin", "ethereum"]

    def test_asset_prices_are_in_usd(self, client):
        data = {a["id"]: a for a in client.get("/assets").json()["data"]}
        assert data["ethereum"]["price"] == pytest.approx(100)
        assert data["bitcoin"]["sources"] == ["alpha"]

    def test_get_asset_by_id(self, client):
        response = client.get("/assets/bitcoin")
        assert response.status_code == 200
        assert response.json()["symbol"] == "BTC"

    def test_unknown_asset_is_404(self, client):
        assert client.get("/assets/dogecoin").status_code == 404

    def test_report_lists_failures(self, source):
        broken = StaticSource("broken", error=SourceFetchError("broken", "HTTP 503"))
        client = TestClient(create_app(
            aggregator=Aggregator(sources=[source, broken]),
            cache=AssetCache(ttl=60)
        ))

        report = client.get("/report").json()

        assert [f["source"] for f in report["failures"]] == ["broken"]
        assert report["failures"][0]["reason"] == "network"
        assert len(report["assets"]) == 2

        health = client.get("/health").json()
        assert health["status"] == "degraded"
        assert health["failed_sources"] == ["broken"]


class TestExchangeRateEndpoints:
    def test_get_rates(self, client):
        assert client.get("/exchange-rates").json() == {
            "base": "USD",
            "rates": {"USD": 1.0, "EUR": 0.9},
        }

    def test_put_rates_updates_and_invalidates_cache(self, client, source):
        client.get("/assets")

        response = client.put("/exchange-rates", json={"eur": 0.5})

        assert response.status_code == 200
        assert response.json()["rates"]["EUR"] == 0.5

        body = client.get("/assets").json()
        assert body["cached"] is False
        assert source.calls == 2
        eth = next(a for a in body["data"] if a["id"] == "ethereum")
        assert eth["price"] == pytest.approx(180)

    def test_invalid_rate_is_422_and_not_applied(self, client, aggregator):
        response = client.put("/exchange-rates", json={"GBP": 0.8, "EUR": -1})

        assert response.status_code == 422
        assert aggregator.exchange_rates() == {"USD": 1.0, "EUR": 0.9}


class TestLifespan:
    def test_startup_applies_configured_log_level(self, aggregator, monkeypatch):
        app_logger = logging.getLogger("marketagg")
        root = logging.getLogger()
        saved = (app_logger.level, root.level)
        monkeypatch.setattr(settings, "log_level", "DEBUG")

        try:
            with TestClient(create_app(aggregator=aggregator, cache=AssetCache(ttl=60))) as client:
                assert client.get("/").status_code == 200
                assert app_logger.level == logging.DEBUG
        finally:
            app_logger.setLevel(saved[0])
            root.setLevel(saved[1])
