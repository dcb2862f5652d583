"""
Tests for the HTTP surface.

The store and pipeline collaborators are patched; the forecast graph runs
on the scripted fakes.
"""

import json
from unittest.mock import patch

import pytest
from fastapi.testclient import TestClient

from conftest import MARKET_URL, FakeLanguageModel, FakeSearchProvider
from forecaster.main import app
from forecaster.schemas.evidence import make_forecast_card
from forecaster.services.store import ForecastStore
from test_forecast_pipeline import SEARCH_RESULTS, _script


@pytest.fixture
def client():
    return TestClient(app)


@pytest.fixture
def store(mock_redis):
    return ForecastStore(mock_redis, ttl_seconds=3600)


def _frames(body: str):
    return [
        json.loads(chunk[len("data: "):])
        for chunk in body.split("\n\n")
        if chunk.startswith("data: ")
    ]


class TestHealth:

    def test_health(self, client):
        response = client.get("/health")
        assert response.status_code == 200
        assert response.json() == {"status": "healthy", "service": "forecaster"}


class TestGetForecast:
    """Tests for GET /forecast/{id}."""

    def test_not_found(self, client, store):
        with patch("forecaster.main.get_forecast_store", return_value=store):
            response = client.get("/forecast/missing")
        assert response.status_code == 404

    def test_found(self, client, store):
        card = make_forecast_card(
            question="Q?", p0=0.4, p_neutral=0.55, p_aware=0.535, alpha=0.1,
            drivers=["A"], influence=[], clusters=[], provenance=[MARKET_URL],
            markdown_report="# Forecast: Q?",
        )
        store.save("abc", card, market_url=MARKET_URL)

        with patch("forecaster.main.get_forecast_store", return_value=store):
            response = client.get("/forecast/abc")

        assert response.status_code == 200
        body = response.json()
        assert body["forecast_id"] == "abc"
        assert body["card"]["p_neutral"] == pytest.approx(0.55)

    def test_unsupported_version_is_server_error(self, client, store, mock_redis):
        mock_redis.set("forecaster:forecast:future", json.dumps({"version": 99, "card": {}}))
        with patch("forecaster.main.get_forecast_store", return_value=store):
            response = client.get("/forecast/future")
        assert response.status_code == 500


class TestPostForecast:
    """Tests for the streaming POST /forecast."""

    def test_streams_until_complete(self, client, store, make_deps):
        def fake_build(settings, sink=None, search_api_key=None, session_id=None):
            deps = make_deps(llm=FakeLanguageModel(_script()), search=FakeSearchProvider(SEARCH_RESULTS))
            deps.sink.inner = sink
            return deps

        with patch("forecaster.main.build_pipeline_deps", side_effect=fake_build), \
                patch("forecaster.main.get_forecast_store", return_value=store):
            response = client.post("/forecast", json={"market_url": MARKET_URL, "drivers": ["Inflation"]})

        assert response.status_code == 200
        assert response.headers["content-type"].startswith("text/event-stream")

        frames = _frames(response.text)
        assert frames[0]["type"] == "connected"
        assert frames[-1]["type"] == "complete"
        assert [f["type"] for f in frames].count("complete") == 1
        assert "report_complete" in [f.get("step") for f in frames]

        run_id = frames[0]["session_id"]
        assert store.get(run_id).card.p_neutral == pytest.approx(frames[-1]["forecast"]["p_neutral"])

    def test_streams_error(self, client, store, make_deps):
        def fake_build(settings, sink=None, search_api_key=None, session_id=None):
            deps = make_deps(llm=FakeLanguageModel({}))
            deps.sink.inner = sink
            return deps

        with patch("forecaster.main.build_pipeline_deps", side_effect=fake_build), \
                patch("forecaster.main.get_forecast_store", return_value=store):
            response = client.post("/forecast", json={"market_url": MARKET_URL, "drivers": ["x"]})

        frames = _frames(response.text)
        assert frames[-1]["type"] == "error"
        assert frames[-1]["details"]["stage"] == "plan"

    def test_setup_failure(self, client):
        with patch("forecaster.main.build_pipeline_deps", side_effect=RuntimeError("no credentials")):
            response = client.post("/forecast", json={"market_url": MARKET_URL})
        assert response.status_code == 500
        assert response.json()["detail"] == "no credentials"

    def test_rejects_bad_interval(self, client):
        response = client.post("/forecast", json={"market_url": MARKET_URL, "history_interval": "5m"})
        assert response.status_code == 422
