"""Tests for the direct search endpoint."""

import pytest
from fastapi.testclient import TestClient

from insight_assistant.api.deps import get_retrieval_engine
from insight_assistant.core.retrieval import RetrievalEngine
from insight_assistant.main import app
from tests.fakes.fake_services import FakeIndex, small_corpus


@pytest.fixture
def index():
    return FakeIndex(small_corpus().documents)


@pytest.fixture
def client(index):
    async def engine():
        return RetrievalEngine(index)

    app.dependency_overrides[get_retrieval_engine] = engine
    yield TestClient(app)
    app.dependency_overrides.clear()


def test_similarity_search_with_scores(client):
    response = client.post("/api/search", json={"query": "zero trust", "k": 2, "includeScores": True})

    assert response.status_code == 200
    data = response.json()
    assert data["searchType"] == "similarity"
    assert data["query"] == "zero trust"
    assert len(data["results"]) == 2
    assert data["scores"] == [1.0, 0.99]
    assert data["results"][0]["documentType"] == "insight"


def test_quick_wins_without_query(client):
    response = client.post("/api/search", json={"searchType": "quickWins", "k": 5})

    assert response.status_code == 200
    data = response.json()
    assert [r["id"] for r in data["results"]] == [3, 6, 10, 4]
    assert all(r["value"] >= 6 and r["effort"] <= 4 for r in data["results"])
    assert data["metadata"] == {"minValue": 6, "maxEffort": 4, "criteria": "high value, low effort"}
    assert data.get("scores") is None


def test_high_value_uses_request_threshold(client):
    response = client.post("/api/search", json={"searchType": "highValue", "minValue": 9})

    data = response.json()
    assert [r["id"] for r in data["results"]] == [8, 5]
    assert data["metadata"]["criteria"] == "high value actions"


def test_value_effort_search(client):
    response = client.post("/api/search", json={"searchType": "valueEffort", "minRatio": 2.0, "k": 3})

    data = response.json()
    assert [r["id"] for r in data["results"]] == [3, 6, 10]
    assert all(r["valueToEffortRatio"] >= 2.0 for r in data["results"])


def test_company_search(client):
    response = client.post("/api/search", json={"query": "FORCEPOINT", "searchType": "company"})

    data = response.json()
    assert data["results"]
    assert {r["company"] for r in data["results"]} == {"Forcepoint"}


def test_impact_search(client):
    response = client.post("/api/search", json={"query": "low", "searchType": "impact"})

    assert {r["impact"] for r in response.json()["results"]} == {"low"}


@pytest.mark.parametrize("search_type", ["similarity", "company", "impact"])
def test_query_required_for_text_strategies(client, search_type):
    response = client.post("/api/search", json={"query": " ", "searchType": search_type})

    assert response.status_code == 400


def test_unknown_impact_level_is_400(client):
    response = client.post("/api/search", json={"query": "critical", "searchType": "impact"})

    assert response.status_code == 400


def test_unknown_search_type_is_422(client):
    response = client.post("/api/search", json={"query": "x", "searchType": "vibes"})

    assert response.status_code == 422


def test_index_unavailable_is_503(client, index):
    index.fail = True

    response = client.post("/api/search", json={"query": "zero trust"})

    assert response.status_code == 503
    assert response.json() == {"detail": "Search backend unavailable"}
