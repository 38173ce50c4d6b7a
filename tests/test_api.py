import pytest
from fastapi.testclient import TestClient

from semantic_docs import main

from .conftest import StubClient, make_settings


@pytest.fixture
def stub_client(monkeypatch, three_hits):
    monkeypatch.setattr(main, "settings", make_settings())
    stub = StubClient(response=three_hits)
    main.app.state.search_client = stub
    yield stub
    main.app.state.search_client = None


@pytest.fixture
def http():
    return TestClient(main.app)


def test_post_search(http, stub_client):
    resp = http.post("/api/search", json={"query": "deploy app", "limit": 5})

    assert resp.status_code == 200
    body = resp.json()
    assert body["count"] == 3
    assert body["query"] == "deploy app"
    assert set(body["results"][0]) == {"content", "score", "metadata"}
    assert stub_client.calls[0]["max_results"] == 5


@pytest.mark.parametrize("verb", ["get", "put", "delete", "patch", "options"])
def test_other_verbs_not_allowed(http, stub_client, verb):
    resp = http.request(verb.upper(), "/api/search")

    assert resp.status_code == 405
    assert resp.json() == {"error": "Method not allowed", "message": "Use POST method for search"}
    assert stub_client.calls == []


def test_invalid_json(http, stub_client):
    resp = http.post("/api/search", content=b"query=deploy", headers={"Content-Type": "application/json"})

    assert resp.status_code == 400
    assert resp.json() == {"error": "Invalid request"}


def test_query_too_long(http, stub_client):
    resp = http.post("/api/search", json={"query": "x" * 501})

    assert resp.status_code == 400
    assert resp.json()["error"] == "Query too long"


def test_not_configured(http, stub_client, monkeypatch):
    monkeypatch.setattr(main, "settings", make_settings(ai_search_index=None))

    resp = http.post("/api/search", json={"query": "deploy"})

    assert resp.status_code == 500
    assert resp.json()["error"] == "AI Search not configured"
    assert stub_client.calls == []


def test_provider_failure(http, stub_client):
    stub_client.error = RuntimeError("upstream 502")

    resp = http.post("/api/search", json={"query": "deploy"})

    assert resp.status_code == 500
    assert resp.json() == {"error": "Search failed", "message": "upstream 502"}


def test_health_reports_configuration(http, monkeypatch):
    monkeypatch.setattr(main, "settings", make_settings(ai_search_index=None))

    resp = http.get("/health")

    assert resp.status_code == 200
    assert resp.json() == {"status": "ok", "backend": "autorag", "configured": False}


def test_lifecycle_builds_and_closes_client(monkeypatch):
    monkeypatch.setattr(main, "settings", make_settings())
    built = StubClient()
    monkeypatch.setattr("semantic_docs.providers.build_search_client", lambda settings: built)

    with TestClient(main.app):
        assert main.app.state.search_client is built

    assert built.closed is True
    assert main.app.state.search_client is None


def test_head_is_not_allowed(http, stub_client):
    resp = http.head("/api/search")

    assert resp.status_code == 405
    assert stub_client.calls == []


def test_cors_preflight_still_answered(http, stub_client):
    resp = http.options(
        "/api/search",
        headers={"Origin": "https://docs.example", "Access-Control-Request-Method": "POST"},
    )

    assert resp.status_code == 200
    assert "access-control-allow-origin" in resp.headers


def test_non_finite_score_renders_as_json(http, stub_client):
    stub_client.response = {"results": [{"content": "a", "score": float("nan"), "metadata": {"weight": float("inf")}}]}

    resp = http.post("/api/search", json={"query": "deploy"})

    assert resp.status_code == 200
    assert resp.json()["results"] == [{"content": "a", "score": 0.0, "metadata": {"weight": None}}]


def test_lone_surrogate_query_is_rejected(http, stub_client):
    resp = http.post(
        "/api/search",
        content=b'{"query": "\\ud800"}',
        headers={"Content-Type": "application/json"},
    )

    assert resp.status_code == 400
    assert resp.json() == {"error": "Invalid request"}
    assert stub_client.calls == []
