"""Tests for the FastAPI backend."""

from __future__ import annotations

import pytest
from fastapi.testclient import TestClient

from steam_backend_api import app, get_service


@pytest.fixture
def client(service):
    app.dependency_overrides[get_service] = lambda: service
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()


class TestHealth:
    def test_health(self, client) -> None:
        resp = client.get("/health")
        assert resp.status_code == 200
        assert resp.json() == {"status": "ok"}


class TestSearchEndpoint:
    def test_default_listing(self, client) -> None:
        body = client.get("/api/games").json()
        assert body["success"] is True
        assert len(body["data"]) == 4
        assert body["pagination"]["totalGames"] == 4
        assert body["filters"]["sort"] == "title"
        assert body["filters"]["limit"] == 20

    def test_filters_are_echoed(self, client) -> None:
        body = client.get("/api/games", params={"genre": "Action", "priceMax": "10", "scoreMin": "50"}).json()
        assert [g["id"] for g in body["data"]] == ["10"]
        assert body["filters"]["genre"] == "Action"
        assert body["filters"]["price"] == {"min": None, "max": 10.0}
        assert body["filters"]["score"] == {"min": 50.0, "max": None}

    def test_malformed_numbers_fall_back(self, client) -> None:
        body = client.get("/api/games", params={"page": "-3", "limit": "abc", "priceMin": "cheap"}).json()
        assert body["pagination"]["currentPage"] == 1
        assert body["pagination"]["limit"] == 20
        assert body["filters"]["price"] == {"min": None, "max": None}

    def test_limit_is_capped(self, client) -> None:
        body = client.get("/api/games", params={"limit": "100000"}).json()
        assert body["pagination"]["limit"] == 500

    def test_score_sort_uses_raw_positive_votes(self, client) -> None:
        body = client.get("/api/games", params={"sort": "score", "order": "desc"}).json()
        assert [g["id"] for g in body["data"]] == ["10", "20", "30", "40"]


class TestGameEndpoints:
    def test_get_game(self, client) -> None:
        resp = client.get("/api/games/20")
        assert resp.status_code == 200
        assert resp.json()["data"]["title"] == "Stardew Valley"

    def test_get_missing_game(self, client) -> None:
        resp = client.get("/api/games/missing")
        assert resp.status_code == 404
        assert resp.json() == {"success": False, "message": "Game not found"}

    def test_add_game(self, client) -> None:
        resp = client.post("/api/games", json={"title": "Foo", "positive": 80, "negative": 20})
        assert resp.status_code == 201
        body = resp.json()
        assert body["message"] == "Game added"
        assert body["data"]["totalVotes"] == 100

        hits = client.get("/api/games", params={"search": "foo", "scoreMin": "75"}).json()["data"]
        assert [g["title"] for g in hits] == ["Foo"]
        misses = client.get("/api/games", params={"search": "foo", "scoreMin": "81"}).json()["data"]
        assert misses == []

    def test_add_game_without_title(self, client) -> None:
        resp = client.post("/api/games", json={"positive": 3})
        assert resp.status_code == 400
        assert resp.json()["message"] == "Game title is required"

    def test_update_game(self, client) -> None:
        resp = client.put("/api/games/30", json={"positiveVotes": 60, "price": None})
        assert resp.status_code == 200
        data = resp.json()["data"]
        assert data["totalVotes"] == 120
        assert data["price"] is None

    def test_update_with_nulls_clears_fields(self, client) -> None:
        resp = client.put("/api/games/20", json={"releaseDate": None, "description": None, "tags": None})
        data = resp.json()["data"]
        assert data["releaseDate"] is None
        assert data["description"] == ""
        assert data["tags"] == []
        assert data["title"] == "Stardew Valley"

    def test_update_blank_title(self, client) -> None:
        resp = client.put("/api/games/30", json={"title": " "})
        assert resp.status_code == 400

    def test_update_missing_game(self, client) -> None:
        assert client.put("/api/games/missing", json={"title": "X"}).status_code == 404

    def test_delete_game(self, client) -> None:
        resp = client.delete("/api/games/40")
        assert resp.json() == {"success": True, "message": "Game deleted"}
        assert client.delete("/api/games/40").status_code == 404


class TestCatalogEndpoints:
    def test_stats(self, client) -> None:
        data = client.get("/api/stats").json()["data"]
        assert data["totalGames"] == 4
        assert data["topTags"][0]["count"] == 1

    def test_genres(self, client) -> None:
        assert client.get("/api/genres").json()["data"] == ["Action", "Adventure", "Indie", "RPG"]

    def test_export_csv(self, client) -> None:
        resp = client.get("/api/export/csv", params={"limit": 2})
        assert resp.status_code == 200
        assert resp.headers["content-type"].startswith("text/csv")
        assert resp.headers["content-disposition"].startswith('attachment; filename="games_export_')
        assert len(resp.text.splitlines()) == 3

    def test_export_rejects_bad_limit(self, client) -> None:
        resp = client.get("/api/export/csv", params={"limit": 0})
        assert resp.status_code == 400
        assert resp.json()["success"] is False
        assert resp.json()["message"].startswith("Invalid query.limit")

    def test_import_csv(self, client) -> None:
        resp = client.post("/api/import/csv", json={"csvData": "id,title\nn1,New\nn2,\n"})
        body = resp.json()
        assert resp.status_code == 200
        assert body["message"] == "Import finished: 1 games added"
        assert body["data"]["imported"] == 1
        assert body["data"]["errors"] == 1
        assert body["data"]["errorDetails"][0]["error"] == "Game title is required"

    @pytest.mark.parametrize(
        ("payload", "message"),
        [
            ({}, "No CSV data provided"),
            ({"csvData": "  "}, "No CSV data provided"),
            ({"csvData": "header only"}, "CSV data is empty or has no data rows"),
        ],
    )
    def test_import_csv_rejects_empty_input(self, client, payload, message) -> None:
        resp = client.post("/api/import/csv", json=payload)
        assert resp.status_code == 400
        assert resp.json()["message"] == message
