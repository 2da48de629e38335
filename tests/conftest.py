from __future__ import annotations

from pathlib import Path
from typing import Any

import pytest

from steam_game_records import normalize_game
from steam_game_service import GameService
from steam_game_store import JsonlGameStore


def make_game(**overrides: Any) -> dict[str, Any]:
    """Complete game record with sensible defaults; keyword arguments use record keys."""
    data: dict[str, Any] = {
        "id": "1",
        "title": "Game",
        "positiveVotes": 0,
        "negativeVotes": 0,
        "price": 9.99,
        "releaseDate": "2020-01-01",
        "genres": ["Action"],
        "tags": ["Shooter"],
    }
    data.update(overrides)
    return normalize_game(data)


@pytest.fixture
def sample_games() -> list[dict[str, Any]]:
    return [
        make_game(
            id="10",
            title="Counter Strike",
            positiveVotes=900,
            negativeVotes=100,
            price=0,
            releaseDate="2012-08-21",
            genres=["Action"],
            tags=["FPS", "Shooter"],
        ),
        make_game(
            id="20",
            title="Stardew Valley",
            positiveVotes=500,
            negativeVotes=10,
            price=14.99,
            releaseDate="2016-02-26",
            genres=["Indie", "RPG"],
            tags=["Farming", "Relaxing"],
        ),
        make_game(
            id="30",
            title="Action Quest",
            positiveVotes=40,
            negativeVotes=60,
            price=4.99,
            releaseDate="2019-05-01",
            genres=["Action", "Adventure"],
            tags=["Platformer"],
        ),
        make_game(
            id="40",
            title="Silent Room",
            positiveVotes=0,
            negativeVotes=0,
            price=None,
            releaseDate=None,
            genres=["Casual"],
            tags=[],
        ),
    ]


@pytest.fixture
def catalog_path(tmp_path: Path) -> Path:
    return tmp_path / "games.jsonl"


@pytest.fixture
def store(catalog_path: Path) -> JsonlGameStore:
    return JsonlGameStore(catalog_path)


@pytest.fixture
def filled_store(store: JsonlGameStore, sample_games: list[dict[str, Any]]) -> JsonlGameStore:
    store.insert_many(sample_games)
    return store


@pytest.fixture
def service(filled_store: JsonlGameStore) -> GameService:
    return GameService(filled_store, excluded_genres=frozenset({"casual"}))


@pytest.fixture
def game_factory():
    return make_game
