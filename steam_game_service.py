from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any

from steam_catalog_errors import NotFoundError
from steam_game_query import (
    DEFAULT_SORT_KEY,
    DEFAULT_SORT_ORDER,
    GameFilters,
    Pagination,
    build_query,
    paginate,
    resolve_sort,
)
from steam_game_records import build_new_game, merge_game_update
from steam_game_stats import summarize_games
from steam_game_store import GameStore
from steam_games_csv import ImportReport, decode_games_csv, encode_games_csv
from steam_project_paths import EXCLUDED_GENRES


DEFAULT_PAGE_SIZE = 20
DEFAULT_EXPORT_LIMIT = 1000
LOGGER = logging.getLogger(__name__)
LOGGER.setLevel(logging.INFO)


@dataclass(frozen=True)
class SearchParams:
    filters: GameFilters = field(default_factory=GameFilters)
    sort: str = DEFAULT_SORT_KEY
    order: str = DEFAULT_SORT_ORDER
    page: int = 1
    limit: int = DEFAULT_PAGE_SIZE


@dataclass
class SearchResult:
    games: list[dict[str, Any]]
    pagination: Pagination


class GameService:
    def __init__(self, store: GameStore, excluded_genres: frozenset[str] = EXCLUDED_GENRES) -> None:
        self.store = store
        self.excluded_genres = frozenset(x.casefold() for x in excluded_genres)

    def search_games(self, params: SearchParams) -> SearchResult:
        query = build_query(params.filters)
        sort = resolve_sort(params.sort, params.order)
        total = self.store.count(query)
        pagination = paginate(total, params.page, params.limit)
        games = self.store.find(query, sort=sort, skip=pagination.offset, limit=pagination.page_size)
        return SearchResult(games=games, pagination=pagination)

    def get_game(self, game_id: str) -> dict[str, Any]:
        game = self.store.find_by_id(game_id)
        if game is None:
            raise NotFoundError("Game not found")
        return game

    def add_game(self, data: dict[str, Any]) -> dict[str, Any]:
        record = build_new_game(data)
        stored = self.store.insert(record)
        LOGGER.info("Game added (id=%s, title=%s)", stored["id"], stored["title"])
        return stored

    def update_game(self, game_id: str, changes: dict[str, Any]) -> dict[str, Any]:
        existing = self.get_game(game_id)
        fields = merge_game_update(existing, changes)
        if not self.store.update_by_id(game_id, fields):
            raise NotFoundError("Game not found")
        LOGGER.info("Game updated (id=%s, fields=%s)", game_id, sorted(fields))
        return self.get_game(game_id)

    def delete_game(self, game_id: str) -> None:
        if not self.store.delete_by_id(game_id):
            raise NotFoundError("Game not found")
        LOGGER.info("Game deleted (id=%s)", game_id)

    def get_statistics(self) -> dict[str, Any]:
        return summarize_games(self.store.iter_records())

    def get_genres(self) -> list[str]:
        genres = {
            str(g)
            for g in self.store.distinct_values("genres")
            if g and str(g).casefold() not in self.excluded_genres
        }
        return sorted(genres)

    def export_csv(self, limit: int = DEFAULT_EXPORT_LIMIT) -> str:
        games = self.store.find(build_query(), limit=max(0, limit))
        return encode_games_csv(games)

    def import_csv(self, csv_text: str) -> ImportReport:
        return decode_games_csv(csv_text, self.add_game)
