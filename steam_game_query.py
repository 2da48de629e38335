from __future__ import annotations

import math
import re
from dataclasses import dataclass, field
from typing import Any

from steam_game_records import to_float, to_int


DEFAULT_SORT_KEY = "title"
DEFAULT_SORT_ORDER = "asc"
# Sorting by "score" uses the raw positive vote count, while the score filter uses the percentage.
SORT_FIELDS = {
    "title": "title",
    "score": "positiveVotes",
    "price": "price",
    "date": "releaseDate",
    "reviews": "totalVotes",
    "popularity": "totalVotes",
}
PAGE_WINDOW_RADIUS = 2


@dataclass(frozen=True)
class Bounds:
    """Inclusive range. A missing side means no constraint on that side."""

    min: Any = None
    max: Any = None

    @property
    def is_empty(self) -> bool:
        return self.min is None and self.max is None

    def contains(self, value: Any) -> bool:
        if self.is_empty:
            return True
        if value is None:
            return False
        if self.min is not None and value < self.min:
            return False
        if self.max is not None and value > self.max:
            return False
        return True

    def as_dict(self) -> dict[str, Any]:
        return {"min": self.min, "max": self.max}


@dataclass(frozen=True)
class GameFilters:
    search: str = ""
    genre: str = ""
    price: Bounds = field(default_factory=Bounds)
    release_date: Bounds = field(default_factory=Bounds)
    score: Bounds = field(default_factory=Bounds)

    @classmethod
    def from_params(
        cls,
        search: str | None = None,
        genre: str | None = None,
        price_min: Any = None,
        price_max: Any = None,
        date_min: str | None = None,
        date_max: str | None = None,
        score_min: Any = None,
        score_max: Any = None,
    ) -> "GameFilters":
        """Build filters from raw request values. Blank or malformed values mean "no constraint"."""
        return cls(
            search=(search or "").strip(),
            genre=(genre or "").strip(),
            price=Bounds(to_float(price_min), to_float(price_max)),
            release_date=Bounds((date_min or "").strip() or None, (date_max or "").strip() or None),
            score=Bounds(to_float(score_min), to_float(score_max)),
        )

    def as_dict(self) -> dict[str, Any]:
        return {
            "search": self.search,
            "genre": self.genre,
            "price": self.price.as_dict(),
            "releaseDate": self.release_date.as_dict(),
            "score": self.score.as_dict(),
        }


@dataclass(frozen=True)
class SortSpec:
    field: str
    descending: bool = False

    @property
    def direction(self) -> int:
        return -1 if self.descending else 1


def compute_score(record: dict[str, Any]) -> float:
    """Positive vote percentage; 0 when the game has no votes."""
    positive = to_int(record.get("positiveVotes"))
    total = to_int(record.get("totalVotes"))
    if total <= 0:
        return 0.0
    return positive / total * 100


def _contains_casefold(haystack: Any, needle: str) -> bool:
    return isinstance(haystack, str) and needle in haystack.casefold()


def _score_expression() -> dict[str, Any]:
    return {
        "$cond": {
            "if": {"$eq": [{"$ifNull": ["$totalVotes", 0]}, 0]},
            "then": 0,
            "else": {"$multiply": [{"$divide": ["$positiveVotes", "$totalVotes"]}, 100]},
        }
    }


@dataclass(frozen=True)
class GameQuery:
    """Storage-agnostic predicate over game records."""

    filters: GameFilters = field(default_factory=GameFilters)

    def matches(self, record: dict[str, Any]) -> bool:
        flt = self.filters

        if flt.search:
            needle = flt.search.casefold()
            tags = record.get("tags") or []
            if not _contains_casefold(record.get("title"), needle) and not any(
                _contains_casefold(tag, needle) for tag in tags
            ):
                return False

        if flt.genre:
            wanted = flt.genre.casefold()
            genres = record.get("genres") or []
            if not any(isinstance(g, str) and g.casefold() == wanted for g in genres):
                return False

        if not flt.price.contains(to_float(record.get("price"))):
            return False

        release_date = record.get("releaseDate")
        if not flt.release_date.contains(release_date if isinstance(release_date, str) else None):
            return False

        if not flt.score.is_empty and not flt.score.contains(compute_score(record)):
            return False

        return True

    def to_mongo(self) -> dict[str, Any]:
        flt = self.filters
        clauses: list[dict[str, Any]] = []

        if flt.search:
            pattern = {"$regex": re.escape(flt.search), "$options": "i"}
            clauses.append({"$or": [{"title": pattern}, {"tags": pattern}]})

        if flt.genre:
            clauses.append({"genres": {"$regex": f"^{re.escape(flt.genre)}$", "$options": "i"}})

        for name, bounds in (("price", flt.price), ("releaseDate", flt.release_date)):
            if bounds.is_empty:
                continue
            cond: dict[str, Any] = {}
            if bounds.min is not None:
                cond["$gte"] = bounds.min
            if bounds.max is not None:
                cond["$lte"] = bounds.max
            clauses.append({name: cond})

        if flt.score.min is not None:
            clauses.append({"$expr": {"$gte": [_score_expression(), flt.score.min]}})
        if flt.score.max is not None:
            clauses.append({"$expr": {"$lte": [_score_expression(), flt.score.max]}})

        if not clauses:
            return {}
        if len(clauses) == 1:
            return clauses[0]
        return {"$and": clauses}


def build_query(filters: GameFilters | None = None) -> GameQuery:
    return GameQuery(filters or GameFilters())


def resolve_sort(sort_key: str | None, order: str | None) -> SortSpec:
    key = (sort_key or "").strip().casefold()
    field_name = SORT_FIELDS.get(key, SORT_FIELDS[DEFAULT_SORT_KEY])
    direction = (order or "").strip().casefold()
    return SortSpec(field=field_name, descending=direction == "desc")


@dataclass(frozen=True)
class Pagination:
    current_page: int
    page_size: int
    total_items: int
    total_pages: int
    offset: int
    pages: list[int]
    has_previous: bool
    has_next: bool

    def as_dict(self) -> dict[str, Any]:
        return {
            "currentPage": self.current_page,
            "totalPages": self.total_pages,
            "totalGames": self.total_items,
            "limit": self.page_size,
            "offset": self.offset,
            "pages": self.pages,
            "hasPrevious": self.has_previous,
            "hasNext": self.has_next,
        }


def paginate(total_items: int, page: int, page_size: int) -> Pagination:
    if page_size < 1:
        raise ValueError("page_size must be >= 1")
    total_items = max(0, int(total_items))
    page = max(1, int(page))
    total_pages = math.ceil(total_items / page_size)
    first = max(1, page - PAGE_WINDOW_RADIUS)
    last = min(total_pages, page + PAGE_WINDOW_RADIUS)
    return Pagination(
        current_page=page,
        page_size=page_size,
        total_items=total_items,
        total_pages=total_pages,
        offset=(page - 1) * page_size,
        pages=list(range(first, last + 1)),
        has_previous=page > 1,
        has_next=page < total_pages,
    )
