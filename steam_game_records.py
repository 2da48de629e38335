from __future__ import annotations

import math
import re
import time
from typing import Any
from uuid import uuid4

from pydantic import AliasChoices, BaseModel, ConfigDict, Field

from steam_catalog_errors import ValidationError


LIST_FIELDS = ("tags", "genres", "developers", "publishers", "languages", "categories")
TEXT_FIELDS = ("description", "headerImage")
OPTIONAL_SCALAR_FIELDS = ("metacriticScore", "recommendations", "estimatedOwners")

_LEADING_INT_RE = re.compile(r"^\s*([-+]?\d+)")
_LEADING_FLOAT_RE = re.compile(r"^\s*([-+]?(?:\d+(?:\.\d*)?|\.\d+)(?:[eE][-+]?\d+)?)")


class GamePayload(BaseModel):
    """Game fields as sent by clients. Every field is optional so the same model serves create and partial update."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    id: Any = Field(default=None, validation_alias=AliasChoices("id", "appId"))
    title: str | None = None
    positive_votes: Any = Field(
        default=None,
        alias="positiveVotes",
        validation_alias=AliasChoices("positiveVotes", "positive"),
    )
    negative_votes: Any = Field(
        default=None,
        alias="negativeVotes",
        validation_alias=AliasChoices("negativeVotes", "negative"),
    )
    price: Any = None
    release_date: str | None = Field(default=None, alias="releaseDate")
    description: str | None = None
    header_image: str | None = Field(default=None, alias="headerImage")
    tags: str | list[Any] | None = None
    genres: str | list[Any] | None = None
    developers: str | list[Any] | None = None
    publishers: str | list[Any] | None = None
    languages: str | list[Any] | None = None
    categories: str | list[Any] | None = None
    metacritic_score: Any = Field(default=None, alias="metacriticScore")
    recommendations: Any = None
    estimated_owners: Any = Field(default=None, alias="estimatedOwners")
    average_playtime: Any = Field(default=None, alias="averagePlaytime")

    def supplied_fields(self) -> dict[str, Any]:
        """Record-keyed dict of the fields the client actually sent (explicit nulls included)."""
        return self.model_dump(by_alias=True, exclude_unset=True)


def to_int(value: Any, default: int = 0) -> int:
    if isinstance(value, bool) or value is None:
        return default
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        return int(value) if math.isfinite(value) else default
    if isinstance(value, str):
        m = _LEADING_INT_RE.match(value)
        return int(m.group(1)) if m else default
    return default


def to_float(value: Any) -> float | None:
    if isinstance(value, bool) or value is None:
        return None
    if isinstance(value, (int, float)):
        number = float(value)
    elif isinstance(value, str):
        stripped = value.strip().replace(",", ".")
        if not stripped:
            return None
        m = _LEADING_FLOAT_RE.match(stripped)
        if not m:
            return None
        number = float(m.group(1))
    else:
        return None
    return number if math.isfinite(number) else None


def to_vote_count(value: Any) -> int:
    return max(0, to_int(value))


def to_price(value: Any) -> float | None:
    price = to_float(value)
    if price is None or price < 0:
        return None
    return price


def to_optional_text(value: Any) -> str | None:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def to_optional_scalar(value: Any) -> Any:
    # Steam uses 0 / "" for "unknown" on these fields.
    if value is None or value == "" or value == 0 or isinstance(value, bool):
        return None
    return value


def split_list(value: Any, sep: str = ",") -> list[str]:
    if value is None:
        return []
    if isinstance(value, str):
        return [x.strip() for x in value.split(sep) if x.strip()]
    if isinstance(value, (list, tuple)):
        return [str(x).strip() for x in value if x is not None and str(x).strip()]
    text = str(value).strip()
    return [text] if text else []


def generate_game_id() -> str:
    return f"{int(time.time() * 1000)}-{uuid4().hex[:8]}"


def utc_now_iso() -> str:
    return time.strftime("%Y-%m-%dT%H:%M:%SZ", time.gmtime())


def normalize_game(data: dict[str, Any]) -> dict[str, Any]:
    """Build a complete game record from record-keyed input, filling every missing field with its default."""
    positive = to_vote_count(data.get("positiveVotes"))
    negative = to_vote_count(data.get("negativeVotes"))
    game_id = to_optional_text(data.get("id")) or generate_game_id()
    playtime = to_float(data.get("averagePlaytime"))

    record: dict[str, Any] = {
        "id": game_id,
        "title": str(data.get("title") or "").strip(),
        "positiveVotes": positive,
        "negativeVotes": negative,
        "totalVotes": positive + negative,
        "price": to_price(data.get("price")),
        "releaseDate": to_optional_text(data.get("releaseDate")),
    }
    for key in LIST_FIELDS:
        record[key] = split_list(data.get(key))
    for key in TEXT_FIELDS:
        record[key] = str(data.get(key) or "")
    for key in OPTIONAL_SCALAR_FIELDS:
        record[key] = to_optional_scalar(data.get(key))
    record["averagePlaytime"] = playtime if playtime is not None else 0
    return record


def transform_raw_game(app_id: Any, raw: Any) -> dict[str, Any] | None:
    """Convert one entry of the raw Steam dataset into a game record. Returns None for a null entry."""
    if not isinstance(raw, dict):
        return None

    tags = raw.get("tags")
    if isinstance(tags, dict):
        tag_names = [str(k) for k in tags.keys()]
    else:
        tag_names = split_list(tags)

    release = raw.get("release_date")
    if isinstance(release, dict):
        release = release.get("date")

    languages = raw.get("supported_languages")
    if isinstance(languages, str):
        languages = languages.split(",")

    return normalize_game(
        {
            "id": str(app_id),
            "title": raw.get("name") if isinstance(raw.get("name"), str) else "",
            "positiveVotes": raw.get("positive"),
            "negativeVotes": raw.get("negative"),
            "price": raw.get("price") if isinstance(raw.get("price"), (int, float)) else None,
            "releaseDate": release if isinstance(release, str) else None,
            "tags": tag_names,
            "genres": raw.get("genres") if isinstance(raw.get("genres"), list) else [],
            "categories": raw.get("categories") if isinstance(raw.get("categories"), list) else [],
            "developers": raw.get("developers") if isinstance(raw.get("developers"), list) else [],
            "publishers": raw.get("publishers") if isinstance(raw.get("publishers"), list) else [],
            "languages": languages if isinstance(languages, list) else [],
            "description": raw.get("short_description") if isinstance(raw.get("short_description"), str) else "",
            "headerImage": raw.get("header_image") if isinstance(raw.get("header_image"), str) else "",
            "metacriticScore": raw.get("metacritic_score"),
            "recommendations": raw.get("recommendations"),
            "estimatedOwners": raw.get("estimated_owners"),
            "averagePlaytime": raw.get("average_playtime_forever"),
        }
    )


def build_new_game(data: dict[str, Any]) -> dict[str, Any]:
    title = data.get("title")
    if not isinstance(title, str) or not title.strip():
        raise ValidationError("Game title is required")
    return normalize_game(data)


def merge_game_update(existing: dict[str, Any], changes: dict[str, Any]) -> dict[str, Any]:
    """
    Return the fields to write for a partial update.

    Only keys present in `changes` are touched. `id` is immutable and ignored.
    If either vote count is supplied, both counts and `totalVotes` are written together.
    """
    fields: dict[str, Any] = {}

    if "title" in changes:
        title = changes["title"]
        if not isinstance(title, str) or not title.strip():
            raise ValidationError("Game title cannot be empty")
        fields["title"] = title.strip()

    if "positiveVotes" in changes or "negativeVotes" in changes:
        positive = to_vote_count(changes.get("positiveVotes", existing.get("positiveVotes")))
        negative = to_vote_count(changes.get("negativeVotes", existing.get("negativeVotes")))
        fields["positiveVotes"] = positive
        fields["negativeVotes"] = negative
        fields["totalVotes"] = positive + negative

    if "price" in changes:
        fields["price"] = to_price(changes["price"])
    if "releaseDate" in changes:
        fields["releaseDate"] = to_optional_text(changes["releaseDate"])
    if "averagePlaytime" in changes:
        playtime = to_float(changes["averagePlaytime"])
        fields["averagePlaytime"] = playtime if playtime is not None else 0

    for key in LIST_FIELDS:
        if key in changes:
            fields[key] = split_list(changes[key])
    for key in TEXT_FIELDS:
        if key in changes:
            fields[key] = str(changes[key] or "")
    for key in OPTIONAL_SCALAR_FIELDS:
        if key in changes:
            fields[key] = to_optional_scalar(changes[key])

    return fields
