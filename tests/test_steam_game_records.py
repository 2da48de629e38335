"""Tests for record coercion, normalization and the raw Steam transform."""

from __future__ import annotations

import re

import pytest

from steam_catalog_errors import ValidationError
from steam_game_records import (
    GamePayload,
    build_new_game,
    merge_game_update,
    normalize_game,
    split_list,
    to_float,
    to_int,
    to_optional_scalar,
    to_price,
    transform_raw_game,
)


class TestCoercion:
    """Tests for the lenient scalar helpers."""

    def test_to_int_reads_leading_digits(self) -> None:
        assert to_int("12abc") == 12
        assert to_int(" -3 ") == -3

    def test_to_int_falls_back_to_default(self) -> None:
        assert to_int("abc") == 0
        assert to_int(None, 5) == 5
        assert to_int(True, 7) == 7

    def test_to_float_accepts_decimal_comma(self) -> None:
        assert to_float("3,5") == 3.5

    def test_to_float_rejects_non_finite(self) -> None:
        assert to_float(float("nan")) is None
        assert to_float("inf") is None
        assert to_float("") is None

    def test_price_zero_is_kept(self) -> None:
        """A free game keeps price 0 instead of becoming unknown."""
        assert to_price(0) == 0.0
        assert to_price("0") == 0.0

    def test_negative_price_is_unknown(self) -> None:
        assert to_price(-1) is None

    def test_optional_scalar_treats_zero_as_unknown(self) -> None:
        assert to_optional_scalar(0) is None
        assert to_optional_scalar("") is None
        assert to_optional_scalar(75) == 75

    def test_split_list_drops_blanks(self) -> None:
        assert split_list("a, b,,c ") == ["a", "b", "c"]
        assert split_list(["x", None, " ", "y"]) == ["x", "y"]
        assert split_list(None) == []
        assert split_list("a;b", ";") == ["a", "b"]


class TestNormalizeGame:
    """Tests for normalize_game."""

    def test_fills_defaults(self) -> None:
        game = normalize_game({"title": "  Portal  "})
        assert game["title"] == "Portal"
        assert game["positiveVotes"] == 0
        assert game["negativeVotes"] == 0
        assert game["totalVotes"] == 0
        assert game["price"] is None
        assert game["releaseDate"] is None
        assert game["tags"] == []
        assert game["description"] == ""
        assert game["metacriticScore"] is None
        assert game["averagePlaytime"] == 0

    def test_generates_id_when_missing(self) -> None:
        game = normalize_game({"title": "Portal"})
        assert re.fullmatch(r"\d+-[0-9a-f]{8}", game["id"])

    def test_total_votes_is_sum_of_clamped_counts(self) -> None:
        game = normalize_game({"title": "X", "positiveVotes": "10", "negativeVotes": -5})
        assert game["positiveVotes"] == 10
        assert game["negativeVotes"] == 0
        assert game["totalVotes"] == 10

    def test_list_fields_accept_comma_strings(self) -> None:
        game = normalize_game({"title": "X", "genres": "Action, RPG"})
        assert game["genres"] == ["Action", "RPG"]


class TestTransformRawGame:
    """Tests for converting entries of the raw Steam dataset."""

    def test_maps_raw_fields(self) -> None:
        raw = {
            "name": "Counter-Strike",
            "positive": 10,
            "negative": 5,
            "price": 0,
            "tags": {"FPS": 100, "Shooter": 50},
            "release_date": "Aug 21, 2012",
            "genres": ["Action"],
            "supported_languages": ["English", "French"],
            "short_description": "Team shooter",
            "metacritic_score": 0,
            "average_playtime_forever": 42,
        }
        game = transform_raw_game(730, raw)
        assert game is not None
        assert game["id"] == "730"
        assert game["title"] == "Counter-Strike"
        assert game["totalVotes"] == 15
        assert game["price"] == 0.0
        assert game["tags"] == ["FPS", "Shooter"]
        assert game["releaseDate"] == "Aug 21, 2012"
        assert game["languages"] == ["English", "French"]
        assert game["description"] == "Team shooter"
        assert game["metacriticScore"] is None
        assert game["averagePlaytime"] == 42

    def test_null_entry_is_skipped(self) -> None:
        assert transform_raw_game("1", None) is None

    def test_release_date_object_and_language_string(self) -> None:
        raw = {"name": "X", "release_date": {"date": "2020"}, "supported_languages": "English, German"}
        game = transform_raw_game("2", raw)
        assert game["releaseDate"] == "2020"
        assert game["languages"] == ["English", "German"]

    def test_non_numeric_price_is_unknown(self) -> None:
        game = transform_raw_game("3", {"name": "X", "price": "free"})
        assert game["price"] is None


class TestBuildAndMerge:
    """Tests for create and partial-update rules."""

    def test_build_requires_title(self) -> None:
        with pytest.raises(ValidationError, match="title is required"):
            build_new_game({"title": "   "})

    def test_build_keeps_supplied_id(self) -> None:
        assert build_new_game({"id": 99, "title": "X"})["id"] == "99"

    def test_merge_rejects_empty_title(self) -> None:
        with pytest.raises(ValidationError, match="cannot be empty"):
            merge_game_update({"title": "Old"}, {"title": ""})

    def test_merge_recomputes_votes_from_existing(self) -> None:
        existing = {"positiveVotes": 10, "negativeVotes": 5, "totalVotes": 15}
        fields = merge_game_update(existing, {"positiveVotes": 20})
        assert fields == {"positiveVotes": 20, "negativeVotes": 5, "totalVotes": 25}

    def test_merge_only_touches_supplied_keys(self) -> None:
        fields = merge_game_update({"title": "Old"}, {"price": None, "tags": "a,b"})
        assert fields == {"price": None, "tags": ["a", "b"]}


class TestGamePayload:
    """Tests for the request body model."""

    def test_short_vote_aliases_map_to_record_keys(self) -> None:
        payload = GamePayload.model_validate({"title": "X", "positive": 5, "releaseDate": "2020"})
        assert payload.supplied_fields() == {"title": "X", "positiveVotes": 5, "releaseDate": "2020"}

    def test_app_id_alias(self) -> None:
        payload = GamePayload.model_validate({"appId": 730})
        assert payload.supplied_fields() == {"id": 730}

    def test_unknown_fields_are_ignored(self) -> None:
        payload = GamePayload.model_validate({"title": "X", "rating": 5})
        assert payload.supplied_fields() == {"title": "X"}
