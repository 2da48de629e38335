"""Tests for filters, score computation, sorting and pagination."""

from __future__ import annotations

import pytest

from steam_game_query import (
    Bounds,
    GameFilters,
    SortSpec,
    build_query,
    compute_score,
    paginate,
    resolve_sort,
)


class TestBounds:
    def test_empty_bounds_accept_missing_value(self) -> None:
        assert Bounds().contains(None)

    def test_missing_value_fails_any_bound(self) -> None:
        assert not Bounds(min=1).contains(None)

    def test_inclusive_edges(self) -> None:
        bounds = Bounds(min=1, max=10)
        assert bounds.contains(1)
        assert bounds.contains(10)
        assert not bounds.contains(10.01)


class TestGameFilters:
    def test_from_params_ignores_blank_and_malformed_values(self) -> None:
        flt = GameFilters.from_params(search="  ", price_min="abc", price_max="", score_min=None)
        assert flt == GameFilters()

    def test_as_dict_uses_wire_names(self) -> None:
        flt = GameFilters.from_params(search="doom", price_max="10", date_min="2020")
        assert flt.as_dict() == {
            "search": "doom",
            "genre": "",
            "price": {"min": None, "max": 10.0},
            "releaseDate": {"min": "2020", "max": None},
            "score": {"min": None, "max": None},
        }


class TestComputeScore:
    def test_percentage_of_positive_votes(self, game_factory) -> None:
        assert compute_score(game_factory(positiveVotes=80, negativeVotes=20)) == pytest.approx(80)

    def test_zero_votes_scores_zero(self, game_factory) -> None:
        assert compute_score(game_factory()) == 0


class TestGameQueryMatches:
    """Tests for the in-memory predicate."""

    def test_no_filters_match_every_record(self, sample_games) -> None:
        query = build_query()
        assert all(query.matches(g) for g in sample_games)

    def test_search_hits_title_or_tag_case_insensitively(self, sample_games) -> None:
        query = build_query(GameFilters.from_params(search="ACTION"))
        assert [g["id"] for g in sample_games if query.matches(g)] == ["30"]
        query = build_query(GameFilters.from_params(search="farm"))
        assert [g["id"] for g in sample_games if query.matches(g)] == ["20"]

    def test_search_treats_regex_characters_literally(self, game_factory) -> None:
        query = build_query(GameFilters.from_params(search="c++"))
        assert query.matches(game_factory(title="Learn C++ Now"))
        assert not query.matches(game_factory(title="Learn C Now"))

    def test_genre_is_exact_and_case_insensitive(self, game_factory) -> None:
        query = build_query(GameFilters.from_params(genre="action"))
        assert query.matches(game_factory(genres=["Action"]))
        assert not query.matches(game_factory(genres=["Action RPG"]))

    def test_price_range_excludes_unknown_price(self, sample_games) -> None:
        query = build_query(GameFilters.from_params(price_min="0", price_max="10"))
        assert [g["id"] for g in sample_games if query.matches(g)] == ["10", "30"]

    def test_release_date_range_is_lexical(self, sample_games) -> None:
        query = build_query(GameFilters.from_params(date_min="2015", date_max="2019-12-31"))
        assert [g["id"] for g in sample_games if query.matches(g)] == ["20", "30"]

    def test_zero_vote_game_excluded_by_score_min(self, game_factory) -> None:
        query = build_query(GameFilters.from_params(score_min="1"))
        assert not query.matches(game_factory(positiveVotes=0, negativeVotes=0))

    def test_score_range(self, game_factory) -> None:
        game = game_factory(title="Foo", positiveVotes=80, negativeVotes=20)
        assert game["totalVotes"] == 100
        assert build_query(GameFilters.from_params(score_min="75")).matches(game)
        assert not build_query(GameFilters.from_params(score_min="81")).matches(game)
        assert not build_query(GameFilters.from_params(score_max="79")).matches(game)


class TestGameQueryToMongo:
    """Tests for the MongoDB filter rendering."""

    def test_no_filters_render_empty_document(self) -> None:
        assert build_query().to_mongo() == {}

    def test_single_clause_is_not_wrapped(self) -> None:
        assert build_query(GameFilters.from_params(price_min="5")).to_mongo() == {"price": {"$gte": 5.0}}

    def test_search_is_escaped_regex_on_title_and_tags(self) -> None:
        doc = build_query(GameFilters.from_params(search="c++")).to_mongo()
        pattern = {"$regex": r"c\+\+", "$options": "i"}
        assert doc == {"$or": [{"title": pattern}, {"tags": pattern}]}

    def test_multiple_clauses_are_and_combined(self) -> None:
        doc = build_query(GameFilters.from_params(genre="Action", score_min="80")).to_mongo()
        assert list(doc) == ["$and"]
        genre_clause, score_clause = doc["$and"]
        assert genre_clause == {"genres": {"$regex": "^Action$", "$options": "i"}}
        assert score_clause["$expr"]["$gte"][1] == 80.0


class TestResolveSort:
    def test_known_keys(self) -> None:
        assert resolve_sort("score", "desc") == SortSpec("positiveVotes", descending=True)
        assert resolve_sort("popularity", "asc") == SortSpec("totalVotes")
        assert resolve_sort("reviews", None).field == "totalVotes"

    def test_unknown_key_and_order_fall_back(self) -> None:
        assert resolve_sort("rating", "sideways") == SortSpec("title", descending=False)

    def test_direction(self) -> None:
        assert SortSpec("title", descending=True).direction == -1
        assert SortSpec("title").direction == 1


class TestPaginate:
    def test_page_count_and_window(self) -> None:
        pagination = paginate(95, 3, 20)
        assert pagination.total_pages == 5
        assert pagination.pages == [1, 2, 3, 4, 5]
        assert pagination.offset == 40

    def test_first_and_last_page_links(self) -> None:
        first = paginate(95, 1, 20)
        last = paginate(95, 5, 20)
        assert not first.has_previous and first.has_next
        assert last.has_previous and not last.has_next
        assert first.pages == [1, 2, 3]
        assert last.pages == [3, 4, 5]

    def test_empty_result(self) -> None:
        pagination = paginate(0, 1, 20)
        assert pagination.total_pages == 0
        assert pagination.pages == []
        assert not pagination.has_next

    def test_page_below_one_is_clamped(self) -> None:
        assert paginate(10, 0, 5).current_page == 1

    def test_invalid_page_size(self) -> None:
        with pytest.raises(ValueError):
            paginate(10, 1, 0)

    def test_as_dict_keys(self) -> None:
        assert paginate(95, 2, 20).as_dict() == {
            "currentPage": 2,
            "totalPages": 5,
            "totalGames": 95,
            "limit": 20,
            "offset": 20,
            "pages": [1, 2, 3, 4],
            "hasPrevious": True,
            "hasNext": True,
        }
