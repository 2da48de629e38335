from __future__ import annotations

from collections import Counter
from typing import Any, Iterable

from steam_game_records import to_float, to_int


TOP_TAGS_LIMIT = 10
NO_GAME_TITLE = "No games found"


def summarize_games(games: Iterable[dict[str, Any]], top_tags: int = TOP_TAGS_LIMIT) -> dict[str, Any]:
    """
    Single pass over the catalog.

    Ties on the most reviewed game and on tag counts go to the record or tag seen first.
    """
    total_games = 0
    total_reviews = 0
    price_sum = 0.0
    price_count = 0
    most_reviewed: dict[str, Any] | None = None
    most_reviewed_votes = -1
    tag_counts: Counter[str] = Counter()

    for game in games:
        total_games += 1
        votes = to_int(game.get("totalVotes"))
        total_reviews += votes

        price = to_float(game.get("price"))
        if price is not None:
            price_sum += price
            price_count += 1

        if votes > most_reviewed_votes:
            most_reviewed = game
            most_reviewed_votes = votes

        for tag in game.get("tags") or []:
            if tag:
                tag_counts[tag] += 1

    average_price = f"{price_sum / price_count:.2f}" if price_count else "0.00"
    if most_reviewed is None:
        most_reviewed_out = {"id": None, "title": NO_GAME_TITLE, "reviews": 0}
    else:
        most_reviewed_out = {
            "id": most_reviewed.get("id"),
            "title": most_reviewed.get("title"),
            "reviews": most_reviewed_votes,
        }

    return {
        "totalGames": total_games,
        "totalReviews": total_reviews,
        "averagePrice": average_price,
        "mostReviewed": most_reviewed_out,
        # Counter.most_common keeps insertion order for equal counts.
        "topTags": [{"tag": tag, "count": count} for tag, count in tag_counts.most_common(top_tags)],
    }
