from __future__ import annotations

import argparse
import json
import time
from dataclasses import dataclass
from typing import Any, Callable

from steam_game_query import GameFilters, SortSpec, build_query, resolve_sort
from steam_game_stats import summarize_games
from steam_game_store import GameStore, open_store
from steam_project_paths import resolve_dataset_path


@dataclass(frozen=True)
class BenchmarkCase:
    name: str
    filters: GameFilters
    sort: SortSpec | None = None
    limit: int = 20
    statistics: bool = False


BENCHMARK_CASES = [
    BenchmarkCase("List (20)", GameFilters(), resolve_sort("title", "asc")),
    BenchmarkCase("List (100)", GameFilters(), resolve_sort("title", "asc"), limit=100),
    BenchmarkCase("Text search", GameFilters.from_params(search="action")),
    BenchmarkCase("Genre filter", GameFilters.from_params(genre="Action")),
    BenchmarkCase("Price filter", GameFilters.from_params(price_min="0", price_max="10")),
    BenchmarkCase("Score filter", GameFilters.from_params(score_min="80")),
    BenchmarkCase("Popularity sort", GameFilters(), resolve_sort("popularity", "desc")),
    BenchmarkCase("Statistics", GameFilters(), statistics=True),
    BenchmarkCase(
        "Multi-filter",
        GameFilters.from_params(genre="Action", price_max="30", score_min="70"),
        resolve_sort("reviews", "desc"),
    ),
]


def run_case(store: GameStore, case: BenchmarkCase) -> None:
    if case.statistics:
        summarize_games(store.iter_records())
        return
    store.find(build_query(case.filters), sort=case.sort, limit=case.limit)


def time_case(
    store: GameStore,
    case: BenchmarkCase,
    iterations: int,
    clock: Callable[[], float] = time.perf_counter,
) -> dict[str, Any]:
    times = []
    for _ in range(max(1, iterations)):
        started = clock()
        run_case(store, case)
        times.append((clock() - started) * 1000)
    return {
        "name": case.name,
        "iterations": len(times),
        "avg_ms": round(sum(times) / len(times), 2),
        "min_ms": round(min(times), 2),
        "max_ms": round(max(times), 2),
    }


def rate(avg_ms: float) -> str:
    if avg_ms < 50:
        return "excellent"
    if avg_ms < 200:
        return "good"
    if avg_ms < 1000:
        return "acceptable"
    return "slow"


def parse_args():
    parser = argparse.ArgumentParser(description="Time catalog queries directly against the game store")
    parser.add_argument("--catalog-file", default=None, help="JSONL catalog under datasets/ (default: configured store)")
    parser.add_argument("--iterations", type=int, default=10, help="Runs per query")
    parser.add_argument("--output", default=None, help="Optional JSON report path")
    return parser.parse_args()


def main():
    args = parse_args()
    store = open_store(path=resolve_dataset_path(args.catalog_file)) if args.catalog_file else open_store()
    results = []
    try:
        total = store.count(build_query())
        print(f"Games in store: {total}", flush=True)
        for case in BENCHMARK_CASES:
            row = time_case(store, case, args.iterations)
            row["rating"] = rate(row["avg_ms"])
            results.append(row)
            print(
                f"{row['name']:<16} avg={row['avg_ms']}ms min={row['min_ms']}ms "
                f"max={row['max_ms']}ms ({row['rating']})",
                flush=True,
            )
    finally:
        store.close()

    if args.output:
        with open(args.output, "w", encoding="utf-8") as f:
            json.dump(results, f, ensure_ascii=False, indent=2)
        print("Saved:", args.output)


if __name__ == "__main__":
    main()
