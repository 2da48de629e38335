from __future__ import annotations

import argparse
import json
import logging
import time
from typing import Any, Callable, Iterator

from steam_game_store import GameStore, JsonlGameStore, MongoGameStore
from steam_project_paths import MONGO_COLLECTION_NAME, MONGO_DB_NAME, MONGO_URL, resolve_dataset_path


DEFAULT_MULTIPLIER = 10
DEFAULT_BATCH_SIZE = 1000
ROUND_ID_OFFSET = 10_000_000
LOGGER = logging.getLogger(__name__)
LOGGER.setLevel(logging.INFO)


def duplicate_id(game_id: Any, round_index: int) -> str:
    """
    Id of the copy made in `round_index` (0-based).

    Numeric ids are shifted by round*10_000_000; other ids get a "-<round>" suffix.
    Round 0 keeps the source id.
    """
    text = str(game_id).strip()
    if round_index == 0:
        return text
    if text.isdigit():
        return str(int(text) + round_index * ROUND_ID_OFFSET)
    return f"{text}-{round_index}"


def iter_duplicates(source: GameStore, round_index: int) -> Iterator[dict[str, Any]]:
    for game in source.iter_records():
        copy = {k: v for k, v in game.items() if k not in {"_id", "createdAt", "updatedAt"}}
        copy["id"] = duplicate_id(game.get("id"), round_index)
        yield copy


def duplicate_store(
    source: GameStore,
    target: GameStore,
    multiplier: int = DEFAULT_MULTIPLIER,
    batch_size: int = DEFAULT_BATCH_SIZE,
    log: Callable[[str], None] = print,
) -> int:
    inserted = 0
    for round_index in range(max(1, multiplier)):
        log(f"Round {round_index + 1}/{multiplier}")
        batch: list[dict[str, Any]] = []
        for doc in iter_duplicates(source, round_index):
            batch.append(doc)
            if len(batch) >= batch_size:
                inserted += target.insert_many(batch)
                batch = []
                log(f"   inserted: {inserted}")
        if batch:
            inserted += target.insert_many(batch)
            log(f"   inserted: {inserted}")
    return inserted


def _open(jsonl_name: str | None, mongo_url: str, db_name: str, collection_name: str) -> GameStore:
    if jsonl_name:
        return JsonlGameStore(resolve_dataset_path(jsonl_name))
    if not mongo_url:
        raise SystemExit("Pass a JSONL file name or a MongoDB URL")
    return MongoGameStore.connect(mongo_url, db_name=db_name, collection_name=collection_name)


def parse_args():
    parser = argparse.ArgumentParser(description="Duplicate a game catalog N times into another store for load testing")
    parser.add_argument("--source-file", default=None, help="Source JSONL catalog under datasets/")
    parser.add_argument("--source-mongo-url", default=MONGO_URL, help="Source MongoDB URL (default: STEAM_MONGO_URL)")
    parser.add_argument("--source-db", default=MONGO_DB_NAME, help=f"Source database (default: {MONGO_DB_NAME})")
    parser.add_argument("--target-file", default=None, help="Target JSONL catalog under datasets/")
    parser.add_argument("--target-mongo-url", default=MONGO_URL, help="Target MongoDB URL (default: STEAM_MONGO_URL)")
    parser.add_argument(
        "--target-db",
        default="steam_games_db_load_test",
        help="Target database (default: steam_games_db_load_test)",
    )
    parser.add_argument("--collection", default=MONGO_COLLECTION_NAME, help="Collection name on both sides")
    parser.add_argument("--multiplier", type=int, default=DEFAULT_MULTIPLIER, help="How many copies of the source")
    parser.add_argument("--batch-size", type=int, default=DEFAULT_BATCH_SIZE, help="Insert batch size")
    parser.add_argument("--keep-target", action="store_true", help="Do not clear the target before inserting")
    return parser.parse_args()


def main():
    args = parse_args()
    source = _open(args.source_file, args.source_mongo_url, args.source_db, args.collection)
    target = _open(args.target_file, args.target_mongo_url, args.target_db, args.collection)
    started = time.time()
    try:
        if not args.keep_target:
            removed = target.clear()
            if removed:
                print(f"Removed {removed} existing games from target", flush=True)
        inserted = duplicate_store(
            source,
            target,
            multiplier=args.multiplier,
            batch_size=max(1, args.batch_size),
            log=lambda message: print(message, flush=True),
        )
    finally:
        source.close()
        target.close()

    summary = {
        "multiplier": args.multiplier,
        "inserted": inserted,
        "elapsed_seconds": round(time.time() - started, 3),
    }
    print("Done")
    print(json.dumps(summary, ensure_ascii=False, indent=2))


if __name__ == "__main__":
    main()
