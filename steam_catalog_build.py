from __future__ import annotations

import argparse
import json
import logging
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Any, BinaryIO, Callable, Iterable, Iterator

import ijson

from steam_game_records import transform_raw_game
from steam_game_store import GameStore, open_store
from steam_project_paths import (
    CATALOG_FILENAME,
    MONGO_URL,
    PROJECT_ROOT,
    dataset_display_id,
    resolve_dataset_path,
)


PROGRESS_EVERY = 10000
DEFAULT_BATCH_SIZE = 1000
LOGGER = logging.getLogger(__name__)
LOGGER.setLevel(logging.INFO)


@dataclass
class BuildStats:
    seen: int = 0
    written: int = 0
    skipped: int = 0
    failed: int = 0

    def as_dict(self) -> dict[str, int]:
        return {
            "seen": self.seen,
            "written": self.written,
            "skipped": self.skipped,
            "failed": self.failed,
        }


def iter_raw_games(stream: BinaryIO) -> Iterator[tuple[str, Any]]:
    """Yield (app_id, raw_entry) pairs from a top-level JSON object without loading it whole."""
    yield from ijson.kvitems(stream, "", use_float=True)


def iter_game_records(
    pairs: Iterable[tuple[str, Any]],
    stats: BuildStats,
    log: Callable[[str], None] = print,
) -> Iterator[dict[str, Any]]:
    for app_id, raw in pairs:
        stats.seen += 1
        try:
            record = transform_raw_game(app_id, raw)
        except Exception as exc:  # noqa: BLE001
            stats.failed += 1
            LOGGER.warning("Cannot transform app %s: %s", app_id, exc)
            continue
        if record is None:
            stats.skipped += 1
            continue
        yield record
        if stats.seen % PROGRESS_EVERY == 0:
            log(f"{stats.seen} items processed...")


def write_jsonl(records: Iterable[dict[str, Any]], output_path: Path, stats: BuildStats) -> None:
    tmp_path = output_path.with_name(output_path.name + ".tmp")
    output_path.parent.mkdir(parents=True, exist_ok=True)
    with tmp_path.open("w", encoding="utf-8") as f:
        for record in records:
            f.write(json.dumps(record, ensure_ascii=False) + "\n")
            stats.written += 1
    tmp_path.replace(output_path)


def load_into_store(
    records: Iterable[dict[str, Any]],
    store: GameStore,
    stats: BuildStats,
    batch_size: int = DEFAULT_BATCH_SIZE,
) -> None:
    batch: list[dict[str, Any]] = []
    for record in records:
        batch.append(record)
        if len(batch) >= batch_size:
            stats.written += store.insert_many(batch)
            batch = []
    if batch:
        stats.written += store.insert_many(batch)


def parse_args():
    parser = argparse.ArgumentParser(
        description="Build the game catalog from a raw Steam games.json (object keyed by app id)"
    )
    parser.add_argument(
        "--input",
        default=str(PROJECT_ROOT / "games.json"),
        help="Raw Steam dataset (default: <project>/games.json)",
    )
    parser.add_argument(
        "--output",
        default=CATALOG_FILENAME,
        help=f"JSONL catalog under datasets/ (default: {CATALOG_FILENAME})",
    )
    parser.add_argument(
        "--load-store",
        action="store_true",
        help="Insert into the configured store (STEAM_MONGO_URL or --output) instead of rewriting the JSONL file",
    )
    parser.add_argument("--batch-size", type=int, default=DEFAULT_BATCH_SIZE, help="Insert batch size with --load-store")
    parser.add_argument("--quiet", action="store_true", help="Less console output")
    return parser.parse_args()


def main():
    args = parse_args()

    def log(message: str) -> None:
        if not args.quiet:
            print(message, flush=True)

    input_path = Path(args.input)
    if not input_path.exists():
        raise SystemExit(f"Source file not found: {input_path}")

    output_path = resolve_dataset_path(args.output)
    stats = BuildStats()
    started = time.time()
    log(f"Building catalog from {input_path}")

    with input_path.open("rb") as f:
        records = iter_game_records(iter_raw_games(f), stats, log=log)
        if args.load_store:
            store = open_store() if MONGO_URL else open_store(path=output_path)
            try:
                load_into_store(records, store, stats, batch_size=max(1, args.batch_size))
            finally:
                store.close()
            target = "configured store"
        else:
            write_jsonl(records, output_path, stats)
            target = dataset_display_id(output_path)

    elapsed = round(time.time() - started, 3)
    log(f"Finished. {stats.written} items written to {target} in {elapsed}s")
    print(json.dumps(stats.as_dict(), ensure_ascii=False, indent=2))


if __name__ == "__main__":
    main()
