from __future__ import annotations

import json
import logging
import threading
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Iterable, Iterator, Protocol

from pymongo import ASCENDING, DESCENDING, MongoClient
from pymongo.errors import BulkWriteError, DuplicateKeyError, PyMongoError

from steam_catalog_errors import DuplicateGameError, StorageError
from steam_game_query import GameQuery, SortSpec
from steam_game_records import utc_now_iso
from steam_project_paths import (
    MONGO_CLIENT_OPTIONS,
    MONGO_COLLECTION_NAME,
    MONGO_DB_NAME,
    MONGO_URL,
    dataset_display_id,
    default_catalog_path,
)


LOGGER = logging.getLogger(__name__)
LOGGER.setLevel(logging.INFO)


class GameStore(Protocol):
    def find(
        self,
        query: GameQuery,
        sort: SortSpec | None = None,
        skip: int = 0,
        limit: int = 0,
    ) -> list[dict[str, Any]]: ...

    def count(self, query: GameQuery) -> int: ...

    def find_by_id(self, game_id: str) -> dict[str, Any] | None: ...

    def insert(self, record: dict[str, Any]) -> dict[str, Any]: ...

    def insert_many(self, records: Iterable[dict[str, Any]]) -> int: ...

    def update_by_id(self, game_id: str, fields: dict[str, Any]) -> bool: ...

    def delete_by_id(self, game_id: str) -> bool: ...

    def distinct_values(self, field: str) -> list[Any]: ...

    def iter_records(self) -> Iterator[dict[str, Any]]: ...

    def clear(self) -> int: ...

    def close(self) -> None: ...


def _copy_game(game: dict[str, Any]) -> dict[str, Any]:
    return {k: list(v) if isinstance(v, list) else v for k, v in game.items()}


def _sort_value(value: Any) -> tuple[int, Any]:
    # Nulls order before any value, like MongoDB.
    if value is None:
        return (0, 0)
    if isinstance(value, str):
        return (1, value.casefold())
    return (1, value)


class JsonlGameStore:
    """
    Document store kept as one JSON object per line.

    The whole file is loaded on first access. Inserts are appended to the file;
    updates and deletes rewrite it.
    """

    def __init__(self, path: Path) -> None:
        self.path = path
        self._lock = threading.Lock()
        self._games: dict[str, dict[str, Any]] | None = None

    def _load_locked(self) -> dict[str, dict[str, Any]]:
        if self._games is not None:
            return self._games

        games: dict[str, dict[str, Any]] = {}
        skipped = 0
        if self.path.exists():
            try:
                with self.path.open("r", encoding="utf-8") as f:
                    for line in f:
                        line = line.strip()
                        if not line:
                            continue
                        try:
                            row = json.loads(line)
                        except json.JSONDecodeError:
                            skipped += 1
                            continue
                        if not isinstance(row, dict) or row.get("id") is None:
                            skipped += 1
                            continue
                        games[str(row["id"])] = row
            except OSError as exc:
                LOGGER.exception("Cannot read game store %s", self.path)
                raise StorageError("Game store is unavailable") from exc

        if skipped:
            LOGGER.warning("Skipped %s malformed rows in %s", skipped, dataset_display_id(self.path))
        self._games = games
        return games

    def _append_locked(self, rows: list[dict[str, Any]]) -> None:
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            with self.path.open("a", encoding="utf-8") as f:
                for row in rows:
                    f.write(json.dumps(row, ensure_ascii=False) + "\n")
        except OSError as exc:
            self._games = None
            LOGGER.exception("Cannot append to game store %s", self.path)
            raise StorageError("Game store is unavailable") from exc

    def _rewrite_locked(self) -> None:
        games = self._games or {}
        tmp_path = self.path.with_name(self.path.name + ".tmp")
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            with tmp_path.open("w", encoding="utf-8") as f:
                for row in games.values():
                    f.write(json.dumps(row, ensure_ascii=False) + "\n")
            tmp_path.replace(self.path)
        except OSError as exc:
            self._games = None
            LOGGER.exception("Cannot rewrite game store %s", self.path)
            raise StorageError("Game store is unavailable") from exc

    def find(
        self,
        query: GameQuery,
        sort: SortSpec | None = None,
        skip: int = 0,
        limit: int = 0,
    ) -> list[dict[str, Any]]:
        with self._lock:
            rows = [g for g in self._load_locked().values() if query.matches(g)]
        if sort is not None:
            rows.sort(key=lambda g: _sort_value(g.get(sort.field)), reverse=sort.descending)
        end = skip + limit if limit > 0 else None
        return [_copy_game(g) for g in rows[skip:end]]

    def count(self, query: GameQuery) -> int:
        with self._lock:
            return sum(1 for g in self._load_locked().values() if query.matches(g))

    def find_by_id(self, game_id: str) -> dict[str, Any] | None:
        with self._lock:
            game = self._load_locked().get(str(game_id))
            return _copy_game(game) if game is not None else None

    def insert(self, record: dict[str, Any]) -> dict[str, Any]:
        game_id = str(record["id"])
        with self._lock:
            games = self._load_locked()
            if game_id in games:
                raise DuplicateGameError(game_id)
            stored = _copy_game(record)
            stored["id"] = game_id
            stored["createdAt"] = utc_now_iso()
            games[game_id] = stored
            self._append_locked([stored])
            return _copy_game(stored)

    def insert_many(self, records: Iterable[dict[str, Any]]) -> int:
        created_at = utc_now_iso()
        with self._lock:
            games = self._load_locked()
            added: list[dict[str, Any]] = []
            duplicates = 0
            for record in records:
                game_id = str(record["id"])
                if game_id in games:
                    duplicates += 1
                    continue
                stored = _copy_game(record)
                stored["id"] = game_id
                stored["createdAt"] = created_at
                games[game_id] = stored
                added.append(stored)
            if added:
                self._append_locked(added)
        if duplicates:
            LOGGER.warning("insert_many skipped %s duplicate ids", duplicates)
        return len(added)

    def update_by_id(self, game_id: str, fields: dict[str, Any]) -> bool:
        with self._lock:
            game = self._load_locked().get(str(game_id))
            if game is None:
                return False
            game.update(_copy_game(fields))
            game["id"] = str(game_id)
            game["updatedAt"] = utc_now_iso()
            self._rewrite_locked()
            return True

    def delete_by_id(self, game_id: str) -> bool:
        with self._lock:
            games = self._load_locked()
            if games.pop(str(game_id), None) is None:
                return False
            self._rewrite_locked()
            return True

    def distinct_values(self, field: str) -> list[Any]:
        seen: dict[Any, None] = {}
        with self._lock:
            for game in self._load_locked().values():
                value = game.get(field)
                items = value if isinstance(value, list) else [value]
                for item in items:
                    if item is not None:
                        seen.setdefault(item, None)
        return list(seen)

    def iter_records(self) -> Iterator[dict[str, Any]]:
        with self._lock:
            snapshot = list(self._load_locked().values())
        for game in snapshot:
            yield _copy_game(game)

    def clear(self) -> int:
        with self._lock:
            removed = len(self._load_locked())
            self._games = {}
            self._rewrite_locked()
            return removed

    def close(self) -> None:
        with self._lock:
            self._games = None


@contextmanager
def _mongo_errors(action: str) -> Iterator[None]:
    try:
        yield
    except PyMongoError as exc:
        LOGGER.exception("MongoDB %s failed", action)
        raise StorageError(f"Database error during {action}") from exc


class MongoGameStore:
    """Game store backed by a MongoDB collection. Filters are sent as `GameQuery.to_mongo()` documents."""

    PROJECTION = {"_id": 0}

    def __init__(self, collection: Any, client: MongoClient | None = None) -> None:
        self.collection = collection
        self._client = client

    @classmethod
    def connect(
        cls,
        url: str,
        db_name: str = MONGO_DB_NAME,
        collection_name: str = MONGO_COLLECTION_NAME,
    ) -> "MongoGameStore":
        LOGGER.info("Connecting to MongoDB (db=%s, collection=%s)", db_name, collection_name)
        with _mongo_errors("connect"):
            client: MongoClient = MongoClient(url, **MONGO_CLIENT_OPTIONS)
            store = cls(client[db_name][collection_name], client=client)
            store.ensure_indexes()
        return store

    def ensure_indexes(self) -> None:
        with _mongo_errors("create_index"):
            self.collection.create_index([("id", ASCENDING)], unique=True)
            self.collection.create_index([("title", ASCENDING)])
            self.collection.create_index([("genres", ASCENDING)])
            self.collection.create_index([("totalVotes", DESCENDING)])

    def find(
        self,
        query: GameQuery,
        sort: SortSpec | None = None,
        skip: int = 0,
        limit: int = 0,
    ) -> list[dict[str, Any]]:
        with _mongo_errors("find"):
            cursor = self.collection.find(query.to_mongo(), self.PROJECTION)
            if sort is not None:
                cursor = cursor.sort(sort.field, sort.direction)
            if skip:
                cursor = cursor.skip(skip)
            if limit:
                cursor = cursor.limit(limit)
            return list(cursor)

    def count(self, query: GameQuery) -> int:
        with _mongo_errors("count"):
            return int(self.collection.count_documents(query.to_mongo()))

    def find_by_id(self, game_id: str) -> dict[str, Any] | None:
        with _mongo_errors("find_one"):
            return self.collection.find_one({"id": str(game_id)}, self.PROJECTION)

    def insert(self, record: dict[str, Any]) -> dict[str, Any]:
        doc = _copy_game(record)
        doc["id"] = str(doc["id"])
        doc["createdAt"] = utc_now_iso()
        with _mongo_errors("insert"):
            try:
                self.collection.insert_one(doc)
            except DuplicateKeyError:
                raise DuplicateGameError(doc["id"]) from None
        doc.pop("_id", None)
        return doc

    def insert_many(self, records: Iterable[dict[str, Any]]) -> int:
        created_at = utc_now_iso()
        docs = []
        for record in records:
            doc = _copy_game(record)
            doc["id"] = str(doc["id"])
            doc["createdAt"] = created_at
            docs.append(doc)
        if not docs:
            return 0
        with _mongo_errors("insert_many"):
            try:
                result = self.collection.insert_many(docs, ordered=False)
            except BulkWriteError as exc:
                inserted = int(exc.details.get("nInserted", 0))
                LOGGER.warning("insert_many skipped %s documents", len(docs) - inserted)
                return inserted
        return len(result.inserted_ids)

    def update_by_id(self, game_id: str, fields: dict[str, Any]) -> bool:
        changes = {k: v for k, v in fields.items() if k not in {"id", "_id"}}
        changes["updatedAt"] = utc_now_iso()
        with _mongo_errors("update"):
            result = self.collection.update_one({"id": str(game_id)}, {"$set": changes})
        return result.matched_count > 0

    def delete_by_id(self, game_id: str) -> bool:
        with _mongo_errors("delete"):
            result = self.collection.delete_one({"id": str(game_id)})
        return result.deleted_count > 0

    def distinct_values(self, field: str) -> list[Any]:
        with _mongo_errors("distinct"):
            return list(self.collection.distinct(field))

    def iter_records(self) -> Iterator[dict[str, Any]]:
        with _mongo_errors("scan"):
            for doc in self.collection.find({}, self.PROJECTION):
                yield doc

    def clear(self) -> int:
        with _mongo_errors("clear"):
            result = self.collection.delete_many({})
        return int(result.deleted_count)

    def close(self) -> None:
        if self._client is not None:
            self._client.close()


def open_store(path: Path | None = None, mongo_url: str | None = None) -> GameStore:
    """
    MongoDB when a URL is given, the JSONL file otherwise.

    Without arguments STEAM_MONGO_URL decides; an explicit `path` always means JSONL
    unless `mongo_url` is passed too.
    """
    if mongo_url is not None:
        url = mongo_url
    else:
        url = "" if path is not None else MONGO_URL
    if url:
        return MongoGameStore.connect(url)
    catalog_path = path or default_catalog_path()
    LOGGER.info("Using JSONL game store %s", dataset_display_id(catalog_path))
    return JsonlGameStore(catalog_path)
