from __future__ import annotations

import os
from pathlib import Path


PROJECT_ROOT = Path(__file__).resolve().parent
DATASETS_DIRNAME = (os.getenv("STEAM_DATASETS_DIR", "datasets") or "datasets").strip() or "datasets"
DATASETS_ROOT = (PROJECT_ROOT / DATASETS_DIRNAME).resolve()
CATALOG_FILENAME = (os.getenv("STEAM_CATALOG_FILE", "games.jsonl") or "games.jsonl").strip() or "games.jsonl"

MONGO_URL = os.getenv("STEAM_MONGO_URL", "").strip()
MONGO_DB_NAME = os.getenv("STEAM_MONGO_DB", "steam_games_db").strip() or "steam_games_db"
MONGO_COLLECTION_NAME = os.getenv("STEAM_MONGO_COLLECTION", "games").strip() or "games"
MONGO_CLIENT_OPTIONS = {
    "maxPoolSize": 10,
    "minPoolSize": 2,
    "serverSelectionTimeoutMS": 5000,
    "socketTimeoutMS": 45000,
}


def _split_csv_env(name: str) -> frozenset[str]:
    raw = os.getenv(name, "")
    return frozenset(x.strip().casefold() for x in raw.split(",") if x.strip())


EXCLUDED_GENRES = _split_csv_env("STEAM_EXCLUDED_GENRES")


def ensure_datasets_root() -> Path:
    DATASETS_ROOT.mkdir(parents=True, exist_ok=True)
    return DATASETS_ROOT


def _is_within(path: Path, parent: Path) -> bool:
    try:
        path.relative_to(parent)
        return True
    except ValueError:
        return False


def _normalize_dataset_arg(dataset_path: str | Path) -> tuple[str, str]:
    raw = str(dataset_path).strip()
    if not raw:
        raise ValueError("dataset path must not be empty")

    normalized = raw.replace("\\", "/")
    parts = [p for p in normalized.split("/") if p]
    if ".." in parts:
        raise ValueError("dataset path must not contain '..'")
    return raw, normalized


def resolve_dataset_path(dataset_path: str | Path) -> Path:
    """
    Resolve a dataset file location inside the project.

    Behavior:
    - bare name (e.g. "games.jsonl") -> <PROJECT_ROOT>/datasets/games.jsonl
    - explicit "datasets/<name>" -> respected
    - absolute paths are accepted only when they stay inside the project root
    """
    ensure_datasets_root()
    raw, normalized = _normalize_dataset_arg(dataset_path)

    p = Path(raw)
    if p.is_absolute():
        candidate = p.resolve()
    elif normalized == DATASETS_DIRNAME or normalized.startswith(DATASETS_DIRNAME + "/"):
        candidate = (PROJECT_ROOT / Path(normalized)).resolve()
    else:
        candidate = (DATASETS_ROOT / Path(raw)).resolve()

    if not _is_within(candidate, PROJECT_ROOT):
        raise ValueError("dataset path escapes project root")
    return candidate


def default_catalog_path() -> Path:
    return resolve_dataset_path(CATALOG_FILENAME)


def dataset_display_id(path: Path) -> str:
    """Return a short id for logs (prefer path relative to datasets root)."""
    resolved = path.resolve()
    if _is_within(resolved, DATASETS_ROOT):
        return str(resolved.relative_to(DATASETS_ROOT)).replace("\\", "/")
    if _is_within(resolved, PROJECT_ROOT):
        return str(resolved.relative_to(PROJECT_ROOT)).replace("\\", "/")
    return str(resolved)
