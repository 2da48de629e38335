from __future__ import annotations

from typing import Any


class CatalogError(Exception):
    """Base class for errors raised by the catalog service and stores."""

    status_code = 500

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class ValidationError(CatalogError):
    status_code = 400


class DuplicateGameError(ValidationError):
    def __init__(self, game_id: str) -> None:
        super().__init__(f"Game with id {game_id!r} already exists")
        self.game_id = game_id


class NotFoundError(CatalogError):
    status_code = 404


class StorageError(CatalogError):
    """Store unreachable or a query failed. The message is safe to show to clients."""

    status_code = 500


class ImportRowError(CatalogError):
    """One CSV row that could not be imported. Collected by the import, never raised out of it."""

    status_code = 400

    def __init__(self, line: str, reason: str) -> None:
        super().__init__(reason)
        self.line = line
        self.reason = reason

    def to_dict(self) -> dict[str, Any]:
        return {"line": self.line, "error": self.reason}
