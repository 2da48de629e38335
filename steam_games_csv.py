from __future__ import annotations

import csv
import io
import logging
import re
from dataclasses import dataclass, field
from typing import Any, Callable, Iterable

from steam_catalog_errors import CatalogError, ImportRowError, ValidationError
from steam_game_records import split_list


CSV_COLUMNS = (
    "id",
    "title",
    "positiveVotes",
    "negativeVotes",
    "totalVotes",
    "price",
    "releaseDate",
    "genres",
    "tags",
    "developers",
    "publishers",
    "description",
)
LIST_SEPARATOR = ";"
MAX_SAMPLE_ERRORS = 10
ERROR_LINE_EXCERPT = 50
_LINE_BREAK_RE = re.compile(r"\r\n|\r|\n")
LOGGER = logging.getLogger(__name__)
LOGGER.setLevel(logging.INFO)


def _flatten(text: Any) -> str:
    if text is None:
        return ""
    return _LINE_BREAK_RE.sub(" ", str(text))


def _format_number(value: Any) -> str:
    if value is None or isinstance(value, bool):
        return ""
    return str(value)


def _join_list(values: Any) -> str:
    if not isinstance(values, list):
        return ""
    return LIST_SEPARATOR.join(_flatten(x) for x in values)


def game_to_csv_row(game: dict[str, Any]) -> list[str]:
    return [
        _flatten(game.get("id")),
        _flatten(game.get("title")),
        _format_number(game.get("positiveVotes") or 0),
        _format_number(game.get("negativeVotes") or 0),
        _format_number(game.get("totalVotes") or 0),
        _format_number(game.get("price")),
        _flatten(game.get("releaseDate")),
        _join_list(game.get("genres")),
        _join_list(game.get("tags")),
        _join_list(game.get("developers")),
        _join_list(game.get("publishers")),
        _flatten(game.get("description")),
    ]


def encode_games_csv(games: Iterable[dict[str, Any]]) -> str:
    buf = io.StringIO()
    writer = csv.writer(buf, quoting=csv.QUOTE_MINIMAL, lineterminator="\n")
    writer.writerow(CSV_COLUMNS)
    for game in games:
        writer.writerow(game_to_csv_row(game))
    return buf.getvalue()


def parse_csv_line(line: str) -> list[str]:
    """
    Split one CSV line into raw fields.

    A quoted segment may contain commas; a doubled quote inside it is a literal quote.
    Unbalanced quotes do not raise, the rest of the line is read as one field.
    """
    return next(csv.reader([line], strict=False), [])


def csv_row_to_game_input(values: list[str]) -> dict[str, Any]:
    def at(index: int) -> str:
        return values[index].strip() if index < len(values) else ""

    # totalVotes (column 4) is recomputed from the two vote counts.
    return {
        "id": at(0) or None,
        "title": at(1),
        "positiveVotes": at(2),
        "negativeVotes": at(3),
        "price": at(5) or None,
        "releaseDate": at(6) or None,
        "genres": split_list(at(7), LIST_SEPARATOR),
        "tags": split_list(at(8), LIST_SEPARATOR),
        "developers": split_list(at(9), LIST_SEPARATOR),
        "publishers": split_list(at(10), LIST_SEPARATOR),
        # Description whitespace is content.
        "description": values[11] if len(values) > 11 else "",
    }


@dataclass
class ImportReport:
    imported_count: int = 0
    error_count: int = 0
    total_rows_seen: int = 0
    sample_errors: list[ImportRowError] = field(default_factory=list)

    def record_success(self) -> None:
        self.total_rows_seen += 1
        self.imported_count += 1

    def record_skip(self) -> None:
        self.total_rows_seen += 1

    def record_failure(self, line: str, reason: str) -> None:
        self.total_rows_seen += 1
        self.error_count += 1
        if len(self.sample_errors) < MAX_SAMPLE_ERRORS:
            self.sample_errors.append(ImportRowError(line[:ERROR_LINE_EXCERPT], reason))

    def as_dict(self) -> dict[str, Any]:
        return {
            "imported": self.imported_count,
            "errors": self.error_count,
            "total": self.total_rows_seen,
            "errorDetails": [x.to_dict() for x in self.sample_errors],
        }


def _import_line(report: ImportReport, line: str, add_game: Callable[[dict[str, Any]], Any]) -> ImportReport:
    values = parse_csv_line(line)
    if len(values) < 2:
        report.record_skip()
        return report
    try:
        add_game(csv_row_to_game_input(values))
    except CatalogError as exc:
        report.record_failure(line, exc.message)
    else:
        report.record_success()
    return report


def decode_games_csv(csv_text: str, add_game: Callable[[dict[str, Any]], Any]) -> ImportReport:
    """
    Import every data row of `csv_text` through `add_game`.

    The first non-blank line is the header. A row that `add_game` rejects is counted and
    sampled in the report; the remaining rows are still imported.
    """
    # Rows end at CR/LF only; other Unicode line separators are field content.
    lines = [line for line in _LINE_BREAK_RE.split(csv_text or "") if line.strip()]
    if len(lines) < 2:
        raise ValidationError("CSV data is empty or has no data rows")

    report = ImportReport()
    for line in lines[1:]:
        report = _import_line(report, line, add_game)

    LOGGER.info(
        "CSV import finished (imported=%s, errors=%s, total=%s)",
        report.imported_count,
        report.error_count,
        report.total_rows_seen,
    )
    return report
