from __future__ import annotations

import logging
import threading
import time
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator

from fastapi import Depends, FastAPI, Query, Request, Response
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ConfigDict, Field

from steam_catalog_errors import CatalogError, StorageError, ValidationError
from steam_game_query import DEFAULT_SORT_KEY, DEFAULT_SORT_ORDER, GameFilters
from steam_game_records import GamePayload, to_int
from steam_game_service import DEFAULT_EXPORT_LIMIT, DEFAULT_PAGE_SIZE, GameService, SearchParams
from steam_game_store import open_store


MAX_PAGE_SIZE = 500
MAX_EXPORT_LIMIT = 100000
LOGGER = logging.getLogger(__name__)
LOGGER.setLevel(logging.INFO)


class CsvImportRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    csv_data: str | None = Field(default=None, alias="csvData")


_SERVICE_LOCK = threading.Lock()
_SERVICE: GameService | None = None


def get_service() -> GameService:
    global _SERVICE
    with _SERVICE_LOCK:
        if _SERVICE is None:
            _SERVICE = GameService(open_store())
        return _SERVICE


def close_service() -> None:
    global _SERVICE
    with _SERVICE_LOCK:
        if _SERVICE is not None:
            _SERVICE.store.close()
            _SERVICE = None


@asynccontextmanager
async def lifespan(_app: FastAPI) -> AsyncIterator[None]:
    yield
    close_service()


app = FastAPI(title="Steam Game Catalog API", version="1.0.0", lifespan=lifespan)
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
    allow_headers=["Content-Type"],
)


@app.exception_handler(CatalogError)
async def catalog_error_handler(_request: Request, exc: CatalogError) -> JSONResponse:
    if isinstance(exc, StorageError):
        LOGGER.error("Storage error: %s", exc.message)
    return JSONResponse(status_code=exc.status_code, content={"success": False, "message": exc.message})


@app.exception_handler(RequestValidationError)
async def request_validation_handler(_request: Request, exc: RequestValidationError) -> JSONResponse:
    errors = exc.errors()
    if errors:
        first = errors[0]
        where = ".".join(str(x) for x in first.get("loc", ()) if x != "body")
        message = f"Invalid {where}: {first.get('msg', 'invalid value')}" if where else str(first.get("msg"))
    else:
        message = "Invalid request"
    return JSONResponse(status_code=400, content={"success": False, "message": message})


def _page_size(raw: str | None) -> int:
    size = to_int(raw, DEFAULT_PAGE_SIZE)
    if size < 1:
        return DEFAULT_PAGE_SIZE
    return min(size, MAX_PAGE_SIZE)


@app.get("/health")
def health() -> dict[str, str]:
    return {"status": "ok"}


@app.get("/api/games")
def search_games(
    search: str = "",
    genre: str = "",
    sort: str = DEFAULT_SORT_KEY,
    order: str = DEFAULT_SORT_ORDER,
    page: str | None = None,
    limit: str | None = None,
    price_min: str | None = Query(default=None, alias="priceMin"),
    price_max: str | None = Query(default=None, alias="priceMax"),
    date_min: str | None = Query(default=None, alias="dateMin"),
    date_max: str | None = Query(default=None, alias="dateMax"),
    score_min: str | None = Query(default=None, alias="scoreMin"),
    score_max: str | None = Query(default=None, alias="scoreMax"),
    service: GameService = Depends(get_service),
) -> dict[str, Any]:
    filters = GameFilters.from_params(
        search=search,
        genre=genre,
        price_min=price_min,
        price_max=price_max,
        date_min=date_min,
        date_max=date_max,
        score_min=score_min,
        score_max=score_max,
    )
    params = SearchParams(
        filters=filters,
        sort=sort,
        order=order,
        page=max(1, to_int(page, 1)),
        limit=_page_size(limit),
    )
    result = service.search_games(params)
    return {
        "success": True,
        "data": result.games,
        "pagination": result.pagination.as_dict(),
        "filters": {
            **filters.as_dict(),
            "sort": params.sort,
            "order": params.order,
            "page": params.page,
            "limit": params.limit,
        },
    }


@app.get("/api/games/{game_id}")
def get_game(game_id: str, service: GameService = Depends(get_service)) -> dict[str, Any]:
    return {"success": True, "data": service.get_game(game_id)}


@app.post("/api/games", status_code=201)
def add_game(payload: GamePayload, service: GameService = Depends(get_service)) -> dict[str, Any]:
    game = service.add_game(payload.supplied_fields())
    return {"success": True, "message": "Game added", "data": game}


@app.put("/api/games/{game_id}")
def update_game(game_id: str, payload: GamePayload, service: GameService = Depends(get_service)) -> dict[str, Any]:
    game = service.update_game(game_id, payload.supplied_fields())
    return {"success": True, "message": "Game updated", "data": game}


@app.delete("/api/games/{game_id}")
def delete_game(game_id: str, service: GameService = Depends(get_service)) -> dict[str, Any]:
    service.delete_game(game_id)
    return {"success": True, "message": "Game deleted"}


@app.get("/api/stats")
def get_statistics(service: GameService = Depends(get_service)) -> dict[str, Any]:
    return {"success": True, "data": service.get_statistics()}


@app.get("/api/genres")
def get_genres(service: GameService = Depends(get_service)) -> dict[str, Any]:
    return {"success": True, "data": service.get_genres()}


@app.get("/api/export/csv")
def export_csv(
    limit: int = Query(default=DEFAULT_EXPORT_LIMIT, ge=1, le=MAX_EXPORT_LIMIT),
    service: GameService = Depends(get_service),
) -> Response:
    csv_text = service.export_csv(limit)
    filename = f"games_export_{int(time.time() * 1000)}.csv"
    return Response(
        content=csv_text,
        media_type="text/csv; charset=utf-8",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


@app.post("/api/import/csv")
def import_csv(req: CsvImportRequest, service: GameService = Depends(get_service)) -> dict[str, Any]:
    if not req.csv_data or not req.csv_data.strip():
        raise ValidationError("No CSV data provided")
    report = service.import_csv(req.csv_data)
    return {
        "success": True,
        "message": f"Import finished: {report.imported_count} games added",
        "data": report.as_dict(),
    }
