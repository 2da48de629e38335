from __future__ import annotations

import os
from typing import Any
from urllib.parse import quote

import requests
from flask import Flask, Response, jsonify, render_template, request


API_BASE_URL = os.getenv("STEAM_API_BASE_URL", "http://127.0.0.1:8000").rstrip("/")
HTTP_TIMEOUT = float(os.getenv("STEAM_UI_TIMEOUT_SECONDS", "120"))


SORT_OPTIONS = [
    {"value": "title", "label": "Title"},
    {"value": "score", "label": "Positive votes"},
    {"value": "price", "label": "Price"},
    {"value": "date", "label": "Release date"},
    {"value": "reviews", "label": "Reviews"},
    {"value": "popularity", "label": "Popularity"},
]


DEFAULT_SEARCH_CONFIG: dict[str, Any] = {
    "sort": "title",
    "order": "asc",
    "limit": 20,
    "export_limit": 1000,
}


SEARCH_ALLOWED_PARAMS = {
    "search",
    "genre",
    "sort",
    "order",
    "page",
    "limit",
    "priceMin",
    "priceMax",
    "dateMin",
    "dateMax",
    "scoreMin",
    "scoreMax",
}

GAME_ALLOWED_FIELDS = {
    "id",
    "title",
    "positiveVotes",
    "negativeVotes",
    "positive",
    "negative",
    "price",
    "releaseDate",
    "description",
    "headerImage",
    "tags",
    "genres",
    "developers",
    "publishers",
    "languages",
    "categories",
    "metacriticScore",
    "recommendations",
    "estimatedOwners",
    "averagePlaytime",
}
GAME_CLEARABLE_FIELDS = GAME_ALLOWED_FIELDS - {
    "id",
    "title",
    "positiveVotes",
    "negativeVotes",
    "positive",
    "negative",
    "averagePlaytime",
}


app = Flask(__name__)


def backend_url(path: str) -> str:
    return f"{API_BASE_URL}{path}"


def game_path(game_id: str) -> str:
    return f"/api/games/{quote(game_id, safe='')}"


def json_error(message: str, status: int = 500) -> tuple[Any, int]:
    return jsonify({"success": False, "detail": message, "message": message}), status


def relay_response(resp: requests.Response) -> tuple[Any, int]:
    try:
        payload = resp.json()
    except ValueError:
        payload = {"success": False, "detail": resp.text}
    return jsonify(payload), resp.status_code


def sanitize_search_params(raw: Any) -> dict[str, str]:
    params: dict[str, str] = {}
    for key in SEARCH_ALLOWED_PARAMS:
        value = raw.get(key)
        if value is None:
            continue
        value = str(value).strip()
        if value:
            params[key] = value
    return params


def sanitize_game_payload(raw: dict[str, Any], clear_blank: bool = False) -> dict[str, Any]:
    """
    Keep whitelisted game fields from a form payload.

    Blank inputs mean "not supplied", except the title which the API validates.
    With `clear_blank` (edits), a blank clearable field is sent as null so the API empties it.
    """
    payload: dict[str, Any] = {}
    for key, value in raw.items():
        if key not in GAME_ALLOWED_FIELDS:
            continue
        if isinstance(value, str):
            value = value.strip()
            if not value and key != "title":
                if clear_blank and key in GAME_CLEARABLE_FIELDS:
                    payload[key] = None
                continue
        payload[key] = value
    return payload


@app.get("/")
def index() -> str:
    return render_template("index.html", api_base_url=API_BASE_URL)


@app.get("/api/bootstrap")
def api_bootstrap() -> tuple[Any, int]:
    try:
        health_resp = requests.get(backend_url("/health"), timeout=HTTP_TIMEOUT)
        genres_resp = requests.get(backend_url("/api/genres"), timeout=HTTP_TIMEOUT)
    except requests.RequestException as exc:
        return json_error(f"Cannot connect to backend API at {API_BASE_URL}: {exc}", status=502)

    if not health_resp.ok:
        return relay_response(health_resp)
    if not genres_resp.ok:
        return relay_response(genres_resp)

    return (
        jsonify(
            {
                "api_base_url": API_BASE_URL,
                "health": health_resp.json(),
                "genres": genres_resp.json().get("data", []),
                "sort_options": SORT_OPTIONS,
                "defaults": DEFAULT_SEARCH_CONFIG,
            }
        ),
        200,
    )


@app.get("/api/games")
def api_search_games() -> tuple[Any, int]:
    params = sanitize_search_params(request.args)
    try:
        resp = requests.get(backend_url("/api/games"), params=params, timeout=HTTP_TIMEOUT)
    except requests.RequestException as exc:
        return json_error(f"Cannot reach backend API: {exc}", status=502)
    return relay_response(resp)


@app.get("/api/games/<path:game_id>")
def api_get_game(game_id: str) -> tuple[Any, int]:
    try:
        resp = requests.get(backend_url(game_path(game_id)), timeout=HTTP_TIMEOUT)
    except requests.RequestException as exc:
        return json_error(f"Cannot reach backend API: {exc}", status=502)
    return relay_response(resp)


@app.post("/api/games")
def api_add_game() -> tuple[Any, int]:
    raw_payload = request.get_json(silent=True)
    if not isinstance(raw_payload, dict):
        return json_error("Body must be a JSON object", status=400)

    payload = sanitize_game_payload(raw_payload)
    if not str(payload.get("title", "")).strip():
        return json_error("Game title is required", status=400)

    try:
        resp = requests.post(backend_url("/api/games"), json=payload, timeout=HTTP_TIMEOUT)
    except requests.RequestException as exc:
        return json_error(f"Cannot reach backend API: {exc}", status=502)
    return relay_response(resp)


@app.put("/api/games/<path:game_id>")
def api_update_game(game_id: str) -> tuple[Any, int]:
    raw_payload = request.get_json(silent=True)
    if not isinstance(raw_payload, dict):
        return json_error("Body must be a JSON object", status=400)

    payload = sanitize_game_payload(raw_payload, clear_blank=True)
    payload.pop("id", None)
    try:
        resp = requests.put(backend_url(game_path(game_id)), json=payload, timeout=HTTP_TIMEOUT)
    except requests.RequestException as exc:
        return json_error(f"Cannot reach backend API: {exc}", status=502)
    return relay_response(resp)


@app.delete("/api/games/<path:game_id>")
def api_delete_game(game_id: str) -> tuple[Any, int]:
    try:
        resp = requests.delete(backend_url(game_path(game_id)), timeout=HTTP_TIMEOUT)
    except requests.RequestException as exc:
        return json_error(f"Cannot reach backend API: {exc}", status=502)
    return relay_response(resp)


@app.get("/api/stats")
def api_stats() -> tuple[Any, int]:
    try:
        resp = requests.get(backend_url("/api/stats"), timeout=HTTP_TIMEOUT)
    except requests.RequestException as exc:
        return json_error(f"Cannot reach backend API: {exc}", status=502)
    return relay_response(resp)


@app.get("/api/genres")
def api_genres() -> tuple[Any, int]:
    try:
        resp = requests.get(backend_url("/api/genres"), timeout=HTTP_TIMEOUT)
    except requests.RequestException as exc:
        return json_error(f"Cannot reach backend API: {exc}", status=502)
    return relay_response(resp)


@app.get("/api/export/csv")
def api_export_csv() -> Any:
    params = {}
    limit = str(request.args.get("limit", "")).strip()
    if limit:
        params["limit"] = limit
    try:
        resp = requests.get(backend_url("/api/export/csv"), params=params, timeout=HTTP_TIMEOUT)
    except requests.RequestException as exc:
        return json_error(f"Cannot reach backend API: {exc}", status=502)
    if not resp.ok:
        return relay_response(resp)

    headers = {}
    disposition = resp.headers.get("Content-Disposition")
    if disposition:
        headers["Content-Disposition"] = disposition
    return Response(
        resp.content,
        status=resp.status_code,
        mimetype="text/csv",
        headers=headers,
    )


@app.post("/api/import/csv")
def api_import_csv() -> tuple[Any, int]:
    raw_payload = request.get_json(silent=True)
    if not isinstance(raw_payload, dict):
        return json_error("Body must be a JSON object", status=400)

    csv_data = raw_payload.get("csvData")
    if not isinstance(csv_data, str) or not csv_data.strip():
        return json_error("No CSV data provided", status=400)

    try:
        resp = requests.post(backend_url("/api/import/csv"), json={"csvData": csv_data}, timeout=HTTP_TIMEOUT)
    except requests.RequestException as exc:
        return json_error(f"Cannot reach backend API: {exc}", status=502)
    return relay_response(resp)


if __name__ == "__main__":
    host = os.getenv("STEAM_UI_HOST", "127.0.0.1")
    port = int(os.getenv("STEAM_UI_PORT", "5050"))
    debug = os.getenv("STEAM_UI_DEBUG", "1") not in {"0", "false", "False"}
    app.run(host=host, port=port, debug=debug)
