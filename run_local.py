from __future__ import annotations

import argparse
import os
import signal
import subprocess
import sys
import threading
import time
from typing import IO

import requests

from steam_project_paths import CATALOG_FILENAME, MONGO_URL, PROJECT_ROOT, ensure_datasets_root


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Run the game catalog API (FastAPI/Uvicorn) and the Flask UI locally."
    )
    parser.add_argument("--api-host", default="127.0.0.1", help="API host (default: 127.0.0.1)")
    parser.add_argument("--api-port", type=int, default=8000, help="API port (default: 8000)")
    parser.add_argument("--ui-host", default="127.0.0.1", help="UI host (default: 127.0.0.1)")
    parser.add_argument("--ui-port", type=int, default=5050, help="UI port (default: 5050)")
    parser.add_argument("--ui-debug", action="store_true", help="Enable Flask debug/reloader")
    parser.add_argument("--no-ui", action="store_true", help="Start the API only")
    parser.add_argument(
        "--catalog-file",
        default=CATALOG_FILENAME,
        help=f"JSONL game store under datasets/ (default: {CATALOG_FILENAME})",
    )
    parser.add_argument(
        "--mongo-url",
        default=MONGO_URL,
        help="Use a MongoDB store instead of the JSONL file (default: STEAM_MONGO_URL)",
    )
    parser.add_argument(
        "--api-wait-seconds",
        type=float,
        default=20.0,
        help="How long to wait for GET /health before starting the UI",
    )
    return parser.parse_args(argv)


def api_base_url(args: argparse.Namespace) -> str:
    return f"http://{args.api_host}:{args.api_port}"


def build_api_env(args: argparse.Namespace, base: dict[str, str] | None = None) -> dict[str, str]:
    env = dict(os.environ if base is None else base)
    env["PYTHONUNBUFFERED"] = "1"
    env["STEAM_CATALOG_FILE"] = args.catalog_file
    env["STEAM_MONGO_URL"] = args.mongo_url or ""
    return env


def build_ui_env(args: argparse.Namespace, base: dict[str, str] | None = None) -> dict[str, str]:
    env = dict(os.environ if base is None else base)
    env["PYTHONUNBUFFERED"] = "1"
    env["STEAM_API_BASE_URL"] = api_base_url(args)
    env["STEAM_UI_HOST"] = args.ui_host
    env["STEAM_UI_PORT"] = str(args.ui_port)
    env["STEAM_UI_DEBUG"] = "1" if args.ui_debug else "0"
    return env


def api_command(args: argparse.Namespace) -> list[str]:
    return [
        sys.executable,
        "-m",
        "uvicorn",
        "steam_backend_api:app",
        "--host",
        args.api_host,
        "--port",
        str(args.api_port),
    ]


def ui_command() -> list[str]:
    return [sys.executable, "steam_frontend_flask.py"]


def wait_for_api(base_url: str, timeout_seconds: float, poll_seconds: float = 0.5) -> bool:
    """Poll GET /health until it answers 200 or the timeout runs out."""
    deadline = time.monotonic() + max(0.0, timeout_seconds)
    while True:
        try:
            if requests.get(f"{base_url}/health", timeout=2).status_code == 200:
                return True
        except requests.RequestException:
            pass
        if time.monotonic() >= deadline:
            return False
        time.sleep(poll_seconds)


def _spawn(cmd: list[str], env: dict[str, str]) -> subprocess.Popen[str]:
    return subprocess.Popen(
        cmd,
        cwd=str(PROJECT_ROOT),
        env=env,
        stdout=subprocess.PIPE,
        stderr=subprocess.STDOUT,
        text=True,
        bufsize=1,
    )


def _pump(prefix: str, pipe: IO[str] | None) -> threading.Thread:
    def run() -> None:
        if pipe is None:
            return
        with pipe:
            for line in iter(pipe.readline, ""):
                sys.stdout.write(f"[{prefix}] {line}")
                sys.stdout.flush()

    thread = threading.Thread(target=run, daemon=True)
    thread.start()
    return thread


def _stop(proc: subprocess.Popen[str], name: str) -> None:
    if proc.poll() is not None:
        return
    for action in (proc.terminate, proc.kill):
        try:
            action()
        except OSError:
            return
        try:
            proc.wait(timeout=5)
            return
        except subprocess.TimeoutExpired:
            continue
    print(f"Failed to stop {name} cleanly", file=sys.stderr)


def main() -> int:
    args = parse_args()
    ensure_datasets_root()
    base_url = api_base_url(args)

    procs: dict[str, subprocess.Popen[str]] = {"API": _spawn(api_command(args), build_api_env(args))}
    _pump("api", procs["API"].stdout)

    print(f"Project root : {PROJECT_ROOT}")
    print(f"Game store   : {'MongoDB' if args.mongo_url else args.catalog_file}")
    print(f"API          : {base_url}")

    try:
        if not args.no_ui:
            if not wait_for_api(base_url, args.api_wait_seconds):
                print(f"API did not answer /health within {args.api_wait_seconds}s, starting UI anyway")
            procs["UI"] = _spawn(ui_command(), build_ui_env(args))
            _pump("ui", procs["UI"].stdout)
            print(f"UI           : http://{args.ui_host}:{args.ui_port}")
        print("Press Ctrl+C to stop.")

        while True:
            exited = {name: proc.poll() for name, proc in procs.items() if proc.poll() is not None}
            if exited:
                for name, code in exited.items():
                    print(f"{name} process exited with code {code}")
                break
            time.sleep(0.5)
    except KeyboardInterrupt:
        print("\nStopping...")
    finally:
        for name, proc in reversed(list(procs.items())):
            _stop(proc, name)

    codes = [proc.poll() for proc in procs.values()]
    return 1 if any(code not in (None, 0) for code in codes) else 0


if __name__ == "__main__":
    if os.name == "nt":
        # Ctrl+C is otherwise lost with nested subprocesses on Windows.
        signal.signal(signal.SIGINT, signal.default_int_handler)
    raise SystemExit(main())
