#!/usr/bin/env python3
"""
Container entrypoint: run the release phase, then exec gunicorn.

Env: PORT (8888), WEB_CONCURRENCY (2), GUNICORN_TIMEOUT (60).
"""

from __future__ import annotations

import os
import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))


def _int_env(name: str, default: int, low: int, high: int) -> int:
    raw = (os.environ.get(name) or "").strip() or str(default)
    try:
        value = int(raw)
    except ValueError:
        value = -1
    if not low <= value <= high:
        print(f"ERROR: {name}={raw!r} must be an integer between {low} and {high}.", flush=True)
        sys.exit(1)
    return value


def gunicorn_argv() -> list[str]:
    port = _int_env("PORT", 8888, 1, 65535)
    return [
        "gunicorn",
        "app.rsm.wsgi:app",
        "--bind", f"0.0.0.0:{port}",
        "--workers", str(_int_env("WEB_CONCURRENCY", 2, 1, 64)),
        "--timeout", str(_int_env("GUNICORN_TIMEOUT", 60, 1, 3600)),
        "--preload",
        "--access-logfile", "-",
        "--error-logfile", "-",
    ]


def main() -> None:
    argv = gunicorn_argv()

    from scripts.release import run_release

    try:
        run_release()
    except Exception as e:
        print(f"Release failed: {e}", flush=True)
        sys.exit(1)

    print(f"Starting: {' '.join(argv)}", flush=True)
    os.execvp(argv[0], argv)


if __name__ == "__main__":
    main()
