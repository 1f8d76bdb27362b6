from __future__ import annotations

import math
import threading
import time
from collections import deque

from flask import Flask, Response, g, jsonify, request


class SlidingWindowLimiter:
    """
    In-memory per-key request counter over a sliding window.
    Per-process only; each gunicorn worker keeps its own counts.
    """

    def __init__(self, limit: int, window: int) -> None:
        self.limit = limit
        self.window = window
        self._hits: dict[str, deque[float]] = {}
        self._next_sweep = 0.0
        self._lock = threading.Lock()

    def _prune(self, key: str, now: float) -> deque[float]:
        hits = self._hits.get(key)
        if hits is None:
            return deque()
        cutoff = now - self.window
        while hits and hits[0] <= cutoff:
            hits.popleft()
        if not hits:
            # idle clients must not keep an entry forever
            del self._hits[key]
        return hits

    def hit(self, key: str) -> tuple[bool, int, int]:
        """
        Record a request. Returns (allowed, remaining, seconds_until_reset).
        Rejected requests are not counted.
        """
        with self._lock:
            now = time.monotonic()
            if now >= self._next_sweep:
                for other in list(self._hits):
                    self._prune(other, now)
                self._next_sweep = now + self.window
            hits = self._prune(key, now)
            if len(hits) >= self.limit:
                reset = max(1, math.ceil(hits[0] + self.window - now))
                return False, 0, reset
            hits.append(now)
            self._hits[key] = hits
            reset = max(1, math.ceil(hits[0] + self.window - now))
            return True, self.limit - len(hits), reset

    def reset(self, key: str) -> None:
        with self._lock:
            self._hits.pop(key, None)


def client_key() -> str:
    return request.remote_addr or "unknown"


def init_rate_limiting(app: Flask) -> None:
    limiter = SlidingWindowLimiter(app.config["RATE_LIMIT_MAX"], app.config["RATE_LIMIT_WINDOW"])
    app.extensions["rate_limiter"] = limiter
    app.extensions["login_limiter"] = SlidingWindowLimiter(
        app.config["LOGIN_RATE_LIMIT"], app.config["LOGIN_RATE_WINDOW"]
    )
    policy = f'"default";q={limiter.limit};w={limiter.window}'

    @app.before_request
    def _rate_limit_guard():
        if request.path.startswith(("/static/", "/health", "/healthz")):
            return None
        allowed, remaining, reset = limiter.hit(client_key())
        g.rate_limit_state = (remaining, reset)
        if not allowed:
            app.logger.warning("Rate limit exceeded for %s (request_id=%s)", client_key(), getattr(g, "request_id", None))
            resp = jsonify({"code": "TOO_MANY_REQUESTS", "message": "Too many requests, please try again later."})
            resp.status_code = 429
            resp.headers["Retry-After"] = str(reset)
            return resp
        return None

    @app.after_request
    def _rate_limit_headers(resp: Response) -> Response:
        state = getattr(g, "rate_limit_state", None)
        if state is not None:
            remaining, reset = state
            resp.headers["RateLimit-Policy"] = policy
            resp.headers["RateLimit"] = f'"default";r={remaining};t={reset}'
        return resp
