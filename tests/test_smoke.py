from app.rsm import create_app, rate_limit


def test_health_ok(client):
    r = client.get("/health")
    assert r.status_code == 200
    assert r.json == {"ok": True, "database": "ok"}


def test_healthz_is_plain_text(client):
    r = client.get("/healthz")
    assert r.status_code == 200
    assert r.data == b"ok"


def test_root_redirects_to_admin(client):
    r = client.get("/", follow_redirects=False)
    assert r.status_code == 302
    assert r.headers["Location"].endswith("/admin/")


def test_unknown_api_route_is_json_404(client):
    r = client.get("/nope")
    assert r.status_code == 404
    assert r.json == {"message": "Not Found."}


def test_api_requires_bearer_token(client):
    r = client.get("/schools")
    assert r.status_code == 401
    assert r.json["code"] == "UNAUTHENTICATED"


def test_bad_bearer_token_is_anonymous(client):
    r = client.get("/schools", headers={"Authorization": "Bearer not-a-token"})
    assert r.status_code == 401


def test_rate_limit_headers_present(client):
    r = client.get("/schools")
    assert "RateLimit" in r.headers
    assert r.headers["RateLimit-Policy"].startswith('"default";q=')


def test_global_rate_limit_returns_429(app, monkeypatch):
    monkeypatch.setenv("RATE_LIMIT_MAX", "2")
    limited = create_app().test_client()

    assert limited.get("/schools").status_code == 401
    assert limited.get("/schools").status_code == 401
    r = limited.get("/schools")
    assert r.status_code == 429
    assert r.json["code"] == "TOO_MANY_REQUESTS"
    assert int(r.headers["Retry-After"]) >= 1


def test_limiter_forgets_idle_clients(monkeypatch):
    now = [1000.0]
    monkeypatch.setattr(rate_limit.time, "monotonic", lambda: now[0])
    limiter = rate_limit.SlidingWindowLimiter(limit=2, window=60)

    assert limiter.hit("10.0.0.1")[0]
    assert limiter.hit("10.0.0.2")[0]
    assert len(limiter._hits) == 2

    now[0] += 61
    assert limiter.hit("10.0.0.1") == (True, 1, 60)
    assert set(limiter._hits) == {"10.0.0.1"}


def test_admin_redirects_anonymous_to_login(client):
    r = client.get("/admin/", follow_redirects=False)
    assert r.status_code == 302
    assert "/admin/login" in r.headers["Location"]


def test_login_and_admin_access(client, admin_login):
    admin_login()
    r = client.get("/admin/")
    assert r.status_code == 200
    assert b"Schools" in r.data
