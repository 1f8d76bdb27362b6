import pytest

from app.rsm import create_app
from app.rsm.config import load_config, production_problems


def _clear(monkeypatch):
    for k in ("SECRET_KEY", "DATABASE_URL", "MAIL_BACKEND", "APP_URL", "ENV"):
        monkeypatch.delenv(k, raising=False)


def test_defaults(monkeypatch):
    _clear(monkeypatch)
    cfg = load_config()
    assert cfg["ENV"] == "development"
    assert cfg["DATABASE_URL"] == "sqlite:///rsm.db"
    assert cfg["APP_URL"] == "http://localhost:8888"
    assert cfg["INVITE_TOKEN_MAX_AGE"] == 7 * 86400
    assert cfg["MAIL_BACKEND"] == "console"
    assert production_problems(cfg) == []


def test_test_env_uses_memory_mail(monkeypatch):
    _clear(monkeypatch)
    monkeypatch.setenv("ENV", "test")
    assert load_config()["MAIL_BACKEND"] == "memory"


def test_bad_integer_is_rejected(monkeypatch):
    _clear(monkeypatch)
    monkeypatch.setenv("RATE_LIMIT_MAX", "lots")
    with pytest.raises(RuntimeError, match="RATE_LIMIT_MAX must be an integer"):
        load_config()


def test_production_guardrails(monkeypatch):
    _clear(monkeypatch)
    monkeypatch.setenv("ENV", "production")
    problems = production_problems(load_config())
    assert problems == [
        "DATABASE_URL must point at Postgres in production.",
        "SECRET_KEY must be set to a strong value in production.",
        "APP_URL must be https in production (it is used in emailed links).",
    ]
    with pytest.raises(RuntimeError, match="DATABASE_URL"):
        create_app()


def test_production_ok(monkeypatch):
    _clear(monkeypatch)
    monkeypatch.setenv("ENV", "production")
    monkeypatch.setenv("DATABASE_URL", "postgresql://rsm@db/rsm")
    monkeypatch.setenv("SECRET_KEY", "a-long-random-value")
    monkeypatch.setenv("APP_URL", "https://rsm.example.org/")
    monkeypatch.setenv("MAIL_BACKEND", "smtp")
    cfg = load_config()
    assert cfg["APP_URL"] == "https://rsm.example.org"
    assert cfg["SESSION_COOKIE_SECURE"] is True
    assert production_problems(cfg) == []
