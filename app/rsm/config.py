import os
from dataclasses import dataclass


@dataclass(frozen=True)
class Settings:
    secret_key: str
    env: str
    database_url: str
    app_url: str

    auth_token_max_age: int
    password_reset_token_max_age: int
    invite_token_max_age: int

    rate_limit_max: int
    rate_limit_window: int
    login_rate_limit: int
    login_rate_window: int

    mail_backend: str
    smtp_host: str
    smtp_port: int
    smtp_user: str
    smtp_password: str
    smtp_use_tls: bool
    email_from: str


def _getenv(name: str, default: str = "") -> str:
    return (os.environ.get(name) or default).strip()


def _getenv_int(name: str, default: int) -> int:
    raw = _getenv(name)
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError:
        raise RuntimeError(f"{name} must be an integer (got {raw!r}).")


def load_settings() -> Settings:
    env = _getenv("ENV", "development")
    return Settings(
        secret_key=_getenv("SECRET_KEY", "change-me"),
        env=env,
        database_url=_getenv("DATABASE_URL", "sqlite:///rsm.db"),
        app_url=_getenv("APP_URL", "http://localhost:8888").rstrip("/"),
        auth_token_max_age=_getenv_int("AUTH_TOKEN_MAX_AGE", 3600),
        password_reset_token_max_age=_getenv_int("PASSWORD_RESET_TOKEN_MAX_AGE", 86400),
        invite_token_max_age=_getenv_int("INVITE_TOKEN_MAX_AGE", 7 * 86400),
        rate_limit_max=_getenv_int("RATE_LIMIT_MAX", 2000),
        rate_limit_window=_getenv_int("RATE_LIMIT_WINDOW", 15 * 60),
        login_rate_limit=_getenv_int("LOGIN_RATE_LIMIT", 5),
        login_rate_window=_getenv_int("LOGIN_RATE_WINDOW", 300),
        # test runs never talk to a real mail server
        mail_backend=_getenv("MAIL_BACKEND", "memory" if env == "test" else "console").lower(),
        smtp_host=_getenv("SMTP_HOST", "localhost"),
        smtp_port=_getenv_int("SMTP_PORT", 1025),
        smtp_user=_getenv("SMTP_USER", ""),
        smtp_password=_getenv("SMTP_PASSWORD", ""),
        smtp_use_tls=_getenv("SMTP_USE_TLS", "0") in ("1", "true", "yes"),
        email_from=_getenv("EMAIL_FROM", "no-reply@rsm.local"),
    )


def load_config() -> dict:
    s = load_settings()
    is_production = s.env in ("prod", "production")
    return {
        "SECRET_KEY": s.secret_key,
        "ENV": s.env,
        "DATABASE_URL": s.database_url,
        "APP_URL": s.app_url,
        "AUTH_TOKEN_MAX_AGE": s.auth_token_max_age,
        "PASSWORD_RESET_TOKEN_MAX_AGE": s.password_reset_token_max_age,
        "INVITE_TOKEN_MAX_AGE": s.invite_token_max_age,
        "RATE_LIMIT_MAX": s.rate_limit_max,
        "RATE_LIMIT_WINDOW": s.rate_limit_window,
        "LOGIN_RATE_LIMIT": s.login_rate_limit,
        "LOGIN_RATE_WINDOW": s.login_rate_window,
        "MAIL_BACKEND": s.mail_backend,
        "SMTP_HOST": s.smtp_host,
        "SMTP_PORT": s.smtp_port,
        "SMTP_USER": s.smtp_user,
        "SMTP_PASSWORD": s.smtp_password,
        "SMTP_USE_TLS": s.smtp_use_tls,
        "EMAIL_FROM": s.email_from,
        # security defaults
        "SESSION_COOKIE_HTTPONLY": True,
        "SESSION_COOKIE_SAMESITE": "Lax",
        "SESSION_COOKIE_SECURE": is_production,
        # JSON bodies only; 1MB is plenty
        "MAX_CONTENT_LENGTH": 1 * 1024 * 1024,
    }


def production_problems(config: dict) -> list[str]:
    """Settings that must not reach a production deploy."""
    if config["ENV"] not in ("prod", "production"):
        return []
    problems = []
    if not config["DATABASE_URL"].startswith("postgres"):
        problems.append("DATABASE_URL must point at Postgres in production.")
    if config["SECRET_KEY"] in ("", "change-me"):
        problems.append("SECRET_KEY must be set to a strong value in production.")
    if config["MAIL_BACKEND"] == "memory":
        problems.append("MAIL_BACKEND=memory is for tests only.")
    if not config["APP_URL"].startswith("https://"):
        problems.append("APP_URL must be https in production (it is used in emailed links).")
    return problems
