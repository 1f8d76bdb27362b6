from __future__ import annotations

import os
from contextlib import contextmanager
from collections.abc import Generator

from flask import Flask, current_app, g
from sqlalchemy import create_engine, event, text
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker


def build_engine(db_url: str, *, pooled: bool = True) -> Engine:
    """
    Engine for the app (pooled) or a one-shot script. SQLite gets foreign keys
    switched on so association rows cascade like they do on Postgres, and
    explicit BEGINs so SAVEPOINTs nest inside the request transaction.
    """
    kwargs: dict[str, object] = {"future": True}
    if db_url.startswith("sqlite"):
        engine = create_engine(db_url, **kwargs)

        @event.listens_for(engine, "connect")
        def _sqlite_fk_pragma(dbapi_connection, connection_record):  # type: ignore[no-redef]
            cursor = dbapi_connection.cursor()
            cursor.execute("PRAGMA foreign_keys=ON")
            cursor.close()
            # pysqlite would otherwise open transactions lazily on its own
            dbapi_connection.isolation_level = None

        @event.listens_for(engine, "begin")
        def _sqlite_begin(conn):  # type: ignore[no-redef]
            conn.exec_driver_sql("BEGIN")

        return engine

    kwargs.update({"pool_pre_ping": True, "pool_recycle": 1800})
    if pooled:
        kwargs.update({"pool_size": 5, "max_overflow": 10, "pool_timeout": 30})
    return create_engine(db_url, **kwargs)


def make_sessionmaker(engine: Engine) -> sessionmaker:
    return sessionmaker(
        bind=engine,
        class_=Session,
        autoflush=False,
        autocommit=False,
        expire_on_commit=False,
        future=True,
    )


def init_db(app: Flask) -> None:
    engine = build_engine(app.config["DATABASE_URL"])
    app.extensions["sqlalchemy_engine"] = engine
    app.extensions["sqlalchemy_sessionmaker"] = make_sessionmaker(engine)

    # gunicorn --preload forks after the pool exists; children must not share sockets.
    if hasattr(os, "register_at_fork"):

        def _after_fork_child() -> None:
            engine.dispose(close=False)
            app.logger.info("Disposed DB engine after fork (pid=%s)", os.getpid())

        os.register_at_fork(after_in_child=_after_fork_child)


def database_ok(app: Flask) -> bool:
    try:
        with app.extensions["sqlalchemy_engine"].connect() as conn:
            conn.execute(text("SELECT 1"))
    except Exception:
        app.logger.exception("Database health check failed")
        return False
    return True


def db_session() -> Session:
    """Request-scoped session, closed by teardown_db_session."""
    s: Session | None = getattr(g, "db_session", None)
    if s is None:
        s = current_app.extensions["sqlalchemy_sessionmaker"]()
        g.db_session = s
    return s


def teardown_db_session(_exc: BaseException | None) -> None:
    s: Session | None = g.pop("db_session", None)
    if s is not None:
        s.close()


@contextmanager
def session_scope(app: Flask) -> Generator[Session, None, None]:
    """Session outside a request (tests, seeders): commits on success, rolls back on error."""
    s: Session = app.extensions["sqlalchemy_sessionmaker"]()
    try:
        yield s
        s.commit()
    except Exception:
        s.rollback()
        raise
    finally:
        s.close()
