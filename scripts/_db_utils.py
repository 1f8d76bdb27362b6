from __future__ import annotations

from contextlib import contextmanager

from sqlalchemy.orm import Session

from app.rsm.db import build_engine, make_sessionmaker


@contextmanager
def script_session(db_url: str, *, create_tables: bool = False):
    """Session for CLI scripts; commits on success. create_tables is for throwaway sqlite databases."""
    engine = build_engine(db_url, pooled=False)
    if create_tables:
        from app.rsm.models import Base

        Base.metadata.create_all(bind=engine)
    s: Session = make_sessionmaker(engine)()
    try:
        yield s
        s.commit()
    except Exception:
        s.rollback()
        raise
    finally:
        s.close()
        engine.dispose()
