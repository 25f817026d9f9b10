from __future__ import annotations

from contextlib import contextmanager

from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker

from app.recon.db import _configure_sqlite, _engine_kwargs


def create_script_engine(db_url: str):
    # Same pool and SQLite rules as the web app, so seeding a dealership behaves the same.
    engine = create_engine(db_url, **_engine_kwargs(db_url))
    if db_url.startswith("sqlite"):
        _configure_sqlite(engine)
    return engine


@contextmanager
def script_session(db_url: str):
    """Session for seeding dealerships, users and default inspection settings outside Flask."""
    engine = create_script_engine(db_url)
    sm = sessionmaker(bind=engine, class_=Session, autoflush=False, expire_on_commit=False)
    s: Session = sm()
    try:
        yield s
        s.commit()
    except Exception:
        s.rollback()
        raise
    finally:
        s.close()
        engine.dispose()
