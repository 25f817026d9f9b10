"""
Release step for the reconditioning service: migrate the schema, then seed.

Seeding creates the permission set, the admin and inspector roles, the first
dealership with its admin user, and that dealership's default inspection checklist.
It is idempotent and never overwrites passwords or a dealership's edited settings.

Usage:
  DATABASE_URL=postgresql+psycopg://... python scripts/release.py
"""

from __future__ import annotations

import os
import sys
from pathlib import Path


ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))


def _database_url() -> str:
    db_url = (os.environ.get("DATABASE_URL") or "").strip()
    if not db_url:
        raise RuntimeError("DATABASE_URL must point at the dealership database before a release.")
    env = (os.environ.get("ENV") or "").strip().lower()
    if env in ("prod", "production") and db_url.startswith("sqlite"):
        raise RuntimeError("Refusing to release against SQLite in production; vehicle and settings data need Postgres.")
    return db_url


def migrate(db_url: str) -> None:
    from alembic import command
    from alembic.config import Config

    cfg = Config(str(ROOT / "alembic.ini"))
    cfg.set_main_option("script_location", str(ROOT / "migrations"))
    cfg.set_main_option("sqlalchemy.url", db_url)
    command.upgrade(cfg, "head")


def run_release() -> None:
    db_url = _database_url()
    print("Applying migrations (vehicles, inspection checklists, inspection settings)...", flush=True)
    migrate(db_url)

    from scripts import init_db

    print("Seeding roles, dealership and default inspection settings...", flush=True)
    init_db.seed_only(database_url=db_url)
    print("Release complete.", flush=True)


if __name__ == "__main__":
    run_release()
