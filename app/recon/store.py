"""
Keyed document stores.

Settings, per-vehicle inspection data and the denormalised checklist record are all
read and written as whole JSON documents addressed by a single key (dealership id or
vehicle id). Services receive a ``DocumentStore`` rather than a session so that the
storage shape stays out of the reconciliation/status logic.
"""
from __future__ import annotations

import copy
import json
import os
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Any

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session


class StoreError(RuntimeError):
    pass


class DocumentStore:
    def get(self, key: str) -> dict[str, Any] | None:
        raise NotImplementedError

    def upsert(self, key: str, doc: dict[str, Any]) -> None:
        raise NotImplementedError

    def delete(self, key: str) -> bool:
        raise NotImplementedError


@dataclass(frozen=True)
class LocalDocumentStore(DocumentStore):
    """One JSON file per key under ``root/namespace``."""

    root: Path
    namespace: str

    def _path(self, key: str) -> Path:
        safe_key = key.strip().replace("/", "_").replace("\\", "_").lstrip(".")
        if not safe_key:
            raise StoreError("Empty document key")
        return self.root / self.namespace / f"{safe_key}.json"

    def get(self, key: str) -> dict[str, Any] | None:
        p = self._path(key)
        if not p.exists():
            return None
        try:
            value = json.loads(p.read_text(encoding="utf-8"))
        except (OSError, ValueError) as e:
            raise StoreError(f"Unreadable cached document {p.name}: {e}") from e
        if not isinstance(value, dict):
            raise StoreError(f"Cached document {p.name} is not a JSON object")
        return value

    def upsert(self, key: str, doc: dict[str, Any]) -> None:
        p = self._path(key)
        try:
            p.parent.mkdir(parents=True, exist_ok=True)
            tmp = p.with_suffix(".json.tmp")
            tmp.write_text(json.dumps(doc, indent=2, sort_keys=True), encoding="utf-8")
            tmp.replace(p)
        except (OSError, TypeError, ValueError) as e:
            raise StoreError(f"Cannot write cached document {p.name}: {e}") from e

    def delete(self, key: str) -> bool:
        p = self._path(key)
        try:
            p.unlink()
        except FileNotFoundError:
            return False
        except OSError as e:
            raise StoreError(f"Cannot delete cached document {p.name}: {e}") from e
        return True


@dataclass(frozen=True)
class SqlDocumentStore(DocumentStore):
    """
    Documents backed by one table row per key.

    Either ``document_column`` holds the whole document as JSON, or ``columns`` lists the
    row attributes exposed as document keys. ``scope`` restricts every lookup (and is set
    on inserted rows), e.g. ``{"dealership_id": ...}``. With ``create_missing=False`` an
    upsert against a missing row raises instead of inserting.

    Each write runs in a SAVEPOINT and is flushed immediately, so a failed write is rolled
    back on its own without discarding earlier writes in the same session.
    """

    session: Session
    model: type
    key_column: str
    document_column: str | None = None
    columns: tuple[str, ...] = ()
    scope: dict[str, Any] = field(default_factory=dict)
    create_missing: bool = True

    def _query(self, key: str):
        q = self.session.query(self.model).filter(getattr(self.model, self.key_column) == key)
        for attr, value in self.scope.items():
            q = q.filter(getattr(self.model, attr) == value)
        return q

    def _row(self, key: str):
        try:
            return self._query(key).one_or_none()
        except SQLAlchemyError as e:
            raise StoreError(f"{self.model.__name__} lookup failed: {e}") from e

    def _to_doc(self, row) -> dict[str, Any]:
        if self.document_column:
            value = getattr(row, self.document_column)
            return copy.deepcopy(value) if isinstance(value, dict) else {}
        return {c: copy.deepcopy(getattr(row, c)) for c in self.columns}

    def get(self, key: str) -> dict[str, Any] | None:
        row = self._row(key)
        if row is None:
            return None
        return self._to_doc(row)

    def upsert(self, key: str, doc: dict[str, Any]) -> None:
        row = self._row(key)
        if row is None and not self.create_missing:
            raise StoreError(f"{self.model.__name__} {key!r} does not exist")
        try:
            with self.session.begin_nested():
                if row is None:
                    row = self.model(**{self.key_column: key, **self.scope})
                    self.session.add(row)
                if self.document_column:
                    setattr(row, self.document_column, copy.deepcopy(doc))
                else:
                    for c in self.columns:
                        if c in doc:
                            setattr(row, c, copy.deepcopy(doc[c]))
                if hasattr(row, "updated_at"):
                    row.updated_at = datetime.utcnow()
                self.session.flush()
        except SQLAlchemyError as e:
            raise StoreError(f"{self.model.__name__} {key!r} write failed: {e}") from e

    def delete(self, key: str) -> bool:
        row = self._row(key)
        if row is None:
            return False
        try:
            with self.session.begin_nested():
                self.session.delete(row)
                self.session.flush()
        except SQLAlchemyError as e:
            raise StoreError(f"{self.model.__name__} {key!r} delete failed: {e}") from e
        return True


def settings_store(s: Session) -> SqlDocumentStore:
    from app.recon.modules.inspection_settings.models import InspectionSettingsRecord

    return SqlDocumentStore(s, InspectionSettingsRecord, "dealership_id", document_column="settings")


def vehicle_inspection_store(s: Session, dealership_id: str) -> SqlDocumentStore:
    """Inspection data and team notes live on the vehicle row and are written together."""
    from app.recon.modules.vehicles.models import Vehicle

    return SqlDocumentStore(
        s,
        Vehicle,
        "id",
        columns=("inspection_data", "team_notes"),
        scope={"dealership_id": dealership_id},
        create_missing=False,
    )


def checklist_store(s: Session) -> SqlDocumentStore:
    from app.recon.modules.inspection_data.models import InspectionChecklist

    return SqlDocumentStore(
        s,
        InspectionChecklist,
        "vehicle_id",
        columns=("checklist_data", "inspector_id", "status", "notes", "completed_at"),
    )


def cache_from_config(config: dict) -> LocalDocumentStore | None:
    if not config.get("CACHE_ENABLED", True):
        return None
    raw = (config.get("CACHE_DIR") or "storage/cache").strip()
    root = Path(raw) if os.path.isabs(raw) else Path(os.getcwd()) / raw
    return LocalDocumentStore(root=root, namespace="inspection_settings")
