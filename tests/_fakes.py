"""In-memory document stores for service-level tests."""
from __future__ import annotations

import copy
from typing import Any

from app.recon.store import DocumentStore, StoreError


class MemoryDocumentStore(DocumentStore):
    """
    ``patch=True`` mimics a column-backed SQL store: an upsert only touches the keys it
    carries. ``create_missing=False`` refuses to insert, like the vehicle store.
    """

    def __init__(self, docs: dict[str, Any] | None = None, *, patch: bool = False, create_missing: bool = True):
        self.docs: dict[str, Any] = copy.deepcopy(docs or {})
        self.patch = patch
        self.create_missing = create_missing
        self.fail_reads = False
        self.fail_writes = False
        self.writes: list[tuple[str, dict[str, Any]]] = []

    def get(self, key: str) -> dict[str, Any] | None:
        if self.fail_reads:
            raise StoreError("read failed")
        return copy.deepcopy(self.docs.get(key))

    def upsert(self, key: str, doc: dict[str, Any]) -> None:
        if self.fail_writes:
            raise StoreError("write failed")
        if key not in self.docs and not self.create_missing:
            raise StoreError(f"{key!r} does not exist")
        if self.patch and isinstance(self.docs.get(key), dict):
            self.docs[key].update(copy.deepcopy(doc))
        else:
            self.docs[key] = copy.deepcopy(doc)
        self.writes.append((key, copy.deepcopy(doc)))

    def delete(self, key: str) -> bool:
        if self.fail_writes:
            raise StoreError("delete failed")
        return self.docs.pop(key, None) is not None
