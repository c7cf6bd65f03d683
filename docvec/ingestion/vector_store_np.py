# -*- coding: utf-8 -*-
"""
LocalIndex
==========
Exact-cosine vector store with NumPy only.

Persists to a single JSON snapshot under the *given folder_path*:

    {"version": 1, "items": [{"id": ..., "vector": [...], "metadata": {...}}]}

The snapshot is the sole durable state. Reads happen against an in-memory
copy that is loaded explicitly (`load()`) or on first access. Mutations are
grouped by an update scope:

    index.begin_update()
    index.insert_item(...)
    index.delete_item(...)
    index.end_update()      # persist (tmp file -> os.replace)
    # or index.cancel_update() to drop the in-memory changes
    # or, after end_update(), index.revert_update() to re-publish the
    # snapshot as it was at begin_update()

A single insert/upsert/delete outside an update scope commits immediately.
At most one update is open at a time; nested begin_update() is a no-op.
Items are copied on the way in and on the way out; changing a returned
Item never changes the store.
"""

from __future__ import annotations

import json
import os
import shutil
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional

import numpy as np

from docvec.errors import DuplicateIdError, StorageError
from docvec.ingestion.item_selector import Metadata, MetadataValue, cosine_scores, select
from docvec.utils.logging import SimpleLogger


@dataclass
class Item:
    """A stored (id, vector, metadata) record."""
    id: str
    vector: List[float]
    metadata: Metadata = field(default_factory=dict)

    def copy(self) -> "Item":
        return Item(id=self.id, vector=list(self.vector), metadata=dict(self.metadata))

    def to_json(self) -> Dict[str, Any]:
        return {"id": self.id, "vector": list(self.vector), "metadata": dict(self.metadata)}

    @classmethod
    def from_json(cls, data: Mapping[str, Any]) -> "Item":
        return cls(
            id=str(data["id"]),
            vector=[float(v) for v in data.get("vector", [])],
            metadata=dict(data.get("metadata") or {}),
        )


@dataclass(frozen=True)
class ChunkHit:
    """One query match: the stored item and its cosine score in [-1, 1]."""
    item: Item
    score: float


class LocalIndex:

    def __init__(self, folder_path: str | Path, index_name: str = "index.json") -> None:
        self.folder_path = Path(folder_path)
        self.index_name = index_name
        self.index_file = self.folder_path / index_name
        self._version: int = 1
        self._items: Optional[List[Item]] = None
        self._id2idx: Dict[str, int] = {}
        self._update: bool = False
        self._before_update: Optional[List[Item]] = None

    # ---- lifecycle ----
    @property
    def is_loaded(self) -> bool:
        return self._items is not None

    @property
    def update_in_progress(self) -> bool:
        return self._update

    def is_index_created(self) -> bool:
        return self.index_file.exists()

    def create_index(self, version: int = 1, delete_if_exists: bool = False) -> None:
        """Write an empty snapshot. Fails if one exists and `delete_if_exists` is False."""
        if delete_if_exists:
            self.delete_index()
        elif self.is_index_created():
            raise StorageError(f"Index already exists: {self.index_file}")

        try:
            self.folder_path.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            raise StorageError(f"Cannot create index folder {self.folder_path}: {exc}") from exc

        self._version = int(version)
        self._set_items([])
        self._update = False
        self._save()
        SimpleLogger.debug(f"LocalIndex: created {self.index_file}")

    def delete_index(self) -> None:
        """Remove the whole index folder (snapshot and anything stored beside it)."""
        try:
            shutil.rmtree(self.folder_path)
        except FileNotFoundError:
            pass
        except OSError as exc:
            raise StorageError(f"Cannot delete index folder {self.folder_path}: {exc}") from exc
        self._items = None
        self._id2idx = {}
        self._update = False
        self._before_update = None

    def load(self) -> None:
        """Load the snapshot into memory if not loaded yet. Missing file => empty store."""
        if self._items is not None:
            return
        if not self.index_file.exists():
            self._version = 1
            self._set_items([])
            return
        try:
            with self.index_file.open("r", encoding="utf-8") as f:
                data = json.load(f)
        except json.JSONDecodeError as exc:
            raise StorageError(f"Index snapshot is not valid JSON: {self.index_file}") from exc
        except OSError as exc:
            raise StorageError(f"Cannot read index snapshot {self.index_file}: {exc}") from exc

        if not isinstance(data, dict) or not isinstance(data.get("items", []), list):
            raise StorageError(f"Index snapshot has an unexpected shape: {self.index_file}")
        try:
            items = [Item.from_json(raw) for raw in data.get("items", [])]
        except (KeyError, TypeError, ValueError) as exc:
            raise StorageError(f"Index snapshot contains a malformed item: {self.index_file}") from exc

        self._version = int(data.get("version", 1))
        self._set_items(items)
        if len(self._id2idx) != len(items):
            self._items = None
            raise StorageError(f"Index snapshot contains duplicate item ids: {self.index_file}")

    # ---- update scope ----
    def begin_update(self) -> None:
        if self._update:
            return
        self.load()
        self._before_update = list(self._items)
        self._update = True

    def end_update(self) -> None:
        if not self._update:
            raise StorageError("No update in progress")
        try:
            self._save()
        finally:
            self._update = False

    def cancel_update(self) -> None:
        """Discard in-memory changes; the next access reloads the last durable snapshot."""
        self._update = False
        self._items = None
        self._id2idx = {}
        self._before_update = None

    def revert_update(self) -> None:
        """Re-publish the items as they were when the last update began."""
        if self._before_update is None:
            raise StorageError("No update to revert")
        self._set_items(list(self._before_update))
        self._update = False
        self._commit_if_implicit()

    # ---- mutations ----
    def insert_item(self, item: Item) -> Item:
        self.load()
        if item.id in self._id2idx:
            raise DuplicateIdError(item.id)
        self._append(item.copy())
        self._commit_if_implicit()
        return item

    def upsert_item(self, item: Item) -> Item:
        self.load()
        idx = self._id2idx.get(item.id)
        if idx is None:
            self._append(item.copy())
        else:
            self._items[idx] = item.copy()
        self._commit_if_implicit()
        return item

    def delete_item(self, item_id: str) -> None:
        self.load()
        if item_id not in self._id2idx:
            return
        self._set_items([it for it in self._items if it.id != item_id])
        self._commit_if_implicit()

    def delete_where(self, filter: Mapping[str, MetadataValue]) -> int:
        """Delete every item matching `filter` (empty filter deletes nothing). Returns the count."""
        self.load()
        if not filter:
            return 0
        kept = [it for it in self._items if not select(it.metadata, filter)]
        removed = len(self._items) - len(kept)
        if removed:
            self._set_items(kept)
            self._commit_if_implicit()
        return removed

    # ---- reads ----
    def get_item(self, item_id: str) -> Optional[Item]:
        self.load()
        idx = self._id2idx.get(item_id)
        return None if idx is None else self._items[idx].copy()

    def list_items(self) -> List[Item]:
        self.load()
        return [it.copy() for it in self._items]

    def list_items_by_metadata(self, filter: Mapping[str, MetadataValue]) -> List[Item]:
        self.load()
        return [it.copy() for it in self._items if select(it.metadata, filter)]

    def query_items(
        self,
        vector: List[float],
        top_k: int,
        filter: Optional[Mapping[str, MetadataValue]] = None,
    ) -> List[ChunkHit]:
        """
        Brute-force cosine scan over the (filtered) items.
        Returns at most `top_k` hits, best first; equal scores keep insertion order.
        """
        self.load()
        items = [it for it in self._items if select(it.metadata, filter)] if filter else self._items
        top_k = int(top_k)
        if not items or top_k <= 0:
            return []

        q = np.asarray(vector, dtype=np.float32)
        if q.ndim != 1:
            raise ValueError("query vector must be 1D")
        try:
            matrix = np.asarray([it.vector for it in items], dtype=np.float32)
        except ValueError as exc:
            raise ValueError("stored vectors do not share one dimension") from exc

        scores = cosine_scores(matrix, q)
        order = np.argsort(-scores, kind="stable")[:top_k]
        return [ChunkHit(item=items[i].copy(), score=float(scores[i])) for i in order.tolist()]

    def get_index_stats(self) -> Dict[str, int]:
        self.load()
        payload = json.dumps([it.to_json() for it in self._items])
        return {"version": self._version, "items": len(self._items), "size": len(payload)}

    # ---- internal persistence ----
    def _append(self, item: Item) -> None:
        self._items.append(item)
        self._id2idx[item.id] = len(self._items) - 1

    def _set_items(self, items: List[Item]) -> None:
        self._items = items
        self._id2idx = {it.id: i for i, it in enumerate(items)}

    def _commit_if_implicit(self) -> None:
        if self._update:
            return
        try:
            self._save()
        except StorageError:
            # memory must not run ahead of disk
            self._items = None
            self._id2idx = {}
            raise

    def _save(self) -> None:
        data = {"version": self._version, "items": [it.to_json() for it in self._items or []]}
        tmp_path = self.index_file.with_suffix(self.index_file.suffix + ".tmp")
        try:
            self.folder_path.mkdir(parents=True, exist_ok=True)
            with tmp_path.open("w", encoding="utf-8") as f:
                json.dump(data, f)
            os.replace(str(tmp_path), str(self.index_file))
        except OSError as exc:
            raise StorageError(f"Cannot write index snapshot {self.index_file}: {exc}") from exc
