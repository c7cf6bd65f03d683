# -*- coding: utf-8 -*-
"""
catalog.py

Purpose:
    The URI <-> documentId ledger of a document index. It is persisted
    separately from the vector snapshot as `catalog.json` in the index folder.

What this module provides:
    1) empty_catalog(version) -> Catalog
    2) load_catalog(catalog_path) -> Catalog
       - Loads the catalog JSON; StorageError if it is unreadable or corrupt.
    3) publish_atomic(catalog, catalog_path) -> None
       - Writes the ENTIRE catalog atomically: *.tmp then os.replace.
       - stage() + commit_staged() are the two halves, so a caller can
         stage the catalog, write other files, then swap it in.
    4) add_entry / remove_entry / check_invariants
       - Keep uriToId and idToUri mutual inverses and count in sync.

Catalog JSON written to disk (key names are part of the on-disk format):
    {
      "version": 1,
      "count":   2,
      "uriToId": {"src/a.py": "<id>", ...},
      "idToUri": {"<id>": "src/a.py", ...}
    }
"""

from __future__ import annotations

import copy
import json
import os
from pathlib import Path
from typing import Dict, TypedDict

from docvec.errors import StorageError


class Catalog(TypedDict):
    version: int
    count: int
    uriToId: Dict[str, str]
    idToUri: Dict[str, str]


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------

def empty_catalog(version: int = 1) -> Catalog:
    return {"version": version, "count": 0, "uriToId": {}, "idToUri": {}}


def copy_catalog(catalog: Catalog) -> Catalog:
    """Deep copy, used as the working copy of an update transaction."""
    return copy.deepcopy(catalog)


def load_catalog(catalog_path: str | Path) -> Catalog:
    """
    Load the catalog JSON.

    Raises:
        StorageError: if the file cannot be read, is not valid JSON, or does
                      not satisfy the catalog invariants.
    """
    cp = Path(catalog_path)
    try:
        with cp.open("r", encoding="utf-8") as f:
            data = json.load(f)
    except json.JSONDecodeError as e:
        raise StorageError(f"Catalog is not valid JSON: {catalog_path}") from e
    except OSError as e:
        raise StorageError(f"Cannot read catalog {catalog_path}: {e}") from e

    if not isinstance(data, dict):
        raise StorageError(f"Catalog has an unexpected shape: {catalog_path}")

    catalog: Catalog = {
        "version": int(data.get("version", 1)),
        "count": int(data.get("count", 0)),
        "uriToId": dict(data.get("uriToId") or {}),
        "idToUri": dict(data.get("idToUri") or {}),
    }
    try:
        check_invariants(catalog)
    except ValueError as e:
        raise StorageError(f"Catalog is inconsistent ({e}): {catalog_path}") from e
    return catalog


def publish_atomic(catalog: Catalog, catalog_path: str | Path) -> None:
    """
    Atomically write the ENTIRE catalog JSON to disk.

    Implementation:
        - Ensure parent directory exists.
        - Write to <catalog_path>.tmp.
        - os.replace(tmp, catalog_path): either the old file stays, or the
          new one fully replaces it.
    """
    commit_staged(stage(catalog, catalog_path), catalog_path)


def stage(catalog: Catalog, catalog_path: str | Path) -> Path:
    """First half of publish_atomic: write <catalog_path>.tmp and return its path."""
    cp = Path(catalog_path)
    tmp_path = cp.with_suffix(cp.suffix + ".tmp")
    try:
        cp.parent.mkdir(parents=True, exist_ok=True)
        with tmp_path.open("w", encoding="utf-8") as f:
            json.dump(catalog, f, ensure_ascii=False)
    except OSError as e:
        raise StorageError(f"Error saving document catalog {catalog_path}: {e}") from e
    return tmp_path


def commit_staged(tmp_path: Path, catalog_path: str | Path) -> None:
    """Second half of publish_atomic: swap the staged file into place."""
    try:
        os.replace(str(tmp_path), str(catalog_path))
    except OSError as e:
        raise StorageError(f"Error saving document catalog {catalog_path}: {e}") from e


def add_entry(catalog: Catalog, uri: str, document_id: str) -> None:
    if uri in catalog["uriToId"]:
        raise ValueError(f"uri already catalogued: {uri!r}")
    catalog["uriToId"][uri] = document_id
    catalog["idToUri"][document_id] = uri
    catalog["count"] = len(catalog["uriToId"])


def remove_entry(catalog: Catalog, uri: str) -> None:
    document_id = catalog["uriToId"].pop(uri, None)
    if document_id is not None:
        catalog["idToUri"].pop(document_id, None)
    catalog["count"] = len(catalog["uriToId"])


def check_invariants(catalog: Catalog) -> None:
    """Raise ValueError unless uriToId/idToUri are mutual inverses and count matches."""
    uri_to_id = catalog["uriToId"]
    id_to_uri = catalog["idToUri"]
    if len(uri_to_id) != len(id_to_uri):
        raise ValueError("uriToId and idToUri differ in size")
    for uri, document_id in uri_to_id.items():
        if id_to_uri.get(document_id) != uri:
            raise ValueError(f"mapping mismatch for {uri!r}")
    if catalog["count"] != len(uri_to_id):
        raise ValueError("count does not match the number of documents")
