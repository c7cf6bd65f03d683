# -*- coding: utf-8 -*-
"""
LocalDocument
=============
An indexed document stored on disk: `<documentId>.txt` holds the full text,
`<documentId>.json` the optional caller metadata. Both are read lazily and
cached on the instance.
"""
from __future__ import annotations

import json
import math
from pathlib import Path
from typing import TYPE_CHECKING, Any, Dict, Optional

from docvec.errors import StorageError

if TYPE_CHECKING:
    from docvec.ingestion.document_index import LocalDocumentIndex

# Documents above this many bytes get an estimated token length.
EXACT_LENGTH_MAX_BYTES = 40_000


class LocalDocument:

    def __init__(self, index: "LocalDocumentIndex", document_id: str, uri: str) -> None:
        self._index = index
        self._id = document_id
        self._uri = uri
        self._metadata: Optional[Dict[str, Any]] = None
        self._text: Optional[str] = None

    @property
    def folder_path(self) -> Path:
        return self._index.folder_path

    @property
    def id(self) -> str:
        return self._id

    @property
    def uri(self) -> str:
        return self._uri

    def get_length(self) -> int:
        """
        Length of the document in tokens. Exact for texts up to 40,000 bytes,
        otherwise estimated as ceil(bytes / 4).
        """
        text = self.load_text()
        size = len(text.encode("utf-8"))
        if size <= EXACT_LENGTH_MAX_BYTES:
            return len(self._index.tokenizer.encode(text))
        return math.ceil(size / 4)

    def has_metadata(self) -> bool:
        return (self.folder_path / f"{self._id}.json").exists()

    def load_metadata(self) -> Dict[str, Any]:
        if self._metadata is None:
            path = self.folder_path / f"{self._id}.json"
            try:
                raw = path.read_text(encoding="utf-8")
            except OSError as exc:
                raise StorageError(f'Error reading metadata for document "{self._uri}": {exc}') from exc
            try:
                self._metadata = json.loads(raw)
            except json.JSONDecodeError as exc:
                raise StorageError(f'Error parsing metadata for document "{self._uri}": {exc}') from exc
        return self._metadata

    def load_text(self) -> str:
        if self._text is None:
            path = self.folder_path / f"{self._id}.txt"
            try:
                # newline="" keeps offsets identical to the indexed text
                with path.open("r", encoding="utf-8", newline="") as f:
                    self._text = f.read()
            except OSError as exc:
                raise StorageError(f'Error reading text file for document "{self._uri}": {exc}') from exc
        return self._text
