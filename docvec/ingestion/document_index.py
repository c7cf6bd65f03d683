# -*- coding: utf-8 -*-
"""
document_index.py

Purpose:
    A local, file-backed index of text documents:
      chunk -> embed (batched by token budget) -> store items + catalog entry

On disk (one folder):
    index.json            vector snapshot (LocalIndex)
    catalog.json          uri <-> documentId ledger (catalog.py)
    <documentId>.txt      full document text
    <documentId>.json     optional caller metadata

Upsert protocol (one document):
    1) chunk the text and embed every chunk; nothing is written yet, so an
       EmbeddingError leaves the index untouched.
    2) stage the new text/metadata blobs as *.tmp files.
    3) in ONE update: drop the old document's items + catalog entry (if
       any), insert the new items + catalog entry, commit.
    4) rename the staged blobs into place, then remove the old blobs.
    Any failure in 2-3 cancels the update, removes the staged blobs and
    raises IngestError; the catalog never points at a half-written document.
    A failed catalog.json replace re-publishes the previous index.json, so
    the two files never disagree.

Items carry metadata {documentId, startPos, endPos, **caller metadata};
startPos/endPos are inclusive character offsets into the document text.
"""

from __future__ import annotations

import json
import os
import uuid
from dataclasses import replace
from pathlib import Path, PurePath
from typing import Any, Dict, List, Mapping, Optional, Tuple

from docvec.errors import ConfigError, DocvecError, EmbeddingError, IngestError, StorageError
from docvec.ingestion.catalog import (
    Catalog,
    add_entry,
    commit_staged,
    copy_catalog,
    empty_catalog,
    load_catalog,
    publish_atomic,
    remove_entry,
    stage,
)
from docvec.ingestion.chunk import Chunk
from docvec.ingestion.chunker import ChunkingConfig, TextSplitter
from docvec.ingestion.embedder import EmbeddingsModel
from docvec.ingestion.item_selector import MetadataValue
from docvec.ingestion.tokenizer import TiktokenTokenizer, Tokenizer
from docvec.ingestion.vector_store_np import ChunkHit, Item, LocalIndex
from docvec.retrieval.document import LocalDocument
from docvec.retrieval.document_result import LocalDocumentResult
from docvec.utils.logging import SimpleLogger
from docvec.utils.paths import PATHS

CATALOG_NAME = "catalog.json"
RESERVED_KEYS = ("documentId", "startPos", "endPos")


class LocalDocumentIndex:
    """
    Document-level API over a LocalIndex and a catalog.

    Typical usage:
        index = LocalDocumentIndex(".docvec/index", embeddings=OpenAIEmbeddings())
        if not index.is_catalog_created():
            index.create_index()
        index.upsert_document("src/app.py", text)
        for result in index.query_documents("where is the config loaded?"):
            sections = result.render_sections(max_tokens=1000, max_sections=1)
    """

    def __init__(
        self,
        folder_path: Optional[str | Path] = None,
        embeddings: Optional[EmbeddingsModel] = None,
        *,
        tokenizer: Optional[Tokenizer] = None,
        chunking_config: Optional[ChunkingConfig] = None,
        index_name: str = "index.json",
    ) -> None:
        self.folder_path = Path(folder_path) if folder_path is not None else PATHS["index"]
        self.catalog_path = self.folder_path / CATALOG_NAME
        self.store = LocalIndex(self.folder_path, index_name)
        self._embeddings = embeddings
        self._tokenizer = tokenizer or TiktokenTokenizer()
        self._chunking_config = chunking_config or ChunkingConfig.from_settings()
        # fail on bad chunking parameters now, not at the first upsert
        TextSplitter(self._chunking_config, self._tokenizer)

        self._catalog: Optional[Catalog] = None
        self._new_catalog: Optional[Catalog] = None

    @property
    def embeddings(self) -> Optional[EmbeddingsModel]:
        return self._embeddings

    @property
    def tokenizer(self) -> Tokenizer:
        return self._tokenizer

    @property
    def is_loaded(self) -> bool:
        return self.store.is_loaded and self._catalog is not None

    # -------------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------------

    def load(self) -> None:
        """Load the vector snapshot and the catalog (missing catalog => empty)."""
        self.store.load()
        if self._catalog is not None:
            return
        if self.is_catalog_created():
            self._catalog = load_catalog(self.catalog_path)
        else:
            self._catalog = empty_catalog()

    def is_catalog_created(self) -> bool:
        return self.catalog_path.exists()

    def create_index(self, version: int = 1, delete_if_exists: bool = False) -> None:
        self.store.create_index(version=version, delete_if_exists=delete_if_exists)
        self._catalog = empty_catalog(version)
        self._new_catalog = None
        publish_atomic(self._catalog, self.catalog_path)
        SimpleLogger.info(f"Created document index at {self.folder_path}")

    def delete_index(self) -> None:
        self.store.delete_index()
        self._catalog = None
        self._new_catalog = None

    # -------------------------------------------------------------------------
    # Update scope (vector snapshot + working copy of the catalog)
    # -------------------------------------------------------------------------

    def begin_update(self) -> None:
        if self._new_catalog is not None:
            return
        self.load()
        self.store.begin_update()
        self._new_catalog = copy_catalog(self._catalog)

    def end_update(self) -> None:
        if self._new_catalog is None:
            raise StorageError("No update in progress")
        # catalog.json is replaced only after the snapshot write succeeded;
        # if replacing it fails, the previous snapshot is published again
        staged = stage(self._new_catalog, self.catalog_path)
        try:
            self.store.end_update()
        except StorageError:
            _unlink_quietly(staged)
            raise
        try:
            commit_staged(staged, self.catalog_path)
        except StorageError:
            _unlink_quietly(staged)
            self._revert_store()
            raise
        self._catalog = self._new_catalog
        self._new_catalog = None

    def cancel_update(self) -> None:
        self.store.cancel_update()
        self._new_catalog = None

    def _revert_store(self) -> None:
        try:
            self.store.revert_update()
        except StorageError as exc:
            SimpleLogger.error(f"Could not restore {self.store.index_file} after a failed catalog write: {exc}")

    # -------------------------------------------------------------------------
    # Catalog lookups
    # -------------------------------------------------------------------------

    def get_document_id(self, uri: str) -> Optional[str]:
        self.load()
        return self._catalog["uriToId"].get(uri)

    def get_document_uri(self, document_id: str) -> Optional[str]:
        self.load()
        return self._catalog["idToUri"].get(document_id)

    def get_catalog_stats(self) -> Dict[str, int]:
        self.load()
        stats = self.store.get_index_stats()
        return {
            "version": self._catalog["version"],
            "documents": self._catalog["count"],
            "chunks": stats["items"],
        }

    # -------------------------------------------------------------------------
    # Documents
    # -------------------------------------------------------------------------

    def upsert_document(
        self,
        uri: str,
        text: str,
        doc_type: Optional[str] = None,
        metadata: Optional[Mapping[str, MetadataValue]] = None,
    ) -> LocalDocument:
        """
        Index `text` under `uri`, replacing any previous version of the document.

        Raises:
            ConfigError:    no embeddings provider, or non-scalar metadata.
            EmbeddingError: the provider failed; nothing was written.
            IngestError:    the write failed; the update was rolled back.
        """
        if self._embeddings is None:
            raise ConfigError("Embeddings model not configured.")
        _check_metadata(metadata)

        old_id = self.get_document_id(uri)
        document_id = _new_id()

        config = replace(self._chunking_config, doc_type=doc_type or self._chunking_config.doc_type or _extension(uri))
        chunks = TextSplitter(config, self._tokenizer).split(text)
        vectors = self._embed_chunks(uri, chunks)

        staged: List[Tuple[Path, Path]] = []
        try:
            self._stage_blobs(document_id, text, metadata, staged)
            self.begin_update()
            if old_id is not None:
                self._remove_document(uri, old_id)
            for chunk, vector in zip(chunks, vectors):
                chunk_metadata: Dict[str, Any] = dict(metadata or {})
                chunk_metadata.update(documentId=document_id, startPos=chunk.start_pos, endPos=chunk.end_pos)
                self.store.insert_item(Item(id=_new_id(), vector=vector, metadata=chunk_metadata))
            add_entry(self._new_catalog, uri, document_id)
            self.end_update()
        except Exception as exc:
            self.cancel_update()
            for tmp_path, _final in staged:
                _unlink_quietly(tmp_path)
            SimpleLogger.error(f"Upsert of {uri!r} rolled back: {exc}")
            if isinstance(exc, (DocvecError, OSError, ValueError)):
                raise IngestError(uri, str(exc)) from exc
            raise

        for tmp_path, final_path in staged:
            try:
                os.replace(str(tmp_path), str(final_path))
            except OSError as exc:
                raise StorageError(f'Error writing blob for document "{uri}": {exc}') from exc
        if old_id is not None:
            self._delete_blobs(old_id, uri, strict=False)

        SimpleLogger.info(f"Indexed {uri!r} as {document_id} ({len(chunks)} chunks)")
        return LocalDocument(self, document_id, uri)

    def delete_document(self, uri: str) -> None:
        """Remove a document's items, catalog entry and blobs. Unknown uri: no-op."""
        document_id = self.get_document_id(uri)
        if document_id is None:
            return

        self.begin_update()
        try:
            self._remove_document(uri, document_id)
            self.end_update()
        except Exception:
            self.cancel_update()
            raise

        self._delete_blobs(document_id, uri, strict=True)
        SimpleLogger.info(f"Deleted {uri!r} ({document_id})")

    def list_documents(self) -> List[LocalDocumentResult]:
        """One result per document; every chunk scored 1.0 (enumeration, not ranking)."""
        grouped: Dict[str, List[ChunkHit]] = {}
        for item in self.store.list_items():
            document_id = item.metadata.get("documentId")
            if document_id is None:
                continue
            grouped.setdefault(str(document_id), []).append(ChunkHit(item=item, score=1.0))
        return self._results(grouped)

    def query_documents(
        self,
        query: str,
        *,
        max_documents: int = 10,
        max_chunks: int = 50,
        filter: Optional[Mapping[str, MetadataValue]] = None,
    ) -> List[LocalDocumentResult]:
        """Embed `query`, scan for `max_chunks` hits, group by document, best documents first."""
        if self._embeddings is None:
            raise ConfigError("Embeddings model not configured.")

        vectors = self._create_embeddings([query.replace("\n", " ")], "query")
        hits = self.store.query_items(vectors[0], max_chunks, filter)

        grouped: Dict[str, List[ChunkHit]] = {}
        for hit in hits:
            document_id = hit.item.metadata.get("documentId")
            if document_id is None:
                continue
            grouped.setdefault(str(document_id), []).append(hit)

        results = self._results(grouped)
        results.sort(key=lambda r: r.score, reverse=True)
        return results[:max_documents]

    # -------------------------------------------------------------------------
    # Helpers
    # -------------------------------------------------------------------------

    def _results(self, grouped: Dict[str, List[ChunkHit]]) -> List[LocalDocumentResult]:
        results = []
        for document_id, hits in grouped.items():
            uri = self.get_document_uri(document_id)
            if uri is None:
                SimpleLogger.warning(f"Items reference unknown document {document_id}; skipped")
                continue
            results.append(LocalDocumentResult(self, document_id, uri, hits, self._tokenizer))
        return results

    def _embed_chunks(self, uri: str, chunks: List[Chunk]) -> List[List[float]]:
        """Batch chunk texts so no request exceeds the provider's max_tokens."""
        max_tokens = self._embeddings.max_tokens
        batches: List[List[str]] = []
        current: List[str] = []
        current_tokens = 0
        for chunk in chunks:
            count = len(chunk.tokens)
            if current and current_tokens + count > max_tokens:
                batches.append(current)
                current, current_tokens = [], 0
            current.append(chunk.text.replace("\n", " "))
            current_tokens += count
        if current:
            batches.append(current)

        vectors: List[List[float]] = []
        for n, batch in enumerate(batches, start=1):
            SimpleLogger.debug(f"{uri}: embedding batch {n}/{len(batches)} ({len(batch)} chunks)")
            vectors.extend(self._create_embeddings(batch, f'document "{uri}"'))
        return vectors

    def _create_embeddings(self, inputs: List[str], what: str) -> List[List[float]]:
        try:
            response = self._embeddings.create_embeddings(inputs)
        except DocvecError:
            raise
        except Exception as exc:
            raise EmbeddingError(f"Error generating embeddings for {what}: {exc}") from exc

        if response.status != "success":
            raise EmbeddingError(f"Error generating embeddings for {what}: {response.message}")
        output = response.output or []
        if len(output) != len(inputs):
            raise EmbeddingError(
                f"Error generating embeddings for {what}: got {len(output)} vectors for {len(inputs)} inputs"
            )
        return output

    def _remove_document(self, uri: str, document_id: str) -> None:
        """Inside an open update: drop the document's items and catalog entry."""
        removed = self.store.delete_where({"documentId": document_id})
        remove_entry(self._new_catalog, uri)
        SimpleLogger.debug(f"{uri}: removed {removed} items of {document_id}")

    def _stage_blobs(
        self,
        document_id: str,
        text: str,
        metadata: Optional[Mapping[str, MetadataValue]],
        staged: List[Tuple[Path, Path]],
    ) -> None:
        """Write the new blobs as *.tmp files, recording each in `staged` as it is created."""
        self.folder_path.mkdir(parents=True, exist_ok=True)
        if metadata is not None:
            final = self.folder_path / f"{document_id}.json"
            tmp = final.with_suffix(".json.tmp")
            staged.append((tmp, final))
            tmp.write_text(json.dumps(dict(metadata)), encoding="utf-8")
        final = self.folder_path / f"{document_id}.txt"
        tmp = final.with_suffix(".txt.tmp")
        staged.append((tmp, final))
        with tmp.open("w", encoding="utf-8", newline="") as f:
            f.write(text)

    def _delete_blobs(self, document_id: str, uri: str, *, strict: bool) -> None:
        text_path = self.folder_path / f"{document_id}.txt"
        try:
            text_path.unlink()
        except OSError as exc:
            if strict:
                raise StorageError(f'Error removing text file for document "{uri}" from disk: {exc}') from exc
            SimpleLogger.warning(f"Could not remove old text blob {text_path}: {exc}")
        try:
            (self.folder_path / f"{document_id}.json").unlink()
        except FileNotFoundError:
            pass
        except OSError as exc:
            SimpleLogger.debug(f"Could not remove metadata blob of {document_id}: {exc}")


def _new_id() -> str:
    return uuid.uuid4().hex


def _extension(uri: str) -> Optional[str]:
    suffix = PurePath(uri).suffix
    return suffix[1:].lower() if suffix else None


def _check_metadata(metadata: Optional[Mapping[str, Any]]) -> None:
    if not metadata:
        return
    for key, value in metadata.items():
        if not isinstance(key, str):
            raise ConfigError(f"metadata keys must be strings, got {key!r}")
        if key in RESERVED_KEYS:
            raise ConfigError(f"metadata key {key!r} is reserved")
        if not isinstance(value, (str, int, float, bool)):
            raise ConfigError(f"metadata value for {key!r} must be a scalar, got {type(value).__name__}")


def _unlink_quietly(path: Path) -> None:
    try:
        path.unlink()
    except FileNotFoundError:
        pass
    except OSError as exc:
        SimpleLogger.warning(f"Could not remove staged file {path}: {exc}")
