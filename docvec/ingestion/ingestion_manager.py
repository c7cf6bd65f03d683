# -*- coding: utf-8 -*-
"""
ingestion_manager.py

Purpose:
    Batch ingestion of files into a LocalDocumentIndex:
      [recreate index] -> walk sources -> upsert each document -> stats

Key responsibilities:
    1) Keep the saved source config (config.json beside the index folder):
       create / add / remove sources and extensions.
    2) Optionally drop and recreate the index (rebuild).
    3) Walk every source with the DocumentLoader, filtered by extension.
    4) Upsert each document; the index handles chunk -> embed -> store.
    5) Report counters for quick inspection / testing.

API:
    manager = IngestionManager(index, loader=None, config_path=None)
    manager.create(sources, extensions=None) -> SourceConfig
    manager.add(sources=(), extensions=()) / manager.remove(...) -> SourceConfig
    manager.run(sources=None, extensions=None, rebuild=False) -> IngestionStats
    manager.rebuild() -> IngestionStats
    manager.upsert_path(path) -> IngestionStats

Notes:
    - run() without sources uses the saved config (sources and extensions).
    - Any error aborts the run; documents upserted before it stay indexed,
      the failing one is rolled back by the index.
    - Documents with no alphanumeric content produce no chunks and are
      still catalogued (their text remains retrievable).
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING, Iterable, Optional

from docvec.ingestion.loader import DocumentLoader
from docvec.ingestion.source_config import (
    CONFIG_NAME,
    SourceConfig,
    add_sources,
    empty_config,
    extension_filter,
    load_config,
    publish_config,
    remove_sources,
)
from docvec.utils.logging import SimpleLogger

if TYPE_CHECKING:
    from docvec.ingestion.document_index import LocalDocumentIndex


@dataclass(frozen=True)
class IngestionStats:
    """Aggregate numbers for quick reporting / testing."""
    sources: int
    documents_upserted: int
    replaced: int
    chunks_added: int    # net change in stored chunks
    embedded_bytes: int  # total UTF-8 bytes of the document texts indexed in this run


class IngestionManager:
    """
    Coordinates ingestion of file sources into one document index.

    Typical usage:
        index = LocalDocumentIndex(".docvec/index", embeddings=OpenAIEmbeddings())
        manager = IngestionManager(index)
        manager.create(["src", "README.md"], extensions=["py", "md"])
        stats = manager.run()
    """

    def __init__(
        self,
        index: "LocalDocumentIndex",
        loader: Optional[DocumentLoader] = None,
        config_path: Optional[str | Path] = None,
    ) -> None:
        self.index = index
        self.loader = loader or DocumentLoader()
        self.config_path = Path(config_path) if config_path is not None else index.folder_path.parent / CONFIG_NAME
        self._config: Optional[SourceConfig] = None

    # -------------------------------------------------------------------------
    # Source config
    # -------------------------------------------------------------------------

    @property
    def config(self) -> SourceConfig:
        """The saved source config (loaded on first access)."""
        if self._config is None:
            self._config = load_config(self.config_path)
        return self._config

    def create(self, sources: Iterable[str | Path], extensions: Optional[Iterable[str]] = None) -> SourceConfig:
        """Save a fresh source config and create an empty index (an existing one is dropped)."""
        config = add_sources(empty_config(), sources, extensions or ())
        publish_config(config, self.config_path)
        self._config = config
        self.index.create_index(delete_if_exists=True)
        SimpleLogger.info(f"Source config saved to {self.config_path}: {config['sources']}")
        return config

    def add(self, sources: Iterable[str | Path] = (), extensions: Iterable[str] = ()) -> SourceConfig:
        return self._save(add_sources(self.config, sources, extensions))

    def remove(self, sources: Iterable[str | Path] = (), extensions: Iterable[str] = ()) -> SourceConfig:
        """Forget sources/extensions. Documents already indexed stay until the next rebuild."""
        return self._save(remove_sources(self.config, sources, extensions))

    # -------------------------------------------------------------------------
    # Public entrypoints
    # -------------------------------------------------------------------------

    def run(
        self,
        sources: Optional[Iterable[str | Path]] = None,
        extensions: Optional[Iterable[str]] = None,
        rebuild: bool = False,
    ) -> IngestionStats:
        """
        Steps:
            1) No sources given: take sources (and, unless given, extensions)
               from the saved config.
            2) rebuild: delete the index (if any) and create an empty one.
               Otherwise create it only when it does not exist yet.
            3) For each (uri, text, extension) from the loader: upsert.

        Returns:
            IngestionStats with useful counters.
        """
        if sources is None:
            config = self.config
            sources = config["sources"]
            if extensions is None:
                extensions = extension_filter(config)

        if rebuild:
            self.index.delete_index()
            self.index.create_index()
        elif not self.index.is_catalog_created():
            self.index.create_index()

        sources = list(sources)
        extensions = list(extensions) if extensions is not None else None
        chunks_before = self.index.get_catalog_stats()["chunks"]

        upserted = 0
        replaced = 0
        embedded_bytes = 0
        for source in sources:
            for uri, text, extension in self.loader.iter_documents(source, extensions):
                if self.index.get_document_id(uri) is not None:
                    replaced += 1
                SimpleLogger.info(f"adding: {uri}")
                self.index.upsert_document(uri, text, doc_type=extension)
                upserted += 1
                embedded_bytes += len(text.encode("utf-8"))

        stats = self.index.get_catalog_stats()
        SimpleLogger.info(
            f"Ingested {upserted} documents ({replaced} replaced); index holds "
            f"{stats['documents']} documents / {stats['chunks']} chunks"
        )
        return IngestionStats(
            sources=len(sources),
            documents_upserted=upserted,
            replaced=replaced,
            chunks_added=stats["chunks"] - chunks_before,
            embedded_bytes=embedded_bytes,
        )

    def rebuild(self) -> IngestionStats:
        """Drop the index and re-ingest everything the saved config names."""
        return self.run(rebuild=True)

    def upsert_path(self, path: str | Path) -> IngestionStats:
        """(Re-)index one file or folder, whatever its extensions; the config is not changed."""
        return self.run([path])

    # -------------------------------------------------------------------------
    # Helpers
    # -------------------------------------------------------------------------

    def _save(self, config: SourceConfig) -> SourceConfig:
        publish_config(config, self.config_path)
        self._config = config
        return config
