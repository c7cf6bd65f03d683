# -*- coding: utf-8 -*-
"""
Errors
======
Exception taxonomy shared by the store, the document index and the
embedding provider. Every error raised by docvec derives from DocvecError,
so callers (e.g. a CLI command) can catch one type, log it and abort.
"""

from __future__ import annotations


class DocvecError(Exception):
    """Base class for all docvec failures."""


class StorageError(DocvecError):
    """I/O or parse failure against persisted JSON / blob files."""


class DuplicateIdError(StorageError):
    """An item with the same id already exists in the vector store."""

    def __init__(self, item_id: str) -> None:
        super().__init__(f"Item with the same ID already exists: {item_id!r}")
        self.item_id = item_id


class EmbeddingError(DocvecError):
    """The embedding provider returned a non-success response."""


class IngestError(DocvecError):
    """
    Failure while writing a document inside the update transaction.
    Always raised after the transaction was cancelled.
    """

    def __init__(self, uri: str, message: str) -> None:
        super().__init__(f"Error adding document {uri!r}: {message}")
        self.uri = uri


class ConfigError(DocvecError, ValueError):
    """Invalid configuration (chunking parameters, malformed settings)."""
