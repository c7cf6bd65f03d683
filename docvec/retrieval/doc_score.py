# -*- coding: utf-8 -*-
"""
DocScore
========
Pure data containers for retrieval results.

- `ChunkHit`: one stored item matched by a query, with its cosine score.
- `Section`:  an assembled, token-bounded span of a document's text.
"""
from __future__ import annotations

from dataclasses import dataclass

from docvec.ingestion.vector_store_np import ChunkHit

__all__ = ["ChunkHit", "Section"]


@dataclass(frozen=True, slots=True)
class Section:
    text: str
    token_count: int
    score: float
