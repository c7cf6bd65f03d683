# -*- coding: utf-8 -*-
"""
Chunk: transient record produced by the TextSplitter (no helpers).
"""

from __future__ import annotations

from typing import Any, List, Optional


class Chunk:
    __slots__ = (
        "text",           # str: the chunk text (separators kept or dropped per config)
        "tokens",         # list: tokens of `text`; len(tokens) <= chunk_size
        "start_pos",      # int: absolute offset of the first character in the source text
        "end_pos",        # int: absolute offset of the last character (inclusive)
        "start_overlap",  # list: trailing tokens borrowed from the previous chunk
        "end_overlap",    # list: leading tokens borrowed from the next chunk
    )

    def __init__(
        self,
        *,
        text: str,
        tokens: List[Any],
        start_pos: int,
        end_pos: int,
        start_overlap: Optional[List[Any]] = None,
        end_overlap: Optional[List[Any]] = None,
    ) -> None:
        self.text = text
        self.tokens = tokens
        self.start_pos = start_pos
        self.end_pos = end_pos
        self.start_overlap = [] if start_overlap is None else start_overlap
        self.end_overlap = [] if end_overlap is None else end_overlap

    def __repr__(self) -> str:
        return (
            f"Chunk(start_pos={self.start_pos}, end_pos={self.end_pos}, "
            f"tokens={len(self.tokens)}, text={self.text[:30]!r})"
        )
