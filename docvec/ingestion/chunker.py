# -*- coding: utf-8 -*-
"""
Chunker
=======
Splits raw text into token-bounded chunks using a language-aware hierarchy
of separators (see separators.py).

Algorithm (pure; positions are absolute offsets into the original text):
    1) Split on the first separator of the hierarchy.
       " " cuts the text every chunk_size tokens on character
       boundaries, "" splits into characters, anything else is a
       literal split. With no separators left the text is cut in half
       at the character midpoint.
    2) Any part that is still longer than chunk_size tokens recurses with
       the remaining separators. Parts without alphanumeric characters are
       dropped (their characters still count for positions).
    3) Adjacent small chunks are merged up to chunk_size tokens.
    4) Overlap pass: each chunk borrows up to chunk_overlap tokens from the
       end of its predecessor and the start of its successor.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from typing import List, Optional, Sequence

from docvec.config.settings import Settings
from docvec.errors import ConfigError
from docvec.ingestion.chunk import Chunk
from docvec.ingestion.separators import get_separators
from docvec.ingestion.tokenizer import TiktokenTokenizer, Tokenizer, split_on_token_boundaries

# Text longer than chunk_size * 6 characters is split further without tokenizing.
_CHARS_PER_TOKEN_CEILING = 6


@dataclass
class ChunkingConfig:
    chunk_size: int = 400
    chunk_overlap: int = 40
    keep_separators: bool = False
    separators: Optional[List[str]] = None
    doc_type: Optional[str] = None

    @classmethod
    def from_settings(cls, **overrides) -> "ChunkingConfig":
        """Document-index defaults: 512 tokens, no overlap, separators kept."""
        config = cls(
            chunk_size=Settings.get_int("DOCVEC_CHUNK_SIZE", 512),
            chunk_overlap=Settings.get_int("DOCVEC_CHUNK_OVERLAP", 0),
            keep_separators=True,
        )
        return replace(config, **overrides)


class TextSplitter:
    """Recursive, token-bounded text splitter."""

    def __init__(self, config: Optional[ChunkingConfig] = None, tokenizer: Optional[Tokenizer] = None) -> None:
        config = replace(config) if config is not None else ChunkingConfig()
        if config.chunk_size < 1:
            raise ConfigError("chunk_size must be >= 1")
        if config.chunk_overlap < 0:
            raise ConfigError("chunk_overlap must be >= 0")
        if config.chunk_overlap > config.chunk_size:
            raise ConfigError("chunk_overlap must be <= chunk_size")

        if not config.separators:
            config.separators = get_separators(config.doc_type)
        self.config = config
        self.tokenizer: Tokenizer = tokenizer or TiktokenTokenizer()

    # ---- public API ----
    def split(self, text: str) -> List[Chunk]:
        chunks = self.recursive_split(text, self.config.separators, 0)
        return self._add_overlap(chunks)

    def recursive_split(self, text: str, separators: Sequence[str], start_pos: int) -> List[Chunk]:
        """Split `text` (which starts at `start_pos` in the source) into chunks."""
        if not text:
            return []

        if separators:
            separator = separators[0]
            next_separators = list(separators[1:])
            if separator == " ":
                # token spans concatenate back to the text, no separator consumed
                parts, joiner = self.split_by_spaces(text), ""
            elif separator == "":
                parts, joiner = list(text), ""
            else:
                parts, joiner = text.split(separator), separator
        elif len(text) <= 1:
            # nothing left to split; emit as-is even if over budget
            if not contains_alphanumeric(text):
                return []
            return [self._make_chunk(text, self.tokenizer.encode(text), start_pos, start_pos)]
        else:
            half = len(text) // 2
            parts, joiner, next_separators = [text[:half], text[half:]], "", []

        chunks: List[Chunk] = []
        pos = start_pos
        for i, part in enumerate(parts):
            last = i == len(parts) - 1
            span = len(part) + (0 if last else len(joiner))
            end_pos = pos + span - 1
            piece = part + joiner if self.config.keep_separators and not last else part

            if piece and contains_alphanumeric(piece):
                if len(piece) / _CHARS_PER_TOKEN_CEILING > self.config.chunk_size:
                    chunks.extend(self.recursive_split(piece, next_separators, pos))
                else:
                    tokens = self.tokenizer.encode(piece)
                    if len(tokens) > self.config.chunk_size:
                        chunks.extend(self.recursive_split(piece, next_separators, pos))
                    else:
                        chunks.append(self._make_chunk(piece, tokens, pos, end_pos))
            pos = end_pos + 1

        return self.combine_chunks(chunks)

    def combine_chunks(self, chunks: Sequence[Chunk]) -> List[Chunk]:
        """Merge neighbours while the merged token count stays within chunk_size."""
        joiner = "" if self.config.keep_separators else " "
        combined: List[Chunk] = []
        current: Optional[Chunk] = None
        for chunk in chunks:
            if current is None:
                current = chunk
            elif len(current.tokens) + len(chunk.tokens) > self.config.chunk_size:
                combined.append(current)
                current = chunk
            else:
                current = self._make_chunk(
                    current.text + joiner + chunk.text,
                    list(current.tokens) + list(chunk.tokens),
                    current.start_pos,
                    chunk.end_pos,
                )
        if current is not None:
            combined.append(current)
        return combined

    def split_by_spaces(self, text: str) -> List[str]:
        """Slices of `text` holding at most chunk_size tokens each."""
        return split_on_token_boundaries(self.tokenizer, text, self.config.chunk_size)

    # ---- helpers ----
    def _add_overlap(self, chunks: List[Chunk]) -> List[Chunk]:
        overlap = self.config.chunk_overlap
        if overlap <= 0:
            return chunks
        last = len(chunks) - 1
        for i, chunk in enumerate(chunks):
            chunk.start_overlap = list(chunks[i - 1].tokens[-overlap:]) if i > 0 else []
            chunk.end_overlap = list(chunks[i + 1].tokens[:overlap]) if i < last else []
        return chunks

    @staticmethod
    def _make_chunk(text: str, tokens: List, start_pos: int, end_pos: int) -> Chunk:
        return Chunk(text=text, tokens=list(tokens), start_pos=start_pos, end_pos=end_pos)


def contains_alphanumeric(text: str) -> bool:
    return any(ch.isalnum() for ch in text)
