# -*- coding: utf-8 -*-
"""
Tokenizer
=========
Token counting / slicing used by the chunker and the section renderer.

Any object with `encode(text) -> list` and `decode(tokens) -> str` works;
decode(encode(text)) must give `text` back. The default implementation is
tiktoken's `o200k_base` byte-pair encoding (the GPT-4o family).
"""

from __future__ import annotations

from typing import List, Optional, Protocol, Sequence, Tuple

import tiktoken

from docvec.config.settings import Settings


class Tokenizer(Protocol):
    def encode(self, text: str) -> List[int]: ...

    def decode(self, tokens: Sequence[int]) -> str: ...


class TiktokenTokenizer:
    """BPE tokenizer backed by tiktoken."""

    def __init__(self, encoding_name: str | None = None) -> None:
        self.encoding_name = encoding_name or Settings.get("DOCVEC_TOKENIZER_ENCODING", "o200k_base")
        self._encoding = tiktoken.get_encoding(self.encoding_name)

    def encode(self, text: str) -> List[int]:
        # documents may legitimately contain "<|endoftext|>" etc.
        return self._encoding.encode(text, disallowed_special=())

    def decode(self, tokens: Sequence[int]) -> str:
        return self._encoding.decode(list(tokens))


def split_on_token_boundaries(tokenizer: Tokenizer, text: str, size: int) -> List[str]:
    """Cut `text` into slices of at most `size` tokens each.

    The slices are taken from `text` itself and concatenate back to it. A
    byte-level tokenizer can put the boundary inside a multi-byte character;
    such cuts are moved back (or, failing that, forward) to the nearest
    token count whose decoded span is a clean prefix of the remaining text.
    """
    tokens = tokenizer.encode(text)
    if len(tokens) <= size:
        return [text]

    parts: List[str] = []
    char_pos = 0
    start = 0
    while start < len(tokens):
        if start + size >= len(tokens):
            parts.append(text[char_pos:])
            break
        cut = _clean_cut(tokenizer, text, tokens, start, char_pos, size)
        if cut is None:
            parts.append(text[char_pos:])
            break
        end, length = cut
        parts.append(text[char_pos:char_pos + length])
        char_pos += length
        start = end
    return [part for part in parts if part]


def _clean_cut(
    tokenizer: Tokenizer, text: str, tokens: Sequence, start: int, char_pos: int, size: int
) -> Optional[Tuple[int, int]]:
    """(token end, character length) of the longest clean span near start + size, or None."""
    candidates = list(range(start + size, start, -1)) + list(range(start + size + 1, len(tokens)))
    for end in candidates:
        decoded = tokenizer.decode(tokens[start:end])
        if decoded and text.startswith(decoded, char_pos):
            return end, len(decoded)
    return None
