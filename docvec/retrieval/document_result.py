# -*- coding: utf-8 -*-
"""
LocalDocumentResult
===================
A document matched by a query, plus the chunk hits that matched it.
Turns those hits into token-bounded text sections:

render_sections(max_tokens, max_sections, overlapping_chunks=True)
    1) Whole document fits -> one section, score 1.0.
    2) Hits longer than max_tokens are dropped; if none remain, the best
       hit is truncated to max_tokens and returned alone.
    3) Remaining hits, in document order, are packed greedily into
       sections of at most max_tokens; section score = mean hit score.
    4) Best `max_sections` sections are kept; truly adjacent hits merge.
    5) With overlapping_chunks, non-adjacent hits are joined by a "..."
       connector and sections with more than 40 tokens of budget left grow
       into the surrounding text (half before, half after).

render_all_sections(max_tokens)
    Every hit in document order, oversized hits cut into max_tokens pieces,
    packed into sections without growth.

Growth encodes at most budget * 8 characters per side, so grown sections
are approximately (not exactly) bounded by max_tokens.
"""
from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, List, Optional, Sequence

from docvec.ingestion.tokenizer import split_on_token_boundaries
from docvec.retrieval.doc_score import ChunkHit, Section
from docvec.retrieval.document import LocalDocument

if TYPE_CHECKING:
    from docvec.ingestion.document_index import LocalDocumentIndex
    from docvec.ingestion.tokenizer import Tokenizer

CONNECTOR = "\n\n...\n\n"
MIN_GROWTH_BUDGET = 40
CHARS_PER_TOKEN_SCAN = 8


@dataclass
class _Span:
    start_pos: int
    end_pos: int
    text: str
    token_count: int
    score: float


@dataclass
class _Draft:
    spans: List[_Span] = field(default_factory=list)
    score: float = 0.0
    token_count: int = 0

    def add(self, span: _Span) -> None:
        self.spans.append(span)
        self.score += span.score
        self.token_count += span.token_count

    def render(self) -> Section:
        return Section(
            text="".join(span.text for span in self.spans),
            token_count=self.token_count,
            score=self.score,
        )


class LocalDocumentResult(LocalDocument):

    def __init__(
        self,
        index: "LocalDocumentIndex",
        document_id: str,
        uri: str,
        chunks: Sequence[ChunkHit],
        tokenizer: Optional["Tokenizer"] = None,
    ) -> None:
        super().__init__(index, document_id, uri)
        self._chunks = list(chunks)
        self._tokenizer = tokenizer or index.tokenizer
        self._score = sum(hit.score for hit in self._chunks) / len(self._chunks) if self._chunks else 0.0

    @property
    def chunks(self) -> List[ChunkHit]:
        """The chunk hits of this document that matched the query."""
        return self._chunks

    @property
    def score(self) -> float:
        """Mean score of the chunk hits."""
        return self._score

    # ---- public API ----
    def render_all_sections(self, max_tokens: int) -> List[Section]:
        text = self.load_text()
        pieces: List[_Span] = []
        for hit in self._chunks:
            start_pos, end_pos = _positions(hit)
            pos = start_pos
            for piece_text in split_on_token_boundaries(self._tokenizer, text[start_pos:end_pos + 1], max_tokens):
                token_count = len(self._tokenizer.encode(piece_text))
                pieces.append(_Span(pos, pos + len(piece_text) - 1, piece_text, token_count, hit.score))
                pos += len(piece_text)

        pieces.sort(key=lambda span: span.start_pos)
        drafts = _pack(pieces, max_tokens)
        return [draft.render() for draft in drafts]

    def render_sections(self, max_tokens: int, max_sections: int, overlapping_chunks: bool = True) -> List[Section]:
        text = self.load_text()

        length = self.get_length()
        if length <= max_tokens:
            return [Section(text=text, token_count=length, score=1.0)]
        if not self._chunks:
            return []

        spans = []
        for hit in self._chunks:
            start_pos, end_pos = _positions(hit)
            chunk_text = text[start_pos:end_pos + 1]
            spans.append(_Span(start_pos, end_pos, chunk_text, len(self._tokenizer.encode(chunk_text)), hit.score))

        fitting = sorted((s for s in spans if s.token_count <= max_tokens), key=lambda s: s.start_pos)
        if not fitting:
            top = max(spans, key=lambda s: s.score)
            head = split_on_token_boundaries(self._tokenizer, top.text, max_tokens)[0]
            return [Section(text=head, token_count=len(self._tokenizer.encode(head)), score=top.score)]

        drafts = _pack(fitting, max_tokens)
        drafts.sort(key=lambda d: d.score, reverse=True)
        drafts = drafts[:max_sections]

        for draft in drafts:
            draft.spans = _merge_adjacent(draft.spans)

        if overlapping_chunks:
            connector_tokens = len(self._tokenizer.encode(CONNECTOR))
            for draft in drafts:
                self._insert_connectors(draft, connector_tokens)
                self._grow(draft, text, max_tokens - draft.token_count)

        return [draft.render() for draft in drafts]

    # ---- helpers ----
    def encode_after_text(self, text: str, budget: int) -> List:
        max_length = budget * CHARS_PER_TOKEN_SCAN
        return self._tokenizer.encode(text[:max(0, max_length)])

    def encode_before_text(self, text: str, budget: int) -> List:
        max_length = budget * CHARS_PER_TOKEN_SCAN
        substr = text if len(text) <= max_length else text[len(text) - max(0, max_length):]
        return self._tokenizer.encode(substr)

    @staticmethod
    def _insert_connectors(draft: _Draft, connector_tokens: int) -> None:
        if len(draft.spans) < 2:
            return
        joined: List[_Span] = []
        for i, span in enumerate(draft.spans):
            if i > 0:
                joined.append(_Span(-1, -1, CONNECTOR, connector_tokens, 0.0))
                draft.token_count += connector_tokens
            joined.append(span)
        draft.spans = joined

    def _grow(self, draft: _Draft, text: str, budget: int) -> None:
        """Extend the section into unscored text before and after it."""
        if budget <= MIN_GROWTH_BUDGET:
            return
        section_start = draft.spans[0].start_pos
        section_end = draft.spans[-1].end_pos
        can_grow_after = section_end < len(text) - 1

        if section_start > 0:
            share = math.ceil(budget / 2) if can_grow_after else budget
            before_tokens = self.encode_before_text(text[:section_start], share)
            take = min(len(before_tokens), share)
            before_text = self._tokenizer.decode(before_tokens[-take:]) if take > 0 else ""
            while take > 0 and not text.endswith(before_text, 0, section_start):
                take -= 1
                before_text = self._tokenizer.decode(before_tokens[-take:]) if take > 0 else ""
            if take > 0:
                draft.spans.insert(0, _Span(max(0, section_start - len(before_text)), section_start - 1,
                                            before_text, take, 0.0))
                draft.token_count += take
                budget -= take

        if can_grow_after and budget > 0:
            after_tokens = self.encode_after_text(text[section_end + 1:], budget)
            take = min(len(after_tokens), budget)
            after_text = self._tokenizer.decode(after_tokens[:take])
            while take > 0 and not text.startswith(after_text, section_end + 1):
                take -= 1
                after_text = self._tokenizer.decode(after_tokens[:take])
            if take > 0:
                draft.spans.append(_Span(section_end + 1, section_end + len(after_text),
                                         after_text, take, 0.0))
                draft.token_count += take


def _positions(hit: ChunkHit) -> tuple[int, int]:
    metadata = hit.item.metadata
    return int(metadata["startPos"]), int(metadata["endPos"])


def _pack(spans: Sequence[_Span], max_tokens: int) -> List[_Draft]:
    """Greedy packing in the given order; each draft's score becomes the mean."""
    drafts: List[_Draft] = []
    for span in spans:
        if not drafts or drafts[-1].token_count + span.token_count > max_tokens:
            drafts.append(_Draft())
        drafts[-1].add(span)
    for draft in drafts:
        draft.score /= len(draft.spans)
    return drafts


def _merge_adjacent(spans: List[_Span]) -> List[_Span]:
    merged: List[_Span] = []
    for span in spans:
        prev = merged[-1] if merged else None
        if prev is not None and prev.end_pos + 1 == span.start_pos:
            merged[-1] = _Span(prev.start_pos, span.end_pos, prev.text + span.text,
                               prev.token_count + span.token_count, prev.score)
        else:
            merged.append(span)
    return merged
