# -*- coding: utf-8 -*-
"""
ContextBuilder
==============
Packs the best sections of the documents matching a query into one text
block of at most `max_tokens` tokens, for use as context in a chat prompt.

Layout:
    Here are some snippets of code and text that might help:

    path: <uri>
    snippet:
    <section text>
    ...

Per-document budget (see `get_section_options`):
    remaining < 2000          -> 1 section of `remaining` tokens
    2000 <= remaining <= 6000 -> 1 section of 2000 tokens
    remaining > 6000          -> 2 sections of 2000 tokens each
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Optional

from docvec.utils.logging import SimpleLogger

if TYPE_CHECKING:
    from docvec.ingestion.document_index import LocalDocumentIndex
    from docvec.ingestion.tokenizer import Tokenizer

HEADER = "Here are some snippets of code and text that might help:"
TITLE_TEMPLATE = "\n\npath: {uri}\nsnippet:\n"
SECTION_TOKENS = 2000
TWO_SECTIONS_ABOVE = 6000


@dataclass(frozen=True)
class SectionOptions:
    sections: int
    tokens: int


@dataclass(frozen=True)
class RenderedContext:
    text: str
    length: int      # tokens used, header and titles included
    too_long: bool


class ContextBuilder:

    def __init__(
        self,
        index: "LocalDocumentIndex",
        tokenizer: Optional["Tokenizer"] = None,
        max_documents: int = 100,
        max_chunks: int = 2000,
    ) -> None:
        self.index = index
        self.tokenizer = tokenizer or index.tokenizer
        self.max_documents = max_documents
        self.max_chunks = max_chunks

    @staticmethod
    def get_section_options(max_tokens: int) -> SectionOptions:
        if max_tokens < SECTION_TOKENS:
            return SectionOptions(sections=1, tokens=max_tokens)
        if max_tokens <= TWO_SECTIONS_ABOVE:
            return SectionOptions(sections=1, tokens=SECTION_TOKENS)
        return SectionOptions(sections=2, tokens=SECTION_TOKENS)

    def render(self, query: str, max_tokens: int) -> RenderedContext:
        results = self.index.query_documents(
            query, max_documents=self.max_documents, max_chunks=self.max_chunks
        )

        parts = [HEADER]
        remaining = max_tokens - len(self.tokenizer.encode(HEADER))
        for result in results:
            title = TITLE_TEMPLATE.format(uri=result.uri)
            title_length = len(self.tokenizer.encode(title))
            if remaining - title_length <= 0:
                break

            options = self.get_section_options(remaining - title_length)
            sections = result.render_sections(min(remaining - title_length, options.tokens), options.sections)
            for section in sections:
                length = section.token_count + title_length
                if remaining - length < 0:
                    break
                parts.append(title + section.text)
                remaining -= length

        SimpleLogger.debug(f"Context for {query!r}: {max_tokens - remaining}/{max_tokens} tokens")
        return RenderedContext(text="".join(parts), length=max_tokens - remaining, too_long=remaining < 0)
