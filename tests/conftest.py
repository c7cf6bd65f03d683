"""
Shared fakes for the docvec test-suite.

- WordTokenizer: one token per word (leading whitespace included), so
  token counts in tests are easy to read off the text.
- ByteTokenizer: one token per UTF-8 byte, so a token cut can land inside
  a multi-byte character (decode then yields U+FFFD, like tiktoken does).
- KeywordEmbeddings: a bag-of-keywords "embedding"; a chunk mentioning the
  query keyword scores > 0, anything else scores 0.
"""
from __future__ import annotations

import re
from pathlib import Path
from typing import List, Sequence

import pytest

from docvec.ingestion.chunker import ChunkingConfig
from docvec.ingestion.document_index import LocalDocumentIndex
from docvec.ingestion.embedder import EmbeddingsResponse
from docvec.utils.logging import SimpleLogger

_WORD = re.compile(r"\s*\S+|\s+")

VOCABULARY = ["apple", "banana", "cherry", "config", "loader", "hello", "world"]


class WordTokenizer:
    def encode(self, text: str) -> List[str]:
        return _WORD.findall(text)

    def decode(self, tokens: Sequence[str]) -> str:
        return "".join(tokens)


class ByteTokenizer:
    def encode(self, text: str) -> List[int]:
        return list(text.encode("utf-8"))

    def decode(self, tokens: Sequence[int]) -> str:
        return bytes(tokens).decode("utf-8", errors="replace")


class KeywordEmbeddings:
    def __init__(self, max_tokens: int = 8000) -> None:
        self.max_tokens = max_tokens
        self.calls: List[List[str]] = []

    def create_embeddings(self, inputs) -> EmbeddingsResponse:
        texts = [inputs] if isinstance(inputs, str) else list(inputs)
        self.calls.append(texts)
        output = []
        for text in texts:
            words = re.findall(r"[a-z]+", text.lower())
            output.append([float(words.count(k)) for k in VOCABULARY])
        return EmbeddingsResponse(status="success", output=output)


class FailingEmbeddings:
    def __init__(self, status: str = "error", message: str = "boom") -> None:
        self.max_tokens = 8000
        self.status = status
        self.message = message

    def create_embeddings(self, inputs) -> EmbeddingsResponse:
        return EmbeddingsResponse(status=self.status, message=self.message)


@pytest.fixture(autouse=True)
def quiet_logger():
    SimpleLogger.set_enabled(False)
    yield
    SimpleLogger.set_enabled(True)


@pytest.fixture
def tokenizer() -> WordTokenizer:
    return WordTokenizer()


@pytest.fixture
def embeddings() -> KeywordEmbeddings:
    return KeywordEmbeddings()


@pytest.fixture
def index_dir(tmp_path: Path) -> Path:
    return tmp_path / "index"


@pytest.fixture
def make_index(index_dir, tokenizer):
    def _make(embeddings=None, chunk_size: int = 8, chunk_overlap: int = 0) -> LocalDocumentIndex:
        config = ChunkingConfig(chunk_size=chunk_size, chunk_overlap=chunk_overlap, keep_separators=True)
        return LocalDocumentIndex(index_dir, embeddings, tokenizer=tokenizer, chunking_config=config)
    return _make


@pytest.fixture
def doc_index(make_index, embeddings) -> LocalDocumentIndex:
    index = make_index(embeddings)
    index.create_index()
    return index
