# -*- coding: utf-8 -*-
"""
Embedder
========
Wraps the OpenAI embeddings API to convert text chunks into dense vectors.

The provider never raises for API failures; it reports them through
`EmbeddingsResponse.status`:
    "success"       output holds one vector per input, in input order
    "rate_limited"  HTTP 429 persisted through the whole retry policy
    "error"         any other failure (message says which)

Rate limiting is retried locally: the retry policy is a list of delays in
seconds (default 2s then 5s). The SDK's own retries are disabled so the
policy is the only one in effect.
"""
from __future__ import annotations

import time
from dataclasses import dataclass
from typing import List, Optional, Protocol, Sequence, Union

from openai import APIError, APIStatusError, OpenAI, RateLimitError

from docvec.config.settings import Settings
from docvec.errors import ConfigError
from docvec.utils.logging import SimpleLogger


@dataclass(frozen=True)
class EmbeddingsResponse:
    status: str
    output: Optional[List[List[float]]] = None
    message: Optional[str] = None


class EmbeddingsModel(Protocol):
    """Anything the document index can call to embed text."""
    max_tokens: int

    def create_embeddings(self, inputs: Union[str, Sequence[str]]) -> EmbeddingsResponse: ...


class OpenAIEmbeddings:
    """Embedding provider backed by the OpenAI v1 client."""

    def __init__(
        self,
        model: Optional[str] = None,
        api_key: Optional[str] = None,
        *,
        max_tokens: Optional[int] = None,
        retry_policy: Optional[Sequence[float]] = None,
        dimensions: Optional[int] = None,
        base_url: Optional[str] = None,
        client: Optional[OpenAI] = None,
    ) -> None:
        self.model = model or Settings.get("DOCVEC_EMBEDDING_MODEL", "text-embedding-3-small")
        self.max_tokens = max_tokens or Settings.get_int("DOCVEC_EMBEDDING_MAX_TOKENS", 8000)
        if retry_policy is None:
            retry_policy = [float(s) for s in Settings.get_list("DOCVEC_RETRY_POLICY", ["2", "5"])]
        self.retry_policy = list(retry_policy)
        self.dimensions = dimensions or Settings.get_int("DOCVEC_EMBEDDING_DIMENSIONS", 0) or None

        if client is None:
            key = api_key or Settings.get("OPENAI_API_KEY")
            if not key:
                raise ConfigError("OPENAI_API_KEY not found in environment or .env file")
            client = OpenAI(api_key=key, base_url=base_url, max_retries=0)
        self.client = client

    def create_embeddings(self, inputs: Union[str, Sequence[str]]) -> EmbeddingsResponse:
        texts = [inputs] if isinstance(inputs, str) else list(inputs)
        if not texts:
            return EmbeddingsResponse(status="success", output=[])

        request = {"model": self.model, "input": texts}
        if self.dimensions:
            request["dimensions"] = self.dimensions

        attempt = 0
        while True:
            try:
                response = self.client.embeddings.create(**request)
            except RateLimitError:
                if attempt >= len(self.retry_policy):
                    return EmbeddingsResponse(
                        status="rate_limited",
                        message="The embeddings API returned a rate limit error.",
                    )
                delay = self.retry_policy[attempt]
                attempt += 1
                SimpleLogger.warning(f"Embeddings rate limited, retry {attempt} in {delay:g}s")
                time.sleep(delay)
                continue
            except APIStatusError as exc:
                return EmbeddingsResponse(
                    status="error",
                    message=f"The embeddings API returned an error status of {exc.status_code}: {exc.message}",
                )
            except APIError as exc:
                return EmbeddingsResponse(status="error", message=f"The embeddings API call failed: {exc}")
            break

        # the API tags each vector with the index of its input
        data = sorted(response.data, key=lambda item: item.index)
        output = [[float(v) for v in item.embedding] for item in data]
        SimpleLogger.debug(f"Embedded {len(texts)} input(s) with {self.model}")
        return EmbeddingsResponse(status="success", output=output)
