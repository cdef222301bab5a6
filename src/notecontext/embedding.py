"""Embedding client and query embedder for notecontext.

AsyncEmbeddingClient calls an OpenAI-compatible embeddings endpoint
(OpenRouter by default). QueryEmbedder wraps any embedder with query
validation and turns every failure into EmbeddingUnavailableError, which
callers treat as a signal to fall back to lexical-only retrieval.

Environment Variables:
    NOTECONTEXT_EMBEDDING_API_KEY: API key (falls back to OPENROUTER_API_KEY).
    NOTECONTEXT_EMBEDDING_MODEL: Override default model (optional).
"""

from __future__ import annotations

import logging
import math
import os
import time
from typing import Any, Protocol, Sequence

import httpx

from notecontext.errors import EmbeddingUnavailableError, InvalidInputError
from notecontext.models import EMBEDDING_DIM

logger = logging.getLogger(__name__)

# OpenRouter configuration
OPENROUTER_EMBEDDINGS_URL = "https://openrouter.ai/api/v1/embeddings"

DEFAULT_EMBEDDING_MODEL = "openai/text-embedding-3-small"

# Chat messages are capped at 2000 characters; queries share the bound
MAX_QUERY_CHARS = 2000


class Embedder(Protocol):
    """Anything that can turn text into a vector."""

    async def embed(self, text: str) -> list[float]: ...


def validate_query(query: str, max_chars: int = MAX_QUERY_CHARS) -> str:
    """Trim and validate query text.

    Raises:
        InvalidInputError: If the query is empty after trimming or too long
    """
    if not isinstance(query, str):
        raise InvalidInputError("Query must be a string")
    text = query.strip()
    if not text:
        raise InvalidInputError("Query is empty")
    if len(text) > max_chars:
        raise InvalidInputError(
            f"Query is too long: {len(text)} characters (max {max_chars})"
        )
    return text


def note_embedding_text(title: str, body: str, tags: Sequence[str] | None = None) -> str:
    """Build the text embedded for a note.

    Layout is "Title: ...", "Content: ...", "Tags: a, b" separated by blank
    lines, so query vectors and stored note vectors live in the same space.

    Raises:
        InvalidInputError: If title, body and tags are all empty
    """
    parts: list[str] = []
    if title and title.strip():
        parts.append(f"Title: {title.strip()}")
    if body and body.strip():
        parts.append(f"Content: {body.strip()}")
    valid_tags = [t.strip() for t in (tags or []) if t and t.strip()]
    if valid_tags:
        parts.append(f"Tags: {', '.join(valid_tags)}")

    if not parts:
        raise InvalidInputError("No valid content provided for note embedding")
    return "\n\n".join(parts)


class AsyncEmbeddingClient:
    """Async client for generating embeddings via an OpenAI-compatible API.

    Example:
        async with AsyncEmbeddingClient() as client:
            embedding = await client.embed("Hello, world!")
    """

    def __init__(
        self,
        api_key: str | None = None,
        model: str | None = None,
        api_url: str = OPENROUTER_EMBEDDINGS_URL,
        dimensions: int | None = None,
        timeout: float = 30.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        """
        Args:
            api_key: API key. Defaults to NOTECONTEXT_EMBEDDING_API_KEY or OPENROUTER_API_KEY.
            model: Embedding model in OpenRouter format.
            api_url: Embeddings endpoint URL.
            dimensions: Output dimensions (optional, model-dependent).
            timeout: Request timeout in seconds.
            transport: Optional httpx transport (used by tests).
        """
        self.api_key = (
            api_key
            or os.getenv("NOTECONTEXT_EMBEDDING_API_KEY")
            or os.getenv("OPENROUTER_API_KEY")
        )
        if not self.api_key:
            raise ValueError(
                "Embedding API key required. Set NOTECONTEXT_EMBEDDING_API_KEY or "
                "OPENROUTER_API_KEY environment variable, or pass api_key parameter."
            )

        self.model = model or os.getenv("NOTECONTEXT_EMBEDDING_MODEL", DEFAULT_EMBEDDING_MODEL)
        self.api_url = api_url
        self.dimensions = dimensions
        self.timeout = timeout
        self._transport = transport
        self._client: httpx.AsyncClient | None = None

    @classmethod
    def from_config(cls, config: Any) -> "AsyncEmbeddingClient":
        """Create a client from a NoteContextConfig."""
        return cls(
            api_key=config.resolve_embedding_api_key(),
            model=config.embedding_model,
            api_url=config.embedding_api_url,
            timeout=config.embedding_timeout,
        )

    async def _get_client(self) -> httpx.AsyncClient:
        """Lazily create the pooled HTTP client."""
        if self._client is None:
            self._client = httpx.AsyncClient(
                timeout=self.timeout,
                transport=self._transport,
                headers={
                    "Authorization": f"Bearer {self.api_key}",
                    "Content-Type": "application/json",
                    "X-Title": "notecontext",
                },
            )
        return self._client

    async def embed(self, text: str) -> list[float]:
        """Embed one text. Raises EmbeddingUnavailableError on any failure."""
        start = time.perf_counter()
        (vector,) = await self._call_api([text])
        logger.debug(f"[EMBEDDING] embed: {(time.perf_counter() - start) * 1000:.0f}ms")
        return vector

    async def embed_batch(
        self,
        texts: list[str],
        batch_size: int = 100,
    ) -> list[list[float]]:
        """Embed many texts, `batch_size` per request, keeping input order.

        Used to (re)compute note embeddings from note_embedding_text().
        """
        if not texts:
            return []

        all_embeddings: list[list[float]] = []
        for i in range(0, len(texts), batch_size):
            batch = texts[i : i + batch_size]
            embeddings = await self._call_api(batch)
            all_embeddings.extend(embeddings)
            logger.debug(f"[EMBEDDING] Embedded batch {i // batch_size + 1}, {len(batch)} texts")

        return all_embeddings

    async def _call_api(self, texts: list[str]) -> list[list[float]]:
        """Make async API call to the embeddings endpoint.

        Raises:
            EmbeddingUnavailableError: If the call fails or the response is malformed
        """
        client = await self._get_client()

        payload: dict[str, Any] = {
            "model": self.model,
            "input": texts,
        }
        if self.dimensions:
            payload["dimensions"] = self.dimensions

        try:
            response = await client.post(self.api_url, json=payload)
            response.raise_for_status()
            data = response.json()

            # OpenAI format: {"data": [{"embedding": [...], "index": 0}, ...]}
            embeddings: list[list[float] | None] = [None] * len(texts)
            for item in data["data"]:
                embeddings[item["index"]] = item["embedding"]

            if None in embeddings:
                raise EmbeddingUnavailableError("Missing embeddings in API response")

            return embeddings  # type: ignore[return-value]

        except httpx.HTTPStatusError as e:
            logger.error(f"[EMBEDDING] HTTP {e.response.status_code}: {e.response.text[:200]}")
            raise EmbeddingUnavailableError(
                f"Embedding API error: {e.response.status_code}"
            ) from e
        except httpx.RequestError as e:
            logger.error(f"[EMBEDDING] Request failed: {e}")
            raise EmbeddingUnavailableError(f"Embedding request failed: {e}") from e
        except (KeyError, IndexError, TypeError, ValueError) as e:
            logger.error(f"[EMBEDDING] Malformed response: {e}")
            raise EmbeddingUnavailableError(f"Invalid embedding response: {e}") from e

    async def close(self) -> None:
        """Release the HTTP client. Safe to call twice."""
        if self._client:
            await self._client.aclose()
            self._client = None

    async def __aenter__(self) -> "AsyncEmbeddingClient":
        return self

    async def __aexit__(self, *args: Any) -> None:
        await self.close()


class QueryEmbedder:
    """Turns raw query text into a validated, fixed-length vector.

    Every failure of the underlying embedder surfaces as
    EmbeddingUnavailableError; bad query text surfaces as InvalidInputError
    before any network call is made.
    """

    def __init__(
        self,
        client: Embedder,
        dimension: int = EMBEDDING_DIM,
        max_query_chars: int = MAX_QUERY_CHARS,
    ):
        self.client = client
        self.dimension = dimension
        self.max_query_chars = max_query_chars

    def validate(self, query: str) -> str:
        return validate_query(query, self.max_query_chars)

    async def embed(self, query: str) -> list[float]:
        text = self.validate(query)

        start = time.perf_counter()
        try:
            vector = await self.client.embed(text)
        except EmbeddingUnavailableError:
            raise
        except Exception as e:
            # Opaque collaborator: any failure means "no vector this time"
            raise EmbeddingUnavailableError(f"Embedding call failed: {e}") from e

        elapsed_ms = (time.perf_counter() - start) * 1000
        logger.debug(f"[TIMING] query embedding: {elapsed_ms:.0f}ms")
        return self._check_vector(vector)

    def _check_vector(self, vector: Any) -> list[float]:
        if not isinstance(vector, (list, tuple)):
            raise EmbeddingUnavailableError(
                f"Malformed embedding: expected a list, got {type(vector).__name__}"
            )
        if len(vector) != self.dimension:
            raise EmbeddingUnavailableError(
                f"Malformed embedding: expected {self.dimension} dimensions, got {len(vector)}"
            )
        try:
            values = [float(v) for v in vector]
        except (TypeError, ValueError) as e:
            raise EmbeddingUnavailableError(f"Malformed embedding: {e}") from e
        if not all(math.isfinite(v) for v in values):
            raise EmbeddingUnavailableError("Malformed embedding: non-finite values")
        return values
