from __future__ import annotations

import asyncio
import logging
from typing import Any, Sequence

import httpx
from openai import AsyncOpenAI, OpenAIError

from .chunking import Chunk
from .config import Settings
from .errors import ConfigError, EmbeddingError

log = logging.getLogger(__name__)

EMBEDDING_DIMENSIONS = 1536
BATCH_SIZE = 100
MAX_INPUT_CHARS = 8000
BATCH_DELAY_SEC = 0.1


def embedding_input(chunk: Chunk) -> str:
  return f"{chunk.heading}\n\n{chunk.content}"


def _vectors(response: Any) -> list[list[float]]:
  """Embeddings from a create() response, in input order."""
  data = getattr(response, "data", None)
  if not isinstance(data, list):
    raise EmbeddingError("Malformed embedding response: missing data")

  ordered = sorted(data, key=lambda d: getattr(d, "index", None) or 0)
  vectors = [getattr(d, "embedding", None) for d in ordered]
  if not all(isinstance(v, list) for v in vectors):
    raise EmbeddingError("Malformed embedding response: expected a list of embedding objects")
  return [list(v) for v in vectors]


class EmbeddingClient:
  """
  Embeddings through an OpenAI-compatible endpoint (OpenRouter by default).

  The SDK retries rate limits and 5xx responses itself, up to max_retries.
  """

  def __init__(
    self,
    base_url: str,
    api_key: str,
    model: str,
    http: httpx.AsyncClient | None = None,
    max_retries: int = 2,
  ):
    self.model = model
    self._client = AsyncOpenAI(
      api_key=api_key,
      base_url=base_url,
      http_client=http,
      max_retries=max_retries,
      timeout=60.0,
    )

  @staticmethod
  def from_settings(settings: Settings) -> "EmbeddingClient":
    if not settings.embedding_api_key:
      raise ConfigError("DOCINDEXER_EMBEDDING_API_KEY (or OPENROUTER_API_KEY) is not set")
    return EmbeddingClient(
      base_url=settings.embedding_base_url,
      api_key=settings.embedding_api_key,
      model=settings.embedding_model,
    )

  async def _create(self, inputs: list[str] | str) -> list[list[float]]:
    try:
      response = await self._client.embeddings.create(
        model=self.model,
        input=inputs,
        encoding_format="float",
      )
    except OpenAIError as e:
      raise EmbeddingError(f"Embedding request failed: {e}") from e
    return _vectors(response)

  async def embed(self, text: str) -> list[float]:
    vectors = await self._create(text[:MAX_INPUT_CHARS])
    if not vectors:
      raise EmbeddingError("Embedding response contained no vectors")
    return vectors[0]

  async def embed_many(self, texts: Sequence[str]) -> list[list[float]]:
    embeddings: list[list[float]] = []
    total_batches = (len(texts) + BATCH_SIZE - 1) // BATCH_SIZE

    for start in range(0, len(texts), BATCH_SIZE):
      batch = [t[:MAX_INPUT_CHARS] for t in texts[start:start + BATCH_SIZE]]
      log.info("Generating embeddings for batch %d/%d", start // BATCH_SIZE + 1, total_batches)

      vectors = await self._create(batch)
      if len(vectors) != len(batch):
        raise EmbeddingError(
          f"Expected {len(batch)} embeddings for batch starting at {start}, got {len(vectors)}"
        )
      embeddings.extend(vectors)

      if start + BATCH_SIZE < len(texts):
        await asyncio.sleep(BATCH_DELAY_SEC)

    return embeddings

  async def embed_chunks(self, chunks: Sequence[Chunk]) -> list[list[float]]:
    return await self.embed_many([embedding_input(c) for c in chunks])
