"""Tests for the embeddings client."""

import json

import httpx
import pytest

from docindexer import embeddings as emb
from docindexer.config import Settings
from docindexer.embeddings import BATCH_SIZE, MAX_INPUT_CHARS, EmbeddingClient, embedding_input
from docindexer.errors import ConfigError, EmbeddingError


def _recording_handler(calls: list[dict], reverse: bool = False):
  def handler(request: httpx.Request) -> httpx.Response:
    body = json.loads(request.content)
    calls.append({"body": body, "auth": request.headers.get("authorization"), "url": str(request.url)})
    inputs = body["input"] if isinstance(body["input"], list) else [body["input"]]
    data = [{"index": i, "embedding": [float(len(t)), float(i)]} for i, t in enumerate(inputs)]
    if reverse:
      data.reverse()
    return httpx.Response(200, json={"data": data})

  return handler


@pytest.fixture(autouse=True)
def no_batch_delay(monkeypatch):
  monkeypatch.setattr(emb, "BATCH_DELAY_SEC", 0)


class TestEmbeddingClient:
  """Tests for EmbeddingClient."""

  @pytest.mark.asyncio
  async def test_embed_single_text(self):
    calls: list[dict] = []
    async with httpx.AsyncClient(transport=httpx.MockTransport(_recording_handler(calls))) as http:
      client = EmbeddingClient("https://embed.example.com/v1/", "secret", "test-model", http=http, max_retries=0)
      vector = await client.embed("hello")

    assert vector == [5.0, 0.0]
    assert calls[0]["url"] == "https://embed.example.com/v1/embeddings"
    assert calls[0]["auth"] == "Bearer secret"
    assert calls[0]["body"]["model"] == "test-model"

  @pytest.mark.asyncio
  async def test_embed_many_batches_and_keeps_order(self):
    calls: list[dict] = []
    texts = [f"text {i}" for i in range(BATCH_SIZE + 50)]
    async with httpx.AsyncClient(transport=httpx.MockTransport(_recording_handler(calls, reverse=True))) as http:
      client = EmbeddingClient("https://embed.example.com/v1", "k", "m", http=http, max_retries=0)
      vectors = await client.embed_many(texts)

    assert [len(c["body"]["input"]) for c in calls] == [BATCH_SIZE, 50]
    assert len(vectors) == len(texts)
    assert vectors[0] == [float(len(texts[0])), 0.0]
    assert vectors[BATCH_SIZE + 1] == [float(len(texts[BATCH_SIZE + 1])), 1.0]

  @pytest.mark.asyncio
  async def test_inputs_are_truncated(self):
    calls: list[dict] = []
    async with httpx.AsyncClient(transport=httpx.MockTransport(_recording_handler(calls))) as http:
      client = EmbeddingClient("https://embed.example.com/v1", "k", "m", http=http, max_retries=0)
      await client.embed_many(["x" * (MAX_INPUT_CHARS + 500)])

    assert len(calls[0]["body"]["input"][0]) == MAX_INPUT_CHARS

  @pytest.mark.asyncio
  async def test_embed_chunks_uses_heading_and_content(self, chunk):
    calls: list[dict] = []
    c = chunk(heading="Install", content="npm install crawlee")
    async with httpx.AsyncClient(transport=httpx.MockTransport(_recording_handler(calls))) as http:
      client = EmbeddingClient("https://embed.example.com/v1", "k", "m", http=http, max_retries=0)
      await client.embed_chunks([c])

    assert calls[0]["body"]["input"] == ["Install\n\nnpm install crawlee"]
    assert embedding_input(c) == "Install\n\nnpm install crawlee"

  @pytest.mark.asyncio
  async def test_http_error_raises(self):
    transport = httpx.MockTransport(lambda request: httpx.Response(500, text="boom"))
    async with httpx.AsyncClient(transport=transport) as http:
      client = EmbeddingClient("https://embed.example.com/v1", "k", "m", http=http, max_retries=0)
      with pytest.raises(EmbeddingError):
        await client.embed("hello")

  @pytest.mark.asyncio
  async def test_malformed_payload_raises(self):
    transport = httpx.MockTransport(lambda request: httpx.Response(200, json={"data": [{"index": 0}]}))
    async with httpx.AsyncClient(transport=transport) as http:
      client = EmbeddingClient("https://embed.example.com/v1", "k", "m", http=http, max_retries=0)
      with pytest.raises(EmbeddingError):
        await client.embed("hello")

  @pytest.mark.asyncio
  async def test_count_mismatch_raises(self):
    transport = httpx.MockTransport(lambda request: httpx.Response(200, json={"data": []}))
    async with httpx.AsyncClient(transport=transport) as http:
      client = EmbeddingClient("https://embed.example.com/v1", "k", "m", http=http, max_retries=0)
      with pytest.raises(EmbeddingError):
        await client.embed_many(["a", "b"])

  def test_from_settings_requires_key(self):
    with pytest.raises(ConfigError):
      EmbeddingClient.from_settings(Settings(embedding_api_key=None))

  def test_from_settings(self):
    client = EmbeddingClient.from_settings(Settings(embedding_api_key="k", embedding_model="m2"))
    assert client.model == "m2"

  @pytest.mark.asyncio
  async def test_requests_float_vectors(self):
    calls: list[dict] = []
    async with httpx.AsyncClient(transport=httpx.MockTransport(_recording_handler(calls))) as http:
      client = EmbeddingClient("https://embed.example.com/v1", "k", "m", http=http, max_retries=0)
      await client.embed("hello")

    assert calls[0]["body"]["encoding_format"] == "float"

  @pytest.mark.asyncio
  async def test_transient_error_is_retried(self):
    attempts: list[int] = []

    def handler(request: httpx.Request) -> httpx.Response:
      attempts.append(1)
      if len(attempts) == 1:
        return httpx.Response(503, json={"error": {"message": "busy"}})
      return httpx.Response(200, json={"data": [{"index": 0, "embedding": [0.5, 0.5]}]})

    async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as http:
      client = EmbeddingClient("https://embed.example.com/v1", "k", "m", http=http, max_retries=1)
      vector = await client.embed("hello")

    assert vector == [0.5, 0.5]
    assert len(attempts) == 2
