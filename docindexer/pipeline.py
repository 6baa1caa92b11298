from __future__ import annotations

import logging
import sqlite3
import time
import uuid
from dataclasses import dataclass, field
from typing import Any, Protocol, Sequence

import httpx

from .chunking import Chunk, DocumentRef, chunk_document
from .config import Settings
from .crawl import ScrapedPage, scrape_pages
from .errors import DocIndexerError
from .extract import html_to_blocks
from .storage import Storage

log = logging.getLogger(__name__)


class Embedder(Protocol):
  async def embed_chunks(self, chunks: Sequence[Chunk]) -> list[list[float]]: ...


@dataclass
class IndexResult:
  docs_processed: int = 0
  chunks_created: int = 0
  failures: list[dict[str, Any]] = field(default_factory=list)
  started_at: int = field(default_factory=lambda: int(time.time()))
  finished_at: int | None = None

  def to_dict(self) -> dict[str, Any]:
    finished = self.finished_at or int(time.time())
    return {
      "docs_processed": self.docs_processed,
      "chunks_created": self.chunks_created,
      "started_at": self.started_at,
      "finished_at": finished,
      "duration_sec": finished - self.started_at,
      "failures": self.failures[:20],
    }


def doc_id_for(url: str) -> str:
  """Stable per-URL id, so re-indexing a page replaces its rows."""
  return f"doc_{uuid.uuid5(uuid.NAMESPACE_URL, url).hex[:12]}"


async def index_page(page: ScrapedPage, embedder: Embedder, storage: Storage) -> int:
  doc = DocumentRef(doc_id=doc_id_for(page.url), title=page.title, url=page.url, type=page.type)
  blocks = page.blocks or html_to_blocks(page.html)

  chunks, meta = chunk_document(doc, blocks)
  if not chunks:
    log.warning("No chunks produced for %s", page.url)
    return 0

  embeddings = await embedder.embed_chunks(chunks)

  storage.delete_doc(doc.doc_id)
  # chunks before metadata: a listed document always has its chunks
  storage.upsert_chunks(chunks, embeddings)
  storage.upsert_doc_metadata(meta)
  log.info("Indexed %s: %d chunks", page.url, len(chunks))
  return len(chunks)


async def index_site(
  start_urls: list[str],
  max_pages: int,
  embedder: Embedder,
  storage: Storage,
  client: httpx.AsyncClient | None = None,
) -> IndexResult:
  """
  Crawl the start URLs and index every page found. A page that fails is
  recorded in failures and the run continues.
  """
  result = IndexResult()
  pages = await scrape_pages(start_urls, max_pages, client=client)

  for page in pages:
    try:
      created = await index_page(page, embedder, storage)
    except (DocIndexerError, sqlite3.Error) as e:
      log.error("Failed to index %s: %s", page.url, e)
      result.failures.append({"url": page.url, "error": str(e)})
      continue
    if created:
      result.docs_processed += 1
      result.chunks_created += created

  result.finished_at = int(time.time())
  log.info("Scraping complete: %d docs, %d chunks", result.docs_processed, result.chunks_created)
  return result


async def initialize_docs(settings: Settings, embedder: Embedder, storage: Storage) -> int:
  """
  Populate the index on startup. Returns the number of documents available.
  """
  existing = storage.list_docs()
  if existing and not settings.force_refresh:
    log.info("Found %d existing docs in database, skipping scrape", len(existing))
    log.info("Set DOCINDEXER_FORCE_REFRESH=true to re-scrape")
    return len(existing)

  if existing:
    log.info("Force refresh enabled, clearing existing data...")
    storage.clear_all()

  log.info("Scraping documentation from %s (max %d pages)", ", ".join(settings.start_urls), settings.max_pages)
  result = await index_site(settings.start_urls, settings.max_pages, embedder, storage)
  return result.docs_processed
