from __future__ import annotations

import asyncio
import logging
from dataclasses import asdict
from typing import Any

from mcp.server.fastmcp import FastMCP

from .chunking import Chunk
from .config import Settings
from .embeddings import EmbeddingClient
from .errors import ConfigError, DocIndexerError
from .pipeline import index_site, initialize_docs
from .storage import DOC_TYPES, Storage, get_storage

# stdio servers must never write to stdout; logging goes to stderr.
log = logging.getLogger("docindexer")

mcp = FastMCP("docindexer")


def _settings() -> Settings:
  return Settings.from_env()


def _storage() -> Storage:
  return get_storage(_settings().db_path)


def _embedder() -> EmbeddingClient:
  return EmbeddingClient.from_settings(_settings())


def _chunk_dict(c: Chunk) -> dict[str, Any]:
  return asdict(c)


def _not_found(doc_id: str, storage: Storage) -> dict[str, Any]:
  return {
    "ok": False,
    "error": f"Document not found: {doc_id}",
    "available_ids": [d.id for d in storage.list_docs()[:10]],
  }


@mcp.tool()
async def list_docs(type: str = "all") -> dict[str, Any]:
  """
  List all indexed documentation pages with their metadata.

  Args:
    type: "all", "api", "guide" or "example".
  """
  if type != "all" and type not in DOC_TYPES:
    return {"ok": False, "error": f"type must be one of all, {', '.join(DOC_TYPES)}"}

  docs = _storage().list_docs(None if type == "all" else type)
  return {
    "total": len(docs),
    "docs": [
      {
        "id": d.id,
        "title": d.title,
        "type": d.type,
        "url": d.url,
        "summary": d.summary,
        "total_chunks": d.total_chunks,
      }
      for d in docs
    ],
  }


@mcp.tool()
async def search(query: str, limit: int = 5) -> dict[str, Any]:
  """
  Semantic search across all indexed documentation. Main entry point.

  Args:
    query: Natural-language question, keywords, or an API name.
    limit: Maximum number of chunks to return.
  """
  log.info("Searching for: %s", query)
  try:
    vector = await _embedder().embed(query)
  except DocIndexerError as e:
    return {"ok": False, "error": str(e), "query": query}

  hits = _storage().search_similar(vector, limit=limit)
  return {"query": query, "results_count": len(hits), "results": hits}


@mcp.tool()
async def get_doc_overview(doc_id: str) -> dict[str, Any]:
  """
  Return a document's summary and its top-level sections.

  Args:
    doc_id: Document id as returned by list_docs or search.
  """
  storage = _storage()
  meta = storage.get_doc_metadata(doc_id)
  if not meta:
    return _not_found(doc_id, storage)
  return {"ok": True, **meta.to_dict()}


@mcp.tool()
async def get_section(doc_id: str, section_path: list[str]) -> dict[str, Any]:
  """
  Return every chunk under a section, in reading order.

  Args:
    doc_id: Document id.
    section_path: Breadcrumb from the top-level section down, e.g. ["Guide", "Proxies"].
  """
  storage = _storage()
  if not storage.get_doc_metadata(doc_id):
    return _not_found(doc_id, storage)

  chunks = storage.get_chunks_by_section(doc_id, section_path)
  if not chunks:
    return {"ok": False, "error": "Section not found", "doc_id": doc_id, "section_path": section_path}
  return {
    "ok": True,
    "doc_id": doc_id,
    "section_path": section_path,
    "content": "\n\n".join(c.content for c in chunks),
    "chunks": [_chunk_dict(c) for c in chunks],
  }


@mcp.tool()
async def get_chunks(doc_id: str, limit: int = 10, offset: int = 0) -> dict[str, Any]:
  """
  Page through a document's chunks in order.

  Args:
    doc_id: Document id.
    limit: Page size.
    offset: Number of chunks to skip.
  """
  offset = max(0, offset)
  chunks, total = _storage().get_chunks(doc_id, limit=limit, offset=offset)
  return {
    "doc_id": doc_id,
    "total": total,
    "offset": offset,
    "limit": limit,
    "has_more": offset + len(chunks) < total,
    "chunks": [_chunk_dict(c) for c in chunks],
  }


@mcp.tool()
async def search_in_doc(doc_id: str, query: str, limit: int = 5) -> dict[str, Any]:
  """
  Semantic search restricted to a single document.

  Args:
    doc_id: Document id.
    query: Search query.
    limit: Maximum number of chunks to return.
  """
  storage = _storage()
  if not storage.get_doc_metadata(doc_id):
    return _not_found(doc_id, storage)

  log.info("Searching %s for: %s", doc_id, query)
  try:
    vector = await _embedder().embed(query)
  except DocIndexerError as e:
    return {"ok": False, "error": str(e), "query": query, "doc_id": doc_id}

  hits = storage.search_similar(vector, limit=limit, doc_id=doc_id)
  return {"query": query, "doc_id": doc_id, "results_count": len(hits), "results": hits}


@mcp.tool()
async def refresh_docs() -> dict[str, Any]:
  """
  Drop the index and re-scrape the configured start URLs.
  """
  settings = _settings()
  log.info("Refreshing documentation from %s", ", ".join(settings.start_urls))
  try:
    embedder = _embedder()
  except ConfigError as e:
    return {"ok": False, "error": str(e)}

  storage = _storage()
  storage.clear_all()
  result = await index_site(settings.start_urls, settings.max_pages, embedder, storage)
  return {"ok": True, **result.to_dict()}


@mcp.tool()
async def stats() -> dict[str, Any]:
  return _storage().stats()


@mcp.resource("docindexer://info")
def server_info() -> str:
  docs = _storage().list_docs()
  return (
    "docindexer MCP server (RAG-enabled)\n\n"
    "Semantic search over crawled documentation, split into heading-aware chunks.\n\n"
    "Available tools:\n"
    "- list_docs: List all documentation with metadata\n"
    "- search: Semantic search across all docs (main entry point)\n"
    "- get_doc_overview: Get document summary and sections\n"
    "- get_section: Get specific section content\n"
    "- get_chunks: Paginated chunk access\n"
    "- search_in_doc: Search within a specific document\n"
    "- refresh_docs: Re-scrape and re-index\n"
    "- stats: Document and chunk counts\n\n"
    f"Documentation loaded: {len(docs)} documents\n"
    "Backend: SQLite"
  )


def main() -> None:
  settings = _settings()
  logging.basicConfig(level=getattr(logging, settings.log_level, logging.INFO))

  try:
    settings.validate()
  except ConfigError as e:
    log.error("Invalid configuration: %s", e)
    raise SystemExit(1) from e

  storage = get_storage(settings.db_path)
  docs_count = asyncio.run(initialize_docs(settings, EmbeddingClient.from_settings(settings), storage))
  log.info("Documentation pages loaded: %d", docs_count)

  mcp.run(transport=settings.transport)


if __name__ == "__main__":
  main()
