from __future__ import annotations

import json
import logging
import math
import sqlite3
import time
from pathlib import Path
from typing import Any, Iterable, Optional, Sequence

from .chunking import Chunk
from .summary import DocMetadata

log = logging.getLogger(__name__)

DOC_TYPES = ("api", "guide", "example")


def validate_doc_type(doc_type: str) -> None:
  if doc_type not in DOC_TYPES:
    raise ValueError(f"type must be one of {', '.join(DOC_TYPES)}, got {doc_type!r}")


SCHEMA = """
PRAGMA journal_mode=WAL;

CREATE TABLE IF NOT EXISTS doc_metadata (
  id TEXT PRIMARY KEY,
  title TEXT NOT NULL,
  url TEXT NOT NULL,
  summary TEXT,
  sections_json TEXT NOT NULL DEFAULT '[]',
  total_chunks INTEGER NOT NULL DEFAULT 0,
  type TEXT NOT NULL DEFAULT 'guide',
  created_at INTEGER NOT NULL
);

CREATE TABLE IF NOT EXISTS doc_chunks (
  id TEXT PRIMARY KEY,
  doc_id TEXT NOT NULL,
  doc_title TEXT,
  doc_url TEXT,
  section_path_json TEXT NOT NULL DEFAULT '[]',
  heading TEXT,
  content TEXT NOT NULL,
  token_count INTEGER NOT NULL,
  chunk_index INTEGER NOT NULL,
  embedding_json TEXT,
  created_at INTEGER NOT NULL
);

CREATE INDEX IF NOT EXISTS idx_doc_chunks_doc ON doc_chunks(doc_id, chunk_index);
CREATE INDEX IF NOT EXISTS idx_doc_metadata_type ON doc_metadata(type);
"""


def cosine_similarity(a: Sequence[float], b: Sequence[float]) -> float:
  if len(a) != len(b) or not a:
    return 0.0
  dot = sum(x * y for x, y in zip(a, b))
  na = math.sqrt(sum(x * x for x in a))
  nb = math.sqrt(sum(y * y for y in b))
  if na == 0.0 or nb == 0.0:
    return 0.0
  return dot / (na * nb)


def _row_to_chunk(row: sqlite3.Row) -> Chunk:
  return Chunk(
    id=row["id"],
    doc_id=row["doc_id"] or "",
    doc_title=row["doc_title"] or "",
    doc_url=row["doc_url"] or "",
    section_path=json.loads(row["section_path_json"] or "[]"),
    heading=row["heading"] or "",
    content=row["content"],
    token_count=int(row["token_count"] or 0),
    chunk_index=int(row["chunk_index"] or 0),
  )


def _row_to_metadata(row: sqlite3.Row) -> DocMetadata:
  return DocMetadata(
    id=row["id"],
    title=row["title"],
    url=row["url"],
    summary=row["summary"] or "",
    sections=json.loads(row["sections_json"] or "[]"),
    total_chunks=int(row["total_chunks"] or 0),
    type=row["type"] or "guide",
    created_at=int(row["created_at"]),
  )


class Storage:
  def __init__(self, db_path: str | Path):
    self.db_path = str(db_path)
    self._init_db()

  def _connect(self) -> sqlite3.Connection:
    conn = sqlite3.connect(self.db_path)
    conn.row_factory = sqlite3.Row
    return conn

  def _init_db(self) -> None:
    Path(self.db_path).parent.mkdir(parents=True, exist_ok=True)
    with self._connect() as conn:
      conn.executescript(SCHEMA)

  # ---------- Documents ----------
  def upsert_doc_metadata(self, meta: DocMetadata) -> None:
    validate_doc_type(meta.type)
    now = int(time.time())
    with self._connect() as conn:
      conn.execute(
        """
        INSERT INTO doc_metadata(id, title, url, summary, sections_json, total_chunks, type, created_at)
        VALUES (?, ?, ?, ?, ?, ?, ?, ?)
        ON CONFLICT(id) DO UPDATE SET
          title=excluded.title,
          url=excluded.url,
          summary=excluded.summary,
          sections_json=excluded.sections_json,
          total_chunks=excluded.total_chunks,
          type=excluded.type
        """,
        (
          meta.id,
          meta.title,
          meta.url,
          meta.summary,
          json.dumps(meta.sections),
          int(meta.total_chunks),
          meta.type,
          meta.created_at or now,
        ),
      )

  def get_doc_metadata(self, doc_id: str) -> DocMetadata | None:
    with self._connect() as conn:
      row = conn.execute("SELECT * FROM doc_metadata WHERE id = ?", (doc_id,)).fetchone()
      return _row_to_metadata(row) if row else None

  def list_docs(self, doc_type: str | None = None) -> list[DocMetadata]:
    with self._connect() as conn:
      if doc_type:
        validate_doc_type(doc_type)
        rows = conn.execute(
          "SELECT * FROM doc_metadata WHERE type = ? ORDER BY created_at DESC, rowid DESC",
          (doc_type,),
        ).fetchall()
      else:
        rows = conn.execute("SELECT * FROM doc_metadata ORDER BY created_at DESC, rowid DESC").fetchall()
      return [_row_to_metadata(r) for r in rows]

  def delete_doc(self, doc_id: str) -> None:
    with self._connect() as conn:
      conn.execute("DELETE FROM doc_chunks WHERE doc_id = ?", (doc_id,))
      conn.execute("DELETE FROM doc_metadata WHERE id = ?", (doc_id,))
    log.info("Deleted document: %s", doc_id)

  def clear_all(self) -> None:
    with self._connect() as conn:
      conn.execute("DELETE FROM doc_chunks")
      conn.execute("DELETE FROM doc_metadata")
    log.info("Cleared all data")

  # ---------- Chunks ----------
  def upsert_chunks(
    self,
    chunks: Sequence[Chunk],
    embeddings: Optional[Sequence[Sequence[float]]] = None,
  ) -> None:
    """
    Store chunks, replacing every previously stored chunk of the documents
    they belong to.
    """
    if embeddings is not None and len(embeddings) != len(chunks):
      raise ValueError(f"got {len(embeddings)} embeddings for {len(chunks)} chunks")

    now = int(time.time())
    doc_ids = sorted({c.doc_id for c in chunks})
    with self._connect() as conn:
      for doc_id in doc_ids:
        conn.execute("DELETE FROM doc_chunks WHERE doc_id = ?", (doc_id,))

      for i, c in enumerate(chunks):
        vector = embeddings[i] if embeddings is not None else None
        conn.execute(
          """
          INSERT OR REPLACE INTO doc_chunks(
            id, doc_id, doc_title, doc_url, section_path_json, heading, content,
            token_count, chunk_index, embedding_json, created_at
          )
          VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
          """,
          (
            c.id,
            c.doc_id,
            c.doc_title,
            c.doc_url,
            json.dumps(c.section_path),
            c.heading,
            c.content,
            int(c.token_count),
            int(c.chunk_index),
            json.dumps(list(vector)) if vector is not None else None,
            now,
          ),
        )

  def get_chunks(self, doc_id: str, limit: int | None = None, offset: int = 0) -> tuple[list[Chunk], int]:
    with self._connect() as conn:
      total = conn.execute("SELECT COUNT(*) AS cnt FROM doc_chunks WHERE doc_id = ?", (doc_id,)).fetchone()["cnt"]
      rows = conn.execute(
        "SELECT * FROM doc_chunks WHERE doc_id = ? ORDER BY chunk_index ASC LIMIT ? OFFSET ?",
        (doc_id, -1 if limit is None else int(limit), max(0, int(offset))),
      ).fetchall()
      return [_row_to_chunk(r) for r in rows], int(total)

  def get_chunks_by_section(self, doc_id: str, section_path: Sequence[str]) -> list[Chunk]:
    prefix = list(section_path)
    chunks, _total = self.get_chunks(doc_id)
    return [c for c in chunks if c.section_path[: len(prefix)] == prefix]

  def search_similar(self, embedding: Sequence[float], limit: int = 5, doc_id: str | None = None) -> list[dict[str, Any]]:
    with self._connect() as conn:
      if doc_id:
        rows = conn.execute(
          "SELECT * FROM doc_chunks WHERE embedding_json IS NOT NULL AND doc_id = ?",
          (doc_id,),
        ).fetchall()
      else:
        rows = conn.execute("SELECT * FROM doc_chunks WHERE embedding_json IS NOT NULL").fetchall()

    scored = _score(rows, embedding)
    scored.sort(key=lambda pair: pair[0], reverse=True)
    return [
      {
        "id": row["id"],
        "doc_id": row["doc_id"],
        "doc_title": row["doc_title"],
        "doc_url": row["doc_url"],
        "section_path": json.loads(row["section_path_json"] or "[]"),
        "heading": row["heading"],
        "content": row["content"],
        "chunk_index": int(row["chunk_index"]),
        "similarity": round(score, 6),
      }
      for score, row in scored[: max(0, int(limit))]
    ]

  # ---------- Utility / Inspection ----------
  def stats(self) -> dict[str, Any]:
    with self._connect() as conn:
      total_docs = conn.execute("SELECT COUNT(*) AS cnt FROM doc_metadata").fetchone()["cnt"]
      total_chunks = conn.execute("SELECT COALESCE(SUM(total_chunks), 0) AS cnt FROM doc_metadata").fetchone()["cnt"]
      by_type = {t: 0 for t in DOC_TYPES}
      for r in conn.execute("SELECT type, COUNT(*) AS cnt FROM doc_metadata GROUP BY type").fetchall():
        by_type[r["type"]] = int(r["cnt"])
      return {
        "total_docs": int(total_docs),
        "total_chunks": int(total_chunks),
        "docs_by_type": by_type,
      }


def _score(rows: Iterable[sqlite3.Row], embedding: Sequence[float]) -> list[tuple[float, sqlite3.Row]]:
  return [(cosine_similarity(embedding, json.loads(r["embedding_json"])), r) for r in rows]


_storage: Storage | None = None


def get_storage(db_path: str | Path) -> Storage:
  """Process-wide Storage for db_path; reopened if the path changes."""
  global _storage
  if _storage is None or _storage.db_path != str(db_path):
    _storage = Storage(db_path)
  return _storage
