from __future__ import annotations

from dataclasses import asdict, dataclass, field
from typing import TYPE_CHECKING, Any, Optional, Sequence

if TYPE_CHECKING:
  from .chunking import Chunk, DocumentRef

SUMMARY_CHARS = 300
SUMMARY_MIN_SENTENCE_END = 100
ELLIPSIS = "..."


@dataclass(frozen=True)
class DocMetadata:
  id: str
  title: str
  url: str
  summary: str
  sections: list[str] = field(default_factory=list)
  total_chunks: int = 0
  type: str = "guide"
  created_at: Optional[int] = None

  def to_dict(self) -> dict[str, Any]:
    return asdict(self)


def generate_summary(chunks: Sequence[Chunk]) -> str:
  """
  Short lead-in for a page, preferring an introduction chunk over
  whatever happens to come first.
  """
  if not chunks:
    return ""

  source = next((c for c in chunks if "intro" in c.heading.lower()), chunks[0])
  text = source.content[:SUMMARY_CHARS]

  last_period = text.rfind(".")
  if last_period > SUMMARY_MIN_SENTENCE_END:
    return text[: last_period + 1]
  return text + ELLIPSIS


def top_level_sections(chunks: Sequence[Chunk]) -> list[str]:
  seen: set[str] = set()
  out: list[str] = []
  for c in chunks:
    if not c.section_path:
      continue
    head = c.section_path[0]
    if head not in seen:
      seen.add(head)
      out.append(head)
  return out


def build_metadata(doc: DocumentRef, chunks: Sequence[Chunk]) -> DocMetadata:
  return DocMetadata(
    id=doc.doc_id,
    title=doc.title,
    url=doc.url,
    summary=generate_summary(chunks),
    sections=top_level_sections(chunks),
    total_chunks=len(chunks),
    type=doc.type,
  )
