from __future__ import annotations

import math
import re
import uuid
from dataclasses import dataclass, field, replace
from typing import Callable, Sequence

from .sections import INTRODUCTION, Block, Section, extract_sections
from .summary import DocMetadata, build_metadata

MIN_TOKENS = 100
TARGET_TOKENS = 600
MAX_TOKENS = 1000

FALLBACK_HEADING = "Content"
PARAGRAPH_SEP = "\n\n"

_PARAGRAPH_BREAK_RE = re.compile(r"\n\s*\n")


def estimate_tokens(text: str) -> int:
  """~4 characters per token for English text."""
  return math.ceil(len(text) / 4)


@dataclass(frozen=True)
class DocumentRef:
  doc_id: str
  title: str
  url: str
  type: str = "guide"  # "api" | "guide" | "example"


@dataclass(frozen=True)
class Chunk:
  id: str
  doc_id: str
  doc_title: str
  doc_url: str
  section_path: list[str]
  heading: str
  content: str
  token_count: int
  chunk_index: int


@dataclass
class ChunkAccumulator:
  """
  Per-document emission state threaded through the section traversal.

  chunks[-1] is the chunk a too-small section merges into; next_index is
  only advanced by emit().
  """
  doc: DocumentRef
  new_id: Callable[[], str]
  chunks: list[Chunk] = field(default_factory=list)
  next_index: int = 0

  @property
  def last(self) -> Chunk | None:
    return self.chunks[-1] if self.chunks else None

  def emit(self, section_path: list[str], heading: str, content: str) -> None:
    self.chunks.append(
      Chunk(
        id=self.new_id(),
        doc_id=self.doc.doc_id,
        doc_title=self.doc.title,
        doc_url=self.doc.url,
        section_path=list(section_path),
        heading=heading,
        content=content,
        token_count=estimate_tokens(content),
        chunk_index=self.next_index,
      )
    )
    self.next_index += 1

  def merge_or_emit(self, section_path: list[str], heading: str, content: str) -> None:
    prev = self.last
    if prev is None:
      # a document always keeps its first chunk, however small
      self.emit(section_path, heading, content)
      return
    self.chunks[-1] = replace(
      prev,
      content=prev.content + PARAGRAPH_SEP + content,
      token_count=prev.token_count + estimate_tokens(content),
    )


def _new_uuid() -> str:
  return str(uuid.uuid4())


def chunk_sections(
  doc: DocumentRef,
  sections: Sequence[Section],
  new_id: Callable[[], str] = _new_uuid,
) -> list[Chunk]:
  acc = ChunkAccumulator(doc=doc, new_id=new_id)
  for s in sections:
    acc = _flatten(s, [], acc)
  return acc.chunks


def _flatten(section: Section, parent_path: list[str], acc: ChunkAccumulator) -> ChunkAccumulator:
  # an unnamed section stays under its parent's breadcrumb
  path = parent_path + [section.heading] if section.heading else parent_path
  heading = _heading_for(section, path)
  content = section.content.strip()

  if content:
    tokens = estimate_tokens(content)
    if tokens > MAX_TOKENS:
      acc = _split_oversized(content, path, heading, acc)
    elif tokens >= MIN_TOKENS:
      acc.emit(path, heading, content)
    else:
      acc.merge_or_emit(path, heading, content)

  for child in section.children:
    acc = _flatten(child, path, acc)
  return acc


def _heading_for(section: Section, path: list[str]) -> str:
  if section.heading:
    return section.heading
  for crumb in reversed(path):
    if crumb:
      return crumb
  return INTRODUCTION if section.level == 0 else FALLBACK_HEADING


def split_paragraphs(text: str) -> list[str]:
  # paragraphs keep their own indentation; only blank separators are dropped
  return [p for p in _PARAGRAPH_BREAK_RE.split(text) if p.strip()]


def _split_oversized(content: str, path: list[str], heading: str, acc: ChunkAccumulator) -> ChunkAccumulator:
  """
  Greedy paragraph packing up to TARGET_TOKENS.

  Content without blank-line breaks comes out as a single chunk above
  MAX_TOKENS; paragraphs are never cut.
  """
  buf: list[str] = []

  for para in split_paragraphs(content):
    if buf and estimate_tokens(PARAGRAPH_SEP.join(buf + [para])) > TARGET_TOKENS:
      acc.emit(path, heading, PARAGRAPH_SEP.join(buf))
      buf = []
    buf.append(para)

  if buf:
    rest = PARAGRAPH_SEP.join(buf)
    if estimate_tokens(rest) >= MIN_TOKENS:
      acc.emit(path, heading, rest)
    else:
      acc.merge_or_emit(path, heading, rest)
  return acc


def chunk_document(
  doc: DocumentRef,
  blocks: Sequence[Block],
  new_id: Callable[[], str] = _new_uuid,
) -> tuple[list[Chunk], DocMetadata]:
  """Segment one page: blocks -> section forest -> chunks -> metadata."""
  chunks = chunk_sections(doc, extract_sections(blocks), new_id=new_id)
  return chunks, build_metadata(doc, chunks)
