from __future__ import annotations

from dataclasses import dataclass, field
from typing import Sequence

HEADER = "header"
CONTENT = "content"
INTRODUCTION = "Introduction"


@dataclass(frozen=True)
class Block:
  kind: str  # "header" | "content"
  text: str
  level: int | None = None  # 1..6 for headers

  @staticmethod
  def header(level: int, text: str) -> "Block":
    return Block(kind=HEADER, text=text, level=level)

  @staticmethod
  def content(text: str) -> "Block":
    return Block(kind=CONTENT, text=text)


@dataclass
class Section:
  level: int  # 0 = synthetic root
  heading: str
  content: str = ""
  children: list[Section] = field(default_factory=list)


def extract_sections(blocks: Sequence[Block]) -> list[Section]:
  """
  Rebuild the heading hierarchy of a page from its flat block stream.

  Content that appears before the first header becomes a level-0
  "Introduction" section at the front of the result.
  """
  intro, sections, _pos = _collect(blocks, 0, 0)
  if intro:
    sections.insert(0, Section(level=0, heading=INTRODUCTION, content=intro))
  return sections


def _collect(blocks: Sequence[Block], pos: int, parent_level: int) -> tuple[str, list[Section], int]:
  """
  Consume blocks from pos until a header at or above parent_level.

  Returns (own_content, children, next_pos). own_content is the text that
  precedes the first child header; once a child opens it swallows every
  following content block, so nothing after it belongs to this level.
  """
  buf: list[str] = []
  children: list[Section] = []

  while pos < len(blocks):
    block = blocks[pos]

    if block.kind == HEADER:
      level = int(block.level or 1)
      if level <= parent_level:
        break
      node = Section(level=level, heading=block.text)
      node.content, node.children, pos = _collect(blocks, pos + 1, level)
      children.append(node)
      continue

    if block.text:
      buf.append(block.text)
    pos += 1

  return "\n\n".join(buf), children, pos
