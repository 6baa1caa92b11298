from __future__ import annotations

import logging
import re
from typing import Optional

import trafilatura
from bs4 import BeautifulSoup, Comment, Doctype, NavigableString, Tag

from .chunking import split_paragraphs
from .sections import CONTENT, HEADER, Block

log = logging.getLogger(__name__)

_HEADING_LEVEL: dict[str, int] = {"h1": 1, "h2": 2, "h3": 3, "h4": 4, "h5": 5, "h6": 6}
_NOISE_TAGS = {"script", "style", "noscript", "nav", "footer", "svg", "button", "template"}
_TEXT_TAGS = {"p", "li", "blockquote", "dt", "dd", "figcaption", "summary"}
_BLOCK_TAGS = {
  "div", "section", "article", "main", "header", "aside", "details", "figure",
  "ul", "ol", "dl", "form", "fieldset", "pre", "table", "hr",
} | _TEXT_TAGS | set(_HEADING_LEVEL)

# Docusaurus-style anchors leave zero-width spaces and a trailing "#" in headings.
_ZERO_WIDTH_RE = re.compile("[\u200b\u200c\u200d\ufeff]")
_WS_RE = re.compile(r"\s+")
_LANG_RE = re.compile(r"^(?:language|lang)-(.+)$")

_CONTENT_ROOTS = ("article", "main", ".content")
UNTITLED = "Untitled"


def _clean(text: str) -> str:
  return _WS_RE.sub(" ", _ZERO_WIDTH_RE.sub("", text)).strip()


def _heading_text(el: Tag) -> str:
  text = _clean(el.get_text(" ", strip=True))
  return text.rstrip("#").rstrip()


def _content_root(soup: BeautifulSoup) -> Tag:
  for selector in _CONTENT_ROOTS:
    el = soup.select_one(selector)
    if el is not None and el.get_text(strip=True):
      return el
  return soup.body or soup


def _code_language(el: Tag) -> str:
  for candidate in (el.find("code"), el):
    if not isinstance(candidate, Tag):
      continue
    for cls in candidate.get("class") or []:
      m = _LANG_RE.match(cls)
      if m:
        return m.group(1)
  return ""


def _fence(pre: Tag) -> str:
  code = pre.find("code") or pre
  body = _ZERO_WIDTH_RE.sub("", code.get_text()).strip("\n")
  if not body.strip():
    return ""
  return f"```{_code_language(pre)}\n{body}\n```"


def _table_rows(table: Tag) -> str:
  rows: list[str] = []
  for tr in table.find_all("tr"):
    cells = [_clean(c.get_text(" ", strip=True)) for c in tr.find_all(["th", "td"])]
    if any(cells):
      rows.append("| " + " | ".join(cells) + " |")
  return "\n".join(rows)


def _has_block_child(el: Tag) -> bool:
  return el.find(lambda t: isinstance(t, Tag) and t.name in _BLOCK_TAGS) is not None


def _walk(el: Tag, blocks: list[Block]) -> None:
  """
  Flatten el into header/content blocks in document order.

  Runs of inline text between block elements are gathered into a single
  content block.
  """
  inline: list[str] = []

  def flush() -> None:
    text = _clean(" ".join(inline))
    inline.clear()
    if text:
      blocks.append(Block.content(text))

  for child in el.children:
    if isinstance(child, (Comment, Doctype)):
      continue
    if isinstance(child, NavigableString):
      inline.append(str(child))
      continue
    if not isinstance(child, Tag):
      continue

    name = child.name
    if name in _NOISE_TAGS:
      continue
    if name not in _BLOCK_TAGS:
      inline.append(child.get_text(" "))
      continue

    flush()
    if name in _HEADING_LEVEL:
      text = _heading_text(child)
      if text:
        blocks.append(Block.header(_HEADING_LEVEL[name], text))
    elif name == "pre":
      fenced = _fence(child)
      if fenced:
        blocks.append(Block.content(fenced))
    elif name == "table":
      rows = _table_rows(child)
      if rows:
        blocks.append(Block.content(rows))
    elif name in _TEXT_TAGS and not _has_block_child(child):
      text = _clean(child.get_text(" ", strip=True))
      if text:
        blocks.append(Block.content(text))
    else:
      _walk(child, blocks)

  flush()


def page_title(html: str, soup: Optional[BeautifulSoup] = None) -> str:
  if soup is None:
    soup = BeautifulSoup(html, "html.parser")

  h1 = soup.find("h1")
  if h1 is not None and _heading_text(h1):
    return _heading_text(h1)

  meta = trafilatura.extract_metadata(html)
  if meta is not None and meta.title:
    return meta.title.strip()

  if soup.title is not None and soup.title.get_text(strip=True):
    return _clean(soup.title.get_text())

  h2 = soup.find("h2")
  if h2 is not None and _heading_text(h2):
    return _heading_text(h2)
  return UNTITLED


def _fallback_blocks(html: str) -> list[Block]:
  extracted = trafilatura.extract(html, include_comments=False, include_tables=True)
  return [Block.content(p.strip()) for p in split_paragraphs(extracted or "")]


def html_to_blocks(html: str, soup: Optional[BeautifulSoup] = None) -> list[Block]:
  if soup is None:
    soup = BeautifulSoup(html, "html.parser")
  blocks: list[Block] = []
  _walk(_content_root(soup), blocks)

  if not any(b.kind == CONTENT for b in blocks):
    fallback = _fallback_blocks(html)
    if fallback:
      log.debug("DOM walk found no content, using trafilatura text (%d blocks)", len(fallback))
      return [b for b in blocks if b.kind == HEADER][:1] + fallback
  return blocks


def extract_page(html: str) -> tuple[str, list[Block]]:
  """Return (title, blocks) for a rendered page."""
  soup = BeautifulSoup(html, "html.parser")
  return page_title(html, soup), html_to_blocks(html, soup)
