"""Shared fixtures for docindexer tests."""

import itertools

import pytest

from docindexer.chunking import Chunk, DocumentRef
from docindexer.storage import Storage

_FILLER = "lorem ipsum dolor sit amet "


def make_text(chars: int, filler: str = _FILLER) -> str:
  """Text of exactly `chars` characters with no blank lines."""
  s = (filler * (chars // len(filler) + 1))[:chars]
  if s.endswith(" "):
    s = s[:-1] + "x"
  return s


@pytest.fixture
def text():
  return make_text


@pytest.fixture
def doc():
  return DocumentRef(doc_id="doc_1", title="SDK Guide", url="https://docs.example.com/sdk/guide", type="guide")


@pytest.fixture
def ids():
  counter = itertools.count()
  return lambda: f"chunk-{next(counter)}"


@pytest.fixture
def chunk():
  def _make(
    heading: str = "Heading",
    content: str = "content",
    section_path: list[str] | None = None,
    chunk_index: int = 0,
    doc_id: str = "doc_1",
  ) -> Chunk:
    return Chunk(
      id=f"{doc_id}-{chunk_index}",
      doc_id=doc_id,
      doc_title="SDK Guide",
      doc_url=f"https://docs.example.com/{doc_id}",
      section_path=[heading] if section_path is None else section_path,
      heading=heading,
      content=content,
      token_count=-(-len(content) // 4),
      chunk_index=chunk_index,
    )

  return _make


@pytest.fixture
def storage(tmp_path):
  return Storage(tmp_path / "index.db")
