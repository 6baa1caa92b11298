"""Tests for rebuilding the heading hierarchy."""

from docindexer.sections import Block, Section, extract_sections


def H(level, text):
  return Block.header(level, text)


def C(text):
  return Block.content(text)


class TestExtractSections:
  """Tests for extract_sections."""

  def test_empty_input(self):
    assert extract_sections([]) == []

  def test_content_before_first_header_becomes_introduction(self):
    sections = extract_sections([C("lead in"), H(1, "Title"), C("body")])

    assert sections == [
      Section(level=0, heading="Introduction", content="lead in"),
      Section(level=1, heading="Title", content="body"),
    ]

  def test_content_only_document(self):
    sections = extract_sections([C("one"), C("two")])

    assert len(sections) == 1
    assert sections[0].level == 0
    assert sections[0].heading == "Introduction"
    assert sections[0].content == "one\n\ntwo"

  def test_nested_hierarchy(self):
    blocks = [
      H(1, "A"), C("a"),
      H(2, "B"), C("b"),
      H(3, "C"), C("c"),
      H(2, "D"), C("d"),
      H(1, "E"), C("e"),
    ]
    sections = extract_sections(blocks)

    assert [s.heading for s in sections] == ["A", "E"]
    a = sections[0]
    assert a.content == "a"
    assert [s.heading for s in a.children] == ["B", "D"]
    assert a.children[0].content == "b"
    assert [s.heading for s in a.children[0].children] == ["C"]
    assert a.children[0].children[0].content == "c"
    assert a.children[1].content == "d"
    assert sections[1].content == "e"
    assert sections[1].children == []

  def test_content_is_section_local(self):
    sections = extract_sections([H(1, "Parent"), C("mine"), H(2, "Child"), C("theirs")])

    parent = sections[0]
    assert parent.content == "mine"
    assert parent.children[0].content == "theirs"

  def test_adjacent_same_level_headers_have_empty_content(self):
    sections = extract_sections([H(2, "First"), H(2, "Second"), C("text")])

    assert [(s.heading, s.content) for s in sections] == [("First", ""), ("Second", "text")]

  def test_skipped_levels_attach_to_nearest_open_ancestor(self):
    sections = extract_sections([H(1, "Top"), H(3, "Deep"), C("x"), H(2, "Mid"), C("y")])

    top = sections[0]
    assert [(s.level, s.heading) for s in top.children] == [(3, "Deep"), (2, "Mid")]
    assert top.children[1].content == "y"

  def test_lower_level_header_first_then_higher(self):
    sections = extract_sections([H(2, "Sub"), C("s"), H(1, "Main"), C("m")])

    assert [(s.level, s.heading) for s in sections] == [(2, "Sub"), (1, "Main")]

  def test_child_levels_strictly_greater_than_parent(self):
    blocks = [H(1, "a"), H(4, "b"), H(2, "c"), H(3, "d"), H(3, "e"), H(1, "f"), H(6, "g")]

    def check(nodes, parent_level):
      for n in nodes:
        assert n.level > parent_level
        check(n.children, n.level)

    check(extract_sections(blocks), 0)

  def test_paragraphs_joined_with_blank_line(self):
    sections = extract_sections([H(1, "T"), C("p1"), C("p2"), C("p3")])
    assert sections[0].content == "p1\n\np2\n\np3"
