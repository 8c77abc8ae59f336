import io

import pytest

import keyfile_parser
from keyfile_errors import (DuplicateElementIdError, InvalidInputPathError,
                            MalformedCardError, UnreadableFileError)
from keyfile_parser import KeyfileParser
from mesh_database import Element, Node


SAMPLE_KEYFILE = """\
*KEYWORD
$ Two hex elements sharing a face, plus a shell on top
*TITLE
sample model * rev 2
*NODE
$#   nid               x               y               z      tc      rc
       1             0.0             0.0             0.0       0       0
       2             1.0             0.0             0.0       0       0
       3             1.0             1.0             0.0       0       0
       4             0.0             1.0             0.0       0       0
       5             0.0             0.0             1.0       0       0
       6             1.0             0.0             1.0       0       0
       7             1.0             1.0             1.0       0       0
       8             0.0             1.0             1.0       0       0
*PART
$# title
Steel Block
$#     pid     secid       mid
         1         1         1
*PART_INERTIA
Top Skin
         2         2         2
       0.0       0.0       0.0       1.0
*ELEMENT_SOLID
$#   eid     pid      n1      n2      n3      n4      n5      n6      n7      n8
      11       1       1       2       3       4       5       6       7       8
*ELEMENT_SHELL
      21       2       5       6       7       8       0       0       0       0
*END
"""


def test_single_node_card():
    parser = KeyfileParser()
    parser.parse_text("*NODE\n1,0.0,0.0,1.5\n")
    db = parser.database
    assert db.nodes == [Node(1, 0.0, 0.0, 1.5)]


def test_single_shell_element_card():
    parser = KeyfileParser()
    parser.parse_text("*ELEMENT_SHELL\n10,5,1,2,3,4,0,0,0,0\n")
    db = parser.database
    assert db.elements == [Element(10, 5, (1, 2, 3, 4, 0, 0, 0, 0))]


def test_sample_keyfile():
    parser = KeyfileParser()
    summary = parser.parse_text(SAMPLE_KEYFILE, source="sample.k")
    db = parser.database

    assert db.node_count == 8
    assert db.element_count == 2
    assert db.lookup_node(7) == Node(7, 1.0, 1.0, 1.0)
    assert db.lookup_element(11).nodes == (1, 2, 3, 4, 5, 6, 7, 8)
    assert db.lookup_element(21) == Element(21, 2, (5, 6, 7, 8, 0, 0, 0, 0))
    assert db.part_names == {1: "Steel Block", 2: "Top Skin"}

    assert summary.source == "sample.k"
    assert summary.nodes_added == 8
    assert summary.elements_added == 2
    assert summary.parts_added == {1: "Steel Block", 2: "Top Skin"}
    assert summary.total_nodes == 8
    assert summary.total_elements == 2
    assert summary.tokens > 0
    assert parser.summaries == [summary]


def test_keywords_are_case_insensitive():
    parser = KeyfileParser()
    parser.parse_text("*node\n1 0 0 0\n*Element_Beam\n1 3 1 0 0 0 0 0 0 0\n")
    assert parser.database.node_count == 1
    assert parser.database.lookup_element(1).part_id == 3


def test_part_name_is_kept_verbatim():
    parser = KeyfileParser()
    parser.parse_text("*PART\n  steel plate,  rev 2\n$ ids follow\n  5  1  1\n")
    assert parser.database.part_names == {5: "steel plate,  rev 2"}


def test_unrecognized_sections_are_skipped():
    text = ("*SECTION_SOLID\n 1 2 3\n*MAT_RIGID\n 1 7.8e-9 210000.0 0.3\n"
            "*NODE\n1 1.0 2.0 3.0\n*DEFINE_CURVE\n 1 0.0 0.0\n")
    parser = KeyfileParser()
    parser.parse_text(text)
    assert parser.database.nodes == [Node(1, 1.0, 2.0, 3.0)]


def test_comments_inside_a_section():
    parser = KeyfileParser()
    parser.parse_text("*NODE\n$ a\n1,0,0,0\n$ b\n$ c\n2,1,0,0\n")
    assert [n.id for n in parser.database.nodes] == [1, 2]


def test_separator_variants():
    parser = KeyfileParser()
    parser.parse_text("*NODE\n1, 0.5 ,1.5\t,2.5\n2 3.0\t4.0  5.0\n")
    assert parser.database.nodes == [Node(1, 0.5, 1.5, 2.5), Node(2, 3.0, 4.0, 5.0)]


def test_unexpected_token_ends_section():
    parser = KeyfileParser()
    parser.parse_text("*NODE\n1 0 0 0\nnot-a-node\n2 0 0 0\n")
    assert [n.id for n in parser.database.nodes] == [1]


def test_node_with_run_on_number_is_malformed():
    parser = KeyfileParser()
    with pytest.raises(MalformedCardError) as excinfo:
        parser.parse_text("*NODE\n1,0.0,0.0,1.5\n2,0.0,0.01.5\n")
    assert excinfo.value.line_num == 3
    assert excinfo.value.source == "<string>"
    assert "Line 3" in str(excinfo.value)
    assert [n.id for n in parser.database.nodes] == [1]


def test_node_missing_coordinate_is_malformed():
    parser = KeyfileParser()
    with pytest.raises(MalformedCardError) as excinfo:
        parser.parse_text("$ header\n*NODE\n1,0.0,0.0\n")
    assert excinfo.value.line_num == 3
    assert parser.database.node_count == 0


def test_empty_field_is_malformed():
    parser = KeyfileParser()
    with pytest.raises(MalformedCardError):
        parser.parse_text("*NODE\n1,,0.0,0.0,0.0\n")


def test_non_integer_id_is_malformed():
    parser = KeyfileParser()
    with pytest.raises(MalformedCardError) as excinfo:
        parser.parse_text("*NODE\n1.5,0.0,0.0,0.0\n")
    assert excinfo.value.line_num == 2


def test_short_element_is_malformed():
    parser = KeyfileParser()
    with pytest.raises(MalformedCardError) as excinfo:
        parser.parse_text("*ELEMENT_SHELL\n1 1 1 2 3 4\n")
    assert excinfo.value.line_num == 2
    assert parser.database.element_count == 0


def test_part_without_id_is_malformed():
    parser = KeyfileParser()
    with pytest.raises(MalformedCardError):
        parser.parse_text("*PART\nlonely name\n")


def test_duplicate_element_in_one_file():
    parser = KeyfileParser()
    text = "*ELEMENT_SOLID\n1 1 1 2 3 4 5 6 7 8\n1 1 1 2 3 4 5 6 7 8\n"
    with pytest.raises(DuplicateElementIdError) as excinfo:
        parser.parse_text(text, source="a.k")
    assert excinfo.value.element_id == 1
    assert excinfo.value.line_num == 3
    assert excinfo.value.source == "a.k"


def test_duplicate_element_across_files():
    parser = KeyfileParser()
    parser.parse_text("*ELEMENT_SOLID\n7 1 1 2 3 4 5 6 7 8\n", source="a.k")
    with pytest.raises(DuplicateElementIdError) as excinfo:
        parser.parse_text("*PART\nother\n2\n*ELEMENT_SOLID\n7 2 1 2 3 4 5 6 7 8\n",
                          source="b.k")
    assert excinfo.value.line_num == 5
    assert excinfo.value.source == "b.k"


def test_section_state_resets_between_files():
    parser = KeyfileParser()
    parser.parse_text("*NODE\n1 0 0 0\n")
    summary = parser.parse_text("2 0 0 0\n")
    assert summary.nodes_added == 0
    assert summary.total_nodes == 1


def test_parse_files_appends(tmp_path):
    first = tmp_path / "nodes.k"
    first.write_text("*NODE\n1 0 0 0\n2 1 0 0\n")
    second = tmp_path / "elements.k"
    second.write_text("*ELEMENT_BEAM\n1 4 1 2 0 0 0 0 0 0\n")

    parser = KeyfileParser()
    summaries = parser.parse_files([first, second])

    assert [s.source for s in summaries] == [str(first), str(second)]
    assert summaries[1].total_nodes == 2
    assert parser.database.lookup_element(1).nodes == (1, 2, 0, 0, 0, 0, 0, 0)


def test_missing_file(tmp_path):
    with pytest.raises(InvalidInputPathError):
        KeyfileParser().parse_file(tmp_path / "nope.k")


def test_directory_is_not_a_keyfile(tmp_path):
    with pytest.raises(InvalidInputPathError):
        KeyfileParser().parse_file(tmp_path)


def test_unreadable_file(tmp_path, monkeypatch):
    path = tmp_path / "locked.k"
    path.write_text("*NODE\n")

    def refuse(*args, **kwargs):
        raise PermissionError("denied")

    monkeypatch.setattr(keyfile_parser, "open", refuse, raising=False)
    with pytest.raises(UnreadableFileError):
        KeyfileParser().parse_file(path)


def test_parse_stream():
    parser = KeyfileParser()
    summary = parser.parse_stream(io.BytesIO(b"*NODE\n1 0 0 0\n"), source="bytes")
    assert summary.source == "bytes"
    parser.parse_stream(io.StringIO("*NODE\n2 0 0 0\n"))
    assert parser.database.node_count == 2
    assert parser.summaries[-1].source == "<stream>"
