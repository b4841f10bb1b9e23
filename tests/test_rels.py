import pytest

from pptxcharts.rels import Relationship, parse, resolve_target


def test_parse_rels_internal():
    xml = """<?xml version="1.0" encoding="UTF-8"?>
<Relationships xmlns="http://schemas.openxmlformats.org/package/2006/relationships">
  <Relationship Id="rId1" Type="http://schemas.openxmlformats.org/officeDocument/2006/relationships/chart" Target="../charts/chart1.xml"/>
</Relationships>"""
    rels = parse(xml)
    rel = rels.resolve("rId1")
    assert rel is not None
    assert rel.target == "../charts/chart1.xml"
    assert rel.type.endswith("/chart")


def test_parse_rels_external():
    xml = """<?xml version="1.0" encoding="UTF-8"?>
<Relationships xmlns="http://schemas.openxmlformats.org/package/2006/relationships">
  <Relationship Id="rId2" Type="http://schemas.openxmlformats.org/officeDocument/2006/relationships/package" Target="https://example.com/book.xlsx" TargetMode="External"/>
</Relationships>"""
    rels = parse(xml.encode("utf-8"))
    rel = rels.resolve("rId2")
    assert rel is not None
    assert rel.target_mode == "External"


def test_resolve_target():
    assert resolve_target("ppt/slides/slide1.xml", "../charts/chart1.xml") == "ppt/charts/chart1.xml"


def test_resolve_target_empty_and_leading_slash():
    assert resolve_target("ppt/slides/slide1.xml", "") == ""
    assert resolve_target("ppt/charts/chart1.xml", "/media/x.png") == "ppt/charts/media/x.png"


def test_resolve_target_relative_sibling():
    assert resolve_target("ppt/charts/chart1.xml", "../embeddings/book.xlsx") == "ppt/embeddings/book.xlsx"


def test_attribute_names_case_insensitive_and_missing_id_skipped():
    xml = (
        "<Relationships>"
        '<Relationship id="a" type="t" target="x.xml" targetmode="External"/>'
        '<Relationship Type="t" Target="y.xml"/>'
        "</Relationships>"
    )
    rels = parse(xml)
    assert rels.by_id == {"a": Relationship(id="a", type="t", target="x.xml", target_mode="External")}


def test_resolve_unknown_returns_none():
    assert parse("<Relationships/>").resolve("rId9") is None


def test_malformed_raises():
    with pytest.raises(ValueError, match="parse rels"):
        parse("<Relationships><Relationship")