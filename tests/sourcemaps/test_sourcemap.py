"""
Source Map Model Tests

Parsing, lookup, serialization and index-map flattening.
"""

import json

import pytest

from bundle_aggregator.sourcemap import (
    Mapping,
    OriginalPosition,
    SourceMap,
    SourceMapError,
    join_maps,
    utf16_width,
)

from .fixtures import build_map


SIMPLE_MAP = {
    "version": 3,
    "sources": ["a.js"],
    "names": ["foo"],
    "mappings": "AAAA,IAAIA;AACA",
}


def _document(**overrides):
    document = dict(SIMPLE_MAP)
    document.update(overrides)
    return json.dumps(document)


# =============================================================================
# PARSING & LOOKUP
# =============================================================================

class TestParsing:

    def test_segments_decoded_per_line(self):
        source_map = SourceMap.from_json(_document())

        assert source_map.line_count == 2
        assert source_map.lines[0] == [
            Mapping(0, "a.js", 1, 0),
            Mapping(4, "a.js", 1, 4, "foo"),
        ]
        # original column carries over from the previous segment
        assert source_map.lines[1] == [Mapping(0, "a.js", 2, 4)]

    def test_lookup_uses_closest_preceding_segment(self):
        source_map = SourceMap.from_json(_document())

        assert source_map.original_position_for(1, 2) == OriginalPosition("a.js", 1, 0)
        assert source_map.original_position_for(1, 40) == OriginalPosition("a.js", 1, 4, "foo")
        assert source_map.original_position_for(2, 0) == OriginalPosition("a.js", 2, 4)

    def test_lookup_outside_mapped_lines(self):
        source_map = SourceMap.from_json(_document())

        assert source_map.original_position_for(3, 0) is None
        assert source_map.original_position_for(0, 0) is None

    def test_unmapped_segment_ends_mapping(self):
        source_map = SourceMap.from_json(_document(mappings="AAAA,EAAE,G"))

        assert source_map.original_position_for(1, 3) == OriginalPosition("a.js", 1, 2)
        assert source_map.original_position_for(1, 5) is None

    def test_source_root_applied(self):
        source_map = SourceMap.from_json(_document(sourceRoot="src/"))

        assert source_map.sources == ["src/a.js"]
        assert source_map.original_position_for(1, 0).source == "src/a.js"

    def test_xssi_prefix_skipped(self):
        source_map = SourceMap.from_json(")]}'\n" + _document())

        assert source_map.sources == ["a.js"]

    def test_sources_content_kept(self):
        source_map = SourceMap.from_json(_document(sourcesContent=["foo();"]))

        assert source_map.sources_content == {"a.js": "foo();"}


class TestMalformedMaps:
    """Every malformed document surfaces as SourceMapError."""

    @pytest.mark.parametrize("text", [
        "not json",
        "[]",
        _document(version=2),
        _document(mappings=5),
        _document(sources="a.js"),
        _document(mappings="A!AA"),
        _document(mappings="AA"),
        _document(mappings="ACAA"),
        _document(mappings="AAAAC"),
        _document(mappings="AADA"),
        _document(sourcesContent=[1]),
    ])
    def test_rejected(self, text):
        with pytest.raises(SourceMapError):
            SourceMap.from_json(text)


# =============================================================================
# SERIALIZATION
# =============================================================================

class TestSerialization:

    def test_encoding_matches_input(self):
        source_map = SourceMap.from_json(_document())

        assert source_map.encode_mappings() == "AAAA,IAAIA;AACA"

    def test_document_layout(self):
        source_map = SourceMap.from_json(_document(sourcesContent=["foo();"]))
        document = json.loads(source_map.to_json())

        assert list(document) == ["version", "sources", "names", "mappings", "sourcesContent"]
        assert document["sourcesContent"] == ["foo();"]

    def test_compact_output(self):
        assert " " not in SourceMap.from_json(_document()).to_json()

    def test_sources_content_omitted_when_absent(self):
        document = json.loads(SourceMap.from_json(_document()).to_json())

        assert "sourcesContent" not in document

    def test_trailing_empty_lines_not_encoded(self):
        source_map = build_map([[(0, "a.js", 1, 0)], [], []])

        assert source_map.encode_mappings() == "AAAA"


# =============================================================================
# JOINING & INDEX MAPS
# =============================================================================

class TestJoin:

    def test_second_part_shifted(self):
        first = build_map([[(0, "x.js", 1, 0)]])
        second = build_map([[(0, "y.js", 1, 0)], [(2, "y.js", 2, 0)]])

        joined = join_maps([(first, 0, 0), (second, 1, 3)])

        assert joined.original_position_for(1, 0).source == "x.js"
        assert joined.original_position_for(2, 3) == OriginalPosition("y.js", 1, 0)
        assert joined.original_position_for(3, 2) == OriginalPosition("y.js", 2, 0)

    def test_boundary_segment_stops_earlier_mapping(self):
        first = build_map([[(0, "x.js", 1, 0)]])
        second = build_map([[(2, "y.js", 1, 0)]])

        joined = join_maps([(first, 0, 0), (second, 0, 5)])

        assert joined.original_position_for(1, 4).source == "x.js"
        assert joined.original_position_for(1, 6) is None
        assert joined.original_position_for(1, 7).source == "y.js"

    def test_sources_and_names_deduplicated(self):
        first = build_map([[(0, "shared.js", 1, 0, "n")]])
        second = build_map([[(0, "shared.js", 9, 0, "n")]])

        joined = join_maps([(first, 0, 0), (second, 1, 0)])

        assert joined.sources == ["shared.js"]
        assert joined.names == ["n"]
        assert joined.original_position_for(2, 0).line == 9


class TestIndexMaps:

    def test_sections_flattened(self):
        document = {
            "version": 3,
            "file": "bundle.js",
            "sections": [
                {"offset": {"line": 0, "column": 0},
                 "map": {"version": 3, "sources": ["x.js"], "names": [], "mappings": "AAAA"}},
                {"offset": {"line": 2, "column": 5},
                 "map": {"version": 3, "sources": ["y.js"], "names": [], "mappings": "AAAA"}},
            ],
        }

        source_map = SourceMap.from_json(json.dumps(document))

        assert source_map.file == "bundle.js"
        assert source_map.original_position_for(1, 0).source == "x.js"
        assert source_map.original_position_for(3, 4) is None
        assert source_map.original_position_for(3, 5) == OriginalPosition("y.js", 1, 0)

    def test_url_sections_rejected(self):
        document = {
            "version": 3,
            "sections": [{"offset": {"line": 0, "column": 0}, "url": "other.map"}],
        }

        with pytest.raises(SourceMapError):
            SourceMap.from_json(json.dumps(document))


def test_utf16_width_counts_surrogate_pairs():
    assert utf16_width("ab") == 2
    assert utf16_width("\U0001F600") == 2
