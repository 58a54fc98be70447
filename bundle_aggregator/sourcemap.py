"""
Source Map Model
================

Structured, decoded representation of a revision 3 source map.

A map is held as one list of segments per generated line, so that maps
can be clipped, shifted and joined line by line instead of by splicing
encoded ``mappings`` strings.

CONVENTIONS:
============
- Generated and original lines are 1-based at the API surface
- Columns are 0-based and counted in UTF-16 code units
- Index maps (``sections``) are flattened when parsed
- ``sourceRoot`` is folded into every source name when parsed
"""

from __future__ import annotations
from bisect import bisect_right
from dataclasses import dataclass, field, replace
from typing import Dict, Iterable, List, Optional, Sequence, Tuple
import json

from . import vlq


SOURCE_MAP_VERSION = 3

# Some servers prefix JSON with this line to defeat XSSI.
_XSSI_PREFIX = ")]}'"


class SourceMapError(ValueError):
    """Raised when a document is not a usable revision 3 source map."""


def utf16_width(text: str) -> int:
    """Length of ``text`` in UTF-16 code units (the unit of map columns)."""
    return len(text.encode("utf-16-le", "surrogatepass")) // 2


# =============================================================================
# SEGMENTS
# =============================================================================

@dataclass(frozen=True)
class Mapping:
    """
    One segment of a generated line.

    A segment without ``source`` marks the start of unmapped generated
    code. ``original_line`` is 1-based.
    """
    generated_column: int
    source: Optional[str] = None
    original_line: Optional[int] = None
    original_column: Optional[int] = None
    name: Optional[str] = None

    @property
    def is_mapped(self) -> bool:
        return self.source is not None

    def shifted(self, columns: int) -> Mapping:
        if not columns:
            return self
        return replace(self, generated_column=self.generated_column + columns)


@dataclass(frozen=True)
class OriginalPosition:
    """Result of a generated-position lookup."""
    source: str
    line: int
    column: int
    name: Optional[str] = None


# =============================================================================
# SOURCE MAP
# =============================================================================

@dataclass
class SourceMap:
    """
    Decoded source map.

    ``lines[i]`` holds the segments of generated line ``i + 1``, sorted
    by generated column.
    """
    lines: List[List[Mapping]] = field(default_factory=list)
    sources: List[str] = field(default_factory=list)
    names: List[str] = field(default_factory=list)
    sources_content: Dict[str, Optional[str]] = field(default_factory=dict)
    file: Optional[str] = None

    # -------------------------------------------------------------------------
    # Parsing
    # -------------------------------------------------------------------------

    @classmethod
    def from_json(cls, text: str) -> SourceMap:
        """Parse the textual JSON form of a source map."""
        if text.startswith(_XSSI_PREFIX):
            text = text.split("\n", 1)[1] if "\n" in text else ""

        try:
            data = json.loads(text)
        except ValueError as e:
            raise SourceMapError(f"Source map is not valid JSON: {e}") from e

        return cls.from_dict(data)

    @classmethod
    def from_dict(cls, data: object) -> SourceMap:
        """Build from an already-decoded JSON object."""
        if not isinstance(data, dict):
            raise SourceMapError("Source map must be a JSON object")

        if data.get("version") != SOURCE_MAP_VERSION:
            raise SourceMapError(f"Unsupported source map version: {data.get('version')!r}")

        if "sections" in data:
            return cls._from_sections(data)

        source_root = _optional_str(data, "sourceRoot") or ""
        sources = [
            _apply_source_root(source_root, source)
            for source in _str_list(data, "sources")
        ]
        names = _str_list(data, "names")

        mappings = data.get("mappings")
        if not isinstance(mappings, str):
            raise SourceMapError("Source map 'mappings' must be a string")

        contents = data.get("sourcesContent") or []
        if not isinstance(contents, list):
            raise SourceMapError("Source map 'sourcesContent' must be a list")

        sources_content: Dict[str, Optional[str]] = {}
        for source, content in zip(sources, contents):
            if content is not None and not isinstance(content, str):
                raise SourceMapError("Source map 'sourcesContent' entries must be strings or null")
            sources_content.setdefault(source, content)

        return cls(
            lines=_decode_mappings(mappings, sources, names),
            sources=_unique(sources),
            names=_unique(names),
            sources_content=sources_content,
            file=_optional_str(data, "file"),
        )

    @classmethod
    def _from_sections(cls, data: dict) -> SourceMap:
        sections = data.get("sections")
        if not isinstance(sections, list):
            raise SourceMapError("Index map 'sections' must be a list")

        parts = []
        for section in sections:
            if not isinstance(section, dict):
                raise SourceMapError("Index map section must be an object")
            if "url" in section:
                raise SourceMapError("Index map sections referencing a 'url' are not supported")

            offset = section.get("offset")
            if not isinstance(offset, dict):
                raise SourceMapError("Index map section is missing its 'offset'")
            line = offset.get("line")
            column = offset.get("column")
            if not isinstance(line, int) or not isinstance(column, int) or line < 0 or column < 0:
                raise SourceMapError(f"Invalid index map section offset: {offset!r}")

            parts.append((cls.from_dict(section.get("map")), line, column))

        joined = join_maps(parts)
        joined.file = _optional_str(data, "file")
        return joined

    # -------------------------------------------------------------------------
    # Queries
    # -------------------------------------------------------------------------

    @property
    def line_count(self) -> int:
        return len(self.lines)

    def original_position_for(self, line: int, column: int) -> Optional[OriginalPosition]:
        """
        Look up the original position of a generated position.

        Uses the closest segment at or before ``column`` on the same
        generated line. Returns None when that segment is unmapped or
        no segment precedes the column.
        """
        if line < 1 or line > len(self.lines):
            return None

        segments = self.lines[line - 1]
        index = bisect_right([m.generated_column for m in segments], column) - 1
        if index < 0:
            return None

        mapping = segments[index]
        if not mapping.is_mapped:
            return None

        return OriginalPosition(
            source=mapping.source,
            line=mapping.original_line,
            column=mapping.original_column,
            name=mapping.name,
        )

    def iter_mappings(self) -> Iterable[Tuple[int, Mapping]]:
        """Yield ``(generated_line, mapping)`` pairs in generated order."""
        for index, segments in enumerate(self.lines):
            for mapping in segments:
                yield index + 1, mapping

    # -------------------------------------------------------------------------
    # Reshaping
    # -------------------------------------------------------------------------

    def select_lines(self, line_origins: Sequence[Tuple[Optional[int], int]]) -> SourceMap:
        """
        Build a map over a reshaped generated text.

        ``line_origins[j]`` describes output line ``j`` as
        ``(input_line_index, width)``: segments are taken from the 0-based
        input line and kept only below ``width`` columns. An origin of
        None yields an empty line.
        """
        lines = []
        for origin, width in line_origins:
            if origin is None or origin >= len(self.lines):
                lines.append([])
                continue
            lines.append([m for m in self.lines[origin] if m.generated_column < width])

        return SourceMap(
            lines=lines,
            sources=list(self.sources),
            names=list(self.names),
            sources_content=dict(self.sources_content),
            file=self.file,
        )

    # -------------------------------------------------------------------------
    # Serialization
    # -------------------------------------------------------------------------

    def encode_mappings(self) -> str:
        """Encode the segments into a fresh ``mappings`` string."""
        source_indexes = _index_of(self.sources)
        name_indexes = _index_of(self.names)

        previous_source = 0
        previous_original_line = 0
        previous_original_column = 0
        previous_name = 0

        encoded_lines = []
        for segments in self.lines:
            previous_column = 0
            encoded = []
            for mapping in segments:
                fields = [mapping.generated_column - previous_column]
                previous_column = mapping.generated_column

                if mapping.is_mapped:
                    source_index = source_indexes[mapping.source]
                    original_line = mapping.original_line - 1
                    fields.append(source_index - previous_source)
                    fields.append(original_line - previous_original_line)
                    fields.append(mapping.original_column - previous_original_column)
                    previous_source = source_index
                    previous_original_line = original_line
                    previous_original_column = mapping.original_column

                    if mapping.name is not None:
                        name_index = name_indexes[mapping.name]
                        fields.append(name_index - previous_name)
                        previous_name = name_index

                encoded.append(vlq.encode_segment(fields))
            encoded_lines.append(",".join(encoded))

        return ";".join(encoded_lines).rstrip(";")

    def to_dict(self) -> dict:
        document = {
            "version": SOURCE_MAP_VERSION,
            "sources": list(self.sources),
            "names": list(self.names),
            "mappings": self.encode_mappings(),
        }
        if self.file is not None:
            document["file"] = self.file
        if any(content is not None for content in self.sources_content.values()):
            document["sourcesContent"] = [self.sources_content.get(s) for s in self.sources]
        return document

    def to_json(self) -> str:
        return json.dumps(self.to_dict(), separators=(",", ":"), ensure_ascii=False)


# =============================================================================
# JOINING
# =============================================================================

def join_maps(parts: Sequence[Tuple[SourceMap, int, int]]) -> SourceMap:
    """
    Place several maps into one generated-position space.

    Each part is ``(source_map, line_offset, column_offset)`` with 0-based
    offsets. The column offset applies to the part's first line only.
    A part overrides whatever earlier parts mapped at or after its start
    position. Where a part starts mid-line after mapped code and does not
    map its own first column, an unmapped segment is inserted so the
    earlier mapping does not run into the part.
    """
    lines: List[List[Mapping]] = []
    sources: List[str] = []
    names: List[str] = []
    sources_content: Dict[str, Optional[str]] = {}

    for source_map, line_offset, column_offset in parts:
        while len(lines) <= line_offset:
            lines.append([])

        for index, segments in enumerate(source_map.lines):
            target_index = line_offset + index
            while len(lines) <= target_index:
                lines.append([])

            if index == 0:
                kept = [m for m in lines[target_index] if m.generated_column < column_offset]
                starts_mapped = bool(segments) and segments[0].generated_column == 0
                if kept and kept[-1].is_mapped and not starts_mapped:
                    kept.append(Mapping(column_offset))
                lines[target_index] = kept + [m.shifted(column_offset) for m in segments]
            else:
                lines[target_index] = list(segments)

        for source in source_map.sources:
            if source not in sources_content or sources_content[source] is None:
                sources_content[source] = source_map.sources_content.get(source)
        sources.extend(source_map.sources)
        names.extend(source_map.names)

    return SourceMap(
        lines=lines,
        sources=_unique(sources),
        names=_unique(names),
        sources_content=sources_content,
    )


# =============================================================================
# HELPERS
# =============================================================================

def _decode_mappings(mappings: str, sources: List[str], names: List[str]) -> List[List[Mapping]]:
    lines = []

    source_index = 0
    original_line = 0
    original_column = 0
    name_index = 0

    for line_text in mappings.split(";"):
        generated_column = 0
        segments = []

        for segment_text in line_text.split(","):
            if not segment_text:
                continue

            try:
                fields = vlq.decode_segment(segment_text)
            except vlq.VLQDecodeError as e:
                raise SourceMapError(str(e)) from e

            if len(fields) not in (1, 4, 5):
                raise SourceMapError(f"Segment {segment_text!r} has {len(fields)} fields")

            generated_column += fields[0]
            if generated_column < 0:
                raise SourceMapError(f"Negative generated column in segment {segment_text!r}")

            if len(fields) == 1:
                segments.append(Mapping(generated_column))
                continue

            source_index += fields[1]
            original_line += fields[2]
            original_column += fields[3]

            if not 0 <= source_index < len(sources):
                raise SourceMapError(f"Source index {source_index} out of range")
            if original_line < 0 or original_column < 0:
                raise SourceMapError(f"Negative original position in segment {segment_text!r}")

            name = None
            if len(fields) == 5:
                name_index += fields[4]
                if not 0 <= name_index < len(names):
                    raise SourceMapError(f"Name index {name_index} out of range")
                name = names[name_index]

            segments.append(Mapping(
                generated_column=generated_column,
                source=sources[source_index],
                original_line=original_line + 1,
                original_column=original_column,
                name=name,
            ))

        segments.sort(key=lambda m: m.generated_column)
        lines.append(segments)

    return lines


def _str_list(data: dict, key: str) -> List[str]:
    values = data.get(key, [])
    if not isinstance(values, list):
        raise SourceMapError(f"Source map {key!r} must be a list")

    result = []
    for value in values:
        if value is None:
            value = ""
        if not isinstance(value, str):
            raise SourceMapError(f"Source map {key!r} entries must be strings")
        result.append(value)
    return result


def _optional_str(data: dict, key: str) -> Optional[str]:
    value = data.get(key)
    if value is not None and not isinstance(value, str):
        raise SourceMapError(f"Source map {key!r} must be a string")
    return value


def _apply_source_root(root: str, source: str) -> str:
    if not root or source.startswith("/") or "://" in source or source.startswith("data:"):
        return source
    return root.rstrip("/") + "/" + source


def _unique(values: Iterable[str]) -> List[str]:
    return list(dict.fromkeys(values))


def _index_of(values: List[str]) -> Dict[str, int]:
    indexes: Dict[str, int] = {}
    for index, value in enumerate(values):
        indexes.setdefault(value, index)
    return indexes
