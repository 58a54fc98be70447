"""
Bundle Combiner
===============

Joins the runtime bundle and the application bundle into one script,
and their two source maps into one map describing that script.

GUARANTEES:
===========
1. Runtime code always precedes application code
2. Upstream sourceMappingURL comments never leak into the output
3. Both operations are pure: no I/O, no shared state
4. A lookup in either half of the combined map resolves exactly as in
   that half's own map
"""

from __future__ import annotations
from dataclasses import dataclass
from typing import List, Optional, Tuple
import re

from .errors import MapParseError
from .sourcemap import SourceMap, SourceMapError, join_maps, utf16_width


# A reference comment ending a line. Quotes in the URL part mean the
# text sits inside a string literal, so those lines are left alone. A
# CRLF line keeps its carriage return.
SOURCEMAP_REFERENCE = re.compile(r"//[#@] sourceMappingURL=[^\s'\"]*[ \t]*(?=\r?$)")

RUNTIME_SIDE = "runtime"
APPLICATION_SIDE = "application"


@dataclass(frozen=True)
class StrippedCode:
    """
    Code with its reference comments removed.

    ``line_origins[j]`` maps output line ``j`` back to
    ``(input_line_index, kept_width)``; the input index is None for the
    empty line that follows a trailing line break.
    """
    text: str
    line_origins: Tuple[Tuple[Optional[int], int], ...]

    @property
    def last_line_width(self) -> int:
        return utf16_width(self.text.rsplit("\n", 1)[-1])

    @property
    def line_count(self) -> int:
        return len(self.line_origins)


def strip_reference_comments(code: str) -> StrippedCode:
    """
    Remove every source map reference comment from ``code``.

    A line holding nothing but the comment is dropped with its line
    break. A comment trailing code on the same line is cut off, the code
    and line break stay.
    """
    pieces = code.split("\n")
    kept: List[Tuple[str, int, bool]] = []

    for index, content in enumerate(pieces):
        terminated = index < len(pieces) - 1
        match = SOURCEMAP_REFERENCE.search(content)
        if match:
            prefix = content[:match.start()]
            if not prefix.strip():
                continue
            content = prefix + content[match.end():]
        kept.append((content, index, terminated))

    text = "".join(content + ("\n" if terminated else "") for content, _, terminated in kept)

    origins: List[Tuple[Optional[int], int]] = [
        (index, utf16_width(content)) for content, index, _ in kept
    ]
    if not kept or kept[-1][2]:
        origins.append((None, 0))

    return StrippedCode(text=text, line_origins=tuple(origins))


class BundleCombiner:
    """
    Merges two (code, map) pairs into one logical bundle.

    Stateless; one instance can serve any number of concurrent requests.
    """

    def combine_code(self, code_a: str, code_b: str, map_endpoint_path: str) -> str:
        """
        Concatenate runtime and application code.

        Upstream reference comments are stripped from both inputs and a
        single comment pointing at ``map_endpoint_path`` is appended.
        """
        stripped_a = strip_reference_comments(code_a)
        stripped_b = strip_reference_comments(code_b)
        return stripped_a.text + stripped_b.text + "//# sourceMappingURL=" + map_endpoint_path

    def combine_map(
        self,
        code_a: str,
        map_a: str,
        code_b: str,
        map_b: str,
        map_url_a: Optional[str] = None,
        map_url_b: Optional[str] = None
    ) -> str:
        """
        Merge the two source maps into one serialized map.

        The map URLs only label parse failures.

        Raises:
            MapParseError: either map is not a valid source map; ``side``
            names the upstream whose map failed.
        """
        parsed_a = self._parse(map_a, RUNTIME_SIDE, map_url_a)
        parsed_b = self._parse(map_b, APPLICATION_SIDE, map_url_b)
        return self.merge(code_a, parsed_a, code_b, parsed_b).to_json()

    def merge(self, code_a: str, map_a: SourceMap, code_b: str, map_b: SourceMap) -> SourceMap:
        """Structural join of two parsed maps over the combined code."""
        stripped_a = strip_reference_comments(code_a)
        stripped_b = strip_reference_comments(code_b)

        clipped_a = map_a.select_lines(stripped_a.line_origins)
        clipped_b = map_b.select_lines(stripped_b.line_origins)

        # B starts on A's last line, right after its trailing partial line.
        return join_maps([
            (clipped_a, 0, 0),
            (clipped_b, stripped_a.line_count - 1, stripped_a.last_line_width),
        ])

    @staticmethod
    def _parse(document: str, side: str, url: Optional[str] = None) -> SourceMap:
        try:
            return SourceMap.from_json(document)
        except SourceMapError as e:
            raise MapParseError(side, str(e), url=url) from e
