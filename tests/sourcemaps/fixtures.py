"""
Source Map Fixtures

Explicit runtime/application bundle pairs with hand-checked maps.
"""

from typing import List, Sequence, Tuple

from bundle_aggregator.sourcemap import Mapping, SourceMap


Segment = Tuple  # (column,) or (column, source, line, column[, name])


def build_map(lines: Sequence[Sequence[Segment]], sources_content=None) -> SourceMap:
    """Build a SourceMap from per-line segment tuples."""
    sources: List[str] = []
    names: List[str] = []
    decoded = []

    for segments in lines:
        row = []
        for segment in segments:
            mapping = Mapping(*segment)
            if mapping.source is not None and mapping.source not in sources:
                sources.append(mapping.source)
            if mapping.name is not None and mapping.name not in names:
                names.append(mapping.name)
            row.append(mapping)
        decoded.append(row)

    return SourceMap(
        lines=decoded,
        sources=sources,
        names=names,
        sources_content=dict(sources_content or {}),
    )


# =============================================================================
# RUNTIME BUNDLE (upstream A)
# =============================================================================

RUNTIME_CODE = (
    "var A=1;\n"
    "var a=A;\n"
    "//# sourceMappingURL=index.ios.map\n"
)

RUNTIME_MAP = build_map(
    [
        [(0, "runtime.js", 1, 0), (4, "runtime.js", 1, 4, "A")],
        [(0, "runtime.js", 2, 0), (4, "runtime.js", 2, 4, "a")],
    ],
    sources_content={"runtime.js": "var A = 1;\nvar a = A;\n"},
)


# =============================================================================
# APPLICATION BUNDLE (upstream B)
# =============================================================================

APPLICATION_CODE = (
    "var B=2;\n"
    "B++;\n"
    "//# sourceMappingURL=index.ios.js.map\n"
)

APPLICATION_MAP = build_map([
    [(0, "app.js", 1, 0), (4, "app.js", 1, 4, "B")],
    [(0, "app.js", 3, 2, "B"), (3,)],
])

# Runtime code spans 2 lines plus the empty line after its final break,
# so application line N lands on combined line N + 2.
APPLICATION_LINE_OFFSET = 2
