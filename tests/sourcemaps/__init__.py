"""
Source Map Test Package

Codec, source-map model and combiner tests.

TEST AXIOMS:
=============
1. Runtime code precedes application code, always
2. Each half of a combined map resolves exactly like its own map
3. Malformed maps fail loudly, naming the failing side
"""
