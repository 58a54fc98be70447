"""
Server Test Package

Fetcher, router, lifecycle and configuration tests.

TEST AXIOMS:
=============
1. All-or-nothing: no response ever carries half a bundle
2. Upstream failures surface verbatim, never retried
3. Unmatched paths never reach an upstream
"""
