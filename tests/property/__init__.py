# tests/property/__init__.py
"""Property-based tests for channelflow.

Property-based testing validates invariants that must hold for ALL graphs,
not just the specific examples we think of.

Test categories:
- core/: Graph store integrity, connection rules, compilation, documents
"""
