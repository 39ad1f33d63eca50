"""Semantic type aliases for compile-time type safety.

NewType creates distinct types that mypy treats as incompatible,
preventing accidental misuse of semantically different string values.
"""

from collections.abc import Callable
from typing import NewType

NodeID = NewType("NodeID", str)
"""Unique node identifier within one channel graph (e.g., 'node-3f2a9c')"""

EdgeID = NewType("EdgeID", str)
"""Unique edge identifier within one channel graph (e.g., 'edge-81b0d4')"""

IdFactory = Callable[[str], str]
"""Produces a fresh identifier for the given prefix ('node' or 'edge').

Injected into GraphStore so tests can use deterministic ids.
"""

CONFIG_HANDLE_PREFIX = "config-"
"""Target handles starting with this prefix mark configuration edges."""
