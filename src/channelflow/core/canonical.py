# src/channelflow/core/canonical.py
"""
Canonical JSON serialization for deterministic hashing.

Two-phase approach:
1. Normalize: Convert tuples to arrays and reject non-finite floats
2. Serialize: Produce deterministic JSON per RFC 8785/JCS (rfc8785 package)

Compiled pipeline specs and channel graphs are hashed through this module, so
"did the channel change?" is a string comparison rather than a deep diff.

IMPORTANT: NaN and Infinity are strictly REJECTED, not silently converted.
A port of NaN is a malformed document, not a value worth hashing.
"""

from __future__ import annotations

import hashlib
import math
from typing import TYPE_CHECKING, Any

import rfc8785

if TYPE_CHECKING:
    from channelflow.core.graph.store import GraphStore

CANONICAL_VERSION = "sha256-rfc8785-v1"


def _normalize_value(obj: Any) -> Any:
    """Check a single leaf value.

    Raises:
        ValueError: If value is a non-finite float
    """
    if isinstance(obj, float) and (math.isnan(obj) or math.isinf(obj)):
        raise ValueError(f"Cannot canonicalize non-finite float: {obj}. Use None for missing values, not NaN.")
    return obj


def _normalize_for_canonical(data: Any) -> Any:
    """Recursively normalize a data structure for canonical JSON."""
    if isinstance(data, dict):
        return {k: _normalize_for_canonical(v) for k, v in data.items()}
    if isinstance(data, list | tuple):
        return [_normalize_for_canonical(v) for v in data]
    return _normalize_value(data)


def canonical_json(obj: Any) -> str:
    """Produce canonical JSON for hashing.

    Args:
        obj: Data structure to serialize

    Returns:
        Canonical JSON string (no whitespace, sorted keys)

    Raises:
        ValueError: If data contains NaN, Infinity, or other non-finite values
        TypeError: If data contains types that cannot be serialized
    """
    normalized = _normalize_for_canonical(obj)
    result: bytes = rfc8785.dumps(normalized)
    return result.decode("utf-8")


def stable_hash(obj: Any, version: str = CANONICAL_VERSION) -> str:
    """Compute stable hash of object.

    Args:
        obj: Data structure to hash
        version: Hash algorithm version

    Returns:
        SHA-256 hex digest of canonical JSON
    """
    canonical = canonical_json(obj)
    return hashlib.sha256(canonical.encode("utf-8")).hexdigest()


def compute_graph_hash(store: GraphStore) -> str:
    """Hash the semantically load-bearing parts of a channel graph.

    Positions are excluded: dragging a node around the canvas does not
    change what the channel does. Edge order IS included because the
    compiler's linear walk follows the first outgoing edge.

    Args:
        store: Graph to hash

    Returns:
        SHA-256 hash of canonical topology representation.
    """
    topology_data = {
        "nodes": sorted(
            [{"id": node.id, "type": node.type, "data": node.data_dict()} for node in store.nodes],
            key=lambda x: x["id"],
        ),
        "edges": [
            {
                "id": edge.id,
                "source": edge.source,
                "target": edge.target,
                "sourceHandle": edge.source_handle,
                "targetHandle": edge.target_handle,
            }
            for edge in store.edges
        ],
    }
    return stable_hash(topology_data)
