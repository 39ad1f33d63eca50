# tests/conftest.py
"""Shared test fixtures and helpers.

Graph Fixtures:
- sequential_ids: deterministic id factory ('node-1', 'edge-1', ...)
- store: empty GraphStore using sequential ids
- make_node / add_edge helpers build graphs without going through the
  connection rules, for tests that need a specific (possibly invalid) shape

Hypothesis Configuration:
- "ci" profile: Fast tests for CI (100 examples) - default
- "nightly" profile: Thorough tests (1000 examples)
- "debug" profile: Minimal tests with verbose output (10 examples)

Set profile via environment variable:
    HYPOTHESIS_PROFILE=nightly pytest tests/property/
"""

from __future__ import annotations

import itertools
import os
from collections.abc import Callable
from typing import Any

import pytest
from hypothesis import Phase, Verbosity, settings

from channelflow.core.graph.models import Node, Position
from channelflow.core.graph.registry import data_model_for
from channelflow.core.graph.store import GraphStore


class SequentialIds:
    """Id factory producing 'node-1', 'node-2', 'edge-1', ..."""

    def __init__(self) -> None:
        self._counters: dict[str, itertools.count[int]] = {}

    def __call__(self, prefix: str) -> str:
        counter = self._counters.setdefault(prefix, itertools.count(1))
        return f"{prefix}-{next(counter)}"


@pytest.fixture
def sequential_ids() -> SequentialIds:
    return SequentialIds()


@pytest.fixture
def store(sequential_ids: SequentialIds) -> GraphStore:
    return GraphStore(id_factory=sequential_ids)


def make_node(
    node_id: str,
    node_type: str,
    data: dict[str, Any] | None = None,
    *,
    x: float = 0.0,
    y: float = 0.0,
) -> Node:
    """Build a node with an explicit id and field bag."""
    return Node(
        id=node_id,  # type: ignore[arg-type]
        type=node_type,
        position=Position(x=x, y=y),
        data=data_model_for(node_type).from_wire(data or {}),
    )


def insert(store: GraphStore, node_id: str, node_type: str, **data: Any) -> Node:
    """Insert a node with an explicit id (bypasses default field bags)."""
    return store.insert_node(make_node(node_id, node_type, data))


@pytest.fixture
def build_graph(store: GraphStore) -> Callable[..., GraphStore]:
    """Populate ``store`` from (id, type, data) triples and (source, target[, sh, th]) tuples."""

    def _build(nodes: list[tuple[str, str, dict[str, Any]]], edges: list[tuple[Any, ...]] | None = None) -> GraphStore:
        for node_id, node_type, data in nodes:
            insert(store, node_id, node_type, **data)
        for edge in edges or []:
            source, target, *handles = edge
            source_handle = handles[0] if len(handles) > 0 else None
            target_handle = handles[1] if len(handles) > 1 else None
            store.add_edge(source, target, source_handle=source_handle, target_handle=target_handle)
        return store

    return _build


# =============================================================================
# Hypothesis Configuration
# =============================================================================

# CI profile: Fast tests for continuous integration
settings.register_profile(
    "ci",
    max_examples=100,
    phases=[Phase.explicit, Phase.reuse, Phase.generate, Phase.shrink],
    deadline=None,  # Disable deadline for CI (timing varies)
)

# Nightly profile: Thorough testing for scheduled runs
settings.register_profile(
    "nightly",
    max_examples=1000,
    phases=[Phase.explicit, Phase.reuse, Phase.generate, Phase.shrink],
    deadline=None,
)

# Debug profile: Minimal examples with verbose output for debugging
settings.register_profile(
    "debug",
    max_examples=10,
    verbosity=Verbosity.verbose,
    phases=[Phase.explicit, Phase.reuse, Phase.generate, Phase.shrink],
    deadline=None,
)

# Load profile from environment, default to "ci"
settings.load_profile(os.getenv("HYPOTHESIS_PROFILE", "ci"))
