# tests/property/conftest.py
"""Shared Hypothesis strategies for property-based tests.

Strategy Categories:
- Node kinds (registered and unregistered)
- Channel graphs built through the connection rules
- Unchecked graphs (arbitrary edges, including ones the editor refuses)
- Template text networks

Usage:
    from tests.property.conftest import channel_graphs

    @given(store=channel_graphs())
    def test_store_invariant(store: GraphStore) -> None:
        ...
"""

# =============================================================================
# Hypothesis Settings
# =============================================================================
#
# For standardized @settings decorators, import from tests.property.settings:
#   from tests.property.settings import STANDARD_SETTINGS, DETERMINISM_SETTINGS
#
# Tiers: DETERMINISM (300), STANDARD (100), QUICK (20)
# =============================================================================

from __future__ import annotations

from hypothesis import strategies as st

from channelflow.contracts.enums import NodeKind
from channelflow.core.graph.registry import as_kind, default_field_bag
from channelflow.core.graph.store import GraphStore
from tests.conftest import SequentialIds, make_node

node_kinds = st.sampled_from(list(NodeKind))

# Occasionally an unregistered kind, as found in documents from newer editors
node_types = node_kinds.map(lambda kind: kind.value) | st.sampled_from(["futureNode", "customWidget"])

handles = st.none() | st.sampled_from(["config-port", "config-url", "config-host", "pass", "reject", "route-0"])


def _fresh_store() -> GraphStore:
    return GraphStore(id_factory=SequentialIds())


def _insert(store: GraphStore, index: int, node_type: str) -> None:
    kind = as_kind(node_type)
    bag = default_field_bag(kind) if kind is not None else {"label": node_type}
    store.insert_node(make_node(f"n{index}", node_type, bag, x=float(index * 10)))


@st.composite
def channel_graphs(draw: st.DrawFn, max_nodes: int = 8, max_attempts: int = 16) -> GraphStore:
    """A graph grown only through connect(), as the editor would build it."""
    types = draw(st.lists(node_types, min_size=1, max_size=max_nodes))
    store = _fresh_store()
    for index, node_type in enumerate(types):
        _insert(store, index, node_type)

    indices = st.integers(min_value=0, max_value=len(types) - 1)
    attempts = draw(st.lists(st.tuples(indices, indices, handles), max_size=max_attempts))
    for source, target, target_handle in attempts:
        store.connect(f"n{source}", f"n{target}", target_handle=target_handle)
    return store


@st.composite
def unchecked_graphs(draw: st.DrawFn, max_nodes: int = 8, max_edges: int = 16) -> GraphStore:
    """A graph with arbitrary edges, bypassing the connection rules."""
    types = draw(st.lists(node_types, min_size=1, max_size=max_nodes))
    store = _fresh_store()
    for index, node_type in enumerate(types):
        _insert(store, index, node_type)

    indices = st.integers(min_value=0, max_value=len(types) - 1)
    edges = draw(st.lists(st.tuples(indices, indices, handles), max_size=max_edges))
    for source, target, target_handle in edges:
        store.add_edge(f"n{source}", f"n{target}", target_handle=target_handle)
    return store


@st.composite
def template_networks(draw: st.DrawFn, max_nodes: int = 5) -> GraphStore:
    """Text nodes labelled T0..Tn whose templates reference each other.

    Edges are drawn freely, so template cycles are common.
    """
    count = draw(st.integers(min_value=1, max_value=max_nodes))
    labels = [f"T{i}" for i in range(count)]
    fragments = st.sampled_from(labels).map(lambda label: "${" + label + "}") | st.text(
        alphabet="abc-${} ", max_size=4
    )

    store = _fresh_store()
    for index, label in enumerate(labels):
        text = "".join(draw(st.lists(fragments, max_size=4)))
        bag = default_field_bag(NodeKind.TEXT_NODE) | {
            "label": label,
            "text": text,
            "isTemplate": draw(st.booleans()),
        }
        store.insert_node(make_node(f"n{index}", NodeKind.TEXT_NODE.value, bag))

    indices = st.integers(min_value=0, max_value=count - 1)
    pairs = draw(st.lists(st.tuples(indices, indices).filter(lambda p: p[0] != p[1]), max_size=count * 2))
    for source, target in pairs:
        store.add_edge(f"n{source}", f"n{target}")
    return store
