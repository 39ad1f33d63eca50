# src/channelflow/core/graph/validator.py
"""Connection rules for prospective edges.

Two independent checks, both of which must pass:

1. Structural legality: category rules, self-loops, the annotation kind,
   per-kind handle capacity.
2. Acyclicity: the graph plus the candidate edge has no cycle reachable
   from the candidate's source.

Verdicts are values, never exceptions. Nothing here mutates the store.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from typing import TYPE_CHECKING

import networkx as nx
import structlog

from channelflow.contracts.enums import NodeCategory
from channelflow.core.graph.models import (
    ACCEPTED,
    ConnectionVerdict,
    Edge,
    Node,
    is_config_handle,
)
from channelflow.core.graph.registry import (
    ANNOTATION_KIND,
    FAN_IN_KINDS,
    as_kind,
    capacity_for,
    classify,
)

if TYPE_CHECKING:
    from channelflow.core.graph.store import GraphStore

logger = structlog.get_logger(__name__)

REASON_MISSING_ENDPOINT = "Source or target node does not exist"
REASON_SELF_LOOP = "A node cannot connect to itself"
REASON_ANNOTATION = "Comment nodes cannot be connected"
REASON_DESTINATION_SOURCE = "Destinations cannot originate connections"
REASON_SOURCE_TARGET = "Sources cannot receive message connections"
REASON_CYCLE = "This connection would create a cycle"


@dataclass(frozen=True, slots=True)
class EdgeViolation:
    """An existing edge that the connection rules would reject today."""

    edge: Edge
    reason: str


@dataclass(frozen=True, slots=True)
class _Candidate:
    source: str
    target: str
    source_handle: str | None
    target_handle: str | None

    @property
    def is_config(self) -> bool:
        return is_config_handle(self.target_handle)


class ConnectionValidator:
    """Decides whether an edge may be added to a graph."""

    def check(
        self,
        store: GraphStore,
        source: str,
        target: str,
        source_handle: str | None = None,
        target_handle: str | None = None,
    ) -> ConnectionVerdict:
        """Full verdict for a prospective edge: structure first, then cycles."""
        candidate = _Candidate(source, target, source_handle, target_handle)
        verdict = self._evaluate(store, store.edges, candidate)
        if not verdict.valid:
            logger.debug(
                "Connection rejected",
                source=source,
                target=target,
                source_handle=source_handle,
                target_handle=target_handle,
                reason=verdict.reason,
            )
        return verdict

    def is_structurally_valid(
        self,
        store: GraphStore,
        source: str,
        target: str,
        source_handle: str | None = None,
        target_handle: str | None = None,
    ) -> ConnectionVerdict:
        """Category, annotation and capacity rules only; no cycle search."""
        candidate = _Candidate(source, target, source_handle, target_handle)
        return self._structural(store, store.edges, candidate)

    def would_create_cycle(self, store: GraphStore, source: str, target: str) -> bool:
        return _closes_cycle(store.edges, source, target)

    def audit(self, store: GraphStore) -> list[EdgeViolation]:
        """Re-check every existing edge against the rest of the graph.

        Imported documents never went through connect(), so this is how
        callers find edges the editor would have refused.
        """
        violations: list[EdgeViolation] = []
        edges = store.edges
        for index, edge in enumerate(edges):
            others = edges[:index] + edges[index + 1 :]
            candidate = _Candidate(edge.source, edge.target, edge.source_handle, edge.target_handle)
            verdict = self._evaluate(store, others, candidate)
            if not verdict.valid:
                violations.append(EdgeViolation(edge=edge, reason=verdict.reason or ""))
        return violations

    # -------------------------------------------------------------------------
    # Rules
    # -------------------------------------------------------------------------

    def _evaluate(self, store: GraphStore, edges: Sequence[Edge], candidate: _Candidate) -> ConnectionVerdict:
        verdict = self._structural(store, edges, candidate)
        if not verdict.valid:
            return verdict
        if _closes_cycle(edges, candidate.source, candidate.target):
            return ConnectionVerdict(valid=False, reason=REASON_CYCLE)
        return ACCEPTED

    def _structural(self, store: GraphStore, edges: Sequence[Edge], candidate: _Candidate) -> ConnectionVerdict:
        source = store.find_node(candidate.source)
        target = store.find_node(candidate.target)
        if source is None or target is None:
            return ConnectionVerdict(valid=False, reason=REASON_MISSING_ENDPOINT)

        if source.id == target.id:
            return ConnectionVerdict(valid=False, reason=REASON_SELF_LOOP)

        if as_kind(source.type) == ANNOTATION_KIND or as_kind(target.type) == ANNOTATION_KIND:
            return ConnectionVerdict(valid=False, reason=REASON_ANNOTATION)

        if classify(source.type) == NodeCategory.DESTINATION:
            return ConnectionVerdict(valid=False, reason=REASON_DESTINATION_SOURCE)

        if (
            classify(target.type) == NodeCategory.SOURCE
            and not candidate.is_config
            and as_kind(target.type) not in FAN_IN_KINDS
        ):
            return ConnectionVerdict(valid=False, reason=REASON_SOURCE_TARGET)

        # Configuration edges carry values, not messages; they never use up capacity
        if candidate.is_config:
            return ACCEPTED

        return _capacity_verdict(source, target, edges)


def _capacity_verdict(source: Node, target: Node, edges: Sequence[Edge]) -> ConnectionVerdict:
    out_count = sum(1 for edge in edges if edge.source == source.id and not edge.is_config)
    in_count = sum(1 for edge in edges if edge.target == target.id and not edge.is_config)

    max_out = capacity_for(source.type).max_out
    if out_count + 1 > max_out:
        return ConnectionVerdict(
            valid=False,
            reason=f"{_describe(source)} allows at most {max_out} outgoing connection(s)",
        )

    max_in = capacity_for(target.type).max_in
    if in_count + 1 > max_in:
        return ConnectionVerdict(
            valid=False,
            reason=f"{_describe(target)} allows at most {max_in} incoming connection(s)",
        )
    return ACCEPTED


def _describe(node: Node) -> str:
    return f"'{node.label}'" if node.label else f"Node {node.id}"


def _closes_cycle(edges: Sequence[Edge], source: str, target: str) -> bool:
    """Depth-first cycle search from ``source`` over ``edges`` plus source->target."""
    if source == target:
        return True
    graph: nx.DiGraph[str] = nx.DiGraph()
    graph.add_edges_from((edge.source, edge.target) for edge in edges)
    graph.add_edge(source, target)
    try:
        nx.find_cycle(graph, source=source)
    except nx.NetworkXNoCycle:
        return False
    return True
