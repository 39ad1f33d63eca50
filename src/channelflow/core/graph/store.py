# src/channelflow/core/graph/store.py
"""GraphStore: the caller-owned node/edge container for one channel.

The store keeps nodes and edges in insertion order. Edge order matters: the
compiler's linear walk follows the first outgoing flow edge, and "first" means
first inserted. Every public operation leaves the store referentially intact
(no edge ever names a node that is not in the store).
"""

from __future__ import annotations

import uuid
from collections.abc import Iterable
from typing import TYPE_CHECKING, Any

import networkx as nx
import structlog
from networkx import MultiDiGraph

from channelflow.contracts.types import EdgeID, IdFactory, NodeID
from channelflow.core.config import DefaultsSettings
from channelflow.core.graph.models import (
    ConnectionVerdict,
    Edge,
    GraphIntegrityError,
    Node,
    Position,
)
from channelflow.core.graph.registry import as_kind, default_data

if TYPE_CHECKING:
    from channelflow.core.graph.validator import ConnectionValidator

logger = structlog.get_logger(__name__)


def default_id_factory(prefix: str) -> str:
    """Random identifier such as ``node-1f3a9b0c2d4e``."""
    return f"{prefix}-{uuid.uuid4().hex[:12]}"


class GraphStore:
    """Ordered nodes and edges of one channel, with structural edit operations.

    Single-writer: the store does no locking. Validation, resolution and
    compilation only read from it.
    """

    def __init__(
        self,
        defaults: DefaultsSettings | None = None,
        *,
        id_factory: IdFactory | None = None,
    ) -> None:
        self._defaults = defaults or DefaultsSettings()
        self._new_id: IdFactory = id_factory or default_id_factory
        self._nodes: dict[NodeID, Node] = {}
        self._edges: dict[EdgeID, Edge] = {}

    # -------------------------------------------------------------------------
    # Queries
    # -------------------------------------------------------------------------

    @property
    def nodes(self) -> tuple[Node, ...]:
        return tuple(self._nodes.values())

    @property
    def edges(self) -> tuple[Edge, ...]:
        return tuple(self._edges.values())

    @property
    def node_count(self) -> int:
        return len(self._nodes)

    @property
    def edge_count(self) -> int:
        return len(self._edges)

    def has_node(self, node_id: str) -> bool:
        return node_id in self._nodes

    def has_edge(self, edge_id: str) -> bool:
        return edge_id in self._edges

    def get_node(self, node_id: str) -> Node:
        """Look up a node.

        Raises:
            GraphIntegrityError: If the node doesn't exist
        """
        try:
            return self._nodes[NodeID(node_id)]
        except KeyError:
            raise GraphIntegrityError(f"Node not found: {node_id}") from None

    def find_node(self, node_id: str | None) -> Node | None:
        if node_id is None:
            return None
        return self._nodes.get(NodeID(node_id))

    def get_edge(self, edge_id: str) -> Edge:
        try:
            return self._edges[EdgeID(edge_id)]
        except KeyError:
            raise GraphIntegrityError(f"Edge not found: {edge_id}") from None

    def incoming_edges(self, node_id: str) -> list[Edge]:
        """Edges targeting ``node_id``, in insertion order."""
        return [edge for edge in self._edges.values() if edge.target == node_id]

    def outgoing_edges(self, node_id: str) -> list[Edge]:
        """Edges leaving ``node_id``, in insertion order."""
        return [edge for edge in self._edges.values() if edge.source == node_id]

    def to_networkx(self) -> MultiDiGraph[str]:
        """Frozen NetworkX view of the current graph.

        Node attribute ``node`` and edge attribute ``edge`` hold the store's
        objects; edge keys are edge ids.
        """
        graph: MultiDiGraph[str] = nx.MultiDiGraph()
        for node in self._nodes.values():
            graph.add_node(node.id, node=node)
        for edge in self._edges.values():
            graph.add_edge(edge.source, edge.target, key=edge.id, edge=edge)
        return nx.freeze(graph)  # type: ignore[no-any-return]

    # -------------------------------------------------------------------------
    # Node operations
    # -------------------------------------------------------------------------

    def add_node(self, kind: str, position: Position | None = None) -> Node | None:
        """Create a node of ``kind`` with its default field bag.

        Returns None without touching the store if ``kind`` is not registered;
        callers are expected to check the registry first.
        """
        registered = as_kind(kind)
        if registered is None:
            logger.debug("add_node ignored unregistered kind", kind=kind)
            return None

        if position is None:
            position = Position(x=self._defaults.node_position.x, y=self._defaults.node_position.y)

        node = Node(
            id=NodeID(self._new_id("node")),
            type=registered.value,
            position=position,
            data=default_data(registered),
        )
        self._insert_node(node)
        return node

    def insert_node(self, node: Node) -> Node:
        """Insert a fully built node (used by import and by tests).

        Raises:
            GraphIntegrityError: If a node with the same id exists
        """
        self._insert_node(node)
        return node

    def update_field(self, node_id: str, field: str, value: Any) -> Node:
        """Set one field of a node's data bag. No schema validation here."""
        node = self.get_node(node_id)
        updated = node.with_data(node.data.with_value(field, value))
        self._nodes[node.id] = updated
        return updated

    def move_node(self, node_id: str, position: Position) -> Node:
        node = self.get_node(node_id)
        moved = node.with_position(position)
        self._nodes[node.id] = moved
        return moved

    def delete_node(self, node_id: str) -> None:
        """Remove a node and every edge touching it."""
        node = self.get_node(node_id)
        dropped = [edge_id for edge_id, edge in self._edges.items() if edge.touches(node.id)]
        for edge_id in dropped:
            del self._edges[edge_id]
        del self._nodes[node.id]
        logger.debug("Node deleted", node_id=node.id, edges_removed=len(dropped))

    def delete_node_and_reconnect(self, node_id: str) -> list[Edge]:
        """Delete a node, bridging each predecessor to each successor.

        One bridge per (incoming, outgoing) pair, keeping the incoming edge's
        source handle and the outgoing edge's target handle. A node with m
        inputs and n outputs therefore yields m * n bridges.

        Returns:
            The bridging edges that were added
        """
        node = self.get_node(node_id)
        # Self-loops have nothing to bridge to once the node is gone
        incoming = [edge for edge in self.incoming_edges(node.id) if edge.source != node.id]
        outgoing = [edge for edge in self.outgoing_edges(node.id) if edge.target != node.id]

        bridges = [
            Edge(
                id=EdgeID(self._new_id("edge")),
                source=inbound.source,
                target=outbound.target,
                source_handle=inbound.source_handle,
                target_handle=outbound.target_handle,
            )
            for inbound in incoming
            for outbound in outgoing
        ]

        self.delete_node(node.id)
        for bridge in bridges:
            self._insert_edge(bridge)
        logger.debug("Node deleted with reconnect", node_id=node.id, bridges=len(bridges))
        return bridges

    def duplicate_node(self, node_id: str) -> Node:
        """Clone a node's data at an offset position. Edges are not copied."""
        original = self.get_node(node_id)
        offset = self._defaults.duplicate_offset
        clone = Node(
            id=NodeID(self._new_id("node")),
            type=original.type,
            position=original.position.offset(offset.x, offset.y),
            data=type(original.data).from_wire(original.data.to_wire()),
        )
        self._insert_node(clone)
        return clone

    # -------------------------------------------------------------------------
    # Edge operations
    # -------------------------------------------------------------------------

    def add_edge(
        self,
        source: str,
        target: str,
        *,
        source_handle: str | None = None,
        target_handle: str | None = None,
        edge_id: str | None = None,
    ) -> Edge:
        """Insert an edge without connection rules (referential checks only).

        Use connect() for operator-driven edits.

        Raises:
            GraphIntegrityError: If an endpoint is missing or the id is taken
        """
        edge = Edge(
            id=EdgeID(edge_id or self._new_id("edge")),
            source=NodeID(source),
            target=NodeID(target),
            source_handle=source_handle,
            target_handle=target_handle,
        )
        self._insert_edge(edge)
        return edge

    def connect(
        self,
        source: str,
        target: str,
        source_handle: str | None = None,
        target_handle: str | None = None,
        *,
        validator: ConnectionValidator | None = None,
    ) -> ConnectionVerdict:
        """Validate a prospective edge and insert it only if accepted.

        A rejected connection leaves the edge set untouched.
        """
        if validator is None:
            from channelflow.core.graph.validator import ConnectionValidator

            validator = ConnectionValidator()

        verdict = validator.check(self, source, target, source_handle, target_handle)
        if verdict.valid:
            self.add_edge(source, target, source_handle=source_handle, target_handle=target_handle)
        return verdict

    def delete_edge(self, edge_id: str) -> None:
        edge = self.get_edge(edge_id)
        del self._edges[edge.id]

    # -------------------------------------------------------------------------
    # Bulk
    # -------------------------------------------------------------------------

    def replace(self, nodes: Iterable[Node], edges: Iterable[Edge]) -> None:
        """Swap in a whole graph (import / load).

        Later duplicates of a node id are dropped, as are edges whose
        endpoints are missing or whose id repeats. The previous contents are
        discarded only once the new ones are assembled.
        """
        new_nodes: dict[NodeID, Node] = {}
        for node in nodes:
            if node.id in new_nodes:
                logger.warning("Dropping duplicate node id", node_id=node.id)
                continue
            new_nodes[node.id] = node

        new_edges: dict[EdgeID, Edge] = {}
        for edge in edges:
            if edge.source not in new_nodes or edge.target not in new_nodes:
                logger.warning("Dropping dangling edge", edge_id=edge.id, source=edge.source, target=edge.target)
                continue
            if edge.id in new_edges:
                logger.warning("Dropping duplicate edge id", edge_id=edge.id)
                continue
            new_edges[edge.id] = edge

        self._nodes = new_nodes
        self._edges = new_edges

    # -------------------------------------------------------------------------
    # Internals
    # -------------------------------------------------------------------------

    def _insert_node(self, node: Node) -> None:
        if node.id in self._nodes:
            raise GraphIntegrityError(f"Duplicate node id: {node.id}")
        self._nodes[node.id] = node

    def _insert_edge(self, edge: Edge) -> None:
        if edge.id in self._edges:
            raise GraphIntegrityError(f"Duplicate edge id: {edge.id}")
        for endpoint in (edge.source, edge.target):
            if endpoint not in self._nodes:
                raise GraphIntegrityError(f"Edge {edge.id} references missing node: {endpoint}")
        self._edges[edge.id] = edge
