# tests/core/test_graph_store.py
"""Tests for GraphStore structural operations."""

from __future__ import annotations

import networkx as nx
import pytest

from channelflow.core.graph.models import Position
from channelflow.core.graph.store import GraphStore
from tests.conftest import insert


class TestAddNode:
    """Tests for node creation."""

    def test_add_node_uses_default_field_bag(self, store: GraphStore) -> None:
        node = store.add_node("httpListener")

        assert node is not None
        assert node.id == "node-1"
        assert node.type == "httpListener"
        assert node.data_dict() == {"label": "HTTP Listener", "port": 8080, "path": "/"}

    def test_add_node_default_position(self, store: GraphStore) -> None:
        node = store.add_node("luaScript")

        assert node is not None
        assert node.position == Position(x=300.0, y=200.0)

    def test_add_node_explicit_position(self, store: GraphStore) -> None:
        node = store.add_node("mapper", Position(x=10, y=20))

        assert node is not None
        assert node.position == Position(x=10, y=20)

    def test_unregistered_kind_is_noop(self, store: GraphStore) -> None:
        """Unregistered kinds return None and leave the store untouched."""
        result = store.add_node("quantumTeleporter")

        assert result is None
        assert store.node_count == 0

    def test_default_bags_are_independent(self, store: GraphStore) -> None:
        """Mutating one router's routes must not leak into the next router."""
        first = store.add_node("router")
        second = store.add_node("router")
        assert first is not None and second is not None

        routes = first.data.get("routes")
        routes.append({"name": "Route B", "condition": ""})

        assert len(second.data.get("routes")) == 1

    def test_ids_are_unique(self) -> None:
        store = GraphStore()
        ids = {store.add_node("textNode").id for _ in range(50)}  # type: ignore[union-attr]

        assert len(ids) == 50
        assert all(node_id.startswith("node-") for node_id in ids)


class TestUpdateField:
    """Tests for field updates."""

    def test_update_field_merges_value(self, store: GraphStore) -> None:
        node = store.add_node("tcpListener")
        assert node is not None

        updated = store.update_field(node.id, "port", 7000)

        assert updated.data.get("port") == 7000
        assert store.get_node(node.id).data.get("label") == "TCP Listener"

    def test_update_field_accepts_unvalidated_values(self, store: GraphStore) -> None:
        """No schema validation at this layer: a non-numeric port is stored as-is."""
        node = store.add_node("tcpListener")
        assert node is not None

        store.update_field(node.id, "port", "80a")

        assert store.get_node(node.id).data.get("port") == "80a"

    def test_update_field_by_wire_name(self, store: GraphStore) -> None:
        node = store.add_node("hl7Parser")
        assert node is not None

        store.update_field(node.id, "inputFormat", "hl7v3")

        assert store.get_node(node.id).data_dict()["inputFormat"] == "hl7v3"

    def test_update_field_unknown_key_kept(self, store: GraphStore) -> None:
        node = store.add_node("fileWriter")
        assert node is not None

        store.update_field(node.id, "compression", "gzip")

        assert store.get_node(node.id).data_dict()["compression"] == "gzip"

    def test_update_field_unknown_node_raises(self, store: GraphStore) -> None:
        from channelflow.core.graph.models import GraphIntegrityError

        with pytest.raises(GraphIntegrityError, match="Node not found"):
            store.update_field("missing", "port", 1)

    def test_integrity_error_is_key_error(self, store: GraphStore) -> None:
        with pytest.raises(KeyError):
            store.get_node("missing")


class TestDeleteNode:
    """Tests for cascading deletes."""

    def test_delete_removes_touching_edges(self, store: GraphStore) -> None:
        insert(store, "a", "httpListener")
        insert(store, "b", "luaScript")
        insert(store, "c", "fileWriter")
        store.add_edge("a", "b")
        store.add_edge("b", "c")

        store.delete_node("b")

        assert not store.has_node("b")
        assert store.edges == ()

    def test_delete_keeps_unrelated_edges(self, store: GraphStore) -> None:
        insert(store, "a", "httpListener")
        insert(store, "b", "luaScript")
        insert(store, "c", "fileWriter")
        insert(store, "d", "luaScript")
        store.add_edge("a", "b")
        kept = store.add_edge("c", "d")

        store.delete_node("a")

        assert store.edges == (kept,)

    def test_delete_unknown_node_raises(self, store: GraphStore) -> None:
        from channelflow.core.graph.models import GraphIntegrityError

        with pytest.raises(GraphIntegrityError):
            store.delete_node("ghost")


class TestDeleteNodeAndReconnect:
    """Tests for delete-and-reconnect bridging."""

    def test_bridges_predecessor_to_successor(self, store: GraphStore) -> None:
        insert(store, "a", "httpListener")
        insert(store, "b", "luaScript")
        insert(store, "c", "fileWriter")
        store.add_edge("a", "b")
        store.add_edge("b", "c")

        bridges = store.delete_node_and_reconnect("b")

        assert len(bridges) == 1
        assert (bridges[0].source, bridges[0].target) == ("a", "c")
        assert store.edges == tuple(bridges)

    def test_preserves_handles(self, store: GraphStore) -> None:
        """Bridge keeps the incoming source handle and the outgoing target handle."""
        insert(store, "r", "router")
        insert(store, "b", "mapper")
        insert(store, "m", "mergeNode")
        store.add_edge("r", "b", source_handle="route-1", target_handle="in")
        store.add_edge("b", "m", source_handle="out", target_handle="input-2")

        (bridge,) = store.delete_node_and_reconnect("b")

        assert bridge.source_handle == "route-1"
        assert bridge.target_handle == "input-2"

    def test_cross_product_fan_out(self, store: GraphStore) -> None:
        """m inputs and n outputs produce m * n bridges."""
        for node_id in ("in1", "in2", "out1", "out2", "out3"):
            insert(store, node_id, "luaScript")
        insert(store, "hub", "textNode")
        store.add_edge("in1", "hub")
        store.add_edge("in2", "hub")
        store.add_edge("hub", "out1")
        store.add_edge("hub", "out2")
        store.add_edge("hub", "out3")

        bridges = store.delete_node_and_reconnect("hub")

        pairs = {(edge.source, edge.target) for edge in bridges}
        assert len(bridges) == 6
        assert pairs == {(i, o) for i in ("in1", "in2") for o in ("out1", "out2", "out3")}

    def test_no_inputs_means_no_bridges(self, store: GraphStore) -> None:
        insert(store, "b", "luaScript")
        insert(store, "c", "fileWriter")
        store.add_edge("b", "c")

        assert store.delete_node_and_reconnect("b") == []
        assert store.edge_count == 0

    def test_self_loop_is_not_bridged(self, store: GraphStore) -> None:
        insert(store, "a", "httpListener")
        insert(store, "b", "luaScript")
        insert(store, "c", "fileWriter")
        store.add_edge("a", "b")
        store.add_edge("b", "b")
        store.add_edge("b", "c")

        bridges = store.delete_node_and_reconnect("b")

        assert [(edge.source, edge.target) for edge in bridges] == [("a", "c")]


class TestDuplicateNode:
    """Tests for node duplication."""

    def test_duplicate_offsets_position(self, store: GraphStore) -> None:
        node = store.add_node("filter", Position(x=100, y=100))
        assert node is not None

        clone = store.duplicate_node(node.id)

        assert clone.id != node.id
        assert clone.position == Position(x=150, y=150)
        assert clone.data_dict() == node.data_dict()

    def test_duplicate_does_not_copy_edges(self, store: GraphStore) -> None:
        insert(store, "a", "httpListener")
        insert(store, "b", "luaScript")
        store.add_edge("a", "b")

        clone = store.duplicate_node("b")

        assert store.incoming_edges(clone.id) == []
        assert store.outgoing_edges(clone.id) == []

    def test_duplicate_data_is_independent(self, store: GraphStore) -> None:
        node = store.add_node("mapper")
        assert node is not None

        clone = store.duplicate_node(node.id)
        clone.data.get("mappings").append({"source": "x", "target": "y"})

        assert len(store.get_node(node.id).data.get("mappings")) == 1

    def test_duplicate_offset_from_settings(self, sequential_ids) -> None:
        from channelflow.core.config import DefaultsSettings, PositionSettings

        store = GraphStore(DefaultsSettings(duplicate_offset=PositionSettings(x=10, y=-5)), id_factory=sequential_ids)
        node = store.add_node("textNode", Position(x=0, y=0))
        assert node is not None

        assert store.duplicate_node(node.id).position == Position(x=10, y=-5)


class TestEdges:
    """Tests for raw edge insertion and connect()."""

    def test_add_edge_missing_endpoint_raises(self, store: GraphStore) -> None:
        from channelflow.core.graph.models import GraphIntegrityError

        insert(store, "a", "httpListener")

        with pytest.raises(GraphIntegrityError, match="missing node"):
            store.add_edge("a", "nowhere")
        assert store.edge_count == 0

    def test_add_edge_duplicate_id_raises(self, store: GraphStore) -> None:
        from channelflow.core.graph.models import GraphIntegrityError

        insert(store, "a", "httpListener")
        insert(store, "b", "luaScript")
        store.add_edge("a", "b", edge_id="e1")

        with pytest.raises(GraphIntegrityError, match="Duplicate edge id"):
            store.add_edge("a", "b", edge_id="e1")

    def test_connect_accepts_legal_edge(self, store: GraphStore) -> None:
        insert(store, "a", "httpListener")
        insert(store, "b", "luaScript")

        verdict = store.connect("a", "b")

        assert verdict.valid
        assert store.edge_count == 1

    def test_connect_rejection_leaves_edges_unchanged(self, store: GraphStore) -> None:
        insert(store, "a", "luaScript")
        insert(store, "b", "mapper")
        store.add_edge("a", "b")
        before = store.edges

        verdict = store.connect("b", "a")

        assert not verdict.valid
        assert store.edges == before

    def test_incoming_and_outgoing_preserve_insertion_order(self, store: GraphStore) -> None:
        insert(store, "hub", "textNode")
        for node_id in ("x", "y", "z"):
            insert(store, node_id, "portNode")
        e1 = store.add_edge("hub", "z")
        e2 = store.add_edge("hub", "x")
        e3 = store.add_edge("hub", "y")

        assert store.outgoing_edges("hub") == [e1, e2, e3]

    def test_delete_edge(self, store: GraphStore) -> None:
        insert(store, "a", "httpListener")
        insert(store, "b", "luaScript")
        edge = store.add_edge("a", "b")

        store.delete_edge(edge.id)

        assert store.edge_count == 0
        assert store.has_node("a") and store.has_node("b")


class TestReplace:
    """Tests for bulk replacement (import path)."""

    def test_replace_drops_dangling_edges(self, store: GraphStore) -> None:
        from channelflow.core.graph.models import Edge
        from tests.conftest import make_node

        nodes = [make_node("a", "httpListener"), make_node("b", "fileWriter")]
        edges = [
            Edge(id="e1", source="a", target="b"),  # type: ignore[arg-type]
            Edge(id="e2", source="a", target="ghost"),  # type: ignore[arg-type]
        ]

        store.replace(nodes, edges)

        assert [edge.id for edge in store.edges] == ["e1"]

    def test_replace_discards_previous_contents(self, store: GraphStore) -> None:
        from tests.conftest import make_node

        insert(store, "old", "luaScript")

        store.replace([make_node("new", "luaScript")], [])

        assert [node.id for node in store.nodes] == ["new"]

    def test_replace_keeps_first_duplicate_node(self, store: GraphStore) -> None:
        from tests.conftest import make_node

        store.replace([make_node("a", "luaScript"), make_node("a", "mapper")], [])

        assert store.get_node("a").type == "luaScript"


class TestNetworkxView:
    """Tests for the NetworkX export."""

    def test_to_networkx_mirrors_store(self, store: GraphStore) -> None:
        insert(store, "a", "httpListener")
        insert(store, "b", "luaScript")
        edge = store.add_edge("a", "b")

        graph = store.to_networkx()

        assert set(graph.nodes) == {"a", "b"}
        assert graph.has_edge("a", "b", key=edge.id)
        assert nx.is_frozen(graph)
