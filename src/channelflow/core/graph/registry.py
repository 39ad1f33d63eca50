# src/channelflow/core/graph/registry.py
"""Node kind registry: categories, default field bags, handles, capacities.

Everything here is static data about node kinds. Nothing in this module
looks at a graph; the validator and compiler combine these tables with the
current nodes and edges.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from types import MappingProxyType
from typing import Any

from channelflow.contracts.enums import NodeCategory, NodeKind
from channelflow.core.graph.models import (
    CommentNodeData,
    CounterNodeData,
    DatabasePollerData,
    DatabaseWriterData,
    DelayNodeData,
    DeployNodeData,
    FileReaderData,
    FileWriterData,
    FilterData,
    GenericNodeData,
    Hl7ParserData,
    HttpListenerData,
    HttpSenderData,
    InjectionNodeData,
    IpNodeData,
    LoggerNodeData,
    LuaDestinationData,
    LuaScriptData,
    MapperData,
    MergeNodeData,
    Node,
    NodeData,
    PortNodeData,
    RouterData,
    TcpListenerData,
    TcpSenderData,
    TextNodeData,
    TimestampNodeData,
    VariableNodeData,
)

_KIND_CATEGORIES: dict[NodeKind, NodeCategory] = {
    NodeKind.HTTP_LISTENER: NodeCategory.SOURCE,
    NodeKind.TCP_LISTENER: NodeCategory.SOURCE,
    NodeKind.FILE_READER: NodeCategory.SOURCE,
    NodeKind.DATABASE_POLLER: NodeCategory.SOURCE,
    NodeKind.TEST_NODE: NodeCategory.SOURCE,
    NodeKind.LUA_SCRIPT: NodeCategory.PROCESSOR,
    NodeKind.MAPPER: NodeCategory.PROCESSOR,
    NodeKind.FILTER: NodeCategory.PROCESSOR,
    NodeKind.ROUTER: NodeCategory.PROCESSOR,
    NodeKind.HL7_PARSER: NodeCategory.PROCESSOR,
    NodeKind.FILE_WRITER: NodeCategory.DESTINATION,
    NodeKind.HTTP_SENDER: NodeCategory.DESTINATION,
    NodeKind.DATABASE_WRITER: NodeCategory.DESTINATION,
    NodeKind.TCP_SENDER: NodeCategory.DESTINATION,
    NodeKind.LUA_DESTINATION: NodeCategory.DESTINATION,
    NodeKind.IP_NODE: NodeCategory.UTILITY,
    NodeKind.PORT_NODE: NodeCategory.UTILITY,
    NodeKind.TEXT_NODE: NodeCategory.UTILITY,
    NodeKind.VARIABLE_NODE: NodeCategory.UTILITY,
    NodeKind.COMMENT_NODE: NodeCategory.UTILITY,
    NodeKind.DELAY_NODE: NodeCategory.UTILITY,
    NodeKind.LOGGER_NODE: NodeCategory.UTILITY,
    NodeKind.COUNTER_NODE: NodeCategory.UTILITY,
    NodeKind.TIMESTAMP_NODE: NodeCategory.UTILITY,
    NodeKind.MERGE_NODE: NodeCategory.UTILITY,
    NodeKind.DEPLOY_NODE: NodeCategory.UTILITY,
}

KIND_CATEGORIES: Mapping[NodeKind, NodeCategory] = MappingProxyType(_KIND_CATEGORIES)

# Unregistered types are treated as processors by the connection rules
UNKNOWN_KIND_CATEGORY = NodeCategory.PROCESSOR

# The annotation kind: accepts no edges in either direction
ANNOTATION_KIND = NodeKind.COMMENT_NODE

# Manual injection source; used as entry node only when no real source exists
INJECTION_KIND = NodeKind.TEST_NODE

# Kinds that accept flow edges even where the category rules would forbid it
FAN_IN_KINDS: frozenset[NodeKind] = frozenset({NodeKind.MERGE_NODE})

_DATA_MODELS: dict[NodeKind, type[NodeData]] = {
    NodeKind.HTTP_LISTENER: HttpListenerData,
    NodeKind.TCP_LISTENER: TcpListenerData,
    NodeKind.FILE_READER: FileReaderData,
    NodeKind.DATABASE_POLLER: DatabasePollerData,
    NodeKind.TEST_NODE: InjectionNodeData,
    NodeKind.LUA_SCRIPT: LuaScriptData,
    NodeKind.MAPPER: MapperData,
    NodeKind.FILTER: FilterData,
    NodeKind.ROUTER: RouterData,
    NodeKind.HL7_PARSER: Hl7ParserData,
    NodeKind.FILE_WRITER: FileWriterData,
    NodeKind.HTTP_SENDER: HttpSenderData,
    NodeKind.DATABASE_WRITER: DatabaseWriterData,
    NodeKind.TCP_SENDER: TcpSenderData,
    NodeKind.LUA_DESTINATION: LuaDestinationData,
    NodeKind.IP_NODE: IpNodeData,
    NodeKind.PORT_NODE: PortNodeData,
    NodeKind.TEXT_NODE: TextNodeData,
    NodeKind.VARIABLE_NODE: VariableNodeData,
    NodeKind.COMMENT_NODE: CommentNodeData,
    NodeKind.DELAY_NODE: DelayNodeData,
    NodeKind.LOGGER_NODE: LoggerNodeData,
    NodeKind.COUNTER_NODE: CounterNodeData,
    NodeKind.TIMESTAMP_NODE: TimestampNodeData,
    NodeKind.MERGE_NODE: MergeNodeData,
    NodeKind.DEPLOY_NODE: DeployNodeData,
}

# Field bags given to freshly created nodes (wire keys, as the editor writes them)
_DEFAULT_FIELD_BAGS: dict[NodeKind, dict[str, Any]] = {
    NodeKind.HTTP_LISTENER: {"label": "HTTP Listener", "port": 8080, "path": "/"},
    NodeKind.TCP_LISTENER: {"label": "TCP Listener", "port": 9090},
    NodeKind.FILE_READER: {"label": "File Reader", "path": "/data/input", "pattern": "*.txt"},
    NodeKind.DATABASE_POLLER: {"label": "Database Poller", "query": "SELECT * FROM messages", "interval": 60},
    NodeKind.TEST_NODE: {"label": "Test Node", "payloadType": "hl7", "payload": "MSH|^~\\&|..."},
    NodeKind.LUA_SCRIPT: {"label": "Lua Script", "code": "-- Your code here\nreturn msg.content"},
    NodeKind.MAPPER: {"label": "Field Mapper", "mappings": [{"source": "field1", "target": "newField1"}]},
    NodeKind.FILTER: {"label": "Message Filter", "condition": 'msg.type == "HL7"'},
    NodeKind.ROUTER: {"label": "Content Router", "routes": [{"name": "Route A", "condition": ""}]},
    NodeKind.HL7_PARSER: {"label": "HL7 Parser", "inputFormat": "hl7v2", "outputFormat": "fhir"},
    NodeKind.FILE_WRITER: {"label": "File Writer", "path": "./output", "filename": "${timestamp}.txt"},
    NodeKind.HTTP_SENDER: {"label": "HTTP Sender", "url": "https://api.example.com", "method": "POST"},
    NodeKind.DATABASE_WRITER: {"label": "Database Writer", "table": "messages", "mode": "insert"},
    NodeKind.TCP_SENDER: {"label": "TCP Sender", "host": "127.0.0.1", "port": 9000},
    NodeKind.LUA_DESTINATION: {"label": "Lua Destination", "code": "-- Your code here\nreturn msg"},
    NodeKind.IP_NODE: {"label": "IP Address", "ip": "127.0.0.1", "subnet": "255.255.255.0"},
    NodeKind.PORT_NODE: {"label": "Port", "port": 8080, "protocol": "TCP"},
    NodeKind.TEXT_NODE: {"label": "Text", "text": "", "isTemplate": False},
    NodeKind.VARIABLE_NODE: {"label": "Variables", "variables": []},
    NodeKind.COMMENT_NODE: {"label": "Comment", "text": "Add notes here...", "color": "#fef3c7"},
    NodeKind.DELAY_NODE: {"label": "Delay", "delay": 1000, "unit": "ms"},
    NodeKind.LOGGER_NODE: {"label": "Logger", "level": "info", "prefix": ""},
    NodeKind.COUNTER_NODE: {"label": "Counter", "count": 0, "resetInterval": 0},
    NodeKind.TIMESTAMP_NODE: {"label": "Timestamp", "field": "timestamp", "format": "ISO"},
    NodeKind.MERGE_NODE: {"label": "Merge", "mode": "first", "separator": ""},
    NodeKind.DEPLOY_NODE: {"label": "Channel Terminal"},
}

_FILTER_OUTPUT_HANDLES: tuple[str, ...] = ("pass", "reject")


@dataclass(frozen=True, slots=True)
class HandleCapacity:
    """Maximum number of flow edges a node accepts in and emits out."""

    max_in: int
    max_out: int


_CATEGORY_CAPACITY: dict[NodeCategory, HandleCapacity] = {
    NodeCategory.SOURCE: HandleCapacity(max_in=0, max_out=1),
    NodeCategory.DESTINATION: HandleCapacity(max_in=1, max_out=0),
    NodeCategory.PROCESSOR: HandleCapacity(max_in=1, max_out=1),
    NodeCategory.UTILITY: HandleCapacity(max_in=1, max_out=1),
}

_CAPACITY_OVERRIDES: dict[NodeKind, HandleCapacity] = {
    NodeKind.ROUTER: HandleCapacity(max_in=1, max_out=10),
    NodeKind.FILTER: HandleCapacity(max_in=1, max_out=2),
    NodeKind.MERGE_NODE: HandleCapacity(max_in=10, max_out=1),
    NodeKind.COMMENT_NODE: HandleCapacity(max_in=0, max_out=0),
    # Templates combine several labelled inputs and feed several consumers
    NodeKind.TEXT_NODE: HandleCapacity(max_in=10, max_out=10),
    NodeKind.PORT_NODE: HandleCapacity(max_in=1, max_out=10),
    NodeKind.IP_NODE: HandleCapacity(max_in=1, max_out=10),
}


def as_kind(node_type: str | None) -> NodeKind | None:
    """Return the registered kind for a type tag, or None if unregistered."""
    if node_type is None:
        return None
    try:
        return NodeKind(node_type)
    except ValueError:
        return None


def classify(node_type: str | None) -> NodeCategory:
    """Map a node type tag to its category.

    Pure and total: unregistered tags classify as processors.
    """
    kind = as_kind(node_type)
    if kind is None:
        return UNKNOWN_KIND_CATEGORY
    return _KIND_CATEGORIES[kind]


def kinds_in(category: NodeCategory) -> tuple[NodeKind, ...]:
    """Registered kinds of a category, in declaration order."""
    return tuple(kind for kind, cat in _KIND_CATEGORIES.items() if cat == category)


def data_model_for(node_type: str | None) -> type[NodeData]:
    kind = as_kind(node_type)
    if kind is None:
        return GenericNodeData
    return _DATA_MODELS[kind]


def default_field_bag(kind: NodeKind) -> dict[str, Any]:
    """A fresh copy of the default wire field bag for ``kind``."""
    return {key: (list(value) if isinstance(value, list) else value) for key, value in _DEFAULT_FIELD_BAGS[kind].items()}


def default_data(kind: NodeKind) -> NodeData:
    return data_model_for(kind).from_wire(default_field_bag(kind))


def capacity_for(node_type: str | None) -> HandleCapacity:
    """Flow-edge capacity for a node type (override, else category default)."""
    kind = as_kind(node_type)
    if kind is not None and kind in _CAPACITY_OVERRIDES:
        return _CAPACITY_OVERRIDES[kind]
    return _CATEGORY_CAPACITY[classify(node_type)]


def output_handles(node: Node) -> tuple[str, ...]:
    """Named output handles of a node; empty means one unnamed handle.

    Routers expose one handle per authored route, so the handle set follows
    the node's current data.
    """
    kind = as_kind(node.type)
    if kind == NodeKind.ROUTER:
        routes = node.data.get("routes")
        count = len(routes) if isinstance(routes, list) else 0
        return tuple(f"route-{index}" for index in range(count))
    if kind == NodeKind.FILTER:
        return _FILTER_OUTPUT_HANDLES
    return ()

