# src/channelflow/core/graph/compiler.py
"""GraphCompiler: turns a channel graph into a PipelineSpec.

Algorithm:

1. Entry node: the first source that is not the manual-injection kind, else
   the first injection node, else a placeholder HTTP listener.
2. Linear walk: from the entry, follow the first outgoing flow edge (edge
   insertion order) until a node has none or the next node was already
   visited. Processors and destinations are emitted in visit order;
   utilities are walked through.
3. Orphan sweep: unvisited destinations with at least one incoming edge are
   appended in node order. This is how router and filter branches other than
   the first end up in the spec.
4. Every emitted node gets a typed config from its per-kind builder, with
   driven fields resolved through ConfigResolver and documented defaults for
   anything missing or unusable.
5. A designated error destination is built the same way, if it names a
   destination node.

Compilation never raises on graph content. It is a pure function of the
store contents and the ChannelMetadata.
"""

from __future__ import annotations

import math
from collections.abc import Callable
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

import structlog

from channelflow.contracts.enums import NodeCategory, NodeKind
from channelflow.contracts.pipeline import (
    DatabasePollerConfig,
    DatabasePollerSource,
    DatabaseWriterConfig,
    DatabaseWriterDestination,
    DestinationConfig,
    FileReaderConfig,
    FileReaderSource,
    FileWriterConfig,
    FileWriterDestination,
    FilterConfig,
    FilterProcessor,
    Hl7ParserConfig,
    Hl7ParserProcessor,
    HttpListenerConfig,
    HttpListenerSource,
    HttpSenderConfig,
    HttpSenderDestination,
    InjectionSource,
    InjectionSourceConfig,
    LuaDestination,
    LuaDestinationConfig,
    LuaScriptConfig,
    LuaScriptProcessor,
    Mapping,
    MapperConfig,
    MapperProcessor,
    PipelineSpec,
    ProcessorConfig,
    Route,
    RouterConfig,
    RouterProcessor,
    SourceConfig,
    TcpListenerConfig,
    TcpListenerSource,
    TcpSenderConfig,
    TcpSenderDestination,
)
from channelflow.core.graph.models import Edge, Node
from channelflow.core.graph.registry import INJECTION_KIND, as_kind, classify
from channelflow.core.graph.resolver import ConfigResolver, stringify

if TYPE_CHECKING:
    from channelflow.core.graph.store import GraphStore

logger = structlog.get_logger(__name__)

# Fallbacks applied when a node leaves a field empty or unusable
DEFAULT_HTTP_PORT = 8080
DEFAULT_TCP_LISTEN_PORT = 9090
DEFAULT_READER_PATH = "/data/input"
DEFAULT_POLL_INTERVAL = 60
DEFAULT_PAYLOAD_TYPE = "hl7"
DEFAULT_LUA_CODE = "return msg"
DEFAULT_INPUT_FORMAT = "hl7v2"
DEFAULT_OUTPUT_FORMAT = "fhir"
DEFAULT_WRITER_PATH = "./output"
DEFAULT_UNKNOWN_WRITER_PATH = "./output.txt"
DEFAULT_HTTP_METHOD = "POST"
DEFAULT_DB_WRITE_MODE = "insert"
DEFAULT_TCP_HOST = "127.0.0.1"
DEFAULT_TCP_SEND_PORT = 9000
DEFAULT_PROCESSOR_NAME = "Processor"
DEFAULT_DESTINATION_NAME = "Destination"

PLACEHOLDER_SOURCE = HttpListenerSource(config=HttpListenerConfig(port=DEFAULT_HTTP_PORT))


@dataclass(frozen=True, slots=True)
class ChannelMetadata:
    """Channel-level inputs to compilation that don't live in the graph."""

    id: str
    name: str = "New Channel"
    max_retries: int = 3
    error_destination_id: str | None = None
    enabled: bool = True


# =============================================================================
# Value coercion
# =============================================================================
#
# Node bags are unvalidated editor input. These helpers follow the editor's
# own coercion: an empty or zero value counts as "not set".


def _number_or(value: Any, default: int) -> int:
    """Integer value of ``value``, or ``default`` for empty/zero/non-numeric input."""
    number: float
    if value is None:
        return default
    if isinstance(value, bool):
        number = 1.0 if value else 0.0
    elif isinstance(value, int | float):
        number = float(value)
    elif isinstance(value, str):
        stripped = value.strip()
        if not stripped:
            return default
        try:
            number = float(stripped)
        except ValueError:
            return default
    else:
        return default

    if not math.isfinite(number) or number == 0 or not number.is_integer():
        return default
    return int(number)


def _text_or(value: Any, default: str) -> str:
    """String value of ``value``, or ``default`` when it is empty or falsy."""
    if value is None or value is False or value == "" or value == 0:
        return default
    return value if isinstance(value, str) else stringify(value)


def _optional_text(value: Any) -> str | None:
    if value is None:
        return None
    return value if isinstance(value, str) else stringify(value)


def _entries(value: Any) -> list[dict[str, Any]]:
    if not isinstance(value, list):
        return []
    return [entry for entry in value if isinstance(entry, dict)]


def _stage_name(node: Node, default: str) -> str:
    return node.label or default


class GraphCompiler:
    """Compiles the graph held by a GraphStore into a PipelineSpec."""

    def __init__(self, store: GraphStore) -> None:
        self._store = store
        self._resolver = ConfigResolver(store)
        self._source_builders: dict[NodeKind, Callable[[Node], SourceConfig]] = {
            NodeKind.HTTP_LISTENER: self._http_listener,
            NodeKind.TCP_LISTENER: self._tcp_listener,
            NodeKind.FILE_READER: self._file_reader,
            NodeKind.DATABASE_POLLER: self._database_poller,
            NodeKind.TEST_NODE: self._injection_source,
        }
        self._processor_builders: dict[NodeKind, Callable[[Node], ProcessorConfig]] = {
            NodeKind.LUA_SCRIPT: self._lua_script,
            NodeKind.MAPPER: self._mapper,
            NodeKind.FILTER: self._filter,
            NodeKind.ROUTER: self._router,
            NodeKind.HL7_PARSER: self._hl7_parser,
        }
        self._destination_builders: dict[NodeKind, Callable[[Node], DestinationConfig]] = {
            NodeKind.FILE_WRITER: self._file_writer,
            NodeKind.HTTP_SENDER: self._http_sender,
            NodeKind.DATABASE_WRITER: self._database_writer,
            NodeKind.TCP_SENDER: self._tcp_sender,
            NodeKind.LUA_DESTINATION: self._lua_destination,
        }

    def compile(self, metadata: ChannelMetadata) -> PipelineSpec:
        entry = self.find_entry_node()
        source = self.build_source(entry) if entry is not None else PLACEHOLDER_SOURCE
        if entry is None:
            logger.info("No source node, using placeholder source", channel_id=metadata.id)

        visited = self.walk(entry)
        processors: list[ProcessorConfig] = []
        destinations: list[DestinationConfig] = []
        for node in visited[1:]:
            category = classify(node.type)
            if category == NodeCategory.PROCESSOR:
                processors.append(self.build_processor(node))
            elif category == NodeCategory.DESTINATION:
                destinations.append(self.build_destination(node))

        visited_ids = {node.id for node in visited}
        for node in self.orphan_destinations(visited_ids):
            destinations.append(self.build_destination(node))

        spec = PipelineSpec(
            id=metadata.id,
            name=metadata.name,
            enabled=metadata.enabled,
            source=source,
            processors=tuple(processors),
            destinations=tuple(destinations),
            error_destination=self._error_destination(metadata.error_destination_id),
            max_retries=metadata.max_retries,
        )
        logger.debug(
            "Channel compiled",
            channel_id=spec.id,
            source=spec.source.type,
            processors=len(spec.processors),
            destinations=len(spec.destinations),
        )
        return spec

    # -------------------------------------------------------------------------
    # Traversal
    # -------------------------------------------------------------------------

    def find_entry_node(self) -> Node | None:
        """First real source, else first injection node, else None."""
        injection: Node | None = None
        for node in self._store.nodes:
            if classify(node.type) != NodeCategory.SOURCE:
                continue
            if as_kind(node.type) == INJECTION_KIND:
                if injection is None:
                    injection = node
                continue
            return node
        return injection

    def walk(self, entry: Node | None) -> list[Node]:
        """Nodes on the first-edge path from ``entry``, entry included."""
        if entry is None:
            return []
        path = [entry]
        seen = {entry.id}
        current = entry
        while True:
            edge = self._first_flow_edge(current)
            if edge is None:
                break
            following = self._store.find_node(edge.target)
            if following is None or following.id in seen:
                break
            seen.add(following.id)
            path.append(following)
            current = following
        return path

    def orphan_destinations(self, visited: set[str]) -> list[Node]:
        """Wired destinations the linear walk didn't reach, in node order."""
        targets = {edge.target for edge in self._store.edges}
        return [
            node
            for node in self._store.nodes
            if node.id not in visited and classify(node.type) == NodeCategory.DESTINATION and node.id in targets
        ]

    def _first_flow_edge(self, node: Node) -> Edge | None:
        for edge in self._store.outgoing_edges(node.id):
            if not edge.is_config:
                return edge
        return None

    def _error_destination(self, node_id: str | None) -> DestinationConfig | None:
        if node_id is None:
            return None
        node = self._store.find_node(node_id)
        if node is None or classify(node.type) != NodeCategory.DESTINATION:
            logger.warning("Error destination ignored: not a destination node", node_id=node_id)
            return None
        return self.build_destination(node)

    # -------------------------------------------------------------------------
    # Dispatch
    # -------------------------------------------------------------------------

    def build_source(self, node: Node) -> SourceConfig:
        kind = as_kind(node.type)
        builder = self._source_builders.get(kind) if kind is not None else None
        if builder is None:
            logger.warning("Unknown source kind, using placeholder", node_id=node.id, node_type=node.type)
            return PLACEHOLDER_SOURCE
        return builder(node)

    def build_processor(self, node: Node) -> ProcessorConfig:
        kind = as_kind(node.type)
        builder = self._processor_builders.get(kind) if kind is not None else None
        if builder is None:
            logger.warning("Unknown processor kind, compiling as pass-through script", node_id=node.id, node_type=node.type)
            return LuaScriptProcessor(
                id=node.id,
                name=_stage_name(node, DEFAULT_PROCESSOR_NAME),
                config=LuaScriptConfig(code=DEFAULT_LUA_CODE),
            )
        return builder(node)

    def build_destination(self, node: Node) -> DestinationConfig:
        kind = as_kind(node.type)
        builder = self._destination_builders.get(kind) if kind is not None else None
        if builder is None:
            logger.warning("Unknown destination kind, compiling as file writer", node_id=node.id, node_type=node.type)
            return FileWriterDestination(
                id=node.id,
                name=_stage_name(node, DEFAULT_DESTINATION_NAME),
                config=FileWriterConfig(path=DEFAULT_UNKNOWN_WRITER_PATH),
            )
        return builder(node)

    # -------------------------------------------------------------------------
    # Sources
    # -------------------------------------------------------------------------

    def _http_listener(self, node: Node) -> SourceConfig:
        return HttpListenerSource(
            config=HttpListenerConfig(
                port=_number_or(self._resolver.resolve(node, "port"), DEFAULT_HTTP_PORT),
                path=_optional_text(self._resolver.resolve(node, "path")),
            )
        )

    def _tcp_listener(self, node: Node) -> SourceConfig:
        return TcpListenerSource(
            config=TcpListenerConfig(port=_number_or(self._resolver.resolve(node, "port"), DEFAULT_TCP_LISTEN_PORT))
        )

    def _file_reader(self, node: Node) -> SourceConfig:
        return FileReaderSource(
            config=FileReaderConfig(
                path=_text_or(node.data.get("path"), DEFAULT_READER_PATH),
                pattern=_optional_text(node.data.get("pattern")),
            )
        )

    def _database_poller(self, node: Node) -> SourceConfig:
        return DatabasePollerSource(
            config=DatabasePollerConfig(
                query=_text_or(node.data.get("query"), ""),
                interval=_number_or(node.data.get("interval"), DEFAULT_POLL_INTERVAL),
            )
        )

    def _injection_source(self, node: Node) -> SourceConfig:
        return InjectionSource(
            config=InjectionSourceConfig(
                payload_type=_text_or(node.data.get("payloadType"), DEFAULT_PAYLOAD_TYPE),
                payload=_text_or(node.data.get("payload"), ""),
            )
        )

    # -------------------------------------------------------------------------
    # Processors
    # -------------------------------------------------------------------------

    def _lua_script(self, node: Node) -> ProcessorConfig:
        return LuaScriptProcessor(
            id=node.id,
            name=_stage_name(node, DEFAULT_PROCESSOR_NAME),
            config=LuaScriptConfig(code=_text_or(node.data.get("code"), DEFAULT_LUA_CODE)),
        )

    def _mapper(self, node: Node) -> ProcessorConfig:
        mappings = tuple(
            Mapping(source=stringify(entry.get("source")), target=stringify(entry.get("target")))
            for entry in _entries(node.data.get("mappings"))
        )
        return MapperProcessor(
            id=node.id,
            name=_stage_name(node, DEFAULT_PROCESSOR_NAME),
            config=MapperConfig(mappings=mappings),
        )

    def _filter(self, node: Node) -> ProcessorConfig:
        return FilterProcessor(
            id=node.id,
            name=_stage_name(node, DEFAULT_PROCESSOR_NAME),
            config=FilterConfig(condition=_text_or(node.data.get("condition"), "")),
        )

    def _router(self, node: Node) -> ProcessorConfig:
        routes = tuple(
            Route(name=stringify(entry.get("name")), condition=stringify(entry.get("condition")))
            for entry in _entries(node.data.get("routes"))
        )
        return RouterProcessor(
            id=node.id,
            name=_stage_name(node, DEFAULT_PROCESSOR_NAME),
            config=RouterConfig(routes=routes),
        )

    def _hl7_parser(self, node: Node) -> ProcessorConfig:
        return Hl7ParserProcessor(
            id=node.id,
            name=_stage_name(node, DEFAULT_PROCESSOR_NAME),
            config=Hl7ParserConfig(
                input_format=_text_or(node.data.get("inputFormat"), DEFAULT_INPUT_FORMAT),
                output_format=_text_or(node.data.get("outputFormat"), DEFAULT_OUTPUT_FORMAT),
            ),
        )

    # -------------------------------------------------------------------------
    # Destinations
    # -------------------------------------------------------------------------

    def _file_writer(self, node: Node) -> DestinationConfig:
        return FileWriterDestination(
            id=node.id,
            name=_stage_name(node, DEFAULT_DESTINATION_NAME),
            config=FileWriterConfig(
                path=_text_or(node.data.get("path"), DEFAULT_WRITER_PATH),
                filename=_optional_text(node.data.get("filename")),
            ),
        )

    def _http_sender(self, node: Node) -> DestinationConfig:
        return HttpSenderDestination(
            id=node.id,
            name=_stage_name(node, DEFAULT_DESTINATION_NAME),
            config=HttpSenderConfig(
                url=_text_or(self._resolver.resolve(node, "url"), ""),
                method=_text_or(node.data.get("method"), DEFAULT_HTTP_METHOD),
            ),
        )

    def _database_writer(self, node: Node) -> DestinationConfig:
        return DatabaseWriterDestination(
            id=node.id,
            name=_stage_name(node, DEFAULT_DESTINATION_NAME),
            config=DatabaseWriterConfig(
                table=_optional_text(node.data.get("table")),
                mode=_text_or(node.data.get("mode"), DEFAULT_DB_WRITE_MODE),
                query=_optional_text(node.data.get("query")),
            ),
        )

    def _tcp_sender(self, node: Node) -> DestinationConfig:
        return TcpSenderDestination(
            id=node.id,
            name=_stage_name(node, DEFAULT_DESTINATION_NAME),
            config=TcpSenderConfig(
                host=_text_or(self._resolver.resolve(node, "host"), DEFAULT_TCP_HOST),
                port=_number_or(self._resolver.resolve(node, "port"), DEFAULT_TCP_SEND_PORT),
            ),
        )

    def _lua_destination(self, node: Node) -> DestinationConfig:
        return LuaDestination(
            id=node.id,
            name=_stage_name(node, DEFAULT_DESTINATION_NAME),
            config=LuaDestinationConfig(code=_text_or(node.data.get("code"), DEFAULT_LUA_CODE)),
        )


def compile_channel(store: GraphStore, metadata: ChannelMetadata) -> PipelineSpec:
    """Compile ``store`` in one call."""
    return GraphCompiler(store).compile(metadata)
