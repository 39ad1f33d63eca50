"""Shared contracts: enums, identifier types, and the compiled pipeline schema.

Leaf package: imports nothing from channelflow.core (prevents import cycles).
"""

from channelflow.contracts.enums import NodeCategory, NodeKind
from channelflow.contracts.pipeline import (
    DatabasePollerSource,
    DatabaseWriterDestination,
    DestinationConfig,
    FileReaderSource,
    FileWriterDestination,
    FilterProcessor,
    Hl7ParserProcessor,
    HttpListenerSource,
    HttpSenderDestination,
    InjectionSource,
    LuaDestination,
    LuaScriptProcessor,
    Mapping,
    MapperProcessor,
    PipelineSpec,
    ProcessorConfig,
    Route,
    RouterProcessor,
    SourceConfig,
    TcpListenerSource,
    TcpSenderDestination,
)
from channelflow.contracts.types import CONFIG_HANDLE_PREFIX, EdgeID, IdFactory, NodeID

__all__ = [
    "CONFIG_HANDLE_PREFIX",
    "DatabasePollerSource",
    "DatabaseWriterDestination",
    "DestinationConfig",
    "EdgeID",
    "FileReaderSource",
    "FileWriterDestination",
    "FilterProcessor",
    "Hl7ParserProcessor",
    "HttpListenerSource",
    "HttpSenderDestination",
    "IdFactory",
    "InjectionSource",
    "LuaDestination",
    "LuaScriptProcessor",
    "Mapping",
    "MapperProcessor",
    "NodeCategory",
    "NodeID",
    "NodeKind",
    "PipelineSpec",
    "ProcessorConfig",
    "Route",
    "RouterProcessor",
    "SourceConfig",
    "TcpListenerSource",
    "TcpSenderDestination",
]
