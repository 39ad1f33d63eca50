# src/channelflow/core/graph/__init__.py
"""Channel graph: store, connection rules, config resolution, compilation."""

from channelflow.core.graph.compiler import ChannelMetadata, GraphCompiler, compile_channel
from channelflow.core.graph.models import (
    ConnectionVerdict,
    Edge,
    GraphIntegrityError,
    Node,
    NodeData,
    Position,
)
from channelflow.core.graph.registry import HandleCapacity, classify
from channelflow.core.graph.resolver import ConfigResolver, refresh_cached_values
from channelflow.core.graph.store import GraphStore
from channelflow.core.graph.validator import ConnectionValidator, EdgeViolation

__all__ = [
    "ChannelMetadata",
    "ConfigResolver",
    "ConnectionValidator",
    "ConnectionVerdict",
    "Edge",
    "EdgeViolation",
    "GraphCompiler",
    "GraphIntegrityError",
    "GraphStore",
    "HandleCapacity",
    "Node",
    "NodeData",
    "Position",
    "classify",
    "compile_channel",
    "refresh_cached_values",
]
