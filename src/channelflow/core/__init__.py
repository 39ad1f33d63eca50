# src/channelflow/core/__init__.py
"""Core infrastructure: Graph, Documents, Canonical, Configuration, Logging."""

from channelflow.core.canonical import (
    CANONICAL_VERSION,
    canonical_json,
    compute_graph_hash,
    stable_hash,
)
from channelflow.core.config import (
    ChannelFlowSettings,
    DefaultsSettings,
    LoggingSettings,
    PersistenceSettings,
    load_settings,
)
from channelflow.core.document import (
    ChannelDocument,
    DocumentImportError,
    export_document,
    import_document,
    load_persisted,
    persisted_state,
)
from channelflow.core.graph import (
    ChannelMetadata,
    ConfigResolver,
    ConnectionValidator,
    ConnectionVerdict,
    GraphCompiler,
    GraphIntegrityError,
    GraphStore,
)
from channelflow.core.logging import (
    configure_logging,
    get_logger,
)

__all__ = [
    "CANONICAL_VERSION",
    "ChannelDocument",
    "ChannelFlowSettings",
    "ChannelMetadata",
    "ConfigResolver",
    "ConnectionValidator",
    "ConnectionVerdict",
    "DefaultsSettings",
    "DocumentImportError",
    "GraphCompiler",
    "GraphIntegrityError",
    "GraphStore",
    "LoggingSettings",
    "PersistenceSettings",
    "canonical_json",
    "compute_graph_hash",
    "configure_logging",
    "export_document",
    "get_logger",
    "import_document",
    "load_persisted",
    "load_settings",
    "persisted_state",
    "stable_hash",
]
