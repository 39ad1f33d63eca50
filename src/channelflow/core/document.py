# src/channelflow/core/document.py
"""Channel documents: the import/export JSON format and persisted state.

Export shape::

    {version, name, channelName, channelId, maxRetries, errorDestinationId,
     nodes, edges, exportedAt}

Persisted state drops ``version``/``name``/``exportedAt``, adds ``savedAt``,
and strips sensitive keys from every node's data.

Parsing is all-or-nothing: a malformed document raises DocumentImportError
before any store is touched.
"""

from __future__ import annotations

import json
import re
import uuid
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

import structlog

from channelflow.contracts.pipeline import PipelineSpec
from channelflow.contracts.types import EdgeID, IdFactory, NodeID
from channelflow.core.config import DEFAULT_SENSITIVE_FIELDS, DefaultsSettings
from channelflow.core.graph.compiler import ChannelMetadata, GraphCompiler
from channelflow.core.graph.models import Edge, Node, Position
from channelflow.core.graph.registry import data_model_for
from channelflow.core.graph.store import GraphStore

logger = structlog.get_logger(__name__)

DOCUMENT_VERSION = "1.0"

_CHANNEL_ID_PATTERN = re.compile(r"[0-9a-f]{8}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{12}", re.IGNORECASE)

_NODE_KEYS = frozenset({"id", "type", "position", "data"})
_EDGE_KEYS = frozenset({"id", "source", "target", "sourceHandle", "targetHandle"})


class DocumentImportError(ValueError):
    """Raised when a channel document can't be imported.

    The store being imported into is left exactly as it was.
    """


@dataclass(slots=True)
class ChannelDocument:
    """A channel: its graph plus the settings that live beside it."""

    channel_name: str
    channel_id: str
    store: GraphStore
    max_retries: int = 3
    error_destination_id: str | None = None
    # Keys this module doesn't interpret, carried through export unchanged
    extras: dict[str, Any] = field(default_factory=dict)

    def metadata(self) -> ChannelMetadata:
        return ChannelMetadata(
            id=self.channel_id,
            name=self.channel_name,
            max_retries=self.max_retries,
            error_destination_id=self.error_destination_id,
        )

    def compile(self) -> PipelineSpec:
        return GraphCompiler(self.store).compile(self.metadata())


# =============================================================================
# Channel ids and names
# =============================================================================


def is_channel_id(value: Any) -> bool:
    return isinstance(value, str) and _CHANNEL_ID_PATTERN.fullmatch(value) is not None


def ensure_channel_id(value: Any) -> str:
    """Return ``value`` if it is UUID-shaped, else a fresh UUID4."""
    if is_channel_id(value):
        return str(value)
    fresh = str(uuid.uuid4())
    logger.info("Regenerated channel id", previous=value, channel_id=fresh)
    return fresh


def export_filename(channel_name: str | None) -> str:
    """Download name for an export: lower-cased, whitespace runs to '_'."""
    base = channel_name or "workflow"
    return re.sub(r"\s+", "_", base.lower()) + ".json"


# =============================================================================
# Parsing
# =============================================================================


def _parse_node(raw: Any, index: int) -> Node:
    if not isinstance(raw, Mapping):
        raise DocumentImportError(f"nodes[{index}] must be an object")
    node_id = raw.get("id")
    node_type = raw.get("type")
    if not isinstance(node_id, str) or not node_id:
        raise DocumentImportError(f"nodes[{index}].id must be a non-empty string")
    if not isinstance(node_type, str):
        raise DocumentImportError(f"nodes[{index}].type must be a string")
    data = raw.get("data", {})
    if data is None:
        data = {}
    if not isinstance(data, Mapping):
        raise DocumentImportError(f"nodes[{index}].data must be an object")

    return Node(
        id=NodeID(node_id),
        type=node_type,
        position=Position.from_wire(raw.get("position")),
        data=data_model_for(node_type).from_wire(data),
        presentation={k: v for k, v in raw.items() if k not in _NODE_KEYS},
    )


def _optional_handle(raw: Mapping[str, Any], key: str, index: int) -> str | None:
    value = raw.get(key)
    if value is None or isinstance(value, str):
        return value
    raise DocumentImportError(f"edges[{index}].{key} must be a string or null")


def _parse_edge(raw: Any, index: int) -> Edge:
    if not isinstance(raw, Mapping):
        raise DocumentImportError(f"edges[{index}] must be an object")
    for key in ("id", "source", "target"):
        if not isinstance(raw.get(key), str):
            raise DocumentImportError(f"edges[{index}].{key} must be a string")
    return Edge(
        id=EdgeID(raw["id"]),
        source=NodeID(raw["source"]),
        target=NodeID(raw["target"]),
        source_handle=_optional_handle(raw, "sourceHandle", index),
        target_handle=_optional_handle(raw, "targetHandle", index),
        presentation={k: v for k, v in raw.items() if k not in _EDGE_KEYS},
    )


def _parse_max_retries(value: Any, default: int) -> int:
    if value is None:
        return default
    if isinstance(value, bool) or not isinstance(value, int) or value < 0:
        logger.warning("Ignoring invalid maxRetries", value=value, default=default)
        return default
    return value


def _parse_error_destination(value: Any) -> str | None:
    if value is None or isinstance(value, str):
        return value or None
    logger.warning("Ignoring invalid errorDestinationId", value=value)
    return None


def _parse(
    raw: Any,
    *,
    default_name: str,
    defaults: DefaultsSettings,
    id_factory: IdFactory | None,
    into: GraphStore | None,
    reserved: Iterable[str],
) -> ChannelDocument:
    if not isinstance(raw, Mapping):
        raise DocumentImportError("Channel document must be a JSON object")
    raw_nodes = raw.get("nodes")
    if not isinstance(raw_nodes, list):
        raise DocumentImportError("Channel document must contain a 'nodes' array")
    raw_edges = raw.get("edges")
    if raw_edges is None:
        raw_edges = []
    if not isinstance(raw_edges, list):
        raise DocumentImportError("'edges' must be an array")

    nodes = [_parse_node(item, i) for i, item in enumerate(raw_nodes)]
    edges = [_parse_edge(item, i) for i, item in enumerate(raw_edges)]

    name = raw.get("channelName")
    channel_name = name if isinstance(name, str) and name else default_name

    # Everything validated; only now touch the caller's store
    store = into if into is not None else GraphStore(defaults, id_factory=id_factory)
    store.replace(nodes, edges)

    skipped = set(reserved)
    document = ChannelDocument(
        channel_name=channel_name,
        channel_id=ensure_channel_id(raw.get("channelId")),
        store=store,
        max_retries=_parse_max_retries(raw.get("maxRetries"), defaults.max_retries),
        error_destination_id=_parse_error_destination(raw.get("errorDestinationId")),
        extras={k: v for k, v in raw.items() if k not in skipped},
    )
    logger.debug(
        "Channel document parsed",
        channel_id=document.channel_id,
        nodes=store.node_count,
        edges=store.edge_count,
    )
    return document


_EXPORT_KEYS = frozenset(
    {"version", "name", "channelName", "channelId", "maxRetries", "errorDestinationId", "nodes", "edges", "exportedAt"}
)
_PERSISTED_KEYS = frozenset({"channelName", "channelId", "maxRetries", "errorDestinationId", "nodes", "edges", "savedAt"})


def import_document(
    raw: Any,
    *,
    defaults: DefaultsSettings | None = None,
    id_factory: IdFactory | None = None,
    into: GraphStore | None = None,
) -> ChannelDocument:
    """Parse an exported channel document.

    Args:
        raw: Decoded JSON
        defaults: Fallback name and retry count
        id_factory: Id factory for the new store (ignored with ``into``)
        into: Existing store whose contents the import replaces

    Raises:
        DocumentImportError: If ``nodes`` is missing or not an array, or any
            node/edge entry is malformed. ``into`` is unchanged in that case.
    """
    defaults = defaults or DefaultsSettings()
    return _parse(
        raw,
        default_name=defaults.imported_channel_name,
        defaults=defaults,
        id_factory=id_factory,
        into=into,
        reserved=_EXPORT_KEYS,
    )


def load_persisted(
    raw: Any,
    *,
    defaults: DefaultsSettings | None = None,
    id_factory: IdFactory | None = None,
    into: GraphStore | None = None,
) -> ChannelDocument:
    """Parse persisted local state (same rules as import, different name default)."""
    defaults = defaults or DefaultsSettings()
    return _parse(
        raw,
        default_name=defaults.channel_name,
        defaults=defaults,
        id_factory=id_factory,
        into=into,
        reserved=_PERSISTED_KEYS,
    )


# =============================================================================
# Serialization
# =============================================================================


def _timestamp(moment: datetime | None) -> str:
    moment = moment or datetime.now(UTC)
    return moment.astimezone(UTC).isoformat().replace("+00:00", "Z")


def _graph_payload(document: ChannelDocument, sensitive: frozenset[str] = frozenset()) -> dict[str, Any]:
    nodes = []
    for node in document.store.nodes:
        if sensitive:
            node = node.with_data(node.data.without(sensitive))
        nodes.append(node.to_wire())
    return {
        "channelName": document.channel_name,
        "channelId": document.channel_id,
        "maxRetries": document.max_retries,
        "errorDestinationId": document.error_destination_id,
        "nodes": nodes,
        "edges": [edge.to_wire() for edge in document.store.edges],
    }


def export_document(
    document: ChannelDocument,
    *,
    defaults: DefaultsSettings | None = None,
    exported_at: datetime | None = None,
) -> dict[str, Any]:
    """Full export, suitable for json.dumps()."""
    defaults = defaults or DefaultsSettings()
    payload: dict[str, Any] = dict(document.extras)
    payload["version"] = DOCUMENT_VERSION
    payload["name"] = document.channel_name or defaults.export_name
    payload.update(_graph_payload(document))
    payload["exportedAt"] = _timestamp(exported_at)
    return payload


def persisted_state(
    document: ChannelDocument,
    *,
    sensitive_fields: Iterable[str] = DEFAULT_SENSITIVE_FIELDS,
    saved_at: datetime | None = None,
) -> dict[str, Any]:
    """Local-storage form: export minus version/exportedAt, secrets stripped."""
    payload: dict[str, Any] = dict(document.extras)
    payload.pop("version", None)
    payload.pop("name", None)
    payload.pop("exportedAt", None)
    payload.update(_graph_payload(document, frozenset(sensitive_fields)))
    payload["savedAt"] = _timestamp(saved_at)
    return payload


def read_document(path: Path) -> Any:
    """Decode a JSON document from disk.

    Raises:
        DocumentImportError: If the file isn't valid JSON
    """
    try:
        return json.loads(path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as e:
        raise DocumentImportError(f"{path} is not valid JSON: {e}") from e


def write_document(path: Path, payload: Mapping[str, Any]) -> None:
    path.write_text(json.dumps(payload, indent=2) + "\n", encoding="utf-8")
