# src/channelflow/core/graph/models.py
"""Types, constants, and exceptions for channel graphs.

Leaf module: no intra-package imports besides contracts (prevents import
cycles). The registry, store, validator, resolver and compiler all build on
the types defined here.
"""

from __future__ import annotations

import copy
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field, replace
from typing import Any, Self

from pydantic import BaseModel, ConfigDict, Field

from channelflow.contracts.types import CONFIG_HANDLE_PREFIX, EdgeID, NodeID


class GraphIntegrityError(KeyError):
    """Raised when a store operation would reference a node that doesn't exist.

    Subclasses KeyError so lookups of unknown ids behave like dict lookups.
    """

    def __str__(self) -> str:
        # KeyError.__str__ wraps the message in quotes
        return str(self.args[0]) if self.args else ""


@dataclass(frozen=True, slots=True)
class ConnectionVerdict:
    """Outcome of validating a prospective edge.

    Validation never raises for an illegal connection; callers decide
    whether to surface ``reason`` to the user.
    """

    valid: bool
    reason: str | None = None

    def __bool__(self) -> bool:
        return self.valid


ACCEPTED = ConnectionVerdict(valid=True)


@dataclass(frozen=True, slots=True)
class Position:
    """Canvas coordinate. Presentation only; the core never branches on it."""

    x: float = 0.0
    y: float = 0.0

    def offset(self, dx: float, dy: float) -> Position:
        return Position(x=self.x + dx, y=self.y + dy)

    def to_wire(self) -> dict[str, float]:
        return {"x": self.x, "y": self.y}

    @classmethod
    def from_wire(cls, raw: Any) -> Position:
        if not isinstance(raw, Mapping):
            return cls()
        return cls(x=_as_float(raw.get("x")), y=_as_float(raw.get("y")))


def _as_float(value: Any) -> float:
    if isinstance(value, bool):
        return 0.0
    if isinstance(value, int | float):
        return float(value)
    return 0.0


# =============================================================================
# Node field bags
# =============================================================================
#
# One model per registered node kind. Field bags are built with
# model_construct(), never validated: the editor stores whatever the operator
# typed (a port of "80a" is legal here) and the compiler coerces at compile
# time. Only keys the document actually contained count as set, so a bag
# serializes back to exactly the keys it was loaded from. Unknown keys are
# kept as extras.


class NodeData(BaseModel):
    """Base field bag shared by every node kind."""

    model_config = ConfigDict(extra="allow", frozen=True, populate_by_name=True)

    label: str | None = None

    @classmethod
    def from_wire(cls, raw: Mapping[str, Any]) -> Self:
        """Build a bag from editor data without validating values."""
        values = copy.deepcopy(dict(raw))
        return cls.model_construct(**values)

    @classmethod
    def field_name_for(cls, key: str) -> str | None:
        """Map a wire key (e.g. 'payloadType') to its attribute name."""
        for name, info in cls.model_fields.items():
            if key == name or key == info.alias:
                return name
        return None

    def get(self, key: str, default: Any = None) -> Any:
        """Stored value for a wire key, or ``default`` if the key was never set."""
        name = self.field_name_for(key)
        if name is not None:
            if name in self.model_fields_set:
                return getattr(self, name)
            return default
        extras = self.model_extra or {}
        return extras.get(key, default)

    def has(self, key: str) -> bool:
        name = self.field_name_for(key)
        if name is not None:
            return name in self.model_fields_set
        return key in (self.model_extra or {})

    def with_value(self, key: str, value: Any) -> Self:
        """Return a copy with ``key`` set to ``value`` (no validation)."""
        name = self.field_name_for(key) or key
        return self.model_copy(update={name: value})

    def without(self, keys: Iterable[str]) -> Self:
        """Return a copy with the given wire keys removed entirely."""
        drop = set(keys)
        return self.from_wire({k: v for k, v in self.to_wire().items() if k not in drop})

    def to_wire(self) -> dict[str, Any]:
        """Serialize set fields (by wire name) plus extras, values deep-copied."""
        result: dict[str, Any] = {}
        for name, info in type(self).model_fields.items():
            if name in self.model_fields_set:
                result[info.alias or name] = copy.deepcopy(getattr(self, name))
        for key, value in (self.model_extra or {}).items():
            result[key] = copy.deepcopy(value)
        return result


class GenericNodeData(NodeData):
    """Field bag for unregistered kinds found in imported documents."""


class HttpListenerData(NodeData):
    port: int | None = None
    path: str | None = None
    cert_path: str | None = None
    key_path: str | None = None


class TcpListenerData(NodeData):
    port: int | None = None
    cert_path: str | None = None
    key_path: str | None = None


class FileReaderData(NodeData):
    path: str | None = None
    pattern: str | None = None


class DatabasePollerData(NodeData):
    query: str | None = None
    interval: int | None = None


class InjectionNodeData(NodeData):
    """Manual message injection node."""

    payload_type: str | None = Field(default=None, alias="payloadType")
    payload: str | None = None
    send_mode: str | None = Field(default=None, alias="sendMode")
    tcp_host: str | None = Field(default=None, alias="tcpHost")
    tcp_port: str | None = Field(default=None, alias="tcpPort")
    tcp_timeout: str | None = Field(default=None, alias="tcpTimeout")
    url: str | None = None


class LuaScriptData(NodeData):
    code: str | None = None


class MapperData(NodeData):
    mappings: list[dict[str, Any]] | None = None


class FilterData(NodeData):
    condition: str | None = None


class RouterData(NodeData):
    routes: list[dict[str, Any]] | None = None


class Hl7ParserData(NodeData):
    input_format: str | None = Field(default=None, alias="inputFormat")
    output_format: str | None = Field(default=None, alias="outputFormat")


class FileWriterData(NodeData):
    path: str | None = None
    filename: str | None = None
    append: bool | None = None
    encoding: str | None = None


class HttpSenderData(NodeData):
    url: str | None = None
    method: str | None = None


class DatabaseWriterData(NodeData):
    table: str | None = None
    mode: str | None = None
    query: str | None = None


class TcpSenderData(NodeData):
    host: str | None = None
    port: int | None = None


class LuaDestinationData(NodeData):
    code: str | None = None


class IpNodeData(NodeData):
    ip: str | None = None
    subnet: str | None = None


class PortNodeData(NodeData):
    port: int | None = None
    protocol: str | None = None


class TextNodeData(NodeData):
    text: str | None = None
    is_template: bool | None = Field(default=None, alias="isTemplate")
    value: str | None = None


class VariableNodeData(NodeData):
    variables: list[dict[str, Any]] | None = None


class CommentNodeData(NodeData):
    text: str | None = None
    color: str | None = None


class DelayNodeData(NodeData):
    delay: int | None = None
    unit: str | None = None


class LoggerNodeData(NodeData):
    level: str | None = None
    prefix: str | None = None


class CounterNodeData(NodeData):
    count: int | None = None
    reset_interval: int | None = Field(default=None, alias="resetInterval")


class TimestampNodeData(NodeData):
    field: str | None = None
    format: str | None = None


class MergeNodeData(NodeData):
    mode: str | None = None
    separator: str | None = None


class DeployNodeData(NodeData):
    """Channel terminal marker; carries only a label."""


# =============================================================================
# Graph elements
# =============================================================================


@dataclass(frozen=True, slots=True)
class Node:
    """A node on the channel canvas.

    Frozen: store operations replace nodes rather than mutating them, so a
    Node handed to a caller never changes underneath it.

    ``type`` is kept as the raw string from the editor. Unregistered types
    survive import so the operator can see and delete them; they compile to
    documented defaults.
    """

    id: NodeID
    type: str
    position: Position
    data: NodeData
    # Editor-only keys (width, selected, ...) carried through import/export
    presentation: Mapping[str, Any] = field(default_factory=dict)

    @property
    def label(self) -> str | None:
        label = self.data.get("label")
        return label if isinstance(label, str) else None

    def data_dict(self) -> dict[str, Any]:
        return self.data.to_wire()

    def with_data(self, data: NodeData) -> Node:
        return replace(self, data=data)

    def with_position(self, position: Position) -> Node:
        return replace(self, position=position)

    def to_wire(self) -> dict[str, Any]:
        result: dict[str, Any] = dict(copy.deepcopy(dict(self.presentation)))
        result.update(
            {
                "id": self.id,
                "type": self.type,
                "position": self.position.to_wire(),
                "data": self.data.to_wire(),
            }
        )
        return result


@dataclass(frozen=True, slots=True)
class Edge:
    """A directed connection between two nodes.

    An edge whose target handle starts with ``config-`` is a configuration
    edge: it injects a value into one field of the target instead of
    carrying messages.
    """

    id: EdgeID
    source: NodeID
    target: NodeID
    source_handle: str | None = None
    target_handle: str | None = None
    presentation: Mapping[str, Any] = field(default_factory=dict)

    @property
    def is_config(self) -> bool:
        return is_config_handle(self.target_handle)

    @property
    def config_field(self) -> str | None:
        """Name of the target field this edge drives, for configuration edges."""
        if self.target_handle is None or not self.is_config:
            return None
        return self.target_handle[len(CONFIG_HANDLE_PREFIX) :]

    def touches(self, node_id: str) -> bool:
        return self.source == node_id or self.target == node_id

    def to_wire(self) -> dict[str, Any]:
        result: dict[str, Any] = dict(copy.deepcopy(dict(self.presentation)))
        result.update({"id": self.id, "source": self.source, "target": self.target})
        if self.source_handle is not None:
            result["sourceHandle"] = self.source_handle
        if self.target_handle is not None:
            result["targetHandle"] = self.target_handle
        return result


def is_config_handle(handle: str | None) -> bool:
    return handle is not None and handle.startswith(CONFIG_HANDLE_PREFIX)


def config_handle(field_name: str) -> str:
    """Target handle name for a configuration edge driving ``field_name``."""
    return f"{CONFIG_HANDLE_PREFIX}{field_name}"
