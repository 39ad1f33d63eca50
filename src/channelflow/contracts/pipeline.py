"""Compiled pipeline specification: the contract handed to the execution engine.

Every config is a tagged union keyed by ``type``. The tag values and the
field names inside each ``config`` object (including the camelCase HL7
fields) mirror the backend's deserialization structs, so they are a wire
contract: rename only with a migration path on both sides.

All models are frozen. A PipelineSpec is built in one piece by the compiler
and never patched afterwards.
"""

from __future__ import annotations

from typing import Annotated, Any, Literal

from pydantic import BaseModel, ConfigDict, Field

_FROZEN = ConfigDict(frozen=True, populate_by_name=True)


class Mapping(BaseModel):
    """One field mapping for the mapper processor."""

    model_config = _FROZEN

    source: str
    target: str


class Route(BaseModel):
    """One authored route of a content router."""

    model_config = _FROZEN

    name: str
    condition: str


# =============================================================================
# Sources
# =============================================================================


class HttpListenerConfig(BaseModel):
    model_config = _FROZEN

    port: int
    path: str | None = None


class TcpListenerConfig(BaseModel):
    model_config = _FROZEN

    port: int


class FileReaderConfig(BaseModel):
    model_config = _FROZEN

    path: str
    pattern: str | None = None


class DatabasePollerConfig(BaseModel):
    model_config = _FROZEN

    query: str
    interval: int


class InjectionSourceConfig(BaseModel):
    model_config = _FROZEN

    payload_type: str
    payload: str


class HttpListenerSource(BaseModel):
    model_config = _FROZEN

    type: Literal["http_listener"] = "http_listener"
    config: HttpListenerConfig


class TcpListenerSource(BaseModel):
    model_config = _FROZEN

    type: Literal["tcp_listener"] = "tcp_listener"
    config: TcpListenerConfig


class FileReaderSource(BaseModel):
    model_config = _FROZEN

    type: Literal["file_reader"] = "file_reader"
    config: FileReaderConfig


class DatabasePollerSource(BaseModel):
    model_config = _FROZEN

    type: Literal["database_poller"] = "database_poller"
    config: DatabasePollerConfig


class InjectionSource(BaseModel):
    """Manual injection source, used only when no real listener exists."""

    model_config = _FROZEN

    type: Literal["test_source"] = "test_source"
    config: InjectionSourceConfig


SourceConfig = Annotated[
    HttpListenerSource | TcpListenerSource | FileReaderSource | DatabasePollerSource | InjectionSource,
    Field(discriminator="type"),
]


# =============================================================================
# Processors
# =============================================================================


class LuaScriptConfig(BaseModel):
    model_config = _FROZEN

    code: str


class MapperConfig(BaseModel):
    model_config = _FROZEN

    mappings: tuple[Mapping, ...] = ()


class FilterConfig(BaseModel):
    model_config = _FROZEN

    condition: str


class RouterConfig(BaseModel):
    model_config = _FROZEN

    routes: tuple[Route, ...] = ()


class Hl7ParserConfig(BaseModel):
    model_config = _FROZEN

    input_format: str = Field(alias="inputFormat")
    output_format: str = Field(alias="outputFormat")


class _StageBase(BaseModel):
    """Fields shared by every processor and destination entry."""

    model_config = _FROZEN

    id: str
    name: str


class LuaScriptProcessor(_StageBase):
    type: Literal["lua_script"] = "lua_script"
    config: LuaScriptConfig


class MapperProcessor(_StageBase):
    type: Literal["mapper"] = "mapper"
    config: MapperConfig


class FilterProcessor(_StageBase):
    type: Literal["filter"] = "filter"
    config: FilterConfig


class RouterProcessor(_StageBase):
    type: Literal["router"] = "router"
    config: RouterConfig


class Hl7ParserProcessor(_StageBase):
    type: Literal["hl7_parser"] = "hl7_parser"
    config: Hl7ParserConfig


ProcessorConfig = Annotated[
    LuaScriptProcessor | MapperProcessor | FilterProcessor | RouterProcessor | Hl7ParserProcessor,
    Field(discriminator="type"),
]


# =============================================================================
# Destinations
# =============================================================================


class HttpSenderConfig(BaseModel):
    model_config = _FROZEN

    url: str
    method: str


class FileWriterConfig(BaseModel):
    model_config = _FROZEN

    path: str
    filename: str | None = None


class DatabaseWriterConfig(BaseModel):
    model_config = _FROZEN

    table: str | None = None
    mode: str
    query: str | None = None


class TcpSenderConfig(BaseModel):
    model_config = _FROZEN

    host: str
    port: int


class LuaDestinationConfig(BaseModel):
    model_config = _FROZEN

    code: str


class HttpSenderDestination(_StageBase):
    type: Literal["http_sender"] = "http_sender"
    config: HttpSenderConfig


class FileWriterDestination(_StageBase):
    type: Literal["file_writer"] = "file_writer"
    config: FileWriterConfig


class DatabaseWriterDestination(_StageBase):
    type: Literal["database_writer"] = "database_writer"
    config: DatabaseWriterConfig


class TcpSenderDestination(_StageBase):
    type: Literal["tcp_sender"] = "tcp_sender"
    config: TcpSenderConfig


class LuaDestination(_StageBase):
    type: Literal["lua_destination"] = "lua_destination"
    config: LuaDestinationConfig


DestinationConfig = Annotated[
    HttpSenderDestination | FileWriterDestination | DatabaseWriterDestination | TcpSenderDestination | LuaDestination,
    Field(discriminator="type"),
]


# =============================================================================
# Channel
# =============================================================================


class PipelineSpec(BaseModel):
    """A compiled channel: one source, ordered processors, destinations.

    Produced by GraphCompiler.compile(). Equal graphs and metadata always
    produce equal specs, and equal specs always produce the same fingerprint.
    """

    model_config = _FROZEN

    id: str
    name: str
    enabled: bool = True
    source: SourceConfig
    processors: tuple[ProcessorConfig, ...] = ()
    destinations: tuple[DestinationConfig, ...] = ()
    error_destination: DestinationConfig | None = None
    max_retries: int = 3

    def to_wire(self) -> dict[str, Any]:
        """Serialize to the JSON-safe dict the backend deserializes."""
        return self.model_dump(mode="json", by_alias=True)

    def fingerprint(self) -> str:
        """Stable SHA-256 of the canonical wire form."""
        from channelflow.core.canonical import stable_hash

        return stable_hash(self.to_wire())
