"""Effective values for fields that utility nodes can drive.

A field is either authored on the node itself or driven through a
configuration edge whose target handle is ``config-<field>``. Text nodes
marked as templates substitute ``${Label}`` placeholders with the values of
the nodes wired into them, recursively.

Resolution reads the graph only. The one write, refresh_cached_values(),
stores each text node's resolved string in its ``value`` field for display;
the compiler never reads that cache.
"""

from __future__ import annotations

import re
from typing import TYPE_CHECKING, Any

import structlog

from channelflow.contracts.enums import NodeKind
from channelflow.core.graph.models import Edge, Node, config_handle
from channelflow.core.graph.registry import as_kind

if TYPE_CHECKING:
    from channelflow.core.graph.store import GraphStore

logger = structlog.get_logger(__name__)

_PLACEHOLDER = re.compile(r"\$\{([^}]*)\}")

# Kinds whose output can drive another node's field
_VALUE_PROVIDERS = frozenset({NodeKind.PORT_NODE, NodeKind.IP_NODE, NodeKind.TEXT_NODE})

# Shown in templates in place of a variable set, which has no single value
VARIABLES_PLACEHOLDER = "[Variables]"


def stringify(value: Any) -> str:
    """Render a field value the way the editor displays it inside text."""
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


def _first_present(*values: Any) -> Any:
    for value in values:
        if value is not None:
            return value
    return None


class ConfigResolver:
    """Resolves dynamic fields and templates against one store."""

    def __init__(self, store: GraphStore) -> None:
        self._store = store

    def config_edge(self, node: Node, field: str) -> Edge | None:
        """First configuration edge driving ``field`` on ``node``, if any."""
        handle = config_handle(field)
        for edge in self._store.incoming_edges(node.id):
            if edge.target_handle == handle:
                return edge
        return None

    def resolve(self, node: Node, field: str) -> Any:
        """Effective value of ``field``: the driving node's output, else the stored value.

        Only port, IP and text nodes supply values to other nodes. A config
        edge from any other kind leaves the stored value in place.
        """
        static = node.data.get(field)
        edge = self.config_edge(node, field)
        if edge is None:
            return static

        provider = self._store.find_node(edge.source)
        if provider is None:
            logger.debug("Config source missing, using stored value", node_id=node.id, field=field)
            return static

        if as_kind(provider.type) not in _VALUE_PROVIDERS:
            logger.debug(
                "Config source supplies no values, using stored value",
                node_id=node.id,
                field=field,
                source_type=provider.type,
            )
            return static

        produced = self._produced_value(provider)
        if produced is None:
            logger.debug(
                "Config source has no value, using stored value",
                node_id=node.id,
                field=field,
                source_id=provider.id,
            )
            return static
        return produced

    def produced_value(self, provider: Node) -> Any:
        """What ``provider`` shows as its value: its typed output, else ``value ?? text ?? label``."""
        if as_kind(provider.type) in _VALUE_PROVIDERS:
            return self._produced_value(provider)
        data = provider.data
        return _first_present(data.get("value"), data.get("text"), data.get("label"))

    def resolve_text(self, node: Node) -> str:
        """Resolved string of a text node (raw text unless it is a template)."""
        text, _ = self._resolve_text(node, frozenset(), {})
        return text

    def refresh_cached_values(self) -> int:
        """Write every text node's resolved string to its ``value`` field.

        Returns:
            Number of nodes whose cached value changed
        """
        changed = 0
        for node in self._store.nodes:
            if as_kind(node.type) != NodeKind.TEXT_NODE:
                continue
            resolved = self.resolve_text(node)
            if node.data.get("value") != resolved:
                self._store.update_field(node.id, "value", resolved)
                changed += 1
        return changed

    # -------------------------------------------------------------------------
    # Internals
    # -------------------------------------------------------------------------

    def _produced_value(self, provider: Node) -> Any:
        kind = as_kind(provider.type)
        data = provider.data
        if kind == NodeKind.PORT_NODE:
            return data.get("port")
        if kind == NodeKind.IP_NODE:
            return data.get("ip")
        return self.resolve_text(provider)

    def _resolve_text(self, node: Node, path: frozenset[str], memo: dict[str, str]) -> tuple[str, bool]:
        """Resolve ``node``'s text; the flag is True if a template cycle was cut below it.

        Results that did not hit the cycle guard are the same from every
        path, so they are memoized for the rest of the call.
        """
        raw = stringify(node.data.get("text"))
        if not node.data.get("isTemplate"):
            return raw, False
        if node.id in memo:
            return memo[node.id], False
        if node.id in path:
            # Template cycle: stop substituting here
            logger.warning("Template cycle detected", node_id=node.id)
            return raw, True

        visiting = path | {node.id}
        substitutions: dict[str, str] = {}
        cut = False
        for edge in self._store.incoming_edges(node.id):
            provider = self._store.find_node(edge.source)
            if provider is None or not provider.label:
                continue
            if provider.label in substitutions:
                continue
            value, provider_cut = self._template_value(provider, visiting, memo)
            substitutions[provider.label] = value
            cut = cut or provider_cut

        def replace(match: re.Match[str]) -> str:
            label = match.group(1)
            if label in substitutions:
                return substitutions[label]
            return match.group(0)

        resolved = _PLACEHOLDER.sub(replace, raw)
        if not cut:
            memo[node.id] = resolved
        return resolved, cut

    def _template_value(self, provider: Node, path: frozenset[str], memo: dict[str, str]) -> tuple[str, bool]:
        kind = as_kind(provider.type)
        data = provider.data
        if kind == NodeKind.TEXT_NODE:
            return self._resolve_text(provider, path, memo)
        if kind == NodeKind.PORT_NODE:
            return stringify(data.get("port")), False
        if kind == NodeKind.IP_NODE:
            return stringify(data.get("ip")), False
        if kind == NodeKind.VARIABLE_NODE and data.get("variables") is not None:
            return VARIABLES_PLACEHOLDER, False
        return stringify(self.produced_value(provider)), False


def refresh_cached_values(store: GraphStore) -> int:
    """Convenience wrapper: refresh display values of every text node."""
    return ConfigResolver(store).refresh_cached_values()
