"""Node kinds and categories shared across the graph, compiler and CLI.

NodeKind values are the ``type`` tags written by the channel editor. They are
persisted in exported documents, so renaming one breaks every saved channel.
"""

from enum import StrEnum


class NodeCategory(StrEnum):
    """Pipeline role of a node, derived from its kind.

    Never stored; always computed from the classification table in
    ``channelflow.core.graph.registry``.
    """

    SOURCE = "source"
    PROCESSOR = "processor"
    DESTINATION = "destination"
    UTILITY = "utility"


class NodeKind(StrEnum):
    """Registered node types (the closed set accepted by the graph store)."""

    # Sources
    HTTP_LISTENER = "httpListener"
    TCP_LISTENER = "tcpListener"
    FILE_READER = "fileReader"
    DATABASE_POLLER = "databasePoller"
    TEST_NODE = "testNode"

    # Processors
    LUA_SCRIPT = "luaScript"
    MAPPER = "mapper"
    FILTER = "filter"
    ROUTER = "router"
    HL7_PARSER = "hl7Parser"

    # Destinations
    FILE_WRITER = "fileWriter"
    HTTP_SENDER = "httpSender"
    DATABASE_WRITER = "databaseWriter"
    TCP_SENDER = "tcpSender"
    LUA_DESTINATION = "luaDestination"

    # Utilities
    IP_NODE = "ipNode"
    PORT_NODE = "portNode"
    TEXT_NODE = "textNode"
    VARIABLE_NODE = "variableNode"
    COMMENT_NODE = "commentNode"
    DELAY_NODE = "delayNode"
    LOGGER_NODE = "loggerNode"
    COUNTER_NODE = "counterNode"
    TIMESTAMP_NODE = "timestampNode"
    MERGE_NODE = "mergeNode"
    DEPLOY_NODE = "deployNode"
