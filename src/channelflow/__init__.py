"""
channelflow: visual message-channel graphs compiled to pipeline configs.

The core behind a node/edge channel editor: graph storage with referential
integrity, connection rules, configuration-edge resolution, and the compiler
that turns a drawing into the configuration consumed by the execution engine.
"""

__version__ = "0.1.0"
