# iedbridge/bridge/__init__.py
"""
Text bridge: PATH=VALUE lines from an external process to typed updates.

Modules:
- line_source: cancellable line input
- value_inference: text to typed value strategies
- ingest: the ingest loop
"""

from iedbridge.bridge.ingest import BridgeIngestLoop, PendingCommand, parse_command
from iedbridge.bridge.line_source import LineSource, StreamLineSource
from iedbridge.bridge.value_inference import (
    HeuristicInference,
    SchemaInference,
    ValueInference,
    create_strategy,
)

__all__ = [
    "BridgeIngestLoop",
    "PendingCommand",
    "parse_command",
    "LineSource",
    "StreamLineSource",
    "HeuristicInference",
    "SchemaInference",
    "ValueInference",
    "create_strategy",
]
