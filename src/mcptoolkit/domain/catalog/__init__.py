"""Catalog domain: MCP server descriptors and their store."""

from .store import CatalogStore
from .value_objects import (
    BinaryTransport,
    DockerTransport,
    HttpTransport,
    McpDescriptor,
    Transport,
    TransportKind,
)

__all__ = [
    "BinaryTransport",
    "CatalogStore",
    "DockerTransport",
    "HttpTransport",
    "McpDescriptor",
    "Transport",
    "TransportKind",
]
