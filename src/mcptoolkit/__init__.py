"""MCP Toolkit: server catalog, project bindings and encrypted secrets."""

__version__ = "0.3.0"
