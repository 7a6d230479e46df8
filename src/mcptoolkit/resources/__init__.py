"""Packaged resources (JSON schemas) for the MCP toolkit."""
