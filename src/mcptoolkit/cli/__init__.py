"""Command line interface for the MCP toolkit."""
