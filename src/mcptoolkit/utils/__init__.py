"""Shared helpers for the MCP toolkit."""
