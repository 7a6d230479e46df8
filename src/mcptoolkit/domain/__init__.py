"""Domain model for the MCP toolkit core."""
