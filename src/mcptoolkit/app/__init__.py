"""Application services of the MCP toolkit core."""
