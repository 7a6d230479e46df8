"""Ports to collaborators outside the toolkit core."""
