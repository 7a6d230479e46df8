"""Adapters implementing toolkit ports."""
