"""Binding domain exports."""

from .value_objects import (
    Binding,
    LiteralValue,
    OverrideEntry,
    Project,
    SecretRef,
    override_from_wire,
    override_to_wire,
)

__all__ = [
    "Binding",
    "LiteralValue",
    "OverrideEntry",
    "Project",
    "SecretRef",
    "override_from_wire",
    "override_to_wire",
]
