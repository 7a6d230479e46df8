"""Binding management and environment resolution."""

from .resolver import BindingResolver, Disabled, Resolution, ResolvedEnvironment
from .service import BindingService, coerce_overrides

__all__ = [
    "BindingResolver",
    "BindingService",
    "Disabled",
    "Resolution",
    "ResolvedEnvironment",
    "coerce_overrides",
]
