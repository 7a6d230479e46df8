"""Catalog import and management services."""

from .normalizer import Classified, NormalizationResult, Rejected, RejectionReason, normalize
from .service import CatalogService

__all__ = [
    "CatalogService",
    "Classified",
    "NormalizationResult",
    "Rejected",
    "RejectionReason",
    "normalize",
]
