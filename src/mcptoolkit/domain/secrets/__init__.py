"""Secret domain exports."""

from .value_objects import SealedSecret, SecretMetadata

__all__ = ["SealedSecret", "SecretMetadata"]
