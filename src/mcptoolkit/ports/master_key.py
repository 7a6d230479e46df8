"""Port for the secure storage that holds the vault master key."""

from __future__ import annotations

from abc import ABC, abstractmethod

MASTER_KEY_BYTES = 32


class MasterKeyProvider(ABC):
    """Supplies the 256-bit key that seals every vaulted secret."""

    @abstractmethod
    def load(self) -> bytes:
        """Return exactly 32 bytes of key material or raise MasterKeyError."""


__all__ = ["MASTER_KEY_BYTES", "MasterKeyProvider"]
