"""Value objects for vaulted secrets."""

from __future__ import annotations

import base64
import binascii
from dataclasses import dataclass, field
from typing import Any, Dict, Mapping

from mcptoolkit.domain.errors import StorageError


@dataclass(frozen=True)
class SecretMetadata:
    """Public view of a secret: never carries the value."""

    id: str
    key: str
    created_at: str

    def to_dict(self) -> Dict[str, Any]:
        return {"id": self.id, "key": self.key, "created_at": self.created_at}


@dataclass(frozen=True)
class SealedSecret:
    """Persisted secret: ``sealed`` is nonce + ciphertext + tag."""

    id: str
    key: str
    sealed: bytes = field(repr=False)
    created_at: str = ""

    @property
    def metadata(self) -> SecretMetadata:
        return SecretMetadata(id=self.id, key=self.key, created_at=self.created_at)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "key": self.key,
            "ciphertext": base64.b64encode(self.sealed).decode("ascii"),
            "created_at": self.created_at,
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "SealedSecret":
        if "id" not in data or "key" not in data:
            raise StorageError("secret record is missing its id or key")
        try:
            sealed = base64.b64decode(str(data.get("ciphertext", "")), validate=True)
        except (binascii.Error, ValueError):
            # Unreadable bytes surface as an authentication failure on resolve.
            sealed = b""
        return cls(
            id=str(data["id"]),
            key=str(data["key"]),
            sealed=sealed,
            created_at=str(data.get("created_at") or ""),
        )


__all__ = ["SealedSecret", "SecretMetadata"]
