"""Master key providers backed by the environment, a key file or memory."""

from __future__ import annotations

import base64
import binascii
import os
from pathlib import Path

from cryptography.hazmat.primitives.ciphers.aead import AESGCM

from mcptoolkit.domain.errors import MasterKeyError
from mcptoolkit.ports.master_key import MASTER_KEY_BYTES, MasterKeyProvider
from mcptoolkit.settings import RuntimeSettings
from mcptoolkit.utils.files import atomic_write

MASTER_KEY_ENV = "MCPTOOLKIT_MASTER_KEY"


class StaticMasterKeyProvider(MasterKeyProvider):
    """Holds a key supplied by the caller (tests, embedding applications)."""

    def __init__(self, key: bytes) -> None:
        self._key = _checked(key, "static master key")

    def load(self) -> bytes:
        return self._key

    def __repr__(self) -> str:
        return "StaticMasterKeyProvider(<redacted>)"


class EnvMasterKeyProvider(MasterKeyProvider):
    """Reads a base64 or hex encoded key from an environment variable."""

    def __init__(self, var: str = MASTER_KEY_ENV) -> None:
        self._var = var

    def load(self) -> bytes:
        value = os.environ.get(self._var, "").strip()
        if not value:
            raise MasterKeyError(f"environment variable '{self._var}' is not set")
        return _checked(_decode_key_bytes(value), f"environment variable '{self._var}'")


class FileMasterKeyProvider(MasterKeyProvider):
    """Loads the key from a private file, generating one on first use."""

    def __init__(self, path: Path) -> None:
        self._path = path

    @property
    def path(self) -> Path:
        return self._path

    def load(self) -> bytes:
        if self._path.exists():
            encoded = self._path.read_text(encoding="utf-8").strip()
            decoded = _try_base64(encoded)
            if decoded is None:
                raise MasterKeyError(f"master key file {self._path} is not valid base64")
            return _checked(decoded, f"master key file {self._path}")
        key = AESGCM.generate_key(bit_length=256)
        atomic_write(self._path, base64.b64encode(key).decode("ascii") + "\n", mode=0o600)
        return key


def build_master_key_provider(settings: RuntimeSettings) -> MasterKeyProvider:
    if os.environ.get(MASTER_KEY_ENV, "").strip():
        return EnvMasterKeyProvider(MASTER_KEY_ENV)
    return FileMasterKeyProvider(settings.master_key_file)


def _checked(key: bytes, source: str) -> bytes:
    if len(key) != MASTER_KEY_BYTES:
        raise MasterKeyError(f"{source} must hold exactly {MASTER_KEY_BYTES} bytes, got {len(key)}")
    return bytes(key)


def _decode_key_bytes(secret: str) -> bytes:
    for decoder in (_try_hex, _try_base64):
        decoded = decoder(secret)
        if decoded is not None and len(decoded) == MASTER_KEY_BYTES:
            return decoded
    raise MasterKeyError("master key must be 32 bytes encoded as base64 or hex")


def _try_base64(value: str) -> bytes | None:
    try:
        return base64.b64decode(value, validate=True)
    except (ValueError, binascii.Error):
        return None


def _try_hex(value: str) -> bytes | None:
    try:
        return bytes.fromhex(value)
    except ValueError:
        return None


__all__ = [
    "EnvMasterKeyProvider",
    "FileMasterKeyProvider",
    "MASTER_KEY_ENV",
    "StaticMasterKeyProvider",
    "build_master_key_provider",
]
