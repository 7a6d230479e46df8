"""Encrypted key/value store for credentials referenced by bindings."""

from __future__ import annotations

import json
import os
import threading
from pathlib import Path
from typing import Dict, List

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.ciphers.aead import AESGCM

from mcptoolkit.domain.errors import (
    DecryptionFailure,
    MasterKeyError,
    SecretNotFound,
    StorageError,
    ValidationError,
)
from mcptoolkit.domain.ids import generate_id, utc_timestamp
from mcptoolkit.domain.secrets import SealedSecret, SecretMetadata
from mcptoolkit.ports.master_key import MASTER_KEY_BYTES, MasterKeyProvider
from mcptoolkit.utils.files import atomic_write

NONCE_SIZE = 12
TAG_SIZE = 16
VAULT_VERSION = 1


class SecretsVault:
    """AES-256-GCM sealed secrets addressed by a unique key.

    Only ``put``/``delete`` mutate state; they are serialised by one lock and
    publish a new records map only after it has been persisted, so readers
    always iterate a map that no longer changes.
    ``resolve`` is the single path that yields plaintext; it reads an immutable
    record and needs no lock. The master key is requested from the provider at
    most once per vault and only the cipher object is retained.
    """

    def __init__(self, path: Path, key_provider: MasterKeyProvider) -> None:
        self._path = path
        self._key_provider = key_provider
        self._lock = threading.Lock()
        self._cipher: AESGCM | None = None
        self._records: Dict[str, SealedSecret] = {}
        self._load()

    @property
    def path(self) -> Path:
        return self._path

    def put(self, key: str, plaintext: str) -> SecretMetadata:
        """Create or overwrite the secret stored under ``key``."""

        if not isinstance(key, str) or not key.strip():
            raise ValidationError("secret key must be a non-empty string")
        if not isinstance(plaintext, str) or plaintext == "":
            raise ValidationError("secret value must be a non-empty string")
        with self._lock:
            cipher = self._cipher_locked()
            nonce = os.urandom(NONCE_SIZE)
            sealed = nonce + cipher.encrypt(nonce, plaintext.encode("utf-8"), key.encode("utf-8"))
            existing = self._records.get(key)
            record = SealedSecret(
                id=existing.id if existing else generate_id("sec"),
                key=key,
                sealed=sealed,
                created_at=existing.created_at if existing else utc_timestamp(),
            )
            records = dict(self._records)
            records[key] = record
            self._persist(records)
            self._records = records
        return record.metadata

    def list(self) -> List[SecretMetadata]:
        return [record.metadata for record in self._records.values()]

    def resolve(self, key: str) -> str:
        """Return the plaintext for ``key``; reserved for the binding resolver."""

        record = self._records.get(key)
        if record is None:
            raise SecretNotFound(key)
        cipher = self._cipher_for_read()
        if len(record.sealed) < NONCE_SIZE + TAG_SIZE:
            raise DecryptionFailure(key)
        nonce, ciphertext = record.sealed[:NONCE_SIZE], record.sealed[NONCE_SIZE:]
        try:
            plaintext = cipher.decrypt(nonce, ciphertext, key.encode("utf-8"))
            return plaintext.decode("utf-8")
        except (InvalidTag, UnicodeDecodeError) as exc:
            raise DecryptionFailure(key) from exc

    def delete(self, secret_id: str) -> bool:
        with self._lock:
            target = next((record for record in self._records.values() if record.id == secret_id), None)
            if target is None:
                return False
            records = dict(self._records)
            del records[target.key]
            self._persist(records)
            self._records = records
        return True

    def flush(self) -> None:
        with self._lock:
            self._persist(self._records)

    def __repr__(self) -> str:
        return f"SecretsVault(path={self._path!s}, secrets={len(self._records)})"

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _cipher_for_read(self) -> AESGCM:
        cipher = self._cipher
        if cipher is not None:
            return cipher
        with self._lock:
            return self._cipher_locked()

    def _cipher_locked(self) -> AESGCM:
        if self._cipher is None:
            key = self._key_provider.load()
            if len(key) != MASTER_KEY_BYTES:
                raise MasterKeyError(f"master key must be {MASTER_KEY_BYTES} bytes")
            self._cipher = AESGCM(key)
        return self._cipher

    def _load(self) -> None:
        if not self._path.exists():
            return
        try:
            raw = json.loads(self._path.read_text(encoding="utf-8"))
        except json.JSONDecodeError as exc:
            raise StorageError(f"secrets file {self._path} is not valid JSON: {exc}") from exc
        entries = raw.get("secrets", []) if isinstance(raw, dict) else []
        records: Dict[str, SealedSecret] = {}
        for item in entries:
            if not isinstance(item, dict):
                raise StorageError(f"secrets file {self._path} has a malformed record")
            record = SealedSecret.from_dict(item)
            records[record.key] = record
        self._records = records

    def _persist(self, records: Dict[str, SealedSecret]) -> None:
        payload = {
            "version": VAULT_VERSION,
            "secrets": [record.to_dict() for record in records.values()],
        }
        atomic_write(self._path, json.dumps(payload, ensure_ascii=False, indent=2) + "\n", mode=0o600)


__all__ = ["NONCE_SIZE", "SecretsVault"]
