"""Application service for previewing, importing and managing MCP descriptors."""

from __future__ import annotations

import json
from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Mapping, Sequence

from mcptoolkit.domain.catalog import (
    BinaryTransport,
    CatalogStore,
    HttpTransport,
    McpDescriptor,
    Transport,
)
from mcptoolkit.domain.errors import DescriptorNotFound, InvalidConfig
from mcptoolkit.settings import DEFAULT_MAX_IMPORT_BYTES, RuntimeSettings

from .normalizer import SERVERS_KEY, Classified, NormalizationResult, Rejected, normalize


@dataclass
class CatalogService:
    """Coordinates normalisation and persistence of MCP server descriptors."""

    store: CatalogStore
    max_import_bytes: int = DEFAULT_MAX_IMPORT_BYTES

    def preview(self, raw_text: str) -> List[NormalizationResult]:
        return normalize(raw_text, max_bytes=self.max_import_bytes)

    def import_batch(self, accepted: Iterable[NormalizationResult]) -> List[str]:
        """Persist every accepted entry or none; returns the new descriptor ids."""

        descriptors: List[McpDescriptor] = []
        for result in accepted:
            if isinstance(result, Rejected):
                raise result.to_error()
            descriptors.append(result.to_descriptor())
        if not descriptors:
            return []
        return self.store.add_descriptors(descriptors)

    def import_text(self, raw_text: str, *, only: Sequence[str] | None = None) -> List[str]:
        """Preview ``raw_text`` and import its classified entries (optionally by name)."""

        results = self.preview(raw_text)
        classified = [result for result in results if isinstance(result, Classified)]
        if only:
            wanted = set(only)
            missing = wanted - {result.name for result in classified}
            if missing:
                raise InvalidConfig(f"not importable: {', '.join(sorted(missing))}")
            classified = [result for result in classified if result.name in wanted]
        return self.import_batch(classified)

    def create(self, name: str, transport: Transport, env: Mapping[str, str] | None = None) -> McpDescriptor:
        descriptor = McpDescriptor.create(name, transport, env)
        self.store.add_descriptors([descriptor])
        return descriptor

    def update(
        self,
        reference: str,
        *,
        name: str | None = None,
        transport: Transport | None = None,
        env: Mapping[str, str] | None = None,
    ) -> McpDescriptor:
        """Replace the whole descriptor; the transport kind must not change."""

        current = self.get(reference)
        updated = McpDescriptor(
            id=current.id,
            name=name if name is not None else current.name,
            transport=transport if transport is not None else current.transport,
            env=dict(env) if env is not None else dict(current.env),
            created_at=current.created_at,
        )
        return self.store.replace_descriptor(updated)

    def get(self, reference: str) -> McpDescriptor:
        """Look a descriptor up by id, falling back to its catalog name."""

        try:
            return self.store.get_descriptor(reference)
        except DescriptorNotFound:
            descriptor = self.store.find_descriptor(reference)
            if descriptor is None:
                raise
            return descriptor

    def get_by_name(self, name: str) -> McpDescriptor:
        descriptor = self.store.find_descriptor(name)
        if descriptor is None:
            raise DescriptorNotFound(name)
        return descriptor

    def list(self) -> List[McpDescriptor]:
        return self.store.list_descriptors()

    def delete(self, reference: str) -> bool:
        try:
            descriptor = self.get(reference)
        except DescriptorNotFound:
            return False
        return self.store.remove_descriptor(descriptor.id)

    def export_config(self, names: Sequence[str] | None = None) -> str:
        """Render descriptors as an ``mcpServers`` document that imports back unchanged."""

        descriptors = self.list()
        if names:
            descriptors = [self.get(name) for name in names]
        servers: Dict[str, Dict[str, Any]] = {}
        for descriptor in descriptors:
            servers[descriptor.name] = _export_entry(descriptor)
        return json.dumps({SERVERS_KEY: servers}, ensure_ascii=False, indent=2)

    @classmethod
    def for_settings(cls, settings: RuntimeSettings) -> "CatalogService":
        return cls(CatalogStore(settings.catalog_file), max_import_bytes=settings.max_import_bytes)


def _export_entry(descriptor: McpDescriptor) -> Dict[str, Any]:
    transport = descriptor.transport
    if isinstance(transport, BinaryTransport):
        entry: Dict[str, Any] = {"command": transport.command, "args": list(transport.args)}
        if descriptor.env:
            entry["env"] = dict(descriptor.env)
        return entry
    if isinstance(transport, HttpTransport):
        return {"url": transport.url}
    return {"docker_image": transport.image}


__all__ = ["CatalogService"]
