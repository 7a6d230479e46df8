"""Resolution of a project binding into the environment handed to a launcher."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Iterator, Mapping, Protocol, Union

from mcptoolkit.domain.bindings import LiteralValue, OverrideEntry
from mcptoolkit.domain.catalog import CatalogStore, McpDescriptor, Transport, TransportKind
from mcptoolkit.domain.errors import SecretNotFound, UnresolvedSecretReference


class SecretSource(Protocol):
    def resolve(self, key: str) -> str:
        ...


@dataclass(frozen=True)
class Disabled:
    """Returned instead of an environment when the binding is switched off."""

    binding_id: str
    project_id: str
    mcp_id: str


class ResolvedEnvironment(Mapping[str, str]):
    """Final key -> plaintext map for one launch.

    Values may contain decrypted secrets: ``repr`` shows key names only and
    the object offers no serialisation helpers. Hand it to the launcher and
    drop it.
    """

    __slots__ = ("_values", "descriptor", "binding_id")

    def __init__(self, values: Dict[str, str], *, descriptor: McpDescriptor, binding_id: str) -> None:
        self._values = dict(values)
        self.descriptor = descriptor
        self.binding_id = binding_id

    @property
    def transport(self) -> Transport:
        return self.descriptor.transport

    @property
    def transport_kind(self) -> TransportKind:
        return self.descriptor.kind

    def __getitem__(self, key: str) -> str:
        return self._values[key]

    def __iter__(self) -> Iterator[str]:
        return iter(self._values)

    def __len__(self) -> int:
        return len(self._values)

    def as_dict(self) -> Dict[str, str]:
        return dict(self._values)

    def __repr__(self) -> str:
        keys = ", ".join(self._values)
        return f"ResolvedEnvironment({self.descriptor.name}: [{keys}])"

    __str__ = __repr__


Resolution = Union[ResolvedEnvironment, Disabled]


class BindingResolver:
    """Merges descriptor defaults with binding overrides.

    Precedence, lowest to highest: the descriptor's base environment, then each
    override in authored order (a later entry wins over an earlier one with the
    same key). Secret references are decrypted through the vault at this point
    and nowhere else. Disabled bindings return before the vault is touched.
    Any missing secret fails the whole resolution; no partial map escapes.
    Nothing here writes to the store or the vault.
    """

    def __init__(self, store: CatalogStore, secrets: SecretSource) -> None:
        self._store = store
        self._secrets = secrets

    def resolve(self, project_id: str, mcp_id: str) -> Resolution:
        binding = self._store.get_binding(project_id, mcp_id)
        if not binding.enabled:
            return Disabled(binding_id=binding.id, project_id=project_id, mcp_id=mcp_id)

        descriptor = self._store.get_descriptor(binding.mcp_id)
        environment = dict(descriptor.env)
        for entry in binding.overrides:
            environment[entry.key] = self._value_for(entry)
        return ResolvedEnvironment(environment, descriptor=descriptor, binding_id=binding.id)

    def resolve_project(self, project_id: str) -> Dict[str, ResolvedEnvironment]:
        """Resolve every enabled binding of a project, keyed by server name."""

        resolved: Dict[str, ResolvedEnvironment] = {}
        for binding in self._store.list_bindings(project_id):
            result = self.resolve(project_id, binding.mcp_id)
            if isinstance(result, ResolvedEnvironment):
                resolved[result.descriptor.name] = result
        return resolved

    def _value_for(self, entry: OverrideEntry) -> str:
        if isinstance(entry, LiteralValue):
            return entry.value
        try:
            return self._secrets.resolve(entry.secret_key)
        except SecretNotFound as exc:
            raise UnresolvedSecretReference(entry.key, entry.secret_key) from exc


__all__ = ["BindingResolver", "Disabled", "Resolution", "ResolvedEnvironment", "SecretSource"]
