"""Application service for activating MCP servers inside projects."""

from __future__ import annotations

from dataclasses import dataclass, replace
from typing import Any, Iterable, List, Mapping, Union

from mcptoolkit.domain.bindings import (
    Binding,
    LiteralValue,
    OverrideEntry,
    Project,
    SecretRef,
    override_from_wire,
)
from mcptoolkit.domain.catalog import CatalogStore
from mcptoolkit.domain.errors import ValidationError

OverrideInput = Union[OverrideEntry, Mapping[str, Any]]


def coerce_overrides(items: Iterable[OverrideInput]) -> tuple[OverrideEntry, ...]:
    """Accept tagged overrides or ``{key, value, is_secret}`` payloads."""

    if isinstance(items, (str, bytes, Mapping)):
        raise ValidationError("overrides must be a list of entries")
    entries: list[OverrideEntry] = []
    for item in items:
        if isinstance(item, (LiteralValue, SecretRef)):
            entries.append(item)
        else:
            entries.append(override_from_wire(item))
    return tuple(entries)


@dataclass
class BindingService:
    """Project registry plus binding mutations, all routed through the store."""

    store: CatalogStore

    def add_project(self, name: str, path: str) -> Project:
        return self.store.add_project(Project.create(name, path))

    def list_projects(self) -> List[Project]:
        return self.store.list_projects()

    def remove_project(self, project_id: str) -> bool:
        return self.store.remove_project(project_id)

    def activate(
        self,
        project_id: str,
        mcp_id: str,
        overrides: Iterable[OverrideInput] = (),
        *,
        enabled: bool = True,
        replace_existing: bool = False,
    ) -> Binding:
        binding = Binding.create(project_id, mcp_id, coerce_overrides(overrides), enabled=enabled)
        return self.store.add_binding(binding, replace=replace_existing)

    def list_for_project(self, project_id: str) -> List[Binding]:
        self.store.get_project(project_id)
        return self.store.list_bindings(project_id)

    def set_enabled(self, project_id: str, mcp_id: str, enabled: bool) -> Binding:
        current = self.store.get_binding(project_id, mcp_id)
        return self.store.update_binding(replace(current, enabled=enabled))

    def set_overrides(self, project_id: str, mcp_id: str, overrides: Iterable[OverrideInput]) -> Binding:
        current = self.store.get_binding(project_id, mcp_id)
        return self.store.update_binding(replace(current, overrides=coerce_overrides(overrides)))

    def deactivate(self, project_id: str, mcp_id: str) -> bool:
        binding = self.store.find_binding(project_id, mcp_id)
        if binding is None:
            return False
        return self.store.remove_binding(binding.id)


__all__ = ["BindingService", "OverrideInput", "coerce_overrides"]
