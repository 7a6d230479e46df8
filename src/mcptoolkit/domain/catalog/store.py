"""Durable store for projects, MCP descriptors and bindings."""

from __future__ import annotations

import threading
from contextlib import contextmanager
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Iterator, List, Sequence

import yaml

from mcptoolkit.domain.bindings import Binding, Project
from mcptoolkit.domain.errors import (
    BindingNotFound,
    DescriptorNotFound,
    DuplicateBinding,
    DuplicateDescriptor,
    ProjectNotFound,
    StorageError,
    ValidationError,
)
from mcptoolkit.utils.files import atomic_write

from .value_objects import McpDescriptor

STORE_VERSION = 1


@dataclass
class CatalogState:
    """One generation of catalog contents; never changed once published."""

    projects: Dict[str, Project] = field(default_factory=dict)
    descriptors: Dict[str, McpDescriptor] = field(default_factory=dict)
    bindings: Dict[str, Binding] = field(default_factory=dict)

    def copy(self) -> "CatalogState":
        return CatalogState(dict(self.projects), dict(self.descriptors), dict(self.bindings))

    def descriptor_named(self, name: str) -> McpDescriptor | None:
        for descriptor in self.descriptors.values():
            if descriptor.name == name:
                return descriptor
        return None

    def binding_for(self, project_id: str, mcp_id: str) -> Binding | None:
        for binding in self.bindings.values():
            if binding.project_id == project_id and binding.mcp_id == mcp_id:
                return binding
        return None

    def drop_bindings(self, *, project_id: str | None = None, mcp_id: str | None = None) -> None:
        self.bindings = {
            binding_id: binding
            for binding_id, binding in self.bindings.items()
            if binding.project_id != project_id and binding.mcp_id != mcp_id
        }


class CatalogStore:
    """Owns catalog state for the process.

    State is loaded from ``path`` on construction and written through on every
    successful mutation. Mutations hold a single writer lock and work on a
    private copy of the state; the copy is published with one assignment only
    after it has been persisted, so a failure leaves the previous state in
    place. Readers take whatever state is published and never see it change.
    """

    def __init__(self, path: Path) -> None:
        self._path = path
        self._lock = threading.Lock()
        self._state = self._load()

    @property
    def path(self) -> Path:
        return self._path

    # ------------------------------------------------------------------
    # Projects
    # ------------------------------------------------------------------

    def list_projects(self) -> List[Project]:
        return list(self._state.projects.values())

    def get_project(self, project_id: str) -> Project:
        project = self._state.projects.get(project_id)
        if project is None:
            raise ProjectNotFound(project_id)
        return project

    def add_project(self, project: Project) -> Project:
        with self._mutation() as draft:
            if project.id in draft.projects:
                raise ValidationError(f"project id '{project.id}' already exists")
            draft.projects[project.id] = project
        return project

    def remove_project(self, project_id: str) -> bool:
        if project_id not in self._state.projects:
            return False
        with self._mutation() as draft:
            if draft.projects.pop(project_id, None) is None:
                return False
            draft.drop_bindings(project_id=project_id)
        return True

    # ------------------------------------------------------------------
    # Descriptors
    # ------------------------------------------------------------------

    def list_descriptors(self) -> List[McpDescriptor]:
        return list(self._state.descriptors.values())

    def get_descriptor(self, mcp_id: str) -> McpDescriptor:
        descriptor = self._state.descriptors.get(mcp_id)
        if descriptor is None:
            raise DescriptorNotFound(mcp_id)
        return descriptor

    def find_descriptor(self, name: str) -> McpDescriptor | None:
        return self._state.descriptor_named(name)

    def add_descriptors(self, descriptors: Sequence[McpDescriptor]) -> List[str]:
        """Insert every descriptor or none of them."""

        with self._mutation() as draft:
            for descriptor in descriptors:
                if descriptor.id in draft.descriptors:
                    raise ValidationError(f"descriptor id '{descriptor.id}' already exists")
                if draft.descriptor_named(descriptor.name) is not None:
                    raise DuplicateDescriptor(descriptor.name)
                draft.descriptors[descriptor.id] = descriptor
        return [descriptor.id for descriptor in descriptors]

    def replace_descriptor(self, descriptor: McpDescriptor) -> McpDescriptor:
        with self._mutation() as draft:
            current = draft.descriptors.get(descriptor.id)
            if current is None:
                raise DescriptorNotFound(descriptor.id)
            if current.kind is not descriptor.kind:
                raise ValidationError(
                    f"transport kind of '{current.name}' is {current.kind.value} and cannot change",
                )
            holder = draft.descriptor_named(descriptor.name)
            if holder is not None and holder.id != descriptor.id:
                raise DuplicateDescriptor(descriptor.name)
            draft.descriptors[descriptor.id] = descriptor
        return descriptor

    def remove_descriptor(self, mcp_id: str) -> bool:
        if mcp_id not in self._state.descriptors:
            return False
        with self._mutation() as draft:
            if draft.descriptors.pop(mcp_id, None) is None:
                return False
            draft.drop_bindings(mcp_id=mcp_id)
        return True

    # ------------------------------------------------------------------
    # Bindings
    # ------------------------------------------------------------------

    def list_bindings(self, project_id: str | None = None) -> List[Binding]:
        return [
            binding
            for binding in self._state.bindings.values()
            if project_id is None or binding.project_id == project_id
        ]

    def find_binding(self, project_id: str, mcp_id: str) -> Binding | None:
        return self._state.binding_for(project_id, mcp_id)

    def get_binding(self, project_id: str, mcp_id: str) -> Binding:
        binding = self.find_binding(project_id, mcp_id)
        if binding is None:
            raise BindingNotFound(project_id, mcp_id)
        return binding

    def add_binding(self, binding: Binding, *, replace: bool = False) -> Binding:
        with self._mutation() as draft:
            if binding.project_id not in draft.projects:
                raise ProjectNotFound(binding.project_id)
            if binding.mcp_id not in draft.descriptors:
                raise DescriptorNotFound(binding.mcp_id)
            existing = draft.binding_for(binding.project_id, binding.mcp_id)
            if existing is not None:
                if not replace:
                    raise DuplicateBinding(binding.project_id, binding.mcp_id)
                del draft.bindings[existing.id]
                binding = Binding(
                    id=existing.id,
                    project_id=binding.project_id,
                    mcp_id=binding.mcp_id,
                    enabled=binding.enabled,
                    overrides=binding.overrides,
                )
            draft.bindings[binding.id] = binding
        return binding

    def update_binding(self, binding: Binding) -> Binding:
        with self._mutation() as draft:
            current = draft.bindings.get(binding.id)
            if current is None:
                raise BindingNotFound(binding.project_id, binding.mcp_id)
            if (current.project_id, current.mcp_id) != (binding.project_id, binding.mcp_id):
                raise ValidationError("a binding cannot be moved to another project or MCP server")
            draft.bindings[binding.id] = binding
        return binding

    def remove_binding(self, binding_id: str) -> bool:
        if binding_id not in self._state.bindings:
            return False
        with self._mutation() as draft:
            if draft.bindings.pop(binding_id, None) is None:
                return False
        return True

    def flush(self) -> None:
        with self._lock:
            self._persist(self._state)

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    @contextmanager
    def _mutation(self) -> Iterator[CatalogState]:
        with self._lock:
            draft = self._state.copy()
            yield draft
            self._persist(draft)
            self._state = draft

    def _load(self) -> CatalogState:
        state = CatalogState()
        if not self._path.exists():
            return state
        try:
            raw = yaml.safe_load(self._path.read_text(encoding="utf-8")) or {}
        except yaml.YAMLError as exc:
            raise StorageError(f"catalog file {self._path} is not valid YAML: {exc}") from exc
        if not isinstance(raw, dict):
            raise StorageError(f"catalog file {self._path} must contain a mapping")
        try:
            for item in raw.get("projects") or []:
                project = Project.from_dict(item)
                state.projects[project.id] = project
            for item in raw.get("descriptors") or []:
                descriptor = McpDescriptor.from_dict(item)
                state.descriptors[descriptor.id] = descriptor
            for item in raw.get("bindings") or []:
                binding = Binding.from_dict(item)
                state.bindings[binding.id] = binding
        except (KeyError, TypeError, ValidationError) as exc:
            raise StorageError(f"catalog file {self._path} has a malformed record: {exc}") from exc
        return state

    def _persist(self, state: CatalogState) -> None:
        payload = {
            "version": STORE_VERSION,
            "projects": [project.to_dict() for project in state.projects.values()],
            "descriptors": [descriptor.to_dict() for descriptor in state.descriptors.values()],
            "bindings": [binding.to_dict() for binding in state.bindings.values()],
        }
        text = yaml.safe_dump(payload, sort_keys=False, allow_unicode=True)
        atomic_write(self._path, text)


__all__ = ["CatalogState", "CatalogStore", "STORE_VERSION"]
