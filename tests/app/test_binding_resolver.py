from __future__ import annotations

import sys
import threading
from pathlib import Path
from typing import Dict, List

import pytest

from mcptoolkit.adapters.master_key import StaticMasterKeyProvider
from mcptoolkit.app.bindings import BindingResolver, BindingService, Disabled, ResolvedEnvironment
from mcptoolkit.app.secrets import SecretsVault
from mcptoolkit.domain.bindings import LiteralValue, SecretRef
from mcptoolkit.domain.catalog import BinaryTransport, CatalogStore, McpDescriptor, TransportKind
from mcptoolkit.domain.errors import BindingNotFound, SecretNotFound, UnresolvedSecretReference


class RecordingSecrets:
    """Secret source that counts lookups."""

    def __init__(self, values: Dict[str, str] | None = None) -> None:
        self.values = dict(values or {})
        self.calls: List[str] = []

    def resolve(self, key: str) -> str:
        self.calls.append(key)
        if key not in self.values:
            raise SecretNotFound(key)
        return self.values[key]


@pytest.fixture()
def store(tmp_path: Path) -> CatalogStore:
    return CatalogStore(tmp_path / "catalog.yaml")


def _setup(store: CatalogStore, base_env: Dict[str, str], overrides, *, enabled: bool = True) -> tuple[str, str]:
    service = BindingService(store)
    project = service.add_project("demo", "/work/demo")
    [mcp_id] = store.add_descriptors([McpDescriptor.create("fs", BinaryTransport("node", ("fs.js",)), base_env)])
    service.activate(project.id, mcp_id, overrides, enabled=enabled)
    return project.id, mcp_id


def test_literal_override_beats_base_env(store: CatalogStore) -> None:
    project_id, mcp_id = _setup(store, {"A": "1", "B": "base"}, [LiteralValue("A", "2")])
    result = BindingResolver(store, RecordingSecrets()).resolve(project_id, mcp_id)
    assert isinstance(result, ResolvedEnvironment)
    assert dict(result) == {"A": "2", "B": "base"}
    assert result.transport_kind is TransportKind.BINARY


def test_later_overrides_win(store: CatalogStore) -> None:
    overrides = [LiteralValue("A", "first"), SecretRef("A", "S"), LiteralValue("A", "last")]
    project_id, mcp_id = _setup(store, {"A": "base"}, overrides)
    secrets = RecordingSecrets({"S": "secret"})
    result = BindingResolver(store, secrets).resolve(project_id, mcp_id)
    assert result["A"] == "last"
    assert secrets.calls == ["S"]


def test_secret_reference_is_dereferenced(store: CatalogStore) -> None:
    project_id, mcp_id = _setup(store, {}, [SecretRef("K", "S")])
    result = BindingResolver(store, RecordingSecrets({"S": "v"})).resolve(project_id, mcp_id)
    assert result.as_dict() == {"K": "v"}
    assert "v" not in repr(result).replace("ResolvedEnvironment", "")


def test_missing_secret_fails_whole_resolution(store: CatalogStore) -> None:
    project_id, mcp_id = _setup(store, {"BASE": "1"}, [LiteralValue("A", "1"), SecretRef("K", "missing")])
    with pytest.raises(UnresolvedSecretReference) as excinfo:
        BindingResolver(store, RecordingSecrets()).resolve(project_id, mcp_id)
    assert excinfo.value.key == "K"
    assert excinfo.value.secret_key == "missing"


def test_disabled_binding_never_touches_vault(store: CatalogStore) -> None:
    project_id, mcp_id = _setup(store, {}, [SecretRef("K", "S")], enabled=False)
    secrets = RecordingSecrets({"S": "v"})
    result = BindingResolver(store, secrets).resolve(project_id, mcp_id)
    assert isinstance(result, Disabled)
    assert result.mcp_id == mcp_id
    assert secrets.calls == []


def test_missing_binding(store: CatalogStore) -> None:
    with pytest.raises(BindingNotFound):
        BindingResolver(store, RecordingSecrets()).resolve("prj_x", "mcp_x")


def test_resolution_does_not_write_back(store: CatalogStore, tmp_path: Path) -> None:
    vault = SecretsVault(tmp_path / "secrets.json", StaticMasterKeyProvider(bytes(32)))
    vault.put("S", "token-value")
    project_id, mcp_id = _setup(store, {"A": "1"}, [SecretRef("TOKEN", "S")])
    catalog_before = store.path.read_bytes()
    vault_before = vault.path.read_bytes()

    result = BindingResolver(store, vault).resolve(project_id, mcp_id)

    assert result["TOKEN"] == "token-value"
    assert store.path.read_bytes() == catalog_before
    assert vault.path.read_bytes() == vault_before
    assert store.get_descriptor(mcp_id).env == {"A": "1"}


def test_deleted_secret_fails_lazily(store: CatalogStore, tmp_path: Path) -> None:
    vault = SecretsVault(tmp_path / "secrets.json", StaticMasterKeyProvider(bytes(32)))
    metadata = vault.put("S", "token-value")
    project_id, mcp_id = _setup(store, {}, [SecretRef("TOKEN", "S")])
    assert vault.delete(metadata.id) is True
    assert store.get_binding(project_id, mcp_id).secret_keys == ("S",)
    with pytest.raises(UnresolvedSecretReference):
        BindingResolver(store, vault).resolve(project_id, mcp_id)


def test_resolve_project_skips_disabled(store: CatalogStore) -> None:
    service = BindingService(store)
    project = service.add_project("demo", "/work/demo")
    on_id, off_id = store.add_descriptors(
        [
            McpDescriptor.create("on", BinaryTransport("node"), {"X": "1"}),
            McpDescriptor.create("off", BinaryTransport("node")),
        ]
    )
    service.activate(project.id, on_id)
    service.activate(project.id, off_id, enabled=False)
    resolved = BindingResolver(store, RecordingSecrets()).resolve_project(project.id)
    assert list(resolved) == ["on"]
    assert dict(resolved["on"]) == {"X": "1"}


def test_resolution_is_stable_while_bindings_change(store: CatalogStore, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(store, "_persist", lambda state: None)
    project_id, mcp_id = _setup(store, {"A": "1"}, [LiteralValue("B", "2")])
    extra_ids = store.add_descriptors(
        [McpDescriptor.create(f"extra-{index}", BinaryTransport("node")) for index in range(300)]
    )
    resolver = BindingResolver(store, RecordingSecrets())
    errors: list[str] = []
    done = threading.Event()

    def reader() -> None:
        while not done.is_set():
            try:
                result = resolver.resolve(project_id, mcp_id)
                assert dict(result) == {"A": "1", "B": "2"}
            except Exception as exc:  # noqa: BLE001 - collected for the assertion below
                errors.append(repr(exc))
                return

    service = BindingService(store)
    previous = sys.getswitchinterval()
    sys.setswitchinterval(1e-6)
    thread = threading.Thread(target=reader)
    thread.start()
    try:
        for extra_id in extra_ids:
            service.activate(project_id, extra_id)
    finally:
        done.set()
        thread.join()
        sys.setswitchinterval(previous)

    assert errors == []
    assert len(store.list_bindings(project_id)) == 301
