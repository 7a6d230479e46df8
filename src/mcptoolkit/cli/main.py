#!/usr/bin/env python3
"""Entry point for the mcptk CLI."""

from __future__ import annotations

import argparse
import getpass
import json
import os
import sys
import time
from pathlib import Path
from textwrap import dedent
from typing import Any, Callable, Dict

from mcptoolkit import __version__
from mcptoolkit.adapters.master_key import build_master_key_provider
from mcptoolkit.app.bindings import BindingResolver, BindingService, Disabled
from mcptoolkit.app.catalog import CatalogService, Classified
from mcptoolkit.app.secrets import SecretsVault
from mcptoolkit.domain.bindings import LiteralValue, OverrideEntry, SecretRef, override_to_wire
from mcptoolkit.domain.catalog import CatalogStore, McpDescriptor
from mcptoolkit.domain.errors import McpToolkitError
from mcptoolkit.settings import SETTINGS
from mcptoolkit.utils.telemetry import clear as telemetry_clear
from mcptoolkit.utils.telemetry import iter_events as telemetry_iter
from mcptoolkit.utils.telemetry import record_structured_event, summarize as telemetry_summarize

HELP_OVERVIEW = dedent(
    """
    Quick start:
      - mcptk catalog preview servers.json    - see what an mcpServers file contains
      - mcptk catalog import servers.json     - add every recognised server
      - mcptk secret put GITHUB_TOKEN         - store a credential (prompted, never echoed)
      - mcptk project add demo ~/src/demo
      - mcptk bind add <project-id> github --secret GITHUB_TOKEN=GITHUB_TOKEN
      - mcptk resolve <project-id> github     - check the final environment (names only)

    Secret values are never printed, logged or exported.
    """
)

Handler = Callable[[argparse.Namespace, "Services"], int]


class Services:
    """Lazily wired services for a single CLI invocation."""

    def __init__(self) -> None:
        self._store: CatalogStore | None = None
        self._vault: SecretsVault | None = None

    @property
    def store(self) -> CatalogStore:
        if self._store is None:
            self._store = CatalogStore(SETTINGS.catalog_file)
        return self._store

    @property
    def catalog(self) -> CatalogService:
        return CatalogService(self.store, max_import_bytes=SETTINGS.max_import_bytes)

    @property
    def bindings(self) -> BindingService:
        return BindingService(self.store)

    @property
    def vault(self) -> SecretsVault:
        if self._vault is None:
            self._vault = SecretsVault(SETTINGS.secrets_file, build_master_key_provider(SETTINGS))
        return self._vault

    @property
    def resolver(self) -> BindingResolver:
        return BindingResolver(self.store, self.vault)


def _emit(args: argparse.Namespace, payload: Dict[str, Any], text: str) -> None:
    if getattr(args, "json", False):
        print(json.dumps(payload, ensure_ascii=False, indent=2))
    else:
        print(text)


def _read_source(source: str) -> str:
    if source == "-":
        # One character past the limit is enough for the normalizer to refuse it.
        return sys.stdin.read(SETTINGS.max_import_bytes + 1)
    path = Path(source).expanduser()
    if path.stat().st_size > SETTINGS.max_import_bytes:
        # Let the normalizer raise the size error without reading the whole file.
        with path.open("r", encoding="utf-8") as fh:
            return fh.read(SETTINGS.max_import_bytes + 1)
    return path.read_text(encoding="utf-8")


def _literal_override(text: str) -> OverrideEntry:
    key, value = _split_assignment(text)
    return LiteralValue(key=key, value=value)


def _secret_override(text: str) -> OverrideEntry:
    key, secret_key = _split_assignment(text)
    return SecretRef(key=key, secret_key=secret_key)


def _split_assignment(text: str) -> tuple[str, str]:
    if "=" not in text:
        raise argparse.ArgumentTypeError(f"'{text}' must be in KEY=VALUE format")
    key, value = text.split("=", 1)
    if not key.strip():
        raise argparse.ArgumentTypeError(f"'{text}' has an empty KEY")
    return key.strip(), value


# ----------------------------------------------------------------------
# catalog
# ----------------------------------------------------------------------


def _catalog_preview(args: argparse.Namespace, services: Services) -> int:
    results = services.catalog.preview(_read_source(args.source))
    lines = [f"catalog preview: {len(results)} entr{'y' if len(results) == 1 else 'ies'}"]
    for result in results:
        if isinstance(result, Classified):
            line = f"  + {result.name} [{result.transport_kind.value}]"
            if result.ignored_field_names:
                line += f" (ignored: {', '.join(result.ignored_field_names)})"
        else:
            line = f"  - {result.name or '<root>'}: {result.message}"
        lines.append(line)
    _emit(args, {"results": [result.to_dict() for result in results]}, "\n".join(lines))
    return 0


def _catalog_import(args: argparse.Namespace, services: Services) -> int:
    catalog = services.catalog
    ids = catalog.import_text(_read_source(args.source), only=args.only or None)
    imported = [catalog.get(mcp_id) for mcp_id in ids]
    _emit(
        args,
        {"status": "ok", "imported": [descriptor.to_dict() for descriptor in imported]},
        "catalog import: " + (", ".join(descriptor.name for descriptor in imported) or "nothing to import"),
    )
    return 0


def _catalog_list(args: argparse.Namespace, services: Services) -> int:
    descriptors = services.catalog.list()
    if not descriptors:
        text = "catalog: no MCP servers registered"
    else:
        text = "catalog:\n" + "\n".join(_describe(descriptor) for descriptor in descriptors)
    _emit(args, {"servers": [descriptor.to_dict() for descriptor in descriptors]}, text)
    return 0


def _catalog_export(args: argparse.Namespace, services: Services) -> int:
    print(services.catalog.export_config(args.name or None))
    return 0


def _catalog_remove(args: argparse.Namespace, services: Services) -> int:
    removed = services.catalog.delete(args.name)
    message = "removed" if removed else "not found"
    _emit(args, {"status": message, "name": args.name}, f"catalog remove: {args.name} {message}")
    return 0 if removed else 1


def _describe(descriptor: McpDescriptor) -> str:
    transport = descriptor.transport.to_dict()
    target = transport.get("command") or transport.get("url") or transport.get("image")
    return f"  - {descriptor.name} [{descriptor.kind.value}] {target} (id: {descriptor.id})"


# ----------------------------------------------------------------------
# secret
# ----------------------------------------------------------------------


def _secret_put(args: argparse.Namespace, services: Services) -> int:
    if args.value_env:
        value = os.environ.get(args.value_env)
        if value is None:
            raise McpToolkitError(f"environment variable '{args.value_env}' is not set")
    else:
        value = getpass.getpass(f"Value for {args.key}: ")
    metadata = services.vault.put(args.key, value)
    _emit(args, {"status": "ok", "secret": metadata.to_dict()}, f"secret put: {metadata.key} (id: {metadata.id})")
    return 0


def _secret_list(args: argparse.Namespace, services: Services) -> int:
    secrets = services.vault.list()
    if not secrets:
        text = "secrets: none stored"
    else:
        text = "secrets:\n" + "\n".join(f"  - {item.key} (id: {item.id}, created: {item.created_at})" for item in secrets)
    _emit(args, {"secrets": [item.to_dict() for item in secrets]}, text)
    return 0


def _secret_delete(args: argparse.Namespace, services: Services) -> int:
    removed = services.vault.delete(args.id)
    message = "removed" if removed else "not found"
    _emit(args, {"status": message, "id": args.id}, f"secret delete: {args.id} {message}")
    return 0 if removed else 1


# ----------------------------------------------------------------------
# project
# ----------------------------------------------------------------------


def _project_add(args: argparse.Namespace, services: Services) -> int:
    path = str(Path(args.path).expanduser().resolve())
    project = services.bindings.add_project(args.name, path)
    _emit(args, {"status": "ok", "project": project.to_dict()}, f"project add: {project.name} (id: {project.id})")
    return 0


def _project_list(args: argparse.Namespace, services: Services) -> int:
    projects = services.bindings.list_projects()
    if not projects:
        text = "projects: none registered"
    else:
        text = "projects:\n" + "\n".join(f"  - {item.name} {item.path} (id: {item.id})" for item in projects)
    _emit(args, {"projects": [item.to_dict() for item in projects]}, text)
    return 0


def _project_remove(args: argparse.Namespace, services: Services) -> int:
    removed = services.bindings.remove_project(args.id)
    message = "removed" if removed else "not found"
    _emit(args, {"status": message, "id": args.id}, f"project remove: {args.id} {message}")
    return 0 if removed else 1


# ----------------------------------------------------------------------
# bind
# ----------------------------------------------------------------------


def _bind_add(args: argparse.Namespace, services: Services) -> int:
    descriptor = services.catalog.get(args.mcp)
    binding = services.bindings.activate(
        args.project,
        descriptor.id,
        args.overrides or (),
        enabled=not args.disabled,
        replace_existing=args.replace,
    )
    _emit(
        args,
        {"status": "ok", "binding": binding.to_dict()},
        f"bind add: {descriptor.name} -> {args.project} ({len(binding.overrides)} overrides)",
    )
    return 0


def _bind_list(args: argparse.Namespace, services: Services) -> int:
    bindings = services.bindings.list_for_project(args.project)
    lines = []
    for binding in bindings:
        descriptor = services.store.get_descriptor(binding.mcp_id)
        state = "enabled" if binding.enabled else "disabled"
        lines.append(f"  - {descriptor.name} [{state}]")
        for entry in binding.overrides:
            wire = override_to_wire(entry)
            shown = f"secret:{wire['value']}" if wire["is_secret"] else wire["value"]
            lines.append(f"      {wire['key']} = {shown}")
    text = "bindings:\n" + "\n".join(lines) if lines else "bindings: none"
    _emit(args, {"bindings": [binding.to_dict() for binding in bindings]}, text)
    return 0


def _bind_toggle(args: argparse.Namespace, services: Services) -> int:
    descriptor = services.catalog.get(args.mcp)
    enabled = args.bind_command == "enable"
    binding = services.bindings.set_enabled(args.project, descriptor.id, enabled)
    _emit(args, {"status": "ok", "binding": binding.to_dict()}, f"bind {args.bind_command}: {descriptor.name}")
    return 0


def _bind_remove(args: argparse.Namespace, services: Services) -> int:
    descriptor = services.catalog.get(args.mcp)
    removed = services.bindings.deactivate(args.project, descriptor.id)
    message = "removed" if removed else "not found"
    _emit(args, {"status": message, "mcp": descriptor.name}, f"bind remove: {descriptor.name} {message}")
    return 0 if removed else 1


# ----------------------------------------------------------------------
# resolve
# ----------------------------------------------------------------------


def _resolve(args: argparse.Namespace, services: Services) -> int:
    descriptor = services.catalog.get(args.mcp)
    result = services.resolver.resolve(args.project, descriptor.id)
    if isinstance(result, Disabled):
        _emit(args, {"status": "disabled", "mcp": descriptor.name}, f"resolve: {descriptor.name} is disabled")
        return 0
    keys = sorted(result)
    _emit(
        args,
        {"status": "resolved", "mcp": descriptor.name, "kind": result.transport_kind.value, "keys": keys},
        f"resolve: {descriptor.name} [{result.transport_kind.value}] " + (", ".join(keys) or "(empty environment)"),
    )
    return 0


def _telemetry_cmd(args: argparse.Namespace) -> int:
    if args.clear:
        telemetry_clear(SETTINGS)
        print("telemetry: cleared")
        return 0
    summary = telemetry_summarize(telemetry_iter(SETTINGS))
    _emit(args, summary, f"telemetry: {summary['total']} events")
    return 0


# ----------------------------------------------------------------------
# dispatch
# ----------------------------------------------------------------------


def _event_payload(args: argparse.Namespace) -> Dict[str, Any]:
    payload: Dict[str, Any] = {}
    for field in ("source", "name", "key", "id", "project", "mcp"):
        candidate = getattr(args, field, None)
        if isinstance(candidate, str):
            payload[field] = candidate
    return payload


def _run(component: str, handler: Handler) -> Callable[[argparse.Namespace], int]:
    def runner(args: argparse.Namespace) -> int:
        command = getattr(args, f"{component}_command", None) or component
        event = f"{component}.{command}" if command != component else component
        event_context = _event_payload(args)
        record_structured_event(SETTINGS, event, status="start", component=component, payload=event_context)
        start = time.perf_counter()
        try:
            exit_code = handler(args, Services())
        except (McpToolkitError, ValueError, OSError) as exc:
            duration = (time.perf_counter() - start) * 1000
            record_structured_event(
                SETTINGS,
                event,
                status="error",
                level="error",
                component=component,
                duration_ms=duration,
                payload=event_context | {"error": type(exc).__name__},
            )
            print(f"{component} {command} failed: {exc}", file=sys.stderr)
            return 1
        duration = (time.perf_counter() - start) * 1000
        record_structured_event(
            SETTINGS,
            event,
            status="success",
            component=component,
            duration_ms=duration,
            payload=event_context | {"exit_code": exit_code},
        )
        return exit_code

    return runner


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="mcptk",
        description=HELP_OVERVIEW,
        formatter_class=argparse.RawTextHelpFormatter,
    )
    parser.add_argument("--version", action="version", version=f"mcptk {__version__}")
    sub = parser.add_subparsers(dest="command", required=True)

    catalog_cmd = sub.add_parser("catalog", help="Import and manage MCP server descriptors")
    catalog_sub = catalog_cmd.add_subparsers(dest="catalog_command", required=True)

    catalog_preview = catalog_sub.add_parser("preview", help="Classify servers in a JSON config without saving")
    catalog_preview.add_argument("source", help="Path to JSON config or '-' for stdin")
    catalog_preview.add_argument("--json", action="store_true", help="Emit machine-readable JSON")
    catalog_preview.set_defaults(func=_run("catalog", _catalog_preview))

    catalog_import = catalog_sub.add_parser("import", help="Import recognised servers (all or nothing)")
    catalog_import.add_argument("source", help="Path to JSON config or '-' for stdin")
    catalog_import.add_argument("--only", action="append", metavar="NAME", help="Import only the named servers")
    catalog_import.add_argument("--json", action="store_true", help="Emit machine-readable JSON")
    catalog_import.set_defaults(func=_run("catalog", _catalog_import))

    catalog_list = catalog_sub.add_parser("list", help="List catalogued MCP servers")
    catalog_list.add_argument("--json", action="store_true", help="Emit machine-readable JSON")
    catalog_list.set_defaults(func=_run("catalog", _catalog_list))

    catalog_export = catalog_sub.add_parser("export", help="Print the catalog as an mcpServers document")
    catalog_export.add_argument("--name", action="append", help="Export only the named servers")
    catalog_export.set_defaults(func=_run("catalog", _catalog_export))

    catalog_remove = catalog_sub.add_parser("remove", help="Remove a server and its bindings")
    catalog_remove.add_argument("name", help="Server name or id")
    catalog_remove.add_argument("--json", action="store_true", help="Emit machine-readable JSON")
    catalog_remove.set_defaults(func=_run("catalog", _catalog_remove))

    secret_cmd = sub.add_parser("secret", help="Manage encrypted secrets")
    secret_sub = secret_cmd.add_subparsers(dest="secret_command", required=True)

    secret_put = secret_sub.add_parser("put", help="Create or overwrite a secret")
    secret_put.add_argument("key", help="Secret key referenced by bindings")
    secret_put.add_argument("--value-env", help="Read the value from this environment variable instead of prompting")
    secret_put.add_argument("--json", action="store_true", help="Emit machine-readable JSON")
    secret_put.set_defaults(func=_run("secret", _secret_put))

    secret_list = secret_sub.add_parser("list", help="List secret keys (never values)")
    secret_list.add_argument("--json", action="store_true", help="Emit machine-readable JSON")
    secret_list.set_defaults(func=_run("secret", _secret_list))

    secret_delete = secret_sub.add_parser("delete", help="Delete a secret by id")
    secret_delete.add_argument("id")
    secret_delete.add_argument("--json", action="store_true", help="Emit machine-readable JSON")
    secret_delete.set_defaults(func=_run("secret", _secret_delete))

    project_cmd = sub.add_parser("project", help="Register projects that servers can be bound to")
    project_sub = project_cmd.add_subparsers(dest="project_command", required=True)

    project_add = project_sub.add_parser("add", help="Register a project")
    project_add.add_argument("name")
    project_add.add_argument("path")
    project_add.add_argument("--json", action="store_true", help="Emit machine-readable JSON")
    project_add.set_defaults(func=_run("project", _project_add))

    project_list = project_sub.add_parser("list", help="List projects")
    project_list.add_argument("--json", action="store_true", help="Emit machine-readable JSON")
    project_list.set_defaults(func=_run("project", _project_list))

    project_remove = project_sub.add_parser("remove", help="Remove a project and its bindings")
    project_remove.add_argument("id")
    project_remove.add_argument("--json", action="store_true", help="Emit machine-readable JSON")
    project_remove.set_defaults(func=_run("project", _project_remove))

    bind_cmd = sub.add_parser("bind", help="Activate MCP servers for a project")
    bind_sub = bind_cmd.add_subparsers(dest="bind_command", required=True)

    bind_add = bind_sub.add_parser("add", help="Bind a server to a project")
    bind_add.add_argument("project", help="Project id")
    bind_add.add_argument("mcp", help="Server name or id")
    bind_add.add_argument(
        "--set",
        dest="overrides",
        action="append",
        type=_literal_override,
        metavar="KEY=VALUE",
        help="Literal environment override (repeatable, applied in order)",
    )
    bind_add.add_argument(
        "--secret",
        dest="overrides",
        action="append",
        type=_secret_override,
        metavar="KEY=SECRET_KEY",
        help="Environment override taken from a vaulted secret (repeatable, applied in order)",
    )
    bind_add.add_argument("--replace", action="store_true", help="Replace an existing binding for this server")
    bind_add.add_argument("--disabled", action="store_true", help="Create the binding switched off")
    bind_add.add_argument("--json", action="store_true", help="Emit machine-readable JSON")
    bind_add.set_defaults(func=_run("bind", _bind_add))

    bind_list = bind_sub.add_parser("list", help="List bindings of a project")
    bind_list.add_argument("project", help="Project id")
    bind_list.add_argument("--json", action="store_true", help="Emit machine-readable JSON")
    bind_list.set_defaults(func=_run("bind", _bind_list))

    for toggle in ("enable", "disable"):
        bind_toggle = bind_sub.add_parser(toggle, help=f"{toggle.capitalize()} a binding")
        bind_toggle.add_argument("project", help="Project id")
        bind_toggle.add_argument("mcp", help="Server name or id")
        bind_toggle.add_argument("--json", action="store_true", help="Emit machine-readable JSON")
        bind_toggle.set_defaults(func=_run("bind", _bind_toggle))

    bind_remove = bind_sub.add_parser("remove", help="Remove a binding")
    bind_remove.add_argument("project", help="Project id")
    bind_remove.add_argument("mcp", help="Server name or id")
    bind_remove.add_argument("--json", action="store_true", help="Emit machine-readable JSON")
    bind_remove.set_defaults(func=_run("bind", _bind_remove))

    resolve_cmd = sub.add_parser("resolve", help="Resolve a binding and list the resulting variable names")
    resolve_cmd.add_argument("project", help="Project id")
    resolve_cmd.add_argument("mcp", help="Server name or id")
    resolve_cmd.add_argument("--json", action="store_true", help="Emit machine-readable JSON")
    resolve_cmd.set_defaults(func=_run("resolve", _resolve))

    telemetry_cmd = sub.add_parser("telemetry", help="Summarise or clear the local event log")
    telemetry_cmd.add_argument("--clear", action="store_true", help="Delete the event log")
    telemetry_cmd.add_argument("--json", action="store_true", help="Emit machine-readable JSON")
    telemetry_cmd.set_defaults(func=_telemetry_cmd)

    return parser


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    return args.func(args)


if __name__ == "__main__":
    sys.exit(main())
