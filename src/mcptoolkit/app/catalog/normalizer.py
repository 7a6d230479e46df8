"""Turns loosely-typed MCP configuration JSON into classified server entries.

Input is the common ``{"mcpServers": {...}}`` document or a bare map of
server name to entry. Each entry is classified on its own by a fixed
precedence over the closed set of transport kinds:

    command            -> Binary
    url / http_url     -> Http
    docker_image / docker -> Docker

Only the fields listed for the chosen kind are read. Every other field is
reported back in ``ignored_field_names`` and never influences the result, so
look-alike names such as ``executable`` or ``environment`` are not merged in.
A malformed entry yields a ``Rejected`` result and never stops its siblings
from being classified.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Mapping, Tuple, Union

from mcptoolkit.domain.catalog import (
    BinaryTransport,
    DockerTransport,
    HttpTransport,
    McpDescriptor,
    Transport,
    TransportKind,
)
from mcptoolkit.domain.errors import InputTooLarge, InvalidConfig, ParseError, ValidationError
from mcptoolkit.settings import DEFAULT_MAX_IMPORT_BYTES

from .schema import SchemaError, first_schema_error

SERVERS_KEY = "mcpServers"

# Ordered: the first kind whose marker field is present wins.
CLASSIFICATION_ORDER: Tuple[Tuple[TransportKind, Tuple[str, ...]], ...] = (
    (TransportKind.BINARY, ("command",)),
    (TransportKind.HTTP, ("url", "http_url")),
    (TransportKind.DOCKER, ("docker_image", "docker")),
)

RECOGNISED_FIELDS: Dict[TransportKind, Tuple[str, ...]] = {
    TransportKind.BINARY: ("command", "args", "env"),
    TransportKind.HTTP: ("url", "http_url"),
    TransportKind.DOCKER: ("docker_image", "docker"),
}

# Canonical schema field -> accepted source names, in preference order.
_ALIASES: Dict[TransportKind, Dict[str, Tuple[str, ...]]] = {
    TransportKind.BINARY: {"command": ("command",), "args": ("args",), "env": ("env",)},
    TransportKind.HTTP: {"url": ("url", "http_url")},
    TransportKind.DOCKER: {"image": ("docker_image", "docker")},
}

_REQUIRED: Dict[TransportKind, str] = {
    TransportKind.BINARY: "command",
    TransportKind.HTTP: "url",
    TransportKind.DOCKER: "image",
}


class RejectionReason(str, Enum):
    UNCLASSIFIABLE = "unclassifiable"
    MISSING_FIELD = "missing_field"
    INVALID_FIELD = "invalid_field"
    INVALID_ENTRY = "invalid_entry"


@dataclass(frozen=True)
class Classified:
    name: str
    transport: Transport
    env: Dict[str, str] = field(default_factory=dict)
    ignored_field_names: Tuple[str, ...] = ()

    @property
    def transport_kind(self) -> TransportKind:
        return self.transport.kind

    @property
    def fields(self) -> Dict[str, Any]:
        payload = {key: value for key, value in self.transport.to_dict().items() if key != "kind"}
        if self.transport_kind is TransportKind.BINARY:
            payload["env"] = dict(self.env)
        return payload

    def to_descriptor(self) -> McpDescriptor:
        return McpDescriptor.create(self.name, self.transport, self.env)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "status": "classified",
            "name": self.name,
            "kind": self.transport_kind.value,
            "fields": self.fields,
            "ignored_fields": list(self.ignored_field_names),
        }


@dataclass(frozen=True)
class Rejected:
    name: str | None
    reason: RejectionReason
    message: str

    def to_error(self) -> InvalidConfig:
        label = self.name if self.name is not None else "<root>"
        return InvalidConfig(f"{label}: {self.message}")

    def to_dict(self) -> Dict[str, Any]:
        return {
            "status": "rejected",
            "name": self.name,
            "error": "InvalidConfig",
            "reason": self.reason.value,
            "message": self.message,
        }


NormalizationResult = Union[Classified, Rejected]


def normalize(raw_text: str, *, max_bytes: int = DEFAULT_MAX_IMPORT_BYTES) -> List[NormalizationResult]:
    """Parse ``raw_text`` and classify every server entry it contains.

    Raises:
        InputTooLarge: payload exceeds ``max_bytes`` (checked before parsing).
        ParseError: payload is not valid JSON.
    """

    _check_size(raw_text, max_bytes)
    try:
        document = json.loads(raw_text)
    except json.JSONDecodeError as exc:
        raise ParseError(f"invalid JSON at line {exc.lineno} column {exc.colno}: {exc.msg}") from exc
    except (ValueError, RecursionError) as exc:
        raise ParseError(f"invalid JSON: {exc}") from exc

    if not isinstance(document, dict):
        return [Rejected(None, RejectionReason.INVALID_ENTRY, "configuration root must be a JSON object")]

    servers = document.get(SERVERS_KEY)
    if not isinstance(servers, dict):
        servers = document
    return [classify_entry(name, entry) for name, entry in servers.items()]


def classify_kind(entry: Mapping[str, Any]) -> TransportKind | None:
    for kind, markers in CLASSIFICATION_ORDER:
        if any(marker in entry for marker in markers):
            return kind
    return None


def classify_entry(name: str, entry: Any) -> NormalizationResult:
    if not name.strip():
        return Rejected(name, RejectionReason.INVALID_ENTRY, "server name must not be blank")
    if not isinstance(entry, dict):
        return Rejected(name, RejectionReason.INVALID_ENTRY, "server entry must be a JSON object")

    kind = classify_kind(entry)
    if kind is None:
        found = ", ".join(sorted(entry)) or "no fields"
        return Rejected(
            name,
            RejectionReason.UNCLASSIFIABLE,
            f"not a recognised MCP server: needs command, url/http_url or docker_image/docker (found: {found})",
        )

    fields, sources = _extract(kind, entry)
    error = first_schema_error(kind, fields)
    if error is not None:
        return _rejection_for(name, kind, error, sources)

    try:
        transport = _build_transport(kind, fields)
        # Same checks the store applies on import, so previews never over-promise.
        McpDescriptor(id="preview", name=name, transport=transport, env=fields.get("env") or {})
    except ValidationError as exc:
        return Rejected(name, RejectionReason.INVALID_ENTRY, str(exc))

    ignored = tuple(sorted(key for key in entry if key not in RECOGNISED_FIELDS[kind]))
    return Classified(
        name=name.strip(),
        transport=transport,
        env=dict(fields.get("env") or {}),
        ignored_field_names=ignored,
    )


def _check_size(raw_text: str, max_bytes: int) -> None:
    if len(raw_text) > max_bytes:
        raise InputTooLarge(len(raw_text), max_bytes)
    size = len(raw_text.encode("utf-8", errors="surrogatepass"))
    if size > max_bytes:
        raise InputTooLarge(size, max_bytes)


def _extract(kind: TransportKind, entry: Mapping[str, Any]) -> Tuple[Dict[str, Any], Dict[str, str]]:
    fields: Dict[str, Any] = {}
    sources: Dict[str, str] = {}
    for canonical, names in _ALIASES[kind].items():
        for source in names:
            # A null field counts as absent.
            if entry.get(source) is not None:
                fields[canonical] = entry[source]
                sources[canonical] = source
                break
    return fields, sources


def _rejection_for(
    name: str,
    kind: TransportKind,
    error: SchemaError,
    sources: Mapping[str, str],
) -> Rejected:
    required = _REQUIRED[kind]
    path = [str(item) for item in error.absolute_path]
    if error.validator == "required" or (path == [required] and error.validator in {"minLength", "pattern"}):
        wanted = " or ".join(_ALIASES[kind][required])
        return Rejected(
            name,
            RejectionReason.MISSING_FIELD,
            f"{kind.value} server is missing required field {wanted}",
        )
    field_name = sources.get(path[0], path[0]) if path else kind.value
    location = ".".join([field_name, *path[1:]])
    return Rejected(name, RejectionReason.INVALID_FIELD, f"field '{location}' is invalid: {error.message}")


def _build_transport(kind: TransportKind, fields: Mapping[str, Any]) -> Transport:
    if kind is TransportKind.BINARY:
        return BinaryTransport(command=fields["command"], args=tuple(fields.get("args") or ()))
    if kind is TransportKind.HTTP:
        return HttpTransport(url=fields["url"])
    return DockerTransport(image=fields["image"])


__all__ = [
    "CLASSIFICATION_ORDER",
    "Classified",
    "NormalizationResult",
    "RECOGNISED_FIELDS",
    "Rejected",
    "RejectionReason",
    "SERVERS_KEY",
    "classify_entry",
    "classify_kind",
    "normalize",
]
