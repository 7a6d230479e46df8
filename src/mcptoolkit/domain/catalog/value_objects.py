"""Value objects describing catalogued MCP servers."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from types import MappingProxyType
from typing import Any, ClassVar, Dict, Mapping, Tuple, Union

from mcptoolkit.domain.errors import StorageError, ValidationError
from mcptoolkit.domain.ids import generate_id, utc_timestamp

_MAX_NAME_LENGTH = 128


class TransportKind(str, Enum):
    BINARY = "Binary"
    HTTP = "Http"
    DOCKER = "Docker"


def _require_text(value: object, label: str) -> str:
    if not isinstance(value, str) or not value.strip():
        raise ValidationError(f"{label} must be a non-empty string")
    return value


@dataclass(frozen=True)
class BinaryTransport:
    """Local executable launched over stdio."""

    kind: ClassVar[TransportKind] = TransportKind.BINARY

    command: str
    args: Tuple[str, ...] = ()

    def __post_init__(self) -> None:
        _require_text(self.command, "command")
        args = tuple(self.args)
        if not all(isinstance(item, str) for item in args):
            raise ValidationError("args must contain only strings")
        object.__setattr__(self, "args", args)

    def to_dict(self) -> Dict[str, Any]:
        return {"kind": self.kind.value, "command": self.command, "args": list(self.args)}


@dataclass(frozen=True)
class HttpTransport:
    """Remote server reachable over HTTP."""

    kind: ClassVar[TransportKind] = TransportKind.HTTP

    url: str

    def __post_init__(self) -> None:
        _require_text(self.url, "url")

    def to_dict(self) -> Dict[str, Any]:
        return {"kind": self.kind.value, "url": self.url}


@dataclass(frozen=True)
class DockerTransport:
    """Container image run with stdio attached."""

    kind: ClassVar[TransportKind] = TransportKind.DOCKER

    image: str

    def __post_init__(self) -> None:
        _require_text(self.image, "docker image")

    def to_dict(self) -> Dict[str, Any]:
        return {"kind": self.kind.value, "image": self.image}


Transport = Union[BinaryTransport, HttpTransport, DockerTransport]


def transport_from_dict(data: Mapping[str, Any]) -> Transport:
    try:
        kind = TransportKind(data.get("kind"))
    except ValueError as exc:
        raise StorageError(f"unknown transport kind {data.get('kind')!r}") from exc
    if kind is TransportKind.BINARY:
        return BinaryTransport(command=data.get("command", ""), args=tuple(data.get("args") or ()))
    if kind is TransportKind.HTTP:
        return HttpTransport(url=data.get("url", ""))
    return DockerTransport(image=data.get("image", ""))


def validate_environment(env: Mapping[str, Any]) -> Dict[str, str]:
    normalised: Dict[str, str] = {}
    for key, value in env.items():
        if not isinstance(key, str) or not key:
            raise ValidationError("environment variable names must be non-empty strings")
        if not isinstance(value, str):
            raise ValidationError(f"environment variable '{key}' must have a string value")
        normalised[key] = value
    return normalised


@dataclass(frozen=True)
class McpDescriptor:
    """Immutable, validated launch configuration for one MCP server."""

    id: str
    name: str
    transport: Transport
    env: Mapping[str, str] = field(default_factory=dict)
    created_at: str = ""

    def __post_init__(self) -> None:
        _require_text(self.id, "descriptor id")
        name = _require_text(self.name, "MCP server name").strip()
        if len(name) > _MAX_NAME_LENGTH:
            raise ValidationError(f"MCP server name must be at most {_MAX_NAME_LENGTH} characters")
        object.__setattr__(self, "name", name)
        if not isinstance(self.transport, (BinaryTransport, HttpTransport, DockerTransport)):
            raise ValidationError("transport must be a Binary, Http or Docker transport")
        # Read-only view over a private copy; changes go through the store.
        object.__setattr__(self, "env", MappingProxyType(validate_environment(self.env)))
        if not self.created_at:
            object.__setattr__(self, "created_at", utc_timestamp())

    @property
    def kind(self) -> TransportKind:
        return self.transport.kind

    @classmethod
    def create(cls, name: str, transport: Transport, env: Mapping[str, str] | None = None) -> "McpDescriptor":
        return cls(id=generate_id("mcp"), name=name, transport=transport, env=dict(env or {}))

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "transport": self.transport.to_dict(),
            "env": dict(self.env),
            "created_at": self.created_at,
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "McpDescriptor":
        return cls(
            id=str(data["id"]),
            name=str(data["name"]),
            transport=transport_from_dict(data.get("transport") or {}),
            env=dict(data.get("env") or {}),
            created_at=str(data.get("created_at") or ""),
        )


__all__ = [
    "BinaryTransport",
    "DockerTransport",
    "HttpTransport",
    "McpDescriptor",
    "Transport",
    "TransportKind",
    "transport_from_dict",
    "validate_environment",
]
