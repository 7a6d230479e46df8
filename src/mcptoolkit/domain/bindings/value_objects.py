"""Projects, bindings and environment overrides."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, Mapping, Tuple, Union

from mcptoolkit.domain.errors import StorageError, ValidationError
from mcptoolkit.domain.ids import generate_id, utc_timestamp


@dataclass(frozen=True)
class Project:
    """Project reference; the toolkit only uses its id as a foreign key."""

    id: str
    name: str
    path: str
    created_at: str = ""

    def __post_init__(self) -> None:
        if not self.name or not self.name.strip():
            raise ValidationError("project name must be a non-empty string")
        if not self.path or not self.path.strip():
            raise ValidationError("project path must be a non-empty string")
        if not self.created_at:
            object.__setattr__(self, "created_at", utc_timestamp())

    @classmethod
    def create(cls, name: str, path: str) -> "Project":
        return cls(id=generate_id("prj"), name=name, path=path)

    def to_dict(self) -> Dict[str, Any]:
        return {"id": self.id, "name": self.name, "path": self.path, "created_at": self.created_at}

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Project":
        return cls(
            id=str(data["id"]),
            name=str(data["name"]),
            path=str(data["path"]),
            created_at=str(data.get("created_at") or ""),
        )


def _require_key(key: object) -> str:
    if not isinstance(key, str) or not key.strip():
        raise ValidationError("override key must be a non-empty string")
    return key


@dataclass(frozen=True)
class LiteralValue:
    """Override that sets ``key`` to a plain value."""

    key: str
    value: str

    def __post_init__(self) -> None:
        _require_key(self.key)
        if not isinstance(self.value, str):
            raise ValidationError(f"override '{self.key}' must have a string value")


@dataclass(frozen=True)
class SecretRef:
    """Override that sets ``key`` to the plaintext of a vaulted secret."""

    key: str
    secret_key: str

    def __post_init__(self) -> None:
        _require_key(self.key)
        if not isinstance(self.secret_key, str) or not self.secret_key.strip():
            raise ValidationError(f"override '{self.key}' must reference a non-empty secret key")


OverrideEntry = Union[LiteralValue, SecretRef]


def override_from_wire(payload: Mapping[str, Any]) -> OverrideEntry:
    """Convert the ``{key, value, is_secret}`` wire shape into a tagged override."""

    if not isinstance(payload, Mapping):
        raise ValidationError("override must be an object with key, value and is_secret")
    is_secret = payload.get("is_secret", False)
    if not isinstance(is_secret, bool):
        raise ValidationError("override is_secret must be a boolean")
    key = payload.get("key")
    value = payload.get("value")
    if not isinstance(value, str):
        raise ValidationError(f"override '{key}' must have a string value")
    if is_secret:
        return SecretRef(key=key, secret_key=value)  # type: ignore[arg-type]
    return LiteralValue(key=key, value=value)  # type: ignore[arg-type]


def override_to_wire(entry: OverrideEntry) -> Dict[str, Any]:
    if isinstance(entry, SecretRef):
        return {"key": entry.key, "value": entry.secret_key, "is_secret": True}
    return {"key": entry.key, "value": entry.value, "is_secret": False}


@dataclass(frozen=True)
class Binding:
    """Activation of one catalogued server inside one project."""

    id: str
    project_id: str
    mcp_id: str
    enabled: bool = True
    overrides: Tuple[OverrideEntry, ...] = field(default_factory=tuple)

    def __post_init__(self) -> None:
        if not self.project_id or not self.mcp_id:
            raise ValidationError("binding requires both project_id and mcp_id")
        overrides = tuple(self.overrides)
        for entry in overrides:
            if not isinstance(entry, (LiteralValue, SecretRef)):
                raise ValidationError("binding overrides must be LiteralValue or SecretRef entries")
        object.__setattr__(self, "overrides", overrides)

    @classmethod
    def create(
        cls,
        project_id: str,
        mcp_id: str,
        overrides: Iterable[OverrideEntry] = (),
        *,
        enabled: bool = True,
    ) -> "Binding":
        return cls(
            id=generate_id("bnd"),
            project_id=project_id,
            mcp_id=mcp_id,
            enabled=enabled,
            overrides=tuple(overrides),
        )

    @property
    def secret_keys(self) -> Tuple[str, ...]:
        return tuple(entry.secret_key for entry in self.overrides if isinstance(entry, SecretRef))

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "project_id": self.project_id,
            "mcp_id": self.mcp_id,
            "enabled": self.enabled,
            "overrides": [override_to_wire(entry) for entry in self.overrides],
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Binding":
        try:
            overrides = tuple(override_from_wire(item) for item in data.get("overrides") or ())
        except ValidationError as exc:
            raise StorageError(f"binding {data.get('id')!r} has a malformed override: {exc}") from exc
        return cls(
            id=str(data["id"]),
            project_id=str(data["project_id"]),
            mcp_id=str(data["mcp_id"]),
            enabled=bool(data.get("enabled", True)),
            overrides=overrides,
        )


__all__ = [
    "Binding",
    "LiteralValue",
    "OverrideEntry",
    "Project",
    "SecretRef",
    "override_from_wire",
    "override_to_wire",
]
