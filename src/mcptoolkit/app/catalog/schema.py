"""Schema helpers for the recognised fields of each transport kind."""

from __future__ import annotations

import json
from functools import lru_cache
from importlib import resources
from typing import Any, Mapping

from jsonschema import Draft202012Validator
from jsonschema.exceptions import ValidationError as SchemaError
from jsonschema.exceptions import best_match

from mcptoolkit.domain.catalog import TransportKind

_SCHEMA_RESOURCE = "transport.schema.json"
_SCHEMA_PACKAGE = "mcptoolkit.resources"


@lru_cache(maxsize=1)
def _load_schema() -> dict[str, Any]:
    resource = resources.files(_SCHEMA_PACKAGE) / _SCHEMA_RESOURCE
    with resource.open("r", encoding="utf-8") as handle:
        return json.load(handle)


@lru_cache(maxsize=None)
def _validator(kind: TransportKind) -> Draft202012Validator:
    return Draft202012Validator(_load_schema()["$defs"][kind.value])


def first_schema_error(kind: TransportKind, fields: Mapping[str, Any]) -> SchemaError | None:
    """Return the most relevant schema violation for ``fields`` or None."""
    return best_match(_validator(kind).iter_errors(dict(fields)))


__all__ = ["SchemaError", "first_schema_error"]
