"""Runtime settings for the MCP toolkit core."""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

from mcptoolkit import __version__

DEFAULT_MAX_IMPORT_BYTES = 1024 * 1024


@dataclass(frozen=True)
class RuntimeSettings:
    home_dir: Path
    state_dir: Path
    log_dir: Path
    max_import_bytes: int = DEFAULT_MAX_IMPORT_BYTES
    cli_version: str = __version__

    @property
    def catalog_file(self) -> Path:
        return self.state_dir / "catalog.yaml"

    @property
    def secrets_file(self) -> Path:
        return self.state_dir / "secrets.json"

    @property
    def master_key_file(self) -> Path:
        return self.home_dir / "master.key"


def _default_home_dir() -> Path:
    override = os.environ.get("MCPTOOLKIT_HOME")
    if override:
        return Path(override).expanduser()
    return Path.home() / ".mcptoolkit"


def _max_import_bytes() -> int:
    raw = os.environ.get("MCPTOOLKIT_MAX_IMPORT_BYTES", "").strip()
    if not raw:
        return DEFAULT_MAX_IMPORT_BYTES
    try:
        value = int(raw)
    except ValueError:
        return DEFAULT_MAX_IMPORT_BYTES
    return value if value > 0 else DEFAULT_MAX_IMPORT_BYTES


def load_settings() -> RuntimeSettings:
    base = _default_home_dir()
    return RuntimeSettings(
        home_dir=base,
        state_dir=base / "state",
        log_dir=base / "logs",
        max_import_bytes=_max_import_bytes(),
    )


SETTINGS = load_settings()
