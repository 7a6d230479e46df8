from __future__ import annotations

import base64
import os
import stat
from pathlib import Path

import pytest

from mcptoolkit.adapters.master_key import (
    MASTER_KEY_ENV,
    EnvMasterKeyProvider,
    FileMasterKeyProvider,
    StaticMasterKeyProvider,
    build_master_key_provider,
)
from mcptoolkit.domain.errors import MasterKeyError
from mcptoolkit.settings import RuntimeSettings

KEY = bytes(range(32))


def _settings(tmp_path: Path) -> RuntimeSettings:
    return RuntimeSettings(home_dir=tmp_path, state_dir=tmp_path / "state", log_dir=tmp_path / "logs")


def test_file_provider_generates_then_reuses_key(tmp_path: Path) -> None:
    provider = FileMasterKeyProvider(tmp_path / "master.key")
    first = provider.load()
    assert len(first) == 32
    assert FileMasterKeyProvider(tmp_path / "master.key").load() == first
    if os.name == "posix":
        assert stat.S_IMODE(provider.path.stat().st_mode) == 0o600


def test_file_provider_rejects_garbage(tmp_path: Path) -> None:
    path = tmp_path / "master.key"
    path.write_text("not base64 !!", encoding="utf-8")
    with pytest.raises(MasterKeyError):
        FileMasterKeyProvider(path).load()
    path.write_text(base64.b64encode(b"short").decode("ascii"), encoding="utf-8")
    with pytest.raises(MasterKeyError):
        FileMasterKeyProvider(path).load()


@pytest.mark.parametrize("encoded", [KEY.hex(), base64.b64encode(KEY).decode("ascii")])
def test_env_provider_accepts_hex_and_base64(monkeypatch: pytest.MonkeyPatch, encoded: str) -> None:
    monkeypatch.setenv(MASTER_KEY_ENV, encoded)
    assert EnvMasterKeyProvider().load() == KEY


def test_env_provider_requires_variable(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv(MASTER_KEY_ENV, raising=False)
    with pytest.raises(MasterKeyError):
        EnvMasterKeyProvider().load()
    monkeypatch.setenv(MASTER_KEY_ENV, "abcd")
    with pytest.raises(MasterKeyError):
        EnvMasterKeyProvider().load()


def test_build_provider_prefers_environment(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv(MASTER_KEY_ENV, raising=False)
    assert isinstance(build_master_key_provider(_settings(tmp_path)), FileMasterKeyProvider)
    monkeypatch.setenv(MASTER_KEY_ENV, KEY.hex())
    assert isinstance(build_master_key_provider(_settings(tmp_path)), EnvMasterKeyProvider)


def test_static_provider_hides_key() -> None:
    provider = StaticMasterKeyProvider(KEY)
    assert provider.load() == KEY
    assert KEY.hex() not in repr(provider)
    with pytest.raises(MasterKeyError):
        StaticMasterKeyProvider(b"\x00" * 16)
