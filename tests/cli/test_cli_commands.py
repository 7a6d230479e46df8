from __future__ import annotations

import io
import json
import sys
from dataclasses import replace
from pathlib import Path

import pytest

from mcptoolkit import __version__
from mcptoolkit.cli import main as cli_main
from mcptoolkit.settings import RuntimeSettings

SECRET_VALUE = "ghp_do-not-print-me"

CONFIG = {
    "mcpServers": {
        "github": {"command": "npx", "args": ["-y", "@modelcontextprotocol/server-github"], "env": {"LOG": "warn"}},
        "search": {"url": "https://search.example/mcp"},
        "legacy": {"executable": "node"},
    }
}


@pytest.fixture()
def runtime_settings(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> RuntimeSettings:
    base = tmp_path / "runtime"
    settings = RuntimeSettings(
        home_dir=base,
        state_dir=base / "state",
        log_dir=base / "logs",
        cli_version=__version__,
    )
    monkeypatch.setattr(cli_main, "SETTINGS", settings, raising=False)
    monkeypatch.setenv("MCPTOOLKIT_TELEMETRY", "1")
    monkeypatch.delenv("MCPTOOLKIT_MASTER_KEY", raising=False)
    return settings


@pytest.fixture()
def config_file(tmp_path: Path) -> Path:
    path = tmp_path / "servers.json"
    path.write_text(json.dumps(CONFIG), encoding="utf-8")
    return path


def _json(capsys: pytest.CaptureFixture[str]) -> dict:
    return json.loads(capsys.readouterr().out)


def _events(settings: RuntimeSettings, event: str) -> list[dict[str, object]]:
    log_file = settings.log_dir / "telemetry.jsonl"
    if not log_file.exists():
        return []
    records = [json.loads(line) for line in log_file.read_text(encoding="utf-8").splitlines() if line.strip()]
    return [record for record in records if record.get("event") == event]


def test_preview_and_import(runtime_settings: RuntimeSettings, config_file: Path, capsys: pytest.CaptureFixture[str]) -> None:
    assert cli_main.main(["catalog", "preview", str(config_file), "--json"]) == 0
    preview = _json(capsys)
    assert [item["status"] for item in preview["results"]] == ["classified", "classified", "rejected"]
    assert preview["results"][2]["reason"] == "unclassifiable"

    assert cli_main.main(["catalog", "import", str(config_file), "--only", "github", "--only", "search", "--json"]) == 0
    imported = _json(capsys)
    assert [item["name"] for item in imported["imported"]] == ["github", "search"]

    assert cli_main.main(["catalog", "list", "--json"]) == 0
    assert len(_json(capsys)["servers"]) == 2

    statuses = [event["status"] for event in _events(runtime_settings, "catalog.import")]
    assert statuses == ["start", "success"]


def test_import_of_rejected_entry_fails(runtime_settings: RuntimeSettings, config_file: Path, capsys: pytest.CaptureFixture[str]) -> None:
    assert cli_main.main(["catalog", "import", str(config_file), "--only", "legacy"]) == 1
    err = capsys.readouterr().err
    assert "catalog import failed" in err
    errors = [event for event in _events(runtime_settings, "catalog.import") if event["status"] == "error"]
    assert errors and errors[0]["payload"]["error"] == "InvalidConfig"


def test_malformed_json_reports_parse_error(runtime_settings: RuntimeSettings, tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    broken = tmp_path / "broken.json"
    broken.write_text("{not json", encoding="utf-8")
    assert cli_main.main(["catalog", "preview", str(broken)]) == 1
    assert "invalid JSON" in capsys.readouterr().err


def test_export_prints_mcp_servers(runtime_settings: RuntimeSettings, config_file: Path, capsys: pytest.CaptureFixture[str]) -> None:
    cli_main.main(["catalog", "import", str(config_file), "--only", "search"])
    capsys.readouterr()
    assert cli_main.main(["catalog", "export"]) == 0
    assert json.loads(capsys.readouterr().out) == {"mcpServers": {"search": {"url": "https://search.example/mcp"}}}


def test_secret_values_never_reach_output_or_logs(
    runtime_settings: RuntimeSettings,
    config_file: Path,
    capsys: pytest.CaptureFixture[str],
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    monkeypatch.setenv("GH_TOKEN_VALUE", SECRET_VALUE)
    cli_main.main(["catalog", "import", str(config_file), "--only", "github"])
    capsys.readouterr()
    assert cli_main.main(["secret", "put", "GITHUB_TOKEN", "--value-env", "GH_TOKEN_VALUE", "--json"]) == 0
    secret = _json(capsys)["secret"]
    assert set(secret) == {"id", "key", "created_at"}

    assert cli_main.main(["project", "add", "demo", str(runtime_settings.home_dir), "--json"]) == 0
    project_id = _json(capsys)["project"]["id"]

    assert cli_main.main(
        ["bind", "add", project_id, "github", "--set", "LOG=debug", "--secret", "GITHUB_TOKEN=GITHUB_TOKEN", "--json"]
    ) == 0
    overrides = _json(capsys)["binding"]["overrides"]
    assert overrides == [
        {"key": "LOG", "value": "debug", "is_secret": False},
        {"key": "GITHUB_TOKEN", "value": "GITHUB_TOKEN", "is_secret": True},
    ]

    assert cli_main.main(["resolve", project_id, "github", "--json"]) == 0
    resolved_out = capsys.readouterr().out
    assert json.loads(resolved_out) == {
        "status": "resolved",
        "mcp": "github",
        "kind": "Binary",
        "keys": ["GITHUB_TOKEN", "LOG"],
    }

    assert cli_main.main(["secret", "list"]) == 0
    assert cli_main.main(["bind", "list", project_id]) == 0
    listing = capsys.readouterr().out
    assert "GITHUB_TOKEN" in listing

    exposed = [
        resolved_out,
        listing,
        (runtime_settings.log_dir / "telemetry.jsonl").read_text(encoding="utf-8"),
        runtime_settings.secrets_file.read_text(encoding="utf-8"),
        runtime_settings.catalog_file.read_text(encoding="utf-8"),
    ]
    assert all(SECRET_VALUE not in text for text in exposed)
    assert runtime_settings.master_key_file.exists()


def test_bind_toggle_and_disabled_resolution(runtime_settings: RuntimeSettings, config_file: Path, capsys: pytest.CaptureFixture[str]) -> None:
    cli_main.main(["catalog", "import", str(config_file), "--only", "search"])
    capsys.readouterr()
    cli_main.main(["project", "add", "demo", str(runtime_settings.home_dir), "--json"])
    project_id = _json(capsys)["project"]["id"]
    cli_main.main(["bind", "add", project_id, "search"])

    assert cli_main.main(["bind", "add", project_id, "search"]) == 1
    assert "already has a binding" in capsys.readouterr().err

    assert cli_main.main(["bind", "disable", project_id, "search", "--json"]) == 0
    assert _json(capsys)["binding"]["enabled"] is False
    assert cli_main.main(["resolve", project_id, "search", "--json"]) == 0
    assert _json(capsys)["status"] == "disabled"

    assert cli_main.main(["bind", "remove", project_id, "search", "--json"]) == 0
    assert _json(capsys)["status"] == "removed"
    assert cli_main.main(["resolve", project_id, "search"]) == 1
    assert "no binding" in capsys.readouterr().err


def test_unresolved_secret_reference_fails(runtime_settings: RuntimeSettings, config_file: Path, capsys: pytest.CaptureFixture[str]) -> None:
    cli_main.main(["catalog", "import", str(config_file), "--only", "github"])
    capsys.readouterr()
    cli_main.main(["project", "add", "demo", str(runtime_settings.home_dir), "--json"])
    project_id = _json(capsys)["project"]["id"]
    cli_main.main(["bind", "add", project_id, "github", "--secret", "TOKEN=absent"])
    capsys.readouterr()
    assert cli_main.main(["resolve", project_id, "github"]) == 1
    assert "missing secret 'absent'" in capsys.readouterr().err


def test_bad_override_syntax_is_usage_error(runtime_settings: RuntimeSettings) -> None:
    with pytest.raises(SystemExit) as excinfo:
        cli_main.main(["bind", "add", "prj_x", "github", "--set", "NOVALUE"])
    assert excinfo.value.code == 2


def test_telemetry_summary_and_clear(runtime_settings: RuntimeSettings, capsys: pytest.CaptureFixture[str]) -> None:
    cli_main.main(["project", "list"])
    capsys.readouterr()
    assert cli_main.main(["telemetry", "--json"]) == 0
    summary = _json(capsys)
    assert summary["by_event"]["project.list"] == 2
    assert cli_main.main(["telemetry", "--clear"]) == 0
    assert not (runtime_settings.log_dir / "telemetry.jsonl").exists()


def test_oversized_stdin_is_refused_without_reading_it_all(
    runtime_settings: RuntimeSettings,
    monkeypatch: pytest.MonkeyPatch,
    capsys: pytest.CaptureFixture[str],
) -> None:
    monkeypatch.setattr(cli_main, "SETTINGS", replace(runtime_settings, max_import_bytes=64))
    stream = io.StringIO(json.dumps(CONFIG) + " " * 10_000)
    monkeypatch.setattr(sys, "stdin", stream)
    assert cli_main.main(["catalog", "preview", "-"]) == 1
    assert "limit is 64 bytes" in capsys.readouterr().err
    assert stream.tell() == 65


def test_small_stdin_payload_is_previewed(
    runtime_settings: RuntimeSettings,
    monkeypatch: pytest.MonkeyPatch,
    capsys: pytest.CaptureFixture[str],
) -> None:
    monkeypatch.setattr(sys, "stdin", io.StringIO(json.dumps(CONFIG)))
    assert cli_main.main(["catalog", "preview", "-", "--json"]) == 0
    assert [item["name"] for item in _json(capsys)["results"]] == ["github", "search", "legacy"]
