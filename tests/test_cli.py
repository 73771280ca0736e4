import json
from pathlib import Path

from flashforge_relay import cli
from flashforge_relay.config import load_config

from conftest import FakeTransactionClient


def test_show_config_prints_sections(tmp_path: Path, capsys) -> None:
    config_path = tmp_path / "flashforge-relay.cfg"

    exit_code = cli.main(["--config", str(config_path), "show-config"])

    output = capsys.readouterr().out
    assert exit_code == 0
    assert "[printer]" in output
    assert "port = 8899" in output
    assert "[polling]" in output


def test_snapshot_rejects_invalid_address(tmp_path: Path) -> None:
    config_path = tmp_path / "flashforge-relay.cfg"

    exit_code = cli.main(["--config", str(config_path), "snapshot", "not a host"])

    assert exit_code == 2


def test_snapshot_prints_json(tmp_path: Path, capsys, monkeypatch) -> None:
    config_path = tmp_path / "flashforge-relay.cfg"
    config_path.write_text("[logging]\npath =\n", encoding="utf-8")

    monkeypatch.setattr(cli, "_client_for", lambda config: FakeTransactionClient())

    exit_code = cli.main(["--config", str(config_path), "snapshot", "10.0.0.5"])

    payload = json.loads(capsys.readouterr().out)
    assert exit_code == 0
    assert payload["info"]["firmware"] == "v2.2.3"
    assert payload["errors"] == []


def test_send_reports_failure(tmp_path: Path, monkeypatch) -> None:
    config_path = tmp_path / "flashforge-relay.cfg"

    client = FakeTransactionClient()
    client.fail("~M24", "Connection timeout")
    monkeypatch.setattr(cli, "_client_for", lambda config: client)

    exit_code = cli.main(["--config", str(config_path), "send", "10.0.0.5", "resume"])

    assert exit_code == 1
    assert client.commands() == ["~M601 S1", "~M24"]


def test_init_config_writes_defaults(tmp_path: Path, capsys) -> None:
    config_path = tmp_path / "nested" / "flashforge-relay.cfg"

    exit_code = cli.main(["--config", str(config_path), "init-config"])

    assert exit_code == 0
    assert str(config_path) in capsys.readouterr().out
    contents = config_path.read_text(encoding="utf-8")
    assert "[polling]" in contents
    assert "send_timeout_seconds = 5.0" in contents
    assert load_config(config_path).printer.port == 8899


def test_init_config_refuses_to_overwrite_without_force(tmp_path: Path) -> None:
    config_path = tmp_path / "flashforge-relay.cfg"
    config_path.write_text("[server]\nport = 4100\n", encoding="utf-8")

    assert cli.main(["--config", str(config_path), "init-config"]) == 1
    assert config_path.read_text(encoding="utf-8") == "[server]\nport = 4100\n"

    assert cli.main(["--config", str(config_path), "init-config", "--force"]) == 0
    rewritten = load_config(config_path)
    assert rewritten.server.port == 4100
    assert "[printer]" in config_path.read_text(encoding="utf-8")
