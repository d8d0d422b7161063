"""Tests for the command-line tools."""

import json
from pathlib import Path

import pytest
from conftest import player1_layout
from hiddenfleet import cli
from hiddenfleet.reconcile.wire import dump_layout


@pytest.fixture(autouse=True)
def quiet_telemetry(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(cli, "init_telemetry", lambda: None)
    monkeypatch.setattr(cli, "record_metric", lambda *args, **kwargs: None)
    monkeypatch.setattr(cli, "shutdown_telemetry", lambda: None)


def write_layout(path: Path, document: dict) -> Path:
    path.write_text(json.dumps(document), encoding="utf-8")
    return path


def test_validate_accepts_fixture_fleet(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    layout = write_layout(tmp_path / "fleet.json", dump_layout(player1_layout()))

    assert cli.main(["validate", str(layout)]) == 0
    out = capsys.readouterr().out
    assert out.strip().endswith("valid")
    assert "S" in out


def test_validate_reports_each_rule(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    document = dump_layout(player1_layout())
    document["s21"] = {"x": 11, "y": 7, "vertical": False}
    layout = write_layout(tmp_path / "fleet.json", document)

    assert cli.main(["validate", str(layout)]) == 1
    assert "invalid: Ship must fit on the board" in capsys.readouterr().out


def test_validate_requires_every_ship(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    layout = write_layout(tmp_path / "fleet.json", {"s21": {"x": 1, "y": 1}})

    assert cli.main(["validate", str(layout)]) == 1
    assert "invalid: All ships must be placed" in capsys.readouterr().out


def test_replay_prints_both_boards(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    layout = write_layout(tmp_path / "fleet.json", dump_layout(player1_layout()))
    snapshots = tmp_path / "feed.jsonl"
    lines = [
        {"phase": "p1_turn", "player1_id": "alice", "player2_id": "bob"},
        {
            "phase": "p2_turn",
            "player1_id": "alice",
            "player2_id": "bob",
            "last_shot_result": {"cell": {"x": 1, "y": 1}, "fired_by": "bob", "outcome": "miss"},
        },
    ]
    snapshots.write_text("\n".join(json.dumps(line) for line in lines) + "\n\n", encoding="utf-8")

    status = cli.main(["replay", str(snapshots), "--layout", str(layout), "--identity", "alice"])
    out = capsys.readouterr().out

    assert status == 0
    assert "phase: p2_turn" in out
    assert "viewer: p1" in out
    assert "| O  " in out


def test_replay_of_empty_feed(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    snapshots = tmp_path / "feed.jsonl"
    snapshots.write_text("", encoding="utf-8")

    assert cli.main(["replay", str(snapshots)]) == 1
    assert "no snapshots folded" in capsys.readouterr().out


def test_telemetry_is_flushed_even_when_a_command_fails(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    calls: list[str] = []
    monkeypatch.setattr(cli, "shutdown_telemetry", lambda: calls.append("shutdown"))

    with pytest.raises(FileNotFoundError):
        cli.main(["validate", str(tmp_path / "missing.json")])
    assert calls == ["shutdown"]
