from __future__ import annotations

import argparse
import json

import pytest

from workout_batch.cli.app import cmd_plan, cmd_run


@pytest.fixture(autouse=True)
def memory_config(tmp_path, monkeypatch):
    monkeypatch.setenv("WORKOUT_BATCH_CONFIG", str(tmp_path / "config.toml"))
    monkeypatch.setenv("WORKOUT_BATCH_STORE", "memory")


def write_document(tmp_path, document) -> str:
    path = tmp_path / "request.json"
    path.write_text(json.dumps(document), encoding="utf-8")
    return str(path)


async def test_plan_prints_sessions(tmp_path, capsys):
    path = write_document(
        tmp_path,
        {
            "directory": {"teams": {"u18": ["x1", "x2", "x3"]}},
            "targets": [
                {"type": "team", "id": "u18"},
                {"type": "player", "id": "p1"},
            ],
            "bulk": {"number_of_sessions": 2},
        },
    )
    await cmd_plan(argparse.Namespace(file=path, players=True))

    printed = capsys.readouterr().out
    assert "Session 1" in printed
    assert "Session 2" in printed
    assert "x1" in printed


async def test_plan_without_targets_exits(tmp_path):
    path = write_document(tmp_path, {"bulk": {"number_of_sessions": 2}})
    with pytest.raises(SystemExit) as excinfo:
        await cmd_plan(argparse.Namespace(file=path, players=False))
    assert excinfo.value.code == 1


async def test_run_exports_seeded_templates(tmp_path):
    export_path = tmp_path / "export.json"
    path = write_document(
        tmp_path,
        {
            "templates": [{"id": "w1", "name": "Lower body"}],
            "request": {"operation": "export", "template_ids": ["w1"]},
        },
    )
    await cmd_run(
        argparse.Namespace(file=path, validate_only=False, out=str(export_path))
    )

    [record] = json.loads(export_path.read_text(encoding="utf-8"))
    assert record["id"] == "w1"
    assert record["name"] == "Lower body"


async def test_run_rejects_unknown_operation(tmp_path, capsys):
    path = write_document(tmp_path, {"operation": "explode"})
    with pytest.raises(SystemExit):
        await cmd_run(argparse.Namespace(file=path, validate_only=False, out=None))
    assert "UNKNOWN_OPERATION" in capsys.readouterr().out
