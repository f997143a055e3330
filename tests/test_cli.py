from __future__ import annotations

import csv
import io
import json
from pathlib import Path

import pytest

from grave_registry.cli.main import main


@pytest.fixture
def cli_env(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    monkeypatch.chdir(tmp_path)
    for key in ("GRAVE_DB_PATH", "GRAVE_WEBHOOK_URL", "OPENAI_API_KEY", "OPEN_ROUTER_API_KEY"):
        monkeypatch.delenv(key, raising=False)
    photo = tmp_path / "stele.jpg"
    photo.write_bytes(b"\xff\xd8\xff\xe0")
    return tmp_path


def _db(root: Path) -> list:
    return ["--db", str(root / "registry.sqlite3")]


def _capture(root: Path, capsys, *extra: str) -> dict:
    code = main(_db(root) + ["capture", "--photo", str(root / "stele.jpg"), "--no-ai", *extra])
    assert code == 0
    return json.loads(capsys.readouterr().out.strip().splitlines()[-1])


def test_capture_list_export(cli_env: Path, capsys) -> None:
    first = _capture(cli_env, capsys, "--person", "Jean Valjean", "--aisle", "4", "--lat", "48.85", "--lng", "2.35")
    second = _capture(cli_env, capsys, "--person", "Fantine", "--person", "Cosette", "--condition", "Mauvais")
    assert (first["steleNumber"], second["steleNumber"]) == (1, 2)
    assert second["people"] == 2

    assert main(_db(cli_env) + ["list", "--json"]) == 0
    listed = json.loads(capsys.readouterr().out)
    assert [r["steleNumber"] for r in listed] == [2, 1]
    assert listed[0]["condition"] == "Mauvais"

    out = cli_env / "out" / "registre.csv"
    assert main(_db(cli_env) + ["export", "--output", str(out)]) == 0
    rows = list(csv.reader(io.StringIO(out.read_text(encoding="utf-8-sig"))))
    assert len(rows) == 4
    assert [row[5] for row in rows[1:]] == ["Fantine", "Cosette", "Jean Valjean"]


def test_edit_and_delete(cli_env: Path, capsys) -> None:
    rec = _capture(cli_env, capsys, "--person", "A")
    assert main(_db(cli_env) + ["edit", rec["id"], "--aisle", "B9", "--condition", "Très bon"]) == 0
    capsys.readouterr()
    main(_db(cli_env) + ["list", "--json"])
    assert json.loads(capsys.readouterr().out)[0]["aisleNumber"] == "B9"

    assert main(_db(cli_env) + ["edit", "missing-id", "--aisle", "X"]) == 4
    assert main(_db(cli_env) + ["delete", rec["id"]]) == 0
    assert _capture(cli_env, capsys, "--person", "B")["steleNumber"] == 2


def test_sync_offline_and_unconfigured(cli_env: Path, capsys) -> None:
    _capture(cli_env, capsys, "--person", "A")
    assert main(_db(cli_env) + ["sync", "--offline"]) == 1
    assert "en ligne" in capsys.readouterr().out

    assert main(_db(cli_env) + ["config", "set-webhook", "https://script.google.com/macros/s/x/exec"]) == 0
    shown = json.loads(capsys.readouterr().out.strip().splitlines()[-1])
    assert shown["webhook_url"] == "https://script.google.com/macros/s/x/exec"
    assert shown["next_stele_number"] == 2


def test_capture_rejects_non_image(cli_env: Path) -> None:
    notes = cli_env / "notes.txt"
    notes.write_text("x", encoding="utf-8")
    assert main(_db(cli_env) + ["capture", "--photo", str(notes), "--no-ai"]) == 2


def test_edit_rejects_non_positive_stele_number(cli_env: Path, capsys) -> None:
    rec = _capture(cli_env, capsys, "--person", "A")
    assert main(_db(cli_env) + ["edit", rec["id"], "--stele-number", "0"]) == 2
    assert main(_db(cli_env) + ["edit", rec["id"], "--stele-number", "-3"]) == 2
    assert main(_db(cli_env) + ["edit", rec["id"], "--stele-number", "9"]) == 0
    capsys.readouterr()

    assert main(_db(cli_env) + ["list"]) == 0
    out = capsys.readouterr().out
    assert "N°9" in out
    assert rec["id"] in out


def test_offline_capture_keeps_a_blank_person_for_export(cli_env: Path, capsys) -> None:
    rec = _capture_offline(cli_env, capsys)
    assert rec["people"] == 1

    out = cli_env / "registre.csv"
    assert main(_db(cli_env) + ["export", "--output", str(out)]) == 0
    rows = list(csv.reader(io.StringIO(out.read_text(encoding="utf-8-sig"))))
    assert len(rows) == 2
    assert rows[1][0] == "1"
    assert rows[1][5] == ""


def _capture_offline(root: Path, capsys) -> dict:
    code = main(_db(root) + ["capture", "--photo", str(root / "stele.jpg"), "--offline"])
    assert code == 0
    return json.loads(capsys.readouterr().out.strip().splitlines()[-1])
