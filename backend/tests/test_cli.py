from __future__ import annotations

import json
from pathlib import Path

import pytest

from treestore.cli import main


def _run(capsys: pytest.CaptureFixture[str], db: Path, blobs: Path, *argv: str) -> tuple[int, str, str]:
    code = main(["--db", str(db), "--blobs", str(blobs), *argv])
    out, err = capsys.readouterr()
    return code, out, err


def test_ls_bootstraps_and_lists(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    code, out, _ = _run(capsys, tmp_path / "t.db", tmp_path / "b", "ls")
    assert code == 0
    body = json.loads(out)
    assert [f["name"] for f in body["rootFiles"]] == ["files"]
    assert body["rootId"]


def test_mkdir_touch_info_rm(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    db, blobs = tmp_path / "t.db", tmp_path / "b"
    _, out, _ = _run(capsys, db, blobs, "ls")
    root_id = json.loads(out)["rootId"]

    _, out, _ = _run(capsys, db, blobs, "mkdir", root_id, "docs")
    docs = json.loads(out)
    _run(capsys, db, blobs, "touch", docs["id"], "a.txt", "--text", "hello")

    _, out, _ = _run(capsys, db, blobs, "info", docs["id"])
    assert json.loads(out) == {"count": 1, "size": 5}

    _, out, _ = _run(capsys, db, blobs, "rm", docs["id"], "ghost")
    assert json.loads(out) == {"deletedCount": 1, "totalRequested": 2}


def test_upload_and_cat(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    db, blobs = tmp_path / "t.db", tmp_path / "b"
    src = tmp_path / "note.md"
    src.write_text("# title\n", encoding="utf-8")
    _, out, _ = _run(capsys, db, blobs, "ls")
    root_id = json.loads(out)["rootId"]

    _, out, _ = _run(capsys, db, blobs, "upload", root_id, str(src))
    node = json.loads(out)
    assert node["name"] == "note.md"
    assert node["size"] == 8

    code, out, _ = _run(capsys, db, blobs, "cat", node["id"])
    assert code == 0
    assert out == "# title\n"


def test_errors_exit_nonzero(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    code, out, err = _run(capsys, tmp_path / "t.db", tmp_path / "b", "info", "ghost")
    assert code == 1
    assert out == ""
    assert err.startswith("error: not_found:")

    code, _, err = _run(capsys, tmp_path / "t.db", tmp_path / "b", "upload", "x", str(tmp_path / "missing"))
    assert code == 1
    assert err.startswith("error:")
