import importlib.util
import json
import sys
from pathlib import Path

from codenotes.database import NotesDB
from codenotes.fingerprint import read_lines
from codenotes.models import LineRange
from codenotes.relocator import NoteRelocator

SCRIPT_PATH = Path(__file__).resolve().parents[3] / "tools" / "notes-check.py"


def _load_notes_check():
    spec = importlib.util.spec_from_file_location("notes_check", SCRIPT_PATH)
    module = importlib.util.module_from_spec(spec)
    sys.modules[spec.name] = module
    spec.loader.exec_module(module)
    return module


def _workspace_with_note(tmp_path, newline="\n", context_radius=3):
    source = tmp_path / "app.py"
    source.write_bytes("".join(f"value_{i} = {i}{newline}" for i in range(20)).encode("utf-8"))
    db_path = tmp_path / ".vscode" / "codenotes.db"
    db = NotesDB(str(db_path))
    db.connect()
    NoteRelocator(db, context_radius=context_radius).add_note(
        "app.py", read_lines(source), LineRange(8, 9), "keep in sync"
    )
    db.close()
    return source, db_path


def _stored_notes(db_path):
    db = NotesDB(str(db_path))
    db.connect()
    try:
        return db.list_notes()
    finally:
        db.close()


def test_passes_when_notes_are_current(tmp_path, capsys):
    _, db_path = _workspace_with_note(tmp_path)
    assert _load_notes_check().main([str(db_path)]) == 0
    assert "PASSED" in capsys.readouterr().out


def test_fails_on_outdated_note(tmp_path, capsys):
    source, db_path = _workspace_with_note(tmp_path)
    source.write_text(source.read_text().replace("value_9 = 9", "value_9 = 90"))

    assert _load_notes_check().main([str(db_path), str(tmp_path), "--json"]) == 1
    output = json.loads(capsys.readouterr().out)
    assert output["status"] == "fail"
    assert output["outdated_count"] == 1
    assert output["outdated"][0]["file"] == "app.py"


def test_crlf_file_is_current_and_left_untouched(tmp_path, capsys):
    _, db_path = _workspace_with_note(tmp_path, newline="\r\n")
    before = _stored_notes(db_path)[0]

    assert _load_notes_check().main([str(db_path)]) == 0
    assert "PASSED" in capsys.readouterr().out

    after = _stored_notes(db_path)[0]
    assert after.range == LineRange(8, 9)
    assert after.anchor.anchor_hash == before.anchor.anchor_hash
    assert after.is_outdated is False


def test_uses_context_radius_from_env(tmp_path, capsys, monkeypatch):
    monkeypatch.setenv("CODENOTES_CONTEXT_RADIUS", "5")
    source, db_path = _workspace_with_note(tmp_path, context_radius=5)
    source.write_text("# header\n" + source.read_text())

    assert _load_notes_check().main([str(db_path), "--json", "--verbose"]) == 0
    output = json.loads(capsys.readouterr().out)
    assert output["outdated_count"] == 0
    assert output["relocated"][0]["resolution"] == "relocatedByHash"
    assert output["relocated"][0]["new_range"] == {"start": 9, "end": 10}

    stored = _stored_notes(db_path)[0]
    assert stored.range == LineRange(9, 10)
    assert stored.is_outdated is False


def test_missing_database(tmp_path):
    assert _load_notes_check().main([str(tmp_path / "nope.db")]) == 2
