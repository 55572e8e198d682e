"""
Export and import notes as a `.codenotes` JSON document for sharing through git.

The document is a single object with a "notes" array:
    {"notes": [{"id": "...", "filePath": "...", "functionName": "...",
                "codeHash": "...", "range": {"start": 3, "end": 5},
                "noteText": "...", "contentHash": "...", ...}]}

Notes are sorted by file and line so exports diff cleanly. Older documents
that store a single "lineNumber" instead of a "range" are migrated on load.
"""

import json
from pathlib import Path

from .database import NotesDB
from .models import Anchor, LineRange, Note


class NotesFormatError(ValueError):
    """Raised when a .codenotes document cannot be understood."""


def note_to_item(note: Note) -> dict:
    return {
        "id": note.id,
        "filePath": note.file_path,
        "functionName": note.anchor.symbol_name,
        "codeHash": note.anchor.anchor_hash,
        "range": note.range.to_dict(),
        "noteText": note.note_text,
        "authorName": note.author_name,
        "authorEmail": note.author_email,
        "timestamp": note.created_at,
        "updatedAt": note.updated_at,
        "gitBranch": note.git_branch,
        "gitCommit": note.git_commit,
        "contentHash": note.content_hash,
        "isOutdated": note.is_outdated,
    }


def item_to_note(item: dict) -> Note:
    if not isinstance(item, dict):
        raise NotesFormatError(f"Expected a note object, got {type(item).__name__}")

    raw_range = item.get("range")
    if raw_range is None and item.get("lineNumber") is not None:
        raw_range = {"start": item["lineNumber"], "end": item["lineNumber"]}

    try:
        line_range = LineRange.from_dict(raw_range)
        note_id = item["id"]
        file_path = item["filePath"]
        code_hash = item["codeHash"]
    except (KeyError, TypeError, ValueError) as e:
        raise NotesFormatError(f"Invalid note entry {item.get('id', '?')!r}: {e}") from e

    if line_range.start < 0 or line_range.end < line_range.start:
        raise NotesFormatError(f"Invalid range for note {note_id!r}: {raw_range}")

    return Note(
        id=note_id,
        file_path=file_path,
        anchor=Anchor(
            range=line_range,
            anchor_hash=code_hash,
            symbol_name=item.get("functionName") or None,
        ),
        content_hash=item.get("contentHash") or "",
        note_text=item.get("noteText", ""),
        author_name=item.get("authorName") or "Anonymous",
        author_email=item.get("authorEmail"),
        is_outdated=bool(item.get("isOutdated", False)),
        created_at=item.get("timestamp"),
        updated_at=item.get("updatedAt"),
        git_branch=item.get("gitBranch"),
        git_commit=item.get("gitCommit"),
    )


def dump_notes_document(notes: list[Note]) -> str:
    ordered = sorted(notes, key=lambda n: (n.file_path, n.range.start, n.id))
    return json.dumps({"notes": [note_to_item(n) for n in ordered]}, indent=2) + "\n"


def load_notes_document(text: str) -> list[Note]:
    """Parse a .codenotes document. An empty document holds no notes."""
    if not text.strip():
        return []

    try:
        data = json.loads(text)
    except json.JSONDecodeError as e:
        raise NotesFormatError(f"Invalid JSON in notes document: {e}") from e

    if not isinstance(data, dict):
        raise NotesFormatError('Expected an object with a "notes" array')
    if not isinstance(data.get("notes"), list):
        raise NotesFormatError('The "notes" field must be an array')

    return [item_to_note(item) for item in data["notes"]]


def export_notes(db: NotesDB, output_path: str) -> int:
    """Write every stored note to output_path. Returns the number of notes written."""
    notes = db.list_notes()
    Path(output_path).write_text(dump_notes_document(notes), encoding="utf-8")
    return len(notes)


def import_notes(db: NotesDB, input_path: str) -> int:
    """Load notes from input_path, replacing stored notes with the same id."""
    notes = load_notes_document(Path(input_path).read_text(encoding="utf-8"))
    for note in notes:
        db.upsert_note(note)
    return len(notes)
