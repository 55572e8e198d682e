import datetime
import os
import sqlite3
from pathlib import Path

from .models import Anchor, LineRange, Note


def _row_to_note(row: sqlite3.Row) -> Note:
    return Note(
        id=row["id"],
        file_path=row["file_path"],
        anchor=Anchor(
            range=LineRange(row["start_line"], row["end_line"]),
            anchor_hash=row["anchor_hash"],
            symbol_name=row["symbol_name"],
        ),
        content_hash=row["content_hash"],
        note_text=row["note_text"],
        author_name=row["author_name"],
        author_email=row["author_email"],
        is_outdated=bool(row["is_outdated"]),
        created_at=row["created_at"],
        updated_at=row["updated_at"],
        git_branch=row["git_branch"],
        git_commit=row["git_commit"],
    )


def _now() -> str:
    return datetime.datetime.now(datetime.timezone.utc).isoformat()


class NotesDB:
    def __init__(self, db_path: str):
        self.db_path = db_path
        self.conn: sqlite3.Connection | None = None

    def connect(self) -> None:
        os.makedirs(os.path.dirname(self.db_path) or ".", exist_ok=True)
        self.conn = sqlite3.connect(self.db_path)
        self.conn.row_factory = sqlite3.Row
        self.conn.execute("PRAGMA journal_mode=WAL")

        schema_path = Path(__file__).parent / "schema.sql"
        self.conn.executescript(schema_path.read_text())

    def upsert_note(self, note: Note) -> None:
        created_at = note.created_at or _now()
        self.conn.execute(
            """
            INSERT OR REPLACE INTO notes
            (id, file_path, symbol_name, anchor_hash, start_line, end_line,
             content_hash, is_outdated, note_text, author_name, author_email,
             git_branch, git_commit, created_at, updated_at)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (
                note.id,
                note.file_path,
                note.anchor.symbol_name,
                note.anchor.anchor_hash,
                note.range.start,
                note.range.end,
                note.content_hash,
                int(note.is_outdated),
                note.note_text,
                note.author_name,
                note.author_email,
                note.git_branch,
                note.git_commit,
                created_at,
                note.updated_at,
            ),
        )
        self.conn.commit()
        note.created_at = created_at

    def get_note(self, note_id: str) -> Note | None:
        cursor = self.conn.execute("SELECT * FROM notes WHERE id = ?", (note_id,))
        row = cursor.fetchone()
        return _row_to_note(row) if row else None

    def get_notes_for_file(self, file_path: str) -> list[Note]:
        cursor = self.conn.execute(
            "SELECT * FROM notes WHERE file_path = ? ORDER BY start_line, created_at, id",
            (file_path,),
        )
        return [_row_to_note(row) for row in cursor.fetchall()]

    def list_notes(self) -> list[Note]:
        cursor = self.conn.execute(
            "SELECT * FROM notes ORDER BY file_path, start_line, created_at, id"
        )
        return [_row_to_note(row) for row in cursor.fetchall()]

    def list_files(self) -> list[str]:
        cursor = self.conn.execute("SELECT DISTINCT file_path FROM notes ORDER BY file_path")
        return [row["file_path"] for row in cursor.fetchall()]

    def update_note_text(
        self,
        note_id: str,
        note_text: str,
        anchor: Anchor | None = None,
        content_hash: str | None = None,
    ) -> bool:
        """Replace a note's text; optionally re-anchor it and replace its content fingerprint.

        Returns False if no note has that id.
        """
        if anchor is None and content_hash is None:
            cursor = self.conn.execute(
                "UPDATE notes SET note_text = ?, updated_at = ? WHERE id = ?",
                (note_text, _now(), note_id),
            )
        else:
            current = self.get_note(note_id)
            if current is None:
                return False
            anchor = anchor or current.anchor
            cursor = self.conn.execute(
                """
                UPDATE notes SET note_text = ?, symbol_name = ?, anchor_hash = ?,
                    start_line = ?, end_line = ?, content_hash = ?, is_outdated = 0,
                    updated_at = ?
                WHERE id = ?
                """,
                (
                    note_text,
                    anchor.symbol_name,
                    anchor.anchor_hash,
                    anchor.range.start,
                    anchor.range.end,
                    content_hash or current.content_hash,
                    _now(),
                    note_id,
                ),
            )
        self.conn.commit()
        return cursor.rowcount > 0

    def delete_note(self, note_id: str) -> bool:
        cursor = self.conn.execute("DELETE FROM notes WHERE id = ?", (note_id,))
        self.conn.commit()
        return cursor.rowcount > 0

    def persist_anchors(self, notes: list[Note]) -> None:
        """Write back range, anchor hash and outdated flag for all notes in one transaction."""
        try:
            self.conn.executemany(
                """
                UPDATE notes SET anchor_hash = ?, start_line = ?, end_line = ?, is_outdated = ?
                WHERE id = ?
                """,
                [
                    (
                        note.anchor.anchor_hash,
                        note.range.start,
                        note.range.end,
                        int(note.is_outdated),
                        note.id,
                    )
                    for note in notes
                ],
            )
            self.conn.commit()
        except sqlite3.Error:
            self.conn.rollback()
            raise

    def close(self) -> None:
        if self.conn:
            self.conn.close()
            self.conn = None
