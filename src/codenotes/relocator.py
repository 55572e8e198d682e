import logging
import threading
import uuid
from collections.abc import Callable

from .database import NotesDB
from .drift import resolve_drift
from .fingerprint import (
    DEFAULT_CONTEXT_RADIUS,
    DEFAULT_SEARCH_RADIUS,
    anchor_hash,
    content_hash,
)
from .models import (
    Anchor,
    AnchorChange,
    ContentFingerprint,
    LineRange,
    Note,
    RelocationReport,
)
from .staleness import check_staleness
from .symbols import SymbolLocator

logger = logging.getLogger("codenotes.relocator")


def compute_initial_anchor(
    lines: list[str],
    line_range: LineRange,
    symbol_name: str | None = None,
    context_radius: int = DEFAULT_CONTEXT_RADIUS,
) -> tuple[Anchor, ContentFingerprint]:
    """Fingerprint a freshly selected range for a new note.

    The range is normalised so start <= end and both lie inside the file.
    """
    last_line = max(len(lines) - 1, 0)
    start, end = sorted((line_range.start, line_range.end))
    start = min(max(start, 0), last_line)
    end = min(max(end, start), last_line)

    anchor = Anchor(
        range=LineRange(start, end),
        anchor_hash=anchor_hash(lines, start, context_radius),
        symbol_name=symbol_name or None,
    )
    fingerprint = ContentFingerprint(
        range=LineRange(start, end),
        hash=content_hash(lines, start, end),
    )
    return anchor, fingerprint


class NoteRelocator:
    """Keeps stored note anchors attached to their code as files change.

    Each file's notes are processed under that file's lock, so one file is never
    relocated by two workers at once. Different files do not share state.
    """

    def __init__(
        self,
        db: NotesDB,
        locator: SymbolLocator | None = None,
        context_radius: int = DEFAULT_CONTEXT_RADIUS,
        search_radius: int = DEFAULT_SEARCH_RADIUS,
    ):
        self.db = db
        self.locator = locator
        self.context_radius = context_radius
        self.search_radius = search_radius
        self._locks: dict[str, threading.Lock] = {}
        self._locks_guard = threading.Lock()

    def _lock_for(self, file_path: str) -> threading.Lock:
        with self._locks_guard:
            return self._locks.setdefault(file_path, threading.Lock())

    def _prune_locks(self, active_files: list[str]) -> None:
        """Drop idle locks of files that no longer have notes."""
        keep = set(active_files)
        with self._locks_guard:
            for path in list(self._locks):
                if path not in keep and not self._locks[path].locked():
                    del self._locks[path]

    def add_note(
        self,
        file_path: str,
        lines: list[str],
        line_range: LineRange,
        note_text: str,
        symbol_name: str | None = None,
        author_name: str = "Anonymous",
        author_email: str | None = None,
        git_branch: str | None = None,
        git_commit: str | None = None,
    ) -> Note:
        """Create and store a note on line_range of file_path.

        When no symbol_name is given the enclosing function/method/class at the
        start line is looked up, so the note can be found again by name later.
        """
        if symbol_name is None and self.locator is not None:
            try:
                symbol_name = self.locator.enclosing_symbol(file_path, lines, line_range.start)
            except Exception as e:
                logger.warning(f"Enclosing symbol lookup failed for {file_path}: {e}")

        anchor, fingerprint = compute_initial_anchor(
            lines, line_range, symbol_name, self.context_radius
        )
        note = Note(
            id=f"note:{uuid.uuid4().hex[:12]}",
            file_path=file_path,
            anchor=anchor,
            content_hash=fingerprint.hash,
            note_text=note_text,
            author_name=author_name,
            author_email=author_email,
            git_branch=git_branch,
            git_commit=git_commit,
        )
        with self._lock_for(file_path):
            self.db.upsert_note(note)
        logger.info(
            f"Added {note.id} on {file_path}:{anchor.range.start}-{anchor.range.end}"
            f" (symbol={anchor.symbol_name})"
        )
        return note

    def on_file_changed(self, file_path: str, lines: list[str]) -> RelocationReport:
        """Resolve drift and staleness for every note on file_path.

        Anchors are written back in one batch, and only when something changed,
        so a second call on the same content is a no-op.
        """
        with self._lock_for(file_path):
            notes = self.db.get_notes_for_file(file_path)
            report = RelocationReport(file_path=file_path, notes=notes)
            if not notes:
                return report

            for note in notes:
                old_range = note.range.copy()
                resolution = resolve_drift(
                    note.anchor,
                    lines,
                    self.locator,
                    file_path,
                    context_radius=self.context_radius,
                    search_radius=self.search_radius,
                )
                flipped = check_staleness(note, lines)
                change = AnchorChange(
                    note_id=note.id,
                    resolution=resolution,
                    outdated=note.is_outdated,
                    outdated_changed=flipped,
                    old_range=old_range,
                    new_range=note.range.copy(),
                )
                report.changes.append(change)

                if resolution.relocated:
                    logger.info(
                        f"{note.id} {resolution.value}: lines {old_range.start}-{old_range.end}"
                        f" -> {note.range.start}-{note.range.end}"
                    )
                if flipped:
                    logger.info(f"{note.id} outdated={note.is_outdated}")

            if report.changed:
                self.db.persist_anchors(notes)
                report.persisted = True
            else:
                logger.debug(f"No anchor changes for {file_path}")

        return report

    def check_all(
        self, load_file_lines: Callable[[str], list[str]]
    ) -> list[RelocationReport]:
        """Run on_file_changed over every file that has notes.

        Files that load_file_lines cannot read are skipped with a warning. Locks of
        files without notes are released here, so the lock map tracks annotated files.
        """
        reports: list[RelocationReport] = []
        files = self.db.list_files()
        self._prune_locks(files)
        for file_path in files:
            try:
                lines = load_file_lines(file_path)
            except OSError as e:
                logger.warning(f"Skipping {file_path}: {e}")
                continue
            reports.append(self.on_file_changed(file_path, lines))
        return reports
