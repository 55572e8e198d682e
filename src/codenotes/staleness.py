from .fingerprint import content_hash
from .models import LineRange, Note


def is_outdated(line_range: LineRange, lines: list[str], stored_hash: str) -> bool:
    """True when the text under line_range no longer hashes to stored_hash."""
    return content_hash(lines, line_range.start, line_range.end) != stored_hash


def check_staleness(note: Note, lines: list[str]) -> bool:
    """Recompute note.is_outdated from its current range. Returns True if the flag flipped."""
    was_outdated = note.is_outdated
    note.is_outdated = is_outdated(note.range, lines, note.content_hash)
    return was_outdated != note.is_outdated
