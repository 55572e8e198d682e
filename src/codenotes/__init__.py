"""CodeNotes: notes on line ranges of source files that follow the code as it moves."""

from .drift import resolve_drift
from .fingerprint import anchor_hash, content_hash
from .models import Anchor, AnchorChange, ContentFingerprint, LineRange, Note, RelocationReport, Resolution
from .relocator import NoteRelocator, compute_initial_anchor
from .staleness import check_staleness, is_outdated

__all__ = [
    "Anchor",
    "AnchorChange",
    "ContentFingerprint",
    "LineRange",
    "Note",
    "NoteRelocator",
    "RelocationReport",
    "Resolution",
    "anchor_hash",
    "check_staleness",
    "compute_initial_anchor",
    "content_hash",
    "is_outdated",
    "resolve_drift",
]
