"""Records tracked by the relocation engine and the note store."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum


class Resolution(str, Enum):
    """Outcome of resolving one anchor against fresh file content."""

    UNCHANGED = "unchanged"
    RELOCATED_BY_HASH = "relocatedByHash"
    RELOCATED_BY_SYMBOL = "relocatedBySymbol"
    UNRESOLVED = "unresolved"

    @property
    def relocated(self) -> bool:
        return self in (Resolution.RELOCATED_BY_HASH, Resolution.RELOCATED_BY_SYMBOL)


@dataclass
class LineRange:
    """Zero-based, inclusive line range."""

    start: int
    end: int

    def shift(self, offset: int) -> None:
        self.start += offset
        self.end += offset

    def copy(self) -> LineRange:
        return LineRange(self.start, self.end)

    def to_dict(self) -> dict:
        return {"start": self.start, "end": self.end}

    @classmethod
    def from_dict(cls, d: dict) -> LineRange:
        return cls(start=int(d["start"]), end=int(d["end"]))


@dataclass
class Anchor:
    """Where a note currently lives, plus the fingerprint used to find it again."""

    range: LineRange
    anchor_hash: str
    symbol_name: str | None = None


@dataclass(frozen=True)
class ContentFingerprint:
    """Digest of the exact annotated text, used only to flag staleness."""

    range: LineRange
    hash: str


@dataclass
class Note:
    id: str
    file_path: str
    anchor: Anchor
    content_hash: str
    note_text: str
    author_name: str = "Anonymous"
    author_email: str | None = None
    is_outdated: bool = False
    created_at: str | None = None
    updated_at: str | None = None
    git_branch: str | None = None
    git_commit: str | None = None

    @property
    def range(self) -> LineRange:
        return self.anchor.range

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "file_path": self.file_path,
            "symbol_name": self.anchor.symbol_name,
            "anchor_hash": self.anchor.anchor_hash,
            "range": self.anchor.range.to_dict(),
            "content_hash": self.content_hash,
            "is_outdated": self.is_outdated,
            "note_text": self.note_text,
            "author_name": self.author_name,
            "author_email": self.author_email,
            "created_at": self.created_at,
            "updated_at": self.updated_at,
            "git_branch": self.git_branch,
            "git_commit": self.git_commit,
        }


@dataclass(frozen=True)
class AnchorChange:
    """Per-note result of one relocation pass."""

    note_id: str
    resolution: Resolution
    outdated: bool
    outdated_changed: bool
    old_range: LineRange
    new_range: LineRange

    @property
    def changed(self) -> bool:
        return self.resolution.relocated or self.outdated_changed

    def to_dict(self) -> dict:
        return {
            "note_id": self.note_id,
            "resolution": self.resolution.value,
            "outdated": self.outdated,
            "old_range": self.old_range.to_dict(),
            "new_range": self.new_range.to_dict(),
        }


@dataclass
class RelocationReport:
    file_path: str
    notes: list[Note] = field(default_factory=list)
    changes: list[AnchorChange] = field(default_factory=list)
    persisted: bool = False

    @property
    def changed(self) -> list[AnchorChange]:
        return [c for c in self.changes if c.changed]

    @property
    def outdated(self) -> list[AnchorChange]:
        return [c for c in self.changes if c.outdated]

    def to_dict(self) -> dict:
        return {
            "file": self.file_path,
            "notes_checked": len(self.changes),
            "changed": [c.to_dict() for c in self.changed],
            "outdated_count": len(self.outdated),
            "persisted": self.persisted,
        }
