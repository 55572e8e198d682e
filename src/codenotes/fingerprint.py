import hashlib

DEFAULT_CONTEXT_RADIUS = 3
DEFAULT_SEARCH_RADIUS = 10

# Anchor hashes are truncated; collisions surface as a plausible but wrong relocation.
ANCHOR_HASH_LENGTH = 8


def split_lines(text: str) -> list[str]:
    """Split file content the way editors report it: on "\\n", keeping a trailing empty line."""
    return text.split("\n")


def read_lines(path) -> list[str]:
    """Read a UTF-8 file and split it with split_lines. Line endings are kept as written,
    so a CRLF file hashes the same wherever it is read."""
    with open(path, "r", encoding="utf-8", newline="") as f:
        return split_lines(f.read())


def anchor_hash(lines: list[str], line_index: int, radius: int = DEFAULT_CONTEXT_RADIUS) -> str:
    """Short SHA-1 digest of the context window centred on line_index.

    The window is lines[line_index - radius : line_index + radius + 1], clamped
    to the file. Out-of-range indices hash whatever the clamped slice holds.
    """
    start = max(0, line_index - radius)
    end = max(0, min(len(lines), line_index + radius + 1))
    content = "\n".join(lines[start:end])
    return hashlib.sha1(content.encode("utf-8")).hexdigest()[:ANCHOR_HASH_LENGTH]


def content_hash(lines: list[str], start: int, end: int) -> str:
    """Full SHA-256 of the exact text in lines[start..end] (inclusive)."""
    content = "\n".join(lines[max(0, start):max(0, end + 1)])
    return hashlib.sha256(content.encode("utf-8")).hexdigest()


def find_matching_line(
    lines: list[str],
    target_hash: str,
    origin: int,
    search_radius: int = DEFAULT_SEARCH_RADIUS,
    radius: int = DEFAULT_CONTEXT_RADIUS,
) -> int | None:
    """Return the lowest line index near origin whose anchor hash equals target_hash.

    Scans [origin - search_radius, origin + search_radius) in ascending order.
    The first match wins even when a later one is closer to origin.
    """
    start = max(0, origin - search_radius)
    end = min(len(lines), origin + search_radius)

    for i in range(start, end):
        if anchor_hash(lines, i, radius) == target_hash:
            return i

    return None
