import logging

from .fingerprint import (
    DEFAULT_CONTEXT_RADIUS,
    DEFAULT_SEARCH_RADIUS,
    anchor_hash,
    find_matching_line,
)
from .models import Anchor, Resolution
from .symbols import SymbolLocator

logger = logging.getLogger("codenotes.drift")


def resolve_drift(
    anchor: Anchor,
    lines: list[str],
    locator: SymbolLocator | None = None,
    file_path: str | None = None,
    *,
    context_radius: int = DEFAULT_CONTEXT_RADIUS,
    search_radius: int = DEFAULT_SEARCH_RADIUS,
) -> Resolution:
    """Re-locate an anchor against new file content, mutating it in place.

    Cascade:
      1. the stored anchor hash still matches at range.start -> UNCHANGED
      2. first (lowest) line in the search window with a matching hash ->
         shift the range, keep the hash -> RELOCATED_BY_HASH
      3. the locator finds anchor.symbol_name -> shift the range and rehash
         at the new start -> RELOCATED_BY_SYMBOL
      4. otherwise the anchor is left untouched -> UNRESOLVED
    """
    start = anchor.range.start

    if anchor_hash(lines, start, context_radius) == anchor.anchor_hash:
        return Resolution.UNCHANGED

    new_line = find_matching_line(
        lines, anchor.anchor_hash, start, search_radius, context_radius
    )
    if new_line is not None and new_line != start:
        anchor.range.shift(new_line - start)
        logger.debug(f"Anchor {anchor.anchor_hash} moved {start} -> {new_line} by hash")
        return Resolution.RELOCATED_BY_HASH

    if anchor.symbol_name and locator is not None:
        try:
            symbol_line = locator.locate(file_path or "", lines, anchor.symbol_name)
        except Exception as e:
            logger.warning(f"Symbol lookup for {anchor.symbol_name!r} in {file_path} failed: {e}")
            symbol_line = None

        if symbol_line is not None:
            anchor.range.shift(symbol_line - start)
            anchor.anchor_hash = anchor_hash(lines, symbol_line, context_radius)
            logger.debug(
                f"Anchor for {anchor.symbol_name!r} moved {start} -> {symbol_line} by symbol"
            )
            return Resolution.RELOCATED_BY_SYMBOL

    return Resolution.UNRESOLVED
