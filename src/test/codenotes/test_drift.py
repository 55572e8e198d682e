import pytest

from codenotes.drift import resolve_drift
from codenotes.fingerprint import anchor_hash
from codenotes.models import Anchor, LineRange, Resolution


def make_anchor(lines, start, end, symbol_name=None):
    return Anchor(range=LineRange(start, end), anchor_hash=anchor_hash(lines, start), symbol_name=symbol_name)


def test_stable_when_unchanged(numbered_lines):
    anchor = make_anchor(numbered_lines, 10, 12)
    assert resolve_drift(anchor, numbered_lines) == Resolution.UNCHANGED
    assert anchor.range == LineRange(10, 12)


def test_stable_when_edit_is_outside_window(numbered_lines, stub_locator):
    anchor = make_anchor(numbered_lines, 10, 12, symbol_name="foo")
    locator = stub_locator({"foo": 25})
    new_lines = list(numbered_lines)
    new_lines[20] = "changed far below"

    assert resolve_drift(anchor, new_lines, locator, "a.py") == Resolution.UNCHANGED
    assert anchor.range == LineRange(10, 12)
    assert locator.calls == []


@pytest.mark.parametrize("k", [1, 3, 5, 9])
def test_pure_shift_from_inserted_blank_lines(numbered_lines, k):
    anchor = make_anchor(numbered_lines, 10, 13)
    original_hash = anchor.anchor_hash
    new_lines = [""] * k + numbered_lines

    assert resolve_drift(anchor, new_lines) == Resolution.RELOCATED_BY_HASH
    assert anchor.range == LineRange(10 + k, 13 + k)
    assert anchor.anchor_hash == original_hash


def test_shift_up_after_deleted_lines(numbered_lines):
    anchor = make_anchor(numbered_lines, 15, 15)
    new_lines = numbered_lines[4:]

    assert resolve_drift(anchor, new_lines) == Resolution.RELOCATED_BY_HASH
    assert anchor.range == LineRange(11, 11)


def test_worked_example_insert_at_top():
    lines = ["a", "b", "c", "d", "e", "f", "g"]
    anchor = make_anchor(lines, 3, 3)
    new_lines = ["x"] + lines

    assert resolve_drift(anchor, new_lines) == Resolution.RELOCATED_BY_HASH
    assert anchor.range == LineRange(4, 4)
    assert new_lines[anchor.range.start] == "d"


def test_first_match_wins_over_nearest():
    """Two copies of the block in the window: the earlier one wins even though it is farther away."""
    block = [f"b{i}" for i in range(7)]
    lines = [f"u{i}" for i in range(9)] + block + [f"v{i}" for i in range(10)]
    anchor = make_anchor(lines, 12, 12)

    # Copies centred on line 3 (distance 9) and line 14 (distance 2)
    new_lines = block + [f"w{i}" for i in range(4)] + block + [f"z{i}" for i in range(10)]
    assert anchor_hash(new_lines, 3) == anchor.anchor_hash
    assert anchor_hash(new_lines, 14) == anchor.anchor_hash

    assert resolve_drift(anchor, new_lines) == Resolution.RELOCATED_BY_HASH
    assert anchor.range == LineRange(3, 3)


def test_symbol_fallback_relocates_and_rehashes(stub_locator):
    lines = [f"old {i}" for i in range(20)]
    anchor = make_anchor(lines, 5, 7, symbol_name="foo")
    new_lines = [f"rewritten {i}" for i in range(60)]
    locator = stub_locator({"foo": 42})

    assert resolve_drift(anchor, new_lines, locator, "mod.py") == Resolution.RELOCATED_BY_SYMBOL
    assert anchor.range == LineRange(42, 44)
    assert anchor.anchor_hash == anchor_hash(new_lines, 42)
    assert locator.calls == [("mod.py", "foo")]


def test_symbol_fallback_then_stable_on_second_pass(stub_locator):
    lines = [f"old {i}" for i in range(20)]
    anchor = make_anchor(lines, 5, 7, symbol_name="foo")
    new_lines = [f"rewritten {i}" for i in range(60)]
    locator = stub_locator({"foo": 42})

    resolve_drift(anchor, new_lines, locator, "mod.py")
    assert resolve_drift(anchor, new_lines, locator, "mod.py") == Resolution.UNCHANGED
    assert anchor.range == LineRange(42, 44)


def test_hash_search_takes_priority_over_symbol(numbered_lines, stub_locator):
    anchor = make_anchor(numbered_lines, 10, 10, symbol_name="foo")
    locator = stub_locator({"foo": 2})
    new_lines = ["new"] * 2 + numbered_lines

    assert resolve_drift(anchor, new_lines, locator, "a.py") == Resolution.RELOCATED_BY_HASH
    assert anchor.range.start == 12
    assert locator.calls == []


def test_unresolved_leaves_anchor_untouched(stub_locator):
    lines = [f"old {i}" for i in range(20)]
    anchor = make_anchor(lines, 5, 7, symbol_name="foo")
    before = (anchor.range.start, anchor.range.end, anchor.anchor_hash, anchor.symbol_name)
    new_lines = [f"rewritten {i}" for i in range(20)]

    assert resolve_drift(anchor, new_lines, stub_locator({}), "a.py") == Resolution.UNRESOLVED
    assert (anchor.range.start, anchor.range.end, anchor.anchor_hash, anchor.symbol_name) == before


def test_unresolved_without_symbol_name(numbered_lines, stub_locator):
    anchor = make_anchor(numbered_lines, 5, 5)
    locator = stub_locator({"foo": 1})
    new_lines = [f"other {i}" for i in range(30)]

    assert resolve_drift(anchor, new_lines, locator, "a.py") == Resolution.UNRESOLVED
    assert locator.calls == []


def test_unresolved_without_locator(numbered_lines):
    anchor = make_anchor(numbered_lines, 5, 5, symbol_name="foo")
    assert resolve_drift(anchor, [f"other {i}" for i in range(30)]) == Resolution.UNRESOLVED


def test_locator_error_degrades_to_unresolved(numbered_lines, stub_locator):
    anchor = make_anchor(numbered_lines, 5, 6, symbol_name="foo")
    locator = stub_locator(error=RuntimeError("parser exploded"))

    result = resolve_drift(anchor, [f"other {i}" for i in range(30)], locator, "a.py")
    assert result == Resolution.UNRESOLVED
    assert anchor.range == LineRange(5, 6)


def test_anchor_beyond_end_of_shrunken_file(numbered_lines):
    anchor = make_anchor(numbered_lines, 25, 28)
    new_lines = numbered_lines[:4]

    assert resolve_drift(anchor, new_lines) == Resolution.UNRESOLVED
    assert anchor.range == LineRange(25, 28)


def test_empty_file_is_unresolved(numbered_lines):
    anchor = make_anchor(numbered_lines, 3, 3)
    assert resolve_drift(anchor, []) == Resolution.UNRESOLVED


def test_custom_radii(numbered_lines):
    anchor = Anchor(range=LineRange(10, 10), anchor_hash=anchor_hash(numbered_lines, 10, radius=1))
    new_lines = ["pad"] * 12 + numbered_lines

    # Shift of 12 is outside a search radius of 10 but inside 15
    assert resolve_drift(anchor, new_lines, context_radius=1) == Resolution.UNRESOLVED
    assert resolve_drift(anchor, new_lines, context_radius=1, search_radius=15) == Resolution.RELOCATED_BY_HASH
    assert anchor.range.start == 22
