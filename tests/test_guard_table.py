from collections import namedtuple
from itertools import product

import pytest

from address_model import classify_pc
from golden_model import (ATOMICITY_TABLE, ATTEST, FIRST, KILL, KILL_TABLE, KILLED, LAST, MID,
                          MODIFIED, NOT_MODIFIED, OUTSIDE, RATA_B_TABLE, RESET, RUN, UPDATE)
from guard_table import GuardConflictError, TransitionTable

INTERESTING_PCS = [0, 1, 63, 64, 65, 66, 600, 1086, 1087, 1088, 5000]

Freshness = namedtuple("Freshness", ["modifies_lock_table", "modifies_attested_region",
                                     "at_after_auth", "is_last_rom", "at_reset_vector"])
KillCtx = namedtuple("KillCtx", ["violation", "at_reset_vector"])


def _table(exclusive):
    return TransitionTable("t", [
        ("big", lambda s, x: x > 10, "B"),
        ("odd", lambda s, x: x % 2 == 1, "O"),
        ("odd again", lambda s, x: x == 3, "O"),
    ], exclusive=exclusive)


def test_first_match_wins_and_unmatched_holds():
    table = _table(exclusive=False)
    assert table.next_state("S", 11) == "B"
    assert table.next_state("S", 3) == "O"
    assert table.next_state("S", 4) == "S"
    assert table.targets() == {"B", "O"}


def test_agreeing_matches_are_not_conflicts():
    assert _table(exclusive=True).conflicts("S", 3) == []
    assert _table(exclusive=True).next_state("S", 3, strict=True) == "O"


def test_strict_exclusive_table_fails_loudly():
    table = _table(exclusive=True)
    assert table.conflicts("S", 13) == [("big", "B"), ("odd", "O")]
    assert table.next_state("S", 13) == "B"
    with pytest.raises(GuardConflictError, match="big, odd"):
        table.next_state("S", 13, strict=True)


def test_priority_table_resolves_by_order_even_when_strict():
    assert _table(exclusive=False).next_state("S", 13, strict=True) == "B"


def test_atomicity_guards_never_overlap():
    for state, pc in product([FIRST, MID, LAST, OUTSIDE, KILLED], INTERESTING_PCS):
        assert ATOMICITY_TABLE.conflicts(state, classify_pc(pc)) == [], (state, pc)
        assert len(ATOMICITY_TABLE.matches(state, classify_pc(pc))) <= 1


def test_run_kill_guards_never_overlap():
    for state, violation, at_reset in product([RUN, KILL], [False, True], [False, True]):
        assert len(KILL_TABLE.matches(state, KillCtx(violation, at_reset))) <= 1


def test_rata_b_overlaps_are_only_write_priorities():
    states = [ATTEST, NOT_MODIFIED, UPDATE, MODIFIED, RESET]
    for state, pc, lmt, ar in product(states, INTERESTING_PCS, [False, True], [False, True]):
        p = classify_pc(pc)
        ctx = Freshness(lmt, ar, p.at_after_auth, p.is_last_rom, p.at_reset_vector)
        conflicts = RATA_B_TABLE.conflicts(state, ctx)
        if conflicts:
            assert conflicts[0][0] in ("lock table write", "attested region write")
            assert lmt or ar


def test_lock_table_write_beats_attested_region_write():
    ctx = Freshness(True, True, False, False, False)
    assert RATA_B_TABLE.conflicts(ATTEST, ctx)
    assert RATA_B_TABLE.next_state(ATTEST, ctx, strict=True) == RESET
    assert RATA_B_TABLE.next_state(UPDATE, Freshness(False, True, True, False, False)) == MODIFIED
