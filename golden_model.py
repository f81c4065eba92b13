from collections import namedtuple

from address_model import classify, classify_pc
from address_ranges import DEFAULT_RANGES
from guard_table import GuardConflictError, TransitionTable
from hw_signals import AUTOMATA, TickRecord, global_reset

RUN, KILL = "RUN", "KILL"
FIRST, MID, LAST, OUTSIDE, KILLED = "FIRST", "MID", "LAST", "OUTSIDE", "KILLED"
ATTEST, NOT_MODIFIED, UPDATE, MODIFIED, RESET = "ATTEST", "NOT_MODIFIED", "UPDATE", "MODIFIED", "RESET"

MonitorState = namedtuple("MonitorState", ["state", "reset"])

INITIAL_STATES = {
    "access_control":      MonitorState(KILL, True),
    "atomicity":           MonitorState(KILLED, True),
    "exclusive_stack":     MonitorState(KILL, True),
    "dma_access_control":  MonitorState(KILL, True),
    "dma_exclusive_stack": MonitorState(KILL, True),
    "rata_b":              MonitorState(RESET, True),
}


# ----------- RUN/KILL guards (access control, exclusive stack) -----------
_KillContext = namedtuple("_KillContext", ["violation", "at_reset_vector"])

KILL_TABLE = TransitionTable("run/kill", [
    ("violation",    lambda s, c: s == RUN and c.violation, KILL),
    ("reset vector", lambda s, c: s == KILL and c.at_reset_vector and not c.violation, RUN),
], exclusive=True)


def _run_kill_step(current, violation, at_reset_vector, strict):
    state = KILL_TABLE.next_state(current.state, _KillContext(violation, at_reset_vector), strict)
    if state == KILL:
        reset = True
    elif current.state == KILL:
        reset = False
    else:
        reset = current.reset
    return MonitorState(state, reset)


def invalid_access_key(pc, data_addr, read_en, ranges=DEFAULT_RANGES):
    p = classify(pc, data_addr, ranges)
    return p.is_outside_rom and p.in_key and bool(read_en)


def stack_violations(pc, data_addr, read_en, write_en, ranges=DEFAULT_RANGES):
    """Return ``(unauthorized_access, leaky_write)`` for one access."""
    p = classify(pc, data_addr, ranges)
    unauthorized = p.is_outside_rom and p.in_exclusive_stack and bool(read_en or write_en)
    leaky = (p.is_in_rom and bool(write_en)
             and not p.in_exclusive_stack and not p.in_hmac_output)
    return unauthorized, leaky


def access_control_step(current, pc, data_addr, read_en, ranges=DEFAULT_RANGES, strict=False):
    return _run_kill_step(current,
                          invalid_access_key(pc, data_addr, read_en, ranges),
                          pc == ranges.reset_address, strict)


def exclusive_stack_step(current, pc, read_en, write_en, data_addr, ranges=DEFAULT_RANGES,
                         strict=False):
    unauthorized, leaky = stack_violations(pc, data_addr, read_en, write_en, ranges)
    return _run_kill_step(current, unauthorized or leaky, pc == ranges.reset_address, strict)


# ----------- Atomicity -----------
ATOMICITY_TABLE = TransitionTable("atomicity", [
    ("enter mid",        lambda s, p: s == FIRST and p.is_mid_rom, MID),
    ("first skips mid",  lambda s, p: s == FIRST and (p.is_last_rom or p.is_outside_rom), KILLED),
    ("enter last",       lambda s, p: s == MID and p.is_last_rom, LAST),
    ("mid escapes",      lambda s, p: s == MID and (p.is_outside_rom or p.is_first_rom), KILLED),
    ("leave rom",        lambda s, p: s == LAST and p.is_outside_rom, OUTSIDE),
    ("last stays",       lambda s, p: s == LAST and p.is_in_rom, KILLED),
    ("enter first",      lambda s, p: s == OUTSIDE and p.is_first_rom, FIRST),
    ("jump into rom",    lambda s, p: s == OUTSIDE and p.is_in_rom and not p.is_first_rom, KILLED),
    ("reset vector",     lambda s, p: s == KILLED and p.at_reset_vector, OUTSIDE),
], exclusive=True)

ENTRY_CONDITION = {
    FIRST:   "is_first_rom",
    MID:     "is_mid_rom",
    LAST:    "is_last_rom",
    OUTSIDE: "is_outside_rom",
}


def _check_entry_conditions(table):
    unchecked = table.targets() - set(ENTRY_CONDITION) - {KILLED}
    if unchecked:
        raise GuardConflictError("{}: no entry condition for {}".format(
            table.name, ", ".join(sorted(unchecked))))


def atomicity_step(current, pc, ranges=DEFAULT_RANGES, strict=False):
    p = classify_pc(pc, ranges)
    if strict:
        _check_entry_conditions(ATOMICITY_TABLE)
    state = ATOMICITY_TABLE.next_state(current.state, p, strict)
    if strict and state != KILLED and not getattr(p, ENTRY_CONDITION[state]):
        raise GuardConflictError("atomicity: {} -> {} with pc={} outside its region".format(
            current.state, state, pc))
    return MonitorState(state, state == KILLED)


# ----------- Secure reset -----------
def secure_reset_step(pc, read_en, write_en, dma_en, ranges=DEFAULT_RANGES):
    return pc == ranges.reset_address and bool(read_en or write_en or dma_en)


# ----------- RATA-B freshness -----------
_FreshnessContext = namedtuple("_FreshnessContext", [
    "modifies_lock_table", "modifies_attested_region",
    "at_after_auth", "is_last_rom", "at_reset_vector",
])

# Priority ordered: a lock table write always wins over an attested region write.
RATA_B_TABLE = TransitionTable("rata_b", [
    ("lock table write",      lambda s, c: c.modifies_lock_table, RESET),
    ("attested region write", lambda s, c: s != RESET and c.modifies_attested_region, MODIFIED),
    ("authenticated",         lambda s, c: s in (MODIFIED, ATTEST) and c.at_after_auth, UPDATE),
    ("attestation done",      lambda s, c: s == ATTEST and c.is_last_rom, NOT_MODIFIED),
    ("update committed",      lambda s, c: s == UPDATE and not c.at_after_auth, ATTEST),
    ("reset vector",          lambda s, c: s == RESET and c.at_reset_vector, MODIFIED),
])


def freshness_writes(data_addr, write_en, dma_addr, dma_en, ranges=DEFAULT_RANGES):
    """Return ``(modifies_lock_table, modifies_attested_region)``."""
    lock_table = ((write_en and ranges.lock_table.contains(data_addr))
                  or (dma_en and ranges.lock_table.contains(dma_addr)))
    attested = ((write_en and ranges.attested.contains(data_addr))
                or (dma_en and ranges.attested.contains(dma_addr)))
    return bool(lock_table), bool(attested)


def rata_b_step(current, pc, data_addr, write_en, dma_addr, dma_en, ranges=DEFAULT_RANGES,
                strict=False):
    p = classify_pc(pc, ranges)
    lock_table, attested = freshness_writes(data_addr, write_en, dma_addr, dma_en, ranges)
    ctx = _FreshnessContext(lock_table, attested, p.at_after_auth, p.is_last_rom,
                            p.at_reset_vector)
    state = RATA_B_TABLE.next_state(current.state, ctx, strict)
    if state == RESET:
        reset = True
    elif current.state == RESET:
        reset = False
    else:
        reset = current.reset
    return MonitorState(state, reset)


def lock_table_updated(rata_b):
    return rata_b.state == UPDATE and not rata_b.reset


# ----------- Composition -----------
class SecurityMonitorModel:
    """Reference model of the composed monitor.

    Every tick first computes a complete next-state snapshot from the
    current registers and inputs, then commits it in one assignment, so no
    automaton ever observes a sibling's next state.
    """

    def __init__(self, ranges=DEFAULT_RANGES, strict=False):
        self.ranges = ranges
        self.strict = strict
        self.restart()

    def restart(self):
        self.states = dict(INITIAL_STATES)
        self.secure_reset = True
        self.tick = 0

    def resets(self):
        resets = {name: self.states[name].reset for name in AUTOMATA}
        resets["secure_reset"] = self.secure_reset
        resets["dma"] = resets["dma_access_control"] or resets["dma_exclusive_stack"]
        return resets

    @property
    def global_reset(self):
        return global_reset(self.resets())

    def observe(self, signals):
        r = self.ranges
        s = signals
        unauthorized, leaky = stack_violations(s.pc, s.data_addr, s.read_en, s.write_en, r)
        dma_unauthorized, dma_leaky = stack_violations(s.pc, s.dma_addr, s.dma_en, s.dma_en, r)
        lock_table, attested = freshness_writes(s.data_addr, s.write_en, s.dma_addr, s.dma_en, r)
        resets = self.resets()
        return TickRecord(
            tick=self.tick,
            signals=signals,
            states={name: self.states[name].state for name in AUTOMATA},
            resets=resets,
            global_reset=global_reset(resets),
            lock_table_updated=lock_table_updated(self.states["rata_b"]),
            invalid_access_key=invalid_access_key(s.pc, s.data_addr, s.read_en, r),
            unauthorized_access=unauthorized,
            leaky_write=leaky,
            dma_invalid_access_key=invalid_access_key(s.pc, s.dma_addr, s.dma_en, r),
            dma_unauthorized_access=dma_unauthorized,
            dma_leaky_write=dma_leaky,
            modifies_lock_table=lock_table,
            modifies_attested_region=attested,
        )

    def _next(self, signals):
        r, strict, cur, s = self.ranges, self.strict, self.states, signals
        states = {
            "access_control": access_control_step(
                cur["access_control"], s.pc, s.data_addr, s.read_en, r, strict),
            "atomicity": atomicity_step(cur["atomicity"], s.pc, r, strict),
            "exclusive_stack": exclusive_stack_step(
                cur["exclusive_stack"], s.pc, s.read_en, s.write_en, s.data_addr, r, strict),
            "dma_access_control": access_control_step(
                cur["dma_access_control"], s.pc, s.dma_addr, s.dma_en, r, strict),
            "dma_exclusive_stack": exclusive_stack_step(
                cur["dma_exclusive_stack"], s.pc, s.dma_en, s.dma_en, s.dma_addr, r, strict),
            "rata_b": rata_b_step(
                cur["rata_b"], s.pc, s.data_addr, s.write_en, s.dma_addr, s.dma_en, r, strict),
        }
        return states, secure_reset_step(s.pc, s.read_en, s.write_en, s.dma_en, r)

    def step(self, signals):
        record = self.observe(signals)
        self.states, self.secure_reset = self._next(signals)
        self.tick += 1
        return record

    def run(self, trace):
        return [self.step(signals) for signals in trace]
