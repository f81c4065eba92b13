from collections import namedtuple
from itertools import combinations

from address_model import classify_pc
from address_ranges import DEFAULT_RANGES
from golden_model import FIRST, LAST, MID, OUTSIDE

PropertyViolation = namedtuple("PropertyViolation", ["name", "tick", "message"])


class PropertyViolationError(AssertionError):
    def __init__(self, violations):
        self.violations = list(violations)
        AssertionError.__init__(self, "; ".join(
            "{} @{}: {}".format(v.name, v.tick, v.message) for v in self.violations))


def _next_ticks(records):
    return zip(records, records[1:])


# ----------- P1 access control -----------
def check_access_control(records):
    violations = []
    for cur, nxt in _next_ticks(records):
        if cur.invalid_access_key and not nxt.resets["access_control"]:
            violations.append(PropertyViolation(
                "P1", cur.tick, "cpu key read at {} from pc={} not reset".format(
                    cur.signals.data_addr, cur.signals.pc)))
        if cur.dma_invalid_access_key and not nxt.resets["dma_access_control"]:
            violations.append(PropertyViolation(
                "P1", cur.tick, "dma key read at {} not reset".format(cur.signals.dma_addr)))
    return violations


# ----------- P2 no leakage -----------
def check_no_leakage(records):
    violations = []
    for cur, nxt in _next_ticks(records):
        if (cur.unauthorized_access or cur.leaky_write) and not nxt.resets["exclusive_stack"]:
            violations.append(PropertyViolation(
                "P2", cur.tick, "cpu stack access at {} not reset".format(cur.signals.data_addr)))
        if ((cur.dma_unauthorized_access or cur.dma_leaky_write)
                and not nxt.resets["dma_exclusive_stack"]):
            violations.append(PropertyViolation(
                "P2", cur.tick, "dma stack access at {} not reset".format(cur.signals.dma_addr)))
    return violations


# ----------- P3 secure reset -----------
def check_secure_reset(records, ranges=DEFAULT_RANGES):
    violations = []
    for cur, nxt in _next_ticks(records):
        s = cur.signals
        if s.pc == ranges.reset_address and (s.read_en or s.write_en) \
                and not nxt.resets["secure_reset"]:
            violations.append(PropertyViolation(
                "P3", cur.tick, "access at the reset vector not reset"))
    return violations


# ----------- P5 immutability / region exclusivity (static) -----------
def check_immutability(ranges=DEFAULT_RANGES):
    return [PropertyViolation("P5", None, "{} {} overlaps rom {}".format(name, region, ranges.rom))
            for name, region in ranges.regions()
            if name != "rom" and region.overlaps(ranges.rom)]


def check_region_exclusivity(ranges=DEFAULT_RANGES):
    return [PropertyViolation("exclusivity", None, "{} {} overlaps {} {}".format(na, a, nb, b))
            for (na, a), (nb, b) in combinations(ranges.regions(), 2)
            if a.overlaps(b)]


# ----------- P6 atomicity -----------
def _illegal_move(state, p):
    if state == FIRST:
        return p.is_last_rom or p.is_outside_rom
    if state == MID:
        return p.is_outside_rom or p.is_first_rom
    if state == LAST:
        return p.is_in_rom
    if state == OUTSIDE:
        return p.is_in_rom and not p.is_first_rom
    return False


def check_atomicity(records, ranges=DEFAULT_RANGES):
    violations = []
    for cur, nxt in _next_ticks(records):
        state = cur.states["atomicity"]
        if _illegal_move(state, classify_pc(cur.signals.pc, ranges)) \
                and not nxt.resets["atomicity"]:
            violations.append(PropertyViolation(
                "P6", cur.tick, "{} jumped to pc={} without reset".format(state, cur.signals.pc)))
    return violations


# ----------- P7 controlled invocation (bounded) -----------
def check_controlled_invocation(records):
    violations = []
    for phase, successor in [(FIRST, MID), (MID, LAST)]:
        for t, record in enumerate(records):
            if record.states["atomicity"] != phase:
                continue
            if t > 0 and records[t - 1].states["atomicity"] == phase:
                continue
            for later in records[t + 1:]:
                state = later.states["atomicity"]
                if state == phase:
                    continue
                if state != successor and not later.resets["atomicity"]:
                    violations.append(PropertyViolation(
                        "P7", later.tick, "{} left for {} without reset".format(phase, state)))
                break
    return violations


def check_trace(records, ranges=DEFAULT_RANGES):
    """Every temporal and static property over a recorded trace."""
    records = list(records)
    return (check_immutability(ranges)
            + check_region_exclusivity(ranges)
            + check_access_control(records)
            + check_no_leakage(records)
            + check_secure_reset(records, ranges)
            + check_atomicity(records, ranges)
            + check_controlled_invocation(records))


def assert_trace(records, ranges=DEFAULT_RANGES):
    violations = check_trace(records, ranges)
    if violations:
        raise PropertyViolationError(violations)
    return records
