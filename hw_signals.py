from collections import namedtuple

# Automata with an enumerated state, in reporting order
AUTOMATA = [
    "access_control",
    "atomicity",
    "exclusive_stack",
    "dma_access_control",
    "dma_exclusive_stack",
    "rata_b",
]

# Every reset flag a tick exposes
RESET_SOURCES = AUTOMATA + ["secure_reset", "dma"]

# rata_b is reported on its own and never folded into the alarm
GLOBAL_RESET_SOURCES = ["access_control", "atomicity", "exclusive_stack", "secure_reset", "dma"]


HardwareSignals = namedtuple("HardwareSignals",
                             ["pc", "data_addr", "read_en", "write_en", "dma_addr", "dma_en"],
                             defaults=[0, 0, False, False, 0, False])

VIOLATIONS = [
    "invalid_access_key",
    "unauthorized_access",
    "leaky_write",
    "dma_invalid_access_key",
    "dma_unauthorized_access",
    "dma_leaky_write",
    "modifies_lock_table",
    "modifies_attested_region",
]

# One observed clock tick: the inputs, the combinational violation
# predicates they produce and the registered monitor state of that tick.
TickRecord = namedtuple("TickRecord",
                        ["tick", "signals", "states", "resets", "global_reset",
                         "lock_table_updated"] + VIOLATIONS)


def global_reset(resets):
    return any(resets[name] for name in GLOBAL_RESET_SOURCES)
