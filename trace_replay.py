import csv
import random

from migen.fhdl.decorators import CEInserter
from migen.sim import run_simulation

from address_ranges import DEFAULT_RANGES
from golden_model import SecurityMonitorModel
from monitors import SecurityMonitor
from hw_signals import HardwareSignals, TickRecord

CSV_FIELDS = list(HardwareSignals._fields)
_ADDRESS_FIELDS = ["pc", "data_addr", "dma_addr"]
_TRUE = {"1", "true", "yes", "y"}
_FALSE = {"0", "false", "no", "n", ""}


class TraceError(ValueError):
    pass


class CosimMismatch(AssertionError):
    pass


# ----------- Trace files -----------
def _parse_flag(value, lineno, field):
    value = value.strip().lower()
    if value in _TRUE:
        return True
    if value in _FALSE:
        return False
    raise TraceError("line {}: {}={!r} is not a boolean".format(lineno, field, value))


def _parse_address(value, lineno, field):
    try:
        return int(value.strip(), 0)
    except ValueError:
        raise TraceError("line {}: {}={!r} is not an integer".format(lineno, field, value))


def load_trace_csv(path):
    """Read a trace, one tick per row; addresses accept 0x/0b prefixes."""
    with open(path, newline="") as f:
        reader = csv.DictReader(f)
        missing = [name for name in ["pc"] if name not in (reader.fieldnames or [])]
        if missing:
            raise TraceError("{}: missing column(s) {}".format(path, ", ".join(missing)))
        trace = []
        for lineno, row in enumerate(reader, start=2):
            fields = {}
            for name in CSV_FIELDS:
                value = row.get(name)
                if value is None:
                    continue
                if name in _ADDRESS_FIELDS:
                    fields[name] = _parse_address(value, lineno, name)
                else:
                    fields[name] = _parse_flag(value, lineno, name)
            trace.append(HardwareSignals(**fields))
    return trace


def dump_trace_csv(trace, path):
    with open(path, "w", newline="") as f:
        writer = csv.writer(f)
        writer.writerow(CSV_FIELDS)
        for signals in trace:
            writer.writerow([int(value) for value in signals])


def random_trace(length, seed=0, ranges=DEFAULT_RANGES):
    """Mostly sequential program counter with jumps onto region boundaries."""
    rng = random.Random(seed)
    rom = ranges.rom
    top = ranges.attested.max + 64
    pcs = [ranges.reset_address, rom.min, rom.min + 1, ranges.after_auth_pc,
           rom.max - 1, rom.max, rom.max + 1, ranges.attested.min]
    addrs = [0, 1, 10, top]
    for _, region in ranges.regions():
        addrs += [region.min, region.max, (region.min + region.max) // 2]

    pc = ranges.reset_address
    trace = []
    for _ in range(length):
        roll = rng.random()
        if roll < 0.6:
            pc = (pc + 1) % top
        elif roll < 0.92:
            pc = rng.choice(pcs)
        else:
            pc = rng.randrange(top)
        trace.append(HardwareSignals(
            pc=pc,
            data_addr=rng.choice(addrs),
            read_en=rng.random() < 0.3,
            write_en=rng.random() < 0.3,
            dma_addr=rng.choice(addrs),
            dma_en=rng.random() < 0.15,
        ))
    return trace


# ----------- Gateware replay -----------
def _check_representable(trace, addr_width):
    limit = 1 << addr_width
    for tick, signals in enumerate(trace):
        for name in _ADDRESS_FIELDS:
            value = getattr(signals, name)
            if not 0 <= value < limit:
                raise TraceError("tick {}: {}={} does not fit {} bits".format(
                    tick, name, value, addr_width))


def _drive(dut, signals):
    yield dut.pc.eq(signals.pc)
    yield dut.data_addr.eq(signals.data_addr)
    yield dut.read_en.eq(int(signals.read_en))
    yield dut.write_en.eq(int(signals.write_en))
    yield dut.dma_addr.eq(signals.dma_addr)
    yield dut.dma_en.eq(int(signals.dma_en))


def _sample(dut, tick, signals):
    states = {}
    resets = {}
    for name, monitor in dut.automata().items():
        for state, ongoing in monitor.states.items():
            if (yield ongoing):
                states[name] = state
        resets[name] = bool((yield monitor.reset))
    resets["secure_reset"] = bool((yield dut.secure_reset.reset))
    resets["dma"] = bool((yield dut.dma.reset))

    cpu_stack = dut.exclusive_stack
    dma_stack = dut.dma.exclusive_stack
    return TickRecord(
        tick=tick,
        signals=signals,
        states=states,
        resets=resets,
        global_reset=bool((yield dut.global_reset)),
        lock_table_updated=bool((yield dut.rata_b.lock_table_updated)),
        invalid_access_key=bool((yield dut.access_control.invalid_access_key)),
        unauthorized_access=bool((yield cpu_stack.unauthorized_access)),
        leaky_write=bool((yield cpu_stack.leaky_write)),
        dma_invalid_access_key=bool((yield dut.dma.access_control.invalid_access_key)),
        dma_unauthorized_access=bool((yield dma_stack.unauthorized_access)),
        dma_leaky_write=bool((yield dma_stack.leaky_write)),
        modifies_lock_table=bool((yield dut.rata_b.modifies_lock_table)),
        modifies_attested_region=bool((yield dut.rata_b.modifies_attested_region)),
    )


def tb_replay(dut, trace, records, on_tick=None):
    # Registers only advance once the first tick is on the inputs; a read
    # after the clock edge returns the values from before that edge.
    yield dut.ce.eq(1)
    for tick, signals in enumerate(trace):
        yield from _drive(dut, signals)
        yield
        record = yield from _sample(dut, tick, signals)
        records.append(record)
        if on_tick is not None:
            on_tick(record)


def replay(trace, ranges=DEFAULT_RANGES, addr_width=16, vcd_name=None, on_tick=None):
    trace = list(trace)
    _check_representable(trace, addr_width)
    dut = CEInserter()(SecurityMonitor(ranges, addr_width))
    records = []
    run_simulation(dut, tb_replay(dut, trace, records, on_tick), vcd_name=vcd_name)
    return records


# ----------- Co-simulation -----------
def record_diff(expected, observed):
    diff = []
    for field in TickRecord._fields:
        a, b = getattr(expected, field), getattr(observed, field)
        if isinstance(a, dict):
            diff += ["{}.{}: model={} gateware={}".format(field, key, a.get(key), b.get(key))
                     for key in sorted(set(a) | set(b)) if a.get(key) != b.get(key)]
        elif a != b:
            diff.append("{}: model={} gateware={}".format(field, a, b))
    return diff


def cosimulate(trace, ranges=DEFAULT_RANGES, addr_width=16, vcd_name=None, strict=True,
               on_tick=None):
    """Replay a trace on the gateware and check every tick against the golden model."""
    trace = list(trace)
    expected = SecurityMonitorModel(ranges, strict=strict).run(trace)
    observed = replay(trace, ranges, addr_width, vcd_name, on_tick)
    for exp, obs in zip(expected, observed):
        diff = record_diff(exp, obs)
        if diff:
            raise CosimMismatch("tick {} ({}): {}".format(exp.tick, exp.signals, "; ".join(diff)))
    return observed
