import argparse
import os
import sys

from migen.fhdl import verilog

from address_ranges import AR_SIZE, KEY_SIZE, ROM_SIZE, AddressRanges, ConfigurationError
from monitors import SecurityMonitor
from properties import check_trace
from scenarios import SCENARIOS
from trace_replay import CosimMismatch, TraceError, cosimulate, load_trace_csv, replay

RED = "\033[91m"
GREEN = "\033[92m"
YELLOW = "\033[93m"
CYAN = "\033[36m"
RESET = "\033[0m"


class TickPrinter:
    """Prints automaton transitions and alarm edges as ticks come in."""

    def __init__(self, verbose=False, out=None):
        self.verbose = verbose
        self.out = out or sys.stdout
        self.last = None

    def __call__(self, record):
        s = record.signals
        if self.verbose:
            print(f"{CYAN}[{record.tick:5d}] pc={s.pc:#06x} d={s.data_addr:#06x} "
                  f"r={int(s.read_en)} w={int(s.write_en)} "
                  f"dma={s.dma_addr:#06x}/{int(s.dma_en)}{RESET}", file=self.out)
        if self.last is not None:
            for name, state in record.states.items():
                if state != self.last.states[name]:
                    print(f"{YELLOW}[{record.tick:5d}] {name}: "
                          f"{self.last.states[name]} -> {state}{RESET}", file=self.out)
        was_alarm = self.last is not None and self.last.global_reset
        if record.global_reset and not was_alarm:
            raised = [n for n, flag in record.resets.items() if flag and n != "rata_b"]
            print(f"{RED}[{record.tick:5d}] ALARM: {', '.join(raised)}{RESET}", file=self.out)
        elif was_alarm and not record.global_reset:
            print(f"{GREEN}[{record.tick:5d}] alarm cleared{RESET}", file=self.out)
        if record.lock_table_updated:
            print(f"{GREEN}[{record.tick:5d}] lock table update acknowledged{RESET}", file=self.out)
        self.last = record


def export_verilog(path, ranges, addr_width=16):
    monitor = SecurityMonitor(ranges, addr_width)
    verilog.convert(monitor, monitor.ios(), name="security_monitor").write(path)
    return path


def build_parser():
    parser = argparse.ArgumentParser(
        description="Replay a signal trace through the attestation security monitor.")
    source = parser.add_mutually_exclusive_group()
    source.add_argument("--trace", help="CSV trace (pc,data_addr,read_en,write_en,dma_addr,dma_en)")
    source.add_argument("--scenario", choices=sorted(SCENARIOS), default="round_trip",
                        help="built-in trace (default: %(default)s)")
    parser.add_argument("--rom-size", type=int, default=ROM_SIZE)
    parser.add_argument("--key-size", type=int, default=KEY_SIZE)
    parser.add_argument("--ar-size", type=int, default=AR_SIZE)
    parser.add_argument("--addr-width", type=int, default=16)
    parser.add_argument("--vcd", help="waveform file name, written under build/")
    parser.add_argument("--verilog", help="write the monitor as Verilog to this file and exit")
    parser.add_argument("--no-cosim", action="store_true",
                        help="skip the golden model comparison")
    parser.add_argument("-v", "--verbose", action="store_true")
    return parser


def main(argv=None):
    args = build_parser().parse_args(argv)

    try:
        ranges = AddressRanges.from_options(rom_size=args.rom_size, key_size=args.key_size,
                                            ar_size=args.ar_size)
        ranges.check_width(args.addr_width)

        if args.verilog:
            export_verilog(args.verilog, ranges, args.addr_width)
            print(f"{GREEN}Verilog written to {args.verilog}{RESET}")
            return 0

        if args.trace:
            trace = load_trace_csv(args.trace)
        else:
            trace = SCENARIOS[args.scenario](ranges)

        vcd_name = None
        if args.vcd:
            if not os.path.exists("build/"):
                os.makedirs("build/")
            vcd_name = os.path.join("build", args.vcd)

        printer = TickPrinter(args.verbose)
        if args.no_cosim:
            records = replay(trace, ranges, args.addr_width, vcd_name, on_tick=printer)
        else:
            records = cosimulate(trace, ranges, args.addr_width, vcd_name, on_tick=printer)
    except (ConfigurationError, TraceError, CosimMismatch) as e:
        print(f"{RED}error: {e}{RESET}", file=sys.stderr)
        return 2

    violations = check_trace(records, ranges)
    for v in violations:
        print(f"{RED}{v.name} violated at tick {v.tick}: {v.message}{RESET}")
    alarms = sum(1 for r in records if r.global_reset)
    print(f"{CYAN}{len(records)} ticks, {alarms} with alarm, "
          f"{len(violations)} property violation(s){RESET}")
    return 1 if violations else 0


if __name__ == "__main__":
    sys.exit(main())
