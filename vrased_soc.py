from migen import *
from migen.fhdl.bitcontainer import log2_int
from migen.sim import run_simulation

from litex.soc.integration.soc_core import SoCCore
from litex.soc.interconnect import wishbone
from litex.soc.interconnect.wishbone import Arbiter
from litex_boards.platforms import digilent_basys3

from address_ranges import DEFAULT_RANGES
from bus_snooper import BusSnooper
from monitors import SecurityMonitor

import os

RED = "\033[91m"
GREEN = "\033[92m"
RESET = "\033[0m"

UNTRUSTED_PC = 0x600
RAM_SIZE = 0x1000


# ----------- Monitored RAM -----------
class MonitoredRAM(Module):
    """Word-addressed RAM holding key, stacks, lock table and attested region.

    The low ``adr_bits`` of the Wishbone address select a word. A cycle with
    any higher bit set would hit a mirror of the monitored map, so it is
    refused with ``err`` and never reaches the memory.
    """

    def __init__(self, ranges=DEFAULT_RANGES, size=RAM_SIZE):
        # every monitored region must sit in real memory, below the first mirror
        ranges.check_width(log2_int(size))
        self.adr_bits = log2_int(size // 4)

        self.bus   = wishbone.Interface()
        self.cycle = Signal()
        self.hit   = Signal()

        mem = Memory(32, size // 4)
        port = mem.get_port(write_capable=True)
        self.specials += mem, port

        self.comb += [
            self.cycle.eq(self.bus.cyc & self.bus.stb),
            self.hit.eq(self.bus.adr[self.adr_bits:] == 0),
            port.adr.eq(self.bus.adr[:self.adr_bits]),
            port.dat_w.eq(self.bus.dat_w),
            self.bus.dat_r.eq(port.dat_r),
            port.we.eq(self.cycle & self.hit & self.bus.we),
            self.bus.ack.eq(self.cycle & self.hit),
            self.bus.err.eq(self.cycle & ~self.hit),
        ]


# ----------- SoC Definition -----------
class AttestedSoC(SoCCore):
    def __init__(self, platform, ranges=DEFAULT_RANGES, addr_width=16, ram_size=RAM_SIZE):
        SoCCore.__init__(self, platform, clk_freq=100e6, cpu_type=None,
                         integrated_rom_size=0x8000,
                         integrated_main_ram_size=0x0000)

        self.submodules.ram = MonitoredRAM(ranges, ram_size)

        # CPU data port and DMA engine share it
        self.cpu_master = wishbone.Interface()
        self.dma_master = wishbone.Interface()
        self.submodules.arbiter = Arbiter([self.cpu_master, self.dma_master], self.ram.bus)

        # snoopers see the word the RAM decodes, mirrors included
        self.submodules.monitor   = SecurityMonitor(ranges, addr_width)
        self.submodules.cpu_snoop = BusSnooper(self.cpu_master, addr_width,
                                               adr_bits=self.ram.adr_bits)
        self.submodules.dma_snoop = BusSnooper(self.dma_master, addr_width,
                                               adr_bits=self.ram.adr_bits)

        # no CPU core: the program counter is driven by the testbench
        self.pc = self.monitor.pc

        self.comb += self.cpu_snoop.connect_cpu(self.monitor)
        self.comb += self.dma_snoop.connect_dma(self.monitor)


# ----------- Bus programs -----------
# (message, master, byte address, we, value)
def demo_accesses(ranges=DEFAULT_RANGES):
    return [
        ("Application updates the attested region...", "cpu", ranges.attested.min, 1, 0xcafebabe),
        ("DMA engine reads the attestation key...", "dma", ranges.key.min, 0, 0),
    ]


def mirrored_key_read(ranges=DEFAULT_RANGES, ram_size=RAM_SIZE):
    return [
        ("DMA engine reads the key through a RAM mirror...", "dma", ranges.key.min + ram_size, 0, 0),
    ]


# ----------- Simulation Testbench -----------
def tb(dut, events, accesses, responses=None, max_wait=16):
    monitor = dut.monitor
    masters = {"cpu": dut.cpu_master, "dma": dut.dma_master}
    cycle = [0]

    def tick():
        yield
        cycle[0] += 1
        if (yield monitor.global_reset) or (yield monitor.rata_b_reset):
            raised = []
            for name, m in monitor.automata().items():
                if (yield m.reset):
                    raised.append(name)
            if (yield monitor.secure_reset.reset):
                raised.append("secure_reset")
            events.append((cycle[0], raised))

    def wb_access(bus, addr, we, value=0):
        yield bus.adr.eq(addr >> 2)
        yield bus.dat_w.eq(value)
        yield bus.we.eq(we)
        yield bus.cyc.eq(1)
        yield bus.stb.eq(1)
        yield from tick()
        for _ in range(max_wait):
            if (yield bus.ack) or (yield bus.err):
                break
            yield from tick()
        status = "ack" if (yield bus.ack) else "err" if (yield bus.err) else "timeout"
        val = (yield bus.dat_r)
        yield bus.stb.eq(0)
        yield bus.cyc.eq(0)
        yield from tick()
        return val, status

    print("Booting through the reset vector...")
    yield dut.pc.eq(monitor.ranges.reset_address)
    for _ in range(3):
        yield from tick()
    del events[:]

    yield dut.pc.eq(UNTRUSTED_PC)
    for message, master, addr, we, value in accesses:
        print(message)
        _, status = yield from wb_access(masters[master], addr, we, value)
        if responses is not None:
            responses.append((master, addr, status))
        for _ in range(2):
            yield from tick()


def report(events):
    if not events:
        print(f"{GREEN}No alarm raised{RESET}")
    for cycle, raised in events:
        print(f"{RED}cycle {cycle}: reset from {', '.join(raised)}{RESET}")


def run_soc_demo(vcd_name=None, accesses=None, responses=None, ranges=DEFAULT_RANGES):
    platform = digilent_basys3.Platform()
    soc = AttestedSoC(platform, ranges)
    if accesses is None:
        accesses = demo_accesses(ranges)
    events = []
    run_simulation(soc, tb(soc, events, accesses, responses), vcd_name=vcd_name)
    return events


def main():
    if not os.path.exists("build/"):
        os.makedirs("build/")
    report(run_soc_demo(vcd_name="build/attested_soc.vcd"))
    report(run_soc_demo(vcd_name="build/attested_soc_mirror.vcd",
                        accesses=mirrored_key_read()))


if __name__ == "__main__":
    main()
