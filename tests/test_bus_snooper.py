from litex.soc.interconnect import wishbone
from migen import Module
from migen.sim import run_simulation

from bus_snooper import BusSnooper
from monitors import SecurityMonitor


class SnoopedMonitor(Module):
    def __init__(self):
        self.cpu_bus = wishbone.Interface()
        self.dma_bus = wishbone.Interface()
        self.submodules.monitor   = SecurityMonitor()
        self.submodules.cpu_snoop = BusSnooper(self.cpu_bus)
        self.submodules.dma_snoop = BusSnooper(self.dma_bus)
        self.comb += self.cpu_snoop.connect_cpu(self.monitor)
        self.comb += self.dma_snoop.connect_dma(self.monitor)


def test_snooper_decodes_wishbone_cycles():
    dut = SnoopedMonitor()
    seen = {}

    def tb():
        bus = dut.cpu_bus
        yield bus.adr.eq(0x110)
        yield bus.we.eq(1)
        yield bus.cyc.eq(1)
        yield
        seen["idle"] = (yield dut.cpu_snoop.active)
        yield bus.stb.eq(1)
        yield
        seen["write"] = ((yield dut.monitor.data_addr), (yield dut.monitor.write_en),
                         (yield dut.monitor.read_en))
        yield bus.we.eq(0)
        yield
        seen["read"] = ((yield dut.monitor.read_en), (yield dut.monitor.write_en))

    run_simulation(dut, tb())
    assert seen["idle"] == 0
    # word address 0x110 is byte address 0x440, the start of the attested region
    assert seen["write"] == (0x440, 1, 0)
    assert seen["read"] == (1, 0)


def test_dma_snooper_drives_dma_port():
    dut = SnoopedMonitor()
    seen = {}

    def tb():
        bus = dut.dma_bus
        yield bus.adr.eq(1)
        yield bus.cyc.eq(1)
        yield bus.stb.eq(1)
        yield
        seen["dma"] = ((yield dut.monitor.dma_addr), (yield dut.monitor.dma_en))
        seen["key"] = (yield dut.monitor.dma_data.in_key)

    run_simulation(dut, tb())
    assert seen["dma"] == (4, 1)
    assert seen["key"] == 1


def test_snooper_folds_mirrors_onto_the_decoded_word():
    bus = wishbone.Interface()
    dut = BusSnooper(bus, adr_bits=10)
    seen = []

    def tb():
        yield bus.cyc.eq(1)
        yield bus.stb.eq(1)
        for byte_addr in [0x1004, 0x3440, 0x0ffc]:
            yield bus.adr.eq(byte_addr >> 2)
            yield
            seen.append((yield dut.address))

    run_simulation(dut, tb())
    assert seen == [0x004, 0x440, 0xffc]
