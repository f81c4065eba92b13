from migen import *


# ----------- Wishbone snooper (feeds a SecurityMonitor access path) -----------
class BusSnooper(Module):
    def __init__(self, bus, addr_width=16, adr_shift=2, adr_bits=None):
        self.address = Signal(addr_width)
        self.active  = Signal()
        self.read    = Signal()
        self.write   = Signal()

        # report the word the slave decodes, so mirrored addresses map back
        # onto the region they alias
        adr = bus.adr if adr_bits is None else bus.adr[:adr_bits]

        self.comb += [
            self.active.eq(bus.cyc & bus.stb),
            # wishbone carries word addresses, the monitor works on bytes
            self.address.eq(adr << adr_shift),
            self.read.eq(self.active & ~bus.we),
            self.write.eq(self.active & bus.we),
        ]

    def connect_cpu(self, monitor):
        return [
            monitor.data_addr.eq(self.address),
            monitor.read_en.eq(self.read),
            monitor.write_en.eq(self.write),
        ]

    def connect_dma(self, monitor):
        return [
            monitor.dma_addr.eq(self.address),
            monitor.dma_en.eq(self.active),
        ]
