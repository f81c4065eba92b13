from migen import *
from migen.genlib.fsm import FSM, NextState, NextValue

from address_model import PCDecoder, DataDecoder
from address_ranges import DEFAULT_RANGES


def _watch(fsm, names):
    # one "ongoing" flag per state, used by testbenches to decode the state
    return {name: fsm.ongoing(name) for name in names}


# ----------- RUN/KILL guard (shared by key and stack monitors) -----------
class RunKillMonitor(Module):
    def __init__(self, pcd, violation):
        self.violation = violation
        self.reset     = Signal(reset=1)

        self.submodules.fsm = fsm = FSM(reset_state="KILL")

        fsm.act("RUN",
            If(violation,
                NextValue(self.reset, 1),
                NextState("KILL")
            )
        )

        fsm.act("KILL",
            If(pcd.at_reset_vector & ~violation,
                NextValue(self.reset, 0),
                NextState("RUN")
            ).Else(
                NextValue(self.reset, 1)
            )
        )

        self.states = _watch(fsm, ["RUN", "KILL"])


# ----------- Key access control -----------
class AccessControlMonitor(RunKillMonitor):
    def __init__(self, pcd, data, read_en):
        self.access_key         = Signal()
        self.invalid_access_key = Signal()
        self.comb += [
            self.access_key.eq(data.in_key & read_en),
            self.invalid_access_key.eq(pcd.is_outside_rom & self.access_key),
        ]
        RunKillMonitor.__init__(self, pcd, self.invalid_access_key)


# ----------- Exclusive stack -----------
class ExclusiveStackMonitor(RunKillMonitor):
    def __init__(self, pcd, data, read_en, write_en):
        self.unauthorized_access = Signal()
        self.leaky_write         = Signal()
        violation = Signal()

        self.comb += [
            self.unauthorized_access.eq(pcd.is_outside_rom & data.in_exclusive_stack &
                                        (read_en | write_en)),
            # the HMAC output is the one place attestation code may write outside its stack
            self.leaky_write.eq(pcd.is_in_rom & write_en &
                                ~data.in_exclusive_stack & ~data.in_hmac_output),
            violation.eq(self.unauthorized_access | self.leaky_write),
        ]
        RunKillMonitor.__init__(self, pcd, violation)


# ----------- Atomicity -----------
class AtomicityMonitor(Module):
    def __init__(self, pcd):
        self.reset = Signal(reset=1)

        def kill():
            return [NextValue(self.reset, 1), NextState("KILLED")]

        self.submodules.fsm = fsm = FSM(reset_state="KILLED")

        fsm.act("FIRST",
            If(pcd.is_mid_rom,
                NextState("MID")
            ).Elif(pcd.is_last_rom | pcd.is_outside_rom,
                *kill()
            )
        )

        fsm.act("MID",
            If(pcd.is_last_rom,
                NextState("LAST")
            ).Elif(pcd.is_outside_rom | pcd.is_first_rom,
                *kill()
            )
        )

        fsm.act("LAST",
            If(pcd.is_outside_rom,
                NextState("OUTSIDE")
            ).Elif(pcd.is_in_rom,
                *kill()
            )
        )

        fsm.act("OUTSIDE",
            If(pcd.is_first_rom,
                NextState("FIRST")
            ).Elif(pcd.is_in_rom,
                *kill()
            )
        )

        fsm.act("KILLED",
            If(pcd.at_reset_vector,
                NextValue(self.reset, 0),
                NextState("OUTSIDE")
            )
        )

        self.states = _watch(fsm, ["FIRST", "MID", "LAST", "OUTSIDE", "KILLED"])


# ----------- Secure reset -----------
class SecureResetMonitor(Module):
    def __init__(self, pcd, read_en, write_en, dma_en):
        self.reset = Signal(reset=1)
        self.sync += self.reset.eq(pcd.at_reset_vector & (read_en | write_en | dma_en))


# ----------- DMA guard -----------
class DmaGuard(Module):
    def __init__(self, pcd, dma_data, dma_en):
        self.reset = Signal()

        # DMA counts as a read and a write at the same time
        self.submodules.access_control  = AccessControlMonitor(pcd, dma_data, dma_en)
        self.submodules.exclusive_stack = ExclusiveStackMonitor(pcd, dma_data, dma_en, dma_en)

        self.comb += self.reset.eq(self.access_control.reset | self.exclusive_stack.reset)


# ----------- RATA-B attested region freshness -----------
class RegionFreshnessMonitor(Module):
    def __init__(self, pcd, data, write_en, dma_data, dma_en):
        self.modifies_lock_table      = Signal()
        self.modifies_attested_region = Signal()
        self.lock_table_updated       = Signal()
        self.reset                    = Signal(reset=1)

        self.comb += [
            self.modifies_lock_table.eq((write_en & data.in_lock_table) |
                                        (dma_en & dma_data.in_lock_table)),
            self.modifies_attested_region.eq((write_en & data.in_attested) |
                                             (dma_en & dma_data.in_attested)),
        ]

        lmt = self.modifies_lock_table
        ar  = self.modifies_attested_region

        def to_reset():
            return [NextValue(self.reset, 1), NextState("RESET")]

        self.submodules.fsm = fsm = FSM(reset_state="RESET")

        fsm.act("ATTEST",
            If(lmt,
                *to_reset()
            ).Elif(ar,
                NextState("MODIFIED")
            ).Elif(pcd.at_after_auth,
                NextState("UPDATE")
            ).Elif(pcd.is_last_rom,
                NextState("NOT_MODIFIED")
            )
        )

        fsm.act("NOT_MODIFIED",
            If(lmt,
                *to_reset()
            ).Elif(ar,
                NextState("MODIFIED")
            )
        )

        fsm.act("UPDATE",
            If(lmt,
                *to_reset()
            ).Elif(ar,
                NextState("MODIFIED")
            ).Elif(~pcd.at_after_auth,
                NextState("ATTEST")
            )
        )

        fsm.act("MODIFIED",
            If(lmt,
                *to_reset()
            ).Elif(pcd.at_after_auth & ~ar,
                NextState("UPDATE")
            )
        )

        fsm.act("RESET",
            If(lmt,
                NextValue(self.reset, 1)
            ).Elif(pcd.at_reset_vector,
                NextValue(self.reset, 0),
                NextState("MODIFIED")
            )
        )

        self.states = _watch(fsm, ["ATTEST", "NOT_MODIFIED", "UPDATE", "MODIFIED", "RESET"])
        self.comb += self.lock_table_updated.eq(self.states["UPDATE"] & ~self.reset)


# ----------- Top level -----------
class SecurityMonitor(Module):
    def __init__(self, ranges=DEFAULT_RANGES, addr_width=16):
        ranges.check_width(addr_width)
        self.ranges     = ranges
        self.addr_width = addr_width

        # CPU side
        self.pc        = Signal(addr_width)
        self.data_addr = Signal(addr_width)
        self.read_en   = Signal()
        self.write_en  = Signal()

        # DMA side
        self.dma_addr  = Signal(addr_width)
        self.dma_en    = Signal()

        self.global_reset = Signal()
        self.rata_b_reset = Signal()

        # one pc decoder for every monitor, one data decoder per access path
        self.submodules.pcd      = PCDecoder(self.pc, ranges)
        self.submodules.cpu_data = DataDecoder(self.data_addr, ranges)
        self.submodules.dma_data = DataDecoder(self.dma_addr, ranges)

        self.submodules.access_control  = AccessControlMonitor(self.pcd, self.cpu_data, self.read_en)
        self.submodules.atomicity       = AtomicityMonitor(self.pcd)
        self.submodules.exclusive_stack = ExclusiveStackMonitor(self.pcd, self.cpu_data,
                                                                self.read_en, self.write_en)
        self.submodules.secure_reset    = SecureResetMonitor(self.pcd, self.read_en,
                                                             self.write_en, self.dma_en)
        self.submodules.dma             = DmaGuard(self.pcd, self.dma_data, self.dma_en)
        self.submodules.rata_b          = RegionFreshnessMonitor(self.pcd, self.cpu_data,
                                                                 self.write_en, self.dma_data,
                                                                 self.dma_en)

        self.comb += [
            self.global_reset.eq(self.access_control.reset |
                                 self.atomicity.reset |
                                 self.exclusive_stack.reset |
                                 self.secure_reset.reset |
                                 self.dma.reset),
            self.rata_b_reset.eq(self.rata_b.reset),
        ]

    def automata(self):
        return {
            "access_control":      self.access_control,
            "atomicity":           self.atomicity,
            "exclusive_stack":     self.exclusive_stack,
            "dma_access_control":  self.dma.access_control,
            "dma_exclusive_stack": self.dma.exclusive_stack,
            "rata_b":              self.rata_b,
        }

    def ios(self):
        return {self.pc, self.data_addr, self.read_en, self.write_en,
                self.dma_addr, self.dma_en, self.global_reset, self.rata_b_reset,
                self.rata_b.lock_table_updated}
