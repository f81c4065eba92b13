from collections import namedtuple

from migen import *

from address_ranges import DEFAULT_RANGES

PC_PREDICATES = [
    "is_first_rom",
    "is_mid_rom",
    "is_last_rom",
    "is_in_rom",
    "is_outside_rom",
    "at_reset_vector",
    "at_after_auth",
]

DATA_PREDICATES = [
    "in_key",
    "in_lock_table",
    "in_hmac_output",
    "in_exclusive_stack",
    "in_attested",
    "data_in_rom",
]

PCPredicates = namedtuple("PCPredicates", PC_PREDICATES)
DataPredicates = namedtuple("DataPredicates", DATA_PREDICATES)
AddressPredicates = namedtuple("AddressPredicates", PC_PREDICATES + DATA_PREDICATES)


def in_key_window(addr, ranges=DEFAULT_RANGES):
    # upper bound is exclusive of the configured (inclusive) key max
    return ranges.key.min <= addr < ranges.key.max


def classify_pc(pc, ranges=DEFAULT_RANGES):
    rom = ranges.rom
    return PCPredicates(
        is_first_rom=pc == rom.min,
        is_mid_rom=rom.min < pc < rom.max,
        is_last_rom=pc == rom.max,
        is_in_rom=rom.min <= pc <= rom.max,
        is_outside_rom=pc < rom.min or pc > rom.max,
        at_reset_vector=pc == ranges.reset_address,
        at_after_auth=pc == ranges.after_auth_pc,
    )


def classify_data(addr, ranges=DEFAULT_RANGES):
    return DataPredicates(
        in_key=in_key_window(addr, ranges),
        in_lock_table=ranges.lock_table.contains(addr),
        in_hmac_output=ranges.hmac_output.contains(addr),
        in_exclusive_stack=ranges.exclusive_stack.contains(addr),
        in_attested=ranges.attested.contains(addr),
        data_in_rom=ranges.rom.contains(addr),
    )


def classify(pc, data_addr, ranges=DEFAULT_RANGES):
    """Region predicates for a program counter and a data address."""
    return AddressPredicates(*(classify_pc(pc, ranges) + classify_data(data_addr, ranges)))


# ----------- Gateware decoders -----------
def _inside(addr, region):
    return (addr >= region.min) & (addr <= region.max)


class PCDecoder(Module):
    def __init__(self, pc, ranges=DEFAULT_RANGES):
        self.is_first_rom    = Signal()
        self.is_mid_rom      = Signal()
        self.is_last_rom     = Signal()
        self.is_in_rom       = Signal()
        self.is_outside_rom  = Signal()
        self.at_reset_vector = Signal()
        self.at_after_auth   = Signal()

        rom = ranges.rom
        self.comb += [
            self.is_first_rom.eq(pc == rom.min),
            self.is_mid_rom.eq((pc > rom.min) & (pc < rom.max)),
            self.is_last_rom.eq(pc == rom.max),
            self.is_in_rom.eq(_inside(pc, rom)),
            self.is_outside_rom.eq((pc < rom.min) | (pc > rom.max)),
            self.at_reset_vector.eq(pc == ranges.reset_address),
            self.at_after_auth.eq(pc == ranges.after_auth_pc),
        ]


class DataDecoder(Module):
    def __init__(self, addr, ranges=DEFAULT_RANGES):
        self.in_key             = Signal()
        self.in_lock_table      = Signal()
        self.in_hmac_output     = Signal()
        self.in_exclusive_stack = Signal()
        self.in_attested        = Signal()
        self.data_in_rom        = Signal()

        self.comb += [
            self.in_key.eq((addr >= ranges.key.min) & (addr < ranges.key.max)),
            self.in_lock_table.eq(_inside(addr, ranges.lock_table)),
            self.in_hmac_output.eq(_inside(addr, ranges.hmac_output)),
            self.in_exclusive_stack.eq(_inside(addr, ranges.exclusive_stack)),
            self.in_attested.eq(_inside(addr, ranges.attested)),
            self.data_in_rom.eq(_inside(addr, ranges.rom)),
        ]
