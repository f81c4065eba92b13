from address_ranges import DEFAULT_RANGES
from hw_signals import HardwareSignals


def _boot(ranges):
    return HardwareSignals(pc=ranges.reset_address)


def _untrusted(ranges, offset=0):
    # first address after the attested region is plain application code
    return ranges.attested.max + 1 + offset


def scenario_a(ranges=DEFAULT_RANGES):
    """Boot tick: everything still killed, alarm raised."""
    return [_boot(ranges)]


def scenario_b(ranges=DEFAULT_RANGES):
    """Boot, then enter attestation code at its first instruction."""
    return [_boot(ranges),
            HardwareSignals(pc=ranges.rom.min),
            HardwareSignals(pc=ranges.rom.min + 1)]


def scenario_c(ranges=DEFAULT_RANGES):
    """Jump from the first ROM instruction straight to the last one."""
    return [_boot(ranges),
            HardwareSignals(pc=ranges.rom.min),
            HardwareSignals(pc=ranges.rom.max),
            HardwareSignals(pc=ranges.rom.max + 1)]


def scenario_d(ranges=DEFAULT_RANGES):
    """Untrusted code reads the key."""
    return [_boot(ranges),
            HardwareSignals(pc=ranges.rom.max + 1, data_addr=ranges.key.min + 1, read_en=True),
            HardwareSignals(pc=ranges.rom.max + 2)]


def round_trip(ranges=DEFAULT_RANGES):
    """Trip several monitors at once, then recover through the reset vector."""
    mid_rom = (ranges.rom.min + ranges.rom.max) // 2
    return [_boot(ranges),
            HardwareSignals(pc=_untrusted(ranges), data_addr=ranges.key.min, read_en=True,
                            dma_addr=ranges.exclusive_stack.min, dma_en=True),
            HardwareSignals(pc=mid_rom),
            _boot(ranges),
            HardwareSignals(pc=_untrusted(ranges, 1))]


def attestation_run(ranges=DEFAULT_RANGES):
    """A compliant attestation: stack and HMAC writes from ROM, then exit."""
    mid_rom = (ranges.rom.min + ranges.rom.max) // 2
    return [_boot(ranges),
            HardwareSignals(pc=ranges.rom.min),
            HardwareSignals(pc=ranges.after_auth_pc),
            HardwareSignals(pc=ranges.after_auth_pc + 1, data_addr=ranges.exclusive_stack.min,
                            write_en=True),
            HardwareSignals(pc=mid_rom, data_addr=ranges.hmac_output.min, write_en=True),
            HardwareSignals(pc=ranges.rom.max - 1, data_addr=ranges.exclusive_stack.max,
                            read_en=True),
            HardwareSignals(pc=ranges.rom.max),
            HardwareSignals(pc=_untrusted(ranges)),
            HardwareSignals(pc=_untrusted(ranges, 1))]


def rata_b_update(ranges=DEFAULT_RANGES):
    """Lock table update protocol: authenticate, attest, modify, tamper."""
    return [_boot(ranges),
            HardwareSignals(pc=ranges.rom.min),
            HardwareSignals(pc=ranges.after_auth_pc),
            HardwareSignals(pc=ranges.after_auth_pc + 1),
            HardwareSignals(pc=ranges.rom.max),
            HardwareSignals(pc=_untrusted(ranges), data_addr=ranges.attested.min + 12,
                            write_en=True),
            HardwareSignals(pc=_untrusted(ranges, 1), data_addr=ranges.lock_table.min,
                            write_en=True),
            HardwareSignals(pc=_untrusted(ranges, 2))]


SCENARIOS = {
    "a": scenario_a,
    "b": scenario_b,
    "c": scenario_c,
    "d": scenario_d,
    "round_trip": round_trip,
    "attestation": attestation_run,
    "rata_b": rata_b_update,
}
