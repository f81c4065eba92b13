import pytest

from address_ranges import DEFAULT_RANGES, AddressRange, AddressRanges, ConfigurationError


def test_default_memory_map():
    r = DEFAULT_RANGES
    assert r.reset_address == 0
    assert r.lock_table == (2, 3)
    assert (r.key_min, r.key_max, r.key.size) == (4, 7, 4)
    assert r.hmac_output == (8, 9)
    assert r.exclusive_stack == (32, 63)
    assert (r.rom_min, r.rom_max, r.rom_size) == (64, 1087, 1024)
    assert r.after_auth_pc == 65


def test_attested_region_max_keeps_size_bound():
    # ar_max is ar_min + ar_size, one wider than a size-256 window
    assert DEFAULT_RANGES.ar_min == 1088
    assert DEFAULT_RANGES.ar_max == 1344
    assert DEFAULT_RANGES.attested.size == 257


def test_from_options_defaults_match_constants():
    assert AddressRanges.from_options() == DEFAULT_RANGES


def test_from_options_shifts_attested_region_after_rom():
    r = AddressRanges.from_options(rom_size=128, key_size=2)
    assert r.rom == (64, 191)
    assert r.key == (4, 5)
    assert r.attested == (192, 192 + 256)


@pytest.mark.parametrize("changes, message", [
    ({"key": (4, 8)}, "overlaps"),
    ({"exclusive_stack": (60, 70)}, "overlaps"),
    ({"attested": (1000, 1200)}, "overlaps"),
    ({"hmac_output": (9, 8)}, "inverted"),
    ({"lock_table": (-1, 1)}, "below zero"),
    ({"after_auth_pc": 64}, "after-auth"),
    ({"after_auth_pc": 2000}, "after-auth"),
    ({"rom": (64, 65), "after_auth_pc": 65, "attested": (66, 80)}, "rom"),
    ({"reset_address": 3}, "reset address"),
    ({"reset_address": -1}, "negative"),
])
def test_malformed_configuration_is_rejected(changes, message):
    with pytest.raises(ConfigurationError, match=message):
        DEFAULT_RANGES.replace(**changes)


def test_key_size_must_not_reach_hmac_output():
    with pytest.raises(ConfigurationError):
        AddressRanges.from_options(key_size=5)


def test_check_width():
    assert DEFAULT_RANGES.check_width(11) is DEFAULT_RANGES
    with pytest.raises(ConfigurationError, match="10-bit"):
        DEFAULT_RANGES.check_width(10)


def test_configuration_error_is_a_value_error():
    assert issubclass(ConfigurationError, ValueError)


def test_address_range_helpers():
    window = AddressRange(4, 7)
    assert window.size == 4
    assert window.contains(4) and window.contains(7)
    assert not window.contains(3) and not window.contains(8)
    assert window.overlaps(AddressRange(7, 9))
    assert not window.overlaps(AddressRange(8, 9))
    assert str(window) == "[4, 7]"


def test_replace_validates_and_keeps_untouched_regions():
    r = DEFAULT_RANGES.replace(after_auth_pc=66)
    assert isinstance(r, AddressRanges)
    assert r.after_auth_pc == 66
    assert r.rom == DEFAULT_RANGES.rom and r.key == DEFAULT_RANGES.key
    assert DEFAULT_RANGES.after_auth_pc == 65
