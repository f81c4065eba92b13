import pytest

from address_ranges import DEFAULT_RANGES, ConfigurationError
from vrased_soc import (RAM_SIZE, MonitoredRAM, demo_accesses, mirrored_key_read, report,
                        run_soc_demo)


def _raised(events):
    return set(name for _, names in events for name in names)


def test_dma_key_read_trips_the_monitor(capsys):
    responses = []
    events = run_soc_demo(responses=responses)
    assert events
    assert "dma_access_control" in _raised(events)
    # the attested region write only marks the region modified
    assert "rata_b" not in _raised(events)
    assert responses == [("cpu", DEFAULT_RANGES.attested.min, "ack"),
                         ("dma", DEFAULT_RANGES.key.min, "ack")]
    report(events)
    assert "dma_access_control" in capsys.readouterr().out


def test_key_read_through_ram_mirror_is_refused_and_trips_the_monitor():
    responses = []
    events = run_soc_demo(accesses=mirrored_key_read(), responses=responses)
    assert responses == [("dma", DEFAULT_RANGES.key.min + RAM_SIZE, "err")]
    assert "dma_access_control" in _raised(events)


def test_cpu_key_read_through_ram_mirror_trips_the_monitor():
    accesses = [("CPU reads a mirrored key word...", "cpu",
                 DEFAULT_RANGES.key.min + 3 * RAM_SIZE, 0, 0)]
    events = run_soc_demo(accesses=accesses)
    assert "access_control" in _raised(events)


def test_plain_attested_write_raises_nothing():
    events = run_soc_demo(accesses=demo_accesses()[:1])
    assert events == []


def test_ram_refuses_map_larger_than_itself():
    with pytest.raises(ConfigurationError, match="10-bit"):
        MonitoredRAM(DEFAULT_RANGES, size=0x400)


def test_report_without_events(capsys):
    report([])
    assert "No alarm raised" in capsys.readouterr().out
