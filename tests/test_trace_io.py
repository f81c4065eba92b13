import pytest

from hw_signals import HardwareSignals
from scenarios import round_trip
from trace_replay import CSV_FIELDS, TraceError, dump_trace_csv, load_trace_csv, replay


def _write(tmp_path, text):
    path = tmp_path / "trace.csv"
    path.write_text(text)
    return str(path)


def test_dump_then_load_keeps_every_tick(tmp_path):
    path = str(tmp_path / "round_trip.csv")
    dump_trace_csv(round_trip(), path)
    with open(path) as f:
        assert f.readline().strip() == ",".join(CSV_FIELDS)
    assert load_trace_csv(path) == round_trip()


def test_missing_columns_default_to_idle(tmp_path):
    path = _write(tmp_path, "pc,read_en\n0x0,\n0x441,yes\n")
    assert load_trace_csv(path) == [HardwareSignals(pc=0),
                                    HardwareSignals(pc=0x441, read_en=True)]


def test_flags_and_prefixes(tmp_path):
    path = _write(tmp_path, "pc,data_addr,write_en,dma_en\n0b1000000,0o10,True,n\n")
    assert load_trace_csv(path) == [HardwareSignals(pc=64, data_addr=8, write_en=True)]


def test_pc_column_is_required(tmp_path):
    path = _write(tmp_path, "data_addr,read_en\n4,1\n")
    with pytest.raises(TraceError, match="missing column"):
        load_trace_csv(path)


def test_bad_address_names_the_line(tmp_path):
    path = _write(tmp_path, "pc,data_addr\n0,4\n65,key\n")
    with pytest.raises(TraceError, match="line 3: data_addr='key'"):
        load_trace_csv(path)


def test_bad_flag_is_rejected(tmp_path):
    path = _write(tmp_path, "pc,read_en\n0,maybe\n")
    with pytest.raises(TraceError, match="not a boolean"):
        load_trace_csv(path)


def test_negative_address_cannot_be_replayed():
    with pytest.raises(TraceError, match="tick 1: dma_addr=-1"):
        replay([HardwareSignals(pc=0), HardwareSignals(pc=1, dma_addr=-1)])
