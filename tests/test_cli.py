import io

from hw_signals import HardwareSignals
from golden_model import SecurityMonitorModel
from monitor_sim import TickPrinter, main
from scenarios import scenario_d
from trace_replay import dump_trace_csv


def test_builtin_scenario_passes(capsys):
    assert main(["--scenario", "round_trip"]) == 0
    out = capsys.readouterr().out
    assert "5 ticks" in out
    assert "0 property violation(s)" in out


def test_every_scenario_runs_without_cosim(capsys):
    for name in ["a", "b", "c", "d", "attestation", "rata_b"]:
        assert main(["--scenario", name, "--no-cosim"]) == 0
    capsys.readouterr()


def test_csv_trace(tmp_path, capsys):
    path = str(tmp_path / "d.csv")
    dump_trace_csv(scenario_d(), path)
    assert main(["--trace", path, "-v"]) == 0
    out = capsys.readouterr().out
    assert "ALARM: access_control" in out
    assert "3 ticks, 2 with alarm" in out


def test_verilog_export(tmp_path, capsys):
    path = str(tmp_path / "monitor.v")
    assert main(["--verilog", path]) == 0
    with open(path) as f:
        assert "module security_monitor" in f.read()
    capsys.readouterr()


def test_bad_configuration_exits_with_2(capsys):
    assert main(["--key-size", "5"]) == 2
    assert "overlaps" in capsys.readouterr().err


def test_address_width_too_small_exits_with_2(capsys):
    assert main(["--addr-width", "8"]) == 2
    assert "8-bit" in capsys.readouterr().err


def test_unreadable_trace_exits_with_2(tmp_path, capsys):
    path = tmp_path / "bad.csv"
    path.write_text("data_addr\n4\n")
    assert main(["--trace", str(path)]) == 2
    assert "missing column" in capsys.readouterr().err


def test_tick_printer_reports_transitions():
    out = io.StringIO()
    printer = TickPrinter(out=out)
    trace = [HardwareSignals(pc=0), HardwareSignals(pc=64), HardwareSignals(pc=65)]
    for record in SecurityMonitorModel().run(trace):
        printer(record)
    text = out.getvalue()
    assert "atomicity: KILLED -> OUTSIDE" in text
    assert "alarm cleared" in text
    assert "atomicity: OUTSIDE -> FIRST" in text
