from __future__ import annotations

import io

import pytest

from dive_bootstrap.events import Error, EventChannel, Finished, Output, Progress
from dive_bootstrap.main import ConsolePrinter, format_progress, main


def test_format_progress():
    p = Progress(downloaded=512 * 1024, total=1024 * 1024, percentage=50.0, speed_bps=2048.0, elapsed_secs=3.2)

    assert format_progress(p) == " 50.0% 512.0 KiB/1.0 MiB 2.0 KiB/s 3s"


def test_format_progress_unknown_total():
    p = Progress(downloaded=100, total=0, percentage=0.0, speed_bps=0.0, elapsed_secs=0.0)

    assert format_progress(p) == "  0.0% 100 B/? 0 B/s 0s"


def test_printer_redraws_progress_then_breaks_line():
    out = io.StringIO()
    printer = ConsolePrinter(out)

    printer.handle(Output("download uv"))
    printer.handle(Progress(downloaded=1, total=2, percentage=50.0, speed_bps=1.0, elapsed_secs=1.0))
    printer.handle(Progress(downloaded=2, total=2, percentage=100.0, speed_bps=2.0, elapsed_secs=1.0))
    printer.handle(Error("boom"))

    text = out.getvalue()
    assert text.startswith("download uv\n\r")
    assert text.count("\r") == 2
    assert text.endswith("\nERROR boom\n")


def test_quiet_printer_keeps_errors_and_status():
    out = io.StringIO()
    printer = ConsolePrinter(out, quiet=True)

    printer.handle(Output("noise"))
    printer.handle(Error("boom"))
    printer.handle(Finished())

    assert out.getvalue() == "ERROR boom\ndependencies ready\n"


@pytest.mark.asyncio
async def test_printer_consumes_channel():
    out = io.StringIO()
    channel = EventChannel()
    await channel.send(Output("hello"))
    await channel.send(Finished())

    await ConsolePrinter(out).consume(channel)

    assert out.getvalue() == "hello\ndependencies ready\n"


def test_cli_debug_run_exits_zero(tmp_path, capsys):
    code = main(["--debug", "--data-root", str(tmp_path / "data"), "--log", str(tmp_path / "bootstrap.log")])

    assert code == 0
    assert "dependencies ready" in capsys.readouterr().out
    assert not (tmp_path / "data" / "bin").exists()
