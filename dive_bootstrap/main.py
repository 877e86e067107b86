from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from typing import Optional, TextIO

from .config import BootstrapConfig, load_config
from .events import Error, Event, EventChannel, Finished, Output, Progress
from .logging_utils import LOG_FILE_NAME, configure_logging
from .pipeline import BootstrapResult, Bootstrapper

logger = logging.getLogger(__name__)


def _human_bytes(n: float) -> str:
    if n < 1024:
        return f"{int(n)} B"
    for unit in ("KiB", "MiB"):
        n /= 1024
        if n < 1024:
            return f"{n:.1f} {unit}"
    return f"{n / 1024:.1f} GiB"


def format_progress(p: Progress) -> str:
    total = _human_bytes(p.total) if p.total else "?"
    return (
        f"{p.percentage:5.1f}% {_human_bytes(p.downloaded)}/{total} "
        f"{_human_bytes(p.speed_bps)}/s {p.elapsed_secs:.0f}s"
    )


class ConsolePrinter:
    """Renders bootstrap events on a terminal; progress redraws one line."""

    def __init__(self, stream: Optional[TextIO] = None, *, quiet: bool = False) -> None:
        self.stream = stream if stream is not None else sys.stdout
        self.quiet = quiet
        self._in_progress_line = False

    def _line(self, text: str) -> None:
        if self._in_progress_line:
            self.stream.write("\n")
            self._in_progress_line = False
        self.stream.write(text + "\n")

    def handle(self, event: Event) -> None:
        if isinstance(event, Progress):
            if not self.quiet:
                self.stream.write("\r" + format_progress(event))
                self._in_progress_line = True
        elif isinstance(event, Output):
            if not self.quiet:
                self._line(event.text)
        elif isinstance(event, Error):
            self._line(f"ERROR {event.text}")
        elif isinstance(event, Finished):
            self._line("dependencies ready")
        self.stream.flush()

    async def consume(self, channel: EventChannel) -> None:
        receiver = channel.attach()
        if receiver is None:
            return
        try:
            async for event in receiver:
                self.handle(event)
        finally:
            receiver.close()


async def _run_with_console(cfg: BootstrapConfig, printer: ConsolePrinter) -> BootstrapResult:
    channel = EventChannel(cfg.event_queue_size)
    consumer = asyncio.create_task(printer.consume(channel))
    result = await Bootstrapper(cfg, channel).start()
    await consumer
    return result


def run(
    *,
    config_path: Optional[str] = None,
    data_root: Optional[str] = None,
    host_dir: Optional[str] = None,
    log_path: Optional[str] = None,
    target: Optional[str] = None,
    debug: bool = False,
    quiet: bool = False,
) -> BootstrapResult:
    """Run one bootstrap with console output, logging to the data root."""

    cfg = load_config(config_path).with_overrides(
        data_root=data_root,
        host_dir=host_dir,
        target=target,
        debug=True if debug else None,
    )

    actual_log_path = configure_logging(log_path or str(cfg.dirs.log / LOG_FILE_NAME), also_console=not quiet)
    logger.info("dive-bootstrap starting (log=%s)", actual_log_path)

    try:
        return asyncio.run(_run_with_console(cfg, ConsolePrinter(quiet=quiet)))
    except Exception:
        logger.exception("Bootstrap crashed")
        raise


def main(argv: Optional[list[str]] = None) -> int:
    p = argparse.ArgumentParser(prog="dive-bootstrap")
    p.add_argument("--config", default=None, help="Path to bootstrap config (yaml)")
    p.add_argument("--data-root", default=None, help="Private data root (default ~/.dive)")
    p.add_argument("--host-dir", default=None, help="Directory holding the host's uv.lock")
    p.add_argument("--log", default=None, help="Path to bootstrap log")
    p.add_argument("--target", default=None, help="Override target triple (e.g. x86_64-unknown-linux-gnu)")
    p.add_argument("--debug", action="store_true", help="Skip the bootstrap entirely (development)")
    p.add_argument("--quiet", action="store_true", help="Only print errors and the final status")

    args = p.parse_args(argv)

    result = run(
        config_path=args.config,
        data_root=args.data_root,
        host_dir=args.host_dir,
        log_path=args.log,
        target=args.target,
        debug=bool(args.debug),
        quiet=bool(args.quiet),
    )
    return 0 if result.ok else 1


if __name__ == "__main__":
    raise SystemExit(main())
