from __future__ import annotations

import asyncio
import inspect
import logging
import os
import shlex
import subprocess
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Callable, Dict, List, Mapping, Optional, Sequence, Tuple, Union

from ..errors import SubprocessFailure

logger = logging.getLogger(__name__)

ERROR_MARKER = "error:"
# Installer output can carry very long lines (resolver dumps).
_LINE_LIMIT = 1024 * 1024
_READ_SIZE = 64 * 1024

Arg = Union[str, Path]
LineSink = Callable[[str, bool], Any]


@dataclass(frozen=True)
class CmdResult:
    argv: list[str]
    returncode: int
    stdout: str
    stderr: str


def _fmt_argv(argv: Sequence[str]) -> str:
    return " ".join(shlex.quote(a) for a in argv)


def _build_env(env: Mapping[str, Optional[str]] | None) -> Dict[str, str]:
    """Merge overrides into os.environ; a None value removes the variable."""

    merged = dict(os.environ)
    for key, value in (env or {}).items():
        if value is None:
            merged.pop(key, None)
        else:
            merged[key] = value
    return merged


def run_cmd(
    argv: Sequence[Arg],
    *,
    check: bool = True,
    env: Mapping[str, Optional[str]] | None = None,
    cwd: str | None = None,
    timeout_s: float | None = None,
) -> CmdResult:
    """Run a short command to completion with consistent logging.

    Raises OSError if the executable cannot be started, SubprocessFailure
    when check=True and the exit status is non-zero.
    """

    argv_list = [str(a) for a in argv]
    logger.info("CMD %s", _fmt_argv(argv_list))

    p = subprocess.run(
        argv_list,
        text=True,
        stdout=subprocess.PIPE,
        stderr=subprocess.PIPE,
        cwd=cwd,
        env=_build_env(env),
        timeout=timeout_s,
    )

    if p.stdout:
        logger.debug("STDOUT %s", p.stdout.strip())
    if p.stderr:
        logger.debug("STDERR %s", p.stderr.strip())

    if check and p.returncode != 0:
        raise SubprocessFailure(f"Command failed ({p.returncode}): {_fmt_argv(argv_list)}\n{p.stderr}")

    return CmdResult(argv=argv_list, returncode=p.returncode, stdout=p.stdout, stderr=p.stderr)


def _decode(raw: bytes) -> str:
    return raw.decode("utf-8", errors="replace").rstrip("\r")


async def _read_lines(
    stream: asyncio.StreamReader,
    name: str,
    queue: "asyncio.Queue[Tuple[str, Optional[str]]]",
) -> None:
    """Split stream into lines until EOF.

    A line longer than _LINE_LIMIT is cut to that length and the rest of it
    is read and thrown away, so the pipe keeps draining.
    """

    buf = bytearray()
    discarding = False
    try:
        while True:
            chunk = await stream.read(_READ_SIZE)
            if not chunk:
                break
            buf.extend(chunk)

            while True:
                idx = buf.find(b"\n")
                if idx < 0:
                    break
                raw = bytes(buf[: min(idx, _LINE_LIMIT)])
                del buf[: idx + 1]
                if discarding:
                    discarding = False
                    continue
                await queue.put((name, _decode(raw)))

            if len(buf) > _LINE_LIMIT:
                if not discarding:
                    logger.warning("[%s] line longer than %d bytes truncated", name, _LINE_LIMIT)
                    await queue.put((name, _decode(bytes(buf[:_LINE_LIMIT]))))
                    discarding = True
                buf.clear()

        if buf and not discarding:
            await queue.put((name, _decode(bytes(buf))))
    except OSError as e:
        logger.error("[%s] read failed: %s", name, e)
    finally:
        await queue.put((name, None))


async def run_streamed(
    argv: Sequence[Arg],
    *,
    on_line: LineSink,
    logtag: str,
    cwd: str | Path | None = None,
    env: Mapping[str, Optional[str]] | None = None,
) -> int | None:
    """Run an installer process, relaying stdout/stderr line by line.

    Both pipes are drained concurrently into one queue, so lines keep their
    order within a stream. A line starting with ``error:`` on either stream
    is reported with is_error=True, stops the pump, terminates the process
    and raises SubprocessFailure. Without such a line the run counts as a
    success whatever the exit status; the status is returned for logging.
    on_line may be a coroutine function.
    """

    argv_list = [str(a) for a in argv]
    logger.info("CMD %s", _fmt_argv(argv_list))

    try:
        proc = await asyncio.create_subprocess_exec(
            *argv_list,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
            cwd=str(cwd) if cwd is not None else None,
            env=_build_env(env),
        )
    except OSError as e:
        raise SubprocessFailure(f"failed to start {argv_list[0]}: {e}") from e

    assert proc.stdout is not None and proc.stderr is not None

    queue: "asyncio.Queue[Tuple[str, Optional[str]]]" = asyncio.Queue()
    readers: List["asyncio.Task[None]"] = [
        asyncio.create_task(_read_lines(proc.stdout, "stdout", queue)),
        asyncio.create_task(_read_lines(proc.stderr, "stderr", queue)),
    ]

    error = ""
    open_streams = len(readers)
    try:
        while open_streams:
            name, line = await queue.get()
            if line is None:
                open_streams -= 1
                continue

            is_error = line.startswith(ERROR_MARKER)
            tag = logtag if name == "stdout" else f"{logtag}-stderr"
            logger.info("[%s] %s", tag, line)
            result = on_line(line, is_error)
            if inspect.isawaitable(result):
                await result

            if is_error:
                error = line
                break
    finally:
        for task in readers:
            if not task.done():
                task.cancel()
        await asyncio.gather(*readers, return_exceptions=True)
        # Leaving early (error line, exception, cancellation) must not wait
        # on a child that may be blocked writing to a pipe nobody reads.
        if open_streams and proc.returncode is None:
            try:
                proc.kill()
            except ProcessLookupError:
                pass
        returncode = await proc.wait()

    if error:
        raise SubprocessFailure(error)

    logger.debug("[%s] exited with %s", logtag, returncode)
    return returncode
