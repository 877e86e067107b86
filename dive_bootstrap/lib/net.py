from __future__ import annotations

import asyncio
import inspect
import logging
import time
from pathlib import Path
from typing import Any, Callable, Mapping, Optional

import httpx

from ..errors import NetworkFailure
from ..events import Progress

logger = logging.getLogger(__name__)

# May return an awaitable; it is awaited before the next chunk is read.
ProgressCallback = Callable[[Progress], Any]
def _content_length(headers: Mapping[str, str]) -> int:
    raw = headers.get("content-length")
    if raw is None:
        return 0
    try:
        return max(0, int(raw))
    except ValueError:
        return 0


def progress_snapshot(downloaded: int, total: int, elapsed: float) -> Progress:
    speed = downloaded / elapsed if elapsed > 0 else 0.0
    percentage = (downloaded / total) * 100.0 if total > 0 else 0.0
    return Progress(
        downloaded=downloaded,
        total=total,
        percentage=percentage,
        speed_bps=speed,
        elapsed_secs=elapsed,
    )


async def download_with_progress(
    client: httpx.AsyncClient,
    url: str,
    dest: str | Path,
    on_progress: Optional[ProgressCallback] = None,
) -> int:
    """Stream url into dest, reporting a Progress snapshot after every chunk.

    Any network error, non-2xx status or write failure raises NetworkFailure.
    A partial file is left behind; the next run overwrites it.
    Returns the number of bytes written.
    """

    path = Path(dest)
    start = time.monotonic()
    downloaded = 0

    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        async with client.stream("GET", url) as resp:
            resp.raise_for_status()
            total = _content_length(resp.headers)
            logger.info("GET %s -> %s (%s bytes)", url, path, total or "unknown")

            with path.open("wb") as fh:
                async for chunk in resp.aiter_bytes():
                    if not chunk:
                        continue
                    await asyncio.to_thread(fh.write, chunk)
                    downloaded += len(chunk)
                    if on_progress is not None:
                        result = on_progress(progress_snapshot(downloaded, total, time.monotonic() - start))
                        if inspect.isawaitable(result):
                            await result
    except httpx.HTTPError as e:
        raise NetworkFailure(f"download failed: {url}: {e}") from e
    except OSError as e:
        raise NetworkFailure(f"download failed: {url}: {e}") from e

    logger.info("Downloaded %s bytes from %s in %.1fs", downloaded, url, time.monotonic() - start)
    return downloaded
