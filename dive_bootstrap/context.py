from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from pathlib import Path

import httpx

from .config import BootstrapConfig, InstallDirs
from .errors import SubprocessFailure
from .events import Error, EventChannel, Output, Progress
from .lib.codesign import sign_directory
from .lib.platforms import TargetPlatform

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class BootstrapCtx:
    """Everything a step needs for one bootstrap run. Read-only."""

    cfg: BootstrapConfig
    dirs: InstallDirs
    platform: TargetPlatform
    channel: EventChannel
    client: httpx.AsyncClient
    fingerprint: str

    @property
    def target(self) -> str:
        return self.platform.target

    @property
    def uv(self) -> Path:
        return self.platform.exe(self.dirs.manager, "uv")

    @property
    def uvx(self) -> Path:
        return self.platform.exe(self.dirs.manager, "uvx")

    async def output(self, text: str) -> None:
        logger.info("%s", text)
        await self.channel.send(Output(text))

    async def progress(self, snapshot: Progress) -> None:
        await self.channel.send(snapshot)

    async def process_line(self, line: str, is_error: bool) -> None:
        # Already logged by the output pump.
        await self.channel.send(Error(line) if is_error else Output(line))

    async def sign(self, directory: Path, name: str) -> None:
        if not self.platform.is_macos:
            return
        await self.output(f"signing {name}, please wait...")
        try:
            await asyncio.to_thread(sign_directory, directory)
        except OSError as e:
            raise SubprocessFailure(f"failed to sign {name}: {e}") from e
