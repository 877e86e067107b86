from __future__ import annotations

import asyncio
import logging
from pathlib import Path
from typing import Optional

import httpx

from .archive import Unpacker, extract_tar_gz, extract_zip, unpack_into
from .integrity import verify_sha256
from .net import ProgressCallback, download_with_progress

logger = logging.getLogger(__name__)


class TargetPlatform:
    """Fetch/verify/extract capabilities plus the executable layout of a target.

    One variant is chosen at startup from the target triple; nothing else in
    the bootstrap branches on the operating system.
    """

    archive_ext = "tar.gz"
    exe_suffix = ""
    has_secondary_runtime = False

    def __init__(self, target: str) -> None:
        self.target = target

    @property
    def is_macos(self) -> bool:
        return self.target.endswith("apple-darwin")

    def exe(self, directory: Path, name: str) -> Path:
        return directory / f"{name}{self.exe_suffix}"

    def python_executable(self, python_dir: Path) -> Path:
        return python_dir / "bin" / "python"

    def python_for_install(self, python_dir: Path) -> Path:
        return python_dir / "bin" / "python3"

    def npm_command(self, runtime_dir: Path) -> str:
        return "npm"

    async def fetch(
        self,
        client: httpx.AsyncClient,
        url: str,
        dest: Path,
        on_progress: Optional[ProgressCallback] = None,
    ) -> int:
        return await download_with_progress(client, url, dest, on_progress)

    async def verify(self, path: Path, expected: str) -> bool:
        return await asyncio.to_thread(verify_sha256, path, expected)

    async def extract(self, archive: Path, dest: Path, *, top_level: Optional[str] = None) -> None:
        await asyncio.to_thread(unpack_into, archive, dest, self.unpacker(), top_level=top_level)

    def unpacker(self) -> Unpacker:
        return extract_tar_gz


class UnixPlatform(TargetPlatform):
    pass


class WindowsPlatform(TargetPlatform):
    archive_ext = "zip"
    exe_suffix = ".exe"
    has_secondary_runtime = True

    def python_executable(self, python_dir: Path) -> Path:
        return python_dir / "python.exe"

    def python_for_install(self, python_dir: Path) -> Path:
        return python_dir / "python.exe"

    def npm_command(self, runtime_dir: Path) -> str:
        return str(runtime_dir / "npm.cmd")

    def unpacker(self) -> Unpacker:
        return extract_zip


def select_platform(target: str) -> TargetPlatform:
    if "windows" in target:
        platform_cls: type[TargetPlatform] = WindowsPlatform
    else:
        platform_cls = UnixPlatform
    logger.info("Target %s uses %s", target, platform_cls.__name__)
    return platform_cls(target)
