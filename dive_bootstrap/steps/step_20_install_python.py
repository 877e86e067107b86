from __future__ import annotations

import logging
import shutil
from pathlib import Path
from typing import Optional

from ..context import BootstrapCtx
from ..errors import FilesystemFailure, SubprocessFailure
from ..lib.command import run_streamed
from ..preconditions import need_python

logger = logging.getLogger(__name__)


def _find_install_dir(tmp_dir: Path) -> Optional[Path]:
    for entry in sorted(tmp_dir.iterdir()):
        if entry.is_dir() and entry.name.startswith("cpython-3"):
            return entry
    return None


class InstallPythonStep:
    step_id = "20_install_python"

    def needed(self, ctx: BootstrapCtx) -> bool:
        return need_python(ctx)

    async def run(self, ctx: BootstrapCtx) -> None:
        version = ctx.cfg.python_version
        python_dir = ctx.dirs.interpreter
        tmp_dir = ctx.dirs.bin / "py_tmp"

        if tmp_dir.exists():
            shutil.rmtree(tmp_dir)
        tmp_dir.mkdir(parents=True)

        await ctx.output(f"install python {version}")
        try:
            await run_streamed(
                [ctx.uv, "python", "install", version, "-i", tmp_dir],
                on_line=ctx.process_line,
                logtag="uv",
            )
        except SubprocessFailure as e:
            raise SubprocessFailure(f"Failed to download python: {e}") from e

        installed = _find_install_dir(tmp_dir)
        if installed is None:
            raise FilesystemFailure("Failed to get python install dir")

        if python_dir.exists():
            shutil.rmtree(python_dir)
        shutil.move(str(installed), str(python_dir))
        shutil.rmtree(tmp_dir, ignore_errors=True)

        await ctx.output("download python done")
        await ctx.sign(python_dir, "python")
