from __future__ import annotations

import logging
import shutil

from ..context import BootstrapCtx
from ..errors import IntegrityMismatch
from ..preconditions import need_nodejs

logger = logging.getLogger(__name__)


class InstallNodejsStep:
    """Node.js runtime for the bundled tool scripts (Windows targets only)."""

    step_id = "15_install_nodejs"

    def needed(self, ctx: BootstrapCtx) -> bool:
        return need_nodejs(ctx)

    async def run(self, ctx: BootstrapCtx) -> None:
        version = ctx.cfg.nodejs_version
        top_level = f"node-v{version}-win-x64"
        nodejs_dir = ctx.dirs.runtime
        tmp_dir = ctx.dirs.bin / "nodejs_tmp"
        archive = tmp_dir / f"{top_level}.zip"
        url = ctx.cfg.nodejs_url()

        await ctx.output(f"download nodejs from {url}")
        tmp_dir.mkdir(parents=True, exist_ok=True)
        try:
            await ctx.platform.fetch(ctx.client, url, archive, ctx.progress)

            expected = ctx.cfg.nodejs_sha256
            if expected and not await ctx.platform.verify(archive, expected):
                raise IntegrityMismatch(f"Invalid hash for {archive.name}")

            await ctx.output(f"extract nodejs to {nodejs_dir}")
            await ctx.platform.extract(archive, nodejs_dir, top_level=top_level)
        finally:
            shutil.rmtree(tmp_dir, ignore_errors=True)

        await ctx.output("download nodejs done")
