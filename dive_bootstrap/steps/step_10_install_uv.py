from __future__ import annotations

import logging

from ..context import BootstrapCtx
from ..errors import IntegrityMismatch
from ..pins import expected_hash
from ..preconditions import need_uv

logger = logging.getLogger(__name__)


class InstallUvStep:
    step_id = "10_install_uv"

    def needed(self, ctx: BootstrapCtx) -> bool:
        return need_uv(ctx)

    async def run(self, ctx: BootstrapCtx) -> None:
        digest = expected_hash(ctx.cfg.uv_hashes, ctx.target)

        uv_dir = ctx.dirs.manager
        ext = ctx.platform.archive_ext
        archive_name = f"uv-{ctx.target}.{ext}"
        archive = uv_dir / archive_name
        url = ctx.cfg.uv_url(ctx.target, ext)

        await ctx.output(f"download uv from {url}")
        uv_dir.mkdir(parents=True, exist_ok=True)
        await ctx.platform.fetch(ctx.client, url, archive, ctx.progress)

        if not await ctx.platform.verify(archive, digest):
            archive.unlink(missing_ok=True)
            raise IntegrityMismatch(f"Invalid hash for {archive_name}")

        await ctx.output(f"extract uv to {uv_dir}")
        # Unix archives wrap the binaries in uv-<target>/; zips do not.
        await ctx.platform.extract(archive, uv_dir, top_level=f"uv-{ctx.target}")
        await ctx.output("download uv done")

        await ctx.sign(uv_dir, "uv")
