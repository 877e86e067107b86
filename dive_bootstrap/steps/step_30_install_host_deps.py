from __future__ import annotations

import logging

from ..context import BootstrapCtx
from ..errors import FilesystemFailure, SubprocessFailure
from ..lib.command import run_streamed
from ..preconditions import need_host_dependencies
from ..state_store import save_fingerprint

logger = logging.getLogger(__name__)

# Inherited interpreter paths would leak the app's own environment into the
# isolated target directory.
_CLEARED_ENV = {"PYTHONPATH": None, "PYTHONHOME": None}


class InstallHostDepsStep:
    step_id = "30_install_host_deps"

    def needed(self, ctx: BootstrapCtx) -> bool:
        return need_host_dependencies(ctx)

    async def run(self, ctx: BootstrapCtx) -> None:
        host_dir = ctx.cfg.host_dir
        if not ctx.cfg.lock_path.exists():
            raise FilesystemFailure("uv.lock not found")

        requirements = ctx.dirs.requirements_file
        requirements.parent.mkdir(parents=True, exist_ok=True)

        await ctx.output("generate requirements.txt")
        try:
            await run_streamed(
                [ctx.uv, "export", "-o", requirements],
                on_line=ctx.process_line,
                logtag="uv",
                cwd=host_dir,
            )
        except SubprocessFailure as e:
            raise SubprocessFailure(f"Failed to generate requirements.txt: {e}") from e

        await ctx.output("install host dependencies from requirements.txt")
        python = ctx.platform.python_for_install(ctx.dirs.interpreter)
        try:
            await run_streamed(
                [
                    ctx.uv,
                    "pip",
                    "install",
                    "-r",
                    requirements,
                    "--target",
                    ctx.dirs.deps,
                    "--python",
                    python,
                ],
                on_line=ctx.process_line,
                logtag="uv",
                cwd=host_dir,
                env=_CLEARED_ENV,
            )
        except SubprocessFailure as e:
            raise SubprocessFailure(f"Failed to install host dependencies: {e}") from e

        await ctx.output("download host dependencies done")
        await ctx.sign(ctx.dirs.deps, "host dependencies")

        save_fingerprint(ctx.dirs.fingerprint_file, ctx.fingerprint)
        logger.info("Stored lock fingerprint %s", ctx.fingerprint)
