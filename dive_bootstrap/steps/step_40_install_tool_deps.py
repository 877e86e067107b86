from __future__ import annotations

import logging

from ..context import BootstrapCtx
from ..errors import SubprocessFailure
from ..lib.command import run_streamed
from ..preconditions import need_tool_deps

logger = logging.getLogger(__name__)


class InstallToolDepsStep:
    """npm install for the bundled tool scripts. Best-effort."""

    step_id = "40_install_tool_deps"

    def needed(self, ctx: BootstrapCtx) -> bool:
        return need_tool_deps(ctx)

    async def run(self, ctx: BootstrapCtx) -> None:
        npm = ctx.cfg.npm_command or ctx.platform.npm_command(ctx.dirs.runtime)
        scripts = ctx.dirs.scripts
        scripts.mkdir(parents=True, exist_ok=True)

        logger.info("install tool script deps in %s", scripts)
        try:
            await run_streamed([npm, "install"], on_line=ctx.process_line, logtag="npm", cwd=scripts)
        except SubprocessFailure as e:
            raise SubprocessFailure(f"Failed to install tool deps: {e}") from e

        logger.info("install tool script deps done")
