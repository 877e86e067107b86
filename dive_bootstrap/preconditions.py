from __future__ import annotations

import logging
import subprocess
from typing import TYPE_CHECKING, Optional

from .errors import SubprocessFailure
from .lib.command import run_cmd
from .state_store import fingerprint_matches, load_fingerprint, save_fingerprint

if TYPE_CHECKING:
    from .context import BootstrapCtx

logger = logging.getLogger(__name__)

VERSION_CHECK_TIMEOUT_S = 15.0


def parse_uv_version(output: str) -> Optional[str]:
    # "uv 0.8.12" or "uv 0.8.12 (36151df0e 2025-08-18)"
    parts = output.strip().split()
    if len(parts) < 2 or parts[0] != "uv":
        return None
    return parts[1]


def need_uv(ctx: "BootstrapCtx") -> bool:
    """uv (and uvx) must exist and report exactly the pinned version."""

    uv, uvx = ctx.uv, ctx.uvx
    if not uv.exists() or not uvx.exists():
        return True

    try:
        result = run_cmd([uv, "-V"], check=False, timeout_s=VERSION_CHECK_TIMEOUT_S)
    except (OSError, subprocess.SubprocessError, SubprocessFailure) as e:
        logger.info("uv version check failed (%s); reinstalling", e)
        return True

    version = parse_uv_version(result.stdout)
    logger.info("installed uv version is %s, pinned %s", version, ctx.cfg.uv_version)
    return version != ctx.cfg.uv_version


def need_python(ctx: "BootstrapCtx") -> bool:
    return not ctx.platform.python_executable(ctx.dirs.interpreter).exists()


def need_nodejs(ctx: "BootstrapCtx") -> bool:
    if not ctx.platform.has_secondary_runtime:
        return False
    return not ctx.platform.exe(ctx.dirs.runtime, "node").exists()


def need_host_dependencies(ctx: "BootstrapCtx") -> bool:
    """Compare the stored lock fingerprint with the current one.

    A missing file is replaced by the current fingerprint right away, and the
    step still runs, so a first launch always installs.
    """

    path = ctx.dirs.fingerprint_file
    if load_fingerprint(path) is None:
        logger.info("%s not found, need to install host dependencies", path.name)
        save_fingerprint(path, ctx.fingerprint)
        return True

    matches = fingerprint_matches(path, ctx.fingerprint)
    logger.info("stored lock fingerprint matches %s: %s", ctx.fingerprint, matches)
    return not matches


def need_tool_deps(ctx: "BootstrapCtx") -> bool:
    return not (ctx.dirs.scripts / "node_modules").exists()
