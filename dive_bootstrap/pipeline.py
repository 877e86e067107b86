from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import List, Optional, Protocol, Sequence

import httpx

from .config import BootstrapConfig
from .context import BootstrapCtx
from .errors import BootstrapError, FilesystemFailure
from .events import Error, EventChannel, Finished
from .lib.platforms import select_platform
from .pins import expected_hash
from .steps import (
    InstallHostDepsStep,
    InstallNodejsStep,
    InstallPythonStep,
    InstallToolDepsStep,
    InstallUvStep,
)

logger = logging.getLogger(__name__)


class Step(Protocol):
    """A single idempotent step gated by its own precondition."""

    step_id: str

    def needed(self, ctx: BootstrapCtx) -> bool:
        ...

    async def run(self, ctx: BootstrapCtx) -> None:
        ...


@dataclass(frozen=True)
class BootstrapResult:
    ok: bool
    error: Optional[str] = None
    ran_steps: List[str] = field(default_factory=list)
    skipped_steps: List[str] = field(default_factory=list)


async def run_steps(
    ctx: BootstrapCtx,
    steps: Sequence[Step],
    ran: List[str],
    skipped: List[str],
) -> None:
    """Run steps in order, skipping those whose precondition is satisfied."""

    for step in steps:
        try:
            # Checks may run executables or touch the cache; keep them off the loop.
            if not await asyncio.to_thread(step.needed, ctx):
                logger.info("Skipping step %s (already satisfied)", step.step_id)
                skipped.append(step.step_id)
                continue

            logger.info("Running step %s", step.step_id)
            await step.run(ctx)
        except BootstrapError:
            raise
        except OSError as e:
            raise FilesystemFailure(f"{step.step_id}: {e}") from e
        ran.append(step.step_id)


class Bootstrapper:
    """Drives one bootstrap run and reports it on an EventChannel.

    Idle -> {manager, runtime} branches concurrently -> merge ->
    host packages -> tool deps (best-effort) -> Finished.
    Any fatal failure sends one Error and no Finished.
    """

    def __init__(
        self,
        cfg: BootstrapConfig,
        channel: EventChannel,
        *,
        client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        self.cfg = cfg
        self.channel = channel
        self._client = client

        self.manager_steps: List[Step] = [InstallUvStep(), InstallPythonStep()]
        self.runtime_steps: List[Step] = [InstallNodejsStep()]
        self.package_step: Step = InstallHostDepsStep()
        self.tool_step: Step = InstallToolDepsStep()

    async def start(self) -> BootstrapResult:
        try:
            if self.cfg.debug:
                logger.info("Debug mode: skipping dependency bootstrap")
                await self.channel.send(Finished())
                return BootstrapResult(ok=True)

            if self._client is not None:
                return await self._run(self._client)

            async with httpx.AsyncClient(
                follow_redirects=True,
                timeout=httpx.Timeout(self.cfg.http_timeout_s),
            ) as client:
                return await self._run(client)
        finally:
            await self.channel.close()

    async def _fail(self, message: str, ran: List[str], skipped: List[str]) -> BootstrapResult:
        logger.error("%s", message)
        await self.channel.send(Error(message))
        return BootstrapResult(ok=False, error=message, ran_steps=ran, skipped_steps=skipped)

    async def _run(self, client: httpx.AsyncClient) -> BootstrapResult:
        ran: List[str] = []
        skipped: List[str] = []

        target = self.cfg.target
        try:
            expected_hash(self.cfg.uv_hashes, target)
            fingerprint = self.cfg.lock_fingerprint
        except (BootstrapError, ValueError) as e:
            return await self._fail(str(e), ran, skipped)
        except OSError as e:
            return await self._fail(f"failed to read {self.cfg.lock_path}: {e}", ran, skipped)

        ctx = BootstrapCtx(
            cfg=self.cfg,
            dirs=self.cfg.dirs,
            platform=select_platform(target),
            channel=self.channel,
            client=client,
            fingerprint=fingerprint,
        )
        logger.info("Bootstrap start (target=%s root=%s)", target, ctx.dirs.root)

        manager_result, runtime_result = await asyncio.gather(
            run_steps(ctx, self.manager_steps, ran, skipped),
            run_steps(ctx, self.runtime_steps, ran, skipped),
            return_exceptions=True,
        )

        if isinstance(manager_result, BaseException):
            return await self._fail(f"failed to download uv: {manager_result}", ran, skipped)
        if isinstance(runtime_result, BaseException):
            return await self._fail(f"failed to download nodejs: {runtime_result}", ran, skipped)

        try:
            await run_steps(ctx, [self.package_step], ran, skipped)
        except Exception as e:
            return await self._fail(f"failed to install host dependencies: {e}", ran, skipped)

        try:
            await run_steps(ctx, [self.tool_step], ran, skipped)
        except Exception as e:
            logger.warning("tool deps install failed (ignored): %s", e)

        logger.info("Bootstrap finished (ran=%s skipped=%s)", ",".join(ran), ",".join(skipped))
        await self.channel.send(Finished())
        return BootstrapResult(ok=True, ran_steps=ran, skipped_steps=skipped)


def run_bootstrap(cfg: BootstrapConfig, channel: Optional[EventChannel] = None) -> BootstrapResult:
    """Blocking convenience wrapper around Bootstrapper.start()."""

    async def _main() -> BootstrapResult:
        return await Bootstrapper(cfg, channel or EventChannel(cfg.event_queue_size)).start()

    return asyncio.run(_main())
