from __future__ import annotations

import logging
import platform
from typing import Optional

logger = logging.getLogger(__name__)


def normalize_arch(machine: str) -> str:
    m = machine.lower()
    return {
        "x86_64": "x86_64",
        "amd64": "x86_64",
        "x64": "x86_64",
        "aarch64": "aarch64",
        "arm64": "aarch64",
        "armv7l": "armv7",
        "armv7": "armv7",
        "armv6l": "arm",
        "i386": "i686",
        "i686": "i686",
        "x86": "i686",
        "ppc64": "powerpc64",
        "ppc64le": "powerpc64le",
        "riscv64": "riscv64gc",
        "s390x": "s390x",
    }.get(m, m)


def _detect_libc() -> str:
    name, _version = platform.libc_ver()
    return "gnu" if name == "glibc" else "musl"


def detect_target(
    system: Optional[str] = None,
    machine: Optional[str] = None,
    libc: Optional[str] = None,
) -> str:
    """Build a target triple (e.g. x86_64-unknown-linux-gnu) for the host.

    Explicit arguments win over detection so callers (and tests) can ask
    for a triple other than the running host's.
    """

    sys_name = (system or platform.system()).lower()
    arch = normalize_arch(machine or platform.machine())

    if sys_name == "darwin":
        target = f"{arch}-apple-darwin"
    elif sys_name == "windows":
        target = f"{arch}-pc-windows-msvc"
    elif sys_name == "linux":
        flavour = libc or _detect_libc()
        if arch in {"armv7", "arm"}:
            target = f"{arch}-unknown-linux-{flavour}eabihf"
        else:
            target = f"{arch}-unknown-linux-{flavour}"
    else:
        target = f"{arch}-unknown-{sys_name}"

    logger.debug("Detected target %s (system=%s machine=%s)", target, sys_name, arch)
    return target
