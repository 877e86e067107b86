from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import List

from .command import run_cmd

logger = logging.getLogger(__name__)

_LIBRARY_SUFFIXES = {".dylib", ".so"}


def signable_files(root: str | Path) -> List[Path]:
    """Executables and shared libraries below root (symlinks skipped)."""

    out: List[Path] = []
    for p in sorted(Path(root).rglob("*")):
        if p.is_symlink() or not p.is_file():
            continue
        if p.suffix in _LIBRARY_SUFFIXES or os.access(p, os.X_OK):
            out.append(p)
    return out


def sign_directory(root: str | Path) -> int:
    """Ad-hoc sign everything loadable under root so Gatekeeper lets it run."""

    files = signable_files(root)
    for p in files:
        run_cmd(["codesign", "--force", "--sign", "-", str(p)])
    logger.info("Signed %d files under %s", len(files), root)
    return len(files)
