from __future__ import annotations

import hashlib
import logging
from pathlib import Path
from typing import Optional

logger = logging.getLogger(__name__)


def compute_fingerprint(lock_path: str | Path) -> str:
    """MD5 hex digest of the lock file bytes ("" when the file is missing)."""

    p = Path(lock_path)
    if not p.exists():
        logger.warning("Lock file %s not found; dependency fingerprint is empty", p)
        return ""
    return hashlib.md5(p.read_bytes()).hexdigest()


def load_fingerprint(path: str | Path) -> Optional[bytes]:
    p = Path(path)
    if not p.exists():
        return None
    return p.read_bytes()


def save_fingerprint(path: str | Path, fingerprint: str) -> None:
    p = Path(path)
    p.parent.mkdir(parents=True, exist_ok=True)
    p.write_bytes(fingerprint.encode("utf-8"))


def fingerprint_matches(path: str | Path, fingerprint: str) -> bool:
    stored = load_fingerprint(path)
    if stored is None:
        return False
    return stored == fingerprint.encode("utf-8")
