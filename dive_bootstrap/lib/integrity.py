from __future__ import annotations

import hashlib
import logging
from pathlib import Path

logger = logging.getLogger(__name__)

CHUNK_SIZE = 64 * 1024


def sha256_file(path: str | Path, *, chunk_size: int = CHUNK_SIZE) -> str:
    h = hashlib.sha256()
    with Path(path).open("rb") as fh:
        for chunk in iter(lambda: fh.read(chunk_size), b""):
            h.update(chunk)
    return h.hexdigest()


def verify_sha256(path: str | Path, expected: str) -> bool:
    """Return True when the file digest equals expected (case-insensitive).

    A mismatch is a normal outcome, not an exception.
    """

    actual = sha256_file(path)
    ok = actual.lower() == expected.strip().lower()
    if not ok:
        logger.warning("sha256 mismatch for %s: expected %s, got %s", path, expected, actual)
    return ok
