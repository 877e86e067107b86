from __future__ import annotations

import logging
import shutil
import tarfile
import zipfile
from pathlib import Path, PurePosixPath
from typing import Callable, Optional

from ..errors import ExtractionFailure

logger = logging.getLogger(__name__)

Unpacker = Callable[[Path, Path], None]


def _safe_target(dst: Path, name: str) -> Path:
    rel = PurePosixPath(name.replace("\\", "/"))
    if rel.is_absolute() or ".." in rel.parts:
        raise ExtractionFailure(f"archive entry escapes destination: {name}")
    return dst.joinpath(*rel.parts)


def extract_tar_gz(src: Path, dst: Path) -> None:
    dst.mkdir(parents=True, exist_ok=True)
    try:
        with tarfile.open(src, "r:gz") as tar:
            members = tar.getmembers()
            for member in members:
                _safe_target(dst, member.name)
            # Directories first so files always have a parent.
            members.sort(key=lambda m: not m.isdir())
            tar.extractall(dst, members=members, filter="data")
    except (tarfile.TarError, EOFError) as e:
        raise ExtractionFailure(f"failed to extract {src.name}: {e}") from e


def extract_zip(src: Path, dst: Path) -> None:
    dst.mkdir(parents=True, exist_ok=True)
    try:
        with zipfile.ZipFile(src) as zf:
            for info in zf.infolist():
                out = _safe_target(dst, info.filename)
                if info.is_dir():
                    out.mkdir(parents=True, exist_ok=True)
                    continue

                out.parent.mkdir(parents=True, exist_ok=True)
                with zf.open(info) as ifh, out.open("wb") as ofh:
                    shutil.copyfileobj(ifh, ofh)

                # Zips built on Unix carry permission bits in the high word.
                mode = (info.external_attr >> 16) & 0o777
                if mode:
                    out.chmod(mode)
    except zipfile.BadZipFile as e:
        raise ExtractionFailure(f"failed to extract {src.name}: {e}") from e


def _replace(src: Path, dst: Path) -> None:
    if dst.is_dir() and not dst.is_symlink():
        shutil.rmtree(dst)
    elif dst.exists() or dst.is_symlink():
        dst.unlink()
    shutil.move(str(src), str(dst))


def unpack_into(
    archive: Path,
    dest: Path,
    unpack: Unpacker,
    *,
    top_level: Optional[str] = None,
) -> None:
    """Unpack archive and flatten it into dest, then delete the archive.

    Extraction happens in a sibling staging directory. When the archive
    wraps its content in top_level/, that directory's children become
    dest's children. Existing entries with the same names are replaced.
    Blocking; run it in a worker thread.
    """

    staging = dest.parent / f"{dest.name}_extract"
    if staging.exists():
        shutil.rmtree(staging)

    try:
        unpack(archive, staging)

        source = staging
        if top_level and (staging / top_level).is_dir():
            source = staging / top_level

        dest.mkdir(parents=True, exist_ok=True)
        for child in sorted(source.iterdir()):
            logger.debug("move %s -> %s", child, dest / child.name)
            _replace(child, dest / child.name)
    except OSError as e:
        raise ExtractionFailure(f"failed to install {archive.name} into {dest}: {e}") from e
    finally:
        shutil.rmtree(staging, ignore_errors=True)

    archive.unlink(missing_ok=True)
    logger.info("Unpacked %s into %s", archive.name, dest)
