from __future__ import annotations

import io
import os
import tarfile

import pytest

from conftest import build_tar_gz, build_zip, posix_only
from dive_bootstrap.errors import ExtractionFailure
from dive_bootstrap.lib.archive import extract_tar_gz, extract_zip, unpack_into


@posix_only
def test_tar_top_level_is_flattened(tmp_path):
    archive = tmp_path / "uv-x86_64-unknown-linux-gnu.tar.gz"
    archive.write_bytes(build_tar_gz({"uv": b"uv", "uvx": b"uvx"}, top_level="uv-x86_64-unknown-linux-gnu"))
    dest = tmp_path / "uv"

    unpack_into(archive, dest, extract_tar_gz, top_level="uv-x86_64-unknown-linux-gnu")

    assert sorted(p.name for p in dest.iterdir()) == ["uv", "uvx"]
    assert (dest / "uv").read_bytes() == b"uv"
    assert os.access(dest / "uv", os.X_OK)
    assert not archive.exists()
    assert not (tmp_path / "uv_extract").exists()


def test_zip_without_top_level_lands_in_place(tmp_path):
    archive = tmp_path / "uv.zip"
    archive.write_bytes(build_zip({"uv.exe": b"a", "uvx.exe": b"b"}))
    dest = tmp_path / "uv"

    unpack_into(archive, dest, extract_zip, top_level="uv-x86_64-pc-windows-msvc")

    assert sorted(p.name for p in dest.iterdir()) == ["uv.exe", "uvx.exe"]
    assert not archive.exists()


def test_existing_entries_are_replaced(tmp_path):
    dest = tmp_path / "nodejs"
    (dest / "node_modules").mkdir(parents=True)
    (dest / "node_modules" / "stale.js").write_text("old")
    (dest / "node.exe").write_bytes(b"old")
    (dest / "keep.txt").write_text("keep")

    archive = tmp_path / "node.zip"
    archive.write_bytes(build_zip({"top/": b"", "top/node.exe": b"new", "top/node_modules/npm.js": b"npm"}))

    unpack_into(archive, dest, extract_zip, top_level="top")

    assert (dest / "node.exe").read_bytes() == b"new"
    assert not (dest / "node_modules" / "stale.js").exists()
    assert (dest / "node_modules" / "npm.js").exists()
    assert (dest / "keep.txt").exists()


@posix_only
def test_zip_restores_permission_bits(tmp_path):
    archive = tmp_path / "tool.zip"
    archive.write_bytes(build_zip({"tool": b"#!/bin/sh\n"}, mode=0o755))

    extract_zip(archive, tmp_path / "out")

    assert os.access(tmp_path / "out" / "tool", os.X_OK)


def test_escaping_tar_entry_is_rejected(tmp_path):
    buf = io.BytesIO()
    with tarfile.open(fileobj=buf, mode="w:gz") as tar:
        info = tarfile.TarInfo("../evil")
        info.size = 4
        tar.addfile(info, io.BytesIO(b"evil"))
    archive = tmp_path / "evil.tar.gz"
    archive.write_bytes(buf.getvalue())

    with pytest.raises(ExtractionFailure):
        extract_tar_gz(archive, tmp_path / "out")
    assert not (tmp_path / "evil").exists()


def test_escaping_zip_entry_is_rejected(tmp_path):
    archive = tmp_path / "evil.zip"
    archive.write_bytes(build_zip({"../evil": b"evil"}))

    with pytest.raises(ExtractionFailure):
        extract_zip(archive, tmp_path / "out")
    assert not (tmp_path / "evil").exists()


def test_corrupt_archive_raises_extraction_failure(tmp_path):
    archive = tmp_path / "broken.tar.gz"
    archive.write_bytes(b"not a tarball")

    with pytest.raises(ExtractionFailure):
        unpack_into(archive, tmp_path / "uv", extract_tar_gz)
    assert not (tmp_path / "uv_extract").exists()
