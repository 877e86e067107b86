from __future__ import annotations

import hashlib
import io
import stat
import sys
import tarfile
import zipfile
from pathlib import Path
from types import SimpleNamespace
from typing import Dict, List, Optional

import httpx
import pytest

from dive_bootstrap.config import DEBUG_ENV_VAR, BootstrapConfig

LINUX_TARGET = "x86_64-unknown-linux-gnu"
WINDOWS_TARGET = "x86_64-pc-windows-msvc"

FAKE_UV = """#!/bin/sh
case "$1" in
  -V)
    echo "uv 0.8.12 (fake)"
    ;;
  python)
    dest="$5/cpython-$3-linux-x86_64-gnu"
    mkdir -p "$dest/bin"
    printf '#!/bin/sh\\n' > "$dest/bin/python"
    chmod +x "$dest/bin/python"
    cp "$dest/bin/python" "$dest/bin/python3"
    echo "Installed Python $3"
    ;;
  export)
    echo "anyio==4.4.0" > "$3"
    echo "Resolved 3 packages" >&2
    ;;
  pip)
    mkdir -p "$6"
    echo "PYTHONPATH=${PYTHONPATH-unset}"
    echo "Installed 3 packages"
    ;;
esac
"""

FAKE_NPM = """#!/bin/sh
mkdir -p node_modules
echo "added 1 package"
"""

posix_only = pytest.mark.skipif(sys.platform == "win32", reason="fake installers are POSIX shell scripts")


@pytest.fixture(autouse=True)
def _no_debug_env(monkeypatch):
    monkeypatch.delenv(DEBUG_ENV_VAR, raising=False)


def sha256_hex(data: bytes) -> str:
    return hashlib.sha256(data).hexdigest()


def write_script(path: Path, body: str) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(body, encoding="utf-8")
    path.chmod(path.stat().st_mode | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH)
    return path


def build_tar_gz(files: Dict[str, bytes], *, top_level: Optional[str] = None, mode: int = 0o755) -> bytes:
    buf = io.BytesIO()
    with tarfile.open(fileobj=buf, mode="w:gz") as tar:
        if top_level:
            info = tarfile.TarInfo(top_level)
            info.type = tarfile.DIRTYPE
            info.mode = 0o755
            tar.addfile(info)
        for name, data in files.items():
            info = tarfile.TarInfo(f"{top_level}/{name}" if top_level else name)
            info.size = len(data)
            info.mode = mode
            tar.addfile(info, io.BytesIO(data))
    return buf.getvalue()


def build_zip(files: Dict[str, bytes], *, mode: int = 0o755) -> bytes:
    buf = io.BytesIO()
    with zipfile.ZipFile(buf, "w") as zf:
        for name, data in files.items():
            info = zipfile.ZipInfo(name)
            if name.endswith("/"):
                info.external_attr = (stat.S_IFDIR | 0o755) << 16
            else:
                info.external_attr = (stat.S_IFREG | mode) << 16
            zf.writestr(info, data)
    return buf.getvalue()


class ChunkStream(httpx.AsyncByteStream):
    def __init__(self, chunks: List[bytes]) -> None:
        self._chunks = chunks

    async def __aiter__(self):
        for chunk in self._chunks:
            yield chunk


class FakeServer:
    """Routes exact URLs to canned bodies and records every request."""

    def __init__(self) -> None:
        self.routes: Dict[str, SimpleNamespace] = {}
        self.requests: List[str] = []

    def add(
        self,
        url: str,
        body: bytes = b"",
        *,
        status: int = 200,
        chunks: int = 3,
        content_length: bool = True,
    ) -> None:
        self.routes[url] = SimpleNamespace(body=body, status=status, chunks=chunks, content_length=content_length)

    def handler(self, request: httpx.Request) -> httpx.Response:
        url = str(request.url)
        self.requests.append(url)
        route = self.routes.get(url)
        if route is None:
            return httpx.Response(404)
        if route.status != 200:
            return httpx.Response(route.status)

        size = max(1, -(-len(route.body) // route.chunks))
        parts = [route.body[i : i + size] for i in range(0, len(route.body), size)]
        headers = {"Content-Length": str(len(route.body))} if route.content_length else {}
        return httpx.Response(200, headers=headers, stream=ChunkStream(parts))

    def client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(transport=httpx.MockTransport(self.handler), follow_redirects=True)


@pytest.fixture
def fake_server() -> FakeServer:
    return FakeServer()


@pytest.fixture
def host_env(tmp_path):
    """A data root, a host dir with uv.lock, a fake npm and a fake uv release."""

    host = tmp_path / "host"
    host.mkdir()
    (host / "uv.lock").write_text('version = 1\n[[package]]\nname = "anyio"\n', encoding="utf-8")

    npm = write_script(tmp_path / "tools" / "npm", FAKE_NPM)
    archive = build_tar_gz(
        {"uv": FAKE_UV.encode(), "uvx": FAKE_UV.encode()},
        top_level=f"uv-{LINUX_TARGET}",
    )

    return SimpleNamespace(
        root=tmp_path,
        data=tmp_path / "data",
        host=host,
        npm=npm,
        archive=archive,
        digest=sha256_hex(archive),
        lock_md5=hashlib.md5((host / "uv.lock").read_bytes()).hexdigest(),
    )


@pytest.fixture
def make_config(host_env):
    def _make(**overrides) -> BootstrapConfig:
        raw = {
            "data_root": str(host_env.data),
            "host_dir": str(host_env.host),
            "target": LINUX_TARGET,
            "uv": {"sha256": {LINUX_TARGET: host_env.digest}},
            "tools": {"npm": str(host_env.npm)},
        }
        raw.update(overrides)
        return BootstrapConfig(raw=raw)

    return _make


def uv_url(target: str, ext: str) -> str:
    return f"https://github.com/astral-sh/uv/releases/download/0.8.12/uv-{target}.{ext}"


NODEJS_URL = "https://nodejs.org/dist/v22.17.0/node-v22.17.0-win-x64.zip"
