from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Mapping, Optional

import yaml

from . import pins
from .lib.target import detect_target
from .state_store import compute_fingerprint

DEFAULT_DATA_ROOT = "~/.dive"
DEBUG_ENV_VAR = "DIVE_BOOTSTRAP_DEBUG"


@dataclass(frozen=True)
class InstallDirs:
    """Fixed layout under the private data root. Owned by the bootstrap."""

    root: Path

    @property
    def bin(self) -> Path:
        return self.root / "bin"

    @property
    def manager(self) -> Path:
        return self.bin / "uv"

    @property
    def interpreter(self) -> Path:
        return self.bin / "python"

    @property
    def runtime(self) -> Path:
        return self.bin / "nodejs"

    @property
    def cache(self) -> Path:
        return self.root / "host_cache"

    @property
    def deps(self) -> Path:
        return self.cache / "deps"

    @property
    def requirements_file(self) -> Path:
        return self.cache / "requirements.txt"

    @property
    def fingerprint_file(self) -> Path:
        return self.cache / "uv.lock.md5"

    @property
    def scripts(self) -> Path:
        return self.root / "scripts"

    @property
    def log(self) -> Path:
        return self.root / "log"


@dataclass(frozen=True)
class BootstrapConfig:
    raw: Dict[str, Any] = field(default_factory=dict)

    def _section(self, name: str) -> Dict[str, Any]:
        section = self.raw.get(name) or {}
        if not isinstance(section, dict):
            raise ValueError(f"config section {name!r} must be a mapping")
        return section

    @property
    def data_root(self) -> Path:
        return Path(str(self.raw.get("data_root") or DEFAULT_DATA_ROOT)).expanduser()

    @property
    def dirs(self) -> InstallDirs:
        return InstallDirs(root=self.data_root)

    @property
    def host_dir(self) -> Path:
        return Path(str(self.raw.get("host_dir") or (Path.cwd() / "mcp-host"))).expanduser()

    @property
    def lock_path(self) -> Path:
        return self.host_dir / "uv.lock"

    @property
    def lock_fingerprint(self) -> str:
        pinned = self.raw.get("lock_fingerprint")
        if pinned:
            return str(pinned)
        return compute_fingerprint(self.lock_path)

    @property
    def target(self) -> str:
        return str(self.raw.get("target") or detect_target())

    @property
    def debug(self) -> bool:
        if bool(self.raw.get("debug", False)):
            return True
        return os.environ.get(DEBUG_ENV_VAR, "").strip().lower() in {"1", "true", "yes"}

    @property
    def uv_version(self) -> str:
        return str(self._section("uv").get("version") or pins.UV_VERSION)

    @property
    def uv_url_template(self) -> str:
        return str(self._section("uv").get("url_template") or pins.UV_URL_TEMPLATE)

    @property
    def uv_hashes(self) -> Mapping[str, str]:
        hashes = self._section("uv").get("sha256")
        if hashes is None:
            return pins.UV_HASHES
        if not isinstance(hashes, dict):
            raise ValueError("uv.sha256 must map target -> digest")
        return {str(k): str(v) for k, v in hashes.items()}

    @property
    def python_version(self) -> str:
        return str(self._section("python").get("version") or pins.PYTHON_VERSION)

    @property
    def nodejs_version(self) -> str:
        return str(self._section("nodejs").get("version") or pins.NODEJS_VERSION)

    @property
    def nodejs_url_template(self) -> str:
        return str(self._section("nodejs").get("url_template") or pins.NODEJS_URL_TEMPLATE)

    @property
    def nodejs_sha256(self) -> Optional[str]:
        value = self._section("nodejs").get("sha256")
        return str(value) if value else None

    @property
    def npm_command(self) -> Optional[str]:
        value = self._section("tools").get("npm")
        return str(value) if value else None

    @property
    def http_timeout_s(self) -> float:
        return float(self._section("http").get("timeout_s") or 60.0)

    @property
    def event_queue_size(self) -> int:
        return int(self._section("events").get("max_queue") or 1024)

    def uv_url(self, target: str, ext: str) -> str:
        return self.uv_url_template.format(version=self.uv_version, target=target, ext=ext)

    def nodejs_url(self) -> str:
        return self.nodejs_url_template.format(version=self.nodejs_version)

    def with_overrides(self, **values: Any) -> "BootstrapConfig":
        """Return a copy with top-level keys replaced (None values are ignored)."""

        raw = dict(self.raw)
        for key, value in values.items():
            if value is not None:
                raw[key] = value
        return BootstrapConfig(raw=raw)


def load_config(path: Optional[str]) -> BootstrapConfig:
    if path is None:
        return BootstrapConfig(raw={})

    p = Path(path)
    if not p.exists():
        raise FileNotFoundError(path)

    if p.suffix.lower() not in {".yaml", ".yml"}:
        raise ValueError("bootstrap config must be YAML")

    raw = yaml.safe_load(p.read_text(encoding="utf-8")) or {}
    if not isinstance(raw, dict):
        raise ValueError("bootstrap config must contain a mapping/object")

    return BootstrapConfig(raw=raw)
