from __future__ import annotations

import pytest

from conftest import posix_only, write_script
from dive_bootstrap.errors import SubprocessFailure
from dive_bootstrap.lib.codesign import sign_directory, signable_files


@posix_only
def test_signable_files_picks_executables_and_libraries(tmp_path):
    root = tmp_path / "python"
    (root / "lib").mkdir(parents=True)
    exe = write_script(root / "bin" / "python3", "#!/bin/sh\n")
    (root / "lib" / "libpython3.12.dylib").write_bytes(b"")
    (root / "lib" / "_ssl.cpython-312-darwin.so").write_bytes(b"")
    (root / "lib" / "os.py").write_text("")
    (root / "bin" / "python").symlink_to(exe)

    assert signable_files(root) == [
        root / "bin" / "python3",
        root / "lib" / "_ssl.cpython-312-darwin.so",
        root / "lib" / "libpython3.12.dylib",
    ]


def test_empty_tree_signs_nothing(tmp_path):
    assert sign_directory(tmp_path) == 0


@posix_only
def test_sign_directory_invokes_codesign_per_file(tmp_path, monkeypatch):
    log = tmp_path / "calls.log"
    write_script(tmp_path / "fakebin" / "codesign", f'#!/bin/sh\necho "$*" >> "{log}"\n')
    monkeypatch.setenv("PATH", f"{tmp_path / 'fakebin'}:/usr/bin:/bin")
    root = tmp_path / "deps"
    root.mkdir()
    (root / "a.so").write_bytes(b"")

    assert sign_directory(root) == 1
    assert log.read_text().split("\n")[0] == f"--force --sign - {root / 'a.so'}"


@posix_only
def test_codesign_failure_raises(tmp_path, monkeypatch):
    write_script(tmp_path / "fakebin" / "codesign", "#!/bin/sh\necho 'no identity' >&2\nexit 1\n")
    monkeypatch.setenv("PATH", f"{tmp_path / 'fakebin'}:/usr/bin:/bin")
    (tmp_path / "deps").mkdir()
    (tmp_path / "deps" / "a.dylib").write_bytes(b"")

    with pytest.raises(SubprocessFailure, match="no identity"):
        sign_directory(tmp_path / "deps")
