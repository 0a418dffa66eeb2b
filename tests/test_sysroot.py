from pathlib import Path

import pytest

from scratchroot.errors import ValidationError
from scratchroot.sysroot import resolve_in_sysroot


@pytest.fixture
def sysroot(tmp_path: Path) -> Path:
    root = tmp_path / "sysroot"
    libdir = root / "lib/aarch64-linux-gnu"
    libdir.mkdir(parents=True)
    (libdir / "ld-linux-aarch64.so.1").write_bytes(b"loader")
    (libdir / "libc.so.6").write_bytes(b"libc")
    return root


def test_absolute_link_is_rerooted(sysroot: Path) -> None:
    (sysroot / "lib/ld-linux-aarch64.so.1").symlink_to("/lib/aarch64-linux-gnu/ld-linux-aarch64.so.1")
    resolved = resolve_in_sysroot(sysroot / "lib/ld-linux-aarch64.so.1", sysroot)
    assert resolved == sysroot / "lib/aarch64-linux-gnu/ld-linux-aarch64.so.1"
    assert resolved.read_bytes() == b"loader"


def test_relative_link_and_link_chain(sysroot: Path) -> None:
    (sysroot / "usr/lib").mkdir(parents=True)
    (sysroot / "usr/lib/libc.so").symlink_to("../../lib/aarch64-linux-gnu/libc.so.6")
    (sysroot / "lib64").symlink_to("/usr/lib")
    assert resolve_in_sysroot(sysroot / "lib64/libc.so", sysroot) == sysroot / "lib/aarch64-linux-gnu/libc.so.6"


def test_dotdot_does_not_escape_the_sysroot(sysroot: Path) -> None:
    (sysroot / "lib/escape.so").symlink_to("../../../../../lib/aarch64-linux-gnu/libc.so.6")
    assert resolve_in_sysroot(sysroot / "lib/escape.so", sysroot) == sysroot / "lib/aarch64-linux-gnu/libc.so.6"


def test_missing_target_resolves_to_rerooted_path(sysroot: Path) -> None:
    (sysroot / "lib/dangling.so").symlink_to("/opt/gone/libgone.so")
    resolved = resolve_in_sysroot(sysroot / "lib/dangling.so", sysroot)
    assert resolved == sysroot / "opt/gone/libgone.so"
    assert not resolved.exists()


def test_link_loop_is_rejected(sysroot: Path) -> None:
    (sysroot / "lib/a.so").symlink_to("b.so")
    (sysroot / "lib/b.so").symlink_to("/lib/a.so")
    with pytest.raises(ValidationError) as excinfo:
        resolve_in_sysroot(sysroot / "lib/a.so", sysroot)
    assert excinfo.value.context["path"] == str(sysroot / "lib/a.so")


def test_paths_outside_the_sysroot_use_host_resolution(tmp_path: Path, sysroot: Path) -> None:
    outside = tmp_path / "build/app"
    outside.parent.mkdir()
    outside.write_bytes(b"app")
    (tmp_path / "current").symlink_to(outside)

    assert resolve_in_sysroot(tmp_path / "current", sysroot) == outside
    assert resolve_in_sysroot(tmp_path / "current") == outside
