"""Symlink resolution confined to a target sysroot.

Sysroots copied from a distribution carry absolute links such as
``/lib64/ld-linux-x86-64.so.2 -> /lib/x86_64-linux-gnu/ld-linux-x86-64.so.2``.
Followed by the host, those land on the build machine's own files. Here every
absolute link target is re-rooted under the sysroot and ``..`` never climbs
above it.
"""

from __future__ import annotations

import os
import posixpath
from pathlib import Path

from scratchroot.errors import ValidationError

# Same bound as the kernel's symlink follow limit.
MAX_SYMLINKS = 40


def resolve_in_sysroot(path: str | Path, sysroot: str | Path = "/") -> Path:
    """Return the real file ``path`` names when the sysroot is taken as ``/``.

    Paths outside ``sysroot`` (and everything when ``sysroot`` is ``/``) are
    resolved with the host's own ``realpath``.
    """
    base = os.path.abspath(sysroot)
    target = os.path.abspath(path)
    if base == "/" or (target != base and not target.startswith(base + "/")):
        return Path(os.path.realpath(target))

    root = os.path.realpath(base)
    pending = _components(posixpath.relpath(target, base))
    pending.reverse()
    resolved: list[str] = []
    followed = 0
    while pending:
        part = pending.pop()
        if part == "..":
            if resolved:
                resolved.pop()
            continue
        current = posixpath.join(root, *resolved, part)
        if not os.path.islink(current):
            resolved.append(part)
            continue
        followed += 1
        if followed > MAX_SYMLINKS:
            raise ValidationError(
                "Too many levels of symbolic links inside the sysroot.",
                context={"path": str(path), "sysroot": str(sysroot)},
            )
        link = os.readlink(current)
        if link.startswith("/"):
            resolved = []
        pending.extend(reversed(_components(link)))
    return Path(root, *resolved)


def _components(value: str) -> list[str]:
    return [part for part in value.split("/") if part not in ("", ".")]
