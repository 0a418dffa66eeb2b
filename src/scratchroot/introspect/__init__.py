"""Library dependency introspectors."""

from __future__ import annotations

from pathlib import Path

from scratchroot.errors import ValidationError

from .base import Introspector, StaticIntrospector
from .elf import ElfIntrospector, read_dynamic_info
from .ldd import LddIntrospector, parse_ldd_output


def get_introspector(
    name: str,
    *,
    sysroot: str | Path = "/",
    triple: str | None = None,
    library_path: tuple[str, ...] = (),
) -> Introspector:
    if name == "elf":
        return ElfIntrospector(sysroot=Path(sysroot), triple=triple, library_path=library_path)
    if name == "ldd":
        return LddIntrospector()
    raise ValidationError("Unsupported introspector.", context={"introspector": name})


__all__ = [
    "ElfIntrospector",
    "Introspector",
    "LddIntrospector",
    "StaticIntrospector",
    "get_introspector",
    "parse_ldd_output",
    "read_dynamic_info",
]
