"""Configuration for toolchain resolution and image layout."""

from __future__ import annotations

import os
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Literal

from scratchroot.errors import ValidationError

CompilerFamily = Literal["clang", "gcc"]
OptLevel = Literal["0", "1", "2", "3", "s", "z"]

COMPILER_FAMILIES: dict[str, tuple[str, str]] = {
    "clang": ("clang", "clang++"),
    "gcc": ("gcc", "g++"),
}

_TRUE = ("1", "true", "yes", "on")
_FALSE = ("0", "false", "no", "off")


@dataclass(frozen=True, slots=True)
class ToolchainOptions:
    compiler_family: CompilerFamily = "clang"
    lto: bool = True
    opt_level: OptLevel = "3"
    sysroot: str = "/"
    search_path: str | None = None
    extra_c_flags: tuple[str, ...] = ()
    extra_cxx_flags: tuple[str, ...] = ()
    extra_target_flags: tuple[str, ...] = ()
    extra_linker_flags: tuple[str, ...] = ()


@dataclass(frozen=True, slots=True)
class ImageLayout:
    binary_dir: str = "/sbin"
    certificates_path: str = "/etc/ssl/certs/ca-certificates.crt"


DEFAULT_PROVENANCE_PATH = "/sbom.spdx.json"


def toolchain_options_from_env(environ: Mapping[str, str] | None = None) -> ToolchainOptions:
    env = os.environ if environ is None else environ
    family = env.get("SCRATCHROOT_COMPILER", "clang")
    if family not in COMPILER_FAMILIES:
        raise ValidationError(
            "Unsupported compiler family.",
            hint=f"Set SCRATCHROOT_COMPILER to one of: {', '.join(COMPILER_FAMILIES)}.",
            context={"SCRATCHROOT_COMPILER": family},
        )
    opt_level = env.get("SCRATCHROOT_OPT_LEVEL", "3")
    if opt_level not in ("0", "1", "2", "3", "s", "z"):
        raise ValidationError(
            "Unsupported optimization level.",
            hint="Use one of 0, 1, 2, 3, s, z.",
            context={"SCRATCHROOT_OPT_LEVEL": opt_level},
        )
    return ToolchainOptions(
        compiler_family=family,  # type: ignore[arg-type]
        lto=_parse_bool(env.get("SCRATCHROOT_LTO", "1"), name="SCRATCHROOT_LTO"),
        opt_level=opt_level,  # type: ignore[arg-type]
        sysroot=env.get("SCRATCHROOT_SYSROOT", "/") or "/",
    )


def cpu_tuning_from_env(environ: Mapping[str, str] | None = None) -> str | None:
    env = os.environ if environ is None else environ
    value = env.get("TARGET_CPU", "").strip()
    return value or None


def _parse_bool(raw: str, *, name: str) -> bool:
    value = raw.strip().lower()
    if value in _TRUE:
        return True
    if value in _FALSE:
        return False
    raise ValidationError(
        f"Invalid boolean value for {name}.",
        hint="Use 1/0, true/false, yes/no or on/off.",
        context={name: raw},
    )
