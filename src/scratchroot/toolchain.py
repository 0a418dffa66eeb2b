"""Cross-build toolchain configuration resolution.

A single compiler family is selected for C, C++ and Rust so that
cross-language link-time optimization is possible. Every shared optimization
(optimization level, LTO, CPU tuning) is rendered into all three flag groups
or into none of them.
"""

from __future__ import annotations

import posixpath
import shutil
from dataclasses import dataclass

from scratchroot.config import COMPILER_FAMILIES, ToolchainOptions
from scratchroot.errors import ValidationError
from scratchroot.models import PlatformDescriptor, ToolchainConfig

# Architectures whose compilers take the CPU name through -march rather than -mcpu.
_MARCH_ARCHITECTURES = ("amd64", "386")


@dataclass(frozen=True, slots=True)
class SharedFlag:
    """One optimization rendered for the C/C++ and Rust front ends."""

    name: str
    c_flag: str
    target_flag: str


def resolve_toolchain(
    platform: PlatformDescriptor,
    options: ToolchainOptions | None = None,
) -> ToolchainConfig:
    opts = options or ToolchainOptions()
    if opts.lto and opts.compiler_family != "clang":
        raise ValidationError(
            "Cross-language LTO requires the clang compiler family.",
            hint="Disable LTO or select the clang family.",
            context={"compiler_family": opts.compiler_family, "platform": platform.platform},
        )

    cc, cxx = _lookup_compilers(platform, opts)
    shared = shared_flags(platform, opts)
    sysroot_flags = _sysroot_flags(opts)
    target_arg = (f"--target={platform.triple}",) if opts.compiler_family == "clang" else ()

    c_flags = (*target_arg, *sysroot_flags, *(flag.c_flag for flag in shared), *opts.extra_c_flags)
    cxx_flags = (
        *target_arg,
        *sysroot_flags,
        *(flag.c_flag for flag in shared),
        *opts.extra_cxx_flags,
    )

    linker_flags: list[str] = [*target_arg, *sysroot_flags]
    target_flags: list[str] = [flag.target_flag for flag in shared]
    target_flags.append(f"-Clinker={cc}")
    if opts.lto:
        linker_flags.extend(["-fuse-ld=lld", "-flto=thin"])
        target_flags.append("-Clink-arg=-fuse-ld=lld")
    linker_flags.extend(opts.extra_linker_flags)
    target_flags.extend(opts.extra_target_flags)

    config = ToolchainConfig(
        platform=platform.platform,
        rust_target=platform.rust_target,
        c_compiler_path=cc,
        cxx_compiler_path=cxx,
        linker_flags=tuple(linker_flags),
        c_flags=c_flags,
        cxx_flags=cxx_flags,
        target_flags=tuple(target_flags),
        pkg_config_search_root=pkg_config_search_root(platform, opts),
        # pkg-config refuses non-host results unless cross use is allowed explicitly.
        pkg_config_cross_allowed=True,
    )
    check_flag_consistency(config, platform, opts)
    return config


def shared_flags(platform: PlatformDescriptor, options: ToolchainOptions) -> tuple[SharedFlag, ...]:
    flags = [
        SharedFlag(
            name="opt_level",
            c_flag=f"-O{options.opt_level}",
            target_flag=f"-Copt-level={options.opt_level}",
        )
    ]
    if options.lto:
        flags.append(SharedFlag(name="lto", c_flag="-flto=thin", target_flag="-Clinker-plugin-lto"))
    if platform.cpu_tuning:
        switch = "-march" if platform.architecture in _MARCH_ARCHITECTURES else "-mcpu"
        flags.append(
            SharedFlag(
                name="cpu_tuning",
                c_flag=f"{switch}={platform.cpu_tuning}",
                target_flag=f"-Ctarget-cpu={platform.cpu_tuning}",
            )
        )
    return tuple(flags)


def check_flag_consistency(
    config: ToolchainConfig,
    platform: PlatformDescriptor,
    options: ToolchainOptions,
) -> None:
    """Reject configs where a shared optimization reaches only some flag groups."""
    for flag in shared_flags(platform, options):
        present = {
            "c_flags": flag.c_flag in config.c_flags,
            "cxx_flags": flag.c_flag in config.cxx_flags,
            "target_flags": flag.target_flag in config.target_flags,
        }
        if not all(present.values()):
            missing = ", ".join(group for group, ok in present.items() if not ok)
            raise ValidationError(
                "Shared optimization flag is missing from some flag groups.",
                hint="Tuning and LTO flags must be applied to C, C++ and Rust together.",
                context={"flag": flag.name, "missing": missing, "platform": config.platform},
            )


def pkg_config_search_root(platform: PlatformDescriptor, options: ToolchainOptions) -> str:
    return posixpath.join(options.sysroot, "usr", "lib", platform.triple, "pkgconfig")


def _sysroot_flags(options: ToolchainOptions) -> tuple[str, ...]:
    if options.sysroot in ("", "/"):
        return ()
    return (f"--sysroot={options.sysroot}",)


def _lookup_compilers(platform: PlatformDescriptor, options: ToolchainOptions) -> tuple[str, str]:
    c_name, cxx_name = COMPILER_FAMILIES[options.compiler_family]
    return (
        _which(_candidates(platform, options, c_name), options.search_path),
        _which(_candidates(platform, options, cxx_name), options.search_path),
    )


def _candidates(platform: PlatformDescriptor, options: ToolchainOptions, name: str) -> tuple[str, ...]:
    # clang cross-compiles from the bare driver with --target; gcc needs the prefixed one.
    if options.compiler_family == "clang":
        return (f"{platform.triple}-{name}", name)
    return (f"{platform.triple}-{name}",)


def _which(candidates: tuple[str, ...], search_path: str | None) -> str:
    for candidate in candidates:
        found = shutil.which(candidate, path=search_path)
        if found is not None:
            return found
    return candidates[-1]
