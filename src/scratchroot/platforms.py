"""Target platform parsing and normalization."""

from __future__ import annotations

import platform as host
from typing import cast

from scratchroot.errors import InvalidPlatformSpecError
from scratchroot.models import ARCHITECTURES, Architecture, PlatformDescriptor

SUPPORTED_OS = ("linux",)

# alias -> (canonical architecture, implied variant)
ARCH_ALIASES: dict[str, tuple[str, str | None]] = {
    "x86_64": ("amd64", None),
    "x86-64": ("amd64", None),
    "aarch64": ("arm64", None),
    "armhf": ("arm", "v7"),
    "armv7": ("arm", "v7"),
    "armv7l": ("arm", "v7"),
    "armv6l": ("arm", "v6"),
    "ppc64el": ("ppc64le", None),
    "i386": ("386", None),
    "i686": ("386", None),
    "x86": ("386", None),
}


def parse_platform(spec: str, *, cpu_tuning: str | None = None) -> PlatformDescriptor:
    """Parse ``os/arch[/variant]`` into a normalized descriptor.

    The CPU tuning value is opaque and passed through verbatim; an invalid CPU
    name surfaces later as a compiler failure.
    """
    raw = spec.strip().lower()
    parts = raw.split("/")
    if len(parts) not in (2, 3) or not all(parts):
        raise InvalidPlatformSpecError(
            "Platform must have the form os/arch[/variant].",
            hint="Use a Docker-style platform such as linux/amd64 or linux/arm/v7.",
            context={"platform": spec},
        )

    os_name, arch_name = parts[0], parts[1]
    variant = parts[2] if len(parts) == 3 else None

    if os_name not in SUPPORTED_OS:
        raise InvalidPlatformSpecError(
            "Unsupported target operating system.",
            hint=f"Supported: {', '.join(SUPPORTED_OS)}.",
            context={"platform": spec, "os": os_name},
        )

    architecture, implied_variant = ARCH_ALIASES.get(arch_name, (arch_name, None))
    info = ARCHITECTURES.get(architecture)
    if info is None:
        raise InvalidPlatformSpecError(
            "Unsupported target architecture.",
            hint=f"Supported: {', '.join(sorted(ARCHITECTURES))}.",
            context={"platform": spec, "architecture": arch_name},
        )

    if variant is not None and implied_variant is not None and variant != implied_variant:
        raise InvalidPlatformSpecError(
            "Architecture alias conflicts with the explicit variant.",
            context={"platform": spec, "architecture": arch_name, "variant": variant},
        )
    variant = variant or implied_variant or info.default_variant
    if variant is not None and variant not in info.variants:
        allowed = ", ".join(info.variants) or "none"
        raise InvalidPlatformSpecError(
            "Unsupported variant for target architecture.",
            hint=f"Allowed variants for {architecture}: {allowed}.",
            context={"platform": spec, "architecture": architecture, "variant": variant},
        )

    tuning = cpu_tuning.strip() if cpu_tuning is not None else None
    return PlatformDescriptor(
        os="linux",
        architecture=cast(Architecture, architecture),
        variant=variant,
        cpu_tuning=tuning or None,
    )


def host_platform(*, cpu_tuning: str | None = None) -> PlatformDescriptor:
    """Return the descriptor of the machine running this process."""
    return parse_platform(f"{host.system()}/{host.machine()}", cpu_tuning=cpu_tuning)
