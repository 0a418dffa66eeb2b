"""Core typed dataclasses for platforms, toolchains, closures and image roots."""

from __future__ import annotations

import hashlib
import json
from collections.abc import Mapping
from dataclasses import dataclass, field
from pathlib import Path
from typing import Literal

import cbor2

OperatingSystem = Literal["linux"]
Architecture = Literal["amd64", "arm64", "arm", "386", "ppc64le", "s390x", "riscv64"]
EntryKind = Literal["binary", "library", "certificates", "provenance"]


@dataclass(frozen=True, slots=True)
class ElfAbi:
    """Machine/ABI markers an ELF file built for a platform carries."""

    machine: str
    elf_class: int
    little_endian: bool
    hard_float: bool | None = None


@dataclass(frozen=True, slots=True)
class ArchitectureInfo:
    triple: str
    rust_target: str
    abi: ElfAbi
    variants: tuple[str, ...] = ()
    default_variant: str | None = None
    variant_rust_targets: Mapping[str, str] = field(default_factory=dict)


ARCHITECTURES: Mapping[str, ArchitectureInfo] = {
    "amd64": ArchitectureInfo(
        triple="x86_64-linux-gnu",
        rust_target="x86_64-unknown-linux-gnu",
        abi=ElfAbi(machine="EM_X86_64", elf_class=64, little_endian=True),
        variants=("v1", "v2", "v3", "v4"),
    ),
    "arm64": ArchitectureInfo(
        triple="aarch64-linux-gnu",
        rust_target="aarch64-unknown-linux-gnu",
        abi=ElfAbi(machine="EM_AARCH64", elf_class=64, little_endian=True),
        variants=("v8",),
    ),
    "arm": ArchitectureInfo(
        triple="arm-linux-gnueabihf",
        rust_target="armv7-unknown-linux-gnueabihf",
        abi=ElfAbi(machine="EM_ARM", elf_class=32, little_endian=True, hard_float=True),
        variants=("v6", "v7"),
        default_variant="v7",
        variant_rust_targets={"v6": "arm-unknown-linux-gnueabihf"},
    ),
    "386": ArchitectureInfo(
        triple="i686-linux-gnu",
        rust_target="i686-unknown-linux-gnu",
        abi=ElfAbi(machine="EM_386", elf_class=32, little_endian=True),
    ),
    "ppc64le": ArchitectureInfo(
        triple="powerpc64le-linux-gnu",
        rust_target="powerpc64le-unknown-linux-gnu",
        abi=ElfAbi(machine="EM_PPC64", elf_class=64, little_endian=True),
    ),
    "s390x": ArchitectureInfo(
        triple="s390x-linux-gnu",
        rust_target="s390x-unknown-linux-gnu",
        abi=ElfAbi(machine="EM_S390", elf_class=64, little_endian=False),
    ),
    "riscv64": ArchitectureInfo(
        triple="riscv64-linux-gnu",
        rust_target="riscv64gc-unknown-linux-gnu",
        abi=ElfAbi(machine="EM_RISCV", elf_class=64, little_endian=True),
    ),
}


@dataclass(frozen=True, slots=True)
class PlatformDescriptor:
    os: OperatingSystem
    architecture: Architecture
    variant: str | None = None
    cpu_tuning: str | None = None

    @property
    def platform(self) -> str:
        parts = [self.os, self.architecture]
        if self.variant:
            parts.append(self.variant)
        return "/".join(parts)

    @property
    def triple(self) -> str:
        return ARCHITECTURES[self.architecture].triple

    @property
    def rust_target(self) -> str:
        info = ARCHITECTURES[self.architecture]
        return info.variant_rust_targets.get(self.variant or "", info.rust_target)

    @property
    def abi(self) -> ElfAbi:
        return ARCHITECTURES[self.architecture].abi


@dataclass(frozen=True, slots=True)
class ToolchainConfig:
    """Compiler, linker and pkg-config selection for one build invocation."""

    platform: str
    rust_target: str
    c_compiler_path: str
    cxx_compiler_path: str
    linker_flags: tuple[str, ...] = ()
    c_flags: tuple[str, ...] = ()
    cxx_flags: tuple[str, ...] = ()
    target_flags: tuple[str, ...] = ()
    pkg_config_search_root: str = ""
    pkg_config_cross_allowed: bool = True

    def to_env(self) -> dict[str, str]:
        """Render the conventional build environment for the external compiler."""
        linker_var = "CARGO_TARGET_" + self.rust_target.upper().replace("-", "_") + "_LINKER"
        env = {
            "CC": self.c_compiler_path,
            "CXX": self.cxx_compiler_path,
            "CFLAGS": " ".join(self.c_flags),
            "CXXFLAGS": " ".join(self.cxx_flags),
            "LDFLAGS": " ".join(self.linker_flags),
            "RUSTFLAGS": " ".join(self.target_flags),
            "CARGO_BUILD_TARGET": self.rust_target,
            linker_var: self.c_compiler_path,
            "PKG_CONFIG_LIBDIR": self.pkg_config_search_root,
        }
        if self.pkg_config_cross_allowed:
            env["PKG_CONFIG_ALLOW_CROSS"] = "1"
        return dict(sorted(env.items()))

    def to_json(self) -> str:
        payload = {
            "platform": self.platform,
            "rust_target": self.rust_target,
            "c_compiler_path": self.c_compiler_path,
            "cxx_compiler_path": self.cxx_compiler_path,
            "linker_flags": list(self.linker_flags),
            "c_flags": list(self.c_flags),
            "cxx_flags": list(self.cxx_flags),
            "target_flags": list(self.target_flags),
            "pkg_config_search_root": self.pkg_config_search_root,
            "pkg_config_cross_allowed": self.pkg_config_cross_allowed,
        }
        return json.dumps(payload, indent=2, sort_keys=True) + "\n"

    def digest(self) -> str:
        return hashlib.sha256(self.to_json().encode("utf-8")).hexdigest()


@dataclass(frozen=True, slots=True)
class BinaryArtifact:
    path: Path
    declared_target: PlatformDescriptor


@dataclass(frozen=True, slots=True)
class DependencyEdge:
    """One raw "requires at load time" record reported by an introspector."""

    identifier: str
    resolved_path: str | None = None


@dataclass(frozen=True, slots=True)
class LibraryReference:
    identifier: str
    resolved_path: str | None
    requested_by: frozenset[str] = frozenset()


@dataclass(frozen=True, slots=True)
class InstallMapping:
    identifier: str
    source_path: str
    destination_path: str


@dataclass(frozen=True, slots=True)
class ProvenanceArtifact:
    content: bytes
    destination: str
    generator: str
    sha256: str

    @classmethod
    def from_bytes(cls, content: bytes, *, destination: str, generator: str) -> ProvenanceArtifact:
        return cls(
            content=content,
            destination=destination,
            generator=generator,
            sha256=hashlib.sha256(content).hexdigest(),
        )


@dataclass(frozen=True, slots=True)
class BuildContext:
    """Inputs the external SBOM generator needs to describe a build."""

    source_dir: Path
    binary: Path | None = None
    env: Mapping[str, str] = field(default_factory=dict)


@dataclass(frozen=True, slots=True)
class ImageEntry:
    destination: str
    kind: EntryKind
    sha256: str
    source: str | None = None


@dataclass(frozen=True, slots=True)
class ImageRoot:
    root: Path
    entries: Mapping[str, ImageEntry] = field(default_factory=dict)
    schema_version: int = 1

    def destinations(self) -> tuple[str, ...]:
        return tuple(sorted(self.entries))

    def entries_of(self, kind: EntryKind) -> tuple[ImageEntry, ...]:
        return tuple(self.entries[key] for key in sorted(self.entries) if self.entries[key].kind == kind)

    def to_json(self, path: str | Path | None = None) -> str:
        encoded = json.dumps(self._payload(), indent=2, sort_keys=True) + "\n"
        if path is not None:
            Path(path).write_text(encoded, encoding="utf-8")
        return encoded

    def to_cbor(self, path: str | Path | None = None) -> bytes:
        encoded = cbor2.dumps(self._payload(), canonical=True)
        if path is not None:
            Path(path).write_bytes(encoded)
        return encoded

    def _payload(self) -> dict[str, object]:
        return {
            "schema_version": self.schema_version,
            "root": str(self.root),
            "entries": [
                {
                    "destination": entry.destination,
                    "kind": entry.kind,
                    "sha256": entry.sha256,
                    "source": entry.source,
                }
                for entry in (self.entries[key] for key in sorted(self.entries))
            ],
        }
