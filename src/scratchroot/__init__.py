"""Public package entrypoint for the scratch image root assembler."""

from .closure import ClosureGraph, assemble_closure, destination_for, discover, plan_install
from .config import ImageLayout, ToolchainOptions
from .errors import (
    AmbiguousInstallPathError,
    BackendExecutionError,
    ErrorCode,
    InvalidPlatformSpecError,
    PathCollisionError,
    ProvenanceGenerationError,
    ScratchrootError,
    TargetMismatchError,
    UnresolvedDependencyError,
    ValidationError,
)
from .materialize import materialize
from .models import (
    BinaryArtifact,
    BuildContext,
    DependencyEdge,
    ElfAbi,
    ImageEntry,
    ImageRoot,
    InstallMapping,
    LibraryReference,
    PlatformDescriptor,
    ProvenanceArtifact,
    ToolchainConfig,
)
from .pipeline import AssemblyRequest, AssemblyResult, assemble_image
from .platforms import host_platform, parse_platform
from .provenance import CommandSbomGenerator, SbomGenerator, record_provenance
from .sysroot import resolve_in_sysroot
from .toolchain import check_flag_consistency, resolve_toolchain
from .verify import verify_binary

__all__ = [
    "AmbiguousInstallPathError",
    "AssemblyRequest",
    "AssemblyResult",
    "BackendExecutionError",
    "BinaryArtifact",
    "BuildContext",
    "ClosureGraph",
    "CommandSbomGenerator",
    "DependencyEdge",
    "ElfAbi",
    "ErrorCode",
    "ImageEntry",
    "ImageLayout",
    "ImageRoot",
    "InstallMapping",
    "InvalidPlatformSpecError",
    "LibraryReference",
    "PathCollisionError",
    "PlatformDescriptor",
    "ProvenanceArtifact",
    "ProvenanceGenerationError",
    "SbomGenerator",
    "ScratchrootError",
    "TargetMismatchError",
    "ToolchainConfig",
    "ToolchainOptions",
    "UnresolvedDependencyError",
    "ValidationError",
    "assemble_closure",
    "assemble_image",
    "check_flag_consistency",
    "destination_for",
    "discover",
    "host_platform",
    "materialize",
    "parse_platform",
    "plan_install",
    "record_provenance",
    "resolve_in_sysroot",
    "resolve_toolchain",
    "verify_binary",
]
