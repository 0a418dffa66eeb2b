"""End-to-end assembly of a scratch image root."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path

from scratchroot.closure import assemble_closure
from scratchroot.config import DEFAULT_PROVENANCE_PATH, ImageLayout, ToolchainOptions
from scratchroot.introspect import Introspector
from scratchroot.materialize import materialize
from scratchroot.models import (
    BinaryArtifact,
    BuildContext,
    ImageRoot,
    InstallMapping,
    PlatformDescriptor,
    ProvenanceArtifact,
    ToolchainConfig,
)
from scratchroot.observability import StructuredLogger
from scratchroot.platforms import parse_platform
from scratchroot.provenance import SbomGenerator, record_provenance
from scratchroot.toolchain import resolve_toolchain
from scratchroot.verify import verify_binary


@dataclass(frozen=True, slots=True)
class AssemblyRequest:
    platform: str
    binary: Path
    trust_root_bundle: Path
    output_root: Path
    build_context: BuildContext
    cpu_tuning: str | None = None
    toolchain: ToolchainOptions = field(default_factory=ToolchainOptions)
    layout: ImageLayout = field(default_factory=ImageLayout)
    provenance_path: str = DEFAULT_PROVENANCE_PATH
    source_root: Path | None = None
    workers: int = 1
    replace: bool = False


@dataclass(frozen=True, slots=True)
class AssemblyResult:
    platform: PlatformDescriptor
    toolchain: ToolchainConfig
    mappings: tuple[InstallMapping, ...]
    provenance: ProvenanceArtifact
    image: ImageRoot


def assemble_image(
    request: AssemblyRequest,
    *,
    introspector: Introspector,
    sbom_generator: SbomGenerator,
    logger: StructuredLogger | None = None,
) -> AssemblyResult:
    """Verify, resolve, record and materialize; any failure publishes nothing."""
    log = logger if logger is not None else StructuredLogger()

    platform = parse_platform(request.platform, cpu_tuning=request.cpu_tuning)
    toolchain = resolve_toolchain(platform, request.toolchain)
    log.log(
        operation="assemble",
        stage="toolchain",
        platform=platform.platform,
        message="Resolved toolchain configuration.",
        extra={"digest": toolchain.digest(), "rust_target": toolchain.rust_target},
    )

    artifact = BinaryArtifact(path=request.binary, declared_target=platform)
    abi = verify_binary(artifact)
    log.log(
        operation="assemble",
        stage="verify",
        platform=platform.platform,
        message="Binary matches declared target.",
        extra={"machine": abi.machine, "elf_class": abi.elf_class},
    )

    mappings = assemble_closure(
        artifact,
        introspector,
        workers=request.workers,
        sysroot=request.toolchain.sysroot,
        logger=log,
    )

    provenance = record_provenance(
        request.build_context,
        sbom_generator,
        destination=request.provenance_path,
    )
    log.log(
        operation="assemble",
        stage="provenance",
        platform=platform.platform,
        message="Recorded provenance.",
        extra={"generator": provenance.generator, "sha256": provenance.sha256},
    )

    image = materialize(
        artifact,
        mappings,
        request.trust_root_bundle,
        provenance,
        request.output_root,
        layout=request.layout,
        source_root=request.source_root,
        sysroot=request.toolchain.sysroot,
        replace=request.replace,
        logger=log,
    )
    log.log(
        operation="assemble",
        stage="publish",
        platform=platform.platform,
        message="Published image root.",
        extra={"root": str(image.root), "entries": len(image.entries)},
    )
    return AssemblyResult(
        platform=platform,
        toolchain=toolchain,
        mappings=mappings,
        provenance=provenance,
        image=image,
    )
