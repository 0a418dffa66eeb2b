from dataclasses import dataclass, field
from pathlib import Path

import pytest
from elf_fixtures import EM_AARCH64, write_elf

from scratchroot.config import ToolchainOptions
from scratchroot.errors import (
    ProvenanceGenerationError,
    TargetMismatchError,
    UnresolvedDependencyError,
)
from scratchroot.introspect import StaticIntrospector
from scratchroot.models import BuildContext, DependencyEdge
from scratchroot.observability import StructuredLogger
from scratchroot.pipeline import AssemblyRequest, assemble_image


@dataclass
class RecordingGenerator:
    output: bytes = b'{"spdxVersion": "SPDX-2.3", "name": "app"}\n'
    name: str = "recording"
    contexts: list[BuildContext] = field(default_factory=list)

    def generate(self, context: BuildContext) -> bytes:
        self.contexts.append(context)
        return self.output


pytestmark = pytest.mark.usefixtures("no_compilers_on_path")


def _write(path: Path, content: bytes) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_bytes(content)
    return path


def _request(tmp_path: Path, binary: Path, **overrides) -> AssemblyRequest:
    values = {
        "platform": "linux/amd64",
        "binary": binary,
        "trust_root_bundle": _write(tmp_path / "certs.pem", b"-----BEGIN CERTIFICATE-----\n"),
        "output_root": tmp_path / "rootfs",
        "build_context": BuildContext(source_dir=tmp_path, binary=binary),
        "toolchain": ToolchainOptions(sysroot=str(tmp_path / "sysroot")),
        "source_root": tmp_path / "bundle",
    }
    values.update(overrides)
    return AssemblyRequest(**values)


def _tree(root: Path) -> list[str]:
    return sorted("/" + str(path.relative_to(root)) for path in root.rglob("*") if path.is_file())


def test_assembles_binary_closure_certificates_and_provenance(tmp_path: Path) -> None:
    sysroot = tmp_path / "sysroot"
    binary = write_elf(tmp_path / "target/release/app")
    lib_a = _write(sysroot / "lib/libA.so", b"libA")
    lib_c = _write(sysroot / "lib/libC.so", b"libC")
    _write(tmp_path / "bundle/libB.so", b"libB")

    introspector = StaticIntrospector(
        graph={
            str(binary): [
                DependencyEdge("libA.so", str(lib_a)),
                DependencyEdge("libB.so", "libB.so"),
            ],
            str(lib_a): [DependencyEdge("libC.so", str(lib_c))],
            str(lib_c): [DependencyEdge("libA.so", str(lib_a))],
        }
    )
    generator = RecordingGenerator()
    logger = StructuredLogger()

    result = assemble_image(
        _request(tmp_path, binary, cpu_tuning="x86-64-v3"),
        introspector=introspector,
        sbom_generator=generator,
        logger=logger,
    )

    root = tmp_path / "rootfs"
    assert _tree(root) == [
        "/etc/ssl/certs/ca-certificates.crt",
        "/lib/libA.so",
        "/lib/libC.so",
        "/libB.so",
        "/sbin/app",
        "/sbom.spdx.json",
    ]
    assert (root / "sbom.spdx.json").read_bytes() == generator.output
    assert (root / "lib/libC.so").read_bytes() == b"libC"
    assert generator.contexts[0].binary == binary

    assert result.platform.cpu_tuning == "x86-64-v3"
    assert "-march=x86-64-v3" in result.toolchain.c_flags
    assert "-Ctarget-cpu=x86-64-v3" in result.toolchain.target_flags
    assert [mapping.identifier for mapping in result.mappings] == ["libA.so", "libB.so", "libC.so"]
    assert result.provenance.generator == "recording"
    assert result.image.destinations() == tuple(_tree(root))

    stages = [record["stage"] for record in logger.records if record["operation"] == "assemble"]
    assert stages == ["toolchain", "verify", "provenance", "publish"]
    assert len(logger.records_for_stage("write")) == 6


def test_wrong_target_is_rejected_before_discovery(tmp_path: Path) -> None:
    binary = write_elf(tmp_path / "app", machine=EM_AARCH64)
    introspector = StaticIntrospector()
    generator = RecordingGenerator()

    with pytest.raises(TargetMismatchError):
        assemble_image(_request(tmp_path, binary), introspector=introspector, sbom_generator=generator)

    assert introspector.calls == []
    assert generator.contexts == []
    assert not (tmp_path / "rootfs").exists()


def test_unresolved_library_publishes_nothing(tmp_path: Path) -> None:
    binary = write_elf(tmp_path / "app")
    introspector = StaticIntrospector(graph={str(binary): [DependencyEdge("libmissing.so", None)]})
    generator = RecordingGenerator()

    with pytest.raises(UnresolvedDependencyError):
        assemble_image(_request(tmp_path, binary), introspector=introspector, sbom_generator=generator)

    assert generator.contexts == []
    assert not (tmp_path / "rootfs").exists()


def test_missing_provenance_publishes_nothing(tmp_path: Path) -> None:
    binary = write_elf(tmp_path / "app")
    with pytest.raises(ProvenanceGenerationError):
        assemble_image(
            _request(tmp_path, binary),
            introspector=StaticIntrospector(),
            sbom_generator=RecordingGenerator(output=b""),
        )
    assert not (tmp_path / "rootfs").exists()


def test_static_binary_yields_minimal_root(tmp_path: Path) -> None:
    binary = write_elf(tmp_path / "app")
    result = assemble_image(
        _request(tmp_path, binary, provenance_path="/usr/share/sbom/app.spdx.json"),
        introspector=StaticIntrospector(),
        sbom_generator=RecordingGenerator(),
    )
    assert result.mappings == ()
    assert _tree(tmp_path / "rootfs") == [
        "/etc/ssl/certs/ca-certificates.crt",
        "/sbin/app",
        "/usr/share/sbom/app.spdx.json",
    ]
