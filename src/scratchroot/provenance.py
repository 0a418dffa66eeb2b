"""Provenance (SBOM) recording through an external generator."""

from __future__ import annotations

import os
import shutil
import subprocess
from dataclasses import dataclass
from typing import Protocol

from scratchroot.config import DEFAULT_PROVENANCE_PATH
from scratchroot.errors import ProvenanceGenerationError
from scratchroot.models import BuildContext, ProvenanceArtifact


class SbomGenerator(Protocol):
    name: str

    def generate(self, context: BuildContext) -> bytes:
        """Return the generated manifest bytes for this build."""


@dataclass(slots=True)
class CommandSbomGenerator:
    """Runs a generator command in the source tree and captures its stdout."""

    argv: tuple[str, ...] = ("cargo", "sbom")
    name: str = "command"

    def generate(self, context: BuildContext) -> bytes:
        if not self.argv:
            raise ProvenanceGenerationError("SBOM generator command is empty.")
        if shutil.which(self.argv[0]) is None:
            raise ProvenanceGenerationError(
                f"SBOM generator `{self.argv[0]}` is not in PATH.",
                hint="Install the generator in the build environment.",
                context={"command": " ".join(self.argv)},
            )
        env = dict(os.environ)
        env.update(context.env)
        result = subprocess.run(
            list(self.argv),
            cwd=str(context.source_dir),
            env=env,
            capture_output=True,
            check=False,
        )
        if result.returncode != 0:
            stderr = result.stderr.decode("utf-8", errors="replace") if result.stderr else ""
            raise ProvenanceGenerationError(
                "SBOM generator failed.",
                hint="Check the generator output; images without provenance are rejected.",
                context={
                    "command": " ".join(self.argv),
                    "returncode": str(result.returncode),
                    "stderr": stderr[:2000],
                },
            )
        return result.stdout


def record_provenance(
    context: BuildContext,
    generator: SbomGenerator,
    *,
    destination: str = DEFAULT_PROVENANCE_PATH,
) -> ProvenanceArtifact:
    if not context.source_dir.is_dir():
        raise ProvenanceGenerationError(
            "Build context source directory does not exist.",
            context={"source_dir": str(context.source_dir)},
        )
    try:
        content = generator.generate(context)
    except OSError as exc:
        raise ProvenanceGenerationError(
            "SBOM generator could not be executed.",
            context={"generator": generator.name, "error": str(exc)},
        ) from exc
    if not content.strip():
        raise ProvenanceGenerationError(
            "SBOM generator produced no output.",
            hint="An image without provenance is rejected by policy.",
            context={"generator": generator.name},
        )
    return ProvenanceArtifact.from_bytes(
        content,
        destination=destination,
        generator=_describe(generator),
    )


def _describe(generator: SbomGenerator) -> str:
    argv = getattr(generator, "argv", None)
    if argv:
        return " ".join(argv)
    return generator.name
