"""Image root materialization.

Every destination is planned, with its content digest, before anything is
written. The tree is assembled in a staging directory beside the output root
and published with a rename, so a failed run never leaves a partial root.
"""

from __future__ import annotations

import hashlib
import os
import posixpath
import shutil
import tempfile
from collections.abc import Iterable
from dataclasses import dataclass
from pathlib import Path

from scratchroot.config import ImageLayout
from scratchroot.errors import PathCollisionError, ValidationError
from scratchroot.models import (
    BinaryArtifact,
    EntryKind,
    ImageEntry,
    ImageRoot,
    InstallMapping,
    ProvenanceArtifact,
)
from scratchroot.observability import StructuredLogger
from scratchroot.sysroot import resolve_in_sysroot


@dataclass(frozen=True, slots=True)
class PlannedEntry:
    destination: str
    kind: EntryKind
    sha256: str
    source: Path | None = None
    content: bytes | None = None
    mode: int | None = 0o644


def plan_entries(
    artifact: BinaryArtifact,
    mappings: Iterable[InstallMapping],
    trust_root_bundle: Path,
    provenance: ProvenanceArtifact,
    *,
    layout: ImageLayout,
    source_root: Path,
    sysroot: str | Path = "/",
) -> dict[str, PlannedEntry]:
    planned: dict[str, PlannedEntry] = {}

    binary_dest = posixpath.join(layout.binary_dir, artifact.path.name)
    _add(planned, _file_entry(binary_dest, "binary", artifact.path, mode=0o755))
    for mapping in mappings:
        source = Path(mapping.source_path)
        if not source.is_absolute():
            source = source_root / source
        # Copy the file the link names inside the sysroot, not the host's.
        source = resolve_in_sysroot(source, sysroot)
        _add(planned, _file_entry(mapping.destination_path, "library", source, mode=None))
    _add(planned, _file_entry(layout.certificates_path, "certificates", trust_root_bundle))
    _add(
        planned,
        PlannedEntry(
            destination=_normalize_destination(provenance.destination),
            kind="provenance",
            sha256=provenance.sha256,
            content=provenance.content,
        ),
    )
    return planned


def materialize(
    artifact: BinaryArtifact,
    mappings: Iterable[InstallMapping],
    trust_root_bundle: str | Path,
    provenance: ProvenanceArtifact,
    output_root: str | Path,
    *,
    layout: ImageLayout | None = None,
    source_root: str | Path | None = None,
    sysroot: str | Path = "/",
    replace: bool = False,
    logger: StructuredLogger | None = None,
) -> ImageRoot:
    root = Path(output_root)
    if root.exists() and not replace:
        raise ValidationError(
            "Output root already exists.",
            hint="Choose a fresh output directory or pass replace=True.",
            context={"output_root": str(root)},
        )

    planned = plan_entries(
        artifact,
        mappings,
        Path(trust_root_bundle),
        provenance,
        layout=layout or ImageLayout(),
        source_root=Path(source_root) if source_root is not None else Path.cwd(),
        sysroot=sysroot,
    )

    root.parent.mkdir(parents=True, exist_ok=True)
    staging = Path(tempfile.mkdtemp(prefix=f".{root.name}.staging-", dir=root.parent))
    try:
        os.chmod(staging, 0o755)
        for destination in sorted(planned):
            entry = planned[destination]
            _write_entry(staging, entry)
            if logger is not None:
                logger.log(
                    operation="materialize",
                    stage="write",
                    library=destination if entry.kind == "library" else None,
                    message=f"Wrote {entry.kind} entry.",
                    extra={"destination": destination, "sha256": entry.sha256},
                )
        _publish(staging, root)
    except Exception:
        shutil.rmtree(staging, ignore_errors=True)
        raise

    entries = {
        destination: ImageEntry(
            destination=destination,
            kind=entry.kind,
            sha256=entry.sha256,
            source=str(entry.source) if entry.source is not None else provenance.generator,
        )
        for destination, entry in planned.items()
    }
    return ImageRoot(root=root, entries=entries)


def _add(planned: dict[str, PlannedEntry], entry: PlannedEntry) -> None:
    existing = planned.get(entry.destination)
    if existing is None:
        planned[entry.destination] = entry
        return
    if existing.sha256 != entry.sha256:
        raise PathCollisionError(
            "Two different files compete for one image path.",
            hint="This usually hides a version conflict between two copies of one library.",
            context={
                "destination": entry.destination,
                "first": str(existing.source or existing.kind),
                "second": str(entry.source or entry.kind),
            },
        )


def _file_entry(
    destination: str,
    kind: EntryKind,
    source: Path,
    *,
    mode: int | None = 0o644,
) -> PlannedEntry:
    if not source.is_file():
        raise ValidationError(
            f"Source for {kind} entry does not exist.",
            context={"destination": destination, "source": str(source)},
        )
    return PlannedEntry(
        destination=_normalize_destination(destination),
        kind=kind,
        sha256=_sha256_file(source),
        source=source,
        mode=mode,
    )


def _normalize_destination(destination: str) -> str:
    normalized = posixpath.normpath("/" + destination.lstrip("/"))
    if normalized == "/" or ".." in normalized.split("/"):
        raise ValidationError("Invalid image destination path.", context={"destination": destination})
    return normalized


def _write_entry(staging: Path, entry: PlannedEntry) -> None:
    target = staging / entry.destination.lstrip("/")
    target.parent.mkdir(parents=True, exist_ok=True)
    if entry.source is not None:
        shutil.copy2(entry.source, target)
    else:
        target.write_bytes(entry.content or b"")
    if entry.mode is not None:
        os.chmod(target, entry.mode)


def _publish(staging: Path, root: Path) -> None:
    if not root.exists():
        os.replace(staging, root)
        return
    retired = Path(tempfile.mkdtemp(prefix=f".{root.name}.retired-", dir=root.parent))
    os.replace(root, retired / root.name)
    try:
        os.replace(staging, root)
    except OSError:
        os.replace(retired / root.name, root)
        shutil.rmtree(retired)
        raise
    shutil.rmtree(retired)


def _sha256_file(path: Path) -> str:
    return hashlib.sha256(path.read_bytes()).hexdigest()
