"""Transitive shared-library closure discovery and install planning.

Discovery walks the load-time dependency graph level by level with a visited
set keyed by resolved absolute path, so cyclic and diamond-shaped graphs
terminate and every node is introspected once. Deduplication and destination
decisions are made only after the whole graph is known.

Duplicate identifiers are settled by lexicographic order of
``(identifier, source_path)``. This is a deliberate simplification: it is
deterministic but says nothing about which copy is the newest or most correct.
"""

from __future__ import annotations

import posixpath
from collections.abc import Iterable, Iterator
from concurrent.futures import ThreadPoolExecutor
from contextlib import contextmanager
from dataclasses import dataclass
from pathlib import Path

from scratchroot.errors import AmbiguousInstallPathError, UnresolvedDependencyError, ValidationError
from scratchroot.introspect import Introspector
from scratchroot.models import BinaryArtifact, InstallMapping, LibraryReference
from scratchroot.observability import StructuredLogger
from scratchroot.sysroot import resolve_in_sysroot


@dataclass(frozen=True, slots=True)
class ClosureGraph:
    root: str
    references: tuple[LibraryReference, ...]
    edges: tuple[tuple[str, str], ...] = ()

    def identifiers(self) -> tuple[str, ...]:
        return tuple(sorted({ref.identifier for ref in self.references}))


def discover(
    root: Path,
    introspector: Introspector,
    *,
    workers: int = 1,
    sysroot: str = "/",
    logger: StructuredLogger | None = None,
) -> ClosureGraph:
    if workers < 1:
        raise ValidationError(
            "Closure discovery needs at least one worker.",
            context={"workers": str(workers)},
        )

    root_key = str(root)
    visited = {_visit_key(root_key, sysroot)}
    frontier = [root_key]
    requesters: dict[tuple[str, str | None], set[str]] = {}
    edges: list[tuple[str, str]] = []

    with _level_mapper(workers) as map_level:
        while frontier:
            next_frontier: list[str] = []
            for node, found in zip(frontier, map_level(introspector, frontier)):
                for edge in found:
                    requesters.setdefault((edge.identifier, edge.resolved_path), set()).add(node)
                    edges.append((node, edge.identifier))
                    if edge.resolved_path is None or not posixpath.isabs(edge.resolved_path):
                        continue
                    key = _visit_key(edge.resolved_path, sysroot)
                    if key in visited:
                        continue
                    visited.add(key)
                    next_frontier.append(edge.resolved_path)
                    if logger is not None:
                        logger.log(
                            operation="closure",
                            stage="discover",
                            library=edge.identifier,
                            message="Discovered library.",
                            extra={"path": edge.resolved_path, "requested_by": node},
                        )
            frontier = next_frontier

    references = tuple(
        LibraryReference(identifier=identifier, resolved_path=path, requested_by=frozenset(nodes))
        for (identifier, path), nodes in sorted(requesters.items(), key=lambda item: _pair_key(item[0]))
    )
    return ClosureGraph(root=root_key, references=references, edges=tuple(edges))


def plan_install(
    references: Iterable[LibraryReference],
    *,
    sysroot: str = "/",
) -> tuple[InstallMapping, ...]:
    refs = list(references)
    missing = sorted((ref for ref in refs if not ref.resolved_path), key=lambda ref: ref.identifier)
    if missing:
        raise UnresolvedDependencyError(
            "Required shared libraries could not be located.",
            hint="Install the missing runtime libraries in the build environment; retrying will not help.",
            context={
                "missing": ", ".join(ref.identifier for ref in missing),
                "requested_by": "; ".join(
                    f"{ref.identifier} <- {', '.join(sorted(ref.requested_by))}" for ref in missing
                ),
            },
        )

    candidates: dict[str, list[str]] = {}
    for ref in refs:
        candidates.setdefault(ref.identifier, []).append(ref.resolved_path or "")

    mappings: list[InstallMapping] = []
    owners: dict[str, InstallMapping] = {}
    for identifier in sorted(candidates):
        _, source = min((identifier, path) for path in candidates[identifier])
        mapping = InstallMapping(
            identifier=identifier,
            source_path=source,
            destination_path=destination_for(identifier, source, sysroot=sysroot),
        )
        owner = owners.setdefault(mapping.destination_path, mapping)
        if owner.source_path != mapping.source_path:
            raise AmbiguousInstallPathError(
                "Two libraries resolve to the same install path from different sources.",
                hint="Fix the library search paths so each install path has one source.",
                context={
                    "destination": mapping.destination_path,
                    "first": f"{owner.identifier} ({owner.source_path})",
                    "second": f"{mapping.identifier} ({mapping.source_path})",
                },
            )
        mappings.append(mapping)
    return tuple(mappings)


def destination_for(identifier: str, source: str, *, sysroot: str = "/") -> str:
    """Absolute sources keep their path inside the image; bare names go to the root."""
    if not posixpath.isabs(source):
        return "/" + identifier
    normalized = posixpath.normpath(source)
    root = posixpath.normpath(sysroot)
    if root != "/" and normalized.startswith(root + "/"):
        return "/" + posixpath.relpath(normalized, root)
    return normalized


def assemble_closure(
    artifact: BinaryArtifact,
    introspector: Introspector,
    *,
    workers: int = 1,
    sysroot: str = "/",
    logger: StructuredLogger | None = None,
) -> tuple[InstallMapping, ...]:
    graph = discover(artifact.path, introspector, workers=workers, sysroot=sysroot, logger=logger)
    mappings = plan_install(graph.references, sysroot=sysroot)
    if logger is not None:
        logger.log(
            operation="closure",
            stage="plan",
            platform=artifact.declared_target.platform,
            message=f"Planned {len(mappings)} library install(s).",
            extra={"identifiers": [mapping.identifier for mapping in mappings]},
        )
    return mappings


@contextmanager
def _level_mapper(workers: int) -> Iterator:
    if workers == 1:
        yield lambda introspector, nodes: [introspector.dependencies(Path(node)) for node in nodes]
        return
    with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="closure") as pool:
        yield lambda introspector, nodes: list(
            pool.map(lambda node: introspector.dependencies(Path(node)), nodes)
        )


def _visit_key(path: str, sysroot: str) -> str:
    return str(resolve_in_sysroot(path, sysroot))


def _pair_key(pair: tuple[str, str | None]) -> tuple[str, str]:
    identifier, path = pair
    return identifier, path or ""
