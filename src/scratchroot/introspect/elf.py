"""Pure-Python dependency introspection from ELF dynamic sections.

Works on binaries of any architecture, so it is the default for
cross-compiled artifacts where the host ``ldd`` cannot run the target loader.
Library names are resolved with the dynamic loader's search order, rooted
under a sysroot:

1. ``DT_RPATH`` (ignored when ``DT_RUNPATH`` is present)
2. ``library_path`` entries (the ``LD_LIBRARY_PATH`` equivalent)
3. ``DT_RUNPATH``
4. default directories, multiarch first

Symlinks inside the sysroot are followed with absolute targets re-rooted
under it. The program interpreter is identified by its full ``PT_INTERP``
path.
"""

from __future__ import annotations

import posixpath
from dataclasses import dataclass, field
from pathlib import Path

from elftools.common.exceptions import ELFError
from elftools.construct.core import ConstructError
from elftools.elf.dynamic import DynamicSection, DynamicSegment
from elftools.elf.elffile import ELFFile

from scratchroot.errors import BackendExecutionError
from scratchroot.models import DependencyEdge
from scratchroot.sysroot import resolve_in_sysroot

DEFAULT_LIBRARY_DIRS = ("/lib64", "/usr/lib64", "/lib", "/usr/lib")


@dataclass(frozen=True, slots=True)
class DynamicInfo:
    needed: tuple[str, ...] = ()
    rpath: tuple[str, ...] = ()
    runpath: tuple[str, ...] = ()
    interpreter: str | None = None


def read_dynamic_info(path: Path) -> DynamicInfo:
    needed: list[str] = []
    rpath: list[str] = []
    runpath: list[str] = []
    interpreter: str | None = None
    try:
        with path.open("rb") as stream:
            elf = ELFFile(stream)
            dynamic = [s for s in elf.iter_sections() if isinstance(s, DynamicSection)]
            for segment in elf.iter_segments():
                if segment["p_type"] == "PT_INTERP":
                    interpreter = _text(segment.get_interp_name())
                elif not dynamic and isinstance(segment, DynamicSegment):
                    dynamic.append(segment)
            for table in dynamic:
                for tag in table.iter_tags():
                    if tag.entry.d_tag == "DT_NEEDED":
                        needed.append(tag.needed)
                    elif tag.entry.d_tag == "DT_RPATH":
                        rpath.extend(_split_search_path(tag.rpath))
                    elif tag.entry.d_tag == "DT_RUNPATH":
                        runpath.extend(_split_search_path(tag.runpath))
    except (ELFError, ConstructError) as exc:
        raise BackendExecutionError(
            "Failed to read ELF dynamic section.",
            hint="Only ELF binaries and shared objects can be introspected.",
            context={"introspector": "elf", "path": str(path), "error": str(exc)},
        ) from exc
    return DynamicInfo(
        needed=tuple(needed),
        rpath=tuple(rpath),
        runpath=tuple(runpath),
        interpreter=interpreter,
    )


@dataclass(slots=True)
class ElfIntrospector:
    name: str = "elf"
    sysroot: Path = Path("/")
    triple: str | None = None
    library_path: tuple[str, ...] = field(default_factory=tuple)

    def dependencies(self, path: Path) -> tuple[DependencyEdge, ...]:
        info = read_dynamic_info(resolve_in_sysroot(path, self.sysroot))
        origin = str(path.parent)
        search_dirs = self._search_dirs(info, origin=origin)

        edges: list[DependencyEdge] = []
        if info.interpreter is not None:
            # The kernel execs this exact path, so it is its own install identity
            # even when a library NEEDs the same loader by soname.
            located = self._reroot(info.interpreter)
            edges.append(
                DependencyEdge(
                    identifier=info.interpreter,
                    resolved_path=str(located) if self._is_file(located) else None,
                )
            )
        for name in info.needed:
            found = self._locate(name, search_dirs)
            edges.append(DependencyEdge(identifier=name, resolved_path=found))
        return tuple(edges)

    def default_dirs(self) -> tuple[str, ...]:
        multiarch: tuple[str, ...] = ()
        if self.triple:
            multiarch = (f"/lib/{self.triple}", f"/usr/lib/{self.triple}")
        return (*multiarch, *DEFAULT_LIBRARY_DIRS)

    def _search_dirs(self, info: DynamicInfo, *, origin: str) -> tuple[Path, ...]:
        ordered: list[str] = []
        if not info.runpath:
            ordered.extend(info.rpath)
        ordered.extend(self.library_path)
        ordered.extend(info.runpath)
        ordered.extend(self.default_dirs())

        dirs: list[Path] = []
        for entry in ordered:
            expanded = entry.replace("${ORIGIN}", "$ORIGIN")
            if expanded.startswith("$ORIGIN"):
                candidate = Path(posixpath.normpath(origin + expanded[len("$ORIGIN"):]))
            else:
                candidate = self._reroot(expanded)
            if candidate not in dirs:
                dirs.append(candidate)
        return tuple(dirs)

    def _locate(self, name: str, search_dirs: tuple[Path, ...]) -> str | None:
        if "/" in name:
            candidate = self._reroot(name) if name.startswith("/") else Path(name)
            return str(candidate) if self._is_file(candidate) else None
        for directory in search_dirs:
            candidate = directory / name
            if self._is_file(candidate):
                return str(candidate)
        return None

    def _reroot(self, target_path: str) -> Path:
        return self.sysroot / target_path.lstrip("/")

    def _is_file(self, candidate: Path) -> bool:
        return resolve_in_sysroot(candidate, self.sysroot).is_file()


def _text(value: str | bytes) -> str:
    if isinstance(value, bytes):
        return value.decode("utf-8", errors="replace")
    return value


def _split_search_path(value: str) -> list[str]:
    return [entry for entry in value.split(":") if entry]
