"""Dependency introspection through the host dynamic loader (``ldd``).

Only usable when the host can execute the target's loader (native builds or
binfmt emulation); cross builds should use the ELF introspector.
"""

from __future__ import annotations

import re
import shutil
import subprocess
from dataclasses import dataclass
from pathlib import Path

from scratchroot.errors import BackendExecutionError
from scratchroot.models import DependencyEdge

VIRTUAL_LIBRARIES = frozenset({"linux-vdso.so.1", "linux-gate.so.1", "linux-vdso64.so.1"})

_ADDRESS = r"\(0x[0-9a-fA-F]+\)"
_NOT_FOUND_RE = re.compile(r"^(?P<name>\S+)\s+=>\s+not found$")
_MAPPED_RE = re.compile(rf"^(?P<name>\S+)\s+=>\s+(?P<path>\S+)\s+{_ADDRESS}$")
_UNMAPPED_RE = re.compile(rf"^(?P<name>\S+)\s+(?:=>\s+)?{_ADDRESS}$")


def parse_ldd_output(output: str) -> tuple[DependencyEdge, ...]:
    edges: list[DependencyEdge] = []
    for raw_line in output.splitlines():
        line = raw_line.strip()
        if not line or line == "statically linked":
            continue
        if match := _NOT_FOUND_RE.match(line):
            edges.append(DependencyEdge(identifier=match["name"], resolved_path=None))
        elif match := _MAPPED_RE.match(line):
            if match["name"] in VIRTUAL_LIBRARIES:
                continue
            edges.append(DependencyEdge(identifier=match["name"], resolved_path=match["path"]))
        elif match := _UNMAPPED_RE.match(line):
            name = match["name"]
            if name in VIRTUAL_LIBRARIES:
                continue
            # Absolute entries are the loader, bare ones are bundled libraries.
            edges.append(DependencyEdge(identifier=name, resolved_path=name))
        else:
            raise BackendExecutionError(
                "Unrecognized ldd output line.",
                context={"introspector": "ldd", "line": line},
            )
    return tuple(edges)


@dataclass(slots=True)
class LddIntrospector:
    name: str = "ldd"
    tool: str = "ldd"

    def dependencies(self, path: Path) -> tuple[DependencyEdge, ...]:
        if shutil.which(self.tool) is None:
            raise BackendExecutionError(
                f"ldd introspector requires `{self.tool}` in PATH.",
                hint="Install the libc tools or use the elf introspector.",
                context={"introspector": self.name},
            )
        result = subprocess.run(
            [self.tool, str(path)],
            capture_output=True,
            text=True,
            check=False,
        )
        combined = f"{result.stdout}\n{result.stderr}"
        if "not a dynamic executable" in combined:
            return ()
        if result.returncode != 0:
            raise BackendExecutionError(
                "ldd failed.",
                hint="The host loader may not be able to run this target; try the elf introspector.",
                context={
                    "introspector": self.name,
                    "path": str(path),
                    "returncode": str(result.returncode),
                    "stderr": result.stderr[:2000] if result.stderr else "",
                },
            )
        return parse_ldd_output(result.stdout)
