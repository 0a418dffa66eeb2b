"""Protocol for library dependency introspectors."""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from pathlib import Path
from typing import Protocol

from scratchroot.models import DependencyEdge


class Introspector(Protocol):
    name: str

    def dependencies(self, path: Path) -> tuple[DependencyEdge, ...]:
        """Return the direct load-time dependencies of one binary or library."""


@dataclass(slots=True)
class StaticIntrospector:
    """Answers from a prepared graph keyed by node path."""

    graph: Mapping[str, Sequence[DependencyEdge]] = field(default_factory=dict)
    name: str = "static"
    calls: list[str] = field(default_factory=list)

    def dependencies(self, path: Path) -> tuple[DependencyEdge, ...]:
        key = str(path)
        self.calls.append(key)
        return tuple(self.graph.get(key, ()))
