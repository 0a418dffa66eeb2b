"""Shared test fixtures."""

from __future__ import annotations

from pathlib import Path

import pytest

from scratchroot.observability import StructuredLogger


@pytest.fixture
def logger() -> StructuredLogger:
    return StructuredLogger()


@pytest.fixture
def clean_env(monkeypatch: pytest.MonkeyPatch) -> None:
    """Remove environment overrides that change toolchain resolution."""
    for name in (
        "SCRATCHROOT_COMPILER",
        "SCRATCHROOT_LTO",
        "SCRATCHROOT_OPT_LEVEL",
        "SCRATCHROOT_SYSROOT",
        "TARGET_CPU",
    ):
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def no_compilers_on_path(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    """Empty PATH so compiler lookups fall back to bare names; absolute commands still run."""
    empty = tmp_path / "empty-bin"
    empty.mkdir()
    monkeypatch.setenv("PATH", str(empty))
