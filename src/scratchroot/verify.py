"""Binary target verification against the declared platform."""

from __future__ import annotations

from pathlib import Path

from elftools.common.exceptions import ELFError
from elftools.construct.core import ConstructError
from elftools.elf.elffile import ELFFile

from scratchroot.errors import TargetMismatchError, ValidationError
from scratchroot.models import BinaryArtifact, ElfAbi

EF_ARM_ABI_FLOAT_HARD = 0x400
LOADABLE_TYPES = ("ET_EXEC", "ET_DYN")


def read_abi(path: Path) -> tuple[ElfAbi, str]:
    """Return the ELF ABI markers and object type of *path*."""
    try:
        with path.open("rb") as stream:
            elf = ELFFile(stream)
            header = elf.header
            machine = str(header["e_machine"])
            hard_float: bool | None = None
            if machine == "EM_ARM":
                hard_float = bool(header["e_flags"] & EF_ARM_ABI_FLOAT_HARD)
            abi = ElfAbi(
                machine=machine,
                elf_class=elf.elfclass,
                little_endian=elf.little_endian,
                hard_float=hard_float,
            )
            return abi, str(header["e_type"])
    except (ELFError, ConstructError) as exc:
        raise TargetMismatchError(
            "Artifact is not a valid ELF binary.",
            hint="Point at the linked executable, not a script or archive.",
            context={"path": str(path), "error": str(exc)},
        ) from exc


def verify_binary(artifact: BinaryArtifact) -> ElfAbi:
    """Assert the artifact's machine code matches its declared target."""
    if not artifact.path.is_file():
        raise ValidationError(
            "Binary artifact does not exist.",
            context={"path": str(artifact.path)},
        )

    actual, elf_type = read_abi(artifact.path)
    expected = artifact.declared_target.abi
    context = {
        "path": str(artifact.path),
        "platform": artifact.declared_target.platform,
        "expected": _describe(expected),
        "actual": _describe(actual),
    }
    if elf_type not in LOADABLE_TYPES:
        raise TargetMismatchError(
            "Artifact is not a loadable executable.",
            hint="Relocatable objects and core files cannot be packaged.",
            context={**context, "elf_type": elf_type},
        )
    mismatched = (
        actual.machine != expected.machine
        or actual.elf_class != expected.elf_class
        or actual.little_endian != expected.little_endian
        or (expected.hard_float is not None and actual.hard_float != expected.hard_float)
    )
    if mismatched:
        raise TargetMismatchError(
            "Artifact machine code does not match the declared target platform.",
            hint="Rebuild for the declared platform; retrying the same build reproduces this.",
            context=context,
        )
    return actual


def _describe(abi: ElfAbi) -> str:
    parts = [abi.machine, f"ELF{abi.elf_class}", "LE" if abi.little_endian else "BE"]
    if abi.hard_float is not None:
        parts.append("hard-float" if abi.hard_float else "soft-float")
    return " ".join(parts)
