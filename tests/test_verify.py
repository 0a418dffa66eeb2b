from pathlib import Path

import pytest
from elf_fixtures import (
    EF_ARM_HARD_FLOAT,
    EF_ARM_SOFT_FLOAT,
    EM_386,
    EM_AARCH64,
    EM_ARM,
    EM_RISCV,
    EM_S390,
    EM_X86_64,
    ET_EXEC,
    ET_REL,
    write_elf,
)

from scratchroot.errors import TargetMismatchError, ValidationError
from scratchroot.models import BinaryArtifact
from scratchroot.platforms import parse_platform
from scratchroot.verify import read_abi, verify_binary


def _artifact(path: Path, platform: str) -> BinaryArtifact:
    return BinaryArtifact(path=path, declared_target=parse_platform(platform))


@pytest.mark.parametrize(
    ("platform", "elf"),
    [
        ("linux/amd64", {"machine": EM_X86_64}),
        ("linux/amd64/v3", {"machine": EM_X86_64, "elf_type": ET_EXEC}),
        ("linux/arm64", {"machine": EM_AARCH64}),
        ("linux/arm/v7", {"machine": EM_ARM, "elf_class": 32, "flags": EF_ARM_HARD_FLOAT}),
        ("linux/386", {"machine": EM_386, "elf_class": 32}),
        ("linux/s390x", {"machine": EM_S390, "little_endian": False}),
        ("linux/riscv64", {"machine": EM_RISCV}),
    ],
)
def test_matching_binary_passes(tmp_path: Path, platform: str, elf: dict) -> None:
    binary = write_elf(tmp_path / "app", **elf)
    abi = verify_binary(_artifact(binary, platform))
    assert abi == parse_platform(platform).abi


def test_foreign_architecture_is_rejected(tmp_path: Path) -> None:
    binary = write_elf(tmp_path / "app", machine=EM_AARCH64)
    with pytest.raises(TargetMismatchError) as excinfo:
        verify_binary(_artifact(binary, "linux/amd64"))

    error = excinfo.value
    assert error.code == "E_TARGET_MISMATCH"
    assert error.context["platform"] == "linux/amd64"
    assert error.context["expected"].startswith("EM_X86_64")
    assert error.context["actual"].startswith("EM_AARCH64")
    assert error.hint is not None
    assert "retrying" in error.hint


def test_wrong_elf_class_is_rejected(tmp_path: Path) -> None:
    binary = write_elf(tmp_path / "app", machine=EM_X86_64, elf_class=32)
    with pytest.raises(TargetMismatchError) as excinfo:
        verify_binary(_artifact(binary, "linux/amd64"))
    assert "ELF32" in excinfo.value.context["actual"]


def test_soft_float_arm_binary_is_rejected_for_hard_float_target(tmp_path: Path) -> None:
    binary = write_elf(tmp_path / "app", machine=EM_ARM, elf_class=32, flags=EF_ARM_SOFT_FLOAT)
    abi, _ = read_abi(binary)
    assert abi.hard_float is False

    with pytest.raises(TargetMismatchError) as excinfo:
        verify_binary(_artifact(binary, "linux/arm/v7"))
    assert "soft-float" in excinfo.value.context["actual"]


def test_byte_order_mismatch_is_rejected(tmp_path: Path) -> None:
    binary = write_elf(tmp_path / "app", machine=EM_S390, little_endian=True)
    with pytest.raises(TargetMismatchError):
        verify_binary(_artifact(binary, "linux/s390x"))


def test_relocatable_object_is_rejected(tmp_path: Path) -> None:
    binary = write_elf(tmp_path / "app.o", machine=EM_X86_64, elf_type=ET_REL)
    with pytest.raises(TargetMismatchError) as excinfo:
        verify_binary(_artifact(binary, "linux/amd64"))
    assert excinfo.value.context["elf_type"] == "ET_REL"


def test_non_elf_file_is_rejected(tmp_path: Path) -> None:
    script = tmp_path / "app"
    script.write_text("#!/bin/sh\necho hello\n", encoding="utf-8")
    with pytest.raises(TargetMismatchError) as excinfo:
        verify_binary(_artifact(script, "linux/amd64"))
    assert excinfo.value.context["path"] == str(script)


def test_missing_binary_is_a_validation_error(tmp_path: Path) -> None:
    with pytest.raises(ValidationError):
        verify_binary(_artifact(tmp_path / "missing", "linux/amd64"))
