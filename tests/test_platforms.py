import pytest

from scratchroot.errors import InvalidPlatformSpecError
from scratchroot.platforms import host_platform, parse_platform


@pytest.mark.parametrize(
    ("value", "architecture", "variant"),
    [
        ("linux/amd64", "amd64", None),
        ("linux/amd64/v3", "amd64", "v3"),
        ("Linux/X86_64", "amd64", None),
        ("linux/arm64", "arm64", None),
        ("linux/aarch64", "arm64", None),
        ("linux/arm64/v8", "arm64", "v8"),
        ("linux/arm", "arm", "v7"),
        ("linux/arm/v6", "arm", "v6"),
        ("linux/armhf", "arm", "v7"),
        ("linux/armv6l", "arm", "v6"),
        ("linux/386", "386", None),
        ("linux/i686", "386", None),
        ("linux/ppc64el", "ppc64le", None),
        ("linux/s390x", "s390x", None),
        (" linux/riscv64 ", "riscv64", None),
    ],
)
def test_parse_platform_normalizes_aliases(value: str, architecture: str, variant: str | None) -> None:
    descriptor = parse_platform(value)
    assert descriptor.os == "linux"
    assert descriptor.architecture == architecture
    assert descriptor.variant == variant


@pytest.mark.parametrize(
    "value",
    [
        "",
        "linux",
        "linux/",
        "/amd64",
        "linux/amd64/v3/extra",
        "windows/amd64",
        "darwin/arm64",
        "linux/mips",
        "linux/amd64/v9",
        "linux/386/v2",
        "linux/armv6l/v7",
    ],
)
def test_parse_platform_rejects_invalid_values(value: str) -> None:
    with pytest.raises(InvalidPlatformSpecError) as excinfo:
        parse_platform(value)
    assert excinfo.value.code == "E_INVALID_PLATFORM_SPEC"
    assert excinfo.value.context["platform"] == value


def test_parse_platform_hint_lists_supported_architectures() -> None:
    with pytest.raises(InvalidPlatformSpecError) as excinfo:
        parse_platform("linux/sparc64")
    assert excinfo.value.hint is not None
    assert "arm64" in excinfo.value.hint


def test_cpu_tuning_is_passed_through_verbatim() -> None:
    descriptor = parse_platform("linux/arm64", cpu_tuning=" neoverse-n1 ")
    assert descriptor.cpu_tuning == "neoverse-n1"
    assert parse_platform("linux/arm64", cpu_tuning="  ").cpu_tuning is None
    # Unknown names are not validated here; the compiler rejects them later.
    assert parse_platform("linux/amd64", cpu_tuning="not-a-cpu").cpu_tuning == "not-a-cpu"


def test_host_platform_uses_running_machine(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr("scratchroot.platforms.host.system", lambda: "Linux")
    monkeypatch.setattr("scratchroot.platforms.host.machine", lambda: "aarch64")
    descriptor = host_platform()
    assert descriptor.platform == "linux/arm64"
