"""Command line interface.

Usage:
    scratchroot toolchain linux/arm64 --cpu neoverse-n1
    scratchroot verify out/sbin/app --platform linux/arm64
    scratchroot closure out/sbin/app --platform linux/arm64
    scratchroot assemble out/sbin/app --platform linux/arm64 \\
        --certs /etc/ssl/certs/ca-certificates.crt --output rootfs
"""

from __future__ import annotations

import argparse
import dataclasses
import json
import shlex
import sys
from collections.abc import Sequence
from pathlib import Path

from scratchroot.closure import assemble_closure
from scratchroot.config import ToolchainOptions, cpu_tuning_from_env, toolchain_options_from_env
from scratchroot.errors import ScratchrootError
from scratchroot.introspect import Introspector, get_introspector
from scratchroot.models import BinaryArtifact, BuildContext, PlatformDescriptor
from scratchroot.observability import StructuredLogger
from scratchroot.pipeline import AssemblyRequest, assemble_image
from scratchroot.platforms import parse_platform
from scratchroot.provenance import CommandSbomGenerator
from scratchroot.toolchain import resolve_toolchain
from scratchroot.verify import verify_binary


def cmd_toolchain(args: argparse.Namespace) -> None:
    platform = parse_platform(args.platform, cpu_tuning=args.cpu or cpu_tuning_from_env())
    config = resolve_toolchain(platform, _toolchain_options(args))
    if args.format == "json":
        sys.stdout.write(config.to_json())
        return
    for key, value in config.to_env().items():
        print(f"export {key}={shlex.quote(value)}")


def cmd_verify(args: argparse.Namespace) -> None:
    platform = parse_platform(args.platform)
    abi = verify_binary(BinaryArtifact(path=Path(args.binary), declared_target=platform))
    print(f"{args.binary}: {abi.machine} ELF{abi.elf_class} matches {platform.platform}")


def cmd_closure(args: argparse.Namespace) -> None:
    platform = parse_platform(args.platform)
    artifact = BinaryArtifact(path=Path(args.binary), declared_target=platform)
    verify_binary(artifact)
    mappings = assemble_closure(
        artifact,
        _introspector(args, platform),
        workers=args.workers,
        sysroot=_toolchain_options(args).sysroot,
    )
    payload = [dataclasses.asdict(mapping) for mapping in mappings]
    sys.stdout.write(json.dumps(payload, indent=2, sort_keys=True) + "\n")


def cmd_assemble(args: argparse.Namespace) -> None:
    cpu = args.cpu or cpu_tuning_from_env()
    platform = parse_platform(args.platform, cpu_tuning=cpu)
    binary = Path(args.binary)
    request = AssemblyRequest(
        platform=args.platform,
        cpu_tuning=cpu,
        binary=binary,
        trust_root_bundle=Path(args.certs),
        output_root=Path(args.output),
        build_context=BuildContext(source_dir=Path(args.source_dir), binary=binary),
        toolchain=_toolchain_options(args),
        source_root=Path(args.source_root) if args.source_root else None,
        workers=args.workers,
        replace=args.replace,
    )
    logger = StructuredLogger()
    try:
        result = assemble_image(
            request,
            introspector=_introspector(args, platform),
            sbom_generator=CommandSbomGenerator(argv=tuple(shlex.split(args.sbom_command))),
            logger=logger,
        )
    finally:
        if args.log:
            logger.to_json_lines(args.log)

    if args.manifest:
        manifest = Path(args.manifest)
        if manifest.suffix == ".cbor":
            result.image.to_cbor(manifest)
        else:
            result.image.to_json(manifest)
    print(f"Assembled {len(result.image.entries)} entries into {result.image.root}")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="scratchroot",
        description="Assemble minimal scratch image roots from cross-compiled binaries",
    )
    sub = parser.add_subparsers(dest="command", required=True)

    toolchain_p = sub.add_parser("toolchain", help="Resolve the cross-build toolchain configuration")
    toolchain_p.add_argument("platform", help="Target platform, e.g. linux/arm64")
    toolchain_p.add_argument("--cpu", help="CPU tuning name (defaults to $TARGET_CPU)")
    toolchain_p.add_argument("--format", choices=("env", "json"), default="env")
    toolchain_p.add_argument("--sysroot", help="Target sysroot")
    toolchain_p.set_defaults(handler=cmd_toolchain)

    verify_p = sub.add_parser("verify", help="Check a binary against its declared platform")
    verify_p.add_argument("binary")
    verify_p.add_argument("--platform", required=True)
    verify_p.set_defaults(handler=cmd_verify)

    closure_p = sub.add_parser("closure", help="Print the shared-library install plan")
    closure_p.add_argument("binary")
    closure_p.add_argument("--platform", required=True)
    _add_discovery_arguments(closure_p)
    closure_p.set_defaults(handler=cmd_closure)

    assemble_p = sub.add_parser("assemble", help="Materialize a complete image root")
    assemble_p.add_argument("binary")
    assemble_p.add_argument("--platform", required=True)
    assemble_p.add_argument("--cpu", help="CPU tuning name (defaults to $TARGET_CPU)")
    assemble_p.add_argument("--certs", required=True, help="Trust-root certificate bundle")
    assemble_p.add_argument("--output", required=True, help="Image root directory to publish")
    assemble_p.add_argument("--source-dir", default=".", help="Build context for the SBOM generator")
    assemble_p.add_argument("--source-root", help="Base directory for bare library names")
    assemble_p.add_argument("--sbom-command", default="cargo sbom")
    assemble_p.add_argument("--manifest", help="Write the image manifest (.json or .cbor)")
    assemble_p.add_argument("--log", help="Write structured logs as JSON lines")
    assemble_p.add_argument("--replace", action="store_true", help="Replace an existing output root")
    _add_discovery_arguments(assemble_p)
    assemble_p.set_defaults(handler=cmd_assemble)

    return parser


def main(argv: Sequence[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    try:
        args.handler(args)
    except ScratchrootError as exc:
        sys.stderr.write(json.dumps(exc.to_dict(), indent=2, sort_keys=True) + "\n")
        return 1
    return 0


def _add_discovery_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("--introspector", choices=("elf", "ldd"), default="elf")
    parser.add_argument("--sysroot", help="Target sysroot holding runtime libraries")
    parser.add_argument(
        "--library-path",
        action="append",
        default=[],
        help="Extra library directory searched before RUNPATH (repeatable)",
    )
    parser.add_argument("--workers", type=int, default=1)


def _introspector(args: argparse.Namespace, platform: PlatformDescriptor) -> Introspector:
    return get_introspector(
        args.introspector,
        sysroot=_toolchain_options(args).sysroot,
        triple=platform.triple,
        library_path=tuple(args.library_path),
    )


def _toolchain_options(args: argparse.Namespace) -> ToolchainOptions:
    options = toolchain_options_from_env()
    if getattr(args, "sysroot", None):
        options = dataclasses.replace(options, sysroot=args.sysroot)
    return options
