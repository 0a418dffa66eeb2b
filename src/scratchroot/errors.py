"""Typed error model with stable, machine-readable error codes."""

from __future__ import annotations

from collections.abc import Mapping
from enum import StrEnum


class ErrorCode(StrEnum):
    """Stable error identifiers used across API and CLI surfaces."""

    VALIDATION = "E_VALIDATION"
    INVALID_PLATFORM_SPEC = "E_INVALID_PLATFORM_SPEC"
    TARGET_MISMATCH = "E_TARGET_MISMATCH"
    UNRESOLVED_DEPENDENCY = "E_UNRESOLVED_DEPENDENCY"
    AMBIGUOUS_INSTALL_PATH = "E_AMBIGUOUS_INSTALL_PATH"
    PATH_COLLISION = "E_PATH_COLLISION"
    PROVENANCE = "E_PROVENANCE"
    BACKEND_EXECUTION = "E_BACKEND_EXECUTION"


class ScratchrootError(Exception):
    """Base error class that carries code, optional hint, and context."""

    code: str
    hint: str | None
    context: Mapping[str, str]

    def __init__(
        self,
        message: str,
        *,
        code: ErrorCode,
        hint: str | None = None,
        context: Mapping[str, str] | None = None,
    ) -> None:
        super().__init__(message)
        self.code = code.value
        self.hint = hint
        self.context = dict(context or {})

    def __str__(self) -> str:
        parts = [super().__str__()]
        if self.hint:
            parts.append(f"Hint: {self.hint}")
        if self.context:
            for k, v in self.context.items():
                if v:
                    parts.append(f"  {k}: {v}")
        return "\n".join(parts)

    @property
    def message(self) -> str:
        return self.args[0] if self.args else ""

    def to_dict(self) -> dict[str, object]:
        """JSON-ready report; hint and context stay separate fields for tooling."""
        payload: dict[str, object] = {
            "code": self.code,
            "error": type(self).__name__,
            "message": self.message,
            "context": dict(self.context),
        }
        if self.hint is not None:
            payload["hint"] = self.hint
        if self.code == ErrorCode.UNRESOLVED_DEPENDENCY and self.context.get("missing"):
            payload["missing"] = self.context["missing"].split(", ")
        return payload


class ValidationError(ScratchrootError):
    def __init__(
        self,
        message: str,
        *,
        hint: str | None = None,
        context: Mapping[str, str] | None = None,
    ) -> None:
        super().__init__(message, code=ErrorCode.VALIDATION, hint=hint, context=context)


class InvalidPlatformSpecError(ScratchrootError):
    def __init__(
        self,
        message: str,
        *,
        hint: str | None = None,
        context: Mapping[str, str] | None = None,
    ) -> None:
        super().__init__(
            message, code=ErrorCode.INVALID_PLATFORM_SPEC, hint=hint, context=context
        )


class TargetMismatchError(ScratchrootError):
    def __init__(
        self,
        message: str,
        *,
        hint: str | None = None,
        context: Mapping[str, str] | None = None,
    ) -> None:
        super().__init__(message, code=ErrorCode.TARGET_MISMATCH, hint=hint, context=context)


class UnresolvedDependencyError(ScratchrootError):
    def __init__(
        self,
        message: str,
        *,
        hint: str | None = None,
        context: Mapping[str, str] | None = None,
    ) -> None:
        super().__init__(
            message, code=ErrorCode.UNRESOLVED_DEPENDENCY, hint=hint, context=context
        )


class AmbiguousInstallPathError(ScratchrootError):
    def __init__(
        self,
        message: str,
        *,
        hint: str | None = None,
        context: Mapping[str, str] | None = None,
    ) -> None:
        super().__init__(
            message, code=ErrorCode.AMBIGUOUS_INSTALL_PATH, hint=hint, context=context
        )


class PathCollisionError(ScratchrootError):
    def __init__(
        self,
        message: str,
        *,
        hint: str | None = None,
        context: Mapping[str, str] | None = None,
    ) -> None:
        super().__init__(message, code=ErrorCode.PATH_COLLISION, hint=hint, context=context)


class ProvenanceGenerationError(ScratchrootError):
    def __init__(
        self,
        message: str,
        *,
        hint: str | None = None,
        context: Mapping[str, str] | None = None,
    ) -> None:
        super().__init__(message, code=ErrorCode.PROVENANCE, hint=hint, context=context)


class BackendExecutionError(ScratchrootError):
    def __init__(
        self,
        message: str,
        *,
        hint: str | None = None,
        context: Mapping[str, str] | None = None,
    ) -> None:
        super().__init__(message, code=ErrorCode.BACKEND_EXECUTION, hint=hint, context=context)


__all__ = [
    "AmbiguousInstallPathError",
    "BackendExecutionError",
    "ErrorCode",
    "InvalidPlatformSpecError",
    "PathCollisionError",
    "ProvenanceGenerationError",
    "ScratchrootError",
    "TargetMismatchError",
    "UnresolvedDependencyError",
    "ValidationError",
]
