"""Typed error model with stable, machine-readable error codes."""

from __future__ import annotations

from collections.abc import Mapping
from enum import StrEnum

RELEASES_PAGE = "https://github.com/flutter-rs/engine-builds/releases"


class ErrorCode(StrEnum):
    """Stable error identifiers used across the CLI and library surfaces."""

    CONFIG = "E_CONFIG"
    UNSUPPORTED_PLATFORM = "E_UNSUPPORTED_PLATFORM"
    RUNTIME_NOT_FOUND = "E_RUNTIME_NOT_FOUND"
    NETWORK = "E_NETWORK"
    EXTRACTION = "E_EXTRACTION"
    TOOL_NOT_FOUND = "E_TOOL_NOT_FOUND"
    EXTERNAL_PROCESS = "E_EXTERNAL_PROCESS"
    UNSUPPORTED_FORMAT = "E_UNSUPPORTED_FORMAT"
    PACKAGING_VALIDATION = "E_PACKAGING_VALIDATION"


# Reserved process exit codes for internal failures. External process
# failures exit with the tool's own status instead.
EXIT_CODES: dict[ErrorCode, int] = {
    ErrorCode.CONFIG: 2,
    ErrorCode.UNSUPPORTED_PLATFORM: 3,
    ErrorCode.RUNTIME_NOT_FOUND: 4,
    ErrorCode.NETWORK: 5,
    ErrorCode.EXTRACTION: 6,
    ErrorCode.TOOL_NOT_FOUND: 7,
    ErrorCode.UNSUPPORTED_FORMAT: 8,
    ErrorCode.PACKAGING_VALIDATION: 9,
}


class RuntimeKitError(Exception):
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

    def exit_code(self) -> int:
        return EXIT_CODES.get(ErrorCode(self.code), 1)

    def to_dict(self) -> dict[str, object]:
        payload: dict[str, object] = {
            "code": self.code,
            "message": str(self),
            "context": dict(self.context),
        }
        if self.hint is not None:
            payload["hint"] = self.hint
        return payload


class ConfigError(RuntimeKitError):
    def __init__(
        self,
        message: str,
        *,
        hint: str | None = None,
        context: Mapping[str, str] | None = None,
    ) -> None:
        super().__init__(message, code=ErrorCode.CONFIG, hint=hint, context=context)


class UnsupportedPlatformError(RuntimeKitError):
    def __init__(
        self,
        platform: str,
        *,
        hint: str | None = None,
        context: Mapping[str, str] | None = None,
    ) -> None:
        super().__init__(
            f"Unsupported platform '{platform}'.",
            code=ErrorCode.UNSUPPORTED_PLATFORM,
            hint=hint or "Pass --target with one of the supported platform triples.",
            context=context,
        )
        self.platform = platform


class RuntimeNotFoundError(RuntimeKitError):
    """The requested runtime version has not been published for this platform."""

    def __init__(self, version: str, *, context: Mapping[str, str] | None = None) -> None:
        super().__init__(
            f"Couldn't find the requested runtime version '{version}'.",
            code=ErrorCode.RUNTIME_NOT_FOUND,
            hint=(
                "The runtime build for this version may not be mirrored yet. Pin a "
                "published version with `runtime_version = \"...\"` under "
                "[package.metadata.runtimekit] in the manifest, or export "
                f"RUNTIMEKIT_RUNTIME_VERSION. Available builds: {RELEASES_PAGE}"
            ),
            context=context,
        )
        self.version = version


class NetworkFailureError(RuntimeKitError):
    def __init__(
        self,
        message: str,
        *,
        status: int | None = None,
        hint: str | None = None,
        context: Mapping[str, str] | None = None,
    ) -> None:
        super().__init__(message, code=ErrorCode.NETWORK, hint=hint, context=context)
        self.status = status


class ExtractionFailureError(RuntimeKitError):
    def __init__(
        self,
        message: str,
        *,
        hint: str | None = None,
        context: Mapping[str, str] | None = None,
    ) -> None:
        super().__init__(message, code=ErrorCode.EXTRACTION, hint=hint, context=context)


class ToolNotFoundError(RuntimeKitError):
    def __init__(
        self,
        message: str,
        *,
        hint: str | None = None,
        context: Mapping[str, str] | None = None,
    ) -> None:
        super().__init__(message, code=ErrorCode.TOOL_NOT_FOUND, hint=hint, context=context)


class SnapshotToolNotFoundError(ToolNotFoundError):
    def __init__(self, *, searched: tuple[str, ...], directory: str) -> None:
        super().__init__(
            "Couldn't find the snapshot compiler in the target runtime.",
            hint="Delete the runtime cache entry so it is fetched again.",
            context={"directory": directory, "candidates": ", ".join(searched)},
        )
        self.searched = searched


class ExternalProcessError(RuntimeKitError):
    """An external tool exited unsuccessfully during ``stage``."""

    def __init__(
        self,
        stage: str,
        exit_code: int,
        *,
        hint: str | None = None,
        context: Mapping[str, str] | None = None,
    ) -> None:
        super().__init__(
            f"Stage '{stage}' failed with exit code {exit_code}.",
            code=ErrorCode.EXTERNAL_PROCESS,
            hint=hint,
            context=context,
        )
        self.stage = stage
        self.returncode = exit_code

    def exit_code(self) -> int:
        return self.returncode if self.returncode > 0 else 1


class UnsupportedFormatError(RuntimeKitError):
    def __init__(self, fmt: str, *, context: Mapping[str, str] | None = None) -> None:
        super().__init__(
            f"Package format '{fmt}' is not supported.",
            code=ErrorCode.UNSUPPORTED_FORMAT,
            hint="Supported formats: appimage, apk.",
            context=context,
        )
        self.format = fmt


class PackagingValidationError(RuntimeKitError):
    def __init__(
        self,
        message: str,
        *,
        hint: str | None = None,
        context: Mapping[str, str] | None = None,
    ) -> None:
        super().__init__(
            message, code=ErrorCode.PACKAGING_VALIDATION, hint=hint, context=context
        )


__all__ = [
    "ConfigError",
    "ErrorCode",
    "ExternalProcessError",
    "ExtractionFailureError",
    "NetworkFailureError",
    "PackagingValidationError",
    "RuntimeKitError",
    "RuntimeNotFoundError",
    "SnapshotToolNotFoundError",
    "ToolNotFoundError",
    "UnsupportedFormatError",
    "UnsupportedPlatformError",
]
