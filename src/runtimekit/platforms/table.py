"""Static platform compatibility table."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Literal

from runtimekit.errors import UnsupportedPlatformError
from runtimekit.models import PlatformId

PlatformFamily = Literal["linux", "android", "macos", "ios", "windows"]


@dataclass(frozen=True, slots=True)
class PlatformInfo:
    triple: PlatformId
    family: PlatformFamily
    variant: str
    library_name: str
    suffix: str = ""
    import_library: str | None = None
    abi: str | None = None

    @property
    def is_android(self) -> bool:
        return self.family == "android"

    @property
    def is_windows(self) -> bool:
        return self.family == "windows"

    @property
    def runtime_files(self) -> tuple[str, ...]:
        """Files that must travel with the runtime library."""
        if self.import_library is None:
            return (self.library_name,)
        return (self.library_name, self.import_library)


_LINUX_LIB = "libflutter_engine.so"
_APPLE_LIB = "libflutter_engine.dylib"

PLATFORMS: dict[PlatformId, PlatformInfo] = {
    info.triple: info
    for info in (
        PlatformInfo("x86_64-unknown-linux-gnu", "linux", "linux_x64-host", _LINUX_LIB),
        PlatformInfo("x64-linux-host", "linux", "linux_x64-host", _LINUX_LIB),
        PlatformInfo(
            "armv7-linux-androideabi",
            "android",
            "linux_x64-android",
            _LINUX_LIB,
            abi="armeabi-v7a",
        ),
        PlatformInfo(
            "aarch64-linux-android",
            "android",
            "linux_x64-android",
            _LINUX_LIB,
            suffix="_arm64",
            abi="arm64-v8a",
        ),
        PlatformInfo(
            "i686-linux-android",
            "android",
            "linux_x64-android",
            _LINUX_LIB,
            suffix="_x64",
            abi="x86",
        ),
        PlatformInfo(
            "x86_64-linux-android",
            "android",
            "linux_x64-android",
            _LINUX_LIB,
            suffix="_x86",
            abi="x86_64",
        ),
        PlatformInfo("x86_64-apple-darwin", "macos", "macosx_x64-host", _APPLE_LIB),
        PlatformInfo("armv7-apple-ios", "ios", "macosx_x64-ios", _APPLE_LIB, suffix="_arm"),
        PlatformInfo("aarch64-apple-ios", "ios", "macosx_x64-ios", _APPLE_LIB),
        PlatformInfo(
            "x86_64-pc-windows-msvc",
            "windows",
            "windows_x64-host",
            "flutter_engine.dll",
            import_library="flutter_engine.lib",
        ),
    )
}


def require_platform(platform: str) -> PlatformInfo:
    """Return the table entry for *platform* or fail before any I/O happens."""
    info = PLATFORMS.get(platform)
    if info is None:
        raise UnsupportedPlatformError(
            platform,
            context={"supported": ", ".join(sorted(PLATFORMS))},
        )
    return info


def is_supported(platform: str) -> bool:
    return platform in PLATFORMS
