"""Platform compatibility table and host/target resolution."""

from .resolver import PlatformResolver, parse_host_triple
from .table import PLATFORMS, PlatformFamily, PlatformInfo, is_supported, require_platform

__all__ = [
    "PLATFORMS",
    "PlatformFamily",
    "PlatformInfo",
    "PlatformResolver",
    "is_supported",
    "parse_host_triple",
    "require_platform",
]
