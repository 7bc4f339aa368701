"""Runtime artifact cache."""

from .layout import archive_name, download_url, runtime_dir, runtime_path
from .store import RuntimeCache

__all__ = ["RuntimeCache", "archive_name", "download_url", "runtime_dir", "runtime_path"]
