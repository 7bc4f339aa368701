"""Network download and archive extraction for runtime distributions."""

from .archive import extract_zip
from .http import ProgressObserver, download

__all__ = ["ProgressObserver", "download", "extract_zip"]
