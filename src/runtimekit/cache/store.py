"""Runtime cache: fetch each (version, platform, profile) once and reuse it.

An entry is only treated as present when its completion marker exists and the
library digest recorded in it still matches the file on disk. New entries are
downloaded and extracted next to their final location under unique temporary
names and published with a single ``os.replace``, so an interrupted or
concurrent run can never expose a half-written entry as a cache hit.
"""

from __future__ import annotations

import hashlib
import json
import logging
import os
import shutil
import tempfile
from dataclasses import dataclass, field
from pathlib import Path

from runtimekit.config import Settings
from runtimekit.errors import ExtractionFailureError, NetworkFailureError, RuntimeNotFoundError
from runtimekit.fetch import ProgressObserver, download, extract_zip
from runtimekit.models import BuildProfile, PlatformId, RuntimeHandle
from runtimekit.observability import StructuredLogger
from runtimekit.platforms import is_supported, require_platform

from .layout import COMPLETION_MARKER, download_url, marker_path, runtime_dir, runtime_path

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class RuntimeCache:
    settings: Settings
    events: StructuredLogger = field(default_factory=StructuredLogger)

    @property
    def root(self) -> Path:
        return self.settings.runtime_cache_dir

    def path_for(self, handle: RuntimeHandle) -> Path:
        return runtime_path(self.root, handle)

    def resolve(
        self,
        version: str,
        platform: PlatformId,
        profile: BuildProfile,
        *,
        observer: ProgressObserver | None = None,
    ) -> Path:
        """Return the local path of the runtime library, fetching it on first use."""
        override = self.settings.runtime_path_override
        if override is not None:
            self.events.log(
                operation="runtime_override",
                stage=None,
                platform=platform,
                profile=profile.value,
                message=f"Using runtime from RUNTIMEKIT_RUNTIME_PATH: {override}",
            )
            return override

        require_platform(platform)
        handle = RuntimeHandle(version=version, platform=platform, profile=profile)
        path = self.path_for(handle)
        if self.is_complete(handle):
            self.events.log(
                operation="runtime_cache_hit",
                stage=None,
                platform=platform,
                profile=profile.value,
                message=f"Runtime {version} found in cache.",
                level="debug",
            )
            return path

        self._fetch(handle, observer=observer)
        return path

    def is_complete(self, handle: RuntimeHandle) -> bool:
        library = self.path_for(handle)
        marker = marker_path(self.root, handle)
        if not library.is_file() or not marker.is_file():
            return False
        try:
            manifest = json.loads(marker.read_text(encoding="utf-8"))
        except (json.JSONDecodeError, OSError):
            logger.warning("ignoring unreadable cache marker %s", marker)
            return False
        if not isinstance(manifest, dict) or manifest.get("handle") != _handle_payload(handle):
            return False
        return manifest.get("library_sha256") == _sha256_file(library)

    def entries(self) -> list[RuntimeHandle]:
        """List every complete entry currently in the cache."""
        handles: list[RuntimeHandle] = []
        if not self.root.is_dir():
            return handles
        for marker in sorted(self.root.glob(f"*/*/*/{COMPLETION_MARKER}")):
            profile_dir = marker.parent
            try:
                profile = BuildProfile(profile_dir.name)
            except ValueError:
                continue
            handle = RuntimeHandle(
                version=profile_dir.parent.parent.name,
                platform=profile_dir.parent.name,
                profile=profile,
            )
            if is_supported(handle.platform) and self.is_complete(handle):
                handles.append(handle)
        return handles

    def purge(self, handle: RuntimeHandle) -> bool:
        entry = runtime_dir(self.root, handle)
        if not entry.exists():
            return False
        shutil.rmtree(entry)
        return True

    def _fetch(self, handle: RuntimeHandle, *, observer: ProgressObserver | None) -> None:
        info = require_platform(handle.platform)
        entry = runtime_dir(self.root, handle)
        entry.parent.mkdir(parents=True, exist_ok=True)
        url = download_url(self.settings.mirror_url, handle)
        prefix = f".{handle.profile.dir_name}-"

        fd, archive_name = tempfile.mkstemp(prefix=prefix, suffix=".zip.part", dir=entry.parent)
        os.close(fd)
        archive = Path(archive_name)
        staging = Path(tempfile.mkdtemp(prefix=prefix, suffix=".staging", dir=entry.parent))
        try:
            self.events.log(
                operation="runtime_download",
                stage=None,
                platform=handle.platform,
                profile=handle.profile.value,
                message=f"Starting download from {url}",
            )
            try:
                size = download(
                    url,
                    archive,
                    observer=observer,
                    timeout=self.settings.network_timeout,
                )
            except NetworkFailureError as exc:
                if exc.status == 404:
                    raise RuntimeNotFoundError(
                        handle.version,
                        context={"url": url, "platform": handle.platform},
                    ) from exc
                raise

            self.events.log(
                operation="runtime_extract",
                stage=None,
                platform=handle.platform,
                profile=handle.profile.value,
                message=f"Download finished ({size} bytes), extracting.",
            )
            extract_zip(archive, staging)
            library = staging / info.library_name
            if not library.is_file():
                raise ExtractionFailureError(
                    "Runtime archive does not contain the runtime library.",
                    context={"url": url, "library": info.library_name},
                )
            _write_marker(staging / COMPLETION_MARKER, handle=handle, library=library, url=url)
            self._publish(staging, entry, handle)
        finally:
            archive.unlink(missing_ok=True)
            if staging.exists():
                shutil.rmtree(staging, ignore_errors=True)

    def _publish(self, staging: Path, entry: Path, handle: RuntimeHandle) -> None:
        if entry.exists():
            if self.is_complete(handle):
                logger.debug("cache entry %s was published concurrently", entry)
                return
            shutil.rmtree(entry)
        try:
            os.replace(staging, entry)
        except OSError:
            if self.is_complete(handle):
                return
            raise


def _handle_payload(handle: RuntimeHandle) -> dict[str, str]:
    return {
        "version": handle.version,
        "platform": handle.platform,
        "profile": handle.profile.value,
    }


def _write_marker(path: Path, *, handle: RuntimeHandle, library: Path, url: str) -> None:
    manifest = {
        "handle": _handle_payload(handle),
        "url": url,
        "library": library.name,
        "library_sha256": _sha256_file(library),
    }
    path.write_text(json.dumps(manifest, indent=2, sort_keys=True) + "\n", encoding="utf-8")


def _sha256_file(path: Path) -> str:
    digest = hashlib.sha256()
    with path.open("rb") as handle:
        for chunk in iter(lambda: handle.read(1024 * 1024), b""):
            digest.update(chunk)
    return digest.hexdigest()
