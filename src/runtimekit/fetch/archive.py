"""Zip archive extraction for runtime distributions."""

from __future__ import annotations

import logging
import os
import stat
import zipfile
import zlib
from pathlib import Path

from runtimekit.errors import ExtractionFailureError

logger = logging.getLogger(__name__)


def extract_zip(archive: Path, destination: Path) -> list[Path]:
    """Extract *archive* into *destination* and return the extracted file paths.

    Members that would escape *destination* are rejected. Unix permission bits
    recorded in the archive are restored so bundled executables stay runnable.
    """
    destination.mkdir(parents=True, exist_ok=True)
    root = destination.resolve()
    extracted: list[Path] = []
    try:
        with zipfile.ZipFile(archive) as bundle:
            corrupt = bundle.testzip()
            if corrupt is not None:
                raise ExtractionFailureError(
                    "Runtime archive has a corrupt member.",
                    context={"archive": str(archive), "member": corrupt},
                )
            for member in bundle.infolist():
                target = (destination / member.filename).resolve()
                if not target.is_relative_to(root):
                    raise ExtractionFailureError(
                        "Runtime archive member escapes the extraction directory.",
                        context={"archive": str(archive), "member": member.filename},
                    )
                if member.is_dir():
                    target.mkdir(parents=True, exist_ok=True)
                    continue
                target.parent.mkdir(parents=True, exist_ok=True)
                with bundle.open(member) as source, target.open("wb") as sink:
                    for chunk in iter(lambda: source.read(1024 * 1024), b""):
                        sink.write(chunk)
                _restore_mode(member, target)
                logger.debug("extracted %s (%d bytes)", target, member.file_size)
                extracted.append(target)
    except (zipfile.BadZipFile, zlib.error, EOFError) as exc:
        raise ExtractionFailureError(
            "Runtime archive is not a valid zip file.",
            hint="The download may be truncated; run the build again to refetch it.",
            context={"archive": str(archive)},
        ) from exc
    return extracted


def _restore_mode(member: zipfile.ZipInfo, target: Path) -> None:
    if os.name != "posix":
        return
    mode = (member.external_attr >> 16) & 0o7777
    if mode and stat.S_IFMT(member.external_attr >> 16) in (0, stat.S_IFREG):
        target.chmod(mode)
