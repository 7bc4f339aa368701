"""Streaming download with progress reporting from a background worker."""

from __future__ import annotations

import queue
import threading
from collections.abc import Callable
from dataclasses import dataclass
from http.client import HTTPException
from pathlib import Path
from urllib.error import HTTPError, URLError
from urllib.request import Request, urlopen

from runtimekit.errors import NetworkFailureError, RuntimeKitError

ProgressObserver = Callable[[int, int], None]

CHUNK_SIZE = 64 * 1024
QUEUE_SIZE = 32
USER_AGENT = "runtimekit"
DRAIN_INTERVAL = 0.1


@dataclass(frozen=True, slots=True)
class _Progress:
    total: int
    done: int


@dataclass(frozen=True, slots=True)
class _Finished:
    error: BaseException | None = None


def download(
    url: str,
    destination: Path,
    *,
    observer: ProgressObserver | None = None,
    timeout: float | None = None,
) -> int:
    """Download *url* into *destination* and return the number of bytes written.

    The transfer runs on a worker thread that pushes ``(total, done)`` events
    through a bounded queue; the calling thread blocks on that queue until the
    worker reports completion or failure. ``done`` never decreases. ``total``
    is 0 when the server does not announce a length.

    A body shorter than the announced length is a ``NetworkFailureError``.
    If *observer* raises, the worker is cancelled and joined before the
    error propagates.
    """
    events: queue.Queue[_Progress | _Finished] = queue.Queue(maxsize=QUEUE_SIZE)
    cancelled = threading.Event()
    worker = threading.Thread(
        target=_transfer,
        args=(url, destination, events, cancelled, timeout),
        name="runtimekit-download",
        daemon=True,
    )
    worker.start()

    last_done = 0
    try:
        while True:
            event = events.get()
            if isinstance(event, _Finished):
                worker.join()
                if event.error is not None:
                    raise _translate(url, event.error)
                return last_done
            if event.done >= last_done:
                last_done = event.done
                if observer is not None:
                    observer(event.total, event.done)
    finally:
        if worker.is_alive():
            cancelled.set()
            _drain(events, worker)


def _transfer(
    url: str,
    destination: Path,
    events: queue.Queue[_Progress | _Finished],
    cancelled: threading.Event,
    timeout: float | None,
) -> None:
    try:
        request = Request(url, headers={"User-Agent": USER_AGENT})
        with urlopen(request, timeout=timeout) as response:  # noqa: S310 - mirror URL is configured
            total = int(response.headers.get("Content-Length") or 0)
            done = 0
            events.put(_Progress(total=total, done=done))
            with destination.open("wb") as handle:
                for chunk in iter(lambda: response.read(CHUNK_SIZE), b""):
                    if cancelled.is_set():
                        return
                    handle.write(chunk)
                    done += len(chunk)
                    events.put(_Progress(total=total, done=done))
            if total > 0 and done != total:
                raise NetworkFailureError(
                    "Download truncated before the announced length was received.",
                    hint="Retry the build; the mirror closed the connection early.",
                    context={"url": url, "expected": str(total), "received": str(done)},
                )
    except Exception as exc:  # noqa: BLE001 - handed back to the calling thread
        events.put(_Finished(error=exc))
        return
    events.put(_Finished())


def _drain(events: queue.Queue[_Progress | _Finished], worker: threading.Thread) -> None:
    # Keep the queue moving so a worker blocked on put() can see the cancel flag.
    while worker.is_alive():
        try:
            events.get(timeout=DRAIN_INTERVAL)
        except queue.Empty:
            continue
    worker.join()


def _translate(url: str, error: BaseException) -> BaseException:
    if isinstance(error, RuntimeKitError):
        return error
    if isinstance(error, HTTPError):
        return NetworkFailureError(
            f"Download failed with HTTP status {error.code}.",
            status=error.code,
            context={"url": url},
        )
    if isinstance(error, URLError):
        # file:// URLs report a missing file as URLError(FileNotFoundError).
        status = 404 if isinstance(error.reason, FileNotFoundError) else None
        return NetworkFailureError(
            f"Download failed: {error.reason}",
            status=status,
            hint="Check your network connection or RUNTIMEKIT_MIRROR_URL.",
            context={"url": url},
        )
    if isinstance(error, (TimeoutError, ConnectionError)):
        return NetworkFailureError(
            f"Download failed: {error}",
            hint="Check your network connection or raise RUNTIMEKIT_NETWORK_TIMEOUT.",
            context={"url": url},
        )
    if isinstance(error, (OSError, HTTPException)):
        return NetworkFailureError(
            f"Download failed: {error!r}",
            hint="Check your network connection, RUNTIMEKIT_MIRROR_URL and free disk space.",
            context={"url": url},
        )
    return error
