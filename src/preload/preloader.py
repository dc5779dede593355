"""Warm the proxy cache by touching every gem of an index snapshot."""
from __future__ import annotations

import logging
import sys
import threading
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import IO, List, Optional, Sequence

from constants import Constants
from registry.models import IndexEntry

from .specs import GemSpecs

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PreloadWindow:
    """Slice of the index to preload: drop ``skip`` entries, then keep ``limit``."""

    skip: int = 0
    limit: Optional[int] = None

    def __post_init__(self) -> None:
        if self.skip < 0:
            raise ValueError("skip must be non-negative")
        if self.limit is not None and self.limit < 0:
            raise ValueError("limit must be non-negative")

    def apply(self, entries: Sequence[IndexEntry]) -> List[IndexEntry]:
        selected = list(entries[self.skip:])
        if self.limit is not None:
            selected = selected[:self.limit]
        return selected


class ProgressCounter:
    """Completed-task counter that writes ``\\r<count>/<total>`` on every step.

    Incrementing and writing happen under one lock so the emitted counts are
    exactly ``start + 1`` .. ``start + n`` in increasing order.
    """

    def __init__(self, total: int, out: IO[str], start: int = 0):
        self._total = total
        self._out = out
        self._count = start
        self._lock = threading.Lock()

    @property
    def value(self) -> int:
        with self._lock:
            return self._count

    def increment(self) -> int:
        with self._lock:
            self._count += 1
            self._out.write(f"\r{self._count}/{self._total}")
            self._out.flush()
            return self._count


@dataclass
class PreloadResult:
    """Summary of one preload run."""

    total: int
    attempted: int = 0
    failed: List[str] = field(default_factory=list)

    @property
    def succeeded(self) -> int:
        return self.attempted - len(self.failed)


class GemPreloader:
    """Touches ``gems/<name>-<version>.gem`` on the proxy for every index entry.

    Each touch is a HEAD request; serving it makes the proxy fetch and store
    the gem. Failed touches are logged and counted, never raised.
    """

    def __init__(
        self,
        http_client,
        window: Optional[PreloadWindow] = None,
        threads: Optional[int] = None,
        out: Optional[IO[str]] = None,
        specs=None,
        latest: bool = False,
    ):
        """Initialize the preloader.

        Args:
            http_client: Object providing ``get`` and ``head_exists`` bound to the proxy.
            window: Skip/limit applied to the index; defaults to the whole index.
            threads: Worker count; defaults to Constants.PRELOAD_THREADS.
            out: Progress sink; defaults to stdout.
            specs: Object with ``fetch() -> list[IndexEntry]``; defaults to the
                full (or latest, see ``latest``) snapshot from ``http_client``.
            latest: Preload only the latest version of every gem.
        """
        self._http_client = http_client
        self._window = window or PreloadWindow()
        self._threads = threads if threads is not None else Constants.PRELOAD_THREADS
        if self._threads < 1:
            raise ValueError("threads must be at least 1")
        self._out = out if out is not None else sys.stdout
        self._specs = specs if specs is not None else GemSpecs(http_client, latest=latest)

    def preload(self) -> PreloadResult:
        """Touch every gem in the window and return once all touches finished.

        Raises:
            TransportError: If the index snapshot cannot be downloaded.
            SpecsDecodeError: If the index snapshot is malformed.
        """
        entries = self._specs.fetch()
        selected = self._window.apply(entries)
        result = PreloadResult(total=len(selected))
        if not selected:
            logger.info("Nothing to preload (index has %d gems)", len(entries))
            return result

        progress = ProgressCounter(len(entries), self._out, start=self._window.skip)
        failed_lock = threading.Lock()

        def touch(entry: IndexEntry) -> None:
            try:
                if not self._http_client.head_exists(entry.gem_path):
                    logger.warning("Preload of %s returned a non-success status", entry)
                    with failed_lock:
                        result.failed.append(str(entry))
            except Exception as exc:  # pylint: disable=broad-exception-caught
                logger.warning("Preload of %s failed: %s", entry, exc)
                with failed_lock:
                    result.failed.append(str(entry))
            finally:
                progress.increment()

        logger.info("Preloading %d of %d gems with %d threads", len(selected), len(entries), self._threads)
        with ThreadPoolExecutor(max_workers=self._threads) as executor:
            futures = [executor.submit(touch, entry) for entry in selected]
            for future in futures:
                future.result()

        result.attempted = len(selected)
        return result
