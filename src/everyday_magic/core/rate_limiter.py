"""Sliding-window request limiter keyed by client identifier.

Each endpoint owns one :class:`RateLimiter`.  The limiter keeps, per client,
the timestamps (integer milliseconds) of every request it admitted within
the current window.  On each admission check, timestamps older than the
window are purged first; the request is admitted only if fewer than
``max_requests`` remain, and only admitted requests are recorded.

State lives in an explicit :class:`RateWindow` object rather than a module
global, so tests can build an isolated limiter with a synthetic clock::

    window = RateWindow()
    limiter = RateLimiter(window_ms=60_000, max_requests=3, window=window)
    limiter.admit("10.0.0.1", now=1_000)

Known Limitations
-----------------
- The window is process-local.  With several workers or instances each one
  counts separately, so the effective limit scales with the process count.
- Clients that send no forwarding header all share the ``"unknown"`` bucket
  (see :func:`client_id_from_headers`), so anonymous callers throttle each
  other.
- The client identifier comes from a header the caller controls, so the
  number of tracked clients is unbounded within one window.  Clients with
  no timestamp left in the window are swept at most once per window
  (see :meth:`RateWindow.sweep`), which bounds memory to the clients seen
  in roughly the last two windows.
"""

from __future__ import annotations

import logging
import threading
import time
from collections.abc import Callable, Mapping

logger = logging.getLogger(__name__)

#: Client identifier used when the request carries no forwarding header.
UNKNOWN_CLIENT = "unknown"


def _now_ms() -> int:
    return int(time.time() * 1000)


def client_id_from_headers(headers: Mapping[str, str], header_name: str = "x-forwarded-for") -> str:
    """Derive the rate-limit client identifier from request headers.

    The full header value is used as-is.  When the header is absent or empty
    every such request collapses into the shared ``"unknown"`` bucket.

    Args:
        headers: Request headers (case-insensitive mapping, e.g. Starlette's
            ``Headers``).
        header_name: Name of the forwarding header to read.

    Returns:
        The client identifier.
    """
    value = headers.get(header_name)
    if not value or not value.strip():
        return UNKNOWN_CLIENT
    return value.strip()


class RateWindow:
    """Per-client log of admitted request timestamps.

    Entries are created lazily on a client's first request and removed by
    :meth:`sweep` once none of their timestamps is inside the window.
    The lock makes the read-filter-check-append sequence in
    :meth:`RateLimiter.admit` atomic across threads.
    """

    def __init__(self) -> None:
        self.entries: dict[str, list[int]] = {}
        self.lock = threading.Lock()

    def timestamps(self, client_id: str) -> list[int]:
        """Return a copy of the recorded timestamps for *client_id*."""
        with self.lock:
            return list(self.entries.get(client_id, []))

    def clients(self) -> list[str]:
        """Return every client identifier seen so far."""
        with self.lock:
            return list(self.entries)

    def __len__(self) -> int:
        with self.lock:
            return len(self.entries)

    def sweep(self, now: int, window_ms: int) -> int:
        """Drop clients with no timestamp inside the window.

        The caller must hold :attr:`lock`.

        Returns:
            Number of clients removed.
        """
        idle = [
            client_id
            for client_id, stamps in self.entries.items()
            if not stamps or now - max(stamps) >= window_ms
        ]
        for client_id in idle:
            del self.entries[client_id]
        return len(idle)


class RateLimiter:
    """Cap requests per client within a sliding time window.

    Attributes:
        window_ms: Window length in milliseconds.
        max_requests: Maximum admitted requests per client per window.
        window: The :class:`RateWindow` holding per-client timestamps.
    """

    def __init__(
        self,
        window_ms: int,
        max_requests: int,
        window: RateWindow | None = None,
        clock: Callable[[], int] = _now_ms,
    ) -> None:
        if window_ms <= 0:
            raise ValueError("window_ms must be positive")
        if max_requests <= 0:
            raise ValueError("max_requests must be positive")
        self.window_ms = window_ms
        self.max_requests = max_requests
        self.window = window if window is not None else RateWindow()
        self._clock = clock
        self._last_sweep: int | None = None

    def admit(self, client_id: str, now: int | None = None) -> bool:
        """Check and record a request from *client_id*.

        Args:
            client_id: Identifier of the calling client.
            now: Current time in milliseconds.  Defaults to the limiter's
                clock.

        Returns:
            ``True`` if the request is admitted (and recorded), ``False`` if
            the client has used up its window.  Rejected requests are not
            recorded.
        """
        if now is None:
            now = self._clock()

        with self.window.lock:
            self._maybe_sweep(now)
            recent = [
                ts for ts in self.window.entries.get(client_id, []) if now - ts < self.window_ms
            ]
            if len(recent) >= self.max_requests:
                self.window.entries[client_id] = recent
                logger.warning(
                    "Rate limit exceeded for client '%s' (%d/%d in %d ms).",
                    client_id,
                    len(recent),
                    self.max_requests,
                    self.window_ms,
                )
                return False
            recent.append(now)
            self.window.entries[client_id] = recent
            return True

    def _maybe_sweep(self, now: int) -> None:
        if self._last_sweep is None:
            self._last_sweep = now
            return
        if now - self._last_sweep < self.window_ms:
            return
        self._last_sweep = now
        removed = self.window.sweep(now, self.window_ms)
        if removed:
            logger.debug("Swept %d idle rate-limit clients.", removed)

    def remaining(self, client_id: str, now: int | None = None) -> int:
        """Return how many more requests *client_id* may make right now."""
        if now is None:
            now = self._clock()
        active = [ts for ts in self.window.timestamps(client_id) if now - ts < self.window_ms]
        return max(self.max_requests - len(active), 0)
