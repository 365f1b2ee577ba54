"""Tests for everyday_magic.core.rate_limiter: sliding-window limiting.

Tests cover:
- Admission up to the limit and rejection beyond it.
- Window expiry.
- Rejected requests leaving no trace.
- Per-client isolation and shared windows.
- Client identifier derivation from headers.
"""

from __future__ import annotations

import threading

import pytest

from everyday_magic.core.rate_limiter import (
    UNKNOWN_CLIENT,
    RateLimiter,
    RateWindow,
    client_id_from_headers,
)


class TestAdmission:
    """Verify the core admit() contract."""

    @pytest.mark.parametrize("limit", [1, 3, 5])
    def test_limit_plus_one_rejected(self, limit):
        """After N admitted calls the (N+1)-th inside the window is rejected."""
        limiter = RateLimiter(window_ms=60_000, max_requests=limit)
        for i in range(limit):
            assert limiter.admit("client", now=1_000 + i) is True
        assert limiter.admit("client", now=1_000 + limit) is False

    def test_admitted_after_window_elapses(self):
        """A call made just after the window of the first call is admitted."""
        limiter = RateLimiter(window_ms=60_000, max_requests=3)
        for t in (0, 10, 20):
            assert limiter.admit("client", now=t)
        assert limiter.admit("client", now=59_999) is False
        assert limiter.admit("client", now=60_001) is True

    def test_timestamp_exactly_window_old_is_purged(self):
        """A timestamp exactly window_ms old no longer counts."""
        limiter = RateLimiter(window_ms=1_000, max_requests=1)
        assert limiter.admit("client", now=0)
        assert limiter.admit("client", now=1_000)

    def test_rejected_request_not_recorded(self):
        """The 4th request with limit 3 leaves the 3 prior timestamps unchanged."""
        window = RateWindow()
        limiter = RateLimiter(window_ms=60_000, max_requests=3, window=window)
        for t in (100, 200, 300):
            limiter.admit("client", now=t)

        assert limiter.admit("client", now=400) is False
        assert window.timestamps("client") == [100, 200, 300]

    def test_expired_entries_purged_on_check(self):
        """Old timestamps are dropped before each admission check."""
        window = RateWindow()
        limiter = RateLimiter(window_ms=1_000, max_requests=5, window=window)
        limiter.admit("client", now=0)
        limiter.admit("client", now=500)
        limiter.admit("client", now=1_200)
        assert window.timestamps("client") == [500, 1_200]

    def test_clients_are_isolated(self):
        """One client's usage does not affect another's."""
        limiter = RateLimiter(window_ms=60_000, max_requests=1)
        assert limiter.admit("a", now=0)
        assert limiter.admit("a", now=1) is False
        assert limiter.admit("b", now=2) is True

    def test_uses_injected_clock(self, fake_clock):
        """Without an explicit ``now`` the limiter reads its clock."""
        limiter = RateLimiter(window_ms=1_000, max_requests=1, clock=fake_clock)
        assert limiter.admit("client")
        assert limiter.admit("client") is False
        fake_clock.advance(1_000)
        assert limiter.admit("client")

    def test_remaining(self):
        """remaining() reports unused slots without recording anything."""
        limiter = RateLimiter(window_ms=1_000, max_requests=3)
        assert limiter.remaining("client", now=0) == 3
        limiter.admit("client", now=0)
        assert limiter.remaining("client", now=10) == 2
        assert limiter.remaining("client", now=1_000) == 3
        assert limiter.window.timestamps("client") == [0]

    @pytest.mark.parametrize("window_ms, max_requests", [(0, 1), (1_000, 0), (-5, 3)])
    def test_invalid_parameters(self, window_ms, max_requests):
        """Non-positive window or limit is rejected at construction."""
        with pytest.raises(ValueError):
            RateLimiter(window_ms=window_ms, max_requests=max_requests)


class TestRateWindow:
    """Verify the state object."""

    def test_lazy_creation(self):
        """Clients appear only after their first request."""
        window = RateWindow()
        limiter = RateLimiter(window_ms=1_000, max_requests=2, window=window)
        assert len(window) == 0
        assert window.timestamps("new") == []
        limiter.admit("new", now=0)
        assert window.clients() == ["new"]

    def test_timestamps_returns_copy(self):
        """Mutating the returned list does not affect the window."""
        window = RateWindow()
        RateLimiter(window_ms=1_000, max_requests=2, window=window).admit("c", now=0)
        window.timestamps("c").append(99)
        assert window.timestamps("c") == [0]

    def test_concurrent_admission_respects_limit(self):
        """Concurrent callers never exceed the limit for one client."""
        limiter = RateLimiter(window_ms=60_000, max_requests=5)
        results: list[bool] = []
        lock = threading.Lock()

        def worker():
            allowed = limiter.admit("shared", now=1_000)
            with lock:
                results.append(allowed)

        threads = [threading.Thread(target=worker) for _ in range(50)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert results.count(True) == 5
        assert len(limiter.window.timestamps("shared")) == 5

    def test_idle_clients_swept(self):
        """Clients idle for a whole window are forgotten on a later check."""
        window = RateWindow()
        limiter = RateLimiter(window_ms=1_000, max_requests=2, window=window)
        for n in range(50):
            limiter.admit(f"spoofed-{n}", now=n)
        assert len(window) == 50

        limiter.admit("late", now=2_000)
        assert window.clients() == ["late"]

    def test_active_clients_survive_sweep(self):
        window = RateWindow()
        limiter = RateLimiter(window_ms=1_000, max_requests=2, window=window)
        limiter.admit("idle", now=0)
        limiter.admit("busy", now=900)
        limiter.admit("other", now=1_500)
        assert sorted(window.clients()) == ["busy", "other"]
        assert window.timestamps("busy") == [900]


class TestClientIdFromHeaders:
    """Verify client identifier derivation."""

    def test_uses_forwarded_header(self):
        assert client_id_from_headers({"x-forwarded-for": "203.0.113.7"}) == "203.0.113.7"

    def test_missing_header_is_unknown(self):
        """Requests without the header share the 'unknown' bucket."""
        assert client_id_from_headers({}) == UNKNOWN_CLIENT

    def test_blank_header_is_unknown(self):
        assert client_id_from_headers({"x-forwarded-for": "  "}) == UNKNOWN_CLIENT

    def test_custom_header_name(self):
        headers = {"x-real-ip": "10.0.0.2"}
        assert client_id_from_headers(headers, "x-real-ip") == "10.0.0.2"

    def test_full_value_kept(self):
        """A proxy chain is used verbatim as the identifier."""
        value = "203.0.113.7, 10.0.0.1"
        assert client_id_from_headers({"x-forwarded-for": value}) == value
