"""Tests for the launchd load-state cache."""

from __future__ import annotations

import threading

from launchledger.discovery import LoadStateCache, parse_launchctl_list
from launchledger.exceptions import ExternalToolError

LISTING = (
    "PID\tStatus\tLabel\n"
    "123\t0\tcom.example.running\n"
    "-\t0\tcom.example.loaded\n"
    "malformed line\n"
)


class TestParse:
    def test_labels_extracted_and_header_skipped(self) -> None:
        assert parse_launchctl_list(LISTING) == {"com.example.running", "com.example.loaded"}

    def test_empty_output(self) -> None:
        assert parse_launchctl_list("") == set()


class TestCache:
    def test_default_fetcher_uses_launchctl(self, fake_runner, fake_clock) -> None:
        fake_runner.on("launchctl list", LISTING)
        cache = LoadStateCache(fake_runner, clock=fake_clock)
        assert cache.is_loaded("com.example.loaded")
        assert not cache.is_loaded("com.example.absent")
        assert cache.refresh_count == 1

    def test_fresh_cache_is_reused(self, fake_clock) -> None:
        cache = LoadStateCache(fetcher=lambda: {"a"}, staleness=5.0, clock=fake_clock)
        cache.loaded_labels()
        fake_clock.advance(5.0)
        cache.loaded_labels()
        assert cache.refresh_count == 1

    def test_stale_cache_refreshes_wholesale(self, fake_clock) -> None:
        answers = iter([{"a"}, {"b"}])
        cache = LoadStateCache(fetcher=lambda: next(answers), staleness=5.0, clock=fake_clock)
        assert cache.loaded_labels() == {"a"}
        fake_clock.advance(5.1)
        assert cache.loaded_labels() == {"b"}
        assert cache.refresh_count == 2
        assert cache.fetched_at == fake_clock.now

    def test_invalidate_forces_refresh(self, fake_clock) -> None:
        cache = LoadStateCache(fetcher=lambda: {"a"}, clock=fake_clock)
        cache.loaded_labels()
        cache.invalidate()
        cache.loaded_labels()
        assert cache.refresh_count == 2

    def test_failure_yields_empty_set(self, fake_runner, fake_clock) -> None:
        cache = LoadStateCache(fake_runner, clock=fake_clock)
        assert cache.loaded_labels() == frozenset()
        assert cache.last_error is not None
        assert "not found" in cache.last_error

    def test_unexpected_fetcher_error_yields_empty_set(self, fake_clock) -> None:
        def undecodable() -> set[str]:
            raise UnicodeDecodeError("utf-8", b"com.\xffbad", 4, 5, "invalid start byte")

        cache = LoadStateCache(fetcher=undecodable, clock=fake_clock)
        assert cache.loaded_labels() == frozenset()
        assert cache.last_error.startswith("UnicodeDecodeError")
        assert cache.fetched_at == fake_clock.now
        assert not cache.is_loaded("com.example.loaded")
        assert cache.refresh_count == 1

    def test_recovery_clears_error(self, fake_clock) -> None:
        calls = {"n": 0}

        def flaky() -> set[str]:
            calls["n"] += 1
            if calls["n"] == 1:
                raise ExternalToolError(["launchctl"], "boom")
            return {"a"}

        cache = LoadStateCache(fetcher=flaky, clock=fake_clock)
        cache.loaded_labels()
        cache.invalidate()
        assert cache.loaded_labels() == {"a"}
        assert cache.last_error is None


class TestSingleFlight:
    def test_concurrent_lookups_share_one_refresh(self, fake_clock) -> None:
        release = threading.Event()
        started = threading.Event()

        def slow() -> set[str]:
            started.set()
            release.wait(timeout=5)
            return {"a"}

        cache = LoadStateCache(fetcher=slow, clock=fake_clock)
        results: list[bool] = []
        threads = [threading.Thread(target=lambda: results.append(cache.is_loaded("a"))) for _ in range(4)]
        for thread in threads:
            thread.start()
        started.wait(timeout=5)
        release.set()
        for thread in threads:
            thread.join(timeout=5)
        assert results == [True] * 4
        assert cache.refresh_count == 1
