"""Shared test fixtures for procrec."""

import logging
from contextlib import ExitStack
from pathlib import Path
from typing import Iterator
from unittest.mock import patch

import pytest
import structlog

from procrec.config import Config
from procrec.exceptions import ProcessNotFound
from procrec.models import ProcessSnapshot, Sample
from procrec.probe import Probe
from procrec.sampler import CancelToken


class FakeClock:
    """Manually advanced monotonic clock."""

    def __init__(self, start: float = 0.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeToken(CancelToken):
    """CancelToken that advances a FakeClock instead of sleeping.

    With cancel_on_wait=n, the n-th wait is cut short by a simulated SIGINT,
    halfway through or after cancel_after seconds.
    """

    def __init__(
        self,
        clock: FakeClock,
        cancel_on_wait: int | None = None,
        cancel_after: float | None = None,
    ) -> None:
        super().__init__()
        self.clock = clock
        self.cancel_on_wait = cancel_on_wait
        self.cancel_after = cancel_after
        self.waits: list[float] = []

    def wait(self, timeout: float) -> bool:
        self.waits.append(timeout)
        if self.cancel_on_wait is not None and len(self.waits) == self.cancel_on_wait:
            self.clock.advance(timeout / 2 if self.cancel_after is None else self.cancel_after)
            self.cancel("SIGINT")
            return True
        self.clock.advance(timeout)
        return self.cancelled


class ScriptedProbe(Probe):
    """Probe replaying scripted cumulative CPU times.

    Once the script runs out the process is reported as exited. ``fail_at``
    replaces the capture with that index by ``failure``. ``latency`` is added
    to a FakeClock after each capture to simulate slow reads.
    """

    name = "scripted"

    def __init__(
        self,
        clock,
        cpu_times: list[float],
        *,
        rss_kb: int = 2048,
        vsize_kb: int = 8192,
        threads: int | None = 4,
        latency: float = 0.0,
        fail_at: int | None = None,
        failure: Exception | None = None,
    ) -> None:
        super().__init__(clock)
        self.cpu_times = list(cpu_times)
        self.rss_kb = rss_kb
        self.vsize_kb = vsize_kb
        self.threads = threads
        self.latency = latency
        self.fail_at = fail_at
        self.failure = failure
        self.calls = 0

    def capture(self, pid: int) -> ProcessSnapshot:
        index = self.calls
        self.calls += 1
        if self.fail_at is not None and index == self.fail_at:
            raise self.failure or RuntimeError("scripted failure")
        if index >= len(self.cpu_times):
            raise ProcessNotFound(pid)

        timestamp = self._clock()
        if self.latency:
            self._clock.advance(self.latency)
        return ProcessSnapshot(
            pid=pid,
            timestamp=timestamp,
            cpu_time=self.cpu_times[index],
            rss_kb=self.rss_kb + index,
            vsize_kb=self.vsize_kb,
            threads=self.threads,
        )


def make_snapshot(
    timestamp: float = 0.0,
    cpu_time: float = 0.0,
    pid: int = 4242,
    rss_kb: int = 2048,
    vsize_kb: int = 8192,
    threads: int | None = 4,
) -> ProcessSnapshot:
    """Create a ProcessSnapshot for testing."""
    return ProcessSnapshot(
        pid=pid,
        timestamp=timestamp,
        cpu_time=cpu_time,
        rss_kb=rss_kb,
        vsize_kb=vsize_kb,
        threads=threads,
    )


def make_sample(
    elapsed: float = 0.0,
    pid: int = 4242,
    cpu_percent: float = 12.5,
    rss_kb: int = 20480,
    vsize_kb: int = 409600,
    threads: int | None = 8,
) -> Sample:
    """Create a Sample for testing."""
    return Sample(
        elapsed=elapsed,
        pid=pid,
        cpu_percent=cpu_percent,
        rss_kb=rss_kb,
        vsize_kb=vsize_kb,
        threads=threads,
    )


@pytest.fixture
def clock() -> FakeClock:
    """A fake monotonic clock starting at 0."""
    return FakeClock()


@pytest.fixture
def patched_config_paths(tmp_path: Path) -> Iterator[Path]:
    """Point all Config directories at tmp_path.

    Yields the base path for tests that need to reference it directly.
    """
    with ExitStack() as stack:
        # fmt: off
        stack.enter_context(patch.object(
            Config, "config_dir",
            new_callable=lambda: property(lambda self: tmp_path / "config")
        ))
        stack.enter_context(patch.object(
            Config, "state_dir",
            new_callable=lambda: property(lambda self: tmp_path / "state")
        ))
        # fmt: on
        yield tmp_path


@pytest.fixture
def reset_logging() -> Iterator[None]:
    """Undo procrec.logging.configure() after the test."""
    yield
    root = logging.getLogger()
    for handler in root.handlers[:]:
        handler.close()
        root.removeHandler(handler)
    structlog.reset_defaults()
