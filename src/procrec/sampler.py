"""Fixed-cadence sampling loop for a single process."""

import math
import signal
import time
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass
from enum import Enum

import structlog

from procrec.emitter import Emitter
from procrec.exceptions import ProcessNotFound
from procrec.models import ProcessSnapshot, Sample
from procrec.probe import Clock, Probe

log = structlog.get_logger()


class SamplerState(Enum):
    """Lifecycle of a Sampler run."""

    INITIALIZING = "initializing"
    SAMPLING = "sampling"
    DRAINING = "draining"
    TERMINATED = "terminated"


class StopReason(Enum):
    """Why a run ended. None of these is an error."""

    PROCESS_EXITED = "process_exited"
    DURATION_ELAPSED = "duration_elapsed"
    INTERRUPTED = "interrupted"


class CancelToken:
    """Cooperative stop request, checked by the sampler between ticks.

    cancel() only flips a flag, so it is safe to call from a signal handler.
    wait() sleeps in short slices and returns early once cancelled.
    """

    poll_interval: float = 0.1

    def __init__(self) -> None:
        self._cancelled = False
        self.reason: str | None = None

    @property
    def cancelled(self) -> bool:
        """True once cancel() has been called."""
        return self._cancelled

    def cancel(self, reason: str = "cancelled") -> None:
        """Request a stop. The first reason given is kept."""
        if not self._cancelled:
            self.reason = reason
        self._cancelled = True

    def wait(self, timeout: float) -> bool:
        """Sleep up to timeout seconds. Returns True if cancelled."""
        deadline = time.monotonic() + timeout
        while not self._cancelled:
            remaining = deadline - time.monotonic()
            if remaining <= 0:
                break
            time.sleep(min(remaining, self.poll_interval))
        return self._cancelled


@contextmanager
def handle_signals(
    token: CancelToken,
    signals: tuple[signal.Signals, ...] = (signal.SIGINT, signal.SIGTERM),
) -> Iterator[None]:
    """Route termination signals to a CancelToken for the duration of the block."""

    def handler(signum: int, frame: object) -> None:
        token.cancel(signal.Signals(signum).name)

    previous = {sig: signal.signal(sig, handler) for sig in signals}
    try:
        yield
    finally:
        for sig, prev in previous.items():
            signal.signal(sig, prev)


def cpu_percent(prev: ProcessSnapshot, curr: ProcessSnapshot) -> float:
    """Average CPU use between two snapshots, as a percentage of one core.

    Multi-threaded processes can exceed 100. A counter that went backwards
    or a non-positive time delta gives 0.

    Raises:
        ValueError: If the snapshots belong to different pids.
    """
    if prev.pid != curr.pid:
        raise ValueError(f"Snapshots are for different processes: {prev.pid} != {curr.pid}")
    wall = curr.timestamp - prev.timestamp
    if wall <= 0:
        return 0.0
    return max(0.0, 100.0 * (curr.cpu_time - prev.cpu_time) / wall)


@dataclass(frozen=True)
class RunSummary:
    """Outcome of Sampler.run()."""

    pid: int
    reason: StopReason
    samples: int
    elapsed: float  # Elapsed time of the last sample, 0.0 without samples


class Sampler:
    """Samples one process on a fixed cadence and hands samples to an Emitter.

    The first capture is a baseline that is never emitted; every later
    capture is diffed against the one before it. Tick n is due at
    ``start + n * interval`` so probe latency never accumulates into drift.

    The run ends when the process exits, when the last sample's elapsed time
    reaches ``duration``, or when the token is cancelled. A cancelled run
    takes one more capture so the output ends on a complete sample.
    """

    def __init__(
        self,
        probe: Probe,
        emitter: Emitter,
        pid: int,
        interval: float = 2.0,
        duration: float | None = None,
        *,
        token: CancelToken | None = None,
        clock: Clock = time.monotonic,
    ):
        if interval <= 0:
            raise ValueError(f"interval must be > 0, got {interval}")
        if duration is not None and duration <= 0:
            raise ValueError(f"duration must be > 0, got {duration}")

        self.probe = probe
        self.emitter = emitter
        self.pid = pid
        self.interval = interval
        self.duration = duration
        self.state = SamplerState.INITIALIZING

        self._token = token or CancelToken()
        self._clock = clock
        self._prev: ProcessSnapshot | None = None  # Only the latest snapshot is kept
        self._first_timestamp: float | None = None
        self._elapsed = 0.0
        self._count = 0

    def run(self) -> RunSummary:
        """Sample until a stop condition is met.

        Raises:
            ProcessNotFound: The process does not exist at startup.
            ProbeReadFailure: Counters could not be read; the run is aborted.
        """
        self.state = SamplerState.INITIALIZING
        try:
            self._prev = self.probe.capture(self.pid)
            start = self._clock()
            log.info(
                "sampling_started",
                pid=self.pid,
                probe=self.probe.name,
                interval=self.interval,
                duration=self.duration,
            )

            self.state = SamplerState.SAMPLING
            reason, final_capture = self._sample(start)

            self.state = SamplerState.DRAINING
            if final_capture:
                self._drain()
        finally:
            self.state = SamplerState.TERMINATED

        log.info(
            "sampling_stopped",
            pid=self.pid,
            reason=reason.value,
            samples=self._count,
            elapsed=round(self._elapsed, 2),
        )
        return RunSummary(
            pid=self.pid,
            reason=reason,
            samples=self._count,
            elapsed=self._elapsed,
        )

    def _sample(self, start: float) -> tuple[StopReason, bool]:
        """Tick loop. Returns the stop reason and whether to take a final capture."""
        tick = 0
        while True:
            tick += 1
            now = self._clock()
            due = start + tick * self.interval
            if now > due:
                next_tick = math.floor((now - start) / self.interval) + 1
                log.warning("ticks_skipped", pid=self.pid, skipped=next_tick - tick)
                tick = next_tick
                due = start + tick * self.interval

            if self._token.wait(max(0.0, due - now)):
                log.info("sampling_interrupted", pid=self.pid, reason=self._token.reason)
                return StopReason.INTERRUPTED, True

            try:
                snapshot = self.probe.capture(self.pid)
            except ProcessNotFound:
                if self._count == 0:
                    log.warning("process_exited_before_first_sample", pid=self.pid)
                else:
                    log.info("process_exited", pid=self.pid)
                return StopReason.PROCESS_EXITED, False

            self._emit(snapshot)

            if self.duration is not None and self._elapsed >= self.duration:
                return StopReason.DURATION_ELAPSED, False
            if self._token.cancelled:
                # The sample just emitted is already the final one
                log.info("sampling_interrupted", pid=self.pid, reason=self._token.reason)
                return StopReason.INTERRUPTED, False

    def _drain(self) -> None:
        """Emit one last off-cadence sample, if the process is still there.

        The capture is dropped when its window is shorter than a tenth of the
        interval, or when it would print the same elapsed value as the last
        sample. CPU% over such a window is dominated by counter granularity.
        """
        try:
            snapshot = self.probe.capture(self.pid)
        except ProcessNotFound:
            log.info("process_exited", pid=self.pid)
            return
        assert self._prev is not None
        window = snapshot.timestamp - self._prev.timestamp
        if window < self.interval / 10:
            log.info("final_sample_skipped", pid=self.pid, window=round(window, 4))
            return
        if self._first_timestamp is not None:
            elapsed = snapshot.timestamp - self._first_timestamp
            if f"{elapsed:.2f}" == f"{self._elapsed:.2f}":
                log.info("final_sample_skipped", pid=self.pid, window=round(window, 4))
                return
        self._emit(snapshot)

    def _emit(self, snapshot: ProcessSnapshot) -> None:
        assert self._prev is not None
        if self._first_timestamp is None:
            self._first_timestamp = snapshot.timestamp
        elapsed = snapshot.timestamp - self._first_timestamp

        sample = Sample(
            elapsed=elapsed,
            pid=self.pid,
            cpu_percent=cpu_percent(self._prev, snapshot),
            rss_kb=snapshot.rss_kb,
            vsize_kb=snapshot.vsize_kb,
            threads=snapshot.threads,
        )
        self._prev = snapshot
        self._elapsed = elapsed
        self._count += 1
        self.emitter.emit(sample)
