"""Snapshot and sample records shared by the probe, sampler and emitter."""

from dataclasses import dataclass


@dataclass(frozen=True)
class ProcessSnapshot:
    """Raw counters for one process at one instant.

    Platforms without a thread counter leave ``threads`` as None; every
    other field is always populated.
    """

    pid: int
    timestamp: float  # Monotonic clock reading (seconds)
    cpu_time: float  # Cumulative user + system CPU seconds
    rss_kb: int
    vsize_kb: int
    threads: int | None = None


@dataclass(frozen=True)
class Sample:
    """One emitted point of the recording."""

    elapsed: float  # Seconds since the first sample
    pid: int
    cpu_percent: float  # Percent of one core, may exceed 100
    rss_kb: int
    vsize_kb: int
    threads: int | None = None

    def to_dict(self) -> dict:
        """Serialize to a dictionary."""
        return {
            "elapsed": self.elapsed,
            "pid": self.pid,
            "cpu_percent": self.cpu_percent,
            "rss_kb": self.rss_kb,
            "vsize_kb": self.vsize_kb,
            "threads": self.threads,
        }
