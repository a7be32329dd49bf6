"""Platform probes that read raw per-process counters.

Each probe turns one OS accounting source into a ProcessSnapshot. CPU time
is always captured as a cumulative counter; the percentage is derived by the
sampler from two snapshots so that every platform is handled the same way.
"""

import sys
import time
from abc import ABC, abstractmethod
from collections.abc import Callable

import psutil
import structlog

from procrec import procfs
from procrec.exceptions import ProbeReadFailure, ProcessNotFound
from procrec.models import ProcessSnapshot

log = structlog.get_logger()

Clock = Callable[[], float]


class Probe(ABC):
    """Reads counters for a pid at the current instant."""

    name: str = ""

    def __init__(self, clock: Clock = time.monotonic):
        self._clock = clock
        self._start_times: dict[int, int] = {}

    @abstractmethod
    def capture(self, pid: int) -> ProcessSnapshot:
        """Capture a snapshot of the process.

        Raises:
            ProcessNotFound: The pid no longer refers to a live process.
            ProbeReadFailure: The counters exist but could not be read.
        """

    def _check_start(self, pid: int, start: int) -> None:
        """Remember a pid's start time; a different one means the pid was reused.

        Raises:
            ProcessNotFound: The original process behind pid has exited.
        """
        known = self._start_times.setdefault(pid, start)
        if known != start:
            log.info("pid_reused", pid=pid, probe=self.name)
            raise ProcessNotFound(pid)


class ProcfsProbe(Probe):
    """Linux probe reading /proc/<pid>/stat.

    Remembers each pid's start time so a recycled pid is reported as the
    original process having exited.
    """

    name = "procfs"

    def __init__(self, clock: Clock = time.monotonic, root=procfs.PROC_ROOT):
        super().__init__(clock)
        self._root = root
        self._ticks = procfs.clock_ticks()
        self._page_kb = procfs.page_size() // 1024

    def capture(self, pid: int) -> ProcessSnapshot:
        timestamp = self._clock()
        try:
            text = procfs.read_stat(pid, self._root)
        except (FileNotFoundError, ProcessLookupError) as e:
            raise ProcessNotFound(pid) from e
        except OSError as e:
            raise ProbeReadFailure(pid, "stat", e.strerror or str(e)) from e

        try:
            stat = procfs.parse_stat(text)
        except ValueError as e:
            raise ProbeReadFailure(pid, "stat", str(e)) from e

        if stat.exited:
            raise ProcessNotFound(pid)
        self._check_start(pid, stat.starttime)

        return ProcessSnapshot(
            pid=pid,
            timestamp=timestamp,
            cpu_time=(stat.utime + stat.stime) / self._ticks,
            rss_kb=stat.rss * self._page_kb,
            vsize_kb=stat.vsize // 1024,
            threads=stat.num_threads,
        )


class LibprocProbe(Probe):
    """macOS probe using proc_pidinfo.

    Task info supplies the counters; BSD info supplies the status and start
    time used to spot zombies and recycled pids.
    """

    name = "libproc"

    def __init__(self, clock: Clock = time.monotonic):
        super().__init__(clock)
        from procrec.libproc import get_timebase_info

        self._timebase = get_timebase_info()

    def capture(self, pid: int) -> ProcessSnapshot:
        from procrec.libproc import SZOMB, abs_to_ns, get_bsd_info, get_task_info, start_time

        timestamp = self._clock()
        counter = "bsd_info"
        try:
            bsd = get_bsd_info(pid)
            counter = "task_info"
            info = get_task_info(pid)
        except ProcessLookupError as e:
            raise ProcessNotFound(pid) from e
        except OSError as e:
            raise ProbeReadFailure(pid, counter, e.strerror or str(e)) from e

        if bsd.pbi_status == SZOMB:
            raise ProcessNotFound(pid)
        self._check_start(pid, start_time(bsd))

        cpu_ns = abs_to_ns(info.pti_total_user + info.pti_total_system, self._timebase)
        return ProcessSnapshot(
            pid=pid,
            timestamp=timestamp,
            cpu_time=cpu_ns / 1e9,
            rss_kb=info.pti_resident_size // 1024,
            vsize_kb=info.pti_virtual_size // 1024,
            threads=info.pti_threadnum,
        )


class PsutilProbe(Probe):
    """Portable probe backed by psutil.

    Thread count is left empty on platforms where psutil is denied access
    to it; every other counter failing is a read failure.
    """

    name = "psutil"

    def __init__(self, clock: Clock = time.monotonic):
        super().__init__(clock)
        self._processes: dict[int, psutil.Process] = {}

    def _process(self, pid: int) -> psutil.Process:
        proc = self._processes.get(pid)
        if proc is None:
            proc = psutil.Process(pid)
            self._processes[pid] = proc
        elif not proc.is_running():
            # is_running() also compares create time, so pid reuse lands here
            raise psutil.NoSuchProcess(pid)
        return proc

    def capture(self, pid: int) -> ProcessSnapshot:
        counter = "process"
        try:
            proc = self._process(pid)
            with proc.oneshot():
                timestamp = self._clock()
                counter = "status"
                if proc.status() == psutil.STATUS_ZOMBIE:
                    raise ProcessNotFound(pid)
                counter = "cpu_times"
                times = proc.cpu_times()
                counter = "memory_info"
                mem = proc.memory_info()
                counter = "num_threads"
                try:
                    threads: int | None = proc.num_threads()
                except psutil.AccessDenied:
                    threads = None
        except psutil.NoSuchProcess as e:
            raise ProcessNotFound(pid) from e
        except psutil.AccessDenied as e:
            raise ProbeReadFailure(pid, counter, "access denied") from e
        except psutil.Error as e:
            raise ProbeReadFailure(pid, counter, str(e)) from e

        return ProcessSnapshot(
            pid=pid,
            timestamp=timestamp,
            cpu_time=times.user + times.system,
            rss_kb=mem.rss // 1024,
            vsize_kb=mem.vms // 1024,
            threads=threads,
        )


PROBES: dict[str, type[Probe]] = {
    ProcfsProbe.name: ProcfsProbe,
    LibprocProbe.name: LibprocProbe,
    PsutilProbe.name: PsutilProbe,
}

PROBE_BACKENDS = ("auto", *PROBES)


def default_backend(platform: str | None = None) -> str:
    """Return the probe backend native to a platform (sys.platform style)."""
    platform = platform or sys.platform
    if platform.startswith("linux"):
        return ProcfsProbe.name
    if platform == "darwin":
        return LibprocProbe.name
    return PsutilProbe.name


def get_probe(backend: str = "auto", clock: Clock = time.monotonic) -> Probe:
    """Create the probe for a backend name.

    Raises:
        ValueError: If the backend name is unknown.
    """
    if backend == "auto":
        backend = default_backend()
    if backend not in PROBES:
        raise ValueError(f"Unknown probe backend: {backend!r}. Valid backends: {PROBE_BACKENDS}")
    return PROBES[backend](clock=clock)
