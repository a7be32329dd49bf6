"""Low-level /proc interface for Linux process metrics.

Reads /proc/<pid>/stat directly - one open() per sample, no subprocess.

Only the fields procrec needs are decoded:
- utime, stime: CPU time in clock ticks (SC_CLK_TCK)
- num_threads: thread count
- vsize: virtual memory in bytes
- rss: resident set in pages
- starttime: start time in clock ticks after boot, used to detect pid reuse

Errors from the filesystem are raised as-is; callers decide which ones mean
the process is gone.
"""

import os
from dataclasses import dataclass
from pathlib import Path

# ─────────────────────────────────────────────────────────────────────────────
# Constants
# ─────────────────────────────────────────────────────────────────────────────

PROC_ROOT = Path("/proc")

# Offsets into the fields that follow the ")" closing comm.
# stat(5) numbers fields from 1, and comm is field 2, so field N is at N - 3.
_STATE = 0  # field 3
_UTIME = 11  # field 14
_STIME = 12  # field 15
_NUM_THREADS = 17  # field 20
_STARTTIME = 19  # field 22
_VSIZE = 20  # field 23
_RSS = 21  # field 24

# Process states that mean the process has exited
EXITED_STATES = frozenset({"Z", "X", "x"})


# ─────────────────────────────────────────────────────────────────────────────
# Structures
# ─────────────────────────────────────────────────────────────────────────────


@dataclass(frozen=True)
class ProcStat:
    """Decoded subset of /proc/<pid>/stat."""

    pid: int
    comm: str
    state: str
    utime: int  # clock ticks
    stime: int  # clock ticks
    num_threads: int
    starttime: int  # clock ticks after boot
    vsize: int  # bytes
    rss: int  # pages

    @property
    def exited(self) -> bool:
        """True for zombie and dead processes."""
        return self.state in EXITED_STATES


# ─────────────────────────────────────────────────────────────────────────────
# System constants
# ─────────────────────────────────────────────────────────────────────────────


def clock_ticks() -> int:
    """Return the kernel clock tick rate (USER_HZ)."""
    return os.sysconf("SC_CLK_TCK")


def page_size() -> int:
    """Return the memory page size in bytes."""
    return os.sysconf("SC_PAGE_SIZE")


# ─────────────────────────────────────────────────────────────────────────────
# Public API
# ─────────────────────────────────────────────────────────────────────────────


def read_stat(pid: int, root: Path = PROC_ROOT) -> str:
    """Read the raw contents of /proc/<pid>/stat.

    Raises:
        FileNotFoundError: The process does not exist.
        ProcessLookupError: The process exited while the file was read.
        PermissionError: The file is not readable.
    """
    return (root / str(pid) / "stat").read_text()


def parse_stat(text: str) -> ProcStat:
    """Parse the contents of /proc/<pid>/stat.

    comm may contain spaces and parentheses, so the line is split at the
    first "(" and the last ")".

    Raises:
        ValueError: If the text does not look like a stat line.
    """
    lparen = text.find("(")
    rparen = text.rfind(")")
    if lparen == -1 or rparen < lparen:
        raise ValueError("missing comm field")

    fields = text[rparen + 1 :].split()
    if len(fields) <= _RSS:
        raise ValueError(f"expected at least {_RSS + 1} fields after comm, got {len(fields)}")

    try:
        return ProcStat(
            pid=int(text[:lparen]),
            comm=text[lparen + 1 : rparen],
            state=fields[_STATE],
            utime=int(fields[_UTIME]),
            stime=int(fields[_STIME]),
            num_threads=int(fields[_NUM_THREADS]),
            starttime=int(fields[_STARTTIME]),
            vsize=int(fields[_VSIZE]),
            rss=int(fields[_RSS]),
        )
    except ValueError as e:
        raise ValueError(f"non-numeric stat field: {e}") from e
