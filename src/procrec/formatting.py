"""Formatting utilities for the sample line format and console summaries.

Sample lines are a contract with plotting scripts: the column positions
below must not change.

    0.00 PID 4242 CPU% 12.50 RSS 20480 VSIZE 409600 THREADS 8
    1    2   3    4    5     6   7     8     9      10      11
"""

from procrec.models import Sample

# 1-based columns of the values plotting scripts read
ELAPSED_COLUMN = 1
CPU_COLUMN = 5
RSS_COLUMN = 7

_LABELS = {1: "PID", 3: "CPU%", 5: "RSS", 7: "VSIZE"}
_THREADS_LABEL = "THREADS"


def format_sample_line(sample: Sample) -> str:
    """Format a sample as one whitespace-separated line.

    The THREADS pair is omitted when the probe has no thread counter.
    """
    line = (
        f"{sample.elapsed:.2f} PID {sample.pid} CPU% {sample.cpu_percent:.2f} "
        f"RSS {sample.rss_kb} VSIZE {sample.vsize_kb}"
    )
    if sample.threads is not None:
        line += f" {_THREADS_LABEL} {sample.threads}"
    return line


def parse_sample_line(line: str) -> Sample:
    """Parse a line written by format_sample_line.

    Raises:
        ValueError: If the line has the wrong shape or labels.
    """
    tokens = line.split()
    if len(tokens) not in (9, 11):
        raise ValueError(f"Expected 9 or 11 fields, got {len(tokens)}: {line!r}")
    for index, label in _LABELS.items():
        if tokens[index] != label:
            raise ValueError(f"Expected {label!r} in field {index + 1}, got {tokens[index]!r}")

    threads = None
    if len(tokens) == 11:
        if tokens[9] != _THREADS_LABEL:
            raise ValueError(f"Expected {_THREADS_LABEL!r} in field 10, got {tokens[9]!r}")
        threads = int(tokens[10])

    return Sample(
        elapsed=float(tokens[0]),
        pid=int(tokens[2]),
        cpu_percent=float(tokens[4]),
        rss_kb=int(tokens[6]),
        vsize_kb=int(tokens[8]),
        threads=threads,
    )


def format_duration(seconds: float) -> str:
    """Format a run length for console summaries.

    Returns:
        "4.5s" below a minute, "2m 05s" below an hour, "1h 02m" beyond.
    """
    if seconds < 60:
        return f"{seconds:.1f}s"
    minutes, secs = divmod(int(seconds), 60)
    if minutes < 60:
        return f"{minutes}m {secs:02d}s"
    hours, minutes = divmod(minutes, 60)
    return f"{hours}h {minutes:02d}m"


def format_kb(kb: int) -> str:
    """Format a kB quantity with a binary unit (kB, MB, GB)."""
    if kb < 1024:
        return f"{kb}kB"
    if kb < 1024 * 1024:
        return f"{kb / 1024:.1f}MB"
    return f"{kb / 1024 / 1024:.2f}GB"
