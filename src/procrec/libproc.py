"""Low-level libproc interface for macOS process metrics.

Uses ctypes to call libproc.dylib directly - no subprocess overhead.

This module provides access to:
- proc_pidinfo(PROC_PIDTASKINFO): CPU time, memory sizes, thread count
- proc_pidinfo(PROC_PIDTBSDINFO): process status and start time
- mach_timebase_info: conversion of CPU times to nanoseconds

Importing this module loads libproc.dylib, so it is macOS-only.
"""

import ctypes
import errno
from ctypes import POINTER, Structure, byref, c_char, c_int, c_int32, c_uint32, c_uint64
from dataclasses import dataclass

# ─────────────────────────────────────────────────────────────────────────────
# Library loading
# ─────────────────────────────────────────────────────────────────────────────

libproc = ctypes.CDLL("/usr/lib/libproc.dylib", use_errno=True)
libc = ctypes.CDLL(None, use_errno=True)  # For mach_timebase_info

# ─────────────────────────────────────────────────────────────────────────────
# Constants
# ─────────────────────────────────────────────────────────────────────────────

# proc_pidinfo flavors
PROC_PIDTBSDINFO = 3
PROC_PIDTASKINFO = 4

MAXCOMLEN = 16

# pbi_status of a process awaiting collection by its parent
SZOMB = 5


# ─────────────────────────────────────────────────────────────────────────────
# Structures
# ─────────────────────────────────────────────────────────────────────────────


class MachTimebaseInfo(Structure):
    """mach_timebase_info for converting mach_absolute_time to nanoseconds."""

    _fields_ = [
        ("numer", c_uint32),
        ("denom", c_uint32),
    ]


class ProcTaskInfo(Structure):
    """proc_taskinfo from sys/proc_info.h.

    pti_total_user and pti_total_system are in mach_absolute_time units,
    which are only nanoseconds on Intel.
    """

    _fields_ = [
        ("pti_virtual_size", c_uint64),
        ("pti_resident_size", c_uint64),
        ("pti_total_user", c_uint64),
        ("pti_total_system", c_uint64),
        ("pti_threads_user", c_uint64),
        ("pti_threads_system", c_uint64),
        ("pti_policy", c_int32),
        ("pti_faults", c_int32),
        ("pti_pageins", c_int32),
        ("pti_cow_faults", c_int32),
        ("pti_messages_sent", c_int32),
        ("pti_messages_received", c_int32),
        ("pti_syscalls_mach", c_int32),
        ("pti_syscalls_unix", c_int32),
        ("pti_csw", c_int32),
        ("pti_threadnum", c_int32),
        ("pti_numrunning", c_int32),
        ("pti_priority", c_int32),
    ]


class ProcBSDInfo(Structure):
    """proc_bsdinfo from sys/proc_info.h.

    The start time identifies a process across pid reuse.
    """

    _fields_ = [
        ("pbi_flags", c_uint32),
        ("pbi_status", c_uint32),
        ("pbi_xstatus", c_uint32),
        ("pbi_pid", c_uint32),
        ("pbi_ppid", c_uint32),
        ("pbi_uid", c_uint32),
        ("pbi_gid", c_uint32),
        ("pbi_ruid", c_uint32),
        ("pbi_rgid", c_uint32),
        ("pbi_svuid", c_uint32),
        ("pbi_svgid", c_uint32),
        ("pbi_rfu_1", c_uint32),
        ("pbi_comm", c_char * MAXCOMLEN),
        ("pbi_name", c_char * (2 * MAXCOMLEN)),
        ("pbi_nfiles", c_uint32),
        ("pbi_pgid", c_uint32),
        ("pbi_pjobc", c_uint32),
        ("pbi_e_tdev", c_uint32),
        ("pbi_e_tpgid", c_uint32),
        ("pbi_nice", c_int32),
        ("pbi_start_tvsec", c_uint64),
        ("pbi_start_tvusec", c_uint64),
    ]


# ─────────────────────────────────────────────────────────────────────────────
# Function signatures
# ─────────────────────────────────────────────────────────────────────────────

# int proc_pidinfo(pid_t pid, int flavor, uint64_t arg, void *buffer, int buffersize)
libproc.proc_pidinfo.argtypes = [c_int, c_int, c_uint64, ctypes.c_void_p, c_int]
libproc.proc_pidinfo.restype = c_int

# kern_return_t mach_timebase_info(mach_timebase_info_t info)
libc.mach_timebase_info.argtypes = [POINTER(MachTimebaseInfo)]
libc.mach_timebase_info.restype = c_int


# ─────────────────────────────────────────────────────────────────────────────
# Time conversion (Apple Silicon)
# ─────────────────────────────────────────────────────────────────────────────


@dataclass
class TimebaseInfo:
    """Mach timebase info for converting absolute time to nanoseconds."""

    numer: int
    denom: int


def get_timebase_info() -> TimebaseInfo:
    """Get mach_timebase_info for time conversion.

    Note:
        Intel: (1, 1) - mach_absolute_time is already nanoseconds
        Apple Silicon: (125, 3) - ~41.67ns per tick
    """
    info = MachTimebaseInfo()
    libc.mach_timebase_info(byref(info))
    return TimebaseInfo(numer=info.numer, denom=info.denom)


def abs_to_ns(abstime: int, timebase: TimebaseInfo) -> int:
    """Convert mach_absolute_time to nanoseconds."""
    return (abstime * timebase.numer) // timebase.denom


# ─────────────────────────────────────────────────────────────────────────────
# Public API
# ─────────────────────────────────────────────────────────────────────────────


def _pidinfo(pid: int, flavor: int, info: Structure) -> None:
    """Fill info from proc_pidinfo, raising on anything but a full read."""
    result = libproc.proc_pidinfo(pid, flavor, 0, byref(info), ctypes.sizeof(info))
    if result == ctypes.sizeof(info):
        return

    err = ctypes.get_errno()
    if err == errno.ESRCH:
        raise ProcessLookupError(err, f"No such process: {pid}")
    if result > 0:
        raise OSError(errno.EIO, f"Short read from proc_pidinfo ({result} bytes)")
    raise OSError(err, errno.errorcode.get(err, "proc_pidinfo failed"))


def get_task_info(pid: int) -> ProcTaskInfo:
    """Get task info for a process.

    Raises:
        ProcessLookupError: The process does not exist (ESRCH).
        OSError: Any other failure, typically EPERM for another user's process.
    """
    info = ProcTaskInfo()
    _pidinfo(pid, PROC_PIDTASKINFO, info)
    return info


def get_bsd_info(pid: int) -> ProcBSDInfo:
    """Get BSD info (status, start time) for a process.

    Raises:
        ProcessLookupError: The process does not exist (ESRCH).
        OSError: Any other failure.
    """
    info = ProcBSDInfo()
    _pidinfo(pid, PROC_PIDTBSDINFO, info)
    return info


def start_time(info: ProcBSDInfo) -> int:
    """Process start time in microseconds since the epoch."""
    return info.pbi_start_tvsec * 1_000_000 + info.pbi_start_tvusec
