"""Tests for libproc module (macOS only)."""

import ctypes
import os
import sys
from unittest.mock import patch

import pytest

if sys.platform != "darwin":
    pytest.skip("libproc is macOS only", allow_module_level=True)

from procrec.exceptions import ProcessNotFound  # noqa: E402
from procrec.libproc import (  # noqa: E402
    MachTimebaseInfo,
    ProcBSDInfo,
    ProcTaskInfo,
    TimebaseInfo,
    abs_to_ns,
    get_bsd_info,
    get_task_info,
    get_timebase_info,
    start_time,
)
from procrec.probe import LibprocProbe  # noqa: E402


class TestStructSizes:
    """Test that struct sizes match C definitions."""

    def test_mach_timebase_info_size(self):
        """MachTimebaseInfo should be 8 bytes (2x uint32)."""
        assert ctypes.sizeof(MachTimebaseInfo) == 8

    def test_proc_task_info_size(self):
        """ProcTaskInfo is 6 uint64 followed by 12 int32."""
        assert ctypes.sizeof(ProcTaskInfo) == 6 * 8 + 12 * 4


class TestTimebase:
    """Test mach timebase conversion."""

    def test_get_timebase_info(self):
        info = get_timebase_info()
        assert info.numer > 0
        assert info.denom > 0

    def test_abs_to_ns_identity(self):
        """With (1,1) timebase, abs_to_ns returns input."""
        assert abs_to_ns(1000, TimebaseInfo(numer=1, denom=1)) == 1000

    def test_abs_to_ns_apple_silicon(self):
        # (3 * 125) // 3 = 125 ns
        assert abs_to_ns(3, TimebaseInfo(numer=125, denom=3)) == 125


class TestTaskInfo:
    """Test task info retrieval."""

    def test_get_task_info_own_process(self):
        info = get_task_info(os.getpid())
        assert info.pti_resident_size > 0
        assert info.pti_virtual_size >= info.pti_resident_size
        assert info.pti_threadnum >= 1

    def test_get_task_info_nonexistent(self):
        """Nonexistent PID raises ProcessLookupError."""
        with pytest.raises(ProcessLookupError):
            get_task_info(99999)  # above PID_MAX


class TestBSDInfo:
    """Test BSD info retrieval."""

    def test_proc_bsd_info_size(self):
        size = ctypes.sizeof(ProcBSDInfo)
        assert 100 < size < 500

    def test_get_bsd_info_own_process(self):
        info = get_bsd_info(os.getpid())
        assert info.pbi_pid == os.getpid()
        assert start_time(info) > 0

    def test_get_bsd_info_nonexistent(self):
        with pytest.raises(ProcessLookupError):
            get_bsd_info(99999)  # above PID_MAX


class TestLibprocProbe:
    """Test LibprocProbe pid reuse handling."""

    def test_reused_pid_is_not_found(self):
        """A changed start time means the original process exited."""
        pid = os.getpid()
        probe = LibprocProbe()
        probe.capture(pid)

        info = get_bsd_info(pid)
        info.pbi_start_tvsec += 1
        with patch("procrec.libproc.get_bsd_info", return_value=info):
            with pytest.raises(ProcessNotFound):
                probe.capture(pid)
