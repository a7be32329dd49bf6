"""Exceptions raised by procrec."""


class ProcrecError(Exception):
    """Base exception for all procrec errors."""


class ProcessNotFound(ProcrecError):
    """Raised when a pid no longer resolves to a live process."""

    def __init__(self, pid: int) -> None:
        super().__init__(f"No such process: {pid}")
        self.pid = pid


class ProbeReadFailure(ProcrecError):
    """Raised when process counters exist but cannot be read or parsed."""

    def __init__(self, pid: int, counter: str, reason: str) -> None:
        super().__init__(f"Failed to read {counter} for PID {pid}: {reason}")
        self.pid = pid
        self.counter = counter
        self.reason = reason


class PlottingUnavailable(ProcrecError):
    """Raised when the plotting program is not on the PATH."""

    def __init__(self, program: str) -> None:
        super().__init__(f"Plotting program not found: {program}")
        self.program = program


class PlottingFailed(ProcrecError):
    """Raised when the plotting program exits with an error."""

    def __init__(self, returncode: int, stderr: str) -> None:
        detail = stderr.strip() or "no output"
        super().__init__(f"Plotting failed with status {returncode}: {detail}")
        self.returncode = returncode
        self.stderr = stderr
