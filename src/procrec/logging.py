"""Centralized console logging with Rich formatting.

This module provides:
1. Icon vocabulary (Icon class namespace)
2. Level-based styling
3. Core log functions (log, info, warn, error)
4. Domain-specific helpers (recording_started, recording_stopped, etc.)
5. Structlog configuration (configure)

Console output goes to stderr because stdout carries the sample lines.
JSON file output via structlog remains separate (machine-parseable, no colors).
"""

from __future__ import annotations

import logging
import logging.handlers
from datetime import datetime
from typing import TYPE_CHECKING

import structlog
from rich.console import Console

from procrec.formatting import format_duration, format_kb

if TYPE_CHECKING:
    from procrec.config import Config
    from procrec.models import Sample
    from procrec.sampler import RunSummary

# Rich console for colorful human-readable output
_console = Console(stderr=True, highlight=False)

# 0: warnings and errors, 1: + info, 2: + structlog events on the console
_verbosity = 0


# ─────────────────────────────────────────────────────────────────────────────
# Icons
# ─────────────────────────────────────────────────────────────────────────────


class Icon:
    """Icon vocabulary for console output.

    Use via autocomplete: Icon.<TAB> to see all available icons.
    """

    OK = "[bold green]✓[/]"
    FAIL = "[bold red]✗[/]"
    RECORD = "[red]⏺[/]"
    STOP = "[bright_red]■[/]"
    EXIT = "[bright_red]▼[/]"
    SIGNAL = "⚡"
    PLOT = "📈"
    SAVE = "💾"


# ─────────────────────────────────────────────────────────────────────────────
# Level Styles
# ─────────────────────────────────────────────────────────────────────────────

_LEVEL_STYLES = {
    "info": "[bright_blue]\\[info][/]",
    "warn": "[yellow]\\[warn][/]",
    "error": "[bold red]\\[err][/] ",
}


# ─────────────────────────────────────────────────────────────────────────────
# Core Functions
# ─────────────────────────────────────────────────────────────────────────────


def log(level: str, msg: str, icon: str = "") -> None:
    """Print a log message with timestamp and level.

    Args:
        level: Log level (info, warn, error)
        msg: Message to print (can include Rich markup)
        icon: Optional icon to show after level (e.g., Icon.OK)
    """
    ts = datetime.now().strftime("%H:%M:%S")
    lvl = _LEVEL_STYLES.get(level, f"[{level}]")
    icon_part = f" {icon}" if icon else ""
    _console.print(f"[dim]{ts}[/] {lvl}{icon_part} {msg}", soft_wrap=True)


def info(msg: str, icon: str = "") -> None:
    """Log an info message (shown with -v)."""
    if _verbosity >= 1:
        log("info", msg, icon)


def warn(msg: str, icon: str = "") -> None:
    """Log a warning message."""
    log("warn", msg, icon)


def error(msg: str, icon: str = "") -> None:
    """Log an error message."""
    log("error", msg, icon)


# ─────────────────────────────────────────────────────────────────────────────
# Domain Helpers
# ─────────────────────────────────────────────────────────────────────────────


def recording_started(pid: int, interval: float, duration: float | None, probe: str) -> None:
    """Log recording start."""
    limit = f"for {format_duration(duration)}" if duration else "until exit"
    info(
        f"Recording PID [cyan]{pid}[/] every {interval:g}s {limit} [dim]({probe} probe)[/]",
        Icon.RECORD,
    )


def recording_stopped(summary: RunSummary, last: Sample | None = None) -> None:
    """Log recording end with the reason it stopped."""
    reasons = {
        "process_exited": ("process exited", Icon.EXIT),
        "duration_elapsed": ("duration elapsed", Icon.STOP),
        "interrupted": ("interrupted", Icon.SIGNAL),
    }
    reason, icon = reasons[summary.reason.value]
    suffix = "s" if summary.samples != 1 else ""
    detail = ""
    if last is not None:
        detail = f", last RSS {format_kb(last.rss_kb)}"
    info(
        f"Stopped ({reason}): {summary.samples} sample{suffix} over "
        f"{format_duration(summary.elapsed)}[dim]{detail}[/]",
        icon,
    )


def no_samples(pid: int) -> None:
    """Log a run that ended before the first tick."""
    warn(f"PID {pid} exited before the first sample")


def process_not_found(pid: int) -> None:
    """Log startup failure for a missing pid."""
    error(f"No such process: [cyan]{pid}[/]", Icon.FAIL)


def probe_failed(error_msg: str) -> None:
    """Log fatal probe failure."""
    error(f"Probe failed: {error_msg}", Icon.FAIL)


def plot_unavailable(program: str) -> None:
    """Log missing plotting program."""
    error(f"[cyan]{program}[/] not found on PATH, cannot plot", Icon.FAIL)


def plot_failed(error_msg: str) -> None:
    """Log plotting program failure."""
    error(error_msg, Icon.FAIL)


def plot_skipped_empty() -> None:
    """Log plotting skipped because nothing was recorded."""
    warn("Nothing recorded, skipping plot")


def plot_script_written(script: str, data: str) -> None:
    """Log plot script and data files written."""
    info(f"Plot script [cyan]{script}[/], data [cyan]{data}[/]", Icon.SAVE)


def plot_shown(program: str) -> None:
    """Log plot handed to the plotting program."""
    info(f"Plotted with [cyan]{program}[/]", Icon.PLOT)


def config_created(path: str) -> None:
    """Log config file created."""
    log("info", f"Created config at [cyan]{path}[/]")


# ─────────────────────────────────────────────────────────────────────────────
# Structlog Configuration
# ─────────────────────────────────────────────────────────────────────────────


def _add_source(source: str) -> structlog.types.Processor:
    """Create a processor that adds a source field to log events."""

    def processor(
        logger: structlog.types.WrappedLogger,
        method_name: str,
        event_dict: structlog.types.EventDict,
    ) -> structlog.types.EventDict:
        event_dict["source"] = source
        return event_dict

    return processor


def configure(config: Config, verbosity: int = 0) -> None:
    """Configure console verbosity and structlog output.

    File output uses JSON Lines format for machine parsing when enabled in
    config. At verbosity 2 structlog events are also rendered on stderr.

    Args:
        config: Application config with paths
        verbosity: Number of -v flags given
    """
    global _verbosity
    _verbosity = verbosity

    stdlib_root = logging.getLogger()
    stdlib_root.setLevel(logging.DEBUG if verbosity >= 2 else logging.INFO)

    # Clear any existing handlers
    stdlib_root.handlers.clear()

    if config.logging.file_enabled:
        # Ensure state directory exists for log file
        config.state_dir.mkdir(parents=True, exist_ok=True)

        file_handler = logging.handlers.RotatingFileHandler(
            config.log_path,
            maxBytes=config.logging.log_max_bytes,
            backupCount=config.logging.log_backup_count,
            encoding="utf-8",
        )
        file_handler.setLevel(logging.INFO)
        file_handler.setFormatter(
            structlog.stdlib.ProcessorFormatter(
                processor=structlog.processors.JSONRenderer(),
                foreign_pre_chain=[
                    structlog.contextvars.merge_contextvars,
                    structlog.processors.TimeStamper(fmt="iso", utc=False, key="ts"),
                    structlog.processors.add_log_level,
                    _add_source("procrec"),
                    structlog.processors.format_exc_info,
                ],
            )
        )
        stdlib_root.addHandler(file_handler)

    if verbosity >= 2:
        console_handler = logging.StreamHandler()
        console_handler.setLevel(logging.DEBUG)
        console_handler.setFormatter(
            structlog.stdlib.ProcessorFormatter(
                processor=structlog.dev.ConsoleRenderer(),
                foreign_pre_chain=[
                    structlog.contextvars.merge_contextvars,
                    structlog.processors.TimeStamper(fmt="%H:%M:%S", utc=False),
                    structlog.processors.add_log_level,
                    structlog.processors.StackInfoRenderer(),
                    structlog.processors.format_exc_info,
                ],
            )
        )
        stdlib_root.addHandler(console_handler)

    if not stdlib_root.handlers:
        # Keep the stdlib last-resort handler from printing events to stderr
        stdlib_root.addHandler(logging.NullHandler())

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.stdlib.filter_by_level,
            structlog.processors.TimeStamper(fmt="%H:%M:%S", utc=False),
            structlog.processors.add_log_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

