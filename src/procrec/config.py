"""Configuration system for procrec."""

from dataclasses import dataclass, field, fields, is_dataclass
from pathlib import Path

import tomlkit

from procrec.probe import PROBE_BACKENDS


@dataclass
class SamplingConfig:
    """Sampling cadence and probe selection."""

    interval: float = 2.0  # Seconds between samples
    duration: float = 0.0  # Seconds to record, 0 = until the process exits
    probe: str = "auto"  # auto, procfs, libproc or psutil

    @property
    def duration_limit(self) -> float | None:
        """Duration as the sampler expects it (None when unbounded)."""
        return self.duration if self.duration > 0 else None


@dataclass
class PlotConfig:
    """External plotting program settings."""

    program: str = "gnuplot"
    persist: bool = True  # Keep the plot window open after gnuplot exits (-p)
    title: str = "procrec"


@dataclass
class LoggingConfig:
    """JSON log file settings."""

    file_enabled: bool = True
    log_max_bytes: int = 5 * 1024 * 1024  # Max log file size (5MB)
    log_backup_count: int = 3  # Number of backup log files to keep


def _dataclass_to_table(obj: object) -> tomlkit.items.Table:
    """Convert a dataclass instance to a tomlkit Table recursively."""
    table = tomlkit.table()
    for f in fields(obj):  # type: ignore[arg-type]
        value = getattr(obj, f.name)
        if is_dataclass(value) and not isinstance(value, type):
            table.add(f.name, _dataclass_to_table(value))
        else:
            table.add(f.name, value)
    return table


@dataclass
class Config:
    """Main configuration container."""

    sampling: SamplingConfig = field(default_factory=SamplingConfig)
    plot: PlotConfig = field(default_factory=PlotConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)

    @property
    def config_dir(self) -> Path:
        """Configuration directory."""
        return Path.home() / ".config" / "procrec"

    @property
    def config_path(self) -> Path:
        """Path to config file."""
        return self.config_dir / "config.toml"

    @property
    def state_dir(self) -> Path:
        """State directory for logs."""
        return Path.home() / ".local" / "state" / "procrec"

    @property
    def log_path(self) -> Path:
        """JSON Lines log path."""
        return self.state_dir / "procrec.log"

    def save(self, path: Path | None = None) -> None:
        """Save config to TOML file."""
        path = path or self.config_path
        path.parent.mkdir(parents=True, exist_ok=True)

        doc = tomlkit.document()
        for name in ("sampling", "plot", "logging"):
            doc.add(name, _dataclass_to_table(getattr(self, name)))
            doc.add(tomlkit.nl())

        path.write_text(tomlkit.dumps(doc))

    @classmethod
    def load(cls, path: Path | None = None) -> "Config":
        """Load config from TOML file, returning defaults for missing values.

        Raises:
            ValueError: If the file cannot be parsed or holds invalid values.
        """
        defaults = cls()
        path = path or defaults.config_path
        if not path.exists():
            return defaults

        try:
            with open(path) as f:
                data = tomlkit.load(f)
        except tomlkit.exceptions.TOMLKitError as e:
            raise ValueError(f"Failed to parse config file {path}: {e}") from e

        return cls(
            sampling=_load_sampling_config(data.get("sampling", {})),
            plot=_load_plot_config(data.get("plot", {})),
            logging=_load_logging_config(data.get("logging", {})),
        )


def _load_sampling_config(data: dict) -> SamplingConfig:
    """Load sampling config from TOML data, validating values."""
    defaults = SamplingConfig()

    interval = data.get("interval", defaults.interval)
    duration = data.get("duration", defaults.duration)
    probe = data.get("probe", defaults.probe)

    for name, value in (("interval", interval), ("duration", duration)):
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            raise ValueError(f"{name} must be a number, got {value!r}")

    if interval <= 0:
        raise ValueError(f"interval must be > 0, got {interval}")
    if duration < 0:
        raise ValueError(f"duration must be >= 0, got {duration}")
    if probe not in PROBE_BACKENDS:
        raise ValueError(f"Invalid probe: {probe!r}. Must be one of {PROBE_BACKENDS}")

    return SamplingConfig(interval=float(interval), duration=float(duration), probe=str(probe))


def _load_plot_config(data: dict) -> PlotConfig:
    """Load plot config from TOML data."""
    d = PlotConfig()
    return PlotConfig(
        program=str(data.get("program", d.program)),
        persist=bool(data.get("persist", d.persist)),
        title=str(data.get("title", d.title)),
    )


def _load_logging_config(data: dict) -> LoggingConfig:
    """Load logging config from TOML data."""
    d = LoggingConfig()
    log_max_bytes = data.get("log_max_bytes", d.log_max_bytes)
    log_backup_count = data.get("log_backup_count", d.log_backup_count)

    for name, value in (("log_max_bytes", log_max_bytes), ("log_backup_count", log_backup_count)):
        if isinstance(value, bool) or not isinstance(value, int):
            raise ValueError(f"{name} must be an integer, got {value!r}")

    if log_max_bytes < 0:
        raise ValueError(f"log_max_bytes must be >= 0, got {log_max_bytes}")
    if log_backup_count < 0:
        raise ValueError(f"log_backup_count must be >= 0, got {log_backup_count}")

    return LoggingConfig(
        file_enabled=bool(data.get("file_enabled", d.file_enabled)),
        log_max_bytes=int(log_max_bytes),
        log_backup_count=int(log_backup_count),
    )
