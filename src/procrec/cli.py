"""CLI commands for procrec."""

from pathlib import Path

import click

from procrec.probe import PROBE_BACKENDS


def _load_config():
    """Load config, reporting a broken file as a usage error."""
    from procrec.config import Config

    try:
        return Config.load()
    except ValueError as e:
        raise click.UsageError(str(e)) from e


@click.group()
@click.version_option(package_name="procrec")
def main() -> None:
    """Record CPU and memory usage of a running process."""
    pass


@main.command()
@click.option("--pid", "-p", type=int, required=True, help="Process to be inspected")
@click.option(
    "--interval",
    "-i",
    type=float,
    default=None,
    help="Sampling interval in seconds [default: 2, or config]",
)
@click.option("--duration", "-d", type=float, default=None, help="Duration for observation")
@click.option("--verbose", "-v", count=True, help="Verbosity, can be used multiple times")
@click.option("--graph", "-g", is_flag=True, help="Display graph using gnuplot")
@click.option(
    "--plot-script",
    type=click.Path(dir_okay=False, path_type=Path),
    default=None,
    help="Write a gnuplot script (and .dat data) instead of plotting",
)
@click.option(
    "--probe",
    "backend",
    type=click.Choice(PROBE_BACKENDS),
    default=None,
    help="Counter source [default: auto, or config]",
)
def record(
    pid: int,
    interval: float | None,
    duration: float | None,
    verbose: int,
    graph: bool,
    plot_script: Path | None,
    backend: str | None,
) -> None:
    """Sample a process until it exits, time runs out or Ctrl-C."""
    from procrec import logging as plog
    from procrec.emitter import Emitter
    from procrec.exceptions import (
        PlottingFailed,
        PlottingUnavailable,
        ProbeReadFailure,
        ProcessNotFound,
    )
    from procrec.plot import Plotter, write_plot_files
    from procrec.probe import get_probe
    from procrec.sampler import CancelToken, Sampler, handle_signals

    config = _load_config()

    # Command-line options override config for this run
    if interval is None:
        interval = config.sampling.interval
    if interval <= 0:
        raise click.BadParameter(f"must be > 0, got {interval}", param_hint="--interval")
    if duration is None:
        duration = config.sampling.duration_limit
    elif duration <= 0:
        raise click.BadParameter(f"must be > 0, got {duration}", param_hint="--duration")

    plog.configure(config, verbose)

    plotter = Plotter(config.plot.program, config.plot.persist, config.plot.title)
    if graph:
        try:
            plotter.check_available()
        except PlottingUnavailable as e:
            plog.plot_unavailable(e.program)

    probe = get_probe(backend or config.sampling.probe)
    emitter = Emitter(record=graph or plot_script is not None)
    token = CancelToken()
    sampler = Sampler(probe, emitter, pid, interval, duration, token=token)

    plog.recording_started(pid, interval, duration, probe.name)
    try:
        with handle_signals(token):
            summary = sampler.run()
    except ProcessNotFound:
        plog.process_not_found(pid)
        raise SystemExit(1)
    except ProbeReadFailure as e:
        plog.probe_failed(str(e))
        raise SystemExit(1)
    finally:
        emitter.close()

    samples = emitter.samples
    plog.recording_stopped(summary, samples[-1] if samples else None)
    if summary.samples == 0:
        plog.no_samples(pid)

    if plot_script is not None:
        script_path, data_path = write_plot_files(samples, plot_script, config.plot.title)
        plog.plot_script_written(str(script_path), str(data_path))

    if graph:
        if not samples:
            plog.plot_skipped_empty()
            return
        try:
            plotter.plot(samples)
        except PlottingUnavailable as e:
            plog.plot_unavailable(e.program)
            raise SystemExit(1)
        except PlottingFailed as e:
            plog.plot_failed(str(e))
            raise SystemExit(1)
        plog.plot_shown(plotter.program)


@main.command()
@click.argument("recording", type=click.Path(exists=True, dir_okay=False, path_type=Path))
def plot(recording: Path) -> None:
    """Plot a saved recording with gnuplot."""
    from procrec import logging as plog
    from procrec.exceptions import PlottingFailed, PlottingUnavailable
    from procrec.formatting import parse_sample_line
    from procrec.plot import Plotter

    config = _load_config()
    plog.configure(config)

    samples = []
    with open(recording, encoding="utf-8") as f:
        for lineno, line in enumerate(f, start=1):
            if not line.strip():
                continue
            try:
                samples.append(parse_sample_line(line))
            except ValueError as e:
                raise click.ClickException(f"{recording}:{lineno}: {e}") from e

    if not samples:
        plog.plot_skipped_empty()
        return

    plotter = Plotter(config.plot.program, config.plot.persist, config.plot.title)
    try:
        plotter.plot(samples)
    except PlottingUnavailable as e:
        plog.plot_unavailable(e.program)
        raise SystemExit(1)
    except PlottingFailed as e:
        plog.plot_failed(str(e))
        raise SystemExit(1)


@main.command("plot-script")
def plot_script() -> None:
    """Print the gnuplot script template."""
    from procrec.plot import PLOT_TEMPLATE

    click.echo(PLOT_TEMPLATE, nl=False)


@main.group()
def config() -> None:
    """Manage configuration."""
    pass


@config.command("show")
def config_show() -> None:
    """Display current configuration."""
    cfg = _load_config()

    click.echo(f"Config file: {cfg.config_path}")
    click.echo(f"Exists: {cfg.config_path.exists()}")
    click.echo()
    click.echo("[sampling]")
    click.echo(f"  interval = {cfg.sampling.interval}")
    click.echo(f"  duration = {cfg.sampling.duration}")
    click.echo(f"  probe = {cfg.sampling.probe}")
    click.echo()
    click.echo("[plot]")
    click.echo(f"  program = {cfg.plot.program}")
    click.echo(f"  persist = {cfg.plot.persist}")
    click.echo(f"  title = {cfg.plot.title}")
    click.echo()
    click.echo("[logging]")
    click.echo(f"  file_enabled = {cfg.logging.file_enabled}")
    click.echo(f"  log_path = {cfg.log_path}")


@config.command("edit")
def config_edit() -> None:
    """Open config file in editor."""
    import os
    import subprocess

    from procrec import logging as plog

    cfg = _load_config()

    # Create config if it doesn't exist
    if not cfg.config_path.exists():
        cfg.save()
        plog.config_created(str(cfg.config_path))

    editor = os.environ.get("EDITOR", "nano")
    subprocess.run([editor, str(cfg.config_path)])


@config.command("reset")
@click.confirmation_option(prompt="Reset config to defaults?")
def config_reset() -> None:
    """Reset configuration to defaults."""
    from procrec.config import Config

    cfg = Config()
    cfg.save()
    click.echo(f"Config reset to defaults at {cfg.config_path}")
