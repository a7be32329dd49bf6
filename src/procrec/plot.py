"""gnuplot integration: script template, data files and invocation.

The template reads sample lines as written by format_sample_line. The data
file is passed in the ``filename`` variable, either with
``gnuplot -e 'filename="..."'`` or by rendering the template with the path
filled in.
"""

import shutil
import subprocess
import tempfile
from collections.abc import Sequence
from pathlib import Path

import structlog

from procrec.exceptions import PlottingFailed, PlottingUnavailable
from procrec.formatting import CPU_COLUMN, ELAPSED_COLUMN, RSS_COLUMN, format_sample_line
from procrec.models import Sample

log = structlog.get_logger()

DATA_PLACEHOLDER = "@DATAFILE@"
TITLE_PLACEHOLDER = "@TITLE@"

PLOT_TEMPLATE = f"""\
# procrec recording
#   gnuplot -e 'filename="recording.dat"' -p recording.plot
if (!exists("filename")) filename = "{DATA_PLACEHOLDER}"

set title "{TITLE_PLACEHOLDER}"
set xlabel "elapsed (s)"
set ylabel "CPU %"
set y2label "RSS (kB)"
set ytics nomirror
set y2tics
set yrange [0:*]
set y2range [0:*]
set grid
set key outside bottom center horizontal

plot filename using {ELAPSED_COLUMN}:{CPU_COLUMN} with lines axes x1y1 title "CPU %", \\
     filename using {ELAPSED_COLUMN}:{RSS_COLUMN} with lines axes x1y2 title "RSS"
"""


def _quote(value: str) -> str:
    """Escape a value for use inside a double-quoted gnuplot string."""
    return value.replace("\\", "\\\\").replace('"', '\\"')


def render_script(data_path: Path | str, title: str = "procrec") -> str:
    """Return the plot script with the data path and title filled in."""
    return PLOT_TEMPLATE.replace(DATA_PLACEHOLDER, _quote(str(data_path))).replace(
        TITLE_PLACEHOLDER, _quote(title)
    )


def write_data(samples: Sequence[Sample], path: Path) -> Path:
    """Write samples as sample lines, one per line."""
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, "w", encoding="utf-8") as f:
        for sample in samples:
            f.write(format_sample_line(sample) + "\n")
    return path


def write_plot_files(
    samples: Sequence[Sample],
    script_path: Path,
    title: str = "procrec",
) -> tuple[Path, Path]:
    """Write a plot script and its data file (same name, ``.dat`` suffix).

    Returns:
        (script_path, data_path)
    """
    data_path = script_path.with_suffix(".dat")
    if data_path == script_path:
        data_path = script_path.with_name(script_path.name + ".dat")
    write_data(samples, data_path)
    script_path.write_text(render_script(data_path, title), encoding="utf-8")
    return script_path, data_path


class Plotter:
    """Runs gnuplot over a recording."""

    def __init__(self, program: str = "gnuplot", persist: bool = True, title: str = "procrec"):
        self.program = program
        self.persist = persist
        self.title = title

    def check_available(self) -> str:
        """Return the program's full path.

        Raises:
            PlottingUnavailable: If the program is not on the PATH.
        """
        path = shutil.which(self.program)
        if path is None:
            raise PlottingUnavailable(self.program)
        return path

    def command(self, executable: str, script_path: Path, data_path: Path) -> list[str]:
        """Build the gnuplot command line."""
        cmd = [executable, "-e", f'filename="{_quote(str(data_path))}"']
        if self.persist:
            cmd.append("-p")
        cmd.append(str(script_path))
        return cmd

    def plot(self, samples: Sequence[Sample]) -> None:
        """Plot samples through temporary files.

        Raises:
            PlottingUnavailable: If the program is not on the PATH.
            PlottingFailed: If the program exits with a non-zero status.
        """
        executable = self.check_available()
        with tempfile.TemporaryDirectory(prefix="procrec-") as tmpdir:
            script_path, data_path = write_plot_files(
                samples, Path(tmpdir) / "recording.plot", self.title
            )
            cmd = self.command(executable, script_path, data_path)
            log.info("plot_started", command=cmd, samples=len(samples))
            result = subprocess.run(cmd, capture_output=True, text=True)

        if result.returncode != 0:
            log.error("plot_failed", returncode=result.returncode, stderr=result.stderr)
            raise PlottingFailed(result.returncode, result.stderr)
