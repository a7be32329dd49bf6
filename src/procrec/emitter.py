"""Sample output: one line per sample, plus the recording kept for plotting."""

import sys
from typing import TextIO

import click

from procrec.formatting import format_sample_line
from procrec.models import Sample


class Emitter:
    """Writes samples to a text stream and optionally keeps them.

    Samples are written as soon as they arrive, in the order received.
    When ``record`` is set the emitter also owns the ordered recording used
    for plotting once sampling has finished.
    Without a stream, samples go to the sys.stdout in effect at creation.
    """

    def __init__(
        self,
        stream: TextIO | None = None,
        *,
        echo: bool = True,
        record: bool = False,
    ) -> None:
        self._stream = stream if stream is not None else sys.stdout
        self._echo = echo
        self._record = record
        self._samples: list[Sample] = []
        self._count = 0

    def __len__(self) -> int:
        """Return number of samples emitted."""
        return self._count

    @property
    def samples(self) -> list[Sample]:
        """Recorded samples (returns a copy, empty unless recording)."""
        return list(self._samples)

    def emit(self, sample: Sample) -> None:
        """Write one sample and append it to the recording."""
        if self._echo:
            click.echo(format_sample_line(sample), file=self._stream)
        if self._record:
            self._samples.append(sample)
        self._count += 1

    def close(self) -> None:
        """Flush the output stream."""
        self._stream.flush()
