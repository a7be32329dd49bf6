"""Tests for the sample emitter."""

import io
import warnings

from procrec.emitter import Emitter
from tests.conftest import make_sample


def test_emit_writes_one_line_per_sample_in_order():
    """Samples are written in the order received."""
    stream = io.StringIO()
    emitter = Emitter(stream)

    emitter.emit(make_sample(elapsed=0.0))
    emitter.emit(make_sample(elapsed=2.0))

    lines = stream.getvalue().splitlines()
    assert [line.split()[0] for line in lines] == ["0.00", "2.00"]
    assert len(emitter) == 2


def test_samples_not_kept_by_default():
    emitter = Emitter(io.StringIO())
    emitter.emit(make_sample())
    assert emitter.samples == []
    assert len(emitter) == 1


def test_record_keeps_samples():
    emitter = Emitter(io.StringIO(), record=True)
    first, second = make_sample(elapsed=0.0), make_sample(elapsed=2.0)

    emitter.emit(first)
    emitter.emit(second)

    assert emitter.samples == [first, second]


def test_samples_returns_copy():
    emitter = Emitter(io.StringIO(), record=True)
    emitter.emit(make_sample())
    emitter.samples.clear()
    assert len(emitter.samples) == 1


def test_echo_disabled_writes_nothing():
    """A silent emitter still counts and records."""
    stream = io.StringIO()
    emitter = Emitter(stream, echo=False, record=True)

    emitter.emit(make_sample())
    emitter.close()

    assert stream.getvalue() == ""
    assert len(emitter.samples) == 1


def test_defaults_to_stdout_without_warnings(capsys):
    """The default sink is sys.stdout and closing it raises no deprecation."""
    emitter = Emitter()
    emitter.emit(make_sample(elapsed=4.0))

    with warnings.catch_warnings():
        warnings.simplefilter("error")
        emitter.close()

    assert capsys.readouterr().out.startswith("4.00 PID 4242")
