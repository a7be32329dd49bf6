"""Tests for console and structlog logging setup."""

import json

import pytest
import structlog

from procrec import logging as plog
from procrec.config import Config
from procrec.sampler import RunSummary, StopReason
from tests.conftest import make_sample


@pytest.fixture
def config(patched_config_paths, reset_logging) -> Config:
    return Config()


class TestConfigure:
    """Tests for configure()."""

    def test_writes_json_lines_to_state_dir(self, config: Config) -> None:
        plog.configure(config)

        structlog.get_logger().info("sampling_started", pid=4242, interval=2.0)

        record = json.loads(config.log_path.read_text().splitlines()[-1])
        assert record["event"] == "sampling_started"
        assert record["pid"] == 4242
        assert record["level"] == "info"
        assert "timestamp" in record

    def test_file_logging_disabled(self, config: Config) -> None:
        config.logging.file_enabled = False
        plog.configure(config)

        structlog.get_logger().info("sampling_started", pid=1)

        assert not config.log_path.exists()

    def test_verbosity_two_echoes_events(self, config: Config, capsys) -> None:
        config.logging.file_enabled = False
        plog.configure(config, verbosity=2)

        structlog.get_logger().info("ticks_skipped", pid=1, skipped=2)

        assert "ticks_skipped" in capsys.readouterr().err


class TestConsole:
    """Tests for console message gating."""

    def test_info_hidden_by_default(self, config: Config, capsys) -> None:
        plog.configure(config, verbosity=0)
        plog.info("quiet message")
        assert "quiet message" not in capsys.readouterr().err

    def test_info_shown_with_verbose(self, config: Config, capsys) -> None:
        plog.configure(config, verbosity=1)
        plog.info("loud message")
        assert "loud message" in capsys.readouterr().err

    def test_long_messages_are_not_wrapped(self, config: Config, capsys) -> None:
        """Console lines stay whole when stderr is not a terminal."""
        plog.configure(config, verbosity=0)
        plog.probe_failed("Failed to read stat for PID 4242: " + "x" * 120 + " Permission denied")
        err = capsys.readouterr().err
        assert len(err.splitlines()) == 1
        assert "Permission denied" in err

    def test_warnings_always_shown(self, config: Config, capsys) -> None:
        plog.configure(config, verbosity=0)
        plog.no_samples(4242)
        captured = capsys.readouterr()
        assert "exited before the first sample" in captured.err
        assert captured.out == ""

    def test_recording_stopped_summary(self, config: Config, capsys) -> None:
        plog.configure(config, verbosity=1)
        summary = RunSummary(pid=1, reason=StopReason.DURATION_ELAPSED, samples=3, elapsed=4.0)
        plog.recording_stopped(summary, make_sample(rss_kb=2048))
        err = capsys.readouterr().err
        assert "duration elapsed" in err
        assert "3 samples" in err
