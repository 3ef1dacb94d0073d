# Copyright 2025 Wahyu Ardiansyah
# Licensed under the Apache License, Version 2.0

"""
Tests for the structured logger and lap timing utilities.
"""

import io
import json
import logging

import pytest

from oclbench.observability import (
    HarnessLogger,
    LapTimer,
    LatencyStats,
    LogEntry,
    Verbosity,
    get_logger,
    set_verbosity,
)


@pytest.fixture
def stream():
    output = io.StringIO()
    get_logger().set_output(output)
    return output


class TestHarnessLogger:
    def test_singleton(self):
        assert get_logger() is get_logger()
        assert isinstance(get_logger(), HarnessLogger)

    def test_default_verbosity(self, monkeypatch):
        monkeypatch.delenv("OCLBENCH_VERBOSITY", raising=False)
        HarnessLogger.reset()
        assert get_logger().get_verbosity() is Verbosity.WARNING

    def test_env_verbosity(self, monkeypatch):
        monkeypatch.setenv("OCLBENCH_VERBOSITY", "4")
        HarnessLogger.reset()
        assert get_logger().get_verbosity() is Verbosity.DEBUG

    def test_filtering(self, stream):
        logger = get_logger()
        logger.set_verbosity(Verbosity.WARNING)
        logger.info("hidden")
        logger.warning("shown")
        assert "hidden" not in stream.getvalue()
        assert "[WARNING] [oclbench] shown" in stream.getvalue()

    def test_set_verbosity_clamps(self):
        set_verbosity(9)
        assert get_logger().get_verbosity() is Verbosity.DEBUG
        assert logging.getLogger("oclbench").level == logging.DEBUG
        set_verbosity(-1)
        assert get_logger().get_verbosity() is Verbosity.SILENT

    def test_json_format(self, stream):
        logger = get_logger()
        logger.set_verbosity(Verbosity.INFO)
        logger.set_json_format(True)
        logger.info("Buffers allocated", component="buffers", count=3)

        record = json.loads(stream.getvalue())
        assert record["level"] == "INFO"
        assert record["component"] == "buffers"
        assert record["extra"] == {"count": 3}
        assert "stage" not in record

    def test_handler_receives_entries(self, stream):
        entries = []
        logger = get_logger()
        logger.add_handler(entries.append)
        logger.error("boom", component="dispatch")
        assert len(entries) == 1
        assert isinstance(entries[0], LogEntry)
        assert entries[0].component == "dispatch"


class TestStage:
    def test_stage_timing(self, stream):
        entries = []
        logger = get_logger()
        logger.set_verbosity(Verbosity.DEBUG)
        logger.add_handler(entries.append)

        with logger.stage("build", component="program"):
            pass

        assert [e.message for e in entries] == ["build started", "build finished"]
        assert entries[1].stage == "build"
        assert entries[1].duration_ms >= 0

    def test_stage_failure_reraises(self, stream):
        entries = []
        logger = get_logger()
        logger.add_handler(entries.append)

        with pytest.raises(ValueError):
            with logger.stage("verify", component="verifier"):
                raise ValueError("mismatch")

        assert entries[-1].level == "ERROR"
        assert entries[-1].message == "verify failed: ValueError"


class TestLapTimer:
    def test_external_durations(self):
        timer = LapTimer()
        for duration in (0.1, 0.2, 0.3):
            timer.next_lap(duration)
        assert timer.laps == [0.1, 0.2, 0.3]
        assert timer.lap_avg() == pytest.approx(0.2)
        assert timer.lap_std() == pytest.approx(0.0816496, rel=1e-5)

    def test_wall_clock_laps(self):
        timer = LapTimer()
        first = timer.next_lap()
        second = timer.next_lap()
        assert first >= 0 and second >= 0
        assert len(timer.laps) == 2

    def test_restart(self):
        timer = LapTimer()
        timer.next_lap(1.0)
        timer.restart()
        assert timer.laps == []
        assert timer.lap_avg() == 0.0
        assert timer.lap_std() == 0.0


class TestLatencyStats:
    def test_compute(self):
        stats = LatencyStats.compute([1.0, 2.0, 3.0, 4.0])
        assert stats.mean_s == pytest.approx(2.5)
        assert stats.min_s == 1.0
        assert stats.max_s == 4.0
        assert stats.p50_s == pytest.approx(2.5)
        assert stats.num_samples == 4

    def test_empty(self):
        assert LatencyStats.compute([]) == LatencyStats()

    def test_summary(self):
        assert LatencyStats.compute([0.5]).summary().startswith("0.500000+-0.000000 s")
