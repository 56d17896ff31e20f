"""Tests for logging setup and timing helpers."""
import logging

import pytest

from rtx_config.config_engine import ConfigEngine
from rtx_config.utils.logging_config import (
    main_logger,
    perf_logger,
    setup_logging,
    timed,
    timed_section,
    timed_stage,
)


class ListHandler(logging.Handler):
    """Collect formatted messages."""

    def __init__(self):
        super().__init__()
        self.messages = []

    def emit(self, record):
        self.messages.append(record.getMessage())


@pytest.fixture
def perf_messages():
    """Capture perf logger output."""
    handler = ListHandler()
    perf_logger.addHandler(handler)
    perf_logger.setLevel(logging.DEBUG)
    yield handler.messages
    perf_logger.removeHandler(handler)


@pytest.fixture
def clean_loggers():
    """Drop handlers added by setup_logging."""
    yield
    for logger in (main_logger, perf_logger):
        for handler in list(logger.handlers):
            logger.removeHandler(handler)
            handler.close()
    perf_logger.propagate = True


class TestSetupLogging:
    """Tests for setup_logging."""

    def test_files_from_environment(self, tmp_path, monkeypatch, clean_loggers):
        """Log files go where RTXCONF_LOG_FILE points."""
        log_file = tmp_path / "logs" / "rtx-config.log"
        monkeypatch.setenv("RTXCONF_LOG_FILE", str(log_file))
        monkeypatch.setenv("RTXCONF_LOG_LEVEL", "DEBUG")

        setup_logging()

        assert log_file.exists()
        assert (log_file.parent / "rtx-config-perf.log").exists()
        assert not perf_logger.propagate
        assert len(main_logger.handlers) == 2


class TestTimed:
    """Tests for the timing helpers."""

    def test_sync_function(self, perf_messages):
        """Sync functions are timed and keep their result."""
        @timed("decode", device_id="rtx")
        def decode():
            return 42

        assert decode() == 42
        assert len(perf_messages) == 1
        assert perf_messages[0].startswith("decode")
        assert perf_messages[0].endswith("| OK")

    @pytest.mark.asyncio
    async def test_async_failure_reraised(self, perf_messages):
        """Failures are logged and re-raised."""
        @timed("apply")
        async def apply():
            raise RuntimeError("boom")

        with pytest.raises(RuntimeError):
            await apply()
        assert perf_messages[0].endswith("FAIL: boom")

    @pytest.mark.asyncio
    async def test_timed_section_extra(self, perf_messages):
        """Section timing carries extra context."""
        async with timed_section("read", device_id="rtx", feature="tunnel"):
            pass

        assert perf_messages[0].endswith("| OK | feature=tunnel")

    def test_timed_stage_counts(self, perf_messages):
        """Counts added while the stage runs are logged with it."""
        with timed_stage("reconcile", feature="ip_filter") as ctx:
            ctx["ghosts"] = 2

        assert perf_messages[0].startswith("reconcile")
        assert perf_messages[0].endswith("| OK | feature=ip_filter | ghosts=2")

    def test_timed_stage_failure(self, perf_messages):
        """A failing stage is logged and the error propagates."""
        with pytest.raises(ValueError):
            with timed_stage("decode", feature="tunnel"):
                raise ValueError("bad context")

        assert "FAIL: bad context | feature=tunnel" in perf_messages[0]

    def test_plan_logs_each_feature(self, perf_messages):
        """Planning logs decode and reconcile per feature with record counts."""
        engine = ConfigEngine()
        desired = engine.parse({"device": "rtx", "records": {
            "ip_filter": [{"number": 1, "action": "reject"}],
        }})

        engine.plan(desired, "ip filter 1 reject * * *\nip filter 2 pass * * *\n")

        assert any(
            m.startswith("decode") and m.endswith("feature=ip_filter | records=2 | errors=0")
            for m in perf_messages
        )
        assert any(
            m.startswith("reconcile")
            and m.endswith("feature=ip_filter | desired=1 | observed=2 | ghosts=1")
            for m in perf_messages
        )
