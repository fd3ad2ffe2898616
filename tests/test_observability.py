"""
Tests for observability — logging setup.
"""

import logging
from pathlib import Path

from fodcheck.core.observability.logging_config import (
    WorkerFilter,
    _parse_level,
    setup_logging,
)


class TestSetupLogging:
    def test_default_warning_console(self):
        setup_logging()
        root = logging.getLogger()
        assert root.level == logging.WARNING
        assert len(root.handlers) == 1
        assert root.handlers[0].formatter._fmt == "%(message)s"

    def test_debug_format(self):
        setup_logging("DEBUG")
        handler = logging.getLogger().handlers[0]
        assert "%(lineno)d" in handler.formatter._fmt
        assert "%(worker)s" in handler.formatter._fmt

    def test_verbose_lines_name_the_worker(self):
        setup_logging("INFO")
        handler = logging.getLogger().handlers[0]
        record = logging.LogRecord(
            "fodcheck.core.engine.executor", logging.WARNING, __file__, 1,
            "Evaluation for %s failed", ("pkgA",), None,
        )
        record.threadName = "discover_3"
        assert handler.filter(record)
        assert handler.format(record).endswith("[discover_3] Evaluation for pkgA failed")

    def test_non_pool_threads_are_main(self):
        record = logging.LogRecord("x", logging.INFO, __file__, 1, "msg", (), None)
        for name in ("MainThread", "verify", "verify_x", "other_0"):
            record.threadName = name
            WorkerFilter().filter(record)
            assert record.worker == "main"
        record.threadName = "verify_12"
        WorkerFilter().filter(record)
        assert record.worker == "verify_12"

    def test_warning_lines_stay_bare(self):
        setup_logging()
        handler = logging.getLogger().handlers[0]
        record = logging.LogRecord("x", logging.WARNING, __file__, 1, "skipped", (), None)
        record.threadName = "verify_0"
        handler.filter(record)
        assert handler.format(record) == "skipped"

    def test_log_file(self, tmp_path: Path):
        log_file = tmp_path / "fodcheck.log"
        setup_logging("WARNING", log_file=str(log_file), log_file_level="DEBUG")
        root = logging.getLogger()
        assert root.level == logging.DEBUG
        assert len(root.handlers) == 2

        logging.getLogger("fodcheck.test").debug("to file only")
        for handler in root.handlers:
            handler.flush()
        assert "to file only" in log_file.read_text()
        root.handlers[1].close()


class TestParseLevel:
    def test_known(self):
        assert _parse_level("info") == logging.INFO

    def test_unknown_falls_back(self):
        assert _parse_level("loud") == logging.WARNING
        assert _parse_level(None) == logging.WARNING
