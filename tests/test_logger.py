"""
Tests for logger functionality.
"""

import pytest

from gradeviewer.logger import StructuredLogger, get_logger, reset_logger


class TestStructuredLogger:
    """Test structured logging functionality."""

    def test_logger_creation(self, tmp_path):
        """Logger should be created with default settings."""
        logger = StructuredLogger(name="test", level="INFO", log_dir=tmp_path, enable_console=False)

        assert logger.logger.name == "test"
        assert logger.metrics["lookups_attempted"] == 0
        assert logger.metrics["grades_computed"] == 0

    def test_log_methods(self, tmp_path):
        """All log level methods should work."""
        logger = StructuredLogger(name="test", log_dir=tmp_path, enable_console=False)

        logger.debug("Debug message")
        logger.info("Info message")
        logger.warning("Warning message")
        logger.error("Error message")
        logger.critical("Critical message")

    def test_context_written_as_json(self, tmp_path):
        """Keyword context should be appended to the message."""
        logger = StructuredLogger(name="test-context", log_dir=tmp_path, enable_console=False)

        logger.info("Synced record", student_number="2021-0001", updated=True)

        content = next(tmp_path.glob("*.log")).read_text()
        assert 'Synced record | Context: {"student_number": "2021-0001", "updated": true}' in content

    def test_metrics_tracking(self, tmp_path):
        """Metrics should be tracked correctly."""
        logger = StructuredLogger(name="test", log_dir=tmp_path, enable_console=False)

        logger.record_lookup_attempt("moodle")
        logger.record_lookup_success("moodle")
        logger.record_lookup_attempt("moodle")
        logger.record_lookup_failure("moodle", "ExternalLookupError")
        logger.record_update()
        logger.record_not_found()
        logger.record_grades_computed(30)

        metrics = logger.get_metrics()

        assert metrics["lookups_attempted"] == 2
        assert metrics["lookups_failed"] == 1
        assert metrics["records_updated"] == 1
        assert metrics["records_not_found"] == 1
        assert metrics["grades_computed"] == 30
        assert metrics["errors_by_type"]["ExternalLookupError"] == 1
        assert metrics["source_success_rate"]["moodle"]["success_rate"] == 0.5

    def test_success_rate_calculation(self, tmp_path):
        """Success rate should be calculated correctly."""
        logger = StructuredLogger(name="test", log_dir=tmp_path, enable_console=False)

        for _ in range(3):
            logger.record_lookup_attempt("moodle")
        logger.record_lookup_success("moodle")
        logger.record_lookup_success("moodle")

        success_rate = logger.get_metrics()["source_success_rate"]["moodle"]["success_rate"]
        assert success_rate == pytest.approx(0.667, rel=0.01)

    def test_reset_metrics(self, tmp_path):
        logger = StructuredLogger(name="test", log_dir=tmp_path, enable_console=False)
        logger.record_update(5)

        logger.reset_metrics()

        assert logger.metrics["records_updated"] == 0

    def test_metrics_summary(self, tmp_path):
        logger = StructuredLogger(name="test-summary", log_dir=tmp_path, enable_console=False)
        logger.record_lookup_attempt("moodle")
        logger.record_lookup_failure("moodle", "AuthenticationError")

        logger.log_metrics_summary()

        content = next(tmp_path.glob("*.log")).read_text()
        assert "Lookups: 0/1 (0.0% ok)" in content
        assert "AuthenticationError: 1" in content

    def test_log_file_creation(self, tmp_path):
        """Log file should be created in specified directory."""
        logger = StructuredLogger(name="test", log_dir=tmp_path, enable_console=False)

        logger.info("Test message")

        log_files = list(tmp_path.glob("gradeviewer_*.log"))
        assert len(log_files) == 1
        assert "Test message" in log_files[0].read_text()


class TestGlobalLogger:
    """Test global logger singleton."""

    def test_get_logger_singleton(self, tmp_path):
        """get_logger should return same instance."""
        reset_logger()

        logger1 = get_logger(log_dir=tmp_path, enable_console=False)
        logger2 = get_logger()

        assert logger1 is logger2
        reset_logger()

    def test_reset_logger(self, tmp_path):
        """reset_logger should create new instance."""
        reset_logger()

        logger1 = get_logger(log_dir=tmp_path, enable_console=False)
        logger1.record_update()

        reset_logger()

        logger2 = get_logger(log_dir=tmp_path, enable_console=False)
        assert logger2 is not logger1
        assert logger2.metrics["records_updated"] == 0
        reset_logger()

    def test_level_from_environment(self, tmp_path, monkeypatch):
        reset_logger()
        monkeypatch.setenv("GRADEVIEWER_LOG_LEVEL", "WARNING")
        monkeypatch.setenv("GRADEVIEWER_LOG_DIR", str(tmp_path))

        logger = get_logger(enable_console=False)

        assert logger.logger.level == 30
        assert list(tmp_path.glob("*.log"))
        reset_logger()
