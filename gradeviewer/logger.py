"""
Structured logging for grade computation and LMS reconciliation runs.

Wraps the standard logging module with console and file outputs and keeps
run metrics (lookups, updates, not-found records, computed grades) so a
sync or recompute can finish with a one-glance summary.
"""

import json
import logging
import os
import sys
from datetime import datetime
from pathlib import Path
from typing import Optional


class StructuredLogger:
    """
    Logger with console/file outputs and per-run metrics.
    """

    def __init__(
        self,
        name: str = "gradeviewer",
        level: str = "INFO",
        log_dir: Optional[Path] = None,
        enable_file: bool = True,
        enable_console: bool = True,
    ):
        """
        Initialize the structured logger.

        Args:
            name: Logger name
            level: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
            log_dir: Directory for log files (default: logs/)
            enable_file: Write logs to file
            enable_console: Output logs to console
        """
        self.logger = logging.getLogger(name)
        self.logger.setLevel(getattr(logging, level.upper()))
        self.logger.handlers.clear()
        self.logger.propagate = False

        self.metrics = self._empty_metrics()

        if enable_console:
            console_handler = logging.StreamHandler(sys.stdout)
            console_handler.setLevel(getattr(logging, level.upper()))
            console_handler.setFormatter(logging.Formatter(
                fmt='%(asctime)s | %(levelname)-8s | %(name)s | %(message)s',
                datefmt='%Y-%m-%d %H:%M:%S'
            ))
            self.logger.addHandler(console_handler)

        if enable_file:
            if log_dir is None:
                log_dir = Path("logs")
            log_dir.mkdir(parents=True, exist_ok=True)

            log_file = log_dir / f"gradeviewer_{datetime.now().strftime('%Y%m%d')}.log"
            file_handler = logging.FileHandler(log_file, encoding='utf-8')
            file_handler.setLevel(logging.DEBUG)  # file always gets everything
            file_handler.setFormatter(logging.Formatter(
                fmt='%(asctime)s | %(levelname)-8s | %(name)s:%(lineno)d | %(message)s',
                datefmt='%Y-%m-%d %H:%M:%S'
            ))
            self.logger.addHandler(file_handler)

    @staticmethod
    def _empty_metrics() -> dict:
        return {
            "lookups_attempted": 0,
            "lookups_failed": 0,
            "records_updated": 0,
            "records_not_found": 0,
            "grades_computed": 0,
            "errors_by_type": {},
            "source_success_rate": {},
        }

    def debug(self, message: str, **kwargs):
        self._log(logging.DEBUG, message, kwargs)

    def info(self, message: str, **kwargs):
        self._log(logging.INFO, message, kwargs)

    def warning(self, message: str, **kwargs):
        self._log(logging.WARNING, message, kwargs)

    def error(self, message: str, **kwargs):
        self._log(logging.ERROR, message, kwargs)

    def critical(self, message: str, **kwargs):
        self._log(logging.CRITICAL, message, kwargs)

    def _log(self, level: int, message: str, context: dict):
        """Append keyword context as JSON after the message."""
        if context:
            message = f"{message} | Context: {json.dumps(context, default=str)}"
        self.logger.log(level, message)

    # Metric tracking

    def record_lookup_attempt(self, source: str):
        """Record an identity lookup against an external source."""
        self.metrics["lookups_attempted"] += 1
        stats = self.metrics["source_success_rate"].setdefault(
            source, {"attempts": 0, "successes": 0}
        )
        stats["attempts"] += 1

    def record_lookup_success(self, source: str):
        if source in self.metrics["source_success_rate"]:
            self.metrics["source_success_rate"][source]["successes"] += 1

    def record_lookup_failure(self, source: str, error_type: str):
        self.metrics["lookups_failed"] += 1
        errors = self.metrics["errors_by_type"]
        errors[error_type] = errors.get(error_type, 0) + 1

    def record_update(self, count: int = 1):
        self.metrics["records_updated"] += count

    def record_not_found(self, count: int = 1):
        self.metrics["records_not_found"] += count

    def record_grades_computed(self, count: int = 1):
        self.metrics["grades_computed"] += count

    def get_metrics(self) -> dict:
        """Return current metrics with success rates filled in."""
        metrics_copy = self.metrics.copy()
        for source, stats in metrics_copy["source_success_rate"].items():
            if stats["attempts"] > 0:
                stats["success_rate"] = round(stats["successes"] / stats["attempts"], 3)
        return metrics_copy

    def reset_metrics(self):
        self.metrics = self._empty_metrics()

    def log_metrics_summary(self):
        """Log a summary of current metrics."""
        metrics = self.get_metrics()

        attempts = metrics["lookups_attempted"]
        failed = metrics["lookups_failed"]
        ok_rate = 0
        if attempts > 0:
            ok_rate = round((attempts - failed) / attempts * 100, 1)

        self.info("=== Run Metrics ===")
        self.info(f"Lookups: {attempts - failed}/{attempts} ({ok_rate}% ok)")
        self.info(f"Records updated: {metrics['records_updated']}")
        self.info(f"Records not found: {metrics['records_not_found']}")
        self.info(f"Grades computed: {metrics['grades_computed']}")

        if metrics["source_success_rate"]:
            self.info("Source Success Rates:")
            for source, stats in metrics["source_success_rate"].items():
                rate = stats.get("success_rate", 0) * 100
                self.info(f"  {source}: {stats['successes']}/{stats['attempts']} ({rate:.1f}%)")

        if metrics["errors_by_type"]:
            self.info("Error Types:")
            for error_type, count in metrics["errors_by_type"].items():
                self.info(f"  {error_type}: {count}")


_global_logger: Optional[StructuredLogger] = None


def get_logger(
    name: str = "gradeviewer",
    level: Optional[str] = None,
    **kwargs
) -> StructuredLogger:
    """
    Get or create the process-wide logger.

    Level falls back to GRADEVIEWER_LOG_LEVEL, the log directory to
    GRADEVIEWER_LOG_DIR.

    Returns:
        StructuredLogger instance
    """
    global _global_logger

    if _global_logger is None:
        level = level or os.getenv("GRADEVIEWER_LOG_LEVEL", "INFO")
        if "log_dir" not in kwargs and os.getenv("GRADEVIEWER_LOG_DIR"):
            kwargs["log_dir"] = Path(os.environ["GRADEVIEWER_LOG_DIR"])
        _global_logger = StructuredLogger(name=name, level=level, **kwargs)

    return _global_logger


def reset_logger():
    """Drop the process-wide logger (tests use this)."""
    global _global_logger
    _global_logger = None
