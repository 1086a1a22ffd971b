"""
Structured logging system for deploytrace.

Provides centralized logging with console and file outputs, log levels,
and metrics tracking for how pipeline stages were correlated.
"""

import logging
import sys
from pathlib import Path
from typing import Optional
from datetime import datetime
import json


class StructuredLogger:
    """
    Centralized logger with support for console and file outputs.
    Tracks store calls and correlation outcomes per pipeline stage.
    """

    def __init__(
        self,
        name: str = "deploytrace",
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
        # Close files held by an earlier logger of the same name
        for handler in list(self.logger.handlers):
            handler.close()
        self.logger.handlers.clear()

        self.metrics = {
            "store_calls": {},
            "outcomes_by_stage": {},
            "failures": 0,
            "errors_by_type": {},
        }

        if enable_console:
            console_handler = logging.StreamHandler(sys.stdout)
            console_handler.setLevel(getattr(logging, level.upper()))
            console_formatter = logging.Formatter(
                fmt='%(asctime)s | %(levelname)-8s | %(name)s | %(message)s',
                datefmt='%Y-%m-%d %H:%M:%S'
            )
            console_handler.setFormatter(console_formatter)
            self.logger.addHandler(console_handler)

        if enable_file:
            if log_dir is None:
                log_dir = Path("logs")
            log_dir = Path(log_dir)
            log_dir.mkdir(parents=True, exist_ok=True)

            log_file = log_dir / f"deploytrace_{datetime.now().strftime('%Y%m%d')}.log"
            file_handler = logging.FileHandler(log_file, encoding='utf-8')
            file_handler.setLevel(logging.DEBUG)  # Always log everything to file
            file_formatter = logging.Formatter(
                fmt='%(asctime)s | %(levelname)-8s | %(name)s:%(lineno)d | %(message)s',
                datefmt='%Y-%m-%d %H:%M:%S'
            )
            file_handler.setFormatter(file_formatter)
            self.logger.addHandler(file_handler)

    def debug(self, message: str, **kwargs):
        """Log debug message with optional context."""
        self._log(logging.DEBUG, message, kwargs)

    def info(self, message: str, **kwargs):
        """Log info message with optional context."""
        self._log(logging.INFO, message, kwargs)

    def warning(self, message: str, **kwargs):
        """Log warning message with optional context."""
        self._log(logging.WARNING, message, kwargs)

    def error(self, message: str, **kwargs):
        """Log error message with optional context."""
        self._log(logging.ERROR, message, kwargs)

    def critical(self, message: str, **kwargs):
        """Log critical message with optional context."""
        self._log(logging.CRITICAL, message, kwargs)

    def _log(self, level: int, message: str, context: dict):
        """Internal logging method with context."""
        if context:
            message = f"{message} | Context: {json.dumps(context, default=str)}"
        self.logger.log(level, message)

    # Metric tracking methods

    def record_store_call(self, operation: str):
        """Count a call to the entity store (query, insert, replace, delete)."""
        calls = self.metrics["store_calls"]
        calls[operation] = calls.get(operation, 0) + 1

    def record_outcome(self, stage: str, outcome: str):
        """Record how a stage call was resolved (matched, donor, orphan...)."""
        by_stage = self.metrics["outcomes_by_stage"].setdefault(stage, {})
        by_stage[outcome] = by_stage.get(outcome, 0) + 1

    def record_failure(self, operation: str, error_type: str):
        """Record a failed store operation."""
        self.metrics["failures"] += 1
        key = f"{operation}:{error_type}"
        if key not in self.metrics["errors_by_type"]:
            self.metrics["errors_by_type"][key] = 0
        self.metrics["errors_by_type"][key] += 1

    def get_metrics(self) -> dict:
        """Return current metrics, with a correlation rate per stage."""
        metrics_copy = json.loads(json.dumps(self.metrics))
        for stage, outcomes in metrics_copy["outcomes_by_stage"].items():
            total = sum(outcomes.values())
            if total > 0:
                outcomes["match_rate"] = round(outcomes.get("matched", 0) / total, 3)
        return metrics_copy

    def log_metrics_summary(self):
        """Log a summary of current metrics."""
        metrics = self.get_metrics()

        self.info("=== Correlation Metrics ===")
        total_calls = sum(metrics["store_calls"].values())
        self.info(f"Store calls: {total_calls}")
        for operation, count in sorted(metrics["store_calls"].items()):
            self.info(f"  {operation}: {count}")

        if metrics["outcomes_by_stage"]:
            self.info("Outcomes by stage:")
            for stage, outcomes in sorted(metrics["outcomes_by_stage"].items()):
                counts = ", ".join(
                    f"{k}={v}" for k, v in sorted(outcomes.items()) if k != "match_rate"
                )
                rate = outcomes.get("match_rate")
                suffix = f" ({rate * 100:.1f}% matched)" if rate is not None else ""
                self.info(f"  {stage}: {counts}{suffix}")

        if metrics["errors_by_type"]:
            self.info(f"Failures: {metrics['failures']}")
            for error_type, count in metrics["errors_by_type"].items():
                self.info(f"  {error_type}: {count}")


# Global logger instance
_global_logger: Optional[StructuredLogger] = None


def get_logger(
    name: str = "deploytrace",
    level: str = "INFO",
    **kwargs
) -> StructuredLogger:
    """
    Get or create the global logger instance.

    Args:
        name: Logger name
        level: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        **kwargs: Additional arguments passed to StructuredLogger

    Returns:
        StructuredLogger instance
    """
    global _global_logger

    if _global_logger is None:
        _global_logger = StructuredLogger(name=name, level=level, **kwargs)

    return _global_logger


def reset_logger():
    """Reset the global logger (useful for testing)."""
    global _global_logger
    _global_logger = None
