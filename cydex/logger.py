"""
Structured logging for the scraper.

Provides console and file output with JSON-rendered context, plus
session metrics for fetch health and entity resolution outcomes.
"""

import logging
import sys
from pathlib import Path
from typing import Optional
from datetime import datetime
import json

ENTITY_OUTCOMES = ("created", "merged", "skipped", "failed")


class StructuredLogger:
    """
    Logger with console and file outputs.
    Tracks fetch and resolution metrics for a scraping session.
    """

    def __init__(
        self,
        name: str = "cydex",
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

        self.metrics = {
            "model_calls": 0,
            "fetches_attempted": 0,
            "fetches_successful": 0,
            "fetches_failed": 0,
            "errors_by_type": {},
            "domain_success_rate": {},
            "entities": {outcome: 0 for outcome in ENTITY_OUTCOMES},
        }

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

            log_file = log_dir / f"cydex_{datetime.now().strftime('%Y%m%d')}.log"
            file_handler = logging.FileHandler(log_file, encoding='utf-8')
            file_handler.setLevel(logging.DEBUG)  # file gets everything
            file_handler.setFormatter(logging.Formatter(
                fmt='%(asctime)s | %(levelname)-8s | %(name)s:%(lineno)d | %(message)s',
                datefmt='%Y-%m-%d %H:%M:%S'
            ))
            self.logger.addHandler(file_handler)

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
        if context:
            message = f"{message} | Context: {json.dumps(context, default=str)}"
        self.logger.log(level, message)

    # Metric tracking

    def record_model_call(self):
        self.metrics["model_calls"] += 1

    def record_fetch_attempt(self, domain: str):
        self.metrics["fetches_attempted"] += 1
        stats = self.metrics["domain_success_rate"].setdefault(
            domain, {"attempts": 0, "successes": 0}
        )
        stats["attempts"] += 1

    def record_fetch_success(self, domain: str):
        self.metrics["fetches_successful"] += 1
        if domain in self.metrics["domain_success_rate"]:
            self.metrics["domain_success_rate"][domain]["successes"] += 1

    def record_fetch_failure(self, domain: str, error_type: str):
        self.metrics["fetches_failed"] += 1
        self.record_error(error_type)

    def record_error(self, error_type: str):
        errors = self.metrics["errors_by_type"]
        errors[error_type] = errors.get(error_type, 0) + 1

    def record_entity_outcome(self, outcome: str):
        """Count a resolution outcome (created, merged, skipped, failed)."""
        if outcome not in self.metrics["entities"]:
            raise ValueError(f"Unknown entity outcome: {outcome}")
        self.metrics["entities"][outcome] += 1

    def get_metrics(self) -> dict:
        metrics_copy = self.metrics.copy()
        for stats in metrics_copy["domain_success_rate"].values():
            if stats["attempts"] > 0:
                stats["success_rate"] = round(stats["successes"] / stats["attempts"], 3)
        return metrics_copy

    def log_metrics_summary(self):
        """Log a summary of current metrics."""
        metrics = self.get_metrics()

        attempts = metrics["fetches_attempted"]
        successes = metrics["fetches_successful"]
        overall_rate = round(successes / attempts * 100, 1) if attempts else 0

        self.info("=== Scraping Session Metrics ===")
        self.info(f"Model calls: {metrics['model_calls']}")
        self.info(f"Fetches: {successes}/{attempts} ({overall_rate}% success)")

        entities = metrics["entities"]
        self.info(
            "Entities: "
            + " ".join(f"{outcome}={entities[outcome]}" for outcome in ENTITY_OUTCOMES)
        )

        if metrics["domain_success_rate"]:
            self.info("Domain Success Rates:")
            for domain, stats in metrics["domain_success_rate"].items():
                rate = stats.get("success_rate", 0) * 100
                self.info(f"  {domain}: {stats['successes']}/{stats['attempts']} ({rate:.1f}%)")

        if metrics["errors_by_type"]:
            self.info("Error Types:")
            for error_type, count in metrics["errors_by_type"].items():
                self.info(f"  {error_type}: {count}")


_global_logger: Optional[StructuredLogger] = None


def get_logger(
    name: str = "cydex",
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
