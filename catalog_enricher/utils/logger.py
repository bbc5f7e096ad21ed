"""
Logging infrastructure for the enrichment pipeline.

Provides:
- Structured logging with millisecond timestamps
- key=value suffixes for structured data
- File and console output
- Error and warning tracking for the end-of-run summary
"""

import logging
import sys
from contextlib import contextmanager
from datetime import datetime
from pathlib import Path
from typing import Optional


class MillisecondsFormatter(logging.Formatter):
    """Custom formatter that includes milliseconds and aligns log levels."""

    def formatTime(self, record, datefmt=None):  # noqa: N802 - must match parent class method name
        """Override formatTime to include milliseconds."""
        ct = datetime.fromtimestamp(record.created)
        if datefmt and "%f" in datefmt:
            s = ct.strftime(datefmt.replace(",%f", ""))
            return s + f",{int(record.msecs):03d}"
        elif datefmt:
            return ct.strftime(datefmt)
        else:
            return ct.strftime("%Y-%m-%d %H:%M:%S") + f",{int(record.msecs):03d}"


def _format_message(message: str, kwargs: dict) -> str:
    if not kwargs:
        return message
    formatted_data = " ".join(f"{k}={v}" for k, v in kwargs.items())
    return f"{message} [{formatted_data}]"


class PipelineLogger:
    """
    Centralized logger for the pipeline with structured output.
    """

    def __init__(
        self,
        name: str = "catalog_enricher",
        log_level: str = "INFO",
        log_file: Optional[str] = None,
        log_dir: Optional[Path] = None,
        table: Optional[str] = None,
    ):
        """
        Initialize the pipeline logger.

        Args:
            name: Logger name
            log_level: Logging level (DEBUG, INFO, WARNING, ERROR)
            log_file: Optional log file name
            log_dir: Directory for log files (defaults to logs/)
            table: Optional table name shown in every line (e.g., "Benchmarks")
        """
        self.logger = logging.getLogger(name)
        self.logger.setLevel(getattr(logging, log_level.upper()))
        self.table = table

        # Prevent propagation to root logger to avoid duplicate logs
        self.logger.propagate = False

        if self.logger.handlers:
            self.logger.handlers.clear()

        if table:
            fmt_str = f"%(asctime)s | %(levelname)-8s | {table} | %(filename)s:%(lineno)d | %(message)s"
        else:
            fmt_str = "%(asctime)s | %(levelname)-8s | %(filename)s:%(lineno)d | %(message)s"

        console_handler = logging.StreamHandler(sys.stdout)
        console_handler.setLevel(getattr(logging, log_level.upper()))
        console_formatter = MillisecondsFormatter(fmt_str, datefmt="%Y-%m-%d %H:%M:%S,%f")
        console_handler.setFormatter(console_formatter)
        self.logger.addHandler(console_handler)

        if log_file:
            if log_dir is None:
                log_dir = Path.cwd() / "logs"

            log_dir.mkdir(parents=True, exist_ok=True)
            log_path = log_dir / log_file

            file_handler = logging.FileHandler(log_path)
            file_handler.setLevel(logging.DEBUG)  # Log everything to file
            file_handler.setFormatter(MillisecondsFormatter(fmt_str, datefmt="%Y-%m-%d %H:%M:%S,%f"))
            self.logger.addHandler(file_handler)

            self.info(f"Logging to file: {log_path}")

        self._configure_external_loggers(log_level, console_formatter)

        # Track errors for summary reporting
        self.errors = []
        self.warnings = []

    def _configure_external_loggers(self, log_level: str, formatter: logging.Formatter):
        """
        Route module loggers (logging.getLogger(__name__)) through the same format
        and keep HTTP client libraries quiet.
        """
        root_logger = logging.getLogger()
        root_logger.setLevel(getattr(logging, log_level.upper()))
        root_logger.handlers.clear()

        root_handler = logging.StreamHandler(sys.stdout)
        root_handler.setLevel(getattr(logging, log_level.upper()))
        root_handler.setFormatter(formatter)
        root_logger.addHandler(root_handler)

        for lib_name in ["LiteLLM", "litellm", "httpx", "httpcore", "openai", "urllib3"]:
            logging.getLogger(lib_name).setLevel(logging.WARNING)

    def debug(self, message: str, **kwargs):
        """Log debug message with optional structured data."""
        self.logger.debug(_format_message(message, kwargs), stacklevel=2)

    def info(self, message: str, **kwargs):
        """Log info message with optional structured data."""
        self.logger.info(_format_message(message, kwargs), stacklevel=2)

    def warning(self, message: str, **kwargs):
        """Log warning message and track for reporting."""
        message = _format_message(message, kwargs)
        self.logger.warning(message, stacklevel=2)
        self.warnings.append(
            {
                "message": message,
                "timestamp": datetime.now().isoformat(),
                "data": kwargs,
            }
        )

    def error(self, message: str, exception: Optional[Exception] = None, **kwargs):
        """Log error message and track for reporting."""
        if exception:
            message = f"{message} | Exception: {str(exception)}"
        message = _format_message(message, kwargs)

        self.logger.error(message, exc_info=exception is not None, stacklevel=2)
        self.errors.append(
            {
                "message": message,
                "exception": str(exception) if exception else None,
                "timestamp": datetime.now().isoformat(),
                "data": kwargs,
            }
        )

    def log_table_start(self, table: str, file_name: str):
        self.info("=" * 60)
        self.info(f"Starting {table} processing", file=file_name)
        self.info("=" * 60)

    def log_table_complete(self, result):
        """Log the per-table run summary (a TableRunResult)."""
        self.info(
            f"{result.table} processing complete",
            loaded=result.loaded,
            dropped=result.dropped,
            stubs=result.stubs_created,
            skipped=result.skipped_complete,
            enriched=result.enriched,
            failed=result.failed,
            fields_filled=result.fields_filled,
            validation_warnings=result.validation_warnings,
            relations_added=result.total_relations_added,
        )

    @contextmanager
    def time_operation(self, operation: str, **kwargs):
        """
        Context manager to time and log an operation.

        Usage:
            with logger.time_operation("enrich", table="Benchmarks"):
                ...
        """
        start_time = datetime.now()
        self.debug(f"Starting {operation}", **kwargs)
        try:
            yield
            duration = (datetime.now() - start_time).total_seconds()
            self.info(f"Completed {operation}", duration_seconds=round(duration, 2), **kwargs)
        except Exception as e:
            duration = (datetime.now() - start_time).total_seconds()
            self.error(f"Failed {operation}", exception=e, duration_seconds=round(duration, 2), **kwargs)
            raise

    def get_error_summary(self) -> dict:
        """Get summary of errors and warnings for reporting."""
        return {
            "total_errors": len(self.errors),
            "total_warnings": len(self.warnings),
            "errors": self.errors,
            "warnings": self.warnings,
        }


_default_logger: Optional[PipelineLogger] = None


def get_logger(
    name: str = "catalog_enricher",
    log_level: str = "INFO",
    log_file: Optional[str] = None,
    table: Optional[str] = None,
) -> PipelineLogger:
    """Get or create the default pipeline logger."""
    global _default_logger

    if _default_logger is None:
        _default_logger = PipelineLogger(
            name=name,
            log_level=log_level,
            log_file=log_file,
            table=table,
        )

    return _default_logger
