"""
Centralized logging configuration with structured logging support.
"""
import json
import logging
import logging.config
import sys
from contextvars import ContextVar
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from irt_engine.core.config import Settings, settings as default_settings

# Calibration job ID for correlating every log line emitted while a batch runs.
# Set by CalibrationRunner and scripts/run_irt_calibration.py.
calibration_job_id_context: ContextVar[Optional[str]] = ContextVar(
    "calibration_job_id", default=None
)

# Structured fields copied from `extra=` onto JSON log entries when present
_STRUCTURED_FIELDS = ("item_id", "scale_id", "examinee_id", "duration_ms")


class JSONFormatter(logging.Formatter):
    """
    JSON formatter for production logging.

    Produces structured log entries with consistent fields for log aggregation.
    """

    def format(self, record: logging.LogRecord) -> str:
        """Format log record as JSON."""
        timestamp = datetime.fromtimestamp(record.created, tz=timezone.utc)
        log_entry: Dict[str, Any] = {
            "timestamp": timestamp.isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        job_id = calibration_job_id_context.get()
        if job_id:
            log_entry["calibration_job_id"] = job_id

        for field_name in _STRUCTURED_FIELDS:
            if hasattr(record, field_name):
                log_entry[field_name] = getattr(record, field_name)

        # Add source location for error-level logs
        if record.levelno >= logging.ERROR:
            log_entry["source"] = f"{record.pathname}:{record.lineno}"

        if record.exc_info:
            log_entry["exception"] = self.formatException(record.exc_info)

        return json.dumps(log_entry, default=str)


def setup_logging(config: Optional[Settings] = None) -> None:
    """
    Configure engine-wide logging with structured output.

    Configures:
    - Log level from LOG_LEVEL
    - JSON formatting for production (structured for log aggregators)
    - Human-readable format for development

    Args:
        config: Settings to read from. Defaults to the module singleton.
    """
    config = config or default_settings
    log_level = getattr(logging, config.LOG_LEVEL.upper(), logging.INFO)

    is_production = config.ENV == "production"

    logging_config: Dict[str, Any] = {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {
            "default": {
                "format": "%(asctime)s - %(name)s - %(levelname)s - %(message)s",
                "datefmt": "%Y-%m-%d %H:%M:%S",
            },
            "json": {
                "()": JSONFormatter,
            },
        },
        "handlers": {
            "console": {
                "class": "logging.StreamHandler",
                "level": log_level,
                "formatter": "json" if is_production else "default",
                "stream": sys.stdout,
            },
        },
        "root": {
            "level": log_level,
            "handlers": ["console"],
        },
        "loggers": {
            "irt_engine": {
                "level": log_level,
                "handlers": ["console"],
                "propagate": False,
            },
            # Per-iteration estimator output is only useful when debugging
            "irt_engine.core.cat.ability_estimation": {
                "level": logging.DEBUG if config.DEBUG else max(log_level, logging.INFO),
                "handlers": ["console"],
                "propagate": False,
            },
        },
    }

    logging.config.dictConfig(logging_config)

