"""
Centralized Logging Management for the Sync Module.

This module provides a unified logging setup so that every component of the
replication engine reports pass progress, retries and failures consistently.

Key Features:
- Plain text lines (`[LEVEL] <timestamp> <logger> <message>`) for terminals
  and container logs.
- Structured Logging: optional JSON lines output for log shippers.
- Structured Context: `extra={'details': {...}}` is rendered in both formats.
- Single configuration point: the CLI configures logging once at startup.
"""

import logging
import sys
import json
from datetime import datetime, timezone
from typing import Optional

LOGGER_NAME = "clustersync"
LOG_FORMATS = ("text", "json")


def _iso_timestamp(record: logging.LogRecord) -> str:
    return datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(timespec='milliseconds')


class JsonFormatter(logging.Formatter):
    """
    Custom formatter to output logs in JSON format.
    """
    def format(self, record):
        log_record = {
            "timestamp": _iso_timestamp(record),
            "level": record.levelname,
            "name": record.name,
            "message": record.getMessage(),
        }
        if record.exc_info:
            log_record['exc_info'] = self.formatException(record.exc_info)
        if hasattr(record, 'details'):
            log_record['details'] = record.details
        return json.dumps(log_record, default=str)


class TextFormatter(logging.Formatter):
    """
    Human readable lines tagged with level and an ISO timestamp.
    """
    def format(self, record):
        line = f"[{record.levelname}] {_iso_timestamp(record)} {record.name} {record.getMessage()}"
        if hasattr(record, 'details'):
            line += f" {json.dumps(record.details, default=str)}"
        if record.exc_info:
            line += "\n" + self.formatException(record.exc_info)
        return line


class LoggingManager:
    """
    Manages the logging configuration for the entire package.
    """
    _instance = None

    def __new__(cls, *args, **kwargs):
        if not cls._instance:
            cls._instance = super(LoggingManager, cls).__new__(cls)
        return cls._instance

    def __init__(self, log_level: str = "INFO", log_format: str = "text"):
        if hasattr(self, '_initialized') and self._initialized:
            return

        if log_format not in LOG_FORMATS:
            raise ValueError(f"Unknown log format: {log_format}. Must be one of: {', '.join(LOG_FORMATS)}")

        self.log_level = log_level.upper()
        self.log_format = log_format
        self.logger = logging.getLogger(LOGGER_NAME)
        self.logger.setLevel(self.log_level)
        self.logger.propagate = False  # Prevent duplicate logs in parent handlers

        # Remove existing handlers to avoid duplication
        if self.logger.hasHandlers():
            self.logger.handlers.clear()

        console_handler = logging.StreamHandler(sys.stdout)
        console_handler.setLevel(self.log_level)
        console_handler.setFormatter(JsonFormatter() if log_format == "json" else TextFormatter())
        self.logger.addHandler(console_handler)

        self._initialized = True

    @classmethod
    def reconfigure(cls, log_level: str = "INFO", log_format: str = "text") -> 'LoggingManager':
        """
        Drop the current configuration and apply a new one.
        """
        if cls._instance is not None:
            cls._instance._initialized = False
        return cls(log_level=log_level, log_format=log_format)

    @staticmethod
    def get_logger(name: str) -> logging.Logger:
        """
        Provides a logger under the package hierarchy.
        """
        if not name.startswith(LOGGER_NAME):
            name = f"{LOGGER_NAME}.{name}"
        return logging.getLogger(name)


def get_logger(name: Optional[str] = None) -> logging.Logger:
    """
    Convenience function to get a logger instance.
    """
    return LoggingManager.get_logger(name or LOGGER_NAME)
