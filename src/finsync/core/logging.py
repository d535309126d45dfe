"""Logging setup with PII filtering and JSON output."""

import json
import logging
import re
import sys

# PII patterns to filter from logs
PII_PATTERNS = [
    # Card-like numbers (13-19 digits, with or without spaces/dashes)
    (re.compile(r"\b\d{4}[\s-]?\d{4}[\s-]?\d{4}[\s-]?\d{1,7}\b"), "[CARD]"),
    # Email addresses
    (re.compile(r"\b[A-Za-z0-9._%+-]+@[A-Za-z0-9.-]+\.[A-Za-z]{2,}\b"), "[EMAIL]"),
    # Plaid access tokens
    (re.compile(r"\baccess-(?:sandbox|development|production)-[0-9a-f-]+\b"), "[ACCESS_TOKEN]"),
    # Encrypted token envelopes
    (re.compile(r"\benc:v1:[0-9a-f:]+"), "[SECRET]"),
]

_EXTRA_FIELDS = (
    "request_id",
    "user_id",
    "method",
    "path",
    "status_code",
    "duration_ms",
    "error_code",
    "error_type",
    "client_ip",
    "job_id",
    "plaid_item_id",
    "attempt",
    "status",
)


def filter_pii(text: str) -> str:
    """Remove PII from text using regex patterns."""
    if not text:
        return text

    filtered = text
    for pattern, replacement in PII_PATTERNS:
        filtered = pattern.sub(replacement, filtered)
    return filtered


class JSONLogFormatter(logging.Formatter):
    """Format log records as JSON for structured logging."""

    def format(self, record: logging.LogRecord) -> str:
        log_data = {
            "timestamp": self.formatTime(record),
            "level": record.levelname,
            "logger": record.name,
            "message": filter_pii(record.getMessage()),
        }

        for field in _EXTRA_FIELDS:
            value = getattr(record, field, None)
            if value is not None:
                log_data[field] = value if isinstance(value, (int, float, bool)) else str(value)

        if record.exc_info:
            log_data["exception"] = filter_pii(self.formatException(record.exc_info))

        return json.dumps(log_data)


def setup_logging(level: str = "INFO") -> None:
    """
    Configure the root logger with a JSON console handler.

    Args:
        level: Log level ('DEBUG', 'INFO', 'WARNING', 'ERROR')
    """
    log_level = getattr(logging, level.upper(), logging.INFO)

    root_logger = logging.getLogger()
    root_logger.setLevel(log_level)

    # Re-running (tests, reloads) must not stack handlers.
    for handler in root_logger.handlers:
        if isinstance(handler.formatter, JSONLogFormatter):
            handler.setLevel(log_level)
            return

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(log_level)
    console_handler.setFormatter(JSONLogFormatter())
    root_logger.addHandler(console_handler)
