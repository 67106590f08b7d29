"""
Structured JSON logging for the changelog store.

Provides standardized logging with:
- JSON formatted output to stderr
- UTC timestamps with timezone info
- Structured context fields
- Secret redaction (bearer tokens and password hashes are never logged in full)

The store itself only obtains module loggers via logging.getLogger(__name__);
applications embedding it call setup_logging() once at startup, or open the
store with open_store(..., configure_logging=True).

Examples:
    >>> from changelog_store.utils.logging import setup_logging, get_logger
    >>> setup_logging(verbose=True)
    >>> logger = get_logger("changelog_store.storage.db")
    >>> logger.info("Store opened", extra={"context": {"path": "data/db.sqlite"}})

Security:
    - NEVER log full bearer tokens
    - NEVER log password hashes
    - Only stderr is used
"""

import json
import logging
import re
import sys
from typing import Any

from changelog_store.utils.time import utc_timestamp


class JSONFormatter(logging.Formatter):
    """
    Formatter rendering each record as one JSON object per line.

    Fields:
    - timestamp: ISO 8601 UTC timestamp
    - level: Log level (INFO, WARNING, ERROR, DEBUG)
    - component: Logger name, e.g. "changelog_store.storage.db"
    - message: Human-readable log message
    - context: Structured data passed as extra={'context': {...}}
    - workspace_id: Owning workspace, when passed as extra={'workspace_id': ...}
    - exception: Formatted traceback, when the record carries exc_info
    """

    def format(self, record: logging.LogRecord) -> str:
        """
        Serialize a log record to a JSON string.

        Args:
            record: Record produced by the logging machinery

        Returns:
            str: JSON object with the fields listed on the class
        """
        log_entry = {
            "timestamp": utc_timestamp(),
            "level": record.levelname,
            "component": record.name,
            "message": record.getMessage(),
        }

        # Only dict contexts are structured; anything else is dropped
        if hasattr(record, "context") and isinstance(record.context, dict):
            log_entry["context"] = record.context

        if hasattr(record, "workspace_id"):
            log_entry["workspace_id"] = record.workspace_id

        if record.exc_info:
            log_entry["exception"] = self.formatException(record.exc_info)

        return json.dumps(log_entry)


class SecretRedactingFilter(logging.Filter):
    """
    Logging filter that redacts credentials from log records.

    Prevents accidental logging of:
    - Authorization headers / bearer tokens
    - bcrypt password hashes ($2a$, $2b$, $2y$)
    - Any long opaque token-like string (workspace tokens are 43 chars)

    Each match keeps only its last 4 characters:
    "Bearer abc123xyz789abc123xyz789" -> "Bearer ***z789"
    """

    # Applied in order; the generic pattern runs last so it never splits a
    # bearer header or a bcrypt hash
    SECRET_PATTERNS = [
        (re.compile(r"\bBearer\s+[a-zA-Z0-9_-]{20,}"), "Bearer ***{last4}"),
        (re.compile(r"\$2[aby]\$\d{2}\$[./A-Za-z0-9]{53}"), "$2*$***{last4}"),
        (re.compile(r"\b[a-zA-Z0-9_-]{32,}\b"), "***{last4}"),
    ]

    def filter(self, record: logging.LogRecord) -> bool:
        """
        Redact secrets in the record's message, args and context in place.

        Args:
            record: Record about to be emitted

        Returns:
            bool: Always True; records are rewritten, never dropped
        """
        record.msg = self._redact_secrets(str(record.msg))

        if record.args:
            if isinstance(record.args, dict):
                record.args = {
                    k: self._redact_secrets(str(v)) for k, v in record.args.items()
                }
            elif isinstance(record.args, tuple):
                record.args = tuple(
                    self._redact_secrets(str(arg)) for arg in record.args
                )

        if hasattr(record, "context") and isinstance(record.context, dict):
            record.context = self._redact_dict(record.context)

        return True

    def _redact_secrets(self, text: str) -> str:
        """
        Replace every secret in text with its redacted form.

        Args:
            text: Message or value that may contain credentials

        Returns:
            str: Text with each secret reduced to a marker and its last 4 chars
        """
        for pattern, template in self.SECRET_PATTERNS:

            def redact_match(match: re.Match) -> str:
                matched = match.group(0)
                last4 = matched[-4:]
                return template.format(last4=last4)

            text = pattern.sub(redact_match, text)

        return text

    def _redact_dict(self, data: dict[str, Any]) -> dict[str, Any]:
        """
        Redact string values of a context dict, descending into nested dicts.

        List items are redacted when they are strings; other values pass
        through unchanged.

        Args:
            data: Structured log context

        Returns:
            dict: New dict with the same keys and redacted values
        """
        result = {}
        for key, value in data.items():
            if isinstance(value, str):
                result[key] = self._redact_secrets(value)
            elif isinstance(value, dict):
                result[key] = self._redact_dict(value)
            elif isinstance(value, list):
                result[key] = [
                    self._redact_secrets(v) if isinstance(v, str) else v for v in value
                ]
            else:
                result[key] = value
        return result


def setup_logging(verbose: bool = False) -> None:
    """
    Install JSON logging on the root logger.

    Replaces any existing root handlers with a single stderr handler that
    formats with JSONFormatter and redacts with SecretRedactingFilter.
    Calling it twice leaves one handler.

    Args:
        verbose: Log at DEBUG when True, otherwise INFO
    """
    level = logging.DEBUG if verbose else logging.INFO

    root_logger = logging.getLogger()
    root_logger.setLevel(level)

    # Remove any existing handlers (prevents duplicate logs)
    root_logger.handlers.clear()

    handler = logging.StreamHandler(sys.stderr)
    handler.setLevel(level)
    handler.setFormatter(JSONFormatter())
    handler.addFilter(SecretRedactingFilter())

    root_logger.addHandler(handler)


def get_logger(component: str) -> logging.Logger:
    """
    Return the logger for a component.

    All component loggers propagate to the root logger configured by
    setup_logging().

    Args:
        component: Dotted component name, usually a module's __name__

    Returns:
        logging.Logger: Logger for that component
    """
    return logging.getLogger(component)


def log_with_context(
    logger: logging.Logger,
    level: int,
    message: str,
    context: dict[str, Any] | None = None,
    workspace_id: str | None = None,
) -> None:
    """
    Log a message with structured context and optional workspace_id.

    Equivalent to logger.log(level, message, extra={'context': {...}, 'workspace_id': '...'})

    Args:
        logger: Logger to emit on
        level: Logging level, e.g. logging.DEBUG
        message: Human-readable message
        context: Structured data for the "context" field
        workspace_id: Workspace the message concerns

    Example:
        >>> logger = get_logger("changelog_store.storage.db")
        >>> log_with_context(
        ...     logger,
        ...     logging.DEBUG,
        ...     "Changelog created",
        ...     context={"changelog_id": "cl_1", "subdomain": "acme"},
        ...     workspace_id="ws_1",
        ... )
    """
    extra = {}

    if context is not None:
        extra["context"] = context

    if workspace_id is not None:
        extra["workspace_id"] = workspace_id

    logger.log(level, message, extra=extra if extra else None)
