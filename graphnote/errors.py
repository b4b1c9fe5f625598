"""
Error kinds raised by graphnote, plus the CLI error-log helper.

The CLI logs full stack traces for debugging while showing clean messages
to users.
"""

import os
import traceback
from datetime import datetime, timezone
from pathlib import Path


class GraphError(Exception):
    """Base class for every error the core raises on purpose."""


class ValidationError(GraphError):
    """Malformed input: bad title, bad property shape, bad arguments."""


class InvalidDate(ValidationError):
    """A date string that is not a real YYYY-MM-DD calendar day."""

    def __init__(self, value: object, reason: str = "expected YYYY-MM-DD"):
        self.value = value
        super().__init__(f"Invalid date {value!r}: {reason}")


class InvalidArgument(ValidationError):
    """Arguments that are well-formed but not acceptable together."""


class UnsupportedQueryType(ValidationError):
    """A saved query whose queryType the engine cannot execute."""

    def __init__(self, query_type: object):
        self.query_type = query_type
        super().__init__(f"Unsupported query type: {query_type!r}")


class NotFound(GraphError):
    """An id that does not resolve to a stored row."""


class Conflict(GraphError):
    """The requested state already holds (duplicate edge, unique violation)."""


class TypeMismatch(GraphError):
    """An object whose type does not match a collection's objectType."""


def _error_log_path() -> Path:
    """Resolve error log path, respecting GRAPHNOTE_STORE_PATH."""
    store = os.environ.get("GRAPHNOTE_STORE_PATH")
    if store:
        return Path(store) / "graphnote-errors.log"
    return Path.home() / ".graphnote" / "graphnote-errors.log"


def log_exception(exc: Exception, context: str = "") -> Path:
    """
    Log exception with full traceback to file.

    Args:
        exc: The exception that occurred
        context: Optional context string (e.g., command name)

    Returns:
        Path to the error log file
    """
    log_path = _error_log_path()
    timestamp = datetime.now(timezone.utc).isoformat()
    try:
        log_path.parent.mkdir(parents=True, exist_ok=True)
        fd = os.open(log_path, os.O_WRONLY | os.O_CREAT | os.O_APPEND, 0o600)
        with os.fdopen(fd, "a") as f:
            f.write(f"\n{'='*60}\n")
            f.write(f"[{timestamp}]")
            if context:
                f.write(f" {context}")
            f.write("\n")
            f.write("".join(traceback.format_exception(exc)))
    except OSError:
        pass  # Can't write error log, don't crash over it
    return log_path
