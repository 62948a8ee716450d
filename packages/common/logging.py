"""JSON logging utilities for the assessment engine.

Provides:
- `set_attempt_id` to store the active attempt id in a ContextVar
- `JSONFormatter` to render logs as single-line JSON (optionally with attempt_id)
- `configure_logging` to set up stdout logging with the JSON or text formatter
"""

import logging, sys, json, time
from contextvars import ContextVar

_attempt_id: ContextVar[str | None] = ContextVar("attempt_id", default=None)


def set_attempt_id(attempt_id: str | None) -> None:
    """Set/clear the attempt id attached to log records.

    Args:
        attempt_id: The attempt id to store; pass None to clear it.
    """
    _attempt_id.set(attempt_id)


def get_attempt_id() -> str | None:
    """Return the attempt id bound to the current context, if any."""
    return _attempt_id.get()


class JSONFormatter(logging.Formatter):
    """Format log records as compact JSON with timestamp and optional context."""

    def format(self, record: logging.LogRecord) -> str:
        """Serialize a `logging.LogRecord` to a JSON string.

        Includes: level, epoch timestamp (seconds, 3dp), logger name, message,
        optional `attempt_id`, and exception info when present.
        """
        base = {
            "level": record.levelname,
            "ts": round(time.time(), 3),
            "logger": record.name,
            "msg": record.getMessage(),
        }
        aid = get_attempt_id()
        if aid:
            base["attempt_id"] = aid
        if record.exc_info:
            base["exc_info"] = self.formatException(record.exc_info)
        return json.dumps(base, ensure_ascii=False)


def configure_logging(level: int | str = "INFO", json_logs: bool = True) -> logging.Logger:
    """Configure root logging to stdout.

    Args:
        level: Logging level as int or string (e.g., logging.INFO or "INFO").
        json_logs: Use `JSONFormatter` when True, a human-readable line otherwise.

    Returns:
        A logger instance named "beelearn".
    """
    handler = logging.StreamHandler(sys.stdout)
    if json_logs:
        handler.setFormatter(JSONFormatter())
    else:
        handler.setFormatter(
            logging.Formatter("%(asctime)s | %(levelname)-8s | %(name)s | %(message)s", "%Y-%m-%d %H:%M:%S")
        )
    logging.basicConfig(level=level, handlers=[handler], force=True)
    return logging.getLogger("beelearn")
