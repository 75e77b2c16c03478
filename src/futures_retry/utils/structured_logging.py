"""
Structured logging configuration.

Retry loops and error handlers attach the attempt number, the chosen policy
and similar details to their log records via `extra=`. In JSON mode those
details become fields of every log line, so a run of failed accepts or
connects can be followed by machine. The plain mode just prints messages.
"""

import json
import logging
from datetime import datetime, timezone

# Record attributes set by futures_retry loggers:
# attempt/max_attempts - failure counters, delay - seconds before the next try,
# policy - RetryAction value, handler - handler display name, peer - remote address
EXTRA_FIELDS = ("attempt", "max_attempts", "delay", "policy", "handler", "peer")


class StructuredFormatter(logging.Formatter):
    """Formats records as JSON lines carrying the retry details."""

    def format(self, record: logging.LogRecord) -> str:
        log_entry: dict = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "function": record.funcName,
        }

        for key in EXTRA_FIELDS:
            value = getattr(record, key, None)
            if value is not None:
                log_entry[key] = value

        if record.exc_info and record.exc_info[0]:
            log_entry["exception"] = self.formatException(record.exc_info)

        # Peer addresses and forwarded errors aren't always JSON types
        return json.dumps(log_entry, ensure_ascii=False, default=str)


def setup_structured_logging(level: str = "INFO", json_output: bool = False) -> None:
    """
    Configure root logging for the echo server and client.

    Args:
        level: Log level name; DEBUG also shows every failed attempt and its policy
        json_output: If True, emit one JSON object per record; otherwise bare messages
    """
    log_level = getattr(logging, level.upper(), logging.INFO)

    if json_output:
        handler = logging.StreamHandler()
        handler.setFormatter(StructuredFormatter())
        logging.root.handlers = [handler]
        logging.root.setLevel(log_level)
    else:
        logging.basicConfig(
            level=log_level,
            format="%(message)s",
            force=True,
        )
