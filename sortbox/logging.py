"""Logging setup for sortbox: stderr and file handlers, optionally as JSON lines."""

import json
import logging
import sys
from datetime import datetime, timezone
from typing import Any

from .config import get_config_dir

# Fields the classifier passes via `extra`, emitted right after the message
CLASSIFIER_FIELDS = (
    "item_id",
    "bucket",
    "confidence",
    "score",
    "replaced",
    "created_rules",
)

# Attributes every LogRecord carries; anything else came from `extra`
_RECORD_ATTRS = frozenset(vars(logging.LogRecord("", 0, "", 0, "", None, None))) | {
    "message",
    "asctime",
}


class JSONFormatter(logging.Formatter):
    """Formats each record as one JSON object.

    Classifier fields come first in a fixed order, followed by any other
    `extra` values. Fields whose value is None are left out.
    """

    def format(self, record: logging.LogRecord) -> str:
        created = datetime.fromtimestamp(record.created, timezone.utc)
        log_data: dict[str, Any] = {
            "timestamp": created.isoformat(timespec="milliseconds").replace("+00:00", "Z"),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        extras = {
            key: value
            for key, value in vars(record).items()
            if key not in _RECORD_ATTRS and not key.startswith("_") and value is not None
        }
        for key in CLASSIFIER_FIELDS:
            if key in extras:
                log_data[key] = extras.pop(key)
        log_data.update(extras)

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        return json.dumps(log_data, default=str, ensure_ascii=False)


class ItemContextFilter(logging.Filter):
    """Tags records with the item currently being handled.

    Scorer and store logs don't know which message they belong to; this
    fills in `item_id` for them. A record's own `item_id` is never replaced.
    """

    def __init__(self) -> None:
        super().__init__()
        self.item_id: str | None = None

    def filter(self, record: logging.LogRecord) -> bool:
        if self.item_id and getattr(record, "item_id", None) is None:
            record.item_id = self.item_id
        return True


# Installed on handlers, since logger filters skip records from child loggers
_item_filter = ItemContextFilter()


def set_item_context(item_id: str | None) -> None:
    """Set the item id attached to log records, or None to clear it."""
    _item_filter.item_id = item_id


def setup_logging(
    verbose: bool = False,
    json_format: bool = False,
    log_to_file: bool = False,
) -> logging.Logger:
    """
    Set up the "sortbox" logger.

    Args:
        verbose: Log DEBUG and above to stderr instead of only warnings
        json_format: Emit JSON lines instead of plain text
        log_to_file: Also log everything to <config dir>/logs/sortbox.log

    Returns:
        The configured logger
    """
    logger = logging.getLogger("sortbox")
    # Reconfiguring replaces earlier handlers
    logger.handlers.clear()
    logger.setLevel(logging.DEBUG if verbose else logging.INFO)

    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setLevel(logging.DEBUG if verbose else logging.WARNING)
    if json_format:
        console_handler.setFormatter(JSONFormatter())
    elif verbose:
        console_handler.setFormatter(
            logging.Formatter(
                "%(asctime)s [%(levelname)s] %(name)s: %(message)s",
                datefmt="%H:%M:%S",
            )
        )
    else:
        console_handler.setFormatter(logging.Formatter("%(levelname)s: %(message)s"))
    handlers: list[logging.Handler] = [console_handler]

    if log_to_file:
        log_dir = get_config_dir() / "logs"
        log_dir.mkdir(parents=True, exist_ok=True)

        file_handler = logging.FileHandler(log_dir / "sortbox.log", encoding="utf-8")
        file_handler.setLevel(logging.DEBUG)
        file_handler.setFormatter(
            JSONFormatter()
            if json_format
            else logging.Formatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s")
        )
        handlers.append(file_handler)

    for handler in handlers:
        handler.addFilter(_item_filter)
        logger.addHandler(handler)

    return logger
