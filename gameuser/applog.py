"""Process-wide structured logger writing one JSON object per line to stderr."""

import json
import logging
import sys
import threading
from datetime import datetime
from typing import Any

_LOGGER_NAME = "gameuser"
_LEVEL_NAMES = {"WARNING": "WARN", "CRITICAL": "FATAL"}

_lock = threading.Lock()
_root: "BoundLogger | None" = None


class _JsonFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        stamp = datetime.fromtimestamp(record.created).astimezone()
        entry: dict[str, Any] = {
            "level": _LEVEL_NAMES.get(record.levelname, record.levelname),
            "timestamp": stamp.isoformat(timespec="milliseconds"),
            "msg": record.getMessage(),
        }
        entry.update(getattr(record, "fields", {}))
        return json.dumps(entry, ensure_ascii=False, default=str)


class _StderrHandler(logging.Handler):
    """Writes to whatever ``sys.stderr`` is at the time of each record."""

    def emit(self, record: logging.LogRecord) -> None:
        try:
            sys.stderr.write(self.format(record) + "\n")
        except Exception:
            self.handleError(record)

    def flush(self) -> None:
        sys.stderr.flush()


class BoundLogger:
    """A logger carrying a fixed set of fields added to every record."""

    def __init__(self, logger: logging.Logger, fields: dict[str, Any] | None = None):
        self._logger = logger
        self._fields = dict(fields or {})

    def _log(self, level: int, msg: str, fields: dict[str, Any]) -> None:
        self._logger.log(level, msg, extra={"fields": {**self._fields, **fields}})

    def debug(self, msg: str, **fields: Any) -> None:
        self._log(logging.DEBUG, msg, fields)

    def info(self, msg: str, **fields: Any) -> None:
        self._log(logging.INFO, msg, fields)

    def warn(self, msg: str, **fields: Any) -> None:
        self._log(logging.WARNING, msg, fields)

    def error(self, msg: str, **fields: Any) -> None:
        self._log(logging.ERROR, msg, fields)

    def fatal(self, msg: str, **fields: Any) -> None:
        """Log at fatal level, flush, then exit the process with status 1."""
        self._log(logging.CRITICAL, msg, fields)
        self.sync()
        raise SystemExit(1)

    def sync(self) -> None:
        for handler in self._logger.handlers:
            handler.flush()

    def with_fields(self, **fields: Any) -> "BoundLogger":
        return BoundLogger(self._logger, {**self._fields, **fields})

    def with_field(self, key: str, value: Any) -> "BoundLogger":
        return self.with_fields(**{key: value})


def init_logger() -> None:
    """Create the shared logger once; later calls do nothing."""
    global _root
    with _lock:
        if _root is not None:
            return
        logger = logging.getLogger(_LOGGER_NAME)
        logger.setLevel(logging.INFO)
        logger.propagate = False
        handler = _StderrHandler()
        handler.setFormatter(_JsonFormatter())
        logger.handlers = [handler]
        _root = BoundLogger(logger)


def get_logger() -> BoundLogger:
    """Return the shared logger, creating it on first use."""
    init_logger()
    assert _root is not None
    return _root


def info(msg: str, **kwargs: Any) -> None:
    get_logger().info(msg, **kwargs)


def error(msg: str, **kwargs: Any) -> None:
    get_logger().error(msg, **kwargs)


def warn(msg: str, **kwargs: Any) -> None:
    get_logger().warn(msg, **kwargs)


def debug(msg: str, **kwargs: Any) -> None:
    get_logger().debug(msg, **kwargs)


def fatal(msg: str, **kwargs: Any) -> None:
    get_logger().fatal(msg, **kwargs)


def sync() -> None:
    """Flush pending output if the logger has been created."""
    if _root is not None:
        _root.sync()


def with_field(key: str, value: Any) -> BoundLogger:
    return get_logger().with_field(key, value)


def with_fields(**kwargs: Any) -> BoundLogger:
    return get_logger().with_fields(**kwargs)