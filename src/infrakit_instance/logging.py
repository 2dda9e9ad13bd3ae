"""Logging setup for instance plugins.

Two output formats, selected by INFRAKIT_LOGGING_FORMAT:
- text: one line per record, ``[event]`` appended when the record carries one
- json: python-json-logger records with service/backend fields for aggregation

Records carry structured fields through ``extra``:
    logger.warning("Err reading spec file",
                   extra={"event": LogEvent.SPEC_RECORD_UNREADABLE, "vmx_path": path})
"""

import logging
import sys
import time
from collections import OrderedDict
from datetime import datetime, timezone
from typing import Any

from pythonjsonlogger import json as jsonlogger

from infrakit_instance.config import LoggingConfig

# Extra fields that identify the resource a record is about.
_SUBJECT_FIELDS = ("instance_id", "vmx_path", "item")

_NOISY_LOGGERS = ("httpx", "httpcore", "botocore", "aiobotocore", "urllib3")


def _event_of(record: logging.LogRecord) -> str | None:
    event = getattr(record, "event", None)
    return str(event) if event is not None else None


class RateLimitFilter(logging.Filter):
    """Drop repeats of the same warning about the same resource.

    describe_instances runs on every orchestrator poll, so one VM with a
    broken side-record would log an identical warning each cycle. Records are
    keyed by logger, event (or message when there is none) and the subject
    fields in ``extra``. ERROR and above are never dropped.

    Args:
        rate_limit_seconds: Minimum seconds between records with the same key.
        max_cache_size: Keys remembered; least recently seen keys are evicted.
    """

    def __init__(
        self,
        rate_limit_seconds: float = 5.0,
        max_cache_size: int = 1000,
        name: str = "",
    ) -> None:
        super().__init__(name)
        self._rate_limit = rate_limit_seconds
        self._max_cache = max_cache_size
        self._last_log: OrderedDict[tuple[str, ...], float] = OrderedDict()

    def _key(self, record: logging.LogRecord) -> tuple[str, ...]:
        subject = tuple(str(getattr(record, f, "")) for f in _SUBJECT_FIELDS)
        return (record.name, _event_of(record) or record.getMessage(), *subject)

    def filter(self, record: logging.LogRecord) -> bool:
        if record.levelno >= logging.ERROR:
            return True

        key = self._key(record)
        now = time.monotonic()
        last_time = self._last_log.get(key)
        if last_time is not None and now - last_time < self._rate_limit:
            return False

        self._last_log[key] = now
        self._last_log.move_to_end(key)
        while len(self._last_log) > self._max_cache:
            self._last_log.popitem(last=False)
        return True


class PluginJsonFormatter(jsonlogger.JsonFormatter):
    """JSON formatter adding service, backend and source location.

    Records logged without an event get ``"event": "log"`` so every line
    can be grouped by event in the aggregator.
    """

    def __init__(
        self, config: LoggingConfig, backend: str = "", *args: Any, **kwargs: Any
    ) -> None:
        super().__init__(*args, **kwargs)
        self._service = config.service_name
        self._backend = backend

    def add_fields(
        self,
        log_record: dict[str, Any],
        record: logging.LogRecord,
        message_dict: dict[str, Any],
    ) -> None:
        super().add_fields(log_record, record, message_dict)

        log_record["timestamp"] = datetime.fromtimestamp(
            record.created, tz=timezone.utc
        ).isoformat()
        log_record["level"] = record.levelname
        log_record["logger"] = record.name
        log_record["service"] = self._service
        if self._backend:
            log_record["backend"] = self._backend
        log_record["event"] = _event_of(record) or "log"
        log_record["source"] = f"{record.filename}:{record.lineno}"

        if record.exc_info:
            log_record["exception"] = self.formatException(record.exc_info)
        log_record.pop("color_message", None)


class TextFormatter(logging.Formatter):
    """Human-readable formatter for local runs."""

    def __init__(self) -> None:
        super().__init__("%(asctime)s - %(name)s - %(levelname)s - %(message)s")

    def format(self, record: logging.LogRecord) -> str:
        line = super().format(record)
        event = _event_of(record)
        return f"{line} [{event}]" if event else line


def setup_logging(config: LoggingConfig, backend: str = "") -> None:
    """Install the stdout handler on the root and uvicorn loggers.

    Args:
        config: Logging configuration settings.
        backend: Backend name stamped on JSON records.
    """
    level = getattr(logging, config.level.upper(), logging.INFO)

    formatter: logging.Formatter
    if config.format == "json":
        formatter = PluginJsonFormatter(config, backend=backend)
    else:
        formatter = TextFormatter()

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(formatter)
    handler.addFilter(RateLimitFilter())

    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.addHandler(handler)
    root_logger.setLevel(level)

    for name in ("uvicorn", "uvicorn.error"):
        uv_logger = logging.getLogger(name)
        uv_logger.handlers.clear()
        uv_logger.propagate = False
        uv_logger.addHandler(handler)
    logging.getLogger("uvicorn.access").disabled = True

    for name in _NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
