"""Log setup for the bot process.

Every line written while an update is being handled carries that update's
id, the sending user and the decoded event kind, so one chat exchange can
be pulled out of an interleaved log with a single grep.
"""
from __future__ import annotations

import json
import logging
from collections.abc import Iterator
from contextlib import contextmanager
from contextvars import ContextVar
from dataclasses import dataclass
from datetime import datetime, timezone
from logging.handlers import RotatingFileHandler
from typing import Any, Hashable, Optional

from recipe_genie.config import get_log_path, load_config

TEXT_FORMAT = "%(asctime)s | %(levelname)s | %(update_tag)s | %(name)s | %(message)s"
LOG_FILE_MAX_BYTES = 5 * 1024 * 1024
LOG_FILE_BACKUPS = 3

# python-telegram-bot polls through httpx; both log each request at INFO.
NOISY_LOGGERS = ("httpx", "httpcore", "telegram.ext.Updater")


@dataclass(frozen=True)
class UpdateContext:
    update_id: Optional[int] = None
    user_id: Optional[Hashable] = None
    kind: str = ""

    @property
    def tag(self) -> str:
        if self.update_id is None:
            return "-"
        user = "-" if self.user_id is None else self.user_id
        return f"u{self.update_id}/{user}"


_NO_UPDATE = UpdateContext()
_current: ContextVar[UpdateContext] = ContextVar("recipe_genie_update", default=_NO_UPDATE)


def current_update() -> UpdateContext:
    return _current.get()


@contextmanager
def update_scope(
    update_id: Optional[int],
    *,
    user_id: Optional[Hashable] = None,
    kind: str = "",
) -> Iterator[UpdateContext]:
    """Tag log lines emitted inside the block with the given update."""
    scope = UpdateContext(update_id=update_id, user_id=user_id, kind=kind)
    token = _current.set(scope)
    try:
        yield scope
    finally:
        _current.reset(token)


class UpdateContextFilter(logging.Filter):
    def filter(self, record: logging.LogRecord) -> bool:
        scope = _current.get()
        record.update_tag = scope.tag
        record.update_id = scope.update_id
        record.user_id = scope.user_id
        record.event_kind = scope.kind
        return True


class JsonLineFormatter(logging.Formatter):
    """One JSON object per line, for shipping logs to a collector."""

    def format(self, record: logging.LogRecord) -> str:
        entry: dict[str, Any] = {
            "ts": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "msg": record.getMessage(),
        }
        update_id = getattr(record, "update_id", None)
        if update_id is not None:
            entry["update_id"] = update_id
            entry["user_id"] = getattr(record, "user_id", None)
            entry["event"] = getattr(record, "event_kind", "") or None
        fields = getattr(record, "fields", None)
        if fields:
            entry["fields"] = fields
        if record.exc_info:
            entry["exc"] = self.formatException(record.exc_info)
        return json.dumps(entry, ensure_ascii=False, default=str)


def _build_handlers(log_path, formatter: logging.Formatter) -> list[logging.Handler]:
    stream = logging.StreamHandler()
    file_handler = RotatingFileHandler(
        log_path, maxBytes=LOG_FILE_MAX_BYTES, backupCount=LOG_FILE_BACKUPS, encoding="utf-8"
    )
    context_filter = UpdateContextFilter()
    for handler in (stream, file_handler):
        handler.setFormatter(formatter)
        handler.addFilter(context_filter)
    return [stream, file_handler]


def configure_logging(config: dict[str, Any] | None = None) -> None:
    cfg = config or load_config()
    log_cfg = cfg.get("logging", {}) if isinstance(cfg.get("logging"), dict) else {}
    level = getattr(logging, str(log_cfg.get("level", "INFO")).upper(), logging.INFO)

    root = logging.getLogger()
    root.setLevel(level)
    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    if root.handlers:
        # Already configured, e.g. by a test runner.
        return

    log_path = get_log_path(cfg)
    log_path.parent.mkdir(parents=True, exist_ok=True)
    formatter = JsonLineFormatter() if log_cfg.get("json_format") else logging.Formatter(TEXT_FORMAT)
    for handler in _build_handlers(log_path, formatter):
        root.addHandler(handler)


def log_event(logger: logging.Logger, level: int, message: str, **fields: Any) -> None:
    """Log ``message`` with structured ``fields`` attached to the record."""
    logger.log(level, message, extra={"fields": fields}, stacklevel=2)
