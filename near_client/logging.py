"""
near_client.logging
-------------------

Structured logging for the client:
- JSON or concise colored text formats
- Context-local fields via `contextvars` (account_id, receiver_id, network_id, ...)
- A single switch (`NEAR_NO_LOGS`) that silences retry warnings and receipt
  diagnostics without touching logger levels

Usage
-----
    from near_client import logging as nlog

    nlog.configure(json=False, level="INFO")  # once at process start
    log = nlog.get_logger(__name__)

    with nlog.scope(account_id="alice.test"):
        log.info("submitting")

Library modules only call `logging.getLogger(__name__)`; installing handlers
is left to applications (the CLI calls `configure`).
"""

from __future__ import annotations

import datetime as _dt
import io
import json
import logging
import os
import sys
import traceback
from contextlib import contextmanager
from contextvars import ContextVar
from typing import Any, Dict, Iterator, Optional

__all__ = [
    "configure",
    "get_logger",
    "bind",
    "unbind",
    "context",
    "scope",
    "logs_enabled",
    "JSONFormatter",
    "TextFormatter",
]

# --- task-local context ----------------------------------------------------

_LOG_CONTEXT: ContextVar[Dict[str, Any]] = ContextVar("_NEAR_LOG_CONTEXT", default={})

DEFAULT_CONTEXT_KEYS = (
    "network_id",
    "account_id",
    "receiver_id",
    "method",
)

# LogRecord attributes that are not user extras.
_RECORD_ATTRS = frozenset(
    (
        "name",
        "msg",
        "args",
        "levelname",
        "levelno",
        "pathname",
        "filename",
        "module",
        "exc_info",
        "exc_text",
        "stack_info",
        "lineno",
        "funcName",
        "created",
        "msecs",
        "relativeCreated",
        "thread",
        "threadName",
        "processName",
        "process",
        "taskName",
    )
)


def context() -> Dict[str, Any]:
    """Snapshot of the fields bound in the current task."""
    return dict(_LOG_CONTEXT.get())


def _merged(fields: Dict[str, Any]) -> Dict[str, Any]:
    return {**_LOG_CONTEXT.get(), **{k: _coerce_value(v) for k, v in fields.items()}}


def bind(**fields: Any) -> None:
    _LOG_CONTEXT.set(_merged(fields))


def unbind(*keys: str) -> None:
    _LOG_CONTEXT.set({k: v for k, v in _LOG_CONTEXT.get().items() if k not in keys})


@contextmanager
def scope(**fields: Any) -> Iterator[None]:
    """Bind fields for the duration of the block, then restore what was there."""
    token = _LOG_CONTEXT.set(_merged(fields))
    try:
        yield
    finally:
        _LOG_CONTEXT.reset(token)


def logs_enabled() -> bool:
    """False when NEAR_NO_LOGS is set to anything non-empty."""
    return not os.environ.get("NEAR_NO_LOGS")


# --- formatters ------------------------------------------------------------


def _utcnow_iso() -> str:
    return _dt.datetime.now(_dt.timezone.utc).isoformat(timespec="milliseconds")


def _coerce_value(v: Any) -> Any:
    if v is None or isinstance(v, (bool, int, float, str, list, dict)):
        return v
    if isinstance(v, (bytes, bytearray)):
        return v.hex()
    return str(v)


def _extras(record: logging.LogRecord) -> Dict[str, Any]:
    return {
        k: _coerce_value(v)
        for k, v in record.__dict__.items()
        if not k.startswith("_") and k not in _RECORD_ATTRS
    }


class JSONFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        payload: Dict[str, Any] = {
            "ts": _utcnow_iso(),
            "level": record.levelname,
            "logger": record.name,
            "msg": record.getMessage(),
        }
        payload.update(context())
        for k, v in _extras(record).items():
            payload.setdefault(k, v)
        if record.exc_info:
            payload["err"] = "".join(traceback.format_exception(*record.exc_info)).rstrip()
        return json.dumps(payload, default=str, separators=(",", ":"))


class TextFormatter(logging.Formatter):
    """
    Human-friendly one-liner:
      2025-01-05T12:34:56.789+00:00 | WARNING | near_client.account | account_id=alice.test | Retrying ...
    """

    _COLORS = {
        logging.DEBUG: "\x1b[90m",
        logging.INFO: "\x1b[32m",
        logging.WARNING: "\x1b[33m",
        logging.ERROR: "\x1b[31m",
        logging.CRITICAL: "\x1b[1m\x1b[35m",
    }

    def __init__(self, stream: io.TextIOBase):
        super().__init__()
        self._color = _supports_color(stream)

    def format(self, record: logging.LogRecord) -> str:
        ctx = context()
        fields = [f"{k}={ctx[k]}" for k in DEFAULT_CONTEXT_KEYS if ctx.get(k) is not None]
        fields.extend(f"{k}={v}" for k, v in _extras(record).items() if k not in ctx)

        lvl = f"{record.levelname:<7}"
        if self._color:
            lvl = f"{self._COLORS.get(record.levelno, '')}{lvl}\x1b[0m"

        line = f"{_utcnow_iso()} | {lvl} | {record.name}"
        if fields:
            line += " | " + " ".join(fields)
        line += f" | {record.getMessage()}"
        if record.exc_info:
            line += "\n" + "".join(traceback.format_exception(*record.exc_info)).rstrip()
        return line


def _supports_color(stream: io.TextIOBase) -> bool:
    try:
        return stream.isatty() and os.environ.get("NO_COLOR") is None
    except (AttributeError, ValueError):
        return False


# --- setup -----------------------------------------------------------------


def configure(
    *,
    json: Optional[bool] = None,
    level: str | int = "INFO",
    stream: Optional[io.TextIOBase] = None,
) -> None:
    """
    Replace the root handlers with a single console handler.

    `json=None` defers to NEAR_LOG_FORMAT (json|text), then to TTY detection:
    JSON when `stream` (default: the current sys.stderr) is not a terminal.
    """
    stream = stream if stream is not None else sys.stderr
    chosen_json = _decide_json(json, stream)
    lvl = _coerce_level(level)

    handler = logging.StreamHandler(stream)
    handler.setLevel(lvl)
    handler.setFormatter(JSONFormatter() if chosen_json else TextFormatter(stream))

    root = logging.getLogger()
    for existing in root.handlers[:]:
        root.removeHandler(existing)
    root.addHandler(handler)
    root.setLevel(lvl)

    # httpx logs every request at INFO
    for noisy in ("httpx", "httpcore", "asyncio"):
        logging.getLogger(noisy).setLevel(max(lvl, logging.WARNING))


def get_logger(name: Optional[str] = None) -> logging.Logger:
    return logging.getLogger(name or "near_client")


def _coerce_level(level: str | int) -> int:
    if isinstance(level, int):
        return level
    # getLevelName maps known names to their number, anything else to a string
    value = logging.getLevelName(level.strip().upper())
    return value if isinstance(value, int) else logging.INFO


def _decide_json(json_flag: Optional[bool], stream: io.TextIOBase) -> bool:
    if json_flag is not None:
        return json_flag
    env = os.environ.get("NEAR_LOG_FORMAT", "").strip().lower()
    if env in ("json", "text"):
        return env == "json"
    # JSON in non-tty (services), text when interactive
    return not _supports_color(stream)
