"""
Logging setup for the attrition risk service.

JSON lines in production, colored console output in development. Session
services log through ContextLogger so every line they emit carries the
session id (and the model id once one is published).
"""

import json
import logging
import sys
import traceback
from datetime import datetime
from typing import Any, Optional

from attrition_risk.core.config import settings

# Context keys lifted out of "extra" to the top level of a JSON line
PROMOTED_FIELDS = ("session_id", "model_id")

_STANDARD_ATTRS = set(vars(logging.LogRecord("", 0, "", 0, "", None, None))) | {"message", "asctime"}


def _extra_fields(record: logging.LogRecord) -> dict[str, Any]:
    return {k: v for k, v in vars(record).items() if k not in _STANDARD_ATTRS}


class JSONFormatter(logging.Formatter):
    """One JSON object per line, for log shippers."""

    def __init__(self, service_name: str = "attrition-risk"):
        super().__init__()
        self.service_name = service_name

    def format(self, record: logging.LogRecord) -> str:
        entry: dict[str, Any] = {
            "timestamp": datetime.utcfromtimestamp(record.created).isoformat() + "Z",
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "service": self.service_name,
            "environment": settings.ENVIRONMENT,
            "source": f"{record.module}:{record.lineno}",
        }

        extra = _extra_fields(record)
        for key in PROMOTED_FIELDS:
            if key in extra:
                entry[key] = extra.pop(key)
        if extra:
            entry["extra"] = extra

        if record.exc_info and record.exc_info[0] is not None:
            entry["exception"] = {
                "type": record.exc_info[0].__name__,
                "message": str(record.exc_info[1]),
                "traceback": traceback.format_exception(*record.exc_info),
            }

        return json.dumps(entry, default=str)


class ColoredFormatter(logging.Formatter):
    """Console formatter: level color, short timestamp, session tag when present."""

    COLORS = {
        "DEBUG": "\033[36m",
        "INFO": "\033[32m",
        "WARNING": "\033[33m",
        "ERROR": "\033[31m",
        "CRITICAL": "\033[35m",
    }
    RESET = "\033[0m"

    def format(self, record: logging.LogRecord) -> str:
        color = self.COLORS.get(record.levelname, self.RESET)
        timestamp = datetime.fromtimestamp(record.created).strftime("%H:%M:%S")
        session = getattr(record, "session_id", None)
        tag = f" [{session}]" if session else ""

        line = f"{color}{timestamp} {record.levelname:<7}{self.RESET} {record.name}{tag}: {record.getMessage()}"
        if record.exc_info and record.exc_info[0] is not None:
            last = traceback.format_exception(*record.exc_info)[-1].strip()
            line += f"\n{color}  {last}{self.RESET}"
        return line


class ContextLogger:
    """
    Wraps a stdlib logger and attaches fixed context to every call.

    The context is passed as ``extra`` so formatters see it as record
    attributes; per-call ``extra`` values win over the stored context.
    """

    def __init__(self, logger: logging.Logger):
        self._logger = logger
        self._context: dict[str, Any] = {}

    @property
    def context(self) -> dict[str, Any]:
        return dict(self._context)

    def set_context(self, **kwargs) -> None:
        self._context.update(kwargs)

    def clear_context(self) -> None:
        self._context.clear()

    def _log(self, level: int, msg: str, *args, **kwargs) -> None:
        extra = {**self._context, **kwargs.pop("extra", {})}
        self._logger.log(level, msg, *args, extra=extra, **kwargs)

    def debug(self, msg: str, *args, **kwargs) -> None:
        self._log(logging.DEBUG, msg, *args, **kwargs)

    def info(self, msg: str, *args, **kwargs) -> None:
        self._log(logging.INFO, msg, *args, **kwargs)

    def warning(self, msg: str, *args, **kwargs) -> None:
        self._log(logging.WARNING, msg, *args, **kwargs)

    def error(self, msg: str, *args, **kwargs) -> None:
        self._log(logging.ERROR, msg, *args, **kwargs)

    def exception(self, msg: str, *args, **kwargs) -> None:
        kwargs["exc_info"] = True
        self._log(logging.ERROR, msg, *args, **kwargs)


def setup_logging(
    service_name: str = "attrition-risk",
    log_level: Optional[str] = None,
    json_logs: Optional[bool] = None,
) -> None:
    """
    Install a single stdout handler on the root logger.

    Level precedence: ``log_level`` argument, then LOG_LEVEL, then DEBUG/INFO
    depending on the DEBUG setting. JSON output defaults to on in production.
    """
    level_name = (log_level or settings.LOG_LEVEL or ("DEBUG" if settings.DEBUG else "INFO")).upper()
    level = logging.getLevelName(level_name)
    if not isinstance(level, int):
        raise ValueError(f"Unknown log level: {level_name}")
    use_json = settings.ENVIRONMENT.lower() == "production" if json_logs is None else json_logs

    handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(level)
    handler.setFormatter(JSONFormatter(service_name) if use_json else ColoredFormatter())

    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(handler)
    root.setLevel(level)

    for noisy in ("uvicorn.access", "httpx", "multipart"):
        logging.getLogger(noisy).setLevel(logging.WARNING)

    logging.getLogger("attrition_risk.logging").debug(
        f"Logging configured: level={level_name} format={'json' if use_json else 'console'}"
    )


def get_logger(name: str) -> ContextLogger:
    """Context-aware logger, e.g. ``get_logger(__name__).set_context(session_id=...)``."""
    return ContextLogger(logging.getLogger(name))
