"""Logging configuration: stdlib dictConfig, structlog, and the recent-log buffer."""
import logging
import logging.config
import sys
import threading
from collections import deque
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

import structlog

from warwatch.core.config import Settings, get_settings

MAX_LOG_ENTRIES = 500

_LEVEL_NAMES = {"debug": "DEBUG", "info": "INFO", "warn": "WARNING", "warning": "WARNING", "error": "ERROR"}


class RecentLogBuffer(logging.Handler):
    """Keeps the most recent log records in memory for the admin log endpoint."""

    def __init__(self, capacity: int = MAX_LOG_ENTRIES) -> None:
        super().__init__()
        self._entries: deque = deque(maxlen=capacity)
        self._entries_lock = threading.Lock()

    def emit(self, record: logging.LogRecord) -> None:
        try:
            entry = {
                "ts": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
                "level": record.levelname.lower(),
                "source": record.name,
                "message": record.getMessage(),
            }
        except Exception:
            self.handleError(record)
            return
        with self._entries_lock:
            self._entries.append(entry)

    def recent(
        self,
        level: Optional[str] = None,
        source: Optional[str] = None,
        limit: int = 100,
    ) -> List[Dict[str, Any]]:
        """Return recent entries, newest first, optionally filtered."""
        with self._entries_lock:
            entries = list(self._entries)
        if level:
            wanted = _LEVEL_NAMES.get(level.lower(), level.upper()).lower()
            entries = [e for e in entries if e["level"] == wanted]
        if source:
            entries = [e for e in entries if e["source"].startswith(source)]
        return list(reversed(entries[-limit:])) if limit > 0 else []

    def clear(self) -> None:
        with self._entries_lock:
            self._entries.clear()


recent_logs = RecentLogBuffer()


def setup_logging(settings: Optional[Settings] = None):
    """Configure structured logging for production."""
    settings = settings or get_settings()

    log_level = settings.log_level.upper() if settings.is_production else "DEBUG"

    logging_config = {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {
            "standard": {
                "format": "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
            },
            "json": {
                "format": "%(asctime)s %(name)s %(levelname)s %(message)s",
                "class": "pythonjsonlogger.jsonlogger.JsonFormatter" if settings.is_production else "logging.Formatter"
            }
        },
        "handlers": {
            "console": {
                "class": "logging.StreamHandler",
                "level": log_level,
                "formatter": "json" if settings.is_production else "standard",
                "stream": sys.stdout
            },
        },
        "loggers": {
            "": {  # root logger
                "level": log_level,
                "handlers": ["console"],
                "propagate": False
            },
            "uvicorn": {
                "level": "INFO",
                "handlers": ["console"],
                "propagate": False
            },
            "uvicorn.access": {
                "level": "WARNING" if settings.is_production else "INFO",
                "handlers": ["console"],
                "propagate": False
            },
            "httpx": {
                "level": "WARNING",
                "handlers": ["console"],
                "propagate": False
            }
        }
    }

    logging.config.dictConfig(logging_config)

    # dictConfig replaces root handlers; the buffer is attached afterwards
    root = logging.getLogger()
    if recent_logs not in root.handlers:
        recent_logs.setLevel(logging.INFO)
        root.addHandler(recent_logs)

    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.UnicodeDecoder(),
            structlog.processors.JSONRenderer()
        ],
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    logger = logging.getLogger(__name__)
    logger.info(f"Logging configured for {settings.environment} environment")
