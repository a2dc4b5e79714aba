"""
Application logging setup.

Installs console and rotating-file handlers on the Flask app logger using the
``LOG_*`` options from ``config.monitoring``. JSON output carries any
``importer_*`` keys passed through ``extra=`` so import runs stay searchable.
"""

from __future__ import annotations

import json
import logging
import os
from datetime import datetime, timezone
from logging.handlers import RotatingFileHandler

from flask.logging import default_handler

_HANDLER_MARKER = "_crm_app_handler"
_CONTEXT_PREFIX = "importer_"


class JSONFormatter(logging.Formatter):
    """JSON log formatter for structured logging."""

    def format(self, record):
        log_entry = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        for key, value in record.__dict__.items():
            if key.startswith(_CONTEXT_PREFIX):
                log_entry[key] = value
        if record.exc_info:
            log_entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(log_entry, default=str)


TEXT_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"


def _build_formatter(log_format: str) -> logging.Formatter:
    if (log_format or "").lower() == "json":
        return JSONFormatter()
    return logging.Formatter(TEXT_FORMAT)


def _remove_managed_handlers(logger: logging.Logger) -> None:
    for handler in list(logger.handlers):
        if getattr(handler, _HANDLER_MARKER, False):
            logger.removeHandler(handler)
            handler.close()


def setup_logging(app) -> None:
    """
    Configure the app logger (and the ``crm_app`` package logger) from config.

    Safe to call repeatedly; handlers installed by a previous call are replaced.
    """

    level_name = str(app.config.get("LOG_LEVEL", "INFO")).upper()
    level = getattr(logging, level_name, logging.INFO)
    formatter = _build_formatter(app.config.get("LOG_FORMAT", "json"))

    handlers: list[logging.Handler] = []
    if app.config.get("ENABLE_CONSOLE_LOGGING", True):
        handlers.append(logging.StreamHandler())

    if app.config.get("ENABLE_FILE_LOGGING", False):
        log_dir = app.config.get("LOG_DIR", "logs")
        if not os.path.isabs(log_dir):
            log_dir = os.path.join(app.root_path, log_dir)
        os.makedirs(log_dir, exist_ok=True)
        handlers.append(
            RotatingFileHandler(
                os.path.join(log_dir, "app.log"),
                maxBytes=int(app.config.get("LOG_FILE_MAX_BYTES", 10485760)),
                backupCount=int(app.config.get("LOG_FILE_BACKUP_COUNT", 10)),
                encoding="utf-8",
            )
        )

    # Console output is governed by ENABLE_CONSOLE_LOGGING only
    app.logger.removeHandler(default_handler)

    for logger in (app.logger, logging.getLogger("crm_app")):
        _remove_managed_handlers(logger)
        logger.setLevel(level)
        for handler in handlers:
            setattr(handler, _HANDLER_MARKER, True)
            handler.setFormatter(formatter)
            handler.setLevel(level)
            logger.addHandler(handler)

    app.logger.debug(
        "Logging configured",
        extra={"importer_log_level": level_name, "importer_log_handlers": len(handlers)},
    )
