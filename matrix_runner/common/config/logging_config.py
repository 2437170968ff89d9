import logging
import logging.config
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional, Dict, Any, List

from pythonjsonlogger import jsonlogger


LOG_FILE_NAME = "matrix_runner.log"

# attributes stamped by get_build_logger() and the executor
BUILD_FIELDS = ("runtime_version", "step_index")

# chatty third-party loggers held at WARNING
QUIET_LOGGERS = ("dagger", "httpx", "gql")


class CustomJsonFormatter(jsonlogger.JsonFormatter):
    def add_fields(
        self,
        log_record: Dict[str, Any],
        record: logging.LogRecord,
        message_dict: Dict[str, Any]
    ) -> None:
        super().add_fields(log_record, record, message_dict)
        log_record.update(
            timestamp=datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            level=record.levelname,
            logger=record.name,
            line=record.lineno,
        )

        for field in BUILD_FIELDS:
            if hasattr(record, field):
                log_record[field] = getattr(record, field)

        if record.exc_info:
            log_record["exception"] = self.formatException(record.exc_info)


def get_logging_config(
    log_level: str = "INFO",
    log_file: Optional[str] = None,
    json_format: bool = True,
    log_dir: Optional[str] = None
) -> Dict[str, Any]:
    formatter = "json" if json_format else "standard"

    # stdout carries the report, so console logs go to stderr
    handlers: Dict[str, Dict[str, Any]] = {
        "console": {
            "class": "logging.StreamHandler",
            "level": log_level,
            "formatter": formatter,
            "stream": "ext://sys.stderr",
        }
    }

    if log_dir:
        Path(log_dir).mkdir(parents=True, exist_ok=True)
        log_file = str(Path(log_dir) / LOG_FILE_NAME)

    if log_file:
        handlers["file"] = {
            "class": "logging.handlers.RotatingFileHandler",
            "level": log_level,
            "formatter": formatter,
            "filename": log_file,
            "maxBytes": 10 * 1024 * 1024,
            "backupCount": 3,
        }

    handler_names: List[str] = list(handlers)
    loggers: Dict[str, Dict[str, Any]] = {
        "matrix_runner": {"handlers": handler_names, "level": log_level, "propagate": False},
    }
    for name in QUIET_LOGGERS:
        loggers[name] = {"handlers": handler_names, "level": "WARNING", "propagate": False}

    return {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {
            "standard": {
                "format": "%(asctime)s %(levelname)-7s %(name)s: %(message)s",
                "datefmt": "%H:%M:%S",
            },
            "json": {
                "()": CustomJsonFormatter,
                "format": "%(timestamp)s %(level)s %(name)s %(message)s",
            },
        },
        "handlers": handlers,
        "loggers": loggers,
        "root": {"handlers": handler_names, "level": log_level},
    }


def setup_logging(
    log_level: str = "INFO",
    log_file: Optional[str] = None,
    json_format: bool = True,
    log_dir: Optional[str] = None
) -> None:
    logging.config.dictConfig(
        get_logging_config(
            log_level=log_level,
            log_file=log_file,
            json_format=json_format,
            log_dir=log_dir,
        )
    )


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(name)


class LoggerAdapter(logging.LoggerAdapter):
    """Merges the adapter's fields into each call's ``extra``."""

    def process(self, msg: str, kwargs: Dict[str, Any]) -> tuple:
        kwargs["extra"] = {**kwargs.get("extra", {}), **self.extra}
        return msg, kwargs


def get_build_logger(runtime_version: str) -> LoggerAdapter:
    return LoggerAdapter(get_logger("matrix_runner.build"), {"runtime_version": runtime_version})
