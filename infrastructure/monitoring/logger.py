import json
import logging
import sys
import traceback
from datetime import datetime
from enum import Enum
from logging.handlers import RotatingFileHandler
from pathlib import Path

PROVIDER_LOGGER_NAME = 'infrastructure.providers'
PIPELINE_LOGGER_NAME = 'application.services.fetch_pipeline'

# Passed through logging's extra= and written under "context" in JSON logs
CONTEXT_FIELDS = ('base_currency', 'provider', 'attempt', 'latency_ms', 'provenance')


class CustomJSONEncoder(json.JSONEncoder):
    def default(self, o):
        if isinstance(o, datetime):
            return o.isoformat()
        if isinstance(o, Enum):
            return o.value
        return super().default(o)


class JSONFormatter(logging.Formatter):
    """
    Custom formatter that outputs structured JSON logs.
    """
    def format(self, record: logging.LogRecord) -> str:
        log_entry = {
            'timestamp': datetime.fromtimestamp(record.created).isoformat(),
            'level': record.levelname,
            'logger': record.name,
            'message': record.getMessage(),
            'module': record.module,
            'function': record.funcName,
            'line': record.lineno
        }

        if record.exc_info:
            log_entry['exception'] = {
                'type': record.exc_info[0].__name__,
                'message': str(record.exc_info[1]),
                'traceback': traceback.format_exception(*record.exc_info)
            }

        context = {name: getattr(record, name) for name in CONTEXT_FIELDS if hasattr(record, name)}
        if context:
            log_entry['context'] = context

        return json.dumps(log_entry, ensure_ascii=False, cls=CustomJSONEncoder)


class AppLogger:
    """
    Centralized logging configuration: console output, a JSON application log,
    a JSON warnings/errors log and a separate log for upstream rate requests.
    """
    def __init__(self,
                 log_directory: str = "logs",
                 console_level: str = "INFO",
                 file_level: str = "DEBUG",
                 max_file_size: int = 10 * 1024 * 1024,
                 backup_count: int = 5):
        self.log_directory = Path(log_directory)
        self.console_level = getattr(logging, console_level.upper())
        self.file_level = getattr(logging, file_level.upper())
        self.max_file_size = max_file_size
        self.backup_count = backup_count

        self.log_directory.mkdir(parents=True, exist_ok=True)
        self._setup_logging()

    def _setup_logging(self) -> None:
        root_logger = logging.getLogger()
        root_logger.handlers.clear()
        root_logger.setLevel(logging.DEBUG)

        logging.getLogger("httpx").setLevel(logging.WARNING)
        logging.getLogger("httpcore").setLevel(logging.WARNING)

        root_logger.addHandler(self._console_handler('%(asctime)s | %(levelname)-8s | %(name)-20s | %(message)s'))
        root_logger.addHandler(self._file_handler("system", "app.log", self.file_level))
        root_logger.addHandler(self._file_handler("errors", "errors.log", logging.WARNING))
        self._setup_upstream_log_handler()

    def _console_handler(self, fmt: str) -> logging.Handler:
        console_handler = logging.StreamHandler(sys.stdout)
        console_handler.setLevel(self.console_level)
        console_handler.setFormatter(logging.Formatter(fmt, datefmt='%H:%M:%S'))
        return console_handler

    def _file_handler(self, subdirectory: str, filename: str, level: int) -> logging.Handler:
        log_dir = self.log_directory / subdirectory
        log_dir.mkdir(exist_ok=True)

        handler = RotatingFileHandler(
            log_dir / filename,
            maxBytes=self.max_file_size,
            backupCount=self.backup_count,
            encoding='utf-8'
        )
        handler.setLevel(level)
        handler.setFormatter(JSONFormatter())
        return handler

    def _setup_upstream_log_handler(self) -> None:
        # Provider and pipeline attempts also land in their own file
        upstream_handler = self._file_handler("api", "api_calls.log", logging.DEBUG)
        for name in (PROVIDER_LOGGER_NAME, PIPELINE_LOGGER_NAME):
            logging.getLogger(name).addHandler(upstream_handler)


app_logger: AppLogger | None = None


def setup_logging(log_directory: str = "logs", console_level: str = "INFO") -> AppLogger:
    """Configure logging once per process; later calls return the existing setup."""
    global app_logger
    if app_logger is None:
        app_logger = AppLogger(log_directory=log_directory, console_level=console_level)
    return app_logger
