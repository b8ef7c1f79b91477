"""Logging for the exporter process.

Records are rendered either as JSON lines or as single-line text. The
``context_fields`` listed in ``log_config.json`` (the driver name and the
export cycle number) say which export loop emitted a record, so they are
lifted out of ``extra`` and rendered ahead of the message. Any other extra
is rendered after it.

JSON output::

    {"timestamp": "2024-05-17T12:30:00.000Z", "level": "ERROR", ...,
     "context": {"driver": "cloudwatch", "cycle": 42},
     "extra": {"error_type": "BackendError"}}

Text output, one line per record (wrapped here)::

    2024-05-17T12:30:00.000Z ERROR    exporter.driver [driver=cloudwatch cycle=42]
    An error occurred whilst exporting metrics error_type=BackendError
"""

from datetime import UTC, datetime
from enum import Enum
import logging
from pathlib import Path
import sys
from typing import Any

import orjson
from pydantic import BaseModel, ValidationError

LOG_CONFIG_PATH = Path(__file__).parent / 'log_config.json'


class LogConfig(BaseModel):
    model_config = {'frozen': True}

    context_fields: tuple[str, ...] = ()
    quiet_loggers: tuple[str, ...] = ()
    # LogRecord attributes that are never treated as extras
    record_attributes: frozenset[str] = frozenset()


def load_log_config(config_path: Path = LOG_CONFIG_PATH) -> LogConfig:
    try:
        return LogConfig.model_validate_json(config_path.read_bytes())
    except FileNotFoundError as e:
        raise RuntimeError(f'Log config file not found: {config_path}') from e
    except ValidationError as e:
        raise RuntimeError(f'Invalid log config file {config_path}: {e}') from e


DEFAULT_LOG_CONFIG = load_log_config()


def _plain(value: Any) -> Any:
    return value.value if isinstance(value, Enum) else value


class ExporterFormatter(logging.Formatter):
    def __init__(
        self, service_name: str, version: str, config: LogConfig = DEFAULT_LOG_CONFIG
    ) -> None:
        super().__init__()
        self.service_name = service_name
        self.version = version
        self.config = config

    def formatTime(self, record: logging.LogRecord, datefmt: str | None = None) -> str:
        created = datetime.fromtimestamp(record.created, UTC)
        return created.isoformat(timespec='milliseconds').replace('+00:00', 'Z')

    def split_fields(
        self, record: logging.LogRecord
    ) -> tuple[dict[str, Any], dict[str, Any]]:
        """Return the record's export context and its remaining extras."""
        fields = record.__dict__
        context = {
            key: _plain(fields[key])
            for key in self.config.context_fields
            if key in fields
        }
        extra = {
            key: _plain(value)
            for key, value in fields.items()
            if key not in self.config.record_attributes
            and key not in context
            and not key.startswith('_')
        }
        return context, extra


class JsonFormatter(ExporterFormatter):
    def format(self, record: logging.LogRecord) -> str:
        context, extra = self.split_fields(record)
        entry: dict[str, Any] = {
            'timestamp': self.formatTime(record),
            'level': record.levelname,
            'service': self.service_name,
            'version': self.version,
            'logger': record.name,
            'message': record.getMessage(),
        }
        if context:
            entry['context'] = context
        if extra:
            entry['extra'] = extra
        if record.exc_info and record.exc_info[0]:
            entry['exception'] = {
                'type': record.exc_info[0].__name__,
                'message': str(record.exc_info[1]),
                'traceback': self.formatException(record.exc_info),
            }
        # extras may carry exceptions or other objects orjson cannot encode
        return orjson.dumps(entry, default=str).decode('utf-8')


class TextFormatter(ExporterFormatter):
    def format(self, record: logging.LogRecord) -> str:
        context, extra = self.split_fields(record)
        parts = [self.formatTime(record), f'{record.levelname:<8}', record.name]
        if context:
            parts.append(
                '[' + ' '.join(f'{k}={v}' for k, v in context.items()) + ']'
            )
        parts.append(record.getMessage())
        parts.extend(f'{k}={v}' for k, v in extra.items())
        line = ' '.join(parts)
        if record.exc_info:
            line += '\n' + self.formatException(record.exc_info)
        return line


FORMATTERS: dict[str, type[ExporterFormatter]] = {
    'json': JsonFormatter,
    'text': TextFormatter,
}


def create_formatter(
    log_format: str, service_name: str, version: str
) -> ExporterFormatter:
    formatter_cls = FORMATTERS.get(log_format.lower(), TextFormatter)
    return formatter_cls(service_name=service_name, version=version)


def setup_logging(
    service_name: str,
    level: str,
    log_format: str,
    version: str,
    config: LogConfig = DEFAULT_LOG_CONFIG,
) -> None:
    log_level = getattr(logging, level.upper(), logging.INFO)

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(create_formatter(log_format, service_name, version))
    handler.setLevel(log_level)

    root_logger = logging.getLogger()
    root_logger.setLevel(log_level)
    root_logger.handlers.clear()
    root_logger.addHandler(handler)

    for logger_name in config.quiet_loggers:
        logging.getLogger(logger_name).setLevel(logging.WARNING)
