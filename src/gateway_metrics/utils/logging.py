"""Log formatting for the gateway metrics service.

Both formatters render the service name stamped by ``ServiceContextFilter``
and any ``extra=`` fields passed at the call site, so a log line from a
failed Prometheus query or provider listing carries its context in either
output format.
"""

import json
import logging
import sys
from datetime import datetime, timezone
from typing import Any, Dict

from ..config.settings import LoggingConfig


# Attributes every LogRecord carries; anything else was passed through `extra`.
_RESERVED_ATTRS = frozenset(
    vars(logging.LogRecord("", logging.INFO, "", 0, "", None, None))
) | {'message', 'asctime', 'service'}

# Per-request access lines and client connection chatter.
_NOISY_LOGGERS = ('aiohttp.access', 'aiohttp.client')


def _context(record: logging.LogRecord) -> Dict[str, Any]:
    return {key: value for key, value in vars(record).items() if key not in _RESERVED_ATTRS}


def _timestamp(record: logging.LogRecord) -> datetime:
    return datetime.fromtimestamp(record.created, tz=timezone.utc)


class JSONFormatter(logging.Formatter):
    """One JSON object per line; call-site extras are nested under ``context``."""

    def format(self, record: logging.LogRecord) -> str:
        log_data = {
            'timestamp': _timestamp(record).isoformat(),
            'level': record.levelname,
            'service': getattr(record, 'service', None),
            'logger': record.name,
            'message': record.getMessage(),
            'location': f"{record.module}.{record.funcName}:{record.lineno}",
        }

        context = _context(record)
        if context:
            log_data['context'] = context

        if record.exc_info:
            log_data['exception'] = self.formatException(record.exc_info)

        return json.dumps(log_data, default=str)


class TextFormatter(logging.Formatter):
    """Console formatter: ``time [LEVEL] logger: message key=value ...``."""

    COLORS = {
        logging.DEBUG: '\033[36m',
        logging.INFO: '\033[32m',
        logging.WARNING: '\033[33m',
        logging.ERROR: '\033[31m',
        logging.CRITICAL: '\033[35m',
    }
    RESET = '\033[0m'

    def __init__(self, use_colors: bool = True):
        super().__init__()
        self.use_colors = use_colors and sys.stdout.isatty()

    def format(self, record: logging.LogRecord) -> str:
        level = record.levelname
        color = self.COLORS.get(record.levelno)
        if self.use_colors and color:
            level = f"{color}{level}{self.RESET}"

        parts = [
            _timestamp(record).strftime('%Y-%m-%d %H:%M:%S'),
            f"[{level}]",
            f"{record.name}:",
            record.getMessage(),
        ]
        parts.extend(f"{key}={value}" for key, value in _context(record).items())
        formatted = " ".join(parts)

        if record.exc_info:
            formatted += "\n" + self.formatException(record.exc_info)

        return formatted


class ServiceContextFilter(logging.Filter):
    """Stamps the service name onto every record."""

    def __init__(self, service_name: str):
        super().__init__()
        self.service_name = service_name

    def filter(self, record: logging.LogRecord) -> bool:
        record.service = self.service_name
        return True


def _build_handler(output: str) -> logging.Handler:
    destination = output.lower()
    if destination == 'stdout':
        return logging.StreamHandler(sys.stdout)
    if destination == 'stderr':
        return logging.StreamHandler(sys.stderr)
    return logging.FileHandler(output)


def setup_logging(config: LoggingConfig, service_name: str = "gateway-metrics") -> None:
    """
    Route all logging through a single handler on the root logger.

    Args:
        config: Logging configuration
        service_name: Name stamped onto every record
    """
    handler = _build_handler(config.output)
    handler.setFormatter(JSONFormatter() if config.format == 'json' else TextFormatter())
    handler.addFilter(ServiceContextFilter(service_name))

    root_logger = logging.getLogger()
    root_logger.setLevel(config.level)
    root_logger.handlers.clear()
    root_logger.addHandler(handler)

    for name in _NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    logging.getLogger(__name__).info(
        "Logging configured",
        extra={'log_level': config.level, 'log_format': config.format, 'log_output': config.output},
    )
