"""
Logging setup for the document mapper.

Stdlib loggers are configured through dictConfig; structlog events from the
relation builders are rendered as key=value pairs and handed to the same
handlers.

Version: 1.0
"""

import json
import logging
import logging.config
import socket
from datetime import datetime, timezone
from typing import Any, Dict, Optional

import structlog  # structlog v23.1.0

from docmapper.config.settings import get_settings
from docmapper.core.exceptions import describe_exception

PLAIN_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
LOG_DATE_FORMAT = '%Y-%m-%d %H:%M:%S'
SERVICE_NAME = 'docmapper'


class JsonFormatter(logging.Formatter):
    """One JSON object per record, for log shippers in production."""

    def __init__(self, environment: Optional[str] = None):
        super().__init__()
        self.hostname = socket.gethostname()
        self.environment = environment or get_settings().ENVIRONMENT

    def format(self, record: logging.LogRecord) -> str:
        created = datetime.fromtimestamp(record.created, timezone.utc)
        payload: Dict[str, Any] = {
            'timestamp': created.strftime(LOG_DATE_FORMAT),
            'service': SERVICE_NAME,
            'environment': self.environment,
            'host': self.hostname,
            'logger': record.name,
            'level': record.levelname,
            'message': record.getMessage(),
        }

        # Store context attached through log_error
        data = getattr(record, 'data', None)
        if data is not None:
            payload['data'] = data

        if record.exc_info:
            payload['exception'] = self.formatException(record.exc_info)

        return json.dumps(payload, default=str)


def get_log_config() -> Dict[str, Any]:
    """Builds the dictConfig for the current settings."""
    settings = get_settings()
    level = 'DEBUG' if settings.DEBUG else settings.LOG_LEVEL
    use_json = settings.ENVIRONMENT == 'production'

    return {
        'version': 1,
        'disable_existing_loggers': False,
        'formatters': {
            'plain': {'format': PLAIN_FORMAT, 'datefmt': LOG_DATE_FORMAT},
            'json': {'()': JsonFormatter, 'environment': settings.ENVIRONMENT},
        },
        'handlers': {
            'console': {
                'class': 'logging.StreamHandler',
                'formatter': 'json' if use_json else 'plain',
                'level': level,
            },
        },
        'loggers': {
            SERVICE_NAME: {'handlers': ['console'], 'level': level, 'propagate': False},
        },
        'root': {'handlers': ['console'], 'level': level},
    }


def setup_logging() -> None:
    """Applies the logging config and points structlog at the stdlib handlers."""
    logging.config.dictConfig(get_log_config())

    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.KeyValueRenderer(key_order=["event"]),
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    logging.getLogger(__name__).debug("Logging configured")


def log_error(
    logger: logging.Logger,
    error: Exception,
    message: str,
    context: Optional[Dict[str, Any]] = None
) -> None:
    """
    Logs a failed store operation with its context under ``record.data``.

    Args:
        logger: Logger of the failing module
        error: The exception being re-raised by the caller
        message: Short description, e.g. "Aggregation on roles failed"
        context: Extra fields such as the collection or the document key
    """
    data = dict(context or {})
    data.update(describe_exception(error))
    logger.error(f"{message}: {error}", extra={'data': data})


__all__ = [
    'JsonFormatter',
    'get_log_config',
    'setup_logging',
    'log_error',
]
