"""
Structured logging configuration.

Production writes JSON lines to stdout; debug runs get a readable
console format.

Environment variables:
- LOG_FORMAT: "json" or "console" (default: json unless DEBUG)
- LOG_LEVEL: DEBUG, INFO, WARNING, ERROR (default: INFO, DEBUG when DEBUG)
"""
import json
import logging
import os
from datetime import datetime, timezone


STANDARD_RECORD_ATTRS = frozenset({
    'name', 'msg', 'args', 'levelname', 'levelno', 'pathname',
    'filename', 'module', 'lineno', 'funcName', 'created',
    'msecs', 'relativeCreated', 'thread', 'threadName',
    'processName', 'process', 'exc_info', 'exc_text', 'stack_info',
    'message', 'taskName',
})


def get_logging_config(debug: bool = False) -> dict:
    """
    Build the Django LOGGING dict.

    Args:
        debug: Whether running in debug mode

    Returns:
        Django LOGGING dict
    """
    log_level = os.environ.get('LOG_LEVEL', 'DEBUG' if debug else 'INFO')
    log_format = os.environ.get('LOG_FORMAT', 'console' if debug else 'json')

    config = {
        'version': 1,
        'disable_existing_loggers': False,
    }

    if log_format == 'json':
        config['formatters'] = {
            'json': {
                '()': 'schoolledger.logging_config.JsonFormatter',
            },
        }
        console_formatter = 'json'
    else:
        config['formatters'] = {
            'verbose': {
                'format': '[{asctime}] {levelname} {name} {message}',
                'style': '{',
            },
        }
        console_formatter = 'verbose'

    config['handlers'] = {
        'console': {
            'class': 'logging.StreamHandler',
            'formatter': console_formatter,
            'stream': 'ext://sys.stdout',
        },
        'null': {
            'class': 'logging.NullHandler',
        },
    }

    config['loggers'] = {
        '': {
            'handlers': ['console'],
            'level': log_level,
        },
        'django': {
            'handlers': ['console'],
            'level': log_level,
            'propagate': False,
        },
        'django.request': {
            'handlers': ['console'],
            'level': log_level if debug else 'ERROR',
            'propagate': False,
        },
        'django.db.backends': {
            'handlers': ['console'] if debug else ['null'],
            'level': 'DEBUG' if debug else 'INFO',
            'propagate': False,
        },
        'apps': {
            'handlers': ['console'],
            'level': log_level,
            'propagate': False,
        },
    }

    return config


class JsonFormatter(logging.Formatter):
    """
    JSON log formatter.

    Each line carries timestamp, level, logger, message, the source
    location, any exception text and the `extra=` fields passed to the
    logger call.
    """

    def format(self, record: logging.LogRecord) -> str:
        log_entry = {
            'timestamp': datetime.now(timezone.utc).isoformat(),
            'level': record.levelname,
            'logger': record.name,
            'message': record.getMessage(),
            'location': {
                'file': record.pathname,
                'line': record.lineno,
                'function': record.funcName,
            },
        }

        if record.exc_info:
            log_entry['exception'] = self.formatException(record.exc_info)

        extras = {}
        for key, value in record.__dict__.items():
            if key in STANDARD_RECORD_ATTRS:
                continue
            try:
                json.dumps(value)
                extras[key] = value
            except (TypeError, ValueError):
                extras[key] = str(value)

        if extras:
            log_entry['extra'] = extras

        return json.dumps(log_entry, default=str)
