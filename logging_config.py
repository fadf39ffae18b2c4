import logging
import logging.config
import os
from typing import Any, Dict, Optional

from settings import Settings


class ColoredFormatter(logging.Formatter):
    """Formatter with color coding for different log levels."""

    COLORS = {
        'DEBUG': '\033[36m',     # Cyan
        'INFO': '\033[32m',      # Green
        'WARNING': '\033[33m',   # Yellow
        'ERROR': '\033[31m',     # Red
        'CRITICAL': '\033[35m',  # Magenta
        'RESET': '\033[0m'
    }

    def format(self, record):
        color = self.COLORS.get(record.levelname, self.COLORS['RESET'])
        original = record.levelname
        record.levelname = f"{color}{original}{self.COLORS['RESET']}"
        try:
            return super().format(record)
        finally:
            record.levelname = original


def build_logging_config(settings: Settings) -> Dict[str, Any]:
    """Build the dictConfig for console and optional file output."""
    handlers: Dict[str, Any] = {
        'console': {
            'level': 'DEBUG' if settings.DEBUG else settings.LOG_LEVEL,
            'class': 'logging.StreamHandler',
            'formatter': 'colored' if settings.DEBUG else 'standard',
            'stream': 'ext://sys.stdout'
        }
    }
    if settings.LOG_FILE:
        handlers['file'] = {
            'level': 'INFO',
            'class': 'logging.handlers.RotatingFileHandler',
            'formatter': 'detailed',
            'filename': settings.LOG_FILE,
            'maxBytes': 10485760,  # 10MB
            'backupCount': 5,
            'encoding': 'utf8'
        }
    handler_names = list(handlers)

    return {
        'version': 1,
        'disable_existing_loggers': False,
        'formatters': {
            'standard': {
                'format': '%(asctime)s [%(levelname)s] %(name)s: %(message)s',
                'datefmt': '%Y-%m-%d %H:%M:%S'
            },
            'detailed': {
                'format': '%(asctime)s [%(levelname)s] %(name)s:%(lineno)d - %(funcName)s(): %(message)s',
                'datefmt': '%Y-%m-%d %H:%M:%S'
            },
            'colored': {
                '()': ColoredFormatter,
                'format': '%(asctime)s [%(levelname)s] %(name)s: %(message)s',
                'datefmt': '%Y-%m-%d %H:%M:%S'
            }
        },
        'handlers': handlers,
        'loggers': {
            '': {
                'handlers': handler_names,
                'level': settings.LOG_LEVEL,
            },
            'uvicorn': {
                'handlers': handler_names,
                'level': 'INFO',
                'propagate': False
            },
            'httpx': {
                'level': 'WARNING',
            },
        }
    }


def setup_logging(settings: Settings) -> None:
    if settings.LOG_FILE:
        log_dir = os.path.dirname(settings.LOG_FILE)
        if log_dir:
            os.makedirs(log_dir, exist_ok=True)
    logging.config.dictConfig(build_logging_config(settings))


def get_logger(name: Optional[str] = None) -> logging.Logger:
    return logging.getLogger(name)
