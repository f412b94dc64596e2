"""
Observability configuration for flatchat.

Provides a consistent logging schema and per-request correlation IDs across
the storage, presence and session layers.
"""

import logging
import logging.config
import sys
import time
import uuid
from contextvars import ContextVar
from pathlib import Path
from typing import Optional

# Context variable for request correlation
request_id: ContextVar[Optional[str]] = ContextVar('request_id', default=None)


class RequestIdFilter(logging.Filter):
    """Add request ID (and a default component) to all log records."""

    def filter(self, record):
        record.request_id = request_id.get() or "no-request"
        if not hasattr(record, 'component'):
            record.component = record.name
        return True


class ComponentAdapter(logging.LoggerAdapter):
    """Logger adapter that adds component context."""

    def __init__(self, logger, component: str):
        super().__init__(logger, {'component': component})

    def process(self, msg, kwargs):
        # Add component to all messages
        if 'extra' not in kwargs:
            kwargs['extra'] = {}
        if self.extra and 'component' in self.extra:
            kwargs['extra']['component'] = self.extra['component']
        return msg, kwargs


def setup_logging(level: str = "INFO", log_file: Optional[Path] = None) -> None:
    """
    Configure logging for the whole service.

    Args:
        level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        log_file: Optional file path for logging output
    """

    config = {
        'version': 1,
        'disable_existing_loggers': False,
        'filters': {
            'request_id': {
                '()': RequestIdFilter,
            },
        },
        'formatters': {
            'detailed': {
                'format': '%(asctime)s [%(levelname)s] %(component)s %(name)s %(request_id)s - %(message)s',
                'datefmt': '%Y-%m-%d %H:%M:%S'
            },
            'simple': {
                'format': '[%(levelname)s] %(component)s %(request_id)s - %(message)s'
            }
        },
        'handlers': {
            'console': {
                'class': 'logging.StreamHandler',
                'level': level,
                'formatter': 'simple',
                'stream': sys.stdout,
                'filters': ['request_id']
            }
        },
        'root': {
            'level': level,
            'handlers': ['console']
        },
        'loggers': {
            'flatchat.storage': {'level': level, 'propagate': True},
            'flatchat.presence': {'level': level, 'propagate': True},
            'flatchat.session': {'level': level, 'propagate': True},
            'flatchat.api': {'level': level, 'propagate': True},
        }
    }

    if log_file:
        log_file = Path(log_file)
        log_file.parent.mkdir(parents=True, exist_ok=True)
        config['handlers']['file'] = {
            'class': 'logging.FileHandler',
            'level': level,
            'formatter': 'detailed',
            'filename': str(log_file),
            'filters': ['request_id']
        }
        config['root']['handlers'].append('file')

    logging.config.dictConfig(config)


def get_logger(component: str) -> ComponentAdapter:
    """
    Get a logger for a specific component.

    Args:
        component: Component name (e.g., 'storage.records', 'presence', 'api')

    Returns:
        Logger adapter with component context
    """
    logger = logging.getLogger(f'flatchat.{component}')
    return ComponentAdapter(logger, component)


def set_request_context(request_id_val: Optional[str] = None):
    """Set the request id for log correlation. Returns the contextvar token."""
    return request_id.set(request_id_val or generate_request_id())


def reset_request_context(token) -> None:
    request_id.reset(token)


def generate_request_id() -> str:
    """Generate a new request ID."""
    return str(uuid.uuid4())[:8]


class PerformanceTimer:
    """Context manager for timing operations."""

    def __init__(self, logger: ComponentAdapter, operation: str, **context):
        self.logger = logger
        self.operation = operation
        self.context = context
        self.start_time: float = 0.0

    def __enter__(self):
        self.start_time = time.perf_counter()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        duration = time.perf_counter() - self.start_time
        if exc_type:
            self.logger.warning(f"Failed {self.operation} in {duration:.3f}s",
                                extra={'operation': self.operation, 'duration': duration,
                                       'error': str(exc_val), **self.context})
        else:
            self.logger.debug(f"Completed {self.operation} in {duration:.3f}s",
                              extra={'operation': self.operation, 'duration': duration,
                                     **self.context})
