import json
import logging
import os
from contextvars import ContextVar
from logging.handlers import RotatingFileHandler
from typing import Any, Mapping, Optional

# Correlation id of the HTTP request being served, set by the API middleware
REQUEST_ID_CTX: ContextVar[Optional[str]] = ContextVar('request_id', default=None)

LOG_FILE_NAME = 'market_cache.log'
_STRUCTURED_KEYS = ('event', 'metric', 'source', 'url', 'attempts', 'error')


class CorrelationIdFilter(logging.Filter):
    def filter(self, record: logging.LogRecord) -> bool:  # noqa: D401
        record.correlation_id = REQUEST_ID_CTX.get()
        return True


class JsonFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:  # noqa: D401
        base = {
            'ts': self.formatTime(record, datefmt='%Y-%m-%dT%H:%M:%S%z'),
            'level': record.levelname,
            'msg': record.getMessage(),
            'logger': record.name,
            'correlation_id': getattr(record, 'correlation_id', None),
        }
        for key in _STRUCTURED_KEYS:
            if hasattr(record, key):
                base[key] = getattr(record, key)
        if record.exc_info:
            base['exc_info'] = self.formatException(record.exc_info)
        return json.dumps(base, ensure_ascii=False, default=str)


def setup_logging(level: Optional[str] = None, log_dir: Optional[str] = None, log_format: Optional[str] = None):
    level = (level or os.environ.get('LOG_LEVEL', 'INFO')).upper()
    log_dir = log_dir if log_dir is not None else os.environ.get('LOG_DIR')
    log_format = (log_format or os.environ.get('LOG_FORMAT', '')).lower()

    root = logging.getLogger()
    root.setLevel(getattr(logging, level, logging.INFO))
    # Clear existing handlers to avoid duplicate logs in reloads
    root.handlers = []
    if log_format == 'json':
        fmt = JsonFormatter()
    else:
        fmt = logging.Formatter('%(asctime)s - %(levelname)s - %(correlation_id)s - %(name)s - %(message)s')

    ch = logging.StreamHandler()
    ch.setFormatter(fmt)
    ch.addFilter(CorrelationIdFilter())
    root.addHandler(ch)

    if log_dir:
        # 5 MB, keep 3 backups
        try:
            os.makedirs(log_dir, exist_ok=True)
            fh = RotatingFileHandler(os.path.join(log_dir, LOG_FILE_NAME), maxBytes=5 * 1024 * 1024, backupCount=3)
            fh.setFormatter(fmt)
            fh.addFilter(CorrelationIdFilter())
            root.addHandler(fh)
        except OSError:
            root.warning('Could not attach rotating file handler; continuing with console only')
    return root


def log_config(config: Mapping[str, Any]):
    """Log current configuration"""
    logging.info("=== Market cache configuration ===")
    for key, value in config.items():
        logging.info("%s: %s", key, value)
    logging.info("==================================")
