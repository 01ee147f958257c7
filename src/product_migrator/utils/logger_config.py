"""
Logging setup for the migration engine
Format: YYYY-MM-DD HH:MM:SS - [Module] - [Source] - Description
"""

import logging
import sys
from datetime import datetime


class MigratorFormatter(logging.Formatter):
    """Formatter with module and source context"""

    COLORS = {
        'DEBUG': '\033[36m',    # Cyan
        'INFO': '\033[32m',     # Green
        'WARNING': '\033[33m',  # Yellow
        'ERROR': '\033[31m',    # Red
        'CRITICAL': '\033[35m'  # Magenta
    }
    RESET = '\033[0m'

    def __init__(self, use_color: bool = True):
        super().__init__()
        self.use_color = use_color

    def format(self, record):
        module = getattr(record, 'module_name', None) or record.name.split('.')[-1].upper()
        source = getattr(record, 'source', 'CORE')
        timestamp = datetime.fromtimestamp(record.created).strftime('%Y-%m-%d %H:%M:%S')

        formatted = f"{timestamp} - [{module}] - [{source}] - {record.getMessage()}"
        if record.exc_info:
            formatted = f"{formatted}\n{self.formatException(record.exc_info)}"

        if not self.use_color:
            return formatted
        color = self.COLORS.get(record.levelname, '')
        return f"{color}{formatted}{self.RESET}"


def setup_logger(name='product_migrator', level='INFO'):
    """Attach the console handler to the package logger (idempotent)"""
    logger = logging.getLogger(name)
    logger.setLevel(getattr(logging, str(level).upper(), logging.INFO))

    # Avoid duplicate handlers
    if logger.handlers:
        return logger

    console_handler = logging.StreamHandler()
    console_handler.setFormatter(MigratorFormatter(use_color=sys.stderr.isatty()))

    logger.addHandler(console_handler)
    logger.propagate = False

    return logger


def log(logger, level, message, module='SYSTEM', source='CORE'):
    """Log with module and source context"""
    extra = {'module_name': module, 'source': source}
    logger.log(getattr(logging, level.upper(), logging.INFO), message, extra=extra)
