"""
Logging configuration for the application.
Colored level names on stdout; API keys and bearer tokens are masked before output.
"""
import logging
import os
import re
import sys

SECRET_PATTERNS = [
    re.compile(r'(Bearer\s+)[A-Za-z0-9._\-]+'),
    re.compile(r'((?:api_key|key|token)=)[^&\s]+', re.IGNORECASE),
    re.compile(r'(AIza)[0-9A-Za-z_\-]{20,}'),
    re.compile(r'(sk-or-)[0-9A-Za-z_\-]+'),
]


class ColoredFormatter(logging.Formatter):
    """Formatter that colors the level name."""

    COLORS = {
        'DEBUG': '\033[36m',
        'INFO': '\033[32m',
        'WARNING': '\033[33m',
        'ERROR': '\033[31m',
        'CRITICAL': '\033[35m',
    }
    RESET = '\033[0m'

    def format(self, record: logging.LogRecord) -> str:
        color = self.COLORS.get(record.levelname, self.RESET)
        # Copy so other handlers still see the plain level name
        record = logging.makeLogRecord(record.__dict__)
        record.levelname = f"{color}{record.levelname}{self.RESET}"
        return super().format(record)


class SecretRedactingFilter(logging.Filter):
    """Mask credentials that end up inside log messages (URLs, headers, provider errors)."""

    def filter(self, record: logging.LogRecord) -> bool:
        message = record.getMessage()
        for pattern in SECRET_PATTERNS:
            message = pattern.sub(r'\1***', message)
        record.msg = message
        record.args = None
        return True


def setup_logger(name: str, level: int | str | None = None) -> logging.Logger:
    """
    Set up a logger.

    Args:
        name: Logger name
        level: Logging level; defaults to LOG_LEVEL from the environment, else INFO

    Returns:
        Configured logger instance
    """
    level = level or os.getenv("LOG_LEVEL", "INFO").upper()
    logger = logging.getLogger(name)
    logger.setLevel(level)

    if logger.handlers:
        return logger

    handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(level)
    handler.addFilter(SecretRedactingFilter())
    handler.setFormatter(ColoredFormatter(
        '%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        datefmt='%Y-%m-%d %H:%M:%S'
    ))

    logger.addHandler(handler)
    return logger


app_logger = setup_logger("scripture_scholar")
