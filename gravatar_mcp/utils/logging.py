"""Logging configuration for Gravatar MCP server."""

import os
import sys
import logging
import datetime
from logging.handlers import RotatingFileHandler
from typing import Optional

from dotenv import load_dotenv

load_dotenv()  # Load environment variables from .env file

AUDIT_LOGGER_NAME = "oauth_proxy.audit"
LOG_FORMAT = '%(asctime)s [%(levelname)s] [%(name)s] %(message)s'
MAX_LOG_BYTES = 10 * 1024 * 1024
LOG_BACKUP_COUNT = 5


class ISO8601Formatter(logging.Formatter):
    """Formatter emitting UTC ISO8601 timestamps with milliseconds and a Z suffix."""

    def formatTime(self, record, datefmt=None):
        dt = datetime.datetime.fromtimestamp(record.created, tz=datetime.timezone.utc)
        return dt.strftime('%Y-%m-%dT%H:%M:%S.%f')[:-3] + 'Z'


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(name)


def _rotating_handler(path: str, level: int, formatter: logging.Formatter) -> RotatingFileHandler:
    handler = RotatingFileHandler(path, maxBytes=MAX_LOG_BYTES, backupCount=LOG_BACKUP_COUNT)
    handler.setFormatter(formatter)
    handler.setLevel(level)
    return handler


def configure_logging(log_level: Optional[int] = None, console_level: Optional[int] = None,
                      log_dir: Optional[str] = None) -> logging.Logger:
    """
    Configure root logging for the MCP server and the OAuth front door.

    Console output goes to stderr: stdout carries the MCP protocol when the
    server runs over stdio. Besides the main rotating log, audit events from
    the OAuth front door are also written to their own ``audit.log``.

    Args:
        log_level: The log level for file output (defaults to LOG_LEVEL env var or INFO)
        console_level: The log level for console output (defaults to INFO or higher)
        log_dir: Directory for log files (defaults to LOG_DIR env var or ./logs)

    Returns:
        The configured root logger
    """
    if log_level is None:
        log_level = getattr(logging, os.getenv('LOG_LEVEL', 'INFO').upper(), logging.INFO)

    if console_level is None:
        console_level = max(logging.INFO, log_level)

    root_logger = logging.getLogger()
    root_logger.setLevel(min(log_level, console_level))

    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)
        handler.close()

    formatter = ISO8601Formatter(LOG_FORMAT)

    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setFormatter(formatter)
    console_handler.setLevel(console_level)
    root_logger.addHandler(console_handler)

    log_dir = log_dir or os.getenv('LOG_DIR') or os.path.join(os.getcwd(), 'logs')
    os.makedirs(log_dir, exist_ok=True)
    root_logger.addHandler(_rotating_handler(os.path.join(log_dir, 'gravatar_mcp.log'), log_level, formatter))

    audit_logger = logging.getLogger(AUDIT_LOGGER_NAME)
    for handler in audit_logger.handlers[:]:
        audit_logger.removeHandler(handler)
        handler.close()
    audit_logger.setLevel(logging.INFO)
    audit_logger.addHandler(_rotating_handler(os.path.join(log_dir, 'audit.log'), logging.INFO, formatter))

    # Chatty libraries log through our handlers, never below INFO on their own
    for logger_name in ['httpx', 'httpcore', 'aiohttp.access', 'authlib', 'mcp', 'fastmcp']:
        third_party_logger = logging.getLogger(logger_name)
        third_party_logger.setLevel(max(logging.INFO, log_level))
        third_party_logger.propagate = True

    return root_logger
