"""
Standardized logging setup for the BC Telemetry Buddy MCP server.
Uses Python's built-in logging with structured session correlation.

All output goes to stderr: stdout belongs to the MCP stdio transport.
"""

import logging
import sys
import os
from typing import Optional, Dict, Any


class ColoredFormatter(logging.Formatter):
    """Colored logging formatter with timestamps."""

    # ANSI color codes
    COLORS = {
        'DEBUG': '\033[36m',    # Cyan
        'INFO': '\033[32m',     # Green
        'WARNING': '\033[33m',  # Yellow
        'ERROR': '\033[31m',    # Red
        'CRITICAL': '\033[35m', # Magenta
        'RESET': '\033[0m'
    }

    def __init__(self, use_colors=True):
        super().__init__(
            fmt='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
            datefmt='%Y-%m-%d %H:%M:%S'
        )
        self.use_colors = use_colors and sys.stderr.isatty()

    def _colorize(self, record, formatter: logging.Formatter) -> str:
        if not self.use_colors:
            return formatter.format(record)

        level_color = self.COLORS.get(record.levelname, '')
        original_levelname = record.levelname
        record.levelname = f"{level_color}{record.levelname}{self.COLORS['RESET']}"
        try:
            return formatter.format(record)
        finally:
            record.levelname = original_levelname

    def format(self, record):
        return self._colorize(record, super())


class SessionColoredFormatter(ColoredFormatter):
    """Colored formatter that appends the MCP session to the component name."""

    def __init__(self, use_colors=True):
        super().__init__(use_colors)
        self.fmt = '%(asctime)s - %(name)s%(session_part)s - %(levelname)s - %(message)s'
        self._session_fmt = logging.Formatter(self.fmt, datefmt='%Y-%m-%d %H:%M:%S')

    def format(self, record):
        session = getattr(record, 'session', '')
        record.session_part = f" {session}" if session else ""
        return self._colorize(record, self._session_fmt)


log_level = os.getenv('LOG_LEVEL', 'INFO').upper()
log_level_value = getattr(logging, log_level, logging.INFO)

use_colors = os.getenv('LOG_COLORS', 'true').lower() in ('true', '1', 'yes', 'on')

# Leave third-party loggers alone, only make sure their warnings reach stderr
if not logging.getLogger().handlers:
    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(logging.Formatter('%(levelname)s:%(name)s:%(message)s'))
    logging.getLogger().addHandler(handler)
    logging.getLogger().setLevel(logging.WARNING)


class SessionContextFilter(logging.Filter):
    """Add session context to log records."""

    def __init__(self):
        super().__init__()
        self.session_id = None

    def set_context(self, session_id: Optional[str] = None):
        """Set session context for current request."""
        self.session_id = session_id

    def filter(self, record):
        record.session = f"session:{self.session_id[:8]}..." if self.session_id else ""
        return True


class SessionHandler(logging.StreamHandler):
    """Stderr handler with session formatting and colors."""

    def __init__(self, use_colors=True):
        super().__init__(sys.stderr)
        self.setFormatter(SessionColoredFormatter(use_colors=use_colors))


session_filter = SessionContextFilter()


def get_logger(name: str) -> logging.Logger:
    """Get a component logger with session context and colored formatting."""
    logger = logging.getLogger(name)
    if session_filter not in logger.filters:
        logger.addFilter(session_filter)
        if not any(isinstance(h, SessionHandler) for h in logger.handlers):
            logger.addHandler(SessionHandler(use_colors=use_colors))
            logger.propagate = False
            logger.setLevel(log_level_value)
    return logger


def set_session_context(session_id: Optional[str] = None):
    """Set session context for all loggers."""
    session_filter.set_context(session_id)


def log_extra(**kwargs) -> Dict[str, Any]:
    """Format extra logging context."""
    return {k: str(v)[:100] for k, v in kwargs.items() if v is not None}


# Component-specific loggers
session_logger = get_logger('SESSION')
auth_logger = get_logger('AUTH')
query_logger = get_logger('QUERY')
pattern_logger = get_logger('PATTERN')
cache_logger = get_logger('CACHE')
kusto_logger = get_logger('KUSTO')
references_logger = get_logger('REFERENCES')


def log_tool_call(tool_name: str, session_id: Optional[str] = None, **params):
    """Helper to log tool execution."""
    set_session_context(session_id)
    extra_str = " | ".join(f"{k}:{str(v)[:50]}" for k, v in params.items() if v is not None)
    query_logger.info(f"executing {tool_name} | {extra_str}" if extra_str else f"executing {tool_name}")
