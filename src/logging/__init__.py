"""
Logging utilities for the BC Telemetry Buddy MCP server.
"""

from .mcp_logger import (
    get_logger,
    set_session_context,
    log_tool_call,
    log_extra,
    session_logger,
    auth_logger,
    query_logger,
    pattern_logger,
    cache_logger,
    kusto_logger,
    references_logger
)

__all__ = [
    'get_logger',
    'set_session_context',
    'log_tool_call',
    'log_extra',
    'session_logger',
    'auth_logger',
    'query_logger',
    'pattern_logger',
    'cache_logger',
    'kusto_logger',
    'references_logger'
]
