"""
OpenTelemetry instrumentation package for the BC Telemetry Buddy MCP server

Provides centralized configuration and initialization for OpenTelemetry
tracing across the MCP tools and the Application Insights client.
"""

from .config import (
    initialize_telemetry,
    get_tracer,
    shutdown_telemetry,
    is_telemetry_enabled,
    get_telemetry_status
)

from .decorators import (
    trace_mcp_tool,
    trace_kusto_api_call
)

__all__ = [
    'initialize_telemetry',
    'get_tracer',
    'shutdown_telemetry',
    'is_telemetry_enabled',
    'get_telemetry_status',
    'trace_mcp_tool',
    'trace_kusto_api_call'
]
