"""
OpenTelemetry decorators for instrumenting MCP server operations

Provides decorators for adding tracing to MCP tools and Application Insights
query calls. Both pass straight through when telemetry is not initialized.
"""

import functools
import inspect
from typing import Callable, Optional
from src.logging import get_logger

from .config import get_tracer

logger = get_logger('TELEMETRY')

SENSITIVE_PARAMS = {
    'token', 'access_token', 'password', 'secret', 'client_secret',
    'key', 'api_key', 'auth', 'authorization'
}


def trace_mcp_tool(tool_name: Optional[str] = None, record_args: bool = True):
    """
    Decorator to trace MCP tool execution.

    Args:
        tool_name: Custom span name (defaults to mcp_tool.<function name>)
        record_args: Whether to record function arguments as span attributes
    """
    def decorator(func: Callable) -> Callable:
        @functools.wraps(func)
        async def wrapper(*args, **kwargs):
            tracer = get_tracer()
            if not tracer:
                return await func(*args, **kwargs)

            from opentelemetry import trace

            with tracer.start_as_current_span(tool_name or f"mcp_tool.{func.__name__}") as span:
                span.set_attribute("mcp.tool.name", func.__name__)
                span.set_attribute("mcp.operation.type", "tool_execution")
                if record_args:
                    _record_function_args(span, func, args, kwargs)

                try:
                    result = await func(*args, **kwargs)
                except Exception as e:
                    span.set_status(trace.Status(trace.StatusCode.ERROR, str(e)))
                    span.record_exception(e)
                    span.set_attribute("mcp.tool.error_type", type(e).__name__)
                    raise

                span.set_status(trace.Status(trace.StatusCode.OK))
                return result

        return wrapper
    return decorator


def trace_kusto_api_call(operation: Optional[str] = None):
    """
    Decorator to trace Application Insights query calls.

    Args:
        operation: Description of the API operation
    """
    def decorator(func: Callable) -> Callable:
        @functools.wraps(func)
        async def wrapper(*args, **kwargs):
            tracer = get_tracer()
            if not tracer:
                return await func(*args, **kwargs)

            from opentelemetry import trace

            with tracer.start_as_current_span(f"kusto_api.{operation or func.__name__}") as span:
                span.set_attribute("kusto.operation.type", "api_call")
                span.set_attribute("kusto.function.name", func.__name__)

                kql = kwargs.get('kql') or (args[1] if len(args) > 1 and isinstance(args[1], str) else None)
                if kql:
                    if len(kql) <= 2000:
                        span.set_attribute("kusto.query.text", kql)
                    else:
                        span.set_attribute("kusto.query.size", len(kql))

                try:
                    result = await func(*args, **kwargs)
                except Exception as e:
                    span.set_status(trace.Status(trace.StatusCode.ERROR, str(e)))
                    span.record_exception(e)
                    span.set_attribute("kusto.api.error_type", type(e).__name__)
                    status_code = getattr(e, 'status_code', None)
                    if status_code is not None:
                        span.set_attribute("kusto.api.status_code", status_code)
                    raise

                if isinstance(result, dict):
                    span.set_attribute("kusto.response.tables", len(result.get('tables', [])))
                span.set_status(trace.Status(trace.StatusCode.OK))
                return result

        return wrapper
    return decorator


def _record_function_args(span, func: Callable, args: tuple, kwargs: dict):
    """Record function arguments as span attributes, redacting secrets."""
    try:
        bound_args = inspect.signature(func).bind_partial(*args, **kwargs)
        bound_args.apply_defaults()

        for param_name, value in bound_args.arguments.items():
            if param_name.lower() in SENSITIVE_PARAMS:
                span.set_attribute(f"mcp.args.{param_name}", "[REDACTED]")
            elif param_name == 'ctx':
                if hasattr(value, 'session_id'):
                    span.set_attribute("mcp.session.id", str(value.session_id))
            else:
                value_str = str(value)
                if len(value_str) <= 200:
                    span.set_attribute(f"mcp.args.{param_name}", value_str)
                else:
                    span.set_attribute(f"mcp.args.{param_name}_size", len(value_str))

    except Exception as e:
        logger.debug(f"failed to record function args | error: {e}")
