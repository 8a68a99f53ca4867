"""
OpenTelemetry configuration and initialization for the BC Telemetry Buddy MCP server

Handles the setup of tracing and httpx instrumentation with the OTLP collector
endpoint and service metadata taken from the environment.
"""

import os
from src.logging import get_logger

logger = get_logger('TELEMETRY')

# Global telemetry state
_telemetry_initialized = False
_tracer = None


def is_telemetry_enabled() -> bool:
    """Check if telemetry is enabled via environment variables."""
    return os.getenv('OTEL_TELEMETRY_ENABLED', 'false').lower() in ('true', '1', 'yes', 'on')


def get_service_name() -> str:
    """Get the service name for telemetry."""
    return os.getenv('OTEL_SERVICE_NAME', 'bc-telemetry-buddy-mcp')


def get_otel_endpoint() -> str:
    """Get the OTLP endpoint for telemetry export."""
    return os.getenv('OTEL_EXPORTER_OTLP_ENDPOINT', 'http://localhost:4317')


def get_deployment_environment() -> str:
    """Get the deployment environment."""
    return os.getenv('DEPLOYMENT_ENVIRONMENT', 'development')


def initialize_telemetry() -> bool:
    """
    Initialize OpenTelemetry tracing.

    Returns:
        True if initialization was successful, False otherwise
    """
    global _telemetry_initialized, _tracer

    if _telemetry_initialized:
        logger.debug("telemetry already initialized")
        return True

    if not is_telemetry_enabled():
        logger.info("telemetry disabled via configuration")
        return False

    try:
        from opentelemetry import trace
        from opentelemetry.sdk.trace import TracerProvider
        from opentelemetry.sdk.resources import Resource
        from opentelemetry.sdk.trace.export import BatchSpanProcessor
        from opentelemetry.exporter.otlp.proto.grpc.trace_exporter import OTLPSpanExporter
        from opentelemetry.instrumentation.httpx import HTTPXClientInstrumentor

        resource = Resource.create({
            "service.name": get_service_name(),
            "service.version": "1.0.0",
            "deployment.environment": get_deployment_environment(),
            "service.namespace": "bctb-mcp",
        })

        otlp_endpoint = get_otel_endpoint()
        logger.info(f"initializing telemetry | endpoint:{otlp_endpoint} | service:{get_service_name()}")

        trace_provider = TracerProvider(resource=resource)
        trace.set_tracer_provider(trace_provider)
        trace_provider.add_span_processor(
            BatchSpanProcessor(OTLPSpanExporter(endpoint=otlp_endpoint, insecure=True))
        )

        # Application Insights and GitHub calls both go through httpx
        HTTPXClientInstrumentor().instrument()

        _tracer = trace.get_tracer(__name__)
        _telemetry_initialized = True
        logger.info("telemetry initialization complete")
        return True

    except ImportError as e:
        logger.warning(f"telemetry disabled | missing dependencies: {e}")
        return False
    except Exception as e:
        logger.exception(f"telemetry initialization failed | error: {e}")
        return False


def get_tracer():
    """Get the OpenTelemetry tracer instance, or None when telemetry is off."""
    if not _telemetry_initialized:
        return None
    return _tracer


def shutdown_telemetry():
    """Shutdown the tracer provider and flush any pending spans."""
    global _telemetry_initialized, _tracer

    if not _telemetry_initialized:
        return

    try:
        from opentelemetry import trace

        trace_provider = trace.get_tracer_provider()
        if hasattr(trace_provider, 'shutdown'):
            trace_provider.shutdown()

        logger.info("telemetry shutdown complete")

    except Exception as e:
        logger.error(f"telemetry shutdown error | error: {e}")

    finally:
        _telemetry_initialized = False
        _tracer = None


def get_telemetry_status() -> dict:
    """
    Get the current telemetry configuration status.

    Returns:
        Dictionary with telemetry status information
    """
    return {
        "enabled": is_telemetry_enabled(),
        "initialized": _telemetry_initialized,
        "service_name": get_service_name(),
        "endpoint": get_otel_endpoint(),
        "environment": get_deployment_environment(),
        "tracer_available": _tracer is not None,
    }
