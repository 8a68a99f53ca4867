"""
Application Insights (Kusto) package

Configuration, the query transport, query safety validation, result
recommendations and PII sanitization.
"""

from .client import (
    KustoClient,
    KustoAPIError,
    KustoAuthError,
    KustoSyntaxError,
    KustoRateLimitError,
    KustoTransportError,
    parse_result
)
from .config import (
    ServerConfig,
    Reference,
    ConfigurationError,
    load_server_config,
    validate_server_config,
    APP_INSIGHTS_SCOPE
)
from .validation import validate_kql, ValidationResult
from .recommendations import generate_recommendations
from .sanitize import sanitize_text, sanitize_object

__all__ = [
    # Client
    'KustoClient',
    'KustoAPIError',
    'KustoAuthError',
    'KustoSyntaxError',
    'KustoRateLimitError',
    'KustoTransportError',
    'parse_result',

    # Configuration
    'ServerConfig',
    'Reference',
    'ConfigurationError',
    'load_server_config',
    'validate_server_config',
    'APP_INSIGHTS_SCOPE',

    # Query checks and post-processing
    'validate_kql',
    'ValidationResult',
    'generate_recommendations',
    'sanitize_text',
    'sanitize_object'
]
