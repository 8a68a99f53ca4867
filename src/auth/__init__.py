"""
Authentication package for the BC Telemetry Buddy MCP server.

Acquires bearer tokens for the Application Insights API through azure-identity.
"""

from .token_provider import (
    TokenProvider,
    AuthenticationFailed,
    build_credential,
    EXPIRY_MARGIN_SECONDS
)

__all__ = [
    'TokenProvider',
    'AuthenticationFailed',
    'build_credential',
    'EXPIRY_MARGIN_SECONDS'
]
