"""
Bearer token acquisition for the Application Insights API.

Wraps an azure-identity credential chosen by the configured auth flow,
keeps the last token until shortly before it expires, and exposes a status
check and a forced re-authentication.
"""

import asyncio
import time
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Optional

from azure.core.credentials import AccessToken
from azure.core.exceptions import ClientAuthenticationError
from azure.identity import AzureCliCredential, ClientSecretCredential, DeviceCodeCredential

from src.kusto.config import APP_INSIGHTS_SCOPE, ServerConfig
from src.logging import get_logger

logger = get_logger('AUTH')

# Refresh tokens this many seconds before they expire
EXPIRY_MARGIN_SECONDS = 300


class AuthenticationFailed(Exception):
    """Raised when no access token could be acquired."""


def _device_code_prompt(verification_uri: str, user_code: str, expires_on: datetime) -> None:
    # stdout is the MCP transport, so the prompt goes to the log
    logger.warning(f"device code sign-in required | open:{verification_uri} | code:{user_code} | expires:{expires_on}")


def build_credential(config: ServerConfig):
    """Create the azure-identity credential for the configured auth flow."""
    if config.auth_flow == "client_credentials":
        return ClientSecretCredential(
            tenant_id=config.tenant_id,
            client_id=config.client_id,
            client_secret=config.client_secret
        )
    if config.auth_flow == "device_code":
        return DeviceCodeCredential(
            tenant_id=config.tenant_id,
            client_id=config.client_id,
            prompt_callback=_device_code_prompt
        )
    return AzureCliCredential(tenant_id=config.tenant_id or None)


class TokenProvider:
    """Hands out bearer tokens for the Application Insights scope."""

    def __init__(
        self,
        config: ServerConfig,
        credential: Any = None,
        clock: Callable[[], float] = time.time
    ):
        self.auth_flow = config.auth_flow
        self._config = config
        # Created on the first token request
        self._credential = credential
        self._clock = clock
        self._token: Optional[AccessToken] = None

    def _is_valid(self) -> bool:
        return self._token is not None and self._token.expires_on - EXPIRY_MARGIN_SECONDS > self._clock()

    async def get_access_token(self) -> str:
        """
        Return a valid access token, acquiring a new one when needed.

        Raises:
            AuthenticationFailed: If the credential cannot complete its flow
        """
        if self._is_valid():
            return self._token.token

        logger.info(f"acquiring access token | flow:{self.auth_flow}")
        if self._credential is None:
            try:
                self._credential = build_credential(self._config)
            except ValueError as e:
                logger.error(f"invalid credential configuration | flow:{self.auth_flow} | error:{e}")
                raise AuthenticationFailed(f"Authentication failed ({self.auth_flow}): {e}") from e

        try:
            # azure-identity credentials block, keep them off the event loop
            self._token = await asyncio.to_thread(self._credential.get_token, APP_INSIGHTS_SCOPE)
        except ClientAuthenticationError as e:
            self._token = None
            logger.error(f"authentication failed | flow:{self.auth_flow} | error:{e}")
            raise AuthenticationFailed(f"Authentication failed ({self.auth_flow}): {e}") from e

        logger.info(f"access token acquired | expires:{self._expires_at()}")
        return self._token.token

    async def reauthenticate(self) -> Dict[str, Any]:
        """Drop the cached token and acquire a fresh one."""
        self._token = None
        await self.get_access_token()
        return self.get_status()

    def _expires_at(self) -> Optional[str]:
        if self._token is None:
            return None
        return datetime.fromtimestamp(self._token.expires_on, tz=timezone.utc).isoformat()

    def get_status(self) -> Dict[str, Any]:
        return {
            "authenticated": self._is_valid(),
            "auth_flow": self.auth_flow,
            "expires_on": self._expires_at()
        }
