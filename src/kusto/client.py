"""
Application Insights query client

Posts KQL to the Application Insights REST API with a bearer token and maps
HTTP failures onto categorized exceptions that keep the backend's error text.
"""

import json
from typing import Any, Dict, List, Optional

import httpx

from src.logging import get_logger
from src.telemetry.decorators import trace_kusto_api_call

from .config import APP_INSIGHTS_API_URL

logger = get_logger('KUSTO')


class KustoAPIError(Exception):
    """Base exception for Application Insights query failures."""

    def __init__(self, message: str, status_code: Optional[int] = None, response_data: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.status_code = status_code
        self.response_data = response_data


class KustoAuthError(KustoAPIError):
    """401/403 from the query endpoint."""


class KustoSyntaxError(KustoAPIError):
    """400: the backend rejected the KQL."""


class KustoRateLimitError(KustoAPIError):
    """429: throttled by the backend."""


class KustoTransportError(KustoAPIError):
    """Any other HTTP status, or a network level failure."""


class KustoClient:
    """Executes KQL queries against one Application Insights application."""

    def __init__(
        self,
        app_id: str,
        timeout: float = 60.0,
        transport: Optional[httpx.AsyncBaseTransport] = None
    ):
        self.app_id = app_id
        self.timeout = timeout
        self._transport = transport

    @property
    def query_url(self) -> str:
        return f"{APP_INSIGHTS_API_URL}/{self.app_id}/query"

    @trace_kusto_api_call(operation="query")
    async def execute_query(self, kql: str, access_token: str) -> Dict[str, Any]:
        """
        Execute a KQL query.

        Args:
            kql: Query text, sent verbatim
            access_token: Bearer token for the Application Insights API

        Returns:
            Raw response body: {"tables": [{"name", "columns", "rows"}, ...]}

        Raises:
            KustoAuthError, KustoSyntaxError, KustoRateLimitError, KustoTransportError
        """
        logger.info(f"executing KQL query | app:{self.app_id} | size:{len(kql)}")
        logger.debug(f"query text | kql:{kql}")

        async with httpx.AsyncClient(transport=self._transport, timeout=self.timeout) as client:
            try:
                response = await client.post(
                    self.query_url,
                    json={"query": kql},
                    headers={
                        "Authorization": f"Bearer {access_token}",
                        "Content-Type": "application/json"
                    }
                )
            except httpx.HTTPError as e:
                logger.error(f"HTTP error: {e}")
                raise KustoTransportError(f"Query execution failed: {e}") from e

        if response.status_code >= 400:
            raise _categorize_error(response)

        try:
            body = response.json()
        except json.JSONDecodeError as e:
            logger.error(f"JSON decode failed: {e}")
            raise KustoTransportError(f"Query execution failed: invalid JSON response ({e})") from e

        logger.info(f"query executed | tables:{len(body.get('tables', []))}")
        return body


def _categorize_error(response: httpx.Response) -> KustoAPIError:
    """Map an error response onto the matching exception class."""
    status = response.status_code
    try:
        response_data = response.json()
        message = response_data.get("error", {}).get("message") or response.text
    except (json.JSONDecodeError, AttributeError):
        response_data = None
        message = response.text or response.reason_phrase

    logger.warning(f"query failed | status:{status} | message:{message[:200]}")

    if status in (401, 403):
        return KustoAuthError(
            f"Authentication failed: {message}. Check your credentials and permissions.",
            status, response_data
        )
    if status == 400:
        return KustoSyntaxError(f"Invalid query: {message}", status, response_data)
    if status == 429:
        return KustoRateLimitError(f"Rate limit exceeded: {message}. Please try again later.", status, response_data)
    return KustoTransportError(f"Query execution failed: {message}", status, response_data)


def parse_result(result: Dict[str, Any]) -> Dict[str, Any]:
    """
    Reduce a raw response to the primary table.

    Returns:
        {"columns": [...], "rows": [[...]], "summary": str}
    """
    tables: List[Dict[str, Any]] = result.get("tables") or []
    if not tables:
        return {"columns": [], "rows": [], "summary": "No results returned"}

    primary = tables[0]
    columns = [col.get("name") or col.get("columnName") for col in primary.get("columns", [])]
    rows = primary.get("rows", [])

    return {
        "columns": columns,
        "rows": rows,
        "summary": f"Returned {len(rows)} row(s) with {len(columns)} column(s)"
    }
