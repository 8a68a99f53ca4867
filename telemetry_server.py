#!/usr/bin/env python3
"""
BC Telemetry Buddy MCP Server
A Model Context Protocol server that answers Business Central telemetry
questions against Application Insights, reusing saved and external KQL
queries as patterns before falling back to keyword driven query synthesis.
"""

import asyncio
import json
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from typing_extensions import TypedDict

from dotenv import load_dotenv

# Load environment variables from .env file first
load_dotenv()

# Initialize OpenTelemetry instrumentation early
from src.telemetry import initialize_telemetry, shutdown_telemetry
from src.telemetry.decorators import trace_mcp_tool
telemetry_enabled = initialize_telemetry()

from src.auth import AuthenticationFailed, TokenProvider
from src.cache import CacheStore, perform_cache_cleanup, run_periodic_cleanup
from src.kusto import (
    KustoClient,
    ServerConfig,
    generate_recommendations,
    load_server_config,
    validate_server_config
)
from src.logging import (
    auth_logger,
    cache_logger,
    log_tool_call,
    query_logger,
    session_logger
)
from src.orchestration import QueryOrchestrator
from src.query_patterns import ReferencesService, SavedQueriesStore, extract_keywords

from fastmcp import Context, FastMCP


class ErrorResponse(TypedDict):
    error: bool
    message: str


@dataclass
class Services:
    """Collaborators shared by all tools for the lifetime of the server"""
    config: ServerConfig
    cache: CacheStore
    saved_queries: SavedQueriesStore
    references: ReferencesService
    token_provider: TokenProvider
    orchestrator: QueryOrchestrator


def build_services(config: ServerConfig) -> Services:
    cache = CacheStore(config.cache_path, ttl_seconds=config.cache_ttl_seconds, enabled=config.cache_enabled)
    saved_queries = SavedQueriesStore(config.queries_path)
    references = ReferencesService(config.references, cache)
    token_provider = TokenProvider(config)
    orchestrator = QueryOrchestrator(
        cache=cache,
        kusto_client=KustoClient(config.app_insights_app_id),
        token_provider=token_provider,
        saved_queries=saved_queries,
        references=references,
        remove_pii=config.remove_pii
    )
    return Services(
        config=config,
        cache=cache,
        saved_queries=saved_queries,
        references=references,
        token_provider=token_provider,
        orchestrator=orchestrator
    )


_services: Optional[Services] = None


def get_services() -> Services:
    global _services
    if _services is None:
        _services = build_services(load_server_config())
        session_logger.info(
            f"services initialized | workspace:{_services.config.workspace_path} | "
            f"cache:{_services.config.cache_enabled} | references:{len(_services.references.references)}"
        )
    return _services


@asynccontextmanager
async def lifespan(server: FastMCP):
    services = get_services()
    cleanup_task = asyncio.create_task(run_periodic_cleanup(services.cache))
    try:
        yield
    finally:
        cleanup_task.cancel()
        try:
            await cleanup_task
        except asyncio.CancelledError:
            pass
        if telemetry_enabled:
            shutdown_telemetry()


mcp = FastMCP(name="bc-telemetry-buddy", lifespan=lifespan)


def validate_input_size(value: Optional[str], param_name: str, max_bytes: int) -> None:
    """
    Reject oversized string inputs.

    Raises:
        ValueError: If input exceeds maximum size
    """
    if value is None:
        return

    size_bytes = len(value.encode('utf-8'))
    if size_bytes > max_bytes:
        raise ValueError(
            f"{param_name} exceeds maximum size limit. "
            f"Maximum: {max_bytes / 1024:.1f}KB, Actual: {size_bytes / 1024:.1f}KB."
        )


def _session_id(ctx: Optional[Context]) -> Optional[str]:
    try:
        return ctx.session_id if ctx else None
    except (AttributeError, RuntimeError):
        return None


def _to_json(payload: Any) -> str:
    return json.dumps(payload, indent=2, default=str)


def _error(message: str) -> str:
    return _to_json(ErrorResponse(error=True, message=message))


@mcp.tool()
@trace_mcp_tool(tool_name="query_telemetry", record_args=True)
async def query_telemetry(
    ctx: Context,
    query: Optional[str] = None,
    kql: Optional[str] = None,
    include_local: bool = True,
    include_external: bool = False
) -> str:
    """
    Query Business Central telemetry in Application Insights.

    Pass either a natural language request in `query` or KQL in `kql`, not both.
    Natural language requests are matched against saved workspace queries
    (and external references when include_external is set). A close match is
    adapted to the request's time range and severity; otherwise a simple query
    is generated from recognized keywords.

    Args:
        query: Natural language request, e.g. "show me errors from the last 24 hours"
        kql: KQL to execute as is
        include_local: Use saved workspace queries as patterns
        include_external: Use external reference queries as patterns

    Returns:
        JSON with type ("table" or "error"), kql, summary, columns, rows,
        recommendations, cached, and query_pattern provenance for
        natural language requests.
    """
    log_tool_call("query_telemetry", _session_id(ctx), query=query, kql=kql)
    validate_input_size(query, "query", 4 * 1024)
    validate_input_size(kql, "kql", 64 * 1024)

    if bool(query) == bool(kql):
        return _error("Provide exactly one of 'query' (natural language) or 'kql'.")

    services = get_services()
    config_error = validate_server_config(services.config)
    if config_error:
        return _error(config_error)

    if kql:
        result = await services.orchestrator.execute_kql(kql)
    else:
        result = await services.orchestrator.execute_nl_query(query, include_local, include_external)

    query_logger.info(f"query_telemetry complete | type:{result.type} | cached:{result.cached} | rows:{len(result.rows)}")
    return result.model_dump_json(indent=2)


@mcp.tool()
@trace_mcp_tool(tool_name="get_saved_queries")
async def get_saved_queries(ctx: Context) -> str:
    """List all saved .kql queries in the workspace queries folder with their metadata."""
    log_tool_call("get_saved_queries", _session_id(ctx))
    queries = get_services().saved_queries.get_all_queries()
    return _to_json([q.model_dump() for q in queries])


@mcp.tool()
@trace_mcp_tool(tool_name="search_queries")
async def search_queries(ctx: Context, search_terms: List[str]) -> str:
    """
    Search saved queries by name, tags, file name, purpose, use case and KQL.

    Args:
        search_terms: Terms to look for, e.g. ["error", "extension"]

    Returns:
        JSON list of matching queries, most relevant first
    """
    log_tool_call("search_queries", _session_id(ctx), search_terms=search_terms)
    queries = get_services().saved_queries.search_queries(search_terms)
    return _to_json([q.model_dump() for q in queries])


@mcp.tool()
@trace_mcp_tool(tool_name="save_query")
async def save_query(
    ctx: Context,
    name: str,
    kql: str,
    purpose: Optional[str] = None,
    use_case: Optional[str] = None,
    tags: Optional[List[str]] = None,
    category: Optional[str] = None
) -> str:
    """
    Save a KQL query to the workspace so it can be reused as a pattern.

    Args:
        name: Display name, also used for the file name
        kql: Query body
        purpose: What the query finds
        use_case: When to run it
        tags: Keywords used for matching, e.g. ["error", "24h"]
        category: Optional sub-folder
    """
    log_tool_call("save_query", _session_id(ctx), name=name, category=category)
    validate_input_size(kql, "kql", 64 * 1024)

    try:
        path = get_services().saved_queries.save_query(name, kql, purpose, use_case, tags, category)
    except (ValueError, OSError) as e:
        query_logger.error(f"save_query failed | name:{name} | error:{e}")
        return _error(f"Failed to save query: {e}")

    return _to_json({"success": True, "file_path": str(path)})


@mcp.tool()
@trace_mcp_tool(tool_name="get_categories")
async def get_categories(ctx: Context) -> str:
    """List the category sub-folders of the saved queries folder."""
    log_tool_call("get_categories", _session_id(ctx))
    return _to_json(get_services().saved_queries.get_categories())


@mcp.tool()
@trace_mcp_tool(tool_name="get_external_queries")
async def get_external_queries(ctx: Context) -> str:
    """Fetch reference queries from the configured external (GitHub) sources."""
    log_tool_call("get_external_queries", _session_id(ctx))
    queries = await get_services().references.get_all_external_queries()
    return _to_json([q.model_dump() for q in queries])


@mcp.tool()
@trace_mcp_tool(tool_name="find_query_patterns")
async def find_query_patterns(ctx: Context, query: str, include_external: bool = False) -> str:
    """
    Show which saved or external queries match a natural language request.
    Nothing is executed.

    Args:
        query: Natural language request
        include_external: Also score external reference queries

    Returns:
        JSON with the recognized keywords and ranked matches
    """
    log_tool_call("find_query_patterns", _session_id(ctx), query=query)
    validate_input_size(query, "query", 4 * 1024)

    orchestrator = get_services().orchestrator
    matches = await orchestrator.find_patterns(query, include_local=True, include_external=include_external)
    return _to_json({
        "keywords": sorted(extract_keywords(query)),
        "matches": orchestrator.summarize_matches(matches)
    })


@mcp.tool()
@trace_mcp_tool(tool_name="get_recommendations")
async def get_recommendations(ctx: Context, kql: str, results: Optional[Dict[str, Any]] = None) -> str:
    """
    Suggest improvements for a KQL query.

    Args:
        kql: The query to review
        results: Optional result object with a "rows" list
    """
    log_tool_call("get_recommendations", _session_id(ctx))
    return _to_json(generate_recommendations(kql, results))


@mcp.tool()
@trace_mcp_tool(tool_name="get_auth_status")
async def get_auth_status(ctx: Context, reauthenticate: bool = False) -> str:
    """
    Report the authentication state for Application Insights.

    Args:
        reauthenticate: Drop the cached token and sign in again
    """
    log_tool_call("get_auth_status", _session_id(ctx), reauthenticate=reauthenticate)
    token_provider = get_services().token_provider

    if reauthenticate:
        try:
            return _to_json(await token_provider.reauthenticate())
        except AuthenticationFailed as e:
            auth_logger.error(f"reauthentication failed | error:{e}")
            return _error(str(e))

    return _to_json(token_provider.get_status())


@mcp.tool()
@trace_mcp_tool(tool_name="clear_cache")
async def clear_cache(ctx: Context) -> str:
    """Remove every cached query result."""
    log_tool_call("clear_cache", _session_id(ctx))
    removed = get_services().cache.clear()
    cache_logger.info(f"cache cleared by tool | removed:{removed}")
    return _to_json({"success": True, "entries_removed": removed})


@mcp.tool()
@trace_mcp_tool(tool_name="cleanup_cache")
async def cleanup_cache(ctx: Context) -> str:
    """Remove expired cached query results and report before/after statistics."""
    log_tool_call("cleanup_cache", _session_id(ctx))
    return _to_json(perform_cache_cleanup(get_services().cache))


@mcp.tool()
@trace_mcp_tool(tool_name="get_cache_stats")
async def get_cache_stats(ctx: Context) -> str:
    """Cache entry counts, expired entries and size on disk."""
    log_tool_call("get_cache_stats", _session_id(ctx))
    return _to_json(get_services().cache.get_stats())


if __name__ == "__main__":
    # stdio transport: stdout carries protocol messages, logs go to stderr
    mcp.run(transport="stdio")
