"""
Query orchestrator

Handles the complete workflow for a telemetry request:
1. Extract keywords from the natural language request
2. Score saved and external queries against them
3. Adapt the best match, or synthesize a query when nothing is close enough
4. Serve from cache, or validate, authenticate and execute
5. Sanitize, attach recommendations and cache fresh results

Execution failures never escape as exceptions: they come back as a
QueryResult of type "error" carrying the underlying message.
"""

from typing import List, Optional, Sequence, Tuple

from pydantic import ValidationError

from src.auth import TokenProvider
from src.cache import CacheStore
from src.kusto import (
    KustoClient,
    generate_recommendations,
    parse_result,
    sanitize_object,
    validate_kql
)
from src.logging import get_logger
from src.query_patterns import (
    PatternMatch,
    PatternMatcher,
    QueryCandidate,
    QueryPatternMetadata,
    ReferencesService,
    SavedQueriesStore,
    adapt_query,
    extract_keywords,
    synthesize_kql
)
from src.query_patterns.config import PATTERN_MAX_ALTERNATIVES, PATTERN_SELECTION_THRESHOLD

from .results import QueryResult

logger = get_logger('QUERY')

AI_GENERATED_SOURCE = "ai-generated"


class QueryOrchestrator:
    """Orchestrates natural language and KQL requests end to end."""

    def __init__(
        self,
        cache: CacheStore,
        kusto_client: KustoClient,
        token_provider: TokenProvider,
        saved_queries: Optional[SavedQueriesStore] = None,
        references: Optional[ReferencesService] = None,
        remove_pii: bool = False,
        matcher: Optional[PatternMatcher] = None,
        selection_threshold: float = PATTERN_SELECTION_THRESHOLD
    ):
        self.cache = cache
        self.kusto_client = kusto_client
        self.token_provider = token_provider
        self.saved_queries = saved_queries
        self.references = references
        self.remove_pii = remove_pii
        self.matcher = matcher or PatternMatcher()
        self.selection_threshold = selection_threshold

    async def _collect_candidates(
        self,
        include_local: bool,
        include_external: bool
    ) -> Tuple[List[QueryCandidate], List[QueryCandidate]]:
        # Re-read on every request so edits to the queries folder show up immediately
        local = self.saved_queries.list_candidates() if include_local and self.saved_queries else []
        external = await self.references.list_candidates() if include_external and self.references else []
        return local, external

    async def find_patterns(
        self,
        intent: str,
        include_local: bool = True,
        include_external: bool = False
    ) -> List[PatternMatch]:
        """Ranked pattern matches for a request, without executing anything."""
        keywords = extract_keywords(intent)
        if not keywords:
            logger.info("no keywords recognized | skipping pattern matching")
            return []

        local, external = await self._collect_candidates(include_local, include_external)
        matches = self.matcher.find_matches(keywords, local, external)
        logger.info(
            f"pattern matching | keywords:{','.join(sorted(keywords))} | "
            f"candidates:{len(local) + len(external)} | matches:{len(matches)}"
        )
        return matches

    async def build_query(
        self,
        intent: str,
        include_local: bool = True,
        include_external: bool = False
    ) -> Tuple[str, QueryPatternMetadata]:
        """
        Produce the KQL for a request and its provenance.

        The best match is used when it reaches the selection threshold; all
        other matches are reported as alternatives.
        """
        matches = await self.find_patterns(intent, include_local, include_external)

        if matches and matches[0].similarity >= self.selection_threshold:
            best = matches[0]
            adaptation = adapt_query(best.candidate.kql_text, intent)
            logger.info(
                f"using query pattern | source:{best.candidate.source_label} | "
                f"similarity:{best.similarity:.2f} | modifications:{len(adaptation.modifications)}"
            )
            metadata = QueryPatternMetadata(
                source=best.candidate.source_label,
                source_reference_name=best.candidate.source_reference_name,
                similarity=best.similarity,
                modifications=adaptation.modifications,
                alternative_patterns=matches[1:1 + PATTERN_MAX_ALTERNATIVES]
            )
            return adaptation.adapted_kql, metadata

        kql = synthesize_kql(intent)
        if matches:
            logger.info(f"no pattern above threshold | synthesized query | best:{matches[0].similarity:.2f}")
        else:
            logger.info("no pattern matches | synthesized query")
        metadata = QueryPatternMetadata(
            source=AI_GENERATED_SOURCE,
            alternative_patterns=matches[:PATTERN_MAX_ALTERNATIVES]
        )
        return kql, metadata

    async def execute_nl_query(
        self,
        intent: str,
        include_local: bool = True,
        include_external: bool = False
    ) -> QueryResult:
        """Translate a natural language request to KQL and execute it."""
        logger.info(f"natural language query | intent:{intent[:100]}")
        kql, metadata = await self.build_query(intent, include_local, include_external)
        result = await self.execute_kql(kql)
        return result.model_copy(update={"query_pattern": metadata})

    async def execute_kql(self, kql: str) -> QueryResult:
        """
        Execute KQL through the cache.

        A cache hit is returned as is, marked cached. On a miss the query is
        validated, executed with a fresh token, sanitized when PII removal is
        on, and stored.
        """
        cached = self.cache.get(kql)
        if isinstance(cached, dict):
            try:
                result = QueryResult(type="table", kql=kql, cached=True, **cached)
                logger.info("serving query from cache")
                return result
            except (TypeError, ValidationError) as e:
                logger.warning(f"discarding malformed cache entry | error:{e}")
                self.cache.delete(kql)

        validation = validate_kql(kql)
        if not validation.is_valid:
            logger.warning(f"query rejected | errors:{validation.error_message}")
            return QueryResult.error(kql, validation.error_message)

        try:
            access_token = await self.token_provider.get_access_token()
            raw_result = await self.kusto_client.execute_query(kql, access_token)

            parsed = parse_result(raw_result)
            if self.remove_pii:
                parsed = sanitize_object(parsed)

            payload = {
                "summary": parsed["summary"],
                "columns": parsed["columns"],
                "rows": parsed["rows"],
                "recommendations": generate_recommendations(kql, parsed)
            }
            result = QueryResult(type="table", kql=kql, cached=False, **payload)
        except Exception as e:
            logger.error(f"query execution failed | error_type:{type(e).__name__} | error:{e}")
            return QueryResult.error(kql, str(e))

        self.cache.set(kql, payload)
        return result

    @staticmethod
    def summarize_matches(matches: Sequence[PatternMatch]) -> List[dict]:
        """Compact view of matches for tool output."""
        return [
            {
                "source": m.candidate.source_label,
                "source_reference_name": m.candidate.source_reference_name,
                "similarity": round(m.similarity, 3),
                "matched_keywords": m.matched_keywords,
                "kql": m.candidate.kql_text
            }
            for m in matches
        ]
