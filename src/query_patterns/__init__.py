"""
Query pattern system

Turns a natural language request into KQL by reusing saved or external
queries: keyword extraction, similarity scoring, adaptation of the best match,
and keyword driven synthesis when nothing matches well enough.
"""

from .keywords import extract_keywords, find_time_window, TimeWindow
from .models import (
    SavedQuery,
    ExternalQuery,
    LocalQueryCandidate,
    ExternalQueryCandidate,
    QueryCandidate,
    PatternMatch,
    AdaptationResult,
    QueryPatternMetadata
)
from .similarity import PatternMatcher
from .adapter import adapt_query
from .fallback import synthesize_kql
from .saved_queries import SavedQueriesStore
from .references import ReferencesService

__all__ = [
    'extract_keywords',
    'find_time_window',
    'TimeWindow',
    'SavedQuery',
    'ExternalQuery',
    'LocalQueryCandidate',
    'ExternalQueryCandidate',
    'QueryCandidate',
    'PatternMatch',
    'AdaptationResult',
    'QueryPatternMetadata',
    'PatternMatcher',
    'adapt_query',
    'synthesize_kql',
    'SavedQueriesStore',
    'ReferencesService'
]
