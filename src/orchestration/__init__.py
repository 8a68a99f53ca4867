"""
Query orchestration

Composes pattern matching, query synthesis, caching and execution into the
natural language and KQL request paths.
"""

from .query_orchestrator import QueryOrchestrator, AI_GENERATED_SOURCE
from .results import QueryResult

__all__ = [
    'QueryOrchestrator',
    'QueryResult',
    'AI_GENERATED_SOURCE'
]
