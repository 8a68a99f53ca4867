"""
Query recommendations

Cheap textual heuristics attached to fresh query results so the chat agent can
suggest improvements to the user.
"""

from typing import Any, Dict, List, Optional


LARGE_RESULT_ROWS = 10000


def generate_recommendations(kql: str, result: Optional[Dict[str, Any]] = None) -> List[str]:
    """
    Suggest improvements for a query and its result.

    Args:
        kql: The executed query
        result: Parsed result with an optional "rows" list

    Returns:
        List of human readable suggestions, possibly empty
    """
    recommendations = []

    if 'where' in kql and '| where' not in kql:
        recommendations.append('Consider using the pipe operator before "where" for better performance')

    if '*' in kql:
        recommendations.append('Specify explicit columns instead of * for better performance')

    if 'ago(' not in kql.lower():
        recommendations.append('Consider adding a time range filter (e.g., | where timestamp > ago(1d))')

    rows = (result or {}).get('rows') or []
    if len(rows) > LARGE_RESULT_ROWS:
        recommendations.append('Large result set. Consider adding "| take 100" or similar limit')

    return recommendations
