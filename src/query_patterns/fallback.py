"""
Keyword driven KQL synthesis

Used when no saved or external query scores high enough to be adapted. The
result is always a single well formed pipeline of the shape

    <table> | where timestamp > ago(<window>) [| <filter>] | take <limit>
"""

from typing import Optional

from src.logging import pattern_logger as logger

from .config import FALLBACK_ROW_LIMIT
from .keywords import find_time_window


DEFAULT_TABLE = "traces"
DEFAULT_WINDOW = "1d"

# Checked in order, first hit wins. "page view" is tested before the generic
# "page" trigger so page view requests reach the pageViews table.
TABLE_RULES = (
    (("pageview", "page view"), "pageViews"),
    (("request", "page"), "requests"),
    (("dependency", "dependencies", "database", "sql"), "dependencies"),
    (("exception",), "exceptions"),
)

# Tables that carry severityLevel
SEVERITY_TABLES = ("traces", "exceptions")

# Tables that carry a success flag
SUCCESS_TABLES = ("requests", "dependencies")


def select_table(intent: str) -> str:
    lower_intent = intent.lower()
    for phrases, table in TABLE_RULES:
        if any(phrase in lower_intent for phrase in phrases):
            return table
    return DEFAULT_TABLE


def _status_filter(intent: str, table: str) -> Optional[str]:
    lower_intent = intent.lower()
    if 'error' in lower_intent:
        if table in SEVERITY_TABLES:
            return "where severityLevel >= 3"
        if table in SUCCESS_TABLES:
            return "where success == false"
    elif 'warning' in lower_intent and table in SEVERITY_TABLES:
        return "where severityLevel >= 2"
    return None


def synthesize_kql(intent: str, row_limit: int = FALLBACK_ROW_LIMIT) -> str:
    """
    Build a minimal query from the vocabulary of a request.

    Examples:
        synthesize_kql("what happened last week")
            -> "traces | where timestamp > ago(7d) | take 100"
        synthesize_kql("slow sql calls today")
            -> "dependencies | where timestamp > ago(1d) | take 100"
    """
    intent = intent or ""
    table = select_table(intent)
    window = find_time_window(intent)

    stages = [table, f"where timestamp > ago({window.ago if window else DEFAULT_WINDOW})"]
    status_filter = _status_filter(intent, table)
    if status_filter:
        stages.append(status_filter)
    stages.append(f"take {row_limit}")

    kql = " | ".join(stages)
    logger.debug(f"synthesized query | table:{table} | kql:{kql}")
    return kql
