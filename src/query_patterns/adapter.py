"""
Adaptation of a matched query pattern to a new request

Rewrites relative time literals and injects an error severity filter. Both
rules are driven by the request text only: a pattern keeps its original time
range unless the request names one.
"""

import re

from .keywords import TIME_WINDOWS, TimeWindow, find_time_window
from .models import AdaptationResult


# Only an explicit one hour window narrows a pattern to ago(1h); "past 6 hours" must not
ADAPTATION_TIME_WINDOWS = tuple(
    TimeWindow(
        phrases=("last hour", "past hour", "1 hour", "1h"),
        ago=window.ago,
        description=window.description,
        keywords=window.keywords,
    ) if window.ago == "1h" else window
    for window in TIME_WINDOWS
)


AGO_PATTERN = re.compile(r'ago\(\s*\d+(?:\.\d+)?\s*[a-z]+\s*\)', re.IGNORECASE)

# A "| where timestamp" stage, tolerant of spacing and line breaks around the pipe
TIMESTAMP_STAGE_PATTERN = re.compile(r'\|\s*where\s+timestamp\b', re.IGNORECASE)

SEVERITY_FIELD_PATTERN = re.compile(r'severity', re.IGNORECASE)

ERROR_SEVERITY_FILTER = "| where severityLevel >= 3\n"


def adapt_query(kql: str, intent: str) -> AdaptationResult:
    """
    Adapt pattern KQL to a natural language request.

    Rules, in order:
        1. Time range: the first time window named in the request replaces
           every ago(...) literal in the query.
        2. Error severity: when the request mentions errors, the query has no
           severity reference, and it has a "| where timestamp" stage, a
           severity filter is inserted right before that stage.

    If no rule fires the query is returned unchanged with no modifications.
    """
    lower_intent = intent.lower()
    adapted = kql
    modifications = []

    window = find_time_window(lower_intent, ADAPTATION_TIME_WINDOWS)
    if window and AGO_PATTERN.search(adapted):
        adapted = AGO_PATTERN.sub(f"ago({window.ago})", adapted)
        modifications.append(f"Changed time range to {window.description}")

    if 'error' in lower_intent and not SEVERITY_FIELD_PATTERN.search(adapted):
        stage = TIMESTAMP_STAGE_PATTERN.search(adapted)
        if stage:
            adapted = adapted[:stage.start()] + ERROR_SEVERITY_FILTER + adapted[stage.start():]
            modifications.append("Added error severity filter")

    return AdaptationResult(adapted_kql=adapted, modifications=modifications)
