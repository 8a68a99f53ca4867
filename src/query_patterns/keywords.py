"""
Telemetry domain vocabulary and keyword extraction

Maps a free-text request onto a fixed set of keywords describing time windows,
severities, performance concerns, telemetry tables and Business Central
concepts. Matching is case-insensitive substring containment, except for a
few short triggers that must appear as whole words. Time phrases must start
a word.
"""

import re
from dataclasses import dataclass
from typing import Optional, Set, Tuple


@dataclass(frozen=True)
class TimeWindow:
    """A relative time window recognized in requests"""
    phrases: Tuple[str, ...]
    ago: str              # KQL timespan literal, e.g. "1d"
    description: str     # used in modification messages
    keywords: Tuple[str, ...]


# Priority order matters: "last 24 hours" must not be read as "last hour"
TIME_WINDOWS: Tuple[TimeWindow, ...] = (
    TimeWindow(
        phrases=("24 hour", "24h", "last day", "past day", "yesterday", "today"),
        ago="1d",
        description="24 hours",
        keywords=("24h", "recent"),
    ),
    TimeWindow(
        phrases=("hour",),
        ago="1h",
        description="1 hour",
        keywords=("1h", "hourly", "recent"),
    ),
    TimeWindow(
        phrases=("week", "7 day", "7d"),
        ago="7d",
        description="7 days",
        keywords=("7d", "weekly"),
    ),
    TimeWindow(
        phrases=("month", "30 day", "30d"),
        ago="30d",
        description="30 days",
        keywords=("30d", "monthly"),
    ),
)


# (trigger phrases, keywords added) applied in order, all that match contribute
KEYWORD_RULES: Tuple[Tuple[Tuple[str, ...], Tuple[str, ...]], ...] = (
    # Severity and status
    (("error",), ("error", "errors", "severitylevel")),
    (("warning", "warn"), ("warning", "severitylevel")),
    (("exception",), ("exception", "exceptions")),
    (("fail",), ("failure", "error")),

    # Performance
    (("slow",), ("slow", "performance", "duration")),
    (("performance", "latency"), ("performance", "duration")),
    (("timeout", "timed out"), ("timeout", "performance")),

    # Telemetry tables
    (("page", "view"), ("pageviews",)),
    (("request",), ("requests", "http")),
    (("dependency", "dependencies", "database", "sql"), ("dependencies", "sql", "database")),
    (("trace",), ("traces",)),

    # Business Central
    (("business central", "bc"), ("bc", "businesscentral")),
    (("extension",), ("extension", "extensions")),
    (("report",), ("report", "reports")),
    (("user",), ("user", "users")),
    (("session",), ("session", "sessions")),
    (("company", "tenant", "environment"), ("tenant", "environment")),

    # Monitoring
    (("monitor", "health", "alert"), ("monitoring", "health")),
    (("usage", "adoption"), ("usage",)),
)


# Short triggers that are only meaningful as whole words ("overview", "abc")
WHOLE_WORD_TRIGGERS = frozenset({"view", "bc"})


def _contains_trigger(text: str, phrase: str) -> bool:
    if phrase in WHOLE_WORD_TRIGGERS:
        return re.search(rf"\b{phrase}\b", text) is not None
    return phrase in text


def find_time_window(text: str, windows: Tuple[TimeWindow, ...] = TIME_WINDOWS) -> Optional[TimeWindow]:
    """Return the first time window whose phrases appear in the text."""
    lower_text = text.lower()
    for window in windows:
        if any(re.search(rf"\b{re.escape(phrase)}", lower_text) for phrase in window.phrases):
            return window
    return None


def extract_keywords(intent: str) -> Set[str]:
    """
    Extract domain keywords from a natural language request.

    An empty set means nothing was recognized; callers skip pattern matching
    and synthesize a query instead.

    Examples:
        extract_keywords("show me errors from the last 24 hours")
            -> {"24h", "recent", "error", "errors", "severitylevel"}
        extract_keywords("what happened last week") -> {"7d", "weekly"}
    """
    if not intent:
        return set()

    lower_intent = intent.lower()
    keywords: Set[str] = set()

    window = find_time_window(lower_intent)
    if window:
        keywords.update(window.keywords)

    for phrases, bundle in KEYWORD_RULES:
        if any(_contains_trigger(lower_intent, phrase) for phrase in phrases):
            keywords.update(bundle)

    return keywords
