"""
Pattern matching thresholds

PATTERN_INCLUSION_THRESHOLD: a candidate must score strictly above this to be
    returned by the matcher at all (shown to the user as an alternative).
PATTERN_SELECTION_THRESHOLD: the best candidate must score at least this to be
    adapted and executed instead of synthesizing a query from keywords.
PATTERN_MAX_ALTERNATIVES: how many runner-up matches are reported with a result.
FALLBACK_ROW_LIMIT: row cap appended to synthesized queries.
"""

import os


PATTERN_INCLUSION_THRESHOLD = float(os.getenv("PATTERN_INCLUSION_THRESHOLD", "0.3"))
PATTERN_SELECTION_THRESHOLD = float(os.getenv("PATTERN_SELECTION_THRESHOLD", "0.5"))
PATTERN_MAX_ALTERNATIVES = int(os.getenv("PATTERN_MAX_ALTERNATIVES", "3"))
FALLBACK_ROW_LIMIT = int(os.getenv("FALLBACK_ROW_LIMIT", "100"))
