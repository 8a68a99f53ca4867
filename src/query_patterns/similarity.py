"""
Keyword based similarity scoring of query candidates
"""

from typing import Iterable, List, Optional, Sequence, Set, Tuple

from .config import PATTERN_INCLUSION_THRESHOLD
from .models import TAG_WEIGHT, PatternMatch, QueryCandidate


class PatternMatcher:
    """Scores saved and external queries against the keywords of a request"""

    def __init__(self, inclusion_threshold: float = PATTERN_INCLUSION_THRESHOLD):
        self.inclusion_threshold = inclusion_threshold

    @staticmethod
    def _tag_hit(keyword: str, tags: Iterable[str]) -> bool:
        return any(keyword in tag or tag in keyword for tag in tags)

    def score_candidate(self, keywords: Set[str], candidate: QueryCandidate) -> Tuple[float, List[str]]:
        """
        Calculate the normalized similarity of one candidate.

        Every keyword is checked against each bucket independently, so a keyword
        found in both the tags and the KQL earns both weights. The total is
        divided by the keyword count and capped at 1.0.

        Returns:
            (similarity, matched keywords in sorted order)
        """
        if not keywords:
            return 0.0, []

        tags = [tag.lower() for tag in candidate.tags if tag]
        fields = candidate.weighted_fields()

        total = 0.0
        matched = []
        for keyword in sorted(keywords):
            keyword_score = 0.0
            if self._tag_hit(keyword, tags):
                keyword_score += TAG_WEIGHT
            for text, weight in fields:
                if keyword in text:
                    keyword_score += weight
            if keyword_score > 0:
                matched.append(keyword)
                total += keyword_score

        return min(1.0, total / max(1, len(keywords))), matched

    def find_matches(
        self,
        keywords: Set[str],
        local_candidates: Sequence[QueryCandidate],
        external_candidates: Optional[Sequence[QueryCandidate]] = None
    ) -> List[PatternMatch]:
        """
        Rank candidates above the inclusion threshold, best first.

        Local candidates are enumerated before external ones and the sort is
        stable, so equal scores keep their discovery order.
        """
        if not keywords:
            return []

        matches = []
        for candidate in [*local_candidates, *(external_candidates or [])]:
            similarity, matched = self.score_candidate(keywords, candidate)
            if similarity > self.inclusion_threshold:
                matches.append(PatternMatch(
                    candidate=candidate,
                    similarity=similarity,
                    matched_keywords=matched
                ))

        matches.sort(key=lambda m: m.similarity, reverse=True)
        return matches
