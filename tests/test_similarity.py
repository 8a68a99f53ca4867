"""Tests for candidate scoring and ranking."""

import pytest

from src.query_patterns import ExternalQueryCandidate, LocalQueryCandidate, PatternMatcher


def local(name, kql="traces | take 10", tags=None, purpose="", use_case="", category="Root"):
    return LocalQueryCandidate(
        source_label=f"local:{category}/{name}",
        kql_text=kql,
        tags=tags or [],
        name=name,
        purpose=purpose,
        use_case=use_case,
        file_name=f"{name}.kql",
        category=category,
    )


def external(file_name, content="traces | take 10", reference="Community"):
    return ExternalQueryCandidate(
        source_label=f"external:{reference}/{file_name}",
        kql_text=content,
        reference_name=reference,
        file_name=file_name,
    )


@pytest.fixture
def matcher():
    return PatternMatcher()


def test_tagged_candidate_scores_above_selection(matcher):
    candidate = local(
        "Trace severity",
        kql="traces | where timestamp > ago(7d) | where severityLevel >= 3",
        tags=["error", "24h"],
    )
    keywords = {"24h", "recent", "error", "errors", "severitylevel"}

    similarity, matched = matcher.score_candidate(keywords, candidate)

    # 24h, error and errors hit the tags, severitylevel hits the KQL
    assert similarity == pytest.approx(3.3 / 5)
    assert matched == ["24h", "error", "errors", "severitylevel"]


def test_buckets_compound_for_one_keyword(matcher):
    candidate = local("error overview", kql="traces | where message has 'error'", tags=["error"])
    similarity, _ = matcher.score_candidate({"error", "slow", "duration", "usage"}, candidate)
    assert similarity == pytest.approx((1.0 + 0.5 + 0.3) / 4)


def test_similarity_is_capped_at_one(matcher):
    candidate = local("errors", kql="errors", tags=["error"], purpose="errors")
    similarity, _ = matcher.score_candidate({"error"}, candidate)
    assert similarity == 1.0


def test_empty_tags_never_match(matcher):
    candidate = local("x", kql="x", tags=[""])
    assert matcher.score_candidate({"error"}, candidate) == (0.0, [])


def test_external_weights(matcher):
    candidate = external("slow-requests.kql", content="requests | where duration > 1000")
    similarity, matched = matcher.score_candidate({"slow", "duration"}, candidate)
    assert similarity == pytest.approx((1.0 + 0.5) / 2)
    assert matched == ["duration", "slow"]


def test_score_at_inclusion_threshold_is_excluded(matcher):
    kql_only = local("unrelated", kql="traces | take 10")
    assert matcher.score_candidate({"traces"}, kql_only)[0] == pytest.approx(0.3)
    assert matcher.find_matches({"traces"}, [kql_only]) == []


def test_score_just_above_threshold_is_included():
    candidate = local("unrelated", kql="traces | take 10")
    matches = PatternMatcher(inclusion_threshold=0.29).find_matches({"traces"}, [candidate])
    assert len(matches) == 1


def test_metadata_hit_is_included(matcher):
    candidate = local("traces overview", kql="traces | take 10")
    matches = matcher.find_matches({"traces"}, [candidate])
    assert [m.similarity for m in matches] == [pytest.approx(0.8)]


def test_ranking_descending(matcher):
    weak = local("weekly report", kql="pageViews | where timestamp > ago(7d)")
    strong = local("weekly errors", kql="traces | where timestamp > ago(7d)", tags=["weekly", "7d"])

    matches = matcher.find_matches({"7d", "weekly"}, [weak, strong])

    assert [m.candidate.name for m in matches] == ["weekly errors", "weekly report"]


def test_ties_keep_discovery_order_local_before_external(matcher):
    first = local("first", tags=["error"])
    second = local("second", tags=["error"])
    remote = external("error.kql")

    matches = matcher.find_matches({"error"}, [first, second], [remote])

    assert [m.candidate.source_label for m in matches] == [
        "local:Root/first", "local:Root/second", "external:Community/error.kql"
    ]
    assert all(m.similarity == 1.0 for m in matches)


def test_empty_keywords_match_nothing(matcher):
    assert matcher.find_matches(set(), [local("anything", tags=["error"])]) == []


def test_candidate_provenance():
    remote = external("error.kql", reference="Community")
    assert remote.source_reference_name == "Community"
    assert local("x").source_reference_name is None
    assert "error.kql" in remote.searchable_text
