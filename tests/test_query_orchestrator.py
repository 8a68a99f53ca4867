"""End to end tests for the query orchestrator with fake transport and auth."""

import pytest

from src.kusto import KustoSyntaxError
from src.orchestration import AI_GENERATED_SOURCE, QueryOrchestrator
from src.query_patterns import ExternalQueryCandidate, SavedQueriesStore

from tests.conftest import FakeKustoClient, FakeTokenProvider, table_response, write_query


SEVERITY_QUERY = """// Query: Trace severity
// Tags: error, 24h

traces | where timestamp > ago(7d) | where severityLevel >= 3
"""

WEEKLY_QUERY = """// Query: weekly report

pageViews | where timestamp > ago(7d)
"""


class FakeReferences:
    def __init__(self, candidates):
        self.candidates = candidates
        self.calls = 0

    async def list_candidates(self):
        self.calls += 1
        return self.candidates


@pytest.fixture
def kusto():
    return FakeKustoClient()


@pytest.fixture
def make_orchestrator(cache_store, queries_dir, kusto):
    def factory(**overrides):
        options = {
            "cache": cache_store,
            "kusto_client": kusto,
            "token_provider": FakeTokenProvider(),
            "saved_queries": SavedQueriesStore(queries_dir),
        }
        options.update(overrides)
        return QueryOrchestrator(**options)

    return factory


# ── Natural language path ──


@pytest.mark.asyncio
async def test_matching_pattern_is_adapted_and_executed(make_orchestrator, queries_dir, kusto):
    write_query(queries_dir, "severity.kql", SEVERITY_QUERY)
    orchestrator = make_orchestrator()

    result = await orchestrator.execute_nl_query("show me errors from the last 24 hours")

    assert result.type == "table"
    assert result.kql == "traces | where timestamp > ago(1d) | where severityLevel >= 3"
    assert kusto.calls == [{"kql": result.kql, "access_token": "test-token"}]

    pattern = result.query_pattern
    assert pattern.source == "local:Root/Trace severity"
    assert pattern.source_reference_name is None
    assert pattern.similarity == pytest.approx(0.66)
    assert pattern.modifications == ["Changed time range to 24 hours"]
    assert pattern.alternative_patterns == []


@pytest.mark.asyncio
async def test_no_candidates_falls_back_to_synthesis(make_orchestrator, kusto):
    orchestrator = make_orchestrator()

    result = await orchestrator.execute_nl_query("what happened last week")

    assert result.kql == "traces | where timestamp > ago(7d) | take 100"
    assert result.query_pattern.source == AI_GENERATED_SOURCE
    assert result.query_pattern.similarity is None
    assert result.query_pattern.modifications is None
    assert result.query_pattern.alternative_patterns == []
    assert len(kusto.calls) == 1


@pytest.mark.asyncio
async def test_weak_match_is_reported_but_not_used(make_orchestrator, queries_dir):
    write_query(queries_dir, "weekly.kql", WEEKLY_QUERY)
    orchestrator = make_orchestrator()

    kql, metadata = await orchestrator.build_query("what happened last week")

    # weekly in the name (0.5) and 7d in the KQL (0.3) over two keywords
    assert kql == "traces | where timestamp > ago(7d) | take 100"
    assert metadata.source == AI_GENERATED_SOURCE
    assert [m.candidate.source_label for m in metadata.alternative_patterns] == ["local:Root/weekly report"]
    assert metadata.alternative_patterns[0].similarity == pytest.approx(0.4)


@pytest.mark.asyncio
async def test_runner_up_matches_become_alternatives(make_orchestrator, queries_dir):
    write_query(queries_dir, "severity.kql", SEVERITY_QUERY)
    write_query(queries_dir, "recent.kql", "// Query: recent errors\n\ntraces | where severityLevel >= 2\n")
    orchestrator = make_orchestrator()

    kql, metadata = await orchestrator.build_query("show me errors from the last 24 hours")

    assert metadata.source == "local:Root/Trace severity"
    assert [m.candidate.source_label for m in metadata.alternative_patterns] == ["local:Root/recent errors"]


@pytest.mark.asyncio
async def test_excluding_local_queries_forces_synthesis(make_orchestrator, queries_dir):
    write_query(queries_dir, "severity.kql", SEVERITY_QUERY)
    orchestrator = make_orchestrator()

    kql, metadata = await orchestrator.build_query("errors in the last 24 hours", include_local=False)

    assert kql == "traces | where timestamp > ago(1d) | where severityLevel >= 3 | take 100"
    assert metadata.source == AI_GENERATED_SOURCE


@pytest.mark.asyncio
async def test_external_pattern_carries_reference_name(make_orchestrator):
    candidate = ExternalQueryCandidate(
        source_label="external:Community/errors-24h.kql",
        kql_text="traces | where timestamp > ago(3d) | where severityLevel >= 3",
        reference_name="Community",
        file_name="errors-24h.kql",
    )
    references = FakeReferences([candidate])
    orchestrator = make_orchestrator(references=references)

    kql, metadata = await orchestrator.build_query(
        "show me errors from the last 24 hours", include_local=False, include_external=True
    )

    assert kql == "traces | where timestamp > ago(1d) | where severityLevel >= 3"
    assert metadata.source == "external:Community/errors-24h.kql"
    assert metadata.source_reference_name == "Community"
    assert metadata.similarity == pytest.approx(0.7)


@pytest.mark.asyncio
async def test_external_references_not_consulted_by_default(make_orchestrator):
    references = FakeReferences([])
    orchestrator = make_orchestrator(references=references)

    await orchestrator.build_query("errors today")

    assert references.calls == 0


@pytest.mark.asyncio
async def test_find_patterns_with_unrecognized_intent(make_orchestrator, queries_dir):
    write_query(queries_dir, "severity.kql", SEVERITY_QUERY)
    assert await make_orchestrator().find_patterns("show me everything") == []


# ── KQL execution path ──


@pytest.mark.asyncio
async def test_repeated_query_is_served_from_cache(make_orchestrator, kusto):
    orchestrator = make_orchestrator()

    first = await orchestrator.execute_kql("traces | take 1")
    second = await orchestrator.execute_kql("traces | take 1")

    assert len(kusto.calls) == 1
    assert first.cached is False
    assert second.cached is True
    assert second.rows == first.rows
    assert second.summary == "Returned 1 row(s) with 1 column(s)"


@pytest.mark.asyncio
async def test_cache_expiry_executes_again(make_orchestrator, kusto, clock):
    orchestrator = make_orchestrator()

    await orchestrator.execute_kql("traces | take 1")
    clock.advance(3601)
    result = await orchestrator.execute_kql("traces | take 1")

    assert len(kusto.calls) == 2
    assert result.cached is False


@pytest.mark.asyncio
async def test_fresh_results_carry_recommendations(make_orchestrator):
    result = await make_orchestrator().execute_kql("traces | take 1")
    assert result.recommendations == [
        'Consider adding a time range filter (e.g., | where timestamp > ago(1d))'
    ]


@pytest.mark.asyncio
async def test_destructive_query_is_rejected_without_execution(make_orchestrator, kusto):
    result = await make_orchestrator().execute_kql(".drop table traces")

    assert result.type == "error"
    assert ".drop" in result.summary
    assert kusto.calls == []


@pytest.mark.asyncio
async def test_transport_error_becomes_error_result(make_orchestrator, cache_store):
    kusto = FakeKustoClient(error=KustoSyntaxError("Invalid query: Syntax error near 'whre'", 400))
    orchestrator = make_orchestrator(kusto_client=kusto)

    result = await orchestrator.execute_kql("traces | whre x")

    assert result.type == "error"
    assert result.summary == "Invalid query: Syntax error near 'whre'"
    assert cache_store.get("traces | whre x") is None


@pytest.mark.asyncio
async def test_malformed_response_becomes_error_result(make_orchestrator, cache_store):
    kusto = FakeKustoClient(response={"tables": [{"columns": None, "rows": None}]})

    result = await make_orchestrator(kusto_client=kusto).execute_kql("traces | take 1")

    assert result.type == "error"
    assert result.kql == "traces | take 1"
    assert cache_store.get("traces | take 1") is None


@pytest.mark.asyncio
async def test_malformed_cache_entry_is_treated_as_a_miss(make_orchestrator, cache_store, kusto):
    cache_store.set("traces | take 1", {"summary": "stale", "columns": [], "rows": "not rows", "recommendations": []})

    result = await make_orchestrator().execute_kql("traces | take 1")

    assert result.type == "table"
    assert result.cached is False
    assert result.rows == [["hello"]]
    assert len(kusto.calls) == 1
    assert cache_store.get("traces | take 1")["rows"] == [["hello"]]


@pytest.mark.asyncio
async def test_authentication_failure_becomes_error_result(make_orchestrator, kusto):
    orchestrator = make_orchestrator(token_provider=FakeTokenProvider(fail=True))

    result = await orchestrator.execute_kql("traces | take 1")

    assert result.type == "error"
    assert "az login" in result.summary
    assert kusto.calls == []


@pytest.mark.asyncio
async def test_nl_errors_keep_provenance(make_orchestrator):
    kusto = FakeKustoClient(error=KustoSyntaxError("Invalid query: nope", 400))

    result = await make_orchestrator(kusto_client=kusto).execute_nl_query("what happened last week")

    assert result.type == "error"
    assert result.query_pattern.source == AI_GENERATED_SOURCE


@pytest.mark.asyncio
async def test_pii_is_removed_before_caching(make_orchestrator, cache_store):
    kusto = FakeKustoClient(response=table_response(["user"], [["jane@contoso.com"]]))
    orchestrator = make_orchestrator(kusto_client=kusto, remove_pii=True)

    result = await orchestrator.execute_kql("pageViews | take 1")

    assert result.rows == [["[EMAIL_REDACTED]"]]
    assert cache_store.get("pageViews | take 1")["rows"] == [["[EMAIL_REDACTED]"]]


@pytest.mark.asyncio
async def test_pii_kept_when_removal_disabled(make_orchestrator):
    kusto = FakeKustoClient(response=table_response(["user"], [["jane@contoso.com"]]))
    result = await make_orchestrator(kusto_client=kusto).execute_kql("pageViews | take 1")
    assert result.rows == [["jane@contoso.com"]]


def test_summarize_matches_is_json_ready():
    assert QueryOrchestrator.summarize_matches([]) == []
