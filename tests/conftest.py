"""Shared fixtures for the BC Telemetry Buddy test suite."""

from pathlib import Path
from typing import Any, Dict, List, Optional

import pytest

from src.auth import AuthenticationFailed
from src.cache import CacheStore


class FakeClock:
    """Settable replacement for time.time."""

    def __init__(self, now: float = 1_700_000_000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeKustoClient:
    """Records executed queries and replays a canned response or error."""

    def __init__(self, response: Optional[Dict[str, Any]] = None, error: Optional[Exception] = None):
        self.response = response if response is not None else table_response(["message"], [["hello"]])
        self.error = error
        self.calls: List[Dict[str, str]] = []

    async def execute_query(self, kql: str, access_token: str) -> Dict[str, Any]:
        self.calls.append({"kql": kql, "access_token": access_token})
        if self.error:
            raise self.error
        return self.response


class FakeTokenProvider:
    def __init__(self, token: str = "test-token", fail: bool = False):
        self.token = token
        self.fail = fail
        self.calls = 0

    async def get_access_token(self) -> str:
        self.calls += 1
        if self.fail:
            raise AuthenticationFailed("Authentication failed (azure_cli): please run az login")
        return self.token


def table_response(columns: List[str], rows: List[List[Any]]) -> Dict[str, Any]:
    """Application Insights response body with a single primary table."""
    return {
        "tables": [
            {
                "name": "PrimaryResult",
                "columns": [{"name": name, "type": "string"} for name in columns],
                "rows": rows
            }
        ]
    }


def write_query(queries_dir: Path, relative_path: str, content: str) -> Path:
    path = queries_dir / relative_path
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(content, encoding="utf-8")
    return path


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def cache_dir(tmp_path):
    return tmp_path / ".vscode" / ".bctb" / "cache"


@pytest.fixture
def cache_store(cache_dir, clock):
    return CacheStore(cache_dir, ttl_seconds=3600, enabled=True, clock=clock)


@pytest.fixture
def queries_dir(tmp_path):
    path = tmp_path / "queries"
    path.mkdir()
    return path
