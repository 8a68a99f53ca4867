"""
Result model returned by the query orchestrator
"""

from typing import Any, List, Literal, Optional

from pydantic import BaseModel, Field

from src.query_patterns.models import QueryPatternMetadata


class QueryResult(BaseModel):
    """Outcome of one query request, successful or not"""
    type: Literal["table", "error"] = Field(..., description="'table' for data, 'error' for any failure")
    kql: str = Field("", description="The KQL that was (or would have been) executed")
    summary: str = Field("", description="Row/column summary, or the error message")
    columns: List[str] = Field(default_factory=list)
    rows: List[List[Any]] = Field(default_factory=list)
    recommendations: List[str] = Field(default_factory=list)
    cached: bool = Field(False, description="True when served from the query cache")
    query_pattern: Optional[QueryPatternMetadata] = Field(None, description="Provenance for natural language requests")

    @classmethod
    def error(cls, kql: str, message: str) -> "QueryResult":
        return cls(type="error", kql=kql, summary=message)

    @property
    def is_error(self) -> bool:
        return self.type == "error"
