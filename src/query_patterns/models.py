"""
Pydantic models for the query pattern system
"""

from typing import List, Literal, Optional, Tuple, Union

from pydantic import BaseModel, Field
from typing_extensions import Annotated


# Scoring weights per field bucket
TAG_WEIGHT = 1.0
LOCAL_METADATA_WEIGHT = 0.5
LOCAL_KQL_WEIGHT = 0.3
EXTERNAL_FILENAME_WEIGHT = 1.0
EXTERNAL_CONTENT_WEIGHT = 0.5


class SavedQuery(BaseModel):
    """A .kql file from the workspace queries folder"""
    file_path: str = Field(..., description="Absolute path of the .kql file")
    file_name: str
    category: str = Field("Root", description="First sub-folder under the queries folder")
    name: str
    purpose: str = ""
    use_case: str = ""
    created: str = ""
    tags: List[str] = Field(default_factory=list)
    kql: str


class ExternalQuery(BaseModel):
    """A .kql file fetched from an external reference"""
    source: str = Field(..., description="Display name of the configured reference")
    file_name: str
    content: str
    url: str = ""


class _QueryCandidateBase(BaseModel):
    source_label: str = Field(..., description="Human readable origin, e.g. local:Category/Name")
    kql_text: str
    tags: List[str] = Field(default_factory=list)

    class Config:
        frozen = True

    def weighted_fields(self) -> List[Tuple[str, float]]:
        """Lower-cased text buckets and the score a keyword earns in each."""
        raise NotImplementedError


class LocalQueryCandidate(_QueryCandidateBase):
    """Candidate built from a saved workspace query"""
    kind: Literal["local"] = "local"
    name: str
    purpose: str = ""
    use_case: str = ""
    file_name: str = ""
    category: str = "Root"

    @property
    def source_reference_name(self) -> Optional[str]:
        return None

    @property
    def searchable_text(self) -> str:
        return " ".join([self.name, self.purpose, self.use_case, " ".join(self.tags), self.file_name]).lower()

    def weighted_fields(self) -> List[Tuple[str, float]]:
        metadata = " ".join([self.purpose, self.use_case, self.name]).lower()
        return [
            (metadata, LOCAL_METADATA_WEIGHT),
            (self.kql_text.lower(), LOCAL_KQL_WEIGHT),
        ]

    @classmethod
    def from_saved_query(cls, query: SavedQuery) -> "LocalQueryCandidate":
        return cls(
            source_label=f"local:{query.category}/{query.name}",
            kql_text=query.kql,
            tags=query.tags,
            name=query.name,
            purpose=query.purpose,
            use_case=query.use_case,
            file_name=query.file_name,
            category=query.category,
        )


class ExternalQueryCandidate(_QueryCandidateBase):
    """Candidate built from an external reference file"""
    kind: Literal["external"] = "external"
    reference_name: str
    file_name: str

    @property
    def source_reference_name(self) -> Optional[str]:
        return self.reference_name

    @property
    def searchable_text(self) -> str:
        return f"{self.file_name} {self.kql_text}".lower()

    def weighted_fields(self) -> List[Tuple[str, float]]:
        return [
            (self.file_name.lower(), EXTERNAL_FILENAME_WEIGHT),
            (self.kql_text.lower(), EXTERNAL_CONTENT_WEIGHT),
        ]

    @classmethod
    def from_external_query(cls, query: ExternalQuery) -> "ExternalQueryCandidate":
        return cls(
            source_label=f"external:{query.source}/{query.file_name}",
            kql_text=query.content,
            reference_name=query.source,
            file_name=query.file_name,
        )


QueryCandidate = Annotated[
    Union[LocalQueryCandidate, ExternalQueryCandidate],
    Field(discriminator="kind")
]


class PatternMatch(BaseModel):
    """A candidate scored against the keywords of one request"""
    candidate: QueryCandidate
    similarity: float = Field(..., ge=0.0, le=1.0, description="Normalized score between 0 and 1")
    matched_keywords: List[str] = Field(default_factory=list, description="Keywords found in the candidate")

    class Config:
        frozen = True


class AdaptationResult(BaseModel):
    """Outcome of rewriting a pattern's KQL for a new request"""
    adapted_kql: str
    modifications: List[str] = Field(default_factory=list)


class QueryPatternMetadata(BaseModel):
    """Provenance of the KQL returned for a natural language request"""
    source: str = Field(..., description="'ai-generated' or the source_label of the pattern used")
    source_reference_name: Optional[str] = None
    similarity: Optional[float] = None
    modifications: Optional[List[str]] = None
    alternative_patterns: List[PatternMatch] = Field(default_factory=list)
