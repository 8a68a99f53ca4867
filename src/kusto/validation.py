"""
KQL Query Validation

Basic safety checks run just before a query is sent to Application Insights.
This is not a syntax checker: malformed KQL is reported by the backend. It
only rejects empty queries and management commands that drop, delete or
replace data.
"""

from dataclasses import dataclass, field
from typing import List


DANGEROUS_KEYWORDS = ['.drop', '.delete', '.clear', '.set-or-replace']


@dataclass
class ValidationResult:
    """Result of KQL query validation."""
    is_valid: bool
    errors: List[str] = field(default_factory=list)

    @property
    def error_message(self) -> str:
        return "; ".join(self.errors)


def validate_kql(kql: str) -> ValidationResult:
    """
    Check a query for emptiness and destructive control commands.

    Examples:
        validate_kql("traces | take 10")            -> valid
        validate_kql(".drop table traces")          -> invalid, lists ".drop"
        validate_kql("   ")                         -> invalid, "Query cannot be empty"
    """
    if not kql or not kql.strip():
        return ValidationResult(is_valid=False, errors=["Query cannot be empty"])

    lower_kql = kql.lower()
    errors = [
        f"Query contains potentially dangerous operation: {keyword}"
        for keyword in DANGEROUS_KEYWORDS
        if keyword in lower_kql
    ]

    return ValidationResult(is_valid=not errors, errors=errors)
