"""
Saved .kql query files in the workspace

Each file may start with a block of structured comment headers:

    // Query: Errors by extension
    // Purpose: Find failing extensions
    // Use case: Daily health check
    // Created: 2025-01-15
    // Tags: error, extension

Everything after the header block is the query body. The category of a query
is the first sub-folder under the queries folder, or "Root".
"""

import re
from datetime import date
from pathlib import Path
from typing import Dict, List, Optional, Sequence

from src.logging import get_logger

from .models import LocalQueryCandidate, SavedQuery

logger = get_logger('QUERIES')

QUERY_SUFFIX = ".kql"
ROOT_CATEGORY = "Root"

# Header prefix -> SavedQuery field
HEADER_FIELDS = (
    ("Query:", "name"),
    ("Purpose:", "purpose"),
    ("Use case:", "use_case"),
    ("Created:", "created"),
    ("Tags:", "tags"),
)

# Relevance weights for search_queries
SEARCH_WEIGHTS = {
    "name": 10,
    "tag": 8,
    "file_name": 7,
    "purpose": 5,
    "use_case": 5,
    "kql": 3,
}


def parse_query_text(text: str) -> Dict[str, object]:
    """Split file content into header metadata and the query body."""
    lines = text.split('\n')
    metadata: Dict[str, object] = {"tags": []}

    kql_start = len(lines)
    for index, raw_line in enumerate(lines):
        line = raw_line.strip()
        if not line.startswith('//'):
            kql_start = index
            break

        comment = line[2:].strip()
        for prefix, field in HEADER_FIELDS:
            if comment.startswith(prefix):
                value = comment[len(prefix):].strip()
                if field == "tags":
                    metadata["tags"] = [t.strip() for t in value.split(',') if t.strip()]
                else:
                    metadata[field] = value
                break

    metadata["kql"] = '\n'.join(lines[kql_start:]).strip()
    return metadata


def sanitize_file_name(name: str) -> str:
    """Keep letters, digits, spaces and dashes; collapse whitespace."""
    cleaned = re.sub(r'[^a-zA-Z0-9\s-]', '', name).strip()
    return re.sub(r'\s+', ' ', cleaned)


class SavedQueriesStore:
    """Reads, searches and writes the workspace queries folder"""

    def __init__(self, queries_dir: Path):
        self.queries_dir = Path(queries_dir)

    def _parse_file(self, path: Path) -> Optional[SavedQuery]:
        try:
            metadata = parse_query_text(path.read_text(encoding='utf-8'))
        except (OSError, UnicodeDecodeError) as e:
            logger.error(f"failed to read query file | file:{path} | error:{e}")
            return None

        if not metadata["kql"]:
            logger.warning(f"no KQL found in query file | file:{path}")
            return None

        relative = path.parent.relative_to(self.queries_dir)
        category = relative.parts[0] if relative.parts else ROOT_CATEGORY

        return SavedQuery(
            file_path=str(path),
            file_name=path.name,
            category=category,
            name=metadata.get("name") or path.name,
            purpose=metadata.get("purpose", ""),
            use_case=metadata.get("use_case", ""),
            created=metadata.get("created", ""),
            tags=metadata["tags"],
            kql=metadata["kql"],
        )

    def get_all_queries(self) -> List[SavedQuery]:
        """All parseable queries, recursively, in a stable path order."""
        if not self.queries_dir.is_dir():
            return []

        queries = []
        try:
            for path in sorted(self.queries_dir.rglob(f"*{QUERY_SUFFIX}")):
                if path.is_file():
                    query = self._parse_file(path)
                    if query:
                        queries.append(query)
        except OSError as e:
            logger.error(f"failed to scan queries folder | path:{self.queries_dir} | error:{e}")

        logger.debug(f"loaded saved queries | count:{len(queries)} | path:{self.queries_dir}")
        return queries

    def list_candidates(self) -> List[LocalQueryCandidate]:
        return [LocalQueryCandidate.from_saved_query(q) for q in self.get_all_queries()]

    @staticmethod
    def score_query(query: SavedQuery, search_terms: Sequence[str]) -> int:
        score = 0
        for term in search_terms:
            term = term.lower()
            if term in query.name.lower():
                score += SEARCH_WEIGHTS["name"]
            if any(term in tag.lower() for tag in query.tags):
                score += SEARCH_WEIGHTS["tag"]
            if term in query.file_name.lower():
                score += SEARCH_WEIGHTS["file_name"]
            if term in query.purpose.lower():
                score += SEARCH_WEIGHTS["purpose"]
            if term in query.use_case.lower():
                score += SEARCH_WEIGHTS["use_case"]
            if term in query.kql.lower():
                score += SEARCH_WEIGHTS["kql"]
        return score

    def search_queries(self, search_terms: Sequence[str]) -> List[SavedQuery]:
        """
        Queries matching any of the terms, most relevant first.

        With no terms every query is returned.
        """
        queries = self.get_all_queries()
        terms = [t for t in (search_terms or []) if t and t.strip()]
        if not terms:
            return queries

        scored = [(self.score_query(q, terms), q) for q in queries]
        scored = [item for item in scored if item[0] > 0]
        scored.sort(key=lambda item: item[0], reverse=True)

        logger.info(f"searched saved queries | terms:{', '.join(terms)} | matches:{len(scored)}")
        return [q for _, q in scored]

    def save_query(
        self,
        name: str,
        kql: str,
        purpose: Optional[str] = None,
        use_case: Optional[str] = None,
        tags: Optional[List[str]] = None,
        category: Optional[str] = None
    ) -> Path:
        """
        Write a query file with structured headers and return its path.

        Raises:
            ValueError: name or KQL is empty
            OSError: the file could not be written
        """
        file_stem = sanitize_file_name(name or "")
        if not file_stem:
            raise ValueError("Query name must contain at least one letter or digit")
        if not kql or not kql.strip():
            raise ValueError("Query KQL cannot be empty")

        target_dir = self.queries_dir
        if category and category.strip():
            target_dir = self.queries_dir / category.strip()
        target_dir.mkdir(parents=True, exist_ok=True)

        lines = [f"// Query: {name}"]
        if category and category.strip():
            lines.append(f"// Category: {category.strip()}")
        if purpose:
            lines.append(f"// Purpose: {purpose}")
        if use_case:
            lines.append(f"// Use case: {use_case}")
        lines.append(f"// Created: {date.today().isoformat()}")
        if tags:
            lines.append(f"// Tags: {', '.join(tags)}")
        lines.append("")
        lines.append(kql.strip())

        path = target_dir / f"{file_stem}{QUERY_SUFFIX}"
        path.write_text('\n'.join(lines) + '\n', encoding='utf-8')
        logger.info(f"saved query | name:{name} | file:{path}")
        return path

    def get_categories(self) -> List[str]:
        """Sorted names of the sub-folders directly under the queries folder."""
        if not self.queries_dir.is_dir():
            return []
        try:
            return sorted(p.name for p in self.queries_dir.iterdir() if p.is_dir())
        except OSError as e:
            logger.error(f"failed to list categories | error:{e}")
            return []
