"""
External reference queries

Fetches .kql files from configured GitHub repositories through the
unauthenticated contents API (60 requests per hour). Fetched queries are kept
in the shared query cache for an hour per reference, and fetching pauses while
GitHub reports the rate limit as exhausted.
"""

import re
import time
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple

import httpx
from pydantic import ValidationError

from src.cache import CacheStore
from src.kusto.config import Reference
from src.logging import references_logger as logger

from .models import ExternalQuery, ExternalQueryCandidate


GITHUB_API_URL = "https://api.github.com"
GITHUB_URL_PATTERN = re.compile(r'github\.com/([^/]+)/([^/]+)(?:/tree/[^/]+/(.+))?')
GITHUB_HEADERS = {
    "Accept": "application/vnd.github.v3+json",
    "User-Agent": "BC-Telemetry-Buddy"
}

REFERENCE_CACHE_TTL_SECONDS = 3600
DEFAULT_RATE_LIMIT = 60
LOW_RATE_LIMIT_WARNING = 10


def parse_github_url(url: str) -> Optional[Tuple[str, str, str]]:
    """
    Split a GitHub URL into (owner, repo, path).

    Supports https://github.com/owner/repo and
    https://github.com/owner/repo/tree/<branch>/<path>.
    """
    match = GITHUB_URL_PATTERN.search(url or "")
    if not match:
        return None
    owner, repo, path = match.groups()
    if repo.endswith(".git"):
        repo = repo[:-4]
    return owner, repo, (path or "").strip("/")


class ReferencesService:
    """Collects reference queries from all enabled external sources"""

    def __init__(
        self,
        references: Sequence[Reference],
        cache: CacheStore,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        timeout: float = 30.0,
        clock: Callable[[], float] = time.time
    ):
        self.references = [ref for ref in references if ref.enabled]
        self.cache = cache
        self.timeout = timeout
        self._transport = transport
        self._clock = clock
        self.rate_limit_remaining = DEFAULT_RATE_LIMIT
        self.rate_limit_reset: Optional[float] = None

    async def get_all_external_queries(self) -> List[ExternalQuery]:
        """Queries from every enabled github reference, in configuration order."""
        if not self.references:
            return []

        queries: List[ExternalQuery] = []
        async with httpx.AsyncClient(
            transport=self._transport,
            timeout=self.timeout,
            headers=GITHUB_HEADERS,
            follow_redirects=True
        ) as client:
            for reference in self.references:
                if reference.type == "github":
                    queries.extend(await self._fetch_reference(client, reference))
                else:
                    logger.debug(f"skipping non-github reference | name:{reference.name} | type:{reference.type}")

        logger.info(f"fetched external queries | count:{len(queries)} | references:{len(self.references)}")
        return queries

    async def list_candidates(self) -> List[ExternalQueryCandidate]:
        return [ExternalQueryCandidate.from_external_query(q) for q in await self.get_all_external_queries()]

    async def _fetch_reference(self, client: httpx.AsyncClient, reference: Reference) -> List[ExternalQuery]:
        if not self._check_rate_limit():
            logger.warning(f"GitHub rate limit exceeded, skipping reference | name:{reference.name}")
            return []

        cache_key = f"github:{reference.url}"
        cached = self.cache.get(cache_key)
        if cached is not None:
            try:
                queries = [ExternalQuery(**item) for item in cached]
                logger.info(f"using cached reference queries | name:{reference.name} | count:{len(queries)}")
                return queries
            except (TypeError, ValidationError) as e:
                logger.warning(f"ignoring malformed cached reference | name:{reference.name} | error:{e}")

        repo_info = parse_github_url(reference.url)
        if not repo_info:
            logger.error(f"invalid GitHub URL | name:{reference.name} | url:{reference.url}")
            return []

        owner, repo, path = repo_info
        queries = await self._fetch_contents(client, owner, repo, path, reference.name)

        self.cache.set(cache_key, [q.model_dump() for q in queries], REFERENCE_CACHE_TTL_SECONDS)
        return queries

    async def _fetch_contents(
        self,
        client: httpx.AsyncClient,
        owner: str,
        repo: str,
        path: str,
        source_name: str
    ) -> List[ExternalQuery]:
        """Walk a repository directory, downloading every .kql file."""
        url = f"{GITHUB_API_URL}/repos/{owner}/{repo}/contents/{path}".rstrip("/")
        try:
            response = await client.get(url)
            self._update_rate_limit(response.headers)
            if response.status_code == 403:
                logger.error(f"GitHub rate limit exceeded | url:{url}")
                return []
            response.raise_for_status()
            items = response.json()
        except (httpx.HTTPError, ValueError) as e:
            logger.error(f"failed to list repository contents | repo:{owner}/{repo} | path:{path} | error:{e}")
            return []

        if not isinstance(items, list):
            return []

        queries: List[ExternalQuery] = []
        for item in items:
            item_type = item.get("type")
            name = item.get("name", "")
            if item_type == "file" and name.endswith(".kql"):
                query = await self._fetch_file(client, item, source_name)
                if query:
                    queries.append(query)
            elif item_type == "dir":
                queries.extend(await self._fetch_contents(client, owner, repo, item.get("path", ""), source_name))
        return queries

    async def _fetch_file(self, client: httpx.AsyncClient, item: Dict[str, Any], source_name: str) -> Optional[ExternalQuery]:
        file_name = item.get("name", "")
        try:
            response = await client.get(item["download_url"])
            self._update_rate_limit(response.headers)
            response.raise_for_status()
        except (httpx.HTTPError, KeyError) as e:
            logger.error(f"failed to fetch reference file | file:{file_name} | error:{e}")
            return None

        return ExternalQuery(
            source=source_name,
            file_name=file_name,
            content=response.text,
            url=item.get("html_url") or ""
        )

    def _update_rate_limit(self, headers: httpx.Headers) -> None:
        remaining = headers.get("x-ratelimit-remaining")
        reset = headers.get("x-ratelimit-reset")

        try:
            if remaining is not None:
                self.rate_limit_remaining = int(remaining)
            if reset is not None:
                self.rate_limit_reset = float(reset)
        except ValueError:
            logger.debug(f"unparseable rate limit headers | remaining:{remaining} | reset:{reset}")

        if self.rate_limit_remaining < LOW_RATE_LIMIT_WARNING:
            logger.warning(f"GitHub rate limit low | remaining:{self.rate_limit_remaining}")

    def _check_rate_limit(self) -> bool:
        if self.rate_limit_remaining <= 0:
            if self.rate_limit_reset and self.rate_limit_reset > self._clock():
                return False
            # Reset time has passed
            self.rate_limit_remaining = DEFAULT_RATE_LIMIT
            self.rate_limit_reset = None
        return True
