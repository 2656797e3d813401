import time
from functools import lru_cache
from pathlib import Path
from typing import Any

import requests
import structlog
from ratelimit import limits
from ratelimit import sleep_and_retry

from chainsight.core.client import get_http_client
from chainsight.core.config import get_config
from chainsight.core.config import GitHubConfig
from chainsight.core.errors import TransportError

logger = structlog.get_logger('github_service')

GRAPHQL_DIR = Path(__file__).resolve().parent.parent / 'graphql'

# GraphQL: 5000 points/hour; a repository query costs ~1 point -> 4500 for safety
GRAPHQL_CALLS = 4500
GRAPHQL_PERIOD = 3600


@lru_cache(maxsize=None)
def load_query(query_name: str) -> str:
    """Text of `graphql/<query_name>.graphql`."""
    path = GRAPHQL_DIR / f'{query_name}.graphql'
    if not path.exists():
        raise ValueError(f'Unknown query: {query_name}')
    return path.read_text(encoding='utf-8')


def available_queries() -> list[str]:
    return sorted(path.stem for path in GRAPHQL_DIR.glob('*.graphql'))


class GitHubGraphQLService:
    """Runs repository query documents against the GitHub GraphQL API with proactive and reactive rate limiting."""

    def __init__(
        self,
        token: str,
        config: GitHubConfig | None = None,
        session: requests.Session | None = None,
    ):
        self.config = config or get_config().github
        self.session = session or get_http_client(
            cache_name=get_config().paths.http_cache_path,
            expire_after=self.config.cache_ttl,
        )
        self.session.headers.update({
            'Authorization': f"Bearer {token}",
            'Content-Type': 'application/json',
            'User-Agent': 'chainsight',
        })

    def build_variables(self, owner: str, name: str) -> dict[str, Any]:
        return {
            'owner': owner,
            'name': name,
            'releasesFirst': self.config.releases_page_size,
            'assetsFirst': self.config.assets_page_size,
            'rulesFirst': self.config.rules_page_size,
        }

    def _handle_api_rate_limit(self, response: requests.Response):
        """Handle 403 (Rate Limit) and 429 (Too Many Requests) from GitHub."""
        reset_time = response.headers.get('X-RateLimit-Reset')
        retry_after = response.headers.get('Retry-After')

        wait_seconds = 60.0  # Default fallback

        if reset_time:
            wait_seconds = float(reset_time) - time.time() + 1.0
        elif retry_after:
            wait_seconds = float(retry_after) + 1.0

        if wait_seconds < 0:
            wait_seconds = 1.0

        # Circuit Breaker: If wait time is > 1 hour, abort.
        if wait_seconds > 3600:
            logger.error(
                'Rate limit reset too far in future',
                wait_seconds=wait_seconds,
            )
            raise TransportError(
                'Rate limit exceeded and reset time is too long (circuit breaker).',
            )

        logger.warning(
            'API Rate limit hit (Reactive)',
            status_code=response.status_code,
            wait_seconds=f"{wait_seconds:.2f}s",
        )
        time.sleep(wait_seconds)

    @sleep_and_retry
    @limits(calls=GRAPHQL_CALLS, period=GRAPHQL_PERIOD)
    def _make_graphql_request(self, payload: dict[str, Any]) -> requests.Response:
        """Rate-limited GraphQL request."""
        return self._make_request(payload)

    def _make_request(self, payload: dict[str, Any]) -> requests.Response:
        """
        Base wrapper for requests with reactive handling for GitHub Rate Limits.
        """
        while True:
            response = self.session.post(
                self.config.graphql_url, json=payload, timeout=self.config.timeout,
            )

            if response.status_code == 429:
                self._handle_api_rate_limit(response)
                continue

            if response.status_code == 403:
                if 'rate limit' in response.text.lower():
                    self._handle_api_rate_limit(response)
                    continue

            return response

    def fetch(self, query_name: str, owner: str, name: str) -> dict[str, Any] | None:
        """
        Run one query document for one repository.

        Returns the `data` object of the response. For a missing or private
        repository GitHub answers `{"repository": null}` together with a
        NOT_FOUND error; that data object is returned unchanged so the
        caller can keep it. Returns None when the response carries no data
        at all. Transport and authentication failures raise TransportError.
        """
        payload = {
            'query': load_query(query_name),
            'variables': self.build_variables(owner, name),
        }
        repo = f"{owner}/{name}"

        try:
            response = self._make_graphql_request(payload)
        except requests.RequestException as e:
            raise TransportError(f'Request for {repo} failed: {e}') from e

        if response.status_code == 401:
            raise TransportError('GitHub rejected the token (401 Unauthorized)')
        if response.status_code != 200:
            raise TransportError(
                f'GraphQL request for {repo} failed with status {response.status_code}',
            )

        try:
            body = response.json()
        except ValueError as e:
            raise TransportError(f'Invalid JSON in response for {repo}: {e}') from e

        errors = body.get('errors') or []
        for error in errors:
            logger.warning(
                'GraphQL error',
                repo=repo,
                query=query_name,
                type=error.get('type'),
                message=error.get('message'),
            )

        data = body.get('data')
        if data is None:
            logger.warning('Response without data', repo=repo, query=query_name, status='warned')
            return None

        if data.get('repository') is None:
            logger.info('Repository not found or private', repo=repo, query=query_name, status='skipped')
        else:
            logger.debug('Fetched repository', repo=repo, query=query_name)
        return data
