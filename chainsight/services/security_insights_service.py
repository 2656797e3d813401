"""Fetching and storing OpenSSF Security Insights documents."""
import json
from datetime import datetime
from datetime import timezone

import duckdb
import requests
import structlog
import yaml

from chainsight.core.client import get_http_client
from chainsight.core.config import get_config
from chainsight.core.config import GitHubConfig
from chainsight.core.errors import StorageFatalError
from chainsight.core.schema import base_table_name
from chainsight.core.schema import fallback_schema
from chainsight.core.store import AnalyticsStore
from chainsight.core.store import quote_identifier
from chainsight.models.entities import SecurityInsightsDocument

logger = structlog.get_logger('security_insights')

SI_TABLE = base_table_name('si_documents')

# Locations where projects publish the document, in lookup order
SI_PATHS = (
    'SECURITY-INSIGHTS.yml',
    '.github/SECURITY-INSIGHTS.yml',
    'security-insights.yml',
    '.github/security-insights.yml',
)


class SecurityInsightsService:
    """Looks up a repository's Security Insights YAML on raw.githubusercontent.com."""

    def __init__(self, session: requests.Session | None = None, config: GitHubConfig | None = None):
        self.config = config or get_config().github
        self.session = session or get_http_client(
            cache_name=get_config().paths.http_cache_path,
            expire_after=self.config.cache_ttl,
        )

    def fetch_document(
        self,
        repository_id: str,
        owner: str,
        name: str,
        ref: str = 'HEAD',
    ) -> SecurityInsightsDocument | None:
        for path in SI_PATHS:
            url = f'{self.config.raw_content_url}/{owner}/{name}/{ref}/{path}'
            try:
                response = self.session.get(url, timeout=self.config.timeout)
            except requests.RequestException as e:
                logger.warning('Security insights request failed', url=url, error=str(e))
                return None

            if response.status_code == 404:
                continue
            if response.status_code != 200:
                logger.warning(
                    'Unexpected status for security insights',
                    url=url, status_code=response.status_code,
                )
                continue

            try:
                document = yaml.safe_load(response.text)
            except yaml.YAMLError as e:
                logger.warning('Invalid security insights YAML', url=url, error=str(e))
                continue
            if not isinstance(document, dict):
                logger.warning('Security insights document is not a mapping', url=url)
                continue

            logger.info('Found security insights', repo=f'{owner}/{name}', url=url)
            return SecurityInsightsDocument(
                repository_id=repository_id,
                source_url=url,
                fetched_at=datetime.now(timezone.utc),
                document=document,
            )

        logger.debug('No security insights document', repo=f'{owner}/{name}')
        return None


def ensure_documents_table(store: AnalyticsStore) -> None:
    columns = ', '.join(
        f'{quote_identifier(name)} {column_type}'
        for name, column_type in fallback_schema(SecurityInsightsDocument)
    )
    store.execute(
        f'CREATE TABLE IF NOT EXISTS {quote_identifier(SI_TABLE)} '
        f'({columns}, PRIMARY KEY (repository_id, source_url))',
    )


def store_documents(store: AnalyticsStore, documents: list[SecurityInsightsDocument]) -> dict[str, int]:
    """Upsert documents keyed by (repository_id, source_url); returns the table row count."""
    try:
        ensure_documents_table(store)
        for document in documents:
            store.execute(
                f"""
                INSERT INTO {quote_identifier(SI_TABLE)}
                VALUES (?, ?, CAST(? AS TIMESTAMP), CAST(? AS JSON))
                ON CONFLICT (repository_id, source_url) DO UPDATE SET
                    fetched_at = excluded.fetched_at,
                    document = excluded.document
                """,
                [
                    document.repository_id,
                    document.source_url,
                    document.fetched_at.astimezone(timezone.utc).strftime('%Y-%m-%d %H:%M:%S'),
                    json.dumps(document.document, default=str),
                ],
            )
        rows = store.count_rows(SI_TABLE)
    except duckdb.Error as e:
        raise StorageFatalError(f'Failed to store security insights: {e}') from e

    logger.info(
        'Stored security insights documents',
        table=SI_TABLE, rows=rows, status='succeeded' if rows else 'empty',
    )
    return {SI_TABLE: rows}
