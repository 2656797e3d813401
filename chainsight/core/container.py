"""Dependency Injection Container."""
from pathlib import Path
from typing import Optional

from chainsight.core.config import ChainsightConfig
from chainsight.core.config import get_config
from chainsight.core.store import AnalyticsStore
from chainsight.services.analyzer_service import SecurityAnalyzer
from chainsight.services.artifact_writer_service import ArtifactWriter
from chainsight.services.collector_service import Collector
from chainsight.services.github_service import GitHubGraphQLService
from chainsight.services.landscape_service import LandscapeService
from chainsight.services.security_insights_service import SecurityInsightsService


class Container:
    """Simple DI Container to manage service lifecycles."""

    _instance: Optional['Container'] = None

    def __init__(self) -> None:
        self.config: ChainsightConfig = get_config()
        self._github_service: GitHubGraphQLService | None = None
        self._security_insights_service: SecurityInsightsService | None = None

    @classmethod
    def get_instance(cls) -> 'Container':
        if cls._instance is None:
            cls._instance = Container()
        return cls._instance

    # -- Stores --

    def get_store(self, database_path: Path, read_only: bool = False) -> AnalyticsStore:
        return AnalyticsStore(database_path, read_only=read_only)

    # -- Services (Singletons) --

    def get_github_service(self, token: str | None = None) -> GitHubGraphQLService:
        """Get GitHub Service. Token is required for first init if not in env."""
        if not self._github_service:
            api_token = token or self.config.github.token
            if not api_token:
                raise ValueError('GitHub Token is required')
            self._github_service = GitHubGraphQLService(api_token, self.config.github)
        return self._github_service

    def get_security_insights_service(self) -> SecurityInsightsService:
        if not self._security_insights_service:
            self._security_insights_service = SecurityInsightsService(config=self.config.github)
        return self._security_insights_service

    def get_landscape_service(self) -> LandscapeService:
        return LandscapeService()

    # -- Factories (state per run) --

    def create_collector(
        self,
        token: str | None = None,
        workers: int = 4,
        security_insights: bool = False,
    ) -> Collector:
        return Collector(
            self.get_github_service(token),
            writer=ArtifactWriter(self.config.store),
            si_service=self.get_security_insights_service() if security_insights else None,
            config=self.config,
            workers=workers,
        )

    def create_analyzer(self, database_path: Path) -> SecurityAnalyzer:
        return SecurityAnalyzer(self.get_store(database_path))

# Global Accessor


def get_container() -> Container:
    return Container.get_instance()
