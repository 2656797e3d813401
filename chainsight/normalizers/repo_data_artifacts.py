"""Extractor for the GetRepoDataArtifacts query: repositories, releases and assets."""
from pydantic import BaseModel

from chainsight.core.schema import TableSpec
from chainsight.models.entities import RepositoryRecord
from chainsight.models.graphql import GetRepoDataArtifactsResponse
from chainsight.normalizers.base import extract_releases
from chainsight.normalizers.base import Normalizer
from chainsight.normalizers.base import RELEASE_ASSETS
from chainsight.normalizers.base import RELEASES

REPOSITORIES = TableSpec('repositories', RepositoryRecord, 'repositories')


class RepoDataArtifactsNormalizer(Normalizer):
    query_name = 'GetRepoDataArtifacts'
    response_model = GetRepoDataArtifactsResponse
    tables = (REPOSITORIES, RELEASES, RELEASE_ASSETS)

    def extract(self, responses: list[GetRepoDataArtifactsResponse | None]) -> dict[str, list[BaseModel]]:
        repositories: list[BaseModel] = []
        releases: list[BaseModel] = []
        assets: list[BaseModel] = []

        for response in responses:
            if response is None or response.repository is None:
                continue
            repo = response.repository
            repositories.append(
                RepositoryRecord(
                    id=repo.id,
                    typename=repo.typename,
                    name=repo.name,
                    name_with_owner=repo.name_with_owner,
                ),
            )
            extract_releases(repo.id, repo.releases, releases, assets)

        return {
            REPOSITORIES.table_name: repositories,
            RELEASES.table_name: releases,
            RELEASE_ASSETS.table_name: assets,
        }
