"""Dispatch table from GraphQL query name to its extractor."""
from chainsight.normalizers.base import Normalizer
from chainsight.normalizers.repo_data_artifacts import RepoDataArtifactsNormalizer
from chainsight.normalizers.repo_data_extended_info import RepoDataExtendedInfoNormalizer

NORMALIZERS: dict[str, type[Normalizer]] = {
    normalizer.query_name: normalizer
    for normalizer in (RepoDataArtifactsNormalizer, RepoDataExtendedInfoNormalizer)
}


def get_normalizer(query_name: str) -> Normalizer | None:
    normalizer = NORMALIZERS.get(query_name)
    return normalizer() if normalizer else None


def supported_queries() -> list[str]:
    return sorted(NORMALIZERS)
