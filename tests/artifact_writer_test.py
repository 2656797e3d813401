import pytest
from factories import make_artifacts_response
from structlog.testing import capture_logs

from chainsight.core.config import StoreConfig
from chainsight.core.errors import StorageFatalError
from chainsight.models.target import ProjectMetadata
from chainsight.services.artifact_writer_service import ArtifactWriter


def read_table(open_store, path, sql):
    return open_store(path, read_only=True).fetch_all(sql)[1]


class TestArtifactWriter:
    """End-to-end writes of one fetch batch."""

    def test_single_repository_batch(self, tmp_path, writer, open_store, cosign_response):
        """Test one repository produces raw, repository, release and asset rows."""
        result = writer.write([cosign_response], tmp_path, 'GetRepoDataArtifacts')

        assert result.normalized
        assert result.tables == {
            'raw_GetRepoDataArtifacts': 1,
            'base_repositories': 1,
            'base_releases': 1,
            'base_release_assets': 2,
        }
        assert read_table(
            open_store, result.database_path, 'SELECT repository_id FROM base_releases',
        ) == [('R_cosign',)]

    def test_null_repository_kept_in_raw_tier(self, tmp_path, writer, open_store):
        """Test a not-found response adds no entities but stays in the raw table."""
        result = writer.write([{'repository': None}], tmp_path, 'GetRepoDataArtifacts')

        assert result.tables['raw_GetRepoDataArtifacts'] == 1
        assert result.tables['base_repositories'] == 0
        assert result.tables['base_releases'] == 0
        assert result.tables['base_release_assets'] == 0

    def test_zero_releases_use_fallback_tables(self, tmp_path, writer, open_store):
        """Test tables without rows are still created from their fallback schemas."""
        result = writer.write([make_artifacts_response(releases=[])], tmp_path, 'GetRepoDataArtifacts')

        assert result.tables['base_repositories'] == 1
        store = open_store(result.database_path, read_only=True)
        assert store.count_rows('base_releases') == 0
        assert [name for name, _ in store.describe('base_release_assets')] == [
            'id', 'typename', 'release_id', 'name', 'download_url',
        ]

    def test_unknown_query_keeps_raw_only(self, tmp_path, writer, open_store, cosign_response):
        """Test a query without a normalizer only gets its raw table."""
        with capture_logs() as logs:
            result = writer.write([cosign_response], tmp_path, 'GetRepoDataMetrics')

        assert not result.normalized
        assert list(result.tables) == ['raw_GetRepoDataMetrics']
        assert any(
            log['event'] == 'No normalizer registered, keeping raw table only' and log['log_level'] == 'warning'
            for log in logs
        )
        assert open_store(result.database_path, read_only=True).list_tables() == ['raw_GetRepoDataMetrics']

    def test_project_tables_deduplicated(self, tmp_path, writer, open_store, cosign_response):
        """Test project metadata and project repositories are written once each."""
        projects = [
            ProjectMetadata.model_validate({
                'project_name': 'Sigstore',
                'maturity': 'graduated',
                'tag_associations': 'security,signing',
                'repos': [
                    {'owner': 'sigstore', 'name': 'cosign', 'primary': True},
                    {'owner': 'sigstore', 'name': 'rekor', 'primary': False},
                ],
            }),
            ProjectMetadata.model_validate({
                'project_name': 'Sigstore',
                'maturity': 'sandbox',
                'repos': [{'owner': 'sigstore', 'name': 'fulcio'}],
            }),
        ]
        result = writer.write([cosign_response], tmp_path, 'GetRepoDataArtifacts', projects=projects)

        assert result.tables['base_projects'] == 1
        assert result.tables['base_project_repos'] == 2
        rows = read_table(
            open_store, result.database_path,
            'SELECT project_name, maturity, tag_associations FROM base_projects',
        )
        assert rows == [('Sigstore', 'graduated', ['security', 'signing'])]
        members = read_table(
            open_store, result.database_path,
            'SELECT name, is_primary FROM base_project_repos ORDER BY name',
        )
        assert members == [('cosign', True), ('rekor', False)]

    def test_parquet_export(self, tmp_path, open_store, cosign_response):
        """Test every table is exported to parquet."""
        writer = ArtifactWriter(StoreConfig(parquet_compression='SNAPPY'), extensions=())
        result = writer.write([cosign_response], tmp_path, 'GetRepoDataArtifacts')

        parquet_dir = tmp_path / 'parquet'
        assert sorted(path.name for path in result.parquet_files) == [
            'base_release_assets.parquet',
            'base_releases.parquet',
            'base_repositories.parquet',
            'raw_GetRepoDataArtifacts.parquet',
        ]
        assert not list(parquet_dir.glob('.*.tmp'))
        store = open_store(tmp_path / 'check.db')
        count = store.fetch_all(
            f"SELECT count(*) FROM read_parquet('{parquet_dir / 'base_release_assets.parquet'}')",
        )[1]
        assert count == [(2,)]

    def test_second_batch_replaces_tables(self, tmp_path, writer, open_store, cosign_response):
        """Test a later batch replaces the tables of an earlier one."""
        writer.write([cosign_response], tmp_path, 'GetRepoDataArtifacts')
        result = writer.write([make_artifacts_response(releases=[])], tmp_path, 'GetRepoDataArtifacts')

        assert result.tables['base_release_assets'] == 0
        assert open_store(result.database_path, read_only=True).count_rows('base_release_assets') == 0

    def test_security_insights_documents(self, tmp_path, writer, open_store, cosign_response):
        """Test an empty document list still creates the documents table."""
        result = writer.write([cosign_response], tmp_path, 'GetRepoDataArtifacts', si_documents=[])
        assert result.tables['base_si_documents'] == 0
        assert open_store(result.database_path, read_only=True).table_exists('base_si_documents')

    def test_failed_export_keeps_previous_parquet(self, tmp_path, writer, cosign_response):
        """Test a failing export raises and leaves the last good parquet files in place."""
        writer.write([cosign_response], tmp_path, 'GetRepoDataArtifacts')
        parquet_dir = tmp_path / 'parquet'
        previous = (parquet_dir / 'base_release_assets.parquet').read_bytes()

        broken = ArtifactWriter(StoreConfig(parquet_compression='BOGUS'), extensions=())
        with pytest.raises(StorageFatalError, match='Failed to export'):
            broken.write([make_artifacts_response(releases=[])], tmp_path, 'GetRepoDataArtifacts')

        assert (parquet_dir / 'base_release_assets.parquet').read_bytes() == previous
        assert not list(parquet_dir.glob('.*.tmp'))
