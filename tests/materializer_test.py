import pytest

from chainsight.core.errors import MissingFallbackSchemaError
from chainsight.core.errors import StorageFatalError
from chainsight.services.materializer_service import TableMaterializer


@pytest.fixture
def materializer(tmp_path, open_store):
    return TableMaterializer(open_store(tmp_path / 'database.db'), tmp_path)


class TestTableMaterializer:
    """Tests for turning record lists into tables."""

    def test_infers_columns_from_records(self, materializer):
        """Test columns are inferred when no schema is given."""
        rows = materializer.materialize(
            'base_releases',
            [
                {'id': 'REL_1', 'tag_name': 'v1', 'name': None},
                {'id': 'REL_2', 'tag_name': 'v2', 'name': 'Second'},
            ],
        )
        assert rows == 2
        columns = dict(materializer.store.describe('base_releases'))
        assert set(columns) == {'id', 'tag_name', 'name'}
        _, names = materializer.store.fetch_all('SELECT name FROM base_releases ORDER BY id')
        assert names == [(None,), ('Second',)]

    def test_declared_schema_types_all_null_columns(self, materializer):
        """Test a column that is null in every record keeps its declared type."""
        rows = materializer.materialize(
            'base_releases',
            [
                {'id': 'REL_1', 'name': None, 'created_at': '2024-01-02T03:04:05Z'},
                {'id': 'REL_2', 'name': None, 'created_at': None},
            ],
            [('id', 'VARCHAR'), ('name', 'VARCHAR'), ('created_at', 'TIMESTAMP')],
        )
        assert rows == 2
        assert materializer.store.describe('base_releases') == [
            ('id', 'VARCHAR'), ('name', 'VARCHAR'), ('created_at', 'TIMESTAMP'),
        ]

    def test_empty_records_use_fallback_schema(self, materializer):
        """Test an empty list creates the table from the fallback schema."""
        rows = materializer.materialize('base_workflows', [], [('id', 'VARCHAR'), ('content', 'VARCHAR')])
        assert rows == 0
        assert materializer.store.describe('base_workflows') == [('id', 'VARCHAR'), ('content', 'VARCHAR')]
        assert materializer.store.count_rows('base_workflows') == 0

    def test_empty_records_without_schema(self, materializer):
        """Test an empty list without a schema raises."""
        with pytest.raises(MissingFallbackSchemaError):
            materializer.materialize('base_unknown', [])
        assert not materializer.store.table_exists('base_unknown')

    def test_replaces_existing_table(self, materializer):
        """Test materializing twice replaces the table."""
        materializer.materialize('base_things', [{'id': 'a'}, {'id': 'b'}])
        assert materializer.materialize('base_things', [{'id': 'c'}]) == 1

    def test_failed_replace_keeps_previous_table(self, materializer):
        """Test a failing create rolls back and leaves the old table intact."""
        materializer.materialize('base_things', [{'id': 'a'}])
        with pytest.raises(StorageFatalError):
            materializer.materialize('base_things', [], [('id', 'NOT_A_REAL_TYPE')])
        assert materializer.store.count_rows('base_things') == 1

    def test_staging_files_are_removed(self, materializer, tmp_path):
        """Test no staging file is left behind."""
        materializer.materialize('base_things', [{'id': 'a'}])
        assert not list(tmp_path.glob('.base_things-*.json'))

    def test_raw_keeps_nesting(self, materializer):
        """Test raw tables keep nested response objects."""
        rows = materializer.materialize_raw(
            'raw_GetRepoDataArtifacts',
            [{'repository': {'id': 'R_1', 'releases': {'nodes': [{'id': 'REL_1'}]}}}],
        )
        assert rows == 1
        _, result = materializer.store.fetch_all(
            'SELECT repository.releases.nodes[1].id FROM raw_GetRepoDataArtifacts',
        )
        assert result == [('REL_1',)]

    def test_raw_empty_batch(self, materializer):
        """Test an empty raw batch gets the envelope column."""
        assert materializer.materialize_raw('raw_GetRepoDataArtifacts', []) == 0
        assert materializer.store.describe('raw_GetRepoDataArtifacts') == [('repository', 'JSON')]
