from datetime import datetime
from datetime import timezone
from pathlib import Path

from chainsight.core.config import ChainsightConfig
from chainsight.core.config import GitHubConfig
from chainsight.core.config import PathConfig
from chainsight.core.config import StoreConfig


class TestPathConfig:
    """Tests for output and cache paths."""

    def test_run_dir_layout(self, tmp_path):
        """Test the run directory is named after the input file and start time."""
        paths = PathConfig(output_dir=tmp_path)
        started = datetime(2024, 5, 1, 12, 30, 5, tzinfo=timezone.utc)

        run_dir = paths.get_run_dir(Path('input/cncf-landscape.json'), started)

        assert run_dir == tmp_path / 'cncf-landscape-20240501T123005Z'
        assert paths.get_query_dir(run_dir, 'GetRepoDataArtifacts') == run_dir / 'GetRepoDataArtifacts'
        assert paths.get_raw_log_path(run_dir) == run_dir / 'raw-responses.jsonl'

    def test_output_dir_from_env(self, monkeypatch):
        """Test the output directory can be set from the environment."""
        monkeypatch.setenv('CHAINSIGHT_OUTPUT_DIR', '/data/runs')
        assert PathConfig().output_dir == Path('/data/runs')

    def test_http_cache_path(self):
        """Test the HTTP cache lives under the cache directory."""
        assert PathConfig(cache_dir=Path('.c')).http_cache_path == Path('.c/requests-cache/db.sqlite3')


class TestStoreConfig:
    """Tests for database and parquet settings."""

    def test_paths(self, tmp_path):
        """Test database and parquet paths inside a query directory."""
        store = StoreConfig()
        assert store.get_database_path(tmp_path) == tmp_path / 'database.db'
        assert store.get_parquet_dir(tmp_path) == tmp_path / 'parquet'

    def test_compression_from_env(self, monkeypatch):
        """Test parquet compression can be set from the environment."""
        monkeypatch.setenv('CHAINSIGHT_PARQUET_COMPRESSION', 'SNAPPY')
        assert StoreConfig().parquet_compression == 'SNAPPY'


class TestGitHubConfig:
    """Tests for GitHub API settings."""

    def test_token_is_masked(self):
        """Test the token never appears in the repr."""
        config = GitHubConfig(token='ghp_secret')
        assert 'ghp_secret' not in repr(config)
        assert "token='*****'" in repr(config)

    def test_token_fallback(self, monkeypatch):
        """Test GITHUB_PAT is used when GITHUB_TOKEN is unset."""
        monkeypatch.delenv('GITHUB_TOKEN', raising=False)
        monkeypatch.setenv('GITHUB_PAT', 'pat')
        assert GitHubConfig().token == 'pat'


def test_config_composition():
    """Test the loaded config holds every section."""
    config = ChainsightConfig.load()
    assert isinstance(config.paths, PathConfig)
    assert isinstance(config.store, StoreConfig)
    assert config.github.graphql_url == 'https://api.github.com/graphql'
