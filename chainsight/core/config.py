"""Configuration management for chainsight."""
import os
from dataclasses import dataclass
from dataclasses import field
from datetime import datetime
from datetime import timezone
from pathlib import Path


@dataclass
class PathConfig:
    """Output layout of a collection run."""
    output_dir: Path = field(
        default_factory=lambda: Path(
            os.getenv('CHAINSIGHT_OUTPUT_DIR', 'output'),
        ),
    )
    cache_dir: Path = field(default_factory=lambda: Path('.cache'))
    raw_log_name: str = 'raw-responses.jsonl'

    @property
    def http_cache_path(self) -> Path:
        return self.cache_dir / 'requests-cache' / 'db.sqlite3'

    def get_run_dir(self, input_path: Path, started_at: datetime | None = None) -> Path:
        """One directory per run: <output>/<input-stem>-<timestamp>."""
        started_at = started_at or datetime.now(timezone.utc)
        stamp = started_at.strftime('%Y%m%dT%H%M%SZ')
        return self.output_dir / f'{input_path.stem}-{stamp}'

    def get_query_dir(self, run_dir: Path, query_name: str) -> Path:
        return run_dir / query_name

    def get_raw_log_path(self, run_dir: Path) -> Path:
        return run_dir / self.raw_log_name


@dataclass
class StoreConfig:
    """Analytical store and columnar export settings."""
    database_name: str = 'database.db'
    parquet_dir_name: str = 'parquet'
    parquet_compression: str = field(
        default_factory=lambda: os.getenv(
            'CHAINSIGHT_PARQUET_COMPRESSION', 'ZSTD',
        ),
    )
    parquet_row_group_size: int = 100_000

    def get_database_path(self, query_dir: Path) -> Path:
        return query_dir / self.database_name

    def get_parquet_dir(self, query_dir: Path) -> Path:
        return query_dir / self.parquet_dir_name


@dataclass
class GitHubConfig:
    token: str | None = field(
        default_factory=lambda: os.getenv(
            'GITHUB_TOKEN', os.getenv('GITHUB_PAT'),
        ),
    )
    graphql_url: str = 'https://api.github.com/graphql'
    raw_content_url: str = 'https://raw.githubusercontent.com'
    cache_ttl: int = 60 * 60 * 24  # 1 day in seconds
    releases_page_size: int = 50
    assets_page_size: int = 100
    rules_page_size: int = 20
    timeout: int = 30

    def __repr__(self) -> str:
        return (
            f"GitHubConfig(token='*****', graphql_url={self.graphql_url!r}, "
            f"raw_content_url={self.raw_content_url!r}, cache_ttl={self.cache_ttl!r}, "
            f"releases_page_size={self.releases_page_size!r}, "
            f"assets_page_size={self.assets_page_size!r}, "
            f"rules_page_size={self.rules_page_size!r}, timeout={self.timeout!r})"
        )


@dataclass
class ChainsightConfig:
    paths: PathConfig = field(default_factory=PathConfig)
    store: StoreConfig = field(default_factory=StoreConfig)
    github: GitHubConfig = field(default_factory=GitHubConfig)

    @classmethod
    def load(cls) -> 'ChainsightConfig':
        return cls()


_config: ChainsightConfig | None = None


def get_config() -> ChainsightConfig:
    global _config
    if _config is None:
        _config = ChainsightConfig.load()
    return _config
