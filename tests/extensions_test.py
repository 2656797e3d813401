from unittest.mock import MagicMock

import duckdb
from structlog.testing import capture_logs

from chainsight.core.extensions import ensure_extensions
from chainsight.core.extensions import Extension
from chainsight.core.extensions import EXTENSION_REGISTRY


def test_registry_names():
    """Test the registry order."""
    names = [extension.name for extension in EXTENSION_REGISTRY]
    assert names == ['json', 'parquet', 'fts', 'autocomplete', 'ui', 'httpfs']


def test_all_extensions_loaded():
    """Test each extension is installed then loaded."""
    connection = MagicMock()
    loaded = ensure_extensions(connection, (Extension('json', ''), Extension('fts', '')))

    assert loaded == {'json': True, 'fts': True}
    connection.execute.assert_any_call("INSTALL 'json'")
    connection.execute.assert_any_call("LOAD 'fts'")


def test_failure_is_logged_and_skipped():
    """A failing extension is reported as not loaded; later ones still load."""
    connection = MagicMock()

    def execute(sql):
        if 'ui' in sql:
            raise duckdb.IOException('Failed to download extension "ui"')
        return connection

    connection.execute.side_effect = execute

    with capture_logs() as logs:
        loaded = ensure_extensions(
            connection, (Extension('ui', ''), Extension('parquet', '')),
        )

    assert loaded == {'ui': False, 'parquet': True}
    warnings = [log for log in logs if log['log_level'] == 'warning']
    assert len(warnings) == 1
    assert warnings[0]['extension'] == 'ui'
    assert warnings[0]['status'] == 'warned'


def test_repeated_calls_are_harmless():
    """Test calling ensure_extensions twice on one connection."""
    connection = duckdb.connect(':memory:')
    try:
        assert ensure_extensions(connection, ()) == {}
        assert ensure_extensions(connection, ()) == {}
    finally:
        connection.close()
