import pytest
from factories import make_artifacts_response
from factories import make_asset
from factories import make_release

from chainsight.core.config import StoreConfig
from chainsight.core.store import AnalyticsStore
from chainsight.services.artifact_writer_service import ArtifactWriter


@pytest.fixture
def cosign_response():
    """One repository, one release, a signature and an SPDX SBOM."""
    return make_artifacts_response(
        releases=[
            make_release(
                'REL_1', 'v2.0.0', [
                    make_asset('A_sig', 'cosign.sig'),
                    make_asset('A_sbom', 'cosign_sbom.spdx.json'),
                ],
            ),
        ],
    )


@pytest.fixture
def writer():
    return ArtifactWriter(StoreConfig(), extensions=())


@pytest.fixture
def open_store():
    """Factory for stores that never install extensions; all are closed at teardown."""
    stores = []

    def factory(path, read_only=False):
        store = AnalyticsStore(path, extensions=(), read_only=read_only)
        stores.append(store)
        return store

    yield factory
    for store in stores:
        store.close()
