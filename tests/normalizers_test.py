import pytest
from factories import make_artifacts_response
from factories import make_asset
from factories import make_extended_response
from factories import make_release

from chainsight.core.errors import MissingFallbackSchemaError
from chainsight.core.schema import TableSpec
from chainsight.models.entities import RepositoryRecord
from chainsight.models.graphql import GetRepoDataArtifactsResponse
from chainsight.normalizers.base import get_normalization_stats
from chainsight.normalizers.base import Normalizer
from chainsight.normalizers.registry import get_normalizer
from chainsight.normalizers.registry import NORMALIZERS
from chainsight.normalizers.registry import supported_queries
from chainsight.normalizers.repo_data_artifacts import RepoDataArtifactsNormalizer
from chainsight.normalizers.repo_data_extended_info import RepoDataExtendedInfoNormalizer

RULE = {
    'pattern': 'main',
    'allowsDeletions': False,
    'allowsForcePushes': False,
    'requiresApprovingReviews': True,
    'requiredApprovingReviewCount': 2,
    'requiresCommitSignatures': True,
}


class TestRepoDataArtifactsNormalizer:
    """Tests for the GetRepoDataArtifacts extractor."""

    def test_single_repository_with_assets(self, cosign_response):
        """Test one release with two assets yields linked rows."""
        batch = RepoDataArtifactsNormalizer().normalize([cosign_response])

        assert [r.id for r in batch['base_repositories']] == ['R_cosign']
        assert [r.repository_id for r in batch['base_releases']] == ['R_cosign']
        assets = batch['base_release_assets']
        assert sorted(a.name for a in assets) == ['cosign.sig', 'cosign_sbom.spdx.json']
        assert {a.release_id for a in assets} == {'REL_1'}

    def test_null_response_contributes_nothing(self, cosign_response):
        """Test null entries and null repositories are skipped entirely."""
        normalizer = RepoDataArtifactsNormalizer()
        with_nulls = normalizer.normalize([None, {'repository': None}, cosign_response])
        without = normalizer.normalize([cosign_response])
        assert with_nulls.counts() == without.counts()

    def test_foreign_keys_reference_parents_in_batch(self):
        """Test every child row points at a parent of the same batch."""
        responses = [
            make_artifacts_response(
                'R_1', 'a', 'one', [
                    make_release('REL_1', 'v1', [make_asset('A_1', 'one.tar.gz')]),
                    make_release('REL_2', 'v2', [make_asset('A_2', 'one.zip')]),
                ],
            ),
            make_artifacts_response(
                'R_2', 'b', 'two', [make_release('REL_3', 'v1', [make_asset('A_3', 'two.sig')])],
            ),
        ]
        batch = RepoDataArtifactsNormalizer().normalize(responses)

        repository_ids = {r.id for r in batch['base_repositories']}
        release_ids = {r.id for r in batch['base_releases']}
        assert all(r.repository_id in repository_ids for r in batch['base_releases'])
        assert all(a.release_id in release_ids for a in batch['base_release_assets'])

    def test_empty_input_has_every_table(self):
        """Test an empty batch still returns every declared table."""
        batch = RepoDataArtifactsNormalizer().normalize([])
        assert batch.counts() == {
            'base_repositories': 0,
            'base_releases': 0,
            'base_release_assets': 0,
        }

    def test_repository_without_releases(self):
        """Test zero releases emit only the repository row."""
        batch = RepoDataArtifactsNormalizer().normalize([make_artifacts_response(releases=[])])
        assert batch.counts() == {
            'base_repositories': 1,
            'base_releases': 0,
            'base_release_assets': 0,
        }

    def test_null_connections_are_empty(self):
        """Test null nodes arrays and null elements are filtered out."""
        response = make_artifacts_response()
        response['repository']['releases'] = {
            'nodes': [None, make_release('REL_1', 'v1', assets=None)],
        }
        batch = RepoDataArtifactsNormalizer().normalize([response])
        assert len(batch['base_releases']) == 1
        assert batch['base_release_assets'] == []

    def test_release_without_assets_still_emitted(self):
        """Test a release with zero assets keeps its release row."""
        response = make_artifacts_response(releases=[make_release('REL_1', 'v1', [])])
        batch = RepoDataArtifactsNormalizer().normalize([response])
        assert [r.id for r in batch['base_releases']] == ['REL_1']
        assert batch['base_release_assets'] == []

    def test_same_asset_name_in_two_releases(self):
        """Test identical asset names in different releases are not deduplicated."""
        response = make_artifacts_response(
            releases=[
                make_release('REL_1', 'v1', [make_asset('A_1', 'README.md')]),
                make_release('REL_2', 'v2', [make_asset('A_2', 'README.md')]),
            ],
        )
        batch = RepoDataArtifactsNormalizer().normalize([response])
        assets = batch['base_release_assets']
        assert len(assets) == 2
        assert {(a.name, a.release_id) for a in assets} == {
            ('README.md', 'REL_1'), ('README.md', 'REL_2'),
        }

    def test_nullable_strings_stay_null(self):
        """Test missing optional strings are preserved as None."""
        release = make_release('REL_1', 'v1', [])
        release['name'] = None
        release['url'] = None
        batch = RepoDataArtifactsNormalizer().normalize([make_artifacts_response(releases=[release])])
        row = batch['base_releases'][0]
        assert row.name is None
        assert row.url is None

    def test_typed_responses_are_accepted(self, cosign_response):
        """Test already validated response models pass through parse."""
        typed = GetRepoDataArtifactsResponse.model_validate(cosign_response)
        batch = RepoDataArtifactsNormalizer().normalize([typed])
        assert len(batch['base_release_assets']) == 2

    def test_normalization_is_deterministic(self, cosign_response):
        """Test two runs over the same input produce identical records."""
        normalizer = RepoDataArtifactsNormalizer()
        first = normalizer.normalize([cosign_response])
        second = normalizer.normalize([cosign_response])
        for spec, _ in first:
            assert first.records(spec.table_name) == second.records(spec.table_name)

    def test_records_are_json_ready(self, cosign_response):
        """Test records use snake_case keys and ISO timestamps."""
        batch = RepoDataArtifactsNormalizer().normalize([cosign_response])
        record = batch.records('base_releases')[0]
        assert record['tag_name'] == 'v2.0.0'
        assert record['typename'] == 'Release'
        assert record['created_at'].startswith('2024-05-01T12:00:00')


class TestRepoDataExtendedInfoNormalizer:
    """Tests for the GetRepoDataExtendedInfo extractor."""

    def test_empty_input_has_every_table(self):
        """Test an empty batch still returns every declared table."""
        batch = RepoDataExtendedInfoNormalizer().normalize([])
        assert set(batch.counts()) == {
            'base_repositories',
            'base_branch_protection_rules',
            'base_releases',
            'base_release_assets',
            'base_workflows',
        }
        assert all(count == 0 for count in batch.counts().values())

    def test_repository_metadata(self):
        """Test license and default branch are flattened onto the repository."""
        batch = RepoDataExtendedInfoNormalizer().normalize([make_extended_response()])
        repo = batch['base_repositories'][0]
        assert repo.license_spdx_id == 'Apache-2.0'
        assert repo.default_branch_name == 'main'
        assert repo.has_vulnerability_alerts_enabled is True
        assert repo.description is None

    def test_branch_protection_rule_ids(self):
        """Test default and listed rules get deterministic ids."""
        response = make_extended_response(default_rule=RULE, rules=[RULE, None, {'pattern': 'release/*'}])
        rules = RepoDataExtendedInfoNormalizer().normalize([response])['base_branch_protection_rules']

        assert [r.id for r in rules] == ['R_ext_default', 'R_ext_rule_0', 'R_ext_rule_1']
        assert rules[0].is_default_branch is True
        assert rules[1].is_default_branch is False
        assert rules[0].required_approving_review_count == 2
        assert rules[0].requires_commit_signatures is True
        assert rules[2].pattern == 'release/*'
        assert rules[2].requires_linear_history is None
        assert {r.repository_id for r in rules} == {'R_ext'}

    def test_workflow_blobs(self):
        """Test only blob entries of a tree become workflow rows."""
        response = make_extended_response(
            workflows={'release.yml': 'uses: sigstore/cosign-installer@v3', 'ci.yml': 'run: make'},
        )
        response['repository']['workflows']['entries'].append(
            {'name': 'templates', 'object': {'__typename': 'Tree'}},
        )
        workflows = RepoDataExtendedInfoNormalizer().normalize([response])['base_workflows']

        assert sorted(w.filename for w in workflows) == ['ci.yml', 'release.yml']
        assert {w.id for w in workflows} == {'R_ext_release.yml', 'R_ext_ci.yml'}
        assert all(w.typename == 'WorkflowFile' for w in workflows)

    def test_workflows_object_not_a_tree(self):
        """Test a missing or non-tree workflows object yields no rows."""
        response = make_extended_response()
        response['repository']['workflows'] = {'__typename': 'Blob'}
        batch = RepoDataExtendedInfoNormalizer().normalize([response, make_extended_response('R_2')])
        assert batch['base_workflows'] == []
        assert len(batch['base_repositories']) == 2

    def test_releases_share_the_release_extractor(self):
        """Test extended responses extract releases the same way as artifact responses."""
        response = make_extended_response(
            releases=[make_release('REL_1', 'v1', [make_asset('A_1', 'widget.intoto.jsonl')])],
        )
        batch = RepoDataExtendedInfoNormalizer().normalize([response])
        assert batch['base_releases'][0].repository_id == 'R_ext'
        assert batch['base_release_assets'][0].release_id == 'REL_1'


class TestNormalizerContract:
    """Tests for declaration checks and undeclared tables."""

    def test_undeclared_table_raises(self):
        """Test an extractor returning an unknown table fails loudly."""
        class LeakyNormalizer(Normalizer):
            query_name = 'Leaky'
            response_model = GetRepoDataArtifactsResponse
            tables = (TableSpec('repositories', RepositoryRecord, 'repositories'),)

            def extract(self, responses):
                return {'base_repositories': [], 'base_surprise': []}

        with pytest.raises(MissingFallbackSchemaError) as excinfo:
            LeakyNormalizer().normalize([])
        assert excinfo.value.table_name == 'base_surprise'

    def test_fallback_schemas_computed_at_definition(self):
        """Test fallback schemas follow the record field order."""
        assert RepoDataArtifactsNormalizer.fallback_schemas['base_release_assets'] == [
            ('id', 'VARCHAR'),
            ('typename', 'VARCHAR'),
            ('release_id', 'VARCHAR'),
            ('name', 'VARCHAR'),
            ('download_url', 'VARCHAR'),
        ]

    def test_registry_dispatch(self):
        """Test normalizers are looked up by query name."""
        assert isinstance(get_normalizer('GetRepoDataArtifacts'), RepoDataArtifactsNormalizer)
        assert isinstance(get_normalizer('GetRepoDataExtendedInfo'), RepoDataExtendedInfoNormalizer)
        assert get_normalizer('GetRepoDataMetrics') is None
        assert supported_queries() == sorted(NORMALIZERS)


class TestNormalizationStats:
    """Tests for the normalization summary."""

    def test_summary_string(self, cosign_response):
        """Test the per-table summary text."""
        batch = RepoDataArtifactsNormalizer().normalize([cosign_response])
        assert get_normalization_stats(batch) == (
            'Normalized 1 repositories\n'
            'Extracted 1 releases\n'
            'Extracted 2 release assets'
        )
