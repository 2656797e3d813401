"""Extractor for the GetRepoDataExtendedInfo query.

On top of releases and assets this shape carries license and default
branch metadata, branch protection rules and the workflow files found
under `.github/workflows`.
"""
from pydantic import BaseModel

from chainsight.core.schema import TableSpec
from chainsight.models.entities import BranchProtectionRuleRecord
from chainsight.models.entities import ExtendedRepositoryRecord
from chainsight.models.entities import WorkflowRecord
from chainsight.models.graphql import BranchProtectionRuleNode
from chainsight.models.graphql import ExtendedRepository
from chainsight.models.graphql import GetRepoDataExtendedInfoResponse
from chainsight.models.graphql import iter_nodes
from chainsight.normalizers.base import extract_releases
from chainsight.normalizers.base import Normalizer
from chainsight.normalizers.base import RELEASE_ASSETS
from chainsight.normalizers.base import RELEASES

REPOSITORIES = TableSpec('repositories', ExtendedRepositoryRecord, 'repositories')
BRANCH_PROTECTION_RULES = TableSpec(
    'branch_protection_rules', BranchProtectionRuleRecord, 'branch protection rules',
)
WORKFLOWS = TableSpec('workflows', WorkflowRecord, 'workflows')


def _rule_record(
    rule_id: str,
    repository_id: str,
    rule: BranchProtectionRuleNode,
    is_default_branch: bool,
) -> BranchProtectionRuleRecord:
    return BranchProtectionRuleRecord(
        id=rule_id,
        repository_id=repository_id,
        is_default_branch=is_default_branch,
        **rule.model_dump(),
    )


def _repository_record(repo: ExtendedRepository) -> ExtendedRepositoryRecord:
    license_info = repo.license_info
    return ExtendedRepositoryRecord(
        id=repo.id,
        typename=repo.typename,
        name=repo.name,
        name_with_owner=repo.name_with_owner,
        url=repo.url,
        description=repo.description,
        has_vulnerability_alerts_enabled=repo.has_vulnerability_alerts_enabled,
        license_key=license_info.key if license_info else None,
        license_name=license_info.name if license_info else None,
        license_spdx_id=license_info.spdx_id if license_info else None,
        default_branch_name=repo.default_branch_ref.name if repo.default_branch_ref else None,
    )


def _workflow_records(repo: ExtendedRepository) -> list[WorkflowRecord]:
    workflows = repo.workflows
    if workflows is None or workflows.typename != 'Tree' or not workflows.entries:
        return []
    records = []
    for entry in workflows.entries:
        if entry is None or entry.git_object is None:
            continue
        if entry.git_object.typename != 'Blob':
            continue
        records.append(
            WorkflowRecord(
                id=f'{repo.id}_{entry.name}',
                repository_id=repo.id,
                filename=entry.name,
                content=entry.git_object.text,
            ),
        )
    return records


class RepoDataExtendedInfoNormalizer(Normalizer):
    query_name = 'GetRepoDataExtendedInfo'
    response_model = GetRepoDataExtendedInfoResponse
    tables = (REPOSITORIES, BRANCH_PROTECTION_RULES, RELEASES, RELEASE_ASSETS, WORKFLOWS)

    def extract(self, responses: list[GetRepoDataExtendedInfoResponse | None]) -> dict[str, list[BaseModel]]:
        repositories: list[BaseModel] = []
        rules: list[BaseModel] = []
        releases: list[BaseModel] = []
        assets: list[BaseModel] = []
        workflows: list[BaseModel] = []

        for response in responses:
            if response is None or response.repository is None:
                continue
            repo = response.repository
            repositories.append(_repository_record(repo))

            default_branch = repo.default_branch_ref
            if default_branch is not None and default_branch.branch_protection_rule is not None:
                rules.append(
                    _rule_record(
                        f'{repo.id}_default', repo.id,
                        default_branch.branch_protection_rule, is_default_branch=True,
                    ),
                )
            for index, rule in enumerate(iter_nodes(repo.branch_protection_rules)):
                rules.append(
                    _rule_record(
                        f'{repo.id}_rule_{index}', repo.id, rule, is_default_branch=False,
                    ),
                )

            extract_releases(repo.id, repo.releases, releases, assets)
            workflows.extend(_workflow_records(repo))

        return {
            REPOSITORIES.table_name: repositories,
            BRANCH_PROTECTION_RULES.table_name: rules,
            RELEASES.table_name: releases,
            RELEASE_ASSETS.table_name: assets,
            WORKFLOWS.table_name: workflows,
        }
