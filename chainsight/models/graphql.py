"""Typed GraphQL response shapes, one response model per query document."""
from collections.abc import Iterator
from datetime import datetime
from typing import Any
from typing import Generic
from typing import TypeVar

from pydantic import BaseModel
from pydantic import ConfigDict
from pydantic import Field
from pydantic import field_validator

T = TypeVar('T')


class GraphQLModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra='ignore')


class Connection(GraphQLModel, Generic[T]):
    """A GraphQL connection; both the list and its elements may be null."""
    nodes: list[T | None] | None = None


def iter_nodes(connection: Connection[T] | None) -> Iterator[T]:
    """Yield the non-null nodes of a possibly absent connection."""
    if connection is None or connection.nodes is None:
        return
    for node in connection.nodes:
        if node is not None:
            yield node


class ReleaseAssetNode(GraphQLModel):
    id: str
    typename: str = Field(default='ReleaseAsset', alias='__typename')
    name: str
    download_url: str | None = Field(default=None, alias='downloadUrl')


class ReleaseNode(GraphQLModel):
    id: str
    typename: str = Field(default='Release', alias='__typename')
    name: str | None = None
    tag_name: str = Field(alias='tagName')
    url: str | None = None
    created_at: datetime | None = Field(default=None, alias='createdAt')
    release_assets: Connection[ReleaseAssetNode] | None = Field(
        default=None, alias='releaseAssets',
    )

    @field_validator('created_at', mode='before')
    @classmethod
    def parse_datetime(cls, v: Any) -> datetime | None:
        if not v:
            return None
        if isinstance(v, datetime):
            return v
        try:
            return datetime.fromisoformat(str(v).replace('Z', '+00:00'))
        except (ValueError, TypeError):
            return None


class ArtifactsRepository(GraphQLModel):
    id: str
    typename: str = Field(default='Repository', alias='__typename')
    name: str
    name_with_owner: str = Field(alias='nameWithOwner')
    releases: Connection[ReleaseNode] | None = None


class GetRepoDataArtifactsResponse(GraphQLModel):
    repository: ArtifactsRepository | None = None


class LicenseInfo(GraphQLModel):
    key: str | None = None
    name: str | None = None
    spdx_id: str | None = Field(default=None, alias='spdxId')


class BranchProtectionRuleNode(GraphQLModel):
    pattern: str | None = None
    allows_deletions: bool | None = Field(default=None, alias='allowsDeletions')
    allows_force_pushes: bool | None = Field(default=None, alias='allowsForcePushes')
    dismisses_stale_reviews: bool | None = Field(default=None, alias='dismissesStaleReviews')
    is_admin_enforced: bool | None = Field(default=None, alias='isAdminEnforced')
    requires_approving_reviews: bool | None = Field(default=None, alias='requiresApprovingReviews')
    required_approving_review_count: int | None = Field(
        default=None, alias='requiredApprovingReviewCount',
    )
    requires_code_owner_reviews: bool | None = Field(default=None, alias='requiresCodeOwnerReviews')
    requires_commit_signatures: bool | None = Field(default=None, alias='requiresCommitSignatures')
    requires_linear_history: bool | None = Field(default=None, alias='requiresLinearHistory')
    requires_status_checks: bool | None = Field(default=None, alias='requiresStatusChecks')
    requires_strict_status_checks: bool | None = Field(
        default=None, alias='requiresStrictStatusChecks',
    )


class DefaultBranchRef(GraphQLModel):
    name: str | None = None
    branch_protection_rule: BranchProtectionRuleNode | None = Field(
        default=None, alias='branchProtectionRule',
    )


class EntryObject(GraphQLModel):
    """The git object behind a tree entry; only blobs carry text."""
    typename: str | None = Field(default=None, alias='__typename')
    text: str | None = None


class TreeEntry(GraphQLModel):
    name: str
    git_object: EntryObject | None = Field(default=None, alias='object')


class GitObject(GraphQLModel):
    """Result of `object(expression:)`: a Tree, Blob, Commit or Tag."""
    typename: str | None = Field(default=None, alias='__typename')
    entries: list[TreeEntry | None] | None = None


class ExtendedRepository(GraphQLModel):
    id: str
    typename: str = Field(default='Repository', alias='__typename')
    name: str
    name_with_owner: str = Field(alias='nameWithOwner')
    url: str | None = None
    description: str | None = None
    has_vulnerability_alerts_enabled: bool | None = Field(
        default=None, alias='hasVulnerabilityAlertsEnabled',
    )
    license_info: LicenseInfo | None = Field(default=None, alias='licenseInfo')
    default_branch_ref: DefaultBranchRef | None = Field(default=None, alias='defaultBranchRef')
    branch_protection_rules: Connection[BranchProtectionRuleNode] | None = Field(
        default=None, alias='branchProtectionRules',
    )
    releases: Connection[ReleaseNode] | None = None
    workflows: GitObject | None = None


class GetRepoDataExtendedInfoResponse(GraphQLModel):
    repository: ExtendedRepository | None = None
