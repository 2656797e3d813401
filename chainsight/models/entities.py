"""Flat entity records, one model per normalized table.

Field annotations double as the fallback schema of the table, so every
field must use a type known to `chainsight.core.schema.duckdb_type`.
Nullable source values stay null.
"""
from datetime import datetime
from typing import Any

from pydantic import BaseModel
from pydantic import ConfigDict


class EntityRecord(BaseModel):
    model_config = ConfigDict(extra='forbid')


class RepositoryRecord(EntityRecord):
    id: str
    typename: str = 'Repository'
    name: str
    name_with_owner: str


class ExtendedRepositoryRecord(RepositoryRecord):
    url: str | None = None
    description: str | None = None
    has_vulnerability_alerts_enabled: bool | None = None
    license_key: str | None = None
    license_name: str | None = None
    license_spdx_id: str | None = None
    default_branch_name: str | None = None


class ReleaseRecord(EntityRecord):
    id: str
    typename: str = 'Release'
    repository_id: str
    name: str | None = None
    tag_name: str
    url: str | None = None
    created_at: datetime | None = None


class ReleaseAssetRecord(EntityRecord):
    id: str
    typename: str = 'ReleaseAsset'
    release_id: str
    name: str
    download_url: str | None = None


class BranchProtectionRuleRecord(EntityRecord):
    id: str
    typename: str = 'BranchProtectionRule'
    repository_id: str
    pattern: str | None = None
    is_default_branch: bool = False
    allows_deletions: bool | None = None
    allows_force_pushes: bool | None = None
    dismisses_stale_reviews: bool | None = None
    is_admin_enforced: bool | None = None
    requires_approving_reviews: bool | None = None
    required_approving_review_count: int | None = None
    requires_code_owner_reviews: bool | None = None
    requires_commit_signatures: bool | None = None
    requires_linear_history: bool | None = None
    requires_status_checks: bool | None = None
    requires_strict_status_checks: bool | None = None


class WorkflowRecord(EntityRecord):
    id: str
    typename: str = 'WorkflowFile'
    repository_id: str
    filename: str
    content: str | None = None


class ProjectRecord(EntityRecord):
    project_name: str
    display_name: str | None = None
    description: str | None = None
    maturity: str | None = None
    category: str | None = None
    subcategory: str | None = None
    date_accepted: str | None = None
    date_incubating: str | None = None
    date_graduated: str | None = None
    date_archived: str | None = None
    homepage_url: str | None = None
    repo_url: str | None = None
    package_manager_url: str | None = None
    docker_url: str | None = None
    documentation_url: str | None = None
    blog_url: str | None = None
    url_for_bestpractices: str | None = None
    clomonitor_name: str | None = None
    dev_stats_url: str | None = None
    has_security_audits: bool | None = None
    security_audit_count: int | None = None
    latest_audit_date: str | None = None
    latest_audit_vendor: str | None = None
    crunchbase: str | None = None
    twitter: str | None = None
    parent_project: str | None = None
    tag_associations: list[str] | None = None
    license: str | None = None
    default_branch: str | None = None


class ProjectRepositoryRecord(EntityRecord):
    project_name: str
    owner: str
    name: str
    is_primary: bool = False
    branch: str | None = None


class SecurityInsightsDocument(EntityRecord):
    repository_id: str
    source_url: str
    fetched_at: datetime
    document: dict[str, Any]
