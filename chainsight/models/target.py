"""Collection targets: flat repository lists and project-grouped lists."""
import json
from dataclasses import dataclass
from dataclasses import field
from pathlib import Path
from typing import Any

from pydantic import BaseModel
from pydantic import ConfigDict
from pydantic import Field
from pydantic import field_validator


class RepositoryTarget(BaseModel):
    owner: str
    name: str
    primary: bool = True
    branch: str | None = None

    model_config = ConfigDict(extra='ignore')

    @property
    def slug(self) -> str:
        return f'{self.owner}/{self.name}'


class ProjectMetadata(BaseModel):
    """A project that groups one or more repositories, e.g. a CNCF project."""
    project_name: str
    repos: list[RepositoryTarget] = Field(default_factory=list)
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

    model_config = ConfigDict(extra='ignore')

    @field_validator(
        'date_accepted', 'date_incubating', 'date_graduated',
        'date_archived', 'latest_audit_date', mode='before',
    )
    @classmethod
    def stringify_date(cls, v: Any) -> str | None:
        # YAML sources yield datetime.date objects
        if v is None or v == '':
            return None
        return str(v)

    @field_validator('tag_associations', mode='before')
    @classmethod
    def split_tags(cls, v: Any) -> list[str] | None:
        if isinstance(v, str):
            return [tag.strip() for tag in v.split(',') if tag.strip()]
        return v


@dataclass
class TargetList:
    targets: list[RepositoryTarget] = field(default_factory=list)
    projects: list[ProjectMetadata] = field(default_factory=list)

    @property
    def has_projects(self) -> bool:
        return bool(self.projects)


def _read_records(path: Path) -> list[dict[str, Any]]:
    if path.suffix == '.json':
        with open(path, encoding='utf-8') as f:
            data = json.load(f)
        return list(data)
    records = []
    with open(path, encoding='utf-8') as f:
        for line in f:
            if line.strip():
                records.append(json.loads(line))
    return records


def parse_targets(records: list[dict[str, Any]]) -> TargetList:
    """
    Normalize flat and project-grouped records to one target list.

    Repositories listed by several projects, or listed twice, are fetched
    once; the project side-table keeps every membership.
    """
    result = TargetList()
    seen: set[tuple[str, str]] = set()

    def add_target(target: RepositoryTarget) -> None:
        key = (target.owner.lower(), target.name.lower())
        if key in seen:
            return
        seen.add(key)
        result.targets.append(target)

    for record in records:
        if 'repos' in record:
            project = ProjectMetadata.model_validate(record)
            result.projects.append(project)
            for repo in project.repos:
                add_target(repo)
        else:
            add_target(RepositoryTarget.model_validate(record))
    return result


def load_targets(path: Path) -> TargetList:
    return parse_targets(_read_records(path))
