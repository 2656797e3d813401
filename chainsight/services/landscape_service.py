"""Conversion of a CNCF landscape.yml into a project-grouped target list."""
import json
import re
from pathlib import Path
from typing import Any

import requests
import structlog
import yaml

from chainsight.core.client import get_http_client
from chainsight.core.config import get_config
from chainsight.models.target import ProjectMetadata
from chainsight.models.target import RepositoryTarget

logger = structlog.get_logger('landscape_service')

LANDSCAPE_URL = 'https://raw.githubusercontent.com/cncf/landscape/refs/heads/master/landscape.yml'

GITHUB_REPO_PATTERN = re.compile(r'github\.com/([^/]+)/([^/]+?)/?$')

MATURITY_LEVELS = {
    'graduated': 'graduated',
    'incubating': 'incubating',
    'incubation': 'incubating',
    'sandbox': 'sandbox',
    'archived': 'archived',
}


def parse_repo_url(url: str | None) -> tuple[str, str] | None:
    if not url or not isinstance(url, str):
        return None
    match = GITHUB_REPO_PATTERN.search(url.strip())
    if not match:
        return None
    return match.group(1), match.group(2)


def normalize_maturity(value: str | None) -> str | None:
    if not value:
        return None
    return MATURITY_LEVELS.get(str(value).lower())


def extract_repositories(item: dict[str, Any]) -> list[RepositoryTarget]:
    """The primary repository followed by any additional ones, GitHub only."""
    repos = []
    primary = parse_repo_url(item.get('repo_url'))
    if primary:
        repos.append(
            RepositoryTarget(
                owner=primary[0], name=primary[1], primary=True, branch=item.get('branch'),
            ),
        )
    for additional in item.get('additional_repos') or []:
        parsed = parse_repo_url((additional or {}).get('repo_url'))
        if parsed:
            repos.append(
                RepositoryTarget(
                    owner=parsed[0], name=parsed[1], primary=False,
                    branch=additional.get('branch'),
                ),
            )
    return repos


def extract_project(item: dict[str, Any], category: str | None, subcategory: str | None) -> ProjectMetadata | None:
    # Items without a maturity level are members or non-CNCF entries
    if not item.get('project'):
        return None
    repos = extract_repositories(item)
    if not repos:
        return None

    extra = item.get('extra') or {}
    audits = extra.get('audits') or []
    latest_audit = audits[-1] if audits else {}
    tags = extra.get('tag')

    return ProjectMetadata(
        project_name=re.sub(r'[^a-zA-Z0-9\-_. ]', '', item['name']),
        display_name=item['name'],
        description=item.get('description'),
        repos=repos,
        maturity=normalize_maturity(item.get('project')),
        category=category,
        subcategory=subcategory,
        date_accepted=extra.get('accepted'),
        date_incubating=extra.get('incubating'),
        date_graduated=extra.get('graduated'),
        date_archived=extra.get('archived'),
        homepage_url=item.get('homepage_url'),
        repo_url=item.get('repo_url'),
        package_manager_url=extra.get('package_manager_url'),
        docker_url=extra.get('docker_url') or item.get('docker_url'),
        documentation_url=extra.get('documentation_url'),
        blog_url=extra.get('blog_url'),
        url_for_bestpractices=item.get('url_for_bestpractices'),
        clomonitor_name=extra.get('clomonitor_name'),
        dev_stats_url=extra.get('dev_stats_url'),
        has_security_audits=bool(audits),
        security_audit_count=len(audits),
        latest_audit_date=latest_audit.get('date'),
        latest_audit_vendor=latest_audit.get('vendor'),
        crunchbase=item.get('crunchbase'),
        twitter=item.get('twitter'),
        parent_project=extra.get('parent_project'),
        tag_associations=list(tags) if isinstance(tags, list) else None,
        license=item.get('license'),
        default_branch=item.get('branch'),
    )


def extract_projects(landscape: dict[str, Any]) -> list[ProjectMetadata]:
    projects = []
    categories = landscape.get('landscape') or landscape.get('categories') or []
    for category in categories:
        for subcategory in category.get('subcategories') or []:
            for item in subcategory.get('items') or []:
                project = extract_project(item, category.get('name'), subcategory.get('name'))
                if project:
                    projects.append(project)
    return projects


class LandscapeService:
    """Reads landscape.yml from disk or a URL and writes a project list JSON file."""

    def __init__(self, session: requests.Session | None = None):
        self.session = session

    def load(self, source: str) -> dict[str, Any]:
        if source.startswith(('http://', 'https://')):
            session = self.session or get_http_client(
                cache_name=get_config().paths.http_cache_path,
            )
            response = session.get(source, timeout=60)
            response.raise_for_status()
            text = response.text
            logger.info('Downloaded landscape', url=source, size=len(text))
        else:
            text = Path(source).read_text(encoding='utf-8')
        data = yaml.safe_load(text)
        if not isinstance(data, dict):
            raise ValueError(f'Landscape file is not a mapping: {source}')
        return data

    def convert(self, source: str, output_path: Path, names: list[str] | None = None) -> list[ProjectMetadata]:
        """Write the projects found in `source`, optionally restricted to display names."""
        projects = extract_projects(self.load(source))
        if names:
            wanted = {name.lower() for name in names}
            projects = [p for p in projects if (p.display_name or '').lower() in wanted]

        output_path = Path(output_path)
        output_path.parent.mkdir(parents=True, exist_ok=True)
        with open(output_path, 'w', encoding='utf-8') as f:
            json.dump(
                [p.model_dump(mode='json', exclude_none=True) for p in projects],
                f, indent=2, ensure_ascii=False,
            )
            f.write('\n')

        logger.info(
            'Converted landscape',
            projects=len(projects),
            repositories=sum(len(p.repos) for p in projects),
            output=str(output_path),
        )
        return projects
