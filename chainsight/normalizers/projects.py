"""Project metadata enrichment: projects and their repository memberships."""
from pydantic import BaseModel

from chainsight.core.schema import TableSpec
from chainsight.models.entities import ProjectRecord
from chainsight.models.entities import ProjectRepositoryRecord
from chainsight.models.target import ProjectMetadata

PROJECTS = TableSpec('projects', ProjectRecord, 'projects')
PROJECT_REPOS = TableSpec('project_repos', ProjectRepositoryRecord, 'project repositories')

PROJECT_TABLES = (PROJECTS, PROJECT_REPOS)


def extract_projects(projects: list[ProjectMetadata]) -> dict[str, list[BaseModel]]:
    """Rows for the project tables; a project listed twice keeps its first record."""
    project_rows: list[BaseModel] = []
    membership_rows: list[BaseModel] = []
    seen: set[str] = set()

    for project in projects:
        if project.project_name in seen:
            continue
        seen.add(project.project_name)
        project_rows.append(
            ProjectRecord.model_validate(project.model_dump(exclude={'repos'})),
        )
        for repo in project.repos:
            membership_rows.append(
                ProjectRepositoryRecord(
                    project_name=project.project_name,
                    owner=repo.owner,
                    name=repo.name,
                    is_primary=repo.primary,
                    branch=repo.branch,
                ),
            )

    return {
        PROJECTS.table_name: project_rows,
        PROJECT_REPOS.table_name: membership_rows,
    }
