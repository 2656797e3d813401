import concurrent.futures
from dataclasses import dataclass
from dataclasses import field
from pathlib import Path
from typing import Any

import structlog
from rich.progress import Progress
from rich.progress import TaskID

from chainsight.core.config import ChainsightConfig
from chainsight.core.config import get_config
from chainsight.core.errors import TransportError
from chainsight.core.extensions import Extension
from chainsight.core.extensions import EXTENSION_REGISTRY
from chainsight.core.stats import CollectStats
from chainsight.core.store import AnalyticsStore
from chainsight.models.entities import SecurityInsightsDocument
from chainsight.models.target import RepositoryTarget
from chainsight.models.target import TargetList
from chainsight.services.analyzer_service import AnalysisReport
from chainsight.services.analyzer_service import SecurityAnalyzer
from chainsight.services.artifact_writer_service import ArtifactWriter
from chainsight.services.artifact_writer_service import WriteResult
from chainsight.services.github_service import GitHubGraphQLService
from chainsight.services.raw_log_service import RawResponseLog
from chainsight.services.security_insights_service import SecurityInsightsService

logger = structlog.get_logger('collector')

DEFAULT_QUERIES = ('GetRepoDataArtifacts',)


@dataclass
class CollectResult:
    run_dir: Path
    stats: CollectStats
    writes: list[WriteResult] = field(default_factory=list)
    reports: dict[str, AnalysisReport] = field(default_factory=dict)


class Collector:
    """
    Drives one collection run: fetch every target for every query shape,
    log the raw responses, then hand each shape's batch to the writer.
    """

    def __init__(
        self,
        github: GitHubGraphQLService,
        writer: ArtifactWriter | None = None,
        si_service: SecurityInsightsService | None = None,
        config: ChainsightConfig | None = None,
        workers: int = 4,
        extensions: tuple[Extension, ...] = EXTENSION_REGISTRY,
    ):
        self.github = github
        self.config = config or get_config()
        self.writer = writer or ArtifactWriter(self.config.store, extensions)
        self.si_service = si_service
        self.workers = max(1, workers)
        self.extensions = extensions

    def fetch_target(
        self,
        query_name: str,
        target: RepositoryTarget,
        stats: CollectStats,
        raw_log: RawResponseLog,
    ) -> dict[str, Any] | None:
        """Fetch one target; returns the response to keep, or None to skip it."""
        try:
            data = self.github.fetch(query_name, target.owner, target.name)
        except TransportError as e:
            logger.error('Fetch failed', repo=target.slug, query=query_name, status='failed', error=str(e))
            stats.inc_failed()
            return None
        stats.inc_api_requests()

        raw_log.append(
            query_name, target.owner, target.name, data,
            inputs=self.github.build_variables(target.owner, target.name),
        )

        if data is None:
            stats.inc_skipped()
            return None
        # Not-found responses stay in the batch; they only feed the raw tier
        if data.get('repository') is None:
            stats.inc_not_found()
        else:
            stats.inc_fetched()
        return data

    def fetch_batch(
        self,
        query_name: str,
        targets: list[RepositoryTarget],
        stats: CollectStats,
        raw_log: RawResponseLog,
        progress: Progress | None = None,
        task: TaskID | None = None,
    ) -> list[dict[str, Any]]:
        """Fetch all targets concurrently; the batch keeps input order."""
        results: list[dict[str, Any] | None] = [None] * len(targets)
        with concurrent.futures.ThreadPoolExecutor(max_workers=self.workers) as executor:
            futures = {
                executor.submit(self.fetch_target, query_name, target, stats, raw_log): index
                for index, target in enumerate(targets)
            }
            for future in concurrent.futures.as_completed(futures):
                results[futures[future]] = future.result()
                if progress is not None and task is not None:
                    progress.advance(task)
        return [response for response in results if response is not None]

    def collect_documents(self, responses: list[dict[str, Any]]) -> list[SecurityInsightsDocument]:
        """Security Insights documents of every repository found in the batch."""
        if self.si_service is None:
            return []
        documents = []
        seen: set[str] = set()
        for response in responses:
            repository = response.get('repository')
            if not repository or repository.get('id') in seen:
                continue
            seen.add(repository['id'])
            owner, _, name = repository.get('nameWithOwner', '').partition('/')
            if not owner or not name:
                continue
            document = self.si_service.fetch_document(repository['id'], owner, name)
            if document is not None:
                documents.append(document)
        logger.info('Collected security insights', documents=len(documents), repositories=len(seen))
        return documents

    def analyze(self, database_path: Path) -> AnalysisReport:
        store = AnalyticsStore(database_path, self.extensions)
        return SecurityAnalyzer(store).analyze()

    def run(
        self,
        input_path: Path,
        targets: TargetList,
        query_names: list[str] | tuple[str, ...] = DEFAULT_QUERIES,
        analyze: bool = False,
        progress: Progress | None = None,
    ) -> CollectResult:
        run_dir = self.config.paths.get_run_dir(Path(input_path))
        run_dir.mkdir(parents=True, exist_ok=True)
        raw_log = RawResponseLog(self.config.paths.get_raw_log_path(run_dir))
        stats = CollectStats()
        result = CollectResult(run_dir=run_dir, stats=stats)

        logger.info(
            'Starting collection',
            targets=len(targets.targets),
            projects=len(targets.projects),
            queries=list(query_names),
            run_dir=str(run_dir),
        )

        for query_name in query_names:
            stats.total += len(targets.targets)
            task = None
            if progress is not None:
                task = progress.add_task(f'Fetching {query_name}', total=len(targets.targets))
            responses = self.fetch_batch(query_name, targets.targets, stats, raw_log, progress, task)

            si_documents = None
            if self.si_service is not None:
                si_documents = self.collect_documents(responses)

            write = self.writer.write(
                responses,
                self.config.paths.get_query_dir(run_dir, query_name),
                query_name,
                projects=targets.projects,
                si_documents=si_documents,
            )
            stats.inc_batches_written()
            result.writes.append(write)

            if analyze:
                result.reports[query_name] = self.analyze(write.database_path)

        logger.info(
            'Collection complete',
            fetched=stats.fetched,
            not_found=stats.not_found,
            failed=stats.failed,
            elapsed=f'{stats.elapsed_time:.2f}s',
        )
        return result
