"""Contract shared by the per-query-shape entity extractors."""
from abc import ABC
from abc import abstractmethod
from collections.abc import Iterable
from collections.abc import Iterator
from collections.abc import Mapping
from dataclasses import dataclass
from dataclasses import field
from typing import Any
from typing import ClassVar

from pydantic import BaseModel

from chainsight.core.errors import ConfigurationError
from chainsight.core.errors import MissingFallbackSchemaError
from chainsight.core.schema import Column
from chainsight.core.schema import TableSpec
from chainsight.models.entities import ReleaseAssetRecord
from chainsight.models.entities import ReleaseRecord
from chainsight.models.graphql import Connection
from chainsight.models.graphql import iter_nodes
from chainsight.models.graphql import ReleaseNode

RELEASES = TableSpec('releases', ReleaseRecord, 'releases')
RELEASE_ASSETS = TableSpec('release_assets', ReleaseAssetRecord, 'release assets')


@dataclass
class NormalizedBatch:
    """Entity rows of one batch, keyed by table name; every declared table is present."""
    query_name: str
    specs: dict[str, TableSpec]
    rows: dict[str, list[BaseModel]] = field(default_factory=dict)

    def __getitem__(self, table_name: str) -> list[BaseModel]:
        return self.rows[table_name]

    def __iter__(self) -> Iterator[tuple[TableSpec, list[BaseModel]]]:
        for table_name, spec in self.specs.items():
            yield spec, self.rows[table_name]

    def records(self, table_name: str) -> list[dict[str, Any]]:
        return [row.model_dump(mode='json') for row in self.rows[table_name]]

    def counts(self) -> dict[str, int]:
        return {table_name: len(rows) for table_name, rows in self.rows.items()}


class Normalizer(ABC):
    """
    Maps typed responses of one GraphQL query into flat entity rows.

    Subclasses declare `query_name`, `response_model` and `tables`, and
    implement `extract`. Declarations are checked when the subclass is
    created, so a table without a usable fallback schema fails at import.
    """

    query_name: ClassVar[str]
    response_model: ClassVar[type[BaseModel]]
    tables: ClassVar[tuple[TableSpec, ...]]
    fallback_schemas: ClassVar[dict[str, list[Column]]]

    def __init_subclass__(cls, **kwargs: Any) -> None:
        super().__init_subclass__(**kwargs)
        for attribute in ('query_name', 'response_model', 'tables'):
            if not hasattr(cls, attribute):
                raise ConfigurationError(f'{cls.__name__} does not declare {attribute}')
        names = [spec.table_name for spec in cls.tables]
        if len(names) != len(set(names)):
            raise ConfigurationError(f'{cls.__name__} declares a table twice: {names}')
        cls.fallback_schemas = {
            spec.table_name: spec.fallback_schema for spec in cls.tables
        }

    def parse(self, responses: Iterable[Mapping[str, Any] | BaseModel | None]) -> list[BaseModel | None]:
        """Validate raw response objects; null responses are kept as None."""
        parsed: list[BaseModel | None] = []
        for response in responses:
            if response is None or isinstance(response, self.response_model):
                parsed.append(response)
            else:
                parsed.append(self.response_model.model_validate(response))
        return parsed

    @abstractmethod
    def extract(self, responses: list[Any]) -> dict[str, list[BaseModel]]:
        """Return rows per table name for the given typed responses."""

    def normalize(self, responses: Iterable[Mapping[str, Any] | BaseModel | None]) -> NormalizedBatch:
        extracted = self.extract(self.parse(responses))
        specs = {spec.table_name: spec for spec in self.tables}
        for table_name in extracted:
            if table_name not in specs:
                raise MissingFallbackSchemaError(table_name)
        return NormalizedBatch(
            query_name=self.query_name,
            specs=specs,
            rows={name: list(extracted.get(name, [])) for name in specs},
        )


def extract_releases(
    repository_id: str,
    releases: Connection[ReleaseNode] | None,
    release_rows: list[BaseModel],
    asset_rows: list[BaseModel],
) -> None:
    """Append the releases of one repository and the assets of each release."""
    for release in iter_nodes(releases):
        release_rows.append(
            ReleaseRecord(
                id=release.id,
                typename=release.typename,
                repository_id=repository_id,
                name=release.name,
                tag_name=release.tag_name,
                url=release.url,
                created_at=release.created_at,
            ),
        )
        for asset in iter_nodes(release.release_assets):
            asset_rows.append(
                ReleaseAssetRecord(
                    id=asset.id,
                    typename=asset.typename,
                    release_id=release.id,
                    name=asset.name,
                    download_url=asset.download_url,
                ),
            )


def get_normalization_stats(batch: NormalizedBatch) -> str:
    """Human-readable row counts, e.g. for a log line after normalization."""
    lines = []
    for index, (spec, rows) in enumerate(batch):
        verb = 'Normalized' if index == 0 else 'Extracted'
        lines.append(f'{verb} {len(rows)} {spec.label}')
    return '\n'.join(lines)
