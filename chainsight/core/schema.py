"""Table tiers and fallback schemas derived from entity record models."""
import types
from dataclasses import dataclass
from datetime import date
from datetime import datetime
from typing import Any
from typing import get_args
from typing import get_origin
from typing import Union

from pydantic import BaseModel

from chainsight.core.errors import ConfigurationError

# Naming tiers: raw API responses, normalized entities, derived aggregates
RAW_PREFIX = 'raw_'
BASE_PREFIX = 'base_'
AGG_PREFIX = 'agg_'

PYTHON_TO_DUCKDB: dict[Any, str] = {
    str: 'VARCHAR',
    int: 'BIGINT',
    float: 'DOUBLE',
    bool: 'BOOLEAN',
    datetime: 'TIMESTAMP',
    date: 'DATE',
    dict: 'JSON',
    Any: 'JSON',
}

Column = tuple[str, str]


def raw_table_name(query_name: str) -> str:
    return f'{RAW_PREFIX}{query_name}'


def base_table_name(entity: str) -> str:
    return f'{BASE_PREFIX}{entity}'


def duckdb_type(annotation: Any) -> str:
    """Map a record field annotation to a DuckDB column type."""
    origin = get_origin(annotation)
    if origin in (Union, types.UnionType):
        members = [arg for arg in get_args(annotation) if arg is not type(None)]
        if len(members) == 1:
            return duckdb_type(members[0])
        return 'JSON'
    if origin in (list, tuple):
        args = get_args(annotation)
        if not args:
            return 'JSON'
        return f'{duckdb_type(args[0])}[]'
    if origin is dict:
        return 'JSON'
    if annotation in PYTHON_TO_DUCKDB:
        return PYTHON_TO_DUCKDB[annotation]
    raise ConfigurationError(f'No DuckDB column type for annotation {annotation!r}')


def fallback_schema(model: type[BaseModel]) -> list[Column]:
    """Column list used to create a table when zero records were extracted."""
    columns = [
        (name, duckdb_type(info.annotation))
        for name, info in model.model_fields.items()
    ]
    if not columns:
        raise ConfigurationError(f'{model.__name__} declares no fields')
    return columns


@dataclass(frozen=True)
class TableSpec:
    """A normalized entity table: its name, record model and a human label."""
    name: str
    model: type[BaseModel]
    label: str

    @property
    def table_name(self) -> str:
        return base_table_name(self.name)

    @property
    def fallback_schema(self) -> list[Column]:
        return fallback_schema(self.model)
