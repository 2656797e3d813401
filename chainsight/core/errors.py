"""Exception taxonomy shared by the pipeline stages."""


class ChainsightError(Exception):
    """Base class for all pipeline errors."""


class StorageFatalError(ChainsightError):
    """The analytical store could not be opened or a required write failed."""


class ConfigurationError(ChainsightError):
    """A programming error in table or extractor declarations."""


class MissingFallbackSchemaError(ConfigurationError):
    """A zero-row table has no declared fallback schema."""

    def __init__(self, table_name: str):
        super().__init__(f'No fallback schema declared for table: {table_name}')
        self.table_name = table_name


class TransportError(ChainsightError):
    """The GraphQL endpoint could not be reached or rejected the request."""
