import functools
from collections.abc import Callable
from typing import Any

import structlog
import typer

from chainsight.core.errors import ConfigurationError
from chainsight.core.errors import StorageFatalError
from chainsight.core.errors import TransportError
from chainsight.core.logging import console
from chainsight.core.validation import ValidationError

logger = structlog.get_logger('cli')


def handle_errors(func: Callable[..., Any]) -> Callable[..., Any]:
    """Map pipeline exceptions of a CLI command to messages and exit codes."""
    @functools.wraps(func)
    def wrapper(*args: Any, **kwargs: Any) -> Any:
        try:
            return func(*args, **kwargs)
        except typer.Exit:
            raise
        except (ValidationError, ValueError) as e:
            console.print(f"[bold red]Validation Error:[/] {e}")
            logger.debug('Validation error', exc_info=True)
            raise typer.Exit(1)
        except ConfigurationError as e:
            console.print(f"[bold red]Configuration Error:[/] {e}")
            logger.debug('Configuration error', exc_info=True)
            raise typer.Exit(1)
        except StorageFatalError as e:
            console.print(f"[bold red]✗ Storage Error:[/] {e}")
            logger.debug('Storage error', exc_info=True)
            raise typer.Exit(1)
        except TransportError as e:
            console.print(f"[bold red]GitHub Error:[/] {e}")
            logger.debug('Transport error', exc_info=True)
            raise typer.Exit(1)
        except KeyboardInterrupt:
            console.print('\n[yellow]Operation cancelled by user.[/]')
            raise typer.Exit(130)
        except Exception as e:
            console.print(f"[bold red]Unexpected Error:[/] {e}")
            logger.exception('Unexpected error')
            raise typer.Exit(1)
    return wrapper
