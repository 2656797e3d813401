import logging
import os
import sys
from typing import Any

import structlog
from rich.console import Console

# Central console for rich output
console = Console()

# Outcome glyphs shown in front of per-table and per-model events
STATUS_GLYPHS = {
    'succeeded': '✓',
    'skipped': 'ⓘ',
    'empty': 'ⓘ',
    'warned': '⚠',
    'failed': '✗',
}

STATUS_STYLES = {
    'succeeded': 'green',
    'skipped': 'blue',
    'empty': 'blue',
    'warned': 'yellow',
    'failed': 'bold red',
}


class RichConsoleRenderer:
    """
    Render structlog events on a rich console as key=value pairs.

    A `status` key (see STATUS_GLYPHS) is turned into a leading glyph, and a
    `_style` key overrides the style of the whole line.
    """

    def __init__(self, target: Console | None = None):
        self._console = target or Console(stderr=True)
        self._level_styles = {
            'debug': 'dim',
            'info': 'green',
            'warning': 'yellow',
            'error': 'bold red',
            'critical': 'bold magenta',
        }

    def __call__(self, logger, name, event_dict):
        custom_style = event_dict.pop('_style', None)

        event = event_dict.pop('event', '')
        log_level = event_dict.pop('level', 'info')
        logger_name = event_dict.pop('logger', 'root')
        timestamp = event_dict.pop('timestamp', '')
        status = event_dict.pop('status', None)
        exc_info = event_dict.pop('exc_info', None)
        exception = event_dict.pop('exception', None)
        stack_info = event_dict.pop('stack_info', None)

        parts = []
        if timestamp:
            parts.append(f"[dim]{timestamp}[/dim]")
        if logger_name:
            parts.append(f"[bold]{logger_name}[/bold]")

        level_style = self._level_styles.get(log_level, 'white')
        parts.append(f"[{level_style}]{log_level:<8}[/{level_style}]")

        if status in STATUS_GLYPHS:
            glyph_style = STATUS_STYLES[status]
            parts.append(f"[{glyph_style}]{STATUS_GLYPHS[status]}[/{glyph_style}]")

        parts.append(event)

        for key, value in event_dict.items():
            parts.append(f"[cyan]{key}[/cyan]=[green]{value!r}[/green]")

        final_msg = ' '.join(parts)

        if exception:
            final_msg += f"\n[red]{exception}[/red]"
        elif exc_info:
            final_msg += f"\n[red]{exc_info}[/red]"

        if stack_info:
            final_msg += f"\n[dim]{stack_info}[/dim]"

        self._console.print(final_msg, style=custom_style)

        # Nothing left for the stdlib logger to print
        raise structlog.DropEvent


def drop_style_processor(logger, method_name, event_dict):
    """Remove the console-only '_style' key before machine-readable rendering."""
    event_dict.pop('_style', None)
    return event_dict


def is_production() -> bool:
    return os.getenv('CHAINSIGHT_ENV', os.getenv('ENV', '')) == 'production'


def setup_logging(level: str = 'INFO') -> None:
    """
    Configure structured logging for the application.

    Development runs render through rich; production runs emit one JSON
    object per line.
    """
    logging.basicConfig(format='%(message)s', stream=sys.stderr, level=level)

    shared_processors: list[Any] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt='iso'),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.UnicodeDecoder(),
    ]

    if is_production():
        processors = shared_processors + [
            drop_style_processor,
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer(),
        ]
    else:
        processors = shared_processors + [
            structlog.processors.format_exc_info,
            RichConsoleRenderer(),
        ]

    structlog.configure(
        processors=processors,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )
