import logging

from rich.console import Console
from rich.logging import RichHandler

from subscription_backend.core.conf import settings


console = Console()


def setup_logging(level: str | None = None) -> None:
    """Route stdlib logging through rich for console output."""
    logging.basicConfig(
        level=(level or settings.LOG_STD_LEVEL).upper(),
        format=settings.LOG_FORMAT,
        datefmt='[%Y-%m-%d %H:%M:%S]',
        handlers=[RichHandler(console=console, rich_tracebacks=True, show_path=False)],
        force=True,
    )
