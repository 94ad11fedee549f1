import asyncio
import sys

from dataclasses import dataclass
from datetime import datetime
from typing import Annotated

import cappa
import granian

from cappa.output import error_format
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from subscription_backend import __version__
from subscription_backend.core.conf import settings
from subscription_backend.core.log import console, setup_logging
from subscription_backend.src.billing.endpoints.dependencies import get_subscription_service
from subscription_backend.src.billing.repositories.sql import SqlSubscriptionRepository
from subscription_backend.src.billing.shared.clock import ensure_utc
from subscription_backend.src.billing.subscriptions.finders import SubscriptionFinder
from subscription_backend.src.billing.subscriptions.renewal_job import RenewalJob

output_help = '\nFor more information, try "[cyan]--help[/]"'


def build_renewal_job(concurrency: int | None = None) -> RenewalJob:
    service = get_subscription_service()
    finder = SubscriptionFinder(SqlSubscriptionRepository(), clock=service.clock)
    return RenewalJob(service, finder, concurrency=concurrency)


def parse_day(value: str | None) -> datetime | None:
    if not value:
        return None
    try:
        return ensure_utc(datetime.fromisoformat(value))
    except ValueError:
        raise cappa.Exit(f'Invalid date: {value}, expected YYYY-MM-DD', code=1)


def run(host: str, port: int, reload: bool, workers: int) -> None:  # noqa: FBT001
    url = f'http://{host}:{port}'

    panel_content = Text()
    panel_content.append('Python version:', style='bold cyan')
    panel_content.append(f'{sys.version_info.major}.{sys.version_info.minor}.{sys.version_info.micro}', style='white')

    panel_content.append('\nAPI request address: ', style='bold cyan')
    panel_content.append(f'{url}{settings.FASTAPI_API_V1_PATH}', style='blue')

    panel_content.append('\n\nEnvironment mode: ', style='bold green')
    env_style = 'yellow' if settings.ENVIRONMENT == 'dev' else 'green'
    panel_content.append(f'{settings.ENVIRONMENT.upper()}', style=env_style)

    panel_content.append('\nPayment gateway: ', style='bold green')
    panel_content.append(settings.BILLING_GATEWAY, style='yellow')

    if settings.ENVIRONMENT == 'dev' and settings.FASTAPI_DOCS_URL:
        panel_content.append(f'\n\n📖 Swagger docs: {url}{settings.FASTAPI_DOCS_URL}', style='bold magenta')

    console.print(Panel(panel_content, title=f'subscription-backend v{__version__}', border_style='purple', padding=(1, 2)))
    granian.Granian(
        target='subscription_backend.main:app',
        interface='asgi',
        address=host,
        port=port,
        reload=not reload,
        workers=workers,
    ).serve()


async def renew(as_of: datetime | None, concurrency: int | None) -> None:
    job = build_renewal_job(concurrency)
    results = await job.run_due_charges(as_of)

    table = Table(show_header=True, header_style='bold magenta')
    table.add_column('Checked', justify='center')
    table.add_column('Charged', style='green', justify='center')
    table.add_column('Failed', style='red', justify='center')
    table.add_column('Reconciliation', style='yellow', justify='center')
    table.add_row(str(results['checked']), str(results['charged']), str(results['failed']), str(results['faults']))
    console.print(table)

    for error in results['errors']:
        console.print(f"  • {error['subscription_id']}: [{error['code']}] {error['error']}", style='red')

    if results['faults']:
        raise cappa.Exit('Some charges need reconciliation, see the log for details', code=2)
    if results['failed']:
        raise cappa.Exit(code=1)


async def notify_trials(now: datetime | None) -> None:
    job = build_renewal_job()
    results = await job.notify_expiring_trials(now)
    console.print(f"Sent {results['notified']} of {results['checked']} trial expiry notices", style='bold green')
    if results['errors']:
        raise cappa.Exit(code=1)


@cappa.command(help='Run API service', default_long=True)
@dataclass
class Run:
    host: Annotated[
        str,
        cappa.Arg(
            default='127.0.0.1',
            help='Host IP address to serve on. Use `127.0.0.1` for local development, `0.0.0.0` for public access',
        ),
    ]
    port: Annotated[
        int,
        cappa.Arg(default=8000, help='Host port to serve on'),
    ]
    no_reload: Annotated[
        bool,
        cappa.Arg(default=False, help='Disable automatic reload when code files change'),
    ]
    workers: Annotated[
        int,
        cappa.Arg(default=1, help='Number of worker processes, must be used with `--no-reload`'),
    ]

    def __call__(self) -> None:
        run(host=self.host, port=self.port, reload=self.no_reload, workers=self.workers)


@cappa.command(help='Charge every active subscription due today', default_long=True)
@dataclass
class Renew:
    as_of: Annotated[
        str | None,
        cappa.Arg(default=None, help='Charge subscriptions due on this day (YYYY-MM-DD) instead of today'),
    ]
    concurrency: Annotated[
        int | None,
        cappa.Arg(default=None, help='Maximum charges in flight at once'),
    ]

    async def __call__(self) -> None:
        await renew(parse_day(self.as_of), self.concurrency)


@cappa.command(name='notify-trials', help='Send trial expiry notices', default_long=True)
@dataclass
class NotifyTrials:
    now: Annotated[
        str | None,
        cappa.Arg(default=None, help='Reference day (YYYY-MM-DD), defaults to today'),
    ]

    async def __call__(self) -> None:
        await notify_trials(parse_day(self.now))


@cappa.command(help='Subscription billing command line interface', default_long=True)
@dataclass
class SubscriptionCli:
    log_level: Annotated[
        str,
        cappa.Arg(short='-l', default='', show_default=False, help='Log level, defaults to LOG_STD_LEVEL'),
    ]
    subcmd: cappa.Subcommands[Run | Renew | NotifyTrials | None] = None

    def __post_init__(self) -> None:
        setup_logging(self.log_level or None)


def main() -> None:
    output = cappa.Output(error_format=f'{error_format}\n{output_help}')
    asyncio.run(cappa.invoke_async(SubscriptionCli, version=__version__, output=output))
