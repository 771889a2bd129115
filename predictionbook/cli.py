"""PredictionBook CLI: export the ledger and inspect it.

Usage:
    predictionbook export predictions.csv                       # Every prediction
    predictionbook export predictions.csv --responses resp.csv  # Plus responses
    predictionbook export recent.csv --since 2024-01-01         # Created since
    predictionbook latest                                       # Newest prediction
    predictionbook pages                                        # List page count
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable, Coroutine
from datetime import datetime, timezone
from typing import Any, TypeVar

import click

from predictionbook.common.exceptions import (
    AcquisitionException,
    ExtractorAssumptionException,
    ResponseAggregationException,
)
from predictionbook.common.settings import (
    DEFAULT_BASE_URL,
    RateLimitSettings,
    SourceSettings,
)
from predictionbook.export import write_predictions, write_responses
from predictionbook.source import PredictionSource

F = TypeVar("F", bound=Callable[..., Any])
T = TypeVar("T")


def _parse_since(
    ctx: click.Context, param: click.Parameter, value: str | None
) -> datetime | None:
    if value is None:
        return None
    try:
        parsed = datetime.fromisoformat(value)
    except ValueError as e:
        raise click.BadParameter(
            f"'{value}' is not an ISO 8601 date or datetime"
        ) from e
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def source_options(func: F) -> F:
    """Options shared by every command that talks to the ledger."""
    options = [
        click.option(
            "--url",
            default=DEFAULT_BASE_URL,
            show_default=True,
            help="Base URL of the ledger.",
        ),
        click.option(
            "--rate",
            type=click.FloatRange(min=0, min_open=True),
            default=1.0,
            show_default=True,
            help="Sustained requests per second.",
        ),
        click.option(
            "--burst",
            type=click.IntRange(min=1),
            default=2,
            show_default=True,
            help="Requests that may be issued back to back.",
        ),
        click.option(
            "--max-concurrent",
            type=click.IntRange(min=1),
            default=2,
            show_default=True,
            help="Maximum requests in flight.",
        ),
        click.option("-v", "--verbose", is_flag=True, help="Verbose logging."),
    ]
    for option in reversed(options):
        func = option(func)
    return func


def _configure_logging(verbose: bool) -> None:
    log_level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=log_level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def _settings(url: str, rate: float, burst: int, max_concurrent: int) -> SourceSettings:
    return SourceSettings(
        base_url=url,
        rate_limit=RateLimitSettings(requests_per_second=rate, burst=burst),
        max_concurrent_requests=max_concurrent,
    )


def _run(coro: Coroutine[Any, Any, T]) -> T:
    """Run a coroutine, surfacing ledger errors as click errors."""
    try:
        return asyncio.run(coro)
    except (
        AcquisitionException,
        ExtractorAssumptionException,
        ResponseAggregationException,
    ) as e:
        raise click.ClickException(str(e)) from e


@click.group()
@click.version_option(package_name="predictionbook-extractor")
def cli() -> None:
    """PredictionBook ledger extractor CLI."""


@cli.command()
@click.argument(
    "predictions_csv",
    type=click.Path(dir_okay=False, writable=True),
)
@click.option(
    "--responses",
    "responses_csv",
    type=click.Path(dir_okay=False, writable=True),
    default=None,
    help="Also retrieve every prediction's responses and write them here.",
)
@click.option(
    "--since",
    callback=_parse_since,
    default=None,
    help="Only predictions created at or after this ISO 8601 time (UTC if naive).",
)
@source_options
def export(
    predictions_csv: str,
    responses_csv: str | None,
    since: datetime | None,
    url: str,
    rate: float,
    burst: int,
    max_concurrent: int,
    verbose: bool,
) -> None:
    """Export predictions (and optionally responses) as CSV.

    \b
    Examples:
        predictionbook export predictions.csv
        predictionbook export predictions.csv --responses responses.csv
        predictionbook export recent.csv --since 2024-01-01T00:00:00
    """
    _configure_logging(verbose)
    settings = _settings(url, rate, burst, max_concurrent)

    async def _go() -> tuple[list[Any], list[Any] | None]:
        async with PredictionSource.from_settings(settings) as source:
            if since is None:
                summaries = await source.all_predictions()
            else:
                summaries = await source.predictions_since(since)
            responses = None
            if responses_csv is not None:
                responses = await source.all_responses(summaries)
            return summaries, responses

    summaries, responses = _run(_go())

    with open(predictions_csv, "w", newline="", encoding="utf-8") as f:
        count = write_predictions(summaries, f)
    click.echo(f"Wrote {count} predictions to {predictions_csv}")

    if responses_csv is not None and responses is not None:
        with open(responses_csv, "w", newline="", encoding="utf-8") as f:
            count = write_responses(responses, f)
        click.echo(f"Wrote {count} responses to {responses_csv}")


@cli.command()
@source_options
def latest(
    url: str, rate: float, burst: int, max_concurrent: int, verbose: bool
) -> None:
    """Print the newest prediction."""
    _configure_logging(verbose)
    settings = _settings(url, rate, burst, max_concurrent)

    async def _go() -> Any:
        async with PredictionSource.from_settings(settings) as source:
            return await source.latest()

    summary = _run(_go())
    click.echo(f"Id:       {summary.id}")
    click.echo(f"Title:    {summary.title}")
    click.echo(f"Creator:  {summary.creator}")
    click.echo(f"Created:  {summary.created.isoformat()}")
    click.echo(f"Deadline: {summary.deadline.isoformat()}")


@cli.command()
@source_options
def pages(
    url: str, rate: float, burst: int, max_concurrent: int, verbose: bool
) -> None:
    """Print the number of list pages."""
    _configure_logging(verbose)
    settings = _settings(url, rate, burst, max_concurrent)

    async def _go() -> int:
        async with PredictionSource.from_settings(settings) as source:
            return await source.page_count()

    click.echo(_run(_go()))


def main() -> None:
    cli()


if __name__ == "__main__":
    main()
