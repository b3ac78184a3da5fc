#!/usr/bin/env python3
"""
Command-line interface for Buildcast.
"""

import click
import json
import sys
from rich.console import Console
from rich.table import Table

from .cache import ForecastCache, MemoryCacheBackend
from .config import Config
from .exceptions import BuildcastError, NotFound
from .forecast import ForecastService
from .store import ProjectStore
from .utils import logger, parse_date, setup_logger
from .velocity import VelocityAdjuster
from .work_calendar import CalendarOracle

console = Console()

RISK_COLORS = {"low": "green", "medium": "yellow", "high": "red"}


def build_components(config: Config):
    """Wire store, calendar, cache and service from configuration."""
    settings = config.config
    if settings.cache.backend != 'memory':
        logger.warning(f"Unknown cache backend '{settings.cache.backend}', using memory")

    store = ProjectStore(config.db_path())
    oracle = CalendarOracle(store, window_buffer=settings.calendar.window_buffer)
    backend = MemoryCacheBackend(
        cache_dir=config.cache_dir(),
        max_size=settings.cache.max_size,
        persist=settings.cache.persist
    )
    service = ForecastService(
        store,
        calendar=oracle,
        cache=ForecastCache(backend, ttl=settings.forecast.cache_ttl),
        adjuster=VelocityAdjuster(
            history_window=settings.forecast.history_window,
            min_history=settings.forecast.min_history
        ),
        single_flight=settings.forecast.single_flight
    )
    store.add_invalidation_listener(service.invalidate_forecast)
    return store, oracle, service


def get_components(ctx):
    """Get or create the store, calendar and service for this invocation."""
    if 'components' not in ctx.obj:
        ctx.obj['components'] = build_components(ctx.obj['config'])
    return ctx.obj['components']


def default_region(ctx, region):
    return region or ctx.obj['config'].config.calendar.default_region


def fail(error: Exception):
    """Report an error and exit with status 1."""
    console.print(f"[red]Error:[/red] {error}")
    if not isinstance(error, BuildcastError):
        logger.error(f"Unexpected error: {error}", exc_info=True)
    sys.exit(1)


@click.group()
@click.option('--config', '-c', type=click.Path(exists=True), help='Config file path')
@click.option('--verbose', '-v', is_flag=True, help='Verbose output')
@click.option('--quiet', '-q', is_flag=True, help='Quiet output')
@click.pass_context
def cli(ctx, config, verbose, quiet):
    """Buildcast - construction project completion forecasting"""
    ctx.ensure_object(dict)
    ctx.obj['config'] = Config(config)
    logging_config = ctx.obj['config'].config.logging

    setup_logger(
        level=logging_config.level,
        log_file=logging_config.file,
        log_format=logging_config.format
    )

    if verbose:
        logger.setLevel('DEBUG')
    elif quiet:
        logger.setLevel('ERROR')


@cli.group()
def forecast():
    """Project completion forecasts."""
    pass


@forecast.command('show')
@click.argument('project_id')
@click.option('--user', '-u', 'user_id', required=True, help='Requesting user id')
@click.option('--format', type=click.Choice(['table', 'json']), default='table',
              help='Output format')
@click.pass_context
def forecast_show(ctx, project_id, user_id, format):
    """Show the completion forecast for a project."""
    _, _, service = get_components(ctx)

    try:
        result = service.generate_forecast(project_id, user_id)
    except Exception as e:
        fail(e)

    if format == 'json':
        click.echo(json.dumps(result.to_dict(), indent=2))
        return

    risk = result.risk_level.value
    color = RISK_COLORS.get(risk, "white")
    console.print(f"\n[bold]Forecast for project {result.project_id}[/bold]")
    console.print(
        f"Estimated completion: [blue]{result.estimated_completion_date.isoformat()}[/blue]"
    )
    console.print(f"Risk: [{color}]{risk.upper()}[/{color}]")
    console.print(f"Confidence: [cyan]{result.confidence}%[/cyan]")
    console.print(f"Working days on critical path: {result.total_estimated_days}")

    if result.critical_path:
        console.print("\n[red]Critical path:[/red] " + " → ".join(result.critical_path))

    console.print(f"\n{result.explanation}")


@forecast.command('invalidate')
@click.argument('project_id')
@click.pass_context
def forecast_invalidate(ctx, project_id):
    """Drop the cached forecast for a project."""
    _, _, service = get_components(ctx)
    service.invalidate_forecast(project_id)
    console.print(f"[green]✓[/green] Forecast cache cleared for {project_id}")


@forecast.command('history')
@click.argument('project_id')
@click.option('--user', '-u', 'user_id', required=True, help='Requesting user id')
@click.option('--limit', '-n', type=int, default=10, help='Number of forecasts to show')
@click.pass_context
def forecast_history(ctx, project_id, user_id, limit):
    """List previously generated forecasts."""
    store, _, _ = get_components(ctx)

    if store.get_project(project_id, user_id) is None:
        fail(NotFound(f"Project {project_id} not found"))

    forecasts = store.forecast_history(project_id, limit=limit)
    if not forecasts:
        console.print("[yellow]No forecasts recorded yet[/yellow]")
        return

    table = Table(title=f"Forecasts for {project_id}")
    table.add_column("Generated", style="cyan")
    table.add_column("Completion", style="blue")
    table.add_column("Risk")
    table.add_column("Confidence", justify="right")
    table.add_column("Path", justify="right")

    for item in forecasts:
        risk = item.risk_level.value
        color = RISK_COLORS.get(risk, "white")
        table.add_row(
            item.generated_at.strftime('%Y-%m-%d %H:%M'),
            item.estimated_completion_date.isoformat(),
            f"[{color}]{risk}[/{color}]",
            f"{item.confidence}%",
            str(len(item.critical_path))
        )

    console.print(table)


@cli.group()
def calendar():
    """Working-day calendar queries."""
    pass


@calendar.command('add-days')
@click.argument('start')
@click.argument('days', type=int)
@click.option('--region', '-r', help='Holiday region')
@click.pass_context
def calendar_add_days(ctx, start, days, region):
    """Add working days to a start date."""
    _, oracle, _ = get_components(ctx)
    region = default_region(ctx, region)
    try:
        result = oracle.add_working_days(parse_date(start), days, region)
    except Exception as e:
        fail(e)
    click.echo(result.isoformat())


@calendar.command('between')
@click.argument('start')
@click.argument('end')
@click.option('--region', '-r', help='Holiday region')
@click.pass_context
def calendar_between(ctx, start, end, region):
    """Count working days between two dates (inclusive)."""
    _, oracle, _ = get_components(ctx)
    region = default_region(ctx, region)
    try:
        count = oracle.working_days_between(parse_date(start), parse_date(end), region)
    except Exception as e:
        fail(e)
    click.echo(str(count))


@calendar.command('non-working')
@click.argument('start')
@click.argument('end')
@click.option('--region', '-r', help='Holiday region')
@click.pass_context
def calendar_non_working(ctx, start, end, region):
    """List weekends and holidays in a date range."""
    _, oracle, _ = get_components(ctx)
    region = default_region(ctx, region)
    try:
        days = oracle.non_working_days(parse_date(start), parse_date(end), region)
    except Exception as e:
        fail(e)

    table = Table()
    table.add_column("Date", style="cyan")
    table.add_column("Reason", style="yellow")
    table.add_column("Holiday")
    for day in days:
        table.add_row(day.date.isoformat(), day.reason.value, day.holiday_name or "")
    console.print(table)


@cli.group()
def holidays():
    """Regional holiday configuration."""
    pass


@holidays.command('add')
@click.argument('region')
@click.argument('date')
@click.argument('name')
@click.option('--recurring', is_flag=True, help='Holiday repeats every year')
@click.option('--user', '-u', 'user_id', help='User performing the change')
@click.pass_context
def holidays_add(ctx, region, date, name, recurring, user_id):
    """Add or update a holiday for a region."""
    store, _, _ = get_components(ctx)
    try:
        ids = store.configure_holidays(
            region,
            [{'date': date, 'name': name, 'is_recurring': recurring}],
            user_id
        )
    except Exception as e:
        fail(e)
    console.print(f"[green]✓[/green] Holiday {ids[0]} saved for {region}")


@holidays.command('list')
@click.argument('region')
@click.pass_context
def holidays_list(ctx, region):
    """List configured holidays for a region."""
    store, _, _ = get_components(ctx)
    entries = store.all_holidays_for_region(region)
    if not entries:
        console.print(f"[yellow]No holidays configured for {region}[/yellow]")
        return

    table = Table(title=f"Holidays: {region}")
    table.add_column("ID", justify="right")
    table.add_column("Date", style="cyan")
    table.add_column("Name")
    table.add_column("Recurring")
    for holiday in entries:
        table.add_row(
            str(holiday.id),
            holiday.date.isoformat(),
            holiday.name,
            "yes" if holiday.is_recurring else "no"
        )
    console.print(table)


@holidays.command('remove')
@click.argument('holiday_id', type=int)
@click.option('--user', '-u', 'user_id', help='User performing the change')
@click.pass_context
def holidays_remove(ctx, holiday_id, user_id):
    """Delete a holiday."""
    store, _, _ = get_components(ctx)
    try:
        store.delete_holiday(holiday_id, user_id)
    except Exception as e:
        fail(e)
    console.print(f"[green]✓[/green] Holiday {holiday_id} deleted")


@holidays.command('regions')
@click.pass_context
def holidays_regions(ctx):
    """List regions with configured holidays."""
    store, _, _ = get_components(ctx)
    for region in store.configured_regions():
        click.echo(region)


@cli.command()
@click.option('--host', help='Host to bind to')
@click.option('--port', type=int, help='Port to listen on')
@click.option('--debug', is_flag=True, help='Run Flask in debug mode')
@click.pass_context
def serve(ctx, host, port, debug):
    """Start the forecast HTTP API."""
    from .web_server import ForecastWebServer

    server_config = ctx.obj['config'].config.server
    store, oracle, service = get_components(ctx)
    server = ForecastWebServer(
        service,
        store=store,
        calendar=oracle,
        host=host or server_config.host,
        port=port or server_config.port,
        max_range_days=ctx.obj['config'].config.calendar.max_range_days
    )
    server.run(debug=debug)


def main():
    """Main entry point."""
    cli(obj={})


if __name__ == '__main__':
    main()
