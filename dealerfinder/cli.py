"""
Command line interface for the dealer ingestion pipeline.
"""

import asyncio
import json
import os
import sys
from pathlib import Path
from typing import List, Mapping, Optional
import click
import yaml

from .adapters import available_adapters, create_adapter
from .browser import BrowserManager
from .errors import StoreUnavailable
from .models import PipelineConfig, RunStatus, SourceConfig
from .runner import SourceRunner
from .scheduler import Scheduler
from .services import CoordinateResolver
from .storage import PersistenceGateway
from .utils import get_logger, init_logger


def load_config(config_path: str) -> dict:
    """Load configuration from YAML file."""
    path = Path(config_path)

    if not path.exists():
        click.echo(f"Warning: Config file not found: {config_path}", err=True)
        click.echo("Using default configuration", err=True)
        return {}

    try:
        with open(path, 'r', encoding='utf-8') as f:
            return yaml.safe_load(f) or {}
    except (OSError, yaml.YAMLError) as e:
        click.echo(f"Error loading config file: {e}", err=True)
        sys.exit(1)


def load_search_terms(file_path: str, base_dir: Optional[Path] = None) -> List[str]:
    """
    Read search terms from a JSON array or a text file (one per line).
    Relative paths resolve against base_dir.
    """
    path = Path(file_path)
    if not path.is_absolute() and base_dir is not None:
        path = base_dir / path
    if not path.exists():
        raise FileNotFoundError(f"Search term file not found: {path}")

    with open(path, 'r', encoding='utf-8') as f:
        if path.suffix.lower() == '.json':
            terms = json.load(f)
            if not isinstance(terms, list):
                raise ValueError(f"Expected a JSON array of search terms in {path}")
        else:
            terms = [line for line in f if not line.strip().startswith('#')]

    return [str(term).strip() for term in terms if str(term).strip()]


def build_pipeline_config(
    config_data: dict,
    debug: bool = False,
    headed: bool = False,
    env: Optional[Mapping[str, str]] = None,
    base_dir: Optional[Path] = None,
) -> PipelineConfig:
    """Build PipelineConfig from config file values, environment and CLI overrides."""
    env = os.environ if env is None else env

    mongodb_section = dict(config_data.get('mongodb') or {})
    browser_section = dict(config_data.get('browser') or {})
    geocoder_section = config_data.get('geocoder') or {}
    scheduler_section = config_data.get('scheduler') or {}
    logging_section = config_data.get('logging') or {}

    if env.get('MONGODB_URI'):
        mongodb_section['uri'] = env['MONGODB_URI']
    if headed:
        browser_section['headless'] = False

    sources = []
    for entry in config_data.get('sources') or []:
        entry = dict(entry)
        terms_file = entry.pop('search_terms_file', None)
        if terms_file:
            entry['search_terms'] = list(entry.get('search_terms') or []) + load_search_terms(terms_file, base_dir)
        sources.append(SourceConfig.model_validate(entry))

    return PipelineConfig(
        sources=sources,
        browser=browser_section,
        geocoder=geocoder_section,
        mongodb=mongodb_section,
        scheduler_timezone=scheduler_section.get('timezone', 'Europe/Berlin'),
        debug_mode=debug or logging_section.get('debug', False),
        debug_log_file=logging_section.get('log_file', './debug/debug.log'),
    )


def build_runner_factory(config: PipelineConfig, browser_manager: BrowserManager,
                         resolver: CoordinateResolver, gateway: PersistenceGateway):
    """Factory creating a fresh SourceRunner per trigger."""

    def factory(source: SourceConfig) -> SourceRunner:
        return SourceRunner(
            source_config=source,
            adapter=create_adapter(source.adapter_name),
            browser_manager=browser_manager,
            resolver=resolver,
            gateway=gateway,
        )

    return factory


async def run_once(config: PipelineConfig, source_name: str):
    gateway = PersistenceGateway.from_config(config.mongodb)
    resolver = CoordinateResolver.from_config(config.geocoder)

    async with BrowserManager(config.browser) as browser_manager:
        scheduler = Scheduler(
            config.sources,
            build_runner_factory(config, browser_manager, resolver, gateway),
            timezone=config.scheduler_timezone,
        )
        return await scheduler.trigger(source_name)


async def run_forever(config: PipelineConfig):
    logger = get_logger()
    gateway = PersistenceGateway.from_config(config.mongodb)
    resolver = CoordinateResolver.from_config(config.geocoder)

    async with BrowserManager(config.browser) as browser_manager:
        scheduler = Scheduler(
            config.sources,
            build_runner_factory(config, browser_manager, resolver, gateway),
            timezone=config.scheduler_timezone,
        )
        scheduler.start()
        logger.info("Scheduler running. Press Ctrl+C to stop.")
        try:
            await asyncio.Event().wait()
        finally:
            scheduler.shutdown()


def _prepare(ctx: click.Context) -> PipelineConfig:
    options = ctx.obj
    config_data = load_config(options['config'])
    try:
        config = build_pipeline_config(
            config_data,
            debug=options['debug'],
            headed=options['headed'],
            base_dir=Path(options['config']).parent,
        )
    except (OSError, ValueError) as e:
        raise click.ClickException(f"Invalid configuration: {e}")

    init_logger(
        debug_mode=config.debug_mode,
        debug_log_file=config.debug_log_file if config.debug_mode else None,
    )
    return config


@click.group()
@click.option(
    '--config',
    type=click.Path(),
    default='config.yaml',
    help='Path to configuration file (default: config.yaml)'
)
@click.option(
    '--debug',
    is_flag=True,
    help='Enable debug logging (detailed logs written to the debug log file)'
)
@click.option(
    '--headed',
    is_flag=True,
    help='Run browser in headed mode (show browser window)'
)
@click.version_option(version='1.0.0', prog_name='Dealer Finder')
@click.pass_context
def main(ctx: click.Context, config: str, debug: bool, headed: bool):
    """
    Dealer Finder

    Scrapes manufacturer dealer locators on a schedule and keeps a
    geocoded dealer directory in MongoDB up to date.

    Examples:

      # One run for one source
      python main.py run kia

      # Run all enabled sources periodically
      python main.py schedule

      # Last completed run per source
      python main.py status
    """
    ctx.obj = {'config': config, 'debug': debug, 'headed': headed}


@main.command()
@click.argument('source')
@click.pass_context
def run(ctx: click.Context, source: str):
    """Run the pipeline once for SOURCE."""
    config = _prepare(ctx)
    logger = get_logger()

    source_config = config.get_source(source)
    if source_config is None:
        configured = ', '.join(s.name for s in config.sources) or 'none'
        raise click.ClickException(f"Unknown source '{source}'. Configured: {configured}")
    if source_config.adapter_name not in available_adapters():
        raise click.ClickException(
            f"No adapter '{source_config.adapter_name}'. Available: {', '.join(available_adapters())}"
        )

    logger.print_header(f"Dealer Finder: {source_config.name}")

    try:
        report = asyncio.run(run_once(config, source_config.name))
    except KeyboardInterrupt:
        click.echo("\nInterrupted", err=True)
        sys.exit(130)

    if report.status == RunStatus.FAILED:
        sys.exit(1)


@main.command()
@click.pass_context
def schedule(ctx: click.Context):
    """Run every enabled source on its interval."""
    config = _prepare(ctx)
    logger = get_logger()

    enabled = [s.name for s in config.sources if s.enabled]
    if not enabled:
        raise click.ClickException("No enabled sources configured")

    logger.print_header("Dealer Finder Scheduler")
    logger.info(f"Sources: {', '.join(enabled)}")

    try:
        asyncio.run(run_forever(config))
    except KeyboardInterrupt:
        logger.info("Shutdown signal received, scheduler stopped")


@main.command()
@click.pass_context
def status(ctx: click.Context):
    """Show last completed run and dealer counts per source."""
    config = _prepare(ctx)
    logger = get_logger()
    gateway = PersistenceGateway.from_config(config.mongodb)

    try:
        runs = {state.source: state for state in gateway.all_runs()}
        names = sorted(set(runs) | {s.name for s in config.sources})

        rows = []
        for name in names:
            state = runs.get(name)
            rows.append([
                name,
                state.last_updated.strftime('%Y-%m-%d %H:%M:%S') if state else '-',
                gateway.count(name, active_only=True),
                gateway.count(name),
            ])
    except StoreUnavailable as e:
        raise click.ClickException(str(e))

    logger.print_table("Sources", rows, ["Source", "Last run", "Active", "Total"])


if __name__ == '__main__':
    main()
