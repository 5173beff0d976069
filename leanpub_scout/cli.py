#!/usr/bin/env python3
# === FILE: leanpub_scout/cli.py ===
"""
Command-line entry point for LeanpubScout.

Commands:
  books     Log in, collect every book with its categories and print/save the report
  config    Show the effective configuration

Global options:
  --config PATH       YAML/JSON config (default: configs/default.yaml if present)
  --env-file PATH     .env file with LEANPUB_EMAIL / LEANPUB_PASSWORD (default: .env)
  --log-level LEVEL   Logging level (DEBUG, INFO, ...)
  --log-file PATH     Log file (stderr only if omitted)
  --log-format FORMAT Logging format string

books options:
  --json PATH         Save the JSON report to a file
  --html PATH         Save the HTML report to a file
  --template DIR      Directory with report.html.j2 (packaged template by default)
  --pretty            Indent JSON printed to stdout
  --concurrency N     Category fetches in flight (overrides config)
  --run-timeout SEC   Stop after SEC seconds and report what was collected

Example:
  leanpub-scout --config configs/default.yaml books --json reports/books.json
"""
import asyncio
import sys
from pathlib import Path

import click

from leanpub_scout import __version__
from leanpub_scout.config import load_config
from leanpub_scout.credentials import load_credentials
from leanpub_scout.engine import collect_report
from leanpub_scout.errors import AuthError, CredentialsError
from leanpub_scout.logger import init_logging
from leanpub_scout.report.html_report import render_html
from leanpub_scout.report.json_report import render_json

CONTEXT_SETTINGS = dict(help_option_names=["--help"])


def print_error(message: str):
    click.secho(message, fg='red', err=True)
    sys.exit(1)


@click.group(context_settings=CONTEXT_SETTINGS)
@click.version_option(__version__, '--version', '-v', message='LeanpubScout, version %(version)s')
@click.option(
    '--config', '-c', 'config_path',
    default=None,
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    help='Path to the YAML/JSON configuration file.'
)
@click.option(
    '--env-file', 'env_file',
    default='.env',
    show_default=True,
    type=click.Path(dir_okay=False, path_type=Path),
    help='.env file holding LEANPUB_EMAIL and LEANPUB_PASSWORD'
)
@click.option(
    '--log-level', 'log_level',
    default='INFO', show_default=True,
    type=click.Choice(['DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL']),
    help='Logging level'
)
@click.option(
    '--log-file', 'log_file',
    default=None,
    type=click.Path(writable=True, dir_okay=False, path_type=Path),
    help='Log file path (stderr only if omitted)'
)
@click.option(
    '--log-format', 'log_format',
    default='%(asctime)s %(levelname)s %(message)s',
    show_default=True,
    help='Logging format string'
)
@click.pass_context
def cli(ctx, config_path, env_file, log_level, log_file, log_format):
    """LeanpubScout command group."""
    init_logging(
        level=log_level,
        log_file=str(log_file) if log_file else None,
        log_format=log_format
    )
    try:
        cfg = load_config(config_path)
    except Exception as e:
        print_error(f'Failed to load configuration: {e}')
    ctx.ensure_object(dict)
    ctx.obj['config'] = cfg
    ctx.obj['env_file'] = env_file


@cli.command('books', context_settings=CONTEXT_SETTINGS)
@click.option(
    '--json', '-j', 'json_output',
    default=None,
    type=click.Path(writable=True, dir_okay=False, path_type=Path),
    help='Save the JSON report to a file'
)
@click.option(
    '--html', '-h', 'html_output',
    default=None,
    type=click.Path(writable=True, dir_okay=False, path_type=Path),
    help='Save the HTML report to a file'
)
@click.option(
    '--template', '-t', 'template_dir',
    default=None,
    type=click.Path(exists=True, file_okay=False, path_type=Path),
    help='Directory with the report.html.j2 template'
)
@click.option(
    '--pretty', is_flag=True,
    help='Indent JSON printed to stdout'
)
@click.option(
    '--concurrency', 'concurrency',
    type=click.IntRange(min=1),
    default=None,
    help='Category fetches in flight (overrides config)'
)
@click.option(
    '--run-timeout', 'run_timeout',
    type=float,
    default=None,
    help='Stop after this many seconds and report what was collected'
)
@click.pass_context
def books(ctx, json_output, html_output, template_dir, pretty, concurrency, run_timeout):
    """Collect all books with their categories and output the report."""
    cfg = ctx.obj['config']
    if concurrency is not None:
        cfg = cfg.model_copy(update={'concurrency': concurrency})
    try:
        credentials = load_credentials(ctx.obj['env_file'])
    except CredentialsError as e:
        print_error(str(e))

    click.echo(f'Collecting books from {cfg.site_root}', err=True)
    try:
        if run_timeout:
            report = asyncio.run(
                asyncio.wait_for(collect_report(cfg, credentials), timeout=run_timeout)
            )
        else:
            report = asyncio.run(collect_report(cfg, credentials))
    except AuthError as e:
        print_error(f'Authentication failed: {e}')
    except asyncio.TimeoutError:
        print_error(f'No books collected within {run_timeout} seconds')
    except KeyboardInterrupt:
        print_error('Interrupted')

    if not report.complete:
        click.secho('Run interrupted, the report is partial', fg='yellow', err=True)
    if report.failures or report.listing_errors:
        click.secho(
            f'{len(report.failures)} book(s) failed, {len(report.listing_errors)} listing(s) failed',
            fg='yellow', err=True
        )

    # Without output files the report goes to stdout
    if not json_output and not html_output:
        click.echo(report.json(pretty=pretty))
        return

    if json_output:
        try:
            saved_json = render_json(report, json_output)
            click.echo(f'JSON report: {saved_json}')
        except Exception as e:
            print_error(f'Failed to save JSON: {e}')

    if html_output:
        try:
            saved_html = render_html(report, template_dir, html_output)
            click.echo(f'HTML report: {saved_html}')
        except Exception as e:
            print_error(f'Failed to save HTML: {e}')


@cli.command('config', context_settings=CONTEXT_SETTINGS)
@click.pass_context
def show_config(ctx):
    """Show the effective configuration as JSON."""
    cfg = ctx.obj['config']
    click.echo(cfg.model_dump_json(indent=2))


if __name__ == "__main__":
    cli()
