"""
Copyright (C) 2026 Garudex Labs.  All Rights Reserved.
S3 Publish, a product of Garudex Labs

CLI entry point for s3publish.

Provides the publish command plus configuration inspection and encryption
helpers.
"""

import asyncio
import dataclasses
import signal
import sys
from pathlib import Path
from typing import Optional

import click
import yaml

from s3publish._version import __version__
from s3publish.cli.config_secrets import secrets_group
from s3publish.cli.context import CLIContext, pass_context
from s3publish.config.settings import get_default_config, get_default_config_path, load_config
from s3publish.exceptions import InvalidConfigurationError, S3PublishError, TranslationError
from s3publish.logging_config import get_logger, setup_logging
from s3publish.publisher import NotePublisher
from s3publish.transport.bridge import normalize_proxy_host
from s3publish.transport.cancellation import CancellationToken

logger = get_logger(__name__)

SECRET_FIELDS = ("access_key_id", "secret_access_key")

# Commands that edit the configuration file as written, before it can be decrypted
RAW_CONFIG_COMMANDS = frozenset({"secrets"})


@click.group()
@click.option(
    '--config',
    '-c',
    type=click.Path(exists=False, dir_okay=False, path_type=Path),
    default=None,
    help=f'Path to configuration file (default: {get_default_config_path()})',
)
@click.option(
    '--log-level',
    '-l',
    type=click.Choice(['DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL'], case_sensitive=False),
    default=None,
    help='Override the configured logging level',
)
@click.option(
    '--verbose',
    '-v',
    is_flag=True,
    help='Enable verbose output',
)
@click.version_option(version=__version__, prog_name='s3publish')
@pass_context
def cli(ctx: CLIContext, config: Optional[Path], log_level: Optional[str], verbose: bool):
    """
    s3publish - Publish markdown notes as public HTML pages on S3.
    """
    ctx.verbose = verbose
    ctx.config_path = str(config) if config else None

    try:
        if click.get_current_context().invoked_subcommand in RAW_CONFIG_COMMANDS:
            ctx.config = get_default_config()
        else:
            ctx.config = load_config(ctx.config_path)
    except InvalidConfigurationError as e:
        click.echo(f"Error: Invalid configuration: {e}", err=True)
        sys.exit(1)
    except Exception as e:
        click.echo(f"Error: Failed to load configuration: {e}", err=True)
        sys.exit(1)

    try:
        effective_log_level = log_level.upper() if log_level else ctx.config.logging.level
        log_file = Path(ctx.config.logging.file) if ctx.config.logging.file else None
        setup_logging(
            level=effective_log_level,
            log_file=log_file,
            json_format=ctx.config.logging.format == "json",
        )

        if verbose:
            logger.info(
                "cli_configured",
                config_path=ctx.config_path or "defaults",
                log_level=effective_log_level,
            )
    except Exception as e:
        click.echo(f"Error: Failed to set up logging: {e}", err=True)
        sys.exit(1)


async def _publish_with_interrupt(publisher: NotePublisher, note: str):
    """Run a publish; SIGINT aborts it through the cancellation token."""
    token = CancellationToken()
    loop = asyncio.get_running_loop()
    handler_installed = False
    try:
        loop.add_signal_handler(signal.SIGINT, token.abort, "Interrupted by user")
        handler_installed = True
    except (NotImplementedError, RuntimeError):
        # Signal handlers cannot be installed on this loop (Windows, or not the main thread)
        logger.debug("sigint_handler_unavailable")

    try:
        return await publisher.publish(note, cancellation=token)
    finally:
        if handler_installed:
            loop.remove_signal_handler(signal.SIGINT)
        await publisher.aclose()


def _validate_proxy_host(ctx, param, value):
    if value is None:
        return None
    try:
        return normalize_proxy_host(value) or ""
    except TranslationError as e:
        raise click.BadParameter(str(e)) from None


@cli.command()
@click.argument('note', type=click.Path(exists=True, dir_okay=False))
@click.option(
    '--vault-dir',
    type=click.Path(file_okay=False),
    default=None,
    help='Directory image references are resolved against (default: the note\'s folder)',
)
@click.option(
    '--timeout-ms',
    type=click.IntRange(min=0),
    default=None,
    help='Per-request timeout in milliseconds (0 disables it)',
)
@click.option(
    '--proxy-host',
    default=None,
    callback=_validate_proxy_host,
    help='Reverse-proxy host substituted into every request URL',
)
@pass_context
def publish(
    ctx: CLIContext,
    note: str,
    vault_dir: Optional[str],
    timeout_ms: Optional[int],
    proxy_host: Optional[str],
):
    """
    Publish NOTE and print its public URL.

    Example:
        s3publish publish "vault/2024-01-02 10:30 Hello.md"
    """
    config = ctx.config
    if vault_dir is not None:
        config.render.vault_dir = vault_dir
    if timeout_ms is not None:
        config.transport.request_timeout_ms = timeout_ms
    if proxy_host is not None:
        config.transport.reverse_proxy_host = proxy_host

    try:
        result = asyncio.run(_publish_with_interrupt(NotePublisher(config), note))
    except S3PublishError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)

    if ctx.verbose:
        click.echo(f"Uploaded {result.size_bytes} bytes to s3://{result.bucket}/{result.key} "
                   f"in {result.parts} part(s), {result.duration_ms:.0f} ms")
    click.echo(result.url)


@cli.group()
def config():
    """Inspect configuration."""
    pass


def _mask(value: str) -> str:
    if not value:
        return ""
    if len(value) <= 4:
        return "****"
    return f"{value[:4]}****"


@config.command(name='show')
@pass_context
def config_show(ctx: CLIContext):
    """Print the effective configuration with credentials masked."""
    data = dataclasses.asdict(ctx.config)
    for field_name in SECRET_FIELDS:
        data["aws"][field_name] = _mask(data["aws"][field_name])

    click.echo(f"# source: {ctx.config_path or get_default_config_path()}")
    click.echo(yaml.safe_dump(data, default_flow_style=False, sort_keys=False).rstrip())


cli.add_command(secrets_group)


if __name__ == '__main__':
    cli()
