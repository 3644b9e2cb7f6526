import asyncio
import json
import sys

import click

from .config import SourceClusterConfig, TargetClusterConfig, validate_environment
from .sync.config import BatchFailurePolicy, ScheduleMode, SyncSettings
from .sync.error_tracker import ConfigurationError
from .sync.logging_manager import LoggingManager, get_logger
from .sync.orchestrator import run_single_pass
from .sync.scheduler import run_sync_forever

logger = get_logger(__name__)

# Exit codes
EXIT_CONFIGURATION_ERROR = 1
EXIT_PASS_FAILED = 2


def settings_options(fn):
    """Options shared by every command that loads settings."""
    fn = click.option('--log-format', type=click.Choice(['text', 'json']), default=None,
                      help='Override SYNC_LOG_FORMAT')(fn)
    fn = click.option('--log-level', type=click.Choice(['DEBUG', 'INFO', 'WARNING', 'ERROR'], case_sensitive=False),
                      default=None, help='Override SYNC_LOG_LEVEL')(fn)
    fn = click.option('--config-file', type=click.Path(dir_okay=False), default=None,
                      help='YAML file with sync settings; environment variables take precedence')(fn)
    return fn


def load_configuration(config_file=None, **overrides):
    """
    Validate the environment and build settings plus both cluster configs.

    Exits the process with EXIT_CONFIGURATION_ERROR when anything required is missing.
    """
    try:
        validate_environment()
        settings = SyncSettings.load(config_file, **overrides)
        source_config = SourceClusterConfig.from_environment()
        target_config = TargetClusterConfig.from_environment()
    except ConfigurationError as e:
        click.echo(f"Configuration error: {e.message}", err=True)
        if e.recovery_suggestion:
            click.echo(e.recovery_suggestion, err=True)
        sys.exit(EXIT_CONFIGURATION_ERROR)

    LoggingManager(log_level=settings.log_level, log_format=settings.log_format)
    return settings, source_config, target_config


@click.group()
def cli():
    """Replicate an index from a source cluster to a target cluster."""
    pass


@cli.command(name='run')
@settings_options
@click.option('--detect-changes/--no-detect-changes', default=None,
              help='Skip documents identical to the stored version (one read per document)')
@click.option('--schedule-mode', type=click.Choice([m.value for m in ScheduleMode]), default=None,
              help='immediate: short restart delay; interval: fixed wait between passes')
@click.option('--on-batch-failure', type=click.Choice([p.value for p in BatchFailurePolicy]), default=None,
              help='Continue with the next page or end the pass when a batch exhausts its retries')
@click.option('--max-passes', type=click.IntRange(min=1), default=None, help='Stop after this many passes')
def run(config_file, log_level, log_format, detect_changes, schedule_mode, on_batch_failure, max_passes):
    """Run sync passes forever (until SIGINT/SIGTERM)."""
    settings, source_config, target_config = load_configuration(
        config_file,
        log_level=log_level,
        log_format=log_format,
        detect_changes=detect_changes,
        schedule_mode=schedule_mode,
        on_batch_failure=on_batch_failure,
    )
    passes = asyncio.run(run_sync_forever(settings, source_config, target_config, max_passes=max_passes))
    logger.info(f"Sync loop stopped after {passes} passes")


@cli.command(name='sync-once')
@settings_options
@click.option('--detect-changes/--no-detect-changes', default=None,
              help='Skip documents identical to the stored version (one read per document)')
def sync_once(config_file, log_level, log_format, detect_changes):
    """Run a single sync pass and print its metrics."""
    settings, source_config, target_config = load_configuration(
        config_file,
        log_level=log_level,
        log_format=log_format,
        detect_changes=detect_changes,
    )
    result = asyncio.run(run_single_pass(settings, source_config, target_config))
    click.echo(json.dumps({
        'status': result.status.value,
        'stage_reached': result.stage_reached.value,
        'error': result.error,
        'metrics': result.metrics.to_dict(),
    }, indent=2))
    if not result.ok:
        sys.exit(EXIT_PASS_FAILED)


@cli.command(name='check-config')
@settings_options
def check_config(config_file, log_level, log_format):
    """Validate configuration and print it with secrets redacted."""
    settings, source_config, target_config = load_configuration(
        config_file, log_level=log_level, log_format=log_format
    )
    click.echo(json.dumps({
        'source': source_config.redacted(),
        'target': target_config.redacted(),
        'settings': settings.model_dump(mode='json'),
    }, indent=2))


def main():
    cli()


if __name__ == "__main__":
    main()
