"""Command-line interface for smart backup."""

import json
import logging
import signal
import sys
import threading
from logging.handlers import RotatingFileHandler
from typing import Optional, Tuple

import click
import yaml

from .config.config_manager import SettingsStore
from .config.config_validator import ConfigValidator
from .core.errors import ConfigError
from .core.retention import list_snapshots, prune
from .core.scheduler import BackupScheduler
from .core.sizer import compute_size
from .notifiers.email_notifier import EmailNotifier
from .notifiers.events import EventChannel
from .utils.formatters import format_date, format_file_size

logger = logging.getLogger("smart_backup")


def setup_logging(level: str, log_file: Optional[str] = None,
                  max_size_mb: int = 10, backup_count: int = 5):
    """Set up logging configuration."""
    # Convert string level to logging constant
    numeric_level = getattr(logging, level.upper(), None)
    if not isinstance(numeric_level, int):
        raise ValueError(f'Invalid log level: {level}')

    formatter = logging.Formatter(
        '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )

    root_logger = logging.getLogger()
    root_logger.setLevel(numeric_level)

    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setFormatter(formatter)
    root_logger.addHandler(console_handler)

    if log_file:
        try:
            file_handler = RotatingFileHandler(
                log_file,
                maxBytes=int(max_size_mb) * 1024 * 1024,
                backupCount=int(backup_count),
                encoding='utf-8'
            )
            file_handler.setFormatter(formatter)
            root_logger.addHandler(file_handler)
        except OSError as e:
            click.echo(f"Warning: Could not set up file logging: {e}", err=True)


def _build_scheduler(store: SettingsStore) -> BackupScheduler:
    return BackupScheduler(store, events=EventChannel())


@click.group()
@click.option('--config', '-c', 'config_path',
              help='Path to settings file')
@click.option('--log-level', default=None,
              type=click.Choice(['DEBUG', 'INFO', 'WARNING', 'ERROR'], case_sensitive=False),
              help='Logging level')
@click.option('--log-file',
              help='Log file path')
@click.pass_context
def cli(ctx, config_path: Optional[str], log_level: Optional[str], log_file: Optional[str]):
    """Smart Backup - periodic snapshots of a directory tree."""
    ctx.ensure_object(dict)

    store = SettingsStore(config_path)
    try:
        logging_config = store.get('logging') or {}
    except ConfigError as e:
        click.echo(f"❌ {e}", err=True)
        sys.exit(1)

    setup_logging(
        log_level or logging_config.get('level', 'INFO'),
        log_file or logging_config.get('file'),
        logging_config.get('max_size_mb', 10),
        logging_config.get('backup_count', 5)
    )

    ctx.obj['store'] = store


@cli.command()
@click.option('--start/--no-start', default=None,
              help='Start the schedule immediately (default: auto_start setting)')
@click.pass_context
def run(ctx, start: Optional[bool]):
    """Run the backup scheduler until interrupted.

    SIGUSR1 forces a backup, SIGHUP reapplies the stored interval.
    """
    store = ctx.obj['store']
    try:
        scheduler = _build_scheduler(store)
        if start is None:
            start = bool(store.get('auto_start'))
    except ConfigError as e:
        click.echo(f"❌ {e}", err=True)
        sys.exit(1)

    stop_requested = threading.Event()
    force_requested = threading.Event()
    reload_requested = threading.Event()
    fatal_errors = []

    def on_thread_exception(args):
        logger.critical(f"Unhandled error in thread {args.thread.name if args.thread else '?'}",
                        exc_info=(args.exc_type, args.exc_value, args.exc_traceback))
        fatal_errors.append(args.exc_value)
        stop_requested.set()

    threading.excepthook = on_thread_exception

    signal.signal(signal.SIGINT, lambda signum, frame: stop_requested.set())
    signal.signal(signal.SIGTERM, lambda signum, frame: stop_requested.set())
    if hasattr(signal, 'SIGUSR1'):
        signal.signal(signal.SIGUSR1, lambda signum, frame: force_requested.set())
    if hasattr(signal, 'SIGHUP'):
        signal.signal(signal.SIGHUP, lambda signum, frame: reload_requested.set())

    scheduler.notify("Smart Backup", "System is now active and monitoring your files.")
    if start:
        scheduler.start()
    else:
        click.echo("Scheduler idle. Send SIGUSR1 to force a backup.")

    try:
        while not stop_requested.wait(timeout=1.0):
            if force_requested.is_set():
                force_requested.clear()
                scheduler.force_trigger()
            if reload_requested.is_set():
                reload_requested.clear()
                if scheduler.is_running:
                    scheduler.start()
    except Exception:
        logger.critical("Fatal error in scheduler loop", exc_info=True)
        fatal_errors.append(sys.exc_info()[1])
    finally:
        scheduler.stop()

    if fatal_errors:
        sys.exit(1)
    click.echo("Smart Backup stopped.")


@cli.command()
@click.option('--output', '-o', type=click.Choice(['text', 'json']), default='text',
              help='Output format')
@click.pass_context
def once(ctx, output: str):
    """Run a single backup cycle now."""
    scheduler = _build_scheduler(ctx.obj['store'])
    result = scheduler.force_trigger()

    if output == 'json':
        click.echo(json.dumps(result.to_dict(), indent=2))
    elif result.succeeded:
        click.echo(f"✅ Backup created at: {result.snapshot_path}")
        click.echo(f"   💾 Size: {format_file_size(result.size)}")
        if result.pruned:
            click.echo(f"   🗑️  Pruned: {', '.join(result.pruned)}")
        if result.inactive:
            click.echo("   😴 No changes detected for several backups (Smart Check)")

    if not result.succeeded:
        click.echo(f"❌ Backup failed: {result.error}", err=True)
        sys.exit(1)


@cli.command(name='prune')
@click.option('--max', 'max_backups', type=int, default=None,
              help='Number of snapshots to keep (default: max_backups setting)')
@click.pass_context
def prune_command(ctx, max_backups: Optional[int]):
    """Delete the oldest snapshots beyond the retention limit."""
    store = ctx.obj['store']
    destination = store.get('destination')
    if not destination:
        click.echo("❌ Destination not set", err=True)
        sys.exit(1)

    limit = max_backups if max_backups is not None else store.get('max_backups')
    try:
        deleted = prune(destination, limit)
    except ValueError as e:
        click.echo(f"❌ {e}", err=True)
        sys.exit(1)

    if deleted:
        for name in deleted:
            click.echo(f"🗑️  Pruned {name}")
    else:
        click.echo(f"Nothing to prune (keeping {limit})")


@cli.command(name='list')
@click.pass_context
def list_command(ctx):
    """List snapshots under the destination."""
    destination = ctx.obj['store'].get('destination')
    if not destination:
        click.echo("❌ Destination not set", err=True)
        sys.exit(1)

    try:
        snapshots = list_snapshots(destination)
    except OSError as e:
        click.echo(f"❌ Cannot read {destination}: {e}", err=True)
        sys.exit(1)

    if not snapshots:
        click.echo("No snapshots found")
        return

    click.echo(f"\n📂 {destination}")
    click.echo("=" * 50)
    for snapshot in snapshots:
        size = compute_size(snapshot.path)
        click.echo(f"  {snapshot.name}  {format_date(snapshot.created)}  {format_file_size(size)}")
    click.echo(f"\n{len(snapshots)} snapshots")


@cli.command()
@click.pass_context
def show_config(ctx):
    """Print the current settings."""
    try:
        settings = ctx.obj['store'].all()
    except ConfigError as e:
        click.echo(f"❌ {e}", err=True)
        sys.exit(1)

    if (settings.get('email') or {}).get('smtp_pass'):
        settings['email']['smtp_pass'] = '********'
    click.echo(yaml.safe_dump(settings, default_flow_style=False, sort_keys=False))


@cli.command(name='set')
@click.argument('assignments', nargs=-1, required=True)
@click.pass_context
def set_command(ctx, assignments: Tuple[str, ...]):
    """Save settings given as KEY=VALUE pairs."""
    values = {}
    for assignment in assignments:
        key, sep, raw = assignment.partition('=')
        if not sep or not key.strip():
            click.echo(f"❌ Expected KEY=VALUE, got '{assignment}'", err=True)
            sys.exit(1)
        try:
            values[key.strip()] = yaml.safe_load(raw) if raw.strip() else None
        except yaml.YAMLError:
            values[key.strip()] = raw

    store = ctx.obj['store']
    try:
        _build_scheduler(store).save_settings(values)
    except ConfigError as e:
        click.echo(f"❌ Settings not saved: {e}", err=True)
        sys.exit(1)

    click.echo(f"✅ Settings saved to {store.config_path}")


@cli.command()
@click.pass_context
def validate_config(ctx):
    """Validate the settings file."""
    store = ctx.obj['store']
    try:
        settings = store.all()
        ConfigValidator().validate(settings)
    except ConfigError as e:
        click.echo(f"❌ Configuration validation failed: {e}", err=True)
        sys.exit(1)

    click.echo("✅ Configuration loaded successfully")
    click.echo(f"\n📊 Configuration Summary:")
    click.echo(f"   Source: {settings['source']}")
    click.echo(f"   Destination: {settings['destination']}")
    click.echo(f"   Excludes: {settings.get('excludes') or '-'}")
    click.echo(f"   Interval: {settings['interval']} mins")
    click.echo(f"   Keep: {settings['max_backups']} snapshots")
    click.echo(f"   Smart Check: stop after {settings['smart_streak']} identical backups")
    click.echo(f"   Auto start: {'yes' if settings.get('auto_start') else 'no'}")

    email_config = settings.get('email')
    if email_config:
        try:
            ConfigValidator().validate_email(email_config)
            email_errors = EmailNotifier.from_config(email_config).validate_configuration()
        except ConfigError as e:
            email_errors = [str(e)]
        if email_errors:
            click.echo("\n⚠️  Email configuration issues:")
            for error in email_errors:
                click.echo(f"     • {error}")
        else:
            click.echo("\n✅ Email configuration valid")
    else:
        click.echo("   📧 Email: Not configured")


@cli.command()
@click.pass_context
def test_email(ctx):
    """Send a test email to verify email configuration."""
    email_config = ctx.obj['store'].get('email')
    if not email_config:
        click.echo("❌ Email not configured - cannot send test email", err=True)
        sys.exit(1)

    try:
        ConfigValidator().validate_email(email_config)
    except ConfigError as e:
        click.echo(f"❌ Email configuration errors:\n   • {e}")
        sys.exit(1)

    notifier = EmailNotifier.from_config(email_config)
    errors = notifier.validate_configuration()
    if errors:
        click.echo("❌ Email configuration errors:")
        for error in errors:
            click.echo(f"   • {error}")
        sys.exit(1)

    click.echo("Sending test email...")
    if notifier.send_test_email():
        click.echo("✅ Test email sent successfully!")
        click.echo(f"   Recipients: {', '.join(notifier.to_addresses)}")
    else:
        click.echo("❌ Failed to send test email", err=True)
        sys.exit(1)


def main():
    """Main CLI entry point."""
    cli()


if __name__ == '__main__':
    main()
