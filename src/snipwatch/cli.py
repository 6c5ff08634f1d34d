"""Command line interface for SnipWatch."""

from __future__ import annotations

import difflib
import signal
from pathlib import Path
from typing import Any

import click
import yaml
from rich.console import Console
from rich.syntax import Syntax
from rich.table import Table

from snipwatch.backup import BackupInfo, BackupManager, BackupNotFoundError
from snipwatch.config import (
    ConfigError,
    ConfigManager,
    SnipWatchConfig,
    assign_dotted,
    resolve_with_precedence,
)
from snipwatch.enhancement import CompletionService, EnhancementClient, HttpCompletionService
from snipwatch.logs import configure_logging
from snipwatch.notifications import ConsoleNotifier
from snipwatch.processing import FileProcessor
from snipwatch.watch import WatchService

console = Console()


def build_completion_service(config: SnipWatchConfig) -> CompletionService:
    """Return the completion service used by the watcher."""
    return HttpCompletionService(config.llm)


def _manager(ctx: click.Context) -> ConfigManager:
    return ConfigManager(ctx.obj.get("config_path") if ctx.obj else None)


def _load_config(ctx: click.Context, *, include_env: bool = True) -> tuple[ConfigManager, SnipWatchConfig]:
    """Load configuration for a command, surfacing errors as Click exceptions.

    Args:
        ctx: Click context carrying the ``--config`` option.
        include_env: Whether environment overrides apply.

    Returns:
        tuple[ConfigManager, SnipWatchConfig]: The store and the loaded settings.

    Raises:
        click.ClickException: If the configuration is invalid.
    """
    manager = _manager(ctx)
    try:
        config = manager.load(include_env=include_env)
    except ConfigError as exc:
        raise click.ClickException(str(exc)) from exc
    return manager, config


def _format_summary_line(command: str, root: Path | str, metrics: dict[str, Any]) -> str:
    """Return a consistent summary line for CLI commands."""
    parts = ", ".join(f"{key}={value}" for key, value in metrics.items())
    return f"[green]{command} summary for {root}: {parts}.[/green]"


def _backup_table(infos: list[BackupInfo]) -> Table:
    table = Table(title="Backups")
    table.add_column("#", justify="right")
    table.add_column("Package")
    table.add_column("Created")
    table.add_column("Size", justify="right")
    for index, info in enumerate(infos, start=1):
        table.add_row(
            str(index),
            info.name,
            info.created_at.strftime("%Y-%m-%d %H:%M:%S"),
            info.size_display,
        )
    return table


def _without_stamp(lines: list[str]) -> list[str]:
    return [line for line in lines if not line.startswith("# Last updated:")]


def _masked(config: SnipWatchConfig) -> dict[str, Any]:
    data = config.model_dump(mode="json")
    if data["llm"].get("api_key"):
        data["llm"]["api_key"] = "********"
    return data


@click.group(
    invoke_without_command=True,
    context_settings={"help_option_names": ["-h", "--help"]},
)
@click.version_option(package_name="snipwatch")
@click.option(
    "--config",
    "config_path",
    type=click.Path(dir_okay=False, path_type=Path),
    envvar="SNIPWATCH_CONFIG",
    help="Configuration file to use (defaults to ~/.snipwatch/config.yaml).",
)
@click.pass_context
def cli(ctx: click.Context, config_path: Path | None) -> None:
    """SnipWatch enhances markdown notes dropped into a watch folder.

    Without a command, the watcher starts.
    """
    ctx.ensure_object(dict)
    ctx.obj["config_path"] = config_path
    if ctx.invoked_subcommand is None:
        ctx.invoke(watch)


@cli.command()
@click.option("--force", is_flag=True, help="Overwrite an existing configuration with defaults.")
@click.pass_context
def init(ctx: click.Context, force: bool) -> None:
    """Create the configuration file and working folders."""
    manager = _manager(ctx)
    if manager.config_path.exists() and not force:
        console.print(
            f"[yellow]Configuration already exists at {manager.config_path}; "
            "use --force to reset it.[/yellow]"
        )
        return

    config = manager.reset()
    folders = config.folders
    for folder in (folders.base, folders.originals, folders.enhanced, folders.logs, folders.backups):
        folder.mkdir(parents=True, exist_ok=True)
    console.print(f"[green]Created configuration at {manager.config_path}.[/green]")
    console.print(f"[cyan]Drop markdown files into {folders.base} to enhance them.[/cyan]")


@cli.command()
@click.pass_context
def configure(ctx: click.Context) -> None:
    """Interactively update folders, timing, backup and notification settings."""
    manager, config = _load_config(ctx, include_env=False)
    file_data = manager.load_file_overrides()

    answers: dict[str, Any] = {}
    console.print("[cyan]Folders[/cyan]")
    for key in ("base", "originals", "enhanced", "logs", "backups"):
        current = str(getattr(config.folders, key))
        answers[f"folders.{key}"] = click.prompt(f"  {key.capitalize()} folder", default=current)

    console.print("[cyan]Watcher[/cyan]")
    watcher = config.watcher
    answers["watcher.file_filter"] = click.prompt("  File filter", default=watcher.file_filter)
    answers["watcher.polling_interval"] = click.prompt(
        "  Polling interval (seconds)", default=watcher.polling_interval, type=click.IntRange(min=1)
    )
    answers["watcher.heartbeat_interval"] = click.prompt(
        "  Heartbeat interval (minutes)", default=watcher.heartbeat_interval, type=click.IntRange(min=1)
    )
    answers["watcher.processing_delay"] = click.prompt(
        "  Processing delay (seconds)", default=watcher.processing_delay, type=click.IntRange(min=0)
    )
    answers["watcher.file_tracking_expiration"] = click.prompt(
        "  File tracking expiration (minutes)",
        default=watcher.file_tracking_expiration,
        type=click.IntRange(min=1),
    )

    console.print("[cyan]Backups[/cyan]")
    enabled = click.confirm("  Enable scheduled backups?", default=config.backup.enabled)
    answers["backup.enabled"] = enabled
    if enabled:
        answers["backup.max_backup_sets"] = click.prompt(
            "  Backup sets to keep", default=config.backup.max_backup_sets, type=click.IntRange(min=1)
        )
        answers["backup.backup_interval"] = click.prompt(
            "  Backup interval (hours)", default=config.backup.backup_interval, type=click.IntRange(min=1)
        )

    console.print("[cyan]Notifications[/cyan]")
    notify = click.confirm("  Show notifications?", default=config.notifications.enabled)
    answers["notifications.enabled"] = notify
    if notify:
        answers["notifications.show_success_notifications"] = click.confirm(
            "  Notify on success?", default=config.notifications.show_success_notifications
        )
        answers["notifications.show_error_notifications"] = click.confirm(
            "  Notify on errors?", default=config.notifications.show_error_notifications
        )

    api_key = click.prompt(
        "Completion service API key (leave blank to keep the current one)",
        default="",
        show_default=False,
        hide_input=True,
    )
    if api_key:
        answers["llm.api_key"] = api_key

    for dotted, value in answers.items():
        assign_dotted(file_data, dotted, value)

    try:
        resolve_with_precedence(defaults=manager.default_config(), file_overrides=file_data)
    except ConfigError as exc:
        raise click.ClickException(str(exc)) from exc

    manager.save(file_data)
    console.print(f"[green]Configuration saved to {manager.config_path}.[/green]")


@cli.command()
@click.option("--backup-now", is_flag=True, help="Write a backup before watching.")
@click.option("--once", is_flag=True, help="Process current contents once and exit.")
@click.pass_context
def watch(ctx: click.Context, backup_now: bool, once: bool) -> None:
    """Watch the configured folder and enhance new markdown files.

    Args:
        ctx: Click context carrying the ``--config`` option.
        backup_now: Write a backup immediately, ignoring the backup interval.
        once: Process the files currently present and exit.

    Raises:
        click.ClickException: If configuration loading fails or the watch
            folder becomes unavailable.
    """
    manager, config = _load_config(ctx)
    configure_logging(config, console=console)

    notifier = ConsoleNotifier(config.notifications, console)
    backups = BackupManager(config, manager)
    client = EnhancementClient(config.ai_prompts, build_completion_service(config))
    processor = FileProcessor(config, client, notifier=notifier)
    service = WatchService(config, processor, backups=backups, notifier=notifier)

    if once:
        try:
            service.prepare(backup_now=backup_now)
            results = service.process_once()
        except OSError as exc:
            raise click.ClickException(str(exc)) from exc
        if not results:
            console.print("[yellow]No files matched the watch criteria during the one-shot run.[/yellow]")
            return
        stats = service.statistics
        console.print(
            _format_summary_line(
                "Watch",
                config.folders.base,
                {
                    "processed": stats.processed,
                    "succeeded": stats.succeeded,
                    "failed": stats.failed,
                    "skipped": stats.skipped,
                },
            )
        )
        return

    console.print(f"[cyan]Watching {config.folders.base}. Press Ctrl+C to stop.[/cyan]")
    previous = signal.signal(signal.SIGTERM, lambda *_: service.stop())
    try:
        service.run(backup_now=backup_now)
    except OSError as exc:
        raise click.ClickException(f"Watcher stopped: {exc}") from exc
    finally:
        signal.signal(signal.SIGTERM, previous)
    console.print("[yellow]Watch stopped.[/yellow]")


@cli.command()
@click.pass_context
def backup(ctx: click.Context) -> None:
    """Write a backup package now, regardless of the backup interval."""
    manager, config = _load_config(ctx)
    configure_logging(config, console=console, log_to_console=False)

    if not config.backup.enabled:
        console.print("[yellow]Backups are disabled (backup.enabled is false).[/yellow]")
        return

    package = BackupManager(config, manager).backup(force=True)
    if package is None:
        raise click.ClickException(f"Backup failed; see {config.files.log_file} for details.")
    console.print(f"[green]Backup written to {package}.[/green]")


@cli.command("backups")
@click.option("--json", "json_output", is_flag=True, help="Emit the backup list as JSON.")
@click.pass_context
def list_backups(ctx: click.Context, json_output: bool) -> None:
    """List backup packages, newest first."""
    manager, config = _load_config(ctx)
    infos = BackupManager(config, manager).list_backups()

    if json_output:
        console.print_json(
            data={
                "backups": [
                    {
                        "path": info.path.as_posix(),
                        "created_at": info.created_at.isoformat(),
                        "size_bytes": info.size_bytes,
                        "size": info.size_display,
                    }
                    for info in infos
                ]
            }
        )
        return

    if not infos:
        console.print(f"[yellow]No backups found in {config.folders.backups}.[/yellow]")
        return
    console.print(_backup_table(infos))


@cli.command()
@click.argument("package", required=False, type=click.Path(dir_okay=False, path_type=Path))
@click.option("--yes", is_flag=True, help="Restore without asking for confirmation.")
@click.pass_context
def restore(ctx: click.Context, package: Path | None, yes: bool) -> None:
    """Restore configuration and notes from PACKAGE, or pick one interactively."""
    manager, config = _load_config(ctx)
    configure_logging(config, console=console, log_to_console=False)
    backups = BackupManager(config, manager)

    if package is None:
        infos = backups.list_backups()
        if not infos:
            console.print(f"[yellow]No backups found in {config.folders.backups}.[/yellow]")
            return
        console.print(_backup_table(infos))
        choice = click.prompt(
            "Backup to restore (0 to cancel)",
            type=click.IntRange(0, len(infos)),
            default=1,
        )
        if choice == 0:
            console.print("[yellow]Restore cancelled.[/yellow]")
            return
        package = infos[choice - 1].path

    if not yes and not click.confirm(
        f"Restore {package.name}? Files with the same names will be overwritten.", default=True
    ):
        console.print("[yellow]Restore cancelled.[/yellow]")
        return

    try:
        result = backups.restore(package)
    except BackupNotFoundError as exc:
        raise click.ClickException(str(exc)) from exc

    if not result.success:
        raise click.ClickException(f"Restore failed: {result.error}")

    note = " including configuration" if result.config_restored else ""
    console.print(
        f"[green]Restored {len(result.restored_files)} file(s){note} from {package.name}.[/green]"
    )


@cli.group()
def config() -> None:
    """Manage the SnipWatch configuration file."""


@config.command("view")
@click.option("--no-env", is_flag=True, help="Ignore environment overrides when displaying output.")
@click.pass_context
def config_view(ctx: click.Context, no_env: bool) -> None:
    """Display the effective configuration after applying precedence rules."""
    _, loaded = _load_config(ctx, include_env=not no_env)
    yaml_text = yaml.safe_dump(_masked(loaded), sort_keys=False)
    console.print(Syntax(yaml_text, "yaml", word_wrap=True))


@config.command("set")
@click.argument("key")
@click.option("--value", required=True, help="Value to assign to KEY.")
@click.pass_context
def config_set(ctx: click.Context, key: str, value: str) -> None:
    """Persist a configuration value expressed as a dotted KEY.

    Args:
        ctx: Click context carrying the ``--config`` option.
        key: Dotted path describing the configuration field to update.
        value: YAML-literal value to write into the configuration file.

    Raises:
        click.ClickException: If parsing, assignment, or validation fails.
    """
    manager = _manager(ctx)
    manager.ensure_exists()

    before = manager.read_text().splitlines()
    try:
        parsed_value = yaml.safe_load(value)
    except yaml.YAMLError as exc:
        raise click.ClickException(f"Unable to parse value: {exc}") from exc

    try:
        manager.update(key, parsed_value)
    except ConfigError as exc:
        raise click.ClickException(str(exc)) from exc

    after = manager.read_text().splitlines()
    diff = list(
        difflib.unified_diff(
            _without_stamp(before),
            _without_stamp(after),
            fromfile="config.yaml (before)",
            tofile="config.yaml (after)",
            lineterm="",
        )
    )

    if not diff:
        console.print("[yellow]No changes applied; value already up to date.[/yellow]")
        return

    console.print(Syntax("\n".join(diff), "diff", word_wrap=False))
    console.print(f"[green]Updated {key}.[/green]")


@config.command("edit")
@click.pass_context
def config_edit(ctx: click.Context) -> None:
    """Edit the configuration file in $EDITOR; the result is saved only if it validates."""
    manager = _manager(ctx)
    manager.ensure_exists()

    before = manager.read_text()
    edited = click.edit(before, extension=".yaml")
    if edited is None or edited == before:
        console.print("[yellow]Configuration left unchanged.[/yellow]")
        return

    try:
        data = manager.parse_document(edited)
    except ConfigError as exc:
        raise click.ClickException(f"Edit rejected: {exc}") from exc

    manager.save(data)
    console.print(f"[green]Saved {manager.config_path}.[/green]")


def main() -> None:
    """Invoke the Click CLI as the console script entry point."""
    cli()


if __name__ == "__main__":
    main()
