"""Command line interface for confhistory."""

from __future__ import annotations

import threading
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Iterator

import click
import yaml
from rich.console import Console
from rich.syntax import Syntax
from rich.table import Table

from confhistory.archive import ArchiveMetadata
from confhistory.config import ConfigError, ConfigManager, HistoryConfig
from confhistory.errors import HistoryError
from confhistory.logs import configure_logging
from confhistory.service import HistoryService

console = Console()


def _handle_cli_error(
    message: str,
    *,
    code: str,
    json_output: bool,
    original: Exception | None = None,
) -> None:
    """Emit a standardized error and terminate the command.

    Args:
        message: Human-readable error message.
        code: Machine-readable error identifier.
        json_output: Indicates whether JSON mode is active.
        original: Original exception for chaining when not using JSON.

    Raises:
        SystemExit: When emitting JSON output to terminate the command.
        click.ClickException: For non-JSON flows to surface the error.
    """
    if json_output:
        console.print_json(data={"error": {"code": code, "message": message}})
        raise SystemExit(1)
    raise click.ClickException(message) from original


def _load_config(ctx: click.Context) -> HistoryConfig:
    manager = ConfigManager(ctx.obj.get("config_path"))
    try:
        config = manager.load()
    except ConfigError as exc:
        _handle_cli_error(
            str(exc), code=exc.kind, json_output=ctx.obj.get("json", False), original=exc
        )
        raise
    configure_logging(config.logging, level_override=ctx.obj.get("log_level"))
    return config


@contextmanager
def _service(ctx: click.Context, *, json_output: bool = False) -> Iterator[HistoryService]:
    """Yield a started service (no watch, no backfill) and shut it down afterwards."""
    ctx.obj["json"] = json_output
    service = HistoryService.from_config(_load_config(ctx))
    try:
        service.start(backfill=False, watch=False)
    except HistoryError as exc:
        _handle_cli_error(str(exc), code=exc.kind, json_output=json_output, original=exc)
    try:
        yield service
    except HistoryError as exc:
        _handle_cli_error(str(exc), code=exc.kind, json_output=json_output, original=exc)
    finally:
        service.stop()


def _metadata_payload(metadata: ArchiveMetadata) -> dict[str, Any]:
    return metadata.model_dump(mode="json", by_alias=True)


def _format_size(size: int) -> str:
    if size < 1024:
        return f"{size} B"
    if size < 1024 * 1024:
        return f"{size / 1024:.1f} KB"
    return f"{size / (1024 * 1024):.1f} MB"


@click.group(context_settings={"help_option_names": ["-h", "--help"]})
@click.version_option(package_name="confhistory")
@click.option(
    "--config",
    "config_path",
    type=click.Path(dir_okay=False, path_type=Path),
    help="Settings file (defaults to ~/.confhistory/config.yaml).",
)
@click.option("--log-level", type=str, help="Override the configured log level.")
@click.pass_context
def cli(ctx: click.Context, config_path: Path | None, log_level: str | None) -> None:
    """Keep a history of configuration files and restore earlier versions."""
    ctx.ensure_object(dict)
    ctx.obj["config_path"] = config_path
    ctx.obj["log_level"] = log_level


@cli.command()
@click.option("--no-backfill", is_flag=True, help="Skip the initial capture of every target.")
@click.pass_context
def watch(ctx: click.Context, no_backfill: bool) -> None:
    """Capture configuration changes as they happen until interrupted."""
    service = HistoryService.from_config(_load_config(ctx))
    try:
        service.start(backfill=not no_backfill, watch=True)
    except HistoryError as exc:
        _handle_cli_error(str(exc), code=exc.kind, json_output=False, original=exc)

    console.print(
        f"[cyan]Watching {len(service.registry.targets)} configs. Press Ctrl+C to stop.[/cyan]"
    )
    stopped = threading.Event()
    try:
        while not stopped.wait(1.0):
            pass
    except KeyboardInterrupt:
        console.print("[yellow]Stopping; finishing queued captures.[/yellow]")
    finally:
        service.stop()


@cli.command()
@click.option("--json", "json_output", is_flag=True, help="Emit the capture summary as JSON.")
@click.pass_context
def capture(ctx: click.Context, json_output: bool) -> None:
    """Capture every configured target once."""
    with _service(ctx, json_output=json_output) as service:
        summary = service.capture_all()
        service.wait_idle()
        if json_output:
            console.print_json(
                data={
                    "attempted": summary.attempted,
                    "enqueued": summary.enqueued,
                    "failures": summary.failures,
                }
            )
            return
        console.print(
            f"[green]Capture summary: targets={len(summary.attempted)}, "
            f"versions={summary.enqueued}, failures={len(summary.failures)}.[/green]"
        )
        for group, message in summary.failures.items():
            console.print(f"[red]{group}: {message}[/red]")


@cli.command("list")
@click.option("--json", "json_output", is_flag=True, help="Emit metadata as JSON.")
@click.pass_context
def list_configs(ctx: click.Context, json_output: bool) -> None:
    """List archived configs sorted by display name."""
    with _service(ctx, json_output=json_output) as service:
        entries = service.list_configs()
        if json_output:
            console.print_json(data=[_metadata_payload(entry) for entry in entries])
            return
        if not entries:
            console.print("[yellow]No archived configs yet.[/yellow]")
            return
        table = Table(title="Archived configs")
        for column in ("Name", "Group", "ID", "Type", "Versions", "Size", "Last captured"):
            table.add_column(column)
        for entry in entries:
            table.add_row(
                entry.display_name,
                entry.group,
                entry.id,
                entry.backup_type,
                str(entry.backup_count),
                _format_size(entry.backups_size),
                entry.last_captured.isoformat(),
            )
        console.print(table)


@cli.command()
@click.argument("group")
@click.argument("item_id", metavar="ID")
@click.option("--json", "json_output", is_flag=True, help="Emit versions as JSON.")
@click.pass_context
def versions(ctx: click.Context, group: str, item_id: str, json_output: bool) -> None:
    """List versions of GROUP/ID, newest first."""
    with _service(ctx, json_output=json_output) as service:
        found = service.list_versions(group, item_id)
        if json_output:
            console.print_json(data=[version.model_dump(mode="json") for version in found])
            return
        table = Table(title=f"{group}/{item_id}")
        table.add_column("Filename")
        table.add_column("Date")
        table.add_column("Size")
        for version in found:
            table.add_row(version.filename, version.date.isoformat(), _format_size(version.size))
        console.print(table)


@cli.command()
@click.argument("group")
@click.argument("item_id", metavar="ID")
@click.argument("filename")
@click.pass_context
def show(ctx: click.Context, group: str, item_id: str, filename: str) -> None:
    """Print the raw content of one version."""
    with _service(ctx) as service:
        click.echo(service.read_version(group, item_id, filename), nl=False)


@cli.command()
@click.argument("group")
@click.argument("item_id", metavar="ID")
@click.argument("left")
@click.argument("right")
@click.pass_context
def diff(ctx: click.Context, group: str, item_id: str, left: str, right: str) -> None:
    """Show a unified diff between two versions."""
    with _service(ctx) as service:
        text = service.compare_versions(group, item_id, left, right)
        if not text:
            console.print("[yellow]Versions are identical.[/yellow]")
            return
        console.print(Syntax(text, "diff", word_wrap=False))


@cli.command()
@click.argument("group")
@click.argument("item_id", metavar="ID")
@click.argument("filename")
@click.option("--json", "json_output", is_flag=True, help="Emit the result as JSON.")
@click.pass_context
def restore(ctx: click.Context, group: str, item_id: str, filename: str, json_output: bool) -> None:
    """Restore one version onto the live configuration."""
    with _service(ctx, json_output=json_output) as service:
        path = service.restore(group, item_id, filename)
        if json_output:
            console.print_json(data={"success": True, "path": str(path)})
            return
        console.print(f"[green]Successfully restored backup to {path}[/green]")


@cli.command()
@click.argument("group")
@click.argument("item_id", metavar="ID")
@click.argument("filename", required=False)
@click.option("--json", "json_output", is_flag=True, help="Emit the result as JSON.")
@click.pass_context
def delete(
    ctx: click.Context,
    group: str,
    item_id: str,
    filename: str | None,
    json_output: bool,
) -> None:
    """Delete FILENAME from GROUP/ID, or every version when FILENAME is omitted."""
    with _service(ctx, json_output=json_output) as service:
        if filename is None:
            service.delete_all(group, item_id)
            if json_output:
                console.print_json(data={"status": "all backups deleted"})
            else:
                console.print(f"[green]Deleted all backups of {group}/{item_id}.[/green]")
            return

        metadata = service.delete_version(group, item_id, filename)
        if json_output:
            console.print_json(
                data={"metadata": _metadata_payload(metadata) if metadata is not None else None}
            )
        elif metadata is None:
            console.print(f"[green]Deleted {filename}; no versions of {group}/{item_id} remain.[/green]")
        else:
            console.print(
                f"[green]Deleted {filename}; {metadata.backup_count} versions of "
                f"{group}/{item_id} remain.[/green]"
            )


@cli.group()
def config() -> None:
    """Inspect confhistory settings."""


@config.command("view")
@click.pass_context
def config_view(ctx: click.Context) -> None:
    """Display the effective settings after applying precedence rules."""
    settings = _load_config(ctx)
    yaml_text = yaml.safe_dump(settings.model_dump(mode="python"), sort_keys=False)
    console.print(Syntax(yaml_text, "yaml", word_wrap=True))


def main() -> None:
    """Invoke the Click CLI as the console script entry point."""
    cli()


if __name__ == "__main__":
    main()
