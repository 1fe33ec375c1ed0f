"""Command line interface for Borgy."""

from __future__ import annotations

import difflib
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Callable, Iterator

import click
import yaml
from click.core import ParameterSource
from pydantic import ValidationError
from rich.console import Console
from rich.syntax import Syntax
from rich.table import Table

from borgy.config import BorgyConfig, ConfigError, ConfigManager, resolve_with_precedence
from borgy.logs import configure_logging
from borgy.organization import (
    ApplyResult,
    OperationPlan,
    OrganizationSuggestion,
    OrganizerService,
    RevertResult,
)
from borgy.state import HistoryBatch, StateError
from borgy.store import ObjectStore, StoreError
from borgy.store.minio_store import MinioObjectStore
from borgy.upload import BulkUploader, DirectoryScanner

console = Console()


def build_store(config: BorgyConfig) -> ObjectStore:
    """Return the object store described by ``config.store``."""
    return MinioObjectStore.from_settings(config.store)


def build_service(config: BorgyConfig) -> OrganizerService:
    """Return an organizer service wired from ``config``."""
    return OrganizerService.from_config(config, store=build_store(config))


def _handle_cli_error(
    message: str,
    *,
    code: str,
    json_output: bool,
    details: Any | None = None,
    original: Exception | None = None,
) -> None:
    """Emit a standardized error and terminate the command.

    Raises:
        SystemExit: When emitting JSON output.
        click.ClickException: For non-JSON flows.
    """
    if json_output:
        payload: dict[str, Any] = {"error": {"code": code, "message": message}}
        if details is not None:
            payload["error"]["details"] = details
        console.print_json(data=payload)
        raise SystemExit(1)

    if isinstance(original, click.ClickException):
        raise original
    raise click.ClickException(message) from original


@contextmanager
def _cli_errors(*, json_output: bool, action: str) -> Iterator[None]:
    """Translate library exceptions raised inside the block into CLI errors."""
    try:
        yield
    except ConfigError as exc:
        _handle_cli_error(str(exc), code="config_error", json_output=json_output, original=exc)
    except StoreError as exc:
        _handle_cli_error(
            f"Object store error while {action}: {exc}",
            code="store_error",
            json_output=json_output,
            details={"exception": type(exc).__name__},
            original=exc,
        )
    except StateError as exc:
        _handle_cli_error(
            f"Organization history error while {action}: {exc}",
            code="history_error",
            json_output=json_output,
            details={"exception": type(exc).__name__},
            original=exc,
        )
    except click.ClickException as exc:
        _handle_cli_error(str(exc), code="cli_error", json_output=json_output, original=exc)
    except Exception as exc:
        _handle_cli_error(
            f"Unexpected error while {action}: {exc}",
            code="internal_error",
            json_output=json_output,
            details={"exception": type(exc).__name__},
            original=exc,
        )


def _emit_message(message: Any, *, mode: str, quiet: bool, summary_only: bool) -> None:
    """Conditionally print CLI output according to quiet/summary settings.

    Args:
        message: Renderable or string to emit.
        mode: Output mode identifier (`detail`, `summary`, `warning`, or `error`).
        quiet: Whether quiet mode is active.
        summary_only: Whether only summary lines should be emitted.
    """
    if quiet and mode != "error":
        return
    if summary_only and mode not in {"summary", "warning", "error"}:
        return
    console.print(message)


def _format_summary_line(command: str, bucket: str, metrics: dict[str, Any]) -> str:
    parts = ", ".join(f"{key}={value}" for key, value in metrics.items())
    return f"[green]{command} summary for bucket {bucket}: {parts}.[/green]"


def _format_size(size: int) -> str:
    value = float(size)
    for unit in ("B", "KB", "MB", "GB"):
        if value < 1024 or unit == "GB":
            return f"{value:.0f} {unit}" if unit == "B" else f"{value:.1f} {unit}"
        value /= 1024
    return f"{size} B"


def _output_options(func: Callable[..., Any]) -> Callable[..., Any]:
    """Attach the shared --json/--summary/--quiet flags to a command."""
    func = click.option("--quiet", is_flag=True, help="Suppress non-error output.")(func)
    func = click.option("--summary", "summary_mode", is_flag=True, help="Only emit summary lines.")(
        func
    )
    func = click.option("--json", "json_output", is_flag=True, help="Emit JSON output.")(func)
    return func


def _load_config(ctx: click.Context) -> BorgyConfig:
    """Load configuration and set up logging for the invoked command."""
    manager = ConfigManager()
    manager.ensure_exists()
    config = manager.load()
    verbose = (ctx.find_root().obj or {}).get("verbose", 0)
    level = {0: None, 1: "INFO"}.get(verbose, "DEBUG")
    configure_logging(config.logging, level_override=level)
    return config


def _resolve_modes(
    ctx: click.Context,
    config: BorgyConfig,
    *,
    quiet: bool,
    summary_mode: bool,
    json_output: bool,
) -> tuple[bool, bool]:
    """Combine explicit flags with configured defaults.

    Returns:
        tuple[bool, bool]: Effective quiet and summary-only flags.

    Raises:
        click.ClickException: If the requested modes are incompatible.
    """
    explicit_quiet = ctx.get_parameter_source("quiet") == ParameterSource.COMMANDLINE
    explicit_summary = ctx.get_parameter_source("summary_mode") == ParameterSource.COMMANDLINE

    quiet_enabled = quiet if explicit_quiet else config.cli.quiet_default
    summary_only = summary_mode if explicit_summary else config.cli.summary_default

    if json_output:
        if explicit_quiet and quiet_enabled:
            raise click.ClickException("--json cannot be combined with --quiet.")
        if explicit_summary and summary_only:
            raise click.ClickException("--json cannot be combined with --summary.")
        return False, False

    if quiet_enabled and summary_only:
        raise click.ClickException(
            "Quiet and summary modes cannot both be enabled. Adjust CLI defaults or flags."
        )
    return quiet_enabled, summary_only


def _suggestion_table(suggestion: OrganizationSuggestion) -> Table:
    table = Table(title="Suggested organization")
    table.add_column("Object")
    table.add_column("Folder", style="cyan")
    table.add_column("Original folder", style="dim")
    for entry in suggestion.entries:
        table.add_row(entry.object_key, entry.suggested_folder, entry.original_folder or "-")
    return table


def _plan_table(plan: OperationPlan) -> Table:
    table = Table(title="Planned moves")
    table.add_column("Source")
    table.add_column("Destination", style="cyan")
    table.add_column("Conflict", style="yellow")
    for move in plan.moves:
        table.add_row(move.source, move.destination, move.conflict_strategy or "")
    return table


def _apply_payload(result: ApplyResult) -> dict[str, Any]:
    payload = result.model_dump(mode="json", by_alias=True)
    payload["success"] = result.success
    return payload


def _revert_payload(result: RevertResult) -> dict[str, Any]:
    payload = result.model_dump(mode="json", by_alias=True)
    payload["success"] = result.success
    return payload


def _format_batch(batch: HistoryBatch) -> str:
    kinds = sorted({action.kind for action in batch.actions})
    return f"[{batch.batch_id}] {len(batch.actions)} move(s) ({', '.join(kinds) or 'empty'})"


def _emit_apply_result(
    result: ApplyResult,
    *,
    command: str,
    bucket: str,
    json_output: bool,
    quiet: bool,
    summary_only: bool,
) -> None:
    """Render an apply/move result and exit non-zero when it failed."""
    if json_output:
        console.print_json(data=_apply_payload(result))
        if not result.success:
            raise SystemExit(1)
        return

    for action in result.actions:
        _emit_message(
            f"  {action.original_path} -> {action.new_path}",
            mode="detail",
            quiet=quiet,
            summary_only=summary_only,
        )
    for note in result.notes:
        _emit_message(
            f"[yellow]{note}[/yellow]", mode="warning", quiet=quiet, summary_only=summary_only
        )
    for key, message in result.failures.items():
        _emit_message(
            f"[red]  {key}: {message}[/red]", mode="error", quiet=quiet, summary_only=summary_only
        )
    if result.history_error:
        _emit_message(
            f"[red]History was not updated: {result.history_error}[/red]",
            mode="error",
            quiet=quiet,
            summary_only=summary_only,
        )

    metrics = {
        "moved": len(result.actions),
        "failed": len(result.failures),
        "batch": result.batch_id or "none",
    }
    _emit_message(
        _format_summary_line(command, bucket, metrics),
        mode="summary",
        quiet=quiet,
        summary_only=summary_only,
    )
    if not result.success:
        raise click.ClickException(f"{command} finished with errors; see messages above.")


@click.group(context_settings={"help_option_names": ["-h", "--help"]})
@click.version_option(package_name="borgy")
@click.option("-v", "--verbose", count=True, help="Increase log verbosity (-v info, -vv debug).")
@click.pass_context
def cli(ctx: click.Context, verbose: int) -> None:
    """Borgy organizes documents in an object-store bucket into topic folders."""
    ctx.ensure_object(dict)
    ctx.obj["verbose"] = verbose


@cli.command("ls")
@_output_options
@click.pass_context
def list_command(ctx: click.Context, json_output: bool, summary_mode: bool, quiet: bool) -> None:
    """List objects that have not been organized yet."""
    with _cli_errors(json_output=json_output, action="listing objects"):
        config = _load_config(ctx)
        quiet_enabled, summary_only = _resolve_modes(
            ctx, config, quiet=quiet, summary_mode=summary_mode, json_output=json_output
        )
        records = build_service(config).list_unorganized()

        if json_output:
            console.print_json(data=[record.model_dump(mode="json") for record in records])
            return

        if records:
            table = Table(title="Unorganized objects")
            table.add_column("Key")
            table.add_column("Size", justify="right")
            table.add_column("Modified")
            table.add_column("Type", style="dim")
            for record in records:
                modified = record.last_modified.isoformat() if record.last_modified else "-"
                table.add_row(record.name, _format_size(record.size), modified, record.file_type)
            _emit_message(table, mode="detail", quiet=quiet_enabled, summary_only=summary_only)
        _emit_message(
            _format_summary_line("Listing", config.store.bucket, {"unorganized": len(records)}),
            mode="summary",
            quiet=quiet_enabled,
            summary_only=summary_only,
        )


@cli.command()
@click.option(
    "--output",
    type=click.Path(dir_okay=False, path_type=Path),
    help="Write the suggestion as JSON so it can be edited and passed to `apply`.",
)
@_output_options
@click.pass_context
def suggest(
    ctx: click.Context,
    output: Path | None,
    json_output: bool,
    summary_mode: bool,
    quiet: bool,
) -> None:
    """Propose a folder for every unorganized object."""
    with _cli_errors(json_output=json_output, action="suggesting an organization"):
        config = _load_config(ctx)
        quiet_enabled, summary_only = _resolve_modes(
            ctx, config, quiet=quiet, summary_mode=summary_mode, json_output=json_output
        )
        service = build_service(config)
        suggestion = service.suggest_organization(service.list_unorganized())

        if output is not None:
            output.parent.mkdir(parents=True, exist_ok=True)
            output.write_text(suggestion.model_dump_json(indent=2), encoding="utf-8")

        if json_output:
            console.print_json(data=suggestion.model_dump(mode="json"))
            return

        if suggestion.entries:
            _emit_message(
                _suggestion_table(suggestion),
                mode="detail",
                quiet=quiet_enabled,
                summary_only=summary_only,
            )
        if output is not None:
            _emit_message(
                f"[cyan]Suggestion written to {output}.[/cyan]",
                mode="detail",
                quiet=quiet_enabled,
                summary_only=summary_only,
            )
        metrics = {"files": len(suggestion.entries), "folders": len(suggestion.distinct_folders)}
        _emit_message(
            _format_summary_line("Suggestion", config.store.bucket, metrics),
            mode="summary",
            quiet=quiet_enabled,
            summary_only=summary_only,
        )


@cli.command()
@click.argument(
    "suggestion_file",
    required=False,
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
)
@click.option("--dry-run", is_flag=True, help="Show the planned moves without changing the bucket.")
@_output_options
@click.pass_context
def apply(
    ctx: click.Context,
    suggestion_file: Path | None,
    dry_run: bool,
    json_output: bool,
    summary_mode: bool,
    quiet: bool,
) -> None:
    """Move objects into their folders.

    Uses SUGGESTION_FILE (as written by `suggest --output`, possibly edited)
    when given; otherwise a fresh suggestion is generated and applied.
    """
    with _cli_errors(json_output=json_output, action="applying the organization"):
        config = _load_config(ctx)
        quiet_enabled, summary_only = _resolve_modes(
            ctx, config, quiet=quiet, summary_mode=summary_mode, json_output=json_output
        )
        service = build_service(config)

        if suggestion_file is not None:
            try:
                suggestion = OrganizationSuggestion.model_validate_json(
                    suggestion_file.read_text(encoding="utf-8")
                )
            except ValidationError as exc:
                raise click.ClickException(
                    f"Invalid suggestion file {suggestion_file}: {exc}"
                ) from exc
        else:
            suggestion = service.suggest_organization(service.list_unorganized())

        if dry_run:
            plan = service.plan_organization(suggestion)
            if json_output:
                payload = plan.model_dump(mode="json")
                payload["dry_run"] = True
                console.print_json(data=payload)
                return
            _emit_message(
                "[yellow]Dry run: no objects were moved.[/yellow]",
                mode="warning",
                quiet=quiet_enabled,
                summary_only=summary_only,
            )
            if plan.moves:
                _emit_message(
                    _plan_table(plan), mode="detail", quiet=quiet_enabled, summary_only=summary_only
                )
            for note in plan.notes:
                _emit_message(
                    f"[yellow]{note}[/yellow]",
                    mode="warning",
                    quiet=quiet_enabled,
                    summary_only=summary_only,
                )
            metrics = {"dry_run": True, "moves": len(plan.moves), "skipped": len(plan.skipped)}
            _emit_message(
                _format_summary_line("Organization", config.store.bucket, metrics),
                mode="summary",
                quiet=quiet_enabled,
                summary_only=summary_only,
            )
            return

        result = service.apply_organization(suggestion)
        _emit_apply_result(
            result,
            command="Organization",
            bucket=config.store.bucket,
            json_output=json_output,
            quiet=quiet_enabled,
            summary_only=summary_only,
        )


@cli.command()
@click.argument("object_key")
@click.argument("folder")
@_output_options
@click.pass_context
def mv(
    ctx: click.Context,
    object_key: str,
    folder: str,
    json_output: bool,
    summary_mode: bool,
    quiet: bool,
) -> None:
    """Move OBJECT_KEY into FOLDER under the organized prefix."""
    with _cli_errors(json_output=json_output, action=f"moving {object_key}"):
        config = _load_config(ctx)
        quiet_enabled, summary_only = _resolve_modes(
            ctx, config, quiet=quiet, summary_mode=summary_mode, json_output=json_output
        )
        result = build_service(config).move_file(object_key, folder)
        _emit_apply_result(
            result,
            command="Move",
            bucket=config.store.bucket,
            json_output=json_output,
            quiet=quiet_enabled,
            summary_only=summary_only,
        )


@cli.command()
@_output_options
@click.pass_context
def undo(ctx: click.Context, json_output: bool, summary_mode: bool, quiet: bool) -> None:
    """Revert the most recently applied batch."""
    with _cli_errors(json_output=json_output, action="reverting the last organization"):
        config = _load_config(ctx)
        quiet_enabled, summary_only = _resolve_modes(
            ctx, config, quiet=quiet, summary_mode=summary_mode, json_output=json_output
        )
        result = build_service(config).revert_last_organization()

        if json_output:
            console.print_json(data=_revert_payload(result))
            if not result.success:
                raise SystemExit(1)
            return

        if result.nothing_to_revert:
            _emit_message(
                "[yellow]Nothing to revert.[/yellow]",
                mode="warning",
                quiet=quiet_enabled,
                summary_only=summary_only,
            )
            return

        for action in result.restored:
            _emit_message(
                f"  {action.new_path} -> {action.original_path}",
                mode="detail",
                quiet=quiet_enabled,
                summary_only=summary_only,
            )
        for key, message in result.failures.items():
            _emit_message(
                f"[red]  {key}: {message}[/red]",
                mode="error",
                quiet=quiet_enabled,
                summary_only=summary_only,
            )
        metrics = {
            "batch": result.batch_id,
            "restored": len(result.restored),
            "failed": len(result.failures),
        }
        _emit_message(
            _format_summary_line("Undo", config.store.bucket, metrics),
            mode="summary",
            quiet=quiet_enabled,
            summary_only=summary_only,
        )
        if not result.success:
            raise click.ClickException(
                "Revert finished with errors; the batch was removed from history."
            )


@cli.command()
@click.option("--limit", type=int, help="Number of batches to show (newest first).")
@_output_options
@click.pass_context
def history(
    ctx: click.Context,
    limit: int | None,
    json_output: bool,
    summary_mode: bool,
    quiet: bool,
) -> None:
    """Show recently applied batches."""
    with _cli_errors(json_output=json_output, action="reading history"):
        config = _load_config(ctx)
        quiet_enabled, summary_only = _resolve_modes(
            ctx, config, quiet=quiet, summary_mode=summary_mode, json_output=json_output
        )
        batches = build_service(config).history(
            limit if limit is not None else config.cli.history_limit
        )

        if json_output:
            console.print_json(
                data=[batch.model_dump(mode="json", by_alias=True) for batch in batches]
            )
            return

        for batch in batches:
            _emit_message(
                _format_batch(batch), mode="detail", quiet=quiet_enabled, summary_only=summary_only
            )
            for action in batch.actions:
                _emit_message(
                    f"    {action.original_path} -> {action.new_path}",
                    mode="detail",
                    quiet=quiet_enabled,
                    summary_only=summary_only,
                )
        _emit_message(
            _format_summary_line("History", config.store.bucket, {"batches": len(batches)}),
            mode="summary",
            quiet=quiet_enabled,
            summary_only=summary_only,
        )


@cli.command()
@click.argument("path", type=click.Path(exists=True, path_type=Path))
@click.option("-r", "--recursive", is_flag=True, help="Include all subdirectories.")
@click.option("--prefix", type=str, help="Key prefix to upload under.")
@_output_options
@click.pass_context
def upload(
    ctx: click.Context,
    path: Path,
    recursive: bool,
    prefix: str | None,
    json_output: bool,
    summary_mode: bool,
    quiet: bool,
) -> None:
    """Upload PATH (a file or directory) into the bucket, keeping relative paths as keys."""
    with _cli_errors(json_output=json_output, action=f"uploading {path}"):
        config = _load_config(ctx)
        quiet_enabled, summary_only = _resolve_modes(
            ctx, config, quiet=quiet, summary_mode=summary_mode, json_output=json_output
        )
        store = build_store(config)
        if isinstance(store, MinioObjectStore) and store.ensure_bucket():
            _emit_message(
                f"[cyan]Created bucket {store.bucket}.[/cyan]",
                mode="detail",
                quiet=quiet_enabled,
                summary_only=summary_only,
            )

        scanner = DirectoryScanner(recursive=recursive, include_hidden=config.upload.include_hidden)
        key_prefix = prefix if prefix is not None else config.upload.key_prefix
        result = BulkUploader(store, scanner).upload(path, key_prefix=key_prefix)

        if json_output:
            console.print_json(
                data={
                    "uploaded": result.uploaded,
                    "errors": result.errors,
                    "bytes": result.bytes_written,
                }
            )
            if result.errors:
                raise SystemExit(1)
            return

        for key in result.uploaded:
            _emit_message(f"  {key}", mode="detail", quiet=quiet_enabled, summary_only=summary_only)
        for source, message in result.errors.items():
            _emit_message(
                f"[red]  {source}: {message}[/red]",
                mode="error",
                quiet=quiet_enabled,
                summary_only=summary_only,
            )
        metrics = {
            "uploaded": len(result.uploaded),
            "errors": len(result.errors),
            "size": _format_size(result.bytes_written),
        }
        _emit_message(
            _format_summary_line("Upload", config.store.bucket, metrics),
            mode="summary",
            quiet=quiet_enabled,
            summary_only=summary_only,
        )
        if result.errors:
            raise click.ClickException(f"{len(result.errors)} file(s) failed to upload.")


@cli.group()
def config() -> None:
    """Manage Borgy configuration files and overrides."""


@config.command("view")
@click.option("--no-env", is_flag=True, help="Ignore environment overrides when displaying output.")
def config_view(no_env: bool) -> None:
    """Display the effective configuration after applying precedence rules."""
    manager = ConfigManager()
    try:
        manager.ensure_exists()
        effective = manager.load(include_env=not no_env)
    except ConfigError as exc:
        raise click.ClickException(str(exc)) from exc

    yaml_text = yaml.safe_dump(effective.model_dump(mode="python"), sort_keys=False)
    console.print(Syntax(yaml_text, "yaml", word_wrap=True))


@config.command("set")
@click.argument("key")
@click.option("--value", required=True, help="YAML literal to assign to KEY.")
def config_set(key: str, value: str) -> None:
    """Persist a configuration value expressed as a dotted KEY."""
    manager = ConfigManager()
    try:
        manager.ensure_exists()
        file_data = manager.load_file_overrides()
    except ConfigError as exc:
        raise click.ClickException(str(exc)) from exc

    segments = [segment.strip() for segment in key.split(".") if segment.strip()]
    if not segments:
        raise click.ClickException("KEY must specify a dotted path such as 'llm.model'.")
    try:
        parsed_value = yaml.safe_load(value)
    except yaml.YAMLError as exc:
        raise click.ClickException(f"Unable to parse value: {exc}") from exc

    node = file_data
    for segment in segments[:-1]:
        child = node.setdefault(segment, {})
        if not isinstance(child, dict):
            raise click.ClickException(f"Cannot assign into '{segment}'; it is not a mapping.")
        node = child
    node[segments[-1]] = parsed_value

    try:
        resolve_with_precedence(defaults=BorgyConfig(), file_overrides=file_data)
    except ConfigError as exc:
        raise click.ClickException(str(exc)) from exc

    before = manager.read_text().splitlines()
    manager.save(file_data)
    after = manager.read_text().splitlines()
    diff = [
        line
        for line in difflib.unified_diff(
            before,
            after,
            fromfile="config.yaml (before)",
            tofile="config.yaml (after)",
            lineterm="",
        )
        if not line.startswith(("-# Last updated", "+# Last updated"))
    ]
    if len(diff) > 2:
        console.print(Syntax("\n".join(diff), "diff", word_wrap=False))
    console.print(f"[green]Updated {'.'.join(segments)}.[/green]")


@config.command("edit")
def config_edit() -> None:
    """Open the configuration file in an editor and validate the result."""
    manager = ConfigManager()
    manager.ensure_exists()

    original = manager.read_text()
    edited = click.edit(original, extension=".yaml")
    if edited is None or edited == original:
        console.print("[yellow]No changes applied.[/yellow]")
        return

    try:
        parsed = yaml.safe_load(edited) or {}
    except yaml.YAMLError as exc:
        raise click.ClickException(f"Invalid YAML: {exc}") from exc
    if not isinstance(parsed, dict):
        raise click.ClickException("Configuration file must contain a top-level mapping.")

    try:
        resolve_with_precedence(defaults=BorgyConfig(), file_overrides=parsed)
    except ConfigError as exc:
        raise click.ClickException(str(exc)) from exc

    manager.save(parsed)
    console.print("[green]Configuration updated successfully.[/green]")


def main() -> None:
    """Invoke the Click CLI as the console script entry point."""
    cli()


if __name__ == "__main__":
    main()
