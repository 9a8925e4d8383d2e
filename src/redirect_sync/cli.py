"""
Redirect Sync CLI - Command Line Interface.

Commands:
    import  Import redirects from a CSV file (optionally removing stale ones)
    delete  Delete the redirects listed in a CSV file
    status  Show unfinished runs that will resume
    config  Manage configuration
"""

from __future__ import annotations

import asyncio
from pathlib import Path
from typing import Any, Awaitable, Callable, Optional

import typer
from pydantic import SecretStr
from rich.console import Console
from rich.table import Table

from redirect_sync import __version__
from redirect_sync.config import Limits, Settings, load_settings
from redirect_sync.connectors.rewriter_client import create_rewriter_client
from redirect_sync.core.engine import SyncEngine
from redirect_sync.core.state import CheckpointStore
from redirect_sync.errors import (
    ReadError,
    ReconciliationError,
    RemoteError,
    SyncInterrupted,
    ValidationError,
)
from redirect_sync.utils.display import (
    ProgressDisplay,
    print_error,
    print_info,
    print_success,
    print_summary,
    print_warning,
)
from redirect_sync.utils.logger import configure_from_settings

EXIT_INTERRUPTED = 130

app = typer.Typer(
    name="redirect-sync",
    help="Resumable bulk import and delete of URL redirects.",
    add_completion=True,
    rich_markup_mode="rich",
)

console = Console()


def version_callback(value: bool) -> None:
    """Print version and exit."""
    if value:
        console.print(f"[bold cyan]redirect-sync[/bold cyan] version {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: bool = typer.Option(
        False,
        "--version",
        "-v",
        callback=version_callback,
        is_eager=True,
        help="Show version and exit.",
    ),
) -> None:
    """Redirect Sync - resumable bulk redirect import/delete."""


# Options shared by the commands
ConfigOption = typer.Option(None, "--config", "-c", help="Path to config file.", exists=True)
AccountOption = typer.Option(None, "--account", "-a", help="Account name (overrides config).")
WorkspaceOption = typer.Option(None, "--workspace", "-w", help="Workspace name (overrides config).")
ApiUrlOption = typer.Option(None, "--api-url", help="Rewriter GraphQL endpoint (overrides config).")
TokenOption = typer.Option(
    None, "--auth-token", envvar="REDIRECT_SYNC_AUTH_TOKEN", help="Rewriter API token."
)
BatchSizeOption = typer.Option(
    None, "--batch-size", "-b", min=1, max=5000, help="Redirects per request."
)
CheckpointOption = typer.Option(None, "--checkpoint-file", help="Path to checkpoint file.")
QuietOption = typer.Option(False, "--quiet", "-q", help="Minimal output.")
VerboseOption = typer.Option(False, "--verbose", help="Debug logging and full tracebacks.")


# =============================================================================
# IMPORT Command
# =============================================================================
@app.command("import")
def import_(
    csv_path: Path = typer.Argument(
        ...,
        help="CSV file of redirects (from;to;type;endDate).",
        exists=True,
        file_okay=True,
        dir_okay=False,
        resolve_path=True,
    ),
    reset: bool = typer.Option(
        False,
        "--reset",
        "-r",
        help="Remove all previous redirects that are not in the file.",
    ),
    config_file: Optional[Path] = ConfigOption,
    account: Optional[str] = AccountOption,
    workspace: Optional[str] = WorkspaceOption,
    api_url: Optional[str] = ApiUrlOption,
    auth_token: Optional[str] = TokenOption,
    batch_size: Optional[int] = BatchSizeOption,
    checkpoint_file: Optional[Path] = CheckpointOption,
    quiet: bool = QuietOption,
    verbose: bool = VerboseOption,
) -> None:
    """
    Import redirects for the current account and workspace.

    Example:
        redirect-sync import ./redirects.csv --reset
    """
    settings = _prepare(
        config_file,
        quiet,
        verbose,
        account=account,
        workspace=workspace,
        api_url=api_url,
        auth_token=auth_token,
        batch_size=batch_size,
        checkpoint_file=checkpoint_file,
    )
    _run_sync(
        settings,
        lambda engine: engine.import_redirects(csv_path, reset=reset),
        quiet=quiet,
        verbose=verbose,
    )
    print_success("Import completed successfully!")


# =============================================================================
# DELETE Command
# =============================================================================
@app.command()
def delete(
    csv_path: Path = typer.Argument(
        ...,
        help="CSV file with a 'from' column of paths to delete.",
        exists=True,
        file_okay=True,
        dir_okay=False,
        resolve_path=True,
    ),
    config_file: Optional[Path] = ConfigOption,
    account: Optional[str] = AccountOption,
    workspace: Optional[str] = WorkspaceOption,
    api_url: Optional[str] = ApiUrlOption,
    auth_token: Optional[str] = TokenOption,
    batch_size: Optional[int] = BatchSizeOption,
    checkpoint_file: Optional[Path] = CheckpointOption,
    quiet: bool = QuietOption,
    verbose: bool = VerboseOption,
) -> None:
    """
    Delete redirects for the current account and workspace.

    Example:
        redirect-sync delete ./old-redirects.csv
    """
    settings = _prepare(
        config_file,
        quiet,
        verbose,
        account=account,
        workspace=workspace,
        api_url=api_url,
        auth_token=auth_token,
        batch_size=batch_size,
        checkpoint_file=checkpoint_file,
    )
    _run_sync(
        settings,
        lambda engine: engine.delete_redirects(csv_path),
        quiet=quiet,
        verbose=verbose,
    )
    print_success("Delete completed successfully!")


# =============================================================================
# STATUS Command
# =============================================================================
@app.command()
def status(
    config_file: Optional[Path] = ConfigOption,
    checkpoint_file: Optional[Path] = CheckpointOption,
    clear: bool = typer.Option(
        False,
        "--clear",
        help="Forget all unfinished runs (they will restart from the beginning).",
    ),
) -> None:
    """Show unfinished runs that the next invocation will resume."""
    settings = _load_settings(config_file, checkpoint_file=checkpoint_file)
    checkpoint_file = settings.sync.checkpoint_file
    store = CheckpointStore(checkpoint_file)

    if clear:
        store.clear_all()
        print_success(f"Cleared checkpoints in {checkpoint_file}")
        return

    entries = store.entries()
    if not entries:
        print_info("No unfinished runs. The next import or delete starts from the beginning.")
        raise typer.Exit(0)

    table = Table(title="Unfinished Runs", border_style="blue")
    table.add_column("Operation", style="cyan")
    table.add_column("Fingerprint")
    table.add_column("Committed Batches", justify="right")

    for checkpoint in entries:
        table.add_row(
            checkpoint.kind.value,
            checkpoint.fingerprint,
            str(checkpoint.counter),
        )

    console.print(table)
    print_info("Re-run the same command with the same file to resume.")


# =============================================================================
# CONFIG Command
# =============================================================================
@app.command()
def config(
    show: bool = typer.Option(
        False,
        "--show",
        help="Show current configuration.",
    ),
    init: bool = typer.Option(
        False,
        "--init",
        help="Write a config file with the current settings.",
    ),
    output: Path = typer.Option(
        Path("redirect-sync.toml"),
        "--output",
        "-o",
        help="Output path for config file.",
    ),
    config_file: Optional[Path] = ConfigOption,
) -> None:
    """Manage configuration."""
    if init:
        _load_settings(config_file).to_file(output)
        print_success(f"Generated config file: {output}")
        return

    if show:
        settings = _load_settings(config_file)
        table = Table(title="Current Configuration", border_style="cyan")
        table.add_column("Setting", style="cyan")
        table.add_column("Value")

        table.add_row("API URL", settings.api_url or "[dim]not set[/dim]")
        table.add_row("Account", settings.account or "[dim]not set[/dim]")
        table.add_row("Workspace", settings.workspace or "[dim]not set[/dim]")
        table.add_row(
            "Auth Token",
            "set" if settings.auth_token.get_secret_value() else "[dim]not set[/dim]",
        )
        table.add_row("Max Batch Size", f"{settings.limits.max_batch_size} redirects")
        table.add_row("Max Retries", str(settings.retry.max_retries))
        table.add_row("Retry Interval", f"{settings.retry.retry_interval_seconds}s")
        table.add_row("Checkpoint File", str(settings.sync.checkpoint_file))

        console.print(table)
        return

    console.print("Use --show to view config or --init to create config file.")


# =============================================================================
# Helper Functions
# =============================================================================
def _load_settings(config_file: Path | None, **overrides: Any) -> Settings:
    """Build settings, exiting with status 1 on a bad config file or override."""
    try:
        return _build_settings(config_file=config_file, **overrides)
    except (ValueError, FileNotFoundError) as e:
        print_error(str(e))
        raise typer.Exit(1)


def _prepare(
    config_file: Path | None,
    quiet: bool,
    verbose: bool,
    **overrides: Any,
) -> Settings:
    """Build settings, check credentials and configure logging."""
    settings = _load_settings(config_file, **overrides)

    errors = settings.validate_credentials()
    if errors:
        for err in errors:
            print_error(err)
        print_info("Use --help for configuration options.")
        raise typer.Exit(1)

    level = "DEBUG" if verbose else ("WARNING" if quiet else None)
    configure_from_settings(settings.logging, level=level)
    return settings


def _run_sync(
    settings: Settings,
    action: Callable[[SyncEngine], Awaitable[Any]],
    quiet: bool,
    verbose: bool,
) -> None:
    """Run ``action`` against a fresh engine and map failures to exit codes."""
    client = create_rewriter_client(settings)
    display = ProgressDisplay() if not quiet else None
    engine = SyncEngine(
        settings,
        client,
        on_progress=display.update if display else None,
    )

    async def _main() -> None:
        async with client:
            await action(engine)

    try:
        asyncio.run(_main())
    except SyncInterrupted as e:
        _stop(display)
        console.print()
        if e.pending_file is not None:
            print_warning(
                f"Interrupted while deleting stale redirects after {e.committed} batch(es)."
            )
            print_info(
                f"Run 'redirect-sync delete {e.pending_file.resolve()}' "
                "to finish deleting old redirects."
            )
        else:
            print_warning(
                f"Interrupted. Progress saved after {e.committed} batch(es); "
                "run the same command again to resume."
            )
        raise typer.Exit(EXIT_INTERRUPTED)
    except KeyboardInterrupt:
        _stop(display)
        console.print()
        print_warning("Interrupted. Run the same command again to resume.")
        raise typer.Exit(EXIT_INTERRUPTED)
    except (ReadError, ValidationError) as e:
        _stop(display)
        print_error(str(e))
        if isinstance(e, ValidationError):
            for problem in e.problems[:20]:
                print_error(f"  • {problem}")
        raise typer.Exit(1)
    except ReconciliationError as e:
        _stop(display)
        _report_failure(e, verbose)
        if e.pending_file is not None:
            print_info(
                f"Run 'redirect-sync delete {e.pending_file.resolve()}' "
                "to finish deleting old redirects."
            )
        raise typer.Exit(1)
    except RemoteError as e:
        _stop(display)
        _report_failure(e, verbose)
        print_info("Progress has been saved. Run the same command again to resume.")
        raise typer.Exit(1)
    finally:
        _stop(display)

    if not quiet:
        for stats in engine.history:
            console.print()
            print_summary(stats.as_summary())


def _report_failure(error: Exception, verbose: bool) -> None:
    print_error(str(error))
    if verbose:
        console.print_exception(show_locals=False)


def _stop(display: ProgressDisplay | None) -> None:
    if display:
        display.stop()


def _build_settings(
    config_file: Path | None = None,
    **overrides: Any,
) -> Settings:
    """Build settings from config file and overrides."""
    settings = load_settings(config_file) if config_file else Settings()

    if overrides.get("account"):
        settings.account = overrides["account"]
    if overrides.get("workspace"):
        settings.workspace = overrides["workspace"]
    if overrides.get("api_url"):
        settings.api_url = overrides["api_url"]
    if overrides.get("auth_token"):
        settings.auth_token = SecretStr(overrides["auth_token"])
    if overrides.get("batch_size"):
        # Re-validate so the override is held to the same bounds as config values
        settings.limits = Limits.model_validate(
            {**settings.limits.model_dump(), "max_batch_size": overrides["batch_size"]}
        )
    if overrides.get("checkpoint_file"):
        settings.sync.checkpoint_file = overrides["checkpoint_file"]

    return settings


if __name__ == "__main__":
    app()
