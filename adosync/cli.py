"""CLI interface for adosync.

Typer-based host for the service layer: it stores the connection settings,
renders one work item, and validates several work items in one run.

Every command builds its collaborators from ``Settings.from_env()``; failures
are printed as friendly messages and mapped to ``ExitCode`` values.
"""

import asyncio
import re
from collections.abc import Callable, Coroutine
from dataclasses import dataclass
from typing import Annotated, Any, NoReturn, TypeVar

import typer
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from adosync.config.settings import Settings
from adosync.config.storage import FileStorage, KeyValueStorage
from adosync.config.store import ConfigStore
from adosync.integrations.azure_devops import AzureDevOpsClient
from adosync.integrations.errors import DomainError, ErrorCode
from adosync.integrations.sanitize import truncate_text
from adosync.models import WorkItemIdentifier
from adosync.parsing.url_parser import parse_work_item_url
from adosync.security.cipher import CredentialCipher
from adosync.utils.console import (
    console,
    print_error,
    print_header,
    print_info,
    print_success,
    print_warning,
    show_version,
)
from adosync.utils.errors import (
    AdoSyncError,
    ExitCode,
    NotConfiguredError,
    UserCancelledError,
)
from adosync.utils.logging import setup_logging
from adosync.validation.orchestrator import ValidationResult, WorkItemValidator, friendly_message
from adosync.validation.refresh import (
    DEFAULT_VISIBLE_FIELDS,
    WorkItemRefresher,
    WorkItemSnapshot,
)

T = TypeVar("T")

app = typer.Typer(
    name="adosync",
    help="adosync - Azure DevOps work item sync",
    add_completion=False,
    no_args_is_help=True,
)

TITLE_DISPLAY_LENGTH = 60

_TRUE_VALUES = ("true", "yes", "1", "on")
_FALSE_VALUES = ("false", "no", "0", "off")


def version_callback(value: bool) -> None:
    """Display version and exit."""
    if value:
        show_version()
        raise typer.Exit()


class AsyncLoopAlreadyRunningError(AdoSyncError):
    """Raised when trying to run async code in an existing event loop."""

    _default_exit_code = ExitCode.GENERAL_ERROR


def run_async(coro_factory: Callable[[], Coroutine[None, None, T]]) -> T:
    """Run an async coroutine, refusing to nest inside a running event loop.

    Takes a factory instead of a coroutine so the running-loop check happens
    before the coroutine is created.

    Raises:
        AsyncLoopAlreadyRunningError: If an event loop is already running
    """
    try:
        loop = asyncio.get_running_loop()
    except RuntimeError:
        loop = None

    if loop is not None:
        raise AsyncLoopAlreadyRunningError(
            "Cannot run async operation: an event loop is already running. "
            "Use the adosync services with 'await' directly instead."
        )

    return asyncio.run(coro_factory())


@dataclass
class Services:
    """Collaborators shared by the commands of one invocation."""

    settings: Settings
    storage: KeyValueStorage
    cipher: CredentialCipher
    config_store: ConfigStore


def _create_storage(settings: Settings) -> KeyValueStorage:
    return FileStorage(settings.data_dir)


def _create_services(settings: Settings | None = None) -> Services:
    settings = settings or Settings.from_env()
    storage = _create_storage(settings)
    cipher = CredentialCipher(storage)
    return Services(
        settings=settings,
        storage=storage,
        cipher=cipher,
        config_store=ConfigStore(storage, cipher),
    )


def _create_client(settings: Settings) -> AzureDevOpsClient:
    return AzureDevOpsClient(settings.base_url, timeout_seconds=settings.timeout_seconds)


def _run_command(coro_factory: Callable[[], Coroutine[None, None, T]]) -> T:
    """Run a command coroutine and map adosync errors to exit codes."""
    try:
        return run_async(coro_factory)

    except UserCancelledError as e:
        print_info(str(e))
        raise typer.Exit(ExitCode.USER_CANCELLED) from e

    except AdoSyncError as e:
        print_error(str(e))
        raise typer.Exit(e.exit_code) from e

    except KeyboardInterrupt as e:
        print_info("Operation cancelled by user")
        raise typer.Exit(ExitCode.USER_CANCELLED) from e


def _exit_code_for(error: DomainError) -> ExitCode:
    if error.code is ErrorCode.INVALID_PBI_INFO:
        return ExitCode.INVALID_INPUT
    return error.exit_code


def _fail_with(error: DomainError | None) -> NoReturn:
    """Print the friendly message for a failed result and exit."""
    if error is None:
        print_error("The work item could not be loaded.")
        raise typer.Exit(ExitCode.GENERAL_ERROR)
    print_error(friendly_message(error))
    console.print(f"[dim]{escape(error.code.value)}: {escape(error.message)}[/dim]")
    raise typer.Exit(_exit_code_for(error))


def parse_field_flags(
    values: list[str] | None, base: dict[str, bool] | None = None
) -> dict[str, bool]:
    """Apply ``name=true|false`` flags on top of the current visibility map.

    Raises:
        typer.BadParameter: If a flag is malformed or names an unknown field
    """
    fields = dict(base or DEFAULT_VISIBLE_FIELDS)
    for value in values or []:
        name, sep, flag = value.partition("=")
        name = name.strip()
        flag = flag.strip().lower()
        if not sep or not name:
            raise typer.BadParameter(f"Expected name=true|false, got: {value}")
        if name not in DEFAULT_VISIBLE_FIELDS:
            valid = ", ".join(DEFAULT_VISIBLE_FIELDS)
            raise typer.BadParameter(f"Unknown field: {name}. Valid fields: {valid}")
        if flag in _TRUE_VALUES:
            fields[name] = True
        elif flag in _FALSE_VALUES:
            fields[name] = False
        else:
            raise typer.BadParameter(f"Expected true or false for {name}, got: {flag}")
    return fields


@app.callback()
def main(
    version: Annotated[
        bool,
        typer.Option(
            "--version",
            "-v",
            help="Show version and exit",
            callback=version_callback,
            is_eager=True,
        ),
    ] = False,
) -> None:
    """adosync - Azure DevOps work item sync."""
    setup_logging()


@app.command()
def configure(
    organization: Annotated[
        str,
        typer.Option("--organization", "-o", prompt="Azure DevOps organization"),
    ],
    pat: Annotated[
        str | None,
        typer.Option(
            "--pat",
            help="Personal Access Token. Prompted (hidden) when omitted.",
        ),
    ] = None,
    ac_pattern: Annotated[
        str | None,
        typer.Option("--ac-pattern", help="Regex used to split acceptance criteria"),
    ] = None,
    field: Annotated[
        list[str] | None,
        typer.Option("--field", "-f", help="Field visibility as name=true|false (repeatable)"),
    ] = None,
    verify: Annotated[
        bool,
        typer.Option("--verify", help="Check the PAT against Azure DevOps after saving"),
    ] = False,
) -> None:
    """Store the organization, PAT and display preferences."""
    if pat is None:
        pat = typer.prompt(
            "Personal Access Token (leave empty to keep the stored one)",
            default="",
            hide_input=True,
            show_default=False,
        )

    if ac_pattern:
        try:
            re.compile(ac_pattern)
        except re.error as e:
            print_warning(f"Acceptance criteria pattern is not a valid regex ({e})")

    async def _configure() -> None:
        services = _create_services()
        info = await services.config_store.get_info()
        visible_fields = parse_field_flags(field, info.visible_fields if info else None)
        pattern = ac_pattern if ac_pattern is not None else (info.ac_pattern if info else "")

        await services.config_store.store(
            organization,
            pat=pat or None,
            ac_pattern=pattern,
            visible_fields=visible_fields,
        )
        print_success(f"Configuration saved for organization {organization.strip()}")

        if not verify:
            return

        config = await services.config_store.retrieve()
        if config is None:
            raise NotConfiguredError("The stored PAT could not be read back.")
        async with _create_client(services.settings) as client:
            valid = await client.check_credential(config.pat, config.organization)
        if not valid:
            print_error("The PAT was rejected by Azure DevOps or the service is unreachable.")
            raise typer.Exit(ExitCode.REMOTE_ERROR)
        print_success("PAT verified against Azure DevOps")

    _run_command(_configure)


def _snapshot_to_dict(snapshot: WorkItemSnapshot) -> dict[str, Any]:
    identifier = snapshot.identifier
    return {
        "organization": identifier.organization,
        "project": identifier.project,
        "url": identifier.source_url,
        "refreshedAt": snapshot.refreshed_at.isoformat(),
        "acceptanceCriteria": snapshot.acceptance_items(),
        "workItem": snapshot.record.to_dict(),
    }


def _render_snapshot(snapshot: WorkItemSnapshot) -> None:
    record = snapshot.record
    show = snapshot.is_visible

    meta = Table(show_header=False, box=None, padding=(0, 1))
    meta.add_column("Field", style="dim", width=12)
    meta.add_column("Value", ratio=1)

    if show("showType"):
        meta.add_row("Type", escape(record.work_item_type))
    if show("showState"):
        meta.add_row("State", escape(record.state))
    if record.board_column:
        column = escape(record.board_column)
        if show("showDone") and record.board_column_done:
            column += " [green](Done)[/green]"
        meta.add_row("Column", column)
    if show("showAssigned"):
        meta.add_row("Assigned", escape(record.assignee or "Unassigned"))
    if show("showArea") and record.area_path:
        meta.add_row("Area", escape(record.area_path))
    if show("showIteration") and record.iteration_path:
        meta.add_row("Iteration", escape(record.iteration_path))
    if show("showTags") and record.tags:
        meta.add_row("Tags", escape(", ".join(record.tags)))
    if show("showChanged"):
        changed = record.last_updated.strftime("%Y-%m-%d %H:%M")
        meta.add_row("Changed", escape(f"{changed} by {record.changed_by}"))

    console.print(Panel(meta, title=escape(f"#{record.id}: {record.title}"), title_align="left"))

    if show("showDesc") and record.description:
        console.print(Text(record.description))
        console.print()

    items = snapshot.acceptance_items()
    if items:
        console.print("[bold]Acceptance Criteria[/bold]")
        for item in items:
            console.print(f"  - {escape(item.strip())}")

    console.print(f"[dim]Synced {snapshot.refreshed_at:%Y-%m-%d %H:%M:%S} UTC[/dim]")


@app.command()
def show(
    url: Annotated[str, typer.Argument(help="Work item URL")],
    as_json: Annotated[bool, typer.Option("--json", help="Print the work item as JSON")] = False,
) -> None:
    """Fetch and display one work item."""

    async def _load() -> Any:
        services = _create_services()
        async with _create_client(services.settings) as client:
            validator = WorkItemValidator(client, services.settings.batch_size)
            return await WorkItemRefresher(services.config_store, validator).load(url)

    result = _run_command(_load)
    if not result.is_valid or result.snapshot is None:
        _fail_with(result.error)

    if as_json:
        console.print_json(data=_snapshot_to_dict(result.snapshot))
    else:
        _render_snapshot(result.snapshot)


@app.command()
def validate(
    urls: Annotated[list[str], typer.Argument(help="One or more work item URLs")],
) -> None:
    """Validate several work items and print a summary table."""
    identifiers: list[WorkItemIdentifier] = []
    results: dict[int, ValidationResult] = {}

    for index, url in enumerate(urls):
        parsed = parse_work_item_url(url)
        if parsed.is_valid and parsed.data is not None:
            identifiers.append(parsed.data)
        else:
            results[index] = ValidationResult.fail(
                DomainError.create(ErrorCode.INVALID_PBI_INFO, parsed.error or "Invalid URL")
            )

    async def _validate() -> list[ValidationResult]:
        services = _create_services()
        config = await services.config_store.retrieve()
        if config is None:
            raise NotConfiguredError(
                "Azure DevOps is not configured. Run 'adosync configure' first."
            )
        async with _create_client(services.settings) as client:
            validator = WorkItemValidator(client, services.settings.batch_size)
            return await validator.validate_batch(identifiers, config.pat)

    batch_results = iter(_run_command(_validate) if identifiers else [])
    ordered = [results[i] if i in results else next(batch_results) for i in range(len(urls))]

    table = Table(title="Work item validation")
    table.add_column("URL", overflow="fold")
    table.add_column("Status", width=8)
    table.add_column("Details", ratio=1)

    for url, result in zip(urls, ordered, strict=True):
        if result.is_valid and result.data is not None:
            status = Text("OK", style="green")
            title = truncate_text(result.data.title, TITLE_DISPLAY_LENGTH)
            details = f"#{result.data.id}: {title} ({result.data.state})"
        else:
            status = Text("FAILED", style="red")
            details = friendly_message(result.error) if result.error else "Unknown error"
        table.add_row(escape(url), status, escape(details))

    console.print(table)

    failed = sum(1 for result in ordered if not result.is_valid)
    if failed:
        print_warning(f"{failed} of {len(ordered)} work items failed validation")
        raise typer.Exit(ExitCode.GENERAL_ERROR)
    print_success(f"All {len(ordered)} work items are valid")


@app.command()
def info() -> None:
    """Show the stored configuration without revealing the PAT."""

    async def _info() -> tuple[Services, Any]:
        services = _create_services()
        return services, await services.config_store.get_info()

    services, config_info = _run_command(_info)

    print_header("adosync configuration")
    console.print(f"  Base URL:      {escape(services.settings.base_url)}")
    console.print(f"  Data dir:      {escape(str(services.settings.data_dir))}")

    if config_info is None:
        print_warning("Not configured. Run 'adosync configure' first.")
        return

    token_status = "[green]stored[/green]" if config_info.has_token else "[red]missing[/red]"
    console.print(f"  Organization:  {escape(config_info.organization or '-')}")
    console.print(f"  PAT:           {token_status}")
    console.print(f"  AC pattern:    {escape(config_info.ac_pattern or '(line breaks)')}")
    if config_info.last_base_url:
        console.print(f"  Last URL:      {escape(config_info.last_base_url)}")

    fields = config_info.visible_fields or DEFAULT_VISIBLE_FIELDS
    shown = [name for name, visible in fields.items() if visible]
    console.print(f"  Shown fields:  {escape(', '.join(shown) or '-')}")


@app.command()
def clear(
    purge_key: Annotated[
        bool,
        typer.Option("--purge-key", help="Also delete the encryption key"),
    ] = False,
    yes: Annotated[bool, typer.Option("--yes", "-y", help="Do not ask for confirmation")] = False,
) -> None:
    """Delete the stored configuration."""
    if not yes and not typer.confirm("Delete the stored Azure DevOps configuration?"):
        print_info("Nothing was deleted.")
        raise typer.Exit(ExitCode.USER_CANCELLED)

    async def _clear() -> None:
        services = _create_services()
        await services.config_store.clear()
        if purge_key:
            await services.cipher.destroy_key()
        print_success("Configuration cleared" + (" and encryption key deleted" if purge_key else ""))

    _run_command(_clear)


__all__ = [
    "app",
    "main",
    "run_async",
    "parse_field_flags",
]
