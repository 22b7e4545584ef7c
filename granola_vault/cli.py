"""Command-line interface."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from pathlib import Path
from typing import NoReturn, Optional

import click
from rich.console import Console
from rich.progress import BarColumn, Progress, SpinnerColumn, TextColumn, TimeRemainingColumn
from rich.table import Table

from granola_vault import __version__
from granola_vault.config import ImportOptions, ImportSettings, load_settings
from granola_vault.conflicts import (
    ConflictHandshake,
    ConflictRequest,
    Merge,
    Overwrite,
    Rename,
    Resolution,
    Skip,
    StaticResolver,
)
from granola_vault.converter import MarkdownConverter
from granola_vault.core.log import configure_logging, get_logger
from granola_vault.dedup.index import DuplicateIndex
from granola_vault.errors import GranolaVaultError
from granola_vault.loader import load_documents
from granola_vault.metadata import DocumentFilter, collection_stats, filter_metadata, select_ids
from granola_vault.models import DisplayMetadata, ImportStatus, ImportStrategy, RemoteDocument, VaultFile
from granola_vault.naming import FilenamePolicy, display_title
from granola_vault.pipeline.orchestrator import ImportOrchestrator
from granola_vault.pipeline.progress import ImportRun
from granola_vault.vault import FileSystemVault

logger = get_logger(__name__)

_STATUS_STYLES = {
    ImportStatus.NEW: "green",
    ImportStatus.UPDATED: "cyan",
    ImportStatus.EXISTS: "dim",
    ImportStatus.CONFLICT: "yellow",
}

_PROMPT_CHOICES = ("skip", "overwrite", "backup-overwrite", "append", "prepend", "rename")


@dataclass
class AppEnv:
    console: Console
    settings: ImportSettings


def fail(command: str, message: str) -> NoReturn:
    raise SystemExit(f"{command}: {message}")


class PromptResolver:
    """Resolves conflicts by asking on the terminal, one conflict at a time.

    Ctrl-C or end of input at the prompt closes the dialog, which skips the
    document.
    """

    def __init__(self, console: Console, progress: Progress | None = None) -> None:
        self.console = console
        self.progress = progress
        self._lock = asyncio.Lock()

    async def resolve(
        self,
        document: RemoteDocument,
        metadata: DisplayMetadata,
        existing: VaultFile | None,
    ) -> Resolution:
        async with self._lock:
            handshake = ConflictHandshake(ConflictRequest(document, metadata, existing))
            with handshake:
                choice = await asyncio.to_thread(self._ask, handshake.request)
                if choice is not None:
                    handshake.choose(choice)
            return await handshake.wait()

    def _ask(self, request: ConflictRequest) -> Resolution | None:
        if self.progress is not None:
            self.progress.stop()
        try:
            status = request.metadata.import_status
            self.console.print(f"\n[bold]{request.metadata.title}[/bold] [yellow]{status.status.value}[/yellow]")
            self.console.print(f"  {status.reason}")
            if request.existing is not None:
                self.console.print(f"  Existing file: {request.existing.path}")
            try:
                answer = click.prompt(
                    "Resolution",
                    type=click.Choice(_PROMPT_CHOICES),
                    default="skip",
                    show_choices=True,
                )
                if answer == "rename":
                    default_name = f"{display_title(request.document)} (imported).md"
                    return Rename(click.prompt("New filename", default=default_name))
            except click.Abort:
                return None
            return _resolution_for(answer)
        finally:
            if self.progress is not None:
                self.progress.start()


def _resolution_for(answer: str) -> Resolution:
    if answer == "overwrite":
        return Overwrite(create_backup=False)
    if answer == "backup-overwrite":
        return Overwrite(create_backup=True)
    if answer in ("append", "prepend"):
        return Merge(strategy=answer)
    return Skip("Skipped at prompt")


def _vault_root(env: AppEnv, command: str, explicit: Optional[Path]) -> Path:
    root = explicit or env.settings.vault_root
    if root is None:
        fail(command, "No vault given; pass --vault or set GRANOLA_VAULT_VAULT_ROOT")
    root = root.expanduser()
    if not root.is_dir():
        fail(command, f"Vault directory does not exist: {root}")
    return root


def _policy(settings: ImportSettings) -> FilenamePolicy:
    return FilenamePolicy(date_format=settings.date_prefix_format, max_length=settings.max_filename_length)


def _status_table(items: list[DisplayMetadata]) -> Table:
    table = Table(title=f"Documents (n={len(items)})", show_lines=False)
    table.add_column("Status")
    table.add_column("Title")
    table.add_column("Created")
    table.add_column("Words", justify="right")
    table.add_column("Reason")
    for item in items:
        status = item.import_status.status
        table.add_row(
            f"[{_STATUS_STYLES[status]}]{status.value}[/]",
            item.title,
            item.created[:10],
            str(item.word_count),
            item.import_status.reason,
        )
    return table


def _summary_table(run: ImportRun) -> Table:
    table = Table(title="Import", show_header=False)
    table.add_column("Metric")
    table.add_column("Value", justify="right")
    table.add_row("Total", str(run.total))
    table.add_row("Imported", f"[green]{run.completed}[/]")
    table.add_row("Skipped", str(run.skipped))
    table.add_row("Failed", f"[red]{run.failed}[/]" if run.failed else "0")
    if run.is_cancelled:
        table.add_row("Cancelled", "yes")
    return table


@click.group(context_settings={"help_option_names": ["-h", "--help"]})
@click.version_option(__version__, prog_name="granola-vault")
@click.option("--config", "config_path", type=click.Path(path_type=Path), help="Path to config.json")
@click.option("--verbose", "-v", is_flag=True, help="Debug logging")
@click.option("--json-logs", is_flag=True, help="Emit logs as JSON lines")
@click.pass_context
def cli(ctx: click.Context, config_path: Optional[Path], verbose: bool, json_logs: bool) -> None:
    """Import meeting notes from a remote export into a Markdown vault."""
    configure_logging(verbose=verbose, json_logs=json_logs)
    try:
        settings = load_settings(config_path)
    except GranolaVaultError as exc:
        fail("config", str(exc))
    ctx.obj = AppEnv(console=Console(), settings=settings)


@cli.command("scan")
@click.argument("export", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option("--vault", "vault_root", type=click.Path(file_okay=False, path_type=Path), help="Vault directory")
@click.option("--search", default="", help="Only show documents whose title or preview contains TEXT")
@click.option(
    "--status",
    "statuses",
    multiple=True,
    type=click.Choice([status.value for status in ImportStatus]),
    help="Only show documents with this status (repeatable)",
)
@click.pass_obj
def scan_command(
    env: AppEnv,
    export: Path,
    vault_root: Optional[Path],
    search: str,
    statuses: tuple[str, ...],
) -> None:
    """Classify every exported document against the vault."""
    root = _vault_root(env, "scan", vault_root)
    policy = _policy(env.settings)
    index = DuplicateIndex(FileSystemVault(root), policy)

    async def _scan() -> list[DisplayMetadata]:
        documents = load_documents(export)
        orchestrator = ImportOrchestrator(
            index.vault,
            MarkdownConverter(policy),
            StaticResolver(Skip("Scan only")),
            index=index,
        )
        return await orchestrator.classify(documents)

    try:
        items = asyncio.run(_scan())
    except GranolaVaultError as exc:
        fail("scan", str(exc))

    filter_metadata(
        items,
        DocumentFilter(search_text=search, statuses=frozenset(ImportStatus(value) for value in statuses)),
    )
    visible = [item for item in items if item.visible]
    env.console.print(_status_table(visible))

    stats = collection_stats(items)
    by_status = ", ".join(f"{name}={count}" for name, count in sorted(stats.by_status.items()))
    env.console.print(f"{stats.total} documents ({by_status}); {stats.selected} would be imported by default")
    index_stats = index.statistics()
    if index_stats.total:
        env.console.print(
            f"Vault holds {index_stats.total} imported notes, "
            f"{index_stats.locally_modified} with local edits"
        )
    if index.skipped_files:
        env.console.print(f"[yellow]{len(index.skipped_files)} files could not be read and were ignored[/]")


@cli.command("import")
@click.argument("export", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option("--vault", "vault_root", type=click.Path(file_okay=False, path_type=Path), help="Vault directory")
@click.option("--folder", "target_folder", default=None, help="Vault-relative folder for new notes")
@click.option(
    "--strategy",
    type=click.Choice([strategy.value for strategy in ImportStrategy]),
    default=None,
    help="What to do with documents already in the vault",
)
@click.option("--concurrency", type=click.IntRange(min=1), default=None, help="Documents in flight at once")
@click.option("--delay", type=click.FloatRange(min=0), default=None, help="Seconds between admissions")
@click.option("--backup/--no-backup", default=None, help="Back up files before updating them")
@click.option("--ask", is_flag=True, help="Prompt for every document that already exists")
@click.option("--skip-empty", is_flag=True, help="Skip documents without content")
@click.option("--stop-on-error", is_flag=True, help="Cancel the run after the first failure")
@click.option(
    "--conflicts",
    "conflict_mode",
    type=click.Choice(["prompt", "skip", "overwrite"]),
    default="prompt",
    show_default=True,
    help="How to resolve conflicts",
)
@click.option("--id", "ids", multiple=True, help="Import only this document id (repeatable)")
@click.option("--search", default="", help="Import only documents whose title or preview contains TEXT")
@click.option("--retry", is_flag=True, help="Retry failed documents once before exiting")
@click.pass_obj
def import_command(
    env: AppEnv,
    export: Path,
    vault_root: Optional[Path],
    target_folder: Optional[str],
    strategy: Optional[str],
    concurrency: Optional[int],
    delay: Optional[float],
    backup: Optional[bool],
    ask: bool,
    skip_empty: bool,
    stop_on_error: bool,
    conflict_mode: str,
    ids: tuple[str, ...],
    search: str,
    retry: bool,
) -> None:
    """Import exported documents into the vault."""
    root = _vault_root(env, "import", vault_root)
    try:
        options = env.settings.to_options(
            target_folder=target_folder,
            strategy=ImportStrategy(strategy) if strategy else None,
            max_concurrency=concurrency,
            delay_between_imports=delay,
            create_backups=backup,
            always_prompt=True if ask else None,
            skip_empty_documents=True if skip_empty else None,
            stop_on_error=True if stop_on_error else None,
        )
    except GranolaVaultError as exc:
        fail("import", str(exc))

    try:
        run, failures = asyncio.run(
            _run_import(env, root, export, options, conflict_mode=conflict_mode, ids=ids, search=search, retry=retry)
        )
    except GranolaVaultError as exc:
        fail("import", str(exc))

    if run.total == 0:
        env.console.print("Nothing to import.")
        return
    env.console.print(_summary_table(run))
    for record in failures:
        env.console.print(f"[red]failed[/] {record.metadata.title} ({record.document.id}): {record.error}")
    if run.failed:
        raise SystemExit(1)


async def _run_import(
    env: AppEnv,
    root: Path,
    export: Path,
    options: ImportOptions,
    *,
    conflict_mode: str,
    ids: tuple[str, ...],
    search: str,
    retry: bool,
):
    documents = load_documents(export)
    policy = _policy(env.settings)
    vault = FileSystemVault(root)
    progress_console = Console(stderr=True)

    prompt_resolver: PromptResolver | None = None
    if conflict_mode == "prompt":
        prompt_resolver = PromptResolver(env.console)
        resolver = prompt_resolver
    elif conflict_mode == "overwrite":
        resolver = StaticResolver(Overwrite(create_backup=options.create_backups))
    else:
        resolver = StaticResolver(Skip("Conflict skipped"))

    orchestrator = ImportOrchestrator(vault, MarkdownConverter(policy), resolver, index=DuplicateIndex(vault, policy))
    metadata = await orchestrator.classify(documents)
    if ids:
        select_ids(metadata, ids)
    if search:
        filter_metadata(metadata, DocumentFilter(search_text=search))

    with Progress(
        SpinnerColumn(),
        TextColumn("[progress.description]{task.description}"),
        BarColumn(),
        TextColumn("[progress.percentage]{task.percentage:>3.0f}%"),
        TimeRemainingColumn(),
        console=progress_console,
        transient=True,
    ) as progress:
        if prompt_resolver is not None:
            prompt_resolver.progress = progress
        task_id = progress.add_task("Importing...", total=None)

        def on_progress(run: ImportRun) -> None:
            progress.update(task_id, total=run.total or None, completed=run.processed, description=run.message)

        unsubscribe = orchestrator.on_progress(on_progress)
        try:
            run = await orchestrator.import_documents(metadata, documents, options)
            if retry and orchestrator.get_failed_documents():
                logger.info("retrying_after_failures", failed=run.failed)
                run = await orchestrator.retry_failed_imports(options)
        finally:
            unsubscribe()

    return run, orchestrator.get_failed_documents()


def main() -> None:
    cli()


__all__ = ["cli", "main", "PromptResolver"]
