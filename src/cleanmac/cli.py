"""CLI interface for cleanmac."""

import asyncio
import logging
import os
import shutil
import subprocess
from pathlib import Path
from typing import Optional

import typer
from rich.markup import escape
from rich.prompt import IntPrompt, Prompt

from cleanmac import __version__
from cleanmac.adapters import DuDiskUsage, LocalFileSystem, MacOSAppDetection
from cleanmac.cache import REPORT_FILE_NAME, JsonCache, write_report
from cleanmac.config import Settings, load_settings, parse_size_threshold
from cleanmac.display import (
    ScanProgressDisplay,
    console,
    show_scan_summary,
    show_selection,
    show_targets,
    show_tree,
)
from cleanmac.errors import CleanMacError
from cleanmac.logging_setup import configure_logging
from cleanmac.models import ScanItem, ScanReport, ScanTarget, format_size
from cleanmac.scanner import ScanService
from cleanmac.targets import DEFAULT_TARGETS, expand_path, resolve_targets, targets_by_risk
from cleanmac.tree import build_tree, collect_selected_items, flatten_tree, toggle_expanded

logger = logging.getLogger(__name__)

# Create Typer app
app = typer.Typer(
    name="cleanmac",
    help="Find disk space held by caches, logs and leftovers of uninstalled Mac apps",
    add_completion=False,
)


def version_callback(value: bool) -> None:
    """Print version and exit."""
    if value:
        console.print(f"cleanmac version {__version__}")
        raise typer.Exit()


@app.callback(invoke_without_command=True)
def main(
    ctx: typer.Context,
    version: bool = typer.Option(
        None,
        "--version",
        "-v",
        help="Show version and exit.",
        callback=version_callback,
        is_eager=True,
    ),
) -> None:
    """cleanmac - find reclaimable app leftovers on macOS."""
    settings = load_settings()
    configure_logging(settings.log_level)
    ctx.obj = settings

    if ctx.invoked_subcommand is None:
        typer.echo(ctx.get_help())


def _settings(ctx: typer.Context) -> Settings:
    return ctx.obj if isinstance(ctx.obj, Settings) else load_settings()


async def _run_scan(
    targets: list[ScanTarget],
    settings: Settings,
    output_path: str,
    detect_apps: bool,
) -> ScanReport:
    file_system = LocalFileSystem()
    cache = JsonCache(file_system, settings.cache_dir)

    with ScanProgressDisplay(total_targets=len(targets)) as progress:
        service = ScanService(
            file_system,
            DuDiskUsage(use_sudo=settings.use_sudo),
            app_detection=MacOSAppDetection(file_system) if detect_apps else None,
            size_threshold=settings.size_threshold,
            on_progress=progress,
        )
        report = await service.scan(targets, concurrency=settings.concurrency)

    await write_report(file_system, report, output_path)
    await cache.add_entry(report, [t.path for t in targets])
    return report


@app.command()
def scan(
    ctx: typer.Context,
    target: Optional[list[str]] = typer.Option(
        None, "--target", "-t", help="Path to scan (repeatable). Defaults to all known targets."
    ),
    output: Optional[Path] = typer.Option(None, "--output", "-o", help="Where to write the JSON report"),
    sudo: Optional[bool] = typer.Option(
        None, "--sudo/--no-sudo", help="Measure sizes with 'sudo du' (needs admin rights)"
    ),
    concurrency: Optional[int] = typer.Option(
        None, "--concurrency", min=1, help="Entries measured in parallel per directory"
    ),
    threshold: Optional[str] = typer.Option(
        None, "--threshold", help="Skip entries smaller than this, e.g. 50MB or 1GB"
    ),
    no_apps: bool = typer.Option(False, "--no-apps", help="Skip installed-app detection"),
) -> None:
    """Scan for large caches, logs and orphaned app data."""
    settings = _settings(ctx)
    updates: dict = {}
    if sudo is not None:
        updates["use_sudo"] = sudo
    if concurrency is not None:
        updates["concurrency"] = concurrency
    if threshold is not None:
        parsed = parse_size_threshold(threshold)
        if parsed is None:
            console.print(
                f"[yellow]Ignoring invalid threshold {escape(repr(threshold))}, "
                f"using {format_size(settings.size_threshold)}[/yellow]"
            )
        else:
            updates["size_threshold"] = parsed
    settings = settings.model_copy(update=updates)

    targets = resolve_targets(target or [])
    output_path = str(output) if output else os.path.join(settings.cache_dir, REPORT_FILE_NAME)

    console.print(
        f"[bold blue]Scanning {len(targets)} targets[/bold blue] "
        f"[dim](skipping entries under {format_size(settings.size_threshold)})[/dim]\n"
    )
    if settings.use_sudo:
        console.print(
            "[dim]Using sudo for disk usage. If you see permission errors, "
            "grant Full Disk Access to your terminal.[/dim]\n"
        )

    try:
        report = asyncio.run(_run_scan(targets, settings, output_path, detect_apps=not no_apps))
    except CleanMacError as e:
        console.print(f"[red]Error: {escape(str(e))}[/red]")
        raise typer.Exit(1)

    show_scan_summary(report, output_path)


def parse_explore_command(text: str) -> tuple[str, Optional[int]]:
    """
    Parse an explorer command such as "e 3", "s 12", "d" or "q".

    Returns:
        (action, row number) where action is one of expand, select, done,
        quit or invalid
    """
    parts = text.strip().lower().split()
    if not parts:
        return "invalid", None

    actions = {"e": "expand", "s": "select", "d": "done", "q": "quit"}
    action = actions.get(parts[0][0]) if parts[0] else None
    if action is None:
        return "invalid", None

    if action in ("expand", "select"):
        if len(parts) != 2 or not parts[1].isdigit():
            return "invalid", None
        return action, int(parts[1])
    return action, None


def _choose_target(report: ScanReport, deletable: list[ScanItem]) -> Optional[ScanTarget]:
    by_target = [
        (t, [i for i in deletable if i.parent_target_path == t.path]) for t in report.targets
    ]
    by_target = [(t, items) for t, items in by_target if items]
    if not by_target:
        return None
    if len(by_target) == 1:
        return by_target[0][0]

    console.print("[bold]Targets with deletable items:[/bold]")
    for number, (t, items) in enumerate(by_target, 1):
        size = format_size(sum(i.size_bytes for i in items))
        console.print(f"  {number}. \\[{t.risk_level.value}] {escape(t.path)} ({size}, {len(items)} items)")
    choice = IntPrompt.ask(
        "Target", choices=[str(n) for n in range(1, len(by_target) + 1)], default=1
    )
    return by_target[choice - 1][0]


@app.command()
def explore(ctx: typer.Context) -> None:
    """Browse the latest scan and pick items to remove (nothing is deleted)."""
    settings = _settings(ctx)
    cache = JsonCache(LocalFileSystem(), settings.cache_dir)
    entry = asyncio.run(cache.latest_entry())
    if entry is None:
        console.print("[yellow]No cached scan results found. Run [bold]cleanmac scan[/bold] first.[/yellow]")
        raise typer.Exit(0)

    report = entry.report
    deletable = report.deletable_items
    target = _choose_target(report, deletable)
    if target is None:
        console.print("[yellow]No deletable items found in cached results.[/yellow]")
        raise typer.Exit(0)

    items = [i for i in deletable if i.parent_target_path == target.path]
    tree = build_tree(items, target.path)
    expanded: set[str] = set()
    selected: set[str] = set()

    while True:
        rows = flatten_tree(tree, expanded, target.path)
        console.print()
        show_tree(rows, selected)
        console.print("[dim]e N: expand/collapse · s N: select/unselect · d: done · q: quit[/dim]")
        action, number = parse_explore_command(Prompt.ask("Command", default="d"))

        if action == "quit":
            raise typer.Exit(0)
        if action == "done":
            break
        if action == "invalid" or number is None or not 1 <= number <= len(rows):
            console.print("[red]Invalid command[/red]")
            continue

        row = rows[number - 1]
        if action == "expand":
            if row.has_children:
                toggle_expanded(expanded, row.value)
            else:
                console.print("[yellow]Nothing to expand[/yellow]")
        else:
            toggle_expanded(selected, row.value)

    chosen = collect_selected_items(items, selected)
    if not chosen:
        console.print("[yellow]No items selected.[/yellow]")
        return

    show_selection(chosen)
    console.print("[dim]cleanmac never deletes anything. Remove these paths yourself after review.[/dim]")


@app.command(name="targets")
def list_targets() -> None:
    """List the default scan targets by risk level."""
    show_targets(targets_by_risk(DEFAULT_TARGETS))
    console.print("[dim]Run [bold]cleanmac scan -t <path>[/bold] to scan a single target[/dim]")


@app.command()
def ncdu(
    path: Optional[str] = typer.Argument(None, help="Directory to analyze (default: home)"),
) -> None:
    """Open the ncdu disk usage analyzer."""
    if shutil.which("ncdu") is None:
        console.print("[red]ncdu is not installed.[/red] Install it with: [bold]brew install ncdu[/bold]")
        raise typer.Exit(1)

    resolved = str(expand_path(path)) if path else str(Path.home())
    logger.info("Starting ncdu on %s", resolved)
    result = subprocess.run(["ncdu", resolved])
    if result.returncode != 0:
        raise typer.Exit(result.returncode)


if __name__ == "__main__":
    app()
