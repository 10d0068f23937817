"""Rich terminal display for cleanmac."""

from collections import defaultdict
from typing import Optional

from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.progress import BarColumn, Progress, SpinnerColumn, TextColumn, TimeElapsedColumn
from rich.table import Table
from rich.text import Text

from cleanmac.models import RISK_ORDER, RiskLevel, ScanItem, ScanReport, ScanTarget, format_size
from cleanmac.scanner import ProgressKind, ScanProgressEvent
from cleanmac.tree import FlatTreeNode

console = Console()

RISK_STYLES = {
    RiskLevel.LOW: "green",
    RiskLevel.MEDIUM: "yellow",
    RiskLevel.HIGH: "red",
    RiskLevel.CRITICAL: "bold red",
}

# Items listed per group in the scan summary
TOP_ITEMS = 5
TOP_GROUP_ITEMS = 10


def risk_style(risk_level: RiskLevel) -> str:
    """Get the rich style for a risk level."""
    return RISK_STYLES.get(risk_level, "white")


def risk_label(risk_level: RiskLevel) -> str:
    """Get styled label for risk level."""
    style = risk_style(risk_level)
    return f"[{style}]{risk_level.value}[/{style}]"


def group_by_app_folder(items: list[ScanItem], target: ScanTarget) -> dict[str, list[ScanItem]]:
    """Group items by the first path segment below the target."""
    groups: dict[str, list[ScanItem]] = defaultdict(list)
    for item in items:
        relative = item.path[len(target.path) + 1:]
        groups[relative.split("/", 1)[0] or "Unknown"].append(item)
    return dict(groups)


def _group_sort_key(group: tuple[str, list[ScanItem]]) -> tuple[bool, int]:
    _, items = group
    orphaned = items[0].app_installed is False
    return (not orphaned, -sum(item.size_bytes for item in items))


def show_totals(report: ScanReport) -> None:
    """Display per-category totals."""
    table = Table(title="Totals by Category", show_header=True, header_style="bold")
    table.add_column("Category")
    table.add_column("Size", justify="right")

    for category, total in sorted(report.totals_by_category.items(), key=lambda kv: -kv[1]):
        table.add_row(category.value, format_size(total))

    console.print(table)


def show_target_section(report: ScanReport, target: ScanTarget) -> None:
    """Display the findings of one target."""
    items = report.items_for_target(target)
    deletable = [item for item in items if item.safe_to_delete]
    style = risk_style(target.risk_level)

    console.print(f"[{style}]\\[{target.risk_level.value}][/{style}] [bold]{escape(target.path)}[/bold]")
    console.print(
        f"  Items: {len(items)}, Size: {format_size(sum(i.size_bytes for i in items))}"
    )
    console.print(
        f"  Safe to delete: {len(deletable)} items, "
        f"{format_size(sum(i.size_bytes for i in deletable))}"
    )
    if target.guideline:
        console.print(f"  [dim]{escape(target.guideline)}[/dim]")

    if deletable:
        console.print("  [bold]Deletable:[/bold]")
        groups = sorted(group_by_app_folder(deletable, target).items(), key=_group_sort_key)
        for folder, group in groups:
            first = group[0]
            if first.app_installed is False:
                status = Text("ORPHANED - app not found", style="red")
            elif first.app_installed:
                name = f": {first.matched_app_name}" if first.matched_app_name else ""
                status = Text(f"INSTALLED{name}", style="green")
            else:
                status = Text("")
            size = format_size(sum(i.size_bytes for i in group))
            console.print(Text.assemble("    ", (folder, "bold"), " ", status, f" ({size})"))
            for item in sorted(group, key=lambda i: i.size_bytes, reverse=True)[:TOP_GROUP_ITEMS]:
                console.print(Text(f"      - {item.size_human} {item.path}"))

    if items:
        console.print("  [bold]Top items:[/bold]")
        for item in sorted(items, key=lambda i: i.size_bytes, reverse=True)[:TOP_ITEMS]:
            console.print(Text(f"    - {item.size_human} {item.path}"))
    else:
        console.print("  [dim](no items)[/dim]")
    console.print()


def show_scan_summary(report: ScanReport, output_path: Optional[str] = None) -> None:
    """Display full scan results."""
    console.print()
    show_totals(report)
    console.print()

    for target in report.targets:
        show_target_section(report, target)

    if report.skipped:
        console.print(f"[yellow]Skipped {len(report.skipped)} entries (run with LOG_LEVEL=DEBUG for details)[/yellow]")

    lines = [
        f"[bold]Total size:[/bold] {format_size(report.total_bytes)} in {len(report.items)} items",
        f"  Safe to delete: {format_size(report.deletable_bytes)} "
        f"({len(report.deletable_items)} items)",
    ]
    if output_path:
        lines.append(f"  Report: {output_path}")
    console.print(Panel("\n".join(lines), title="Summary", border_style="blue"))


def show_targets(targets: list[ScanTarget]) -> None:
    """Display scan targets grouped by risk level."""
    console.print("[bold]Scan Targets[/bold]\n")
    for risk in sorted(RiskLevel, key=lambda r: RISK_ORDER[r]):
        group = [t for t in targets if t.risk_level == risk]
        if not group:
            continue
        style = risk_style(risk)
        console.print(f"[{style}]{risk.value.capitalize()} risk:[/{style}]")
        for target in group:
            console.print(Text.assemble("  • ", (target.path, "bold"), f" ({target.category.value})"))
            if target.guideline:
                console.print(f"    [dim]{escape(target.guideline)}[/dim]")
        console.print()


def show_tree(rows: list[FlatTreeNode], selected: set[str]) -> None:
    """Display flattened tree rows with their selection state."""
    table = Table(show_header=True, header_style="bold", box=None)
    table.add_column("#", justify="right", style="dim")
    table.add_column("", width=2)
    table.add_column("Item")

    for number, row in enumerate(rows, 1):
        mark = "☑" if row.value in selected else "☐"
        style = "red" if row.is_orphaned else ("green" if row.app_installed else "")
        table.add_row(str(number), mark, Text(row.label, style=style))

    console.print(table)


def show_selection(items: list[ScanItem]) -> None:
    """Display the items a user selected for removal."""
    total = sum(item.size_bytes for item in items)
    table = Table(title="Selected Items", show_header=True, header_style="bold")
    table.add_column("Size", justify="right")
    table.add_column("Path")
    for item in sorted(items, key=lambda i: i.size_bytes, reverse=True):
        table.add_row(item.size_human, Text(item.path))
    console.print(table)
    console.print(f"\n[bold]Total selected: {format_size(total)} in {len(items)} items[/bold]")


def show_scanning_progress() -> Progress:
    """Create progress bar for scanning."""
    return Progress(
        SpinnerColumn(),
        TextColumn("[progress.description]{task.description}"),
        BarColumn(),
        TextColumn("{task.completed}/{task.total}"),
        TimeElapsedColumn(),
        console=console,
    )


class ScanProgressDisplay:
    """Render ScanProgressEvents on a rich progress bar.

    Use as a context manager and pass the instance as the scanner's
    ``on_progress`` callback.
    """

    def __init__(self, total_targets: int) -> None:
        self.progress = show_scanning_progress()
        self.total_targets = total_targets
        self.task = None
        self.added = 0
        self.added_bytes = 0
        self.pruned = 0
        self.skipped = 0
        self.current = ""

    def __enter__(self) -> "ScanProgressDisplay":
        self.progress.start()
        self.task = self.progress.add_task("Scanning...", total=self.total_targets)
        return self

    def __exit__(self, *exc_info) -> None:
        self.progress.update(self.task, completed=self.total_targets)
        self.progress.stop()

    def __call__(self, event: ScanProgressEvent) -> None:
        if event.kind == ProgressKind.TARGET_STARTED:
            self.current = event.path
        elif event.kind == ProgressKind.TARGET_FINISHED:
            self.progress.advance(self.task)
        elif event.kind == ProgressKind.ENTRY_ADDED:
            self.added += 1
            self.added_bytes += event.size_bytes
        elif event.kind == ProgressKind.ENTRY_PRUNED:
            self.pruned += 1
        elif event.kind == ProgressKind.ENTRY_SKIPPED:
            self.skipped += 1
        self.progress.update(self.task, description=self.describe())

    def describe(self) -> str:
        """Progress line text."""
        return (
            f"{escape(self.current)} · {self.added} added ({format_size(self.added_bytes)}), "
            f"{self.pruned} small, {self.skipped} skipped"
        )
