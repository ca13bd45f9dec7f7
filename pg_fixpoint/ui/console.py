"""
ConsoleUI - Rich-based console output for the pg_fixpoint CLI.
"""

from typing import Any, Dict, List, Optional

from rich import box
from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table
from rich.tree import Tree

from ..snapshot import (
    ComparisonResult,
    Fixpoint,
    FixpointInfo,
    MissingTable,
    RestoreResult,
    RowSetMismatch,
)
from ..snapshot.values import values_equal


class ConsoleUI:
    """
    Rich console interface for pg_fixpoint.
    """

    def __init__(self, quiet: bool = False, console: Optional[Console] = None):
        self.quiet = quiet
        self.console = console or Console()

    def print(self, *args, **kwargs):
        """Print to console."""
        if self.quiet:
            return
        self.console.print(*args, **kwargs)

    def print_header(self, title: str):
        """Print a section header."""
        if self.quiet:
            return
        self.console.print()
        self.console.rule(f"[bold blue]{title}[/]")

    def print_success(self, message: str):
        self.print(f"[green]✓[/] {message}")

    def print_warning(self, message: str):
        self.print(f"[yellow]![/] {message}")

    def print_error(self, message: str):
        """Errors are printed even in quiet mode."""
        self.console.print(f"[bold red]Error:[/] {message}")

    # =========================================================================
    # Fixpoints
    # =========================================================================

    def print_fixpoints(self, infos: List[FixpointInfo]):
        """Display fixpoint list."""
        if not infos:
            self.print("No fixpoints found.")
            return

        table = Table(title="Fixpoints", box=box.ROUNDED)
        table.add_column("Name", style="cyan", max_width=40)
        table.add_column("Parent", style="blue")
        table.add_column("Tables", justify="right")
        table.add_column("Rows", justify="right", style="magenta")
        table.add_column("Cleared", justify="right", style="dim")
        table.add_column("Size", justify="right", style="dim")

        for info in infos:
            table.add_row(
                info.name,
                info.parent or "[dim]-[/]",
                str(info.table_count),
                str(info.row_count),
                str(info.cleared_count) if info.cleared_count else "",
                _format_size(info.size_bytes),
            )

        self.print(table)

    def print_fixpoint(
        self,
        fixpoint: Fixpoint,
        chain: List[str],
        state: Optional[Dict[str, List[Dict[str, Any]]]] = None,
    ):
        """Display one fixpoint: its chain and its (or the materialized) tables."""
        tree = Tree(f"[bold cyan]{fixpoint.name}[/]")
        if len(chain) > 1:
            tree.add("[dim]chain:[/] " + " → ".join(chain))
        if fixpoint.cleared:
            tree.add("[dim]cleared:[/] " + ", ".join(fixpoint.cleared))

        tables = state if state is not None else fixpoint.tables
        label = "materialized tables" if state is not None else "stored tables"
        branch = tree.add(f"[dim]{label}:[/]")
        for table_name, rows in tables.items():
            if rows:
                branch.add(f"{table_name} [magenta]{len(rows)}[/] rows")

        self.print(tree)

    # =========================================================================
    # Results
    # =========================================================================

    def print_restore(self, result: RestoreResult):
        self.print_success(
            f"Restored [cyan]{result.fixpoint_name}[/]: "
            f"{result.rows_loaded} rows in {len(result.tables_loaded)} tables"
        )
        if result.sequences_reset:
            self.print(f"[dim]Sequences reset: {', '.join(result.sequences_reset)}[/]")

    def print_comparison(self, result: ComparisonResult):
        """Display comparison outcome, one panel per mismatching table."""
        if result.stored:
            self.print_warning(
                f'Fixpoint "{result.fixpoint_name}" did not exist yet. '
                "Skipped comparison and created it from the database. Re-run to compare."
            )
            return

        if result.matched:
            self.print_success(
                f"Database matches fixpoint [cyan]{result.fixpoint_name}[/] "
                f"({len(result.tables_compared)} tables)"
            )
            return

        self.print_header(f"Differences from {result.fixpoint_name}")
        for mismatch in result.mismatches:
            if isinstance(mismatch, RowSetMismatch):
                self.print(Panel(
                    self._row_diff_table(mismatch),
                    title=f"[bold red]{mismatch.table}[/]",
                    subtitle=f"{len(mismatch.database_rows)} rows in database, "
                             f"{len(mismatch.fixpoint_rows)} in fixpoint",
                    border_style="red",
                ))
            elif isinstance(mismatch, MissingTable):
                self.print(f"[red]✗[/] [bold]{mismatch.table}[/]: {mismatch.direction.value}")
            else:
                self.print(f"[red]✗[/] {mismatch.message}")

        self.print(f"\n[bold red]{len(result.mismatches)}[/] of {len(result.tables_compared)} tables differ")

    def _row_diff_table(self, mismatch: RowSetMismatch) -> Table:
        """Side-by-side view of the first differing row."""
        index = mismatch.first_difference
        db_row = mismatch.database_rows[index] if index < len(mismatch.database_rows) else {}
        fp_row = mismatch.fixpoint_rows[index] if index < len(mismatch.fixpoint_rows) else {}

        table = Table(title=f"Row {index}", box=box.SIMPLE)
        table.add_column("Column", style="dim")
        table.add_column("Database")
        table.add_column("Fixpoint")

        for column in sorted(set(db_row) | set(fp_row)):
            db_value = escape(repr(db_row[column])) if column in db_row else "[dim]-[/]"
            fp_value = escape(repr(fp_row[column])) if column in fp_row else "[dim]-[/]"
            differs = column not in db_row or column not in fp_row or not values_equal(db_row[column], fp_row[column])
            table.add_row(column, db_value, fp_value, style="red" if differs else None)

        return table


def _format_size(size_bytes: int) -> str:
    if size_bytes < 1024:
        return f"{size_bytes} B"
    if size_bytes < 1024 ** 2:
        return f"{size_bytes / 1024:.1f} KB"
    return f"{size_bytes / 1024 ** 2:.1f} MB"
