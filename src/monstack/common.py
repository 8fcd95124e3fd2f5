"""Common utilities and types for stack orchestration."""

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional

from rich.console import Console
from rich.measure import Measurement
from rich.table import Table

TABLE_MAX_WIDTH = 10_000


@dataclass
class ActionResult:
    """Result returned by an action.

    halt stops the scenario without failing it (e.g. a declined confirmation).
    """
    success: bool
    message: str = ''
    duration: float = 0.0
    halt: bool = False


def format_age(created: Optional[datetime], now: Optional[datetime] = None) -> str:
    """Format an object's age the way kubectl does (45s, 12m, 5h, 3d)."""
    if created is None:
        return '<unknown>'
    now = now or datetime.now(timezone.utc)
    if created.tzinfo is None:
        created = created.replace(tzinfo=timezone.utc)

    seconds = max(0, int((now - created).total_seconds()))
    if seconds < 120:
        return f'{seconds}s'
    minutes = seconds // 60
    if minutes < 120:
        return f'{minutes}m'
    hours = minutes // 60
    if hours < 48:
        return f'{hours}h'
    return f'{hours // 24}d'


def build_table(columns: list[str], rows: list[dict]) -> Table:
    """Build a borderless, kubectl-style table; missing cells are blank."""
    table = Table(box=None, show_edge=False, pad_edge=False, padding=(0, 3, 0, 0), header_style=None)
    for col in columns:
        table.add_column(col, no_wrap=True)
    for row in rows:
        table.add_row(*(str(row.get(col, '')) for col in columns))
    return table


def print_table(table: Table, console: Optional[Console] = None) -> None:
    """Print a table at its natural width so long names are never cut."""
    console = console or Console(highlight=False)
    natural = Measurement.get(console, console.options.update_width(TABLE_MAX_WIDTH), table).maximum
    if natural > console.width:
        console.width = natural
    console.print(table)
