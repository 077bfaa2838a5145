"""
Terminal rendering of multicall results using Rich
"""
from typing import Any, Optional

from rich.console import Console
from rich.table import Table
from rich.text import Text

console = Console()


def format_value(value: Any) -> Text:
    """Render a decoded value, dimming missing results"""
    if value is None:
        return Text("-", style="dim italic")
    if isinstance(value, (bytes, bytearray)):
        return Text("0x" + bytes(value).hex(), style="yellow")
    if isinstance(value, int) and not isinstance(value, bool):
        return Text(f"{value:,}", style="green")
    return Text(str(value))


def create_group_table(rows: list[dict[str, Any]], title: Optional[str] = None) -> Table:
    """One row per shape, one column per label"""
    table = Table(
        title=title,
        show_header=True,
        header_style="bold magenta",
        border_style="dim"
    )

    columns: list[str] = []
    for row in rows:
        for label in row:
            if label not in columns:
                columns.append(label)

    table.add_column("#", style="dim", width=3)
    for label in columns:
        table.add_column(label)

    if not rows:
        table.caption = "No results"
        return table

    for i, row in enumerate(rows, 1):
        table.add_row(str(i), *(format_value(row.get(label)) for label in columns))
    return table


def render_groups(
    groups: list[list[dict[str, Any]]],
    titles: Optional[list[str]] = None,
    target: Optional[Console] = None
):
    """Print every group of results as its own table"""
    out = target or console
    for i, rows in enumerate(groups):
        title = titles[i] if titles and i < len(titles) else f"Group {i + 1}"
        out.print(create_group_table(rows, title))
