"""
Console display helpers built on Rich.
"""

from __future__ import annotations

from typing import Any, Mapping, Optional

import polars as pl
from rich.console import Console
from rich.table import Table

NUMERIC_DTYPES = (pl.Float64, pl.Float32, pl.Int64, pl.Int32, pl.UInt32, pl.UInt64)


def _format_value(val: Any, precision: int) -> str:
    if val is None:
        return "-"
    if isinstance(val, bool):
        return "yes" if val else "no"
    if isinstance(val, float):
        return f"{val:,.{precision}f}"
    if isinstance(val, int):
        return f"{val:,}"
    return str(val)


def display_estimate(
    df: pl.DataFrame,
    title: str = "",
    max_rows: int = 20,
    precision: int = 2,
    console: Optional[Console] = None,
) -> None:
    """
    Format and display an estimation result using Rich tables.

    Parameters
    ----------
    df : pl.DataFrame
        DataFrame containing estimation results, e.g. from
        ``PopulationEstimate.to_frame()`` or ``units_frame()``.
    title : str, optional
        Title to display above the table.
    max_rows : int, optional
        Maximum rows to display. Defaults to 20.
    precision : int, optional
        Decimal places for floating point numbers. Defaults to 2.
    console : Console, optional
        Console to print to. A new one is created if not given.

    Example
    -------
    >>> result = estimate(population, {"sample_size": 10})
    >>> display_estimate(result.to_frame(), title="Stand Volume")
    """
    console = console or Console()

    if title:
        console.print(f"\n[bold blue]{title}[/bold blue]")

    table = Table(show_header=True, header_style="bold cyan")
    for col in df.columns:
        table.add_column(col, justify="right" if df[col].dtype in NUMERIC_DTYPES else "left")

    for row in df.head(max_rows).iter_rows():
        table.add_row(*[_format_value(val, precision) for val in row])

    console.print(table)

    if len(df) > max_rows:
        console.print(f"[dim]... showing {max_rows} of {len(df)} rows[/dim]")


def display_simulation(
    summary: Mapping[str, Any],
    title: str = "Simulation Summary",
    precision: int = 4,
    console: Optional[Console] = None,
) -> None:
    """Display the dict returned by ``SimulationResult.summary()``."""
    console = console or Console()

    table = Table(title=title, show_header=True, header_style="bold cyan")
    table.add_column("Statistic", justify="left")
    table.add_column("Value", justify="right")
    for key, val in summary.items():
        table.add_row(key, _format_value(val, precision))

    console.print(table)
