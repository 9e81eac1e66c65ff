"""Rich terminal output for pb commands."""
from __future__ import annotations

from typing import Any, Iterable

from rich.console import Console
from rich.table import Table

from pb.models import Configuration

console = Console()


def render_profiles(config: Configuration, out: Console | None = None) -> None:
    """Print every profile, marking the default with a star."""
    c = out or console
    if not config.profiles:
        c.print("[dim]No profiles configured. Add one with 'pb profile add'.[/dim]")
        return
    table = Table(box=None, pad_edge=False)
    table.add_column("")
    table.add_column("NAME", style="bold")
    table.add_column("URL")
    table.add_column("USER")
    for name in sorted(config.profiles):
        profile = config.profiles[name]
        marker = "[green]*[/green]" if name == config.default_profile else ""
        table.add_row(marker, name, profile.url, profile.username)
    c.print(table)


def render_names(title: str, names: Iterable[str], out: Console | None = None) -> None:
    c = out or console
    names = list(names)
    if not names:
        c.print(f"[dim]No {title.lower()} found.[/dim]")
        return
    for name in names:
        c.print(f"  {name}")


def render_stats(name: str, stats: dict[str, Any], out: Console | None = None) -> None:
    c = out or console
    table = Table(title=f"Stats for {name}", box=None, pad_edge=False)
    table.add_column("FIELD", style="bold")
    table.add_column("VALUE")
    for key, value in _flatten(stats):
        table.add_row(key, str(value))
    c.print(table)


def _flatten(data: dict[str, Any], prefix: str = "") -> list[tuple[str, Any]]:
    rows: list[tuple[str, Any]] = []
    for key, value in data.items():
        label = f"{prefix}{key}"
        if isinstance(value, dict):
            rows.extend(_flatten(value, prefix=f"{label}."))
        else:
            rows.append((label, value))
    return rows


def render_saved_queries(queries: Iterable[tuple[str, str]], out: Console | None = None) -> None:
    c = out or console
    queries = list(queries)
    if not queries:
        c.print("[dim]No saved queries found.[/dim]")
        return
    table = Table(box=None, pad_edge=False)
    table.add_column("NAME", style="bold")
    table.add_column("QUERY")
    for name, sql in queries:
        table.add_row(name, sql)
    c.print(table)
