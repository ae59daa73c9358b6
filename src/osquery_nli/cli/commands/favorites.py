"""Favorites commands - save questions and ask them again."""

from __future__ import annotations

from typing import Annotated

import typer
from rich.table import Table as RichTable

from osquery_nli.cli.commands import ask as ask_command
from osquery_nli.cli.common import VerboseOption, console, get_app
from osquery_nli.favorites import FavoriteQuery, FavoritesStore

app = typer.Typer(
    name="favorites",
    help="Manage favorite questions.",
    no_args_is_help=True,
)

FavoriteRefArg = Annotated[
    str,
    typer.Argument(
        help="Favorite id, unique id prefix, or part of its name",
    ),
]


def _resolve(store: FavoritesStore, ref: str) -> FavoriteQuery:
    favorite = store.find(ref)
    if favorite is None:
        console.print(f"[red]No favorite matches '{ref}'[/red]")
        raise typer.Exit(1)
    return favorite


@app.command("list")
def list_favorites() -> None:
    """List favorites in their saved order."""
    favorites = get_app().favorites.read_favorites()
    if not favorites:
        console.print("[yellow]No favorites[/yellow]")
        return

    table = RichTable(show_header=True, header_style="bold")
    table.add_column("#", justify="right")
    table.add_column("ID")
    table.add_column("Name")
    table.add_column("Question")
    for position, favorite in enumerate(favorites, start=1):
        table.add_row(str(position), favorite.id[:8], favorite.name or "", favorite.query)
    console.print(table)


@app.command()
def add(
    question: Annotated[str, typer.Argument(help="Question to save")],
    name: Annotated[
        str | None,
        typer.Option("--name", "-n", help="Display name"),
    ] = None,
) -> None:
    """Save a question as a favorite."""
    question = question.strip()
    if not question:
        console.print("[red]Question is empty[/red]")
        raise typer.Exit(1)

    favorite = get_app().favorites.add(question, name=name)
    if favorite is None:
        console.print("[yellow]Already a favorite[/yellow]")
        return
    console.print(f"[green]Saved '{favorite.display_name}'[/green]")


@app.command()
def remove(ref: FavoriteRefArg) -> None:
    """Remove a favorite."""
    store = get_app().favorites
    favorite = _resolve(store, ref)
    store.remove(favorite.id)
    console.print(f"[green]Removed '{favorite.display_name}'[/green]")


@app.command()
def rename(
    ref: FavoriteRefArg,
    name: Annotated[
        str | None,
        typer.Argument(help="New name. Omit to show the question instead"),
    ] = None,
) -> None:
    """Rename a favorite."""
    store = get_app().favorites
    favorite = _resolve(store, ref)
    renamed = store.rename(favorite.id, name.strip() if name else None)
    if renamed is None:
        console.print("[red]Favorite was removed[/red]")
        raise typer.Exit(1)
    console.print(f"[green]Renamed to '{renamed.display_name}'[/green]")


@app.command()
def move(
    ref: FavoriteRefArg,
    position: Annotated[int, typer.Argument(help="New position, 1 is the top", min=1)],
) -> None:
    """Move a favorite to another position in the list."""
    store = get_app().favorites
    favorite = _resolve(store, ref)
    favorites = store.read_favorites()
    current = next(i for i, f in enumerate(favorites) if f.id == favorite.id)
    target = min(position, len(favorites)) - 1
    # move() inserts before an index of the original order
    store.move([current], target + 1 if target > current else target)
    console.print(f"[green]'{favorite.display_name}' is now #{target + 1}[/green]")


@app.command()
def clear() -> None:
    """Remove all favorites."""
    get_app().favorites.clear()
    console.print("[green]Favorites cleared[/green]")


@app.command("ask")
def ask_favorite(
    ref: FavoriteRefArg,
    show_sql: Annotated[bool, typer.Option("--show-sql", help="Show the generated SQL")] = False,
    raw: Annotated[bool, typer.Option("--raw", help="Print rows without the summary")] = False,
    verbose: VerboseOption = 0,
) -> None:
    """Ask a favorite question."""
    favorite = _resolve(get_app().favorites, ref)
    ask_command.ask(favorite.query, refresh=False, show_sql=show_sql, raw=raw, verbose=verbose)
