"""Test-connection command - check that the selected LLM provider answers."""

from __future__ import annotations

from typing import Annotated

import typer

from osquery_nli.cli.common import VerboseOption, console, get_app, run_async, setup_logging


def test_connection(
    provider: Annotated[
        str | None,
        typer.Option(
            "--provider",
            "-p",
            help="Provider id (claude, gemini, openai). Defaults to the selected provider",
        ),
    ] = None,
    model: Annotated[
        str | None,
        typer.Option(
            "--model",
            "-m",
            help="Model to test. Defaults to the selected or default model",
        ),
    ] = None,
    verbose: VerboseOption = 0,
) -> None:
    """Send a small translation request to the LLM provider."""
    setup_logging(verbosity=verbose)
    app = get_app()
    settings = app.preferences.load()

    provider_id = provider or settings.provider
    if model is None and provider is None:
        model = settings.model

    result = run_async(app, app.providers.test_connection(provider_id, model))
    if not result.success:
        console.print(f"[red]{result.error}[/red]")
        raise typer.Exit(1)
    console.print(f"[green]{result.value}[/green]")
