from __future__ import annotations

import asyncio
import json
from collections.abc import Awaitable, Callable
from typing import Any, TypeVar

import typer

from aqua_tracker.application.use_cases.item_operations import AddTestStepsUseCase, GetItemDetailsUseCase
from aqua_tracker.config import settings
from aqua_tracker.domain.errors import TrackerError
from aqua_tracker.domain.identifiers import parse
from aqua_tracker.domain.model import TrackerCredentials
from aqua_tracker.domain.payloads import NewTestStep
from aqua_tracker.logging_config import setup_logging
from aqua_tracker.presentation.api.dependencies import Container, build_container

app = typer.Typer(help="AquaCloud Tracker CLI")

T = TypeVar("T")


def _run(work: Callable[[Container, Any], Awaitable[T]]) -> T:
    if not (settings.aqua_url and settings.aqua_username and settings.aqua_password):
        typer.echo("AQUA_URL, AQUA_USERNAME and AQUA_PASSWORD must be set", err=True)
        raise typer.Exit(code=2)
    setup_logging(settings.log_level)

    async def main() -> T:
        container = build_container()
        session = container.store.create(
            TrackerCredentials(settings.aqua_url, settings.aqua_username, settings.aqua_password),
            project_id=settings.aqua_project_id or None,
        )
        try:
            return await work(container, session)
        finally:
            await container.executor.aclose()

    try:
        return asyncio.run(main())
    except TrackerError as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(code=1)


@app.command("parse-id")
def parse_id(raw_id: str, item_type: str = typer.Option(None, "--type", "-t")) -> None:
    try:
        item = parse(raw_id, item_type)
    except TrackerError as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(code=1)
    typer.echo(json.dumps({"numericId": item.numeric_id, "itemType": item.item_type}))


@app.command()
def show(raw_id: str, item_type: str = typer.Option(None, "--type", "-t")) -> None:
    summary = _run(lambda c, s: GetItemDetailsUseCase(c.tracker).execute(s, raw_id, item_type))
    typer.echo(json.dumps(summary.as_dict(), indent=2))


@app.command("add-steps")
def add_steps(
    raw_id: str,
    step: list[str] = typer.Option(..., "--step", "-s", help="NAME=DESCRIPTION, repeatable"),
) -> None:
    steps = [NewTestStep(*s.split("=", 1)) if "=" in s else NewTestStep(s, "") for s in step]
    result = _run(lambda c, s: AddTestStepsUseCase(c.tracker).execute(s, raw_id, steps))
    typer.echo(f"Added {len(steps)} test step(s) to {raw_id}.")
    typer.echo(json.dumps(result, indent=2, default=str))


if __name__ == "__main__":
    app()
