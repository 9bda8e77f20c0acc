"""Command line interface for inspecting the catalog and stored sessions."""

from __future__ import annotations

import asyncio
import logging
from typing import Optional

import typer

from journeyflow import DEFAULT_CATALOG, JourneyState, get_store, load_config
from journeyflow.contracts import JourneyPhase, utcnow
from journeyflow.errors import ConfigError, UnknownStepError
from journeyflow.navigation import NavigationResolver
from journeyflow.progress import ProgressCalculator
from journeyflow.telemetry import DropoffDetector
from journeyflow.validation import TransitionValidator

app = typer.Typer(help="CLI for journeyflow user journeys")

# Command groups
session_app = typer.Typer(help="Commands for inspecting stored sessions")

app.add_typer(session_app, name="session")


@app.callback()
def main(
    ctx: typer.Context,
    config: Optional[str] = typer.Option(None, help="Path to a journeyflow YAML config"),
    log_level: str = typer.Option("WARNING", help="Logging level"),
) -> None:
    """journeyflow CLI entry point."""
    logging.basicConfig(level=log_level.upper())
    try:
        ctx.obj = load_config(config)
    except ConfigError as exc:
        typer.secho(str(exc), fg=typer.colors.RED)
        raise typer.Exit(code=1)


@app.command("catalog")
def catalog(
    phase: Optional[JourneyPhase] = typer.Option(None, help="Only list steps of this phase"),
) -> None:
    """
    List the journey steps in order.

    Each line shows the step id, its phase, weight, estimated duration in
    seconds and whether it can be skipped.

    Example:
        journeyflow catalog --phase video
        # Output: video-generation-progress  video  10  600s
        #         video-review               video  4   300s  skippable
    """
    steps = DEFAULT_CATALOG.steps_in_phase(phase) if phase else DEFAULT_CATALOG.steps()
    for step in steps:
        line = (
            f"{step.id}\t{step.phase.value}\t{step.weight:g}\t{step.estimated_duration:g}s"
        )
        if step.can_skip:
            line += "\tskippable"
        typer.echo(line)


def _load_state(ctx: typer.Context, session_id: str) -> JourneyState:
    store = get_store(config=ctx.obj)
    snapshot = asyncio.run(store.load_snapshot(session_id))
    if snapshot is None:
        typer.echo("Session not found")
        raise typer.Exit(code=1)
    return JourneyState.from_snapshot(snapshot)


@session_app.command("list")
def session_list(ctx: typer.Context) -> None:
    """
    List stored sessions with their current step.

    Example:
        journeyflow session list
        # Output: 3f2a...  scenario-input  2 completed  v4
    """
    store = get_store(config=ctx.obj)
    sessions = asyncio.run(store.list_sessions())
    if not sessions:
        typer.echo("No sessions found")
        return
    for summary in sessions:
        line = (
            f"{summary.session_id}\t{summary.current_step}\t"
            f"{summary.completed_steps} completed\tv{summary.version}"
        )
        if summary.expired:
            line += "\texpired"
        typer.echo(line)


@session_app.command("show")
def session_show(ctx: typer.Context, session_id: str) -> None:
    """
    Show progress, next step and dropoff risks for a stored session.

    Example:
        journeyflow session show 3f2a9c
        # Output: Session 3f2a9c: scenario-input
        #         Progress: 8% (weighted 6%)
        #         Next step: scenario-story-generation
    """
    state = _load_state(ctx, session_id)
    config = ctx.obj
    calculator = ProgressCalculator(DEFAULT_CATALOG)
    report = calculator.report(state)
    next_step = NavigationResolver(DEFAULT_CATALOG).next_allowed_step(state.current_step, state)

    typer.echo(f"Session {state.session_id}: {state.current_step}")
    if state.expired:
        typer.echo("Status: expired")
    typer.echo(f"Progress: {report.simple}% (weighted {report.weighted}%)")
    for phase, value in report.per_phase.items():
        typer.echo(f"- {phase}: {value}%")
    typer.echo(f"Remaining: ~{report.eta_remaining:g}s")
    typer.echo(f"Next step: {next_step or '-'}")
    for error in state.errors:
        typer.echo(f"Error [{error.severity.value}] {error.step}: {error.code} {error.message}")

    detector = DropoffDetector(DEFAULT_CATALOG, config.performance)
    for point in detector.analyze(state, utcnow()):
        typer.secho(
            f"Dropoff risk {point.risk} at {point.step}: {point.reason}", fg=typer.colors.YELLOW
        )


@session_app.command("validate")
def session_validate(ctx: typer.Context, session_id: str, to_step: str) -> None:
    """
    Validate moving a stored session from its current step to ``to_step``.

    Exits with code 1 when the transition cannot proceed.

    Example:
        journeyflow session validate 3f2a9c video-preparation
    """
    state = _load_state(ctx, session_id)
    try:
        result = TransitionValidator(DEFAULT_CATALOG).validate(state.current_step, to_step, state)
    except UnknownStepError as exc:
        typer.secho(str(exc), fg=typer.colors.RED)
        raise typer.Exit(code=2)

    verdict = "can proceed" if result.can_proceed else "blocked"
    typer.echo(f"{result.from_step} -> {result.to_step}: {verdict}")
    for field in result.missing_data:
        typer.echo(f"Missing: {field}")
    for message in result.blocking_errors:
        typer.echo(f"Blocking: {message}")
    for failure in result.rule_failures:
        typer.echo(f"Rule: {failure.field}: {failure.message}")
    for warning in result.warnings:
        typer.echo(f"Warning: {warning}")
    if result.recommended_action:
        typer.echo(f"Recommended: {result.recommended_action}")
    if not result.can_proceed:
        raise typer.Exit(code=1)
