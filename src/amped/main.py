"""
Amped - CLI Entry Point.

Usage:
    amped onboard            Run (or resume) onboarding in the terminal
    amped edit <step-id>     Change one answer, as from the settings screen
    amped progress           Show saved onboarding progress and answers
    amped reset              Clear saved progress
    amped serve              Start the web host
    amped health             Check configuration
    amped --help             Show help
"""

import math
from typing import Any

import typer
from rich.console import Console
from rich.panel import Panel

from onboarding.errors import InvalidAnswerError
from onboarding.questions import (
    AcknowledgeQuestion,
    ChoiceQuestion,
    DateQuestion,
    DialQuestion,
    InfoQuestion,
    Measurement,
    MeasurementQuestion,
    Question,
)
from onboarding.selector import CircularValueSelector

app = typer.Typer(
    name="amped",
    help="Amped - wellness onboarding from the terminal.",
    add_completion=False,
)
console = Console()

QUIT_WORDS = ("quit", "exit", "q")
BACK_WORDS = ("back", "b")


# =============================================================================
# Prompt helpers
# =============================================================================


def pointer_for_angle(degrees: float, radius: float = 100.0) -> tuple[float, float]:
    """Screen point on a dial of `radius` around the origin at `degrees` (0 = top, clockwise)."""
    rad = math.radians(degrees)
    return (radius * math.sin(rad), -radius * math.cos(rad))


def display_value(question: Question, value: Any) -> str:
    """Human form of a stored or seeded answer."""
    if value is None:
        return "-"
    if isinstance(value, CircularValueSelector):
        return f"{value.quantized_value} min"
    if isinstance(value, Measurement):
        return f"{value.value} {value.unit}"
    if isinstance(question, ChoiceQuestion):
        return question.label_for(value) or str(value)
    if isinstance(question, DialQuestion):
        return f"{value} min"
    if isinstance(question, AcknowledgeQuestion):
        return "accepted" if value else "not accepted"
    if hasattr(value, "isoformat"):
        return value.isoformat()
    return str(value)


def parse_answer(question: Question, raw: str, seeded: Any = None) -> Any:
    """
    Turn typed input into an answer for `question`.

    Empty input keeps the seeded value. Raises InvalidAnswerError for input
    that cannot even be read; range checks are left to the question.
    """
    raw = raw.strip()
    if isinstance(question, InfoQuestion):
        return None
    if not raw:
        if isinstance(seeded, CircularValueSelector):
            return seeded.quantized_value
        return seeded

    if isinstance(question, ChoiceQuestion):
        if raw.isdigit() and 1 <= int(raw) <= len(question.options):
            return question.options[int(raw) - 1].id
        return raw

    if isinstance(question, MeasurementQuestion):
        parts = raw.split()
        try:
            value = int(parts[0])
        except ValueError:
            raise InvalidAnswerError(f"{question.key}: {parts[0]!r} is not a whole number")
        if len(parts) == 1:
            unit = seeded.unit if isinstance(seeded, Measurement) else question.default_unit
        else:
            unit = parts[1].lower()
        return {"value": value, "unit": unit}

    if isinstance(question, DialQuestion):
        try:
            return int(raw)
        except ValueError:
            raise InvalidAnswerError(f"{question.key}: {raw!r} is not a whole number")

    if isinstance(question, AcknowledgeQuestion):
        return raw.lower() in ("y", "yes", "true", "accept")

    return raw


def _hint(question: Question, seeded: Any) -> None:
    if isinstance(question, ChoiceQuestion):
        for n, option in enumerate(question.options, start=1):
            console.print(f"  {n}. {option.label} [dim]({option.id})[/dim]")
    elif isinstance(question, MeasurementQuestion):
        units = ", ".join(f"{u} {r.minimum}-{r.maximum}" for u, r in question.units.items())
        console.print(f"  [dim]value and unit, e.g. '{question.default_value} {question.default_unit}' ({units})[/dim]")
    elif isinstance(question, DateQuestion):
        console.print("  [dim]date as YYYY-MM-DD[/dim]")
    elif isinstance(question, DialQuestion):
        console.print(
            f"  [dim]minutes {question.min_value}-{question.max_value} in steps of {question.step_size}, "
            f"or '@<degrees>' to turn the dial[/dim]"
        )
    elif isinstance(question, AcknowledgeQuestion):
        console.print("  [dim]type 'yes' to accept[/dim]")
    elif isinstance(question, InfoQuestion):
        console.print("  [dim]press Enter to continue[/dim]")

    if not isinstance(question, InfoQuestion):
        console.print(f"  [dim]current: {display_value(question, seeded)}[/dim]")


def ask(question: Question, seeded: Any) -> tuple[str, Any]:
    """
    Prompt until the user answers or navigates.

    Returns ("answer", value), ("back", None) or ("quit", None).
    """
    _hint(question, seeded)
    while True:
        raw = console.input("[bold blue]>[/bold blue] ").strip()
        lowered = raw.lower()
        if lowered in QUIT_WORDS:
            return "quit", None
        if lowered in BACK_WORDS:
            return "back", None

        if isinstance(seeded, CircularValueSelector) and raw.startswith("@"):
            try:
                degrees = float(raw[1:])
            except ValueError:
                console.print(f"[red]Not an angle: {raw[1:]!r}[/red]")
                continue
            value = seeded.on_drag(pointer_for_angle(degrees))
            console.print(f"  dial at {seeded.raw_angle_degrees:.0f}° -> [bold]{value} min[/bold]")
            continue

        try:
            return "answer", parse_answer(question, raw, seeded)
        except InvalidAnswerError as e:
            console.print(f"[red]{e}[/red]")


def _step_header(step, fraction: float, total: int) -> None:
    console.print(
        f"\n[bold]{step.value}[/bold] [dim]step {step.index + 1} of {total} ({fraction:.0%})[/dim]"
    )


# =============================================================================
# Commands
# =============================================================================


@app.command()
def onboard(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Show onboarding log output"),
) -> None:
    """Run onboarding in the terminal, resuming after a soft close."""
    from amped.config import settings
    from amped.logging_setup import configure_logging
    from onboarding.errors import TerminalStepError
    from onboarding.session import launch_sequencer
    from onboarding.steps import FIRST_STEP, LAST_STEP, STEP_ORDER
    from onboarding.store import JsonFileSettingsStore

    configure_logging(settings.log_level if verbose else "WARNING", console=console)

    store = JsonFileSettingsStore(settings.settings_path)
    sequencer = launch_sequencer(
        store,
        questions=settings.question_table(),
        hard_close_threshold=settings.hard_close_threshold_seconds,
    )
    tracker = sequencer.progress

    resumed = sequencer.current_step != FIRST_STEP
    console.print(
        Panel.fit(
            "[bold green]Amped[/bold green]\n"
            + (f"Welcome back - resuming at {sequencer.current_step.value}.\n\n" if resumed else "Let's get you set up.\n\n")
            + "[dim]Type 'back' to go back, 'quit' to stop and save progress.[/dim]",
            title="Onboarding",
            border_style="green",
        )
    )

    try:
        while not sequencer.is_complete:
            step = sequencer.current_step
            if step == LAST_STEP:
                break

            question = sequencer.question()
            seeded = sequencer.input_for()
            _step_header(step, sequencer.progress_fraction, len(STEP_ORDER))

            command, answer = ask(question, seeded)
            if command == "quit":
                tracker.mark_background()
                console.print("\n[dim]Progress saved. Run 'amped onboard' again soon to pick up here.[/dim]")
                return
            if command == "back":
                sequencer.go_back()
                continue

            try:
                sequencer.advance(answer, step=step)
            except InvalidAnswerError as e:
                console.print(f"[red]{e}[/red]")
            except TerminalStepError:
                break

    except KeyboardInterrupt:
        tracker.mark_background()
        console.print("\n\n[dim]Interrupted. Progress saved.[/dim]")
        return

    tracker.clear()
    console.print(
        Panel.fit(
            "[bold green]You're all set![/bold green]\nYour dashboard is ready.",
            border_style="green",
        )
    )


@app.command()
def edit(
    step_id: str = typer.Argument(..., help="Step id, e.g. goalsStats"),
) -> None:
    """Change one stored answer, as from the settings screen."""
    from amped.config import settings
    from onboarding.sequencer import OnboardingSequencer
    from onboarding.steps import Step
    from onboarding.store import JsonFileSettingsStore

    step = Step.from_id(step_id)
    if step is None:
        console.print(f"[red]Unknown step: {step_id}[/red]")
        raise typer.Exit(1)

    store = JsonFileSettingsStore(settings.settings_path)
    sequencer = OnboardingSequencer(store, questions=settings.question_table())
    question = sequencer.question(step)
    if isinstance(question, InfoQuestion):
        console.print(f"[yellow]{step.value} has nothing to edit[/yellow]")
        raise typer.Exit(1)

    seeded = sequencer.resume_for_editing(step)
    console.print(f"\n[bold]Edit {step.value}[/bold]")

    while True:
        command, answer = ask(question, seeded)
        if command != "answer":
            sequencer.cancel_editing()
            console.print("[dim]No changes saved.[/dim]")
            return
        try:
            sequencer.finish_editing(answer)
        except InvalidAnswerError as e:
            console.print(f"[red]{e}[/red]")
            continue
        console.print(f"[green]Saved[/green] {step.value}: {display_value(question, question.load(store))}")
        return


@app.command()
def progress() -> None:
    """Show saved onboarding progress and stored answers."""
    from amped.config import settings
    from onboarding.progress import ProgressTracker
    from onboarding.steps import STEP_ORDER, progress_fraction
    from onboarding.store import JsonFileSettingsStore

    store = JsonFileSettingsStore(settings.settings_path)
    tracker = ProgressTracker(store, hard_close_threshold=settings.hard_close_threshold_seconds)
    questions = settings.question_table()

    console.print(f"\n[bold]Onboarding Progress[/bold] [dim]({settings.settings_path})[/dim]\n")
    saved = tracker.saved_step()
    if saved is None:
        console.print("  No saved step")
    else:
        console.print(f"  Saved step: {saved.value} ({progress_fraction(saved):.0%})")
        console.print(f"  Next launch: {tracker.detect_closure().value} close")

    console.print("\n[bold]Answers:[/bold]")
    for step in STEP_ORDER:
        question = questions[step]
        if isinstance(question, InfoQuestion):
            continue
        stored = store.get(question.key)
        shown = display_value(question, question.load(store)) if stored is not None else "[dim]-[/dim]"
        console.print(f"  • {step.value}: {shown}")


@app.command()
def reset(
    answers: bool = typer.Option(False, "--answers", help="Also delete stored answers"),
    yes: bool = typer.Option(False, "--yes", "-y", help="Do not ask for confirmation"),
) -> None:
    """Clear saved onboarding progress."""
    from amped.config import settings
    from onboarding.progress import ProgressTracker
    from onboarding.store import JsonFileSettingsStore

    if answers and not yes:
        typer.confirm("Delete all stored onboarding answers?", abort=True)

    store = JsonFileSettingsStore(settings.settings_path)
    ProgressTracker(store).reset_all()
    console.print("[green]Progress cleared[/green]")

    if answers:
        removed = 0
        for question in settings.question_table().values():
            for key in question.keys + [question.legacy_key, getattr(question, "legacy_unit_key", None)]:
                if key and store.get(key) is not None:
                    store.remove(key)
                    removed += 1
        console.print(f"[green]Removed {removed} stored answer keys[/green]")


@app.command()
def serve(
    port: int = typer.Option(8000, "--port", "-p", help="Port to run on"),
    reload: bool = typer.Option(False, "--reload", "-r", help="Enable auto-reload for development"),
) -> None:
    """Start the web host."""
    import os

    import uvicorn

    actual_port = int(os.environ.get("PORT", port))

    console.print("\n[bold green]Amped Web[/bold green]")
    console.print(f"Starting server on http://localhost:{actual_port}")
    console.print("[dim]Press Ctrl+C to stop[/dim]\n")

    uvicorn.run(
        "amped.web.app:create_app",
        factory=True,
        host="0.0.0.0",
        port=actual_port,
        reload=reload,
    )


@app.command()
def health() -> None:
    """Check configuration and the settings store."""
    from amped.config import get_settings
    from onboarding.store import JsonFileSettingsStore

    console.print("\n[bold]Amped Health Check[/bold]\n")

    try:
        settings = get_settings()
        console.print("✅ Configuration loaded")
        console.print(f"   Environment: {settings.amped_env}")
        console.print(f"   Log level: {settings.log_level}")

        questions = settings.question_table()
        console.print(f"✅ Question table built ({len(questions)} steps)")
        console.print(
            f"   Goal dial: 0-{settings.goal_dial_max_minutes} min, "
            f"step {settings.goal_dial_step_minutes}, default {settings.goal_default_minutes}"
        )

        store = JsonFileSettingsStore(settings.settings_path)
        console.print(f"✅ Settings store readable ({len(store.snapshot())} keys)")
        console.print(f"   Path: {settings.settings_path}")

        console.print("\n[green]All checks passed![/green]")

    except Exception as e:
        console.print(f"\n[red]❌ Configuration error: {e}[/red]")
        console.print("[dim]Check your .env file and AMPED_* variables.[/dim]")
        raise typer.Exit(1)


@app.command()
def version() -> None:
    """Show version information."""
    from amped import __version__

    console.print(f"Amped version {__version__}")


if __name__ == "__main__":
    app()
