"""
demo_session.py – Interactive terminal demo of the adaptive exercise loop

Run:
    python demo_session.py

Works without credentials: with no .env (or FORCE_MOCK_MODE=true) every
scenario and every evaluation comes from the built-in fallback templates.
Set AZURE_OPENAI_ENDPOINT + AZURE_OPENAI_API_KEY, or OPENAI_API_KEY, for
live generation.  See .env.example for format.
"""

from __future__ import annotations

import sys
import uuid
from pathlib import Path

# ── make src/ importable without installing the package ──────────────────────
sys.path.insert(0, str(Path(__file__).parent / "src"))

from rich import box
from rich.console import Console
from rich.panel import Panel
from rich.prompt import Confirm, Prompt
from rich.table import Table

from progressive_learning.config import configure_logging, get_settings
from progressive_learning.difficulty import skill_description
from progressive_learning.guardrails import GuardrailLevel
from progressive_learning.models import DOMAIN_REGISTRY, Domain, Level, ProgressiveScenario, ScenarioFeedback
from progressive_learning.progressive_agent import ProgressiveLearningAgent
from progressive_learning.session import LearningSession, ResponseRejected

console = Console()

# ─── Colour map for skill bands ──────────────────────────────────────────────
SKILL_STYLE = {
    "Expert":     "bold green",
    "Proficient": "bold cyan",
    "Developing": "bold yellow",
    "Beginner":   "yellow",
    "Novice":     "bold red",
}


# ─── Display helpers ─────────────────────────────────────────────────────────

def _bar(value: float, top: float = 10.0, width: int = 16) -> str:
    filled = round(value / top * width)
    return "[" + "█" * filled + "░" * (width - filled) + f"] {value:.1f}"


def show_scenario(scenario: ProgressiveScenario) -> None:
    tag = "Adaptive" if scenario.is_adaptive else "Baseline"
    console.print()
    console.print(Panel(
        f"{scenario.scenario}\n\n"
        f"[dim]{scenario.context}[/dim]\n\n"
        f"[bold]Skills:[/bold] {', '.join(scenario.skills_required) or '—'}   "
        f"[bold]Difficulty:[/bold] {scenario.difficulty:g}/10   "
        f"[bold]Type:[/bold] {tag}",
        title=f"[bold]{scenario.title}[/bold]",
        border_style="magenta",
    ))


def show_feedback(feedback: ScenarioFeedback) -> None:
    colour = "green" if feedback.score >= 75 else "yellow" if feedback.score >= 60 else "red"
    body = Table(box=box.ROUNDED, show_header=False, padding=(0, 1))
    body.add_column("Key",   style="bold cyan", no_wrap=True)
    body.add_column("Value", style="white")
    body.add_row("Score",        f"[bold {colour}]{feedback.score:g}/100[/bold {colour}]")
    body.add_row("Strengths",    "\n".join(f"✓ {s}" for s in feedback.strengths) or "[dim]—[/dim]")
    body.add_row("Improve",      "\n".join(f"→ {s}" for s in feedback.improvements) or "[dim]—[/dim]")
    body.add_row("Next focus",   feedback.next_focus or "[dim]—[/dim]")
    body.add_row("Confidence",   f"{feedback.confidence_level:g}/10")
    body.add_row("Ready for more", "[green]Yes[/green]" if feedback.readiness_for_next else "[yellow]Not yet[/yellow]")
    console.print(Panel(body, title="[bold]Feedback[/bold]", border_style=colour))


def show_progress(agent: ProgressiveLearningAgent, user_id: str) -> None:
    analytics = agent.get_learning_analytics(user_id)
    if analytics is None:
        return
    table = Table(box=box.SIMPLE_HEAD, header_style="bold white on dark_violet", padding=(0, 1))
    table.add_column("Skill",    style="white", min_width=24)
    table.add_column("Level",    min_width=24)
    table.add_column("Band",     justify="center")
    table.add_column("Growth",   justify="right")
    for skill, value in analytics.skill_progression.items():
        band = skill_description(value)
        style = SKILL_STYLE[band]
        growth = analytics.overall_progress.skill_growth.get(skill, 0.0)
        table.add_row(skill, _bar(value), f"[{style}]{band}[/{style}]", f"+{growth:.1f}")

    progress = analytics.overall_progress
    readiness = analytics.readiness
    console.print(Panel(
        table,
        title=(
            f"[bold]Progress[/bold]  {progress.scenarios_completed} done · "
            f"avg {progress.average_score}% · trend {progress.improvement_trend:+.1f}"
        ),
        subtitle=f"[dim]{readiness.recommendation}[/dim]",
        border_style="blue",
    ))


def _read_answer() -> str:
    console.print("[dim]Type your answer. Finish with an empty line.[/dim]")
    lines = []
    while True:
        line = console.input()
        if not line.strip():
            break
        lines.append(line)
    return "\n".join(lines)


# ─── Main ────────────────────────────────────────────────────────────────────

def main() -> None:
    configure_logging()
    settings = get_settings()

    console.print()
    console.print(Panel(
        "[bold]Progressive Learning Coach[/bold]\n"
        f"[dim]Generator: {settings.status_summary()['Generator mode']}  •  "
        f"Memory: {settings.storage.db_path}[/dim]",
        style="on dark_violet",
        expand=False,
    ))

    try:
        domain = Domain(Prompt.ask(
            "Track", choices=[d.value for d in Domain], default=Domain.AI.value,
        ))
        level = Level(Prompt.ask(
            "Level", choices=[lv.value for lv in Level], default=Level.BEGINNER.value,
        ))
        user_id = Prompt.ask("Learner id", default=f"learner-{uuid.uuid4().hex[:8]}")
        console.print(f"[dim]{DOMAIN_REGISTRY[domain]['name']} · {level.value}[/dim]")

        agent = ProgressiveLearningAgent()
        session = LearningSession(agent, user_id)

        with console.status("[bold blue]Preparing your first scenario…"):
            scenario = session.start(domain, level)

        while True:
            show_scenario(scenario)
            answer = _read_answer()
            try:
                with console.status("[bold blue]Evaluating your answer…"):
                    feedback = session.submit(answer)
            except ResponseRejected as rejected:
                console.print(f"[bold red]{rejected}[/bold red]")
                continue
            for v in session.last_check.violations:
                if v.level == GuardrailLevel.WARN:
                    console.print(f"[yellow]⚠ {v.message}[/yellow]")

            show_feedback(feedback)
            show_progress(agent, user_id)

            if not Confirm.ask("Continue to the next scenario?", default=True):
                break
            with console.status("[bold blue]Adapting the next scenario…"):
                scenario = session.next_scenario()

        console.rule("[bold green]Session saved. Pick up where you left off any time[/bold green]")

    except KeyboardInterrupt:
        console.print("\n[yellow]Interrupted.[/yellow]")
        sys.exit(0)

    except Exception:
        console.print_exception()
        sys.exit(1)


if __name__ == "__main__":
    main()
