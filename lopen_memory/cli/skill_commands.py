"""CLI skill commands.

Usage:
    lopen-memory skill install
    lopen-memory skill install --skills-dir ./.agents/skills
"""

from pathlib import Path
from typing import Optional

import typer
from rich.markup import escape

from lopen_memory.cli.helpers import emit, get_state, handle_errors
from lopen_memory.core.skill import install_skill

skill_app = typer.Typer(
    name="skill",
    help="Agent skill commands",
    no_args_is_help=True,
)


@skill_app.command()
def install(
    ctx: typer.Context,
    skills_dir: Optional[Path] = typer.Option(
        None,
        "--skills-dir",
        help="Skills directory (default: $AGENTS_SKILLS_DIR or ~/.agents/skills)",
    ),
):
    """Install SKILL.md so coding agents can discover lopen-memory."""
    state = get_state(ctx)
    with handle_errors():
        dest = install_skill(state.settings.resolve_skills_dir(skills_dir))
    emit(
        state,
        {"installed": True, "path": str(dest)},
        f"skill installed: {escape(str(dest))}",
    )
