"""Main CLI application for lopen-memory.

Root options select the database and output mode; each entity family
is a command group registered below.

Usage:
    lopen-memory project add my-app /src/my-app "Core application"
    lopen-memory --json module list --project my-app
    lopen-memory --db /tmp/scratch.db research search jwt
"""

import logging
from pathlib import Path
from typing import Optional

import typer
from pydantic import ValidationError
from rich.markup import escape

from lopen_memory.cli.helpers import CliState, EXIT_USER_ERROR, err_console
from lopen_memory.core.config import configure_logging, load_settings

logger = logging.getLogger(__name__)

app = typer.Typer(
    name="lopen-memory",
    help="Persistent project memory: projects, modules, features, tasks and linked research",
    add_completion=False,
    no_args_is_help=True,
)


@app.callback()
def main(
    ctx: typer.Context,
    db: Optional[Path] = typer.Option(
        None, "--db", help="Database file (default: $LOPEN_MEMORY_DB or ~/.lopen-memory/lopen-memory.db)"
    ),
    json_output: bool = typer.Option(False, "--json", help="Output as JSON"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Debug logging on stderr"),
):
    """Persistent project memory for coding agents."""
    try:
        settings = load_settings()
    except ValidationError as e:
        err_console.print(f"[red]Error:[/red] invalid configuration: {escape(str(e))}")
        raise typer.Exit(EXIT_USER_ERROR)

    configure_logging("DEBUG" if verbose else settings.log_level)

    state = CliState(
        db_path=settings.resolve_db_path(db),
        json_output=json_output,
        settings=settings,
    )
    logger.debug(f"Using database {state.db_path}")
    ctx.obj = state
    ctx.call_on_close(state.close)


# =============================================================================
# Command groups
# NOTE: These imports must come after app definition (E402 intentional)
# =============================================================================

from lopen_memory.cli.project_commands import project_app  # noqa: E402
from lopen_memory.cli.module_commands import module_app  # noqa: E402
from lopen_memory.cli.feature_commands import feature_app  # noqa: E402
from lopen_memory.cli.task_commands import task_app  # noqa: E402
from lopen_memory.cli.research_commands import research_app  # noqa: E402
from lopen_memory.cli.skill_commands import skill_app  # noqa: E402

app.add_typer(project_app, name="project", help="Projects: one per codebase or repository")
app.add_typer(module_app, name="module", help="Modules: major bounded areas within a project")
app.add_typer(feature_app, name="feature", help="Features: discrete deliverables within a module")
app.add_typer(task_app, name="task", help="Tasks: concrete implementation steps within a feature")
app.add_typer(research_app, name="research", help="Research: reference material linked to any work entity")
app.add_typer(skill_app, name="skill", help="Agent skill file (install)")


if __name__ == "__main__":
    app()
