"""Agent skill installation.

Copies the packaged ``SKILL.md`` usage guide into an agent skills
directory so coding agents discover how to drive lopen-memory.

This module is headless - no CLI dependencies.
"""

import logging
from pathlib import Path

from lopen_memory.core.errors import StorageError

logger = logging.getLogger(__name__)

SKILL_NAME = "lopen-memory"
SKILL_SOURCE = Path(__file__).parent.parent / "skill" / "SKILL.md"


def skill_content() -> str:
    """Text of the packaged SKILL.md."""
    try:
        return SKILL_SOURCE.read_text(encoding="utf-8")
    except OSError as e:
        raise StorageError(f"packaged skill file is unreadable: {e}") from e


def install_skill(skills_dir: Path) -> Path:
    """Write SKILL.md to ``<skills_dir>/lopen-memory/SKILL.md``.

    Args:
        skills_dir: Base skills directory (created if missing)

    Returns:
        Path of the written file

    Raises:
        StorageError: If the directory or file cannot be written
    """
    target_dir = Path(skills_dir) / SKILL_NAME
    dest = target_dir / "SKILL.md"
    content = skill_content()

    try:
        target_dir.mkdir(parents=True, exist_ok=True)
        dest.write_text(content, encoding="utf-8")
    except OSError as e:
        logger.error(f"Failed to install skill to {dest}: {e}")
        raise StorageError(f"failed to write {dest}: {e}") from e

    logger.info(f"Installed skill to {dest}")
    return dest
