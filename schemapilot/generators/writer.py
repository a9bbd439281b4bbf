"""File writer for generated artifacts and engine-requested edits."""
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, List, Optional

from schemapilot.core.errors import AmbiguousEditError, ValidationError
from schemapilot.generators.types import GeneratedArtifact

log = logging.getLogger(__name__)


@dataclass(frozen=True)
class WriteOutcome:
    path: str  # Relative to the project root
    action: str  # "created", "overwritten" or "edited"


def resolve_path(root: Path, relative: str) -> Path:
    """Resolve ``relative`` under ``root``; anything escaping the root is rejected."""
    if not relative or not str(relative).strip():
        raise ValidationError("A path is required")
    base = Path(root).resolve()
    try:
        target = (base / str(relative).strip()).resolve()
    except ValueError as e:
        # e.g. embedded null byte
        raise ValidationError(f"Invalid path '{relative}': {e}") from e
    if target != base and base not in target.parents:
        raise ValidationError(f"Path '{relative}' is outside the project root")
    return target


def read_text_file(target: Path, display: str) -> str:
    """Read a UTF-8 text file; binary or otherwise undecodable files are a ValidationError."""
    try:
        return target.read_text(encoding="utf-8")
    except UnicodeDecodeError as e:
        raise ValidationError(f"'{display}' is not a UTF-8 text file") from e


def _relative(root: Path, target: Path) -> str:
    return target.relative_to(Path(root).resolve()).as_posix()


def write_text(root: Path, relative: str, content: str) -> WriteOutcome:
    """Create or overwrite a whole file, creating parent directories as needed."""
    target = resolve_path(root, relative)
    existed = target.exists()
    target.parent.mkdir(parents=True, exist_ok=True)
    target.write_text(content, encoding="utf-8")
    action = "overwritten" if existed else "created"
    log.debug("%s %s", action.capitalize(), target)
    return WriteOutcome(path=_relative(root, target), action=action)


def write_artifact(artifact: GeneratedArtifact, root: Path) -> WriteOutcome:
    return write_text(root, artifact.target_path, artifact.content)


def write_files(artifacts: Iterable[GeneratedArtifact], root: Path) -> List[WriteOutcome]:
    """
    Write generated artifacts under the project root.

    Args:
        artifacts: GeneratedArtifact objects to write
        root: Project root directory

    Returns:
        One WriteOutcome per artifact, in input order
    """
    return [write_artifact(artifact, root) for artifact in artifacts]


def edit_file(root: Path, relative: str, old_str: Optional[str], new_str: str) -> WriteOutcome:
    """
    Replace exactly one occurrence of ``old_str`` with ``new_str``.

    A missing file, or ``old_str`` of None/empty, writes ``new_str`` as the whole file.
    Zero or multiple matches are rejected rather than applied best-effort.
    """
    target = resolve_path(root, relative)
    if not old_str or not target.exists():
        return write_text(root, relative, new_str)
    if old_str == new_str:
        raise ValidationError("old_str and new_str must be different")
    if target.is_dir():
        raise ValidationError(f"'{relative}' is a directory")

    contents = read_text_file(target, relative)
    matches = contents.count(old_str)
    if matches == 0:
        raise AmbiguousEditError(f"old_str not found in '{relative}'")
    if matches > 1:
        raise AmbiguousEditError(f"old_str matches {matches} times in '{relative}'; it must match exactly once")

    target.write_text(contents.replace(old_str, new_str, 1), encoding="utf-8")
    log.debug("Edited %s", target)
    return WriteOutcome(path=_relative(root, target), action="edited")
