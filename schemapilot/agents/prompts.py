"""Prompt text sent to the reasoning engine."""
import json
from typing import List, Tuple

from schemapilot.core.workflow import LifecycleStage
from schemapilot.generators.types import SegmentationResult

SYSTEM_PROMPT = """You are a database agent for a FastAPI + React project. Your role is to:

1. Identify every distinct data entity in the user's request
2. Generate a SQLAlchemy model and Pydantic types for each entity (create_schema / create_multiple_schemas)
3. Generate and apply a migration (generate_migration, then run_migration)
4. Generate a CRUD API endpoint for each entity (create_api_endpoint)
5. Generate a React data hook for each entity (create_api_client_hook)

If the user asks for sample or demo data, also call seed_database (optional, not a stage).

When the request mentions several concepts (for example "Made for you" and "Popular albums"),
create a SEPARATE table for each one. Never merge distinct concepts into one table.

Field kinds: short_text, long_text, integer, boolean, timestamp.
Constraints: required, unique, primary.
Do not declare id, createdAt or updatedAt; they are added automatically.

Call exactly one tool at a time. Do not give a final answer until every entity has
completed all five stages. Be concise."""

DRY_RUN_NOTE = (
    "This is a dry run: tools that write files or run migrations only return a preview. "
    "Still call every tool as you normally would."
)


def opening_message(request: str, segmentation: SegmentationResult, dry_run: bool = False) -> str:
    parts = [f"Request: {request}"]
    if segmentation.entities:
        parts.append("Entities detected in the request:")
        parts.append(json.dumps([e.to_dict() for e in segmentation.entities], indent=2))
    parts.append(segmentation.recommendation)
    if dry_run:
        parts.append(DRY_RUN_NOTE)
    return "\n\n".join(parts)


def correction_message(incomplete: List[Tuple[str, List[LifecycleStage]]]) -> str:
    """Observation injected when the engine tries to finish with work left."""
    lines = ["The workflow is not complete yet. Remaining stages:"]
    for name, missing in incomplete:
        lines.append(f"- {name}: {', '.join(s.value for s in missing)}")
    lines.append("Continue with the next tool call.")
    return "\n".join(lines)


def failure_message(tool_name: str, kind: str, message: str) -> str:
    return json.dumps({"success": False, "tool": tool_name, "kind": kind, "error": message})
