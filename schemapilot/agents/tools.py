"""
Tool handlers.

Each handler takes its validated input model and a read-only ToolContext and
returns a ToolOutcome. Handlers never touch WorkflowState; they report which
entities they discovered or defined and which stages they completed, and the
orchestrator folds that into the next state.
"""
import logging
import re
from pathlib import Path
from typing import Any, Dict, List, Optional

from schemapilot.agents.base import ToolContext, ToolOutcome
from schemapilot.agents.segmenter import segment_request
from schemapilot.core.errors import ExternalFailure, SchemaPilotError, ValidationError
from schemapilot.core.process import build_command
from schemapilot.core.workflow import LifecycleStage
from schemapilot.generators.render_endpoint import compile_endpoint, route_path
from schemapilot.generators.render_hook import compile_hook
from schemapilot.generators.render_schema import compile_schema
from schemapilot.generators.render_seed import compile_seed
from schemapilot.generators.types import EntitySpec, GeneratedArtifact
from schemapilot.generators.utils import derive_identifiers
from schemapilot.generators.writer import edit_file, read_text_file, resolve_path, write_artifact, write_text
from schemapilot.schemas.tools import (
    AnalyzeRequestInput,
    AnalyzeSchemaInput,
    CreateApiClientHookInput,
    CreateApiEndpointInput,
    CreateMultipleSchemasInput,
    CreateSchemaInput,
    EditFileInput,
    EntityInput,
    GenerateMigrationInput,
    ListFilesInput,
    ReadFileInput,
    RunMigrationInput,
    SeedDatabaseInput,
    WriteFileInput,
)

log = logging.getLogger(__name__)

# Directories the engine is never allowed to list
_HIDDEN_DIRS = {".git", "node_modules"}

MODELS_DIR = "app/models"

_TABLENAME_RE = re.compile(r'__tablename__\s*=\s*"([^"]+)"')
_COLUMN_RE = re.compile(r'Column\("([^"]+)"')


def _emit(artifact: GeneratedArtifact, ctx: ToolContext) -> Dict[str, Any]:
    """Write an artifact, or describe it without writing in dry-run."""
    if ctx.dry_run:
        return {"path": artifact.target_path, "action": "preview", "content": artifact.content}
    outcome = write_artifact(artifact, ctx.project_root)
    return {"path": outcome.path, "action": outcome.action}


def _entity_from_input(inp: EntityInput) -> EntitySpec:
    return EntitySpec.build(inp.name, inp.description, [f.model_dump() for f in inp.fields])


# --- File tools ------------------------------------------------------------

def list_files(inp: ListFilesInput, ctx: ToolContext) -> ToolOutcome:
    relative = (inp.path or "").strip() or "."
    if any(part in _HIDDEN_DIRS for part in Path(relative).parts):
        raise ValidationError(f"You cannot list the path: {relative}")
    target = resolve_path(ctx.project_root, relative)
    if not target.is_dir():
        raise ValidationError(f"'{relative}' is not a directory")
    entries = sorted(f"{p.name}/" if p.is_dir() else p.name for p in target.iterdir())
    return ToolOutcome(ok=True, message=f"{len(entries)} entries in '{relative}'", data={"path": relative, "entries": entries})


def read_file(inp: ReadFileInput, ctx: ToolContext) -> ToolOutcome:
    target = resolve_path(ctx.project_root, inp.path)
    if not target.is_file():
        raise ValidationError(f"File '{inp.path}' does not exist")
    return ToolOutcome(ok=True, message=f"Read '{inp.path}'", data={"path": inp.path, "content": read_text_file(target, inp.path)})


def write_file(inp: WriteFileInput, ctx: ToolContext) -> ToolOutcome:
    if ctx.dry_run:
        resolve_path(ctx.project_root, inp.path)
        return ToolOutcome(ok=True, message=f"Dry run: would write '{inp.path}'", data={"path": inp.path, "action": "preview"})
    outcome = write_text(ctx.project_root, inp.path, inp.content)
    return ToolOutcome(ok=True, message=f"File '{outcome.path}' {outcome.action}", data={"path": outcome.path, "action": outcome.action})


def edit_file_tool(inp: EditFileInput, ctx: ToolContext) -> ToolOutcome:
    if ctx.dry_run:
        resolve_path(ctx.project_root, inp.path)
        return ToolOutcome(ok=True, message=f"Dry run: would edit '{inp.path}'", data={"path": inp.path, "action": "preview"})
    outcome = edit_file(ctx.project_root, inp.path, inp.old_str, inp.new_str)
    return ToolOutcome(ok=True, message=f"File '{outcome.path}' {outcome.action}", data={"path": outcome.path, "action": outcome.action})


# --- Analysis tools --------------------------------------------------------

def analyze_request(inp: AnalyzeRequestInput, ctx: ToolContext) -> ToolOutcome:
    result = segment_request(inp.request)
    return ToolOutcome(
        ok=True,
        message=result.recommendation,
        data=result.to_dict(),
        discovered=tuple(result.entities),
    )


def analyze_schema(inp: AnalyzeSchemaInput, ctx: ToolContext) -> ToolOutcome:
    """Summarize existing model modules (table name and column names)."""
    models_dir = resolve_path(ctx.project_root, MODELS_DIR)
    wanted = derive_identifiers(inp.entity).canonical_name if inp.entity else None
    schemas: List[Dict[str, Any]] = []
    if models_dir.is_dir():
        for path in sorted(models_dir.glob("*.py")):
            if path.name == "__init__.py":
                continue
            source = read_text_file(path, f"{MODELS_DIR}/{path.name}")
            match = _TABLENAME_RE.search(source)
            table = match.group(1) if match else path.stem
            if wanted and table != wanted:
                continue
            schemas.append({
                "path": f"{MODELS_DIR}/{path.name}",
                "table": table,
                "columns": _COLUMN_RE.findall(source),
            })
    tracked = {name: [s.value for s in ctx.state.missing(name)] for name in ctx.state.entity_names}
    return ToolOutcome(
        ok=True,
        message=f"Found {len(schemas)} schema file(s)",
        data={"schemas": schemas, "pendingStages": tracked},
    )


# --- Schema tools ----------------------------------------------------------

def _create_one_schema(entity: EntitySpec, ctx: ToolContext) -> Dict[str, Any]:
    schema, types = compile_schema(entity)
    return {"entity": entity.name, "files": [_emit(schema, ctx), _emit(types, ctx)]}


def create_schema(inp: CreateSchemaInput, ctx: ToolContext) -> ToolOutcome:
    entity = _entity_from_input(inp)
    result = _create_one_schema(entity, ctx)
    return ToolOutcome(
        ok=True,
        message=f"Schema for '{entity.name}' {'previewed' if ctx.dry_run else 'written'}",
        data=result,
        defined=(entity,),
        completed=((entity.name, LifecycleStage.SCHEMA_WRITTEN),),
    )


def create_multiple_schemas(inp: CreateMultipleSchemasInput, ctx: ToolContext) -> ToolOutcome:
    """Create each schema independently; one bad entity does not block the others."""
    results: List[Dict[str, Any]] = []
    written: List[EntitySpec] = []
    for raw in inp.entities:
        try:
            entity = _entity_from_input(raw)
            results.append({"success": True, **_create_one_schema(entity, ctx)})
            written.append(entity)
        except SchemaPilotError as e:
            log.warning("Schema for %s failed: %s", raw.name, e)
            results.append({"success": False, "entity": raw.name, "error": str(e), "kind": e.kind})

    failed = [r["entity"] for r in results if not r["success"]]
    message = f"Created {len(written)} of {len(results)} schemas"
    if failed:
        message += f"; failed: {', '.join(failed)}"
    return ToolOutcome(
        ok=not failed,
        message=message,
        data={"results": results},
        defined=tuple(written),
        completed=tuple((e.name, LifecycleStage.SCHEMA_WRITTEN) for e in written),
    )


# --- Migration tools -------------------------------------------------------

def _run_migration_command(command: str, ctx: ToolContext, label: Optional[str] = None, label_flag: Optional[str] = None) -> Dict[str, Any]:
    if ctx.dry_run:
        argv = build_command(command, label, label_flag)
        return {"command": " ".join(argv), "action": "preview"}
    result = ctx.runner(command, label=label, cwd=ctx.project_root, timeout=ctx.timeout, label_flag=label_flag)
    if not result.ok:
        detail = (result.stderr or result.stdout).strip()
        raise ExternalFailure(f"'{' '.join(result.command)}' exited with status {result.exit_status}: {detail}")
    return {"command": " ".join(result.command), "stdout": result.stdout, "stderr": result.stderr}


def generate_migration(inp: GenerateMigrationInput, ctx: ToolContext) -> ToolOutcome:
    ready = ctx.state.with_stage(LifecycleStage.SCHEMA_WRITTEN)
    if not ready:
        raise ValidationError("Create at least one schema before generating a migration")
    data = _run_migration_command(ctx.migration_generate_command, ctx, inp.label, ctx.migration_label_flag)
    return ToolOutcome(
        ok=True,
        message=f"Migration generated for: {', '.join(ready)}",
        data=data,
        completed=tuple((name, LifecycleStage.MIGRATION_GENERATED) for name in ready),
    )


def run_migration(inp: RunMigrationInput, ctx: ToolContext) -> ToolOutcome:
    ready = ctx.state.with_stage(LifecycleStage.MIGRATION_GENERATED)
    if not ready:
        raise ValidationError("Generate a migration before applying it")
    data = _run_migration_command(ctx.migration_apply_command, ctx)
    return ToolOutcome(
        ok=True,
        message=f"Migration applied for: {', '.join(ready)}",
        data=data,
        completed=tuple((name, LifecycleStage.MIGRATION_APPLIED) for name in ready),
    )


# --- API tools -------------------------------------------------------------

def _require_stage(ctx: ToolContext, entity_name: str, stage: LifecycleStage, hint: str) -> None:
    if not ctx.state.has(entity_name, stage):
        raise ValidationError(f"{hint} for '{entity_name}' first (missing stage: {stage.value})")


def create_api_endpoint(inp: CreateApiEndpointInput, ctx: ToolContext) -> ToolOutcome:
    name = derive_identifiers(inp.entity).canonical_name
    _require_stage(ctx, name, LifecycleStage.SCHEMA_WRITTEN, "Create the schema")
    artifact = compile_endpoint(name, inp.methods, inp.route)
    data = _emit(artifact, ctx)
    data["route"] = route_path(name, inp.route)
    return ToolOutcome(
        ok=True,
        message=f"Endpoint for '{name}' at {data['route']}",
        data=data,
        completed=((name, LifecycleStage.ENDPOINT_WRITTEN),),
    )


def create_api_client_hook(inp: CreateApiClientHookInput, ctx: ToolContext) -> ToolOutcome:
    name = derive_identifiers(inp.entity).canonical_name
    _require_stage(ctx, name, LifecycleStage.ENDPOINT_WRITTEN, "Create the API endpoint")
    artifact = compile_hook(name, inp.route)
    data = _emit(artifact, ctx)
    data["hook"] = derive_identifiers(name).hook_name
    return ToolOutcome(
        ok=True,
        message=f"Hook {data['hook']} for '{name}'",
        data=data,
        completed=((name, LifecycleStage.HOOK_WRITTEN),),
    )


# --- Data tools ------------------------------------------------------------

def seed_database(inp: SeedDatabaseInput, ctx: ToolContext) -> ToolOutcome:
    """Write a seed module for an entity from sample rows; seeding is optional and completes no stage."""
    name = derive_identifiers(inp.entity).canonical_name
    _require_stage(ctx, name, LifecycleStage.SCHEMA_WRITTEN, "Create the schema")
    artifact = compile_seed(ctx.state.get(name).entity, inp.rows)
    data = _emit(artifact, ctx)
    data["rows"] = len(inp.rows)
    data["run"] = f"python -m app.seeds.{name}"
    return ToolOutcome(
        ok=True,
        message=f"Seed module for '{name}' with {len(inp.rows)} row(s)",
        data=data,
    )
