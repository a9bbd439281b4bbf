"""Command-line entry point: ``schemapilot init | query | status``."""
import argparse
import logging
import sys
from pathlib import Path
from typing import Dict, List, Optional, Sequence, Tuple

from sqlalchemy.exc import SQLAlchemyError

from schemapilot.core.config import Settings, settings
from schemapilot.core.engine import Orchestrator
from schemapilot.core.errors import ExternalFailure
from schemapilot.core.llm import OpenAIReasoningEngine, ReasoningEngine
from schemapilot.core.logging import configure_logging
from schemapilot.core.workflow import STAGE_ORDER, RunReport, RunStatus
from schemapilot.db.ledger import RunLedger
from schemapilot.db.session import anchor_sqlite_url
from schemapilot.generators.render import SCAFFOLD_DIRS, SCAFFOLD_FILES
from schemapilot.generators.writer import write_text

log = logging.getLogger(__name__)

_STAGE_LABELS = {
    "schema_written": "schema",
    "migration_generated": "migration",
    "migration_applied": "migrated",
    "endpoint_written": "endpoint",
    "hook_written": "hook",
}

# Extra files `status` looks for besides the scaffold
_STATUS_CHECKS = ["alembic.ini"]


def build_engine(cfg: Settings) -> ReasoningEngine:
    return OpenAIReasoningEngine(
        model=cfg.engine_model,
        api_key=cfg.engine_api_key,
        base_url=cfg.engine_base_url,
        timeout=cfg.step_timeout,
    )


def _ledger_url(cfg: Settings) -> str:
    # The default ledger lives under the project, not the current directory
    return anchor_sqlite_url(cfg.ledger_url, Path(cfg.project_root))


def positive_int(value: str) -> int:
    try:
        number = int(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f"invalid integer: {value!r}") from None
    if number < 1:
        raise argparse.ArgumentTypeError(f"must be at least 1, got {number}")
    return number


def format_progress(rows: Sequence[Tuple[str, Dict[str, bool]]]) -> List[str]:
    """Render per-entity stage completion as aligned text rows."""
    if not rows:
        return ["  (no entities)"]
    width = max(len("entity"), *(len(name) for name, _ in rows))
    header = "  " + "entity".ljust(width) + "  " + "  ".join(_STAGE_LABELS[s.value] for s in STAGE_ORDER)
    lines = [header]
    for name, stages in rows:
        cells = []
        for stage in STAGE_ORDER:
            label = _STAGE_LABELS[stage.value]
            cells.append(("✓" if stages.get(stage.value) else "✗").center(len(label)))
        lines.append("  " + name.ljust(width) + "  " + "  ".join(cells))
    return lines


def cmd_init(args: argparse.Namespace, cfg: Settings) -> int:
    root = Path(cfg.project_root)
    for relative, content in SCAFFOLD_FILES.items():
        if (root / relative).exists():
            print(f"  skipped  {relative} (exists)")
            continue
        write_text(root, relative, content)
        print(f"  created  {relative}")
    for relative in SCAFFOLD_DIRS:
        (root / relative).mkdir(parents=True, exist_ok=True)
        print(f"  ensured  {relative}/")
    print("\nNext: set ENGINE_API_KEY in .env, then run `schemapilot query \"<what to store>\"`.")
    return 0


def print_report(report: RunReport, verbose: bool = False) -> None:
    if report.final_answer:
        print(report.final_answer)
        print()

    if verbose or report.steps_used > 3:
        print(f"Steps ({report.steps_used}/{report.budget}):")
        for step in report.steps:
            mark = "✓" if step.ok else "✗"
            print(f"  {step.sequence_number:>2}. {mark} {step.tool_name}: {step.output.splitlines()[0] if step.output else ''}")
        print()

    print("Progress:")
    for line in format_progress(report.progress_rows()):
        print(line)
    print()

    messages = {
        RunStatus.COMPLETED: "All entities completed.",
        RunStatus.BUDGET_EXHAUSTED: "Step budget exhausted; completed stages were kept. Re-run to continue.",
        RunStatus.CANCELLED: "Cancelled; files already written were kept.",
        RunStatus.NEEDS_CLARIFICATION: "No entities found. Please describe what data should be stored.",
    }
    suffix = " (dry run, nothing written)" if report.dry_run else ""
    print(f"Status: {report.status.value}{suffix}. {messages[report.status]}")


def cmd_query(args: argparse.Namespace, cfg: Settings, engine: Optional[ReasoningEngine] = None) -> int:
    try:
        engine = engine or build_engine(cfg)
    except ExternalFailure as e:
        print(f"Error: {e}", file=sys.stderr)
        return 2

    orchestrator = Orchestrator(
        engine=engine,
        project_root=Path(cfg.project_root),
        budget=args.budget if args.budget is not None else cfg.step_budget,
        timeout=cfg.step_timeout,
        max_observation_chars=cfg.max_observation_chars,
        dry_run=args.dry_run,
        migration_generate_command=cfg.migration_generate_command,
        migration_label_flag=cfg.migration_label_flag,
        migration_apply_command=cfg.migration_apply_command,
    )
    report = orchestrator.run(args.text)
    print_report(report, verbose=args.verbose)

    try:
        RunLedger(_ledger_url(cfg)).record(report)
    except SQLAlchemyError as e:
        log.warning("Could not record run: %s", e, extra={"run_id": report.run_id})

    return 0 if report.is_complete else 1


def _list_generated(root: Path) -> None:
    for title, directory, pattern in (
        ("Schemas", "app/models", "*.py"),
        ("Endpoints", "app/api", "*.py"),
        ("Hooks", "src/hooks", "*.ts"),
    ):
        files = sorted(p.name for p in (root / directory).glob(pattern) if p.name != "__init__.py")
        print(f"{title}: {', '.join(files) if files else '(none)'}")


def cmd_status(args: argparse.Namespace, cfg: Settings) -> int:
    root = Path(cfg.project_root)
    print("Project structure:")
    for relative in [*SCAFFOLD_FILES, *_STATUS_CHECKS, *SCAFFOLD_DIRS]:
        mark = "✓" if (root / relative).exists() else "✗"
        print(f"  {mark} {relative}")
    print()

    ledger = RunLedger(_ledger_url(cfg))
    latest = ledger.latest()
    if latest is None:
        print("No runs recorded yet.")
    else:
        print(f"Last run ({latest.created_at:%Y-%m-%d %H:%M}): {latest.status}, {latest.steps_used}/{latest.budget} steps")
        print(f"  request: {latest.request}")
        for line in format_progress([(p["entity"], p["stages"]) for p in latest.progress]):
            print(line)

    if args.all:
        print()
        _list_generated(root)
        print()
        print("Recent runs:")
        for record in ledger.recent():
            print(f"  {record.created_at:%Y-%m-%d %H:%M}  {record.status:<20} {record.request}")
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="schemapilot", description="Generate database-backed features from plain-language requests")
    sub = parser.add_subparsers(dest="command", required=True)

    sub.add_parser("init", help="Create the project scaffold (.env, app/db/session.py, src/hooks)")

    query = sub.add_parser("query", help="Run the agent on a request")
    query.add_argument("text", help="What to store, e.g. \"the recently played songs\"")
    query.add_argument("--verbose", "-v", action="store_true", help="Show every step and debug logs")
    query.add_argument("--dry-run", action="store_true", help="Preview artifacts without writing files or running migrations")
    query.add_argument("--budget", type=positive_int, default=None, help="Maximum number of steps")

    status = sub.add_parser("status", help="Show project structure and the last run")
    status.add_argument("--all", action="store_true", help="Also list generated files and recent runs")
    return parser


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    configure_logging(logging.DEBUG if getattr(args, "verbose", False) else logging.INFO)

    if args.command == "init":
        return cmd_init(args, settings)
    if args.command == "query":
        return cmd_query(args, settings)
    return cmd_status(args, settings)


if __name__ == "__main__":
    sys.exit(main())
