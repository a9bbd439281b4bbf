from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any, Dict, FrozenSet, List, Optional, Tuple

from schemapilot.core.errors import ValidationError
from schemapilot.generators.types import EntitySpec


class LifecycleStage(str, Enum):
    SCHEMA_WRITTEN = "schema_written"
    MIGRATION_GENERATED = "migration_generated"
    MIGRATION_APPLIED = "migration_applied"
    ENDPOINT_WRITTEN = "endpoint_written"
    HOOK_WRITTEN = "hook_written"


# Every discovered entity must pass through these, in this order.
STAGE_ORDER = (
    LifecycleStage.SCHEMA_WRITTEN,
    LifecycleStage.MIGRATION_GENERATED,
    LifecycleStage.MIGRATION_APPLIED,
    LifecycleStage.ENDPOINT_WRITTEN,
    LifecycleStage.HOOK_WRITTEN,
)


class RunStatus(str, Enum):
    COMPLETED = "completed"
    BUDGET_EXHAUSTED = "budget_exhausted"
    CANCELLED = "cancelled"
    NEEDS_CLARIFICATION = "needs_clarification"


@dataclass(frozen=True)
class EntityProgress:
    entity: EntitySpec
    completed: FrozenSet[LifecycleStage] = frozenset()

    def missing(self) -> List[LifecycleStage]:
        return [s for s in STAGE_ORDER if s not in self.completed]


@dataclass(frozen=True)
class WorkflowState:
    """
    Per-run record of discovered entities and their completed stages.

    Immutable: every transition returns a new state, so the orchestrator
    threads it through the loop explicitly.
    """
    entities: Tuple[EntityProgress, ...] = ()

    def get(self, entity_name: str) -> Optional[EntityProgress]:
        for progress in self.entities:
            if progress.entity.name == entity_name:
                return progress
        return None

    def __contains__(self, entity_name: str) -> bool:
        return self.get(entity_name) is not None

    @property
    def entity_names(self) -> List[str]:
        return [p.entity.name for p in self.entities]

    def discover(self, entity: EntitySpec) -> "WorkflowState":
        """Track a new entity. Already-known names keep their original spec and progress."""
        if entity.name in self:
            return self
        return replace(self, entities=self.entities + (EntityProgress(entity=entity),))

    def define(self, entity: EntitySpec) -> "WorkflowState":
        """Track ``entity`` as written: replaces a known name's spec, keeps its progress."""
        if entity.name not in self:
            return self.discover(entity)
        updated = tuple(
            replace(p, entity=entity) if p.entity.name == entity.name else p
            for p in self.entities
        )
        return replace(self, entities=updated)

    def complete(self, entity_name: str, stage: LifecycleStage) -> "WorkflowState":
        if entity_name not in self:
            raise ValidationError(f"Unknown entity '{entity_name}'")
        updated = tuple(
            replace(p, completed=p.completed | {stage}) if p.entity.name == entity_name else p
            for p in self.entities
        )
        return replace(self, entities=updated)

    def has(self, entity_name: str, stage: LifecycleStage) -> bool:
        progress = self.get(entity_name)
        return progress is not None and stage in progress.completed

    def with_stage(self, stage: LifecycleStage) -> List[str]:
        """Names of entities that have completed ``stage``."""
        return [p.entity.name for p in self.entities if stage in p.completed]

    def missing(self, entity_name: str) -> List[LifecycleStage]:
        progress = self.get(entity_name)
        if progress is None:
            raise ValidationError(f"Unknown entity '{entity_name}'")
        return progress.missing()

    def incomplete(self) -> List[Tuple[str, List[LifecycleStage]]]:
        """(entity name, missing stages) for every entity that is not finished."""
        return [(p.entity.name, p.missing()) for p in self.entities if p.missing()]

    @property
    def is_complete(self) -> bool:
        return not self.incomplete()


@dataclass(frozen=True)
class Step:
    """One iteration of the orchestration loop."""
    sequence_number: int
    tool_name: str
    input: Dict[str, Any]
    ok: bool
    output: str
    error_kind: Optional[str] = None


@dataclass
class RunReport:
    run_id: str
    request: str
    status: RunStatus
    budget: int
    dry_run: bool = False
    steps: List[Step] = field(default_factory=list)
    state: WorkflowState = field(default_factory=WorkflowState)
    final_answer: Optional[str] = None

    @property
    def steps_used(self) -> int:
        return len(self.steps)

    @property
    def is_complete(self) -> bool:
        return self.status == RunStatus.COMPLETED

    def progress_rows(self) -> List[Tuple[str, Dict[str, bool]]]:
        """Per-entity stage completion, in discovery order."""
        return [
            (p.entity.name, {stage.value: stage in p.completed for stage in STAGE_ORDER})
            for p in self.state.entities
        ]
