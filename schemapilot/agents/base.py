import json
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, Dict, Optional, Tuple, Type

from pydantic import ValidationError as PydanticValidationError

from schemapilot.core.errors import ValidationError
from schemapilot.core.process import ProcessResult, run_command
from schemapilot.core.workflow import LifecycleStage, WorkflowState
from schemapilot.generators.types import EntitySpec
from schemapilot.schemas.tools import ToolInput


@dataclass(frozen=True)
class ToolContext:
    """Read-only view handed to a tool handler for one step."""
    project_root: Path
    state: WorkflowState = field(default_factory=WorkflowState)
    dry_run: bool = False
    timeout: Optional[float] = None
    migration_generate_command: str = "alembic revision --autogenerate"
    migration_label_flag: str = "-m"
    migration_apply_command: str = "alembic upgrade head"
    runner: Callable[..., ProcessResult] = run_command


@dataclass(frozen=True)
class ToolOutcome:
    ok: bool
    message: str
    data: Dict[str, Any] = field(default_factory=dict)
    discovered: Tuple[EntitySpec, ...] = ()
    defined: Tuple[EntitySpec, ...] = ()  # written schemas; replace any detected draft
    completed: Tuple[Tuple[str, LifecycleStage], ...] = ()

    def to_observation(self) -> str:
        return json.dumps({"success": self.ok, "message": self.message, **self.data}, default=str)


@dataclass(frozen=True)
class ToolDefinition:
    name: str
    description: str
    input_model: Type[ToolInput]
    handler: Callable[[Any, ToolContext], ToolOutcome]
    side_effecting: bool = False

    def to_openai_schema(self) -> Dict[str, Any]:
        """Serialize to the OpenAI function-calling tool format."""
        return {
            "type": "function",
            "function": {
                "name": self.name,
                "description": self.description,
                "parameters": self.input_model.model_json_schema(),
            },
        }

    def parse(self, arguments: Any) -> ToolInput:
        """Validate raw engine arguments against this tool's input contract."""
        if isinstance(arguments, str):
            try:
                arguments = json.loads(arguments) if arguments.strip() else {}
            except json.JSONDecodeError as e:
                raise ValidationError(f"Arguments for '{self.name}' are not valid JSON: {e}") from e
        if not isinstance(arguments, dict):
            raise ValidationError(f"Arguments for '{self.name}' must be a JSON object")
        try:
            return self.input_model.model_validate(arguments)
        except PydanticValidationError as e:
            problems = "; ".join(
                f"{'.'.join(str(p) for p in err['loc']) or 'input'}: {err['msg']}" for err in e.errors()
            )
            raise ValidationError(f"Invalid arguments for '{self.name}': {problems}") from e
