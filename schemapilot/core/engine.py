from __future__ import annotations
import json
import logging
import uuid
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Tuple

from schemapilot.agents.base import ToolContext
from schemapilot.agents.prompts import SYSTEM_PROMPT, correction_message, failure_message, opening_message
from schemapilot.agents.registry import ToolRegistry
from schemapilot.agents.segmenter import segment_request
from schemapilot.core.errors import ExternalFailure, ProtocolError, SchemaPilotError
from schemapilot.core.llm import ReasoningEngine, ToolCall
from schemapilot.core.process import ProcessResult, run_command
from schemapilot.core.workflow import RunReport, RunStatus, Step, WorkflowState

log = logging.getLogger(__name__)

ENGINE_STEP = "reasoning_engine"
FINAL_ANSWER_STEP = "final_answer"


def _raw_input(arguments: str) -> Dict[str, Any]:
    try:
        parsed = json.loads(arguments)
    except (json.JSONDecodeError, TypeError):
        return {"raw": arguments}
    return parsed if isinstance(parsed, dict) else {"raw": parsed}


class Orchestrator:
    """
    Bounded tool-calling loop between the reasoning engine and the tool registry.

    Every engine call consumes one step, whether it yields a tool execution, a
    rejected final answer or a failure. The run ends on an accepted final
    answer, when the step budget is used up, or on KeyboardInterrupt. Files
    written by earlier steps are never reverted.
    """

    def __init__(
        self,
        engine: ReasoningEngine,
        project_root: Path,
        registry: Optional[ToolRegistry] = None,
        budget: int = 15,
        timeout: Optional[float] = None,
        max_observation_chars: int = 20000,
        dry_run: bool = False,
        migration_generate_command: str = "alembic revision --autogenerate",
        migration_label_flag: str = "-m",
        migration_apply_command: str = "alembic upgrade head",
        runner: Callable[..., ProcessResult] = run_command,
    ):
        if budget < 1:
            raise ValueError("budget must be at least 1")
        self.engine = engine
        self.project_root = Path(project_root)
        self.registry = registry or ToolRegistry.default()
        self.budget = budget
        self.timeout = timeout
        self.max_observation_chars = max_observation_chars
        self.dry_run = dry_run
        self.migration_generate_command = migration_generate_command
        self.migration_label_flag = migration_label_flag
        self.migration_apply_command = migration_apply_command
        self.runner = runner

    def _context(self, state: WorkflowState) -> ToolContext:
        return ToolContext(
            project_root=self.project_root,
            state=state,
            dry_run=self.dry_run,
            timeout=self.timeout,
            migration_generate_command=self.migration_generate_command,
            migration_label_flag=self.migration_label_flag,
            migration_apply_command=self.migration_apply_command,
            runner=self.runner,
        )

    def _truncate(self, text: str) -> str:
        if len(text) <= self.max_observation_chars:
            return text
        return text[:self.max_observation_chars] + "\n...(truncated)"

    def execute_tool(self, call: ToolCall, state: WorkflowState, seq: int, run_id: str = "-") -> Tuple[WorkflowState, Step, str]:
        """
        Validate and run one proposed tool call.

        Returns the next state, the recorded step and the observation to feed
        back. Failures leave the state unchanged and become failure observations.
        """
        try:
            definition = self.registry.get(call.name)
            arguments = definition.parse(call.arguments)
            if self.dry_run and definition.side_effecting:
                log.info("Dry run: previewing %s", call.name, extra={"run_id": run_id, "stage": call.name})
            outcome = definition.handler(arguments, self._context(state))
        except (SchemaPilotError, OSError) as e:
            kind = getattr(e, "kind", "external")
            log.warning("Step %d %s failed: %s", seq, call.name, e, extra={"run_id": run_id, "stage": call.name})
            step = Step(seq, call.name, _raw_input(call.arguments), False, str(e), kind)
            return state, step, failure_message(call.name, kind, str(e))

        for entity in outcome.discovered:
            state = state.discover(entity)
        for entity in outcome.defined:
            state = state.define(entity)
        for entity_name, stage in outcome.completed:
            state = state.complete(entity_name, stage)

        log.info("Step %d %s: %s", seq, call.name, outcome.message, extra={"run_id": run_id, "stage": call.name})
        step = Step(
            seq,
            call.name,
            arguments.model_dump(),
            outcome.ok,
            outcome.message,
            None if outcome.ok else "partial",
        )
        return state, step, self._truncate(outcome.to_observation())

    def run(self, request: str, run_id: Optional[str] = None) -> RunReport:
        run_id = run_id or str(uuid.uuid4())
        extra = {"run_id": run_id, "stage": "-"}

        segmentation = segment_request(request)
        state = WorkflowState()
        for entity in segmentation.entities:
            state = state.discover(entity)
        log.info("Discovered %d entities: %s", len(state.entities), state.entity_names, extra=extra)

        messages: List[Dict[str, Any]] = [
            {"role": "system", "content": SYSTEM_PROMPT},
            {"role": "user", "content": opening_message(request, segmentation, self.dry_run)},
        ]
        tool_schemas = self.registry.schemas()
        steps: List[Step] = []
        final_answer: Optional[str] = None
        status: Optional[RunStatus] = None

        try:
            while len(steps) < self.budget:
                seq = len(steps) + 1
                try:
                    reply = self.engine.complete(messages, tool_schemas)
                except ProtocolError as e:
                    log.warning("Step %d: protocol error: %s", seq, e, extra=extra)
                    steps.append(Step(seq, ENGINE_STEP, {}, False, str(e), e.kind))
                    continue
                except ExternalFailure as e:
                    log.warning("Step %d: reasoning engine failed: %s", seq, e, extra=extra)
                    steps.append(Step(seq, ENGINE_STEP, {}, False, str(e), e.kind))
                    messages.append({"role": "user", "content": failure_message(ENGINE_STEP, e.kind, str(e))})
                    continue

                if reply.is_final:
                    if state.is_complete:
                        final_answer = reply.text
                        status = RunStatus.COMPLETED if state.entities else RunStatus.NEEDS_CLARIFICATION
                        break
                    correction = correction_message(state.incomplete())
                    log.info("Step %d: final answer rejected, workflow incomplete", seq, extra=extra)
                    steps.append(Step(seq, FINAL_ANSWER_STEP, {"text": reply.text}, False, correction, "incomplete_workflow"))
                    messages.append(reply.message)
                    messages.append({"role": "user", "content": correction})
                    continue

                call = reply.tool_call
                messages.append(reply.message)
                state, step, observation = self.execute_tool(call, state, seq, run_id)
                steps.append(step)
                messages.append({"role": "tool", "tool_call_id": call.call_id, "content": observation})
        except KeyboardInterrupt:
            log.warning("Run cancelled after %d steps", len(steps), extra=extra)
            status = RunStatus.CANCELLED

        if status is None:
            # Budget used up without an accepted final answer
            status = RunStatus.COMPLETED if state.entities and state.is_complete else RunStatus.BUDGET_EXHAUSTED
            if status == RunStatus.BUDGET_EXHAUSTED:
                log.warning("Step budget of %d exhausted", self.budget, extra=extra)

        log.info("Run finished: %s after %d steps", status.value, len(steps), extra=extra)
        return RunReport(
            run_id=run_id,
            request=request,
            status=status,
            budget=self.budget,
            dry_run=self.dry_run,
            steps=steps,
            state=state,
            final_answer=final_answer,
        )
