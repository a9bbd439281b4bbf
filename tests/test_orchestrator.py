"""Orchestrator scenarios driven by a scripted reasoning engine."""
import json
import tempfile
from pathlib import Path
from unittest.mock import MagicMock

from schemapilot.core.engine import FINAL_ANSWER_STEP, Orchestrator
from schemapilot.core.errors import EngineTimeout, ProtocolError
from schemapilot.core.llm import EngineReply, ReasoningEngine, ToolCall
from schemapilot.core.process import ProcessResult
from schemapilot.core.workflow import STAGE_ORDER, LifecycleStage, RunStatus

RECENTLY_PLAYED_FIELDS = [
    {"name": "title", "kind": "short_text", "constraints": ["required"]},
    {"name": "artist", "kind": "short_text", "constraints": ["required"]},
    {"name": "album", "kind": "short_text"},
    {"name": "duration", "kind": "integer"},
    {"name": "playedAt", "kind": "timestamp", "constraints": ["required"]},
]


class ScriptedEngine(ReasoningEngine):
    """Replays a fixed list of replies (or raises listed exceptions), then answers 'Done.'."""

    def __init__(self, script):
        self.script = list(script)
        self.calls = []

    def complete(self, messages, tools):
        self.calls.append(list(messages))
        if not self.script:
            return final("Done.")
        item = self.script.pop(0)
        if isinstance(item, BaseException):
            raise item
        return item


def tool(tool_name, _call_id=None, **arguments):
    raw = arguments.pop("_raw", None)
    text = raw if raw is not None else json.dumps(arguments)
    call = ToolCall(call_id=_call_id or f"call_{tool_name}", name=tool_name, arguments=text)
    message = {
        "role": "assistant",
        "content": None,
        "tool_calls": [{"id": call.call_id, "type": "function", "function": {"name": tool_name, "arguments": text}}],
    }
    return EngineReply(text=None, tool_call=call, message=message)


def final(text):
    return EngineReply(text=text, tool_call=None, message={"role": "assistant", "content": text})


def full_workflow(entity, fields):
    return [
        tool("create_schema", name=entity, fields=fields),
        tool("generate_migration", label=f"add {entity}"),
        tool("run_migration"),
        tool("create_api_endpoint", entity=entity),
        tool("create_api_client_hook", entity=entity),
    ]


def _runner():
    return MagicMock(return_value=ProcessResult(command=["alembic"], exit_status=0, stdout="ok", stderr=""))


def _orchestrator(engine, root, **kwargs):
    kwargs.setdefault("runner", _runner())
    return Orchestrator(engine=engine, project_root=root, **kwargs)


def test_recently_played_scenario_completes():
    with tempfile.TemporaryDirectory() as temp_dir:
        root = Path(temp_dir)
        engine = ScriptedEngine(full_workflow("recently_played_songs", RECENTLY_PLAYED_FIELDS) + [final("Table created.")])
        report = _orchestrator(engine, root).run("Can you store the recently played songs in a table")

        assert report.status == RunStatus.COMPLETED
        assert report.final_answer == "Table created."
        assert report.state.entity_names == ["recently_played_songs"]
        assert report.state.is_complete
        assert [s.sequence_number for s in report.steps] == [1, 2, 3, 4, 5]
        assert all(s.ok for s in report.steps)

        assert (root / "app/models/recently_played_songs.py").exists()
        assert (root / "app/schemas/recently_played_songs.py").exists()
        assert (root / "app/api/recently_played_songs.py").exists()
        assert (root / "src/hooks/useRecentlyPlayedSongs.ts").exists()

        # segmenter result is part of the opening message
        opening = engine.calls[0][1]["content"]
        assert "recently_played_songs" in opening
        assert "playedAt" in opening


def test_early_stop_is_corrected_for_second_entity():
    with tempfile.TemporaryDirectory() as temp_dir:
        root = Path(temp_dir)
        playlist_fields = [{"name": "title", "kind": "short_text", "constraints": ["required"]}]
        album_fields = [{"name": "title", "kind": "short_text"}, {"name": "artist", "kind": "short_text"}]
        script = (
            full_workflow("made_for_you_playlists", playlist_fields)
            + [final("Finished!")]
            + full_workflow("popular_albums", album_fields)
            + [final("Both tables are ready.")]
        )
        engine = ScriptedEngine(script)
        report = _orchestrator(engine, root).run("Can you store the 'Made for you' and 'Popular albums' in a table")

        assert report.status == RunStatus.COMPLETED
        assert report.final_answer == "Both tables are ready."
        assert report.state.entity_names == ["made_for_you_playlists", "popular_albums"]
        assert report.state.is_complete

        rejected = report.steps[5]
        assert rejected.tool_name == FINAL_ANSWER_STEP
        assert not rejected.ok
        assert "popular_albums" in rejected.output
        assert "made_for_you_playlists" not in rejected.output

        # correction was fed back to the engine before its next decision
        assert engine.calls[6][-1]["role"] == "user"
        assert "popular_albums: schema_written" in engine.calls[6][-1]["content"]
        assert report.steps_used == 11


def test_budget_exhaustion_keeps_partial_work():
    with tempfile.TemporaryDirectory() as temp_dir:
        root = Path(temp_dir)
        engine = ScriptedEngine(full_workflow("recently_played_songs", RECENTLY_PLAYED_FIELDS))
        report = _orchestrator(engine, root, budget=3).run("Can you store the recently played songs in a table")

        assert report.status == RunStatus.BUDGET_EXHAUSTED
        assert report.steps_used == 3
        assert report.final_answer is None
        assert report.state.missing("recently_played_songs") == [
            LifecycleStage.ENDPOINT_WRITTEN,
            LifecycleStage.HOOK_WRITTEN,
        ]
        assert (root / "app/models/recently_played_songs.py").exists()
        assert not (root / "app/api/recently_played_songs.py").exists()


def test_never_done_with_incomplete_state_before_budget():
    with tempfile.TemporaryDirectory() as temp_dir:
        engine = ScriptedEngine([final("done")] * 10)
        report = _orchestrator(engine, Path(temp_dir), budget=4).run("store popular albums")

        assert report.status == RunStatus.BUDGET_EXHAUSTED
        assert [s.tool_name for s in report.steps] == [FINAL_ANSWER_STEP] * 4
        assert not report.state.is_complete


def test_malformed_tool_input_is_recoverable():
    with tempfile.TemporaryDirectory() as temp_dir:
        engine = ScriptedEngine([
            tool("create_schema", _raw="{not json"),
            tool("create_api_endpoint", entity="popular_albums", verb="GET"),
            tool("drop_database"),
            tool("create_schema", name="notes", fields=[{"name": "id", "kind": "integer"}]),
            final("Nothing to store."),
        ])
        report = _orchestrator(engine, Path(temp_dir)).run("hello there")

        assert report.status == RunStatus.NEEDS_CLARIFICATION
        assert [s.ok for s in report.steps] == [False, False, False, False]
        assert [s.error_kind for s in report.steps] == ["validation", "validation", "validation", "naming_conflict"]
        assert report.steps[0].input == {"raw": "{not json"}

        observation = engine.calls[1][-1]
        assert observation["role"] == "tool"
        assert observation["tool_call_id"] == "call_create_schema"
        assert json.loads(observation["content"])["success"] is False


def test_protocol_error_consumes_step_without_observation():
    with tempfile.TemporaryDirectory() as temp_dir:
        engine = ScriptedEngine([ProtocolError("two tool calls"), final("Please tell me what to store.")])
        report = _orchestrator(engine, Path(temp_dir)).run("hello there")

        assert report.status == RunStatus.NEEDS_CLARIFICATION
        assert report.steps[0].tool_name == "reasoning_engine"
        assert report.steps[0].error_kind == "protocol"
        assert len(engine.calls[1]) == len(engine.calls[0]) == 2


def test_engine_timeout_is_recoverable():
    with tempfile.TemporaryDirectory() as temp_dir:
        root = Path(temp_dir)
        script = [EngineTimeout("timed out after 1s")] + full_workflow("recently_played_songs", RECENTLY_PLAYED_FIELDS)
        engine = ScriptedEngine(script)
        report = _orchestrator(engine, root).run("recently played songs")

        assert report.status == RunStatus.COMPLETED
        assert report.steps[0].ok is False
        assert report.steps[0].error_kind == "timeout"
        failure = engine.calls[1][-1]
        assert failure["role"] == "user"
        assert "timed out" in failure["content"]


def test_failed_migration_is_reported_and_retried():
    with tempfile.TemporaryDirectory() as temp_dir:
        runner = MagicMock(side_effect=[
            ProcessResult(command=["alembic"], exit_status=1, stdout="", stderr="database is locked"),
            ProcessResult(command=["alembic"], exit_status=0, stdout="", stderr=""),
            ProcessResult(command=["alembic"], exit_status=0, stdout="", stderr=""),
        ])
        workflow = full_workflow("recently_played_songs", RECENTLY_PLAYED_FIELDS)
        script = workflow[:2] + [tool("generate_migration")] + workflow[2:]
        engine = ScriptedEngine(script)
        report = _orchestrator(engine, Path(temp_dir), runner=runner).run("recently played songs")

        assert report.status == RunStatus.COMPLETED
        assert report.steps[1].ok is False
        assert report.steps[1].error_kind == "external"
        assert "database is locked" in report.steps[1].output
        assert runner.call_count == 3


def test_keyboard_interrupt_cancels_without_reverting():
    with tempfile.TemporaryDirectory() as temp_dir:
        root = Path(temp_dir)
        script = full_workflow("recently_played_songs", RECENTLY_PLAYED_FIELDS)[:1] + [KeyboardInterrupt()]
        report = _orchestrator(ScriptedEngine(script), root).run("recently played songs")

        assert report.status == RunStatus.CANCELLED
        assert report.steps_used == 1
        assert (root / "app/models/recently_played_songs.py").exists()


def test_dry_run_previews_and_completes():
    with tempfile.TemporaryDirectory() as temp_dir:
        root = Path(temp_dir)
        runner = _runner()
        engine = ScriptedEngine(full_workflow("recently_played_songs", RECENTLY_PLAYED_FIELDS))
        report = _orchestrator(engine, root, dry_run=True, runner=runner).run("recently played songs")

        assert report.status == RunStatus.COMPLETED
        assert report.dry_run
        assert list(root.iterdir()) == []
        runner.assert_not_called()
        assert "dry run" in engine.calls[0][1]["content"]

        observation = json.loads(engine.calls[1][-1]["content"])
        assert observation["files"][0]["action"] == "preview"


def test_long_observations_are_truncated():
    with tempfile.TemporaryDirectory() as temp_dir:
        root = Path(temp_dir)
        (root / "big.txt").write_text("x" * 500, encoding="utf-8")
        engine = ScriptedEngine([tool("read_file", path="big.txt"), final("ok")])
        _orchestrator(engine, root, max_observation_chars=100).run("hello")

        content = engine.calls[1][-1]["content"]
        assert content.endswith("...(truncated)")
        assert len(content) == 100 + len("\n...(truncated)")


def test_progress_rows_cover_every_stage():
    with tempfile.TemporaryDirectory() as temp_dir:
        engine = ScriptedEngine(full_workflow("recently_played_songs", RECENTLY_PLAYED_FIELDS)[:1])
        report = _orchestrator(engine, Path(temp_dir), budget=2).run("recently played songs")

        (name, stages), = report.progress_rows()
        assert name == "recently_played_songs"
        assert list(stages) == [s.value for s in STAGE_ORDER]
        assert stages["schema_written"] is True
        assert stages["migration_generated"] is False


def test_unreadable_paths_become_failed_steps():
    with tempfile.TemporaryDirectory() as temp_dir:
        root = Path(temp_dir)
        (root / "app.db").write_bytes(b"SQLite format 3\x00\xff\xfe\x80")
        (root / "app/models").mkdir(parents=True)
        (root / "app/models/broken.py").write_bytes(b"\xff\xfe\x80")
        engine = ScriptedEngine([
            tool("read_file", path="app.db"),
            tool("read_file", path="a\x00b"),
            tool("analyze_schema"),
            final("Nothing to store."),
        ])
        report = _orchestrator(engine, root).run("hello there")

        assert report.status == RunStatus.NEEDS_CLARIFICATION
        assert [s.ok for s in report.steps] == [False, False, False]
        assert [s.error_kind for s in report.steps] == ["validation"] * 3
        assert "'app.db' is not a UTF-8 text file" in report.steps[0].output
        assert "app/models/broken.py" in report.steps[2].output
        assert json.loads(engine.calls[1][-1]["content"])["success"] is False


def test_migration_timeout_is_recorded_and_the_run_continues():
    with tempfile.TemporaryDirectory() as temp_dir:
        runner = MagicMock(side_effect=[
            EngineTimeout("'alembic revision --autogenerate' timed out after 120s"),
            ProcessResult(command=["alembic"], exit_status=0, stdout="", stderr=""),
            ProcessResult(command=["alembic"], exit_status=0, stdout="", stderr=""),
        ])
        workflow = full_workflow("recently_played_songs", RECENTLY_PLAYED_FIELDS)
        script = workflow[:2] + [tool("generate_migration")] + workflow[2:]
        engine = ScriptedEngine(script)
        report = _orchestrator(engine, Path(temp_dir), runner=runner).run("recently played songs")

        assert report.status == RunStatus.COMPLETED
        assert report.steps[1].ok is False
        assert report.steps[1].error_kind == "timeout"
        assert "timed out" in json.loads(engine.calls[2][-1]["content"])["error"]
        assert report.state.is_complete
        assert runner.call_count == 3


def test_seed_rows_follow_the_schema_that_was_written():
    with tempfile.TemporaryDirectory() as temp_dir:
        root = Path(temp_dir)
        engine = ScriptedEngine([
            tool("create_schema", name="recently_played_songs", fields=[{"name": "title", "kind": "short_text"}]),
            tool("seed_database", entity="recently_played_songs", rows=[{"title": "Blue"}]),
        ])
        report = _orchestrator(engine, root, budget=2).run("Can you store the recently played songs in a table")

        # the detected draft had required artist and playedAt fields; the written schema does not
        assert [s.ok for s in report.steps] == [True, True]
        assert [f.name for f in report.state.get("recently_played_songs").entity.fields] == ["title"]
        assert (root / "app/seeds/recently_played_songs.py").exists()
        assert report.status == RunStatus.BUDGET_EXHAUSTED
