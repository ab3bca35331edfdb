import json

from longscribe.constants import ERROR_SPEAKER
from longscribe.core.manager import WorkspaceManager
from longscribe.core.models import (
    ChunkResult, ContentContext, RunState, TranscriptSegment, ValidationOutcome, Window,
)


def _result(window, failed=False):
    return ChunkResult(
        window=window,
        segments=[TranscriptSegment(speaker=ERROR_SPEAKER if failed else "Alice", start=1.0, text="hello")],
        validation=ValidationOutcome(valid=not failed, coverage_percent=80.0),
        attempts=1,
        model="model-a",
        failed=failed,
    )


def test_workspace_lives_next_to_the_input(tmp_path):
    source = tmp_path / "Team Sync.mp4"
    manager = WorkspaceManager(source)

    assert manager.job_dir.parent == tmp_path.resolve() / ".longscribe"
    assert manager.job_dir.name.startswith("Team Sync-")
    assert len(manager.job_dir.name) == len("Team Sync-") + 8


def test_work_root_override_and_stable_hash(tmp_path):
    source = tmp_path / "a.mp3"

    first = WorkspaceManager(source, tmp_path / "work")
    second = WorkspaceManager(source, tmp_path / "work")

    assert first.job_dir == second.job_dir
    assert first.job_dir.parent == tmp_path / "work"


def test_same_name_in_different_directories_do_not_collide(tmp_path):
    a = WorkspaceManager(tmp_path / "x" / "talk.mp3", tmp_path / "work")
    b = WorkspaceManager(tmp_path / "y" / "talk.mp3", tmp_path / "work")

    assert a.job_dir != b.job_dir


def test_prepare_creates_layout(workspace):
    for directory in (workspace.audio_dir, workspace.chunks_dir, workspace.screenshots_dir, workspace.transcripts_dir):
        assert directory.is_dir()


def test_chunk_result_round_trip(workspace, window):
    path = workspace.save_chunk_result(_result(window))

    assert path.name == "chunk_000.json"
    assert "from_cache" not in json.loads(path.read_text(encoding="utf-8"))
    loaded = workspace.load_chunk_result(window)
    assert loaded.from_cache
    assert loaded.segments[0].text == "hello"
    assert loaded.model == "model-a"


def test_failed_results_are_never_cached(workspace, window):
    assert workspace.save_chunk_result(_result(window, failed=True)) is None
    assert not workspace.chunk_result_path(0).exists()


def test_cache_for_a_different_plan_is_ignored(workspace, window):
    workspace.save_chunk_result(_result(window))

    replanned = Window(index=0, start_seconds=0.0, end_seconds=900.0)

    assert workspace.load_chunk_result(replanned) is None


def test_unreadable_cache_is_ignored(workspace, window):
    workspace.chunk_result_path(0).write_text("{broken", encoding="utf-8")

    assert workspace.load_chunk_result(window) is None


def test_clear_chunk_results(workspace, window):
    workspace.save_chunk_result(_result(window))
    workspace.save_chunk_result(_result(Window(index=1, start_seconds=540, end_seconds=1140)))

    assert workspace.clear_chunk_results() == 2
    assert workspace.load_chunk_result(window) is None


def test_degraded_description_is_not_cached(workspace):
    workspace.save_description(ContentContext(description="[Content description unavailable: x]", degraded=True))
    assert workspace.load_description() is None

    workspace.save_description(ContentContext(description="A podcast.", audio_description="A podcast."))
    assert workspace.load_description().description == "A podcast."


def test_run_state_round_trip(workspace):
    state = RunState(input_file="talk.mp3", total_windows=3, completed_windows=[0], failed_windows=[1])

    workspace.save_run_state(state)
    loaded = workspace.load_run_state()

    assert loaded.completed_windows == [0]
    assert loaded.failed_windows == [1]
    assert loaded.total_windows == 3


def test_delete_removes_everything(workspace):
    workspace.ledger.record("prompt")

    workspace.delete()

    assert not workspace.exists()


def test_unreadable_description_is_ignored(workspace):
    (workspace.job_dir / "description.json").write_text("{not json", encoding="utf-8")
    assert workspace.load_description() is None

    (workspace.job_dir / "description.json").write_text("[]", encoding="utf-8")
    assert workspace.load_description() is None
