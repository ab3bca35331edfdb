import json
from pathlib import Path

import pytest

from conftest import FakeCompletionService, segments_json
from longscribe.constants import ERROR_SPEAKER
from longscribe.core.errors import FatalCompletionError, QuotaError, ResponseParseError
from longscribe.core.models import ContentContext, IssueKind, TranscriptSegment, Window
from longscribe.pipeline.transcribe import TranscriptionEngine, build_context_tail, parse_segments

CONTEXT = ContentContext(description="A weekly planning meeting between Alice and Bob.")


def _engine(service, workspace, models=("model-a", "model-b"), **kwargs):
    return TranscriptionEngine(
        service,
        list(models),
        workspace,
        chunk_audio=lambda w: workspace.chunks_dir / f"chunk_{w.index:03d}.mp3",
        total_windows=2,
        **kwargs,
    )


def _full_window():
    return segments_json(*[("Alice" if i % 2 else "Bob", f"{i:02d}:00", f"minute {i}") for i in range(10)])


# -- parse_segments ----------------------------------------------------------

def test_parse_array_of_segments():
    text = json.dumps([
        {"speaker": " Alice ", "start": "00:05", "end": "00:09", "text": "Hello", "tone": "warm"},
        {"speaker": "Bob", "start": 12.5, "text": "Hi"},
    ])

    segments = parse_segments(text)

    assert segments == [
        TranscriptSegment(speaker="Alice", start=5.0, end=9.0, text="Hello", tone="warm"),
        TranscriptSegment(speaker="Bob", start=12.5, end=None, text="Hi"),
    ]


def test_parse_object_with_segments_key_and_code_fence():
    text = "```json\n" + json.dumps({"segments": [{"speaker": "A", "start": "01:02:03", "text": "x"}]}) + "\n```"

    segments = parse_segments(text)

    assert segments[0].start == 3723.0


def test_parse_transcript_key():
    text = json.dumps({"transcript": [{"speaker": "A", "start": "00:01", "text": "x"}]})

    assert len(parse_segments(text)) == 1


def test_parse_empty_array_is_not_an_error():
    assert parse_segments("[]") == []


@pytest.mark.parametrize("text", [
    "not json at all",
    '{"summary": "no segments here"}',
    '"just a string"',
    '[{"speaker": "A", "start": "00:01"}]',
    '[{"speaker": "", "start": "00:01", "text": "x"}]',
    '[{"speaker": "A", "start": "later", "text": "x"}]',
    '[{"speaker": "A", "start": "00:01", "text": "ok"}, {"speaker": "B", "text": "no start"}]',
])
def test_parse_rejects_whole_response(text):
    with pytest.raises(ResponseParseError) as excinfo:
        parse_segments(text, "model-a")

    assert excinfo.value.model == "model-a"
    assert excinfo.value.raw_text == text


def test_context_tail_keeps_last_lines_without_placeholders():
    segments = [TranscriptSegment(speaker="Alice", start=i, text=f"line {i}") for i in range(30)]
    segments.append(TranscriptSegment(speaker=ERROR_SPEAKER, start=31, text="[failed]"))

    tail = build_context_tail(segments, lines=3)

    assert tail == "Alice: line 27\nAlice: line 28\nAlice: line 29"


# -- TranscriptionEngine -----------------------------------------------------

def test_good_response_is_accepted_and_cached(workspace, window):
    service = FakeCompletionService({"model-a": [_full_window()]})
    engine = _engine(service, workspace)

    result = engine.transcribe_window(window, "", CONTEXT, [], max_retries=2)

    assert not result.failed
    assert result.attempts == 1
    assert result.model == "model-a"
    assert len(result.segments) == 10
    assert result.validation.valid
    assert workspace.chunk_result_path(0).exists()
    assert service.calls[0]["media"] == [workspace.chunks_dir / "chunk_000.mp3"]


def test_prompt_carries_context_tail_and_known_speakers(workspace, window):
    service = FakeCompletionService({"model-a": [_full_window()]})
    engine = _engine(service, workspace, instructions="Language is English")

    engine.transcribe_window(window, "Bob: see you next week", CONTEXT, ["Alice", "Bob"], max_retries=0)

    prompt = service.calls[0]["prompt"]
    assert CONTEXT.description in prompt
    assert "Bob: see you next week" in prompt
    assert "Do NOT transcribe them again" in prompt
    assert "Alice, Bob" in prompt
    assert "chunk 1 of 2" in prompt
    assert "Language is English" in prompt


def test_underflow_is_retried_with_corrective_hint(workspace):
    window = Window(index=1, start_seconds=540.0, end_seconds=1740.0)
    short = segments_json(("Alice", "00:00", "a"), ("Bob", "00:05", "b"), ("Alice", "00:10", "c"))
    full = segments_json(*[("Alice", f"{m:02d}:00", "x") for m in range(0, 20)])
    service = FakeCompletionService({"model-a": [short, full]})
    engine = _engine(service, workspace)

    result = engine.transcribe_window(window, "", CONTEXT, [], max_retries=2)

    assert result.attempts == 2
    assert not result.validation.has_issue(IssueKind.TIMING_UNDERFLOW)
    first_prompt, second_prompt = service.calls[0]["prompt"], service.calls[1]["prompt"]
    assert "CORRECTION REQUIRED" not in first_prompt
    assert "CORRECTION REQUIRED" in second_prompt
    assert "exactly 1200 seconds" in second_prompt
    assert "00:00 to about 20:00" in second_prompt

    entries = workspace.ledger.entries_for(1)
    assert [e.attempt for e in entries] == [1, 2]
    assert "timing_underflow" in entries[0].validation


def test_persistent_issues_keep_the_last_result(workspace, window):
    short = segments_json(("Alice", "00:00", "a"), ("Bob", "00:05", "b"))
    service = FakeCompletionService(responder=lambda model, prompt: short)
    engine = _engine(service, workspace)

    result = engine.transcribe_window(window, "", CONTEXT, [], max_retries=2)

    assert not result.failed
    assert result.attempts == 3
    assert len(service.calls) == 3
    assert result.validation.has_issue(IssueKind.TIMING_UNDERFLOW)
    assert [s.text for s in result.segments] == ["a", "b"]


def test_always_empty_window_is_bounded_and_marked(workspace, window):
    service = FakeCompletionService(responder=lambda model, prompt: "[]")
    engine = _engine(service, workspace)

    result = engine.transcribe_window(window, "", CONTEXT, [], max_retries=2)

    assert len(service.calls) == 3
    assert result.failed
    assert result.attempts == 3
    assert result.validation.has_issue(IssueKind.EMPTY)
    assert len(result.segments) == 1
    assert result.segments[0].speaker == ERROR_SPEAKER
    assert not workspace.chunk_result_path(0).exists()


def test_exhausted_models_on_every_attempt_fail_the_window(workspace, window):
    service = FakeCompletionService()
    engine = _engine(service, workspace)

    result = engine.transcribe_window(window, "", CONTEXT, [], max_retries=1)

    # two attempts, two models each
    assert len(service.calls) == 4
    assert result.failed
    assert "All models exhausted" in result.error
    placeholder = result.segments[0]
    assert placeholder.speaker == ERROR_SPEAKER
    assert placeholder.start == 0.0
    assert placeholder.end == window.duration
    assert placeholder.text.startswith("[Transcription failed for 00:00-10:00")
    assert len(workspace.ledger.entries_for(0)) == 4


def test_attempt_that_exhausts_models_is_retried(workspace, window):
    service = FakeCompletionService({
        "model-a": [QuotaError("429", "model-a"), _full_window()],
        "model-b": [QuotaError("429", "model-b")],
    })
    engine = _engine(service, workspace)

    result = engine.transcribe_window(window, "", CONTEXT, [], max_retries=1)

    assert not result.failed
    assert result.attempts == 2
    assert result.model == "model-a"


def test_fatal_error_is_not_swallowed(workspace, window):
    service = FakeCompletionService({"model-a": [FatalCompletionError("401 unauthorized", "model-a")]})
    engine = _engine(service, workspace)

    with pytest.raises(FatalCompletionError):
        engine.transcribe_window(window, "", CONTEXT, [], max_retries=2)


def test_cached_result_skips_the_service(workspace, window):
    first = FakeCompletionService({"model-a": [_full_window()]})
    _engine(first, workspace).transcribe_window(window, "", CONTEXT, [], max_retries=0)

    second = FakeCompletionService()
    result = _engine(second, workspace).transcribe_window(window, "", CONTEXT, [], max_retries=0)

    assert second.calls == []
    assert result.from_cache
    assert len(result.segments) == 10


def test_force_ignores_the_cache(workspace, window):
    _engine(FakeCompletionService({"model-a": [_full_window()]}), workspace).transcribe_window(
        window, "", CONTEXT, [], max_retries=0
    )

    service = FakeCompletionService({"model-a": [_full_window()]})
    result = _engine(service, workspace, force=True).transcribe_window(window, "", CONTEXT, [], max_retries=0)

    assert len(service.calls) == 1
    assert not result.from_cache
