import json

import pytest

from conftest import FakeCompletionService
from longscribe.core.errors import FatalCompletionError, ResponseParseError
from longscribe.core.ledger import ProgressLedger
from longscribe.core.models import ActionItem, ContentContext, MeetingReport, TranscriptSegment
from longscribe.pipeline.report import ReportGenerator, parse_report, transcript_text

MODELS = ["model-a", "model-b"]

REPORT = json.dumps({
    "title": "Roadmap sync",
    "summary": "The team agreed on the Q3 roadmap.",
    "keyPoints": ["Search ships first"],
    "decisions": ["Freeze scope on Friday"],
    "actionItems": [{"owner": "Ann", "task": "Draft the plan", "deadline": "Friday"}],
    "topics": ["roadmap"],
    "participants": ["Ann", "Bo"],
})


@pytest.fixture
def segments():
    return [
        TranscriptSegment(speaker="Ann", start=0, text="Let's look at Q3."),
        TranscriptSegment(speaker="Bo", start=3725, text="Search first."),
    ]


def test_transcript_text(segments):
    assert transcript_text(segments) == "[00:00:00] Ann: Let's look at Q3.\n[01:02:05] Bo: Search first."


def test_parse_report_reads_camel_case_keys():
    report = parse_report(REPORT)

    assert report.key_points == ["Search ships first"]
    assert report.action_items[0].owner == "Ann"
    assert report.participants == ["Ann", "Bo"]


@pytest.mark.parametrize("text", ["not json", "[1, 2]", json.dumps({"actionItems": [{"owner": "x"}]})])
def test_parse_report_rejects(text):
    with pytest.raises(ResponseParseError):
        parse_report(text, "model-a")


def test_generate_uses_description_and_transcript(tmp_path, segments):
    service = FakeCompletionService({"model-a": [REPORT]})
    ledger = ProgressLedger(tmp_path / "ledger.json")

    report = ReportGenerator(service, MODELS, ledger).generate(segments, ContentContext(description="Planning call"))

    assert report.title == "Roadmap sync"
    prompt = service.calls[0]["prompt"]
    assert "MEETING DESCRIPTION:\nPlanning call" in prompt
    assert "[01:02:05] Bo: Search first." in prompt
    assert [e.stage for e in ledger.read_all()] == ["report"]


def test_invalid_report_falls_back_to_next_model(segments):
    service = FakeCompletionService({"model-a": ["{oops"], "model-b": [REPORT]})

    report = ReportGenerator(service, MODELS).generate(segments)

    assert report.title == "Roadmap sync"
    assert [c["model"] for c in service.calls] == MODELS


def test_exhausted_models_give_a_marked_report(segments):
    report = ReportGenerator(FakeCompletionService(), MODELS).generate(segments)

    assert report.title == "Report unavailable"
    assert report.summary.startswith("[Report generation failed: All models exhausted")


def test_fatal_errors_propagate(segments):
    service = FakeCompletionService({"model-a": [FatalCompletionError("403 forbidden", "model-a")]})

    with pytest.raises(FatalCompletionError):
        ReportGenerator(service, MODELS).generate(segments)


def test_write_report(tmp_path):
    report = MeetingReport(
        title="Roadmap sync",
        summary="Agreed.",
        decisions=["Freeze scope"],
        action_items=[ActionItem(owner="Ann", task="Draft the plan", deadline="Friday")],
    )

    path = ReportGenerator.write(report, tmp_path / "out" / "talk.report.md", "talk.mp3")

    content = path.read_text(encoding="utf-8")
    assert content.startswith("# Roadmap sync")
    assert "_Source: talk.mp3_" in content
    assert "- Freeze scope" in content
    assert "- [ ] Draft the plan (**Ann**) by Friday" in content
    assert "## Key Points" not in content
