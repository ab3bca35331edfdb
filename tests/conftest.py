import json
from pathlib import Path
from typing import Callable, Dict, List, Optional, Sequence, Union

import pytest

from longscribe.core.errors import QuotaError
from longscribe.core.manager import WorkspaceManager
from longscribe.core.models import UsageRecord, Window
from longscribe.providers.base import CompletionResult, CompletionService

Scripted = Union[str, Exception]


class FakeCompletionService(CompletionService):
    """
    Replays scripted responses per model.

    Each model has a queue of strings (returned as text) or exceptions
    (raised). A `responder` callable, if given, answers any call whose
    model queue is empty. With neither, the call fails with a QuotaError.
    """

    def __init__(self, responses: Optional[Dict[str, List[Scripted]]] = None,
                 responder: Optional[Callable[[str, str], Scripted]] = None):
        super().__init__()
        self.responses = {model: list(items) for model, items in (responses or {}).items()}
        self.responder = responder
        self.calls: List[Dict] = []
        self.cleaned_up = False

    @property
    def name(self) -> str:
        return "fake"

    def complete(self, model: str, prompt: str, media: Sequence[Path] = (), json_output: bool = True) -> CompletionResult:
        self.calls.append({"model": model, "prompt": prompt, "media": list(media), "json_output": json_output})
        queue = self.responses.get(model)
        if queue:
            item = queue.pop(0)
        elif self.responder:
            item = self.responder(model, prompt)
        else:
            item = QuotaError("429 resource exhausted", model)

        if isinstance(item, Exception):
            raise item
        self.usage.append(UsageRecord(model=model, input_tokens=100, output_tokens=50, estimated_cost_usd=0.01))
        return CompletionResult(text=item, model=model, input_tokens=100, output_tokens=50)

    def cleanup(self) -> None:
        self.cleaned_up = True


def segments_json(*rows) -> str:
    """Build a transcription response from (speaker, start, text) tuples."""
    return json.dumps([{"speaker": s, "start": start, "text": text} for s, start, text in rows])


@pytest.fixture
def fake_service():
    return FakeCompletionService


@pytest.fixture
def workspace(tmp_path):
    source = tmp_path / "talk.mp3"
    source.write_bytes(b"")
    manager = WorkspaceManager(source)
    manager.prepare()
    return manager


@pytest.fixture
def window():
    return Window(index=0, start_seconds=0.0, end_seconds=600.0)


@pytest.fixture(autouse=True)
def no_fallback_sleep(monkeypatch):
    monkeypatch.setattr("longscribe.pipeline.fallback.time.sleep", lambda seconds: None)
