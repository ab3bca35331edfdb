import json

import pytest

from longscribe.core.ledger import ProgressLedger
from longscribe.core.models import LedgerEntry


def _entry(i, **kwargs):
    return LedgerEntry(timestamp_ms=1_700_000_000_000 + i, window_index=i, prompt=f"prompt {i}", **kwargs)


def test_first_append_creates_a_json_array(tmp_path):
    ledger = ProgressLedger(tmp_path / "ledger.json")

    ledger.append(_entry(0, response="[]"))

    data = json.loads(ledger.path.read_text(encoding="utf-8"))
    assert isinstance(data, list)
    assert data[0]["prompt"] == "prompt 0"


def test_appends_keep_order_and_valid_json(tmp_path):
    ledger = ProgressLedger(tmp_path / "ledger.json")

    for i in range(5):
        ledger.append(_entry(i))

    assert [e.window_index for e in ledger.read_all()] == [0, 1, 2, 3, 4]
    json.loads(ledger.path.read_text(encoding="utf-8"))


def test_existing_bytes_are_never_rewritten(tmp_path):
    ledger = ProgressLedger(tmp_path / "ledger.json")
    ledger.append(_entry(0))
    ledger.append(_entry(1))
    before = ledger.path.read_bytes()

    ledger.append(_entry(2))
    after = ledger.path.read_bytes()

    # Only the closing bracket (and trailing newline) is replaced
    prefix = before.rstrip().rstrip(b"]").rstrip()
    assert after.startswith(prefix)
    assert len(after) > len(before)


def test_record_stamps_time_and_fields(tmp_path):
    ledger = ProgressLedger(tmp_path / "ledger.json")

    entry = ledger.record("the prompt", stage="description", model="model-a", error="QuotaError: 429")

    assert entry.timestamp_ms > 0
    stored = ledger.read_all()[0]
    assert stored == entry
    assert stored.window_index is None
    assert stored.stage == "description"


def test_full_prompt_and_response_are_kept(tmp_path):
    ledger = ProgressLedger(tmp_path / "ledger.json")
    prompt = "line\n" * 500 + 'with "quotes" and ] brackets ['
    response = json.dumps([{"speaker": "A", "start": "00:01", "text": "ünïcödé ]"}])

    ledger.record(prompt, window_index=3, response=response)
    ledger.record("second", window_index=3)

    entries = ledger.entries_for(3)
    assert entries[0].prompt == prompt
    assert entries[0].response == response
    assert entries[1].prompt == "second"


def test_entries_for_filters_by_window(tmp_path):
    ledger = ProgressLedger(tmp_path / "ledger.json")
    ledger.record("a", window_index=0)
    ledger.record("b", window_index=1)
    ledger.record("c", window_index=0)

    assert [e.prompt for e in ledger.entries_for(0)] == ["a", "c"]


def test_missing_ledger_reads_as_empty(tmp_path):
    assert ProgressLedger(tmp_path / "nope.json").read_all() == []


def test_corrupted_ledger_is_reported(tmp_path):
    path = tmp_path / "ledger.json"
    path.write_text('[{"prompt": "cut off', encoding="utf-8")

    with pytest.raises(ValueError):
        ProgressLedger(path).append(_entry(0))
