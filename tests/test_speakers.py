from longscribe.constants import ERROR_SPEAKER
from longscribe.core.models import TranscriptSegment
from longscribe.pipeline.speakers import SpeakerReconciler


def _segments(*speakers):
    return [TranscriptSegment(speaker=s, start=i * 10.0, end=i * 10.0 + 5, text=f"text {i}")
            for i, s in enumerate(speakers)]


def test_generic_speaker_maps_to_first_known_name():
    reconciler = SpeakerReconciler(["Alice", "Bob"])

    assert reconciler.reconcile(["Speaker 1"]) == {"Speaker 1": "Alice"}


def test_mapping_follows_first_seen_order_and_truncates():
    reconciler = SpeakerReconciler(["Alice", "Bob", "Carol"])

    mapping = reconciler.reconcile(["Speaker 2", "Speaker 1", "Unknown", "Speaker 4", "Speaker 2"])

    assert mapping == {"Speaker 2": "Alice", "Speaker 1": "Bob", "Unknown": "Carol"}


def test_names_already_in_the_window_are_not_reused():
    reconciler = SpeakerReconciler(["Alice", "Bob"])

    relabeled = reconciler.process(_segments("Alice", "Speaker 2", "Alice"))

    assert [s.speaker for s in relabeled] == ["Alice", "Bob", "Alice"]
    assert SpeakerReconciler(["Alice"]).reconcile(["Alice", "Speaker 1"]) == {}


def test_no_mapping_without_named_known_speakers():
    assert SpeakerReconciler().reconcile(["Speaker 1"]) == {}
    assert SpeakerReconciler(["Speaker 1"]).reconcile(["Speaker 2"]) == {}


def test_no_mapping_when_window_uses_names():
    assert SpeakerReconciler(["Alice"]).reconcile(["Carol", "Alice"]) == {}


def test_apply_only_rewrites_labels():
    segments = _segments("Speaker 1", "Carol")

    relabeled = SpeakerReconciler.apply(segments, {"Speaker 1": "Alice"})

    assert [s.speaker for s in relabeled] == ["Alice", "Carol"]
    assert [(s.start, s.end, s.text) for s in relabeled] == [(s.start, s.end, s.text) for s in segments]
    # Inputs are not mutated
    assert segments[0].speaker == "Speaker 1"


def test_process_is_idempotent():
    reconciler = SpeakerReconciler(["Alice", "Bob"])

    once = reconciler.process(_segments("Speaker 1", "Speaker 2"))
    twice = reconciler.process(once)

    assert [s.speaker for s in once] == ["Alice", "Bob"]
    assert twice == once


def test_process_is_idempotent_with_more_voices_than_names():
    reconciler = SpeakerReconciler(["Alice", "Bob"])

    once = reconciler.process(_segments("Speaker 1", "Speaker 2", "Speaker 3"))
    twice = reconciler.process(once)

    assert [s.speaker for s in once] == ["Alice", "Bob", "Speaker 3"]
    assert twice == once


def test_observe_keeps_insertion_order_without_duplicates():
    reconciler = SpeakerReconciler()

    reconciler.observe(_segments("Bob", "Alice", "Bob"))
    reconciler.observe(_segments("Carol", "Alice"))

    assert reconciler.known_speakers == ["Bob", "Alice", "Carol"]


def test_error_placeholders_are_never_known_speakers():
    reconciler = SpeakerReconciler()

    reconciler.observe(_segments(ERROR_SPEAKER, "Alice"))

    assert reconciler.known_speakers == ["Alice"]


def test_known_speakers_is_a_copy():
    reconciler = SpeakerReconciler(["Alice"])

    reconciler.known_speakers.append("Mallory")

    assert reconciler.known_speakers == ["Alice"]


def test_named_speakers_accumulate_across_windows():
    reconciler = SpeakerReconciler()

    reconciler.process(_segments("Alice", "Bob"))
    second = reconciler.process(_segments("Speaker 1", "Speaker 2", "Speaker 3"))

    assert [s.speaker for s in second] == ["Alice", "Bob", "Speaker 3"]
    assert reconciler.known_speakers == ["Alice", "Bob", "Speaker 3"]
