import logging
from typing import Dict, Iterable, List, Optional

from ..constants import ERROR_SPEAKER
from ..core.models import TranscriptSegment
from .validator import is_generic_speaker

logger = logging.getLogger("Longscribe.Speakers")


class SpeakerReconciler:
    """
    Keeps speaker labels stable across windows.

    Holds the speakers seen so far, in first-seen order. When a window comes
    back with generic labels ("Speaker 1", "Unknown") after earlier windows
    named people, the generic labels are mapped onto the named ones by
    position. This is a heuristic: if two unnamed voices show up in a
    different order than before, they are swapped.
    """

    def __init__(self, known_speakers: Optional[Iterable[str]] = None):
        self._known: List[str] = []
        for speaker in known_speakers or ():
            self._add(speaker)

    @property
    def known_speakers(self) -> List[str]:
        return list(self._known)

    def reconcile(self, chunk_speakers: Iterable[str]) -> Dict[str, str]:
        """
        Map this window's generic labels to known named speakers, first-seen order on both sides.

        Names already used in the window are not mapping targets, so two
        voices never collapse into one label and reconciling an already
        reconciled window changes nothing.
        """
        window_speakers = list(dict.fromkeys(chunk_speakers))
        generic_current = [s for s in window_speakers if is_generic_speaker(s)]
        targets = [s for s in self._known if not is_generic_speaker(s) and s not in window_speakers]
        if not targets or not generic_current:
            return {}
        return dict(zip(generic_current, targets))

    @staticmethod
    def apply(segments: List[TranscriptSegment], mapping: Dict[str, str]) -> List[TranscriptSegment]:
        if not mapping:
            return segments
        return [
            segment.model_copy(update={"speaker": mapping[segment.speaker]})
            if segment.speaker in mapping else segment
            for segment in segments
        ]

    def observe(self, segments: Iterable[TranscriptSegment]) -> None:
        """Merge the window's speakers into the known set."""
        for segment in segments:
            self._add(segment.speaker)

    def process(self, segments: List[TranscriptSegment]) -> List[TranscriptSegment]:
        """Reconcile, relabel and observe one window's segments."""
        mapping = self.reconcile(segment.speaker for segment in segments)
        if mapping:
            logger.info("Normalized speakers: " + ", ".join(f"{k} -> {v}" for k, v in mapping.items()))
        relabeled = self.apply(segments, mapping)
        self.observe(relabeled)
        return relabeled

    def _add(self, speaker: str) -> None:
        if speaker and speaker != ERROR_SPEAKER and speaker not in self._known:
            self._known.append(speaker)
